#    Copyright 2026 Two Sigma Open Source, LLC
#
#    Licensed under the Apache License, Version 2.0 (the "License");
#    you may not use this file except in compliance with the License.
#    You may obtain a copy of the License at
#
#        http://www.apache.org/licenses/LICENSE-2.0
#
#    Unless required by applicable law or agreed to in writing, software
#    distributed under the License is distributed on an "AS IS" BASIS,
#    WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#    See the License for the specific language governing permissions and
#    limitations under the License.

"""Stage definitions for the iCE40 build and Verilator simulation flows.

Synthesis chain:
    synth      - Yosys synthesis to a JSON netlist (+ utilization report)
    pnr        - nextpnr place and route to an ASCII bitstream (+ timing report)
    bitstream  - icepack to the binary bitstream
    prog       - iceprog to SRAM (volatile)
    prog_flash - iceprog to SPI flash (persistent)

Report side branches:
    timing_report - standalone icetime run on the routed design
    util_report   - standalone Yosys ``stat`` run

Simulation chain (independent of the synthesis chain):
    sim_build - Verilator compile of the model and C++ harness
    sim       - run the simulation executable
    sim_trace - run the simulation executable to produce the VCD trace

The report stages reuse the exact steps that ``synth`` and ``pnr`` run as a
side effect, so a report has the same contents whichever path wrote it.
"""

from dataclasses import dataclass
from pathlib import Path

from .config import SYNTH_TOP_MODULE, BuildConfig

# Verilator warnings silenced for small board designs
VERILATOR_WARNING_FLAGS = (
    "-Wno-UNUSED",
    "-Wno-UNDRIVEN",
    "-Wno-TIMESCALEMOD",
    "-Wno-STMTDLY",
)


@dataclass(frozen=True)
class ToolCommand:
    """Invoke an external tool.

    When ``stdout_path`` is set, stdout and stderr of the tool are written to
    that file instead of the terminal.
    """

    tag: str
    message: str
    argv: tuple[str, ...]
    cwd: Path | None = None
    stdout_path: Path | None = None


@dataclass(frozen=True)
class CopyFile:
    """Copy a file a tool produced into its final location."""

    source: Path
    destination: Path


Step = ToolCommand | CopyFile


@dataclass(frozen=True)
class Stage:
    """A named unit of work in the build graph."""

    name: str
    description: str
    inputs: tuple[Path, ...]
    outputs: tuple[Path, ...]  # Keys of the build graph; one producer each
    steps: tuple[Step, ...]
    side_outputs: tuple[Path, ...] = ()  # Written too, but not graph keys
    extra_dirs: tuple[Path, ...] = ()

    @property
    def phony(self) -> bool:
        """True for stages with no outputs; they run every time."""
        return not self.outputs

    @property
    def expected_outputs(self) -> tuple[Path, ...]:
        return self.outputs + self.side_outputs

    @property
    def output_dirs(self) -> list[Path]:
        """Directories that must exist before the stage runs."""
        dirs = {p.parent for p in self.expected_outputs}
        dirs.update(self.extra_dirs)
        return sorted(dirs)


# =============================================================================
# Step Builders
# =============================================================================


def _synth_command(config: BuildConfig, *extra: str) -> str:
    """Yosys ``synth_ice40`` command with the mode arguments applied."""
    return " ".join(
        ["synth_ice40", "-top", SYNTH_TOP_MODULE, *config.synth_args, *extra]
    )


def synthesis_step(config: BuildConfig) -> ToolCommand:
    """Synthesize the top-level source to a JSON netlist."""
    script = _synth_command(config, "-json", str(config.netlist))
    return ToolCommand(
        tag="BUILD",
        message="Synthesizing...",
        argv=(config.tools.yosys, "-p", script, str(config.top_source)),
    )


def utilization_report_step(
    config: BuildConfig, message: str = "Generating utilization report..."
) -> ToolCommand:
    """Capture Yosys cell statistics into the utilization report."""
    script = "; ".join(
        [
            f"read_verilog {config.top_source}",
            _synth_command(config),
            f"stat -top {SYNTH_TOP_MODULE}",
        ]
    )
    return ToolCommand(
        tag="REPORT",
        message=message,
        argv=(config.tools.yosys, "-p", script),
        stdout_path=config.util_rpt,
    )


def place_and_route_step(config: BuildConfig) -> ToolCommand:
    board = config.board
    return ToolCommand(
        tag="BUILD",
        message="Running place-and-route...",
        argv=(
            config.tools.nextpnr,
            f"--{board.device}",
            "--package",
            board.package,
            "--json",
            str(config.netlist),
            "--pcf",
            str(config.pcf_file),
            "--asc",
            str(config.routed),
        ),
    )


def timing_report_step(
    config: BuildConfig, message: str = "Generating timing report..."
) -> ToolCommand:
    """Run icetime on the routed design and write the timing report."""
    board = config.board
    return ToolCommand(
        tag="REPORT",
        message=message,
        argv=(
            config.tools.icetime,
            "-d",
            board.device,
            "-P",
            board.package,
            "-p",
            str(config.pcf_file),
            "-t",
            "-r",
            str(config.timing_rpt),
            str(config.routed),
        ),
    )


def pack_step(config: BuildConfig) -> ToolCommand:
    return ToolCommand(
        tag="BUILD",
        message="Packing bitstream...",
        argv=(config.tools.icepack, str(config.routed), str(config.output_bin)),
    )


def program_step(config: BuildConfig, flash: bool) -> ToolCommand:
    """Write the bitstream to SRAM (``-S``) or, with ``flash``, to SPI flash."""
    if flash:
        return ToolCommand(
            tag="FLASH",
            message="Flashing to device...",
            argv=(config.tools.iceprog, str(config.output_bin)),
        )
    return ToolCommand(
        tag="FLASH",
        message="Programming to SRAM...",
        argv=(config.tools.iceprog, "-S", str(config.output_bin)),
    )


def verilator_step(config: BuildConfig) -> ToolCommand:
    return ToolCommand(
        tag="SIM",
        message="Compiling with Verilator...",
        argv=(
            config.tools.verilator,
            "--cc",
            "--exe",
            "--build",
            *VERILATOR_WARNING_FLAGS,
            "--no-timing",
            "--trace",
            "--top-module",
            config.proj_name,
            "-o",
            config.sim_exe_name,
            str(config.sim_source.resolve()),
            str(config.sim_harness.resolve()),
            "--Mdir",
            str(config.sim_obj_dir),
        ),
    )


def simulation_run_step(config: BuildConfig, message: str) -> ToolCommand:
    """Run the simulation executable from inside the simulation directory."""
    return ToolCommand(
        tag="SIM",
        message=message,
        argv=(f"./{config.sim_exe_name}",),
        cwd=config.sim_dir,
    )


# =============================================================================
# Stage Graph
# =============================================================================


def define_stages(config: BuildConfig) -> dict[str, Stage]:
    """Declare every stage for one configuration, keyed by stage name."""
    stages = [
        Stage(
            name="synth",
            description="Synthesize to a JSON netlist",
            inputs=(config.top_source,),
            outputs=(config.netlist,),
            side_outputs=(config.util_rpt,),
            steps=(synthesis_step(config), utilization_report_step(config)),
        ),
        Stage(
            name="pnr",
            description="Place and route the netlist",
            inputs=(config.netlist, config.pcf_file),
            outputs=(config.routed,),
            side_outputs=(config.timing_rpt,),
            steps=(place_and_route_step(config), timing_report_step(config)),
        ),
        Stage(
            name="bitstream",
            description="Pack the binary bitstream",
            inputs=(config.routed,),
            outputs=(config.output_bin,),
            steps=(pack_step(config),),
        ),
        Stage(
            name="timing_report",
            description="Generate the timing analysis report",
            inputs=(config.routed, config.pcf_file),
            outputs=(config.timing_rpt,),
            steps=(
                timing_report_step(config, "Generating standalone timing report..."),
            ),
        ),
        Stage(
            name="util_report",
            description="Generate the resource utilization report",
            inputs=(config.netlist,),
            outputs=(config.util_rpt,),
            steps=(
                utilization_report_step(
                    config, "Generating standalone utilization report..."
                ),
            ),
        ),
        Stage(
            name="prog",
            description="Program the bitstream to SRAM (volatile)",
            inputs=(config.output_bin,),
            outputs=(),
            steps=(program_step(config, flash=False),),
        ),
        Stage(
            name="prog_flash",
            description="Flash the bitstream to the device (persistent)",
            inputs=(config.output_bin,),
            outputs=(),
            steps=(program_step(config, flash=True),),
        ),
        Stage(
            name="sim_build",
            description="Compile the Verilator simulation",
            inputs=(config.sim_source, config.sim_harness),
            outputs=(config.sim_exe,),
            steps=(
                verilator_step(config),
                CopyFile(config.sim_obj_dir / config.sim_exe_name, config.sim_exe),
            ),
            extra_dirs=(config.sim_obj_dir,),
        ),
        Stage(
            name="sim",
            description="Run the Verilator simulation",
            inputs=(config.sim_exe,),
            outputs=(),
            steps=(simulation_run_step(config, "Running Verilator simulation..."),),
        ),
        Stage(
            name="sim_trace",
            description="Run the simulation to generate the VCD trace",
            inputs=(config.sim_exe,),
            outputs=(config.sim_vcd,),
            steps=(
                simulation_run_step(
                    config, "Running simulation to generate VCD..."
                ),
            ),
        ),
    ]
    return {stage.name: stage for stage in stages}
