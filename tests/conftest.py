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

"""Pytest configuration and a fake iCE40 toolchain for tests."""

import os
import subprocess
import time
from pathlib import Path
from typing import Any

import pytest

from icepipe.config import BuildConfig, ToolPaths
from icepipe.pipeline import Pipeline

# icetime output (abridged)
TIMING_REPORT = """\
Report for critical path:
-------------------------

        lc40_12_7_3 (LogicCell40) [clk] -> lcout: 0.640 ns
     0.640 ns net_21345 (counter[0])
        t1432 (LocalMux) I -> O: 0.330 ns
        inmux_12_8_24618_24648 (InMux) I -> O: 0.260 ns
        lc40_12_8_0 (LogicCell40) in1 -> carryout: 0.260 ns
     7.840 ns net_24639 (counter[23])

Resolvable net names on path:
     0.640 ns ..  1.490 ns counter[0]

Total number of logic levels: 5
Total path delay: 7.84 ns (127.55 MHz)
"""

# Yosys ``stat`` output (abridged)
UTILIZATION_REPORT = """\
2.49. Printing statistics.

=== top ===

   Number of wires:                 20
   Number of wire bits:             60
   Number of public wires:           3
   Number of public wire bits:      27
   Number of memories:               0
   Number of memory bits:            0
   Number of processes:              0
   Number of cells:                 53
     SB_CARRY                       23
     SB_DFF                         24
     SB_LUT4                         6

End of script.
"""


def pytest_configure(config: Any) -> None:
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "pipeline: mark test as a pipeline test")
    config.addinivalue_line("markers", "cli: mark test as a command-line test")


class FakeToolchain:
    """Stand-in for ``subprocess.run`` that mimics the iCE40 tools.

    Records every command line and writes the files each real tool would
    write. Tools can be made to fail with ``fail()``.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.failures: dict[str, int] = {}
        self.partial: set[str] = set()
        self.timing_report = TIMING_REPORT
        self.util_report = UTILIZATION_REPORT

    def fail(self, program: str, returncode: int = 1, partial: bool = False) -> None:
        """Make ``program`` exit with ``returncode``.

        With ``partial``, the tool still writes its outputs before failing.
        """
        self.failures[program] = returncode
        if partial:
            self.partial.add(program)

    @property
    def programs(self) -> list[str]:
        """Basenames of the programs run, in order."""
        return [Path(argv[0]).name for argv in self.calls]

    def commands_for(self, program: str) -> list[list[str]]:
        return [argv for argv in self.calls if Path(argv[0]).name == program]

    def __call__(
        self,
        argv: list[str],
        cwd: Path | None = None,
        stdout: Any = None,
        stderr: Any = None,
        check: bool = False,
        **kwargs: Any,
    ) -> subprocess.CompletedProcess:
        self.calls.append(list(argv))
        program = Path(argv[0]).name
        returncode = self.failures.get(program, 0)
        if returncode == 0 or program in self.partial:
            self._produce(program, argv, cwd, stdout)
        return subprocess.CompletedProcess(argv, returncode)

    def _produce(
        self, program: str, argv: list[str], cwd: Path | None, stdout: Any
    ) -> None:
        if program == "yosys":
            script = argv[2]
            if "-json" in script:
                netlist = script.split("-json", 1)[1].split()[0]
                Path(netlist).write_text('{"modules": {"top": {}}}\n')
            if "stat" in script and stdout is not None:
                stdout.write(self.util_report)
        elif program == "nextpnr-ice40":
            Path(argv[argv.index("--asc") + 1]).write_text(".device 5k\n")
        elif program == "icetime":
            Path(argv[argv.index("-r") + 1]).write_text(self.timing_report)
        elif program == "icepack":
            Path(argv[2]).write_bytes(b"\xff\x00\x00\xff")
        elif program == "verilator":
            obj_dir = Path(argv[argv.index("--Mdir") + 1])
            obj_dir.mkdir(parents=True, exist_ok=True)
            exe = obj_dir / argv[argv.index("-o") + 1]
            exe.write_text("#!/bin/sh\n")
            exe.chmod(0o755)
        elif program.endswith("_sim"):
            proj_name = program[: -len("_sim")]
            (Path(cwd) / f"{proj_name}.vcd").write_text("$timescale 1ns $end\n")


def age(path: Path, seconds: float = 100.0) -> None:
    """Move a file's modification time into the past."""
    stamp = time.time() - seconds
    os.utime(path, (stamp, stamp))


@pytest.fixture
def design_root(tmp_path: Path) -> Path:
    """A design tree with the led_blink sources and the default board's PCF."""
    root = tmp_path / "designs"
    src = root / "led_blink"
    src.mkdir(parents=True)
    (src / "top.v").write_text("module top(input clk, output led); endmodule\n")
    (src / "led_blink.v").write_text(
        "module led_blink(input clk, output led); endmodule\n"
    )
    (src / "led_blink_sim.cpp").write_text("int main() { return 0; }\n")

    pcf = root / "boards" / "lattice" / "ice40-mdp" / "io_mdp_u3.pcf"
    pcf.parent.mkdir(parents=True)
    pcf.write_text("set_io clk 35\nset_io led 39\n")

    # Sources start in the past so freshly built outputs are strictly newer
    for path in [src / "top.v", src / "led_blink.v", src / "led_blink_sim.cpp", pcf]:
        age(path, 1000.0)
    return root


@pytest.fixture
def config(design_root: Path) -> BuildConfig:
    return BuildConfig(root=design_root, tools=ToolPaths())


@pytest.fixture
def toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def pipeline(config: BuildConfig, toolchain: FakeToolchain) -> Pipeline:
    return Pipeline(config, run_command=toolchain)
