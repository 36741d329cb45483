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

"""Build configuration.

Configuration
=============

All values that select *what* gets built live here: the project name, the
build mode, the target board and the tool executables. A ``BuildConfig`` is
frozen and is passed explicitly to stage definition and execution, so two
configurations can coexist in one process.

Precedence, lowest to highest:
    1. Defaults in this module
    2. Environment variables (``PROJ_NAME``, ``MODE``, ``BOARD``, tool names)
    3. Command-line options
    4. Make-style ``VAR=VALUE`` assignments

Usage:
    >>> config = BuildConfig.from_env({}, root=Path("designs"))
    >>> config.output_bin
    PosixPath('designs/build/led_blink.bin')
    >>> config.with_overrides({"MODE": "debug"}).synth_args
    ('-dsp', '-noabc')

Layout for project ``P`` (relative to the design root):
    - ``P/top.v``             synthesis top-level source
    - ``P/P.v``, ``P/P_sim.cpp``  simulation model and C++ harness
    - ``build/``              netlist, routed design, bitstream, reports
    - ``sim/``                simulation executable, obj_dir, VCD trace
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Final

from .errors import ConfigError

# ============================================================================
# Defaults
# ============================================================================

DEFAULT_PROJ_NAME: Final[str] = "led_blink"
"""Project built when ``PROJ_NAME`` is not given."""

DEFAULT_MODE: Final[str] = "release"
"""Build mode used when ``MODE`` is not given."""

DEFAULT_BOARD: Final[str] = "ice40-mdp"
"""Board used when ``BOARD`` is not given."""

BUILD_DIR_NAME: Final[str] = "build"
"""Directory (under the design root) holding synthesis and P&R artifacts."""

SIM_DIR_NAME: Final[str] = "sim"
"""Directory (under the design root) holding simulation artifacts."""

SYNTH_TOP_MODULE: Final[str] = "top"
"""Top-level module name passed to Yosys."""

# ============================================================================
# Build Modes
# ============================================================================

SYNTH_MODE_ARGS: Final[dict[str, tuple[str, ...]]] = {
    "release": (),
    # Keep DSP blocks and skip ABC so the netlist stays close to the RTL
    "debug": ("-dsp", "-noabc"),
}
"""Extra ``synth_ice40`` arguments for each build mode."""

MODES: Final[tuple[str, ...]] = tuple(SYNTH_MODE_ARGS)

# ============================================================================
# Boards
# ============================================================================

BOARD_CONFIG: Final[dict[str, dict[str, str]]] = {
    "ice40-mdp": {
        "device": "up5k",
        "package": "uwg30",
        "pcf": "boards/lattice/ice40-mdp/io_mdp_u3.pcf",
    },
    "icebreaker": {
        "device": "up5k",
        "package": "sg48",
        "pcf": "boards/1bitsquared/icebreaker/icebreaker.pcf",
    },
}

# ============================================================================
# Tools
# ============================================================================

# Environment variable that overrides each tool executable
TOOL_ENV_VARS: Final[dict[str, str]] = {
    "yosys": "YOSYS",
    "nextpnr": "NEXTPNR",
    "icetime": "ICETIME",
    "icepack": "ICEPACK",
    "iceprog": "ICEPROG",
    "verilator": "VERILATOR",
    "gtkwave": "GTKWAVE",
}

# Names accepted as VAR=VALUE assignments
OVERRIDABLE_VARS: Final[tuple[str, ...]] = ("PROJ_NAME", "MODE", "BOARD")


@dataclass(frozen=True)
class BoardConfig:
    """Target device and pin constraints for one board."""

    name: str
    device: str  # iCE40 device (e.g., "up5k")
    package: str  # Package code (e.g., "uwg30")
    pcf: Path  # Pin-constraint file, relative to the design root

    @classmethod
    def named(cls, name: str) -> "BoardConfig":
        """Look up a board in ``BOARD_CONFIG``."""
        if name not in BOARD_CONFIG:
            raise ConfigError(
                f"Unknown board '{name}'. Available: {', '.join(BOARD_CONFIG)}"
            )
        entry = BOARD_CONFIG[name]
        return cls(
            name=name,
            device=entry["device"],
            package=entry["package"],
            pcf=Path(entry["pcf"]),
        )


@dataclass(frozen=True)
class ToolPaths:
    """Executables for each external tool."""

    yosys: str = "yosys"
    nextpnr: str = "nextpnr-ice40"
    icetime: str = "icetime"
    icepack: str = "icepack"
    iceprog: str = "iceprog"
    verilator: str = "verilator"
    gtkwave: str = "gtkwave"

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "ToolPaths":
        """Build tool paths, taking overrides from ``TOOL_ENV_VARS``."""
        overrides = {
            tool: environ[var] for tool, var in TOOL_ENV_VARS.items() if var in environ
        }
        return cls(**overrides)


@dataclass(frozen=True)
class BuildConfig:
    """Immutable inputs for a single pipeline invocation."""

    root: Path = Path(".")
    proj_name: str = DEFAULT_PROJ_NAME
    mode: str = DEFAULT_MODE
    board: BoardConfig = field(default_factory=lambda: BoardConfig.named(DEFAULT_BOARD))
    tools: ToolPaths = field(default_factory=ToolPaths)
    build_dir_name: str = BUILD_DIR_NAME
    sim_dir_name: str = SIM_DIR_NAME

    def __post_init__(self) -> None:
        if self.mode not in SYNTH_MODE_ARGS:
            raise ConfigError(
                f"Invalid MODE '{self.mode}'. Must be one of: {', '.join(MODES)}"
            )
        if not self.proj_name or os.sep in self.proj_name or "/" in self.proj_name:
            raise ConfigError(f"Invalid PROJ_NAME '{self.proj_name}'")

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, root: Path = Path(".")
    ) -> "BuildConfig":
        """Create a configuration from defaults and environment variables."""
        if environ is None:
            environ = os.environ
        return cls(
            root=root,
            proj_name=environ.get("PROJ_NAME", DEFAULT_PROJ_NAME),
            mode=environ.get("MODE", DEFAULT_MODE),
            board=BoardConfig.named(environ.get("BOARD", DEFAULT_BOARD)),
            tools=ToolPaths.from_env(environ),
        )

    def with_overrides(self, assignments: Mapping[str, str]) -> "BuildConfig":
        """Return a copy with ``PROJ_NAME``/``MODE``/``BOARD`` replaced."""
        changes: dict = {}
        for var, value in assignments.items():
            if var == "PROJ_NAME":
                changes["proj_name"] = value
            elif var == "MODE":
                changes["mode"] = value
            elif var == "BOARD":
                changes["board"] = BoardConfig.named(value)
            else:
                raise ConfigError(
                    f"Unknown variable '{var}'. "
                    f"Recognized: {', '.join(OVERRIDABLE_VARS)}"
                )
        return replace(self, **changes)

    # ------------------------------------------------------------------
    # Mode
    # ------------------------------------------------------------------

    @property
    def synth_args(self) -> tuple[str, ...]:
        """Extra synthesis arguments for the current mode."""
        return SYNTH_MODE_ARGS[self.mode]

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    @property
    def src_dir(self) -> Path:
        return self.root / self.proj_name

    @property
    def build_dir(self) -> Path:
        return self.root / self.build_dir_name

    @property
    def sim_dir(self) -> Path:
        return self.root / self.sim_dir_name

    @property
    def sim_obj_dir(self) -> Path:
        return self.sim_dir / "obj_dir"

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    @property
    def top_source(self) -> Path:
        return self.src_dir / f"{SYNTH_TOP_MODULE}.v"

    @property
    def sim_source(self) -> Path:
        return self.src_dir / f"{self.proj_name}.v"

    @property
    def sim_harness(self) -> Path:
        return self.src_dir / f"{self.proj_name}_sim.cpp"

    @property
    def pcf_file(self) -> Path:
        return self.root / self.board.pcf

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    @property
    def netlist(self) -> Path:
        return self.build_dir / f"{self.proj_name}.json"

    @property
    def routed(self) -> Path:
        return self.build_dir / f"{self.proj_name}.asc"

    @property
    def output_bin(self) -> Path:
        return self.build_dir / f"{self.proj_name}.bin"

    @property
    def timing_rpt(self) -> Path:
        return self.build_dir / f"{self.proj_name}_timing.rpt"

    @property
    def util_rpt(self) -> Path:
        return self.build_dir / f"{self.proj_name}_utilization.rpt"

    @property
    def sim_exe_name(self) -> str:
        return f"{self.proj_name}_sim"

    @property
    def sim_exe(self) -> Path:
        return self.sim_dir / self.sim_exe_name

    @property
    def sim_vcd(self) -> Path:
        return self.sim_dir / f"{self.proj_name}.vcd"
