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

"""Command-line entry point for building, simulating and programming a design."""

import argparse
import signal
import subprocess
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path

from . import console, reports
from ._version import __version__
from .config import BOARD_CONFIG, MODES, BuildConfig
from .errors import ConfigError, PipelineError, Terminated
from .pipeline import CommandRunner, Pipeline, PipelineResult, clean, format_plan
from .tools import open_waveform

INTERRUPTED_EXIT_CODE = 130
TERMINATED_EXIT_CODE = 128 + int(signal.SIGTERM)

# Command name -> help line, in display order
COMMANDS = {
    "help": "Show this help message",
    "info": "Display build configuration",
    "build": "Build the project (synthesis, place & route, bitstream)",
    "sim": "Run Verilator simulation",
    "sim_wave": "Run simulation and open waveform viewer",
    "reports": "Generate timing and utilization reports",
    "timing_report": "Generate timing analysis report",
    "util_report": "Generate resource utilization report",
    "prog": "Program bitstream to SRAM (volatile)",
    "prog_flash": "Flash bitstream to device (persistent)",
    "clean": "Remove build directory",
    "sim_clean": "Remove simulation directory",
    "all": "Run info, build, and prog targets",
}

# Command name -> stages it brings up to date
COMMAND_STAGES = {
    "build": ["bitstream"],
    "sim": ["sim"],
    "sim_wave": ["sim_trace"],
    "reports": ["timing_report", "util_report"],
    "timing_report": ["timing_report"],
    "util_report": ["util_report"],
    "prog": ["prog"],
    "prog_flash": ["prog_flash"],
    "all": ["bitstream", "prog"],
}


def build_parser() -> argparse.ArgumentParser:
    command_lines = "\n".join(f"  {name:<14} - {text}" for name, text in COMMANDS.items())
    parser = argparse.ArgumentParser(
        prog="icepipe",
        description="Incremental build driver for iCE40 FPGA designs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Commands:
{command_lines}

Variables (environment, or VAR=VALUE after the command):
  PROJ_NAME      - Project name (default: led_blink)
  MODE           - Build mode: release or debug (default: release)
  BOARD          - Target board: {", ".join(BOARD_CONFIG)} (default: ice40-mdp)

Examples:
  icepipe build PROJ_NAME=my_project
  icepipe all MODE=debug
  icepipe build --proj-name uart_test --mode debug
  icepipe reports PROJ_NAME=my_project
  icepipe sim PROJ_NAME=led_blink
  icepipe sim_wave PROJ_NAME=led_blink
  icepipe -n build                    # Show what would run
  icepipe build -B MODE=debug         # Rebuild everything in debug mode
""",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="help",
        choices=list(COMMANDS),
        metavar="COMMAND",
        help="Command to run (default: help)",
    )
    parser.add_argument(
        "assignments",
        nargs="*",
        metavar="VAR=VALUE",
        help="Override PROJ_NAME, MODE or BOARD",
    )
    parser.add_argument(
        "-C",
        "--directory",
        type=Path,
        default=Path("."),
        help="Design root containing project sources and boards/ (default: .)",
    )
    parser.add_argument("--proj-name", help="Project name (overrides PROJ_NAME)")
    parser.add_argument("--mode", choices=MODES, help="Build mode (overrides MODE)")
    parser.add_argument(
        "--board", choices=list(BOARD_CONFIG), help="Target board (overrides BOARD)"
    )
    parser.add_argument(
        "-B",
        "--always-make",
        action="store_true",
        help="Rebuild every stage regardless of timestamps",
    )
    parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Print the stages and commands that would run, without running them",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log commands and freshness decisions"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def parse_assignments(assignments: list[str]) -> dict[str, str]:
    """Parse ``VAR=VALUE`` tokens."""
    parsed: dict[str, str] = {}
    for token in assignments:
        var, sep, value = token.partition("=")
        if not sep or not var:
            raise ConfigError(f"Expected VAR=VALUE, got '{token}'")
        parsed[var] = value
    return parsed


def make_config(
    args: argparse.Namespace, environ: Mapping[str, str] | None = None
) -> BuildConfig:
    """Combine environment, options and assignments into one configuration."""
    config = BuildConfig.from_env(environ, root=args.directory)

    options: dict[str, str] = {}
    if args.proj_name:
        options["PROJ_NAME"] = args.proj_name
    if args.mode:
        options["MODE"] = args.mode
    if args.board:
        options["BOARD"] = args.board
    options.update(parse_assignments(args.assignments))

    return config.with_overrides(options)


def print_info(config: BuildConfig) -> None:
    """Display the build configuration."""
    console.info(f"Project name: {config.proj_name}")
    console.info(f"Build mode: {config.mode}")
    console.info(
        f"Board: {config.board.name} ({config.board.device}, {config.board.package})"
    )
    console.info(f"Output binary: {config.output_bin}")
    console.info(f"Timing report: {config.timing_rpt}")
    console.info(f"Utilization report: {config.util_rpt}")
    console.info(f"Simulation executable: {config.sim_exe}")
    console.info(f"Simulation VCD: {config.sim_vcd}")


def report_failure(result: PipelineResult) -> None:
    """Print the error that stopped the run and what was left undone."""
    console.error(str(result.error))
    if result.not_attempted:
        console.error(f"Not attempted: {', '.join(result.not_attempted)}")


def run(
    command: str,
    config: BuildConfig,
    run_command: CommandRunner = subprocess.run,
    always_make: bool = False,
    dry_run: bool = False,
) -> int:
    """Run one command and return the process exit status."""
    if command == "info":
        print_info(config)
        return 0
    if command == "clean":
        console.tagged("CLEAN", "Removing build directory...")
        clean(config.build_dir)
        return 0
    if command == "sim_clean":
        console.tagged("CLEAN", "Removing simulation directory...")
        clean(config.sim_dir)
        return 0
    if command == "all":
        print_info(config)

    pipeline = Pipeline(config, run_command=run_command, always_make=always_make)
    plan = pipeline.resolve(*COMMAND_STAGES[command])

    if dry_run:
        for line in format_plan(plan):
            print(line)
        return 0

    result = pipeline.run(plan)
    if not result.ok:
        report_failure(result)
        return result.error.exit_code
    if not result.succeeded:
        console.info(f"Nothing to be done for '{command}'")

    if command in ("timing_report", "reports"):
        reports.print_timing_summary(config.timing_rpt)
    if command in ("util_report", "reports"):
        reports.print_utilization_summary(config.util_rpt)
    if command == "reports":
        console.tagged("REPORTS", "All reports generated successfully!")
    if command == "sim_wave":
        open_waveform(config)
    return 0


def _raise_terminated(signum: int, frame) -> None:
    """SIGTERM handler: unwind like Ctrl+C so running tools are killed."""
    raise Terminated(signum)


@contextmanager
def terminate_as_interrupt() -> Iterator[None]:
    """Raise ``Terminated`` on SIGTERM while the block runs.

    ``subprocess.run`` kills its child when an exception interrupts the wait,
    and the pipeline removes the partial outputs of the interrupted stage.
    Handlers can only be installed from the main thread; elsewhere the block
    runs with the existing handler.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = signal.signal(signal.SIGTERM, _raise_terminated)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, signal.SIG_DFL if previous is None else previous)


def main(
    argv: list[str] | None = None,
    environ: Mapping[str, str] | None = None,
    run_command: CommandRunner = subprocess.run,
) -> int:
    """Parse arguments, run the command and return the exit status."""
    parser = build_parser()
    # Options may follow the command, as in ``icepipe build -B MODE=debug``
    args = parser.parse_intermixed_args(argv)
    console.setup_logging(args.verbose)

    if args.command == "help":
        parser.print_help()
        return 0

    try:
        with terminate_as_interrupt():
            config = make_config(args, environ)
            return run(
                args.command,
                config,
                run_command=run_command,
                always_make=args.always_make,
                dry_run=args.dry_run,
            )
    except PipelineError as e:
        console.error(str(e))
        return e.exit_code
    except Terminated:
        print("\nTerminated!", file=sys.stderr)
        return TERMINATED_EXIT_CODE
    except KeyboardInterrupt:
        print("\nInterrupted!", file=sys.stderr)
        return INTERRUPTED_EXIT_CODE


if __name__ == "__main__":
    sys.exit(main())
