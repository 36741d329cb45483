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

"""Exceptions raised while resolving and running the build pipeline."""

from pathlib import Path

# Exit status used for errors that do not come from a failing tool
USAGE_EXIT_CODE = 2


class PipelineError(Exception):
    """Base class for all pipeline errors."""

    exit_code: int = USAGE_EXIT_CODE


class ConfigError(PipelineError):
    """Invalid build configuration (unknown mode, board, or override)."""


class UnknownStage(PipelineError):
    """A requested target does not name a known stage."""

    def __init__(self, name: str, known: list[str]) -> None:
        self.name = name
        self.known = known
        super().__init__(
            f"Unknown stage '{name}'. Available: {', '.join(sorted(known))}"
        )


class MissingSourceFile(PipelineError):
    """A declared input is absent and no stage produces it."""

    def __init__(self, path: Path, stage_name: str) -> None:
        self.path = path
        self.stage_name = stage_name
        super().__init__(f"No rule to make '{path}', needed by stage '{stage_name}'")


class StageFailed(PipelineError):
    """An external tool exited with a non-zero status."""

    def __init__(self, stage_name: str, exit_code: int) -> None:
        self.stage_name = stage_name
        # Negative return codes mean the tool was killed by a signal
        self.exit_code = exit_code if exit_code > 0 else 128 - exit_code
        self.returncode = exit_code
        super().__init__(f"Stage '{stage_name}' failed with exit code {exit_code}")


class MissingExpectedOutput(PipelineError):
    """A tool succeeded but did not write one of the stage's declared outputs."""

    def __init__(self, stage_name: str, path: Path) -> None:
        self.stage_name = stage_name
        self.path = path
        super().__init__(f"Stage '{stage_name}' did not produce expected output {path}")


class CycleError(PipelineError):
    """The stage graph contains a dependency cycle."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(f"Dependency cycle: {' -> '.join(cycle)}")


class Terminated(KeyboardInterrupt):
    """The process received SIGTERM.

    Derives from ``KeyboardInterrupt`` so a termination request takes the same
    cleanup path as Ctrl+C: the running tool is killed and the partial
    outputs of the current stage are removed.
    """

    def __init__(self, signum: int) -> None:
        self.signum = signum
        super().__init__(signum)


class ToolNotFound(PipelineError):
    """An optional tool is not installed on this host."""

    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(f"{tool} not found on PATH")
