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

"""Dependency-aware stage runner.

Resolution:
- Walk the stage graph backward from the requested targets (depth first,
  in declared input order) to get a topological order.
- Keep a stage if it is phony, its outputs are missing or older than its
  inputs, or any stage it depends on is kept.

Execution:
- Stages run one at a time in plan order; each stage's steps run in order.
- Before a stage starts, freshness is checked again, so a report already
  written as a side effect of an earlier stage is skipped.
- The first failure stops the run. Later stages are never attempted.
- Outputs the failed stage modified are deleted so a truncated file never
  looks up to date on the next run. Outputs of completed stages are kept.
"""

import logging
import shlex
import shutil
import subprocess
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from . import console
from .artifacts import Artifact, is_stale
from .config import BuildConfig
from .errors import (
    ConfigError,
    CycleError,
    MissingExpectedOutput,
    MissingSourceFile,
    PipelineError,
    StageFailed,
    UnknownStage,
)
from .stages import CopyFile, Stage, Step, ToolCommand, define_stages

logger = logging.getLogger(__name__)

# Exit status reported when a tool executable cannot be started
COMMAND_NOT_FOUND_EXIT_CODE = 127

CommandRunner = Callable[..., subprocess.CompletedProcess]


class StageState(Enum):
    """Lifecycle of a stage within one run."""

    PENDING = "pending"
    SKIPPED = "skipped"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class PipelineResult:
    """Outcome of running a list of stages."""

    order: list[str]
    states: dict[str, StageState] = field(default_factory=dict)
    error: PipelineError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def succeeded(self) -> list[str]:
        return self._with_state(StageState.SUCCEEDED)

    @property
    def skipped(self) -> list[str]:
        return self._with_state(StageState.SKIPPED)

    @property
    def failed_stage(self) -> str | None:
        failed = self._with_state(StageState.FAILED)
        return failed[0] if failed else None

    @property
    def not_attempted(self) -> list[str]:
        """Stages left pending because an earlier stage failed."""
        return self._with_state(StageState.PENDING)

    def check(self) -> None:
        """Raise the error that stopped the run, if any."""
        if self.error is not None:
            raise self.error

    def _with_state(self, state: StageState) -> list[str]:
        return [name for name in self.order if self.states.get(name) == state]


class Pipeline:
    """Resolve and run stages for one build configuration."""

    def __init__(
        self,
        config: BuildConfig,
        stages: Mapping[str, Stage] | None = None,
        run_command: CommandRunner = subprocess.run,
        always_make: bool = False,
    ) -> None:
        """Initialize the runner.

        Args:
            config: Configuration the stages were (or will be) defined for.
            stages: Stage graph keyed by name. Defaults to ``define_stages``.
            run_command: ``subprocess.run``-compatible callable used to
                start tools.
            always_make: Treat every stage as out of date.
        """
        self.config = config
        self.stages = dict(stages) if stages is not None else define_stages(config)
        self.run_command = run_command
        self.always_make = always_make
        self._producers = self._index_producers()

    def _index_producers(self) -> dict[Path, Stage]:
        producers: dict[Path, Stage] = {}
        for stage in self.stages.values():
            for output in stage.outputs:
                if output in producers:
                    raise ConfigError(
                        f"{output} is produced by both '{producers[output].name}' "
                        f"and '{stage.name}'"
                    )
                producers[output] = stage
        return producers

    # ------------------------------------------------------------------
    # Graph
    # ------------------------------------------------------------------

    def producer_of(self, path: Path) -> Stage | None:
        """Return the stage whose primary outputs include ``path``."""
        return self._producers.get(path)

    def dependencies(self, stage: Stage) -> list[Stage]:
        """Stages producing this stage's inputs, in input order."""
        deps: list[Stage] = []
        for path in stage.inputs:
            producer = self.producer_of(path)
            if producer is not None and producer not in deps:
                deps.append(producer)
        return deps

    def topological_order(self, targets: Iterable[str]) -> list[Stage]:
        """Return the targets and all their ancestors, dependencies first."""
        order: list[Stage] = []
        done: set[str] = set()
        active: list[str] = []

        def visit(stage: Stage) -> None:
            if stage.name in done:
                return
            if stage.name in active:
                cycle = active[active.index(stage.name) :] + [stage.name]
                raise CycleError(cycle)
            active.append(stage.name)
            for dep in self.dependencies(stage):
                visit(dep)
            active.pop()
            done.add(stage.name)
            order.append(stage)

        for name in targets:
            if name not in self.stages:
                raise UnknownStage(name, list(self.stages))
            visit(self.stages[name])
        return order

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def is_stale(self, stage: Stage) -> bool:
        """True if the stage must run based on its own inputs and outputs."""
        if self.always_make or stage.phony:
            return True
        return is_stale(stage.outputs, stage.inputs)

    def _check_sources(self, stage: Stage) -> None:
        for path in stage.inputs:
            if self.producer_of(path) is None and not path.is_file():
                raise MissingSourceFile(path, stage.name)

    def resolve(self, *targets: str) -> list[Stage]:
        """Compute the ordered stages needed to bring ``targets`` up to date.

        Raises:
            UnknownStage: A target is not a stage name.
            CycleError: The graph reachable from the targets has a cycle.
            MissingSourceFile: A source input is absent.
        """
        plan: list[Stage] = []
        kept: set[str] = set()
        for stage in self.topological_order(targets):
            self._check_sources(stage)
            if any(dep.name in kept for dep in self.dependencies(stage)):
                reason = "dependency rebuilt"
            elif self.is_stale(stage):
                reason = "out of date"
            else:
                logger.debug("%s: up to date", stage.name)
                continue
            logger.debug("%s: %s", stage.name, reason)
            kept.add(stage.name)
            plan.append(stage)
        return plan

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(self, stages: Iterable[Stage]) -> PipelineResult:
        """Run stages in order, stopping at the first failure.

        Errors from stages are recorded in the result rather than raised;
        ``KeyboardInterrupt`` propagates after the interrupted stage's
        partial outputs are removed.
        """
        stages = list(stages)
        result = PipelineResult(
            order=[s.name for s in stages],
            states={s.name: StageState.PENDING for s in stages},
        )

        for stage in stages:
            if not self.always_make and not stage.phony and not self.is_stale(stage):
                logger.debug("%s: satisfied by an earlier stage", stage.name)
                result.states[stage.name] = StageState.SKIPPED
                continue

            result.states[stage.name] = StageState.RUNNING
            before = {p: Artifact(p).mtime_ns for p in stage.expected_outputs}
            try:
                self._run_stage(stage)
            except PipelineError as e:
                self._delete_touched_outputs(before)
                result.states[stage.name] = StageState.FAILED
                result.error = e
                break
            except KeyboardInterrupt:
                self._delete_touched_outputs(before)
                result.states[stage.name] = StageState.FAILED
                raise
            result.states[stage.name] = StageState.SUCCEEDED

        return result

    def build(self, *targets: str) -> PipelineResult:
        """Resolve ``targets`` and run the resulting plan."""
        return self.run(self.resolve(*targets))

    def _run_stage(self, stage: Stage) -> None:
        for path in stage.inputs:
            if not path.is_file():
                raise MissingSourceFile(path, stage.name)

        for directory in stage.output_dirs:
            directory.mkdir(parents=True, exist_ok=True)

        for step in stage.steps:
            self._run_step(stage, step)

        for path in stage.expected_outputs:
            if not path.is_file():
                raise MissingExpectedOutput(stage.name, path)

    def _run_step(self, stage: Stage, step: Step) -> None:
        if isinstance(step, CopyFile):
            if not step.source.is_file():
                raise MissingExpectedOutput(stage.name, step.source)
            logger.debug("copying %s -> %s", step.source, step.destination)
            shutil.copy(step.source, step.destination)
            return

        console.tagged(step.tag, step.message)
        logger.debug("running: %s", shlex.join(step.argv))
        try:
            if step.stdout_path is not None:
                with open(step.stdout_path, "w") as log:
                    completed = self.run_command(
                        list(step.argv),
                        cwd=step.cwd,
                        stdout=log,
                        stderr=subprocess.STDOUT,
                        check=False,
                    )
            else:
                completed = self.run_command(list(step.argv), cwd=step.cwd, check=False)
        except (FileNotFoundError, PermissionError) as e:
            console.error(f"{step.argv[0]}: {e.strerror or e}")
            raise StageFailed(stage.name, COMMAND_NOT_FOUND_EXIT_CODE) from e

        if completed.returncode != 0:
            raise StageFailed(stage.name, completed.returncode)

    def _delete_touched_outputs(self, before: Mapping[Path, int | None]) -> None:
        for path, mtime in before.items():
            current = Artifact(path).mtime_ns
            if current is not None and current != mtime:
                console.warning(f"Deleting file '{path}'")
                path.unlink()


def format_plan(stages: Iterable[Stage]) -> list[str]:
    """Describe stages and their commands without running them."""
    lines: list[str] = []
    for stage in stages:
        lines.append(f"{stage.name}: {stage.description}")
        for step in stage.steps:
            if isinstance(step, ToolCommand):
                command = shlex.join(step.argv)
                if step.stdout_path is not None:
                    command += f" > {shlex.quote(str(step.stdout_path))} 2>&1"
                if step.cwd is not None:
                    command = f"cd {shlex.quote(str(step.cwd))} && {command}"
            else:
                command = shlex.join(["cp", str(step.source), str(step.destination)])
            lines.append(f"    {command}")
    return lines


def clean(path: Path) -> bool:
    """Remove a directory tree.

    Returns:
        True if something was removed, False if the path did not exist.
    """
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        return True
    if path.exists() or path.is_symlink():
        path.unlink()
        return True
    return False
