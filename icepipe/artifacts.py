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

"""File artifacts and timestamp-based freshness checks.

Freshness follows incremental build tools: a set of outputs is up to date
when every output exists and no input is strictly newer than the oldest
output. Equal timestamps count as up to date. Timestamps are compared at
nanosecond resolution.
"""

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Artifact:
    """A file on disk and its modification time."""

    path: Path

    @property
    def mtime_ns(self) -> int | None:
        """Last-modified time in nanoseconds, or None if the file is absent."""
        try:
            return self.path.stat().st_mtime_ns
        except FileNotFoundError:
            return None


def is_stale(outputs: Iterable[Path], inputs: Iterable[Path]) -> bool:
    """Return True if any output is missing or older than any input.

    Outputs with no inputs are stale only when missing. An empty output list
    is always stale (phony).
    """
    outputs = list(outputs)
    if not outputs:
        return True

    output_times = [Artifact(p).mtime_ns for p in outputs]
    if any(t is None for t in output_times):
        missing = [str(p) for p, t in zip(outputs, output_times) if t is None]
        logger.debug("missing outputs: %s", ", ".join(missing))
        return True

    oldest_output = min(t for t in output_times if t is not None)
    now_ns = time.time_ns()
    for path in inputs:
        input_time = Artifact(path).mtime_ns
        if input_time is None:
            continue
        if input_time > now_ns:
            logger.warning(
                "File '%s' has modification time in the future (clock skew detected)",
                path,
            )
        if input_time > oldest_output:
            logger.debug("%s is newer than outputs %s", path, outputs)
            return True
    return False
