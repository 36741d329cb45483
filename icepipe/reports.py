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

"""Extract key timing and utilization metrics from icetime and Yosys reports.

Extraction is best effort: a report without the expected markers yields an
empty result, and the printed summary falls back to a placeholder line.
"""

import re
from pathlib import Path
from typing import Any

from . import console

# Markers written by icetime
PATH_DELAY_MARKER = "Total path delay:"
LOGIC_LEVELS_MARKER = "Total number of logic levels:"

# Marker written by Yosys ``stat``; cell lines follow it
CELLS_MARKER = "Number of cells:"
CELL_WINDOW_LINES = 20
MAX_CELL_LINES = 10
CELL_NAME_PATTERN = re.compile(r"(SB_|ICESTORM_)")

TIMING_PLACEHOLDER = "  Timing analysis data available in report file"
LOGIC_LEVELS_PLACEHOLDER = "  Logic level data available in report file"
UTILIZATION_PLACEHOLDER = "  Resource utilization data available in report file"


def read_report(path: Path) -> str:
    """Read a report, returning an empty string if it does not exist."""
    try:
        return path.read_text(errors="replace")
    except FileNotFoundError:
        return ""


def marker_lines(report: str, marker: str) -> list[str]:
    """Return every line containing ``marker``, unmodified."""
    return [line for line in report.splitlines() if marker in line]


def extract_timing_summary(timing_rpt: str) -> dict[str, Any]:
    """Extract critical path delay, max frequency and logic levels."""
    result: dict[str, Any] = {}

    # Format: Total path delay: 7.84 ns (127.55 MHz)
    match = re.search(
        r"Total path delay:\s+([\d.]+)\s*ns(?:\s*\(([\d.]+)\s*MHz\))?", timing_rpt
    )
    if match:
        result["path_delay_ns"] = float(match.group(1))
        if match.group(2):
            result["max_freq_mhz"] = float(match.group(2))

    match = re.search(r"Total number of logic levels:\s+(\d+)", timing_rpt)
    if match:
        result["logic_levels"] = int(match.group(1))

    return result


def utilization_lines(util_rpt: str) -> list[str]:
    """Return the device cell lines following each ``Number of cells:`` marker."""
    lines = util_rpt.splitlines()
    selected: list[str] = []
    seen: set[int] = set()
    for index, line in enumerate(lines):
        if CELLS_MARKER not in line:
            continue
        for offset in range(index, min(index + CELL_WINDOW_LINES + 1, len(lines))):
            if offset in seen:
                continue
            seen.add(offset)
            if CELL_NAME_PATTERN.search(lines[offset]):
                selected.append(lines[offset])
    return selected[:MAX_CELL_LINES]


def extract_utilization(util_rpt: str) -> dict[str, int]:
    """Extract per-cell-type counts (e.g. ``{"SB_LUT4": 22}``).

    Accepts both ``SB_LUT4   22`` and ``22   SB_LUT4`` row layouts, which
    differ between Yosys releases.
    """
    result: dict[str, int] = {}
    for line in utilization_lines(util_rpt):
        match = re.match(r"\s*(\w+)\s+(\d+)\s*$", line) or re.match(
            r"\s*(\d+)\s+(\w+)\s*$", line
        )
        if not match:
            continue
        first, second = match.groups()
        name, count = (second, first) if first.isdigit() else (first, second)
        result[name] = result.get(name, 0) + int(count)
    return result


def print_timing_summary(timing_rpt_path: Path) -> dict[str, Any]:
    """Print the critical path and logic level lines from a timing report."""
    report = read_report(timing_rpt_path)

    console.tagged("REPORT", f"Timing report available at: {timing_rpt_path}")
    console.tagged("REPORT", "Summary:")
    print("  Critical Path Analysis:")
    for line in marker_lines(report, PATH_DELAY_MARKER) or [TIMING_PLACEHOLDER]:
        print(line)
    print("  Logic Levels:")
    for line in marker_lines(report, LOGIC_LEVELS_MARKER) or [
        LOGIC_LEVELS_PLACEHOLDER
    ]:
        print(line)

    return extract_timing_summary(report)


def print_utilization_summary(util_rpt_path: Path) -> dict[str, int]:
    """Print the device cell counts from a utilization report."""
    report = read_report(util_rpt_path)

    console.tagged("REPORT", f"Utilization report available at: {util_rpt_path}")
    console.tagged("REPORT", "Summary:")
    for line in utilization_lines(report) or [UTILIZATION_PLACEHOLDER]:
        print(line)

    return extract_utilization(report)
