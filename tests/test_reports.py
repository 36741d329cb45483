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

"""Tests for timing and utilization report extraction."""

from pathlib import Path

import pytest

from conftest import TIMING_REPORT, UTILIZATION_REPORT
from icepipe.reports import (
    LOGIC_LEVELS_PLACEHOLDER,
    TIMING_PLACEHOLDER,
    UTILIZATION_PLACEHOLDER,
    extract_timing_summary,
    extract_utilization,
    marker_lines,
    print_timing_summary,
    print_utilization_summary,
    read_report,
    utilization_lines,
)


class TestTiming:
    def test_extract(self) -> None:
        assert extract_timing_summary(TIMING_REPORT) == {
            "path_delay_ns": 7.84,
            "max_freq_mhz": 127.55,
            "logic_levels": 5,
        }

    def test_delay_without_frequency(self) -> None:
        result = extract_timing_summary("Total path delay: 12.50 ns\n")
        assert result == {"path_delay_ns": 12.5}

    def test_empty_report(self) -> None:
        assert extract_timing_summary("") == {}

    def test_marker_lines_are_verbatim(self) -> None:
        assert marker_lines(TIMING_REPORT, "Total path delay:") == [
            "Total path delay: 7.84 ns (127.55 MHz)"
        ]

    def test_print_summary(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        report = tmp_path / "led_blink_timing.rpt"
        report.write_text(TIMING_REPORT)

        result = print_timing_summary(report)

        out = capsys.readouterr().out
        assert f"[REPORT] Timing report available at: {report}" in out
        assert "  Critical Path Analysis:" in out
        assert "Total path delay: 7.84 ns (127.55 MHz)" in out
        assert "Total number of logic levels: 5" in out
        assert result["max_freq_mhz"] == 127.55

    def test_print_summary_placeholders(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        report = tmp_path / "empty_timing.rpt"
        report.write_text("icetime topological timing analysis report\n")

        assert print_timing_summary(report) == {}

        out = capsys.readouterr().out
        assert TIMING_PLACEHOLDER in out
        assert LOGIC_LEVELS_PLACEHOLDER in out


class TestUtilization:
    def test_lines(self) -> None:
        assert [line.split()[0] for line in utilization_lines(UTILIZATION_REPORT)] == [
            "SB_CARRY",
            "SB_DFF",
            "SB_LUT4",
        ]

    def test_extract(self) -> None:
        assert extract_utilization(UTILIZATION_REPORT) == {
            "SB_CARRY": 23,
            "SB_DFF": 24,
            "SB_LUT4": 6,
        }

    def test_count_first_layout(self) -> None:
        report = "   Number of cells:   30\n        22   SB_LUT4\n         8   SB_DFF\n"
        assert extract_utilization(report) == {"SB_LUT4": 22, "SB_DFF": 8}

    def test_icestorm_cells(self) -> None:
        report = (
            "   Number of cells:   4\n"
            "     ICESTORM_LC      3\n"
            "     ICESTORM_RAM     1\n"
        )
        assert extract_utilization(report) == {"ICESTORM_LC": 3, "ICESTORM_RAM": 1}

    def test_line_limit(self) -> None:
        cells = "".join(f"     SB_CELL{i}   {i}\n" for i in range(15))
        report = f"   Number of cells:   105\n{cells}"
        assert len(utilization_lines(report)) == 10

    def test_window_limit(self) -> None:
        filler = "\n" * 25
        report = f"   Number of cells:   1\n{filler}     SB_LUT4   1\n"
        assert utilization_lines(report) == []

    def test_print_summary_placeholder(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert print_utilization_summary(tmp_path / "missing.rpt") == {}
        assert UTILIZATION_PLACEHOLDER in capsys.readouterr().out


def test_read_missing_report(tmp_path: Path) -> None:
    assert read_report(tmp_path / "absent.rpt") == ""
