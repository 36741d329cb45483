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

"""Tests for optional tool probes and the waveform viewer launch."""

from pathlib import Path
from typing import Any

import pytest

from icepipe.config import BuildConfig
from icepipe.errors import ToolNotFound
from icepipe.tools import open_waveform, require_tool


def test_require_tool_found() -> None:
    assert require_tool("gtkwave", which=lambda _: "/usr/bin/gtkwave") == (
        "/usr/bin/gtkwave"
    )


def test_require_tool_missing() -> None:
    with pytest.raises(ToolNotFound, match="gtkwave"):
        require_tool("gtkwave", which=lambda _: None)


def test_open_waveform_launches_viewer() -> None:
    config = BuildConfig(root=Path("d"))
    launched: list[tuple[list[str], dict[str, Any]]] = []

    opened = open_waveform(
        config,
        which=lambda _: "/usr/bin/gtkwave",
        launch=lambda argv, **kwargs: launched.append((argv, kwargs)),
    )

    assert opened
    argv, kwargs = launched[0]
    assert argv == ["/usr/bin/gtkwave", "d/sim/led_blink.vcd"]
    assert kwargs["start_new_session"]


def test_open_waveform_without_viewer(capsys: pytest.CaptureFixture[str]) -> None:
    config = BuildConfig(root=Path("d"))

    def launch(*args: Any, **kwargs: Any) -> None:
        raise AssertionError("viewer should not be launched")

    assert not open_waveform(config, which=lambda _: None, launch=launch)

    out = capsys.readouterr().out
    assert "GTKWave not found" in out
    assert "VCD file available at: d/sim/led_blink.vcd" in out
