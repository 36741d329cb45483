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

"""Capability probes for optional tools."""

import logging
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

from . import console
from .config import BuildConfig
from .errors import ToolNotFound

logger = logging.getLogger(__name__)


def find_tool(executable: str) -> str | None:
    """Return the full path of ``executable`` if it is on PATH."""
    return shutil.which(executable)


def require_tool(
    executable: str, which: Callable[[str], str | None] = find_tool
) -> str:
    """Return the full path of ``executable`` or raise ToolNotFound."""
    path = which(executable)
    if path is None:
        raise ToolNotFound(executable)
    return path


def open_waveform(
    config: BuildConfig,
    which: Callable[[str], str | None] = find_tool,
    launch: Callable[..., object] = subprocess.Popen,
) -> bool:
    """Open the simulation trace in the waveform viewer, if installed.

    The viewer is started detached and not waited on. A missing viewer is
    not an error: a warning names the trace file instead.

    Returns:
        True if the viewer was launched.
    """
    vcd: Path = config.sim_vcd
    console.tagged("SIM", "Opening waveform viewer...")

    try:
        viewer = require_tool(config.tools.gtkwave, which)
    except ToolNotFound as e:
        logger.debug("waveform viewer probe failed: %s", e)
        console.warning("GTKWave not found. Please install it to view waveforms.")
        console.info(f"VCD file available at: {vcd}")
        return False

    logger.debug("launching %s %s", viewer, vcd)
    launch(
        [viewer, str(vcd)],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )
    return True
