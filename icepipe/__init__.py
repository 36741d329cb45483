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

"""icepipe - incremental build driver for iCE40 FPGA designs.

Sequences the open-source iCE40 toolchain (Yosys, nextpnr, icetime, icepack,
iceprog) and a Verilator simulation flow for a single design. Stages form an
explicit dependency graph; each stage only reruns when its outputs are older
than its inputs.
"""

from ._version import __version__
from .config import BoardConfig, BuildConfig, ToolPaths
from .errors import (
    ConfigError,
    CycleError,
    MissingExpectedOutput,
    MissingSourceFile,
    PipelineError,
    StageFailed,
    Terminated,
    ToolNotFound,
    UnknownStage,
)
from .pipeline import Pipeline, PipelineResult, StageState, clean

__all__ = [
    "__version__",
    "BoardConfig",
    "BuildConfig",
    "ToolPaths",
    "Pipeline",
    "PipelineResult",
    "StageState",
    "clean",
    "PipelineError",
    "ConfigError",
    "CycleError",
    "MissingExpectedOutput",
    "MissingSourceFile",
    "StageFailed",
    "Terminated",
    "ToolNotFound",
    "UnknownStage",
]
