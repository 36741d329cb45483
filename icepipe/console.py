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

"""Tagged, colored progress output for the terminal."""

import logging
import os
import sys

GREEN = "\033[0;32m"
YELLOW = "\033[1;33m"
RED = "\033[0;31m"
NC = "\033[0m"

# Color for each progress tag
TAG_COLORS = {
    "BUILD": GREEN,
    "REPORT": GREEN,
    "SIM": GREEN,
    "FLASH": GREEN,
    "CLEAN": RED,
    "INFO": YELLOW,
    "WARNING": YELLOW,
    "REPORTS": YELLOW,
}


def use_color(stream=None) -> bool:
    """Return True if ANSI colors should be written to ``stream``."""
    stream = stream or sys.stdout
    if os.environ.get("NO_COLOR"):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


def colorize(text: str, color: str) -> str:
    """Wrap text in an ANSI color if the terminal supports it."""
    if not use_color():
        return text
    return f"{color}{text}{NC}"


def tagged(tag: str, message: str) -> None:
    """Print a message prefixed with a colored ``[TAG]``."""
    color = TAG_COLORS.get(tag, YELLOW)
    print(f"{colorize(f'[{tag}]', color)} {message}", flush=True)


def info(message: str) -> None:
    tagged("INFO", message)


def warning(message: str) -> None:
    tagged("WARNING", message)


def error(message: str) -> None:
    """Print an error to stderr."""
    print(f"Error: {message}", file=sys.stderr, flush=True)


def setup_logging(verbose: bool = False) -> None:
    """Route diagnostic ``icepipe`` log records to stderr."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger = logging.getLogger("icepipe")
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
