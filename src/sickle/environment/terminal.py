"""ANSI colouring for error messages.

Colours are used only when stdout is a TTY, unless overridden by the
``NO_COLOR`` (https://no-color.org/) or ``FORCE_COLOR`` environment variables.
"""

from __future__ import annotations

import os
import re
import sys
from typing import Literal

_CODES = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "cyan": "\033[36m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "bright_red": "\033[91m",
}

Style = Literal["reset", "bold", "dim", "cyan", "green", "yellow", "bright_red"]

_ANSI_RE = re.compile(r"\x1B\[[0-?]*[ -/]*[@-~]")


def _detect_colors() -> bool:
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


_USE_COLORS = _detect_colors()


def supports_color() -> bool:
    """Return True when error output will be coloured."""
    return _USE_COLORS


def colorize(text: str, *styles: Style) -> str:
    """Wrap ``text`` in the given ANSI styles (no-op when colours are off)."""
    if not _USE_COLORS or not styles:
        return text
    prefix = "".join(_CODES[style] for style in styles)
    return f"{prefix}{text}{_CODES['reset']}"


def strip_colors(text: str) -> str:
    """Remove ANSI escape sequences from ``text``."""
    return _ANSI_RE.sub("", text)


def location(text: str) -> str:
    """Style a template id or file path."""
    return colorize(text, "cyan")


def hint(text: str) -> str:
    """Style a hint label."""
    return colorize(text, "green")


def dim_text(text: str) -> str:
    """Style secondary text."""
    return colorize(text, "dim")


def line_number(text: str) -> str:
    return colorize(text, "yellow")


def format_error_header(code: str | None, message: str) -> str:
    """Prefix ``message`` with a highlighted error code, if any.

    Example:
        >>> format_error_header("S-TPL-001", "Template 'x' not found")
        'S-TPL-001: Template 'x' not found'   # colours off
    """
    if code:
        return f"{colorize(code, 'bright_red', 'bold')}: {message}"
    return message
