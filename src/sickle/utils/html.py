"""HTML escaping for echo output.

Single-pass escaping via ``str.translate()``; values exposing ``__html__``
(such as :class:`Markup`) are trusted and passed through unchanged.
"""

from __future__ import annotations

from typing import Any

_ESCAPE_TABLE = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#39;",
    }
)


class Markup(str):
    """A string that is already safe for HTML output.

    Example:
        >>> html_escape(Markup("<b>bold</b>"))
        '<b>bold</b>'
    """

    __slots__ = ()

    def __html__(self) -> str:
        return str(self)

    def __repr__(self) -> str:
        return f"Markup({super().__repr__()})"


def html_escape(value: Any) -> str:
    """Escape a value for inclusion in HTML.

    ``None`` renders as the empty string.

    Example:
        >>> html_escape("<a href='x'>")
        '&lt;a href=&#39;x&#39;&gt;'
    """
    if value is None:
        return ""
    if hasattr(value, "__html__"):
        return value.__html__()
    return str(value).translate(_ESCAPE_TABLE)
