"""Expression-boundary scanning for directive arguments.

Directive arguments are arbitrary Python expressions, so a regular
expression cannot tell where ``@if(`` ends. The scanner counts bracket
depth over ``()``, ``[]`` and ``{}`` while skipping quoted strings (with
backslash escapes), which is enough to find the closing parenthesis of
``@if(len(items) > 2 and ")" not in title)`` and to split arguments or
find keywords at the top level only.

    >>> find_closing('@if(f(a, b)) x', 3)
    11
    >>> split_arguments("'view', {'a': 1, 'b': 2}")
    ["'view'", "{'a': 1, 'b': 2}"]
    >>> partition_keyword("groups[' as '] as group", "as")
    ("groups[' as ']", 'group')

"""

from __future__ import annotations

import ast
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Literal

_OPENING = {"(": ")", "[": "]", "{": "}"}
_CLOSING = frozenset(_OPENING.values())
_QUOTES = frozenset("'\"")
_PAREN_AHEAD = re.compile(r"[ \t]*\(")

# How a directive takes arguments:
#   required  -- ``@if (x)``: whitespace allowed before "(", no match without one
#   optional  -- ``@break`` or ``@break(2)``: "(" must follow immediately
#   bare      -- ``@empty``: never followed by "(" (``@empty(x)`` is not a match)
#   none      -- ``@endif``: arguments are never read
Arity = Literal["required", "optional", "bare", "none"]


@dataclass(frozen=True, slots=True)
class DirectiveMatch:
    """One ``@name`` or ``@name(args)`` occurrence in template text.

    ``start``/``end`` delimit the exact source span including the argument
    list; ``args`` is the text between the parentheses (``None`` when the
    directive was used without them).
    """

    name: str
    start: int
    end: int
    args: str | None = None


def _iter_code(text: str, start: int = 0) -> Iterator[tuple[int, str]]:
    """Yield ``(index, char)`` for characters outside string literals."""
    quote = None
    index = start
    length = len(text)
    while index < length:
        char = text[index]
        if quote is not None:
            if char == "\\":
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in _QUOTES:
            quote = char
        else:
            yield index, char
        index += 1


def find_closing(text: str, open_index: int) -> int | None:
    """Return the index of the bracket closing ``text[open_index]``.

    Returns ``None`` if the brackets never balance or close out of order.
    """
    expected: list[str] = []
    for index, char in _iter_code(text, open_index):
        if char in _OPENING:
            expected.append(_OPENING[char])
        elif char in _CLOSING:
            if not expected or expected.pop() != char:
                return None
            if not expected:
                return index
    return None


def _top_level(text: str) -> list[bool]:
    """Flag each character that sits outside strings and brackets."""
    flags = [False] * len(text)
    depth = 0
    for index, char in _iter_code(text):
        if char in _OPENING:
            depth += 1
        elif char in _CLOSING:
            depth = max(depth - 1, 0)
        elif depth == 0:
            flags[index] = True
    return flags


def split_arguments(args: str, maxsplit: int = -1) -> list[str]:
    """Split an argument list on top-level commas.

    Each part is stripped; an empty argument list gives ``[]``.
    """
    if not args.strip():
        return []
    flags = _top_level(args)
    parts: list[str] = []
    begin = 0
    for index, char in enumerate(args):
        if char == "," and flags[index] and maxsplit != len(parts):
            parts.append(args[begin:index].strip())
            begin = index + 1
    parts.append(args[begin:].strip())
    return parts


def partition_keyword(
    expression: str, keyword: str, *, last: bool = True
) -> tuple[str, str] | None:
    """Split ``expression`` around a whitespace-delimited top-level keyword.

    Uses the last occurrence by default (``last=False`` for the first).
    Returns ``None`` when the keyword does not occur at the top level.
    """
    flags = _top_level(expression)
    found = None
    for match in re.finditer(rf"\s+{re.escape(keyword)}\s+", expression):
        if all(flags[match.start() : match.end()]):
            found = match
            if not last:
                break
    if found is None:
        return None
    return expression[: found.start()].strip(), expression[found.end() :].strip()


def _is_word(char: str) -> bool:
    return char.isalnum() or char == "_"


def at_boundary(text: str, start: int) -> bool:
    """True if the ``@`` at ``start`` may begin a directive.

    A directive may directly follow another one (``@endif@endforeach``) but
    not a plain word (``user@example.com``) or another ``@`` (``@@if``).
    """
    while start > 0:
        before = text[start - 1]
        if before == "@":
            return False
        if not _is_word(before):
            return True
        index = start - 1
        while index > 0 and _is_word(text[index - 1]):
            index -= 1
        if index == 0 or text[index - 1] != "@":
            return False
        start = index - 1
    return True


def directive_pattern(names: Iterable[str]) -> re.Pattern[str]:
    """Compile a pattern matching ``@name`` for any of ``names``.

    Matches must still pass :func:`at_boundary`.
    """
    alternatives = "|".join(
        re.escape(name) for name in sorted(names, key=len, reverse=True)
    )
    return re.compile(rf"(?<!@)@({alternatives})\b")


def iter_directives(
    text: str,
    arities: Mapping[str, Arity],
    *,
    pattern: re.Pattern[str] | None = None,
) -> Iterator[DirectiveMatch]:
    """Yield directive occurrences in ``text``, in source order.

    Occurrences whose argument parentheses do not balance, and required
    argument directives written without any, are skipped and stay literal.
    Scanning resumes after each yielded span, so arguments are never
    searched for further directives.
    """
    if pattern is None:
        pattern = directive_pattern(arities)
    position = 0
    while True:
        match = pattern.search(text, position)
        if match is None:
            return
        if not at_boundary(text, match.start()):
            position = match.start() + 1
            continue
        name = match[1]
        arity = arities[name]
        end = match.end()
        position = end

        if arity == "none":
            yield DirectiveMatch(name, match.start(), end)
            continue

        paren = end
        if arity == "required":
            while paren < len(text) and text[paren] in " \t":
                paren += 1
        elif arity == "bare":
            if not _PAREN_AHEAD.match(text, end):
                yield DirectiveMatch(name, match.start(), end)
            continue

        if paren < len(text) and text[paren] == "(":
            closing = find_closing(text, paren)
            if closing is None:
                continue
            position = closing + 1
            yield DirectiveMatch(name, match.start(), position, text[paren + 1 : closing])
        elif arity == "optional":
            yield DirectiveMatch(name, match.start(), end)


def replace_spans(text: str, replacements: list[tuple[int, int, str]]) -> str:
    """Replace non-overlapping ``(start, end, new)`` spans of ``text``."""
    pieces: list[str] = []
    position = 0
    for start, end, new in sorted(replacements):
        pieces.append(text[position:start])
        pieces.append(new)
        position = end
    pieces.append(text[position:])
    return "".join(pieces)


def string_literal(expression: str) -> str | None:
    """Return the value of a Python string literal, else ``None``."""
    try:
        value = ast.literal_eval(expression.strip())
    except (ValueError, SyntaxError):
        return None
    return value if isinstance(value, str) else None
