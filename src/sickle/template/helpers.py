"""Runtime helper functions injected into the template namespace.

Compiled templates call these under underscore-prefixed names so user data
cannot shadow them by accident. None of them hold state; the only helper
that mutates anything is :func:`scope`, and it only touches the namespace
it is handed.

Thread-Safety:
All functions are stateless and safe for concurrent use.

"""

from __future__ import annotations

import json
import re
import textwrap
from collections.abc import Callable, Iterator, Mapping, MutableMapping, Sequence
from contextlib import contextmanager
from typing import Any

from sickle.utils.html import Markup, html_escape

# A name, key or attribute that does not exist reads as "not set".
_UNSET_ERRORS = (NameError, LookupError, AttributeError)

_MISSING = object()

_WORD_RE = re.compile(r"\S+")


def to_str(value: Any) -> str:
    """Convert an echoed value to text; ``None`` renders as nothing."""
    if value is None:
        return ""
    return str(value)


def _resolve(getter: Callable[[], Any]) -> Any:
    try:
        return getter()
    except _UNSET_ERRORS:
        return _MISSING


def isset(*getters: Callable[[], Any]) -> bool:
    """True when every getter resolves to a value other than ``None``.

    Getters are zero-argument callables (``lambda: user.email``) so a
    missing name, key or attribute counts as unset instead of raising.
    """
    for getter in getters:
        value = _resolve(getter)
        if value is _MISSING or value is None:
            return False
    return True


def empty(getter: Callable[[], Any]) -> bool:
    """True when the value is unset or falsy."""
    value = _resolve(getter)
    return value is _MISSING or not value


def has(getter: Callable[[], Any]) -> bool:
    """True when the value is set and non-empty."""
    return isset(getter) and not empty(getter)


def as_sequence(getter: Callable[[], Any]) -> Sequence[Any]:
    """Evaluate a loop subject once so it can be tested and then iterated.

    Unset values and ``None`` become empty; iterators and generators are
    materialized.
    """
    value = _resolve(getter)
    if value is _MISSING or value is None:
        return ()
    if isinstance(value, Sequence):
        return value
    return list(value)


def value_or(getter: Callable[[], Any], default: Any) -> Any:
    """Return the getter's value, or ``default`` when it is unset or ``None``."""
    value = _resolve(getter)
    if value is _MISSING or value is None:
        return default
    return value


def to_json(value: Any, **kwargs: Any) -> Markup:
    """Serialize ``value`` as JSON for ``@json``."""
    kwargs.setdefault("default", str)
    return Markup(json.dumps(value, **kwargs))


def lower(value: Any) -> str:
    return to_str(value).lower()


def upper(value: Any) -> str:
    return to_str(value).upper()


def ucfirst(value: Any) -> str:
    """Lower-case the text, then capitalise its first character."""
    text = to_str(value).lower()
    return text[:1].upper() + text[1:]


def ucwords(value: Any) -> str:
    """Lower-case the text, then capitalise the first character of each word.

    Unlike ``str.title()`` this leaves characters after apostrophes alone
    and keeps the original whitespace.
    """
    return _WORD_RE.sub(lambda m: m[0][:1].upper() + m[0][1:], to_str(value).lower())


def sprintf(fmt: Any, *args: Any) -> str:
    """Apply ``%``-formatting, as ``@format``/``@sprintf`` do."""
    if not args:
        return to_str(fmt)
    return to_str(fmt) % args


def wordwrap(value: Any, width: int = 75, separator: str = "\n") -> str:
    """Wrap text at ``width`` characters, joining lines with ``separator``.

    Words longer than ``width`` are never split. Existing line breaks are
    kept.
    """
    lines = []
    for paragraph in to_str(value).split("\n"):
        wrapped = textwrap.wrap(
            paragraph, width=width, break_long_words=False, break_on_hyphens=False
        )
        lines.extend(wrapped or [""])
    return separator.join(lines)


@contextmanager
def scope(namespace: MutableMapping[str, Any], bindings: Mapping[str, Any]) -> Iterator[None]:
    """Temporarily bind ``bindings`` into ``namespace``.

    Used by ``@include(view, {...})``: the included content sees the extra
    names, and the previous values (or their absence) are restored when it
    finishes.
    """
    saved = {key: namespace.get(key, _MISSING) for key in bindings}
    namespace.update(bindings)
    try:
        yield
    finally:
        for key, previous in saved.items():
            if previous is _MISSING:
                namespace.pop(key, None)
            else:
                namespace[key] = previous


# =============================================================================
# Shared Base Namespace
# =============================================================================
# Copied into every execution namespace over the caller's data.
# Read-only after module load.
# =============================================================================

RUNTIME_NAMESPACE: dict[str, Any] = {
    "_e": html_escape,
    "_str": to_str,
    "_isset": isset,
    "_empty": empty,
    "_has": has,
    "_value_or": value_or,
    "_seq": as_sequence,
    "_json": to_json,
    "_lower": lower,
    "_upper": upper,
    "_ucfirst": ucfirst,
    "_ucwords": ucwords,
    "_sprintf": sprintf,
    "_wordwrap": wordwrap,
    "_scope": scope,
    "Markup": Markup,
}
