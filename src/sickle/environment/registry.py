"""User directive registry for the sickle environment.

User directives are ``pattern → handler`` pairs applied with ``re.sub``
after every built-in rewrite rule. A handler is either a replacement
string (back-references such as ``\\1`` allowed) or a callable receiving
the ``re.Match`` and returning the replacement.

    ```python
    env.add_directive(r"@datetime\\((.+?)\\)", r"<?= _e((\\1).strftime('%m/%d/%Y %H:%M')) ?>")
    env.directives[r"@hr\\b"] = lambda match: "<hr>"
    ```

"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sickle.environment.core import Environment

DirectiveHandler = str | Callable[[re.Match[str]], str]


def _validate(pattern: str, handler: DirectiveHandler) -> None:
    if not isinstance(pattern, str):
        raise TypeError(f"Directive pattern must be a string, got {type(pattern).__name__}")
    re.compile(pattern)
    if not isinstance(handler, str) and not callable(handler):
        raise TypeError(
            f"Directive handler for {pattern!r} must be a string or callable, "
            f"got {type(handler).__name__}"
        )


class DirectiveRegistry:
    """Dict-like interface for user directives.

    Supports:
        - env.directives[pattern] = handler
        - env.directives.update({pattern: handler})
        - handler = env.directives[pattern]
        - pattern in env.directives

    Directives apply in registration order. All mutations use copy-on-write
    for thread-safety.
    """

    __slots__ = ("_attr", "_env")

    def __init__(self, env: Environment, attr: str = "_directives"):
        self._env = env
        self._attr = attr

    def _get_dict(self) -> dict[str, DirectiveHandler]:
        return getattr(self._env, self._attr)

    def _set_dict(self, d: dict[str, DirectiveHandler]) -> None:
        setattr(self._env, self._attr, d)

    def __getitem__(self, pattern: str) -> DirectiveHandler:
        return self._get_dict()[pattern]

    def __setitem__(self, pattern: str, handler: DirectiveHandler) -> None:
        _validate(pattern, handler)
        new = self._get_dict().copy()
        new[pattern] = handler
        self._set_dict(new)

    def __delitem__(self, pattern: str) -> None:
        new = self._get_dict().copy()
        del new[pattern]
        self._set_dict(new)

    def __contains__(self, pattern: object) -> bool:
        return pattern in self._get_dict()

    def __iter__(self) -> Iterator[str]:
        return iter(self._get_dict())

    def __len__(self) -> int:
        return len(self._get_dict())

    def get(self, pattern: str, default: DirectiveHandler | None = None) -> DirectiveHandler | None:
        return self._get_dict().get(pattern, default)

    def update(self, mapping: dict[str, DirectiveHandler]) -> None:
        """Batch register directives."""
        for pattern, handler in mapping.items():
            _validate(pattern, handler)
        new = self._get_dict().copy()
        new.update(mapping)
        self._set_dict(new)

    def copy(self) -> dict[str, DirectiveHandler]:
        """Return a copy of the underlying dict."""
        return self._get_dict().copy()

    def keys(self):
        return self._get_dict().keys()

    def items(self):
        return self._get_dict().items()

    def apply(self, text: str) -> str:
        """Run every directive over ``text`` in registration order."""
        for pattern, handler in self._get_dict().items():
            text = re.sub(pattern, handler, text)
        return text
