"""Directive rewrite table — template text to code-tagged text.

:func:`rewrite` runs every rule of :data:`RULES` over the text, in order.
Each rule is a pure ``str -> str`` transformation; no I/O happens here.

Rule order:
1. ``comments``      ``{{-- ... --}}`` is dropped
2. ``echo-escape``   ``@{{ x }}`` prints a literal ``{{ x }}``
3. ``echo-default``  ``{{ a or b }}``
4. ``echo``          ``{{ x }}``
5. ``raw-echo``      ``{!! x !!}``
6. ``mutators``      ``@json``, ``@lower``, ``@upper``, ``@ucfirst``,
                     ``@ucwords``, ``@format``, ``@sprintf``, ``@wrap``
7. ``assignment``    ``@set``, ``@unset``
8. ``forelse``       ``@forelse ... @empty ... @endforelse``
9. ``conditionals``  ``@isset``, ``@has``, ``@unless``, ``@empty(x)``
10. ``switch``       ``@switch``, ``@case``, ``@default``, ``@break``, ``@continue``
11. ``foreach``      ``@foreach ... @endforeach``
12. ``control``      ``@if``, ``@for``, ``@while`` families
13. ``php``          ``@php ... @endphp``, ``@php(statement)``

Comments must go before any echo rule so commented-out echoes vanish;
``@forelse`` must claim its bare ``@empty`` before the conditional
``@empty(x)`` is rewritten.

Example:
        >>> rewrite("@if(user){{ user.name }}@endif")
        '<?py if (user): ?><?= _e(user.name) ?><?py endif ?>'

Malformed directives are left as they are; they surface as a
:class:`~sickle.environment.exceptions.TemplateSyntaxError` once the
executor rejects the compiled form.

"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Protocol

from sickle.compiler.scanner import (
    Arity,
    directive_pattern,
    iter_directives,
    partition_keyword,
    replace_spans,
    split_arguments,
    string_literal,
)

# Handler for a single directive: receives the argument text (None when the
# directive had no parentheses) and returns the replacement, or None to keep
# the directive as literal text.
Handler = Callable[[str | None], str | None]

FOREACH_OPEN = (
    "<?py with loop.iterate({items}) as _loop_items: ?>"
    "<?py for {target} in _loop_items: ?>"
)
FOREACH_CLOSE = "<?py endfor ?><?py endwith ?>"

ENDIF = "<?py endif ?>"

# Prints "{{" through an echo tag so the result never matches an echo rule.
ESCAPED_ECHO_OPEN = "<?= '\\x7b\\x7b' ?>"

ECHO_PATTERN = re.compile(r"\{\{\s*(.+?)\s*\}\}", re.DOTALL)


class Rule(Protocol):
    """One step of the rewrite table."""

    name: str

    def apply(self, text: str) -> str: ...


class PatternRule:
    """A regular-expression substitution."""

    __slots__ = ("name", "_pattern", "_replacement")

    def __init__(
        self,
        name: str,
        pattern: re.Pattern[str],
        replacement: str | Callable[[re.Match[str]], str],
    ):
        self.name = name
        self._pattern = pattern
        self._replacement = replacement

    def apply(self, text: str) -> str:
        return self._pattern.sub(self._replacement, text)

    def __repr__(self) -> str:
        return f"<PatternRule {self.name!r}>"


class DirectiveRule:
    """Rewrite a family of ``@directives`` located with the scanner."""

    __slots__ = ("name", "_arities", "_handlers", "_pattern")

    def __init__(self, name: str, directives: Mapping[str, tuple[Arity, Handler]]):
        self.name = name
        self._arities = {key: arity for key, (arity, _) in directives.items()}
        self._handlers = {key: handler for key, (_, handler) in directives.items()}
        self._pattern = directive_pattern(directives)

    @property
    def directives(self) -> frozenset[str]:
        return frozenset(self._handlers)

    def apply(self, text: str) -> str:
        replacements = []
        for match in iter_directives(text, self._arities, pattern=self._pattern):
            new = self._handlers[match.name](match.args)
            if new is not None:
                replacements.append((match.start, match.end, new))
        return replace_spans(text, replacements)

    def __repr__(self) -> str:
        return f"<DirectiveRule {self.name!r}>"


class ForelseRule:
    """Rewrite ``@forelse(items as x) ... @empty ... @endforelse``.

    Pairs are matched by nesting, so forelse blocks may contain other
    forelse blocks. The first bare ``@empty`` at a block's own level splits
    it into loop body and empty branch; without one the block is a plain
    guarded loop. The subject is evaluated once, so an exhausted generator
    takes the empty branch.
    """

    __slots__ = ("name", "_arities")

    def __init__(self, name: str = "forelse"):
        self.name = name
        self._arities: dict[str, Arity] = {
            "forelse": "required",
            "empty": "bare",
            "endforelse": "none",
        }

    def apply(self, text: str) -> str:
        replacements: list[tuple[int, int, str]] = []
        # Open blocks: [forelse match, parsed (items, target), @empty match]
        open_blocks: list[list] = []
        for match in iter_directives(text, self._arities):
            if match.name == "forelse":
                open_blocks.append([match, parse_loop(match.args or ""), None])
            elif match.name == "empty":
                if open_blocks and open_blocks[-1][2] is None:
                    open_blocks[-1][2] = match
            elif open_blocks:
                opening, loop, empty = open_blocks.pop()
                if loop is None:
                    continue
                items, target = loop
                replacements.append(
                    (
                        opening.start,
                        opening.end,
                        f"<?py _forelse_items = _seq(lambda: ({items})) ?>"
                        "<?py if _forelse_items: ?>"
                        + FOREACH_OPEN.format(items="_forelse_items", target=target),
                    )
                )
                if empty is None:
                    replacements.append((match.start, match.end, FOREACH_CLOSE + ENDIF))
                else:
                    replacements.append((empty.start, empty.end, FOREACH_CLOSE + "<?py else: ?>"))
                    replacements.append((match.start, match.end, ENDIF))
        return replace_spans(text, replacements)

    def __repr__(self) -> str:
        return f"<ForelseRule {self.name!r}>"


# =============================================================================
# Argument helpers
# =============================================================================


def parse_loop(args: str) -> tuple[str, str] | None:
    """Split loop arguments into ``(items, target)``.

    Accepts ``items as target``, ``target in items`` and
    ``items as key => value`` (iterates ``items.items()``).
    """
    parts = partition_keyword(args, "as")
    if parts is not None:
        items, target = parts
    else:
        parts = partition_keyword(args, "in", last=False)
        if parts is None:
            return None
        target, items = parts
    if not items or not target:
        return None
    pair = partition_keyword(target, "=>")
    if pair is not None:
        target = f"{pair[0]}, {pair[1]}"
        items = f"({items}).items()"
    return items, target


def _unquote(name: str) -> str:
    value = string_literal(name)
    return name if value is None else value


def _getters(args: str) -> str:
    return ", ".join(f"lambda: ({arg})" for arg in split_arguments(args))


def _fixed(replacement: str) -> Handler:
    return lambda args: replacement


def _echo_default(match: re.Match[str]) -> str:
    parts = partition_keyword(match[1], "or", last=False)
    if parts is None:
        return match[0]
    value, default = parts
    return f"<?= _e(_value_or(lambda: ({value}), {default})) ?>"


def _mutator(function: str, *, escape: bool = True) -> Handler:
    if escape:
        return lambda args: f"<?= _e({function}({args})) ?>"
    return lambda args: f"<?= {function}({args}) ?>"


def _set(args: str | None) -> str | None:
    parts = split_arguments(args or "", maxsplit=1)
    if len(parts) != 2:
        return None
    return f"<?py {_unquote(parts[0])} = {parts[1]} ?>"


def _unset(args: str | None) -> str | None:
    names = [_unquote(name) for name in split_arguments(args or "")]
    if not names:
        return None
    return f"<?py del {', '.join(names)} ?>"


def _jump(keyword: str) -> Handler:
    """``@break``/``@continue`` with no argument, a level count or a condition."""

    def handler(args: str | None) -> str:
        if args is None or not args.strip():
            return f"<?py {keyword} ?>"
        if keyword == "break" and args.strip().isdigit():
            return f"<?py break {args.strip()} ?>"
        return f"<?py if ({args}): {keyword} ?>"

    return handler


def _foreach(args: str | None) -> str | None:
    loop = parse_loop(args or "")
    if loop is None:
        return None
    items, target = loop
    return FOREACH_OPEN.format(items=items, target=target)


def _php(args: str | None) -> str:
    if args is None:
        return "<?py"
    return f"<?py {args} ?>"


# =============================================================================
# The table
# =============================================================================

RULES: tuple[Rule, ...] = (
    PatternRule("comments", re.compile(r"\{\{--.*?--\}\}", re.DOTALL), ""),
    PatternRule("echo-escape", re.compile(r"@\{\{"), lambda match: ESCAPED_ECHO_OPEN),
    PatternRule("echo-default", ECHO_PATTERN, _echo_default),
    PatternRule("echo", ECHO_PATTERN, lambda match: f"<?= _e({match[1]}) ?>"),
    PatternRule(
        "raw-echo",
        re.compile(r"\{!!\s*(.+?)\s*!!\}", re.DOTALL),
        lambda match: f"<?= {match[1]} ?>",
    ),
    DirectiveRule(
        "mutators",
        {
            "json": ("required", _mutator("_json", escape=False)),
            "lower": ("required", _mutator("_lower")),
            "upper": ("required", _mutator("_upper")),
            "ucfirst": ("required", _mutator("_ucfirst")),
            "ucwords": ("required", _mutator("_ucwords")),
            "format": ("required", _mutator("_sprintf")),
            "sprintf": ("required", _mutator("_sprintf")),
            "wrap": ("required", _mutator("_wordwrap")),
        },
    ),
    DirectiveRule(
        "assignment",
        {
            "set": ("required", _set),
            "unset": ("required", _unset),
        },
    ),
    ForelseRule("forelse"),
    DirectiveRule(
        "conditionals",
        {
            "isset": ("required", lambda args: f"<?py if _isset({_getters(args)}): ?>"),
            "endisset": ("none", _fixed(ENDIF)),
            "has": ("required", lambda args: f"<?py if _has(lambda: ({args})): ?>"),
            "endhas": ("none", _fixed(ENDIF)),
            "unless": ("required", lambda args: f"<?py if not ({args}): ?>"),
            "endunless": ("none", _fixed(ENDIF)),
            "empty": ("required", lambda args: f"<?py if _empty(lambda: ({args})): ?>"),
            "endempty": ("none", _fixed(ENDIF)),
        },
    ),
    DirectiveRule(
        "switch",
        {
            "switch": ("required", lambda args: f"<?py switch ({args}): ?>"),
            "case": ("required", lambda args: f"<?py case ({args}): ?>"),
            "default": ("none", _fixed("<?py default: ?>")),
            "endswitch": ("none", _fixed("<?py endswitch ?>")),
            "break": ("optional", _jump("break")),
            "continue": ("optional", _jump("continue")),
        },
    ),
    DirectiveRule(
        "foreach",
        {
            "foreach": ("required", _foreach),
            "endforeach": ("none", _fixed(FOREACH_CLOSE)),
        },
    ),
    DirectiveRule(
        "control",
        {
            "if": ("required", lambda args: f"<?py if ({args}): ?>"),
            "elseif": ("required", lambda args: f"<?py elif ({args}): ?>"),
            "else": ("none", _fixed("<?py else: ?>")),
            "endif": ("none", _fixed(ENDIF)),
            "for": ("required", lambda args: f"<?py for {args}: ?>"),
            "endfor": ("none", _fixed("<?py endfor ?>")),
            "while": ("required", lambda args: f"<?py while ({args}): ?>"),
            "endwhile": ("none", _fixed("<?py endwhile ?>")),
        },
    ),
    DirectiveRule(
        "php",
        {
            "php": ("optional", _php),
            "endphp": ("none", _fixed("?>")),
        },
    ),
)

RULE_NAMES: tuple[str, ...] = tuple(rule.name for rule in RULES)


def rewrite(text: str) -> str:
    """Apply every built-in rule to ``text`` in table order."""
    for rule in RULES:
        text = rule.apply(text)
    return text
