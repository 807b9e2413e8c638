"""Template executors — run compiled templates against a data context.

The compiler produces *code-tagged text*: literal text interleaved with
echo tags and statement tags.

    ```
    <ul>
    <?py with loop.iterate(items) as _loop_items: ?><?py for item in _loop_items: ?>
        <li><?= _e(item) ?></li>
    <?py endfor ?><?py endwith ?>
    </ul>
    ```

An :class:`Executor` turns that text plus a context into output. The
shipped :class:`PythonExecutor` lowers it into a Python module:

    ```python
    _break_levels = 0
    _write('<ul>\\n')
    with loop.iterate(items) as _loop_items:
        for item in _loop_items:
            _write('    <li>')
            _write(_str(_e(item)))
            _write('</li>\\n')
    _write('</ul>\\n')
    ```

and runs it with ``exec`` in a fresh namespace built from the caller's
data, the runtime helpers (which data cannot replace) and a new
:class:`LoopStack` bound to ``loop``.

Lowering rules:
- A single newline directly after a statement tag is swallowed.
- Statements ending in ``:`` open (``if``/``for``/``while``/``with``/``try``)
  or continue (``elif``/``else``/``except``/``finally``) a block;
  ``endif``/``endfor``/``endwhile``/``endwith``/``endtry``/``end`` close one.
- ``switch x:``/``case v:``/``default:``/``endswitch`` become a
  single-iteration loop with a fall-through flag, so ``break`` leaves the
  switch.
- ``break N`` leaves N enclosing loops.
- Statement tags holding several statements are dedented and emitted
  verbatim; one statement broken across lines inside brackets
  (``if (a and\\n b):``) is lowered like any other.

"""

from __future__ import annotations

import io
import re
import textwrap
import tokenize
import types
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol

from sickle.environment.exceptions import (
    TemplateError,
    TemplateRuntimeError,
    TemplateSyntaxError,
)
from sickle.template.helpers import RUNTIME_NAMESPACE
from sickle.template.loop_context import LoopStack

_TAG_RE = re.compile(r"<\?(=|py\b)(.*?)\?>", re.DOTALL)

_INDENT = "    "

_OPENERS = frozenset({"if", "for", "while", "with", "try"})
_CLOSERS = {
    "endif": "if",
    "endfor": "for",
    "endwhile": "while",
    "endwith": "with",
    "endtry": "try",
    "endswitch": "switch",
    "end": None,
}
_CONTINUATIONS = {
    "elif": ("if",),
    "else": ("if",),
    "except": ("try",),
    "finally": ("try",),
}
_LOOPS = frozenset({"for", "while", "switch"})


def _is_logical_line(code: str) -> bool:
    """True if ``code`` is one statement whose line breaks sit inside brackets."""
    try:
        tokens = list(tokenize.generate_tokens(io.StringIO(code).readline))
    except (tokenize.TokenError, SyntaxError):
        return False
    return sum(token.type == tokenize.NEWLINE for token in tokens) <= 1


class Executor(Protocol):
    """Runs a compiled template against a context and returns the output."""

    def execute(
        self, source: str, context: Mapping[str, Any], *, name: str | None = None
    ) -> str: ...


@dataclass(slots=True)
class _Block:
    kind: str
    indented: bool = True
    has_body: bool = False
    switch_id: int | None = None


class CodeGenerator:
    """Lower one compiled template into Python source."""

    __slots__ = ("_blocks", "_lines", "_name", "_switch_counter")

    def __init__(self, name: str | None = None):
        self._name = name
        self._lines: list[str] = []
        self._blocks: list[_Block] = []
        self._switch_counter = 0

    def generate(self, source: str) -> str:
        self._emit("_break_levels = 0")
        position = 0
        swallow_newline = False
        for match in _TAG_RE.finditer(source):
            self._text(source[position : match.start()], swallow_newline)
            if match[1] == "=":
                self._echo(match[2])
                swallow_newline = False
            else:
                self._statement(match[2])
                swallow_newline = True
            position = match.end()
        self._text(source[position:], swallow_newline)

        if self._blocks:
            raise self._error(f"Unclosed '{self._blocks[-1].kind}' block")
        return "\n".join(self._lines) + "\n"

    # ─────────────────────────────────────────────────────────────────────
    # Emission
    # ─────────────────────────────────────────────────────────────────────

    def _emit(self, line: str, extra_indent: int = 0) -> None:
        depth = sum(1 for block in self._blocks if block.indented) + extra_indent
        self._lines.append(_INDENT * depth + line)
        for block in self._blocks:
            block.has_body = True

    def _error(self, message: str) -> TemplateSyntaxError:
        return TemplateSyntaxError(message, name=self._name)

    def _text(self, text: str, swallow_newline: bool) -> None:
        if swallow_newline:
            if text.startswith("\r\n"):
                text = text[2:]
            elif text.startswith("\n"):
                text = text[1:]
        if not text:
            return
        # Whitespace between @switch and its first @case has nowhere to go.
        if self._blocks and self._blocks[-1].kind == "switch" and text.isspace():
            return
        self._emit(f"_write({text!r})")

    def _echo(self, expression: str) -> None:
        expression = expression.strip()
        if not expression:
            raise self._error("Empty echo tag")
        self._emit(f"_write(_str({expression}))")

    # ─────────────────────────────────────────────────────────────────────
    # Statements
    # ─────────────────────────────────────────────────────────────────────

    def _statement(self, code: str) -> None:
        stripped = code.strip()
        if not stripped:
            return
        if "\n" in stripped and not _is_logical_line(stripped):
            for line in textwrap.dedent(code.strip("\n")).splitlines():
                if line.strip():
                    self._emit(line.rstrip())
            return

        parts = stripped.split(None, 1)
        keyword = parts[0].rstrip(":;")
        rest = parts[1] if len(parts) > 1 else ""

        if keyword in _CLOSERS and not rest.strip(" ;"):
            self._close(_CLOSERS[keyword], keyword)
        elif stripped.endswith(":"):
            self._block_statement(keyword, stripped)
        elif keyword == "break" and rest.strip().isdigit():
            self._break(int(rest))
        else:
            self._emit(stripped)

    def _block_statement(self, keyword: str, stripped: str) -> None:
        if keyword in _CONTINUATIONS:
            self._continue(_CONTINUATIONS[keyword], keyword, stripped)
        elif keyword == "switch":
            self._open_switch(stripped[len("switch") : -1].strip())
        elif keyword == "case":
            self._case(stripped[len("case") : -1].strip())
        elif keyword == "default":
            self._case(None)
        elif keyword in _OPENERS:
            self._emit(stripped)
            self._blocks.append(_Block(keyword))
        else:
            raise self._error(f"Unsupported block statement '{stripped}'")

    def _continue(self, kinds: tuple[str, ...], keyword: str, stripped: str) -> None:
        if not self._blocks or self._blocks[-1].kind not in kinds:
            raise self._error(f"'{keyword}' outside of '{kinds[0]}' block")
        block = self._blocks.pop()
        if not block.has_body:
            self._emit("pass", extra_indent=1)
        self._emit(stripped)
        self._blocks.append(_Block(block.kind))

    def _close(self, kind: str | None, keyword: str) -> None:
        if self._blocks and self._blocks[-1].kind == "case" and kind in ("switch", None):
            self._pop_block()
        if not self._blocks:
            raise self._error(f"Unexpected '{keyword}' with no open block")
        if kind is not None and self._blocks[-1].kind != kind:
            raise self._error(
                f"Unexpected '{keyword}', expected 'end{self._blocks[-1].kind}'"
            )
        closed = self._pop_block()
        if closed.kind in _LOOPS and any(b.kind in _LOOPS for b in self._blocks):
            # Carry a pending multi-level break out to the enclosing loop.
            self._emit("if _break_levels:")
            self._emit("_break_levels -= 1", extra_indent=1)
            self._emit("break", extra_indent=1)

    def _pop_block(self) -> _Block:
        block = self._blocks[-1]
        if block.indented and not block.has_body:
            self._emit("pass")
        return self._blocks.pop()

    def _break(self, levels: int) -> None:
        available = sum(1 for block in self._blocks if block.kind in _LOOPS)
        if levels < 1 or levels > available:
            raise self._error(f"Cannot break {levels} levels with {available} enclosing loops")
        if levels > 1:
            self._emit(f"_break_levels = {levels - 1}")
        self._emit("break")

    def _open_switch(self, subject: str) -> None:
        if not subject:
            raise self._error("Missing switch subject")
        self._switch_counter += 1
        switch_id = self._switch_counter
        self._emit(f"_fall_{switch_id} = False")
        self._emit(f"for _switch_{switch_id} in [({subject})]:")
        self._blocks.append(_Block("switch", switch_id=switch_id))

    def _case(self, value: str | None) -> None:
        if self._blocks and self._blocks[-1].kind == "case":
            self._pop_block()
        if not self._blocks or self._blocks[-1].kind != "switch":
            label = "default" if value is None else "case"
            raise self._error(f"'{label}' outside of 'switch' block")
        switch_id = self._blocks[-1].switch_id
        if value is None:
            self._emit(f"_fall_{switch_id} = True")
            self._blocks.append(_Block("case", indented=False))
            return
        self._emit(f"if _fall_{switch_id} or _switch_{switch_id} == ({value}):")
        self._blocks.append(_Block("case"))
        self._emit(f"_fall_{switch_id} = True")


def generate_python(source: str, name: str | None = None) -> str:
    """Return the Python source a compiled template lowers to."""
    return CodeGenerator(name).generate(source)


@lru_cache(maxsize=256)
def compile_template_code(source: str, name: str | None = None) -> types.CodeType:
    """Generate and byte-compile a compiled template, memoized per source."""
    python = generate_python(source, name)
    try:
        return compile(python, f"<sickle:{name or 'string'}>", "exec")
    except SyntaxError as exc:
        raise TemplateSyntaxError(
            exc.msg, lineno=exc.lineno, name=name, source=python
        ) from exc


class PythonExecutor:
    """Execute compiled templates as Python code.

    Thread-Safety:
        Code objects are shared through an LRU cache; each ``execute()``
        builds its own namespace, output buffer and :class:`LoopStack`.

    Example:
            >>> PythonExecutor().execute("Hi <?= _e(name) ?>", {"name": "<you>"})
            'Hi &lt;you&gt;'
    """

    __slots__ = ()

    def execute(
        self, source: str, context: Mapping[str, Any], *, name: str | None = None
    ) -> str:
        code = compile_template_code(source, name)
        buffer: list[str] = []
        namespace: dict[str, Any] = dict(context)
        namespace.update(RUNTIME_NAMESPACE)
        namespace["loop"] = LoopStack()
        namespace["_write"] = buffer.append
        try:
            exec(code, namespace)
        except TemplateError:
            raise
        except Exception as exc:
            raise TemplateRuntimeError(
                f"{type(exc).__name__}: {exc}", template_name=name
            ) from exc
        return "".join(buffer)
