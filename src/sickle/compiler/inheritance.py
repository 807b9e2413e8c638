"""Template inheritance for the sickle compiler.

Provides the mixin resolving ``@extends``, ``@section``, ``@yield``,
``@push`` and ``@parent``, plus the section scanner shared with
finalization.

A child template

    ```
    @extends('layouts.app')
    @section('title', page.title)
    @section('content')
        @parent
        <p>{{ body }}</p>
    @endsection
    @push('scripts')<script src="/page.js"></script>@endpush
    ```

contributes its sections to the parent's compiled text: each parent
``@section('content') ... @show`` block and each ``@yield('content')`` is
replaced by ``@section('content')CHILD@show``, where ``@parent`` in the
child content becomes the parent's own content. Keeping the markers lets a
grandchild override the section again; the top-level compile strips them
(see :func:`sickle.compiler.core.finalize`).

Uses inline TYPE_CHECKING declarations for host attributes.

"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from sickle.compiler.scanner import (
    Arity,
    DirectiveMatch,
    at_boundary,
    directive_pattern,
    find_closing,
    iter_directives,
    replace_spans,
    split_arguments,
    string_literal,
)
from sickle.environment.exceptions import TemplateSyntaxError

if TYPE_CHECKING:
    from sickle.compiler.build import Build

# @extends counts only as the first directive, after whitespace and comments.
_EXTENDS_RE = re.compile(r"\A(?:\s|\{\{--.*?--\}\})*@extends[ \t]*(?=\()", re.DOTALL)

_PARENT_RE = re.compile(r"(?<!@)@parent\b")

# Block terminators; only @show displays the section where it is defined.
_TERMINATORS = ("endsection", "stop", "show", "overwrite")

_SECTION_ARITIES: dict[str, Arity] = {
    "section": "required",
    "yield": "required",
    **{name: "none" for name in _TERMINATORS},
}
_SECTION_PATTERN = directive_pattern(_SECTION_ARITIES)

_PUSH_ARITIES: dict[str, Arity] = {"push": "required", "endpush": "none"}
_PUSH_PATTERN = directive_pattern(_PUSH_ARITIES)


@dataclass(frozen=True, slots=True)
class SectionSpan:
    """A section definition or yield found in template text.

    Attributes:
        kind: ``block`` (``@section(name) ... @end*``), ``inline``
            (``@section(name, value)``) or ``yield``.
        name: Section name.
        start: Offset of the opening directive.
        end: Offset just past the closing directive.
        body: Block body, inline value expression, or yield default
            expression (``""`` when there is none).
        closer: Terminator of a block (``show``, ``endsection``, ...).
        depth: Number of enclosing section blocks.
    """

    kind: Literal["block", "inline", "yield"]
    name: str
    start: int
    end: int
    body: str = ""
    closer: str | None = None
    depth: int = 0

    @property
    def displayed(self) -> bool:
        """True if the span shows content where it stands."""
        return self.kind == "yield" or self.closer == "show"

    def contains(self, other: SectionSpan) -> bool:
        return self.start <= other.start and other.end <= self.end and self != other


def literal_name(match: DirectiveMatch, argument: str) -> str:
    """Evaluate a directive's name argument, which must be a string literal."""
    name = string_literal(argument)
    if name is None:
        raise TemplateSyntaxError(
            f"@{match.name} expects a string literal name, got {argument!r}"
        )
    return name


def replace_parent(text: str, content: str) -> str:
    """Replace every ``@parent`` token in ``text`` with ``content``."""
    return _PARENT_RE.sub(
        lambda match: content if at_boundary(text, match.start()) else match[0], text
    )


def scan_sections(text: str) -> list[SectionSpan]:
    """Find every section block, inline section and yield in ``text``.

    Spans are returned in source order of their opening directive, at all
    nesting depths. Unterminated blocks and stray terminators are ignored.
    """
    spans: list[SectionSpan] = []
    open_blocks: list[tuple[DirectiveMatch, str]] = []
    for match in iter_directives(text, _SECTION_ARITIES, pattern=_SECTION_PATTERN):
        if match.name in ("section", "yield"):
            args = split_arguments(match.args or "", maxsplit=1)
            if not args:
                raise TemplateSyntaxError(f"@{match.name} requires a section name")
            name = literal_name(match, args[0])
            extra = args[1] if len(args) > 1 else ""
            if match.name == "yield":
                spans.append(
                    SectionSpan("yield", name, match.start, match.end, extra, depth=len(open_blocks))
                )
            elif extra:
                spans.append(
                    SectionSpan("inline", name, match.start, match.end, extra, depth=len(open_blocks))
                )
            else:
                open_blocks.append((match, name))
        elif open_blocks:
            opening, name = open_blocks.pop()
            spans.append(
                SectionSpan(
                    "block",
                    name,
                    opening.start,
                    match.end,
                    text[opening.end : match.start],
                    closer=match.name,
                    depth=len(open_blocks),
                )
            )
    spans.sort(key=lambda span: span.start)
    return spans


def outermost(spans: list[SectionSpan]) -> list[SectionSpan]:
    """Drop spans that lie inside another span of the list."""
    return [span for span in spans if not any(other.contains(span) for other in spans)]


def wrap_section(name: str, content: str, *, displayed: bool = True) -> str:
    """Re-emit ``content`` as a section block for later levels to override."""
    closer = "@show" if displayed else "@endsection"
    return f"@section({name!r}){content}{closer}"


def section_content(span: SectionSpan) -> str:
    """Compiled content a span stands for on its own."""
    if span.kind == "block":
        return span.body
    if span.body:
        return f"<?= _e({span.body}) ?>"
    return ""


class InheritanceMixin:
    """Mixin resolving ``@extends`` chains and collecting ``@push`` blocks.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.

    """

    # ─────────────────────────────────────────────────────────────────────────
    # Cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        # From Compiler core
        def _compile_template(self, template: str, build: Build) -> str: ...

        def _compile_text(self, text: str, build: Build) -> str: ...

    def _extended_parent(self, text: str) -> tuple[str, int] | None:
        """Return ``(parent id, end offset)`` if ``text`` starts with @extends."""
        match = _EXTENDS_RE.match(text)
        if match is None:
            return None
        closing = find_closing(text, match.end())
        if closing is None:
            return None
        argument = text[match.end() + 1 : closing]
        parent = string_literal(argument)
        if parent is None:
            raise TemplateSyntaxError(
                f"@extends expects a string literal template name, got {argument!r}"
            )
        return parent, closing + 1

    def _resolve_extends(self, text: str, parent: str, build: Build) -> str:
        """Compile ``parent`` with the child's sections and pushes applied.

        Child text outside of sections and pushes is discarded.
        """
        spans = [span for span in scan_sections(text) if span.depth == 0]
        blocks = [span for span in spans if span.kind != "yield"]

        with build.section_scope() as sections:
            # Pushes outside sections first; pushes inside are collected
            # when the section bodies compile.
            outside = replace_spans(text, [(span.start, span.end, "") for span in blocks])
            self._collect_pushes(outside, build)

            for span in blocks:
                if span.kind == "inline":
                    sections[span.name] = section_content(span)
                else:
                    sections[span.name] = self._compile_text(span.body, build)

            compiled_parent = self._compile_template(parent, build)
            return self._merge_sections(compiled_parent, sections)

    def _merge_sections(self, parent: str, sections: dict[str, str]) -> str:
        """Place child section content over the parent's sections and yields."""
        for name, content in sections.items():
            targets = outermost([span for span in scan_sections(parent) if span.name == name])
            replacements = []
            for span in targets:
                original = section_content(span)
                merged = replace_parent(content, original)
                replacements.append(
                    (span.start, span.end, wrap_section(name, merged, displayed=span.displayed))
                )
            parent = replace_spans(parent, replacements)
        return parent

    def _collect_pushes(self, text: str, build: Build) -> str:
        """Move top-level ``@push`` bodies into the build's stacks.

        Returns ``text`` with the push blocks removed.
        """
        replacements = []
        open_pushes: list[tuple[DirectiveMatch, str]] = []
        for match in iter_directives(text, _PUSH_ARITIES, pattern=_PUSH_PATTERN):
            if match.name == "push":
                args = split_arguments(match.args or "")
                if not args:
                    raise TemplateSyntaxError("@push requires a stack name")
                open_pushes.append((match, literal_name(match, args[0])))
            elif open_pushes:
                opening, name = open_pushes.pop()
                if not open_pushes:
                    body = text[opening.end : match.start]
                    build.push(name, self._compile_text(body, build))
                    replacements.append((opening.start, match.end, ""))
        return replace_spans(text, replacements)
