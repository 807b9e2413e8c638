"""Include resolution for the sickle compiler.

Provides the mixin for ``@include``, ``@includeIf``, ``@includeWhen`` and
``@each``.

Included templates are compiled through the same pipeline and spliced in
at compile time, so the final compiled form of a template is self
contained. Each occurrence is swapped for a placeholder by its exact
source span; the placeholders are filled in after the rewrite table has
run, so spliced content is never rewritten twice.

    ```
    @include('partials.user', {'user': author})
    ```

becomes

    ```
    <?py with _scope(globals(), {'user': author}): ?>...compiled partial...<?py endwith ?>
    ```

Uses inline TYPE_CHECKING declarations for host attributes.

"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from sickle.compiler.scanner import (
    Arity,
    DirectiveMatch,
    directive_pattern,
    iter_directives,
    replace_spans,
    split_arguments,
    string_literal,
)
from sickle.environment.exceptions import TemplateSyntaxError

if TYPE_CHECKING:
    from sickle.compiler.build import Build
    from sickle.environment.loaders import FileSystemLoader

_INCLUDE_ARITIES: dict[str, Arity] = {
    "include": "required",
    "includeIf": "required",
    "includeWhen": "required",
}
_INCLUDE_PATTERN = directive_pattern(_INCLUDE_ARITIES)

_EACH_ARITIES: dict[str, Arity] = {"each": "required"}
_EACH_PATTERN = directive_pattern(_EACH_ARITIES)

# Private-use characters never appear in directive syntax.
_PLACEHOLDER = "\ue000include:{}\ue000"
_PLACEHOLDER_RE = re.compile("\ue000include:(\\d+)\ue000")


def splice(text: str, fragments: list[str]) -> str:
    """Fill the include placeholders of ``text`` with their fragments."""
    if not fragments:
        return text
    return _PLACEHOLDER_RE.sub(lambda match: fragments[int(match[1])], text)


def _template_id(match: DirectiveMatch, argument: str) -> str:
    template = string_literal(argument)
    if template is None:
        raise TemplateSyntaxError(
            f"@{match.name} expects a string literal template name, got {argument!r}"
        )
    return template


class IncludeMixin:
    """Mixin resolving include directives at compile time.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.

    """

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        _loader: FileSystemLoader

        # From Compiler core
        def _compile_template(self, template: str, build: Build) -> str: ...

    def _include(
        self,
        template: str,
        build: Build,
        fragments: list[str],
        *,
        bindings: str | None = None,
        condition: str | None = None,
        optional: bool = False,
    ) -> str:
        """Compile ``template`` into ``fragments`` and return its placeholder."""
        if optional and not self._loader.exists(template):
            content = ""
        else:
            content = self._compile_template(template, build)
        if bindings:
            content = f"<?py with _scope(globals(), {bindings}): ?>{content}<?py endwith ?>"
        if condition is not None:
            content = f"<?py if ({condition}): ?>{content}<?py endif ?>"
        fragments.append(content)
        return _PLACEHOLDER.format(len(fragments) - 1)

    def _expand_each(self, text: str, build: Build, fragments: list[str]) -> str:
        """Rewrite ``@each(view, items, 'var'[, empty_view])`` into a loop.

        ``@each('rows.user', users, 'user', 'rows.none')`` becomes a
        ``@forelse`` whose body includes ``rows.user`` with ``user`` bound to
        the current item and whose ``@empty`` branch includes ``rows.none``.
        """
        replacements = []
        for match in iter_directives(text, _EACH_ARITIES, pattern=_EACH_PATTERN):
            args = split_arguments(match.args or "")
            if len(args) not in (3, 4):
                raise TemplateSyntaxError(
                    f"@each expects 3 or 4 arguments, got {len(args)}"
                )
            view = _template_id(match, args[0])
            variable = string_literal(args[2])
            if variable is None or not variable.isidentifier():
                raise TemplateSyntaxError(
                    f"@each expects a variable name string, got {args[2]!r}"
                )
            body = self._include(
                view, build, fragments, bindings=f"{{{variable!r}: _each_item}}"
            )
            if len(args) == 4:
                empty = self._include(_template_id(match, args[3]), build, fragments)
                expansion = (
                    f"@forelse({args[1]} as _each_item){body}@empty{empty}@endforelse"
                )
            else:
                expansion = f"@foreach({args[1]} as _each_item){body}@endforeach"
            replacements.append((match.start, match.end, expansion))
        return replace_spans(text, replacements)

    def _resolve_includes(self, text: str, build: Build) -> tuple[str, list[str]]:
        """Compile every include of ``text``.

        Returns the text with placeholders and the compiled fragments to
        :func:`splice` back in once the rest of the text is rewritten.

        Raises:
            TemplateNotFoundError: An ``@include``/``@includeWhen`` target
                does not exist.
            TemplateSyntaxError: A template name is not a string literal.
        """
        fragments: list[str] = []
        text = self._expand_each(text, build, fragments)
        replacements = []
        for match in iter_directives(text, _INCLUDE_ARITIES, pattern=_INCLUDE_PATTERN):
            args = split_arguments(match.args or "")
            condition = None
            if match.name == "includeWhen":
                if len(args) < 2:
                    raise TemplateSyntaxError("@includeWhen expects a condition and a template name")
                condition, *args = args
            if not args:
                raise TemplateSyntaxError(f"@{match.name} expects a template name")
            placeholder = self._include(
                _template_id(match, args[0]),
                build,
                fragments,
                bindings=args[1] if len(args) > 1 else None,
                condition=condition,
                optional=match.name == "includeIf",
            )
            replacements.append((match.start, match.end, placeholder))
        return replace_spans(text, replacements), fragments
