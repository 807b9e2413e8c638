"""Sickle Compiler Core — main Compiler class.

The Compiler turns template text into code-tagged text ready for an
executor. It is a pipeline of text rewrites rather than a parser: each
stage finds its directives with the expression-boundary scanner and
replaces their exact source spans.

Pipeline (per template):
1. ``@extends``: if the template starts with it, collect the child's
   sections and pushes, compile the parent and merge (the rest of the
   pipeline already ran on the parent)
2. ``@push``: move push bodies into the build's stacks
3. ``@include`` family: compile included templates, splice later
4. Rewrite table: :data:`sickle.compiler.directives.RULES`
5. User directives: applied after every built-in rule
6. :func:`finalize`: once, on the top-level result only

Templates compiled on the way (parents, includes) stay *unfinalized*:
their ``@section``/``@yield``/``@stack`` markers are kept so the template
that pulled them in can still fill them.

    ```python
    compiler = Compiler(loader)
    compiled = compiler.compile("pages/home")
    compiled.source        # code-tagged text
    compiled.dependencies  # ('pages/home', 'layouts/app', 'partials/nav')
    ```

"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from sickle.compiler.build import Build
from sickle.compiler.directives import rewrite
from sickle.compiler.includes import IncludeMixin, splice
from sickle.compiler.inheritance import (
    InheritanceMixin,
    literal_name,
    replace_parent,
    scan_sections,
    section_content,
)
from sickle.compiler.scanner import (
    Arity,
    directive_pattern,
    iter_directives,
    replace_spans,
    split_arguments,
)
from sickle.environment.exceptions import TemplateSyntaxError

if TYPE_CHECKING:
    from sickle.environment.loaders import FileSystemLoader

_STACK_ARITIES: dict[str, Arity] = {"stack": "required"}
_STACK_PATTERN = directive_pattern(_STACK_ARITIES)

# Each pass of finalize() unwraps one level of nested sections.
_MAX_SECTION_PASSES = 64


class DirectiveTable(Protocol):
    """User directives applied after the built-in rules."""

    def apply(self, text: str) -> str: ...


@dataclass(frozen=True, slots=True)
class CompiledTemplate:
    """Finalized compiled form of one template.

    Attributes:
        name: Template identifier (``None`` for compiled strings).
        source: Code-tagged text for an executor.
        dependencies: Every template read while compiling, the template
            itself first.
    """

    name: str | None
    source: str
    dependencies: tuple[str, ...] = ()


def finalize(text: str, build: Build) -> str:
    """Strip the inheritance markers left in a top-level compile.

    - ``@section(...) ... @show`` blocks are replaced by their content
    - other section definitions are removed, but a later ``@yield`` of
      the same name displays them
    - ``@yield(name[, default])`` shows the definition, else the default
    - ``@stack(name)`` shows every push to ``name``, in push order
    - stray ``@parent`` tokens are removed
    """
    definitions: dict[str, str] = {}
    for _ in range(_MAX_SECTION_PASSES):
        spans = [span for span in scan_sections(text) if span.depth == 0]
        if not spans:
            break
        replacements = []
        for span in spans:
            if span.kind == "yield":
                content = definitions.get(span.name)
                if content is None:
                    content = section_content(span)
            elif span.displayed:
                content = definitions[span.name] = span.body
            else:
                definitions[span.name] = section_content(span)
                content = ""
            replacements.append((span.start, span.end, content))
        text = replace_spans(text, replacements)
    else:
        raise TemplateSyntaxError("Sections are nested too deeply or yield themselves")

    replacements = []
    for match in iter_directives(text, _STACK_ARITIES, pattern=_STACK_PATTERN):
        args = split_arguments(match.args or "")
        if not args:
            raise TemplateSyntaxError("@stack requires a stack name")
        replacements.append((match.start, match.end, build.stack(literal_name(match, args[0]))))
    text = replace_spans(text, replacements)

    return replace_parent(text, "")


class Compiler(InheritanceMixin, IncludeMixin):
    """Compile sickle templates into code-tagged text.

    The Compiler is stateless between calls: every :meth:`compile` and
    :meth:`compile_string` works on its own :class:`Build`, so one
    instance may serve concurrent compiles.

    Attributes:
        _loader: Source of template text and existence checks
        _directives: User directives, applied after the built-in rules

    Example:
            >>> compiler = Compiler(FileSystemLoader("views"))
            >>> compiler.compile_string("Hello {{ name }}!")
            'Hello <?= _e(name) ?>!'
    """

    __slots__ = ("_directives", "_loader")

    def __init__(
        self,
        loader: FileSystemLoader,
        directives: DirectiveTable | None = None,
    ):
        self._loader = loader
        self._directives = directives

    def compile(self, template: str) -> CompiledTemplate:
        """Compile the template ``template`` and everything it pulls in.

        Raises:
            TemplateNotFoundError: The template, a parent or an include
                does not exist.
            NamespaceError: An identifier names an unregistered namespace.
            TemplateSyntaxError: A template name is not a literal, or
                templates extend or include each other in a cycle.
        """
        build = Build()
        source = self._compile_template(template, build)
        return CompiledTemplate(template, finalize(source, build), tuple(build.dependencies))

    def compile_string(self, text: str) -> str:
        """Compile template text that does not come from the loader."""
        build = Build()
        return finalize(self._compile_text(text, build), build)

    def _compile_template(self, template: str, build: Build) -> str:
        """Compile ``template`` without finalizing it."""
        with build.entering(template):
            source, _ = self._loader.get_source(template)
            build.depend(template)
            return self._compile_text(source, build)

    def _compile_text(self, text: str, build: Build) -> str:
        extended = self._extended_parent(text)
        if extended is not None:
            parent, end = extended
            return self._resolve_extends(text[end:], parent, build)

        text = self._collect_pushes(text, build)
        text, fragments = self._resolve_includes(text, build)
        text = rewrite(text)
        if self._directives is not None:
            text = self._directives.apply(text)
        return splice(text, fragments)
