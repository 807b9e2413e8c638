"""Build accumulator — state shared by one top-level compile.

A :class:`Build` is created for each call to
:meth:`~sickle.compiler.core.Compiler.compile` or
:meth:`~sickle.compiler.core.Compiler.compile_string` and threaded through
the recursive resolution of parents and includes. Nothing outlives the
call, so compiles never see each other's sections or stacks.

Sections vs stacks:
    ``@section`` is last-write-wins per name and scoped to one level of
    inheritance; ``@push`` appends to a stack that is shared by the whole
    chain.

"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sickle.environment.exceptions import ErrorCode, TemplateSyntaxError


class Build:
    """Sections, stacks, dependencies and the current resolution chain.

    Attributes:
        stacks: Stack name → compiled pushes, in push order.
        dependencies: Every template id read during the compile.
        trail: Ids currently being compiled, outermost first.
    """

    __slots__ = ("_sections", "stacks", "dependencies", "trail")

    def __init__(self) -> None:
        self._sections: list[dict[str, str]] = []
        self.stacks: dict[str, list[str]] = {}
        self.dependencies: list[str] = []
        self.trail: list[str] = []

    @property
    def sections(self) -> dict[str, str]:
        """Sections collected at the current inheritance level."""
        if not self._sections:
            raise RuntimeError("No active section scope")
        return self._sections[-1]

    @contextmanager
    def section_scope(self) -> Iterator[dict[str, str]]:
        """Open a fresh section scope for one ``@extends`` resolution."""
        scope: dict[str, str] = {}
        self._sections.append(scope)
        try:
            yield scope
        finally:
            self._sections.pop()

    def add_section(self, name: str, content: str) -> None:
        self.sections[name] = content

    def push(self, name: str, content: str) -> None:
        self.stacks.setdefault(name, []).append(content)

    def stack(self, name: str) -> str:
        return "".join(self.stacks.get(name, ()))

    def depend(self, template: str) -> None:
        """Record that the compiled output depends on ``template``."""
        if template not in self.dependencies:
            self.dependencies.append(template)

    @contextmanager
    def entering(self, template: str) -> Iterator[None]:
        """Mark ``template`` as being compiled.

        Raises:
            TemplateSyntaxError: ``template`` is already in the chain.
        """
        if template in self.trail:
            chain = " -> ".join([*self.trail, template])
            raise TemplateSyntaxError(
                f"Circular template reference: {chain}",
                name=template,
                code=ErrorCode.CIRCULAR_REFERENCE,
            )
        self.trail.append(template)
        try:
            yield
        finally:
            self.trail.pop()
