"""Sickle Environment — the public facade.

The Environment ties the loader, compiler, compilation cache and executor
together:

    ```python
    env = Environment("views", "cache", namespaces={"mail": "views/mail"})
    env.render(response, "pages/home", {"user": user})
    html = env.make("mail::welcome", {"user": user})
    html = env.render_string("Hello {{ name }}!", {"name": "World"})
    ```

Rendering a template:
1. ``get_compiled()`` returns the cached compiled form if it is at least as
   new as the template and everything it was built from; otherwise it
   compiles and stores it
2. The executor runs it against the caller's data plus a fresh loop stack
3. The complete output is written to the sink in one call, so an error
   never leaves partial output behind

Thread-Safety:
Compilation is serialised per template identifier; different templates
compile concurrently. Renders share nothing mutable.

"""

from __future__ import annotations

import io
import logging
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol, TypeVar

from sickle.cache import CompilationCache
from sickle.compiler.core import Compiler
from sickle.environment.loaders import (
    DEFAULT_EXTENSION,
    FileSystemLoader,
    validate_directory,
)
from sickle.environment.registry import DirectiveHandler, DirectiveRegistry
from sickle.template.executor import Executor, PythonExecutor

logger = logging.getLogger(__name__)


class Sink(Protocol):
    """Anything with a ``write()`` method: a response, a file, a buffer."""

    def write(self, data: Any, /) -> Any: ...


SinkT = TypeVar("SinkT", bound=Sink)


class Environment:
    """Central configuration and entry point for rendering templates.

    Args:
        views_path: Directory holding templates without a namespace
        cache_path: Writable directory for compiled templates
        namespaces: Namespace name → template directory
        directives: User directives, ``pattern → handler``
        extension: Suffix of template files
        executor: Runs compiled templates (default: :class:`PythonExecutor`)
        encoding: Encoding of template files and of output written to
            binary sinks

    Raises:
        ConfigurationError: A directory is missing, unreadable or (for
            ``cache_path``) not writable.

    Example:
            >>> env = Environment("views", "cache")
            >>> env.render_string("{{ greeting }}, {{ name or 'stranger' }}!", {"greeting": "Hi"})
            'Hi, stranger!'
    """

    __slots__ = (
        "_cache",
        "_compile_locks",
        "_compiler",
        "_directives",
        "_executor",
        "_loader",
        "_locks_guard",
        "encoding",
    )

    def __init__(
        self,
        views_path: str | Path,
        cache_path: str | Path,
        *,
        namespaces: Mapping[str, str | Path] | None = None,
        directives: Mapping[str, DirectiveHandler] | None = None,
        extension: str = DEFAULT_EXTENSION,
        executor: Executor | None = None,
        encoding: str = "utf-8",
    ):
        self._loader = FileSystemLoader(
            views_path, namespaces, extension=extension, encoding=encoding
        )
        self._cache = CompilationCache(
            validate_directory(cache_path, "cache path", writable=True)
        )
        self._directives: dict[str, DirectiveHandler] = {}
        self.directives.update(dict(directives or {}))
        self._compiler = Compiler(self._loader, self.directives)
        self._executor: Executor = executor or PythonExecutor()
        self._compile_locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self.encoding = encoding

    # ─────────────────────────────────────────────────────────────────────────
    # Configuration
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def loader(self) -> FileSystemLoader:
        return self._loader

    @property
    def cache(self) -> CompilationCache:
        return self._cache

    @property
    def namespaces(self) -> dict[str, Path]:
        """Registered namespaces (a copy)."""
        return self._loader.namespaces

    @property
    def directives(self) -> DirectiveRegistry:
        """User directives, applied after every built-in rule."""
        return DirectiveRegistry(self, "_directives")

    def add_namespace(self, name: str, path: str | Path) -> None:
        """Register ``name::`` identifiers to resolve under ``path``.

        Raises:
            ConfigurationError: ``path`` is not a readable directory.
        """
        self._loader.add_namespace(name, path)
        logger.debug("Registered namespace %r at %s", name, path)

    def add_directive(self, pattern: str, handler: DirectiveHandler) -> None:
        """Register a user directive.

        Compiled templates already in the cache are not recompiled; call
        :meth:`clear_cache` after changing directives.
        """
        self.directives[pattern] = handler

    def exists(self, template: str) -> bool:
        """True when ``template`` resolves to an existing file."""
        return self._loader.exists(template)

    def clear_cache(self) -> int:
        """Delete every compiled template; returns the number removed."""
        return self._cache.clear()

    # ─────────────────────────────────────────────────────────────────────────
    # Compilation
    # ─────────────────────────────────────────────────────────────────────────

    def get_compiled(self, template: str) -> str:
        """Return the compiled form of ``template``, compiling if needed.

        Raises:
            TemplateNotFoundError: The template, a parent or an include
                does not exist.
            NamespaceError: An identifier names an unregistered namespace.
            TemplateSyntaxError: A template name is not a literal, or
                templates extend or include each other in a cycle.
        """
        with self._lock_for(template):
            source = self._cache.get(template, self._loader.get_mtime)
            if source is not None:
                return source
            logger.debug("Compiling %r", template)
            compiled = self._compiler.compile(template)
            self._cache.set(template, compiled.source, compiled.dependencies)
            logger.debug(
                "Compiled %r from %d template(s)", template, len(compiled.dependencies)
            )
            return compiled.source

    def compile_string(self, source: str) -> str:
        """Compile template text without executing or caching it."""
        return self._compiler.compile_string(source)

    def _lock_for(self, template: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._compile_locks.get(template)
            if lock is None:
                lock = self._compile_locks[template] = threading.Lock()
            return lock

    # ─────────────────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────────────────

    def make(self, template: str, data: Mapping[str, Any] | None = None) -> str:
        """Render ``template`` with ``data`` and return the output."""
        return self._executor.execute(self.get_compiled(template), data or {}, name=template)

    def render(
        self, sink: SinkT, template: str, data: Mapping[str, Any] | None = None
    ) -> SinkT:
        """Render ``template`` into ``sink`` and return the sink.

        Binary ``io`` streams receive the output encoded with
        :attr:`encoding`; anything else receives ``str``.
        """
        output = self.make(template, data)
        if isinstance(sink, (io.RawIOBase, io.BufferedIOBase)):
            sink.write(output.encode(self.encoding))
        else:
            sink.write(output)
        return sink

    def render_string(self, source: str, data: Mapping[str, Any] | None = None) -> str:
        """Compile and render template text; nothing is cached."""
        return self._executor.execute(self.compile_string(source), data or {})

    def __repr__(self) -> str:
        return (
            f"<Environment views={str(self._loader.views_path)!r} "
            f"cache={str(self._cache.directory)!r}>"
        )
