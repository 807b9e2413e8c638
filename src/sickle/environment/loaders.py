"""Template loading for the sickle environment.

A template identifier maps to exactly one file:

- ``pages/home``        → ``<views_path>/pages/home<extension>``
- ``/pages/home``       → same (a leading ``/`` is ignored)
- ``mail::welcome``     → ``<namespaces["mail"]>/welcome<extension>``

Namespaces come from configuration or :meth:`FileSystemLoader.add_namespace`.
An identifier naming an unregistered namespace raises
:class:`~sickle.environment.exceptions.NamespaceError`.

Thread-Safety:
Reads are safe for concurrent use. ``add_namespace`` replaces the
namespace mapping copy-on-write, so lookups never see a half-updated dict.

"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from sickle.environment.exceptions import (
    ConfigurationError,
    ErrorCode,
    NamespaceError,
    TemplateNotFoundError,
)

NAMESPACE_SEPARATOR = "::"

DEFAULT_EXTENSION = ".sickle.html"


def validate_directory(path: str | Path, label: str, *, writable: bool = False) -> Path:
    """Check that ``path`` is an existing, readable (and writable) directory.

    Raises:
        ConfigurationError: ``Renderer cannot find {label} at '...'`` or
            ``Renderer cannot write to {label} at '...'``.
    """
    directory = Path(path)
    if not directory.is_dir() or not os.access(directory, os.R_OK | os.X_OK):
        raise ConfigurationError(
            f"Renderer cannot find {label} at '{path}'", path=str(path)
        )
    if writable and not os.access(directory, os.W_OK):
        raise ConfigurationError(
            f"Renderer cannot write to {label} at '{path}'",
            path=str(path),
            code=ErrorCode.PATH_NOT_WRITABLE,
        )
    return directory


class FileSystemLoader:
    """Load templates from the views directory and registered namespaces.

    Attributes:
        _views_path: Root for identifiers without a namespace
        _namespaces: Namespace name → root directory
        _extension: Suffix appended to every identifier
        _encoding: File encoding (default: utf-8)

    Example:
            >>> loader = FileSystemLoader("views", {"mail": "views/mail"})
            >>> loader.resolve("mail::welcome")
            PosixPath('views/mail/welcome.sickle.html')
            >>> source, filename = loader.get_source("pages/home")

    Raises:
        ConfigurationError: If a configured directory is missing or unreadable
    """

    __slots__ = ("_encoding", "_extension", "_namespaces", "_views_path")

    def __init__(
        self,
        views_path: str | Path,
        namespaces: Mapping[str, str | Path] | None = None,
        extension: str = DEFAULT_EXTENSION,
        encoding: str = "utf-8",
    ):
        self._views_path = validate_directory(views_path, "view path")
        self._namespaces: dict[str, Path] = {}
        self._extension = extension
        self._encoding = encoding
        for name, path in (namespaces or {}).items():
            self.add_namespace(name, path)

    @property
    def views_path(self) -> Path:
        return self._views_path

    @property
    def extension(self) -> str:
        return self._extension

    @property
    def namespaces(self) -> dict[str, Path]:
        """Copy of the registered namespaces."""
        return dict(self._namespaces)

    def add_namespace(self, name: str, path: str | Path) -> None:
        """Register (or replace) namespace ``name`` rooted at ``path``."""
        directory = validate_directory(path, "namespace path")
        namespaces = self._namespaces.copy()
        namespaces[name] = directory
        self._namespaces = namespaces

    def resolve(self, name: str) -> Path:
        """Map an identifier to its file path (which may not exist)."""
        name = name.lstrip("/")
        namespace, separator, relative = name.partition(NAMESPACE_SEPARATOR)
        if separator:
            root = self._namespaces.get(namespace)
            if root is None:
                raise NamespaceError(namespace, template=name)
            name = relative.lstrip("/")
        else:
            root = self._views_path
        return root / f"{name}{self._extension}"

    def exists(self, name: str) -> bool:
        """True when the identifier resolves to an existing file."""
        return self.resolve(name).is_file()

    def get_source(self, name: str) -> tuple[str, str]:
        """Return ``(source, filename)`` for a template.

        Raises:
            TemplateNotFoundError: No file exists for ``name``.
            NamespaceError: ``name`` uses an unregistered namespace.
        """
        path = self.resolve(name)
        try:
            return path.read_text(self._encoding), str(path)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            raise TemplateNotFoundError(
                f"Renderer cannot find template '{name}'"
            ) from None

    def get_mtime(self, name: str) -> float:
        """Modification time of the template's source file.

        Raises:
            TemplateNotFoundError: No file exists for ``name``.
        """
        try:
            return self.resolve(name).stat().st_mtime
        except (FileNotFoundError, NotADirectoryError):
            raise TemplateNotFoundError(
                f"Renderer cannot find template '{name}'"
            ) from None

    def list_templates(self) -> list[str]:
        """List identifiers of every template in the views and namespaces."""
        templates = set()
        roots = [("", self._views_path)]
        roots += [(f"{ns}{NAMESPACE_SEPARATOR}", root) for ns, root in self._namespaces.items()]
        for prefix, root in roots:
            for path in root.rglob(f"*{self._extension}"):
                relative = path.relative_to(root).as_posix()
                templates.add(prefix + relative[: -len(self._extension)])
        return sorted(templates)
