"""On-disk cache of compiled templates.

One file per template identifier, named by the SHA-256 hex digest of the
identifier. The first line records every template the compiled form was
built from:

    ```
    <?py # sickle:deps ["pages/home", "layouts/app"] ?>
    ...compiled form...
    ```

An entry is fresh while its file is at least as new as the template and
each recorded dependency. Timestamps are the only signal: clock skew or a
copy that preserves modification times can produce a stale hit.

Thread-Safety:
Entries are written to a temporary file in the cache directory and moved
into place with ``os.replace()``, so readers see either the previous entry
or the complete new one.

"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from collections.abc import Callable, Iterable
from pathlib import Path

from sickle.environment.exceptions import TemplateNotFoundError

logger = logging.getLogger(__name__)

_HEADER_PREFIX = "<?py # sickle:deps "
_HEADER_SUFFIX = " ?>"


class CompilationCache:
    """Store compiled forms keyed by template identifier.

    Attributes:
        directory: Cache directory (must exist and be writable).

    Example:
            >>> cache = CompilationCache("/tmp/sickle-cache")
            >>> cache.set("home", "<p><?= _e(title) ?></p>", ["home"])
            >>> cache.get("home", loader.get_mtime)
            '<p><?= _e(title) ?></p>'
    """

    __slots__ = ("directory",)

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def path(self, template: str) -> Path:
        """File holding the entry for ``template``."""
        return self.directory / hashlib.sha256(template.encode("utf-8")).hexdigest()

    def get(self, template: str, mtime_of: Callable[[str], float]) -> str | None:
        """Return the cached compiled form, or ``None`` if missing or stale.

        ``mtime_of`` maps a template identifier to its source modification
        time; a dependency it cannot find makes the entry stale.
        """
        path = self.path(template)
        try:
            cached_at = path.stat().st_mtime
            raw = path.read_text("utf-8")
        except FileNotFoundError:
            logger.debug("Cache miss for %r", template)
            return None

        dependencies, source = self._split(raw)
        if dependencies is None:
            logger.warning("Ignoring unreadable cache entry %s for %r", path.name, template)
            return None

        for name in {template, *dependencies}:
            try:
                if mtime_of(name) > cached_at:
                    logger.debug("Cache entry for %r is stale (%r changed)", template, name)
                    return None
            except TemplateNotFoundError:
                logger.debug("Cache entry for %r is stale (%r is gone)", template, name)
                return None

        logger.debug("Cache hit for %r", template)
        return source

    def set(self, template: str, source: str, dependencies: Iterable[str] = ()) -> None:
        """Atomically store the compiled form of ``template``."""
        path = self.path(template)
        header = _HEADER_PREFIX + json.dumps(list(dependencies)) + _HEADER_SUFFIX + "\n"
        handle = tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=self.directory,
            prefix=".sickle-",
            delete=False,
        )
        try:
            with handle:
                handle.write(header + source)
            os.replace(handle.name, path)
        except BaseException:
            Path(handle.name).unlink(missing_ok=True)
            raise
        logger.debug("Cached %r as %s", template, path.name)

    def clear(self) -> int:
        """Remove every cache entry; returns the number removed."""
        removed = 0
        for path in self._entries():
            path.unlink(missing_ok=True)
            removed += 1
        logger.debug("Cleared %d cache entries", removed)
        return removed

    def stats(self) -> dict[str, int]:
        """Return ``{"file_count": ..., "total_bytes": ...}`` for the cache."""
        entries = list(self._entries())
        return {
            "file_count": len(entries),
            "total_bytes": sum(path.stat().st_size for path in entries),
        }

    def _entries(self) -> Iterable[Path]:
        for path in self.directory.iterdir():
            if path.is_file() and len(path.name) == 64 and not path.name.startswith("."):
                yield path

    @staticmethod
    def _split(raw: str) -> tuple[list[str] | None, str]:
        header, newline, source = raw.partition("\n")
        if not newline or not header.startswith(_HEADER_PREFIX):
            return None, raw
        try:
            dependencies = json.loads(header[len(_HEADER_PREFIX) :].removesuffix(_HEADER_SUFFIX))
        except ValueError:
            return None, raw
        if not isinstance(dependencies, list):
            return None, raw
        return dependencies, source

    def __repr__(self) -> str:
        return f"<CompilationCache {str(self.directory)!r}>"
