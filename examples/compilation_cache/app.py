"""Compilation cache -- compile once, recompile only when sources change.

Templates are copied to a scratch directory so the example can edit one.
A logging handler on ``sickle.environment.core`` records every compile:

1. The first render compiles ``dashboard`` (and the layout and badge it
   pulls in) and stores the result in the cache directory
2. The second render is served from the cache
3. Editing ``badge`` -- a dependency, not the template itself -- makes the
   entry stale, so the third render compiles again

Run:
    python app.py
"""

import logging
import os
import shutil
import tempfile
import time
from pathlib import Path

from sickle import Environment

workdir = Path(tempfile.mkdtemp(prefix="sickle-cache-demo-"))
views_dir = workdir / "views"
cache_dir = workdir / "cache"
shutil.copytree(Path(__file__).parent / "views", views_dir)
cache_dir.mkdir()

# Sources older than any cache entry written from here on.
past = time.time() - 60
for path in views_dir.iterdir():
    os.utime(path, (past, past))


class CompileRecorder(logging.Handler):
    """Collect the names of compiled templates from sickle's debug log."""

    def __init__(self) -> None:
        super().__init__(logging.DEBUG)
        self.compiled: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        if record.msg == "Compiling %r":
            self.compiled.append(record.args[0])


recorder = CompileRecorder()
logger = logging.getLogger("sickle.environment.core")
previous_level = logger.level
logger.setLevel(logging.DEBUG)
logger.addHandler(recorder)

env = Environment(views_dir, cache_dir)
data = {"items": ["alpha", "beta"]}

try:
    first_output = env.make("dashboard", data)
    compiles_after_first = list(recorder.compiled)

    cached_output = env.make("dashboard", data)
    compiles_after_second = list(recorder.compiled)

    badge = views_dir / "badge.sickle.html"
    badge.write_text("<span>v2</span>\n", encoding="utf-8")
    future = time.time() + 60
    os.utime(badge, (future, future))
    updated_output = env.make("dashboard", data)
    compiles_after_edit = list(recorder.compiled)
finally:
    logger.removeHandler(recorder)
    logger.setLevel(previous_level)

empty_output = env.make("dashboard", {"items": []})
cache_stats = env.cache.stats()


def main() -> None:
    print("=== First render (compiled) ===")
    print(first_output)
    print("=== Second render (cached) ===")
    print(cached_output)
    print("=== After editing badge (recompiled) ===")
    print(updated_output)
    print(f"Compiles: {compiles_after_edit}")
    print(f"Cache: {cache_stats['file_count']} file(s), {cache_stats['total_bytes']} bytes")


if __name__ == "__main__":
    main()
