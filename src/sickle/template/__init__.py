"""Sickle template runtime — execution of compiled templates.

Re-exports the executor, loop metadata and markup types so callers can
``from sickle.template import PythonExecutor``.

"""

from sickle.template.executor import Executor, PythonExecutor, generate_python
from sickle.template.loop_context import LoopFrame, LoopStack
from sickle.utils.html import Markup

__all__ = [
    "Executor",
    "LoopFrame",
    "LoopStack",
    "Markup",
    "PythonExecutor",
    "generate_python",
]
