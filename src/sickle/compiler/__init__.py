"""Sickle compiler — template text to code-tagged text.

The compiler rewrites directives into a compiled form made of literal text,
``<?= expr ?>`` echo tags and ``<?py statement ?>`` statement tags.

"""

from sickle.compiler.build import Build
from sickle.compiler.core import CompiledTemplate, Compiler, finalize
from sickle.compiler.directives import RULE_NAMES, RULES, rewrite

__all__ = [
    "RULES",
    "RULE_NAMES",
    "Build",
    "CompiledTemplate",
    "Compiler",
    "finalize",
    "rewrite",
]
