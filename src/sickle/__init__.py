"""Sickle — a directive template compiler for Python.

Templates mix markup with ``{{ }}`` echoes and ``@directives``; sickle
rewrites them into code-tagged text, caches that on disk, and executes it
against your data.

Quickstart:
    >>> from sickle import Environment
    >>> env = Environment("views", "cache")
    >>> env.render_string("Hello, {{ name }}!", {"name": "World"})
    'Hello, World!'

File-based templates:
    >>> env.render(response, "pages/home", {"user": user})
    >>> html = env.make("mail::welcome", {"user": user})

Architecture:
Template Source → Inheritance → Includes → Rewrite Table → User Directives
→ Finalize → Cache → Executor

Pipeline stages:
1. **Inheritance**: ``@extends`` chains merged through ``@section``/``@yield``
2. **Includes**: ``@include`` family compiled and spliced in place
3. **Rewrite table**: ordered rules turning directives into ``<?py ?>`` and
   ``<?= ?>`` tags
4. **Executor**: lowers the tagged text to Python and runs it with ``exec``

Template expressions are plain Python expressions:

    ```
    @foreach(users as user)
        <li>{{ loop.iteration }}. {{ user.name }}</li>
    @endforeach
    ```

"""

# The environment package imports the rest of sickle; it must load first.
from sickle.environment import (
    ConfigurationError,
    DirectiveRegistry,
    Environment,
    ErrorCode,
    FileSystemLoader,
    LoopError,
    NamespaceError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    TemplateSyntaxError,
)
from sickle.cache import CompilationCache
from sickle.compiler import CompiledTemplate, Compiler
from sickle.template import Executor, LoopStack, Markup, PythonExecutor
from sickle.utils.html import html_escape

__version__ = "0.1.0"

__all__ = [
    "CompilationCache",
    "CompiledTemplate",
    "Compiler",
    "ConfigurationError",
    "DirectiveRegistry",
    "Environment",
    "ErrorCode",
    "Executor",
    "FileSystemLoader",
    "LoopError",
    "LoopStack",
    "Markup",
    "NamespaceError",
    "PythonExecutor",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
    "__version__",
    "html_escape",
]
