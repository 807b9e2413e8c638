"""Sickle environment — configuration, loading and errors.

Re-exports the public environment API so that
``from sickle.environment import Environment`` works.

"""

from sickle.environment.core import Environment
from sickle.environment.exceptions import (
    ConfigurationError,
    ErrorCode,
    LoopError,
    NamespaceError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    TemplateSyntaxError,
)
from sickle.environment.loaders import FileSystemLoader
from sickle.environment.registry import DirectiveRegistry

__all__ = [
    "ConfigurationError",
    "DirectiveRegistry",
    "Environment",
    "ErrorCode",
    "FileSystemLoader",
    "LoopError",
    "NamespaceError",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
]
