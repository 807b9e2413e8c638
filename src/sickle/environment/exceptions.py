"""Exceptions for the sickle template compiler.

Exception Hierarchy:
TemplateError (base)
├── ConfigurationError        # Missing/unreadable views, cache or namespace path
│   └── NamespaceError        # Identifier references an unregistered namespace
├── TemplateNotFoundError     # Template, include or parent not found
├── TemplateSyntaxError       # Compiled form rejected, bad include id, cycles
└── TemplateRuntimeError      # Failure while executing a compiled template
    └── LoopError             # Loop metadata queried with no active loop

Configuration errors are raised at the call that triggered them
(construction, ``add_namespace`` or first use). Resolution errors fail the
whole compile, so nothing is cached. Malformed directives are not detected
while rewriting; they surface as ``TemplateSyntaxError`` when the executor
rejects the compiled form.

Example:
    ```
    S-TPL-001: Renderer cannot find template 'pages/hom'
    ```

"""

from __future__ import annotations

from enum import Enum

from sickle.environment import terminal


class ErrorCode(Enum):
    """Searchable error codes.

    Format: S-{CATEGORY}-{NUMBER}
    Categories: CFG (configuration), TPL (template loading/compiling),
    RUN (execution)
    """

    # Configuration errors (S-CFG-xxx)
    PATH_NOT_FOUND = "S-CFG-001"
    PATH_NOT_WRITABLE = "S-CFG-002"
    NAMESPACE_NOT_DEFINED = "S-CFG-003"

    # Template errors (S-TPL-xxx)
    TEMPLATE_NOT_FOUND = "S-TPL-001"
    SYNTAX_ERROR = "S-TPL-002"
    CIRCULAR_REFERENCE = "S-TPL-003"

    # Runtime errors (S-RUN-xxx)
    RUNTIME_ERROR = "S-RUN-001"
    NO_ACTIVE_LOOP = "S-RUN-002"

    @property
    def category(self) -> str:
        """Error category (``configuration``, ``template`` or ``runtime``)."""
        prefix = self.value.split("-")[1]
        return {
            "CFG": "configuration",
            "TPL": "template",
            "RUN": "runtime",
        }.get(prefix, "unknown")


class TemplateError(Exception):
    """Base exception for all sickle errors.

        >>> try:
        ...     env.render(response, "home", data)
        ... except TemplateError as e:
        ...     log.error(e.format_compact())

    Attributes:
        code: Optional ErrorCode identifying the failure.
    """

    code: ErrorCode | None = None

    def __init__(self, message: str, *, code: ErrorCode | None = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)

    def format_compact(self) -> str:
        """Format as ``CODE: message`` for terminal display."""
        return terminal.format_error_header(
            self.code.value if self.code else None, str(self)
        )


class ConfigurationError(TemplateError):
    """A configured directory is missing, unreadable or unwritable."""

    code: ErrorCode | None = ErrorCode.PATH_NOT_FOUND

    def __init__(self, message: str, path: str | None = None, **kwargs):
        self.path = path
        super().__init__(message, **kwargs)


class NamespaceError(ConfigurationError):
    """A ``namespace::path`` identifier names an unregistered namespace."""

    code: ErrorCode | None = ErrorCode.NAMESPACE_NOT_DEFINED

    def __init__(self, namespace: str, template: str | None = None):
        self.namespace = namespace
        self.template = template
        message = f"Namespace '{namespace}' is not defined"
        if template:
            message += f" (template {terminal.location(repr(template))})"
        super().__init__(message)


class TemplateNotFoundError(TemplateError):
    """Template not found in the views path or its namespace root.

    Example:
            >>> env.exists("nonexistent")
        False
            >>> env.make("nonexistent")
        TemplateNotFoundError: Renderer cannot find template 'nonexistent'

    """

    code: ErrorCode | None = ErrorCode.TEMPLATE_NOT_FOUND


class TemplateSyntaxError(TemplateError):
    """The compiled form of a template could not be turned into code.

    When ``source`` and ``lineno`` are provided, the message includes the
    offending line of the generated source.
    """

    code: ErrorCode | None = ErrorCode.SYNTAX_ERROR

    def __init__(
        self,
        message: str,
        lineno: int | None = None,
        name: str | None = None,
        source: str | None = None,
        *,
        code: ErrorCode | None = None,
    ):
        self.lineno = lineno
        self.name = name
        self.source = source
        super().__init__(message, code=code)
        self.message = message
        self.args = (self._format_message(),)

    def _format_message(self) -> str:
        location = self.name or "<template>"
        if self.lineno:
            location += f":{self.lineno}"

        header = f"Syntax Error: {self.message}\n  --> {terminal.location(location)}"

        if self.source and self.lineno:
            lines = self.source.splitlines()
            if 0 < self.lineno <= len(lines):
                number = terminal.line_number(f"{self.lineno:>3}")
                gutter = terminal.dim_text("   |")
                return f"{header}\n{gutter}\n{number} | {lines[self.lineno - 1]}\n{gutter}"

        return header


class TemplateRuntimeError(TemplateError):
    """Execution of a compiled template failed.

    Output Format:
            ```
            Runtime Error: AttributeError: 'NoneType' object has no attribute 'title'
              Location: article
              Suggestion: Guard the value with @isset(post.title)
            ```

    Attributes:
        template_name: Identifier of the template being rendered
        suggestion: Optional actionable hint
    """

    code: ErrorCode | None = ErrorCode.RUNTIME_ERROR

    def __init__(
        self,
        message: str,
        *,
        template_name: str | None = None,
        suggestion: str | None = None,
    ):
        self.template_name = template_name
        self.suggestion = suggestion
        super().__init__(message)
        self.message = message
        self.args = (self._format_message(),)

    def _format_message(self) -> str:
        parts = [f"Runtime Error: {self.message}"]
        if self.template_name:
            parts.append(f"  Location: {terminal.location(self.template_name)}")
        if self.suggestion:
            parts.append(f"  {terminal.hint('Suggestion:')} {self.suggestion}")
        return "\n".join(parts)


class LoopError(TemplateRuntimeError):
    """Loop metadata was requested outside of any ``@foreach``/``@forelse``."""

    code: ErrorCode | None = ErrorCode.NO_ACTIVE_LOOP

    def __init__(self, message: str = "Attempt to read loop metadata with no active loop"):
        super().__init__(
            message,
            suggestion="Only use loop.* inside @foreach or @forelse",
        )
