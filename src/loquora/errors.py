"""
Loquora exceptions and diagnostics.

Error code ranges:
- E1xx: Parser errors
- E4xx: Runtime errors
- E5xx: Module errors

Every failure is an exception carrying a Diagnostic. Parse errors are fatal
for the parse unit; runtime errors abort the enclosing program run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Sequence
from .tokens import SourceSpan


class ErrorSeverity(Enum):
    """Severity of a diagnostic. Every Loquora failure is fatal."""
    ERROR = "error"


@dataclass
class Diagnostic:
    """A single diagnostic message (error, warning, etc.)."""
    code: str                       # E101, E401, etc.
    message: str                    # Human-readable message
    severity: ErrorSeverity
    span: Optional[SourceSpan] = None   # Runtime errors may be raised unlocated
    source_line: Optional[str] = None   # The actual line of source code
    hints: List[str] = field(default_factory=list)

    def format(self, show_source: bool = True) -> str:
        """Format the diagnostic for display."""
        parts = []

        # Header: location: severity[code]: message
        if self.span is not None:
            parts.append(f"{self.span.start}: {self.severity.value}[{self.code}]: {self.message}")
        else:
            parts.append(f"{self.severity.value}[{self.code}]: {self.message}")

        # Source line with caret
        if show_source and self.span is not None and self.source_line is not None:
            parts.append("  |")
            line_num = str(self.span.start.line)
            parts.append(f"{line_num:>3} | {self.source_line}")

            col = self.span.start.column
            if self.span.start.line == self.span.end.line:
                end_col = self.span.end.column
            else:
                end_col = len(self.source_line) + 1
            underline_len = max(1, end_col - col)
            parts.append(f"    | {' ' * (col - 1)}{'^' * underline_len}")

        for hint in self.hints:
            parts.append(f"    = hint: {hint}")

        return "\n".join(parts)

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict for tooling integration."""
        data = {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "range": None,
            "hints": self.hints,
        }
        if self.span is not None:
            data["range"] = {
                "start": {
                    "line": self.span.start.line,
                    "column": self.span.start.column,
                    "offset": self.span.start.offset,
                },
                "end": {
                    "line": self.span.end.line,
                    "column": self.span.end.column,
                    "offset": self.span.end.offset,
                },
            }
        return data


class LoquoraError(Exception):
    """Base exception for all Loquora errors."""

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        super().__init__(diagnostic.message)

    @property
    def code(self) -> str:
        return self.diagnostic.code

    @property
    def span(self) -> Optional[SourceSpan]:
        return self.diagnostic.span

    def locate(self, span: SourceSpan, source_line: Optional[str] = None) -> "LoquoraError":
        """Attach a location if the error was raised without one."""
        if self.diagnostic.span is None:
            self.diagnostic.span = span
            self.diagnostic.source_line = source_line
        return self

    def __str__(self) -> str:
        return self.diagnostic.format()


class ParserError(LoquoraError):
    """Error during parsing (E1xx)."""
    pass


class RuntimeFailure(LoquoraError):
    """Error during evaluation (E4xx)."""
    pass


class UndefinedVariableError(RuntimeFailure):
    pass


class UndefinedToolError(RuntimeFailure):
    pass


class UndefinedTypeError(RuntimeFailure):
    pass


class TypeMismatchError(RuntimeFailure):
    """A value of the wrong kind reached an operation."""

    def __init__(self, diagnostic: Diagnostic, expected: str, actual: str):
        super().__init__(diagnostic)
        self.expected = expected
        self.actual = actual


class FieldNotFoundError(RuntimeFailure):
    pass


class RequiredFieldMissingError(RuntimeFailure):
    pass


class NotAnObjectError(RuntimeFailure):
    pass


class NotCallableError(RuntimeFailure):
    pass


class InvalidArgumentsError(RuntimeFailure):
    pass


class DivisionByZeroError(RuntimeFailure):
    pass


class BreakOutsideLoopError(RuntimeFailure):
    pass


class ContinueOutsideLoopError(RuntimeFailure):
    pass


class ReturnOutsideToolError(RuntimeFailure):
    pass


class EmptyPathError(RuntimeFailure):
    pass


class PanicError(RuntimeFailure):
    """Free-form failure raised by builtins such as panic()."""
    pass


class ModuleError(LoquoraError):
    """Error while resolving or loading a module (E5xx)."""
    pass


class ModuleNotFound(ModuleError):
    pass


class CircularImportError(ModuleError):
    pass


class ModuleReadError(ModuleError):
    pass


def _error(code: str, message: str, span: Optional[SourceSpan] = None,
           source_line: Optional[str] = None, hints: Optional[List[str]] = None) -> Diagnostic:
    return Diagnostic(
        code=code,
        message=message,
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
        hints=hints or [],
    )


# --- Parser error codes ---

def error_unexpected_token(expected: str, found: str, span: SourceSpan,
                           source_line: str = None) -> ParserError:
    """E101: Unexpected token."""
    return ParserError(_error(
        "E101", f"expected {expected}, found {found}", span, source_line,
    ))


def error_unexpected_eof(expected: str, span: SourceSpan) -> ParserError:
    """E102: Unexpected end of input."""
    return ParserError(_error("E102", f"unexpected end of input, expected {expected}", span))


def error_invalid_expression(found: str, span: SourceSpan, source_line: str = None) -> ParserError:
    """E103: Token cannot start an expression."""
    return ParserError(_error(
        "E103", f"expected expression, found {found}", span, source_line,
    ))


def error_invalid_export(found: str, span: SourceSpan, source_line: str = None) -> ParserError:
    """E104: Export of something other than a tool, struct, or template."""
    return ParserError(_error(
        "E104", f"cannot export {found}", span, source_line,
        hints=["only tool, struct, and template declarations can be exported"],
    ))


def error_invalid_literal(text: str, reason: str, span: SourceSpan,
                          source_line: str = None) -> ParserError:
    """E105: Literal that cannot be represented."""
    return ParserError(_error("E105", f"invalid literal {text}: {reason}", span, source_line))


# --- Runtime error codes ---

def error_undefined_variable(name: str, span: SourceSpan = None) -> UndefinedVariableError:
    """E401: Undefined variable."""
    return UndefinedVariableError(_error("E401", f"undefined variable '{name}'", span))


def error_undefined_tool(name: str, span: SourceSpan = None) -> UndefinedToolError:
    """E402: Undefined tool."""
    return UndefinedToolError(_error("E402", f"undefined tool '{name}'", span))


def error_undefined_type(name: str, span: SourceSpan = None) -> UndefinedTypeError:
    """E403: Undefined type."""
    return UndefinedTypeError(_error("E403", f"undefined type '{name}'", span))


def error_type_mismatch(expected: str, actual: str, span: SourceSpan = None) -> TypeMismatchError:
    """E404: Type mismatch."""
    return TypeMismatchError(
        _error("E404", f"type mismatch: expected {expected}, got {actual}", span),
        expected, actual,
    )


def error_field_not_found(name: str, type_name: str = None,
                          span: SourceSpan = None) -> FieldNotFoundError:
    """E405: Field not found."""
    if type_name:
        message = f"field '{name}' not found on {type_name}"
    else:
        message = f"field '{name}' not found"
    return FieldNotFoundError(_error("E405", message, span))


def error_required_field_missing(name: str, type_name: str,
                                 span: SourceSpan = None) -> RequiredFieldMissingError:
    """E406: Required field missing."""
    return RequiredFieldMissingError(_error(
        "E406", f"required field '{name}' missing in {type_name}", span,
        hints=[f"mark the field optional with '{name}: T?' to allow omitting it"],
    ))


def error_not_an_object(type_name: str, span: SourceSpan = None) -> NotAnObjectError:
    """E407: Value is not an object."""
    return NotAnObjectError(_error("E407", f"value of type {type_name} is not an object", span))


def error_not_callable(type_name: str, span: SourceSpan = None) -> NotCallableError:
    """E408: Value is not callable."""
    return NotCallableError(_error("E408", f"value of type {type_name} is not callable", span))


def error_invalid_arguments(message: str, span: SourceSpan = None) -> InvalidArgumentsError:
    """E409: Invalid arguments."""
    return InvalidArgumentsError(_error("E409", f"invalid arguments: {message}", span))


def error_division_by_zero(span: SourceSpan = None) -> DivisionByZeroError:
    """E410: Division by zero."""
    return DivisionByZeroError(_error("E410", "division by zero", span))


def error_break_outside_loop(span: SourceSpan = None) -> BreakOutsideLoopError:
    """E411: break outside loop."""
    return BreakOutsideLoopError(_error("E411", "'break' outside loop", span))


def error_continue_outside_loop(span: SourceSpan = None) -> ContinueOutsideLoopError:
    """E412: continue outside loop."""
    return ContinueOutsideLoopError(_error("E412", "'continue' outside loop", span))


def error_return_outside_tool(span: SourceSpan = None) -> ReturnOutsideToolError:
    """E413: return outside tool."""
    return ReturnOutsideToolError(_error("E413", "'return' outside tool", span))


def error_empty_path(span: SourceSpan = None) -> EmptyPathError:
    """E414: Empty assignment path."""
    return EmptyPathError(_error("E414", "empty assignment path", span))


def error_panic(message: str, span: SourceSpan = None) -> PanicError:
    """E420: Free-form failure."""
    return PanicError(_error("E420", message, span))


# --- Module error codes ---

def error_module_not_found(path: str, searched: Sequence[str]) -> ModuleNotFound:
    """E501: Module not found."""
    return ModuleNotFound(_error(
        "E501", f"module not found: {path} (searched: {', '.join(searched)})",
    ))


def error_circular_import(chain: Sequence[str]) -> CircularImportError:
    """E502: Circular import."""
    return CircularImportError(_error(
        "E502", f"circular import detected: {' -> '.join(chain)}",
    ))


def error_module_read(path: str, reason: str) -> ModuleReadError:
    """E503: Module could not be read."""
    return ModuleReadError(_error("E503", f"failed to read module {path}: {reason}"))


class DiagnosticCollector:
    """Collects diagnostics across several parse units."""

    def __init__(self, max_errors: int = 20):
        self.diagnostics: List[Diagnostic] = []
        self.max_errors = max_errors
        self._error_count = 0

    def add(self, diagnostic: Diagnostic) -> None:
        """Add a diagnostic."""
        self.diagnostics.append(diagnostic)
        self._error_count += 1

    def add_error(self, error: LoquoraError) -> None:
        """Add an error exception as a diagnostic."""
        self.add(error.diagnostic)

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def has_errors(self) -> bool:
        return self._error_count > 0

    @property
    def should_stop(self) -> bool:
        """Check if we've hit the max error limit."""
        return self._error_count >= self.max_errors

    def format_all(self, show_source: bool = True) -> str:
        """Format all diagnostics for display."""
        parts = [d.format(show_source) for d in self.diagnostics]
        if self._error_count > 0:
            parts.append(f"{self._error_count} error(s)")
        return "\n\n".join(parts)

    def to_json(self) -> dict:
        """Convert all diagnostics to JSON format."""
        return {
            "diagnostics": [d.to_json() for d in self.diagnostics],
            "error_count": self._error_count,
        }
