"""
Exception hierarchy for scopegate.

All scopegate exceptions inherit from ScopegateError, allowing callers to catch
all scopegate-specific exceptions with a single except clause.

Exception Categories:
    - EvaluatorFormatError: Policy document is malformed
    - PermissionsFormatError: Grants document is malformed
    - UnknownScopeFieldError: Scope template references an unsupported field
    - ScopeMutationError: A scope mutator failed while rewriting a tree

Missing URL parameters during injection are NOT errors. They resolve to an
empty segment so the check fails closed at evaluation time.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Format errors: 1xxx
ERROR_EVALUATOR_FORMAT = 1001
ERROR_PERMISSIONS_FORMAT = 1002

# Construction errors: 2xxx
ERROR_UNKNOWN_SCOPE_FIELD = 2001

# Mutation errors: 3xxx
ERROR_SCOPE_MUTATION = 3001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class ScopegateError(Exception):
    """
    Base exception for all scopegate errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Format Errors
# =============================================================================


@dataclass
class EvaluatorFormatError(ScopegateError):
    """
    Raised when a policy document cannot be decoded into an evaluator.

    Callers must not use any partially decoded tree.

    Attributes:
        path: Location of the offending node (e.g. "any[1].scopes[0]")
        reason: What is wrong with the node
    """

    path: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            where = self.path or "<root>"
            self.message = f"Invalid evaluator at {where}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_EVALUATOR_FORMAT
        if not self.suggestion:
            self.suggestion = (
                'Each node must be {"action": str, "scopes": [str]}, '
                '{"any": [node]} or {"all": [node]}'
            )
        self.context.update({
            "path": self.path,
            "reason": self.reason,
        })


@dataclass
class PermissionsFormatError(ScopegateError):
    """Raised when a granted-permissions document is malformed."""

    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid permissions document: {self.reason}"
        if self.code == 0:
            self.code = ERROR_PERMISSIONS_FORMAT
        if not self.suggestion:
            self.suggestion = "Grants must map each action to a list of scope strings"
        self.context["reason"] = self.reason


# =============================================================================
# Construction Errors
# =============================================================================


@dataclass
class UnknownScopeFieldError(ScopegateError):
    """
    Raised when a scope template references a field that ScopeParams lacks.

    This is a programming error in code-built policies, raised as soon as
    the template is assembled.
    """

    field_name: str = ""
    supported: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown scope field: {self.field_name}"
        if self.code == 0:
            self.code = ERROR_UNKNOWN_SCOPE_FIELD
        if not self.suggestion and self.supported:
            self.suggestion = f"Use one of: {', '.join(self.supported)}"
        self.context.update({
            "field_name": self.field_name,
            "supported": self.supported,
        })


# =============================================================================
# Mutation Errors
# =============================================================================


@dataclass
class ScopeMutationError(ScopegateError):
    """Raised when a scope mutator fails while rewriting an evaluator tree."""

    action: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Scope mutation failed for {self.action}: {self.underlying_error}"
            )
        if self.code == 0:
            self.code = ERROR_SCOPE_MUTATION
        self.context.update({
            "action": self.action,
            "underlying_error": self.underlying_error,
        })
