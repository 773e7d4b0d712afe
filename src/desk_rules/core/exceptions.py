"""Desk Rules Exception Hierarchy.

Provides structured error handling with context preservation
and proper HTTP status code mapping.

Error families:
- RuleValidationError: client-side validation and illegal local transitions
- ServerValidationError: validation failures reported by the desk API
- DeskApiError: transport and infrastructure failures
- CatalogMismatchError: data reaching the engine that the catalog does not know
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from desk_rules.models import RuleError


class DeskRulesError(Exception):
    """Base exception for all desk rule errors.

    Provides:
    - Structured error context
    - HTTP status code mapping
    - Logging-friendly representation
    """

    status_code: int = 500
    error_code: str = "DESK_RULES_ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Additional context for debugging
            cause: Original exception if wrapping
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.cause:
            result["cause"] = str(self.cause)
        return result

    def __str__(self) -> str:
        """String representation for logging."""
        parts = [f"{self.error_code}: {self.message}"]
        if self.details:
            parts.append(f"details={self.details}")
        if self.cause:
            parts.append(f"cause={self.cause}")
        return " | ".join(parts)


# =============================================================================
# Client Validation Errors
# =============================================================================


class RuleValidationError(DeskRulesError):
    """Rule input failed local validation."""

    status_code = 400
    error_code = "RULE_VALIDATION_ERROR"


class ConditionLimitError(RuleValidationError):
    """Condition count would leave the 1-10 range."""

    error_code = "CONDITION_LIMIT"


class ConsequentTransitionError(RuleValidationError):
    """Consequent type switch not permitted for the rule type."""

    error_code = "CONSEQUENT_TRANSITION"


class ReorderError(RuleValidationError):
    """Drag-and-drop move with positions outside the rule list."""

    error_code = "REORDER_ERROR"


# =============================================================================
# Server Validation Errors
# =============================================================================


class ServerValidationError(DeskRulesError):
    """Desk API rejected a rule with a per-field validation payload."""

    status_code = 400
    error_code = "SERVER_VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        *,
        rule_error: RuleError | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, details=details, cause=cause)
        self.rule_error = rule_error


# =============================================================================
# Transport Errors
# =============================================================================


class DeskApiError(DeskRulesError):
    """Base class for desk API transport and infrastructure errors."""

    status_code = 502
    error_code = "DESK_API_ERROR"


class DeskConnectionError(DeskApiError):
    """Failed to reach the desk API."""

    status_code = 503
    error_code = "DESK_CONNECTION_ERROR"


class DeskTimeoutError(DeskApiError):
    """Desk API request timed out."""

    status_code = 504
    error_code = "DESK_TIMEOUT"


class RecordNotFoundError(DeskApiError):
    """Requested rule, field, agent or group not found."""

    status_code = 404
    error_code = "RECORD_NOT_FOUND"


class RequestCancelledError(DeskRulesError):
    """Request result discarded because its view went away."""

    status_code = 499
    error_code = "REQUEST_CANCELLED"


# =============================================================================
# Invariant Violations
# =============================================================================


class CatalogMismatchError(DeskRulesError):
    """Value outside the known catalog reached the engine."""

    error_code = "CATALOG_MISMATCH"


# =============================================================================
# Utility Functions
# =============================================================================


def wrap_exception(
    exc: Exception,
    wrapper_class: type[DeskRulesError] = DeskRulesError,
    message: str | None = None,
    **details: Any,
) -> DeskRulesError:
    """Wrap a generic exception in a DeskRulesError.

    Args:
        exc: Original exception to wrap
        wrapper_class: DeskRulesError subclass to use
        message: Override message (defaults to str(exc))
        **details: Additional context details

    Returns:
        Wrapped DeskRulesError instance
    """
    return wrapper_class(
        message=message or str(exc),
        details=details or None,
        cause=exc,
    )
