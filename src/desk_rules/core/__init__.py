"""Core utilities shared by the rule engine, integrations and services."""

from desk_rules.core.cancellation import CancellationScope, CancellationToken
from desk_rules.core.exceptions import (
    DeskRulesError,
    RuleValidationError,
    ConditionLimitError,
    ConsequentTransitionError,
    ReorderError,
    ServerValidationError,
    DeskApiError,
    DeskConnectionError,
    DeskTimeoutError,
    RecordNotFoundError,
    RequestCancelledError,
    CatalogMismatchError,
    wrap_exception,
)
from desk_rules.core.retry import RetryConfig, READ_RETRY_CONFIG, retry_async

__all__ = [
    # Cancellation
    "CancellationScope",
    "CancellationToken",
    # Retry
    "RetryConfig",
    "READ_RETRY_CONFIG",
    "retry_async",
    # Exceptions
    "DeskRulesError",
    "RuleValidationError",
    "ConditionLimitError",
    "ConsequentTransitionError",
    "ReorderError",
    "ServerValidationError",
    "DeskApiError",
    "DeskConnectionError",
    "DeskTimeoutError",
    "RecordNotFoundError",
    "RequestCancelledError",
    "CatalogMismatchError",
    "wrap_exception",
]
