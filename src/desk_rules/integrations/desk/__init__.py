"""Desk API Integration Module.

Provides the rule store, custom field directory and agent directory used
by the rule screens.

Supported providers:
- http: Desk Platform API (project-scoped REST endpoints)
- mock: In-memory store for development and testing
"""

from desk_rules.integrations.desk.base import (
    AgentDirectory,
    CustomFieldDirectory,
    DeskClient,
    RuleStore,
)
from desk_rules.integrations.desk.factory import get_desk_client, reset_desk_client
from desk_rules.integrations.desk.mock import MockDeskClient


# Lazy import for the httpx-backed client
def __getattr__(name: str):
    """Lazy load the HTTP desk client."""
    if name == "HttpDeskClient":
        from desk_rules.integrations.desk.http import HttpDeskClient
        return HttpDeskClient
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    # Base classes
    "AgentDirectory",
    "CustomFieldDirectory",
    "DeskClient",
    "RuleStore",
    "MockDeskClient",
    # Provider clients (lazy loaded)
    "HttpDeskClient",
    # Factory
    "get_desk_client",
    "reset_desk_client",
]
