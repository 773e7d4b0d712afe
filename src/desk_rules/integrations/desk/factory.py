"""Desk Client Factory.

Creates the desk client configured by ``api.provider``.

Supported providers:
- http: Desk Platform API over httpx
- mock: In-memory store for development and testing
"""

from __future__ import annotations

from desk_shared import get_logger

from desk_rules.config import get_settings
from desk_rules.integrations.desk.base import DeskClient
from desk_rules.integrations.desk.mock import MockDeskClient

log = get_logger(__name__)


# Singleton instance
_desk_client: DeskClient | None = None


def get_desk_client() -> DeskClient:
    """Get the configured desk client.

    Returns:
        Desk client instance based on config.
    """
    global _desk_client

    if _desk_client is not None:
        return _desk_client

    settings = get_settings()
    api = settings.api
    provider = api.provider.lower()
    log.info("Initializing desk client", provider=provider)

    if provider == "http":
        if not api.api_token or not api.project_id:
            log.warning("Desk API credentials not configured, using mock desk client")
            _desk_client = MockDeskClient()
        else:
            from desk_rules.integrations.desk.http import HttpDeskClient

            _desk_client = HttpDeskClient.from_settings(settings)
            log.info(
                "Desk API client initialized",
                base_url=api.base_url,
                project_id=api.project_id,
                region=api.region or None,
            )

    elif provider == "mock":
        _desk_client = MockDeskClient()
        log.info("Mock desk client initialized")

    else:
        log.warning("Unknown desk API provider, using mock", provider=provider)
        _desk_client = MockDeskClient()

    return _desk_client


def reset_desk_client() -> None:
    """Reset the desk client (for testing)."""
    global _desk_client
    _desk_client = None
