"""Desk API collaborator interfaces.

Defines the abstract rule store, custom field directory and agent
directory the rule engine services talk to. All desk clients must
implement these interfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from desk_rules.models import (
    Agent,
    AgentGroup,
    CustomField,
    Page,
    Rule,
    RuleCreate,
    RuleOrder,
    RuleType,
    RuleUpdate,
)


class RuleStore(ABC):
    """Rule persistence.

    Validation failures raise ServerValidationError carrying the per-field
    RuleError payload; transport failures raise DeskApiError subclasses.
    """

    @abstractmethod
    async def list_rules(self, rule_type: RuleType, offset: int = 0, limit: int = 50) -> Page[Rule]:
        """List rules of one type ordered by ``order``."""
        pass

    @abstractmethod
    async def get_rule(self, rule_id: int) -> Rule:
        """Fetch one rule.

        Raises:
            RecordNotFoundError: no rule with that id
        """
        pass

    @abstractmethod
    async def create_rule(self, payload: RuleCreate) -> Rule:
        pass

    @abstractmethod
    async def update_rule(self, payload: RuleUpdate) -> Rule:
        pass

    @abstractmethod
    async def delete_rule(self, rule_id: int) -> None:
        pass

    @abstractmethod
    async def reorder_rules(self, rule_type: RuleType, orders: Sequence[RuleOrder]) -> None:
        """Persist the full ``{id, order}`` list of one rule type in one request."""
        pass


class CustomFieldDirectory(ABC):
    """Ticket and customer custom field definitions."""

    @abstractmethod
    async def list_ticket_fields(self, offset: int = 0, limit: int = 100) -> Page[CustomField]:
        pass

    @abstractmethod
    async def list_customer_fields(self, offset: int = 0, limit: int = 100) -> Page[CustomField]:
        pass


class AgentDirectory(ABC):
    """Display data of an already chosen consequent target."""

    @abstractmethod
    async def get_agent_group(self, group_id: int) -> AgentGroup:
        pass

    @abstractmethod
    async def get_agent(self, agent_id: int) -> Agent:
        pass


class DeskClient(RuleStore, CustomFieldDirectory, AgentDirectory):
    """Complete desk API client used by the rule services."""

    async def aclose(self) -> None:
        """Release network resources. No-op by default."""
        return None

    async def __aenter__(self) -> DeskClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
