"""Pytest configuration and fixtures for desk rule tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Add src and the shared libraries to path
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "shared-libs" / "src"))

# Set test environment
os.environ["DESK_ENV"] = "development"
os.environ["DESK_API__PROVIDER"] = "mock"


@pytest.fixture
def formatter():
    """English message catalog."""
    from desk_rules.messages import CatalogFormatter

    return CatalogFormatter()


@pytest.fixture
def ticket_fields():
    """Ticket custom fields of the test project (one Link field, not filterable)."""
    from desk_rules.models import CustomField, CustomFieldType

    return [
        CustomField(id=1, key="order_id", name="Order ID", field_type=CustomFieldType.INTEGER),
        CustomField(
            id=2,
            key="plan",
            name="Plan",
            field_type=CustomFieldType.DROPDOWN,
            options=["free", "pro"],
        ),
        CustomField(id=3, key="site", name="Website", field_type=CustomFieldType.LINK),
        CustomField(id=4, key="note", name="internal note", field_type=CustomFieldType.STRING),
    ]


@pytest.fixture
def customer_fields():
    from desk_rules.models import CustomField, CustomFieldType

    return [
        CustomField(
            id=5,
            key="tier",
            name="Tier",
            field_type=CustomFieldType.DROPDOWN,
            options=["gold", "silver"],
        ),
    ]


@pytest.fixture
def catalog(ticket_fields, customer_fields):
    from desk_rules.rules.catalog import build_catalog

    return build_catalog(ticket_fields, customer_fields)


@pytest.fixture
def groups():
    from desk_rules.models import AgentGroup

    return [
        AgentGroup.model_validate({"id": 10, "name": "Support", "members": [{"id": 1}, {"id": 2}]}),
        AgentGroup.model_validate({"id": 20, "name": "Billing", "memberCount": 4}),
    ]


@pytest.fixture
def custom_bot():
    from desk_rules.models import Agent

    return Agent.model_validate(
        {
            "id": 100,
            "displayName": "Order helper",
            "agentType": "BOT",
            "bot": {"type": "CUSTOM"},
            "groups": [{"id": 10}],
        }
    )


@pytest.fixture
def faq_bot():
    from desk_rules.models import Agent

    return Agent.model_validate(
        {
            "id": 101,
            "displayName": "FAQ",
            "agentType": "BOT",
            "bot": {"type": "FAQ"},
            "groupIds": [10, 20],
        }
    )


@pytest.fixture
def unknown_bot():
    """Bot agent whose subtype this version does not know."""
    from desk_rules.models import Agent

    return Agent.model_validate(
        {"id": 102, "displayName": "Concierge", "agentType": "BOT", "bot": {"type": "GENERATIVE"}}
    )


@pytest.fixture
def make_rule():
    """Factory for persisted rules."""
    from desk_rules.models import (
        Condition,
        Conditional,
        ConditionOperator,
        ConditionType,
        ConsequentTarget,
        GroupConsequent,
        Rule,
        RuleMatch,
        RuleType,
    )

    def _make(
        rule_id: int = 1,
        name: str = "VIP customers",
        order: int = 1,
        *,
        rule_type: RuleType = RuleType.ASSIGNMENT,
        conditions=None,
        consequent=None,
        match: RuleMatch = RuleMatch.ANY,
        **kwargs,
    ) -> Rule:
        if conditions is None:
            conditions = [
                Condition(
                    key="customer.display_name",
                    type=ConditionType.TEXT,
                    operator=ConditionOperator.IS,
                    value="vip",
                )
            ]
        if consequent is None:
            consequent = GroupConsequent(group=ConsequentTarget(value=10))
        return Rule(
            id=rule_id,
            name=name,
            type=rule_type,
            order=order,
            conditional=Conditional(match=match, conditions=conditions, consequent=consequent),
            **kwargs,
        )

    return _make


@pytest.fixture
def desk_client(ticket_fields, customer_fields, groups, custom_bot, faq_bot):
    """In-memory desk client seeded with the test project's directories."""
    from desk_rules.integrations.desk.mock import MockDeskClient

    return MockDeskClient(
        ticket_fields=ticket_fields,
        customer_fields=customer_fields,
        agents=[custom_bot, faq_bot],
        groups=groups,
    )


@pytest.fixture
def test_settings():
    """Settings with default limits, independent of config files."""
    from desk_rules.config import RetrySettings, RuleSettings, Settings

    return Settings(
        environment="test",
        retry=RetrySettings(max_attempts=1, base_delay=0.0, max_delay=0.0),
        rules=RuleSettings(max_rules=20, list_limit=50, custom_field_limit=100),
    )


@pytest.fixture
def notifications():
    from desk_rules.services.notifications import NotificationCenter

    return NotificationCenter()
