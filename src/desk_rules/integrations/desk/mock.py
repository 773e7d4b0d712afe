"""In-memory desk client for development and testing."""

from __future__ import annotations

import itertools
from typing import Any, Iterable, Sequence

from desk_shared import get_logger

from desk_rules.core.exceptions import DeskApiError, RecordNotFoundError, ServerValidationError
from desk_rules.integrations.desk.base import DeskClient
from desk_rules.models import (
    Agent,
    AgentGroup,
    Conditional,
    ConditionalError,
    ConditionErrorDetail,
    ConditionErrorEntry,
    ConditionErrorType,
    ConsequentErrorDetail,
    ConsequentErrorEntry,
    ConsequentErrorType,
    CustomField,
    CustomFieldType,
    Page,
    Rule,
    RuleCreate,
    RuleError,
    RuleOrder,
    RuleStatus,
    RuleType,
    RuleUpdate,
)
from desk_rules.rules.catalog import (
    CHANNEL_TYPE_KEY,
    CUSTOMER_FIELD_PREFIX,
    CUSTOMER_ID_KEY,
    CUSTOMER_NAME_KEY,
    TICKET_FIELD_PREFIX,
)

log = get_logger(__name__)


class MockDeskClient(DeskClient):
    """Desk client backed by in-memory dictionaries.

    Mirrors the server-side checks the rule screens depend on: condition keys
    must name an existing filterable field and a team target must exist.
    Failing checks raise ServerValidationError with the positional payload.
    """

    def __init__(
        self,
        *,
        ticket_fields: Iterable[CustomField] = (),
        customer_fields: Iterable[CustomField] = (),
        agents: Iterable[Agent] = (),
        groups: Iterable[AgentGroup] = (),
        rules: Iterable[Rule] = (),
    ):
        self.ticket_fields = list(ticket_fields)
        self.customer_fields = list(customer_fields)
        self.agents = {agent.id: agent for agent in agents}
        self.groups = {group.id: group for group in groups}
        self.rules: dict[int, Rule] = {rule.id: rule for rule in rules}
        self._ids = itertools.count(max(self.rules, default=0) + 1)

        self.calls: list[tuple[str, Any]] = []
        self._failures: dict[str, list[Exception]] = {}

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def fail_next(self, operation: str, exc: Exception, times: int = 1) -> None:
        """Make the next ``times`` calls of ``operation`` raise ``exc``."""
        self._failures.setdefault(operation, []).extend([exc] * times)

    def _enter(self, operation: str, argument: Any = None) -> None:
        self.calls.append((operation, argument))
        pending = self._failures.get(operation)
        if pending:
            exc = pending.pop(0)
            log.debug("Mock desk client failing call", operation=operation, error=str(exc))
            raise exc

    def call_count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    # ------------------------------------------------------------------
    # Server-side validation
    # ------------------------------------------------------------------

    def _known_keys(self) -> set[str]:
        keys = {CHANNEL_TYPE_KEY, CUSTOMER_ID_KEY, CUSTOMER_NAME_KEY}
        for prefix, fields in (
            (TICKET_FIELD_PREFIX, self.ticket_fields),
            (CUSTOMER_FIELD_PREFIX, self.customer_fields),
        ):
            keys.update(
                f"{prefix}.{field.key}" for field in fields if field.field_type != CustomFieldType.LINK
            )
        return keys

    def _check_conditional(self, conditional: Conditional) -> None:
        known = self._known_keys()
        entries = [
            ConditionErrorEntry(
                index=index,
                errors=[ConditionErrorDetail(type=ConditionErrorType.KEY, reason="INVALID_KEY")],
            )
            for index, condition in enumerate(conditional.conditions)
            if condition.key not in known
        ]

        consequent_errors: list[ConsequentErrorDetail] = []
        group = getattr(conditional.consequent, "group", None)
        if self.groups and group is not None and group.value not in self.groups:
            consequent_errors.append(
                ConsequentErrorDetail(type=ConsequentErrorType.GROUP, reason="INVALID_GROUP")
            )
        agent = getattr(conditional.consequent, "agent", None)
        if self.agents and agent is not None and agent.value not in self.agents:
            consequent_errors.append(
                ConsequentErrorDetail(type=ConsequentErrorType.AGENT, reason="INVALID_AGENT")
            )

        if entries or consequent_errors:
            rule_error = RuleError(
                conditional=ConditionalError(
                    conditions=entries or None,
                    consequent=ConsequentErrorEntry(errors=consequent_errors)
                    if consequent_errors
                    else None,
                )
            )
            raise ServerValidationError("Rule validation failed", rule_error=rule_error)

    def _of_type(self, rule_type: RuleType) -> list[Rule]:
        return sorted(
            (rule for rule in self.rules.values() if rule.type == rule_type),
            key=lambda rule: rule.order,
        )

    def _densify(self, rule_type: RuleType) -> None:
        for order, rule in enumerate(self._of_type(rule_type), start=1):
            if rule.order != order:
                self.rules[rule.id] = rule.model_copy(update={"order": order})

    def _get(self, rule_id: int) -> Rule:
        try:
            return self.rules[rule_id]
        except KeyError:
            raise RecordNotFoundError(
                f"Rule {rule_id} not found", details={"rule_id": rule_id}
            ) from None

    # ------------------------------------------------------------------
    # RuleStore
    # ------------------------------------------------------------------

    async def list_rules(self, rule_type: RuleType, offset: int = 0, limit: int = 50) -> Page[Rule]:
        self._enter("list_rules", rule_type)
        rules = self._of_type(rule_type)
        return Page[Rule](results=rules[offset : offset + limit], count=len(rules))

    async def get_rule(self, rule_id: int) -> Rule:
        self._enter("get_rule", rule_id)
        return self._get(rule_id)

    async def create_rule(self, payload: RuleCreate) -> Rule:
        self._enter("create_rule", payload)
        self._check_conditional(payload.conditional)
        rule = Rule(
            id=next(self._ids),
            name=payload.name,
            type=payload.type,
            status=RuleStatus.ON,
            order=len(self._of_type(payload.type)) + 1,
            conditional=payload.conditional,
        )
        self.rules[rule.id] = rule
        log.info("Mock rule created", rule_id=rule.id, rule_type=rule.type.value)
        return rule

    async def update_rule(self, payload: RuleUpdate) -> Rule:
        self._enter("update_rule", payload)
        rule = self._get(payload.id)
        if payload.conditional is not None:
            self._check_conditional(payload.conditional)

        update = payload.model_dump(exclude_none=True, exclude={"id"})
        if payload.conditional is not None:
            update["conditional"] = payload.conditional
        updated = rule.model_copy(update=update)
        self.rules[rule.id] = updated
        return updated

    async def delete_rule(self, rule_id: int) -> None:
        self._enter("delete_rule", rule_id)
        rule = self._get(rule_id)
        del self.rules[rule_id]
        self._densify(rule.type)

    async def reorder_rules(self, rule_type: RuleType, orders: Sequence[RuleOrder]) -> None:
        self._enter("reorder_rules", list(orders))
        current = {rule.id for rule in self._of_type(rule_type)}
        requested = {order.id for order in orders}
        positions = sorted(order.order for order in orders)
        if requested != current or positions != list(range(1, len(current) + 1)):
            raise DeskApiError(
                "Order list does not match the rules of this type",
                details={"rule_type": rule_type.value},
            )
        for order in orders:
            self.rules[order.id] = self.rules[order.id].model_copy(update={"order": order.order})

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    async def list_ticket_fields(self, offset: int = 0, limit: int = 100) -> Page[CustomField]:
        self._enter("list_ticket_fields")
        fields = self.ticket_fields[offset : offset + limit]
        return Page[CustomField](results=fields, count=len(self.ticket_fields))

    async def list_customer_fields(self, offset: int = 0, limit: int = 100) -> Page[CustomField]:
        self._enter("list_customer_fields")
        fields = self.customer_fields[offset : offset + limit]
        return Page[CustomField](results=fields, count=len(self.customer_fields))

    async def get_agent_group(self, group_id: int) -> AgentGroup:
        self._enter("get_agent_group", group_id)
        try:
            return self.groups[group_id]
        except KeyError:
            raise RecordNotFoundError(f"Agent group {group_id} not found") from None

    async def get_agent(self, agent_id: int) -> Agent:
        self._enter("get_agent", agent_id)
        try:
            return self.agents[agent_id]
        except KeyError:
            raise RecordNotFoundError(f"Agent {agent_id} not found") from None
