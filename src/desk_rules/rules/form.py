"""Rule form controller.

Holds the editable state of one rule (name, match policy, conditions,
consequent), applies the dependent resets each edit implies, derives client
validation errors and decides whether the form may be submitted.

Conditions are stored with a synthetic id that survives insertions and
removals; positions only matter when talking to the desk API, whose
validation errors are keyed by condition index.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Sequence

from pydantic import ValidationError

from desk_shared import get_logger

from desk_rules.core.exceptions import (
    ConditionLimitError,
    RuleValidationError,
    wrap_exception,
)
from desk_rules.messages import DETAIL, MessageFormatter
from desk_rules.models import (
    MAX_CONDITIONS,
    MIN_CONDITIONS,
    RULE_NAME_MAX_LENGTH,
    Agent,
    Condition,
    ConditionErrorMessage,
    ConditionOperator,
    Conditional,
    ConsequentType,
    Rule,
    RuleCreate,
    RuleError,
    RuleMatch,
    RuleType,
    RuleUpdate,
    TicketPriority,
)
from desk_rules.rules import consequents, server_errors
from desk_rules.rules.catalog import ConditionKeyCatalog
from desk_rules.rules.consequents import AnyConsequent
from desk_rules.rules.errors import FieldError, condition_field
from desk_rules.rules.operators import is_legal, requires_value
from desk_rules.rules.values import (
    channel_conflict,
    channel_conflict_error,
    ValueControl,
    reset_condition,
    resolve_control,
    validate_value,
)

log = get_logger(__name__)

_FORM = f"{DETAIL}.form"

_uids = itertools.count(1)


@dataclass(frozen=True)
class ConditionSlot:
    """Condition with a position-independent identity."""

    uid: int
    condition: Condition


@dataclass(frozen=True)
class RuleFormData:
    """Comparable snapshot of the editable rule state."""

    name: str
    match: RuleMatch
    conditions: tuple[Condition, ...]
    consequent: AnyConsequent


def _new_slot(condition: Condition | None = None) -> ConditionSlot:
    return ConditionSlot(uid=next(_uids), condition=condition or Condition())


def _is_condition_complete(condition: Condition) -> bool:
    if not condition.key:
        return False
    return not requires_value(condition.operator) or bool(condition.value)


def default_form_data(rule_type: RuleType) -> RuleFormData:
    """State of a blank form: no name, match any, one empty condition."""
    return RuleFormData(
        name="",
        match=RuleMatch.ANY,
        conditions=(Condition(),),
        consequent=consequents.default_consequent(rule_type),
    )


class RuleForm:
    """Editable state of one rule.

    A form without ``rule_id`` creates a rule; with one it edits that rule.
    The snapshot is the last persisted state (or the blank defaults while
    creating) and drives submit eligibility and discard confirmation.
    """

    def __init__(
        self,
        rule_type: RuleType,
        catalog: ConditionKeyCatalog,
        *,
        rule_id: int | None = None,
        data: RuleFormData | None = None,
        agent: Agent | None = None,
    ) -> None:
        self.rule_type = rule_type
        self.catalog = catalog
        self.rule_id = rule_id
        self.agent = agent
        self.server_error: RuleError | None = None

        data = data or default_form_data(rule_type)
        self._snapshot = data
        self.name = data.name
        self.match = data.match
        self._slots: list[ConditionSlot] = [_new_slot(c) for c in data.conditions]
        self.consequent: AnyConsequent = data.consequent

    @classmethod
    def from_rule(
        cls,
        rule: Rule,
        catalog: ConditionKeyCatalog,
        *,
        agent: Agent | None = None,
    ) -> RuleForm:
        data = RuleFormData(
            name=rule.name,
            match=rule.conditional.match,
            conditions=tuple(rule.conditional.conditions),
            consequent=rule.conditional.consequent,
        )
        form = cls(rule.type, catalog, rule_id=rule.id, data=data, agent=agent)
        form.server_error = server_errors.normalize(rule.error)
        return form

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_editing(self) -> bool:
        return self.rule_id is not None

    @property
    def slots(self) -> list[ConditionSlot]:
        return list(self._slots)

    @property
    def conditions(self) -> list[Condition]:
        return [slot.condition for slot in self._slots]

    @property
    def snapshot(self) -> RuleFormData:
        return self._snapshot

    def data(self) -> RuleFormData:
        return RuleFormData(
            name=self.name,
            match=self.match,
            conditions=tuple(self.conditions),
            consequent=self.consequent,
        )

    def index_of(self, uid: int) -> int:
        for index, slot in enumerate(self._slots):
            if slot.uid == uid:
                return index
        raise RuleValidationError(f"No condition with id {uid}", details={"uid": uid})

    def _slot(self, index: int) -> ConditionSlot:
        if not 0 <= index < len(self._slots):
            raise RuleValidationError(
                f"Condition index {index} out of range",
                details={"index": index, "count": len(self._slots)},
            )
        return self._slots[index]

    def _replace(self, index: int, condition: Condition) -> None:
        self._slots[index] = ConditionSlot(uid=self._slots[index].uid, condition=condition)

    def control_for(self, index: int) -> ValueControl:
        condition = self._slot(index).condition
        return resolve_control(
            self.catalog, condition.key, condition.operator, self.consequent, self.agent
        )

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def set_name(self, name: str) -> None:
        self.name = name

    def set_match(self, match: RuleMatch | str) -> None:
        self.match = RuleMatch(match)

    def add_condition(self) -> int:
        """Append an empty condition and return its id.

        Raises:
            ConditionLimitError: the rule already has the maximum of conditions
        """
        if len(self._slots) >= MAX_CONDITIONS:
            raise ConditionLimitError(
                f"A rule can have at most {MAX_CONDITIONS} conditions",
                details={"count": len(self._slots)},
            )
        slot = _new_slot()
        self._slots.append(slot)
        return slot.uid

    def remove_condition(self, index: int) -> None:
        """Remove a condition; pending server errors after it move up.

        Raises:
            ConditionLimitError: it is the last remaining condition
        """
        self._slot(index)
        if len(self._slots) <= MIN_CONDITIONS:
            raise ConditionLimitError(
                f"A rule needs at least {MIN_CONDITIONS} condition",
                details={"count": len(self._slots)},
            )
        del self._slots[index]
        self.server_error = server_errors.drop_condition(self.server_error, index)

    def set_condition_key(self, index: int, key: str | None) -> None:
        """Select a condition key; operator and value start over."""
        self._slot(index)
        if key is not None:
            entry = self.catalog.get(key)
            if entry is None or not entry.selectable:
                raise RuleValidationError(
                    f"Condition key {key!r} is not selectable", details={"key": key}
                )
        condition = reset_condition(key)
        if key is not None:
            condition = condition.model_copy(update={"type": self.catalog.type_of(key)})
        self._replace(index, condition)
        self.server_error = server_errors.clear_condition(self.server_error, index)

    def set_condition_operator(self, index: int, operator: ConditionOperator | str) -> None:
        """Select an operator; a value-less operator drops the value."""
        condition = self._slot(index).condition
        operator = ConditionOperator(operator)
        condition_type = self.catalog.type_of(condition.key)
        if not is_legal(operator, condition_type):
            raise RuleValidationError(
                f"Operator {operator.value} is not available for {condition_type.value} conditions",
                details={"operator": operator.value, "type": condition_type.value},
            )
        update: dict[str, object] = {"operator": operator}
        if not requires_value(operator):
            update["value"] = None
        self._replace(index, condition.model_copy(update=update))
        self.server_error = server_errors.drop_value_errors(self.server_error, index)

    def set_condition_value(self, index: int, value: str | int | None) -> None:
        condition = self._slot(index).condition
        if not requires_value(condition.operator):
            value = None
        elif value is not None and not isinstance(value, str):
            value = str(value)
        self._replace(index, condition.model_copy(update={"value": value}))
        self.server_error = server_errors.drop_value_errors(self.server_error, index)

    def set_consequent_type(self, consequent_type: ConsequentType | str) -> None:
        """Switch the consequent type, clearing team and agent selections."""
        updated = consequents.transition(
            self.consequent, ConsequentType(consequent_type), self.rule_type
        )
        if updated is not self.consequent:
            self.consequent = updated
            self.agent = None
        self.server_error = server_errors.clear_consequent(self.server_error)

    def select_group(self, group_id: int | None) -> None:
        updated = consequents.select_group(self.consequent, group_id)
        if consequents.slot_value(updated, "agent") is None:
            self.agent = None
        self.consequent = updated
        self.server_error = server_errors.clear_consequent(self.server_error)

    def select_agent(self, agent: Agent | None) -> None:
        self.consequent = consequents.select_agent(self.consequent, agent)
        self.agent = agent
        self.server_error = server_errors.clear_consequent(self.server_error)

    def select_priority(self, priority: TicketPriority | str | None) -> None:
        self.consequent = consequents.select_priority(self.consequent, priority)
        self.server_error = server_errors.clear_consequent(self.server_error)

    def apply_server_error(self, rule_error: RuleError | None) -> None:
        self.server_error = server_errors.normalize(rule_error)
        if self.server_error is not None:
            log.info(
                "Server validation errors applied to rule form",
                rule_id=self.rule_id,
                condition_errors=len(self.server_error.conditional.conditions or []),
                consequent_error=self.server_error.conditional.consequent is not None,
            )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _name_errors(self, formatter: MessageFormatter) -> list[FieldError]:
        trimmed = self.name.strip()
        if not trimmed:
            return [
                FieldError("name", "required", formatter.format(f"{_FORM}.name.error.required"))
            ]
        if len(trimmed) > RULE_NAME_MAX_LENGTH:
            return [
                FieldError(
                    "name",
                    "maximum",
                    formatter.format(f"{_FORM}.name.error.maximum", max=RULE_NAME_MAX_LENGTH),
                )
            ]
        return []

    def _channel_conflict(self, condition: Condition) -> ConditionErrorMessage | None:
        if not requires_value(condition.operator):
            return None
        return channel_conflict(condition.key, condition.value, self.consequent, self.agent)

    def _condition_errors(self, index: int, formatter: MessageFormatter) -> list[FieldError]:
        condition = self._slots[index].condition
        if condition.key is None:
            return [
                FieldError(
                    condition_field(index, "key"),
                    "required",
                    formatter.format(f"{_FORM}.conditions.key.error.required"),
                    type="KEY",
                )
            ]

        value_field = condition_field(index, "value")
        error = validate_value(self.control_for(index), condition.value, formatter, field=value_field)
        if error is not None:
            return [error]

        conflict = self._channel_conflict(condition)
        if conflict is not None:
            return [channel_conflict_error(conflict, formatter, field=value_field)]
        return []

    def validate(self, formatter: MessageFormatter) -> list[FieldError]:
        """Client validation errors of the current state."""
        errors = self._name_errors(formatter)

        count = len(self._slots)
        if not MIN_CONDITIONS <= count <= MAX_CONDITIONS:
            errors.append(
                FieldError(
                    "conditions",
                    "count",
                    formatter.format(
                        f"{_FORM}.conditions.error.count", min=MIN_CONDITIONS, max=MAX_CONDITIONS
                    ),
                )
            )

        for index in range(count):
            errors.extend(self._condition_errors(index, formatter))

        errors.extend(consequents.validate_consequent(self.consequent, formatter))
        return errors

    def errors(self, formatter: MessageFormatter) -> list[FieldError]:
        """Client errors followed by the pending server errors."""
        return self.validate(formatter) + server_errors.field_errors(self.server_error, formatter)

    def channel_conflicts(self) -> list[tuple[int, str]]:
        """Positions and reasons of channel conditions the selected bot cannot serve."""
        conflicts = []
        for index, condition in enumerate(self.conditions):
            reason = self._channel_conflict(condition)
            if reason is not None:
                conflicts.append((index, reason.value))
        return conflicts

    # ------------------------------------------------------------------
    # Submit eligibility
    # ------------------------------------------------------------------

    def _conditions_updated(self, previous: Sequence[Condition]) -> bool:
        current = self.conditions
        if len(previous) != len(current):
            return all(_is_condition_complete(condition) for condition in current)
        return any(
            _is_condition_complete(now)
            and (before.key, before.operator, before.value) != (now.key, now.operator, now.value)
            for before, now in zip(previous, current)
        )

    def is_updatable(self) -> bool:
        """Whether the state differs from the snapshot in a submittable way.

        Creating needs a name, a complete consequent and complete conditions;
        editing needs any one of name, match, consequent or conditions to
        have changed.
        """
        previous = self._snapshot
        name_changed = previous.name.strip() != self.name.strip()
        match_changed = previous.match != self.match
        consequent_changed = consequents.consequent_value_changed(
            previous.consequent, self.consequent
        )
        conditions_updated = self._conditions_updated(previous.conditions)

        if self.is_editing:
            return name_changed or match_changed or consequent_changed or conditions_updated
        return name_changed and consequent_changed and conditions_updated

    def is_submittable(self, formatter: MessageFormatter) -> bool:
        return self.is_updatable() and not self.errors(formatter)

    def is_dirty(self) -> bool:
        return self.data() != self._snapshot

    def needs_discard_confirmation(self) -> bool:
        """Whether closing the form would lose edits."""
        return self.is_updatable() if self.is_editing else self.is_dirty()

    def condition_prefix(self, index: int, formatter: MessageFormatter) -> str:
        """Display prefix of a condition: "If", then "And"/"Or" by match policy."""
        if index == 0:
            return formatter.format(f"{_FORM}.conditions.prefix.if")
        if self.match == RuleMatch.ALL:
            return formatter.format(f"{_FORM}.conditions.prefix.all")
        return formatter.format(f"{_FORM}.conditions.prefix.any")

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def _payload_conditional(self) -> Conditional:
        conditions = [
            Condition(
                key=condition.key,
                type=self.catalog.type_of(condition.key),
                operator=condition.operator,
                value=condition.value if requires_value(condition.operator) else None,
            )
            for condition in self.conditions
        ]
        return Conditional(match=self.match, conditions=conditions, consequent=self.consequent)

    def to_create_payload(self) -> RuleCreate:
        """Create request for the current state, name trimmed.

        Raises:
            RuleValidationError: the state does not form a valid rule
        """
        try:
            return RuleCreate(
                type=self.rule_type,
                name=self.name.strip(),
                conditional=self._payload_conditional(),
            )
        except ValidationError as e:
            raise wrap_exception(
                e, RuleValidationError, "Rule is not valid", rule_type=self.rule_type.value
            ) from e

    def to_update_payload(self) -> RuleUpdate:
        """Update request for the current state of an existing rule.

        Raises:
            RuleValidationError: the form is not editing a rule, or the state
                does not form a valid rule
        """
        if self.rule_id is None:
            raise RuleValidationError("Only an existing rule can be updated")
        try:
            return RuleUpdate(
                id=self.rule_id,
                name=self.name.strip(),
                conditional=self._payload_conditional(),
            )
        except ValidationError as e:
            raise wrap_exception(
                e, RuleValidationError, "Rule is not valid", rule_id=self.rule_id
            ) from e

    def mark_persisted(self, rule: Rule | None = None) -> None:
        """Take the current state (or a saved rule) as the new snapshot."""
        if rule is not None:
            self.rule_id = rule.id
            self.name = rule.name
            self.match = rule.conditional.match
            self._slots = [_new_slot(c) for c in rule.conditional.conditions]
            self.consequent = rule.conditional.consequent
        self.name = self.name.strip()
        self._snapshot = self.data()
        self.server_error = None

