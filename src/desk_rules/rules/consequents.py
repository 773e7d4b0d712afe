"""Consequent resolver.

Assignment rules route to a team (GROUP) or to a team plus one of its bot
agents (GROUP_WITH_BOT_AGENT); priority rules set a priority level.
"""

from __future__ import annotations

from typing import Iterable

from desk_rules.core.exceptions import ConsequentTransitionError, RuleValidationError
from desk_rules.messages import DETAIL, MessageFormatter
from desk_rules.models import (
    Agent,
    ConsequentErrorType,
    ConsequentTarget,
    ConsequentType,
    GroupConsequent,
    GroupWithBotAgentConsequent,
    PriorityConsequent,
    RuleType,
    TicketPriority,
)
from desk_rules.rules.errors import FieldError, consequent_field

AnyConsequent = GroupConsequent | GroupWithBotAgentConsequent | PriorityConsequent

_ALLOWED: dict[RuleType, tuple[ConsequentType, ...]] = {
    RuleType.ASSIGNMENT: (ConsequentType.GROUP, ConsequentType.GROUP_WITH_BOT_AGENT),
    RuleType.PRIORITY: (ConsequentType.PRIORITY,),
}


def allowed_consequent_types(rule_type: RuleType) -> tuple[ConsequentType, ...]:
    return _ALLOWED[rule_type]


def empty_consequent(consequent_type: ConsequentType) -> AnyConsequent:
    match consequent_type:
        case ConsequentType.GROUP:
            return GroupConsequent()
        case ConsequentType.GROUP_WITH_BOT_AGENT:
            return GroupWithBotAgentConsequent()
        case ConsequentType.PRIORITY:
            return PriorityConsequent()


def default_consequent(rule_type: RuleType) -> AnyConsequent:
    """Consequent of a new rule: an empty team target or an empty priority."""
    return empty_consequent(allowed_consequent_types(rule_type)[0])


def transition(
    current: AnyConsequent,
    new_type: ConsequentType,
    rule_type: RuleType,
) -> AnyConsequent:
    """Switch the consequent type.

    Switching never carries over the team or agent selection.

    Raises:
        ConsequentTransitionError: new_type is not allowed for the rule type
    """
    new_type = ConsequentType(new_type)
    if new_type not in allowed_consequent_types(rule_type):
        raise ConsequentTransitionError(
            f"{rule_type.value} rules cannot use a {new_type.value} consequent",
            details={"rule_type": rule_type.value, "consequent_type": new_type.value},
        )
    if current.type == new_type:
        return current
    return empty_consequent(new_type)


def _target(value: int | str | None, key: str = "id") -> ConsequentTarget:
    return ConsequentTarget(key=key, value=value)


def select_group(consequent: AnyConsequent, group_id: int | None) -> AnyConsequent:
    """Select the target team; a selected bot agent is cleared."""
    match consequent:
        case GroupConsequent():
            return consequent.model_copy(update={"group": _target(group_id)})
        case GroupWithBotAgentConsequent():
            if consequent.group.value == group_id:
                return consequent
            return consequent.model_copy(
                update={"group": _target(group_id), "agent": _target(None)}
            )
        case PriorityConsequent():
            raise RuleValidationError("Priority consequents have no team")


def select_agent(consequent: AnyConsequent, agent: Agent | None) -> AnyConsequent:
    """Select the bot agent of a group-with-bot consequent.

    Raises:
        RuleValidationError: not a group-with-bot consequent, no team
            selected, or the agent is not a member of the team
    """
    match consequent:
        case GroupWithBotAgentConsequent():
            if agent is None:
                return consequent.model_copy(update={"agent": _target(None)})
            group_id = consequent.group.value
            if group_id is None:
                raise RuleValidationError("Select a team before selecting a bot agent")
            if agent.group_ids is not None and group_id not in agent.group_ids:
                raise RuleValidationError(
                    "Agent is not a member of the selected team",
                    details={"agent_id": agent.id, "group_id": group_id},
                )
            return consequent.model_copy(update={"agent": _target(agent.id)})
        case _:
            raise RuleValidationError(f"{consequent.type} consequents have no agent")


def select_priority(consequent: AnyConsequent, priority: TicketPriority | str | None) -> AnyConsequent:
    match consequent:
        case PriorityConsequent():
            value = TicketPriority(priority).value if priority is not None else None
            return consequent.model_copy(update={"priority": _target(value, key="priority")})
        case _:
            raise RuleValidationError(f"{consequent.type} consequents have no priority")


def agents_for_group(agents: Iterable[Agent], group_id: int | None) -> list[Agent]:
    """Bot agents offered for a team: members of that team only."""
    if group_id is None:
        return []
    return [agent for agent in agents if agent.group_ids and group_id in agent.group_ids]


def is_complete(consequent: AnyConsequent) -> bool:
    match consequent:
        case GroupConsequent():
            return consequent.group.value is not None
        case GroupWithBotAgentConsequent():
            return consequent.group.value is not None and consequent.agent.value is not None
        case PriorityConsequent():
            return consequent.priority.value is not None


def validate_consequent(consequent: AnyConsequent, formatter: MessageFormatter) -> list[FieldError]:
    """Required-selection errors of a consequent."""
    missing: list[ConsequentErrorType] = []
    match consequent:
        case GroupConsequent():
            if consequent.group.value is None:
                missing.append(ConsequentErrorType.GROUP)
        case GroupWithBotAgentConsequent():
            if consequent.group.value is None:
                missing.append(ConsequentErrorType.GROUP)
            if consequent.agent.value is None:
                missing.append(ConsequentErrorType.AGENT)
        case PriorityConsequent():
            if consequent.priority.value is None:
                missing.append(ConsequentErrorType.PRIORITY)

    return [
        FieldError(
            field=consequent_field(slot.value),
            code="required",
            message=formatter.format(f"{DETAIL}.form.consequent.error.{slot.value.lstrip('_')}"),
            type=slot.value,
        )
        for slot in missing
    ]


def slot_value(consequent: AnyConsequent | None, slot: str) -> int | str | None:
    """Value of a consequent slot (``group``/``agent``/``priority``), None if absent."""
    target = getattr(consequent, slot, None)
    return target.value if isinstance(target, ConsequentTarget) else None


def consequent_value_changed(previous: AnyConsequent | None, current: AnyConsequent) -> bool:
    """Whether the current consequent is complete and differs from the previous one."""
    if previous is not None and previous.type != current.type:
        return is_complete(current)
    match current:
        case PriorityConsequent():
            value = current.priority.value
            return value is not None and value != slot_value(previous, "priority")
        case GroupWithBotAgentConsequent():
            group, agent = current.group.value, current.agent.value
            if group is None or agent is None:
                return False
            return group != slot_value(previous, "group") or agent != slot_value(previous, "agent")
        case GroupConsequent():
            group = current.group.value
            return group is not None and group != slot_value(previous, "group")
