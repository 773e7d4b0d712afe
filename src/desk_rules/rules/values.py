"""Condition value resolver.

Decides which value control a condition needs for its key and operator,
validates the entered value, and applies the channel type restriction a
selected bot agent imposes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from desk_rules.messages import DETAIL, MessageFormatter
from desk_rules.models import (
    Agent,
    BotType,
    ChannelType,
    Condition,
    ConditionErrorMessage,
    ConditionErrorType,
    ConditionOperator,
    ConditionType,
    GroupWithBotAgentConsequent,
)
from desk_rules.rules.catalog import (
    CHANNEL_TYPE_KEY,
    CUSTOMER_ID_KEY,
    CUSTOMER_NAME_KEY,
    ConditionKeyCatalog,
)
from desk_rules.rules.channels import (
    BOT_CHANNELS,
    FAQ_BOT_CHANNELS,
    channel_options,
    parse_channel,
)
from desk_rules.rules.errors import FieldError
from desk_rules.rules.operators import requires_value

VALUE_MAX_LENGTH = 190
IDENTITY_VALUE_MAX_LENGTH = 100
IDENTITY_KEYS = frozenset({CUSTOMER_ID_KEY, CUSTOMER_NAME_KEY})

NUMBER_PATTERN = re.compile(r"^[0-9]+$")

_VALUE_ERRORS = f"{DETAIL}.form.conditions.value"

CHANNEL_CONFLICT_MESSAGE_IDS: dict[ConditionErrorMessage, str] = {
    ConditionErrorMessage.INVALID_CHANNEL_BY_CONSEQUENT_CUSTOM_BOT: f"{_VALUE_ERRORS}.error.inline.custom",
    ConditionErrorMessage.INVALID_CHANNEL_BY_CONSEQUENT_FAQ_BOT: f"{_VALUE_ERRORS}.error.inline.faq",
    ConditionErrorMessage.INVALID_CHANNEL_BY_UNKNOWN_REASON: f"{_VALUE_ERRORS}.error.inline.unknown",
}


class ControlKind(str, Enum):
    HIDDEN = "HIDDEN"
    TEXT = "TEXT"
    NUMBER = "NUMBER"
    DROPDOWN = "DROPDOWN"


@dataclass(frozen=True)
class ValueOption:
    value: str
    is_parent: bool = False
    disabled: bool = False
    icon: str | None = None


@dataclass(frozen=True)
class ValueControl:
    """Value input a condition renders, with its validation rules."""

    kind: ControlKind
    required: bool = False
    max_length: int | None = None
    digits_only: bool = False
    options: tuple[ValueOption, ...] = ()
    is_channel: bool = False

    @property
    def hidden(self) -> bool:
        return self.kind == ControlKind.HIDDEN

    def option_values(self) -> tuple[str, ...]:
        return tuple(option.value for option in self.options)


HIDDEN_CONTROL = ValueControl(kind=ControlKind.HIDDEN)


def _allowed_channels(consequent: object, agent: Agent | None) -> tuple[ChannelType, ...] | None:
    """Channels the selected bot can serve; None when no bot restricts them."""
    if not isinstance(consequent, GroupWithBotAgentConsequent) or agent is None:
        return None
    if agent.bot_type is not None:
        return BOT_CHANNELS[agent.bot_type]
    # Unrecognized bot subtypes only serve in-app channels
    return FAQ_BOT_CHANNELS if agent.bot is not None else None


def _channel_control(consequent: object, agent: Agent | None) -> ValueControl:
    allowed = _allowed_channels(consequent, agent)
    options = tuple(
        ValueOption(
            value=option.value.value,
            is_parent=option.is_parent,
            disabled=allowed is not None and option.value not in allowed,
            icon=option.icon,
        )
        for option in channel_options()
    )
    return ValueControl(
        kind=ControlKind.DROPDOWN, required=True, options=options, is_channel=True
    )


def resolve_control(
    catalog: ConditionKeyCatalog,
    key: str | None,
    operator: ConditionOperator,
    consequent: object = None,
    agent: Agent | None = None,
) -> ValueControl:
    """Resolve the value control of a condition.

    Args:
        catalog: Condition key catalog
        key: Selected condition key, None while unset
        operator: Selected operator
        consequent: Current consequent of the rule
        agent: Bot agent selected in a group-with-bot consequent

    Returns:
        HIDDEN for an unset key or a value-less operator; TEXT or NUMBER
        with length/format rules; DROPDOWN with the channel hierarchy or
        the custom field's option list.
    """
    if key is None or not requires_value(operator):
        return HIDDEN_CONTROL

    match catalog.type_of(key):
        case ConditionType.TEXT:
            return ValueControl(
                kind=ControlKind.TEXT,
                required=True,
                max_length=IDENTITY_VALUE_MAX_LENGTH if key in IDENTITY_KEYS else VALUE_MAX_LENGTH,
            )
        case ConditionType.NUMBER:
            return ValueControl(
                kind=ControlKind.NUMBER,
                required=True,
                max_length=VALUE_MAX_LENGTH,
                digits_only=True,
            )
        case ConditionType.DROPDOWN:
            if key == CHANNEL_TYPE_KEY:
                return _channel_control(consequent, agent)
            return ValueControl(
                kind=ControlKind.DROPDOWN,
                required=True,
                options=tuple(ValueOption(value=option) for option in catalog.options_for(key)),
            )


def validate_value(
    control: ValueControl,
    value: str | None,
    formatter: MessageFormatter,
    *,
    field: str = "value",
) -> FieldError | None:
    """Validate a condition value against its resolved control.

    Raises:
        CatalogMismatchError: a channel type control holds an unknown channel
    """
    if control.hidden:
        return None

    def error(code: str, message_id: str, **values: object) -> FieldError:
        return FieldError(
            field=field,
            code=code,
            message=formatter.format(message_id, **values),
            type=ConditionErrorType.VALUE.value,
        )

    if value is None or not value.strip():
        return error("required", f"{_VALUE_ERRORS}.textNumber.error.required")

    if control.max_length is not None and len(value) > control.max_length:
        return error("maximum", f"{_VALUE_ERRORS}.error.maximum", max=control.max_length)

    if control.digits_only and not NUMBER_PATTERN.match(value):
        return error("onlyNumber", f"{_VALUE_ERRORS}.number.error.onlyNumber")

    if control.kind == ControlKind.DROPDOWN:
        if control.is_channel:
            parse_channel(value)
        if value not in control.option_values():
            return error("invalidOption", f"{_VALUE_ERRORS}.error.invalidOption")

    return None


def channel_conflict(
    key: str | None,
    value: str | None,
    consequent: object,
    agent: Agent | None,
) -> ConditionErrorMessage | None:
    """Check a channel type value against the selected bot agent.

    Only applies while the consequent routes to a bot agent. An agent whose
    bot subtype is not recognized can only serve in-app channels.
    """
    if key != CHANNEL_TYPE_KEY or value is None:
        return None
    if not isinstance(consequent, GroupWithBotAgentConsequent) or agent is None:
        return None
    if consequent.agent.value is None:
        return None

    channel = parse_channel(value)
    match agent.bot_type:
        case BotType.CUSTOM if channel not in BOT_CHANNELS[BotType.CUSTOM]:
            return ConditionErrorMessage.INVALID_CHANNEL_BY_CONSEQUENT_CUSTOM_BOT
        case BotType.FAQ if channel not in BOT_CHANNELS[BotType.FAQ]:
            return ConditionErrorMessage.INVALID_CHANNEL_BY_CONSEQUENT_FAQ_BOT
        case None if agent.bot is not None and channel not in FAQ_BOT_CHANNELS:
            return ConditionErrorMessage.INVALID_CHANNEL_BY_UNKNOWN_REASON
        case _:
            return None


def channel_conflict_error(
    reason: ConditionErrorMessage,
    formatter: MessageFormatter,
    *,
    field: str = "value",
) -> FieldError:
    return FieldError(
        field=field,
        code=reason.value,
        message=formatter.format(CHANNEL_CONFLICT_MESSAGE_IDS[reason]),
        type=ConditionErrorType.VALUE.value,
    )


def reset_condition(key: str | None) -> Condition:
    """Condition state after its key changed: operator Is, no value."""
    return Condition(key=key, operator=ConditionOperator.IS, value=None)
