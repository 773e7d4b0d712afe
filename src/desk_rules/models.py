"""Ticket rule data model.

pydantic models mirroring the desk API wire shape. Consequents are tagged
variants discriminated on ``type``; their slots use the underscore-prefixed
wire names (``_group``, ``_agent``, ``_priority``) as aliases.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Generic, Literal, TypeVar, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

T = TypeVar("T")

MIN_CONDITIONS = 1
MAX_CONDITIONS = 10
RULE_NAME_MAX_LENGTH = 100


# ============================================================================
# Enumerations
# ============================================================================


class RuleType(str, Enum):
    """Rule kinds; each kind has its own ordered rule list."""

    ASSIGNMENT = "ASSIGNMENT"
    PRIORITY = "PRIORITY"


class RuleStatus(str, Enum):
    ON = "ON"
    OFF = "OFF"


class RuleMatch(str, Enum):
    """Match policy of a conditional."""

    ALL = "and"
    ANY = "or"


class ConditionType(str, Enum):
    """Value type of a condition, derived from its key."""

    TEXT = "TEXT"
    NUMBER = "NUMBER"
    DROPDOWN = "DROPDOWN"


class ConditionOperator(str, Enum):
    IS = "is"
    IS_NOT = "is_not"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    CONTAINS = "contains"
    DOES_NOT_CONTAIN = "does_not_contain"
    IS_EMPTY = "is_empty"
    HAS_ANY_VALUE = "has_any_value"
    IS_UNKNOWN = "is_unknown"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class ConsequentType(str, Enum):
    GROUP = "GROUP"
    GROUP_WITH_BOT_AGENT = "GROUP_WITH_BOT_AGENT"
    PRIORITY = "PRIORITY"


class TicketPriority(str, Enum):
    URGENT = "URGENT"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ChannelType(str, Enum):
    """Ticket channel types selectable for the channel type condition."""

    INAPP = "INAPP"
    SENDBIRD_IOS = "SENDBIRD_IOS"
    SENDBIRD_ANDROID = "SENDBIRD_ANDROID"
    SENDBIRD_JAVASCRIPT = "SENDBIRD_JAVASCRIPT"
    SENDBIRD = "SENDBIRD"
    FACEBOOK = "FACEBOOK"
    FACEBOOK_CONVERSATION = "FACEBOOK_CONVERSATION"
    FACEBOOK_FEED = "FACEBOOK_FEED"
    TWITTER = "TWITTER"
    TWITTER_DIRECT_MESSAGE_EVENT = "TWITTER_DIRECT_MESSAGE_EVENT"
    TWITTER_STATUS = "TWITTER_STATUS"
    INSTAGRAM = "INSTAGRAM"
    INSTAGRAM_COMMENT = "INSTAGRAM_COMMENT"
    WHATSAPP = "WHATSAPP"
    WHATSAPP_MESSAGE = "WHATSAPP_MESSAGE"


class BotType(str, Enum):
    CUSTOM = "CUSTOM"
    FAQ = "FAQ"


class CustomFieldType(str, Enum):
    STRING = "STRING"
    INTEGER = "INTEGER"
    DROPDOWN = "DROPDOWN"
    LINK = "LINK"


class ConditionErrorType(str, Enum):
    """Condition field a server error refers to."""

    KEY = "KEY"
    TYPE = "TYPE"
    OPERATOR = "OPERATOR"
    VALUE = "VALUE"


class ConsequentErrorType(str, Enum):
    """Consequent slot a server error refers to."""

    KEY = "KEY"
    TYPE = "TYPE"
    VALUE = "VALUE"
    GROUP = "_group"
    AGENT = "_agent"
    PRIORITY = "_priority"


class ConditionErrorMessage(str, Enum):
    """Channel type conflicts with the selected bot agent."""

    INVALID_CHANNEL_BY_CONSEQUENT_CUSTOM_BOT = "INVALID_CHANNEL_BY_CONSEQUENT_CUSTOM_BOT"
    INVALID_CHANNEL_BY_CONSEQUENT_FAQ_BOT = "INVALID_CHANNEL_BY_CONSEQUENT_FAQ_BOT"
    INVALID_CHANNEL_BY_UNKNOWN_REASON = "INVALID_CHANNEL_BY_UNKNOWN_REASON"


# ============================================================================
# Conditional
# ============================================================================


class Condition(BaseModel):
    """Single condition of a conditional.

    ``key`` is None only while the condition is being edited.
    """

    key: str | None = None
    type: ConditionType | None = None
    operator: ConditionOperator = ConditionOperator.IS
    value: str | None = None

    @field_validator("value", mode="before")
    @classmethod
    def _stringify_value(cls, value: Any) -> Any:
        # Number conditions may come back from the API as JSON numbers
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class ConsequentTarget(BaseModel):
    """One consequent slot: ``{"key": "id", "value": 12}``."""

    key: str = "id"
    value: int | str | None = None


def _upgrade_legacy_consequent(data: Any, slot: str) -> Any:
    """Wrap a flat ``{type, key, value}`` consequent into its slot."""
    if isinstance(data, dict) and "key" in data and slot not in data:
        upgraded = {k: v for k, v in data.items() if k not in ("key", "value")}
        upgraded[slot] = {"key": data["key"], "value": data.get("value")}
        return upgraded
    return data


class GroupConsequent(BaseModel):
    """Route the ticket to an agent group."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["GROUP"] = "GROUP"
    group: ConsequentTarget = Field(
        default_factory=lambda: ConsequentTarget(key="id"), alias="_group"
    )

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy(cls, data: Any) -> Any:
        return _upgrade_legacy_consequent(data, "_group")


class GroupWithBotAgentConsequent(BaseModel):
    """Route the ticket to an agent group and hand it to one of its bots."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["GROUP_WITH_BOT_AGENT"] = "GROUP_WITH_BOT_AGENT"
    group: ConsequentTarget = Field(
        default_factory=lambda: ConsequentTarget(key="id"), alias="_group"
    )
    agent: ConsequentTarget = Field(
        default_factory=lambda: ConsequentTarget(key="id"), alias="_agent"
    )


class PriorityConsequent(BaseModel):
    """Set the ticket priority."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["PRIORITY"] = "PRIORITY"
    priority: ConsequentTarget = Field(
        default_factory=lambda: ConsequentTarget(key="priority"), alias="_priority"
    )

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy(cls, data: Any) -> Any:
        return _upgrade_legacy_consequent(data, "_priority")


Consequent = Annotated[
    Union[GroupConsequent, GroupWithBotAgentConsequent, PriorityConsequent],
    Field(discriminator="type"),
]


class Conditional(BaseModel):
    """Match policy, ordered conditions and the consequent of a rule."""

    match: RuleMatch = RuleMatch.ANY
    conditions: list[Condition] = Field(default_factory=list)
    consequent: Consequent


# ============================================================================
# Server-reported errors
# ============================================================================


class ConditionErrorDetail(BaseModel):
    type: ConditionErrorType
    reason: str = ""


class ConditionErrorEntry(BaseModel):
    """Errors of the condition at ``index`` in the condition sequence."""

    index: int
    errors: list[ConditionErrorDetail] = Field(default_factory=list)


class ConsequentErrorDetail(BaseModel):
    type: ConsequentErrorType
    reason: str = ""


class ConsequentErrorEntry(BaseModel):
    errors: list[ConsequentErrorDetail] = Field(default_factory=list)


class ConditionalError(BaseModel):
    conditions: list[ConditionErrorEntry] | None = None
    consequent: ConsequentErrorEntry | None = None


class RuleError(BaseModel):
    """Validation errors the desk API reported for a rule."""

    conditional: ConditionalError = Field(default_factory=ConditionalError)


# ============================================================================
# Rules
# ============================================================================


def _allowed_consequent_types(rule_type: RuleType) -> tuple[str, ...]:
    if rule_type == RuleType.PRIORITY:
        return (ConsequentType.PRIORITY.value,)
    return (ConsequentType.GROUP.value, ConsequentType.GROUP_WITH_BOT_AGENT.value)


def _check_rule_name(name: str) -> str:
    trimmed = name.strip()
    if not trimmed:
        raise ValueError("Rule name must not be blank")
    if len(trimmed) > RULE_NAME_MAX_LENGTH:
        raise ValueError(f"Rule name must be at most {RULE_NAME_MAX_LENGTH} characters")
    return trimmed


def _check_conditions(conditional: Conditional) -> None:
    count = len(conditional.conditions)
    if not MIN_CONDITIONS <= count <= MAX_CONDITIONS:
        raise ValueError(
            f"A rule needs {MIN_CONDITIONS} to {MAX_CONDITIONS} conditions, got {count}"
        )
    for index, condition in enumerate(conditional.conditions):
        if not condition.key:
            raise ValueError(f"Condition {index} has no key")


class Rule(BaseModel):
    """Persisted rule as returned by the desk API."""

    id: int
    name: str
    type: RuleType
    status: RuleStatus = RuleStatus.ON
    order: int = Field(ge=1)
    conditional: Conditional
    error: RuleError | None = None


class RuleCreate(BaseModel):
    """Create request payload."""

    type: RuleType
    name: str
    conditional: Conditional

    @field_validator("name")
    @classmethod
    def _validate_name(cls, name: str) -> str:
        return _check_rule_name(name)

    @model_validator(mode="after")
    def _validate_conditional(self) -> RuleCreate:
        _check_conditions(self.conditional)
        if self.conditional.consequent.type not in _allowed_consequent_types(self.type):
            raise ValueError(
                f"Consequent {self.conditional.consequent.type} is not allowed "
                f"for {self.type.value} rules"
            )
        return self


class RuleUpdate(BaseModel):
    """Update request payload; unset fields are left untouched."""

    id: int
    name: str | None = None
    status: RuleStatus | None = None
    order: int | None = Field(default=None, ge=1)
    conditional: Conditional | None = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, name: str | None) -> str | None:
        return _check_rule_name(name) if name is not None else None

    @model_validator(mode="after")
    def _validate_conditional(self) -> RuleUpdate:
        if self.conditional is not None:
            _check_conditions(self.conditional)
        return self

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RuleOrder(BaseModel):
    id: int
    order: int = Field(ge=1)


class Page(BaseModel, Generic[T]):
    """Offset/limit page of results."""

    results: list[T] = Field(default_factory=list)
    count: int = 0


# ============================================================================
# Directory records
# ============================================================================


class CustomField(BaseModel):
    """Ticket or customer custom field definition."""

    model_config = ConfigDict(populate_by_name=True)

    id: int | None = None
    key: str
    name: str
    field_type: CustomFieldType = Field(
        validation_alias=AliasChoices("fieldType", "field_type"),
        serialization_alias="fieldType",
    )
    options: list[str] | None = None


class Bot(BaseModel):
    # Subtype as reported; unknown subtypes are kept as-is
    type: str | None = None

    @property
    def bot_type(self) -> BotType | None:
        try:
            return BotType(self.type) if self.type is not None else None
        except ValueError:
            return None


class Agent(BaseModel):
    """Desk agent; bot agents carry their bot subtype."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    display_name: str = Field(
        default="", validation_alias=AliasChoices("displayName", "display_name")
    )
    agent_type: str | None = Field(
        default=None, validation_alias=AliasChoices("agentType", "agent_type")
    )
    bot: Bot | None = None
    # Agent groups the agent belongs to; None when the API did not say
    group_ids: list[int] | None = Field(
        default=None, validation_alias=AliasChoices("groupIds", "group_ids", "groups")
    )

    @field_validator("group_ids", mode="before")
    @classmethod
    def _flatten_groups(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [item["id"] if isinstance(item, dict) else item for item in value]
        return value

    @property
    def bot_type(self) -> BotType | None:
        return self.bot.bot_type if self.bot else None


class AgentGroup(BaseModel):
    """Agent group (team)."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str = ""
    key: str | None = None
    member_count: int = Field(
        default=0, validation_alias=AliasChoices("memberCount", "member_count")
    )

    @model_validator(mode="before")
    @classmethod
    def _count_members(cls, data: Any) -> Any:
        if isinstance(data, dict) and "members" in data:
            members = data["members"] or []
            data = {k: v for k, v in data.items() if k != "members"}
            if "memberCount" not in data and "member_count" not in data:
                data["memberCount"] = len(members)
        return data
