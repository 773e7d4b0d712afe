"""Operator table: legal operators per condition type."""

from __future__ import annotations

from desk_rules.messages import LIST, MessageFormatter
from desk_rules.models import ConditionOperator, ConditionType

Op = ConditionOperator

OPERATORS_BY_TYPE: dict[ConditionType, tuple[ConditionOperator, ...]] = {
    ConditionType.TEXT: (
        Op.IS,
        Op.IS_NOT,
        Op.STARTS_WITH,
        Op.ENDS_WITH,
        Op.CONTAINS,
        Op.DOES_NOT_CONTAIN,
        Op.IS_EMPTY,
        Op.HAS_ANY_VALUE,
        Op.IS_UNKNOWN,
    ),
    ConditionType.NUMBER: (
        Op.IS,
        Op.IS_NOT,
        Op.GREATER_THAN,
        Op.LESS_THAN,
        Op.HAS_ANY_VALUE,
        Op.IS_UNKNOWN,
    ),
    ConditionType.DROPDOWN: (
        Op.IS,
        Op.IS_NOT,
        Op.HAS_ANY_VALUE,
        Op.IS_UNKNOWN,
    ),
}

VALUELESS_OPERATORS: frozenset[ConditionOperator] = frozenset(
    {Op.IS_EMPTY, Op.HAS_ANY_VALUE, Op.IS_UNKNOWN}
)

# Operators phrased differently when comparing numbers
_NUMERIC_PHRASED = frozenset({Op.IS, Op.IS_NOT})


def operators_for(condition_type: ConditionType) -> tuple[ConditionOperator, ...]:
    """Return the ordered operators legal for a condition type."""
    return OPERATORS_BY_TYPE[condition_type]


def requires_value(operator: ConditionOperator) -> bool:
    return operator not in VALUELESS_OPERATORS


def is_legal(operator: ConditionOperator, condition_type: ConditionType) -> bool:
    return operator in OPERATORS_BY_TYPE[condition_type]


def _camel(value: str) -> str:
    head, *rest = value.split("_")
    return head + "".join(part.capitalize() for part in rest)


def operator_label_id(operator: ConditionOperator, condition_type: ConditionType) -> str:
    """Message id of an operator label.

    ``is``/``is_not`` on Number conditions use the numeric phrasing
    ("is equal to").
    """
    message_id = f"{LIST}.operator.{_camel(operator.value)}"
    if condition_type == ConditionType.NUMBER and operator in _NUMERIC_PHRASED:
        message_id += ".forNumberType"
    return message_id


def operator_label(
    operator: ConditionOperator,
    condition_type: ConditionType,
    formatter: MessageFormatter,
) -> str:
    return formatter.format(operator_label_id(operator, condition_type))
