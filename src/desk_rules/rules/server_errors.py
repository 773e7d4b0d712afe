"""Server error reconciler.

The desk API reports rule validation errors by condition position. These
functions keep such a record aligned with the condition list while the user
edits it, and turn it into field errors. Each function returns a new record,
or None once no condition and no consequent error remains.
"""

from __future__ import annotations

import re

from desk_rules.messages import DETAIL, MessageFormatter
from desk_rules.models import (
    ConditionalError,
    ConditionErrorEntry,
    ConditionErrorType,
    RuleError,
)
from desk_rules.rules.errors import FieldError, condition_field, consequent_field


def _camel_case(reason: str) -> str:
    words = [word for word in re.split(r"[^A-Za-z0-9]+", reason) if word]
    if not words:
        return ""
    return words[0].lower() + "".join(word.capitalize() for word in words[1:])


def server_reason_message_id(reason: str) -> str:
    return f"{DETAIL}.form.conditions.serverError.{_camel_case(reason)}"


def is_resolved(rule_error: RuleError | None) -> bool:
    """True when the record holds no condition and no consequent error."""
    if rule_error is None:
        return True
    conditional = rule_error.conditional
    return not conditional.conditions and conditional.consequent is None


def normalize(rule_error: RuleError | None) -> RuleError | None:
    return None if is_resolved(rule_error) else rule_error


def _with_conditions(
    rule_error: RuleError, conditions: list[ConditionErrorEntry]
) -> RuleError | None:
    conditional = rule_error.conditional.model_copy(update={"conditions": conditions})
    return normalize(rule_error.model_copy(update={"conditional": conditional}))


def field_errors(rule_error: RuleError | None, formatter: MessageFormatter) -> list[FieldError]:
    """Field errors of a server record, ordered by condition position."""
    if rule_error is None:
        return []

    result: list[FieldError] = []
    for entry in sorted(rule_error.conditional.conditions or [], key=lambda e: e.index):
        for detail in entry.errors:
            result.append(
                FieldError(
                    field=condition_field(entry.index, detail.type.value.lower()),
                    code=detail.reason,
                    message=formatter.format(
                        server_reason_message_id(detail.reason),
                        type=detail.type.value.lower(),
                    ),
                    type=detail.type.value,
                    server=True,
                )
            )

    if rule_error.conditional.consequent is not None:
        for detail in rule_error.conditional.consequent.errors:
            result.append(
                FieldError(
                    field=consequent_field(detail.type.value),
                    code=detail.reason,
                    message=detail.reason,
                    type=detail.type.value,
                    server=True,
                )
            )
    return result


def drop_condition(rule_error: RuleError | None, index: int) -> RuleError | None:
    """Reindex after the condition at ``index`` was removed.

    Errors at ``index`` are dropped and errors after it move up by one.
    An index no error refers to only shifts the later ones, so removing past
    the end is the identity; a negative index leaves the record unchanged.
    """
    if rule_error is None:
        return None
    entries = rule_error.conditional.conditions or []
    if not entries or index < 0:
        return normalize(rule_error)

    kept = [
        entry if entry.index < index else entry.model_copy(update={"index": entry.index - 1})
        for entry in entries
        if entry.index != index
    ]
    return _with_conditions(rule_error, kept)


def clear_condition(rule_error: RuleError | None, index: int) -> RuleError | None:
    """Drop the errors at ``index`` without renumbering (the key was changed)."""
    if rule_error is None:
        return None
    entries = rule_error.conditional.conditions or []
    return _with_conditions(rule_error, [entry for entry in entries if entry.index != index])


def drop_value_errors(rule_error: RuleError | None, index: int) -> RuleError | None:
    """Drop the VALUE errors at ``index`` (operator or value reselected)."""
    if rule_error is None:
        return None

    entries: list[ConditionErrorEntry] = []
    for entry in rule_error.conditional.conditions or []:
        if entry.index == index:
            remaining = [d for d in entry.errors if d.type != ConditionErrorType.VALUE]
            if not remaining:
                continue
            entry = entry.model_copy(update={"errors": remaining})
        entries.append(entry)
    return _with_conditions(rule_error, entries)


def clear_consequent(rule_error: RuleError | None) -> RuleError | None:
    if rule_error is None:
        return None
    conditional: ConditionalError = rule_error.conditional.model_copy(update={"consequent": None})
    return normalize(rule_error.model_copy(update={"conditional": conditional}))
