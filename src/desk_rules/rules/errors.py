"""Field-level validation errors emitted to the presentation layer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    """Normalized error attached to one form field.

    Attributes:
        field: Field path, e.g. ``name``, ``conditions[2].value``,
            ``consequent._group``
        code: Machine-readable error code (``required``, ``maximum``,
            ``INVALID_CHANNEL_BY_CONSEQUENT_FAQ_BOT``, a server reason...)
        message: Formatted display text
        type: Error subtype (``KEY``/``OPERATOR``/``VALUE``... for conditions)
        server: Whether the error was reported by the desk API
    """

    field: str
    code: str
    message: str
    type: str | None = None
    server: bool = False


def condition_field(index: int, part: str) -> str:
    return f"conditions[{index}].{part}"


def consequent_field(slot: str) -> str:
    return f"consequent.{slot}"
