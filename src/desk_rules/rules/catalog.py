"""Condition key catalog.

Builds the ordered set of selectable condition keys: the fixed ticket and
customer keys plus the project's custom fields, partitioned under
non-selectable group headers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

from desk_shared import get_logger

from desk_rules.messages import DETAIL, MessageFormatter
from desk_rules.models import ConditionType, CustomField, CustomFieldType

log = get_logger(__name__)

CHANNEL_TYPE_KEY = "ticket.channel_type"
CUSTOMER_ID_KEY = "customer.sendbird_id"
CUSTOMER_NAME_KEY = "customer.display_name"

TICKET_FIELD_PREFIX = "ticket_field.key"
CUSTOMER_FIELD_PREFIX = "customer_field.key"

_KEY_TITLES = f"{DETAIL}.form.conditions.key"


@dataclass(frozen=True)
class CatalogEntry:
    """One condition key.

    ``name`` is a message id for predefined keys and headers, and the
    field's display name for custom fields.
    """

    key: str
    name: str
    type: ConditionType = ConditionType.DROPDOWN
    is_header: bool = False
    is_custom: bool = False

    @property
    def selectable(self) -> bool:
        return not self.is_header


_TICKET_HEADER = CatalogEntry("ticket", f"{_KEY_TITLES}.title.ticket", is_header=True)
_TICKET_FIELD_HEADER = CatalogEntry(
    "ticketField", f"{_KEY_TITLES}.title.ticketField", is_header=True
)
_CUSTOMER_HEADER = CatalogEntry("customer", f"{_KEY_TITLES}.title.customer", is_header=True)
_CUSTOMER_FIELD_HEADER = CatalogEntry(
    "customerField", f"{_KEY_TITLES}.title.customerField", is_header=True
)

CHANNEL_TYPE_ENTRY = CatalogEntry(
    CHANNEL_TYPE_KEY, f"{_KEY_TITLES}.ticketChannelType", ConditionType.DROPDOWN
)
CUSTOMER_ID_ENTRY = CatalogEntry(CUSTOMER_ID_KEY, f"{_KEY_TITLES}.customerUserId", ConditionType.TEXT)
CUSTOMER_NAME_ENTRY = CatalogEntry(
    CUSTOMER_NAME_KEY, f"{_KEY_TITLES}.customerUserName", ConditionType.TEXT
)


def condition_type_for(field_type: CustomFieldType) -> ConditionType:
    """Map a custom field kind to the condition type it yields."""
    match field_type:
        case CustomFieldType.STRING:
            return ConditionType.TEXT
        case CustomFieldType.INTEGER:
            return ConditionType.NUMBER
        case _:
            return ConditionType.DROPDOWN


def _custom_entries(fields: Iterable[CustomField], prefix: str) -> list[CatalogEntry]:
    filterable = [f for f in fields if f.field_type != CustomFieldType.LINK]
    return [
        CatalogEntry(
            key=f"{prefix}.{field.key}",
            name=field.name,
            type=condition_type_for(field.field_type),
            is_custom=True,
        )
        for field in sorted(filterable, key=lambda f: f.name.lower())
    ]


def _dropdown_options(fields: Iterable[CustomField], prefix: str) -> dict[str, tuple[str, ...]]:
    return {
        f"{prefix}.{field.key}": tuple(field.options or ())
        for field in fields
        if field.field_type == CustomFieldType.DROPDOWN
    }


class ConditionKeyCatalog:
    """Ordered condition keys with their types and dropdown options."""

    def __init__(
        self,
        entries: Sequence[CatalogEntry],
        options: dict[str, tuple[str, ...]] | None = None,
    ) -> None:
        self._entries: dict[str, CatalogEntry] = {entry.key: entry for entry in entries}
        self._options = dict(options or {})

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str | None) -> CatalogEntry | None:
        if key is None:
            return None
        return self._entries.get(key)

    def type_of(self, key: str | None) -> ConditionType:
        """Condition type of a key.

        Keys missing from the catalog (e.g. a custom field deleted since the
        rule was saved) are treated as Dropdown.
        """
        entry = self.get(key)
        if entry is None:
            if key is not None:
                log.debug("Condition key not in catalog", key=key)
            return ConditionType.DROPDOWN
        return entry.type

    def options_for(self, key: str | None) -> tuple[str, ...]:
        """Stored option list of a Dropdown custom field."""
        if key is None:
            return ()
        return self._options.get(key, ())

    def selectable_keys(self) -> list[str]:
        return [entry.key for entry in self._entries.values() if entry.selectable]

    def keys(self) -> list[str]:
        """All keys in display order, headers included."""
        return list(self._entries)

    def label(self, key: str, formatter: MessageFormatter) -> str:
        entry = self.get(key)
        if entry is None:
            return key
        if entry.is_custom:
            return entry.name
        return formatter.format(entry.name)


def build_catalog(
    ticket_fields: Iterable[CustomField],
    customer_fields: Iterable[CustomField],
) -> ConditionKeyCatalog:
    """Build the condition key catalog for a project.

    Args:
        ticket_fields: Ticket-scoped custom field definitions
        customer_fields: Customer-scoped custom field definitions

    Returns:
        Catalog ordered ticket header, channel type, ticket fields,
        customer header, customer id/name, customer fields. A field group
        header is only present when the group has a filterable field.
    """
    ticket_fields = list(ticket_fields)
    customer_fields = list(customer_fields)

    entries: list[CatalogEntry] = [_TICKET_HEADER, CHANNEL_TYPE_ENTRY]

    ticket_entries = _custom_entries(ticket_fields, TICKET_FIELD_PREFIX)
    if ticket_entries:
        entries.append(_TICKET_FIELD_HEADER)
        entries.extend(ticket_entries)

    entries.extend([_CUSTOMER_HEADER, CUSTOMER_ID_ENTRY, CUSTOMER_NAME_ENTRY])

    customer_entries = _custom_entries(customer_fields, CUSTOMER_FIELD_PREFIX)
    if customer_entries:
        entries.append(_CUSTOMER_FIELD_HEADER)
        entries.extend(customer_entries)

    options = _dropdown_options(ticket_fields, TICKET_FIELD_PREFIX)
    options.update(_dropdown_options(customer_fields, CUSTOMER_FIELD_PREFIX))

    log.debug(
        "Condition key catalog built",
        ticket_fields=len(ticket_entries),
        customer_fields=len(customer_entries),
    )
    return ConditionKeyCatalog(entries, options)
