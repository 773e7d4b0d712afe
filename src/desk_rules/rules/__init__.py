"""Ticket routing rule engine.

Pure, synchronous building blocks: the condition key catalog, the operator
table, value and consequent resolution, the rule form state machine, server
error reconciliation and rule ordering.
"""

from desk_rules.rules.catalog import CatalogEntry, ConditionKeyCatalog, build_catalog
from desk_rules.rules.errors import FieldError
from desk_rules.rules.form import ConditionSlot, RuleForm, RuleFormData, default_form_data
from desk_rules.rules.operators import VALUELESS_OPERATORS, operators_for, requires_value
from desk_rules.rules.ordering import RuleOrdering, reorder
from desk_rules.rules.values import ControlKind, ValueControl, ValueOption, resolve_control

__all__ = [
    # Catalog
    "CatalogEntry",
    "ConditionKeyCatalog",
    "build_catalog",
    # Operators
    "VALUELESS_OPERATORS",
    "operators_for",
    "requires_value",
    # Values
    "ControlKind",
    "ValueControl",
    "ValueOption",
    "resolve_control",
    # Form
    "ConditionSlot",
    "FieldError",
    "RuleForm",
    "RuleFormData",
    "default_form_data",
    # Ordering
    "RuleOrdering",
    "reorder",
]
