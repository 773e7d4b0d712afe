"""Async services behind the rule list and rule detail screens."""

from desk_rules.services.notifications import (
    Notification,
    NotificationAction,
    NotificationCenter,
    NotificationLevel,
    RuleOperation,
)
from desk_rules.services.rule_editor import RuleEditorService
from desk_rules.services.rule_list import RuleListService

__all__ = [
    "Notification",
    "NotificationAction",
    "NotificationCenter",
    "NotificationLevel",
    "RuleOperation",
    "RuleEditorService",
    "RuleListService",
]
