"""User-facing message lookup.

The engine never reaches for a global translation table; every entry point
that produces display text takes a MessageFormatter.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from desk_shared import get_logger

from desk_rules.models import RuleType

log = get_logger(__name__)

DETAIL = "desk.settings.ticketRulesDetail"
LIST = "desk.settings.ticketRules"


class MessageFormatter(Protocol):
    """Resolves message ids to display text."""

    def format(self, message_id: str, **values: Any) -> str:
        ...


def rule_type_prefix(rule_type: RuleType) -> str:
    """Message id namespace of a rule type ("assignmentRules"/"priorityRules")."""
    return "priorityRules" if rule_type == RuleType.PRIORITY else "assignmentRules"


ENGLISH_MESSAGES: dict[str, str] = {
    # Operators
    f"{LIST}.operator.is": "is",
    f"{LIST}.operator.is.forNumberType": "is equal to",
    f"{LIST}.operator.isNot": "is not",
    f"{LIST}.operator.isNot.forNumberType": "is not equal to",
    f"{LIST}.operator.startsWith": "starts with",
    f"{LIST}.operator.endsWith": "ends with",
    f"{LIST}.operator.contains": "contains",
    f"{LIST}.operator.doesNotContain": "does not contain",
    f"{LIST}.operator.isEmpty": "is empty",
    f"{LIST}.operator.hasAnyValue": "has any value",
    f"{LIST}.operator.isUnknown": "is unknown",
    f"{LIST}.operator.greaterThan": "is greater than",
    f"{LIST}.operator.lessThan": "is less than",
    # Condition keys
    f"{DETAIL}.form.conditions.key.title.ticket": "Ticket",
    f"{DETAIL}.form.conditions.key.title.ticketField": "Ticket fields",
    f"{DETAIL}.form.conditions.key.title.customer": "Customer",
    f"{DETAIL}.form.conditions.key.title.customerField": "Customer fields",
    f"{DETAIL}.form.conditions.key.ticketChannelType": "Channel type",
    f"{DETAIL}.form.conditions.key.customerUserId": "User ID",
    f"{DETAIL}.form.conditions.key.customerUserName": "Nickname",
    # Condition prefixes
    f"{DETAIL}.form.conditions.prefix.if": "If",
    f"{DETAIL}.form.conditions.prefix.all": "And",
    f"{DETAIL}.form.conditions.prefix.any": "Or",
    # Channel values
    f"{DETAIL}.form.value.inApp": "In-app",
    f"{DETAIL}.form.value.inApp.sendbird.ios": "iOS",
    f"{DETAIL}.form.value.inApp.sendbird.android": "Android",
    f"{DETAIL}.form.value.inApp.sendbird.javascript": "JavaScript",
    f"{DETAIL}.form.value.inApp.sendbird.others": "Others",
    f"{DETAIL}.form.value.facebook": "Facebook",
    f"{DETAIL}.form.value.facebook.conversation": "Conversation",
    f"{DETAIL}.form.value.facebook.conversationWithPrefix": "Facebook Conversation",
    f"{DETAIL}.form.value.facebook.feed": "Feed",
    f"{DETAIL}.form.value.facebook.feedWithPrefix": "Facebook Feed",
    f"{DETAIL}.form.value.twitter": "Twitter",
    f"{DETAIL}.form.value.twitter.directMessage": "Direct message",
    f"{DETAIL}.form.value.twitter.directMessageWithPrefix": "Twitter Direct message",
    f"{DETAIL}.form.value.twitter.status": "Status",
    f"{DETAIL}.form.value.twitter.statusWithPrefix": "Twitter Status",
    f"{DETAIL}.form.value.instagram": "Instagram",
    f"{DETAIL}.form.value.instagram.comment": "Comment",
    f"{DETAIL}.form.value.instagram.commentWithPrefix": "Instagram Comment",
    f"{DETAIL}.form.value.whatsapp": "WhatsApp",
    f"{DETAIL}.form.value.whatsapp.message": "Message",
    f"{DETAIL}.form.value.whatsapp.messageWithPrefix": "WhatsApp Message",
    # Client validation
    f"{DETAIL}.form.name.error.required": "Enter a rule name.",
    f"{DETAIL}.form.name.error.maximum": "Rule name must be {max} characters or less.",
    f"{DETAIL}.form.conditions.value.textNumber.error.required": "Enter a value.",
    f"{DETAIL}.form.conditions.value.error.maximum": "Value must be {max} characters or less.",
    f"{DETAIL}.form.conditions.value.number.error.onlyNumber": "Only numbers are allowed.",
    f"{DETAIL}.form.conditions.value.error.invalidOption": "Select an available option.",
    f"{DETAIL}.form.conditions.key.error.required": "Select a condition.",
    f"{DETAIL}.form.conditions.error.count": "A rule needs {min} to {max} conditions.",
    f"{DETAIL}.form.button.add.tooltip.exceedMaximum": "You can add up to {max} conditions.",
    f"{DETAIL}.form.consequent.error.group": "Select a team.",
    f"{DETAIL}.form.consequent.error.agent": "Select a bot.",
    f"{DETAIL}.form.consequent.error.priority": "Select a priority.",
    f"{DETAIL}.form.conditions.value.error.inline.custom": (
        "Custom bots only support in-app, Facebook conversation, Twitter direct message "
        "and WhatsApp channels."
    ),
    f"{DETAIL}.form.conditions.value.error.inline.faq": "FAQ bots only support in-app channels.",
    f"{DETAIL}.form.conditions.value.error.inline.unknown": (
        "The selected channel is not supported by the selected bot."
    ),
    # Server validation reasons
    f"{DETAIL}.form.conditions.serverError.invalidKey": "This condition is no longer available.",
    f"{DETAIL}.form.conditions.serverError.invalidType": "The condition type is invalid.",
    f"{DETAIL}.form.conditions.serverError.invalidOperator": "The operator is invalid.",
    f"{DETAIL}.form.conditions.serverError.invalidValue": "The value is no longer available.",
    # Inline notifications
    f"{DETAIL}.form.serverError.save": "Couldn't save the rule. Try again.",
    f"{DETAIL}.form.serverError.delete": "Couldn't delete the rule.",
    f"{DETAIL}.form.serverError.fetch": "Couldn't load the rule.",
    f"{DETAIL}.form.serverError.button.retry": "Retry",
    # Toasts
    "desk.settings.assignmentRules.toast.create.success": "Assignment rule created.",
    "desk.settings.assignmentRules.toast.update.success": "Assignment rule updated.",
    "desk.settings.assignmentRules.toast.delete.success": "Assignment rule deleted.",
    "desk.settings.priorityRules.toast.create.success": "Priority rule created.",
    "desk.settings.priorityRules.toast.update.success": "Priority rule updated.",
    "desk.settings.priorityRules.toast.delete.success": "Priority rule deleted.",
    f"{LIST}.toast.statusOn.success": "{name} is turned on.",
    f"{LIST}.toast.statusOff.success": "{name} is turned off.",
    f"{LIST}.toast.order.success": "Rule order saved.",
    f"{LIST}.toast.error": "Something went wrong. {reason}",
}


class CatalogFormatter:
    """MessageFormatter backed by an in-memory catalog.

    Unknown ids format to the id itself so a missing translation is
    visible rather than fatal.
    """

    def __init__(self, messages: Mapping[str, str] | None = None) -> None:
        self._messages = dict(ENGLISH_MESSAGES if messages is None else messages)

    def format(self, message_id: str, **values: Any) -> str:
        template = self._messages.get(message_id)
        if template is None:
            log.debug("Unknown message id", message_id=message_id)
            return message_id
        if not values:
            return template
        try:
            return template.format(**values)
        except (KeyError, IndexError) as e:
            log.warning("Message placeholder missing", message_id=message_id, error=str(e))
            return template

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._messages
