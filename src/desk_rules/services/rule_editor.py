"""Rule editor service.

Drives one rule form against the desk API: loads the custom fields that
make up the condition key catalog, loads an existing rule with the display
data of its consequent target, submits creates and updates, and deletes.

Fetches are tied to the editor's cancellation scope: results arriving after
close() or after a newer fetch for the same data are discarded.
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable

from desk_shared import get_logger, log_context

from desk_rules.config import Settings, get_settings
from desk_rules.core.cancellation import CancellationScope, CancellationToken
from desk_rules.core.exceptions import (
    DeskRulesError,
    RequestCancelledError,
    RuleValidationError,
    ServerValidationError,
)
from desk_rules.integrations.desk.base import DeskClient
from desk_rules.messages import DETAIL, CatalogFormatter, MessageFormatter, rule_type_prefix
from desk_rules.models import (
    Agent,
    AgentGroup,
    ConditionErrorMessage,
    GroupWithBotAgentConsequent,
    Rule,
    RuleType,
)
from desk_rules.rules.catalog import ConditionKeyCatalog, build_catalog
from desk_rules.rules.consequents import AnyConsequent, slot_value
from desk_rules.rules.form import RuleForm
from desk_rules.rules.values import CHANNEL_CONFLICT_MESSAGE_IDS
from desk_rules.services.notifications import (
    Notification,
    NotificationAction,
    NotificationCenter,
    NotificationLevel,
    RuleOperation,
)

log = get_logger(__name__)

# Inline banner precedence: bot channel conflicts first, then request failures
_CONFLICT_PRECEDENCE = (
    ConditionErrorMessage.INVALID_CHANNEL_BY_CONSEQUENT_CUSTOM_BOT,
    ConditionErrorMessage.INVALID_CHANNEL_BY_CONSEQUENT_FAQ_BOT,
    ConditionErrorMessage.INVALID_CHANNEL_BY_UNKNOWN_REASON,
)

# Failed operations that offer a retry action; saves must be resubmitted
_RETRYABLE = frozenset({RuleOperation.FETCH, RuleOperation.DELETE})


class RuleEditorService:
    """Create/edit/delete flow of a single rule."""

    def __init__(
        self,
        client: DeskClient,
        rule_type: RuleType,
        *,
        formatter: MessageFormatter | None = None,
        notifications: NotificationCenter | None = None,
        settings: Settings | None = None,
        on_saved: Callable[[], Awaitable[Any] | Any] | None = None,
    ):
        """Initialize the editor.

        Args:
            client: Desk API client
            rule_type: Rule list the editor belongs to
            formatter: Message lookup for display text
            notifications: Toast/inline notification channel
            settings: Application settings (page sizes)
            on_saved: Called after a successful save or delete, e.g. to
                re-fetch the rule list
        """
        self.client = client
        self.rule_type = rule_type
        self.formatter = formatter or CatalogFormatter()
        self.notifications = notifications or NotificationCenter()
        self.settings = settings or get_settings()
        self.on_saved = on_saved

        self.catalog: ConditionKeyCatalog = build_catalog([], [])
        self.form: RuleForm | None = None
        self.rule_id: int | None = None
        self.group: AgentGroup | None = None
        self.failed_operation: RuleOperation | None = None

        self._scope = CancellationScope()
        self._busy = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def closed(self) -> bool:
        return self._scope.closed

    def _require_form(self) -> RuleForm:
        if self.form is None:
            raise RuleValidationError("Rule editor has no open form")
        return self.form

    def _toast_key(self, action: str) -> str:
        return f"desk.settings.{rule_type_prefix(self.rule_type)}.toast.{action}.success"

    def _fail(self, operation: RuleOperation, exc: DeskRulesError, **context: Any) -> None:
        log.error(
            "Rule request failed",
            operation=operation.value,
            error=str(exc),
            **context,
        )
        self.failed_operation = operation
        self.notifications.error(exc.message, operation)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def open(self, rule_id: int | None = None) -> RuleForm | None:
        """Open the editor for a new rule (no id) or an existing one.

        Returns:
            The form, or None when the rule could not be loaded
        """
        with log_context(rule_type=self.rule_type.value, rule_id=rule_id):
            return await self._open(rule_id)

    async def _open(self, rule_id: int | None) -> RuleForm | None:
        self._scope.reopen()
        opening = self._scope.issue("open", params=rule_id)
        self.rule_id = rule_id
        self.failed_operation = None
        self.group = None

        await self.refresh_custom_fields()
        if opening.cancelled:
            log.debug("Editor closed while loading custom fields")
            return None

        if rule_id is None:
            self.form = RuleForm(self.rule_type, self.catalog)
            return self.form

        token = self._scope.issue("rule", params=rule_id)
        try:
            rule = await self.client.get_rule(rule_id)
            token.raise_if_cancelled()
        except RequestCancelledError:
            log.debug("Discarded stale rule fetch")
            return None
        except DeskRulesError as e:
            if token.cancelled:
                return None
            self._fail(RuleOperation.FETCH, e)
            return None

        self.form = RuleForm.from_rule(rule, self.catalog)
        await self._load_consequent_targets(rule.conditional.consequent, token)
        return self.form

    async def refresh_custom_fields(self) -> ConditionKeyCatalog:
        """Re-fetch custom fields and rebuild the condition key catalog."""
        token = self._scope.issue("custom_fields")
        limit = self.settings.rules.custom_field_limit
        try:
            ticket_fields = await self.client.list_ticket_fields(0, limit)
            customer_fields = await self.client.list_customer_fields(0, limit)
            token.raise_if_cancelled()
        except RequestCancelledError:
            log.debug("Discarded stale custom field fetch")
            return self.catalog
        except DeskRulesError as e:
            if not token.cancelled:
                self._fail(RuleOperation.FETCH, e, request="custom_fields")
            return self.catalog

        self.catalog = build_catalog(ticket_fields.results, customer_fields.results)
        if self.form is not None:
            self.form.catalog = self.catalog
        return self.catalog

    async def _load_consequent_targets(
        self, consequent: AnyConsequent, token: CancellationToken
    ) -> None:
        group_id = slot_value(consequent, "group")
        if group_id is not None:
            try:
                group = await self.client.get_agent_group(int(group_id))
            except DeskRulesError as e:
                # Team display data is optional
                log.info("Agent group lookup failed", group_id=group_id, error=str(e))
            else:
                if not token.cancelled:
                    self.group = group

        agent_id = slot_value(consequent, "agent")
        if isinstance(consequent, GroupWithBotAgentConsequent) and agent_id is not None:
            try:
                agent: Agent = await self.client.get_agent(int(agent_id))
            except DeskRulesError as e:
                log.warning("Agent lookup failed", agent_id=agent_id, error=str(e))
                self.notifications.error(e.message, RuleOperation.FETCH)
                return
            if not token.cancelled and self.form is not None:
                self.form.agent = agent

    async def retry_fetch(self) -> RuleForm | None:
        return await self.open(self.rule_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def submit(self) -> Rule | None:
        """Create or update the rule.

        Returns:
            The saved rule, or None when the form is not submittable, a
            request is already in flight, or the save failed
        """
        with log_context(rule_type=self.rule_type.value, rule_id=self.rule_id):
            return await self._submit()

    async def _submit(self) -> Rule | None:
        form = self._require_form()
        if self._busy:
            log.debug("Submit ignored while a request is in flight")
            return None
        if not form.is_submittable(self.formatter):
            log.debug("Submit ignored for ineligible form")
            return None

        self._busy = True
        try:
            if form.is_editing:
                rule = await self.client.update_rule(form.to_update_payload())
                message_id = self._toast_key("update")
            else:
                rule = await self.client.create_rule(form.to_create_payload())
                message_id = self._toast_key("create")
        except ServerValidationError as e:
            self._fail(RuleOperation.SAVE, e)
            form.apply_server_error(e.rule_error)
            return None
        except DeskRulesError as e:
            self._fail(RuleOperation.SAVE, e)
            return None
        finally:
            self._busy = False

        self.failed_operation = None
        self.notifications.success(self.formatter.format(message_id), RuleOperation.SAVE)
        form.mark_persisted(rule)
        self.rule_id = rule.id
        await self._finish()
        return rule

    async def delete(self) -> bool:
        """Delete the rule being edited."""
        with log_context(rule_type=self.rule_type.value, rule_id=self.rule_id):
            return await self._delete()

    async def _delete(self) -> bool:
        if self.rule_id is None:
            raise RuleValidationError("Only an existing rule can be deleted")
        if self._busy:
            return False

        self._busy = True
        try:
            await self.client.delete_rule(self.rule_id)
        except DeskRulesError as e:
            self._fail(RuleOperation.DELETE, e)
            return False
        finally:
            self._busy = False

        self.failed_operation = None
        self.notifications.success(
            self.formatter.format(self._toast_key("delete")), RuleOperation.DELETE
        )
        await self._finish()
        return True

    async def _finish(self) -> None:
        self.close()
        if self.on_saved is not None:
            result = self.on_saved()
            if inspect.isawaitable(result):
                await result

    def close(self) -> None:
        """Close the editor; in-flight fetch results are discarded."""
        self._scope.close()

    def needs_discard_confirmation(self) -> bool:
        return self.form is not None and self.form.needs_discard_confirmation()

    # ------------------------------------------------------------------
    # Inline notification
    # ------------------------------------------------------------------

    def inline_notification(self) -> Notification | None:
        """Banner shown above the form, if any.

        Channel conflicts with the selected bot take precedence over the
        last failed request.
        """
        if self.form is not None:
            reasons = {reason for _, reason in self.form.channel_conflicts()}
            for conflict in _CONFLICT_PRECEDENCE:
                if conflict.value in reasons:
                    return Notification(
                        level=NotificationLevel.ERROR,
                        message=self.formatter.format(CHANNEL_CONFLICT_MESSAGE_IDS[conflict]),
                        inline=True,
                    )

        operation = self.failed_operation
        if operation is None:
            return None

        action = None
        if operation in _RETRYABLE:
            callback = self.delete if operation == RuleOperation.DELETE else self.retry_fetch
            action = NotificationAction(
                label=self.formatter.format(f"{DETAIL}.form.serverError.button.retry"),
                callback=callback,
            )
        return Notification(
            level=NotificationLevel.ERROR,
            message=self.formatter.format(f"{DETAIL}.form.serverError.{operation.value.lower()}"),
            operation=operation,
            action=action,
            inline=True,
        )

    def dismiss_inline_notification(self) -> None:
        self.failed_operation = None
