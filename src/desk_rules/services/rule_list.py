"""Rule list service.

Keeps the rule list of one rule type in sync with the desk API. Every
write (status toggle, delete, reorder) is followed by a fresh fetch;
moves stay in a local draft ordering until saved or cancelled.
"""

from __future__ import annotations

from desk_shared import get_logger

from desk_rules.config import Settings, get_settings
from desk_rules.core.cancellation import CancellationScope
from desk_rules.core.exceptions import DeskRulesError, RequestCancelledError
from desk_rules.integrations.desk.base import DeskClient
from desk_rules.messages import DETAIL, LIST, CatalogFormatter, MessageFormatter, rule_type_prefix
from desk_rules.models import Rule, RuleStatus, RuleType, RuleUpdate
from desk_rules.rules.ordering import RuleOrdering
from desk_rules.services.notifications import (
    NotificationAction,
    NotificationCenter,
    RuleOperation,
)

log = get_logger(__name__)


class RuleListService:
    """Rule list screen of one rule type."""

    def __init__(
        self,
        client: DeskClient,
        rule_type: RuleType,
        *,
        formatter: MessageFormatter | None = None,
        notifications: NotificationCenter | None = None,
        settings: Settings | None = None,
    ):
        self.client = client
        self.rule_type = rule_type
        self.formatter = formatter or CatalogFormatter()
        self.notifications = notifications or NotificationCenter()
        self.settings = settings or get_settings()

        self.ordering = RuleOrdering()
        self.loaded = False
        self._scope = CancellationScope()
        self._fetching = False
        self._writing = False

    @property
    def rules(self) -> list[Rule]:
        """Rules in (draft) order."""
        return self.ordering.rules

    @property
    def is_busy(self) -> bool:
        return self._fetching or self._writing

    @property
    def is_dirty(self) -> bool:
        return self.ordering.is_dirty

    @property
    def can_create(self) -> bool:
        """New rules are blocked while busy, while reordering and at the rule limit."""
        return (
            not self.is_busy
            and not self.is_dirty
            and len(self.ordering.committed) < self.settings.rules.max_rules
        )

    @property
    def actions_enabled(self) -> bool:
        """Per-rule edit, delete and status actions."""
        return not self.is_busy and not self.is_dirty

    def _find(self, rule_id: int) -> Rule | None:
        for rule in self.ordering.committed:
            if rule.id == rule_id:
                return rule
        return None

    def _fail(self, operation: RuleOperation, exc: DeskRulesError, **context) -> None:
        log.error(
            "Rule list request failed",
            operation=operation.value,
            rule_type=self.rule_type.value,
            error=str(exc),
            **context,
        )
        action = None
        if operation == RuleOperation.FETCH:
            action = NotificationAction(
                label=self.formatter.format(f"{DETAIL}.form.serverError.button.retry"),
                callback=self.load,
            )
        self.notifications.error(exc.message, operation, action=action)

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def load(self) -> list[Rule]:
        """Fetch the rule list; a newer load supersedes an older one."""
        self._scope.reopen()
        token = self._scope.issue("rules", params=self.rule_type.value)
        self._fetching = True
        try:
            page = await self.client.list_rules(
                self.rule_type, 0, self.settings.rules.list_limit
            )
            token.raise_if_cancelled()
        except RequestCancelledError:
            log.debug("Discarded stale rule list fetch", rule_type=self.rule_type.value)
            return self.rules
        except DeskRulesError as e:
            if not token.cancelled:
                self._fail(RuleOperation.FETCH, e)
            return self.rules
        finally:
            if not token.cancelled:
                self._fetching = False

        self.ordering.load(page.results)
        self.loaded = True
        log.debug("Rule list loaded", rule_type=self.rule_type.value, count=page.count)
        return self.rules

    def close(self) -> None:
        """Discard the results of in-flight fetches."""
        self._scope.close()
        self._fetching = False

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _writable(self, operation: str, rule_id: int) -> Rule | None:
        if not self.actions_enabled:
            log.debug(
                "Rule action ignored", operation=operation, rule_id=rule_id,
                busy=self.is_busy, dirty=self.is_dirty,
            )
            return None
        rule = self._find(rule_id)
        if rule is None:
            log.warning("Rule action on unknown rule", operation=operation, rule_id=rule_id)
        return rule

    async def set_status(self, rule_id: int, status: RuleStatus | str) -> bool:
        """Turn a rule on or off."""
        status = RuleStatus(status)
        rule = self._writable("status", rule_id)
        if rule is None:
            return False

        self._writing = True
        try:
            updated = await self.client.update_rule(RuleUpdate(id=rule_id, status=status))
        except DeskRulesError as e:
            self._fail(RuleOperation.STATUS, e, rule_id=rule_id, status=status.value)
            return False
        finally:
            self._writing = False

        suffix = "statusOn" if updated.status == RuleStatus.ON else "statusOff"
        self.notifications.success(
            self.formatter.format(f"{LIST}.toast.{suffix}.success", name=updated.name),
            RuleOperation.STATUS,
        )
        await self.load()
        return True

    async def delete(self, rule_id: int) -> bool:
        rule = self._writable("delete", rule_id)
        if rule is None:
            return False

        self._writing = True
        try:
            await self.client.delete_rule(rule_id)
        except DeskRulesError as e:
            self._fail(RuleOperation.DELETE, e, rule_id=rule_id)
            return False
        finally:
            self._writing = False

        prefix = rule_type_prefix(self.rule_type)
        self.notifications.success(
            self.formatter.format(f"desk.settings.{prefix}.toast.delete.success"),
            RuleOperation.DELETE,
        )
        await self.load()
        return True

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def move(self, start: int, end: int) -> list[Rule]:
        """Move a rule in the draft ordering (orders are 1-based)."""
        return self.ordering.move(start, end)

    def cancel_order(self) -> None:
        self.ordering.cancel()

    async def save_order(self) -> bool:
        """Persist the draft ordering in a single request.

        On failure the draft is kept so the user can retry or cancel.
        """
        if not self.is_dirty:
            return True
        if self.is_busy:
            log.debug("Order save ignored while a request is in flight")
            return False

        orders = self.ordering.draft_orders()
        self._writing = True
        try:
            await self.client.reorder_rules(self.rule_type, orders)
        except DeskRulesError as e:
            self._fail(RuleOperation.ORDER, e, orders=[o.model_dump() for o in orders])
            return False
        finally:
            self._writing = False

        self.ordering.commit()
        self.notifications.success(
            self.formatter.format(f"{LIST}.toast.order.success"), RuleOperation.ORDER
        )
        await self.load()
        return True
