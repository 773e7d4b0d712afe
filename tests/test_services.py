"""Tests for the rule editor and rule list services."""

from __future__ import annotations

import asyncio

import pytest

from desk_rules.core.exceptions import DeskApiError, DeskConnectionError
from desk_rules.integrations.desk.mock import MockDeskClient
from desk_rules.models import (
    Condition,
    ConditionType,
    ConsequentTarget,
    GroupWithBotAgentConsequent,
    RuleStatus,
    RuleType,
)
from desk_rules.rules.catalog import CHANNEL_TYPE_KEY, CUSTOMER_NAME_KEY
from desk_rules.services.notifications import NotificationLevel, RuleOperation
from desk_rules.services.rule_editor import RuleEditorService
from desk_rules.services.rule_list import RuleListService


class GatedDeskClient(MockDeskClient):
    """Mock client whose rule reads wait for the test to open a gate."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.gate = asyncio.Event()

    async def get_rule(self, rule_id):
        await self.gate.wait()
        return await super().get_rule(rule_id)

    async def list_rules(self, rule_type, offset=0, limit=50):
        await self.gate.wait()
        return await super().list_rules(rule_type, offset, limit)


class GatedFieldsDeskClient(MockDeskClient):
    """Mock client whose ticket field reads wait for the test to open a gate."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.gate = asyncio.Event()

    async def list_ticket_fields(self, offset=0, limit=100):
        await self.gate.wait()
        return await super().list_ticket_fields(offset, limit)


@pytest.fixture
def editor(desk_client, formatter, notifications, test_settings):
    return RuleEditorService(
        desk_client,
        RuleType.ASSIGNMENT,
        formatter=formatter,
        notifications=notifications,
        settings=test_settings,
    )


@pytest.fixture
def rule_list(desk_client, formatter, notifications, test_settings):
    return RuleListService(
        desk_client,
        RuleType.ASSIGNMENT,
        formatter=formatter,
        notifications=notifications,
        settings=test_settings,
    )


@pytest.fixture
def seeded_client(desk_client, make_rule):
    """Mock client holding three assignment rules (ids 1-3)."""
    for order in range(1, 4):
        rule = make_rule(rule_id=order, name=f"Rule {order}", order=order)
        desk_client.rules[rule.id] = rule
    desk_client._ids = iter(range(4, 100))
    return desk_client


def _fill_new_rule(form) -> None:
    form.set_name(" VIP ")
    form.set_condition_key(0, CUSTOMER_NAME_KEY)
    form.set_condition_value(0, "vip")
    form.select_group(10)


class TestEditorOpen:
    """Test loading the editor."""

    @pytest.mark.asyncio
    async def test_open_new(self, editor, desk_client):
        form = await editor.open()

        assert form is not None
        assert not form.is_editing
        assert "ticket_field.key.plan" in editor.catalog
        assert desk_client.call_count("list_ticket_fields") == 1
        assert desk_client.call_count("list_customer_fields") == 1
        assert editor.inline_notification() is None

    @pytest.mark.asyncio
    async def test_open_existing_with_bot(self, editor, desk_client, make_rule, custom_bot):
        """Test the team and bot agent of the consequent are loaded."""
        rule = make_rule(
            rule_id=5,
            consequent=GroupWithBotAgentConsequent(
                group=ConsequentTarget(value=10), agent=ConsequentTarget(value=custom_bot.id)
            ),
        )
        desk_client.rules[rule.id] = rule

        form = await editor.open(rule.id)

        assert form.rule_id == 5
        assert form.agent == custom_bot
        assert editor.group.name == "Support"

    @pytest.mark.asyncio
    async def test_missing_team_ignored(self, editor, desk_client, notifications, make_rule):
        """Test a failed team lookup neither blocks the form nor notifies."""
        rule = make_rule(rule_id=5)
        rule.conditional.consequent.group.value = 99
        desk_client.rules[rule.id] = rule

        form = await editor.open(rule.id)

        assert form is not None
        assert editor.group is None
        assert notifications.errors() == []

    @pytest.mark.asyncio
    async def test_fetch_failure_offers_retry(self, editor, desk_client, notifications, make_rule):
        """Test a failed rule fetch shows a retry that refetches rule and fields."""
        desk_client.rules[5] = make_rule(rule_id=5)
        desk_client.fail_next("get_rule", DeskConnectionError("Desk API unreachable"))

        assert await editor.open(5) is None
        assert notifications.errors()[-1].message == "Desk API unreachable"

        banner = editor.inline_notification()
        assert banner.operation == RuleOperation.FETCH
        assert banner.message == "Couldn't load the rule."
        assert banner.action.label == "Retry"

        form = await banner.action.run()

        assert form.rule_id == 5
        assert desk_client.call_count("get_rule") == 2
        assert desk_client.call_count("list_ticket_fields") == 2
        assert editor.inline_notification() is None

    @pytest.mark.asyncio
    async def test_custom_field_failure(self, editor, desk_client):
        desk_client.fail_next("list_customer_fields", DeskApiError("Fields unavailable"))

        form = await editor.open()

        assert form is not None
        assert editor.failed_operation == RuleOperation.FETCH
        assert "ticket_field.key.plan" not in editor.catalog

    @pytest.mark.asyncio
    async def test_close_discards_pending_fetch(
        self, ticket_fields, customer_fields, groups, formatter, test_settings, make_rule
    ):
        """Test a rule arriving after close() is not applied."""
        client = GatedDeskClient(
            ticket_fields=ticket_fields, customer_fields=customer_fields, groups=groups
        )
        client.rules[5] = make_rule(rule_id=5)
        editor = RuleEditorService(
            client, RuleType.ASSIGNMENT, formatter=formatter, settings=test_settings
        )

        task = asyncio.create_task(editor.open(5))
        await asyncio.sleep(0)
        editor.close()
        client.gate.set()

        assert await task is None
        assert editor.form is None
        assert editor.closed

    @pytest.mark.parametrize("rule_id", [None, 5])
    @pytest.mark.asyncio
    async def test_close_during_custom_field_fetch(
        self, ticket_fields, customer_fields, formatter, test_settings, make_rule, rule_id
    ):
        """Test closing while custom fields load leaves no form and skips the rule fetch."""
        client = GatedFieldsDeskClient(ticket_fields=ticket_fields, customer_fields=customer_fields)
        client.rules[5] = make_rule(rule_id=5)
        editor = RuleEditorService(
            client, RuleType.ASSIGNMENT, formatter=formatter, settings=test_settings
        )

        task = asyncio.create_task(editor.open(rule_id))
        await asyncio.sleep(0)
        editor.close()
        client.gate.set()

        assert await task is None
        assert editor.form is None
        assert client.call_count("get_rule") == 0
        assert "ticket_field.key.plan" not in editor.catalog
        assert editor.inline_notification() is None

    @pytest.mark.asyncio
    async def test_reopen_after_close(self, editor):
        await editor.open()
        editor.close()

        form = await editor.open()

        assert form is not None
        assert not editor.closed


class TestEditorSubmit:
    """Test create and update submission."""

    @pytest.mark.asyncio
    async def test_create(self, editor, desk_client, notifications):
        saved = []
        editor.on_saved = lambda: saved.append(True)
        form = await editor.open()
        _fill_new_rule(form)

        rule = await editor.submit()

        assert rule.name == "VIP"
        assert desk_client.rules[rule.id].conditional.conditions[0].type == ConditionType.TEXT
        assert notifications.history[-1].level == NotificationLevel.SUCCESS
        assert notifications.history[-1].message == "Assignment rule created."
        assert editor.closed
        assert saved == [True]
        assert not form.is_dirty()

    @pytest.mark.asyncio
    async def test_update(self, editor, desk_client, notifications, make_rule):
        desk_client.rules[5] = make_rule(rule_id=5, name="VIP")
        form = await editor.open(5)
        form.set_name("VIP accounts")

        rule = await editor.submit()

        assert rule.name == "VIP accounts"
        assert desk_client.call_count("update_rule") == 1
        assert notifications.history[-1].message == "Assignment rule updated."

    @pytest.mark.asyncio
    async def test_ineligible_form_not_sent(self, editor, desk_client):
        await editor.open()

        assert await editor.submit() is None
        assert desk_client.call_count("create_rule") == 0

    @pytest.mark.asyncio
    async def test_busy_editor_ignores_submit(self, editor, desk_client):
        form = await editor.open()
        _fill_new_rule(form)
        editor._busy = True

        assert await editor.submit() is None
        assert desk_client.call_count("create_rule") == 0

    @pytest.mark.asyncio
    async def test_server_validation_reconciled(self, editor, desk_client, notifications, formatter):
        """Test server-side errors land on the rejected condition."""
        form = await editor.open()
        _fill_new_rule(form)
        form.set_condition_key(0, "ticket_field.key.note")
        form.set_condition_value(0, "refund")
        desk_client.ticket_fields = []

        assert await editor.submit() is None

        server = [e for e in form.errors(formatter) if e.server]
        assert [(e.field, e.code) for e in server] == [("conditions[0].key", "INVALID_KEY")]
        assert notifications.errors()[-1].operation == RuleOperation.SAVE
        banner = editor.inline_notification()
        assert banner.message == "Couldn't save the rule. Try again."
        assert banner.action is None
        assert not editor.closed

    @pytest.mark.asyncio
    async def test_save_failure_has_no_retry(self, editor, desk_client, notifications):
        form = await editor.open()
        _fill_new_rule(form)
        desk_client.fail_next("create_rule", DeskApiError("Service unavailable"))

        assert await editor.submit() is None

        assert notifications.errors()[-1].message == "Service unavailable"
        assert editor.inline_notification().action is None
        assert desk_client.call_count("create_rule") == 1
        assert form.is_submittable(editor.formatter)


class TestEditorDelete:
    """Test deleting from the editor."""

    @pytest.mark.asyncio
    async def test_delete(self, editor, desk_client, notifications, make_rule):
        desk_client.rules[5] = make_rule(rule_id=5)
        await editor.open(5)

        assert await editor.delete() is True
        assert 5 not in desk_client.rules
        assert notifications.history[-1].message == "Assignment rule deleted."
        assert editor.closed

    @pytest.mark.asyncio
    async def test_delete_failure_retry(self, editor, desk_client, make_rule):
        desk_client.rules[5] = make_rule(rule_id=5)
        await editor.open(5)
        desk_client.fail_next("delete_rule", DeskApiError("Locked"))

        assert await editor.delete() is False
        banner = editor.inline_notification()
        assert banner.operation == RuleOperation.DELETE
        assert banner.message == "Couldn't delete the rule."

        assert await banner.action.run() is True
        assert 5 not in desk_client.rules


class TestInlineNotification:
    """Test banner precedence."""

    @pytest.mark.asyncio
    async def test_bot_conflict_before_request_failure(self, editor, custom_bot):
        form = await editor.open()
        form.set_consequent_type("GROUP_WITH_BOT_AGENT")
        form.select_group(10)
        form.select_agent(custom_bot)
        form.set_condition_key(0, CHANNEL_TYPE_KEY)
        form.set_condition_value(0, "INSTAGRAM")
        editor.failed_operation = RuleOperation.SAVE

        banner = editor.inline_notification()

        assert banner.inline
        assert banner.operation is None
        assert banner.message == editor.formatter.format(
            "desk.settings.ticketRulesDetail.form.conditions.value.error.inline.custom"
        )

        form.set_consequent_type("GROUP")
        assert editor.inline_notification().operation == RuleOperation.SAVE

        editor.dismiss_inline_notification()
        assert editor.inline_notification() is None


class TestRuleList:
    """Test the rule list service."""

    @pytest.mark.asyncio
    async def test_load(self, rule_list, seeded_client):
        rules = await rule_list.load()

        assert [rule.id for rule in rules] == [1, 2, 3]
        assert rule_list.loaded
        assert rule_list.can_create
        assert rule_list.actions_enabled

    @pytest.mark.asyncio
    async def test_rule_limit_blocks_create(self, rule_list, seeded_client):
        rule_list.settings.rules.max_rules = 3
        await rule_list.load()

        assert not rule_list.can_create
        assert rule_list.actions_enabled

    @pytest.mark.asyncio
    async def test_set_status(self, rule_list, seeded_client, notifications):
        await rule_list.load()

        assert await rule_list.set_status(2, RuleStatus.OFF) is True

        assert seeded_client.rules[2].status == RuleStatus.OFF
        assert notifications.history[-1].message == "Rule 2 is turned off."
        assert seeded_client.call_count("list_rules") == 2

        await rule_list.set_status(2, "ON")
        assert notifications.history[-1].message == "Rule 2 is turned on."

    @pytest.mark.asyncio
    async def test_delete(self, rule_list, seeded_client, notifications):
        await rule_list.load()

        assert await rule_list.delete(1) is True

        assert [(rule.id, rule.order) for rule in rule_list.rules] == [(2, 1), (3, 2)]
        assert notifications.history[-1].message == "Assignment rule deleted."

    @pytest.mark.asyncio
    async def test_write_failure_notifies(self, rule_list, seeded_client, notifications):
        await rule_list.load()
        seeded_client.fail_next("delete_rule", DeskApiError("Locked"))

        assert await rule_list.delete(1) is False

        error = notifications.errors()[-1]
        assert error.message == "Locked"
        assert error.operation == RuleOperation.DELETE
        assert error.action is None
        assert len(rule_list.rules) == 3

    @pytest.mark.asyncio
    async def test_draft_order_locks_actions(self, rule_list, seeded_client):
        """Test creating and per-rule actions wait for the draft order."""
        await rule_list.load()
        rule_list.move(1, 3)

        assert rule_list.is_dirty
        assert not rule_list.can_create
        assert not rule_list.actions_enabled
        assert await rule_list.set_status(1, RuleStatus.OFF) is False
        assert seeded_client.call_count("update_rule") == 0

        rule_list.cancel_order()
        assert not rule_list.is_dirty
        assert [rule.id for rule in rule_list.rules] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_save_order(self, rule_list, seeded_client, notifications):
        await rule_list.load()
        rule_list.move(1, 3)

        assert await rule_list.save_order() is True

        assert seeded_client.call_count("reorder_rules") == 1
        _, orders = next(call for call in seeded_client.calls if call[0] == "reorder_rules")
        assert [(o.id, o.order) for o in orders] == [(2, 1), (3, 2), (1, 3)]
        assert notifications.history[-1].message == "Rule order saved."
        assert not rule_list.is_dirty
        assert [rule.id for rule in rule_list.rules] == [2, 3, 1]

    @pytest.mark.asyncio
    async def test_save_order_failure_keeps_draft(self, rule_list, seeded_client, notifications):
        await rule_list.load()
        rule_list.move(3, 1)
        seeded_client.fail_next("reorder_rules", DeskApiError("Conflict"))

        assert await rule_list.save_order() is False

        assert rule_list.is_dirty
        assert [rule.id for rule in rule_list.rules] == [3, 1, 2]
        assert notifications.errors()[-1].operation == RuleOperation.ORDER
        assert [rule.order for rule in (await seeded_client.list_rules(RuleType.ASSIGNMENT)).results] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_load_failure_retry(self, rule_list, seeded_client, notifications):
        seeded_client.fail_next("list_rules", DeskConnectionError("down"))

        assert await rule_list.load() == []
        error = notifications.errors()[-1]
        assert error.operation == RuleOperation.FETCH
        assert not rule_list.is_busy

        rules = await error.action.run()
        assert len(rules) == 3

    @pytest.mark.asyncio
    async def test_close_discards_pending_load(
        self, ticket_fields, customer_fields, formatter, test_settings, make_rule
    ):
        client = GatedDeskClient(ticket_fields=ticket_fields, customer_fields=customer_fields)
        client.rules[1] = make_rule(rule_id=1)
        service = RuleListService(
            client, RuleType.ASSIGNMENT, formatter=formatter, settings=test_settings
        )

        task = asyncio.create_task(service.load())
        await asyncio.sleep(0)
        assert service.is_busy
        service.close()
        client.gate.set()

        assert await task == []
        assert not service.loaded
        assert not service.is_busy


@pytest.mark.asyncio
async def test_editor_save_refreshes_list(desk_client, formatter, notifications, test_settings):
    """Test the list re-fetches after the editor saves."""
    rule_list = RuleListService(
        desk_client,
        RuleType.ASSIGNMENT,
        formatter=formatter,
        notifications=notifications,
        settings=test_settings,
    )
    editor = RuleEditorService(
        desk_client,
        RuleType.ASSIGNMENT,
        formatter=formatter,
        notifications=notifications,
        settings=test_settings,
        on_saved=rule_list.load,
    )
    await rule_list.load()
    form = await editor.open()
    _fill_new_rule(form)

    await editor.submit()

    assert [rule.name for rule in rule_list.rules] == ["VIP"]
    assert isinstance(form.conditions[0], Condition)
