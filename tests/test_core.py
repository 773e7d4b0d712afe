"""Tests for retry, cancellation and the exception hierarchy."""

from __future__ import annotations

import pytest

from desk_rules.core.cancellation import CancellationScope, CancellationToken
from desk_rules.core.exceptions import (
    DeskApiError,
    DeskConnectionError,
    DeskRulesError,
    DeskTimeoutError,
    RecordNotFoundError,
    RequestCancelledError,
    RuleValidationError,
    ServerValidationError,
    wrap_exception,
)
from desk_rules.core.retry import NO_RETRY_CONFIG, RetryConfig, retry_async

FAST = RetryConfig(max_attempts=3, base_delay=0.0, jitter=0.0)


class Flaky:
    """Async callable failing a fixed number of times."""

    def __init__(self, failures: list[Exception], result="ok"):
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    async def __call__(self, *args, **kwargs):
        self.calls += 1
        self.args = (args, kwargs)
        if self.failures:
            raise self.failures.pop(0)
        return self.result


class TestRetry:
    """Test retry_async."""

    @pytest.mark.asyncio
    async def test_success_after_connection_errors(self):
        func = Flaky([DeskConnectionError("down"), DeskTimeoutError("slow")])

        result = await retry_async(func, 7, config=FAST, page=2)

        assert result == "ok"
        assert func.calls == 3
        assert func.args == ((7,), {"page": 2})

    @pytest.mark.asyncio
    async def test_non_retryable_raised_immediately(self):
        func = Flaky([RecordNotFoundError("gone")])

        with pytest.raises(RecordNotFoundError):
            await retry_async(func, config=FAST)

        assert func.calls == 1

    @pytest.mark.asyncio
    async def test_exhausted(self):
        func = Flaky([DeskConnectionError("down")] * 5)

        with pytest.raises(DeskConnectionError):
            await retry_async(func, config=FAST)

        assert func.calls == 3

    @pytest.mark.asyncio
    async def test_no_retry_config(self):
        func = Flaky([DeskConnectionError("down")])

        with pytest.raises(DeskConnectionError):
            await retry_async(func, config=NO_RETRY_CONFIG)

        assert func.calls == 1

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        seen = []
        func = Flaky([DeskConnectionError("down")])

        await retry_async(func, config=FAST, on_retry=lambda e, attempt, delay: seen.append((type(e), attempt)))

        assert seen == [(DeskConnectionError, 1)]

    def test_delay_growth_and_cap(self):
        config = RetryConfig(base_delay=1.0, max_delay=3.0, jitter=0.0)

        assert config.calculate_delay(1) == 1.0
        assert config.calculate_delay(2) == 2.0
        assert config.calculate_delay(3) == 3.0
        assert config.calculate_delay(10) == 3.0

    def test_jitter_bounds(self):
        config = RetryConfig(base_delay=1.0, jitter=0.1)

        for _ in range(20):
            assert 0.9 <= config.calculate_delay(1) <= 1.1

    def test_should_retry(self):
        config = RetryConfig(max_attempts=2)

        assert config.should_retry(DeskConnectionError("down"), 1)
        assert not config.should_retry(DeskConnectionError("down"), 2)
        assert not config.should_retry(DeskApiError("bad"), 1)
        assert not config.should_retry(ValueError("bad"), 1)


class TestCancellation:
    """Test cancellation tokens and scopes."""

    def test_token(self):
        token = CancellationToken(label="rule", params=5)
        token.raise_if_cancelled()

        token.cancel()

        assert token.cancelled
        with pytest.raises(RequestCancelledError) as exc_info:
            token.raise_if_cancelled()
        assert exc_info.value.details == {"params": 5}

    def test_newer_request_supersedes(self):
        scope = CancellationScope()
        first = scope.issue("rule", params=1)
        second = scope.issue("rule", params=2)
        fields = scope.issue("custom_fields")

        assert first.cancelled
        assert not second.cancelled
        assert not fields.cancelled

    def test_cancel_key(self):
        scope = CancellationScope()
        token = scope.issue("rules")

        scope.cancel("rules")
        scope.cancel("unknown")

        assert token.cancelled

    def test_close_and_reopen(self):
        scope = CancellationScope()
        token = scope.issue("rule")

        scope.close()

        assert scope.closed
        assert token.cancelled
        assert scope.issue("rule").cancelled

        scope.reopen()
        assert not scope.issue("rule").cancelled


class TestExceptions:
    """Test the exception hierarchy."""

    def test_hierarchy(self):
        assert issubclass(DeskConnectionError, DeskApiError)
        assert issubclass(RecordNotFoundError, DeskApiError)
        assert issubclass(ServerValidationError, DeskRulesError)
        assert not issubclass(ServerValidationError, DeskApiError)

    def test_to_dict(self):
        error = RuleValidationError("Name is required", details={"field": "name"})

        assert error.status_code == 400
        assert error.to_dict() == {
            "error": "RULE_VALIDATION_ERROR",
            "message": "Name is required",
            "details": {"field": "name"},
        }

    def test_str(self):
        error = DeskTimeoutError("Timed out", details={"path": "/rules/"}, cause=TimeoutError("t"))

        assert str(error) == "DESK_TIMEOUT: Timed out | details={'path': '/rules/'} | cause=t"

    def test_wrap_exception(self):
        original = ValueError("bad value")

        wrapped = wrap_exception(original, RuleValidationError, rule_id=3)

        assert isinstance(wrapped, RuleValidationError)
        assert wrapped.message == "bad value"
        assert wrapped.details == {"rule_id": 3}
        assert wrapped.cause is original
        assert wrapped.to_dict()["cause"] == "bad value"

    def test_server_validation_carries_payload(self):
        error = ServerValidationError("Invalid rule")

        assert error.rule_error is None
        assert error.status_code == 400
