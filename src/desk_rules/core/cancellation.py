"""Cancellation tokens for view-scoped fetches.

A fetch started by a view must not apply its result once the view is
gone or once the identifying parameter (e.g. the rule id) has changed.
Each fetch carries a token; the result is applied only while the token
is live.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Hashable

from desk_rules.core.exceptions import RequestCancelledError


@dataclass
class CancellationToken:
    """Token tied to one in-flight request."""

    label: str = ""
    params: Any = None
    _cancelled: bool = field(default=False, init=False)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        """Raise RequestCancelledError if the token was cancelled."""
        if self._cancelled:
            raise RequestCancelledError(
                f"Request '{self.label}' was cancelled",
                details={"params": self.params} if self.params is not None else None,
            )


class CancellationScope:
    """Issues tokens per request key.

    Issuing a token for a key cancels the previous token for that key,
    so only the latest request for e.g. "rule-detail" can apply its
    result. Closing the scope (view unmount) cancels every token.
    """

    def __init__(self) -> None:
        self._tokens: dict[Hashable, CancellationToken] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def issue(self, key: Hashable, params: Any = None) -> CancellationToken:
        """Issue a fresh token for a request key.

        Args:
            key: Request kind (one live token per key)
            params: Identifying parameters, kept for logging

        Returns:
            New token; already cancelled when the scope is closed
        """
        previous = self._tokens.get(key)
        if previous is not None:
            previous.cancel()

        token = CancellationToken(label=str(key), params=params)
        if self._closed:
            token.cancel()
        self._tokens[key] = token
        return token

    def cancel(self, key: Hashable) -> None:
        token = self._tokens.pop(key, None)
        if token is not None:
            token.cancel()

    def close(self) -> None:
        """Cancel all tokens and refuse live tokens from now on."""
        self._closed = True
        for token in self._tokens.values():
            token.cancel()
        self._tokens.clear()

    def reopen(self) -> None:
        self._closed = False
