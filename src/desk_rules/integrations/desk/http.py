"""Desk Platform API client.

Talks to the project-scoped desk REST API over httpx. Idempotent reads are
retried on connection failures and timeouts; writes are sent once.

Error mapping:
- 404 -> RecordNotFoundError
- 4xx with a rule validation payload -> ServerValidationError
- other non-2xx -> DeskApiError
- timeouts / transport failures -> DeskTimeoutError / DeskConnectionError
"""

from __future__ import annotations

from typing import Any, NoReturn, Sequence

import httpx
from pydantic import ValidationError

from desk_shared import get_logger

from desk_rules.config import Settings
from desk_rules.core.exceptions import (
    DeskApiError,
    DeskConnectionError,
    DeskTimeoutError,
    RecordNotFoundError,
    ServerValidationError,
    wrap_exception,
)
from desk_rules.core.retry import RetryConfig, retry_async
from desk_rules.integrations.desk.base import DeskClient
from desk_rules.models import (
    Agent,
    AgentGroup,
    CustomField,
    Page,
    Rule,
    RuleCreate,
    RuleError,
    RuleOrder,
    RuleType,
    RuleUpdate,
)

log = get_logger(__name__)


def _parse_rule_error(body: Any) -> RuleError | None:
    """Extract the per-field rule validation payload of an error response."""
    if not isinstance(body, dict):
        return None
    candidate = body.get("error") if isinstance(body.get("error"), dict) else body
    if not isinstance(candidate, dict) or "conditional" not in candidate:
        return None
    try:
        return RuleError.model_validate(candidate)
    except ValidationError as e:
        log.warning("Unparseable rule validation payload", error=str(e))
        return None


def _error_message(body: Any, response: httpx.Response) -> str:
    if isinstance(body, dict):
        for key in ("detail", "message", "code"):
            if isinstance(body.get(key), str):
                return body[key]
    return f"Desk API responded {response.status_code}"


class HttpDeskClient(DeskClient):
    """Desk API client over httpx.

    Attributes:
        base_url: API root, may contain a ``{region}`` placeholder
        project_id: Project all rule requests are scoped to
    """

    def __init__(
        self,
        base_url: str,
        api_token: str,
        project_id: str,
        *,
        region: str = "",
        token_header: str = "Authorization",
        timeout: float = 30.0,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the desk API client.

        Args:
            base_url: API root URL
            api_token: API token sent in ``token_header``
            project_id: Desk project id
            region: Region substituted into ``base_url``
            token_header: Header carrying the token
            timeout: HTTP request timeout
            retry_config: Retry policy for reads
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        if "{region}" in base_url:
            base_url = base_url.format(region=region)
        self.base_url = base_url.rstrip("/")
        self.project_id = project_id
        self.region = region
        self._retry_config = retry_config or RetryConfig()

        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/projects/{project_id}/",
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "application/json",
                token_header: api_token,
            },
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> HttpDeskClient:
        api = settings.api
        return cls(
            base_url=api.base_url,
            api_token=api.api_token,
            project_id=api.project_id,
            region=api.region,
            token_header=api.token_header,
            timeout=api.timeout,
            retry_config=RetryConfig(
                max_attempts=settings.retry.max_attempts,
                base_delay=settings.retry.base_delay,
                max_delay=settings.retry.max_delay,
            ),
            **kwargs,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            log.error("Desk API timeout", method=method, path=path, error=str(e))
            raise wrap_exception(
                e, DeskTimeoutError, "Desk API request timed out", method=method, path=path
            ) from e
        except httpx.TransportError as e:
            log.error("Desk API connection failed", method=method, path=path, error=str(e))
            raise wrap_exception(
                e, DeskConnectionError, "Could not reach the desk API", method=method, path=path
            ) from e

        if response.is_success:
            return response

        self._raise_for_response(response, method, path)

    def _raise_for_response(self, response: httpx.Response, method: str, path: str) -> NoReturn:
        try:
            body = response.json()
        except ValueError:
            body = None

        status = response.status_code
        message = _error_message(body, response)
        details = {"method": method, "path": path, "status": status}

        if status == 404:
            log.warning("Desk API record not found", **details)
            raise RecordNotFoundError(message, details=details)

        if 400 <= status < 500:
            rule_error = _parse_rule_error(body)
            if rule_error is not None:
                log.warning("Desk API rejected rule", **details)
                raise ServerValidationError(message, rule_error=rule_error, details=details)

        log.error("Desk API error", error=message, **details)
        raise DeskApiError(message, details=details)

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._request("GET", path, params=params)
        return response.json()

    async def _read(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await retry_async(self._get_json, path, params, config=self._retry_config)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    async def list_rules(self, rule_type: RuleType, offset: int = 0, limit: int = 50) -> Page[Rule]:
        data = await self._read(
            "ticket_rules/", {"type": rule_type.value, "offset": offset, "limit": limit}
        )
        return Page[Rule].model_validate(data)

    async def get_rule(self, rule_id: int) -> Rule:
        data = await self._read(f"ticket_rules/{rule_id}/")
        return Rule.model_validate(data)

    async def create_rule(self, payload: RuleCreate) -> Rule:
        response = await self._request(
            "POST", "ticket_rules/", json=payload.model_dump(mode="json", by_alias=True)
        )
        rule = Rule.model_validate(response.json())
        log.info("Rule created", rule_id=rule.id, rule_type=rule.type.value)
        return rule

    async def update_rule(self, payload: RuleUpdate) -> Rule:
        response = await self._request(
            "PATCH", f"ticket_rules/{payload.id}/", json=payload.to_payload()
        )
        log.info("Rule updated", rule_id=payload.id)
        return Rule.model_validate(response.json())

    async def delete_rule(self, rule_id: int) -> None:
        await self._request("DELETE", f"ticket_rules/{rule_id}/")
        log.info("Rule deleted", rule_id=rule_id)

    async def reorder_rules(self, rule_type: RuleType, orders: Sequence[RuleOrder]) -> None:
        await self._request(
            "PATCH",
            "ticket_rules/update_order/",
            json={
                "type": rule_type.value,
                "orders": [order.model_dump(mode="json") for order in orders],
            },
        )
        log.info("Rule order saved", rule_type=rule_type.value, rules=len(orders))

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    async def list_ticket_fields(self, offset: int = 0, limit: int = 100) -> Page[CustomField]:
        data = await self._read("ticket_fields/", {"offset": offset, "limit": limit})
        return Page[CustomField].model_validate(data)

    async def list_customer_fields(self, offset: int = 0, limit: int = 100) -> Page[CustomField]:
        data = await self._read("customer_fields/", {"offset": offset, "limit": limit})
        return Page[CustomField].model_validate(data)

    async def get_agent_group(self, group_id: int) -> AgentGroup:
        data = await self._read(f"agent_groups/{group_id}/")
        return AgentGroup.model_validate(data)

    async def get_agent(self, agent_id: int) -> Agent:
        data = await self._read(f"agents/{agent_id}/")
        return Agent.model_validate(data)
