"""Test fixtures for desk API client tests."""

from __future__ import annotations

import json

import httpx
import pytest


RULE_JSON = {
    "id": 1,
    "name": "VIP customers",
    "type": "ASSIGNMENT",
    "status": "ON",
    "order": 1,
    "conditional": {
        "match": "or",
        "conditions": [
            {"key": "customer.display_name", "type": "TEXT", "operator": "is", "value": "vip"}
        ],
        "consequent": {"type": "GROUP", "_group": {"key": "id", "value": 10}},
    },
}


class RecordingHandler:
    """httpx.MockTransport handler replaying queued responses."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response | Exception] = []

    def queue(self, status_code: int = 200, payload=None) -> None:
        self.responses.append(httpx.Response(status_code, json=payload))

    def queue_error(self, exc: Exception) -> None:
        self.responses.append(exc)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            return httpx.Response(200, json={})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def body(self, index: int = -1):
        return json.loads(self.requests[index].content)


@pytest.fixture
def handler():
    return RecordingHandler()


@pytest.fixture
def http_client(handler):
    """HttpDeskClient on a mock transport; reads retried once without delay."""
    from desk_rules.core.retry import RetryConfig
    from desk_rules.integrations.desk.http import HttpDeskClient

    return HttpDeskClient(
        base_url="https://desk.example.com/{region}/v1",
        api_token="Bearer test-token",
        project_id="p-123",
        region="eu-1",
        retry_config=RetryConfig(max_attempts=2, base_delay=0.0, jitter=0.0),
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def rule_json():
    return json.loads(json.dumps(RULE_JSON))
