# tests/conftest.py
from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Dict

import httpx
import pytest

from opengin_explorer.client import OpenGINClient
from opengin_explorer.client.wire_value import HEADER_TAG
from opengin_explorer.models import APIConfiguration, NetworkError


STRING_VALUE_TYPE = "type.googleapis.com/google.protobuf.StringValue"


def wire(text: str, with_header: bool = True) -> str:
    """JSON wire wrapper for single-byte ``text``, optionally with the 0x0A/length header."""
    body = text.encode("latin-1")
    if with_header:
        body = bytes([HEADER_TAG, len(body) & 0xFF]) + body
    return json.dumps({"typeUrl": STRING_VALUE_TYPE, "value": body.hex()})


@pytest.fixture
def make_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], OpenGINClient]:
    """Build an OpenGINClient whose HTTP calls are answered by ``handler``."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> OpenGINClient:
        config = APIConfiguration(base_url="http://opengin.test")
        return OpenGINClient(config, transport=httpx.MockTransport(handler))

    return _make


class FakeDetailClient:
    """
    Stand-in for OpenGINClient in orchestrator tests.

    ``responses[(method, entity_id)]`` is either a value or an exception.
    ``gates[(method, entity_id)]`` holds an asyncio.Event the call waits on.
    """

    def __init__(self) -> None:
        self.responses: Dict[tuple[str, str], Any] = {}
        self.gates: Dict[tuple[str, str], asyncio.Event] = {}
        self.calls: list[tuple[str, str]] = []
        self.saved: list[tuple[str, list]] = []

    def gate(self, method: str, entity_id: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[(method, entity_id)] = event
        return event

    async def _answer(self, method: str, entity_id: str, default: Any) -> Any:
        self.calls.append((method, entity_id))
        gate = self.gates.get((method, entity_id))
        if gate is not None:
            await gate.wait()
        value = self.responses.get((method, entity_id), default)
        if isinstance(value, Exception):
            raise value
        return value

    async def get_metadata(self, entity_id: str) -> dict:
        return await self._answer("metadata", entity_id, {})

    async def get_relations(self, entity_id: str) -> list:
        return await self._answer("relations", entity_id, [])

    async def get_category_tree(self, entity_id: str) -> list:
        return await self._answer("categories", entity_id, [])

    async def save_metadata(self, entity_id: str, entries: list) -> None:
        await self._answer("save", entity_id, None)
        self.saved.append((entity_id, entries))


@pytest.fixture
def fake_client() -> FakeDetailClient:
    return FakeDetailClient()


@pytest.fixture
def network_error() -> NetworkError:
    return NetworkError("Server error: 500", status_code=500)


def json_response(payload: Any, status: int = 200) -> httpx.Response:
    return httpx.Response(status, content=json.dumps(payload).encode(), headers={"Content-Type": "application/json"})
