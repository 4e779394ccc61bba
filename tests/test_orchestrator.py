import asyncio

import httpx
import pytest

from opengin_explorer.models import (
    DuplicateExistingError,
    EmptyInputError,
    Entity,
    MetadataNotLoadedError,
    NetworkError,
    RelationBatch,
    SaveInProgressError,
)
from opengin_explorer.orchestrator import EntityDetailOrchestrator, StreamStatus

from conftest import json_response, wire

A = Entity(id="A", name=wire("Alpha"))
B = Entity(id="B", name=wire("Beta"))


def test_select_loads_three_streams(fake_client):
    fake_client.responses[("metadata", "A")] = {"source": wire("gazette")}
    fake_client.responses[("relations", "A")] = [
        RelationBatch.model_validate({"body": [{"id": "r1"}, {"id": "r2"}]}),
        RelationBatch.model_validate({"body": [{"id": "r3"}]}),
    ]
    fake_client.responses[("categories", "A")] = [{"entityId": "c1", "children": [{"relatedEntityId": "c2"}]}]

    async def main():
        detail = EntityDetailOrchestrator(fake_client)
        await detail.select(A)
        return detail

    detail = asyncio.run(main())

    assert detail.selection_token == 1
    assert detail.metadata.status == StreamStatus.SUCCESS
    assert detail.metadata.data == {"source": wire("gazette")}
    assert [r.id for r in detail.relations.data] == ["r1", "r2", "r3"]
    assert [row.id for row in detail.categories.data] == ["c1", "c2"]

    snap = detail.snapshot()
    assert snap["entity"] == {"id": "A", "name": "Alpha"}
    assert snap["metadata"]["data"] == {"source": "gazette"}
    assert snap["categories"]["data"][1]["depth"] == 1


def test_select_resets_slots_to_loading(fake_client):
    async def main():
        detail = EntityDetailOrchestrator(fake_client)
        for stream in ("metadata", "relations", "categories"):
            fake_client.gate(stream, "A")
        pending = detail.select(A)
        await asyncio.sleep(0)
        statuses = [detail.metadata.status, detail.relations.status, detail.categories.status]
        for event in fake_client.gates.values():
            event.set()
        await pending
        return statuses

    statuses = asyncio.run(main())
    assert statuses == [StreamStatus.LOADING] * 3


def test_stale_response_does_not_overwrite_newer_selection(fake_client):
    fake_client.responses[("metadata", "A")] = {"owner": "A-data"}
    fake_client.responses[("metadata", "B")] = {"owner": "B-data"}

    async def main():
        detail = EntityDetailOrchestrator(fake_client)
        slow_a = fake_client.gate("metadata", "A")

        first = detail.select(A)
        await asyncio.sleep(0)
        await detail.select(B)
        assert detail.metadata.data == {"owner": "B-data"}

        slow_a.set()
        await first
        return detail

    detail = asyncio.run(main())

    assert detail.entity.id == "B"
    assert detail.metadata.status == StreamStatus.SUCCESS
    assert detail.metadata.data == {"owner": "B-data"}
    assert detail.stale_dropped >= 1


def test_stale_failure_does_not_mark_newer_selection(fake_client, network_error):
    fake_client.responses[("metadata", "A")] = network_error
    fake_client.responses[("metadata", "B")] = {"ok": "1"}

    async def main():
        detail = EntityDetailOrchestrator(fake_client)
        slow_a = fake_client.gate("metadata", "A")
        first = detail.select(A)
        await asyncio.sleep(0)
        await detail.select(B)
        slow_a.set()
        await first
        return detail

    detail = asyncio.run(main())
    assert detail.metadata.status == StreamStatus.SUCCESS
    assert detail.metadata.error is None


def test_one_failing_stream_leaves_others_alone(fake_client, network_error):
    fake_client.responses[("relations", "A")] = network_error
    fake_client.responses[("metadata", "A")] = {"k": "v"}

    async def main():
        detail = EntityDetailOrchestrator(fake_client)
        await detail.select(A)
        return detail

    detail = asyncio.run(main())

    assert detail.relations.status == StreamStatus.ERROR
    assert detail.relations.error is network_error
    assert detail.metadata.status == StreamStatus.SUCCESS
    assert detail.categories.status == StreamStatus.SUCCESS
    assert "NetworkError" in detail.snapshot()["relations"]["error"]


def test_structural_error_lands_in_category_slot(fake_client):
    chain = node = {"entityId": "n0"}
    for i in range(1, 20):
        child = {"relatedEntityId": f"n{i}"}
        node["children"] = [child]
        node = child
    fake_client.responses[("categories", "A")] = [chain]

    async def main():
        detail = EntityDetailOrchestrator(fake_client, max_tree_depth=5)
        await detail.select(A)
        return detail

    detail = asyncio.run(main())
    assert detail.categories.status == StreamStatus.ERROR
    assert type(detail.categories.error).__name__ == "StructuralError"
    assert detail.relations.status == StreamStatus.SUCCESS


def test_close_resets_and_discards_in_flight_results(fake_client):
    fake_client.responses[("metadata", "A")] = {"k": "v"}

    async def main():
        detail = EntityDetailOrchestrator(fake_client)
        gate = fake_client.gate("metadata", "A")
        pending = detail.select(A)
        await asyncio.sleep(0)
        detail.close()
        gate.set()
        await pending
        return detail

    detail = asyncio.run(main())
    assert detail.entity is None
    assert detail.metadata.status == StreamStatus.IDLE
    assert detail.metadata.data is None


def test_save_validates_posts_and_refetches(fake_client):
    fake_client.responses[("metadata", "A")] = {"a": wire("1")}

    async def main():
        detail = EntityDetailOrchestrator(fake_client)
        await detail.select(A)
        fake_client.responses[("metadata", "A")] = {"a": wire("1"), "b": wire("2")}
        payload = await detail.save_metadata([{"key": "b", "value": "2"}])
        return detail, payload

    detail, payload = asyncio.run(main())

    assert payload == [{"a": "1"}, {"b": "2"}]
    assert fake_client.saved == [("A", [{"a": "1"}, {"b": "2"}])]
    assert fake_client.calls.count(("metadata", "A")) == 2
    assert detail.metadata.data == {"a": wire("1"), "b": wire("2")}
    assert detail.save.status == StreamStatus.SUCCESS
    assert detail.is_saving is False


def test_validation_failure_makes_no_network_call(fake_client):
    fake_client.responses[("metadata", "A")] = {"a": wire("1")}

    async def main():
        detail = EntityDetailOrchestrator(fake_client)
        await detail.select(A)
        with pytest.raises(DuplicateExistingError):
            await detail.save_metadata([{"key": "a", "value": "2"}])
        with pytest.raises(EmptyInputError):
            await detail.save_metadata([{"key": " ", "value": " "}])

    asyncio.run(main())
    assert ("save", "A") not in fake_client.calls


def test_save_requires_loaded_metadata(fake_client, network_error):
    fake_client.responses[("metadata", "A")] = network_error

    async def main():
        detail = EntityDetailOrchestrator(fake_client)
        with pytest.raises(MetadataNotLoadedError):
            await detail.save_metadata([{"key": "a", "value": "1"}])
        await detail.select(A)
        with pytest.raises(MetadataNotLoadedError):
            await detail.save_metadata([{"key": "a", "value": "1"}])

    asyncio.run(main())


def test_concurrent_save_is_rejected(fake_client):
    async def main():
        detail = EntityDetailOrchestrator(fake_client)
        await detail.select(A)
        gate = fake_client.gate("save", "A")
        first = asyncio.create_task(detail.save_metadata([{"key": "a", "value": "1"}]))
        await asyncio.sleep(0)
        assert detail.is_saving
        with pytest.raises(SaveInProgressError):
            await detail.save_metadata([{"key": "b", "value": "2"}])
        gate.set()
        await first
        return detail

    detail = asyncio.run(main())
    assert detail.is_saving is False
    assert len(fake_client.saved) == 1


def test_failed_save_surfaces_error_and_unlocks(fake_client, network_error):
    fake_client.responses[("save", "A")] = network_error

    async def main():
        detail = EntityDetailOrchestrator(fake_client)
        await detail.select(A)
        with pytest.raises(NetworkError):
            await detail.save_metadata([{"key": "a", "value": "1"}])
        return detail

    detail = asyncio.run(main())
    assert detail.save.status == StreamStatus.ERROR
    assert detail.is_saving is False
    assert fake_client.calls.count(("metadata", "A")) == 1


def test_transport_and_decode_failures_land_in_their_slots(make_client):
    def handler(request):
        path = request.url.path
        if path.endswith("/metadata"):
            return httpx.Response(200, content=b'{"a": "\xff"}')
        if path.endswith("/relations"):
            return httpx.Response(302, headers={"Location": str(request.url)})
        return json_response([{"entityId": "c1"}])

    async def main():
        async with make_client(handler) as client:
            detail = EntityDetailOrchestrator(client)
            await detail.select(A)
            return detail

    detail = asyncio.run(main())

    assert detail.metadata.status == StreamStatus.ERROR
    assert isinstance(detail.metadata.error, NetworkError)
    assert detail.relations.status == StreamStatus.ERROR
    assert isinstance(detail.relations.error, NetworkError)
    assert detail.categories.status == StreamStatus.SUCCESS
    assert [row.id for row in detail.categories.data] == ["c1"]


def test_unexpected_exception_becomes_slot_error(fake_client):
    fake_client.responses[("relations", "A")] = RuntimeError("boom")

    async def main():
        detail = EntityDetailOrchestrator(fake_client)
        await detail.select(A)
        return detail

    detail = asyncio.run(main())

    assert detail.relations.status == StreamStatus.ERROR
    assert isinstance(detail.relations.error, NetworkError)
    assert "RuntimeError: boom" in str(detail.relations.error)
    assert detail.metadata.status == StreamStatus.SUCCESS
