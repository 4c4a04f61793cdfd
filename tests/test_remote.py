"""Tests for the remote sync client."""

import json

import httpx
import pytest

from todomvc_sync.domain import TodoRecord
from todomvc_sync.remote import (
    NetworkError,
    RemoteResponseError,
    RemoteSyncClient,
    SyncFailure,
    fields_to_wire,
    record_from_wire,
)


API_URL = "http://api.test/graphql"


class Recorder:
    """MockTransport handler that records request bodies."""

    def __init__(self, response=None, status_code=200, exc=None):
        self.response = response if response is not None else {"data": {}}
        self.status_code = status_code
        self.exc = exc
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc("boom", request=request)
        if isinstance(self.response, (bytes, str)):
            return httpx.Response(self.status_code, content=self.response)
        return httpx.Response(self.status_code, json=self.response)

    @property
    def last_body(self):
        return json.loads(self.requests[-1].content)


def make_client(handler) -> RemoteSyncClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RemoteSyncClient(API_URL, client=http)


class TestFieldMapping:
    """Translation between canonical and server field names."""

    def test_record_from_wire(self):
        record = record_from_wire({
            "_id": "5f1",
            "text": "Buy milk",
            "visibility": True,
            "createdAt": "2020-01-01",
        })
        assert record == TodoRecord(id="5f1", title="Buy milk", completed=True)

    def test_record_from_wire_defaults_completed(self):
        assert record_from_wire({"_id": "1", "text": "x"}).completed is False

    def test_record_from_wire_missing_field(self):
        with pytest.raises(RemoteResponseError):
            record_from_wire({"text": "no id"})

    def test_record_from_wire_rejects_non_mapping(self):
        with pytest.raises(RemoteResponseError):
            record_from_wire(["_id", "text"])

    @pytest.mark.parametrize("bad_id", [1.5, True, {"oid": "x"}, None, ["a"]])
    def test_record_from_wire_rejects_bad_id_types(self, bad_id):
        with pytest.raises(RemoteResponseError):
            record_from_wire({"_id": bad_id, "text": "x", "visibility": False})

    def test_record_from_wire_accepts_numeric_id(self):
        assert record_from_wire({"_id": 7, "text": "x"}).id == 7

    def test_fields_to_wire(self):
        assert fields_to_wire({"title": "New"}) == {"text": "New"}
        assert fields_to_wire({"completed": False}) == {"visibility": False}

    def test_fields_to_wire_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            fields_to_wire({"id": "x"})


class TestRemoteSyncClient:
    """Request and response handling against a mocked endpoint."""

    async def test_fetch_all_maps_records(self):
        handler = Recorder({"data": {"find": [
            {"_id": "a", "text": "One", "createdAt": "t", "visibility": False},
            {"_id": "b", "text": "Two", "createdAt": "t", "visibility": True},
        ]}})
        async with make_client(handler) as client:
            todos = await client.fetch_all()
        await client.client.aclose()

        assert todos == [
            TodoRecord(id="a", title="One", completed=False),
            TodoRecord(id="b", title="Two", completed=True),
        ]
        request = handler.requests[0]
        assert request.method == "POST"
        assert str(request.url) == API_URL
        assert "find" in handler.last_body["query"]
        assert "variables" not in handler.last_body

    async def test_create_returns_server_id(self):
        handler = Recorder({"data": {"create": "srv-42"}})
        async with make_client(handler) as client:
            server_id = await client.create("Buy milk", False)
        await client.client.aclose()

        assert server_id == "srv-42"
        assert handler.last_body["variables"] == {"text": "Buy milk", "visibility": False}
        assert "createTodo" in handler.last_body["query"]

    async def test_update_sends_only_changed_fields(self):
        handler = Recorder({"data": {"update": True}})
        async with make_client(handler) as client:
            ack = await client.update(17, {"completed": True})
        await client.client.aclose()

        assert ack is True
        assert handler.last_body["variables"] == {"_id": "17", "visibility": True}

    async def test_update_unknown_field_makes_no_request(self):
        handler = Recorder()
        async with make_client(handler) as client:
            with pytest.raises(ValueError):
                await client.update("x", {"priority": 1})
        await client.client.aclose()
        assert handler.requests == []

    async def test_delete(self):
        handler = Recorder({"data": {"delete": True}})
        async with make_client(handler) as client:
            ack = await client.delete("abc")
        await client.client.aclose()

        assert ack is True
        assert handler.last_body["variables"] == {"_id": "abc"}
        assert "deleteTodo" in handler.last_body["query"]

    async def test_http_error_raises_sync_failure(self):
        handler = Recorder({"error": "nope"}, status_code=500)
        async with make_client(handler) as client:
            with pytest.raises(RemoteResponseError):
                await client.fetch_all()
        await client.client.aclose()

    async def test_graphql_errors_raise(self):
        handler = Recorder({"data": None, "errors": [{"message": "bad id"}]})
        async with make_client(handler) as client:
            with pytest.raises(RemoteResponseError, match="bad id"):
                await client.delete("x")
        await client.client.aclose()

    async def test_missing_data_raises(self):
        handler = Recorder({"result": []})
        async with make_client(handler) as client:
            with pytest.raises(RemoteResponseError):
                await client.fetch_all()
        await client.client.aclose()

    async def test_create_rejects_float_id(self):
        handler = Recorder({"data": {"create": 1.5}})
        async with make_client(handler) as client:
            with pytest.raises(RemoteResponseError):
                await client.create("x")
        await client.client.aclose()

    async def test_fetch_with_bad_id_leaves_cache_intact(self, cache):
        cached = [TodoRecord(id="a", title="Cached")]
        cache.save(cached)
        handler = Recorder({"data": {"find": [{"_id": 2.5, "text": "Odd", "visibility": False}]}})
        async with make_client(handler) as client:
            with pytest.raises(RemoteResponseError):
                await client.fetch_all()
        await client.client.aclose()
        assert cache.load() == cached

    async def test_missing_result_key_raises(self):
        handler = Recorder({"data": {}})
        async with make_client(handler) as client:
            with pytest.raises(RemoteResponseError):
                await client.create("x")
        await client.client.aclose()

    async def test_non_list_find_raises(self):
        handler = Recorder({"data": {"find": {"_id": "a"}}})
        async with make_client(handler) as client:
            with pytest.raises(RemoteResponseError):
                await client.fetch_all()
        await client.client.aclose()

    async def test_non_json_body_raises(self):
        handler = Recorder(b"<html>oops</html>")
        async with make_client(handler) as client:
            with pytest.raises(RemoteResponseError):
                await client.fetch_all()
        await client.client.aclose()

    async def test_transport_error_raises_network_error(self):
        handler = Recorder(exc=httpx.ConnectError)
        async with make_client(handler) as client:
            with pytest.raises(NetworkError):
                await client.delete("x")
        await client.client.aclose()

    async def test_timeout_raises_network_error(self):
        handler = Recorder(exc=httpx.ReadTimeout)
        async with make_client(handler) as client:
            with pytest.raises(SyncFailure):
                await client.update("x", {"title": "y"})
        await client.client.aclose()

    async def test_injected_client_is_not_closed(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(Recorder()))
        client = RemoteSyncClient(API_URL, client=http)
        await client.aclose()
        assert not http.is_closed
        await http.aclose()

    async def test_owned_client_is_closed(self):
        client = RemoteSyncClient(API_URL)
        await client.aclose()
        assert client.client.is_closed
