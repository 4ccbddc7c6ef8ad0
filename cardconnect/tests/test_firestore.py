"""Tests for the Firestore REST document store."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from cardconnect.errors import TransportFailure
from cardconnect.remote.firestore import (
    FirestoreDocumentStore,
    decode_fields,
    decode_value,
    encode_fields,
    encode_value,
)

ROOT = "/v1/projects/demo/databases/(default)/documents"


def _store(handler) -> FirestoreDocumentStore:
    client = httpx.AsyncClient(
        base_url="https://firestore.test/v1",
        transport=httpx.MockTransport(handler),
    )
    return FirestoreDocumentStore(
        "demo",
        database="(default)",
        api_key="k",
        token_getter=lambda: "tok",
        http_client=client,
    )


def test_encode_value_types():
    assert encode_value(None) == {"nullValue": None}
    assert encode_value(True) == {"booleanValue": True}
    assert encode_value(3) == {"integerValue": "3"}
    assert encode_value("x") == {"stringValue": "x"}
    assert encode_value(datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)) == {
        "timestampValue": "2024-01-02T03:04:05Z"
    }
    assert encode_value({"a": 1}) == {"mapValue": {"fields": {"a": {"integerValue": "1"}}}}


def test_decode_fields_round_trip():
    data = {"name": "Jane", "count": 2, "image": None, "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc)}
    assert decode_fields(encode_fields(data)) == data


def test_decode_value_is_lenient():
    assert decode_value({"integerValue": "nope"}) is None
    assert decode_value({"geoPointValue": {}}) is None
    assert decode_value("garbage") is None


@pytest.mark.asyncio
async def test_set_document_patches_full_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["key"] = request.url.params.get("key")
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"name": "doc"})

    async with _store(handler) as fs:
        await fs.set_document("users/u1/cards", "c1", {"name": "Jane", "imageDataBase64": None})

    assert seen["method"] == "PATCH"
    assert seen["path"] == f"{ROOT}/users/u1/cards/c1"
    assert seen["key"] == "k"
    assert seen["auth"] == "Bearer tok"
    assert seen["body"] == {
        "fields": {"name": {"stringValue": "Jane"}, "imageDataBase64": {"nullValue": None}}
    }


@pytest.mark.asyncio
async def test_list_documents_follows_page_tokens():
    pages = {
        None: {
            "documents": [{"name": f"{ROOT}/users/u1/cards/a", "fields": {"name": {"stringValue": "A"}}}],
            "nextPageToken": "p2",
        },
        "p2": {
            "documents": [{"name": f"{ROOT}/users/u1/cards/b", "fields": {"name": {"stringValue": "B"}}}],
        },
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=pages[request.url.params.get("pageToken")])

    async with _store(handler) as fs:
        docs = await fs.list_documents("users/u1/cards")

    assert docs == [("a", {"name": "A"}), ("b", {"name": "B"})]


@pytest.mark.asyncio
async def test_list_missing_collection_is_empty():
    async with _store(lambda request: httpx.Response(404, json={})) as fs:
        assert await fs.list_documents("users/nobody/cards") == []


@pytest.mark.asyncio
async def test_delete_missing_document_is_not_an_error():
    async with _store(lambda request: httpx.Response(404)) as fs:
        await fs.delete_document("users/u1/cards", "gone")


@pytest.mark.asyncio
async def test_http_error_maps_to_transport_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"error": {"message": "Missing or insufficient permissions."}})

    async with _store(handler) as fs:
        with pytest.raises(TransportFailure) as exc_info:
            await fs.set_document("users/u1/cards", "c1", {"name": "x"})

    assert exc_info.value.status_code == 403
    assert "insufficient permissions" in exc_info.value.message


@pytest.mark.asyncio
async def test_network_error_maps_to_transport_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _store(handler) as fs:
        with pytest.raises(TransportFailure):
            await fs.list_documents("users/u1/cards")
