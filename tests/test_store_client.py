"""Tests for the remote store HTTP client."""

import aiohttp
import pytest

from conftest import FakeResponse, FakeSession
from linkgraph.storage.store_client import Cell, RowsResult, StoreClient, StoreUnavailable


ENDPOINT = "http://store.test/"


def make_client(handler):
    return StoreClient(ENDPOINT, session=FakeSession(handler))


def rows_payload(*rows):
    return {"result": {"rows": list(rows)}}


class TestCell:
    """Tests for typed cell serialization."""

    @pytest.mark.parametrize("value, value_type, wire_value", [
        ("text", "string", "text"),
        (7, "integer", 7),
        (1.5, "float", 1.5),
        (True, "boolean", True),
        (b"\x00\x01", "byte", "AAE="),
    ])
    def test_value_types(self, value, value_type, wire_value):
        data = Cell("row", "meta:x", value).to_dict()

        assert data["type"] == value_type
        assert data["value"] == wire_value
        assert "timestamp" not in data

    def test_timestamp_zero_is_sent(self):
        assert Cell("row", "meta:title", "Cat", 0).to_dict()["timestamp"] == 0

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            Cell("row", "meta:x", object()).to_dict()


class TestRowsResult:
    """Tests for response parsing."""

    def test_latest_value_wins(self):
        result = RowsResult.from_response(rows_payload({
            "row": "q1",
            "columns": {"entry:url": [
                {"timestamp": 5, "value": "https://old.example/"},
                {"timestamp": 9, "value": "https://new.example/"},
            ]},
        }))

        assert result.rows[0].latest("entry:url") == "https://new.example/"
        assert result.rows[0].latest("entry:missing") is None

    def test_empty_rows(self):
        assert RowsResult.from_response(rows_payload()).empty

    @pytest.mark.parametrize("payload", [{}, {"result": None}, {"result": {"rows": [{"columns": {}}]}}, []])
    def test_malformed_payload(self, payload):
        with pytest.raises(StoreUnavailable):
            RowsResult.from_response(payload)


class TestStoreClient:
    """Tests for StoreClient endpoints."""

    @pytest.mark.asyncio
    async def test_create_table_conflict_means_exists(self):
        client = make_client(lambda m, u, k: FakeResponse(409, "exists"))

        assert await client.create_table("pages") is False
        assert client.session.calls[0][:2] == ("PUT", "http://store.test/v1/table/pages")

    @pytest.mark.asyncio
    async def test_create_column_family(self):
        client = make_client(lambda m, u, k: FakeResponse(201, "{}"))

        assert await client.create_column_family("pages", "meta", "meta") is True

        method, url, kwargs = client.session.calls[0]
        assert (method, url) == ("POST", "http://store.test/v1/table/pages/column-family")
        assert kwargs["json"] == {"name": "meta", "locality_group": "meta"}

    @pytest.mark.asyncio
    async def test_provisioning_error_raises(self):
        client = make_client(lambda m, u, k: FakeResponse(500, "boom"))

        with pytest.raises(StoreUnavailable) as excinfo:
            await client.create_column_family("pages", "meta", "meta")

        assert excinfo.value.status == 500
        assert excinfo.value.body == "boom"

    @pytest.mark.asyncio
    async def test_lookup_request_shape(self):
        client = make_client(lambda m, u, k: FakeResponse(200, rows_payload(
            {"row": "org.wikipedia.en/wiki/Cat", "columns": {"meta:title": [{"timestamp": 0, "value": "Cat"}]}}
        )))

        result = await client.lookup("pages", "org.wikipedia.en/wiki/Cat", ["meta:title"])

        method, url, kwargs = client.session.calls[0]
        assert url == "http://store.test/v1/table/pages/rows"
        assert kwargs["json"] == {"rows": [{"row": "org.wikipedia.en/wiki/Cat", "columns": ["meta:title"]}]}
        assert result.rows[0].latest("meta:title") == "Cat"

    @pytest.mark.asyncio
    async def test_scan_request_shape(self):
        client = make_client(lambda m, u, k: FakeResponse(200, rows_payload()))

        result = await client.scan("queue", limit=4, columns=["entry:url"])

        assert result.empty
        assert client.session.calls[0][2]["json"] == {"prefix": "", "limit": 4, "columns": ["entry:url"]}

    @pytest.mark.asyncio
    async def test_delete_row(self):
        client = make_client(lambda m, u, k: FakeResponse(204, ""))

        await client.delete_row("queue", "abc")

        method, url, kwargs = client.session.calls[0]
        assert (method, url, kwargs["params"]) == ("DELETE", "http://store.test/v1/table/queue/row", {"row": "abc"})

    @pytest.mark.asyncio
    async def test_write_sends_cells(self):
        client = make_client(lambda m, u, k: FakeResponse(200, "{}"))

        await client.write("pages", [Cell("k", "meta:title", "Cat", 0)])

        assert client.session.calls[0][2]["json"] == {
            "cells": [{"row": "k", "column": "meta:title", "type": "string", "value": "Cat", "timestamp": 0}]
        }

    @pytest.mark.asyncio
    async def test_transport_failure_raises(self):
        def handler(method, url, kwargs):
            raise aiohttp.ClientConnectionError("refused")

        with pytest.raises(StoreUnavailable):
            await make_client(handler).delete_row("queue", "abc")

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self):
        client = make_client(lambda m, u, k: FakeResponse(200, "not json"))

        with pytest.raises(StoreUnavailable):
            await client.scan("queue")
