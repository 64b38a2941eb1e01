"""Tests for GoogleSheetsTransport against a stubbed HTTP layer."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from sheetbase.exceptions import RemoteError
from sheetbase.transport import (
    APIError,
    GoogleSheetsTransport,
    MalformedRequestError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    TransientError,
    UnauthenticatedError,
    error_for_status,
)


def _stub(
    transport: GoogleSheetsTransport,
    handler: Callable[[httpx.Request], httpx.Response],
) -> list[httpx.Request]:
    """Route the transport's requests to handler and collect them."""
    requests: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    old_client = transport._client
    transport._client = httpx.AsyncClient(
        transport=httpx.MockTransport(record),
        headers=old_client.headers,
        params=old_client.params,
    )
    return requests


class TestErrorForStatus:
    @pytest.mark.parametrize(
        ("status", "error"),
        [
            (400, MalformedRequestError),
            (401, UnauthenticatedError),
            (403, PermissionDeniedError),
            (404, NotFoundError),
            (429, RateLimitedError),
            (500, TransientError),
            (503, TransientError),
            (409, APIError),
        ],
    )
    def test_mapping(self, status: int, error: type[Exception]) -> None:
        exc = error_for_status(status, "body")
        assert type(exc) is error
        assert isinstance(exc, RemoteError)

    def test_api_error_keeps_status(self) -> None:
        exc = error_for_status(409, "conflict")
        assert isinstance(exc, APIError)
        assert exc.status_code == 409
        assert "conflict" in str(exc)


class TestGoogleSheetsTransport:
    """Tests for request building and error mapping."""

    def test_requires_credentials(self) -> None:
        with pytest.raises(ValueError, match="authorization"):
            GoogleSheetsTransport()

    @pytest.mark.asyncio
    async def test_get_spreadsheet(self) -> None:
        transport = GoogleSheetsTransport(access_token="tok")
        requests = _stub(transport, lambda r: httpx.Response(200, json={"sheets": []}))

        result = await transport.get_spreadsheet(
            "abc", ranges=["'a'!A1:B2", "'b'"], include_grid_data=True
        )
        await transport.close()

        assert result == {"sheets": []}
        request = requests[0]
        assert request.method == "GET"
        assert request.url.path == "/v4/spreadsheets/abc"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.url.params.get_list("ranges") == ["'a'!A1:B2", "'b'"]
        assert request.url.params["includeGridData"] == "true"
        assert "sheets.data" in request.url.params["fields"]

    @pytest.mark.asyncio
    async def test_api_key(self) -> None:
        transport = GoogleSheetsTransport(api_key="key123")
        requests = _stub(transport, lambda r: httpx.Response(200, json={}))

        await transport.get_spreadsheet("abc")

        assert requests[0].url.params["key"] == "key123"
        assert "Authorization" not in requests[0].headers

    @pytest.mark.asyncio
    async def test_batch_update_with_spreadsheet(self) -> None:
        transport = GoogleSheetsTransport(access_token="tok")
        requests = _stub(transport, lambda r: httpx.Response(200, json={"replies": [{}]}))

        await transport.batch_update(
            "abc", [{"deleteSheet": {"sheetId": 1}}], include_spreadsheet=True
        )

        request = requests[0]
        assert request.url.path == "/v4/spreadsheets/abc:batchUpdate"
        body = json.loads(request.content)
        assert body == {
            "requests": [{"deleteSheet": {"sheetId": 1}}],
            "includeSpreadsheetInResponse": True,
            "responseIncludeGridData": True,
        }

    @pytest.mark.asyncio
    async def test_batch_update_response_ranges(self) -> None:
        transport = GoogleSheetsTransport(access_token="tok")
        requests = _stub(transport, lambda r: httpx.Response(200, json={"replies": [{}]}))

        await transport.batch_update(
            "abc", [], include_spreadsheet=True, response_ranges=["'users'"]
        )
        await transport.batch_update("abc", [], response_ranges=["'users'"])

        assert json.loads(requests[0].content)["responseRanges"] == ["'users'"]
        assert "responseRanges" not in json.loads(requests[1].content)

    @pytest.mark.asyncio
    async def test_update_values(self) -> None:
        transport = GoogleSheetsTransport(access_token="tok")
        requests = _stub(transport, lambda r: httpx.Response(200, json={}))

        data = [{"range": "'t'!A2:B2", "values": [[None, ""]]}]
        await transport.update_values("abc", data, include_values=True)

        body = json.loads(requests[0].content)
        assert requests[0].url.path == "/v4/spreadsheets/abc/values:batchUpdate"
        assert body["valueInputOption"] == "RAW"
        assert body["includeValuesInResponse"] is True
        assert body["data"] == data

    @pytest.mark.asyncio
    async def test_append_and_clear_quote_ranges(self) -> None:
        transport = GoogleSheetsTransport(access_token="tok")
        requests = _stub(transport, lambda r: httpx.Response(200, json={}))

        await transport.append_values("abc", "'my t'!A1", [["x"]])
        await transport.clear_values("abc", "'my t'!A2:C9")

        assert requests[0].url.raw_path.startswith(
            b"/v4/spreadsheets/abc/values/%27my%20t%27%21A1:append"
        )
        assert requests[0].url.params["insertDataOption"] == "OVERWRITE"
        assert requests[1].url.raw_path.startswith(
            b"/v4/spreadsheets/abc/values/%27my%20t%27%21A2%3AC9:clear"
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "error"),
        [(401, UnauthenticatedError), (404, NotFoundError), (500, TransientError)],
    )
    async def test_http_errors(self, status: int, error: type[Exception]) -> None:
        transport = GoogleSheetsTransport(access_token="tok")
        _stub(transport, lambda r: httpx.Response(status, text="oops"))

        with pytest.raises(error):
            await transport.get_spreadsheet("abc")

    @pytest.mark.asyncio
    async def test_network_error(self) -> None:
        transport = GoogleSheetsTransport(access_token="tok")

        def fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        _stub(transport, fail)

        with pytest.raises(TransientError, match="connection refused"):
            await transport.get_spreadsheet("abc")
