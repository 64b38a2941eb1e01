"""Transport layer for talking to the Google Sheets API.

Defines the Transport protocol and its production implementation:
- GoogleSheetsTransport: Production transport using Google Sheets API v4

The in-memory test transport lives in sheetbase.mock.
"""

from __future__ import annotations

import ssl
import urllib.parse
from abc import ABC, abstractmethod
from typing import Any

import certifi
import httpx

from sheetbase.exceptions import RemoteError

# API constants
API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"
DEFAULT_TIMEOUT = 60

# Only what the table cache needs: sheet properties and typed cell values
SHEET_FIELDS = "sheets.properties,sheets.data(startRow,startColumn,rowData.values.effectiveValue)"
DOCUMENT_FIELDS = "spreadsheetId,properties.title"


class TransportError(RemoteError):
    """Base exception for transport errors."""


class AuthenticationError(TransportError):
    """Raised when authentication fails (401/403)."""


class UnauthenticatedError(AuthenticationError):
    """Raised when credentials are missing, invalid or expired (401)."""


class PermissionDeniedError(AuthenticationError):
    """Raised when the credentials may not access the spreadsheet (403)."""


class NotFoundError(TransportError):
    """Raised when the spreadsheet is not found (404)."""


class MalformedRequestError(TransportError):
    """Raised when the API rejects a request as invalid (400)."""


class RateLimitedError(TransportError):
    """Raised when the API quota is exhausted (429)."""


class TransientError(TransportError):
    """Raised on server side failures (5xx) and network errors."""


class APIError(TransportError):
    """Raised when the API returns any other error."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


def error_for_status(status: int, body: str) -> TransportError:
    """Build the transport error matching an HTTP status code."""
    if status == 400:
        return MalformedRequestError(f"Malformed request (400): {body}")
    if status == 401:
        return UnauthenticatedError("Invalid or expired access token")
    if status == 403:
        return PermissionDeniedError(
            "Access denied. Check your scopes and sharing permissions."
        )
    if status == 404:
        return NotFoundError(
            "Spreadsheet not found. Check the ID and sharing permissions."
        )
    if status == 429:
        return RateLimitedError(f"Rate limit exceeded (429): {body}")
    if status >= 500:
        return TransientError(f"Server error ({status}): {body}")
    return APIError(f"API error ({status}): {body}", status_code=status)


class Transport(ABC):
    """Abstract base class for spreadsheet transport.

    Implementations expose the handful of Sheets API endpoints the table
    layer needs. They perform no retries.
    """

    @abstractmethod
    async def get_spreadsheet(
        self,
        spreadsheet_id: str,
        ranges: list[str] | None = None,
        include_grid_data: bool = False,
    ) -> dict[str, Any]:
        """Fetch spreadsheet properties and, optionally, cell data.

        Args:
            spreadsheet_id: The spreadsheet identifier
            ranges: A1 ranges to restrict the response to
            include_grid_data: Whether to include cell values

        Returns:
            Spreadsheet object with a "sheets" list
        """
        ...

    @abstractmethod
    async def batch_update(
        self,
        spreadsheet_id: str,
        requests: list[dict[str, Any]],
        include_spreadsheet: bool = False,
        response_ranges: list[str] | None = None,
    ) -> dict[str, Any]:
        """Apply batchUpdate requests to a spreadsheet.

        Args:
            spreadsheet_id: The spreadsheet identifier
            requests: List of batchUpdate request objects, applied in order
            include_spreadsheet: Ask for the updated spreadsheet, with grid data
            response_ranges: Limit the updated spreadsheet to these A1 ranges

        Returns:
            API response containing one reply per request
        """
        ...

    @abstractmethod
    async def update_values(
        self,
        spreadsheet_id: str,
        data: list[dict[str, Any]],
        include_values: bool = False,
    ) -> dict[str, Any]:
        """Write values to one or more ranges.

        Args:
            spreadsheet_id: The spreadsheet identifier
            data: ValueRange objects ({"range": ..., "values": [[...]]}).
                None values leave the cell unchanged.
            include_values: Echo the written ranges in the response

        Returns:
            API response with one entry per range in "responses"
        """
        ...

    @abstractmethod
    async def append_values(
        self,
        spreadsheet_id: str,
        a1_range: str,
        rows: list[list[Any]],
    ) -> dict[str, Any]:
        """Write rows after the last row of the table found in a1_range."""
        ...

    @abstractmethod
    async def clear_values(self, spreadsheet_id: str, a1_range: str) -> dict[str, Any]:
        """Clear the values of a range, keeping formatting."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        ...


class GoogleSheetsTransport(Transport):
    """Production transport that talks to the Google Sheets API.

    Handles authentication, SSL, and HTTP communication. Either an OAuth2
    access token or an API key must be given; API keys only allow reading
    public spreadsheets.
    """

    def __init__(
        self,
        access_token: str | None = None,
        api_key: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the transport.

        Args:
            access_token: OAuth2 access token with the spreadsheets scope
            api_key: API key, used when no access token is given
            timeout: Request timeout in seconds

        Raises:
            ValueError: If neither access_token nor api_key is given
        """
        if not access_token and not api_key:
            raise ValueError("You need to set up some kind of authorization")

        headers = {"Accept": "application/json"}
        params: dict[str, str] = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        else:
            params["key"] = api_key or ""

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        self._client = httpx.AsyncClient(
            timeout=timeout,
            verify=ssl_context,
            headers=headers,
            params=params,
        )

    async def get_spreadsheet(
        self,
        spreadsheet_id: str,
        ranges: list[str] | None = None,
        include_grid_data: bool = False,
    ) -> dict[str, Any]:
        """Fetch spreadsheet properties and cell data from Google Sheets API."""
        params: list[tuple[str, str]] = [
            ("includeGridData", "true" if include_grid_data else "false"),
            ("fields", f"{DOCUMENT_FIELDS},{SHEET_FIELDS}"),
        ]
        for a1 in ranges or []:
            params.append(("ranges", a1))
        return await self._request("GET", f"{API_BASE}/{spreadsheet_id}", params=params)

    async def batch_update(
        self,
        spreadsheet_id: str,
        requests: list[dict[str, Any]],
        include_spreadsheet: bool = False,
        response_ranges: list[str] | None = None,
    ) -> dict[str, Any]:
        """Apply batchUpdate requests to Google Sheets API."""
        body: dict[str, Any] = {"requests": requests}
        if include_spreadsheet:
            body["includeSpreadsheetInResponse"] = True
            body["responseIncludeGridData"] = True
            if response_ranges:
                body["responseRanges"] = response_ranges
        return await self._request(
            "POST", f"{API_BASE}/{spreadsheet_id}:batchUpdate", json=body
        )

    async def update_values(
        self,
        spreadsheet_id: str,
        data: list[dict[str, Any]],
        include_values: bool = False,
    ) -> dict[str, Any]:
        """Write values with values:batchUpdate."""
        body: dict[str, Any] = {
            "valueInputOption": "RAW",
            "data": data,
            "includeValuesInResponse": include_values,
            "responseValueRenderOption": "UNFORMATTED_VALUE",
        }
        return await self._request(
            "POST", f"{API_BASE}/{spreadsheet_id}/values:batchUpdate", json=body
        )

    async def append_values(
        self,
        spreadsheet_id: str,
        a1_range: str,
        rows: list[list[Any]],
    ) -> dict[str, Any]:
        """Append rows with values:append in OVERWRITE mode."""
        url = f"{API_BASE}/{spreadsheet_id}/values/{_quote_range(a1_range)}:append"
        params = [
            ("valueInputOption", "RAW"),
            ("insertDataOption", "OVERWRITE"),
        ]
        body = {"range": a1_range, "majorDimension": "ROWS", "values": rows}
        return await self._request("POST", url, params=params, json=body)

    async def clear_values(self, spreadsheet_id: str, a1_range: str) -> dict[str, Any]:
        """Clear a range with values:clear."""
        url = f"{API_BASE}/{spreadsheet_id}/values/{_quote_range(a1_range)}:clear"
        return await self._request("POST", url, json={})

    async def _request(
        self,
        method: str,
        url: str,
        params: list[tuple[str, str]] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated request and decode the JSON response."""
        try:
            response = await self._client.request(method, url, params=params, json=json)
            response.raise_for_status()
            result: dict[str, Any] = response.json()
            return result
        except httpx.HTTPStatusError as e:
            raise error_for_status(e.response.status_code, e.response.text) from e
        except httpx.RequestError as e:
            raise TransientError(f"Network error: {e}") from e

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


def _quote_range(a1_range: str) -> str:
    return urllib.parse.quote(a1_range, safe="")
