"""HTTP transport for the backend's REST (PostgREST) interface."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pymedtrip._constants import AUTH_ERROR_CODES, REST_PREFIX, USER_AGENT
from pymedtrip._redact import redact_for_log
from pymedtrip.config import MedTripConfig
from pymedtrip.exceptions import (
    MedTripApiError,
    MedTripAuthenticationError,
    MedTripTransportError,
)

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the store and role modules.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`RestTransport`) concrete.
    """

    async def select(
        self,
        table: str,
        *,
        filters: Mapping[str, str],
        columns: str = "*",
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        ...

    async def upsert(
        self,
        table: str,
        row: Mapping[str, Any],
        *,
        on_conflict: tuple[str, ...],
    ) -> None:
        ...


def _eq(value: str) -> str:
    return f"eq.{value}"


class RestTransport:
    """aiohttp transport that speaks the PostgREST query dialect."""

    def __init__(self, config: MedTripConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._access_token: str | None = None
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def set_access_token(self, token: str | None) -> None:
        """Use *token* as bearer from now on (``None`` falls back to the API key)."""
        self._access_token = token

    def _headers(self) -> dict[str, str]:
        bearer = self._access_token or self._config.api_key
        return {
            "apikey": self._config.api_key,
            "authorization": f"Bearer {bearer}",
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }

    def _url(self, table: str) -> str:
        return f"{self._config.api_url}{REST_PREFIX}/{table}"

    async def select(
        self,
        table: str,
        *,
        filters: Mapping[str, str],
        columns: str = "*",
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return rows of *table* whose columns equal the given *filters*."""
        params: dict[str, str] = {"select": columns}
        for column, value in filters.items():
            params[column] = _eq(value)
        if limit is not None:
            params["limit"] = str(limit)

        text = await self._request("GET", table, params=params)
        if not text:
            return []
        try:
            rows = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MedTripTransportError(f"Invalid JSON from {table}: {text[:200]}", endpoint=table) from exc
        if not isinstance(rows, list):
            raise MedTripTransportError(f"Expected a row list from {table}", endpoint=table)
        return [row for row in rows if isinstance(row, dict)]

    async def upsert(
        self,
        table: str,
        row: Mapping[str, Any],
        *,
        on_conflict: tuple[str, ...],
    ) -> None:
        """Insert *row*, replacing any existing row with the same conflict key."""
        params = {"on_conflict": ",".join(on_conflict)}
        await self._request(
            "POST",
            table,
            params=params,
            body=dict(row),
            extra_headers={"prefer": "resolution=merge-duplicates,return=minimal"},
        )

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: Mapping[str, str],
        body: Mapping[str, Any] | None = None,
        extra_headers: Mapping[str, str] | None = None,
    ) -> str:
        headers = self._headers()
        if extra_headers:
            headers.update(extra_headers)
        url = self._url(table)
        data = json.dumps(body, separators=(",", ":")) if body is not None else None

        _logger.debug("%s %s", method, url)
        if self._config.api_trace_enabled:
            _logger.debug(
                "request trace: params=%s headers=%s body=%s",
                redact_for_log(dict(params)),
                redact_for_log(headers),
                redact_for_log(body),
            )

        try:
            async with self._http.request(
                method,
                url,
                params=dict(params),
                data=data,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                status = resp.status
        except asyncio.TimeoutError as exc:
            raise MedTripTransportError(f"Request to {table} timed out", endpoint=table) from exc
        except aiohttp.ClientError as exc:
            raise MedTripTransportError(f"Request to {table} failed: {exc}", endpoint=table) from exc

        if self._config.api_trace_enabled:
            _logger.debug("response trace: status=%s body=%s", status, _trace_body(text))

        if status >= 400:
            _raise_for_status(table, status, text)
        return text


def _trace_body(text: str) -> Any:
    try:
        return redact_for_log(json.loads(text))
    except json.JSONDecodeError:
        return redact_for_log(text)


def _raise_for_status(endpoint: str, status: int, text: str) -> None:
    """Map an error response to the exception hierarchy."""
    code = ""
    message = text[:200]
    try:
        document = json.loads(text) if text else {}
    except json.JSONDecodeError:
        document = {}
    if isinstance(document, dict):
        code = str(document.get("code") or "")
        message = str(document.get("message") or message)

    if status in (401, 403) or code in AUTH_ERROR_CODES:
        raise MedTripAuthenticationError(
            f"{endpoint} rejected credentials: HTTP {status} code={code} message={message}",
            code=code,
            endpoint=endpoint,
            status_code=status,
        )
    raise MedTripApiError(
        f"{endpoint} failed: HTTP {status} code={code} message={message}",
        code=code,
        endpoint=endpoint,
        status_code=status,
    )
