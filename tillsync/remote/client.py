"""Remote persistence client.

Talks to a PostgREST-style REST API. Inserts are upserts on the primary key
that ignore duplicates, so replaying a sale with the same client-generated
id never creates a second row.
"""
import asyncio
import logging
from typing import Callable, Optional, Protocol

import requests

from tillsync.config import TillConfig
from tillsync.core.errors import RemoteError, RemoteUnavailableError

logger = logging.getLogger("tillsync.remote")

TokenProvider = Callable[[], Optional[str]]


class RemoteStore(Protocol):
    """Remote system of record for sales."""

    async def insert_transaction(self, header_row: dict) -> None: ...

    async def insert_transaction_items(self, rows: list[dict]) -> None: ...

    async def select(self, table: str, filters: Optional[dict] = None,
                     columns: str = "*") -> list[dict]: ...


class RestRemoteStore:
    """RemoteStore backed by a PostgREST endpoint."""

    def __init__(
        self,
        config: TillConfig,
        session: Optional[requests.Session] = None,
        token_provider: Optional[TokenProvider] = None,
    ):
        self.config = config
        self.http = session or requests.Session()
        self.token_provider = token_provider

    async def insert_transaction(self, header_row: dict) -> None:
        await self._insert(self.config.transactions_table, header_row)

    async def insert_transaction_items(self, rows: list[dict]) -> None:
        if not rows:
            return
        await self._insert(self.config.items_table, rows)

    async def select(self, table: str, filters: Optional[dict] = None,
                     columns: str = "*") -> list[dict]:
        """Select rows. filters maps column -> value (equality).

        Bounded by fetch_timeout_ms so a stalled call cannot hang a screen.
        """
        params = {"select": columns}
        for column, value in (filters or {}).items():
            params[column] = "is.null" if value is None else f"eq.{value}"

        response = await self._request(
            "GET", table, params=params, timeout_ms=self.config.fetch_timeout_ms,
        )
        return response.json()

    async def _insert(self, table: str, body) -> None:
        await self._request(
            "POST",
            table,
            params={"on_conflict": "id"},
            json=body,
            extra_headers={"Prefer": "resolution=ignore-duplicates,return=minimal"},
            timeout_ms=self.config.write_timeout_ms,
        )

    def _headers(self) -> dict:
        headers = {
            "apikey": self.config.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        token = self.token_provider() if self.token_provider else None
        headers["Authorization"] = f"Bearer {token or self.config.api_key}"
        return headers

    async def _request(self, method: str, table: str, timeout_ms: int,
                       extra_headers: Optional[dict] = None, **kwargs) -> requests.Response:
        url = f"{self.config.remote_url}/rest/v1/{table}"
        headers = {**self._headers(), **(extra_headers or {})}

        try:
            response = await asyncio.to_thread(
                self.http.request,
                method,
                url,
                headers=headers,
                timeout=timeout_ms / 1000,
                **kwargs,
            )
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, table, e)
            raise RemoteUnavailableError(f"{method} {table} failed: {e}") from e

        if response.status_code >= 400:
            raise _error_from_response(response)
        return response


def _error_from_response(response: requests.Response) -> RemoteError:
    """Map a PostgREST error body onto RemoteError."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    return RemoteError(
        body.get("message") or f"HTTP {response.status_code}",
        code=body.get("code"),
        details=body.get("details"),
        hint=body.get("hint"),
        status=response.status_code,
    )
