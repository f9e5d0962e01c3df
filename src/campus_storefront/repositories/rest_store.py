"""DataStore for a PostgREST-style hosted backend.

Tables are served under ``/rest/v1/<table>`` and accept ``eq.`` filters and
``order=<column>.<asc|desc>`` clauses. Tokens are resolved through
``/auth/v1/user``.

Writes made through this store are announced to subscribers as soon as the
backend confirms them. Changes made by other clients arrive through the
``/realtime/changes`` webhook, which hands them to ``notify``; a write of our
own may therefore be seen twice, so subscribers must be idempotent.
"""

import logging
from typing import Any

import httpx

from campus_storefront.models.change_models import ChangeEvent, ChangeType
from campus_storefront.repositories.data_store import DataStore, DataStoreError, Row

logger = logging.getLogger(__name__)

REJECTED_TOKEN_STATUSES = (401, 403)


def _filter_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class RestDataStore(DataStore):
    """HTTP client for the hosted backend's table and auth endpoints."""

    def __init__(self, base_url: str, api_key: str, timeout_seconds: float = 10.0) -> None:
        """Initialize the store.

        Args:
            base_url: Project URL of the hosted backend (e.g., "https://xyz.example.co")
            api_key: Service API key sent as ``apikey`` and bearer token
            timeout_seconds: Per-request timeout
        """
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    def _headers(self, bearer: str | None = None) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {bearer or self.api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    def _table_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    async def _request(
        self,
        method: str,
        url: str,
        params: dict[str, str] | None = None,
        json: Any = None,
        bearer: str | None = None,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.request(
                    method, url, params=params, json=json, headers=self._headers(bearer)
                )
                response.raise_for_status()
                return response

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            raise DataStoreError(f"{method} {url} failed: {e}") from e

    async def get(self, table: str, row_id: str) -> Row | None:
        response = await self._request(
            "GET",
            self._table_url(table),
            params={"select": "*", "id": f"eq.{row_id}", "limit": "1"},
        )
        rows = response.json()
        return rows[0] if rows else None

    async def insert(self, table: str, rows: Row | list[Row]) -> list[Row]:
        response = await self._request("POST", self._table_url(table), json=rows)
        stored: list[Row] = response.json()
        for row in stored:
            await self.notify(ChangeEvent(table=table, change_type=ChangeType.INSERT, record=row))
        return stored

    async def update(self, table: str, row_id: str, changes: Row) -> Row | None:
        response = await self._request(
            "PATCH", self._table_url(table), params={"id": f"eq.{row_id}"}, json=changes
        )
        rows = response.json()
        if not rows:
            return None

        await self.notify(ChangeEvent(table=table, change_type=ChangeType.UPDATE, record=rows[0]))
        return rows[0]

    async def delete(self, table: str, row_id: str) -> bool:
        response = await self._request(
            "DELETE", self._table_url(table), params={"id": f"eq.{row_id}"}
        )
        removed = response.json()
        for row in removed:
            await self.notify(ChangeEvent(table=table, change_type=ChangeType.DELETE, old_record=row))
        return bool(removed)

    async def get_user(self, access_token: str) -> Row | None:
        try:
            response = await self._request(
                "GET", f"{self.base_url}/auth/v1/user", bearer=access_token
            )
        except DataStoreError as e:
            cause = e.__cause__
            if (
                isinstance(cause, httpx.HTTPStatusError)
                and cause.response.status_code in REJECTED_TOKEN_STATUSES
            ):
                logger.warning(f"Access token rejected by auth service: {e}")
                return None
            raise

        user: Row = response.json()
        return user if user.get("id") else None

    async def list(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Row]:
        params = {"select": "*"}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{_filter_value(value)}"
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"

        response = await self._request("GET", self._table_url(table), params=params)
        rows: list[Row] = response.json()
        return rows
