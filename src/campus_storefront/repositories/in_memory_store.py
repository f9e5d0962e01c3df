"""Process-local DataStore used for development and tests.

Tables are dictionaries keyed by row id, kept in insertion order. Every
successful write is announced to subscribers, mirroring what the hosted
backend's realtime channel would deliver.
"""

import copy
import logging
import uuid
from typing import Any

from campus_storefront.models.change_models import ChangeEvent, ChangeType
from campus_storefront.repositories.data_store import DataStore, Row

logger = logging.getLogger(__name__)


def _sort_key(value: Any) -> tuple[bool, Any]:
    # Rows missing the column sort after everything else
    return (value is None, value if value is not None else 0)


class InMemoryDataStore(DataStore):
    """DataStore backed by in-process dictionaries."""

    def __init__(self, tables: dict[str, list[Row]] | None = None) -> None:
        """Initialize the store.

        Args:
            tables: Optional seed rows per table; rows without an id get one
        """
        super().__init__()
        self._tables: dict[str, dict[str, Row]] = {}
        self._users: dict[str, Row] = {}

        for table, rows in (tables or {}).items():
            for row in rows:
                self._store_row(table, row)

    def _table(self, table: str) -> dict[str, Row]:
        return self._tables.setdefault(table, {})

    def _store_row(self, table: str, row: Row) -> Row:
        stored = copy.deepcopy(row)
        if stored.get("id") is None:
            stored["id"] = str(uuid.uuid4())
        self._table(table)[str(stored["id"])] = stored
        return stored

    def add_user(self, access_token: str, user_id: str, email: str | None = None) -> None:
        """Register an access token for ``get_user`` lookups."""
        self._users[access_token] = {"id": user_id, "email": email}

    async def get(self, table: str, row_id: str) -> Row | None:
        row = self._table(table).get(str(row_id))
        return copy.deepcopy(row) if row is not None else None

    async def insert(self, table: str, rows: Row | list[Row]) -> list[Row]:
        batch = [rows] if isinstance(rows, dict) else rows
        stored = [self._store_row(table, row) for row in batch]

        for row in stored:
            await self.notify(
                ChangeEvent(table=table, change_type=ChangeType.INSERT, record=copy.deepcopy(row))
            )

        return [copy.deepcopy(row) for row in stored]

    async def update(self, table: str, row_id: str, changes: Row) -> Row | None:
        current = self._table(table).get(str(row_id))
        if current is None:
            return None

        old = copy.deepcopy(current)
        current.update(copy.deepcopy(changes))
        await self.notify(
            ChangeEvent(
                table=table,
                change_type=ChangeType.UPDATE,
                record=copy.deepcopy(current),
                old_record=old,
            )
        )
        return copy.deepcopy(current)

    async def delete(self, table: str, row_id: str) -> bool:
        removed = self._table(table).pop(str(row_id), None)
        if removed is None:
            return False

        await self.notify(
            ChangeEvent(table=table, change_type=ChangeType.DELETE, old_record=removed)
        )
        return True

    async def get_user(self, access_token: str) -> Row | None:
        user = self._users.get(access_token)
        return dict(user) if user is not None else None

    async def list(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Row]:
        rows = [
            row
            for row in self._table(table).values()
            if all(row.get(column) == value for column, value in (filters or {}).items())
        ]

        if order_by:
            rows = sorted(rows, key=lambda row: _sort_key(row.get(order_by)), reverse=descending)

        return [copy.deepcopy(row) for row in rows]
