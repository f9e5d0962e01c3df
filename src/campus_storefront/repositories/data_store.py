"""Vendor-neutral data access interface for the hosted backend.

The storefront never talks to a backend SDK directly. Every table is reached
through a DataStore, which offers row-level CRUD plus change subscriptions.

Stores raise DataStoreError for transport and backend failures. The typed
repositories built on top translate those into simple return values
(None/False/empty list), so services only see expected outcomes.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from campus_storefront.models.change_models import ChangeEvent

logger = logging.getLogger(__name__)

Row = dict[str, Any]
ChangeCallback = Callable[[ChangeEvent], Awaitable[None] | None]


class DataStoreError(Exception):
    """Raised when the backend cannot complete a data operation."""


class Subscription:
    """Handle returned by ``DataStore.subscribe``."""

    def __init__(self, store: "DataStore", table: str, callback: ChangeCallback) -> None:
        self.store = store
        self.table = table
        self.callback = callback

    def unsubscribe(self) -> None:
        """Stop delivering changes to the callback."""
        self.store._remove_subscription(self)


class DataStore(ABC):
    """Abstract base class for table storage backends.

    Implementations must provide the five CRUD operations and user lookup.
    Subscription bookkeeping and change dispatch are shared here.
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    @abstractmethod
    async def get(self, table: str, row_id: str) -> Row | None:
        """Fetch one row by primary key.

        Args:
            table: Table name
            row_id: Value of the ``id`` column

        Returns:
            dict: The row, or None if no such row exists
        """

    @abstractmethod
    async def insert(self, table: str, rows: Row | list[Row]) -> list[Row]:
        """Insert one or more rows.

        Args:
            table: Table name
            rows: A row or a list of rows

        Returns:
            list: The stored rows, including generated ids
        """

    @abstractmethod
    async def update(self, table: str, row_id: str, changes: Row) -> Row | None:
        """Apply column changes to one row.

        Args:
            table: Table name
            row_id: Value of the ``id`` column
            changes: Columns to overwrite

        Returns:
            dict: The updated row, or None if no such row exists
        """

    @abstractmethod
    async def delete(self, table: str, row_id: str) -> bool:
        """Delete one row.

        Args:
            table: Table name
            row_id: Value of the ``id`` column

        Returns:
            bool: True if a row was deleted
        """

    @abstractmethod
    async def get_user(self, access_token: str) -> Row | None:
        """Resolve an access token to the authenticated user.

        Args:
            access_token: Bearer token issued by the backend's auth service

        Returns:
            dict: User record with at least ``id``, or None if the token is invalid

        Raises:
            DataStoreError: If the auth service could not be asked
        """

    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription:
        """Register a callback for changes on a table.

        Args:
            table: Table name, or ``"*"`` for every table
            callback: Sync or async callable receiving a ChangeEvent

        Returns:
            Subscription: Handle used to unsubscribe
        """
        subscription = Subscription(self, table, callback)
        self._subscriptions.append(subscription)
        logger.debug(f"Subscribed to changes on {table}")
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    async def notify(self, event: ChangeEvent) -> int:
        """Deliver a change event to every matching subscriber.

        A failing callback is logged and does not stop delivery to the rest.

        Args:
            event: The change to deliver

        Returns:
            int: Number of callbacks that handled the event without error
        """
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.table not in (event.table, "*"):
                continue

            try:
                result = subscription.callback(event)
                if asyncio.iscoroutine(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.exception(f"Change subscriber for {event.table} failed: {e}")

        return delivered

    # Declared last: once defined, ``list`` shadows the builtin in this class body.
    @abstractmethod
    async def list(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Row]:
        """List rows matching equality filters.

        Args:
            table: Table name
            filters: Column/value pairs that must all match
            order_by: Optional column to sort by
            descending: Sort direction when ``order_by`` is given

        Returns:
            list: Matching rows, empty if none
        """
