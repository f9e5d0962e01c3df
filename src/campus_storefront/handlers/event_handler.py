"""Realtime change handler.

The hosted backend posts one payload per row change to the storefront's
webhook. Payloads are parsed into ChangeEvents and handed to the data store,
which fans them out to everything registered through ``subscribe``.
"""

import logging
from typing import Any

from pydantic import ValidationError

from campus_storefront.models.change_models import ChangeEvent
from campus_storefront.repositories.data_store import DataStore

logger = logging.getLogger(__name__)


def parse_realtime_payload(payload: dict[str, Any]) -> ChangeEvent | None:
    """Parse a realtime webhook payload into a ChangeEvent.

    Expects the backend's database webhook shape::

        {"type": "UPDATE", "table": "orders", "schema": "public",
         "record": {...}, "old_record": {...}}

    Args:
        payload: Raw webhook body

    Returns:
        ChangeEvent if parsing succeeds, None otherwise
    """
    try:
        return ChangeEvent(
            table=payload["table"],
            change_type=str(payload["type"]).upper(),
            record=payload.get("record"),
            old_record=payload.get("old_record"),
        )
    except (KeyError, ValidationError, TypeError) as e:
        logger.error(f"Failed to parse realtime payload: {e}")  # pragma: no cover
        return None


class ChangeEventHandler:
    """Dispatches realtime changes to data store subscribers."""

    def __init__(self, data_store: DataStore) -> None:
        """Initialize the handler.

        Args:
            data_store: Store whose subscribers receive the changes
        """
        self.data_store = data_store

    async def handle_change(self, event: ChangeEvent) -> int:
        """Deliver one change to subscribers.

        Args:
            event: The change to deliver

        Returns:
            int: Number of subscribers that handled it
        """
        delivered = await self.data_store.notify(event)
        logger.info(
            f"Delivered {event.change_type.value} on {event.table} "
            f"(row {event.row_id}) to {delivered} subscriber(s)"
        )
        return delivered

    async def handle_payload(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Parse and deliver a webhook payload.

        Args:
            payload: Raw webhook body

        Returns:
            Dictionary with statusCode and body describing the outcome
        """
        event = parse_realtime_payload(payload)
        if event is None:
            return {
                "statusCode": 400,
                "body": "Invalid change payload",
            }

        delivered = await self.handle_change(event)
        return {
            "statusCode": 200,
            "body": f"Delivered change on {event.table} to {delivered} subscriber(s)",
        }
