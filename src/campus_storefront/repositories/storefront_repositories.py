"""Repository classes for storefront tables.

These repositories provide typed CRUD operations on top of a DataStore.
As with the rest of the service, expected failures are reported with simple
return values (None/False/empty list) rather than raised exceptions.
Updates and deletes of existing rows are the exception: there False or None
means "no such row", and a backend failure is raised as DataStoreError.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any

from campus_storefront.models.menu_models import Category, MenuItem, PricingRule
from campus_storefront.models.order_models import (
    Message,
    Order,
    OrderItem,
    OrderStatus,
    Profile,
)
from campus_storefront.repositories.data_store import DataStore, DataStoreError

logger = logging.getLogger(__name__)


class MenuItemRepository:
    """Repository for menu item CRUD operations."""

    def __init__(self, data_store: DataStore, table_name: str = "menu_items") -> None:
        """Initialize repository.

        Args:
            data_store: Backend data store
            table_name: Name of the menu items table
        """
        self.data_store = data_store
        self.table_name = table_name

    async def list_available_items(self) -> list[MenuItem] | None:
        """List items currently offered on the public menu.

        Returns:
            list: Available items in backend order, or None if the fetch failed
        """
        try:
            rows = await self.data_store.list(self.table_name, filters={"is_available": True})
            return [MenuItem.from_row(row) for row in rows]

        except DataStoreError as e:
            logger.error(f"Failed to list available menu items: {e}")  # pragma: no cover
            return None

    async def list_items(self) -> list[MenuItem]:
        """List all items, including unavailable ones.

        Returns:
            list: List of MenuItem objects (empty list on failure)
        """
        try:
            rows = await self.data_store.list(self.table_name, order_by="name")
            return [MenuItem.from_row(row) for row in rows]

        except DataStoreError as e:
            logger.error(f"Failed to list menu items: {e}")  # pragma: no cover
            return []

    async def get_item(self, item_id: str) -> MenuItem | None:
        """Retrieve a menu item by ID.

        Args:
            item_id: Menu item identifier

        Returns:
            MenuItem if found, None otherwise
        """
        try:
            row = await self.data_store.get(self.table_name, item_id)
            return MenuItem.from_row(row) if row else None

        except DataStoreError as e:
            logger.error(f"Failed to get menu item {item_id}: {e}")  # pragma: no cover
            return None

    async def create_item(self, fields: dict[str, Any]) -> MenuItem | None:
        """Insert a new menu item.

        Args:
            fields: Column values without an id; the backend assigns one

        Returns:
            MenuItem as stored, or None if the insert failed
        """
        row = dict(fields)
        row["base_price"] = str(row["base_price"])

        try:
            stored = await self.data_store.insert(self.table_name, row)
            return MenuItem.from_row(stored[0]) if stored else None

        except DataStoreError as e:
            logger.error(f"Failed to create menu item: {e}")  # pragma: no cover
            return None

    async def set_availability(self, item_id: str, is_available: bool) -> MenuItem | None:
        """Update the availability flag of a menu item.

        Args:
            item_id: Menu item identifier
            is_available: New availability

        Returns:
            The updated MenuItem, or None if it does not exist

        Raises:
            DataStoreError: If the backend could not be reached or refused the update
        """
        row = await self.data_store.update(self.table_name, item_id, {"is_available": is_available})
        return MenuItem.from_row(row) if row else None

    async def delete_item(self, item_id: str) -> bool:
        """Delete a menu item.

        Args:
            item_id: Menu item identifier

        Returns:
            bool: True if a row was deleted, False if it did not exist

        Raises:
            DataStoreError: If the backend could not be reached or refused the delete
        """
        return await self.data_store.delete(self.table_name, item_id)


class CategoryRepository:
    """Repository for menu categories."""

    def __init__(self, data_store: DataStore, table_name: str = "categories") -> None:
        self.data_store = data_store
        self.table_name = table_name

    async def list_active_categories(self) -> list[Category] | None:
        """List active categories in display order.

        Returns:
            list: Active categories, or None if the fetch failed
        """
        try:
            rows = await self.data_store.list(
                self.table_name, filters={"is_active": True}, order_by="display_order"
            )
            return [Category(**row) for row in rows]

        except DataStoreError as e:
            logger.error(f"Failed to list active categories: {e}")  # pragma: no cover
            return None

    async def list_categories(self) -> list[Category]:
        """List every category in display order (empty list on failure)."""
        try:
            rows = await self.data_store.list(self.table_name, order_by="display_order")
            return [Category(**row) for row in rows]

        except DataStoreError as e:
            logger.error(f"Failed to list categories: {e}")  # pragma: no cover
            return []


class PricingRuleRepository:
    """Repository for time-of-day pricing rules."""

    def __init__(self, data_store: DataStore, table_name: str = "pricing_rules") -> None:
        self.data_store = data_store
        self.table_name = table_name

    async def list_rules(self) -> list[PricingRule] | None:
        """List every pricing rule in backend order.

        Returns:
            list: All rules for all items, or None if the fetch failed
        """
        try:
            rows = await self.data_store.list(self.table_name)
            return [PricingRule.from_row(row) for row in rows]

        except DataStoreError as e:
            logger.error(f"Failed to list pricing rules: {e}")  # pragma: no cover
            return None

    async def create_rule(self, fields: dict[str, Any]) -> PricingRule | None:
        """Insert a new pricing rule.

        Args:
            fields: menu_item_id, time_of_day, price_multiplier and optional fixed_price

        Returns:
            PricingRule as stored, or None if the insert failed
        """
        row = {
            "menu_item_id": fields["menu_item_id"],
            "time_of_day": str(getattr(fields["time_of_day"], "value", fields["time_of_day"])),
            "price_multiplier": str(fields.get("price_multiplier", 1)),
            "fixed_price": (
                str(fields["fixed_price"]) if fields.get("fixed_price") is not None else None
            ),
        }

        try:
            stored = await self.data_store.insert(self.table_name, row)
            return PricingRule.from_row(stored[0]) if stored else None

        except DataStoreError as e:
            logger.error(f"Failed to create pricing rule: {e}")  # pragma: no cover
            return None

    async def delete_rule(self, rule_id: str) -> bool:
        """Delete a pricing rule.

        Args:
            rule_id: Pricing rule identifier

        Returns:
            bool: True if a row was deleted, False if it did not exist

        Raises:
            DataStoreError: If the backend could not be reached or refused the delete
        """
        return await self.data_store.delete(self.table_name, rule_id)


class OrderRepository:
    """Repository for orders and their line items.

    Orders and lines live in separate tables; lines are attached to orders
    on read.
    """

    def __init__(
        self,
        data_store: DataStore,
        table_name: str = "orders",
        items_table_name: str = "order_items",
    ) -> None:
        """Initialize repository.

        Args:
            data_store: Backend data store
            table_name: Name of the orders table
            items_table_name: Name of the order lines table
        """
        self.data_store = data_store
        self.table_name = table_name
        self.items_table_name = items_table_name

    async def save_order(self, order: Order) -> bool:
        """Insert an order row (without its lines).

        Args:
            order: Order to save

        Returns:
            bool: True if save succeeded, False otherwise
        """
        try:
            await self.data_store.insert(self.table_name, order.to_row())
            return True

        except DataStoreError as e:
            logger.error(f"Failed to save order {order.id}: {e}")  # pragma: no cover
            return False

    async def save_order_items(self, items: list[OrderItem]) -> bool:
        """Insert order lines in a single batch.

        Args:
            items: Lines to save

        Returns:
            bool: True if save succeeded, False otherwise
        """
        try:
            await self.data_store.insert(self.items_table_name, [item.to_row() for item in items])
            return True

        except DataStoreError as e:
            logger.error(f"Failed to save order items: {e}")  # pragma: no cover
            return False

    async def get_order(self, order_id: str) -> Order | None:
        """Retrieve an order with its lines.

        Args:
            order_id: Order identifier

        Returns:
            Order if found, None otherwise
        """
        try:
            row = await self.data_store.get(self.table_name, order_id)
            if row is None:
                return None

            row["order_items"] = await self.data_store.list(
                self.items_table_name, filters={"order_id": order_id}
            )
            return Order.from_row(row)

        except DataStoreError as e:
            logger.error(f"Failed to get order {order_id}: {e}")  # pragma: no cover
            return None

    async def list_orders(self, user_id: str | None = None) -> list[Order]:
        """List orders newest first, with their lines.

        A customer listing fetches only the lines of that customer's orders;
        the full listing reads the whole lines table once.

        Args:
            user_id: Optional customer to restrict the listing to

        Returns:
            list: List of Order objects (empty list if none found or on failure)
        """
        filters = {"user_id": user_id} if user_id else None

        try:
            rows = await self.data_store.list(
                self.table_name, filters=filters, order_by="created_at", descending=True
            )
            if not rows:
                return []

            if user_id:
                per_order = await asyncio.gather(
                    *(
                        self.data_store.list(self.items_table_name, filters={"order_id": row["id"]})
                        for row in rows
                    )
                )
                item_rows = [item_row for order_rows in per_order for item_row in order_rows]
            else:
                item_rows = await self.data_store.list(self.items_table_name)

        except DataStoreError as e:
            logger.error(f"Failed to list orders: {e}")  # pragma: no cover
            return []

        items_by_order: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for item_row in item_rows:
            items_by_order[str(item_row["order_id"])].append(item_row)

        orders = []
        for row in rows:
            row["order_items"] = items_by_order.get(str(row["id"]), [])
            orders.append(Order.from_row(row))
        return orders

    async def update_status(self, order_id: str, status: OrderStatus) -> bool:
        """Update the status of an order.

        Args:
            order_id: Order identifier
            status: New status

        Returns:
            bool: True if an order was updated, False if it did not exist

        Raises:
            DataStoreError: If the backend could not be reached or refused the update
        """
        row = await self.data_store.update(self.table_name, order_id, {"status": status.value})
        return row is not None

    async def delete_order(self, order_id: str) -> bool:
        """Delete an order row.

        Args:
            order_id: Order identifier

        Returns:
            bool: True if the order was deleted, False otherwise
        """
        try:
            return await self.data_store.delete(self.table_name, order_id)

        except DataStoreError as e:
            logger.error(f"Failed to delete order {order_id}: {e}")  # pragma: no cover
            return False


class MessageRepository:
    """Repository for administrator messages."""

    def __init__(self, data_store: DataStore, table_name: str = "messages") -> None:
        self.data_store = data_store
        self.table_name = table_name

    async def save_message(self, message: Message) -> bool:
        """Insert a message.

        Args:
            message: Message to save

        Returns:
            bool: True if save succeeded, False otherwise
        """
        try:
            await self.data_store.insert(self.table_name, message.to_row())
            return True

        except DataStoreError as e:
            logger.error(f"Failed to save message: {e}")  # pragma: no cover
            return False

    async def list_messages(self, user_id: str | None = None) -> list[Message]:
        """List messages newest first.

        Args:
            user_id: Optional recipient to restrict the listing to

        Returns:
            list: List of Message objects (empty list on failure)
        """
        filters = {"user_id": user_id} if user_id else None

        try:
            rows = await self.data_store.list(
                self.table_name, filters=filters, order_by="created_at", descending=True
            )
            return [Message.from_row(row) for row in rows]

        except DataStoreError as e:
            logger.error(f"Failed to list messages: {e}")  # pragma: no cover
            return []


class ProfileRepository:
    """Repository for customer profiles."""

    def __init__(self, data_store: DataStore, table_name: str = "profiles") -> None:
        self.data_store = data_store
        self.table_name = table_name

    async def get_profile(self, user_id: str) -> Profile | None:
        """Retrieve a profile by user ID.

        Args:
            user_id: User identifier

        Returns:
            Profile if found, None otherwise
        """
        try:
            row = await self.data_store.get(self.table_name, user_id)
            return Profile(**row) if row else None

        except DataStoreError as e:
            logger.error(f"Failed to get profile {user_id}: {e}")  # pragma: no cover
            return None

    async def list_profiles(self) -> list[Profile]:
        """List all profiles (empty list on failure)."""
        try:
            rows = await self.data_store.list(self.table_name)
            return [Profile(**row) for row in rows]

        except DataStoreError as e:
            logger.error(f"Failed to list profiles: {e}")  # pragma: no cover
            return []


class UserRoleRepository:
    """Repository for role grants."""

    def __init__(self, data_store: DataStore, table_name: str = "user_roles") -> None:
        self.data_store = data_store
        self.table_name = table_name

    async def has_role(self, user_id: str, role: str) -> bool:
        """Check whether a user holds a role.

        Args:
            user_id: User identifier
            role: Role name (e.g., 'admin')

        Returns:
            bool: True if a matching grant exists, False otherwise or on failure
        """
        try:
            rows = await self.data_store.list(
                self.table_name, filters={"user_id": user_id, "role": role}
            )
            return bool(rows)

        except DataStoreError as e:
            logger.error(f"Failed to check role {role} for {user_id}: {e}")  # pragma: no cover
            return False
