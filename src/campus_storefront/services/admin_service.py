"""Administrator dashboard service.

Every operation takes the caller's Session and checks the ``admin`` role
before touching any data.
"""

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, tzinfo
from decimal import Decimal
from typing import Any

from campus_storefront.models.change_models import ChangeEvent
from campus_storefront.models.menu_models import Category, MenuItem, PricingRule, TimeWindow
from campus_storefront.models.order_models import Message, Order, OrderStatus, Session
from campus_storefront.observability import traced
from campus_storefront.observability.metrics import record_order_status_change
from campus_storefront.repositories.data_store import DataStore, DataStoreError, Subscription
from campus_storefront.repositories.storefront_repositories import (
    CategoryRepository,
    MenuItemRepository,
    MessageRepository,
    OrderRepository,
    PricingRuleRepository,
    ProfileRepository,
    UserRoleRepository,
)
from campus_storefront.services.errors import AdminAccessDenied, BackendWriteError, NotFoundError

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
ALL_STATUSES = "all"


@dataclass
class DashboardStats:
    """Order statistics shown on the dashboard.

    Attributes:
        total_orders: Number of orders ever placed
        today_orders: Number of orders placed on the reference day
        total_revenue: Sum of all order totals
        today_revenue: Sum of the reference day's order totals
        orders_by_status: Order count per status, every status present
        orders_by_payment_method: Order count per payment method
        revenue_by_payment_method: Revenue per payment method
    """

    total_orders: int
    today_orders: int
    total_revenue: Decimal
    today_revenue: Decimal
    orders_by_status: dict[str, int] = field(default_factory=dict)
    orders_by_payment_method: dict[str, int] = field(default_factory=dict)
    revenue_by_payment_method: dict[str, Decimal] = field(default_factory=dict)


def local_date(instant: datetime, tz: tzinfo) -> date:
    """Calendar date of an instant in a timezone; naive instants are taken as UTC."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(tz).date()


def compute_dashboard_stats(
    orders: list[Order], today: date, tz: tzinfo = UTC
) -> DashboardStats:
    """Aggregate orders into dashboard statistics.

    Args:
        orders: Orders to aggregate
        today: Day counted as "today" in ``tz``
        tz: Timezone in which each order's creation time is dated

    Returns:
        DashboardStats for the orders
    """
    todays = [order for order in orders if local_date(order.created_at, tz) == today]

    by_status = {status.value: 0 for status in OrderStatus}
    by_status.update(Counter(order.status.value for order in orders))

    by_method: dict[str, int] = Counter(order.payment_method.value for order in orders)
    revenue_by_method: dict[str, Decimal] = {}
    for order in orders:
        method = order.payment_method.value
        revenue_by_method[method] = revenue_by_method.get(method, Decimal("0")) + order.total_amount

    return DashboardStats(
        total_orders=len(orders),
        today_orders=len(todays),
        total_revenue=sum((order.total_amount for order in orders), Decimal("0")),
        today_revenue=sum((order.total_amount for order in todays), Decimal("0")),
        orders_by_status=by_status,
        orders_by_payment_method=dict(by_method),
        revenue_by_payment_method=revenue_by_method,
    )


def filter_orders(
    orders: list[Order], status: str = ALL_STATUSES, search: str | None = None
) -> list[Order]:
    """Filter orders by status and a case-insensitive search.

    The search term matches the order id, customer name or customer email.
    """
    if status != ALL_STATUSES:
        orders = [order for order in orders if order.status.value == status]

    if search:
        needle = search.lower()
        orders = [
            order
            for order in orders
            if needle in order.id.lower()
            or needle in (order.customer_name or "").lower()
            or needle in (order.customer_email or "").lower()
        ]

    return orders


class AdminService:
    """Service behind the administrator dashboard.

    The joined order listing is cached and dropped whenever the backend
    reports a change on the orders or order lines tables.
    """

    def __init__(
        self,
        user_role_repository: UserRoleRepository,
        order_repository: OrderRepository,
        menu_item_repository: MenuItemRepository,
        category_repository: CategoryRepository,
        pricing_rule_repository: PricingRuleRepository,
        message_repository: MessageRepository,
        profile_repository: ProfileRepository,
    ) -> None:
        """Initialize the AdminService.

        Args:
            user_role_repository: Repository for role grants
            order_repository: Repository for orders
            menu_item_repository: Repository for menu items
            category_repository: Repository for categories
            pricing_rule_repository: Repository for pricing rules
            message_repository: Repository for messages
            profile_repository: Repository for customer profiles
        """
        self.user_role_repository = user_role_repository
        self.order_repository = order_repository
        self.menu_item_repository = menu_item_repository
        self.category_repository = category_repository
        self.pricing_rule_repository = pricing_rule_repository
        self.message_repository = message_repository
        self.profile_repository = profile_repository

        self._orders_cache: list[Order] | None = None
        self._orders_generation = 0
        self._subscriptions: list[Subscription] = []

    def watch_orders(self, data_store: DataStore) -> None:
        """Subscribe to order changes so the cached listing is refetched."""
        for table in (self.order_repository.table_name, self.order_repository.items_table_name):
            self._subscriptions.append(data_store.subscribe(table, self._on_order_change))

    def stop_watching(self) -> None:
        """Cancel the order change subscriptions."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()
        self._orders_cache = None

    def _on_order_change(self, event: ChangeEvent) -> None:
        logger.info(f"Order change received ({event.change_type.value} on {event.table})")
        self._invalidate_orders()

    def _invalidate_orders(self) -> None:
        self._orders_generation += 1
        self._orders_cache = None

    async def is_admin(self, session: Session) -> bool:
        return await self.user_role_repository.has_role(session.user_id, ADMIN_ROLE)

    async def require_admin(self, session: Session) -> None:
        """Raise AdminAccessDenied unless the caller holds the admin role."""
        if not await self.is_admin(session):
            logger.warning(f"Admin access denied for user {session.user_id}")
            raise AdminAccessDenied(session.user_id)

    async def _load_orders(self) -> list[Order]:
        # Without a change subscription nothing would invalidate the cache
        if self._subscriptions and self._orders_cache is not None:
            return self._orders_cache

        generation = self._orders_generation
        orders = await self.order_repository.list_orders()
        profiles = {profile.id: profile for profile in await self.profile_repository.list_profiles()}
        item_names = {item.id: item.name for item in await self.menu_item_repository.list_items()}

        for order in orders:
            profile = profiles.get(order.user_id)
            if profile is not None:
                order.customer_name = profile.full_name
                order.customer_email = profile.email
            for line in order.items:
                if line.name is None:
                    line.name = item_names.get(line.menu_item_id)

        # A change seen while loading makes this listing stale
        if self._subscriptions and generation == self._orders_generation:
            self._orders_cache = orders
        return orders

    # Orders

    async def list_orders(
        self, session: Session, status: str = ALL_STATUSES, search: str | None = None
    ) -> list[Order]:
        """List orders newest first with customer details and line names.

        Args:
            session: Caller's session
            status: Status to show, or "all"
            search: Optional term matched against order id, customer name and email

        Returns:
            Matching orders
        """
        await self.require_admin(session)
        return filter_orders(await self._load_orders(), status, search)

    @traced("admin.update_order_status")
    async def update_order_status(
        self, session: Session, order_id: str, status: OrderStatus
    ) -> None:
        """Move an order to a new status.

        Raises:
            NotFoundError: If the order does not exist
            BackendWriteError: If the backend failed to apply the update
        """
        await self.require_admin(session)
        try:
            updated = await self.order_repository.update_status(order_id, status)
        except DataStoreError as e:
            raise BackendWriteError(f"Failed to update order status for {order_id}") from e
        if not updated:
            raise NotFoundError(f"Order {order_id} not found")

        self._invalidate_orders()
        record_order_status_change(status.value)
        logger.info(f"Order {order_id} moved to {status.value} by {session.user_id}")

    async def get_dashboard_stats(
        self, session: Session, today: date | None = None, tz: tzinfo = UTC
    ) -> DashboardStats:
        """Aggregate statistics over all orders.

        Args:
            session: Caller's session
            today: Day counted as today (defaults to the current date in ``tz``)
            tz: Timezone of the storefront's calendar day
        """
        await self.require_admin(session)
        orders = await self._load_orders()
        return compute_dashboard_stats(orders, today or datetime.now(tz).date(), tz)

    # Menu items

    async def list_menu_items(self, session: Session) -> list[MenuItem]:
        """List every menu item, including unavailable ones."""
        await self.require_admin(session)
        return await self.menu_item_repository.list_items()

    async def add_menu_item(
        self,
        session: Session,
        name: str,
        base_price: Decimal,
        category_id: str,
        description: str | None = None,
        image_url: str | None = None,
    ) -> MenuItem:
        """Create a menu item.

        Raises:
            ValueError: If name or category is missing, or the price is negative
            BackendWriteError: If the backend did not store the item
        """
        await self.require_admin(session)
        if not name or not category_id:
            raise ValueError("Please fill in all required fields")
        if base_price < 0:
            raise ValueError("base_price must be non-negative")

        item = await self.menu_item_repository.create_item(
            {
                "name": name,
                "description": description or None,
                "base_price": base_price,
                "category_id": category_id,
                "image_url": image_url or None,
                "is_available": True,
            }
        )
        if item is None:
            raise BackendWriteError("Failed to add menu item")

        logger.info(f"Menu item {item.id} ({item.name}) added by {session.user_id}")
        return item

    async def delete_menu_item(self, session: Session, item_id: str) -> None:
        """Delete a menu item.

        Raises:
            NotFoundError: If the item does not exist
            BackendWriteError: If the backend failed to delete it
        """
        await self.require_admin(session)
        try:
            deleted = await self.menu_item_repository.delete_item(item_id)
        except DataStoreError as e:
            raise BackendWriteError(f"Failed to delete menu item {item_id}") from e
        if not deleted:
            raise NotFoundError(f"Menu item {item_id} not found")
        logger.info(f"Menu item {item_id} deleted by {session.user_id}")

    async def toggle_availability(self, session: Session, item_id: str) -> MenuItem:
        """Flip whether a menu item is offered.

        Raises:
            NotFoundError: If the item does not exist
            BackendWriteError: If the backend failed to apply the update
        """
        await self.require_admin(session)
        item = await self.menu_item_repository.get_item(item_id)
        if item is None:
            raise NotFoundError(f"Menu item {item_id} not found")

        try:
            updated = await self.menu_item_repository.set_availability(
                item_id, not item.is_available
            )
        except DataStoreError as e:
            raise BackendWriteError(f"Failed to update availability of {item_id}") from e
        if updated is None:
            raise NotFoundError(f"Menu item {item_id} not found")
        return updated

    async def list_categories(self, session: Session) -> list[Category]:
        """List every category in display order."""
        await self.require_admin(session)
        return await self.category_repository.list_categories()

    # Pricing rules

    async def list_pricing_rules(self, session: Session) -> list[PricingRule]:
        await self.require_admin(session)
        return await self.pricing_rule_repository.list_rules() or []

    async def add_pricing_rule(
        self,
        session: Session,
        menu_item_id: str,
        time_of_day: TimeWindow,
        price_multiplier: Decimal = Decimal("1"),
        fixed_price: Decimal | None = None,
    ) -> PricingRule:
        """Create a time-of-day pricing rule.

        Raises:
            ValueError: If the menu item is missing or a price is negative
            BackendWriteError: If the backend did not store the rule
        """
        await self.require_admin(session)
        if not menu_item_id:
            raise ValueError("Please select menu item and time of day")
        if price_multiplier < 0 or (fixed_price is not None and fixed_price < 0):
            raise ValueError("Prices must be non-negative")

        fields: dict[str, Any] = {
            "menu_item_id": menu_item_id,
            "time_of_day": time_of_day,
            "price_multiplier": price_multiplier,
            "fixed_price": fixed_price,
        }
        rule = await self.pricing_rule_repository.create_rule(fields)
        if rule is None:
            raise BackendWriteError("Failed to add pricing rule")

        logger.info(
            f"Pricing rule {rule.id} for {menu_item_id} ({time_of_day.value}) added by {session.user_id}"
        )
        return rule

    async def delete_pricing_rule(self, session: Session, rule_id: str) -> None:
        """Delete a pricing rule.

        Raises:
            NotFoundError: If the rule does not exist
            BackendWriteError: If the backend failed to delete it
        """
        await self.require_admin(session)
        try:
            deleted = await self.pricing_rule_repository.delete_rule(rule_id)
        except DataStoreError as e:
            raise BackendWriteError(f"Failed to delete pricing rule {rule_id}") from e
        if not deleted:
            raise NotFoundError(f"Pricing rule {rule_id} not found")

    # Messages

    async def list_messages(self, session: Session) -> list[Message]:
        await self.require_admin(session)
        return await self.message_repository.list_messages()

    async def send_message(
        self, session: Session, order_id: str, user_id: str, message: str
    ) -> Message:
        """Send a message to the customer behind an order.

        Raises:
            ValueError: If any field is empty
            BackendWriteError: If the backend did not store the message
        """
        await self.require_admin(session)
        if not order_id or not user_id or not message.strip():
            raise ValueError("Please fill all fields")

        sent = Message(
            id=str(uuid.uuid4()),
            order_id=order_id,
            user_id=user_id,
            message=message.strip(),
            sent_by=session.user_id,
            created_at=datetime.now(UTC),
        )
        if not await self.message_repository.save_message(sent):
            raise BackendWriteError("Failed to send message")

        logger.info(f"Message sent to {user_id} about order {order_id}")
        return sent
