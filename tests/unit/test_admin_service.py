"""Unit tests for AdminService and ProfileService."""

from datetime import date, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from campus_storefront.models.menu_models import TimeWindow
from campus_storefront.models.order_models import (
    Order,
    OrderStatus,
    PaymentMethod,
    Session,
)
from campus_storefront.repositories.data_store import DataStoreError
from campus_storefront.repositories.in_memory_store import InMemoryDataStore
from campus_storefront.repositories.storefront_repositories import (
    CategoryRepository,
    MenuItemRepository,
    MessageRepository,
    OrderRepository,
    PricingRuleRepository,
    ProfileRepository,
    UserRoleRepository,
)
from campus_storefront.services.admin_service import (
    AdminService,
    compute_dashboard_stats,
    filter_orders,
)
from campus_storefront.services.errors import AdminAccessDenied, BackendWriteError, NotFoundError
from campus_storefront.services.profile_service import ProfileService


def order_row(order_id: str, user_id: str, created_at: str, total: str, method: str,
              status: str = "pending") -> dict:
    return {
        "id": order_id,
        "user_id": user_id,
        "created_at": created_at,
        "total_amount": total,
        "status": status,
        "payment_method": method,
        "payment_status": "pending",
        "phone": "9876543210",
        "hostel_name": "Ganga",
        "room_number": "214",
        "special_instructions": None,
    }


@pytest.fixture
def store(mock_category_rows: list[dict]) -> InMemoryDataStore:
    """Create a store with one admin, two customers and their orders."""
    return InMemoryDataStore(
        {
            "user_roles": [{"user_id": "admin_1", "role": "admin"}],
            "profiles": [
                {"id": "user_1", "email": "asha@example.edu", "full_name": "Asha Rao"},
                {"id": "user_2", "email": "vikram@example.edu", "full_name": "Vikram Shah"},
            ],
            "menu_items": [
                {"id": "item_1", "name": "Masala Dosa", "base_price": "80", "category_id": "cat_1",
                 "is_available": True},
            ],
            "categories": mock_category_rows,
            "orders": [
                order_row("order_1", "user_1", "2024-01-14T19:00:00+00:00", "160", "cod",
                          status="delivered"),
                order_row("order_2", "user_2", "2024-01-15T13:00:00+00:00", "80", "upi"),
            ],
            "order_items": [
                {"id": "line_1", "order_id": "order_1", "menu_item_id": "item_1", "quantity": 2,
                 "price_at_order": "80"},
            ],
        }
    )


@pytest.fixture
def service(store: InMemoryDataStore) -> AdminService:
    """Create an AdminService over real repositories and the in-memory store."""
    return AdminService(
        user_role_repository=UserRoleRepository(store),
        order_repository=OrderRepository(store),
        menu_item_repository=MenuItemRepository(store),
        category_repository=CategoryRepository(store),
        pricing_rule_repository=PricingRuleRepository(store),
        message_repository=MessageRepository(store),
        profile_repository=ProfileRepository(store),
    )


@pytest.mark.unit
class TestDashboardHelpers:
    """Test suite for order filtering and statistics."""

    @pytest.fixture
    def orders(self) -> list[Order]:
        return [
            Order.from_row(order_row("order_1", "user_1", "2024-01-14T19:00:00+00:00", "160",
                                     "cod", status="delivered")),
            Order.from_row(order_row("order_2", "user_2", "2024-01-15T13:00:00+00:00", "80",
                                     "upi")),
            Order.from_row(order_row("order_3", "user_2", "2024-01-15T20:00:00+00:00", "40",
                                     "cod")),
        ]

    def test_compute_dashboard_stats(self, orders: list[Order]) -> None:
        """Test totals, today's figures and per-method breakdowns."""
        stats = compute_dashboard_stats(orders, date(2024, 1, 15))

        assert stats.total_orders == 3
        assert stats.today_orders == 2
        assert stats.total_revenue == Decimal("280")
        assert stats.today_revenue == Decimal("120")
        assert stats.orders_by_status["pending"] == 2
        assert stats.orders_by_status["delivered"] == 1
        assert stats.orders_by_status["cancelled"] == 0
        assert stats.orders_by_payment_method == {"cod": 2, "upi": 1}
        assert stats.revenue_by_payment_method == {"cod": Decimal("200"), "upi": Decimal("80")}

    def test_today_is_counted_in_the_storefront_timezone(self) -> None:
        """Test that orders are dated in the local timezone, not UTC."""
        ist = timezone(timedelta(hours=5, minutes=30))
        late_evening_utc = Order.from_row(
            order_row("order_4", "user_1", "2024-01-15T19:30:00+00:00", "90", "upi")
        )

        stats = compute_dashboard_stats([late_evening_utc], date(2024, 1, 16), ist)

        assert stats.today_orders == 1
        assert stats.today_revenue == Decimal("90")
        assert compute_dashboard_stats([late_evening_utc], date(2024, 1, 16)).today_orders == 0

    def test_filter_orders(self, orders: list[Order]) -> None:
        """Test status filtering and search over id and customer fields."""
        orders[1].customer_name = "Vikram Shah"

        assert [o.id for o in filter_orders(orders, status="pending")] == ["order_2", "order_3"]
        assert [o.id for o in filter_orders(orders, search="VIKRAM")] == ["order_2"]
        assert [o.id for o in filter_orders(orders, search="order_3")] == ["order_3"]
        assert len(filter_orders(orders)) == 3


@pytest.mark.unit
class TestAdminService:
    """Test suite for AdminService."""

    @pytest.mark.asyncio
    async def test_non_admin_is_denied(
        self, service: AdminService, customer_session: Session
    ) -> None:
        """Test that every operation checks the admin role."""
        assert await service.is_admin(customer_session) is False

        with pytest.raises(AdminAccessDenied, match="You don't have admin privileges"):
            await service.list_orders(customer_session)
        with pytest.raises(AdminAccessDenied):
            await service.add_menu_item(customer_session, "Poha", Decimal("25"), "cat_1")

    @pytest.mark.asyncio
    async def test_list_orders_joins_customer_and_item_names(
        self, service: AdminService, admin_session: Session
    ) -> None:
        """Test that orders come newest first with joined details."""
        orders = await service.list_orders(admin_session)

        assert [o.id for o in orders] == ["order_2", "order_1"]
        assert orders[0].customer_name == "Vikram Shah"
        assert orders[1].customer_email == "asha@example.edu"
        assert orders[1].items[0].name == "Masala Dosa"

        found = await service.list_orders(admin_session, search="asha")
        assert [o.id for o in found] == ["order_1"]

    @pytest.mark.asyncio
    async def test_cached_orders_refresh_on_change(
        self, service: AdminService, store: InMemoryDataStore, admin_session: Session
    ) -> None:
        """Test that a watched listing picks up new orders."""
        service.watch_orders(store)
        assert len(await service.list_orders(admin_session)) == 2

        await store.insert(
            "orders", order_row("order_3", "user_1", "2024-01-15T21:00:00+00:00", "40", "cod")
        )

        orders = await service.list_orders(admin_session)
        assert [o.id for o in orders][0] == "order_3"
        service.stop_watching()

    @pytest.mark.asyncio
    async def test_change_during_load_is_not_cached_away(
        self, service: AdminService, store: InMemoryDataStore, admin_session: Session
    ) -> None:
        """Test that an order arriving mid-load shows up on the next listing."""
        service.watch_orders(store)
        list_profiles = service.profile_repository.list_profiles

        async def list_profiles_then_order_arrives() -> list:
            profiles = await list_profiles()
            await store.insert(
                "orders", order_row("order_3", "user_1", "2024-01-15T21:00:00+00:00", "40", "cod")
            )
            return profiles

        service.profile_repository.list_profiles = list_profiles_then_order_arrives  # type: ignore[method-assign]
        first = await service.list_orders(admin_session)
        assert "order_3" not in [o.id for o in first]

        service.profile_repository.list_profiles = list_profiles  # type: ignore[method-assign]
        second = await service.list_orders(admin_session)
        assert "order_3" in [o.id for o in second]
        service.stop_watching()

    @pytest.mark.asyncio
    async def test_backend_failures_are_write_errors(
        self, service: AdminService, store: InMemoryDataStore, admin_session: Session
    ) -> None:
        """Test that a failing backend is reported as a write error, not a missing row."""
        store.update = AsyncMock(side_effect=DataStoreError("backend down"))  # type: ignore[method-assign]
        store.delete = AsyncMock(side_effect=DataStoreError("backend down"))  # type: ignore[method-assign]

        with pytest.raises(BackendWriteError):
            await service.update_order_status(admin_session, "order_1", OrderStatus.READY)
        with pytest.raises(BackendWriteError):
            await service.toggle_availability(admin_session, "item_1")
        with pytest.raises(BackendWriteError):
            await service.delete_menu_item(admin_session, "item_1")
        with pytest.raises(BackendWriteError):
            await service.delete_pricing_rule(admin_session, "rule_1")

    @pytest.mark.asyncio
    async def test_update_order_status(
        self, service: AdminService, admin_session: Session
    ) -> None:
        """Test moving an order along and failing on unknown orders."""
        await service.update_order_status(admin_session, "order_2", OrderStatus.CONFIRMED)

        orders = await service.list_orders(admin_session, status="confirmed")
        assert [o.id for o in orders] == ["order_2"]

        with pytest.raises(NotFoundError):
            await service.update_order_status(admin_session, "order_9", OrderStatus.READY)

    @pytest.mark.asyncio
    async def test_dashboard_stats(self, service: AdminService, admin_session: Session) -> None:
        """Test statistics over stored orders."""
        stats = await service.get_dashboard_stats(admin_session, today=date(2024, 1, 15))

        assert stats.total_orders == 2
        assert stats.today_revenue == Decimal("80")

        # order_1 was placed at 00:30 on the 15th in IST
        ist = timezone(timedelta(hours=5, minutes=30))
        local = await service.get_dashboard_stats(admin_session, today=date(2024, 1, 15), tz=ist)
        assert local.today_orders == 2
        assert local.today_revenue == Decimal("240")

    @pytest.mark.asyncio
    async def test_menu_item_management(
        self, service: AdminService, admin_session: Session
    ) -> None:
        """Test adding, toggling and deleting menu items."""
        item = await service.add_menu_item(
            admin_session, "Poha", Decimal("25"), "cat_1", description="", image_url=None
        )
        assert item.description is None
        assert item.is_available is True

        toggled = await service.toggle_availability(admin_session, item.id)
        assert toggled.is_available is False

        names = [i.name for i in await service.list_menu_items(admin_session)]
        assert names == ["Masala Dosa", "Poha"]

        await service.delete_menu_item(admin_session, item.id)
        with pytest.raises(NotFoundError):
            await service.delete_menu_item(admin_session, item.id)
        with pytest.raises(NotFoundError):
            await service.toggle_availability(admin_session, item.id)

    @pytest.mark.asyncio
    async def test_add_menu_item_validation(
        self, service: AdminService, admin_session: Session
    ) -> None:
        """Test required fields and non-negative prices."""
        with pytest.raises(ValueError, match="Please fill in all required fields"):
            await service.add_menu_item(admin_session, "", Decimal("25"), "cat_1")
        with pytest.raises(ValueError):
            await service.add_menu_item(admin_session, "Poha", Decimal("-1"), "cat_1")

    @pytest.mark.asyncio
    async def test_pricing_rule_management(
        self, service: AdminService, admin_session: Session
    ) -> None:
        """Test adding and deleting pricing rules."""
        rule = await service.add_pricing_rule(
            admin_session, "item_1", TimeWindow.MORNING, fixed_price=Decimal("60")
        )
        assert rule.fixed_price == Decimal("60")
        assert [r.id for r in await service.list_pricing_rules(admin_session)] == [rule.id]

        await service.delete_pricing_rule(admin_session, rule.id)
        assert await service.list_pricing_rules(admin_session) == []

        with pytest.raises(NotFoundError):
            await service.delete_pricing_rule(admin_session, rule.id)
        with pytest.raises(ValueError):
            await service.add_pricing_rule(admin_session, "", TimeWindow.NIGHT)

    @pytest.mark.asyncio
    async def test_categories(self, service: AdminService, admin_session: Session) -> None:
        """Test that admins see inactive categories too."""
        categories = await service.list_categories(admin_session)
        assert [c.id for c in categories] == ["cat_1", "cat_2", "cat_3"]

    @pytest.mark.asyncio
    async def test_send_message(
        self,
        service: AdminService,
        store: InMemoryDataStore,
        admin_session: Session,
        customer_session: Session,
    ) -> None:
        """Test messaging a customer and reading it back from their inbox."""
        sent = await service.send_message(admin_session, "order_1", "user_1", "  On its way  ")

        assert sent.message == "On its way"
        assert sent.sent_by == "admin_1"
        assert [m.id for m in await service.list_messages(admin_session)] == [sent.id]

        profile_service = ProfileService(
            order_repository=OrderRepository(store),
            profile_repository=ProfileRepository(store),
            message_repository=MessageRepository(store),
        )
        inbox = await profile_service.get_messages(customer_session)
        assert [m.id for m in inbox] == [sent.id]

        with pytest.raises(ValueError, match="Please fill all fields"):
            await service.send_message(admin_session, "order_1", "user_1", "   ")


@pytest.mark.unit
class TestProfileService:
    """Test suite for ProfileService."""

    @pytest.fixture
    def profile_service(self, store: InMemoryDataStore) -> ProfileService:
        return ProfileService(
            order_repository=OrderRepository(store),
            profile_repository=ProfileRepository(store),
            message_repository=MessageRepository(store),
        )

    @pytest.mark.asyncio
    async def test_profile_and_history(
        self, profile_service: ProfileService, customer_session: Session
    ) -> None:
        """Test that customers see their own profile and orders."""
        profile = await profile_service.get_profile(customer_session)
        orders = await profile_service.get_order_history(customer_session)

        assert profile.full_name == "Asha Rao"
        assert [o.id for o in orders] == ["order_1"]
        assert orders[0].payment_method == PaymentMethod.COD

    @pytest.mark.asyncio
    async def test_missing_profile_falls_back_to_session(
        self, profile_service: ProfileService
    ) -> None:
        """Test that a user without a profile row still gets one."""
        session = Session(user_id="user_9", email="new@example.edu", access_token="t")

        profile = await profile_service.get_profile(session)

        assert profile.id == "user_9"
        assert profile.email == "new@example.edu"
        assert await profile_service.get_order_history(session) == []
