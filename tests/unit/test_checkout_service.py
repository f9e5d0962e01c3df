"""Unit tests for CheckoutService."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from campus_storefront.models.cart_models import Cart, CartLine
from campus_storefront.models.order_models import (
    CheckoutDetails,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Profile,
    Session,
)
from campus_storefront.repositories.data_store import DataStoreError
from campus_storefront.repositories.in_memory_store import InMemoryDataStore
from campus_storefront.repositories.storefront_repositories import (
    OrderRepository,
    ProfileRepository,
)
from campus_storefront.services.cart_service import CartService
from campus_storefront.services.checkout_service import CheckoutService, build_upi_payment_url
from campus_storefront.services.errors import EmptyCartError, OrderPlacementError
from campus_storefront.services.menu_service import MenuService


@pytest.mark.unit
class TestBuildUpiPaymentUrl:
    """Test suite for UPI deep links."""

    def test_payment_url(self) -> None:
        """Test that the link carries payee, currency and a two-decimal amount."""
        url = build_upi_payment_url("canteen@upi", "Campus Canteen", Decimal("240"))
        assert url == "upi://pay?pa=canteen@upi&pn=Campus%20Canteen&cu=INR&am=240.00"


@pytest.mark.unit
class TestCheckoutService:
    """Test suite for CheckoutService."""

    @pytest.fixture
    def cart_service(self) -> CartService:
        return CartService(menu_service=MagicMock(spec=MenuService))

    @pytest.fixture
    def order_repository(self) -> MagicMock:
        repository = MagicMock(spec=OrderRepository)
        repository.save_order = AsyncMock(return_value=True)
        repository.save_order_items = AsyncMock(return_value=True)
        repository.delete_order = AsyncMock(return_value=True)
        return repository

    @pytest.fixture
    def profile_repository(self) -> MagicMock:
        repository = MagicMock(spec=ProfileRepository)
        repository.get_profile = AsyncMock(return_value=None)
        return repository

    @pytest.fixture
    def service(
        self,
        cart_service: CartService,
        order_repository: MagicMock,
        profile_repository: MagicMock,
    ) -> CheckoutService:
        return CheckoutService(
            cart_service=cart_service,
            order_repository=order_repository,
            profile_repository=profile_repository,
            upi_payee_id="canteen@upi",
            upi_payee_name="Campus Canteen",
        )

    @pytest.fixture
    def details(self) -> CheckoutDetails:
        return CheckoutDetails(phone="9876543210", hostel_name="Ganga", room_number="214")

    @pytest.fixture
    def filled_cart(self, cart_service: CartService, customer_session: Session) -> None:
        cart_service._carts[customer_session.user_id] = Cart(
            user_id=customer_session.user_id,
            lines=[
                CartLine(menu_item_id="item_1", name="Masala Dosa", unit_price=Decimal("120"),
                         quantity=2),
                CartLine(menu_item_id="item_2", name="Cold Coffee", unit_price=Decimal("35")),
            ],
        )

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("filled_cart")
    async def test_place_order_success(
        self,
        service: CheckoutService,
        cart_service: CartService,
        order_repository: MagicMock,
        customer_session: Session,
        details: CheckoutDetails,
    ) -> None:
        """Test placing a cash-on-delivery order."""
        result = await service.place_order(customer_session, details)

        order = result.order
        assert order.user_id == "user_1"
        assert order.total_amount == Decimal("275")
        assert order.status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.PENDING
        assert [(i.menu_item_id, i.quantity, i.price_at_order) for i in order.items] == [
            ("item_1", 2, Decimal("120")),
            ("item_2", 1, Decimal("35")),
        ]
        assert all(item.order_id == order.id for item in order.items)
        assert result.payment_url is None
        order_repository.save_order.assert_awaited_once_with(order)
        order_repository.save_order_items.assert_awaited_once_with(order.items)
        assert cart_service.get_cart(customer_session).lines == []

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("filled_cart")
    async def test_place_upi_order_returns_payment_link(
        self, service: CheckoutService, customer_session: Session
    ) -> None:
        """Test that UPI orders come back with a payment link for the total."""
        details = CheckoutDetails(
            phone="9876543210",
            hostel_name="Ganga",
            room_number="214",
            payment_method=PaymentMethod.UPI,
        )

        result = await service.place_order(customer_session, details)

        assert result.payment_url is not None
        assert result.payment_url.startswith("upi://pay?pa=canteen@upi")
        assert "am=275.00" in result.payment_url

    @pytest.mark.asyncio
    async def test_empty_cart(
        self,
        service: CheckoutService,
        order_repository: MagicMock,
        customer_session: Session,
        details: CheckoutDetails,
    ) -> None:
        """Test that an empty cart cannot be checked out."""
        with pytest.raises(EmptyCartError):
            await service.place_order(customer_session, details)

        order_repository.save_order.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("filled_cart")
    async def test_order_insert_failure_keeps_cart(
        self,
        service: CheckoutService,
        cart_service: CartService,
        order_repository: MagicMock,
        customer_session: Session,
        details: CheckoutDetails,
    ) -> None:
        """Test that a rejected order leaves the cart for a retry."""
        order_repository.save_order = AsyncMock(return_value=False)

        with pytest.raises(OrderPlacementError, match="Failed to place order"):
            await service.place_order(customer_session, details)

        order_repository.save_order_items.assert_not_awaited()
        assert len(cart_service.get_cart(customer_session).lines) == 2

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("filled_cart")
    async def test_order_items_failure(
        self,
        service: CheckoutService,
        order_repository: MagicMock,
        customer_session: Session,
        details: CheckoutDetails,
    ) -> None:
        """Test that rejected order lines fail the checkout and remove the order."""
        order_repository.save_order_items = AsyncMock(return_value=False)

        with pytest.raises(OrderPlacementError, match="Failed to save order items"):
            await service.place_order(customer_session, details)

        saved = order_repository.save_order.call_args.args[0]
        order_repository.delete_order.assert_awaited_once_with(saved.id)

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("filled_cart")
    async def test_order_items_failure_leaves_no_order(
        self,
        cart_service: CartService,
        profile_repository: MagicMock,
        customer_session: Session,
        details: CheckoutDetails,
    ) -> None:
        """Test that no partial order stays in the backend when its lines are rejected."""

        class LinesRejectingStore(InMemoryDataStore):
            async def insert(self, table: str, rows: dict | list[dict]) -> list[dict]:
                if table == "order_items":
                    raise DataStoreError("order_items insert rejected")
                return await super().insert(table, rows)

        store = LinesRejectingStore()
        service = CheckoutService(
            cart_service=cart_service,
            order_repository=OrderRepository(store),
            profile_repository=profile_repository,
        )

        with pytest.raises(OrderPlacementError):
            await service.place_order(customer_session, details)

        assert await store.list("orders") == []
        assert len(cart_service.get_cart(customer_session).lines) == 2

    @pytest.mark.asyncio
    async def test_default_phone(
        self,
        service: CheckoutService,
        profile_repository: MagicMock,
        customer_session: Session,
    ) -> None:
        """Test pre-filling the phone number from the profile."""
        assert await service.get_default_phone(customer_session) == ""

        profile_repository.get_profile = AsyncMock(
            return_value=Profile(id="user_1", phone="9876543210")
        )
        assert await service.get_default_phone(customer_session) == "9876543210"
