"""Checkout service turning a cart into an order."""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from urllib.parse import quote, urlencode

from campus_storefront.models.order_models import (
    CheckoutDetails,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Session,
)
from campus_storefront.observability import traced
from campus_storefront.observability.metrics import record_checkout_failure, record_order_placed
from campus_storefront.repositories.storefront_repositories import (
    OrderRepository,
    ProfileRepository,
)
from campus_storefront.services.cart_service import CartService
from campus_storefront.services.errors import EmptyCartError, OrderPlacementError

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    """Result of a successful checkout.

    Attributes:
        order: The placed order, lines included
        payment_url: UPI deep link to complete payment, None for cash on delivery
    """

    order: Order
    payment_url: str | None = None


def build_upi_payment_url(payee_id: str, payee_name: str, amount: Decimal) -> str:
    """Build a ``upi://pay`` deep link for an amount in INR."""
    query = urlencode(
        {"pa": payee_id, "pn": payee_name, "cu": "INR", "am": f"{amount:.2f}"},
        quote_via=quote,
        safe="@",
    )
    return f"upi://pay?{query}"


class CheckoutService:
    """Service for placing orders.

    Writes the order row, then its lines, then clears the cart. If the lines
    are rejected the order row is deleted again. The cart is left intact if
    either write fails so the customer can retry.
    """

    def __init__(
        self,
        cart_service: CartService,
        order_repository: OrderRepository,
        profile_repository: ProfileRepository,
        upi_payee_id: str = "",
        upi_payee_name: str = "",
    ) -> None:
        """Initialize the CheckoutService.

        Args:
            cart_service: Service holding customer carts
            order_repository: Repository for orders and lines
            profile_repository: Repository for customer profiles
            upi_payee_id: UPI virtual payment address receiving payments
            upi_payee_name: Payee name shown in the UPI app
        """
        self.cart_service = cart_service
        self.order_repository = order_repository
        self.profile_repository = profile_repository
        self.upi_payee_id = upi_payee_id
        self.upi_payee_name = upi_payee_name

    async def get_default_phone(self, session: Session) -> str:
        """Phone number to pre-fill the checkout form with (empty if unknown)."""
        profile = await self.profile_repository.get_profile(session.user_id)
        if profile is None:
            return ""
        return profile.phone or ""

    @traced("checkout.place_order")
    async def place_order(self, session: Session, details: CheckoutDetails) -> CheckoutResult:
        """Place an order for everything in the caller's cart.

        Args:
            session: Caller's session
            details: Validated delivery and payment details

        Returns:
            CheckoutResult with the order and, for UPI, the payment link

        Raises:
            EmptyCartError: If the cart is empty
            OrderPlacementError: If the backend rejects the order or its lines
        """
        cart = self.cart_service.get_cart(session)
        if not cart.lines:
            record_checkout_failure("empty_cart")
            raise EmptyCartError("Cannot place an order with an empty cart")

        order_id = str(uuid.uuid4())
        order = Order(
            id=order_id,
            user_id=session.user_id,
            created_at=datetime.now(UTC),
            total_amount=cart.total,
            status=OrderStatus.PENDING,
            payment_method=details.payment_method,
            payment_status=PaymentStatus.PENDING,
            phone=details.phone,
            hostel_name=details.hostel_name,
            room_number=details.room_number,
            special_instructions=details.instructions,
            items=[
                OrderItem(
                    order_id=order_id,
                    menu_item_id=line.menu_item_id,
                    quantity=line.quantity,
                    price_at_order=line.unit_price,
                    name=line.name,
                )
                for line in cart.lines
            ],
        )

        if not await self.order_repository.save_order(order):
            record_checkout_failure("order_insert")
            raise OrderPlacementError("Failed to place order")

        if not await self.order_repository.save_order_items(order.items):
            record_checkout_failure("order_items_insert")
            if not await self.order_repository.delete_order(order_id):
                logger.error(f"Order {order_id} left without its items")  # pragma: no cover
            raise OrderPlacementError("Failed to save order items")

        self.cart_service.clear(session)
        record_order_placed(order.payment_method.value, order.total_amount)
        logger.info(
            f"Order {order_id} placed by {session.user_id} for {order.total_amount} "
            f"({order.payment_method.value})"
        )

        payment_url = None
        if details.payment_method == PaymentMethod.UPI:
            payment_url = build_upi_payment_url(
                self.upi_payee_id, self.upi_payee_name, order.total_amount
            )

        return CheckoutResult(order=order, payment_url=payment_url)
