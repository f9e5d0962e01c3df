"""Cart service holding per-user carts in process memory."""

import logging
from datetime import datetime

from campus_storefront.models.cart_models import Cart, CartLine
from campus_storefront.models.order_models import Session
from campus_storefront.observability.metrics import record_cart_addition
from campus_storefront.services.errors import ItemUnavailableError, NotFoundError
from campus_storefront.services.menu_service import MenuService

logger = logging.getLogger(__name__)


class CartService:
    """Service for managing customer carts.

    Carts are keyed by the session's user id and only kept while they hold
    at least one line. An item's price is resolved once, when it is first
    added, and kept for the life of the cart line.
    """

    def __init__(self, menu_service: MenuService) -> None:
        """Initialize the CartService.

        Args:
            menu_service: Service used to price items as they are added
        """
        self.menu_service = menu_service
        self._carts: dict[str, Cart] = {}

    def get_cart(self, session: Session) -> Cart:
        """Return the caller's cart, or an empty one that is not stored."""
        cart = self._carts.get(session.user_id)
        if cart is None:
            return Cart(user_id=session.user_id)
        return cart

    def _forget_if_empty(self, cart: Cart) -> None:
        if not cart.lines:
            self._carts.pop(cart.user_id, None)

    async def add_item(
        self, session: Session, menu_item_id: str, instant: datetime, quantity: int = 1
    ) -> Cart:
        """Add an item at its effective price for the instant.

        Adding an item already in the cart increases its quantity and keeps
        the price captured the first time.

        Args:
            session: Caller's session
            menu_item_id: Item to add
            instant: Reference instant for time-of-day pricing
            quantity: Units to add

        Returns:
            The updated cart

        Raises:
            ItemUnavailableError: If the item is unknown or not offered
            ValueError: If quantity is not positive
        """
        if quantity <= 0:
            raise ValueError("quantity must be positive")

        existing = self.get_cart(session).find_line(menu_item_id)
        if existing is not None:
            existing.quantity += quantity
            return self._carts[session.user_id]

        priced = await self.menu_service.price_item(menu_item_id, instant)
        if priced is None:
            raise ItemUnavailableError(menu_item_id)

        # Another add of the same item may have finished while pricing
        cart = self._carts.setdefault(session.user_id, Cart(user_id=session.user_id))
        existing = cart.find_line(menu_item_id)
        if existing is not None:
            existing.quantity += quantity
            return cart

        cart.lines.append(
            CartLine(
                menu_item_id=menu_item_id,
                name=priced.item.name,
                unit_price=priced.effective_price,
                quantity=quantity,
                image_url=priced.item.image_url,
            )
        )
        record_cart_addition(priced.time_window.value, priced.has_discount)
        logger.info(
            f"Added {menu_item_id} to cart of {session.user_id} at {priced.effective_price}"
        )
        return cart

    def update_quantity(self, session: Session, menu_item_id: str, quantity: int) -> Cart:
        """Set the quantity of a cart line; zero or less removes it.

        Raises:
            NotFoundError: If the item is not in the cart
        """
        cart = self.get_cart(session)
        line = cart.find_line(menu_item_id)
        if line is None:
            raise NotFoundError(f"Menu item {menu_item_id} is not in the cart")

        if quantity <= 0:
            cart.lines.remove(line)
            self._forget_if_empty(cart)
        else:
            line.quantity = quantity
        return cart

    def remove_item(self, session: Session, menu_item_id: str) -> Cart:
        """Remove an item from the cart; removing an absent item is a no-op."""
        cart = self.get_cart(session)
        cart.lines = [line for line in cart.lines if line.menu_item_id != menu_item_id]
        self._forget_if_empty(cart)
        return cart

    def clear(self, session: Session) -> None:
        """Empty the caller's cart."""
        self._carts.pop(session.user_id, None)
