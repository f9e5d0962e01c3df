"""FastAPI application for the storefront and admin API endpoints."""

import logging
from collections.abc import Callable
from dataclasses import asdict
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from campus_storefront.auth.api_dependencies import get_session_from_header
from campus_storefront.auth.session_validator import SessionValidator
from campus_storefront.auth.webhook_secret_validator import WebhookSecretValidator
from campus_storefront.handlers.event_handler import ChangeEventHandler
from campus_storefront.models.cart_models import Cart
from campus_storefront.models.menu_models import Category, MenuItem, PricingRule, TimeWindow
from campus_storefront.models.order_models import (
    CheckoutDetails,
    Message,
    Order,
    OrderStatus,
    Profile,
    Session,
)
from campus_storefront.pricing.pricing_resolver import PricedMenuItem
from campus_storefront.repositories.data_store import DataStoreError
from campus_storefront.services.admin_service import ALL_STATUSES, AdminService
from campus_storefront.services.cart_service import CartService
from campus_storefront.services.checkout_service import CheckoutService
from campus_storefront.services.errors import (
    AdminAccessDenied,
    BackendWriteError,
    EmptyCartError,
    ItemUnavailableError,
    NotFoundError,
    StorefrontError,
)
from campus_storefront.services.menu_service import ALL_CATEGORIES, MenuService, MenuSort
from campus_storefront.services.profile_service import ProfileService

logger = logging.getLogger(__name__)

# Checked in order, so subclasses come before their bases
ERROR_STATUS_CODES: list[tuple[type[StorefrontError], int]] = [
    (AdminAccessDenied, 403),
    (NotFoundError, 404),
    (ItemUnavailableError, 404),
    (EmptyCartError, 400),
    (BackendWriteError, 502),
]


def status_code_for(error: StorefrontError) -> int:
    """Return the HTTP status for a domain error (500 when unmapped)."""
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class PricedItemResponse(BaseModel):
    """A menu item as shown to customers, with its effective price."""

    id: str
    name: str
    description: str | None = None
    category_id: str
    image_url: str | None = None
    base_price: Decimal
    effective_price: Decimal
    time_window: TimeWindow
    has_discount: bool
    savings: Decimal
    is_popular: bool = False

    @classmethod
    def from_priced(cls, priced: PricedMenuItem, popular_ids: set[str]) -> "PricedItemResponse":
        item = priced.item
        return cls(
            id=item.id,
            name=item.name,
            description=item.description,
            category_id=item.category_id,
            image_url=item.image_url,
            base_price=priced.base_price,
            effective_price=priced.effective_price,
            time_window=priced.time_window,
            has_discount=priced.has_discount,
            savings=priced.savings,
            is_popular=item.id in popular_ids,
        )


class CategoryCountResponse(BaseModel):
    """An active category with its number of available items."""

    id: str
    name: str
    description: str | None = None
    display_order: int
    item_count: int


class MenuResponse(BaseModel):
    """Response model for the menu listing."""

    time_window: TimeWindow
    categories: list[CategoryCountResponse]
    items: list[PricedItemResponse]
    total_item_count: int


class CartItemRequest(BaseModel):
    """Request model for adding an item to the cart."""

    menu_item_id: str
    quantity: int = Field(default=1, gt=0)


class QuantityUpdateRequest(BaseModel):
    """Request model for changing a cart line; zero or less removes it."""

    quantity: int


class CheckoutDefaultsResponse(BaseModel):
    """Values used to pre-fill the checkout form."""

    phone: str


class CheckoutResponse(BaseModel):
    """Response model for a placed order."""

    order: Order
    payment_url: str | None = None


class OrderStatusUpdateRequest(BaseModel):
    """Request model for moving an order to a new status."""

    status: OrderStatus


class OrderStatusResponse(BaseModel):
    """Response model for an order status update."""

    order_id: str
    status: OrderStatus


class MenuItemCreateRequest(BaseModel):
    """Request model for adding a menu item."""

    name: str
    base_price: Decimal
    category_id: str
    description: str | None = None
    image_url: str | None = None


class PricingRuleCreateRequest(BaseModel):
    """Request model for adding a pricing rule."""

    menu_item_id: str
    time_of_day: TimeWindow
    price_multiplier: Decimal = Decimal("1")
    fixed_price: Decimal | None = None


class MessageCreateRequest(BaseModel):
    """Request model for messaging a customer about an order."""

    order_id: str
    user_id: str
    message: str


class DashboardStatsResponse(BaseModel):
    """Response model for dashboard statistics."""

    total_orders: int
    today_orders: int
    total_revenue: Decimal
    today_revenue: Decimal
    orders_by_status: dict[str, int]
    orders_by_payment_method: dict[str, int]
    revenue_by_payment_method: dict[str, Decimal]


class ChangeDeliveryResponse(BaseModel):
    """Response model for a delivered realtime change."""

    statusCode: int
    body: str


def create_app(
    menu_service: MenuService,
    cart_service: CartService,
    checkout_service: CheckoutService,
    profile_service: ProfileService,
    admin_service: AdminService,
    session_validator: SessionValidator,
    change_event_handler: ChangeEventHandler,
    clock: Callable[[], datetime],
    webhook_secrets: list[str] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        menu_service: Service for browsing the menu
        cart_service: Service holding customer carts
        checkout_service: Service for placing orders
        profile_service: Service for the customer's own data
        admin_service: Service behind the admin dashboard
        session_validator: Resolves bearer tokens to sessions
        change_event_handler: Dispatches realtime changes to subscribers
        clock: Returns the current wall-clock time used for pricing
        webhook_secrets: Accepted X-Webhook-Secret values; the webhook is
            disabled when empty

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Campus Storefront API",
        description="Campus food ordering with time-of-day pricing",
        version="1.0.0",
    )

    app.state.menu_service = menu_service
    app.state.cart_service = cart_service
    app.state.checkout_service = checkout_service
    app.state.profile_service = profile_service
    app.state.admin_service = admin_service
    app.state.session_validator = session_validator
    app.state.change_event_handler = change_event_handler
    app.state.clock = clock
    app.state.webhook_validator = (
        WebhookSecretValidator(secrets=webhook_secrets) if webhook_secrets else None
    )

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(_request: Request, exc: StorefrontError) -> JSONResponse:
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error(f"Request failed: {exc}")
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(_request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(DataStoreError)
    async def data_store_error_handler(_request: Request, exc: DataStoreError) -> JSONResponse:
        logger.error(f"Backend unavailable: {exc}")
        return JSONResponse(status_code=503, content={"detail": "Backend unavailable"})

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint.

        Returns:
            Health status indicating service is running
        """
        return HealthResponse(status="healthy")

    async def current_session(authorization: str | None = Header(None)) -> Session:
        """Dependency resolving the caller's session."""
        return await get_session_from_header(
            authorization=authorization, validator=app.state.session_validator
        )

    # Menu

    @app.get("/menu", response_model=MenuResponse, tags=["Menu"])
    async def get_menu(
        category: str = ALL_CATEGORIES,
        search: str | None = None,
        sort: MenuSort = MenuSort.POPULAR,
    ) -> MenuResponse:
        """List available items priced for the current time of day.

        Args:
            category: Category id to show, or "all"
            search: Case-insensitive term matched against name and description
            sort: popular, price-low, price-high or name

        Returns:
            The current time window, categories and priced items
        """
        view = await app.state.menu_service.get_menu(
            app.state.clock(), category_id=category, search=search, sort_by=sort
        )
        popular_ids = set(view.popular_item_ids)
        return MenuResponse(
            time_window=view.time_window,
            categories=[
                CategoryCountResponse(
                    id=summary.category.id,
                    name=summary.category.name,
                    description=summary.category.description,
                    display_order=summary.category.display_order,
                    item_count=summary.item_count,
                )
                for summary in view.categories
            ],
            items=[PricedItemResponse.from_priced(priced, popular_ids) for priced in view.items],
            total_item_count=view.total_item_count,
        )

    @app.get("/menu/categories", response_model=list[Category], tags=["Menu"])
    async def get_categories() -> list[Category]:
        """List active categories in display order."""
        categories: list[Category] = await app.state.menu_service.fetch_categories()
        return categories

    # Cart

    @app.get("/cart", response_model=Cart, tags=["Cart"])
    async def get_cart(session: Session = Depends(current_session)) -> Cart:
        """Return the caller's cart."""
        cart: Cart = app.state.cart_service.get_cart(session)
        return cart

    @app.post("/cart/items", response_model=Cart, tags=["Cart"])
    async def add_cart_item(
        request: CartItemRequest,
        session: Session = Depends(current_session),
    ) -> Cart:
        """Add an item at its current effective price.

        Returns:
            The updated cart
        """
        cart: Cart = await app.state.cart_service.add_item(
            session, request.menu_item_id, app.state.clock(), quantity=request.quantity
        )
        return cart

    @app.patch("/cart/items/{menu_item_id}", response_model=Cart, tags=["Cart"])
    async def update_cart_item(
        menu_item_id: str,
        request: QuantityUpdateRequest,
        session: Session = Depends(current_session),
    ) -> Cart:
        """Set the quantity of a cart line."""
        cart: Cart = app.state.cart_service.update_quantity(session, menu_item_id, request.quantity)
        return cart

    @app.delete("/cart/items/{menu_item_id}", response_model=Cart, tags=["Cart"])
    async def remove_cart_item(
        menu_item_id: str,
        session: Session = Depends(current_session),
    ) -> Cart:
        """Remove an item from the cart."""
        cart: Cart = app.state.cart_service.remove_item(session, menu_item_id)
        return cart

    @app.delete("/cart", status_code=204, tags=["Cart"])
    async def clear_cart(session: Session = Depends(current_session)) -> None:
        """Empty the caller's cart."""
        app.state.cart_service.clear(session)

    # Checkout

    @app.get("/checkout/defaults", response_model=CheckoutDefaultsResponse, tags=["Checkout"])
    async def get_checkout_defaults(
        session: Session = Depends(current_session),
    ) -> CheckoutDefaultsResponse:
        """Return values used to pre-fill the checkout form."""
        phone = await app.state.checkout_service.get_default_phone(session)
        return CheckoutDefaultsResponse(phone=phone)

    @app.post("/checkout", response_model=CheckoutResponse, status_code=201, tags=["Checkout"])
    async def place_order(
        details: CheckoutDetails,
        session: Session = Depends(current_session),
    ) -> CheckoutResponse:
        """Place an order from the caller's cart.

        Returns:
            The placed order and, for UPI, the payment link
        """
        result = await app.state.checkout_service.place_order(session, details)
        return CheckoutResponse(order=result.order, payment_url=result.payment_url)

    # Profile

    @app.get("/profile", response_model=Profile, tags=["Profile"])
    async def get_profile(session: Session = Depends(current_session)) -> Profile:
        """Return the caller's profile."""
        profile: Profile = await app.state.profile_service.get_profile(session)
        return profile

    @app.get("/profile/orders", response_model=list[Order], tags=["Profile"])
    async def get_order_history(session: Session = Depends(current_session)) -> list[Order]:
        """Return the caller's orders, newest first."""
        orders: list[Order] = await app.state.profile_service.get_order_history(session)
        return orders

    @app.get("/profile/messages", response_model=list[Message], tags=["Profile"])
    async def get_my_messages(session: Session = Depends(current_session)) -> list[Message]:
        """Return messages sent to the caller, newest first."""
        messages: list[Message] = await app.state.profile_service.get_messages(session)
        return messages

    # Admin: orders

    @app.get("/admin/orders", response_model=list[Order], tags=["Admin"])
    async def list_orders(
        status: str = ALL_STATUSES,
        search: str | None = None,
        session: Session = Depends(current_session),
    ) -> list[Order]:
        """List orders newest first.

        Args:
            status: Order status to show, or "all"
            search: Term matched against order id, customer name and email
        """
        orders: list[Order] = await app.state.admin_service.list_orders(
            session, status=status, search=search
        )
        return orders

    @app.patch(
        "/admin/orders/{order_id}/status",
        response_model=OrderStatusResponse,
        tags=["Admin"],
    )
    async def update_order_status(
        order_id: str,
        request: OrderStatusUpdateRequest,
        session: Session = Depends(current_session),
    ) -> OrderStatusResponse:
        """Move an order to a new status."""
        await app.state.admin_service.update_order_status(session, order_id, request.status)
        return OrderStatusResponse(order_id=order_id, status=request.status)

    @app.get("/admin/stats", response_model=DashboardStatsResponse, tags=["Admin"])
    async def get_dashboard_stats(
        session: Session = Depends(current_session),
    ) -> DashboardStatsResponse:
        """Aggregate order statistics for the dashboard."""
        now = app.state.clock()
        stats = await app.state.admin_service.get_dashboard_stats(
            session, today=now.date(), tz=now.tzinfo or UTC
        )
        return DashboardStatsResponse(**asdict(stats))

    # Admin: menu

    @app.get("/admin/menu-items", response_model=list[MenuItem], tags=["Admin"])
    async def list_menu_items(session: Session = Depends(current_session)) -> list[MenuItem]:
        """List every menu item, including unavailable ones."""
        items: list[MenuItem] = await app.state.admin_service.list_menu_items(session)
        return items

    @app.post("/admin/menu-items", response_model=MenuItem, status_code=201, tags=["Admin"])
    async def add_menu_item(
        request: MenuItemCreateRequest,
        session: Session = Depends(current_session),
    ) -> MenuItem:
        """Add a menu item."""
        item: MenuItem = await app.state.admin_service.add_menu_item(
            session,
            name=request.name,
            base_price=request.base_price,
            category_id=request.category_id,
            description=request.description,
            image_url=request.image_url,
        )
        return item

    @app.delete("/admin/menu-items/{item_id}", status_code=204, tags=["Admin"])
    async def delete_menu_item(item_id: str, session: Session = Depends(current_session)) -> None:
        """Delete a menu item."""
        await app.state.admin_service.delete_menu_item(session, item_id)

    @app.post(
        "/admin/menu-items/{item_id}/toggle-availability",
        response_model=MenuItem,
        tags=["Admin"],
    )
    async def toggle_availability(
        item_id: str, session: Session = Depends(current_session)
    ) -> MenuItem:
        """Flip whether a menu item is offered."""
        item: MenuItem = await app.state.admin_service.toggle_availability(session, item_id)
        return item

    @app.get("/admin/categories", response_model=list[Category], tags=["Admin"])
    async def list_categories(session: Session = Depends(current_session)) -> list[Category]:
        """List every category, active or not."""
        categories: list[Category] = await app.state.admin_service.list_categories(session)
        return categories

    # Admin: pricing rules

    @app.get("/admin/pricing-rules", response_model=list[PricingRule], tags=["Admin"])
    async def list_pricing_rules(
        session: Session = Depends(current_session),
    ) -> list[PricingRule]:
        """List every pricing rule."""
        rules: list[PricingRule] = await app.state.admin_service.list_pricing_rules(session)
        return rules

    @app.post(
        "/admin/pricing-rules",
        response_model=PricingRule,
        status_code=201,
        tags=["Admin"],
    )
    async def add_pricing_rule(
        request: PricingRuleCreateRequest,
        session: Session = Depends(current_session),
    ) -> PricingRule:
        """Add a time-of-day pricing rule."""
        rule: PricingRule = await app.state.admin_service.add_pricing_rule(
            session,
            menu_item_id=request.menu_item_id,
            time_of_day=request.time_of_day,
            price_multiplier=request.price_multiplier,
            fixed_price=request.fixed_price,
        )
        return rule

    @app.delete("/admin/pricing-rules/{rule_id}", status_code=204, tags=["Admin"])
    async def delete_pricing_rule(
        rule_id: str, session: Session = Depends(current_session)
    ) -> None:
        """Delete a pricing rule."""
        await app.state.admin_service.delete_pricing_rule(session, rule_id)

    # Admin: messages

    @app.get("/admin/messages", response_model=list[Message], tags=["Admin"])
    async def list_messages(session: Session = Depends(current_session)) -> list[Message]:
        """List sent messages, newest first."""
        messages: list[Message] = await app.state.admin_service.list_messages(session)
        return messages

    @app.post("/admin/messages", response_model=Message, status_code=201, tags=["Admin"])
    async def send_message(
        request: MessageCreateRequest,
        session: Session = Depends(current_session),
    ) -> Message:
        """Message the customer behind an order."""
        message: Message = await app.state.admin_service.send_message(
            session,
            order_id=request.order_id,
            user_id=request.user_id,
            message=request.message,
        )
        return message

    # Realtime

    @app.post("/realtime/changes", response_model=ChangeDeliveryResponse, tags=["Realtime"])
    async def receive_change(
        payload: dict[str, Any],
        x_webhook_secret: str | None = Header(None),
    ) -> JSONResponse:
        """Receive a row change from the hosted backend.

        Raises:
            HTTPException: 503 if the webhook is disabled, 401 on a bad secret
        """
        validator: WebhookSecretValidator | None = app.state.webhook_validator
        if validator is None:
            raise HTTPException(status_code=503, detail="Realtime webhook is not configured")
        if not validator.validate(x_webhook_secret):
            raise HTTPException(status_code=401, detail="Invalid webhook secret")

        result = await app.state.change_event_handler.handle_payload(payload)
        return JSONResponse(status_code=result["statusCode"], content=result)

    return app
