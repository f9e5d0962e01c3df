"""Main application entry point for the campus storefront.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
"""

import logging
import os
from collections.abc import Callable
from datetime import UTC, datetime, tzinfo
from zoneinfo import ZoneInfo

from fastapi import FastAPI

from campus_storefront.auth.session_validator import SessionValidator
from campus_storefront.handlers.api_handler import create_app
from campus_storefront.handlers.event_handler import ChangeEventHandler
from campus_storefront.observability import configure_logging, setup_observability
from campus_storefront.repositories.data_store import DataStore
from campus_storefront.repositories.in_memory_store import InMemoryDataStore
from campus_storefront.repositories.rest_store import RestDataStore
from campus_storefront.repositories.storefront_repositories import (
    CategoryRepository,
    MenuItemRepository,
    MessageRepository,
    OrderRepository,
    PricingRuleRepository,
    ProfileRepository,
    UserRoleRepository,
)
from campus_storefront.services.admin_service import AdminService
from campus_storefront.services.cart_service import CartService
from campus_storefront.services.checkout_service import CheckoutService
from campus_storefront.services.menu_service import MenuService
from campus_storefront.services.profile_service import ProfileService

logger = logging.getLogger(__name__)


def create_data_store() -> DataStore:
    """Create the data store for the configured backend.

    Returns:
        RestDataStore when the hosted backend is configured, otherwise an
        empty InMemoryDataStore for local development
    """
    backend_url = os.getenv("STOREFRONT_BACKEND_URL")
    anon_key = os.getenv("STOREFRONT_BACKEND_ANON_KEY")

    if backend_url and anon_key:
        timeout = float(os.getenv("STOREFRONT_BACKEND_TIMEOUT_SECONDS", "10"))
        logger.info(f"Using hosted backend at {backend_url}")
        return RestDataStore(base_url=backend_url, api_key=anon_key, timeout_seconds=timeout)

    logger.warning("Hosted backend not configured, using in-memory data store")
    return InMemoryDataStore()


def get_timezone(name: str) -> tzinfo:
    """Return the tzinfo for a timezone name ("UTC" needs no tz database)."""
    if name.upper() == "UTC":
        return UTC
    return ZoneInfo(name)


def create_clock(timezone_name: str) -> Callable[[], datetime]:
    """Create the wall clock that decides the pricing time window.

    Args:
        timezone_name: IANA timezone name of the campus

    Returns:
        Callable returning the current time in that timezone
    """
    zone = get_timezone(timezone_name)

    def clock() -> datetime:
        return datetime.now(zone)

    return clock


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    This factory function:
    1. Configures logging
    2. Creates the data store
    3. Initializes repositories
    4. Creates services
    5. Creates FastAPI app with storefront and admin endpoints
    6. Sets up observability

    Returns:
        Configured FastAPI application instance
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(log_level)

    logger.info("Initializing campus storefront...")

    data_store = create_data_store()

    menu_item_repository = MenuItemRepository(data_store=data_store)
    category_repository = CategoryRepository(data_store=data_store)
    pricing_rule_repository = PricingRuleRepository(data_store=data_store)
    order_repository = OrderRepository(data_store=data_store)
    message_repository = MessageRepository(data_store=data_store)
    profile_repository = ProfileRepository(data_store=data_store)
    user_role_repository = UserRoleRepository(data_store=data_store)

    logger.info("Repositories configured")

    menu_service = MenuService(
        menu_item_repository=menu_item_repository,
        category_repository=category_repository,
        pricing_rule_repository=pricing_rule_repository,
    )
    cart_service = CartService(menu_service=menu_service)
    checkout_service = CheckoutService(
        cart_service=cart_service,
        order_repository=order_repository,
        profile_repository=profile_repository,
        upi_payee_id=os.getenv("UPI_PAYEE_ID", ""),
        upi_payee_name=os.getenv("UPI_PAYEE_NAME", ""),
    )
    profile_service = ProfileService(
        order_repository=order_repository,
        profile_repository=profile_repository,
        message_repository=message_repository,
    )
    admin_service = AdminService(
        user_role_repository=user_role_repository,
        order_repository=order_repository,
        menu_item_repository=menu_item_repository,
        category_repository=category_repository,
        pricing_rule_repository=pricing_rule_repository,
        message_repository=message_repository,
        profile_repository=profile_repository,
    )
    admin_service.watch_orders(data_store)

    logger.info("Services initialized")

    timezone_name = os.getenv("STOREFRONT_TIMEZONE", "UTC")
    logger.info(f"Pricing clock uses timezone {timezone_name}")

    webhook_secrets_str = os.getenv("STOREFRONT_WEBHOOK_SECRET", "")
    webhook_secrets = [s.strip() for s in webhook_secrets_str.split(",") if s.strip()]

    if not webhook_secrets:
        logger.warning("No STOREFRONT_WEBHOOK_SECRET configured - realtime webhook is disabled")

    app = create_app(
        menu_service=menu_service,
        cart_service=cart_service,
        checkout_service=checkout_service,
        profile_service=profile_service,
        admin_service=admin_service,
        session_validator=SessionValidator(data_store=data_store),
        change_event_handler=ChangeEventHandler(data_store=data_store),
        clock=create_clock(timezone_name),
        webhook_secrets=webhook_secrets,
    )

    setup_observability(app)

    logger.info("Campus storefront initialized successfully")

    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    # Create a placeholder app for test imports
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
