"""Shared pytest fixtures and configuration for all tests."""

import os
from datetime import UTC, datetime
from decimal import Decimal

import pytest

# Importing main must not build the real application during collection
os.environ.setdefault("ENVIRONMENT", "test")

from campus_storefront.models.menu_models import MenuItem, PricingRule, TimeWindow  # noqa: E402
from campus_storefront.models.order_models import Session  # noqa: E402


@pytest.fixture
def customer_session() -> Session:
    """Fixture providing an authenticated customer."""
    return Session(user_id="user_1", email="asha@example.edu", access_token="customer-token")


@pytest.fixture
def admin_session() -> Session:
    """Fixture providing an authenticated administrator."""
    return Session(user_id="admin_1", email="admin@example.edu", access_token="admin-token")


@pytest.fixture
def evening() -> datetime:
    """Fixture providing an instant in the evening window."""
    return datetime(2024, 1, 15, 19, 30, tzinfo=UTC)


@pytest.fixture
def afternoon() -> datetime:
    """Fixture providing an instant in the afternoon window."""
    return datetime(2024, 1, 15, 14, 0, tzinfo=UTC)


@pytest.fixture
def mock_menu_items() -> list[MenuItem]:
    """Fixture providing sample menu items for testing."""
    return [
        MenuItem(
            id="item_1",
            name="Masala Dosa",
            description="Crispy dosa with potato filling",
            base_price=Decimal("80"),
            category_id="cat_1",
        ),
        MenuItem(
            id="item_2",
            name="Cold Coffee",
            description="Iced and sweet",
            base_price=Decimal("50"),
            category_id="cat_2",
        ),
        MenuItem(
            id="item_3",
            name="Paneer Roll",
            description=None,
            base_price=Decimal("120"),
            category_id="cat_1",
        ),
    ]


@pytest.fixture
def mock_pricing_rules() -> list[PricingRule]:
    """Fixture providing sample pricing rules for testing."""
    return [
        PricingRule(
            id="rule_1",
            menu_item_id="item_1",
            time_of_day=TimeWindow.EVENING,
            price_multiplier=Decimal("1.5"),
        ),
        PricingRule(
            id="rule_2",
            menu_item_id="item_2",
            time_of_day=TimeWindow.AFTERNOON,
            fixed_price=Decimal("35"),
        ),
    ]


@pytest.fixture
def mock_category_rows() -> list[dict]:
    """Fixture providing sample category rows for testing."""
    return [
        {"id": "cat_2", "name": "Beverages", "description": None, "display_order": 2, "is_active": True},
        {"id": "cat_1", "name": "Meals", "description": "Hot food", "display_order": 1, "is_active": True},
        {"id": "cat_3", "name": "Seasonal", "description": None, "display_order": 3, "is_active": False},
    ]


@pytest.fixture
def mock_order_row() -> dict:
    """Fixture providing a sample order row."""
    return {
        "id": "order_1",
        "user_id": "user_1",
        "created_at": "2024-01-15T19:45:00+00:00",
        "total_amount": "240",
        "status": "pending",
        "payment_method": "cod",
        "payment_status": "pending",
        "phone": "9876543210",
        "hostel_name": "Ganga",
        "room_number": "214",
        "special_instructions": None,
    }


@pytest.fixture
def mock_realtime_payload() -> dict:
    """Fixture providing a sample realtime webhook payload."""
    return {
        "type": "UPDATE",
        "table": "orders",
        "schema": "public",
        "record": {"id": "order_1", "status": "confirmed"},
        "old_record": {"id": "order_1", "status": "pending"},
    }
