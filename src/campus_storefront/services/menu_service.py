"""Menu service for browsing the public catalog with time-of-day prices."""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from campus_storefront.models.menu_models import Category, MenuItem, PricingRule, TimeWindow
from campus_storefront.observability import traced
from campus_storefront.pricing.pricing_resolver import (
    PricedMenuItem,
    classify_time_window,
    price_menu_item,
)
from campus_storefront.repositories.storefront_repositories import (
    CategoryRepository,
    MenuItemRepository,
    PricingRuleRepository,
)

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "all"

# Share of the menu, from the top, flagged as popular
POPULAR_SHARE = 0.3


class MenuSort(str, Enum):
    """Sort orders offered on the menu."""

    POPULAR = "popular"
    PRICE_LOW = "price-low"
    PRICE_HIGH = "price-high"
    NAME = "name"


@dataclass
class CategorySummary:
    """An active category with the number of available items in it."""

    category: Category
    item_count: int


@dataclass
class MenuView:
    """Everything needed to render the menu at one instant.

    Attributes:
        time_window: Window prices were resolved for
        categories: Active categories in display order with item counts
        items: Filtered and sorted items with effective prices
        popular_item_ids: Items flagged as popular
        total_item_count: Number of available items before filtering
    """

    time_window: TimeWindow
    categories: list[CategorySummary]
    items: list[PricedMenuItem]
    popular_item_ids: list[str] = field(default_factory=list)
    total_item_count: int = 0


def filter_menu_items(
    items: list[MenuItem], category_id: str = ALL_CATEGORIES, search: str | None = None
) -> list[MenuItem]:
    """Filter items by category and a case-insensitive search over name and description."""
    if category_id != ALL_CATEGORIES:
        items = [item for item in items if item.category_id == category_id]

    if search:
        needle = search.lower()
        items = [
            item
            for item in items
            if needle in item.name.lower() or needle in (item.description or "").lower()
        ]

    return items


def sort_priced_items(items: list[PricedMenuItem], sort_by: MenuSort) -> list[PricedMenuItem]:
    """Order priced items; popular keeps the catalog order."""
    if sort_by == MenuSort.PRICE_LOW:
        return sorted(items, key=lambda p: p.effective_price)
    if sort_by == MenuSort.PRICE_HIGH:
        return sorted(items, key=lambda p: p.effective_price, reverse=True)
    if sort_by == MenuSort.NAME:
        return sorted(items, key=lambda p: p.item.name.casefold())
    return list(items)


def popular_item_ids(items: list[MenuItem]) -> list[str]:
    """Ids of the first 30% of the catalog, rounded up."""
    count = math.ceil(len(items) * POPULAR_SHARE)
    return [item.id for item in items[:count]]


class MenuService:
    """Service for the public menu.

    Fetches the catalog and pricing rules from the backend and resolves the
    effective price of every item for the caller's instant. Fetch failures
    degrade to empty lists, which leaves every item at its base price.
    """

    def __init__(
        self,
        menu_item_repository: MenuItemRepository,
        category_repository: CategoryRepository,
        pricing_rule_repository: PricingRuleRepository,
    ) -> None:
        """Initialize the MenuService.

        Args:
            menu_item_repository: Repository for menu items
            category_repository: Repository for categories
            pricing_rule_repository: Repository for pricing rules
        """
        self.menu_item_repository = menu_item_repository
        self.category_repository = category_repository
        self.pricing_rule_repository = pricing_rule_repository

    async def fetch_menu_items(self) -> list[MenuItem]:
        """Fetch available menu items (empty list on failure)."""
        items = await self.menu_item_repository.list_available_items()
        if items is None:
            logger.warning("Menu items unavailable, showing an empty menu")
            return []
        return items

    async def fetch_pricing_rules(self) -> list[PricingRule]:
        """Fetch all pricing rules (empty list on failure)."""
        rules = await self.pricing_rule_repository.list_rules()
        if rules is None:
            logger.warning("Pricing rules unavailable, falling back to base prices")
            return []
        return rules

    async def fetch_categories(self) -> list[Category]:
        """Fetch active categories in display order (empty list on failure)."""
        categories = await self.category_repository.list_active_categories()
        if categories is None:
            logger.warning("Categories unavailable, menu will not be grouped")
            return []
        return categories

    @traced("menu.get_menu")
    async def get_menu(
        self,
        instant: datetime,
        category_id: str = ALL_CATEGORIES,
        search: str | None = None,
        sort_by: MenuSort = MenuSort.POPULAR,
    ) -> MenuView:
        """Build the menu as it should be shown at an instant.

        Args:
            instant: Reference instant for time-of-day pricing
            category_id: Category to show, or "all"
            search: Optional case-insensitive search term
            sort_by: Sort order for the items

        Returns:
            MenuView with priced, filtered and sorted items
        """
        categories, items, rules = await asyncio.gather(
            self.fetch_categories(),
            self.fetch_menu_items(),
            self.fetch_pricing_rules(),
        )

        summaries = [
            CategorySummary(
                category=category,
                item_count=sum(1 for item in items if item.category_id == category.id),
            )
            for category in categories
        ]

        visible = filter_menu_items(items, category_id, search)
        priced = [price_menu_item(item, rules, instant) for item in visible]

        return MenuView(
            time_window=classify_time_window(instant),
            categories=summaries,
            items=sort_priced_items(priced, sort_by),
            popular_item_ids=popular_item_ids(items),
            total_item_count=len(items),
        )

    async def price_item(self, menu_item_id: str, instant: datetime) -> PricedMenuItem | None:
        """Resolve the effective price of one orderable item.

        Args:
            menu_item_id: Item to price
            instant: Reference instant for time-of-day pricing

        Returns:
            PricedMenuItem, or None if the item is unknown or unavailable
        """
        item = await self.menu_item_repository.get_item(menu_item_id)
        if item is None or not item.is_available:
            return None

        rules = await self.fetch_pricing_rules()
        return price_menu_item(item, rules, instant)
