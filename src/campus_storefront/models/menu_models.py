"""Menu data models.

These models represent the catalog rows stored in the hosted backend:
menu items, categories and the time-of-day pricing rules attached to items.
"""

from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TimeWindow(str, Enum):
    """Part of the day used to select a pricing rule."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class MenuItem(BaseModel):
    """Menu item model."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Unique identifier for the menu item")
    name: str = Field(..., description="Item name")
    description: str | None = Field(None, description="Item description")
    base_price: Decimal = Field(..., description="Price before any pricing rule", ge=0)
    category_id: str = Field(..., description="Category this item belongs to")
    is_available: bool = Field(default=True, description="Whether item is currently orderable")
    image_url: str | None = Field(None, description="URL to item image")

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "MenuItem":
        """Create a MenuItem from a backend row.

        Args:
            row: Row dictionary as returned by the data store

        Returns:
            MenuItem: Parsed model instance
        """
        data = dict(row)
        data["base_price"] = Decimal(str(data["base_price"]))
        return cls(**data)

    def to_row(self) -> dict[str, Any]:
        """Convert to a backend row.

        Returns:
            dict: Row with the price serialized as a string
        """
        row = self.model_dump()
        row["base_price"] = str(self.base_price)
        return row


class Category(BaseModel):
    """Menu category model."""

    id: str = Field(..., description="Unique identifier for the category")
    name: str = Field(..., description="Category name")
    description: str | None = Field(None, description="Category description")
    display_order: int = Field(default=0, description="Display order of category")
    is_active: bool = Field(default=True, description="Whether the category is shown on the menu")


class PricingRule(BaseModel):
    """Time-of-day price override for a single menu item.

    When ``fixed_price`` is set it replaces the base price outright and
    ``price_multiplier`` is ignored. Nothing enforces one rule per
    (menu_item_id, time_of_day) pair; resolution takes the first match.
    """

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Unique identifier for the rule")
    menu_item_id: str = Field(..., description="Menu item this rule applies to")
    time_of_day: TimeWindow = Field(..., description="Time window the rule is active in")
    price_multiplier: Decimal = Field(
        default=Decimal("1"), description="Multiplier applied to the base price", ge=0
    )
    fixed_price: Decimal | None = Field(
        None, description="Replacement price, overrides the multiplier", ge=0
    )

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PricingRule":
        """Create a PricingRule from a backend row.

        Args:
            row: Row dictionary as returned by the data store

        Returns:
            PricingRule: Parsed model instance
        """
        data = dict(row)
        if data.get("price_multiplier") is None:
            data.pop("price_multiplier", None)
        else:
            data["price_multiplier"] = Decimal(str(data["price_multiplier"]))

        if data.get("fixed_price") is not None:
            data["fixed_price"] = Decimal(str(data["fixed_price"]))

        data["time_of_day"] = TimeWindow(data["time_of_day"])
        return cls(**data)

    def to_row(self) -> dict[str, Any]:
        """Convert to a backend row.

        Returns:
            dict: Row with decimals serialized as strings
        """
        return {
            "id": self.id,
            "menu_item_id": self.menu_item_id,
            "time_of_day": self.time_of_day.value,
            "price_multiplier": str(self.price_multiplier),
            "fixed_price": str(self.fixed_price) if self.fixed_price is not None else None,
        }
