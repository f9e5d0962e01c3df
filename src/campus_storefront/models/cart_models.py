"""Shopping cart models.

Cart lines keep the unit price that was in effect when the item was added,
so a later change of time window does not reprice the cart.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, computed_field


class CartLine(BaseModel):
    """A menu item in the cart."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    menu_item_id: str = Field(..., description="Menu item in the cart")
    name: str = Field(..., description="Menu item name")
    unit_price: Decimal = Field(..., description="Price captured when added", ge=0)
    quantity: int = Field(default=1, description="Number of units", gt=0)
    image_url: str | None = Field(None, description="URL to item image")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Cart(BaseModel):
    """A customer's cart."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    user_id: str = Field(..., description="Owner of the cart")
    lines: list[CartLine] = Field(default_factory=list, description="Cart contents")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def find_line(self, menu_item_id: str) -> CartLine | None:
        """Return the line for a menu item, if present."""
        for line in self.lines:
            if line.menu_item_id == menu_item_id:
                return line
        return None
