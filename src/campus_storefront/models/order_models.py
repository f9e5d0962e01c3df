"""Order, messaging and account models.

Orders are created at checkout and afterwards only change status.
Messages let administrators contact the customer behind an order.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OrderStatus(str, Enum):
    """Lifecycle states of an order."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """Supported payment methods."""

    COD = "cod"
    UPI = "upi"


class PaymentStatus(str, Enum):
    """Payment states of an order."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class OrderItem(BaseModel):
    """A single line of an order."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str | None = Field(None, description="Unique identifier for the line")
    order_id: str = Field(..., description="Order this line belongs to")
    menu_item_id: str = Field(..., description="Ordered menu item")
    quantity: int = Field(..., description="Number of units ordered", gt=0)
    price_at_order: Decimal = Field(..., description="Unit price captured at order time", ge=0)
    name: str | None = Field(None, description="Menu item name for display")

    @property
    def line_total(self) -> Decimal:
        """Extended price of the line."""
        return self.price_at_order * self.quantity

    def to_row(self) -> dict[str, Any]:
        """Convert to a backend row.

        Returns:
            dict: Row without display-only fields
        """
        row: dict[str, Any] = {
            "order_id": self.order_id,
            "menu_item_id": self.menu_item_id,
            "quantity": self.quantity,
            "price_at_order": str(self.price_at_order),
        }
        if self.id is not None:
            row["id"] = self.id
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "OrderItem":
        """Create an OrderItem from a backend row.

        Args:
            row: Row dictionary, optionally with an embedded ``menu_items`` object

        Returns:
            OrderItem: Parsed model instance
        """
        data: dict[str, Any] = {
            "id": row.get("id"),
            "order_id": row["order_id"],
            "menu_item_id": row["menu_item_id"],
            "quantity": row["quantity"],
            "price_at_order": Decimal(str(row["price_at_order"])),
            "name": row.get("name"),
        }

        embedded = row.get("menu_items")
        if isinstance(embedded, dict) and data["name"] is None:
            data["name"] = embedded.get("name")

        return cls(**data)


class Order(BaseModel):
    """A customer order."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Unique identifier for the order")
    user_id: str = Field(..., description="Customer who placed the order")
    created_at: datetime = Field(..., description="Order creation timestamp")
    total_amount: Decimal = Field(..., description="Order total", ge=0)
    status: OrderStatus = Field(default=OrderStatus.PENDING, description="Order status")
    payment_method: PaymentMethod = Field(..., description="Payment method")
    payment_status: PaymentStatus = Field(
        default=PaymentStatus.PENDING, description="Payment status"
    )
    phone: str = Field(..., description="Contact phone number")
    hostel_name: str = Field(..., description="Delivery hostel")
    room_number: str = Field(..., description="Delivery room")
    special_instructions: str | None = Field(None, description="Free-form delivery notes")
    customer_name: str | None = Field(None, description="Customer full name, when joined")
    customer_email: str | None = Field(None, description="Customer email, when joined")
    items: list[OrderItem] = Field(default_factory=list, description="Order lines")

    def to_row(self) -> dict[str, Any]:
        """Convert to a backend row.

        Lines and joined customer fields live in other tables and are left out.

        Returns:
            dict: Row for the orders table
        """
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat(),
            "total_amount": str(self.total_amount),
            "status": self.status.value,
            "payment_method": self.payment_method.value,
            "payment_status": self.payment_status.value,
            "phone": self.phone,
            "hostel_name": self.hostel_name,
            "room_number": self.room_number,
            "special_instructions": self.special_instructions,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Order":
        """Create an Order from a backend row.

        Args:
            row: Row dictionary, optionally with embedded ``order_items``
                and ``profiles`` objects

        Returns:
            Order: Parsed model instance
        """
        created_at = row["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)

        data: dict[str, Any] = {
            "id": row["id"],
            "user_id": row["user_id"],
            "created_at": created_at,
            "total_amount": Decimal(str(row["total_amount"])),
            "status": OrderStatus(row.get("status", "pending")),
            "payment_method": PaymentMethod(row["payment_method"]),
            "payment_status": PaymentStatus(row.get("payment_status", "pending")),
            "phone": row["phone"],
            "hostel_name": row["hostel_name"],
            "room_number": row["room_number"],
            "special_instructions": row.get("special_instructions"),
        }

        profile = row.get("profiles")
        if isinstance(profile, dict):
            data["customer_name"] = profile.get("full_name")
            data["customer_email"] = profile.get("email")

        data["items"] = [OrderItem.from_row(item) for item in row.get("order_items") or []]
        return cls(**data)


class Message(BaseModel):
    """Administrator message attached to an order."""

    id: str = Field(..., description="Unique identifier for the message")
    order_id: str = Field(..., description="Order the message refers to")
    user_id: str = Field(..., description="Recipient customer")
    message: str = Field(..., description="Message body", min_length=1)
    sent_by: str | None = Field(None, description="Administrator who sent the message")
    created_at: datetime = Field(..., description="Message creation timestamp")

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Message":
        """Create a Message from a backend row.

        Args:
            row: Row dictionary

        Returns:
            Message: Parsed model instance
        """
        data = {key: row.get(key) for key in cls.model_fields}
        if isinstance(data["created_at"], str):
            data["created_at"] = datetime.fromisoformat(data["created_at"])
        return cls(**data)

    def to_row(self) -> dict[str, Any]:
        """Convert to a backend row."""
        row = self.model_dump()
        row["created_at"] = self.created_at.isoformat()
        return row


class Profile(BaseModel):
    """Customer profile."""

    id: str = Field(..., description="User identifier")
    email: str | None = Field(None, description="Email address")
    full_name: str | None = Field(None, description="Display name")
    phone: str | None = Field(None, description="Default contact phone")


class Session(BaseModel):
    """Authenticated caller.

    Passed explicitly into every service call that needs to know who is
    acting; nothing reads the current user from ambient state.
    """

    user_id: str = Field(..., description="Authenticated user identifier")
    email: str | None = Field(None, description="Authenticated user email")
    access_token: str = Field(..., description="Bearer token the session was resolved from")


class CheckoutDetails(BaseModel):
    """Delivery and payment details submitted at checkout."""

    phone: str = Field(..., description="Contact phone number")
    hostel_name: str = Field(..., description="Delivery hostel")
    room_number: str = Field(..., description="Delivery room")
    instructions: str | None = Field(None, description="Special instructions")
    payment_method: PaymentMethod = Field(default=PaymentMethod.COD, description="Payment method")

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        """Validate that the phone number has at least 10 characters."""
        v = v.strip()
        if len(v) < 10:
            raise ValueError("Phone number must be at least 10 digits")
        return v

    @field_validator("hostel_name")
    @classmethod
    def validate_hostel_name(cls, v: str) -> str:
        """Validate that a hostel name is given."""
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Hostel name is required")
        return v

    @field_validator("room_number")
    @classmethod
    def validate_room_number(cls, v: str) -> str:
        """Validate that a room number is given."""
        v = v.strip()
        if not v:
            raise ValueError("Room number is required")
        return v
