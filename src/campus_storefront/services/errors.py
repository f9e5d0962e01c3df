"""Domain errors raised by storefront services."""


class StorefrontError(Exception):
    """Base class for storefront service errors."""


class NotFoundError(StorefrontError):
    """Raised when a referenced record does not exist."""


class ItemUnavailableError(StorefrontError):
    """Raised when a menu item is unknown or not currently offered."""

    def __init__(self, menu_item_id: str) -> None:
        super().__init__(f"Menu item {menu_item_id} is not available")
        self.menu_item_id = menu_item_id


class EmptyCartError(StorefrontError):
    """Raised when checking out with nothing in the cart."""


class BackendWriteError(StorefrontError):
    """Raised when the backend does not store a new record."""


class OrderPlacementError(BackendWriteError):
    """Raised when the backend rejects an order or its lines."""


class AdminAccessDenied(StorefrontError):
    """Raised when a non-administrator calls an administrator operation."""

    def __init__(self, user_id: str) -> None:
        super().__init__("You don't have admin privileges")
        self.user_id = user_id
