"""Customer-facing account views."""

from campus_storefront.models.order_models import Message, Order, Profile, Session
from campus_storefront.repositories.storefront_repositories import (
    MessageRepository,
    OrderRepository,
    ProfileRepository,
)


class ProfileService:
    """Service for a customer's profile, order history and inbox."""

    def __init__(
        self,
        order_repository: OrderRepository,
        profile_repository: ProfileRepository,
        message_repository: MessageRepository,
    ) -> None:
        self.order_repository = order_repository
        self.profile_repository = profile_repository
        self.message_repository = message_repository

    async def get_profile(self, session: Session) -> Profile:
        """Return the caller's profile, or a bare one built from the session."""
        profile = await self.profile_repository.get_profile(session.user_id)
        return profile or Profile(id=session.user_id, email=session.email)

    async def get_order_history(self, session: Session) -> list[Order]:
        """The caller's orders, newest first."""
        return await self.order_repository.list_orders(user_id=session.user_id)

    async def get_messages(self, session: Session) -> list[Message]:
        """Messages administrators sent to the caller, newest first."""
        return await self.message_repository.list_messages(user_id=session.user_id)
