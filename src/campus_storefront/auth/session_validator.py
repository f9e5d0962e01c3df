"""Bearer token validation.

Tokens are issued by the hosted backend's auth service; this module only
turns a token into an explicit Session value that callers pass around.
"""

import logging

from campus_storefront.models.order_models import Session
from campus_storefront.repositories.data_store import DataStore

logger = logging.getLogger(__name__)


class SessionValidator:
    """Resolves bearer tokens to sessions through the data store's auth lookup.

    Returns None for unknown or rejected tokens; the HTTP layer decides how
    to respond.
    """

    def __init__(self, data_store: DataStore) -> None:
        """Initialize validator.

        Args:
            data_store: Store whose ``get_user`` resolves tokens
        """
        self.data_store = data_store

    async def resolve(self, access_token: str) -> Session | None:
        """Resolve a bearer token.

        Args:
            access_token: Token from the Authorization header

        Returns:
            Session if the token belongs to a user, None otherwise

        Raises:
            DataStoreError: If the auth service could not be reached
        """
        if not access_token:
            return None

        user = await self.data_store.get_user(access_token)
        if user is None:
            logger.info("Rejected unknown access token")
            return None

        return Session(user_id=str(user["id"]), email=user.get("email"), access_token=access_token)
