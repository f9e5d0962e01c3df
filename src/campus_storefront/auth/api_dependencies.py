"""FastAPI dependencies for request authentication.

Provides the helper route dependencies use to turn the Authorization header
into a Session.
"""

from fastapi import HTTPException

from campus_storefront.auth.session_validator import SessionValidator
from campus_storefront.models.order_models import Session

BEARER_PREFIX = "bearer "


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


async def get_session_from_header(
    authorization: str | None,
    validator: SessionValidator,
) -> Session:
    """Resolve the caller's session from the Authorization header.

    Args:
        authorization: Raw Authorization header value
        validator: SessionValidator used to resolve the token

    Returns:
        Session: The authenticated caller

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    token = extract_bearer_token(authorization)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    session = await validator.resolve(token)
    if session is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired session",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return session
