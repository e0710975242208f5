from typing import Annotated, Optional
import logging

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.services.scheme_session import SchemeSessionRegistry, get_session_registry


logger = logging.getLogger(__name__)


async def get_acting_user_id(
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> Optional[str]:
    """
    Identity of the operator making the request.

    Authentication is handled upstream; the gateway forwards the
    authenticated user id in the X-User-Id header.
    """
    return x_user_id or settings.DEFAULT_ACTING_USER_ID


async def require_acting_user_id(
    user_id: Annotated[Optional[str], Depends(get_acting_user_id)],
) -> str:
    """Dependency for operations that must be attributed to a user."""
    if not user_id:
        logger.warning("Override commit attempted without X-User-Id")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated",
        )
    return user_id


# Type aliases for common dependencies
DB = Annotated[AsyncSession, Depends(get_db)]
ActingUser = Annotated[Optional[str], Depends(get_acting_user_id)]
RequiredUser = Annotated[str, Depends(require_acting_user_id)]
Sessions = Annotated[SchemeSessionRegistry, Depends(get_session_registry)]
