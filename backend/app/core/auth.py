"""Authentication dependencies.

This module handles:
1. Verifying bearer JWTs issued by the marketplace auth service
2. User provisioning on first authenticated request
3. FastAPI dependency injection for protected and admin routes
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from ..db.database import get_db
from ..db.models import UserModel

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI docs
security = HTTPBearer(auto_error=False)

DEV_USER_ID = "dev_user"


@dataclass
class TokenUser:
    """Identity carried by a verified token."""
    id: str
    email: str
    display_name: Optional[str] = None
    is_admin: bool = False


def verify_token(token: str) -> Optional[TokenUser]:
    """
    Verify an HS256 JWT and extract the user it was issued to.

    Args:
        token: JWT token from Authorization header

    Returns:
        TokenUser if valid, None otherwise
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        logger.warning("JWT token has expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid JWT token: {e}")
        return None

    user_id = payload.get("sub") or payload.get("id")
    if not user_id:
        logger.warning("JWT token missing 'sub' claim")
        return None

    return TokenUser(
        id=str(user_id),
        email=payload.get("email") or f"{user_id}@users.local",
        display_name=payload.get("name"),
        is_admin=payload.get("role") == "admin",
    )


async def get_or_create_user(token_user: TokenUser, db: AsyncSession) -> UserModel:
    """
    Get existing user or create a new one from token claims.

    The admin flag is only taken from the token when the user is first
    provisioned; afterwards the database is authoritative.
    """
    result = await db.execute(select(UserModel).where(UserModel.id == token_user.id))
    user = result.scalar_one_or_none()
    if user:
        return user

    user = UserModel(
        id=token_user.id,
        email=token_user.email,
        display_name=token_user.display_name,
        is_admin=token_user.is_admin,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info(f"Created new user {user.id} ({user.email})")
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> UserModel:
    """
    FastAPI dependency to get the current authenticated user.

    Raises:
        HTTPException 401 if not authenticated
    """
    settings = get_settings()

    if not settings.jwt_secret:
        # Development mode: authentication disabled
        logger.warning("Authentication disabled - using development user")
        user = await get_or_create_user(
            TokenUser(id=DEV_USER_ID, email="dev@example.com", display_name="Development User", is_admin=True),
            db,
        )
        request.state.user_id = user.id
        return user

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_user = verify_token(credentials.credentials)
    if not token_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await get_or_create_user(token_user, db)
    request.state.user_id = user.id
    return user


async def get_admin_user(
    user: UserModel = Depends(get_current_user),
) -> UserModel:
    """
    FastAPI dependency to get the current admin user.

    Raises:
        HTTPException 403 if user is not an admin
    """
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
