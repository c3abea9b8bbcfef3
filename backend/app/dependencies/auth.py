"""Authentication dependencies for FastAPI routes.

Sign-in happens in the external identity provider; this service only reads the
user id it stored in the signed session cookie.
"""

from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import get_db
from app.models.user import User


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User | None:
    """Return the logged-in user or None."""
    user_id = request.session.get("user_id")
    if not user_id:
        return None
    result = await db.execute(
        select(User).where(User.id == user_id, User.is_active == True)  # noqa: E712
    )
    return result.scalar_one_or_none()


async def require_user_api(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    """Return the logged-in user or raise 401."""
    user = await get_current_user(request, db)
    if not user:
        raise HTTPException(status_code=401, detail="Login required")
    return user
