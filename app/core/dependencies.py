from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.core.database import get_db
from app.modules.users.models import User, AccountStatus


async def get_acting_user(
    x_acting_user_id: int = Header(..., alias="X-Acting-User-Id"),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Resolve the user on whose behalf a mutating request is made"""
    result = await db.execute(select(User).where(User.id == x_acting_user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Acting user {x_acting_user_id} not found"
        )

    if user.account_status != AccountStatus.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Account is {user.account_status.value}. Please contact support."
        )

    return user
