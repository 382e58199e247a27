from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from typing import Optional, List
import logging

from app.core.exceptions import NotFoundError, InvalidInputError, InvalidStateError
from app.core.security import get_password_hash, mask_email
from app.modules.users.models import User, UserRole, KYCStatus, AccountStatus
from app.modules.users import schemas
from app.modules.audit.models import AuditAction, AuditEntityType
from app.modules.audit.services import AuditService

logger = logging.getLogger(__name__)


class UserService:
    """Service layer for platform users"""

    @staticmethod
    async def create_user(db: AsyncSession, user_data: schemas.UserCreateRequest) -> User:
        """Create a borrower, investor or admin"""
        conditions = [User.email == user_data.email]
        if user_data.phone_number:
            conditions.append(User.phone_number == user_data.phone_number)

        result = await db.execute(select(User).where(or_(*conditions)))
        if result.scalars().first():
            raise InvalidInputError("Email or phone number already registered")

        user = User(
            full_name=user_data.full_name,
            email=user_data.email,
            phone_number=user_data.phone_number,
            hashed_password=get_password_hash(user_data.password) if user_data.password else None,
            role=user_data.role,
            date_of_birth=user_data.date_of_birth,
            city=user_data.city,
            state=user_data.state,
            country=user_data.country,
            pincode=user_data.pincode,
            kyc_status=KYCStatus.NOT_SUBMITTED,
            account_status=AccountStatus.ACTIVE
        )

        db.add(user)
        await db.commit()

        logger.info(f"Created {user.role.value} user {user.id} ({mask_email(user.email)})")
        return user

    @staticmethod
    async def get_user(db: AsyncSession, user_id: int) -> User:
        """Get a user or raise NotFoundError"""
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()

        if not user:
            raise NotFoundError(f"User {user_id} not found")

        return user

    @staticmethod
    async def require_role(db: AsyncSession, user_id: int, role: UserRole) -> User:
        """Get a user and check it holds the given role"""
        user = await UserService.get_user(db, user_id)
        if user.role != role:
            raise InvalidStateError(f"User {user_id} is not a {role.value}")
        if user.account_status != AccountStatus.ACTIVE:
            raise InvalidStateError(f"User {user_id} account is {user.account_status.value}")
        return user

    @staticmethod
    async def get_users(db: AsyncSession, role: Optional[UserRole] = None, skip: int = 0, limit: int = 100) -> List[User]:
        query = select(User)
        if role:
            query = query.where(User.role == role)
        result = await db.execute(query.order_by(User.id).offset(skip).limit(limit))
        return list(result.scalars().all())

    @staticmethod
    async def update_kyc_status(
        db: AsyncSession,
        user_id: int,
        kyc_status: KYCStatus,
        acting_user_id: int
    ) -> User:
        """Change a user's KYC status and audit it"""
        user = await UserService.get_user(db, user_id)
        old_status = user.kyc_status

        user.kyc_status = kyc_status
        AuditService(db).log_action(
            AuditAction.KYC_UPDATED,
            AuditEntityType.USER,
            user.id,
            acting_user_id,
            remarks=f"KYC status changed from {old_status.value} to {kyc_status.value}"
        )
        await db.commit()

        logger.info(f"KYC status of user {user.id}: {old_status.value} -> {kyc_status.value}")
        return user
