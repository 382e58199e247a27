from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date
from sqlalchemy.sql import func
from app.core.database import Base, enum_column_type, utcnow
import enum


class UserRole(str, enum.Enum):
    """Platform role of a user"""
    BORROWER = "borrower"
    INVESTOR = "investor"
    ADMIN = "admin"


class KYCStatus(str, enum.Enum):
    """KYC verification status"""
    NOT_SUBMITTED = "Not Submitted"
    PENDING = "Pending"
    VERIFIED = "Verified"
    REJECTED = "Rejected"


class AccountStatus(str, enum.Enum):
    """Account status enumeration"""
    ACTIVE = "Active"
    SUSPENDED = "Suspended"
    DEACTIVATED = "Deactivated"


class User(Base):
    """Borrowers, investors and platform admins"""
    __tablename__ = "users"

    # Primary Key
    id = Column(Integer, primary_key=True, index=True)

    # Identity
    full_name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    phone_number = Column(String(15), unique=True, nullable=True)
    hashed_password = Column(String(255), nullable=True)
    role = Column(enum_column_type(UserRole, "user_role"), default=UserRole.BORROWER, nullable=False)

    # Profile
    date_of_birth = Column(Date, nullable=True)
    city = Column(String(50), nullable=True)
    state = Column(String(50), nullable=True)
    country = Column(String(50), default="India", nullable=True)
    pincode = Column(String(10), nullable=True)

    # Verification
    is_email_verified = Column(Boolean, default=False, nullable=False)
    is_phone_verified = Column(Boolean, default=False, nullable=False)
    kyc_status = Column(enum_column_type(KYCStatus, "kyc_status"), default=KYCStatus.NOT_SUBMITTED, nullable=False)

    # Account Status
    account_status = Column(enum_column_type(AccountStatus, "account_status"), default=AccountStatus.ACTIVE, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
