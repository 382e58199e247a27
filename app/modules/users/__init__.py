# Users module
from app.modules.users.models import User, UserRole, KYCStatus, AccountStatus

__all__ = ["User", "UserRole", "KYCStatus", "AccountStatus"]
