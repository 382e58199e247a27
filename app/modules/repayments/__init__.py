# Repayments module
from app.modules.repayments.models import RepaymentSchedule, InstallmentStatus
from app.modules.repayments.services import RepaymentService

__all__ = ["RepaymentSchedule", "InstallmentStatus", "RepaymentService"]
