# Transactions module
from app.modules.transactions.models import Transaction, TransactionType
from app.modules.transactions.services import TransactionService

__all__ = ["Transaction", "TransactionType", "TransactionService"]
