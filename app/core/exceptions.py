"""Exception hierarchy for the lending ledger.

Services raise these; routers translate them with ``to_http_exception``.
"""
from fastapi import HTTPException, status


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(LedgerError):
    """Raised when a referenced loan, investment, installment or user does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(LedgerError):
    """Raised when an entity is in a status that forbids the operation."""

    status_code = status.HTTP_409_CONFLICT


class InvalidWithdrawalError(InvalidStateError):
    """Raised when an investment is not Active or not owned by the caller."""


class InvalidTransitionError(InvalidStateError):
    """Raised when a loan status change is not an edge of the state machine."""


class InvalidInputError(LedgerError):
    """Raised for non-positive amounts and other malformed input."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class ConcurrencyConflictError(LedgerError):
    """Raised when optimistic retries on a contended loan are exhausted."""

    status_code = status.HTTP_409_CONFLICT


def to_http_exception(exc: LedgerError) -> HTTPException:
    """Convert a ledger error into the matching HTTP error"""
    return HTTPException(status_code=exc.status_code, detail=str(exc))
