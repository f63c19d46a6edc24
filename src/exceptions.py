"""
Error taxonomy for account operations.

Callers map ValidationError and InvalidStateTransitionError to client-facing
4xx responses, NotFoundError to 404, and PersistenceFailure to a generic 5xx.
"""

from decimal import Decimal
from typing import Optional


class AccountError(Exception):
    """Base class for all account errors."""


class ValidationError(AccountError):
    """Malformed input: missing required field, non-positive amount, etc."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidAmountError(ValidationError):
    """Settlement amount must be greater than zero."""

    def __init__(self, amount: Decimal):
        super().__init__(f"Amount must be greater than zero, got {amount}", field="amount")
        self.amount = amount


class InvalidStateTransitionError(AccountError):
    """The requested operation is not allowed in the account's current status."""

    def __init__(self, message: str, account_number: Optional[str] = None):
        super().__init__(message)
        self.account_number = account_number


class AlreadySettledError(InvalidStateTransitionError):
    pass


class AlreadyCancelledError(InvalidStateTransitionError):
    pass


class OverpaymentError(InvalidStateTransitionError):
    """Settlement amount exceeds the remaining balance."""

    def __init__(self, amount: Decimal, remaining: Decimal, account_number: Optional[str] = None):
        super().__init__(
            f"Amount {amount} exceeds remaining balance of {remaining}",
            account_number=account_number,
        )
        self.amount = amount
        self.remaining = remaining


class NotFoundError(AccountError):
    """No active account resolves to the given id."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class PersistenceFailure(AccountError):
    """Storage-layer error during a read or write."""


class ConcurrentModificationError(PersistenceFailure):
    """The document changed between read and write."""

    def __init__(self, document_id: str, expected_version: int, actual_version: Optional[int]):
        super().__init__(
            f"Document {document_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        self.document_id = document_id
        self.expected_version = expected_version
        self.actual_version = actual_version
