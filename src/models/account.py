"""Account model for the payable and receivable collections.

One ``Account`` type serves both directions. What differs between a payable
and a receivable (number prefix, collection, counterparty source, fields only
one side may carry) lives in a ``DirectionPolicy``; the state machine, the
interest policy and the recurrence generator exist once.

Status is a cached projection. ``is_overdue`` reads the stored status and
only ``refresh_status`` (run by the overdue sweep) recomputes it from dates.
"""

import logging
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple, Union
from uuid import uuid4

from dateutil.relativedelta import relativedelta

from src.config import (
    CLIENT_COLLECTION,
    DAILY_INTEREST_RATE,
    NUMBER_WIDTH,
    PAYABLE_COLLECTION,
    PAYABLE_NUMBER_PREFIX,
    RECEIVABLE_COLLECTION,
    RECEIVABLE_NUMBER_PREFIX,
    SUPPLIER_COLLECTION,
)
from src.exceptions import (
    AlreadyCancelledError,
    AlreadySettledError,
    InvalidAmountError,
    OverpaymentError,
    ValidationError,
)
from src.models.money import ZERO, amount_due, remaining_balance, simple_interest, to_decimal
from src.models.schemas import (
    AccountCategory,
    AccountDirection,
    AccountStatus,
    AccountUpdateRequest,
    PaymentMethod,
    RecurrenceKind,
)
from src.utils.clock import utc_now
from src.utils.parsing import parse_amount, parse_date, parse_datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectionPolicy:
    """Everything that distinguishes a payable from a receivable."""
    direction: AccountDirection
    number_prefix: str
    collection: str
    counterparty_collection: str
    settlement_label: str  # Used in notes and log lines: "Payment" / "Receipt"
    exclusive_fields: Tuple[str, ...]  # Fields only this direction may set

    def format_number(self, sequence: int) -> str:
        return f"{self.number_prefix}-{sequence:0{NUMBER_WIDTH}d}"

    def parse_number(self, number: Optional[str]) -> Optional[int]:
        """Return the integer part of a number like CP-012, or None if it is not ours."""
        if not number or not number.startswith(f"{self.number_prefix}-"):
            return None
        try:
            return int(number[len(self.number_prefix) + 1:])
        except ValueError:
            return None


PAYABLE = DirectionPolicy(
    direction=AccountDirection.PAYABLE,
    number_prefix=PAYABLE_NUMBER_PREFIX,
    collection=PAYABLE_COLLECTION,
    counterparty_collection=SUPPLIER_COLLECTION,
    settlement_label="Payment",
    exclusive_fields=("category", "cost_center", "recurrence_interval_days"),
)

RECEIVABLE = DirectionPolicy(
    direction=AccountDirection.RECEIVABLE,
    number_prefix=RECEIVABLE_NUMBER_PREFIX,
    collection=RECEIVABLE_COLLECTION,
    counterparty_collection=CLIENT_COLLECTION,
    settlement_label="Receipt",
    exclusive_fields=("salesperson_uuid", "salesperson_name"),
)

_POLICIES = {policy.direction: policy for policy in (PAYABLE, RECEIVABLE)}


def policy_for(direction: Union[AccountDirection, str]) -> DirectionPolicy:
    """Look up the policy for a direction value."""
    try:
        return _POLICIES[AccountDirection(direction)]
    except ValueError:
        raise ValidationError(f"Unknown account direction: {direction}", field="direction")


# Step added to the due date for each recurrence kind
RECURRENCE_STEPS = {
    RecurrenceKind.WEEKLY: relativedelta(days=7),
    RecurrenceKind.BIWEEKLY: relativedelta(days=15),
    RecurrenceKind.MONTHLY: relativedelta(months=1),
    RecurrenceKind.BIMONTHLY: relativedelta(months=2),
    RecurrenceKind.QUARTERLY: relativedelta(months=3),
    RecurrenceKind.YEARLY: relativedelta(years=1),
}
DEFAULT_RECURRENCE_STEP = relativedelta(months=1)


def next_due_date(due_date: date, kind: Union[RecurrenceKind, str]) -> date:
    """Due date of the installment following one due on ``due_date``.

    Month steps clamp to the end of the month (Jan 31 + 1 month = Feb 28/29).
    Unknown kinds step one month.
    """
    try:
        step = RECURRENCE_STEPS[RecurrenceKind(kind)]
    except ValueError:
        step = DEFAULT_RECURRENCE_STEP
    return due_date + step


def _today(now: Optional[datetime]) -> date:
    return (now or utc_now()).date()


@dataclass
class Account:
    """
    Payable or receivable account.

    Monetary fields are Decimals. ``remaining`` is derived and never stored.
    """
    account_uuid: str = field(default_factory=lambda: str(uuid4()))
    direction: AccountDirection = AccountDirection.PAYABLE
    number: str = ""  # CP-001 / CR-001, assigned at persistence time
    sequence: Optional[int] = None  # Integer behind number
    description: str = ""
    counterparty_uuid: Optional[str] = None  # Supplier id (payable) / client id (receivable)
    counterparty_name: Optional[str] = None  # Denormalized
    source_document_uuid: Optional[str] = None  # Purchase id (payable) / sale id (receivable)
    invoice_number: Optional[str] = None

    # Values
    original_amount: Decimal = ZERO
    discount: Decimal = ZERO
    interest: Decimal = ZERO
    penalty: Decimal = ZERO
    settled_amount: Decimal = ZERO  # Paid (payable) / received (receivable)

    # Dates
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    settlement_date: Optional[datetime] = None

    status: AccountStatus = AccountStatus.PENDING
    payment_method: Optional[PaymentMethod] = None

    # Payable only
    category: Optional[AccountCategory] = None
    cost_center: Optional[str] = None
    recurrence_interval_days: Optional[int] = None

    # Receivable only
    salesperson_uuid: Optional[str] = None
    salesperson_name: Optional[str] = None

    # Recurrence
    is_recurring: bool = False
    recurrence_kind: Optional[Union[RecurrenceKind, str]] = None

    notes: Optional[str] = None
    is_active: bool = True
    version: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def policy(self) -> DirectionPolicy:
        return policy_for(self.direction)

    @property
    def amount_due(self) -> Decimal:
        return amount_due(self.original_amount, self.interest, self.penalty, self.discount)

    @property
    def remaining(self) -> Decimal:
        return remaining_balance(
            self.original_amount, self.interest, self.penalty, self.discount, self.settled_amount
        )

    def validate(self) -> None:
        """Check required fields and that no field of the other direction is set."""
        if not self.description or not self.description.strip():
            raise ValidationError("Description is required", field="description")
        if self.original_amount <= 0:
            raise ValidationError(
                f"Original amount must be greater than zero, got {self.original_amount}",
                field="original_amount",
            )
        if self.discount < 0:
            raise ValidationError(f"Discount cannot be negative, got {self.discount}", field="discount")
        if self.discount > self.original_amount:
            raise ValidationError(
                f"Discount {self.discount} exceeds original amount {self.original_amount}",
                field="discount",
            )
        if self.due_date is None:
            raise ValidationError("Due date is required", field="due_date")
        if self.recurrence_interval_days is not None and self.recurrence_interval_days <= 0:
            raise ValidationError(
                "Recurrence interval must be a positive number of days",
                field="recurrence_interval_days",
            )

        own_fields = self.policy.exclusive_fields
        for other in _POLICIES.values():
            if other.direction == self.direction:
                continue
            for name in other.exclusive_fields:
                if name not in own_fields and getattr(self, name) is not None:
                    raise ValidationError(
                        f"Field '{name}' is not allowed on a {self.direction.value} account",
                        field=name,
                    )

    # State machine

    def can_be_settled(self) -> bool:
        return not self.status.is_terminal

    def settle(self, amount: Union[Decimal, int, str], method: PaymentMethod,
               settlement_date: Optional[datetime] = None, now: Optional[datetime] = None) -> None:
        """
        Apply a payment (payable) or receipt (receivable).

        All guards run before any field changes, so a rejected settlement
        leaves the account untouched.

        Raises:
            InvalidAmountError: amount <= 0
            AlreadySettledError: account already settled
            AlreadyCancelledError: account cancelled
            OverpaymentError: amount > remaining
        """
        amount = to_decimal(amount)
        if amount <= 0:
            raise InvalidAmountError(amount)
        if self.status == AccountStatus.SETTLED:
            raise AlreadySettledError(
                f"Account {self.number} is already settled", account_number=self.number
            )
        if self.status == AccountStatus.CANCELLED:
            raise AlreadyCancelledError(
                f"Account {self.number} is cancelled and cannot be settled", account_number=self.number
            )
        remaining = self.remaining
        if amount > remaining:
            raise OverpaymentError(amount, remaining, account_number=self.number)
        try:
            method = PaymentMethod(method)
        except ValueError:
            raise ValidationError(f"Unknown payment method: {method}", field="payment_method")

        now = now or utc_now()
        self.settled_amount += amount
        self.payment_method = method
        self.settlement_date = settlement_date or now

        if self.settled_amount >= self.amount_due:
            self.status = AccountStatus.SETTLED
        elif self.settled_amount > 0:
            self.status = AccountStatus.PARTIALLY_SETTLED

        self.updated_at = now

    def cancel(self, now: Optional[datetime] = None) -> bool:
        """Cancel a non-settled account. Returns False when it was already cancelled."""
        if self.status == AccountStatus.SETTLED:
            raise AlreadySettledError(
                f"Account {self.number} is already settled and cannot be cancelled",
                account_number=self.number,
            )
        if self.status == AccountStatus.CANCELLED:
            return False
        self.status = AccountStatus.CANCELLED
        self.updated_at = now or utc_now()
        return True

    def apply_update(self, request: AccountUpdateRequest, now: Optional[datetime] = None) -> None:
        """Overwrite the editable fields; settled accounts are frozen."""
        if self.status == AccountStatus.SETTLED:
            raise AlreadySettledError(
                f"Account {self.number} is already settled and cannot be changed",
                account_number=self.number,
            )

        updated = replace(
            self,
            description=request.description,
            invoice_number=request.invoice_number,
            original_amount=to_decimal(request.original_amount, "original_amount"),
            discount=to_decimal(request.discount, "discount"),
            issue_date=request.issue_date or self.issue_date,
            due_date=request.due_date,
            is_recurring=request.is_recurring,
            recurrence_kind=request.recurrence_kind,
            notes=request.notes,
            category=request.category,
            cost_center=request.cost_center,
            recurrence_interval_days=request.recurrence_interval_days,
            salesperson_uuid=request.salesperson_uuid,
        )
        if updated.salesperson_uuid != self.salesperson_uuid:
            updated.salesperson_name = None
        updated.validate()

        if not updated.status.is_terminal:
            updated.refresh_status(now)
        if updated.amount_due < updated.settled_amount:
            raise ValidationError(
                f"Amount due {updated.amount_due} would fall below the "
                f"{updated.settled_amount} already settled on account {self.number}",
                field="original_amount",
            )
        if not updated.status.is_terminal and updated.settled_amount > 0 \
                and updated.settled_amount >= updated.amount_due:
            updated.status = AccountStatus.SETTLED

        self.__dict__.update(updated.__dict__)
        self.updated_at = now or utc_now()

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """True when past due AND the stored status already says overdue."""
        if self.due_date is None:
            return False
        return _today(now) > self.due_date and self.status == AccountStatus.OVERDUE

    def days_until_due(self, now: Optional[datetime] = None) -> Optional[int]:
        """Days from today to the due date; negative once past due."""
        if self.due_date is None:
            return None
        return (self.due_date - _today(now)).days

    # Overdue / interest policy

    def calculate_interest(self, now: Optional[datetime] = None) -> Decimal:
        """Linear daily interest on the original amount, zero unless overdue."""
        if not self.is_overdue(now):
            return ZERO
        days_overdue = (_today(now) - self.due_date).days
        return simple_interest(self.original_amount, days_overdue, DAILY_INTEREST_RATE)

    def refresh_status(self, now: Optional[datetime] = None) -> bool:
        """
        Recompute status (and interest when overdue) from today's date.

        Returns:
            True if status or interest changed
        """
        if self.status.is_terminal:
            return False

        previous = (self.status, self.interest)
        if self.due_date is not None and _today(now) > self.due_date:
            self.status = AccountStatus.OVERDUE
            self.interest = self.calculate_interest(now)
        elif self.settled_amount > 0:
            self.status = AccountStatus.PARTIALLY_SETTLED
        else:
            self.status = AccountStatus.PENDING

        return (self.status, self.interest) != previous

    # Recurrence

    def generate_next_installment(self, now: Optional[datetime] = None) -> Optional["Account"]:
        """
        Build the next installment of a recurring account.

        The source is not modified. The successor has no number yet; the
        repository assigns one on insert.

        Returns:
            New Account, or None when the account does not recur
        """
        if not self.is_recurring or not self.recurrence_kind or self.due_date is None:
            return None

        now = now or utc_now()
        successor = Account(
            direction=self.direction,
            description=self.description,
            counterparty_uuid=self.counterparty_uuid,
            counterparty_name=self.counterparty_name,
            original_amount=self.original_amount,
            issue_date=self.due_date,
            due_date=next_due_date(self.due_date, self.recurrence_kind),
            status=AccountStatus.PENDING,
            is_recurring=self.is_recurring,
            recurrence_kind=self.recurrence_kind,
            notes=self.notes,
            created_at=now,
            updated_at=now,
        )

        if self.direction == AccountDirection.PAYABLE:
            successor.category = self.category
            successor.cost_center = self.cost_center
            successor.recurrence_interval_days = self.recurrence_interval_days
        else:
            successor.source_document_uuid = self.source_document_uuid
            successor.invoice_number = self.invoice_number
            successor.salesperson_uuid = self.salesperson_uuid
            successor.salesperson_name = self.salesperson_name

        logger.debug(f"Generated next installment of {self.number} due {successor.due_date}")
        return successor

    def copy(self) -> "Account":
        return replace(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Account":
        """
        Build an Account from a Firestore document.

        Unknown keys are ignored; amounts stored as strings become Decimals
        and midnight timestamps become dates.
        """
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}

        for name in ("original_amount", "discount", "interest", "penalty", "settled_amount"):
            if name in values:
                values[name] = parse_amount(values[name]) or ZERO
        for name in ("issue_date", "due_date"):
            if name in values:
                values[name] = parse_date(values[name])
        for name in ("settlement_date", "created_at", "updated_at"):
            if name in values:
                parsed = parse_datetime(values[name])
                if parsed is None and name != "settlement_date":
                    values.pop(name)
                else:
                    values[name] = parsed

        if "direction" in values:
            values["direction"] = AccountDirection(values["direction"])
        if "status" in values:
            values["status"] = AccountStatus(values["status"])
        if values.get("payment_method"):
            values["payment_method"] = PaymentMethod(values["payment_method"])
        if values.get("category"):
            values["category"] = AccountCategory(values["category"])
        if values.get("recurrence_kind"):
            try:
                values["recurrence_kind"] = RecurrenceKind(values["recurrence_kind"])
            except ValueError:
                logger.warning(
                    f"Unknown recurrence kind '{values['recurrence_kind']}' on account "
                    f"{values.get('account_uuid')}; monthly steps will be used"
                )

        return cls(**values)
