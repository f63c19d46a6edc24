"""
Enums, request objects and processing metadata for the account collections.

Payable and receivable accounts share one status enum; the direction decides
how a status is worded (paid vs received) but never how it behaves.
"""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from dataclasses import dataclass, field
from uuid import uuid4
import enum

from src.utils.clock import utc_now


# Enums
class AccountDirection(str, enum.Enum):
    PAYABLE = "payable"      # Money owed by the operator (contas a pagar)
    RECEIVABLE = "receivable"  # Money owed to the operator (contas a receber)


class AccountStatus(str, enum.Enum):
    PENDING = "pending"
    SETTLED = "settled"  # Paid (payable) / Received (receivable)
    CANCELLED = "cancelled"
    OVERDUE = "overdue"
    PARTIALLY_SETTLED = "partially_settled"

    @property
    def is_terminal(self) -> bool:
        return self in (AccountStatus.SETTLED, AccountStatus.CANCELLED)


OPEN_STATUSES = [AccountStatus.PENDING, AccountStatus.OVERDUE, AccountStatus.PARTIALLY_SETTLED]


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PIX = "pix"
    BOLETO = "boleto"


class RecurrenceKind(str, enum.Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    BIMONTHLY = "bimonthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class AccountCategory(str, enum.Enum):
    """Expense categories, payable accounts only."""
    SUPPLIERS = "suppliers"
    EMPLOYEES = "employees"
    TAXES = "taxes"
    RENT = "rent"
    ENERGY = "energy"
    PHONE = "phone"
    INTERNET = "internet"
    MARKETING = "marketing"
    MAINTENANCE = "maintenance"
    FUEL = "fuel"
    OTHER = "other"


class BatchRunStatus(str, enum.Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class SweepTask(str, enum.Enum):
    REFRESH_STATUSES = "refresh_statuses"
    PROCESS_RECURRING = "process_recurring"


# Base model with common fields
@dataclass
class BaseModel:
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


# Requests accepted by the account service
@dataclass
class NewAccountRequest:
    description: str = ""
    original_amount: Optional[Decimal] = None
    due_date: Optional[date] = None
    issue_date: Optional[date] = None  # Defaults to today
    discount: Decimal = Decimal("0")
    counterparty_uuid: Optional[str] = None  # Supplier (payable) or client (receivable)
    source_document_uuid: Optional[str] = None  # Purchase (payable) or sale (receivable)
    invoice_number: Optional[str] = None
    is_recurring: bool = False
    recurrence_kind: Optional[RecurrenceKind] = None
    notes: Optional[str] = None

    # Payable only
    category: Optional[AccountCategory] = None
    cost_center: Optional[str] = None
    recurrence_interval_days: Optional[int] = None

    # Receivable only
    salesperson_uuid: Optional[str] = None


@dataclass
class AccountUpdateRequest:
    description: str = ""
    original_amount: Optional[Decimal] = None
    due_date: Optional[date] = None
    issue_date: Optional[date] = None
    discount: Decimal = Decimal("0")
    invoice_number: Optional[str] = None
    is_recurring: bool = False
    recurrence_kind: Optional[RecurrenceKind] = None
    notes: Optional[str] = None
    category: Optional[AccountCategory] = None
    cost_center: Optional[str] = None
    recurrence_interval_days: Optional[int] = None
    salesperson_uuid: Optional[str] = None


@dataclass
class SettlementRequest:
    amount: Decimal
    payment_method: PaymentMethod
    settlement_date: Optional[datetime] = None  # Defaults to now
    notes: Optional[str] = None


# Processing-Metadata Schema models
@dataclass
class BatchRun(BaseModel):
    run_id: str = field(default_factory=lambda: str(uuid4()))
    task: SweepTask = SweepTask.REFRESH_STATUSES
    direction: AccountDirection = AccountDirection.PAYABLE
    start_ts: datetime = field(default_factory=utc_now)
    end_ts: Optional[datetime] = None
    status: BatchRunStatus = BatchRunStatus.PARTIAL
    accounts_processed: int = 0
    accounts_updated: int = 0
    errors: int = 0
