"""Service layer for payable and receivable account operations."""

import logging
from datetime import date
from typing import List

from src.config import USER_COLLECTION
from src.exceptions import AlreadySettledError, NotFoundError, ValidationError
from src.models.account import Account, DirectionPolicy
from src.models.money import to_decimal
from src.models.schemas import (
    AccountCategory,
    AccountDirection,
    AccountStatus,
    AccountUpdateRequest,
    NewAccountRequest,
    SettlementRequest,
)
from src.repositories.account_repository import AccountRepository
from src.repositories.counterparty_repository import CounterpartyRepository
from src.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

class AccountService:
    """
    Use cases for one direction of accounts.

    The service loads an account, runs a state-machine transition on it and
    persists the result through the repository's version-checked write.
    Domain errors (ValidationError, InvalidStateTransitionError, NotFoundError)
    propagate unchanged for the caller to map onto responses.
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        counterparty_repo: CounterpartyRepository,
        clock: Clock = utc_now
    ):
        """Initialize with repositories and a clock."""
        self.account_repo = account_repo
        self.counterparty_repo = counterparty_repo
        self.clock = clock

    @property
    def policy(self) -> DirectionPolicy:
        return self.account_repo.policy

    @property
    def label(self) -> str:
        return f"{self.policy.direction.value} account"

    async def create_account(self, request: NewAccountRequest) -> Account:
        """
        Create a pending account and assign its number.

        Counterparty (supplier or client) and salesperson names are looked up
        and stored on the account.

        Args:
            request: Creation request

        Returns:
            The created account
        """
        now = self.clock()
        account = Account(
            direction=self.policy.direction,
            description=(request.description or "").strip(),
            counterparty_uuid=request.counterparty_uuid,
            source_document_uuid=request.source_document_uuid,
            invoice_number=request.invoice_number,
            original_amount=to_decimal(request.original_amount, "original_amount"),
            discount=to_decimal(request.discount, "discount"),
            issue_date=request.issue_date or now.date(),
            due_date=request.due_date,
            status=AccountStatus.PENDING,
            category=request.category,
            cost_center=request.cost_center,
            recurrence_interval_days=request.recurrence_interval_days,
            salesperson_uuid=request.salesperson_uuid,
            is_recurring=request.is_recurring,
            recurrence_kind=request.recurrence_kind,
            notes=request.notes,
            created_at=now,
            updated_at=now,
        )
        account.validate()

        account.counterparty_name = await self.counterparty_repo.get_display_name(
            self.policy.counterparty_collection, account.counterparty_uuid
        )
        if account.salesperson_uuid:
            account.salesperson_name = await self.counterparty_repo.get_display_name(
                USER_COLLECTION, account.salesperson_uuid
            )

        created = await self.account_repo.create(account)
        logger.info(f"Created {self.label} {created.number} - {created.description}")
        return created

    async def get_account(self, account_uuid: str) -> Account:
        """
        Get an active account.

        Raises:
            NotFoundError: Missing or soft-deleted
        """
        account = await self.account_repo.get_by_id(account_uuid)
        if account is None:
            raise NotFoundError(self.label, account_uuid)
        return account

    async def list_accounts(self) -> List[Account]:
        return await self.account_repo.get_all_active()

    async def list_by_status(self, status: AccountStatus) -> List[Account]:
        return await self.account_repo.get_by_status(AccountStatus(status))

    async def list_overdue(self) -> List[Account]:
        """Open accounts past their due date, including ones the sweep has not reached yet."""
        return await self.account_repo.get_overdue(self.clock().date())

    async def list_by_counterparty(self, counterparty_uuid: str) -> List[Account]:
        return await self.account_repo.get_by_counterparty(counterparty_uuid)

    async def list_by_period(self, start: date, end: date) -> List[Account]:
        if start > end:
            raise ValidationError(f"Period start {start} is after end {end}", field="start")
        return await self.account_repo.get_by_period(start, end)

    async def list_due_within(self, days: int) -> List[Account]:
        if days < 0:
            raise ValidationError(f"Days must not be negative, got {days}", field="days")
        return await self.account_repo.get_due_within(self.clock().date(), days)

    async def list_by_category(self, category: AccountCategory) -> List[Account]:
        if self.policy.direction != AccountDirection.PAYABLE:
            raise ValidationError("Only payable accounts have a category", field="category")
        return await self.account_repo.get_by_category(AccountCategory(category))

    async def list_by_salesperson(self, salesperson_uuid: str) -> List[Account]:
        if self.policy.direction != AccountDirection.RECEIVABLE:
            raise ValidationError("Only receivable accounts have a salesperson", field="salesperson_uuid")
        return await self.account_repo.get_by_salesperson(salesperson_uuid)

    async def update_account(self, account_uuid: str, request: AccountUpdateRequest) -> Account:
        """Edit an account that is not settled yet."""
        now = self.clock()
        salesperson_name = None
        if request.salesperson_uuid:
            salesperson_name = await self.counterparty_repo.get_display_name(
                USER_COLLECTION, request.salesperson_uuid
            )

        def _update(account: Account) -> None:
            previous_salesperson = account.salesperson_uuid
            account.apply_update(request, now=now)
            if account.salesperson_uuid and account.salesperson_uuid != previous_salesperson:
                account.salesperson_name = salesperson_name

        account, _ = await self.account_repo.apply(account_uuid, _update, now=now)
        logger.info(f"Updated {self.label} {account.number} - {account.description}")
        return account

    async def delete_account(self, account_uuid: str) -> Account:
        """Soft-delete an account that is not settled."""
        def _guard(account: Account) -> None:
            if account.status == AccountStatus.SETTLED:
                raise AlreadySettledError(
                    f"Account {account.number} is already settled and cannot be deleted",
                    account_number=account.number,
                )

        account = await self.account_repo.soft_delete(account_uuid, guard=_guard, now=self.clock())
        logger.info(f"Deleted {self.label} {account.number}")
        return account

    async def settle_account(self, account_uuid: str, request: SettlementRequest) -> Account:
        """
        Apply a payment or receipt to an account.

        Args:
            account_uuid: Account to settle
            request: Amount, method, optional date and notes

        Returns:
            The updated account
        """
        now = self.clock()
        label = self.policy.settlement_label

        def _settle(account: Account) -> None:
            account.settle(request.amount, request.payment_method, request.settlement_date, now=now)
            if request.notes:
                account.notes = f"{account.notes or ''}\n[{label}] {request.notes}".strip()

        account, _ = await self.account_repo.apply(account_uuid, _settle, now=now)
        logger.info(
            f"{label} of {request.amount} applied to {account.number}: "
            f"status={account.status.value}, remaining={account.remaining}"
        )
        return account

    async def cancel_account(self, account_uuid: str) -> Account:
        """Cancel an account that is not settled."""
        now = self.clock()
        account, _ = await self.account_repo.apply(account_uuid, lambda acc: acc.cancel(now=now), now=now)
        logger.info(f"Cancelled {self.label} {account.number}")
        return account
