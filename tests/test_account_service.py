"""
Tests for AccountService use cases (payable and receivable)
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from src.exceptions import (
    AlreadySettledError,
    NotFoundError,
    OverpaymentError,
    ValidationError,
)
from src.models.account import PAYABLE, RECEIVABLE
from src.models.schemas import (
    AccountCategory,
    AccountStatus,
    AccountUpdateRequest,
    NewAccountRequest,
    PaymentMethod,
    RecurrenceKind,
    SettlementRequest,
)
from src.repositories import AccountRepository, CounterpartyRepository
from src.services.account_service import AccountService


@pytest.fixture
def master_data(fake_dao):
    fake_dao._documents["suppliers"] = {"sup-1": {"company_name": "Distribuidora Sul", "is_active": True}}
    fake_dao._documents["clients"] = {"cli-1": {"name": "Joana Lima", "is_active": True}}
    fake_dao._documents["users"] = {
        "user-1": {"name": "Carlos", "is_active": True},
        "user-2": {"name": "Bia", "is_active": True},
    }
    return fake_dao


@pytest.fixture
def receivables(master_data, clock):
    return AccountService(
        AccountRepository(master_data, RECEIVABLE),
        CounterpartyRepository(master_data),
        clock=clock,
    )


@pytest.fixture
def payables(master_data, clock):
    return AccountService(
        AccountRepository(master_data, PAYABLE),
        CounterpartyRepository(master_data),
        clock=clock,
    )


def sale_request(**overrides) -> NewAccountRequest:
    values = dict(
        description="Sale #1001",
        original_amount=Decimal("100.00"),
        due_date=date(2024, 1, 10),
        counterparty_uuid="cli-1",
        salesperson_uuid="user-1",
    )
    values.update(overrides)
    return NewAccountRequest(**values)


@pytest.mark.asyncio
async def test_create_receivable_resolves_names(receivables, clock):
    account = await receivables.create_account(sale_request())

    assert account.number == "CR-001"
    assert account.status == AccountStatus.PENDING
    assert account.counterparty_name == "Joana Lima"
    assert account.salesperson_name == "Carlos"
    assert account.issue_date == clock().date()


@pytest.mark.asyncio
async def test_create_payable_resolves_supplier(payables):
    account = await payables.create_account(NewAccountRequest(
        description="Office rent",
        original_amount="2500",
        due_date=date(2024, 2, 5),
        counterparty_uuid="sup-1",
        category=AccountCategory.RENT,
        cost_center="HQ",
    ))

    assert account.number == "CP-001"
    assert account.counterparty_name == "Distribuidora Sul"
    assert account.original_amount == Decimal("2500")


@pytest.mark.asyncio
async def test_create_rejects_invalid_request(receivables, master_data):
    with pytest.raises(ValidationError):
        await receivables.create_account(sale_request(original_amount=Decimal("0")))
    with pytest.raises(ValidationError):
        await receivables.create_account(sale_request(category=AccountCategory.RENT))
    assert "accounts_receivable" not in master_data._documents


@pytest.mark.asyncio
async def test_get_account_not_found(receivables):
    with pytest.raises(NotFoundError):
        await receivables.get_account("nope")


@pytest.mark.asyncio
async def test_settle_overdue_receivable_scenario(receivables, clock):
    """Due Jan 10, refreshed Jan 20, then received in full including interest."""
    from src.batch_worker.account_sweeper import AccountSweeper

    account = await receivables.create_account(sale_request())
    await AccountSweeper(receivables.account_repo, clock=clock).refresh_all_statuses()

    refreshed = await receivables.get_account(account.account_uuid)
    assert refreshed.status == AccountStatus.OVERDUE
    assert refreshed.interest == Decimal("0.011")

    with pytest.raises(OverpaymentError) as exc_info:
        await receivables.settle_account(
            account.account_uuid, SettlementRequest(Decimal("150"), PaymentMethod.PIX)
        )
    assert exc_info.value.remaining == Decimal("100.011")

    settled = await receivables.settle_account(
        account.account_uuid,
        SettlementRequest(Decimal("100.011"), PaymentMethod.PIX, notes="paid at counter"),
    )
    assert settled.status == AccountStatus.SETTLED
    assert settled.remaining == Decimal("0.00")
    assert settled.settlement_date == clock()
    assert settled.notes == "[Receipt] paid at counter"

    with pytest.raises(AlreadySettledError):
        await receivables.settle_account(account.account_uuid, SettlementRequest(Decimal("1"), PaymentMethod.PIX))


@pytest.mark.asyncio
async def test_payment_note_label(payables):
    account = await payables.create_account(NewAccountRequest(
        description="Energy bill", original_amount=Decimal("80"), due_date=date(2024, 2, 1),
        notes="January",
    ))
    settled = await payables.settle_account(
        account.account_uuid, SettlementRequest(Decimal("30"), PaymentMethod.BOLETO, notes="first half")
    )
    assert settled.status == AccountStatus.PARTIALLY_SETTLED
    assert settled.notes == "January\n[Payment] first half"


@pytest.mark.asyncio
async def test_cancel_and_delete(receivables):
    account = await receivables.create_account(sale_request())

    cancelled = await receivables.cancel_account(account.account_uuid)
    assert cancelled.status == AccountStatus.CANCELLED
    again = await receivables.cancel_account(account.account_uuid)
    assert again.version == cancelled.version

    await receivables.delete_account(account.account_uuid)
    with pytest.raises(NotFoundError):
        await receivables.get_account(account.account_uuid)


@pytest.mark.asyncio
async def test_settled_account_cannot_be_cancelled_updated_or_deleted(receivables):
    account = await receivables.create_account(sale_request(due_date=date(2024, 2, 1)))
    await receivables.settle_account(account.account_uuid, SettlementRequest(Decimal("100"), PaymentMethod.CASH))

    with pytest.raises(AlreadySettledError):
        await receivables.cancel_account(account.account_uuid)
    with pytest.raises(AlreadySettledError):
        await receivables.update_account(account.account_uuid, AccountUpdateRequest(
            description="x", original_amount=Decimal("1"), due_date=date(2024, 2, 1)))
    with pytest.raises(AlreadySettledError):
        await receivables.delete_account(account.account_uuid)


@pytest.mark.asyncio
async def test_update_account_refreshes_salesperson_name(receivables):
    account = await receivables.create_account(sale_request(due_date=date(2024, 2, 1)))

    updated = await receivables.update_account(account.account_uuid, AccountUpdateRequest(
        description="Sale #1001 (fixed)",
        original_amount=Decimal("110"),
        due_date=date(2024, 2, 15),
        salesperson_uuid="user-2",
        is_recurring=True,
        recurrence_kind=RecurrenceKind.MONTHLY,
    ))

    assert updated.description == "Sale #1001 (fixed)"
    assert updated.original_amount == Decimal("110")
    assert updated.salesperson_name == "Bia"
    assert updated.version == 1


@pytest.mark.asyncio
async def test_listing_queries(receivables, clock):
    overdue = await receivables.create_account(sale_request())
    soon = await receivables.create_account(sale_request(due_date=date(2024, 1, 24)))
    await receivables.create_account(sale_request(due_date=date(2024, 3, 1), counterparty_uuid=None,
                                                  salesperson_uuid="user-2"))

    assert len(await receivables.list_accounts()) == 3
    assert [a.account_uuid for a in await receivables.list_overdue()] == [overdue.account_uuid]
    assert [a.account_uuid for a in await receivables.list_due_within(7)] == [soon.account_uuid]
    assert len(await receivables.list_by_counterparty("cli-1")) == 2
    assert len(await receivables.list_by_salesperson("user-2")) == 1
    assert len(await receivables.list_by_status(AccountStatus.PENDING)) == 3
    assert len(await receivables.list_by_period(date(2024, 1, 1), date(2024, 1, 31))) == 2

    with pytest.raises(ValidationError):
        await receivables.list_by_period(date(2024, 2, 1), date(2024, 1, 1))
    with pytest.raises(ValidationError):
        await receivables.list_due_within(-1)
    with pytest.raises(ValidationError):
        await receivables.list_by_category(AccountCategory.RENT)


@pytest.mark.asyncio
async def test_list_by_category_for_payables(payables):
    await payables.create_account(NewAccountRequest(
        description="Fuel", original_amount=Decimal("300"), due_date=date(2024, 2, 1),
        category=AccountCategory.FUEL,
    ))
    assert len(await payables.list_by_category(AccountCategory.FUEL)) == 1
    assert await payables.list_by_category(AccountCategory.RENT) == []
    with pytest.raises(ValidationError):
        await payables.list_by_salesperson("user-1")
