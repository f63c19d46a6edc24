"""
Unit tests for the Firestore Data Access Object (DAO)
"""

import pytest
import uuid
from datetime import datetime, date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

from google.api_core.exceptions import AlreadyExists

from src.models.account import Account
from src.models.schemas import AccountDirection, AccountStatus, BatchRun, BatchRunStatus, SweepTask
from src.repositories.firestore_dao import DocumentExistsError, FirestoreDAO


@pytest.fixture
def mock_firestore():
    """Mock the Firestore client."""
    with patch("src.repositories.firestore_dao.AsyncClient") as mock:
        client_mock = MagicMock()
        mock.return_value = client_mock
        yield mock, client_mock


@pytest.fixture
def dao(mock_firestore):
    """Create a DAO instance with mocked Firestore client."""
    return FirestoreDAO(project_id="test-project", collection_prefix="dev_")


def _document_mocks(client_mock):
    doc_ref_mock = MagicMock()
    doc_ref_mock.set = AsyncMock()
    doc_ref_mock.create = AsyncMock()
    doc_ref_mock.update = AsyncMock()
    collection_mock = MagicMock()
    collection_mock.document.return_value = doc_ref_mock
    client_mock.collection.return_value = collection_mock
    return collection_mock, doc_ref_mock


def test_requires_project_id(mock_firestore):
    with patch.dict("os.environ", {}, clear=True):
        with pytest.raises(ValueError):
            FirestoreDAO()


def test_client_uses_database_id(mock_firestore):
    mock_client_class, _ = mock_firestore
    FirestoreDAO(project_id="test-project", database_id="accounts-db")
    mock_client_class.assert_called_with(project="test-project", database="accounts-db")


@pytest.mark.asyncio
async def test_add_document(dao, mock_firestore):
    """Test adding a batch run document to Firestore."""
    _, client_mock = mock_firestore
    collection_mock, doc_ref_mock = _document_mocks(client_mock)

    test_id = str(uuid.uuid4())
    test_data = BatchRun(
        run_id=test_id,
        task=SweepTask.PROCESS_RECURRING,
        direction=AccountDirection.RECEIVABLE,
        start_ts=datetime(2024, 1, 20, 9, 0),
        status=BatchRunStatus.SUCCESS
    )

    await dao.add_document("batch_run", test_id, test_data)

    client_mock.collection.assert_called_once_with("dev_batch_run")
    collection_mock.document.assert_called_once_with(test_id)
    assert doc_ref_mock.set.await_count == 1

    # Verify the data passed to set is a plain dict with enum values
    args, _ = doc_ref_mock.set.call_args
    assert isinstance(args[0], dict)
    assert args[0]["run_id"] == test_id
    assert args[0]["task"] == "process_recurring"
    assert args[0]["direction"] == "receivable"
    assert args[0]["status"] == "success"


@pytest.mark.asyncio
async def test_account_conversion(dao, mock_firestore):
    """Decimals become strings and dates become midnight datetimes."""
    _, client_mock = mock_firestore
    _, doc_ref_mock = _document_mocks(client_mock)

    account = Account(
        direction=AccountDirection.PAYABLE,
        description="Rent",
        original_amount=Decimal("1500.10"),
        due_date=date(2024, 2, 5),
        status=AccountStatus.OVERDUE,
    )

    await dao.create_document("accounts_payable", account.account_uuid, account)

    args, _ = doc_ref_mock.create.call_args
    stored = args[0]
    assert stored["original_amount"] == "1500.10"
    assert stored["due_date"] == datetime(2024, 2, 5)
    assert stored["status"] == "overdue"
    assert stored["direction"] == "payable"
    assert stored["settlement_date"] is None


@pytest.mark.asyncio
async def test_create_document_already_exists(dao, mock_firestore):
    _, client_mock = mock_firestore
    _, doc_ref_mock = _document_mocks(client_mock)
    doc_ref_mock.create.side_effect = AlreadyExists("exists")

    with pytest.raises(DocumentExistsError) as exc_info:
        await dao.create_document("accounts_receivable", "abc", {"number": "CR-001"})

    assert exc_info.value.document_id == "abc"


@pytest.mark.asyncio
async def test_update_document(dao, mock_firestore):
    """Test updating a document in Firestore."""
    _, client_mock = mock_firestore
    collection_mock, doc_ref_mock = _document_mocks(client_mock)

    test_id = str(uuid.uuid4())
    updates = {"status": BatchRunStatus.FAILED, "updated_at": datetime(2024, 1, 20)}

    await dao.update_document("batch_run", test_id, updates)

    client_mock.collection.assert_called_once_with("dev_batch_run")
    collection_mock.document.assert_called_once_with(test_id)
    doc_ref_mock.update.assert_awaited_with({"status": "failed", "updated_at": datetime(2024, 1, 20)})


@pytest.mark.asyncio
async def test_update_document_adds_timestamp(dao, mock_firestore):
    _, client_mock = mock_firestore
    _, doc_ref_mock = _document_mocks(client_mock)

    await dao.update_document("batch_run", "run-1", {"errors": 2})

    args, _ = doc_ref_mock.update.call_args
    assert args[0]["errors"] == 2
    assert isinstance(args[0]["updated_at"], datetime)


@pytest.mark.asyncio
async def test_get_document_missing(dao, mock_firestore):
    _, client_mock = mock_firestore
    _, doc_ref_mock = _document_mocks(client_mock)
    snapshot = MagicMock()
    snapshot.exists = False
    doc_ref_mock.get = AsyncMock(return_value=snapshot)

    assert await dao.get_document("accounts_payable", "nope") is None


@pytest.mark.asyncio
async def test_query_documents_converts_filter_values(dao, mock_firestore):
    _, client_mock = mock_firestore
    query_mock = MagicMock()
    query_mock.where.return_value = query_mock
    query_mock.order_by.return_value = query_mock

    snapshot = MagicMock()
    snapshot.to_dict.return_value = {"number": "CP-001"}

    async def _stream():
        yield snapshot

    query_mock.stream = _stream
    client_mock.collection.return_value = query_mock

    results = await dao.query_documents(
        "accounts_payable",
        filters=[("status", "in", [AccountStatus.PENDING, AccountStatus.OVERDUE]),
                 ("due_date", "<", date(2024, 1, 20))],
        order_by="due_date",
    )

    assert results == [{"number": "CP-001"}]
    query_mock.where.assert_any_call("status", "in", ["pending", "overdue"])
    query_mock.where.assert_any_call("due_date", "<", datetime(2024, 1, 20))
    query_mock.order_by.assert_called_once_with("due_date")
