"""
Shared fixtures: an in-memory stand-in for FirestoreDAO.

Documents are stored the way Firestore would see them (Decimals as strings,
enums as values, dates as midnight datetimes) by reusing the DAO's own
conversion.
"""

import operator
from datetime import date, datetime
from unittest.mock import AsyncMock

import pytest

from src.config import BATCH_RUN_COLLECTION
from src.exceptions import ConcurrentModificationError, NotFoundError
from src.repositories.firestore_dao import DocumentExistsError, FirestoreDAO

OPERATORS = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _matches(doc, field, op, value):
    stored = doc.get(field)
    if op == "in":
        return stored in value
    if op in ("==", "!="):
        return OPERATORS[op](stored, value)
    if stored is None:
        return False
    return OPERATORS[op](stored, value)


@pytest.fixture
def fake_dao():
    """Create a mock FirestoreDAO that keeps documents per collection."""
    # Conversion helpers only touch self._convert_value, no client needed
    converter = FirestoreDAO.__new__(FirestoreDAO)

    mock_dao = AsyncMock()
    mock_dao._documents = {}

    def _collection(name):
        return mock_dao._documents.setdefault(name, {})

    async def add_document(collection, doc_id, data):
        _collection(collection)[doc_id] = converter._convert_to_dict(data)
        return doc_id

    async def create_document(collection, doc_id, data):
        if doc_id in _collection(collection):
            raise DocumentExistsError(collection, doc_id)
        return await add_document(collection, doc_id, data)

    async def update_document(collection, doc_id, updates):
        _collection(collection)[doc_id].update(converter._convert_to_dict(updates))

    async def get_document(collection, doc_id):
        doc = _collection(collection).get(doc_id)
        return dict(doc) if doc is not None else None

    async def query_documents(collection, filters=None, order_by=None, limit=None, desc=False):
        docs = [dict(doc) for doc in _collection(collection).values()]
        for field, op, value in filters or []:
            value = converter._convert_value(value)
            docs = [doc for doc in docs if _matches(doc, field, op, value)]
        if order_by:
            docs.sort(key=lambda doc: (doc.get(order_by) is None, doc.get(order_by) or 0), reverse=desc)
        return docs[:limit] if limit else docs

    async def replace_document_if_version(collection, doc_id, data, expected_version):
        stored = _collection(collection).get(doc_id)
        if stored is None:
            raise NotFoundError(collection, doc_id)
        if stored.get("version", 0) != expected_version:
            raise ConcurrentModificationError(doc_id, expected_version, stored.get("version"))
        _collection(collection)[doc_id] = converter._convert_to_dict(data)

    async def increment_counter(collection, counter_id, seed_collection=None, seed_field=None):
        counters = _collection(collection)
        if counter_id in counters:
            current = counters[counter_id]["value"]
        elif seed_collection and seed_field:
            values = [doc.get(seed_field) or 0 for doc in _collection(seed_collection).values()]
            current = max(values, default=0)
        else:
            current = 0
        counters[counter_id] = {"value": current + 1}
        return current + 1

    async def create_batch_run(batch_run):
        return await add_document(BATCH_RUN_COLLECTION, batch_run.run_id, batch_run)

    async def update_batch_run(run_id, updates):
        await update_document(BATCH_RUN_COLLECTION, run_id, updates)

    mock_dao.add_document = AsyncMock(side_effect=add_document)
    mock_dao.create_document = AsyncMock(side_effect=create_document)
    mock_dao.update_document = AsyncMock(side_effect=update_document)
    mock_dao.get_document = AsyncMock(side_effect=get_document)
    mock_dao.query_documents = AsyncMock(side_effect=query_documents)
    mock_dao.replace_document_if_version = AsyncMock(side_effect=replace_document_if_version)
    mock_dao.increment_counter = AsyncMock(side_effect=increment_counter)
    mock_dao.create_batch_run = AsyncMock(side_effect=create_batch_run)
    mock_dao.update_batch_run = AsyncMock(side_effect=update_batch_run)

    return mock_dao


class FixedClock:
    """Clock returning a settable naive UTC datetime."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set_date(self, day: date) -> None:
        self.now = datetime.combine(day, self.now.time())


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 20, 9, 0, 0))
