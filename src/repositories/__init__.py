"""Repository package for database operations."""

from src.repositories.firestore_dao import FirestoreDAO, DocumentExistsError
from src.repositories.account_repository import AccountRepository
from src.repositories.sequence_repository import SequenceRepository
from src.repositories.counterparty_repository import CounterpartyRepository

__all__ = [
    "FirestoreDAO",
    "DocumentExistsError",
    "AccountRepository",
    "SequenceRepository",
    "CounterpartyRepository"
]
