"""Repository for payable and receivable accounts in Firestore."""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Callable, List, Optional, Tuple
from uuid import NAMESPACE_URL, uuid5

from src.exceptions import AccountError, NotFoundError, PersistenceFailure
from src.models.account import Account, DirectionPolicy
from src.models.schemas import AccountCategory, AccountStatus, OPEN_STATUSES
from src.repositories.firestore_dao import DocumentExistsError, FirestoreDAO
from src.repositories.sequence_repository import SequenceRepository
from src.utils.clock import utc_now

logger = logging.getLogger(__name__)

# Namespace for successor ids: uuid5(namespace, source id) is stable across sweeps
SUCCESSOR_NAMESPACE = uuid5(NAMESPACE_URL, "accounts/recurrence-successor")


def successor_uuid(source_uuid: str) -> str:
    """Deterministic id of the installment generated from ``source_uuid``."""
    return str(uuid5(SUCCESSOR_NAMESPACE, source_uuid))


class AccountRepository:
    """
    Read/write contract for one direction of accounts.

    Every query filters out soft-deleted documents. Writes to existing
    accounts go through ``apply``, which re-checks the document version so
    concurrent writers cannot overwrite each other.
    """

    def __init__(self, dao: FirestoreDAO, policy: DirectionPolicy, sequences: SequenceRepository = None):
        """
        Initialize the repository.

        Args:
            dao: Firestore DAO
            policy: Direction this repository serves (PAYABLE or RECEIVABLE)
            sequences: Number oracle, defaults to one over the same DAO
        """
        self.dao = dao
        self.policy = policy
        self.sequences = sequences or SequenceRepository(dao)
        # Documents dropped by the last query because they could not be converted
        self.skipped_on_last_query = 0

    @property
    def collection(self) -> str:
        return self.policy.collection

    def _to_accounts(self, docs: List[dict]) -> List[Account]:
        accounts = []
        for doc in docs:
            try:
                accounts.append(Account.from_dict(doc))
            except (TypeError, ValueError, AccountError) as e:
                self.skipped_on_last_query += 1
                logger.error(f"Error converting {self.collection} document {doc.get('account_uuid')} to Account: {str(e)}")
        return accounts

    async def _query(self, filters: List[tuple], order_by: str = "due_date") -> List[Account]:
        self.skipped_on_last_query = 0
        try:
            docs = await self.dao.query_documents(
                self.collection,
                filters=[("is_active", "==", True)] + filters,
                order_by=order_by,
            )
        except Exception as e:
            logger.error(f"Error querying {self.collection} with {filters}: {str(e)}")
            raise PersistenceFailure(f"Could not query {self.collection}: {e}") from e
        return self._to_accounts(docs)

    async def get_by_id(self, account_uuid: str) -> Optional[Account]:
        """
        Get an active account by UUID.

        Returns:
            Account if found and not soft-deleted, None otherwise
        """
        try:
            doc = await self.dao.get_document(self.collection, account_uuid)
        except Exception as e:
            logger.error(f"Error getting account {account_uuid}: {str(e)}")
            raise PersistenceFailure(f"Could not read account {account_uuid}: {e}") from e

        if not doc or not doc.get("is_active", True):
            return None
        return Account.from_dict(doc)

    async def get_all_active(self) -> List[Account]:
        return await self._query([])

    async def get_by_status(self, status: AccountStatus) -> List[Account]:
        return await self._query([("status", "==", status)])

    async def get_non_terminal(self) -> List[Account]:
        """Active accounts that are pending, overdue or partially settled."""
        return await self._query([("status", "in", OPEN_STATUSES)])

    async def get_recurring_settled(self) -> List[Account]:
        """Active recurring accounts in the settled state."""
        return await self._query([
            ("is_recurring", "==", True),
            ("status", "==", AccountStatus.SETTLED),
        ])

    async def get_overdue(self, today: date) -> List[Account]:
        """Open accounts whose due date is before ``today``, whatever their stored status."""
        return await self._query([
            ("status", "in", OPEN_STATUSES),
            ("due_date", "<", today),
        ])

    async def get_by_counterparty(self, counterparty_uuid: str) -> List[Account]:
        return await self._query([("counterparty_uuid", "==", counterparty_uuid)])

    async def get_by_period(self, start: date, end: date) -> List[Account]:
        """Accounts due between ``start`` and ``end`` inclusive."""
        return await self._query([
            ("due_date", ">=", start),
            ("due_date", "<=", end),
        ])

    async def get_due_within(self, today: date, days: int) -> List[Account]:
        """Pending accounts due from today up to ``days`` days ahead."""
        return await self._query([
            ("status", "==", AccountStatus.PENDING),
            ("due_date", ">=", today),
            ("due_date", "<=", today + timedelta(days=days)),
        ])

    async def get_by_category(self, category: AccountCategory) -> List[Account]:
        return await self._query([("category", "==", category)])

    async def get_by_salesperson(self, salesperson_uuid: str) -> List[Account]:
        return await self._query([("salesperson_uuid", "==", salesperson_uuid)])

    async def create(self, account: Account, document_id: Optional[str] = None) -> Account:
        """
        Insert a new account, assigning its sequence number.

        Args:
            account: Account to insert; its direction must match this repository
            document_id: Optional fixed id (used for recurrence successors)

        Returns:
            The stored account with number and sequence set
        """
        if account.direction != self.policy.direction:
            raise ValueError(f"Cannot store a {account.direction.value} account in {self.collection}")

        if document_id:
            account.account_uuid = document_id
        try:
            account.sequence = await self.sequences.next_sequence(self.policy)
            account.number = self.policy.format_number(account.sequence)
            account.version = 0
            await self.dao.create_document(self.collection, account.account_uuid, account)
        except DocumentExistsError:
            raise
        except Exception as e:
            logger.error(f"Error creating account in {self.collection}: {str(e)}")
            raise PersistenceFailure(f"Could not create account: {e}") from e

        logger.info(f"Created account {account.number} ({account.account_uuid}) in {self.collection}")
        return account

    async def create_successor(self, source: Account, successor: Account, deduplicate: bool = True) -> Optional[Account]:
        """
        Insert the next installment of a recurring account.

        With ``deduplicate`` the successor id is derived from the source id, so
        a source that already produced its successor produces nothing again.

        Returns:
            The stored successor, or None if it already existed
        """
        if not deduplicate:
            return await self.create(successor)

        document_id = successor_uuid(source.account_uuid)
        try:
            existing = await self.dao.get_document(self.collection, document_id)
        except Exception as e:
            logger.error(f"Error checking successor of {source.number}: {str(e)}")
            raise PersistenceFailure(f"Could not check successor of {source.number}: {e}") from e
        if existing:
            logger.info(f"Successor of {source.number} already exists ({existing.get('number')})")
            return None

        try:
            return await self.create(successor, document_id=document_id)
        except DocumentExistsError:
            # Lost a race with another sweep; the number reserved for this attempt stays unused
            logger.warning(f"Successor of {source.number} was created concurrently")
            return None

    async def apply(self, account_uuid: str, transition: Callable[[Account], Any],
                    now: Optional[datetime] = None) -> Tuple[Account, Any]:
        """
        Read-modify-write one account under optimistic concurrency.

        ``transition`` runs against a fresh copy of the stored account. If it
        raises, nothing is written. If it returns ``False`` the account is
        considered unchanged and nothing is written either.

        Returns:
            (account after the transition, value returned by the transition)

        Raises:
            NotFoundError: No active account with this id
            ConcurrentModificationError: Another writer got there first
        """
        account = await self.get_by_id(account_uuid)
        if account is None:
            raise NotFoundError(f"{self.policy.direction.value} account", account_uuid)

        expected_version = account.version
        result = transition(account)
        if result is False:
            return account, result

        account.version = expected_version + 1
        account.updated_at = now or utc_now()
        try:
            await self.dao.replace_document_if_version(
                self.collection, account.account_uuid, account, expected_version
            )
        except AccountError:
            raise
        except Exception as e:
            logger.error(f"Error writing account {account.number}: {str(e)}")
            raise PersistenceFailure(f"Could not write account {account.number}: {e}") from e

        return account, result

    async def soft_delete(self, account_uuid: str, guard: Callable[[Account], None] = None,
                          now: Optional[datetime] = None) -> Account:
        """Flag an account inactive; ``guard`` may raise to refuse the deletion."""
        def _delete(account: Account) -> None:
            if guard:
                guard(account)
            account.is_active = False

        account, _ = await self.apply(account_uuid, _delete, now=now)
        logger.info(f"Soft-deleted account {account.number} in {self.collection}")
        return account
