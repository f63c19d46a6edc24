"""Periodic sweeps over the account collections.

``refresh_all_statuses`` is the overdue sweep: it recomputes status and
interest of every open account. ``process_recurring_accounts`` inserts the
next installment of every settled recurring account.

Both sweeps are driven by an external scheduler (see ``src.main``). A failure
on one account is logged and counted on the batch run; the sweep moves on to
the next account.
"""

import logging

from src.config import RECURRENCE_DEDUP_ENABLED
from src.batch_worker.batch_manager import BatchManager
from src.models.schemas import BatchRun, SweepTask
from src.repositories.account_repository import AccountRepository
from src.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)


class AccountSweeper:
    """Runs the status and recurrence sweeps for one account direction."""

    def __init__(self, account_repo: AccountRepository, dao=None,
                 clock: Clock = utc_now, deduplicate_successors: bool = RECURRENCE_DEDUP_ENABLED):
        """
        Initialize the sweeper.

        Args:
            account_repo: Repository of the direction to sweep
            dao: DAO used to record batch runs (defaults to the repository's)
            clock: Source of "now"; fixed once per sweep
            deduplicate_successors: Derive successor ids from source ids
        """
        self.account_repo = account_repo
        self.dao = dao or account_repo.dao
        self.clock = clock
        self.deduplicate_successors = deduplicate_successors

    @property
    def direction(self):
        return self.account_repo.policy.direction

    def _record_unreadable(self, batch: BatchManager) -> None:
        skipped = self.account_repo.skipped_on_last_query
        if skipped:
            logger.warning(f"{skipped} {self.direction.value} documents could not be read and count as errors")
            batch.record_unreadable(skipped)

    async def refresh_all_statuses(self) -> BatchRun:
        """
        Re-evaluate status and interest of every active open account.

        Running it twice on the same day writes nothing the second time,
        because interest depends only on today's date and the account fields.

        Returns:
            The finished batch run record
        """
        batch = BatchManager(self.dao, SweepTask.REFRESH_STATUSES, self.direction)
        await batch.start_batch_run()
        now = self.clock()

        try:
            accounts = await self.account_repo.get_non_terminal()
        except Exception as e:
            logger.error(f"Could not load open {self.direction.value} accounts: {str(e)}")
            await batch.finish_batch_run(aborted=True)
            raise

        self._record_unreadable(batch)
        logger.info(f"Refreshing status of {len(accounts)} open {self.direction.value} accounts")

        for account in accounts:
            batch.increment_processed_count()
            try:
                refreshed, changed = await self.account_repo.apply(
                    account.account_uuid, lambda acc: acc.refresh_status(now), now=now
                )
                if changed:
                    batch.increment_updated_count()
                    logger.info(
                        f"Account {refreshed.number}: status={refreshed.status.value}, interest={refreshed.interest}"
                    )
            except Exception as e:
                batch.increment_error_count()
                logger.error(f"Error refreshing status of account {account.number} ({account.account_uuid}): {str(e)}")

        await batch.finish_batch_run()
        return batch.batch_run

    async def process_recurring_accounts(self) -> BatchRun:
        """
        Insert the next installment of every active, recurring, settled account.

        Source accounts are left untouched. With successor deduplication on, a
        source whose successor already exists is skipped.

        Returns:
            The finished batch run record
        """
        batch = BatchManager(self.dao, SweepTask.PROCESS_RECURRING, self.direction)
        await batch.start_batch_run()
        now = self.clock()

        try:
            sources = await self.account_repo.get_recurring_settled()
        except Exception as e:
            logger.error(f"Could not load recurring {self.direction.value} accounts: {str(e)}")
            await batch.finish_batch_run(aborted=True)
            raise

        self._record_unreadable(batch)
        logger.info(f"Processing {len(sources)} settled recurring {self.direction.value} accounts")

        for source in sources:
            batch.increment_processed_count()
            try:
                successor = source.generate_next_installment(now)
                if successor is None:
                    logger.warning(f"Account {source.number} is recurring but has no recurrence kind")
                    continue

                created = await self.account_repo.create_successor(
                    source, successor, deduplicate=self.deduplicate_successors
                )
                if created:
                    batch.increment_updated_count()
                    logger.info(f"Generated {created.number} due {created.due_date} from {source.number}")
            except Exception as e:
                batch.increment_error_count()
                logger.error(f"Error generating next installment of {source.number} ({source.account_uuid}): {str(e)}")

        await batch.finish_batch_run()
        return batch.batch_run
