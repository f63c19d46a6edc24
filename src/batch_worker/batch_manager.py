"""Batch run management functionality for the account sweeps."""

import logging
import uuid
from typing import Optional

from src.models.schemas import AccountDirection, BatchRun, BatchRunStatus, SweepTask
from src.utils.clock import utc_now

logger = logging.getLogger(__name__)


class BatchManager:
    """
    Handles batch run bookkeeping for one sweep over one account direction.
    """

    def __init__(self, dao, task: SweepTask, direction: AccountDirection):
        """
        Initialize the batch manager.

        Args:
            dao: Firestore DAO instance
            task: Which sweep is running
            direction: Payable or receivable
        """
        self.dao = dao
        self.task = task
        self.direction = direction
        self.batch_run: Optional[BatchRun] = None
        self.accounts_processed = 0
        self.accounts_updated = 0
        self.errors = 0

    async def start_batch_run(self) -> str:
        """
        Start a new batch run and log it.

        Returns:
            Batch run ID
        """
        try:
            run_id = str(uuid.uuid4())

            self.batch_run = BatchRun(
                run_id=run_id,
                task=self.task,
                direction=self.direction,
                start_ts=utc_now(),
                status=BatchRunStatus.PARTIAL,  # Use PARTIAL for in-progress runs
            )

            await self.dao.create_batch_run(self.batch_run)
            logger.info(f"Started {self.task.value} run {run_id} for {self.direction.value} accounts")

            return run_id

        except Exception as e:
            logger.error(f"Failed to start batch run: {str(e)}")
            raise

    def final_status(self, aborted: bool = False) -> BatchRunStatus:
        if aborted:
            return BatchRunStatus.FAILED
        if self.errors == 0:
            return BatchRunStatus.SUCCESS
        if self.errors >= self.accounts_processed:
            return BatchRunStatus.FAILED
        return BatchRunStatus.PARTIAL

    async def finish_batch_run(self, aborted: bool = False) -> None:
        """
        Complete the batch run and update the status.

        Args:
            aborted: True when the sweep stopped before visiting its accounts
        """
        if not self.batch_run:
            logger.warning("finish_batch_run called without active batch run")
            return

        self.batch_run.end_ts = utc_now()
        self.batch_run.status = self.final_status(aborted)
        self.batch_run.accounts_processed = self.accounts_processed
        self.batch_run.accounts_updated = self.accounts_updated
        self.batch_run.errors = self.errors

        try:
            await self.dao.update_batch_run(self.batch_run.run_id, {
                "end_ts": self.batch_run.end_ts,
                "status": self.batch_run.status,
                "accounts_processed": self.accounts_processed,
                "accounts_updated": self.accounts_updated,
                "errors": self.errors
            })

            logger.info(
                f"Completed {self.task.value} run {self.batch_run.run_id} ({self.batch_run.status.value}): "
                f"{self.accounts_processed} processed, {self.accounts_updated} updated, {self.errors} errors"
            )

        except Exception as e:
            logger.error(f"Failed to finish batch run: {str(e)}")

    def increment_processed_count(self):
        """
        Increment the count of visited accounts.
        """
        self.accounts_processed += 1

    def increment_updated_count(self):
        """
        Increment the count of accounts written (status refreshed or successor created).
        """
        self.accounts_updated += 1

    def increment_error_count(self):
        """
        Increment the error count.
        """
        self.errors += 1

    def record_unreadable(self, count: int):
        """
        Count documents the sweep loaded but could not convert: each is visited and failed.
        """
        self.accounts_processed += count
        self.errors += count
