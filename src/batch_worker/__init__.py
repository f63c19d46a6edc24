"""Batch worker package for the scheduled account sweeps.

``SweepWorker`` wires the DAO and repositories for each account direction
and runs the requested sweeps one after another.
"""

import logging
from typing import List, Literal, Optional

from src.repositories.firestore_dao import FirestoreDAO
from src.repositories.account_repository import AccountRepository
from src.repositories.sequence_repository import SequenceRepository
from src.models.account import PAYABLE, RECEIVABLE
from src.models.schemas import BatchRun, BatchRunStatus

from src.batch_worker.batch_manager import BatchManager
from src.batch_worker.account_sweeper import AccountSweeper

from src.config import PROD_COLLECTION_PREFIX, TEST_COLLECTION_PREFIX

logger = logging.getLogger(__name__)

SweepKind = Literal["payable", "receivable", "all"]
SweepTaskName = Literal["refresh", "recurring", "all"]


class SweepWorker:
    """Main orchestrator for the account sweeps."""

    def __init__(self, is_test: bool = False, kind: SweepKind = "all",
                 task: SweepTaskName = "all", dao: Optional[FirestoreDAO] = None):
        """
        Initialize the sweep worker.

        Args:
            is_test: If True, use test mode with dev_ collection prefix
            kind: Which account direction(s) to sweep
            task: Which sweep(s) to run
            dao: Optional DAO, built from the environment when omitted
        """
        self.is_test = is_test
        self.kind = kind
        self.task = task
        self.collection_prefix = TEST_COLLECTION_PREFIX if is_test else PROD_COLLECTION_PREFIX

        logger.info(f"Initializing sweep worker. is_test={is_test}, kind={kind}, task={task}")

        self.dao = dao or FirestoreDAO(collection_prefix=self.collection_prefix)
        sequences = SequenceRepository(self.dao)

        policies = []
        if kind in ("payable", "all"):
            policies.append(PAYABLE)
        if kind in ("receivable", "all"):
            policies.append(RECEIVABLE)

        self.sweepers = [
            AccountSweeper(AccountRepository(self.dao, policy, sequences), self.dao)
            for policy in policies
        ]

    async def run(self) -> List[BatchRun]:
        """
        Run every requested sweep.

        Returns:
            The batch run records, one per (direction, sweep)
        """
        runs = []
        for sweeper in self.sweepers:
            # Overdue refresh first so the day's statuses are current
            if self.task in ("refresh", "all"):
                runs.append(await sweeper.refresh_all_statuses())
            if self.task in ("recurring", "all"):
                runs.append(await sweeper.process_recurring_accounts())

        failed = [run for run in runs if run.status == BatchRunStatus.FAILED]
        logger.info(f"Sweep worker finished {len(runs)} runs, {len(failed)} failed")
        return runs


__all__ = ["SweepWorker", "AccountSweeper", "BatchManager"]
