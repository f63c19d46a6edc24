"""Main Orchestrator for the Account Sweep Worker

This is the entry point called by the external scheduler. It refreshes the
status and interest of open payable/receivable accounts and generates the
next installment of settled recurring accounts.
"""

import sys
import logging
import asyncio
import argparse
from dotenv import load_dotenv
from os.path import abspath, dirname

# Add project root to Python path
project_root = dirname(dirname(abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Load environment variables from .env file
load_dotenv()

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from src.batch_worker import SweepWorker
from src.models.schemas import BatchRunStatus


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Accounts Payable/Receivable Sweep Worker")
    parser.add_argument("--kind", choices=["payable", "receivable", "all"], default="all",
                        help="Which accounts to sweep")
    parser.add_argument("--task", choices=["refresh", "recurring", "all"], default="all",
                        help="refresh: overdue status and interest; recurring: next installments")
    parser.add_argument("--test", action="store_true", help="Use the dev_ collection prefix")
    return parser


async def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        worker = SweepWorker(is_test=args.test, kind=args.kind, task=args.task)
        runs = await worker.run()
    except Exception as e:
        logger.error(f"Sweep worker failed: {str(e)}")
        return 1

    if any(run.status == BatchRunStatus.FAILED for run in runs):
        logger.error("At least one sweep failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
