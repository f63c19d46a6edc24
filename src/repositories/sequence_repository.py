"""Repository handing out account numbers (CP-001, CR-001, ...)."""

import logging

from src.config import SEQUENCE_COLLECTION
from src.models.account import DirectionPolicy
from src.repositories.firestore_dao import FirestoreDAO

logger = logging.getLogger(__name__)

class SequenceRepository:
    """
    Sequence-number oracle backed by one Firestore counter document per prefix.

    The counter is incremented inside a transaction, so two concurrent
    creations never receive the same number.
    """

    def __init__(self, dao: FirestoreDAO):
        """Initialize with a FirestoreDAO instance."""
        self.dao = dao

    async def next_sequence(self, policy: DirectionPolicy) -> int:
        """Reserve the next integer for a direction."""
        return await self.dao.increment_counter(
            SEQUENCE_COLLECTION,
            policy.number_prefix,
            seed_collection=policy.collection,
            seed_field="sequence",
        )

    async def next_number(self, policy: DirectionPolicy) -> str:
        """
        Reserve the next account number for a direction.

        Args:
            policy: Direction policy (PAYABLE or RECEIVABLE)

        Returns:
            Formatted number such as "CR-002"
        """
        sequence = await self.next_sequence(policy)
        number = policy.format_number(sequence)
        logger.info(f"Reserved account number {number}")
        return number
