"""Counterparty repository: display names of suppliers, clients and users."""

import logging
from typing import Dict, Optional, Tuple

from src.config import COUNTERPARTY_NAME_FIELDS
from src.repositories.firestore_dao import FirestoreDAO

logger = logging.getLogger(__name__)

class CounterpartyRepository:
    """Looks up the name that accounts denormalize from master data."""

    def __init__(self, dao: FirestoreDAO):
        """
        Initialize the repository.

        Args:
            dao: Firestore DAO for database operations
        """
        self.dao = dao
        self._cache: Dict[Tuple[str, str], Optional[str]] = {}

    async def get_display_name(self, collection: str, entity_uuid: Optional[str]) -> Optional[str]:
        """
        Get the display name of a supplier, client or user.

        Args:
            collection: Master data collection (suppliers, clients, users)
            entity_uuid: Document ID; empty values resolve to None

        Returns:
            Display name, or None when the document is missing or inactive
        """
        if not entity_uuid:
            return None

        key = (collection, entity_uuid)
        if key in self._cache:
            return self._cache[key]

        doc = await self.dao.get_document(collection, entity_uuid)
        if not doc or doc.get("is_active") is False:
            logger.warning(f"No active {collection} record found for {entity_uuid}")
            name = None
        else:
            name_field = COUNTERPARTY_NAME_FIELDS.get(collection, "name")
            name = doc.get(name_field) or doc.get("name")

        self._cache[key] = name
        return name

    def clear_cache(self) -> None:
        self._cache = {}
