"""
Firestore Data Access Object for handling all database operations.

This module provides a unified interface for interacting with Firestore
collections. Besides plain reads and writes it offers the two primitives the
account core needs for concurrent callers: a version-checked replace and a
transactional counter.
"""

import os
import enum
import logging
from typing import Dict, Any, List, Optional, Union
from datetime import datetime, date
from decimal import Decimal
from google.cloud import firestore
from google.cloud.firestore_v1 import AsyncClient
from google.api_core.exceptions import AlreadyExists
from dataclasses import asdict, is_dataclass

from src.config import BATCH_RUN_COLLECTION, DEFAULT_FIRESTORE_DATABASE_ID
from src.exceptions import ConcurrentModificationError, NotFoundError
from src.utils.clock import utc_now

logger = logging.getLogger(__name__)


class DocumentExistsError(Exception):
    """Raised by create_document when the document id is already taken."""

    def __init__(self, collection: str, document_id: str):
        super().__init__(f"Document {document_id} already exists in {collection}")
        self.collection = collection
        self.document_id = document_id


class FirestoreDAO:
    """Data Access Object for Firestore operations."""

    def __init__(self, project_id: str = None, collection_prefix: str = "", database_id: str = None):
        """
        Initialize the Firestore DAO.

        Args:
            project_id: Optional Firestore project ID (defaults to env variable)
            collection_prefix: Optional prefix for collections (for testing)
            database_id: Optional Firestore database ID (defaults to env variable or '(default)')
        """
        self.project_id = project_id or os.environ.get("FIRESTORE_PROJECT_ID")
        if not self.project_id:
            raise ValueError("Firestore project ID not provided and FIRESTORE_PROJECT_ID env variable not set")

        self.database_id = database_id or os.environ.get("FIRESTORE_DATABASE_ID", DEFAULT_FIRESTORE_DATABASE_ID)

        self.db = AsyncClient(project=self.project_id, database=self.database_id)
        self.collection_prefix = collection_prefix
        logger.info(f"Initialized FirestoreDAO with project {self.project_id}, database {self.database_id}, prefix: '{collection_prefix}'")

    def _get_collection_name(self, name: str) -> str:
        """Get the full collection name with prefix."""
        return f"{self.collection_prefix}{name}"

    def _convert_value(self, value: Any) -> Any:
        """Convert a single value to a Firestore-compatible type."""
        if isinstance(value, Decimal):
            # Firestore has no decimal type; strings keep every digit
            return str(value)
        if isinstance(value, enum.Enum):
            return value.value
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            # Convert date objects to datetime at midnight
            return datetime.combine(value, datetime.min.time())
        if isinstance(value, dict):
            return {key: self._convert_value(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._convert_value(item) for item in value]
        return value

    def _convert_to_dict(self, obj: Any) -> Dict[str, Any]:
        """Convert a dataclass object or dictionary to a dictionary for Firestore."""
        if is_dataclass(obj):
            data_dict = asdict(obj)
        elif isinstance(obj, dict):
            data_dict = obj
        else:
            raise TypeError(f"Object of type {type(obj)} is not supported for Firestore conversion")
        return {key: self._convert_value(value) for key, value in data_dict.items()}

    async def add_document(self, collection: str, document_id: str, data: Union[Dict[str, Any], Any]) -> str:
        """
        Add a document to a collection with a specific ID, overwriting any existing one.

        Args:
            collection: Collection name
            document_id: Document ID
            data: Document data (dict or dataclass)

        Returns:
            Document ID
        """
        try:
            collection_ref = self.db.collection(self._get_collection_name(collection))
            data_dict = self._convert_to_dict(data)

            doc_ref = collection_ref.document(document_id)
            await doc_ref.set(data_dict)
            logger.info(f"Added document {document_id} to {collection}")
            return document_id

        except Exception as e:
            logger.error(f"Error adding document to {collection}: {str(e)}")
            raise

    async def create_document(self, collection: str, document_id: str, data: Union[Dict[str, Any], Any]) -> str:
        """
        Create a document only if the ID is free.

        Args:
            collection: Collection name
            document_id: Document ID
            data: Document data (dict or dataclass)

        Returns:
            Document ID

        Raises:
            DocumentExistsError: If a document with this ID already exists
        """
        try:
            doc_ref = self.db.collection(self._get_collection_name(collection)).document(document_id)
            await doc_ref.create(self._convert_to_dict(data))
            logger.info(f"Created document {document_id} in {collection}")
            return document_id

        except AlreadyExists:
            logger.info(f"Document {document_id} already exists in {collection}")
            raise DocumentExistsError(collection, document_id)
        except Exception as e:
            logger.error(f"Error creating document {document_id} in {collection}: {str(e)}")
            raise

    async def update_document(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        """
        Update fields of an existing document.

        Args:
            collection: Collection name
            document_id: Document ID
            data: Updated fields
        """
        try:
            doc_ref = self.db.collection(self._get_collection_name(collection)).document(document_id)
            data_dict = self._convert_to_dict(data)

            # Add updated_at timestamp
            if 'updated_at' not in data_dict:
                data_dict['updated_at'] = utc_now()

            await doc_ref.update(data_dict)
            logger.info(f"Updated document {document_id} in {collection}")

        except Exception as e:
            logger.error(f"Error updating document {document_id} in {collection}: {str(e)}")
            raise

    async def replace_document_if_version(self, collection: str, document_id: str,
                                          data: Union[Dict[str, Any], Any], expected_version: int) -> None:
        """
        Replace a document only if its stored ``version`` still equals ``expected_version``.

        The read and the write run in one Firestore transaction with a single
        attempt, so a concurrent writer makes this call fail instead of being
        silently overwritten.

        Args:
            collection: Collection name
            document_id: Document ID
            data: Full replacement document; must carry the new version
            expected_version: Version read before the caller mutated the data

        Raises:
            NotFoundError: Document does not exist
            ConcurrentModificationError: Stored version differs
        """
        doc_ref = self.db.collection(self._get_collection_name(collection)).document(document_id)
        data_dict = self._convert_to_dict(data)
        transaction = self.db.transaction(max_attempts=1)

        @firestore.async_transactional
        async def _replace(transaction):
            snapshot = await doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError(collection, document_id)
            current_version = (snapshot.to_dict() or {}).get("version", 0)
            if current_version != expected_version:
                raise ConcurrentModificationError(document_id, expected_version, current_version)
            transaction.set(doc_ref, data_dict)

        try:
            await _replace(transaction)
            logger.info(f"Replaced document {document_id} in {collection} (version {expected_version} -> {data_dict.get('version')})")
        except (NotFoundError, ConcurrentModificationError) as e:
            logger.warning(f"Replace of {document_id} in {collection} rejected: {str(e)}")
            raise
        except Exception as e:
            logger.error(f"Error replacing document {document_id} in {collection}: {str(e)}")
            raise

    async def increment_counter(self, collection: str, counter_id: str,
                                seed_collection: Optional[str] = None, seed_field: Optional[str] = None) -> int:
        """
        Atomically increment a counter document and return the new value.

        When the counter does not exist yet it is seeded with the highest
        ``seed_field`` value found in ``seed_collection``, so counters can be
        introduced on collections that already hold numbered documents.

        Args:
            collection: Counter collection name
            counter_id: Counter document ID
            seed_collection: Optional collection to seed from
            seed_field: Integer field to take the maximum of

        Returns:
            The incremented value
        """
        counter_ref = self.db.collection(self._get_collection_name(collection)).document(counter_id)
        transaction = self.db.transaction()

        @firestore.async_transactional
        async def _increment(transaction):
            snapshot = await counter_ref.get(transaction=transaction)
            if snapshot.exists:
                current = (snapshot.to_dict() or {}).get("value", 0)
            elif seed_collection and seed_field:
                current = await self._max_field_value(seed_collection, seed_field, transaction)
            else:
                current = 0
            new_value = current + 1
            transaction.set(counter_ref, {"value": new_value, "updated_at": utc_now()})
            return new_value

        try:
            value = await _increment(transaction)
            logger.info(f"Counter {counter_id} in {collection} advanced to {value}")
            return value
        except Exception as e:
            logger.error(f"Error incrementing counter {counter_id} in {collection}: {str(e)}")
            raise

    async def _max_field_value(self, collection: str, field: str, transaction=None) -> int:
        """Highest integer value of ``field`` in a collection, 0 when empty."""
        query = (
            self.db.collection(self._get_collection_name(collection))
            .order_by(field, direction=firestore.Query.DESCENDING)
            .limit(1)
        )
        snapshots = await query.get(transaction=transaction)
        for snapshot in snapshots:
            return int((snapshot.to_dict() or {}).get(field) or 0)
        return 0

    async def get_document(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        """
        Get a document by ID.

        Args:
            collection: Collection name
            document_id: Document ID

        Returns:
            Document data or None if not found
        """
        try:
            doc_ref = self.db.collection(self._get_collection_name(collection)).document(document_id)
            doc = await doc_ref.get()

            if doc.exists:
                return doc.to_dict()
            else:
                logger.warning(f"Document {document_id} not found in {collection}")
                return None

        except Exception as e:
            logger.error(f"Error getting document {document_id} from {collection}: {str(e)}")
            raise

    async def query_documents(self, collection: str, filters: List[tuple] = None,
                              order_by: str = None, limit: int = None, desc: bool = False) -> List[Dict[str, Any]]:
        """
        Query documents with filters.

        Args:
            collection: Collection name
            filters: List of (field, operator, value) tuples
            order_by: Field to order by
            limit: Maximum number of results
            desc: Order descending

        Returns:
            List of document dictionaries
        """
        try:
            query = self.db.collection(self._get_collection_name(collection))

            if filters:
                for field, op, value in filters:
                    query = query.where(field, op, self._convert_value(value))

            if order_by:
                if desc:
                    query = query.order_by(order_by, direction=firestore.Query.DESCENDING)
                else:
                    query = query.order_by(order_by)

            if limit:
                query = query.limit(limit)

            results = []
            async for doc in query.stream():
                results.append(doc.to_dict())

            logger.info(f"Query returned {len(results)} results from {collection}")
            return results

        except Exception as e:
            logger.error(f"Error querying {collection}: {str(e)}")
            raise

    # Processing metadata methods
    async def create_batch_run(self, batch_run: Any) -> str:
        """Create a new batch run record."""
        return await self.add_document(BATCH_RUN_COLLECTION, batch_run.run_id, batch_run)

    async def update_batch_run(self, run_id: str, updates: Dict[str, Any]) -> None:
        """Update a batch run with new data."""
        await self.update_document(BATCH_RUN_COLLECTION, run_id, updates)
