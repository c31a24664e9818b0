"""
Transactional document persistence.

The store is reached only through five operations (begin, add chunk, commit,
rollback, match). DocumentTransaction layers an explicit state machine over
the first four so that a document's chunk set is all-or-nothing:

    PENDING -> CHUNKS_WRITTEN -> COMMITTED
        \\            \\
         +-------------+--> ROLLED_BACK
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from packages.utils.errors import RollbackError
from packages.utils.supabase_client import SupabaseRestClient

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Persistence boundary used by the document processor."""

    async def begin_document_processing(
        self,
        title: str,
        content: str,
        metadata: Dict[str, Any],
        user_id: str,
        team_id: Optional[str],
        is_private: bool,
        department: Optional[str],
    ) -> Dict[str, Any]: ...

    async def add_document_chunk(
        self,
        document_id: str,
        content: str,
        embedding: List[float],
        metadata: Dict[str, Any],
        user_id: str,
        team_id: Optional[str],
        department: Optional[str],
    ) -> Dict[str, Any]: ...

    async def commit_document_processing(self, document_id: str) -> None: ...

    async def rollback_document_processing(self, document_id: str) -> None: ...

    async def match_documents(
        self,
        query_embedding: List[float],
        match_threshold: float,
        match_count: int,
        user_id: str,
        department: Optional[str],
    ) -> List[Dict[str, Any]]: ...


class SupabaseDocumentStore:
    """DocumentStore backed by Supabase RPC functions."""

    def __init__(self, rest_client: Optional[SupabaseRestClient] = None):
        self._rest_client = rest_client

    @property
    def rest_client(self) -> SupabaseRestClient:
        """Lazy load the REST client on first access."""
        if self._rest_client is None:
            self._rest_client = SupabaseRestClient()
        return self._rest_client

    async def begin_document_processing(self, title, content, metadata, user_id, team_id, is_private, department):
        return await self.rest_client.begin_document_processing(
            title, content, metadata, user_id, team_id, is_private, department
        )

    async def add_document_chunk(self, document_id, content, embedding, metadata, user_id, team_id, department):
        return await self.rest_client.add_document_chunk(
            document_id, content, embedding, metadata, user_id, team_id, department
        )

    async def commit_document_processing(self, document_id):
        await self.rest_client.commit_document_processing(document_id)

    async def rollback_document_processing(self, document_id):
        await self.rest_client.rollback_document_processing(document_id)

    async def match_documents(self, query_embedding, match_threshold, match_count, user_id, department):
        return await self.rest_client.match_documents(
            query_embedding, match_threshold, match_count, user_id, department
        )


class TransactionState(str, Enum):
    PENDING = "pending"
    CHUNKS_WRITTEN = "chunks_written"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class DocumentTransaction:
    """
    One document's begin/add/commit/rollback cycle.

    Usage:
        tx = await DocumentTransaction.begin(store, title=..., content=..., user_id=...)
        try:
            for chunk in chunks:
                await tx.add_chunk(chunk, embedding)
            await tx.commit()
        except BaseException as e:
            await tx.rollback(cause=e)
            raise
    """

    def __init__(
        self,
        store: DocumentStore,
        document: Dict[str, Any],
        user_id: str,
        team_id: Optional[str] = None,
        department: Optional[str] = None,
    ):
        self.store = store
        self.document = document
        self.document_id = str(document["id"])
        self.user_id = user_id
        self.team_id = team_id
        self.department = department
        self.state = TransactionState.PENDING
        self.chunks: List[Dict[str, Any]] = []

    @classmethod
    async def begin(
        cls,
        store: DocumentStore,
        *,
        title: str,
        content: str,
        user_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        team_id: Optional[str] = None,
        is_private: bool = False,
        department: Optional[str] = None,
    ) -> "DocumentTransaction":
        """Create the pending document and return its open transaction."""
        document = await store.begin_document_processing(
            title, content, metadata or {}, user_id, team_id, is_private, department
        )
        if not document:
            raise RuntimeError("Failed to create document")

        logger.debug(f"Transaction opened for document {document['id']}")
        return cls(store, document, user_id, team_id, department)

    @property
    def is_open(self) -> bool:
        return self.state in (TransactionState.PENDING, TransactionState.CHUNKS_WRITTEN)

    def _require_open(self, operation: str) -> None:
        if not self.is_open:
            raise RuntimeError(
                f"Cannot {operation} document {self.document_id} in state {self.state.value}"
            )

    async def add_chunk(self, content: str, embedding: List[float]) -> Dict[str, Any]:
        """Write one chunk; chunks inherit the pending document's metadata."""
        self._require_open("add chunk to")
        chunk = await self.store.add_document_chunk(
            self.document_id,
            content,
            embedding,
            self.document.get("metadata") or {},
            self.user_id,
            self.team_id,
            self.department,
        )
        self.chunks.append(chunk)
        self.state = TransactionState.CHUNKS_WRITTEN
        return chunk

    async def commit(self) -> None:
        self._require_open("commit")
        await self.store.commit_document_processing(self.document_id)
        self.state = TransactionState.COMMITTED
        logger.info(f"Committed document {self.document_id} ({len(self.chunks)} chunks)")

    async def rollback(self, cause: Optional[BaseException] = None) -> None:
        """
        Discard every chunk written so far.

        Safe to call more than once and with zero chunks written.

        Raises:
            RuntimeError: If the transaction was already committed
            RollbackError: If the store rollback fails (chained to the store
                error, carrying ``cause`` as ``original``)
        """
        if self.state == TransactionState.ROLLED_BACK:
            return
        if self.state == TransactionState.COMMITTED:
            raise RuntimeError(f"Cannot roll back committed document {self.document_id}")

        try:
            await self.store.rollback_document_processing(self.document_id)
        except Exception as e:
            logger.error(f"Rollback failed for document {self.document_id}: {e}")
            raise RollbackError(self.document_id, original=cause) from e

        self.state = TransactionState.ROLLED_BACK
        self.chunks = []
        logger.warning(f"Rolled back document {self.document_id}")
