"""
Lightweight document pipeline over a single provider.

Chunks and embeds documents without transactional persistence. Useful for
previews, tests and callers that store embeddings themselves.
"""

import logging
import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from packages.config import get_settings
from packages.ingestion.chunker import ChunkingConfig, generate_chunks
from packages.ingestion.models import DocumentMatch
from packages.ingestion.persistence.document_store import DocumentStore
from packages.providers.base import AIProvider

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class Document(BaseModel):
    id: Optional[str] = None
    title: str
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DocumentChunk(BaseModel):
    id: str
    document_id: str
    content: str
    embedding: List[float]
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ProcessResult(BaseModel):
    id: str
    chunks: List[DocumentChunk] = Field(default_factory=list)
    status: Literal["success", "error"]
    error: Optional[str] = None


class DocumentSystem:
    """Chunk + embed documents with one provider."""

    def __init__(
        self,
        provider: AIProvider,
        store: Optional[DocumentStore] = None,
        chunking: Optional[ChunkingConfig] = None,
    ):
        self.provider = provider
        self.store = store
        self.chunking = chunking

    async def process_document(self, document: Document, user_id: str) -> ProcessResult:
        """
        Chunk a document and embed each chunk in order.

        Raises:
            InvalidInputError: If the document is empty
        """
        document_id = document.id or _new_id()
        chunks = generate_chunks(document.content, user_id, document.metadata, self.chunking)

        processed: List[DocumentChunk] = []
        for chunk in chunks:
            response = await self.provider.generate_embedding(chunk.content)
            processed.append(
                DocumentChunk(
                    id=_new_id(),
                    document_id=document_id,
                    content=chunk.content,
                    embedding=list(response.embedding),
                    metadata=chunk.metadata,
                )
            )

        logger.info(f"Processed document {document_id}: {len(processed)} chunks")
        return ProcessResult(id=document_id, chunks=processed, status="success")

    async def process_batch(self, documents: List[Document], user_id: str) -> List[ProcessResult]:
        """Process documents one after another; failures become error results."""
        results: List[ProcessResult] = []
        for document in documents:
            try:
                results.append(await self.process_document(document, user_id))
            except Exception as e:
                logger.error(f"Failed to process document '{document.title}': {e}")
                results.append(
                    ProcessResult(
                        id=document.id or _new_id(),
                        status="error",
                        error=str(e) or "Unknown error",
                    )
                )
        return results

    async def search_similar(
        self, query: str, user_id: str, department: Optional[str] = None
    ) -> List[DocumentMatch]:
        """Embed the query and search the store, if one is attached."""
        if self.store is None:
            return []

        response = await self.provider.generate_embedding(query)

        search = get_settings().search
        rows = await self.store.match_documents(
            response.embedding, search.match_threshold, search.match_count, user_id, department
        )
        return [DocumentMatch.model_validate(row) for row in rows]
