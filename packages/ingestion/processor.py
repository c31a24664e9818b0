"""
Document processor: chunking, embedding and transactional persistence.

Per document:
    verify access -> validate -> chunk -> begin
        -> (embed -> add chunk)* -> commit
        -> rollback on any failure, then re-raise

Batches run in sequential windows of ``concurrency`` documents. Documents in
a window run concurrently and fail independently; the abort signal is only
checked at window boundaries.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    List,
    Literal,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

from packages.config import BatchConfig, SearchConfig, get_settings
from packages.ingestion.access import CurrentUserLookup, supabase_user_lookup, verify_access
from packages.ingestion.chunker import ChunkingConfig, split_into_chunks
from packages.ingestion.models import (
    DocumentInput,
    DocumentMatch,
    ProcessedChunk,
    ProcessedDocument,
    ProcessingProgress,
    ProcessingStatus,
)
from packages.ingestion.persistence.document_store import (
    DocumentStore,
    DocumentTransaction,
    SupabaseDocumentStore,
)
from packages.providers.base import AIProvider
from packages.providers.factory import ProviderFactory, get_provider_factory
from packages.utils.errors import BatchAbortedError, InvalidInputError, RateLimitError
from packages.utils.supabase_client import SupabaseRestClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[ProcessingProgress], None]


@dataclass
class SettledResult(Generic[T]):
    """Outcome of one batch item: a value or the error that rejected it."""

    status: Literal["fulfilled", "rejected"]
    value: Optional[T] = None
    reason: Optional[BaseException] = None

    @property
    def fulfilled(self) -> bool:
        return self.status == "fulfilled"

    @classmethod
    def from_outcome(cls, outcome: Union[T, BaseException]) -> "SettledResult[T]":
        if isinstance(outcome, BaseException):
            return cls(status="rejected", reason=outcome)
        return cls(status="fulfilled", value=outcome)


def _is_rate_limited(error: BaseException) -> bool:
    return isinstance(error, RateLimitError) or "rate limit exceeded" in str(error).lower()


class DocumentProcessor:
    """
    Turns documents into committed, embedded chunk sets.

    Collaborators are injected:
    - store: transactional persistence boundary
    - embedder: any AIProvider (only generate_embedding is used)
    - current_user: resolves the caller for access checks
    """

    def __init__(
        self,
        store: DocumentStore,
        embedder: AIProvider,
        current_user: CurrentUserLookup,
        chunking: Optional[ChunkingConfig] = None,
        batch: Optional[BatchConfig] = None,
        search: Optional[SearchConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        app_settings = get_settings()
        self.store = store
        self.embedder = embedder
        self.current_user = current_user
        self.chunking = chunking or ChunkingConfig()
        self.batch = batch or app_settings.batch
        self.search = search or app_settings.search
        self._sleep = sleep
        self._progress = ProcessingProgress()

    @classmethod
    async def from_settings(
        cls,
        user_id: str,
        factory: Optional[ProviderFactory] = None,
        rest_client: Optional[SupabaseRestClient] = None,
    ) -> "DocumentProcessor":
        """
        Wire a processor from environment settings.

        Uses the first available provider in the configured order, the
        Supabase document store and a ``users`` table lookup for ``user_id``.
        """
        app_settings = get_settings()
        factory = factory or get_provider_factory()
        embedder = await factory.get_available_provider(
            app_settings.providers.configs(), order=app_settings.providers.order
        )
        rest_client = rest_client or SupabaseRestClient(app_settings.supabase)
        return cls(
            store=SupabaseDocumentStore(rest_client),
            embedder=embedder,
            current_user=supabase_user_lookup(rest_client, user_id),
        )

    def get_max_chunk_size(self) -> int:
        return self.chunking.chunk_size

    def get_progress(self) -> ProcessingProgress:
        """Snapshot of the current batch progress."""
        return self._progress.model_copy()

    def _notify(self, on_progress: Optional[ProgressCallback]) -> None:
        if on_progress is not None:
            on_progress(self._progress.model_copy())

    async def process_document(
        self,
        title: str,
        content: str,
        user_id: str,
        team_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        is_private: bool = False,
    ) -> ProcessedDocument:
        """
        Chunk, embed and persist one document atomically.

        Args:
            title: Document title
            content: Raw document text
            user_id: Owner of the document
            team_id: Owning team, if any
            metadata: Document metadata (inherited by every chunk)
            is_private: Hide the document from other users

        Returns:
            The committed document with its chunks

        Raises:
            UnauthorizedError: If the caller fails the access check
            InvalidInputError: If the content is empty
            RollbackError: If processing failed and the rollback failed too
        """
        user = await verify_access(self.current_user, "write")

        if not content or not content.strip():
            raise InvalidInputError("Document content cannot be empty")

        chunks = split_into_chunks(content, self.chunking)
        logger.info(f"Created {len(chunks)} chunks from document '{title}'")

        tx = await DocumentTransaction.begin(
            self.store,
            title=title,
            content=content,
            user_id=user_id,
            metadata=metadata or {},
            team_id=team_id,
            is_private=is_private,
            department=user.department,
        )
        chunk_metadata = tx.document.get("metadata") or metadata or {}

        processed: List[ProcessedChunk] = []
        try:
            for index, chunk in enumerate(chunks):
                response = await self.embedder.generate_embedding(chunk)
                logger.debug(f"Generated embedding for chunk {index}: {chunk[:50]}...")

                stored = await tx.add_chunk(chunk, response.embedding)
                processed.append(
                    ProcessedChunk.model_validate(
                        {
                            **stored,
                            "document_id": tx.document_id,
                            "content": chunk,
                            "embedding": response.embedding,
                            "metadata": chunk_metadata,
                        }
                    )
                )

            await tx.commit()
        except BaseException as e:
            # Cancellation leaves written chunks behind unless it rolls back too
            logger.error(f"Error processing document '{title}': {e!r}")
            await tx.rollback(cause=e)
            raise

        return ProcessedDocument(
            id=tx.document_id,
            title=title,
            content=content,
            metadata=chunk_metadata,
            is_private=is_private,
            team_id=team_id,
            chunks=processed,
        )

    async def _process_with_retry(
        self,
        document: DocumentInput,
        user_id: str,
        team_id: Optional[str],
        on_progress: Optional[ProgressCallback],
    ) -> ProcessedDocument:
        """Process one batch item, retrying only when rate limited."""
        attempt = 0
        while True:
            try:
                result = await self.process_document(
                    document.title,
                    document.content,
                    user_id,
                    document.team_id or team_id,
                    document.metadata,
                    document.is_private,
                )
            except Exception as e:
                attempt += 1
                if _is_rate_limited(e) and attempt < self.batch.max_retries:
                    logger.warning(
                        f"Rate limited on '{document.title}' "
                        f"(attempt {attempt}/{self.batch.max_retries}), "
                        f"retrying in {self.batch.retry_delay}s"
                    )
                    await self._sleep(self.batch.retry_delay)
                    continue
                raise

            self._progress.processed_documents += 1
            self._progress.total_chunks += len(result.chunks)
            self._progress.processed_chunks += len(result.chunks)
            self._notify(on_progress)
            return result

    async def process_batch(
        self,
        documents: Sequence[Union[DocumentInput, Mapping[str, Any]]],
        user_id: str,
        team_id: Optional[str] = None,
        *,
        concurrency: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        abort_signal: Optional[asyncio.Event] = None,
    ) -> List[SettledResult[ProcessedDocument]]:
        """
        Process documents in windows of ``concurrency``.

        Args:
            documents: DocumentInput models or plain dicts with the same keys
            user_id: Owner of every document
            team_id: Team used for documents without their own team_id
            concurrency: Documents per window (batch settings if omitted)
            on_progress: Receives a progress snapshot after every processed
                document and once at the end
            abort_signal: When set, the batch stops before the next window

        Returns:
            One SettledResult per document, in submission order

        Raises:
            BatchAbortedError: If ``abort_signal`` was set at a window boundary
        """
        concurrency = self.batch.concurrency if concurrency is None else concurrency
        if concurrency < 1:
            raise ValueError("Concurrency must be at least 1")

        items = [
            doc if isinstance(doc, DocumentInput) else DocumentInput.model_validate(doc)
            for doc in documents
        ]
        self._progress = ProcessingProgress(
            total_documents=len(items), status=ProcessingStatus.PROCESSING
        )
        logger.info(f"Processing batch of {len(items)} documents (concurrency={concurrency})")

        results: List[SettledResult[ProcessedDocument]] = []
        try:
            for start in range(0, len(items), concurrency):
                if abort_signal is not None and abort_signal.is_set():
                    raise BatchAbortedError()

                window = items[start : start + concurrency]
                outcomes = await asyncio.gather(
                    *(self._process_with_retry(doc, user_id, team_id, on_progress) for doc in window),
                    return_exceptions=True,
                )
                for doc, outcome in zip(window, outcomes):
                    if isinstance(outcome, BaseException):
                        logger.error(f"Document '{doc.title}' failed: {outcome}")
                    results.append(SettledResult.from_outcome(outcome))

                if start + concurrency < len(items):
                    await self._sleep(self.batch.window_delay)
        except Exception as e:
            self._progress.status = ProcessingStatus.ERROR
            self._progress.error = str(e) or "Unknown error"
            self._notify(on_progress)
            logger.error(f"Batch processing failed: {self._progress.error}")
            raise

        self._progress.status = ProcessingStatus.COMPLETED
        self._notify(on_progress)
        logger.info(
            f"Batch complete: {self._progress.processed_documents}/{len(items)} documents, "
            f"{self._progress.processed_chunks} chunks"
        )
        return results

    async def search_similar_documents(
        self,
        query: str,
        user_id: str,
        threshold: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[DocumentMatch]:
        """
        Find chunks similar to a query, filtered by ownership and department.

        Args:
            query: Search text
            user_id: Caller
            threshold: Minimum similarity (search settings if omitted)
            limit: Maximum number of matches (search settings if omitted)
        """
        user = await verify_access(self.current_user, "read")

        threshold = self.search.match_threshold if threshold is None else threshold
        limit = self.search.match_count if limit is None else limit

        response = await self.embedder.generate_embedding(query)
        rows = await self.store.match_documents(
            response.embedding, threshold, limit, user_id, user.department
        )

        if not rows:
            logger.info(
                f"No matches for query '{query[:50]}' "
                f"(threshold={threshold}, limit={limit}, department={user.department})"
            )
        return [DocumentMatch.model_validate(row) for row in rows]
