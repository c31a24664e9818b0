"""
Documentation ingestion script.

Reads Markdown/text files from a folder and runs them through
DocumentProcessor.process_batch (chunk -> embed -> transactional store).

Usage:
    python -m packages.ingestion.ingest --documents Documentation/user-manual --user-id <uuid>
"""

import argparse
import asyncio
import logging
import os
import signal
from datetime import datetime
from typing import List, Optional

from packages.config import PROJECT_ROOT
from packages.ingestion.extractors.metadata_extractor import MetadataExtractor
from packages.ingestion.models import DocumentInput, ProcessedDocument, ProcessingProgress
from packages.ingestion.processor import DocumentProcessor, SettledResult
from packages.ingestion.readers.document_reader import DocumentReader
from packages.providers.factory import get_provider_factory
from packages.utils.errors import BatchAbortedError

logger = logging.getLogger(__name__)


class DocumentationIngestion:
    """Loads documentation files and submits them as one batch."""

    def __init__(
        self,
        processor: DocumentProcessor,
        documents_folder: str,
        reader: Optional[DocumentReader] = None,
        extractor: Optional[MetadataExtractor] = None,
    ):
        self.processor = processor
        self.documents_folder = os.path.abspath(os.path.normpath(documents_folder))
        self.reader = reader or DocumentReader()
        self.extractor = extractor or MetadataExtractor()
        self.titles: List[str] = []

    def load_documents(self, is_private: bool = False) -> List[DocumentInput]:
        """Read every supported file in the folder into a DocumentInput."""
        if not os.path.isdir(self.documents_folder):
            logger.error(f"Documents folder not found: {self.documents_folder}")
            return []

        documents = []
        for path in self.reader.find_documents(self.documents_folder):
            content = self.reader.read(path)
            if content is None:
                continue

            relative_path = os.path.relpath(path, self.documents_folder)
            metadata = self.extractor.extract_metadata(content, relative_path)
            documents.append(
                DocumentInput(
                    title=self.extractor.extract_title(content, path),
                    content=content,
                    metadata=metadata,
                    is_private=is_private,
                )
            )

        logger.info(f"Loaded {len(documents)} documents from {self.documents_folder}")
        return documents

    async def ingest(
        self,
        user_id: str,
        team_id: Optional[str] = None,
        concurrency: Optional[int] = None,
        is_private: bool = False,
        abort_signal: Optional[asyncio.Event] = None,
    ) -> List[SettledResult[ProcessedDocument]]:
        documents = self.load_documents(is_private=is_private)
        if not documents:
            logger.warning(f"No supported document files found in {self.documents_folder}")
            return []

        def on_progress(progress: ProcessingProgress) -> None:
            print(
                f"Progress: {progress.processed_documents}/{progress.total_documents} documents, "
                f"{progress.processed_chunks} chunks"
            )

        results = await self.processor.process_batch(
            documents,
            user_id,
            team_id,
            concurrency=concurrency,
            on_progress=on_progress,
            abort_signal=abort_signal,
        )
        self.titles = [doc.title for doc in documents]
        return results


def print_summary(titles: List[str], results: List[SettledResult[ProcessedDocument]], elapsed: float):
    succeeded = [r for r in results if r.fulfilled]

    print("\n" + "=" * 50)
    print("INGESTION SUMMARY")
    print("=" * 50)
    print(f"Documents processed: {len(succeeded)}/{len(results)}")
    print(f"Total chunks created: {sum(len(r.value.chunks) for r in succeeded)}")
    print(f"Total errors: {len(results) - len(succeeded)}")
    print(f"Total processing time: {elapsed:.2f} seconds")
    print()

    for title, result in zip(titles, results):
        if result.fulfilled:
            print(f"✓ {title}: {len(result.value.chunks)} chunks ({result.value.id})")
        else:
            print(f"✗ {title}")
            print(f"  Error: {result.reason}")


def install_abort_handler(loop: asyncio.AbstractEventLoop, abort_signal: asyncio.Event) -> bool:
    """
    Route Ctrl-C to ``abort_signal`` so the batch stops at the next window.

    Returns:
        False if the event loop cannot install signal handlers (Windows)
    """
    try:
        loop.add_signal_handler(signal.SIGINT, abort_signal.set)
    except NotImplementedError:
        logger.warning("Signal handlers unavailable; Ctrl-C will cancel the batch immediately")
        return False
    return True


async def run_ingestion(
    ingestion: DocumentationIngestion,
    user_id: str,
    team_id: Optional[str] = None,
    concurrency: Optional[int] = None,
    is_private: bool = False,
    abort_signal: Optional[asyncio.Event] = None,
) -> bool:
    """
    Run the batch and print its summary.

    Returns:
        False if the batch was aborted before finishing
    """
    start_time = datetime.now()
    try:
        results = await ingestion.ingest(
            user_id,
            team_id=team_id,
            concurrency=concurrency,
            is_private=is_private,
            abort_signal=abort_signal,
        )
    except BatchAbortedError:
        progress = ingestion.processor.get_progress()
        print(
            f"\nIngestion interrupted by user after "
            f"{progress.processed_documents}/{progress.total_documents} documents"
        )
        return False

    elapsed = (datetime.now() - start_time).total_seconds()
    if results:
        print_summary(ingestion.titles, results, elapsed)
    return True


async def main():
    """Main function for running ingestion."""
    parser = argparse.ArgumentParser(description="Ingest documentation into the document store")
    parser.add_argument(
        "--documents",
        "-d",
        default=str(PROJECT_ROOT / "Documentation" / "user-manual"),
        help="Documents folder path",
    )
    parser.add_argument(
        "--user-id",
        default=os.getenv("ADMIN_USER_ID"),
        help="Owner of the ingested documents (default: $ADMIN_USER_ID)",
    )
    parser.add_argument("--team-id", default=None, help="Owning team")
    parser.add_argument("--concurrency", type=int, default=None, help="Documents per window")
    parser.add_argument("--private", action="store_true", help="Mark documents as private")
    parser.add_argument(
        "--category", default="user-manual", help="Category stored in document metadata"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if not args.user_id:
        parser.error("--user-id is required (or set ADMIN_USER_ID)")

    processor = await DocumentProcessor.from_settings(args.user_id)
    ingestion = DocumentationIngestion(
        processor,
        documents_folder=args.documents,
        extractor=MetadataExtractor(category=args.category),
    )

    loop = asyncio.get_running_loop()
    abort_signal = asyncio.Event()
    handler_installed = install_abort_handler(loop, abort_signal)
    try:
        await run_ingestion(
            ingestion,
            args.user_id,
            team_id=args.team_id,
            concurrency=args.concurrency,
            is_private=args.private,
            abort_signal=abort_signal,
        )
    except Exception as e:
        logger.error(f"Ingestion failed: {e}")
        raise
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)
        await get_provider_factory().aclose()


if __name__ == "__main__":
    asyncio.run(main())
