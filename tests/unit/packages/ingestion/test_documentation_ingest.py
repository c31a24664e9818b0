"""Tests for the documentation reader, metadata extractor and ingestion script."""

import asyncio
import signal
import sys
from unittest.mock import MagicMock

import pytest

from packages.config import BatchConfig
from packages.ingestion.chunker import ChunkingConfig
from packages.ingestion.extractors.metadata_extractor import MetadataExtractor, split_front_matter
from packages.ingestion.ingest import DocumentationIngestion, install_abort_handler, run_ingestion
from packages.ingestion.processor import DocumentProcessor
from packages.ingestion.readers.document_reader import DocumentReader
from tests.fakes import FakeEmbedder


class TestDocumentReader:
    def test_reads_markdown(self, tmp_path):
        path = tmp_path / "GETTING_STARTED.md"
        path.write_text("# Getting Started\n\nWelcome.", encoding="utf-8")

        assert DocumentReader().read(str(path)) == "# Getting Started\n\nWelcome."

    def test_latin1_fallback(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes("Réunion à 10h.".encode("latin-1"))

        assert DocumentReader().read(str(path)) == "Réunion à 10h."

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "logo.png"
        path.write_bytes(b"\x89PNG")

        assert DocumentReader().read(str(path)) is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(RuntimeError, match="Could not read file"):
            DocumentReader().read(str(tmp_path / "missing.md"))

    def test_find_documents(self, tmp_path):
        (tmp_path / "b.md").write_text("B", encoding="utf-8")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "a.txt").write_text("A", encoding="utf-8")
        (tmp_path / "image.png").write_bytes(b"")

        found = DocumentReader().find_documents(str(tmp_path))

        assert found == sorted([str(tmp_path / "b.md"), str(tmp_path / "sub" / "a.txt")])


class TestMetadataExtractor:
    def test_title_from_front_matter(self):
        content = "---\ntitle: Admin Features\n---\n# Ignored heading"
        assert MetadataExtractor().extract_title(content, "ADMIN.md") == "Admin Features"

    def test_title_from_heading(self):
        assert MetadataExtractor().extract_title("\n# Contact Management\nText", "x.md") == "Contact Management"

    def test_title_from_file_name(self):
        assert MetadataExtractor().extract_title("No heading here.", "docs/IMPORT_EXPORT.md") == "IMPORT EXPORT"

    def test_metadata(self):
        content = "---\ncategory: admin\nversion: 2\n---\nOne two three.\nFour."
        metadata = MetadataExtractor().extract_metadata(content, "user-manual/ADMIN_FEATURES.md")

        assert metadata["type"] == "documentation"
        assert metadata["category"] == "admin"
        assert metadata["version"] == 2
        assert metadata["file_name"] == "ADMIN_FEATURES.md"
        assert metadata["file_path"] == "user-manual/ADMIN_FEATURES.md"
        assert metadata["word_count"] == 4
        assert metadata["line_count"] == 2

    def test_invalid_front_matter_is_body(self):
        content = "---\n: [unclosed\n---\nBody"
        assert split_front_matter(content) == ({}, content)


@pytest.mark.asyncio
async def test_ingest_folder(tmp_path, fake_store, fake_embedder, user_lookup):
    sentence = "The dashboard shows revenue, open deals and overdue tasks for the team."
    (tmp_path / "DASHBOARD_ANALYTICS.md").write_text(
        "# Dashboard Analytics\n\n" + " ".join([sentence] * 4), encoding="utf-8"
    )
    (tmp_path / "AI_TOOLS.md").write_text("", encoding="utf-8")

    async def no_sleep(delay):
        return None

    processor = DocumentProcessor(
        fake_store,
        fake_embedder,
        user_lookup,
        chunking=ChunkingConfig(chunk_size=200, chunk_overlap=50, min_chunk_length=50),
        batch=BatchConfig(concurrency=2, max_retries=3, retry_delay=1.0),
        sleep=no_sleep,
    )
    ingestion = DocumentationIngestion(processor, str(tmp_path))

    results = await ingestion.ingest("user-1", is_private=True)

    assert ingestion.titles == ["AI TOOLS", "Dashboard Analytics"]
    assert [r.status for r in results] == ["rejected", "fulfilled"]
    assert fake_store.begin_args[0]["is_private"] is True
    assert results[1].value.metadata["category"] == "user-manual"


@pytest.mark.asyncio
async def test_ingest_missing_folder(tmp_path, fake_store, fake_embedder, user_lookup):
    processor = DocumentProcessor(fake_store, fake_embedder, user_lookup)
    ingestion = DocumentationIngestion(processor, str(tmp_path / "nowhere"))

    assert await ingestion.ingest("user-1") == []


SECTION = "The dashboard shows revenue, open deals and overdue tasks for the team."


async def no_sleep(delay):
    return None


def write_manual(folder, count):
    for i in range(count):
        (folder / f"SECTION_{i}.md").write_text(f"# Section {i}\n\n" + " ".join([SECTION] * 3), encoding="utf-8")


def build_ingestion(folder, store, embedder, lookup):
    processor = DocumentProcessor(
        store,
        embedder,
        lookup,
        chunking=ChunkingConfig(chunk_size=200, chunk_overlap=50, min_chunk_length=50),
        batch=BatchConfig(concurrency=1, max_retries=3, retry_delay=1.0),
        sleep=no_sleep,
    )
    return DocumentationIngestion(processor, str(folder))


class TestRunIngestion:
    """Summary output and cooperative abort."""

    @pytest.mark.asyncio
    async def test_prints_summary(self, tmp_path, fake_store, fake_embedder, user_lookup, capsys):
        write_manual(tmp_path, 2)
        ingestion = build_ingestion(tmp_path, fake_store, fake_embedder, user_lookup)

        assert await run_ingestion(ingestion, "user-1") is True

        output = capsys.readouterr().out
        assert "INGESTION SUMMARY" in output
        assert "Documents processed: 2/2" in output

    @pytest.mark.asyncio
    async def test_abort_stops_at_next_window(self, tmp_path, fake_store, user_lookup, capsys):
        write_manual(tmp_path, 3)
        abort_signal = asyncio.Event()

        class InterruptingEmbedder(FakeEmbedder):
            async def generate_embedding(self, text):
                abort_signal.set()
                return await super().generate_embedding(text)

        ingestion = build_ingestion(tmp_path, fake_store, InterruptingEmbedder(), user_lookup)

        finished = await run_ingestion(ingestion, "user-1", abort_signal=abort_signal)

        assert finished is False
        assert fake_store.calls["begin"] == 1
        assert fake_store.calls["commit"] == 1
        assert "interrupted by user after 1/3 documents" in capsys.readouterr().out


class TestAbortHandler:
    def test_routes_sigint_to_event(self):
        loop = MagicMock()
        abort_signal = asyncio.Event()

        assert install_abort_handler(loop, abort_signal) is True

        sig, callback = loop.add_signal_handler.call_args.args
        assert sig == signal.SIGINT
        callback()
        assert abort_signal.is_set()

    def test_unsupported_loop(self):
        loop = MagicMock()
        loop.add_signal_handler.side_effect = NotImplementedError

        assert install_abort_handler(loop, asyncio.Event()) is False

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="no loop signal handlers on Windows")
    async def test_sigint_sets_event(self):
        loop = asyncio.get_running_loop()
        abort_signal = asyncio.Event()
        assert install_abort_handler(loop, abort_signal)
        try:
            signal.raise_signal(signal.SIGINT)
            await asyncio.wait_for(abort_signal.wait(), timeout=1.0)
        finally:
            loop.remove_signal_handler(signal.SIGINT)

        assert abort_signal.is_set()
