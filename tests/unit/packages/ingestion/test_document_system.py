"""Tests for the lightweight DocumentSystem."""

import pytest

from packages.ingestion.chunker import ChunkingConfig
from packages.ingestion.document_system import Document, DocumentSystem
from tests.fakes import FakeDocumentStore, FakeEmbedder

CONFIG = ChunkingConfig(chunk_size=200, chunk_overlap=50, min_chunk_length=50)


@pytest.mark.asyncio
async def test_process_document(long_text):
    embedder = FakeEmbedder()
    system = DocumentSystem(embedder, chunking=CONFIG)

    result = await system.process_document(
        Document(id="doc-1", title="Guide", content=long_text, metadata={"type": "doc"}), "user-1"
    )

    assert result.status == "success"
    assert result.id == "doc-1"
    assert len(result.chunks) > 1
    assert [c.content for c in result.chunks] == embedder.calls
    for chunk in result.chunks:
        assert chunk.document_id == "doc-1"
        assert chunk.metadata == {"user_id": "user-1", "type": "doc"}
        assert len(chunk.embedding) == 3
    assert len({c.id for c in result.chunks}) == len(result.chunks)


@pytest.mark.asyncio
async def test_generated_document_id(long_text):
    system = DocumentSystem(FakeEmbedder(), chunking=CONFIG)
    result = await system.process_document(Document(title="Guide", content=long_text), "user-1")

    assert result.id
    assert all(c.document_id == result.id for c in result.chunks)


@pytest.mark.asyncio
async def test_batch_turns_failures_into_error_results(long_text):
    system = DocumentSystem(FakeEmbedder(), chunking=CONFIG)

    results = await system.process_batch(
        [
            Document(id="a", title="A", content=long_text),
            Document(id="b", title="B", content="   "),
            Document(id="c", title="C", content=long_text),
        ],
        "user-1",
    )

    assert [r.status for r in results] == ["success", "error", "success"]
    assert results[1].id == "b"
    assert results[1].error == "Empty document"
    assert results[1].chunks == []


@pytest.mark.asyncio
async def test_search_without_store_skips_embedding():
    embedder = FakeEmbedder()
    system = DocumentSystem(embedder)

    assert await system.search_similar("pipeline review", "user-1") == []
    assert embedder.calls == []


@pytest.mark.asyncio
async def test_search_delegates_to_store():
    store = FakeDocumentStore()
    store.matches = [{"id": "m1", "content": "Pipeline review notes.", "similarity": 0.8}]
    system = DocumentSystem(FakeEmbedder(), store=store)

    matches = await system.search_similar("pipeline review", "user-1", department="sales")

    assert [m.id for m in matches] == ["m1"]
    assert store.match_args[3:] == ("user-1", "sales")
