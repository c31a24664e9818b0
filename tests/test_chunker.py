"""
Tests for sentence-aware chunking.
"""

import re

import pytest

from packages.ingestion.chunker import (
    Chunk,
    ChunkingConfig,
    generate_chunks,
    split_into_chunks,
)
from packages.utils.errors import InvalidInputError


def _sentences(text):
    return re.split(r"(?<=[.!?])\s+", re.sub(r"\s+", " ", text).strip())


class TestChunkingConfig:
    """Test ChunkingConfig validation."""

    def test_valid_config(self):
        config = ChunkingConfig(chunk_size=500, chunk_overlap=100, min_chunk_length=50)
        assert config.chunk_size == 500
        assert config.chunk_overlap == 100
        assert config.min_chunk_length == 50

    def test_default_config(self):
        """Defaults come from settings."""
        config = ChunkingConfig()
        assert config.chunk_size == 1000
        assert config.chunk_overlap == 200
        assert config.min_chunk_length == 100

    def test_overlap_words_is_a_tenth_of_overlap(self):
        assert ChunkingConfig(chunk_size=1000, chunk_overlap=200).overlap_words == 20
        assert ChunkingConfig(chunk_size=1000, chunk_overlap=29).overlap_words == 2
        assert ChunkingConfig(chunk_size=1000, chunk_overlap=5).overlap_words == 0

    def test_overlap_must_be_less_than_size(self):
        with pytest.raises(ValueError, match="overlap must be less than"):
            ChunkingConfig(chunk_size=100, chunk_overlap=200)

    def test_overlap_equal_to_size_raises(self):
        with pytest.raises(ValueError, match="overlap must be less than"):
            ChunkingConfig(chunk_size=100, chunk_overlap=100)

    def test_min_chunk_length_must_be_positive(self):
        with pytest.raises(ValueError, match="positive"):
            ChunkingConfig(min_chunk_length=0)


class TestSplitIntoChunks:
    """Test split_into_chunks."""

    @pytest.mark.parametrize("text", ["", "   ", "\n\t  \n"])
    def test_empty_input_raises(self, text):
        with pytest.raises(InvalidInputError, match="Empty document"):
            split_into_chunks(text)

    def test_short_document_is_single_chunk(self):
        text = "This is a very short document."
        config = ChunkingConfig(chunk_size=1000, chunk_overlap=200, min_chunk_length=30)
        assert split_into_chunks(text, config) == [text]

    def test_document_below_minimum_becomes_single_trimmed_chunk(self):
        text = "  Hello   world.  "
        config = ChunkingConfig(chunk_size=1000, chunk_overlap=200, min_chunk_length=100)
        assert split_into_chunks(text, config) == ["Hello   world."]

    def test_whitespace_is_normalized(self):
        text = "First   sentence here.\n\nSecond\tsentence here."
        config = ChunkingConfig(chunk_size=1000, chunk_overlap=200, min_chunk_length=10)
        assert split_into_chunks(text, config) == ["First sentence here. Second sentence here."]

    def test_special_characters_are_preserved(self):
        text = "Prix: 12,50€ (TTC)! Émile a dit « bonjour » & <merci>?"
        config = ChunkingConfig(chunk_size=1000, chunk_overlap=200, min_chunk_length=10)
        assert split_into_chunks(text, config) == [text]

    def test_chunks_respect_size(self, long_text):
        config = ChunkingConfig(chunk_size=200, chunk_overlap=50, min_chunk_length=50)
        chunks = split_into_chunks(long_text, config)

        assert len(chunks) > 1
        assert all(len(chunk) <= 200 for chunk in chunks)

    def test_chunks_respect_minimum_length(self, long_text):
        config = ChunkingConfig(chunk_size=200, chunk_overlap=50, min_chunk_length=50)
        chunks = split_into_chunks(long_text, config)

        assert all(len(chunk) >= 50 for chunk in chunks)

    def test_every_sentence_survives(self, long_text):
        config = ChunkingConfig(chunk_size=200, chunk_overlap=50, min_chunk_length=50)
        chunks = split_into_chunks(long_text, config)

        for sentence in _sentences(long_text):
            assert any(sentence in chunk for chunk in chunks), sentence

    def test_sentences_are_not_cut(self, long_text):
        config = ChunkingConfig(chunk_size=200, chunk_overlap=50, min_chunk_length=50)
        for chunk in split_into_chunks(long_text, config):
            assert chunk.endswith(".")

    def test_consecutive_chunks_share_overlap_words(self, long_text):
        """chunk_overlap=30 carries the last 3 words into the next chunk."""
        config = ChunkingConfig(chunk_size=200, chunk_overlap=30, min_chunk_length=50)
        chunks = split_into_chunks(long_text, config)

        for previous, current in zip(chunks, chunks[1:]):
            assert current.split(" ")[:3] == previous.split(" ")[-3:]

    def test_no_overlap_reconstructs_text(self, long_text):
        config = ChunkingConfig(chunk_size=200, chunk_overlap=5, min_chunk_length=50)
        chunks = split_into_chunks(long_text, config)

        assert " ".join(chunks) == re.sub(r"\s+", " ", long_text).strip()

    def test_single_oversized_sentence_is_kept_whole(self):
        text = " ".join(["word"] * 60) + "."
        config = ChunkingConfig(chunk_size=100, chunk_overlap=20, min_chunk_length=10)
        assert split_into_chunks(text, config) == [text]

    def test_short_tail_is_backfilled_from_previous_chunk(self):
        first = "Alpha Alpha Alpha Alpha Alpha Alpha Alpha Alpha Alpha end."
        second = "Beta Beta Beta Beta Beta stop."
        tail = "Gamma tail words."
        config = ChunkingConfig(chunk_size=100, chunk_overlap=5, min_chunk_length=40)

        chunks = split_into_chunks(f"{first} {second} {tail}", config)

        assert chunks == [
            f"{first} {second}",
            "Beta Beta Beta Beta stop. Gamma tail words.",
        ]

    def test_deterministic(self, long_text):
        config = ChunkingConfig(chunk_size=300, chunk_overlap=100, min_chunk_length=50)
        assert split_into_chunks(long_text, config) == split_into_chunks(long_text, config)


class TestGenerateChunks:
    """Test generate_chunks."""

    def test_empty_document_raises(self):
        with pytest.raises(InvalidInputError, match="Empty document"):
            generate_chunks("", "user-1")

    def test_chunks_carry_user_and_metadata(self, long_text):
        config = ChunkingConfig(chunk_size=200, chunk_overlap=50, min_chunk_length=50)
        chunks = generate_chunks(long_text, "user-1", {"source": "manual"}, config)

        assert len(chunks) > 1
        for chunk in chunks:
            assert isinstance(chunk, Chunk)
            assert chunk.metadata == {"user_id": "user-1", "source": "manual"}

    def test_chunk_metadata_is_not_shared(self, long_text):
        config = ChunkingConfig(chunk_size=200, chunk_overlap=50, min_chunk_length=50)
        chunks = generate_chunks(long_text, "user-1", config=config)

        chunks[0].metadata["extra"] = True
        assert "extra" not in chunks[1].metadata

    def test_contents_match_split(self, long_text):
        config = ChunkingConfig(chunk_size=200, chunk_overlap=50, min_chunk_length=50)
        chunks = generate_chunks(long_text, "user-1", config=config)
        assert [c.content for c in chunks] == split_into_chunks(long_text, config)
