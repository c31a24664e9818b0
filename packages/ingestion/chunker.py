"""
Sentence-aware text chunker.

Splits raw text into overlapping, size-bounded chunks:
- Whitespace is collapsed, other characters are kept as-is
- Sentences (ending in ., ! or ? followed by whitespace) are never cut
- Consecutive chunks share the trailing ``chunk_overlap // 10`` words of
  the previous chunk (word-level overlap)
- No chunk is shorter than ``min_chunk_length`` unless it is the only one
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from packages.config import settings as app_settings
from packages.utils.errors import InvalidInputError

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


@dataclass
class ChunkingConfig:
    """Configuration for chunking with defaults from centralized settings."""

    chunk_size: int | None = None
    chunk_overlap: int | None = None
    min_chunk_length: int | None = None

    def __post_init__(self):
        """Apply defaults from settings and validate configuration."""
        if self.chunk_size is None:
            self.chunk_size = app_settings.chunking.chunk_size
        if self.chunk_overlap is None:
            self.chunk_overlap = app_settings.chunking.chunk_overlap
        if self.min_chunk_length is None:
            self.min_chunk_length = app_settings.chunking.min_chunk_length

        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("Chunk overlap must be less than chunk size")
        if self.min_chunk_length <= 0:
            raise ValueError("Minimum chunk length must be positive")

    @property
    def overlap_words(self) -> int:
        """Number of trailing words carried into the next chunk."""
        return max(self.chunk_overlap // 10, 0)


@dataclass(frozen=True)
class Chunk:
    """One chunk of a document, tagged with its owner and caller metadata."""

    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


def _overlap_seed(previous: str, sentence: str, overlap_words: int, chunk_size: int) -> List[str]:
    """Trailing words of the previous chunk that still fit before the next sentence."""
    if overlap_words <= 0:
        return []

    seed = previous.split(" ")[-overlap_words:]
    while seed and len(" ".join(seed)) + 1 + len(sentence) > chunk_size:
        seed.pop(0)
    return seed


def _backfill(previous: str, tail: str, seeded: int, config: ChunkingConfig) -> str:
    """Grow a short trailing chunk with the words that precede it in the previous chunk."""
    available = previous.split(" ")
    if seeded:
        available = available[:-seeded]

    while available and len(tail) < config.min_chunk_length:
        candidate = f"{available[-1]} {tail}"
        if len(candidate) > config.chunk_size:
            break
        tail = candidate
        available.pop()
    return tail


def split_into_chunks(text: str, config: Optional[ChunkingConfig] = None) -> List[str]:
    """
    Split text into overlapping chunks on sentence boundaries.

    Args:
        text: Raw document text
        config: Chunking configuration (settings defaults if omitted)

    Returns:
        Ordered chunk contents

    Raises:
        InvalidInputError: If the text is empty or whitespace only
    """
    if not text or not text.strip():
        raise InvalidInputError("Empty document")

    config = config or ChunkingConfig()
    normalized = _WHITESPACE.sub(" ", text).strip()
    sentences = _SENTENCE_BOUNDARY.split(normalized)

    chunks: List[str] = []
    current = ""
    seeded = 0

    for sentence in sentences:
        too_long = current and len(current) + 1 + len(sentence) > config.chunk_size
        if too_long and len(current) >= config.min_chunk_length:
            chunks.append(current)
            seed = _overlap_seed(current, sentence, config.overlap_words, config.chunk_size)
            seeded = len(seed)
            current = " ".join(seed + [sentence])
        else:
            # Short pending chunks are carried into the next one
            current = f"{current} {sentence}" if current else sentence

    if not chunks and len(current) < config.min_chunk_length:
        return [text.strip()]

    if len(current) < config.min_chunk_length:
        current = _backfill(chunks[-1], current, seeded, config)
    chunks.append(current)

    logger.debug(f"Split {len(normalized)} chars into {len(chunks)} chunks")
    return chunks


def generate_chunks(
    text: str,
    user_id: str,
    metadata: Optional[Dict[str, Any]] = None,
    config: Optional[ChunkingConfig] = None,
) -> List[Chunk]:
    """
    Chunk a document and tag every chunk with its owner.

    Args:
        text: Raw document text
        user_id: Owner of the document
        metadata: Caller metadata merged into every chunk's metadata
        config: Chunking configuration

    Returns:
        Ordered chunks whose metadata is ``{"user_id": ..., **metadata}``
    """
    chunk_metadata = {"user_id": user_id, **(metadata or {})}
    return [
        Chunk(content=content, metadata=dict(chunk_metadata))
        for content in split_into_chunks(text, config)
    ]
