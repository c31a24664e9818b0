"""Data models for document processing."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProcessingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class ProcessingProgress(BaseModel):
    """Batch progress. Owned by the processor; callers only ever see copies."""

    total_documents: int = 0
    processed_documents: int = 0
    total_chunks: int = 0
    processed_chunks: int = 0
    status: ProcessingStatus = ProcessingStatus.PENDING
    error: Optional[str] = None


class UserContext(BaseModel):
    """The current caller as seen by access checks."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    department: Optional[str] = None
    is_active: bool = True


class DocumentInput(BaseModel):
    """One document submitted for batch processing."""

    title: str
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_private: bool = False
    team_id: Optional[str] = None


class ProcessedChunk(BaseModel):
    """A chunk as stored: content, embedding and store-assigned fields."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: Optional[str] = None
    document_id: Optional[str] = None
    content: str
    embedding: List[float] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ProcessedDocument(BaseModel):
    """A committed document with all of its chunks."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str
    title: str
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_private: bool = False
    team_id: Optional[str] = None
    chunks: List[ProcessedChunk] = Field(default_factory=list)


class DocumentMatch(BaseModel):
    """One similarity search hit."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str
    document_id: Optional[str] = None
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    similarity: float
