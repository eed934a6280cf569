"""Pydantic schemas for upload service responses."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionOpenResponse(BaseModel):
    """Response model for opening a chunk session."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    min: Optional[int] = None
    max: Optional[int] = None
    chunk_size: int = Field(alias='chunkSize')


class ReconstructionResponse(BaseModel):
    """Receipt for a payload the server reassembled from its chunks."""
    model_config = ConfigDict(populate_by_name=True, extra='allow')

    id: str
    owner: Optional[str] = None
    data_caches: List[str] = Field(default_factory=list, alias='dataCaches')
    fast_finality_indexes: List[str] = Field(default_factory=list, alias='fastFinalityIndexes')
    deadline_height: Optional[int] = Field(default=None, alias='deadlineHeight')
    timestamp: Optional[int] = None
    version: Optional[str] = None
    winc: Optional[str] = None
    public: Optional[str] = None
    signature: Optional[str] = None


class MultiPartStatusResponse(BaseModel):
    """Response model for a chunk session status poll."""
    status: str
    receipt: Optional[ReconstructionResponse] = None
