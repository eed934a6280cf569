"""Shared data type definitions (Chunk, ProgressState, chunking and session enums)."""

from dataclasses import dataclass
from enum import Enum


class ChunkingMode(str, Enum):
    """When the chunked upload path is used."""
    AUTO = 'auto'
    FORCE = 'force'
    DISABLED = 'disabled'


class SessionState(str, Enum):
    """Lifecycle of a chunked upload session."""
    IDLE = 'idle'
    OPENING = 'opening'
    STREAMING = 'streaming'
    FINALIZING = 'finalizing'
    COMPLETED = 'completed'
    FAILED = 'failed'


@dataclass(frozen=True)
class Chunk:
    """
    A contiguous slice of the payload, uploaded as one request.
    """
    part_number: int
    offset: int
    byte_count: int
    payload: bytes

    @property
    def end(self) -> int:
        return self.offset + self.byte_count


@dataclass
class ProgressState:
    """
    Cumulative bytes acknowledged by the server for one upload.
    """
    uploaded_bytes: int = 0
    total_bytes: int = 0

    def add(self, byte_count: int) -> int:
        self.uploaded_bytes += byte_count
        return self.uploaded_bytes

    @property
    def is_complete(self) -> bool:
        return self.uploaded_bytes == self.total_bytes
