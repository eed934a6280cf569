"""Custom exception classes for the chunked upload engine."""

from typing import Optional


class ChunkedUploadError(Exception):
    """
    Base exception class for all chunked upload errors.
    """
    pass


class InvalidParameterError(ChunkedUploadError, ValueError):
    """
    Raised when chunk size, concurrency, chunking mode or payload source is invalid.
    """
    pass


class FailedRequestError(ChunkedUploadError):
    """
    Raised when the upload service answers with a status outside the allowed set.
    """

    def __init__(self, status_code: int, detail: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        message = f"Request failed with status {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class SessionOpenError(ChunkedUploadError):
    """
    Raised when the upload service refuses or fails to open a chunk session.
    """
    pass


class ChunkUploadError(ChunkedUploadError):
    """
    Raised when a chunk could not be stored. Carries the chunk's position.
    """

    def __init__(self, part_number: int, offset: int, byte_count: int, message: Optional[str] = None):
        self.part_number = part_number
        self.offset = offset
        self.byte_count = byte_count
        super().__init__(
            message or f"Chunk {part_number} failed [offset={offset}, size={byte_count}]"
        )


class FinalizeError(ChunkedUploadError):
    """
    Raised when all chunks were stored but the server could not reconstruct the payload.
    """

    def __init__(self, message: str, status: Optional[str] = None):
        self.status = status
        super().__init__(message)


class UploadCancelledError(ChunkedUploadError):
    """
    Raised when the caller cancels an upload in progress.
    """
    pass
