"""Chunked upload engine."""

from uploader.events import (
    ChunkErrorEvent,
    EventKind,
    ProgressEmitter,
    UploadErrorEvent,
    UploadEventHandlers,
    UploadProgressEvent,
    UploadSuccessEvent,
)
from uploader.limiter import ConcurrencyLimiter
from uploader.policy import assert_chunk_params, decide, should_chunk_upload
from uploader.schemas import ReconstructionResponse
from uploader.session import ChunkedUploader, UploadSession, upload, upload_single_request
from uploader.splitter import (
    BufferByteSource,
    ByteSource,
    IterableByteSource,
    PushByteSource,
    ReaderByteSource,
    StreamByteSource,
    as_byte_source,
    split_into_chunks,
)
from uploader.transport import ChunkTransport

__all__ = [
    "BufferByteSource",
    "ByteSource",
    "ChunkErrorEvent",
    "ChunkTransport",
    "ChunkedUploader",
    "ConcurrencyLimiter",
    "EventKind",
    "IterableByteSource",
    "ProgressEmitter",
    "PushByteSource",
    "ReaderByteSource",
    "ReconstructionResponse",
    "StreamByteSource",
    "UploadErrorEvent",
    "UploadEventHandlers",
    "UploadProgressEvent",
    "UploadSession",
    "UploadSuccessEvent",
    "as_byte_source",
    "assert_chunk_params",
    "decide",
    "should_chunk_upload",
    "split_into_chunks",
    "upload",
    "upload_single_request",
]
