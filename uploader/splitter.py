"""Byte source adapters and the fixed-size chunk splitter.

Every payload shape the engine accepts is wrapped in a ``ByteSource``, which
hands out the next run of bytes or ``None`` once the payload is exhausted.
``split_into_chunks`` only ever talks to that interface:

* ``BufferByteSource`` serves an in-memory buffer in bounded slices.
* ``ReaderByteSource`` pulls from a file-like object with ``read(n)``. Blocking
  readers are read in a worker thread; readers whose ``read`` is a coroutine
  (``asyncio.StreamReader``, aiofiles) are awaited directly.
* ``StreamByteSource`` consumes an async iterable of bytes.
* ``IterableByteSource`` consumes a plain iterable of bytes.
* ``PushByteSource`` is fed by a producer through ``push``/``close``/``fail``.
  Its queue is bounded, so a producer that outruns the upload is suspended.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from common.constants import (
    BUFFER_SOURCE_SLICE_BYTES,
    PUSH_SOURCE_QUEUE_SIZE,
    READER_SOURCE_READ_BYTES,
)
from common.exceptions import ChunkedUploadError, InvalidParameterError
from common.logging_config import get_logger

logger = get_logger(__name__)


def _to_bytes(data) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    raise InvalidParameterError(
        f"Payload source produced {type(data).__name__}, expected bytes"
    )


class ByteSource(ABC):
    """A payload that can be read once, front to back."""

    @abstractmethod
    async def next_bytes(self) -> Optional[bytes]:
        """Return the next run of bytes, or None at end of payload."""

    async def aclose(self) -> None:
        """Release the underlying resource."""


class BufferByteSource(ByteSource):
    """In-memory payload."""

    def __init__(self, data, slice_size: int = BUFFER_SOURCE_SLICE_BYTES):
        self._view = memoryview(data).cast('B')
        self._slice_size = slice_size
        self._position = 0

    async def next_bytes(self) -> Optional[bytes]:
        if self._position >= len(self._view):
            return None
        end = self._position + self._slice_size
        data = bytes(self._view[self._position:end])
        self._position += len(data)
        return data

    async def aclose(self) -> None:
        self._view.release()


class ReaderByteSource(ByteSource):
    """Pull-based payload read through ``reader.read(n)``."""

    def __init__(self, reader, read_size: int = READER_SOURCE_READ_BYTES, close_reader: bool = True):
        self._reader = reader
        self._read_size = read_size
        self._close_reader = close_reader
        self._is_async = inspect.iscoroutinefunction(reader.read)

    async def next_bytes(self) -> Optional[bytes]:
        if self._is_async:
            data = await self._reader.read(self._read_size)
        else:
            data = await asyncio.to_thread(self._reader.read, self._read_size)
        if not data:
            return None
        return _to_bytes(data)

    async def aclose(self) -> None:
        if not self._close_reader:
            return
        close = getattr(self._reader, 'close', None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result


class StreamByteSource(ByteSource):
    """Payload delivered by an async iterable of bytes."""

    def __init__(self, stream):
        self._iterator = stream.__aiter__()

    async def next_bytes(self) -> Optional[bytes]:
        try:
            data = await self._iterator.__anext__()
        except StopAsyncIteration:
            return None
        return _to_bytes(data)

    async def aclose(self) -> None:
        aclose = getattr(self._iterator, 'aclose', None)
        if aclose is not None:
            await aclose()


class IterableByteSource(ByteSource):
    """Payload delivered by a synchronous iterable of bytes."""

    def __init__(self, iterable):
        self._iterator = iter(iterable)

    async def next_bytes(self) -> Optional[bytes]:
        try:
            data = next(self._iterator)
        except StopIteration:
            return None
        return _to_bytes(data)

    async def aclose(self) -> None:
        close = getattr(self._iterator, 'close', None)
        if close is not None:
            close()


class _Failure:
    def __init__(self, error: BaseException):
        self.error = error


_END = object()


class PushByteSource(ByteSource):
    """
    Payload pushed by a producer coroutine.

    The producer calls ``await push(data)`` for every piece, then ``await close()``
    (or ``await fail(exc)`` to abort the upload with ``exc``). Once the upload
    stops reading, a pending or later ``push`` raises ``ChunkedUploadError``
    instead of waiting for queue space.
    """

    def __init__(self, max_pending: int = PUSH_SOURCE_QUEUE_SIZE):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._closed = False
        self._finished = False
        self._abandoned = False

    async def push(self, data) -> None:
        if self._abandoned:
            raise ChunkedUploadError("Upload is no longer reading from this source")
        if self._closed:
            raise InvalidParameterError("Cannot push to a closed source")
        await self._queue.put(_to_bytes(data))
        if self._abandoned:
            self._discard_pending()
            raise ChunkedUploadError("Upload is no longer reading from this source")

    async def close(self) -> None:
        await self._put_last(_END)

    async def fail(self, error: BaseException) -> None:
        await self._put_last(_Failure(error))

    async def _put_last(self, item) -> None:
        if self._closed or self._abandoned:
            self._closed = True
            return
        self._closed = True
        await self._queue.put(item)
        if self._abandoned:
            self._discard_pending()

    def _discard_pending(self) -> None:
        # Every get frees a slot and wakes one producer blocked in put()
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return

    async def next_bytes(self) -> Optional[bytes]:
        if self._finished:
            return None
        item = await self._queue.get()
        if item is _END:
            self._finished = True
            return None
        if isinstance(item, _Failure):
            self._finished = True
            raise item.error
        return item

    async def aclose(self) -> None:
        self._finished = True
        if self._abandoned:
            return
        self._abandoned = True
        self._discard_pending()


def as_byte_source(source) -> ByteSource:
    """
    Wrap a payload in the matching ByteSource adapter.

    Raises:
        InvalidParameterError: If the payload shape is not supported
    """
    if isinstance(source, ByteSource):
        return source
    if isinstance(source, (bytes, bytearray, memoryview)):
        return BufferByteSource(source)
    if callable(getattr(source, 'read', None)):
        return ReaderByteSource(source)
    if hasattr(source, '__aiter__'):
        return StreamByteSource(source)
    if hasattr(source, '__iter__') and not isinstance(source, str):
        return IterableByteSource(source)
    raise InvalidParameterError(f"Unsupported payload source type: {type(source).__name__}")


async def split_into_chunks(source, chunk_byte_count: int) -> AsyncIterator[bytes]:
    """
    Yield buffers of exactly chunk_byte_count bytes, then the remainder if any.

    Small reads are coalesced and large reads sliced, so output sizes never
    depend on how the source happens to deliver its bytes.

    Args:
        source: A ByteSource or any payload shape accepted by as_byte_source
        chunk_byte_count: Target chunk size in bytes

    Raises:
        InvalidParameterError: If chunk_byte_count is not a positive integer
    """
    if not isinstance(chunk_byte_count, int) or isinstance(chunk_byte_count, bool) or chunk_byte_count < 1:
        raise InvalidParameterError("Chunk size must be a positive integer")

    byte_source = as_byte_source(source)
    pending = bytearray()
    total = 0

    while True:
        data = await byte_source.next_bytes()
        if data is None:
            break
        if not data:
            continue

        pending += data
        total += len(data)

        while len(pending) >= chunk_byte_count:
            chunk = bytes(pending[:chunk_byte_count])
            del pending[:chunk_byte_count]
            yield chunk

    if pending:
        yield bytes(pending)

    logger.debug(f"Source exhausted [total_bytes={total}]")
