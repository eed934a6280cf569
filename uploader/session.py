"""Chunked upload session: open, stream chunks concurrently, finalize."""

import asyncio
import math
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Optional, Sequence, Set, Union

from common.constants import (
    BACKLOG_QUEUE_FACTOR,
    DEFAULT_CHUNK_BYTE_COUNT,
    DEFAULT_MAX_CHUNK_CONCURRENCY,
    FINALIZE_WAIT_SECONDS_PER_GIB,
    GIB,
    PAID_BY_HEADER,
)
from common.exceptions import (
    ChunkUploadError,
    FinalizeError,
    InvalidParameterError,
    SessionOpenError,
    UploadCancelledError,
)
from common.logging_config import get_logger
from common.types import Chunk, ChunkingMode, ProgressState, SessionState
from uploader.events import (
    ChunkErrorEvent,
    ProgressEmitter,
    UploadErrorEvent,
    UploadEventHandlers,
    UploadProgressEvent,
    UploadSuccessEvent,
)
from uploader.limiter import ConcurrencyLimiter
from uploader.policy import assert_chunk_params, parse_chunking_mode, should_chunk_upload
from uploader.schemas import ReconstructionResponse
from uploader.splitter import ByteSource, as_byte_source, split_into_chunks
from uploader.transport import ChunkTransport

logger = get_logger(__name__)

PaidBy = Union[str, Sequence[str], None]
Events = Union[ProgressEmitter, UploadEventHandlers, None]


def paid_by_headers(paid_by: PaidBy) -> dict:
    """Billing attribution header for one or more payer addresses."""
    if not paid_by:
        return {}
    if isinstance(paid_by, str):
        return {PAID_BY_HEADER: paid_by}
    return {PAID_BY_HEADER: ','.join(paid_by)}


def finalize_wait_seconds(total_byte_count: int) -> int:
    """One minute per started GiB of payload, at least one minute."""
    return max(1, math.ceil(total_byte_count / GIB)) * FINALIZE_WAIT_SECONDS_PER_GIB


def _validate_total(total_byte_count: int) -> None:
    if not isinstance(total_byte_count, int) or isinstance(total_byte_count, bool) or total_byte_count < 0:
        raise InvalidParameterError("Payload size must be a non-negative integer")


@dataclass
class UploadSession:
    """
    Server-side chunk session for one payload, as seen by the client.

    ``next_offset`` is the accumulator that assigns offsets; it only moves
    forward, once per chunk pulled from the source, before the chunk is sent.
    """
    session_id: str
    token: str
    chunk_byte_count: int
    total_byte_count: int
    next_offset: int = 0
    part_count: int = 0
    progress: ProgressState = field(default_factory=ProgressState)

    def reserve(self, payload: bytes) -> Chunk:
        """Assign the next part number and offset to a chunk payload."""
        self.part_count += 1
        chunk = Chunk(
            part_number=self.part_count,
            offset=self.next_offset,
            byte_count=len(payload),
            payload=payload,
        )
        self.next_offset += chunk.byte_count
        return chunk


class ChunkedUploader:
    """
    Uploads one payload as a sequence of fixed-size chunks under a single session.

    Chunks are pulled from the source one at a time and sent through a FIFO
    concurrency limiter. Streaming pauses while the number of chunks in
    flight reaches the backlog limit. A failing chunk does not cancel chunks
    already sending, but streaming stops and queued chunks are skipped. The
    upload waits for the admitted chunks, then raises the first
    failure without finalizing. A failed session is abandoned, never closed.
    """

    def __init__(
        self,
        transport: ChunkTransport,
        token: str,
        total_byte_count: int,
        chunk_byte_count: int = DEFAULT_CHUNK_BYTE_COUNT,
        max_chunk_concurrency: int = DEFAULT_MAX_CHUNK_CONCURRENCY,
        chunking_mode: Union[ChunkingMode, str] = ChunkingMode.AUTO
    ):
        """
        Initialize the uploader.

        Args:
            transport: Chunk upload service client
            token: Storage token tag, used verbatim in request paths
            total_byte_count: Exact size of the payload in bytes
            chunk_byte_count: Size of every chunk but the last, 5 MiB to 500 MiB
            max_chunk_concurrency: Maximum chunk requests in flight
            chunking_mode: auto, force or disabled

        Raises:
            InvalidParameterError: If any parameter is out of range
        """
        assert_chunk_params(chunk_byte_count, chunking_mode, max_chunk_concurrency)
        _validate_total(total_byte_count)

        self.transport = transport
        self.token = token
        self.total_byte_count = total_byte_count
        self.chunk_byte_count = chunk_byte_count
        self.max_chunk_concurrency = max_chunk_concurrency
        self.chunking_mode = parse_chunking_mode(chunking_mode)
        self.should_chunk_upload = should_chunk_upload(total_byte_count, chunk_byte_count, self.chunking_mode)
        self.max_backlog_queue = max_chunk_concurrency * BACKLOG_QUEUE_FACTOR

        self.state = SessionState.IDLE
        self.session: Optional[UploadSession] = None
        self._limiter = ConcurrencyLimiter(max_chunk_concurrency)
        self._in_flight: Set[asyncio.Task] = set()
        self._first_error: Optional[ChunkUploadError] = None
        self._chunk_failed = False
        self._success_emitted = False

    async def upload(
        self,
        source_factory: Callable[[], object],
        paid_by: PaidBy = None,
        events: Events = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> ReconstructionResponse:
        """
        Run the whole session protocol for the payload.

        Args:
            source_factory: Returns the payload as bytes, a file-like reader,
                an (async) iterable of bytes or a ByteSource; the engine closes it
            paid_by: Payer address or addresses for billing attribution
            events: Listeners for progress, chunk error, success and error events
            cancel_event: Setting this event aborts every outstanding request

        Returns:
            The server's receipt for the reconstructed payload

        Raises:
            SessionOpenError: If the session could not be opened
            ChunkUploadError: If any chunk failed, after all chunks settled
            FinalizeError: If all chunks were stored but reconstruction failed
            UploadCancelledError: If cancel_event was set
            InvalidParameterError: If the source size does not match total_byte_count
        """
        if self.state is not SessionState.IDLE:
            raise InvalidParameterError("A ChunkedUploader uploads a single payload; create a new one")

        emitter = ProgressEmitter.from_handlers(events)
        owner = asyncio.current_task()
        source: Optional[ByteSource] = None
        watcher = None

        try:
            source = as_byte_source(source_factory())
            if cancel_event is not None:
                if cancel_event.is_set():
                    raise UploadCancelledError("Upload cancelled before it started")
                watcher = asyncio.create_task(self._watch_cancellation(cancel_event, owner))
            return await self._run(source, paid_by, emitter)
        except asyncio.CancelledError:
            if cancel_event is None or not cancel_event.is_set():
                self.state = SessionState.FAILED
                raise
            owner.uncancel()
            error = UploadCancelledError("Upload cancelled")
            self._fail(emitter, error)
            raise error from None
        except Exception as e:
            self._fail(emitter, e)
            raise
        finally:
            if watcher is not None:
                watcher.cancel()
            await self._cancel_in_flight()
            if source is not None:
                await source.aclose()

    async def _run(self, source: ByteSource, paid_by: PaidBy, emitter: ProgressEmitter) -> ReconstructionResponse:
        self.state = SessionState.OPENING
        self.session = await self._open_session()

        self.state = SessionState.STREAMING
        logger.debug(
            f"Starting chunked upload [session_id={self.session.session_id}, "
            f"total_size={self.total_byte_count}, chunk_size={self.chunk_byte_count}, "
            f"max_concurrency={self.max_chunk_concurrency}]"
        )
        await self._stream(source, emitter)

        while self._in_flight:
            await asyncio.wait(set(self._in_flight))

        if self._first_error is not None:
            raise self._first_error

        if self.session.next_offset != self.total_byte_count:
            raise InvalidParameterError(
                f"Payload source produced {self.session.next_offset} bytes, "
                f"expected {self.total_byte_count}"
            )

        if not self._success_emitted:
            self._success_emitted = True
            emitter.emit(UploadSuccessEvent())

        self.state = SessionState.FINALIZING
        receipt = await self._finalize(paid_by)
        self.state = SessionState.COMPLETED
        logger.info(
            f"Chunked upload finalized [session_id={self.session.session_id}, "
            f"id={receipt.id}, parts={self.session.part_count}]"
        )
        return receipt

    async def _open_session(self) -> UploadSession:
        try:
            response = await self.transport.open_session(self.token, self.chunk_byte_count)
        except Exception as e:
            raise SessionOpenError(f"Failed to open upload session: {e}") from e

        if response.chunk_size != self.chunk_byte_count:
            logger.warning(
                f"Chunk size mismatch, overriding with server value "
                f"[client_expected={self.chunk_byte_count}, server_returned={response.chunk_size}]"
            )
            if response.chunk_size < 1:
                raise SessionOpenError(f"Server returned invalid chunk size {response.chunk_size}")
            self.chunk_byte_count = response.chunk_size

        logger.info(f"Opened upload session [session_id={response.id}, token={self.token}]")
        return UploadSession(
            session_id=response.id,
            token=self.token,
            chunk_byte_count=self.chunk_byte_count,
            total_byte_count=self.total_byte_count,
            progress=ProgressState(total_bytes=self.total_byte_count),
        )

    async def _stream(self, source: ByteSource, emitter: ProgressEmitter) -> None:
        chunks = split_into_chunks(source, self.chunk_byte_count)
        try:
            async for payload in chunks:
                if self._chunk_failed:
                    logger.debug(f"Stopped reading payload after a chunk failure [offset={self.session.next_offset}]")
                    break

                if self.session.next_offset + len(payload) > self.total_byte_count:
                    raise InvalidParameterError(
                        f"Payload source produced more than {self.total_byte_count} bytes"
                    )

                chunk = self.session.reserve(payload)
                logger.debug(
                    f"Queueing chunk [part={chunk.part_number}, offset={chunk.offset}, size={chunk.byte_count}]"
                )

                task = asyncio.create_task(self._limiter.schedule(self._upload_chunk, chunk))
                self._in_flight.add(task)
                task.add_done_callback(partial(self._on_chunk_settled, chunk, emitter))

                if len(self._in_flight) >= self.max_backlog_queue:
                    await asyncio.wait(set(self._in_flight), return_when=asyncio.FIRST_COMPLETED)
        finally:
            await chunks.aclose()
            await source.aclose()

    async def _upload_chunk(self, chunk: Chunk) -> bool:
        """Send one chunk; returns False when it was skipped because a sibling already failed."""
        if self._chunk_failed:
            logger.debug(f"Skipping chunk after earlier failure [part={chunk.part_number}, offset={chunk.offset}]")
            return False

        logger.debug(
            f"Uploading chunk [part={chunk.part_number}, offset={chunk.offset}, size={chunk.byte_count}]"
        )
        try:
            await self.transport.put_chunk(self.token, self.session.session_id, chunk.offset, chunk.payload)
        except Exception:
            # Set before the limiter hands this slot to the next chunk
            self._chunk_failed = True
            raise
        return True

    def _on_chunk_settled(self, chunk: Chunk, emitter: ProgressEmitter, task: asyncio.Task) -> None:
        # Runs on the event loop after each chunk task; the only writer of progress
        self._in_flight.discard(task)
        if task.cancelled():
            return

        error = task.exception()
        if error is None and not task.result():
            return
        if error is not None:
            logger.error(
                f"Chunk upload failed [part={chunk.part_number}, offset={chunk.offset}, "
                f"size={chunk.byte_count}]: {error}"
            )
            if self._first_error is None:
                chunk_error = ChunkUploadError(
                    chunk.part_number,
                    chunk.offset,
                    chunk.byte_count,
                    f"Chunk {chunk.part_number} failed [offset={chunk.offset}, size={chunk.byte_count}]: {error}",
                )
                chunk_error.__cause__ = error
                self._first_error = chunk_error
            emitter.emit(ChunkErrorEvent(chunk.part_number, chunk.offset, chunk.byte_count, error))
            return

        processed = self.session.progress.add(chunk.byte_count)
        logger.debug(
            f"Chunk uploaded [part={chunk.part_number}, offset={chunk.offset}, size={chunk.byte_count}]"
        )
        emitter.emit(UploadProgressEvent(processed_bytes=processed, total_bytes=self.total_byte_count))
        if processed == self.total_byte_count and not self._success_emitted:
            self._success_emitted = True
            emitter.emit(UploadSuccessEvent())

    async def _finalize(self, paid_by: PaidBy) -> ReconstructionResponse:
        try:
            return await self.transport.finalize(
                self.token,
                self.session.session_id,
                headers=paid_by_headers(paid_by),
                max_wait_seconds=finalize_wait_seconds(self.total_byte_count),
            )
        except FinalizeError:
            raise
        except Exception as e:
            raise FinalizeError(f"Failed to finalize upload: {e}") from e

    async def _watch_cancellation(self, cancel_event: asyncio.Event, owner: asyncio.Task) -> None:
        await cancel_event.wait()
        logger.warning(f"Upload cancellation requested [in_flight={len(self._in_flight)}]")
        for task in list(self._in_flight):
            task.cancel()
        owner.cancel()

    async def _cancel_in_flight(self) -> None:
        tasks = list(self._in_flight)
        if not tasks:
            return
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _fail(self, emitter: ProgressEmitter, error: BaseException) -> None:
        self.state = SessionState.FAILED
        session_id = self.session.session_id if self.session else None
        logger.error(f"Chunked upload failed [session_id={session_id}]: {error}")
        emitter.emit(UploadErrorEvent(error))


async def _read_all(source: ByteSource) -> bytes:
    buffer = bytearray()
    try:
        while True:
            data = await source.next_bytes()
            if data is None:
                return bytes(buffer)
            buffer += data
    finally:
        await source.aclose()


async def _await_cancellable(coro, cancel_event: Optional[asyncio.Event]):
    if cancel_event is None:
        return await coro

    task = asyncio.create_task(coro)
    waiter = asyncio.create_task(cancel_event.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if task.done():
            return task.result()
        raise UploadCancelledError("Upload cancelled")
    finally:
        for pending in (task, waiter):
            if not pending.done():
                pending.cancel()
        await asyncio.gather(task, waiter, return_exceptions=True)


async def upload_single_request(
    *,
    total_byte_count: int,
    source_factory: Callable[[], object],
    token: str,
    transport: ChunkTransport,
    paid_by: PaidBy = None,
    events: Events = None,
    cancel_event: Optional[asyncio.Event] = None
) -> ReconstructionResponse:
    """
    Upload a payload in one request, reporting through the same events as the chunked path.

    Raises:
        UploadCancelledError: If cancel_event was set
        InvalidParameterError: If the source size does not match total_byte_count
    """
    _validate_total(total_byte_count)
    emitter = ProgressEmitter.from_handlers(events)

    try:
        if cancel_event is not None and cancel_event.is_set():
            raise UploadCancelledError("Upload cancelled before it started")
        payload = await _await_cancellable(_read_all(as_byte_source(source_factory())), cancel_event)
        if len(payload) != total_byte_count:
            raise InvalidParameterError(
                f"Payload source produced {len(payload)} bytes, expected {total_byte_count}"
            )
        logger.debug(f"Uploading payload in a single request [token={token}, size={total_byte_count}]")
        receipt = await _await_cancellable(
            transport.upload_single(token, payload, headers=paid_by_headers(paid_by)),
            cancel_event,
        )
    except Exception as e:
        logger.error(f"Single request upload failed: {e}")
        emitter.emit(UploadErrorEvent(e))
        raise

    emitter.emit(UploadProgressEvent(processed_bytes=total_byte_count, total_bytes=total_byte_count))
    emitter.emit(UploadSuccessEvent())
    return receipt


async def upload(
    *,
    total_byte_count: int,
    source_factory: Callable[[], object],
    token: str,
    transport: ChunkTransport,
    chunk_byte_count: Optional[int] = None,
    max_chunk_concurrency: Optional[int] = None,
    chunking_mode: Union[ChunkingMode, str] = ChunkingMode.AUTO,
    paid_by: PaidBy = None,
    events: Events = None,
    cancel_event: Optional[asyncio.Event] = None
) -> ReconstructionResponse:
    """
    Upload a payload, in chunks when the chunking policy calls for it.

    Args:
        total_byte_count: Exact size of the payload in bytes
        source_factory: Returns the payload (see ChunkedUploader.upload)
        token: Storage token tag
        transport: Chunk upload service client
        chunk_byte_count: Chunk size in bytes, defaults to 5 MiB
        max_chunk_concurrency: Chunk requests in flight, defaults to 5
        chunking_mode: auto, force or disabled
        paid_by: Payer address or addresses for billing attribution
        events: Listeners for upload events
        cancel_event: Setting this event aborts the upload

    Returns:
        The server's receipt for the payload
    """
    uploader = ChunkedUploader(
        transport=transport,
        token=token,
        total_byte_count=total_byte_count,
        chunk_byte_count=DEFAULT_CHUNK_BYTE_COUNT if chunk_byte_count is None else chunk_byte_count,
        max_chunk_concurrency=(
            DEFAULT_MAX_CHUNK_CONCURRENCY if max_chunk_concurrency is None else max_chunk_concurrency
        ),
        chunking_mode=chunking_mode,
    )

    if uploader.should_chunk_upload:
        return await uploader.upload(source_factory, paid_by=paid_by, events=events, cancel_event=cancel_event)

    return await upload_single_request(
        total_byte_count=total_byte_count,
        source_factory=source_factory,
        token=token,
        transport=transport,
        paid_by=paid_by,
        events=events,
        cancel_event=cancel_event,
    )
