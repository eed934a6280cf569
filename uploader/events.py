"""Upload progress events and the emitter that dispatches them."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Union

from common.logging_config import get_logger

logger = get_logger(__name__)


class EventKind(str, Enum):
    PROGRESS = 'upload-progress'
    CHUNK_ERROR = 'chunk-error'
    SUCCESS = 'upload-success'
    ERROR = 'upload-error'


@dataclass(frozen=True)
class UploadProgressEvent:
    """Cumulative bytes acknowledged by the server."""
    processed_bytes: int
    total_bytes: int
    kind: EventKind = EventKind.PROGRESS


@dataclass(frozen=True)
class ChunkErrorEvent:
    """A single chunk failed; chunks already sending still settle before the upload fails."""
    part_number: int
    offset: int
    byte_count: int
    error: BaseException
    kind: EventKind = EventKind.CHUNK_ERROR


@dataclass(frozen=True)
class UploadSuccessEvent:
    """Every byte of the payload reached the server."""
    kind: EventKind = EventKind.SUCCESS


@dataclass(frozen=True)
class UploadErrorEvent:
    """The upload as a whole failed."""
    error: BaseException
    kind: EventKind = EventKind.ERROR


UploadEvent = Union[UploadProgressEvent, ChunkErrorEvent, UploadSuccessEvent, UploadErrorEvent]
Listener = Callable[[UploadEvent], None]


@dataclass
class UploadEventHandlers:
    """Optional callbacks, one per event kind."""
    on_progress: Optional[Callable[[UploadProgressEvent], None]] = None
    on_chunk_error: Optional[Callable[[ChunkErrorEvent], None]] = None
    on_success: Optional[Callable[[UploadSuccessEvent], None]] = None
    on_error: Optional[Callable[[UploadErrorEvent], None]] = None


class ProgressEmitter:
    """
    Synchronous multi-listener event channel for one upload.

    Listeners run in registration order, inside ``emit``. Events are not
    buffered: a listener added after an event was emitted never sees it.
    """

    def __init__(self, handlers: Optional[UploadEventHandlers] = None):
        self._listeners: Dict[EventKind, List[Listener]] = {kind: [] for kind in EventKind}
        if handlers is not None:
            if handlers.on_progress is not None:
                self.on(EventKind.PROGRESS, handlers.on_progress)
            if handlers.on_chunk_error is not None:
                self.on(EventKind.CHUNK_ERROR, handlers.on_chunk_error)
            if handlers.on_success is not None:
                self.on(EventKind.SUCCESS, handlers.on_success)
            if handlers.on_error is not None:
                self.on(EventKind.ERROR, handlers.on_error)

    @classmethod
    def from_handlers(
        cls,
        events: Union['ProgressEmitter', UploadEventHandlers, None]
    ) -> 'ProgressEmitter':
        if isinstance(events, ProgressEmitter):
            return events
        return cls(events)

    def on(self, kind: Union[EventKind, str], listener: Listener) -> 'ProgressEmitter':
        self._listeners[EventKind(kind)].append(listener)
        return self

    def off(self, kind: Union[EventKind, str], listener: Listener) -> 'ProgressEmitter':
        listeners = self._listeners[EventKind(kind)]
        if listener in listeners:
            listeners.remove(listener)
        return self

    def listener_count(self, kind: Union[EventKind, str]) -> int:
        return len(self._listeners[EventKind(kind)])

    def emit(self, event: UploadEvent) -> bool:
        """
        Deliver an event to every listener of its kind.

        A listener that raises is logged and skipped; the remaining
        listeners and the upload itself carry on.

        Returns:
            True if at least one listener was registered for the event
        """
        listeners = list(self._listeners[event.kind])
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Listener for {event.kind.value} raised: {e}", exc_info=True)
        return bool(listeners)
