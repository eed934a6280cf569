"""Utility functions for CLI output."""

import sys
from typing import TextIO

from cli.constants import GREEN, RESET, YELLOW
from uploader.events import (
    ChunkErrorEvent,
    UploadErrorEvent,
    UploadEventHandlers,
    UploadProgressEvent,
    UploadSuccessEvent,
)


class ProgressPrinter:
    """Renders upload events as a single updating progress line."""

    def __init__(self, filename: str, stream: TextIO = sys.stdout):
        """
        Initialize the progress printer.

        Args:
            filename: Display name for the payload
            stream: Where to write, stdout by default
        """
        self.filename = filename
        self.stream = stream
        self._finished = False

    def handlers(self) -> UploadEventHandlers:
        return UploadEventHandlers(
            on_progress=self.on_progress,
            on_chunk_error=self.on_chunk_error,
            on_success=self.on_success,
            on_error=self.on_error,
        )

    def on_progress(self, event: UploadProgressEvent) -> None:
        if event.total_bytes:
            progress = (event.processed_bytes / event.total_bytes) * 100
        else:
            progress = 100.0
        self.stream.write(
            f"\rUploading {self.filename}: {format_file_size(event.processed_bytes)} / "
            f"{format_file_size(event.total_bytes)} ({GREEN}{progress:.1f}%{RESET})"
        )
        self.stream.flush()

    def on_chunk_error(self, event: ChunkErrorEvent) -> None:
        self.stream.write(
            f"\n{YELLOW}Chunk {event.part_number} failed at offset {event.offset}: {event.error}{RESET}\n"
        )
        self.stream.flush()

    def on_success(self, event: UploadSuccessEvent) -> None:
        self._finish()

    def on_error(self, event: UploadErrorEvent) -> None:
        self._finish()

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self.stream.write('\n')
        self.stream.flush()


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"
