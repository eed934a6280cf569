"""Command request and result data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class UploadFileCommand:
    """Upload a payload file, in chunks when the chunking policy calls for it."""

    file_path: str
    token: str
    service_url: str | None = None
    chunk_byte_count: int | None = None
    max_chunk_concurrency: int | None = None
    chunking_mode: str | None = None
    paid_by: tuple[str, ...] = ()
    command: Literal["upload-file"] = "upload-file"


@dataclass(frozen=True)
class HelpCommand:
    """Show usage."""

    command: Literal["help"] = "help"


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a command, printed by the entry point."""

    success: bool
    message: str


CommandRequest = UploadFileCommand | HelpCommand
