"""Command handler functions for CLI operations."""

import asyncio
import os
from typing import Optional

import httpx

from common.exceptions import ChunkedUploadError, FailedRequestError
from common.logging_config import get_logger
from cli.config import Config
from cli.models import CommandRequest, CommandResult, HelpCommand, UploadFileCommand
from cli.constants import HELP_TEXT
from cli.utils import ProgressPrinter, format_file_size
from uploader.schemas import ReconstructionResponse
from uploader.session import upload
from uploader.transport import ChunkTransport

logger = get_logger(__name__)


async def upload_file(
    cmd: UploadFileCommand,
    config: Config,
    client: Optional[httpx.AsyncClient] = None,
    printer: Optional[ProgressPrinter] = None
) -> ReconstructionResponse:
    """
    Upload the file named by the command.

    Args:
        cmd: UploadFileCommand with path, token and chunking overrides
        config: CLI configuration supplying defaults
        client: Optional httpx.AsyncClient for dependency injection (testing)
        printer: Optional progress printer

    Returns:
        Receipt returned by the upload service
    """
    uploader_config = config.to_uploader_config(service_url=cmd.service_url)
    file_size = os.path.getsize(cmd.file_path)
    filename = os.path.basename(cmd.file_path)
    printer = printer or ProgressPrinter(filename)

    chunk_byte_count = cmd.chunk_byte_count or uploader_config.chunk_byte_count
    max_chunk_concurrency = cmd.max_chunk_concurrency or uploader_config.max_chunk_concurrency
    chunking_mode = cmd.chunking_mode or uploader_config.chunking_mode

    logger.info(
        f"Uploading {filename} [size={file_size}, token={cmd.token}, "
        f"chunk_size={chunk_byte_count}, concurrency={max_chunk_concurrency}, mode={chunking_mode}]"
    )

    async with ChunkTransport.from_config(uploader_config, client=client) as transport:
        return await upload(
            total_byte_count=file_size,
            source_factory=lambda: open(cmd.file_path, 'rb'),
            token=cmd.token,
            transport=transport,
            chunk_byte_count=chunk_byte_count,
            max_chunk_concurrency=max_chunk_concurrency,
            chunking_mode=chunking_mode,
            paid_by=cmd.paid_by or None,
            events=printer.handlers(),
        )


def handle_upload_file(
    cmd: UploadFileCommand,
    config: Config,
    client: Optional[httpx.AsyncClient] = None
) -> CommandResult:
    """
    Handle 'upload-file' command.

    Args:
        cmd: UploadFileCommand
        config: CLI configuration
        client: Optional httpx.AsyncClient for dependency injection (testing)

    Returns:
        CommandResult with the receipt id or an error message
    """
    if not os.path.exists(cmd.file_path):
        return CommandResult(False, f"Error: File not found: {cmd.file_path}")
    if not os.path.isfile(cmd.file_path):
        return CommandResult(False, f"Error: Not a file: {cmd.file_path}")

    try:
        receipt = asyncio.run(upload_file(cmd, config, client=client))
    except FailedRequestError as e:
        logger.error(f"Upload rejected by service: {e}")
        return CommandResult(False, f"Upload failed: service returned {e.status_code} ({e.detail or 'no detail'})")
    except ChunkedUploadError as e:
        logger.error(f"Upload failed: {e}")
        return CommandResult(False, f"Upload failed: {e}")
    except httpx.HTTPError as e:
        logger.error(f"Network error during upload: {e}")
        return CommandResult(False, f"Error: Cannot reach upload service: {e}")

    size = format_file_size(os.path.getsize(cmd.file_path))
    logger.info(f"Upload complete [id={receipt.id}]")
    return CommandResult(True, f"Uploaded: {os.path.basename(cmd.file_path)} ({size})\nID: {receipt.id}")


def execute(cmd: CommandRequest, config: Config, client: Optional[httpx.AsyncClient] = None) -> CommandResult:
    """Dispatch a parsed command to its handler."""
    if isinstance(cmd, UploadFileCommand):
        return handle_upload_file(cmd, config, client=client)
    if isinstance(cmd, HelpCommand):
        return CommandResult(True, HELP_TEXT)
    return CommandResult(False, f"Unsupported command: {cmd.command}")
