"""Chunking policy: parameter validation and the chunk / single-request decision."""

from typing import Union

from common.constants import (
    DEFAULT_CHUNK_BYTE_COUNT,
    DEFAULT_MAX_CHUNK_CONCURRENCY,
    MAX_CHUNK_BYTE_COUNT,
    MIN_CHUNK_BYTE_COUNT,
)
from common.exceptions import InvalidParameterError
from common.types import ChunkingMode

VALID_CHUNKING_MODES = tuple(mode.value for mode in ChunkingMode)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_chunking_mode(chunking_mode: Union[ChunkingMode, str]) -> ChunkingMode:
    """
    Coerce a mode given as enum member or string.

    Raises:
        InvalidParameterError: If the mode is not one of auto, force, disabled
    """
    if isinstance(chunking_mode, ChunkingMode):
        return chunking_mode
    if isinstance(chunking_mode, str) and chunking_mode in VALID_CHUNKING_MODES:
        return ChunkingMode(chunking_mode)
    raise InvalidParameterError(
        f"Invalid chunking mode. Must be one of: {', '.join(VALID_CHUNKING_MODES)}"
    )


def assert_chunk_params(
    chunk_byte_count: int,
    chunking_mode: Union[ChunkingMode, str],
    max_chunk_concurrency: int
) -> None:
    """
    Validate chunked upload parameters.

    Args:
        chunk_byte_count: Size of every chunk but the last, in bytes
        chunking_mode: auto, force or disabled
        max_chunk_concurrency: Maximum chunk requests in flight

    Raises:
        InvalidParameterError: If any parameter is out of range
    """
    if not _is_int(max_chunk_concurrency) or max_chunk_concurrency < 1:
        raise InvalidParameterError(
            "Invalid max chunk concurrency. Must be an integer of at least 1."
        )

    if (
        not _is_int(chunk_byte_count)
        or chunk_byte_count < MIN_CHUNK_BYTE_COUNT
        or chunk_byte_count > MAX_CHUNK_BYTE_COUNT
    ):
        raise InvalidParameterError(
            "Invalid chunk size. Must be an integer between 5 MiB and 500 MiB."
        )

    parse_chunking_mode(chunking_mode)


def should_chunk_upload(
    total_byte_count: int,
    chunk_byte_count: int,
    chunking_mode: Union[ChunkingMode, str]
) -> bool:
    """Decide on already validated parameters."""
    mode = parse_chunking_mode(chunking_mode)
    if mode is ChunkingMode.DISABLED:
        return False
    if mode is ChunkingMode.FORCE:
        return True

    # Payloads of at most two chunks go out as a single request
    return total_byte_count > chunk_byte_count * 2


def decide(
    total_byte_count: int,
    chunk_byte_count: int = DEFAULT_CHUNK_BYTE_COUNT,
    mode: Union[ChunkingMode, str] = ChunkingMode.AUTO,
    max_concurrency: int = DEFAULT_MAX_CHUNK_CONCURRENCY
) -> bool:
    """
    Validate parameters and decide whether a payload goes through the chunked path.

    Args:
        total_byte_count: Size of the whole payload in bytes
        chunk_byte_count: Configured chunk size in bytes
        mode: auto, force or disabled
        max_concurrency: Configured chunk concurrency

    Returns:
        True if the payload should be uploaded in chunks

    Raises:
        InvalidParameterError: If chunk size, concurrency or mode is invalid
    """
    assert_chunk_params(chunk_byte_count, mode, max_concurrency)
    return should_chunk_upload(total_byte_count, chunk_byte_count, mode)
