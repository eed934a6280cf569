"""Configuration settings for the chunked upload engine."""

import os
from dataclasses import dataclass

from common.constants import (
    DEFAULT_CHUNK_BYTE_COUNT,
    DEFAULT_MAX_CHUNK_CONCURRENCY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BACKOFF_MULTIPLIER,
    DEFAULT_SERVICE_URL,
    DEFAULT_STATUS_POLL_INTERVAL_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
)
from common.types import ChunkingMode


@dataclass
class UploaderConfig:
    """Connection and chunking settings shared by the transport and the session."""
    service_url: str = DEFAULT_SERVICE_URL
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_backoff_multiplier: float = DEFAULT_RETRY_BACKOFF_MULTIPLIER
    status_poll_interval: float = DEFAULT_STATUS_POLL_INTERVAL_SECONDS
    chunk_byte_count: int = DEFAULT_CHUNK_BYTE_COUNT
    max_chunk_concurrency: int = DEFAULT_MAX_CHUNK_CONCURRENCY
    chunking_mode: str = ChunkingMode.AUTO.value

    @classmethod
    def from_env(cls) -> 'UploaderConfig':
        """
        Build a config from CHUNKUP_* environment variables, falling back to defaults.

        Returns:
            UploaderConfig instance
        """
        return cls(
            service_url=os.environ.get("CHUNKUP_SERVICE_URL", DEFAULT_SERVICE_URL),
            timeout=float(os.environ.get("CHUNKUP_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)),
            max_retries=int(os.environ.get("CHUNKUP_MAX_RETRIES", DEFAULT_MAX_RETRIES)),
            retry_backoff_multiplier=float(
                os.environ.get("CHUNKUP_RETRY_BACKOFF_MULTIPLIER", DEFAULT_RETRY_BACKOFF_MULTIPLIER)
            ),
            status_poll_interval=float(
                os.environ.get("CHUNKUP_STATUS_POLL_INTERVAL", DEFAULT_STATUS_POLL_INTERVAL_SECONDS)
            ),
            chunk_byte_count=int(os.environ.get("CHUNKUP_CHUNK_BYTE_COUNT", DEFAULT_CHUNK_BYTE_COUNT)),
            max_chunk_concurrency=int(
                os.environ.get("CHUNKUP_MAX_CHUNK_CONCURRENCY", DEFAULT_MAX_CHUNK_CONCURRENCY)
            ),
            chunking_mode=os.environ.get("CHUNKUP_CHUNKING_MODE", ChunkingMode.AUTO.value),
        )
