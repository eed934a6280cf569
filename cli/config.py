"""Configuration management for the chunkup CLI."""

import json
import os
from pathlib import Path
from typing import Optional

from common.constants import (
    DEFAULT_CHUNK_BYTE_COUNT,
    DEFAULT_MAX_CHUNK_CONCURRENCY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BACKOFF_MULTIPLIER,
    DEFAULT_SERVICE_URL,
    DEFAULT_STATUS_POLL_INTERVAL_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
)
from common.logging_config import get_logger
from common.types import ChunkingMode
from uploader.config import UploaderConfig

logger = get_logger(__name__)


class Config:
    """Manages CLI configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "service_url": os.environ.get("CHUNKUP_SERVICE_URL", DEFAULT_SERVICE_URL),
        "timeout": DEFAULT_TIMEOUT_SECONDS,
        "max_retries": DEFAULT_MAX_RETRIES,
        "retry_backoff_multiplier": DEFAULT_RETRY_BACKOFF_MULTIPLIER,
        "status_poll_interval": DEFAULT_STATUS_POLL_INTERVAL_SECONDS,
        "chunk_byte_count": DEFAULT_CHUNK_BYTE_COUNT,
        "max_chunk_concurrency": DEFAULT_MAX_CHUNK_CONCURRENCY,
        "chunking_mode": ChunkingMode.AUTO.value,
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.chunkup/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        config = self.DEFAULT_CONFIG.copy()

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    config.update(json.load(f))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Ignoring unreadable config file {self.config_path}: {e}")
            return config

        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w') as f:
                json.dump(config, f, indent=2)
        except OSError as e:
            logger.warning(f"Could not write default config to {self.config_path}: {e}")
        return config

    def save(self) -> None:
        """Save current configuration to file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w') as f:
            json.dump(self.data, f, indent=2)

    def get_service_url(self) -> str:
        return self.data.get('service_url', DEFAULT_SERVICE_URL)

    def set_service_url(self, url: str) -> None:
        self.data['service_url'] = url
        self.save()

    def get_timeout(self) -> float:
        return self.data.get('timeout', DEFAULT_TIMEOUT_SECONDS)

    def get_retry_config(self) -> dict:
        """
        Get retry configuration.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', DEFAULT_MAX_RETRIES),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', DEFAULT_RETRY_BACKOFF_MULTIPLIER),
        }

    def get_chunking_config(self) -> dict:
        """
        Get chunking defaults.

        Returns:
            Dictionary with 'chunk_byte_count', 'max_chunk_concurrency' and 'chunking_mode'
        """
        return {
            'chunk_byte_count': self.data.get('chunk_byte_count', DEFAULT_CHUNK_BYTE_COUNT),
            'max_chunk_concurrency': self.data.get('max_chunk_concurrency', DEFAULT_MAX_CHUNK_CONCURRENCY),
            'chunking_mode': self.data.get('chunking_mode', ChunkingMode.AUTO.value),
        }

    def to_uploader_config(self, service_url: Optional[str] = None) -> UploaderConfig:
        """Build the engine configuration, optionally overriding the service URL."""
        retry = self.get_retry_config()
        chunking = self.get_chunking_config()
        return UploaderConfig(
            service_url=service_url or self.get_service_url(),
            timeout=self.get_timeout(),
            max_retries=retry['max_retries'],
            retry_backoff_multiplier=retry['retry_backoff_multiplier'],
            status_poll_interval=self.data.get('status_poll_interval', DEFAULT_STATUS_POLL_INTERVAL_SECONDS),
            chunk_byte_count=chunking['chunk_byte_count'],
            max_chunk_concurrency=chunking['max_chunk_concurrency'],
            chunking_mode=chunking['chunking_mode'],
        )
