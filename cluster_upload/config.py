"""
Uploader configuration.

Settings are plain dataclass fields with defaults; a JSON file can provide
any subset of them. The caller owns the configuration object and builds the
client from it explicitly.
"""

import json
import os
from dataclasses import dataclass, field, fields
from typing import Any, Optional

from cluster_upload.client.retry import RetryPolicy, UploadClient
from cluster_upload.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
)


def _expand(value: Any) -> Any:
    """Expand environment variables in string values, recursively."""
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [_expand(item) for item in value]
    if isinstance(value, dict):
        return {key: _expand(item) for key, item in value.items()}
    return value


@dataclass
class UploaderConfig:
    """Settings of an upload client.

    Attributes:
        masters: Master addresses in the order they are tried
        chunk_size: Chunk size in bytes when the data node suggests none
        max_retries: Trials after the first one
        retry_delay: Seconds between trials
        backoff_factor: Delay multiplier between trials (1.0 = fixed delay)
        timeout: Socket timeout for every request in seconds
        headers: Custom headers sent with every request
        retry_session_init: Retry refused session openings instead of aborting
        retry_local_file_errors: Retry unreadable local files instead of aborting
    """

    masters: list[str] = field(default_factory=list)
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY
    backoff_factor: float = 1.0
    timeout: float = DEFAULT_TIMEOUT
    headers: dict[str, str] = field(default_factory=dict)
    retry_session_init: bool = False
    retry_local_file_errors: bool = False

    def __post_init__(self):
        if isinstance(self.masters, str):
            self.masters = [self.masters]
        self.masters = [str(m) for m in self.masters]
        self.headers = {str(k): str(v) for k, v in self.headers.items()}
        self.chunk_size = int(self.chunk_size)
        self.max_retries = int(self.max_retries)
        self.retry_delay = float(self.retry_delay)
        self.backoff_factor = float(self.backoff_factor)
        self.timeout = float(self.timeout)

        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1 byte, got {self.chunk_size}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {self.max_retries}")
        if self.retry_delay < 0:
            raise ValueError(f"retry_delay must be non-negative, got {self.retry_delay}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UploaderConfig":
        """Build a configuration from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: _expand(value) for key, value in data.items() if key in known})

    @classmethod
    def from_file(cls, path: str) -> "UploaderConfig":
        """Load a configuration from a JSON file.

        Raises:
            OSError: If the file cannot be read
            ValueError: If the file is not a JSON object or holds invalid values
        """
        with open(path) as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a JSON object")
        return cls.from_dict(data)

    def merged(self, **overrides: Optional[Any]) -> "UploaderConfig":
        """Return a copy with every non-None override applied."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({key: value for key, value in overrides.items() if value is not None})
        return UploaderConfig(**values)

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            backoff_factor=self.backoff_factor,
            retry_session_init=self.retry_session_init,
            retry_local_file_errors=self.retry_local_file_errors,
        )

    def create_client(self) -> UploadClient:
        """Build an upload client from these settings."""
        return UploadClient(
            self.masters,
            chunk_size=self.chunk_size,
            retry_policy=self.retry_policy(),
            timeout=self.timeout,
            headers=dict(self.headers),
        )
