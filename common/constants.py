"""Project-wide constants (chunk size limits, protocol headers, defaults)."""

MIB: int = 1024 * 1024
GIB: int = 1024 * MIB

MIN_CHUNK_BYTE_COUNT: int = 5 * MIB  # 5 MiB
MAX_CHUNK_BYTE_COUNT: int = 500 * MIB  # 500 MiB
DEFAULT_CHUNK_BYTE_COUNT: int = MIN_CHUNK_BYTE_COUNT

DEFAULT_MAX_CHUNK_CONCURRENCY: int = 5

# In-flight chunk tasks allowed per concurrency slot before streaming pauses
BACKLOG_QUEUE_FACTOR: int = 2

# Upper bound on a single slice handed out by in-memory sources
BUFFER_SOURCE_SLICE_BYTES: int = 1 * MIB
READER_SOURCE_READ_BYTES: int = 1 * MIB
PUSH_SOURCE_QUEUE_SIZE: int = 16

CHUNKING_VERSION_HEADER: dict = {'x-chunking-version': '2'}
PAID_BY_HEADER: str = 'x-paid-by'
OCTET_STREAM: str = 'application/octet-stream'

# Offset marker used for session open and finalize
END_OF_STREAM_OFFSET: int = -1

DEFAULT_SERVICE_URL: str = 'https://upload.ardrive.io'
DEFAULT_TIMEOUT_SECONDS: int = 60
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_BACKOFF_MULTIPLIER: int = 2
DEFAULT_STATUS_POLL_INTERVAL_SECONDS: float = 2.0

# Finalize waits up to this many seconds per started GiB of payload
FINALIZE_WAIT_SECONDS_PER_GIB: int = 60

ALLOWED_STATUS_CODES: tuple = (200, 202)

MULTIPART_PENDING_STATUSES: tuple = ('ASSEMBLING', 'VALIDATING', 'FINALIZING')
MULTIPART_FAILED_STATUSES: tuple = ('UNDERFUNDED', 'INVALID', 'APPROVAL_FAILED', 'REVOKE_FAILED')
MULTIPART_FINALIZED_STATUS: str = 'FINALIZED'
