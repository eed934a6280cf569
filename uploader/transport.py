"""HTTP transport for the chunk upload service."""

import asyncio
import math
from typing import Optional

import httpx

from common.constants import (
    ALLOWED_STATUS_CODES,
    CHUNKING_VERSION_HEADER,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BACKOFF_MULTIPLIER,
    DEFAULT_SERVICE_URL,
    DEFAULT_STATUS_POLL_INTERVAL_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    END_OF_STREAM_OFFSET,
    MULTIPART_FAILED_STATUSES,
    MULTIPART_FINALIZED_STATUS,
    MULTIPART_PENDING_STATUSES,
    OCTET_STREAM,
)
from common.exceptions import FailedRequestError, FinalizeError
from common.logging_config import get_logger
from uploader.config import UploaderConfig
from uploader.schemas import MultiPartStatusResponse, ReconstructionResponse, SessionOpenResponse

logger = get_logger(__name__)


class ChunkTransport:
    """Async HTTP client for chunk sessions with retry on transient failures."""

    def __init__(
        self,
        base_url: str = DEFAULT_SERVICE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff_multiplier: float = DEFAULT_RETRY_BACKOFF_MULTIPLIER,
        retry_base_delay: float = 1.0,
        status_poll_interval: float = DEFAULT_STATUS_POLL_INTERVAL_SECONDS,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the transport.

        Args:
            base_url: Upload service URL
            timeout: Per-request timeout in seconds
            max_retries: Retry attempts for 5xx responses and network errors
            retry_backoff_multiplier: Delay grows by this factor on every attempt
            retry_base_delay: Delay before the first retry, in seconds
            status_poll_interval: Base interval between finalize status polls, in seconds
            client: Optional preconfigured httpx.AsyncClient (not closed by aclose)
        """
        self.max_retries = max_retries
        self.retry_backoff_multiplier = retry_backoff_multiplier
        self.retry_base_delay = retry_base_delay
        self.status_poll_interval = status_poll_interval
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        logger.info(f"Initialized ChunkTransport [base_url={self.client.base_url}]")

    @classmethod
    def from_config(cls, config: UploaderConfig, client: Optional[httpx.AsyncClient] = None) -> 'ChunkTransport':
        return cls(
            base_url=config.service_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
            retry_backoff_multiplier=config.retry_backoff_multiplier,
            status_poll_interval=config.status_poll_interval,
            client=client,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> 'ChunkTransport':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _retry_delay(self, attempt: int) -> float:
        return self.retry_base_delay * (self.retry_backoff_multiplier ** attempt)

    @staticmethod
    def _error_detail(response: httpx.Response) -> Optional[str]:
        try:
            data = response.json()
        except ValueError:
            return response.text or None
        if isinstance(data, dict):
            return data.get('detail') or data.get('message') or response.text
        return response.text or None

    async def _request(self, method: str, endpoint: str, headers: Optional[dict] = None, **kwargs) -> httpx.Response:
        """
        Make an HTTP request, retrying 5xx responses and network failures with backoff.

        Args:
            method: HTTP method
            endpoint: Path relative to the service URL
            headers: Extra headers; the chunking version header is always sent
            **kwargs: Passed through to httpx

        Returns:
            Response with an allowed status code

        Raises:
            FailedRequestError: If the final response status is not allowed
            httpx.TransportError: If the network error persists past max_retries
        """
        request_headers = dict(CHUNKING_VERSION_HEADER)
        if headers:
            request_headers.update(headers)

        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.request(method, endpoint, headers=request_headers, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                if attempt < self.max_retries:
                    delay = self._retry_delay(attempt)
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{self.max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                logger.error(f"Network error (max retries exceeded): {method} {endpoint} error={e}")
                raise

            logger.debug(f"Response received: {method} {endpoint} status={response.status_code}")

            if response.status_code >= 500 and attempt < self.max_retries:
                delay = self._retry_delay(attempt)
                logger.warning(
                    f"Server error (attempt {attempt + 1}/{self.max_retries + 1}): "
                    f"{method} {endpoint} status={response.status_code}, retrying in {delay}s"
                )
                await asyncio.sleep(delay)
                continue

            if response.status_code not in ALLOWED_STATUS_CODES:
                raise FailedRequestError(response.status_code, self._error_detail(response))

            return response

        raise AssertionError("unreachable")

    async def open_session(self, token: str, chunk_byte_count: int) -> SessionOpenResponse:
        """
        Open a chunk session for a token.

        Returns:
            SessionOpenResponse with the session id and the chunk size the server will use
        """
        response = await self._request(
            'GET',
            f"/chunks/{token}/{END_OF_STREAM_OFFSET}/{END_OF_STREAM_OFFSET}",
            params={'chunkSize': chunk_byte_count},
        )
        return SessionOpenResponse.model_validate(response.json())

    async def put_chunk(
        self,
        token: str,
        session_id: str,
        offset: int,
        payload: bytes,
        headers: Optional[dict] = None
    ) -> None:
        """Store one chunk at its byte offset within the session."""
        request_headers = {'Content-Type': OCTET_STREAM}
        if headers:
            request_headers.update(headers)
        await self._request(
            'POST',
            f"/chunks/{token}/{session_id}/{offset}",
            headers=request_headers,
            content=payload,
        )

    async def get_status(self, token: str, session_id: str) -> MultiPartStatusResponse:
        response = await self._request('GET', f"/chunks/{token}/{session_id}/status")
        return MultiPartStatusResponse.model_validate(response.json())

    async def finalize(
        self,
        token: str,
        session_id: str,
        headers: Optional[dict] = None,
        max_wait_seconds: float = 60
    ) -> ReconstructionResponse:
        """
        Tell the server no more chunks are coming and wait for the reconstructed payload.

        The server may answer the finalize request with the receipt right away,
        or assemble in the background; in the latter case the session status is
        polled until it settles or max_wait_seconds elapse.

        Raises:
            FinalizeError: If the server reports a failed status or never finishes
            FailedRequestError: If a request is rejected
        """
        request_headers = {'Content-Type': OCTET_STREAM}
        if headers:
            request_headers.update(headers)
        logger.debug(f"Finalizing upload [session_id={session_id}, headers={request_headers}]")

        response = await self._request(
            'POST',
            f"/chunks/{token}/{session_id}/{END_OF_STREAM_OFFSET}",
            headers=request_headers,
            content=b'',
        )

        immediate = self._parse_status(response)
        if immediate is not None:
            receipt = self._settle(immediate)
            if receipt is not None:
                return receipt

        logger.debug(
            f"Confirming upload [session_id={session_id}] for up to {math.ceil(max_wait_seconds)}s"
        )

        loop = asyncio.get_running_loop()
        deadline = loop.time() + max_wait_seconds
        attempt = 0

        while loop.time() < deadline:
            status = await self.get_status(token, session_id)
            receipt = self._settle(status)
            if receipt is not None:
                logger.debug(f"Upload finalized [session_id={session_id}]")
                return receipt

            logger.debug(f"Upload status: {status.status} [session_id={session_id}]")
            await asyncio.sleep(attempt * self.status_poll_interval)
            attempt += 1

        raise FinalizeError(f"Finalization of session {session_id} timed out after {max_wait_seconds}s")

    @staticmethod
    def _parse_status(response: httpx.Response) -> Optional[MultiPartStatusResponse]:
        if not response.content:
            return None
        try:
            data = response.json()
        except ValueError:
            return None
        if not isinstance(data, dict) or 'status' not in data:
            return None
        return MultiPartStatusResponse.model_validate(data)

    @staticmethod
    def _settle(status: MultiPartStatusResponse) -> Optional[ReconstructionResponse]:
        """Return the receipt of a finalized session, None while pending."""
        if status.status == MULTIPART_FINALIZED_STATUS:
            if status.receipt is None:
                raise FinalizeError("Session finalized without a receipt", status.status)
            return status.receipt
        if status.status in MULTIPART_FAILED_STATUSES:
            raise FinalizeError(f"Upload failed with status {status.status}", status.status)
        if status.status not in MULTIPART_PENDING_STATUSES:
            logger.warning(f"Unknown session status {status.status}, treating as pending")
        return None

    async def upload_single(self, token: str, payload: bytes, headers: Optional[dict] = None) -> ReconstructionResponse:
        """Upload a whole payload in one request."""
        request_headers = {'Content-Type': OCTET_STREAM}
        if headers:
            request_headers.update(headers)
        response = await self._request('POST', f"/tx/{token}", headers=request_headers, content=payload)
        return ReconstructionResponse.model_validate(response.json())
