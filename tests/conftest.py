"""Shared pytest fixtures for all tests."""

import asyncio
import json
from typing import Optional

import httpx
import pytest

from cli.config import Config
from common.constants import MIB
from uploader.transport import ChunkTransport

RECEIPT = {
    'id': 'tx-abc123',
    'owner': 'owner-address',
    'dataCaches': ['arweave.net'],
    'fastFinalityIndexes': ['arweave.net'],
    'deadlineHeight': 1500000,
    'timestamp': 1700000000000,
    'version': '0.2.0',
    'winc': '0',
}


class FakeChunkServer:
    """
    In-memory chunk upload service behind httpx.MockTransport.

    Records every request so tests can assert on offsets, headers,
    concurrency and whether finalize was reached.
    """

    def __init__(
        self,
        session_id: str = 'upload-1',
        server_chunk_size: Optional[int] = None,
        fail_offsets=(),
        fail_open: bool = False,
        finalize_status_code: int = 202,
        poll_statuses=('FINALIZED',),
        put_delay: float = 0.0,
        block_puts: bool = False,
    ):
        self.session_id = session_id
        self.server_chunk_size = server_chunk_size
        self.fail_offsets = set(fail_offsets)
        self.fail_open = fail_open
        self.finalize_status_code = finalize_status_code
        self.poll_statuses = list(poll_statuses)
        self.put_delay = put_delay
        self.unblock = asyncio.Event()
        if not block_puts:
            self.unblock.set()

        self.open_requests = []
        self.chunks = {}
        self.put_offsets = []
        self.finalize_headers = []
        self.single_uploads = []
        self.status_polls = 0
        self.active = 0
        self.max_active = 0
        self.log = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def assembled(self) -> bytes:
        return b''.join(self.chunks[offset] for offset in sorted(self.chunks))

    async def handler(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip('/').split('/')

        if parts[0] == 'tx':
            self.single_uploads.append(request.content)
            self.log.append('single')
            return httpx.Response(200, json=RECEIPT)

        _, token, session_id, last = parts

        if session_id == '-1':
            requested = int(request.url.params['chunkSize'])
            self.open_requests.append({'token': token, 'chunk_size': requested, 'headers': request.headers})
            self.log.append('open')
            if self.fail_open:
                return httpx.Response(503, json={'detail': 'service unavailable'})
            return httpx.Response(200, json={
                'id': self.session_id,
                'min': 1,
                'max': 10000,
                'chunkSize': self.server_chunk_size or requested,
            })

        if last == 'status':
            self.status_polls += 1
            status = self.poll_statuses.pop(0) if len(self.poll_statuses) > 1 else self.poll_statuses[0]
            body = {'status': status}
            if status == 'FINALIZED':
                body['receipt'] = RECEIPT
            return httpx.Response(200, json=body)

        if last == '-1':
            self.finalize_headers.append(dict(request.headers))
            self.log.append('finalize')
            if self.finalize_status_code >= 400:
                return httpx.Response(self.finalize_status_code, json={'detail': 'finalize rejected'})
            return httpx.Response(self.finalize_status_code)

        offset = int(last)
        self.put_offsets.append(offset)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await self.unblock.wait()
            if self.put_delay:
                await asyncio.sleep(self.put_delay)
        finally:
            self.active -= 1

        if offset in self.fail_offsets:
            return httpx.Response(400, json={'detail': f'chunk at {offset} rejected'})

        self.chunks[offset] = request.content
        self.log.append(('chunk', offset))
        return httpx.Response(200, content=json.dumps({}).encode())


def make_transport(server: FakeChunkServer, **kwargs) -> ChunkTransport:
    client = httpx.AsyncClient(transport=server.transport(), base_url='http://test')
    options = {'max_retries': 0, 'retry_base_delay': 0, 'status_poll_interval': 0}
    options.update(kwargs)
    return ChunkTransport(client=client, **options)


def payload_of(size: int) -> bytes:
    """Deterministic, non-repeating-per-chunk payload of the given size."""
    pattern = bytes(range(251))
    repeats = size // len(pattern) + 1
    return (pattern * repeats)[:size]


@pytest.fixture
def fake_server():
    return FakeChunkServer()


@pytest.fixture
def chunk_transport(fake_server):
    return make_transport(fake_server)


@pytest.fixture
def twelve_mib_payload():
    return payload_of(12 * MIB)


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .chunkup directory
    """
    config_dir = tmp_path / '.chunkup'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    config = Config(temp_config_dir / 'config.json')
    config.data['service_url'] = 'http://test'
    config.data['max_retries'] = 0
    config.data['status_poll_interval'] = 0
    return config


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample payload file for testing uploads.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to sample payload file
    """
    file_path = tmp_path / 'payload.bin'
    file_path.write_bytes(payload_of(4096))
    return file_path
