"""Unit tests for ChunkTransport."""

import httpx
import pytest

from common.exceptions import FailedRequestError, FinalizeError
from uploader.transport import ChunkTransport

from conftest import RECEIPT, FakeChunkServer, make_transport


def transport_for(handler, **kwargs) -> ChunkTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url='http://test')
    options = {'max_retries': 0, 'retry_base_delay': 0, 'status_poll_interval': 0}
    options.update(kwargs)
    return ChunkTransport(client=client, **options)


class TestSessionRequests:
    """Test request shapes for open, chunk and single uploads."""

    @pytest.mark.asyncio
    async def test_open_session_addresses_minus_one(self, fake_server, chunk_transport):
        response = await chunk_transport.open_session('arweave', 5 * 1024 * 1024)

        assert response.id == 'upload-1'
        assert response.chunk_size == 5 * 1024 * 1024
        request = fake_server.open_requests[0]
        assert request['token'] == 'arweave'
        assert request['headers']['x-chunking-version'] == '2'

    @pytest.mark.asyncio
    async def test_put_chunk_posts_octet_stream_at_offset(self):
        seen = {}

        def handler(request):
            seen['method'] = request.method
            seen['path'] = request.url.path
            seen['content_type'] = request.headers['content-type']
            seen['body'] = request.content
            return httpx.Response(200)

        transport = transport_for(handler)
        await transport.put_chunk('arweave', 'upload-1', 10485760, b'chunk-bytes')

        assert seen == {
            'method': 'POST',
            'path': '/chunks/arweave/upload-1/10485760',
            'content_type': 'application/octet-stream',
            'body': b'chunk-bytes',
        }

    @pytest.mark.asyncio
    async def test_upload_single_returns_receipt(self, fake_server, chunk_transport):
        receipt = await chunk_transport.upload_single('arweave', b'whole payload')

        assert receipt.id == RECEIPT['id']
        assert receipt.data_caches == ['arweave.net']
        assert fake_server.single_uploads == [b'whole payload']

    @pytest.mark.asyncio
    async def test_rejected_status_raises_failed_request(self):
        transport = transport_for(lambda request: httpx.Response(400, json={'detail': 'bad offset'}))

        with pytest.raises(FailedRequestError) as exc_info:
            await transport.put_chunk('arweave', 'upload-1', 0, b'x')

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == 'bad offset'


class TestRetries:
    """Test retry with backoff on transient failures."""

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        attempts = []

        def handler(request):
            attempts.append(request.url.path)
            if len(attempts) < 3:
                return httpx.Response(503)
            return httpx.Response(200)

        transport = transport_for(handler, max_retries=2)
        await transport.put_chunk('arweave', 'upload-1', 0, b'x')

        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            return httpx.Response(500, text='internal')

        transport = transport_for(handler, max_retries=1)
        with pytest.raises(FailedRequestError) as exc_info:
            await transport.put_chunk('arweave', 'upload-1', 0, b'x')

        assert exc_info.value.status_code == 500
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_retries_connection_errors_then_raises(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            raise httpx.ConnectError("connection refused", request=request)

        transport = transport_for(handler, max_retries=2)
        with pytest.raises(httpx.ConnectError):
            await transport.open_session('arweave', 5 * 1024 * 1024)

        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            return httpx.Response(404)

        transport = transport_for(handler, max_retries=3)
        with pytest.raises(FailedRequestError):
            await transport.put_chunk('arweave', 'upload-1', 0, b'x')

        assert len(attempts) == 1


class TestFinalize:
    """Test finalize and status polling."""

    @pytest.mark.asyncio
    async def test_finalize_polls_until_finalized(self):
        server = FakeChunkServer(poll_statuses=('ASSEMBLING', 'VALIDATING', 'FINALIZED'))
        transport = make_transport(server)

        receipt = await transport.finalize('arweave', 'upload-1', headers={'x-paid-by': 'payer'})

        assert receipt.id == RECEIPT['id']
        assert server.status_polls == 3
        assert server.finalize_headers[0]['x-paid-by'] == 'payer'
        assert server.finalize_headers[0]['x-chunking-version'] == '2'

    @pytest.mark.asyncio
    async def test_finalize_accepts_immediate_receipt(self):
        polls = []

        def handler(request):
            if request.url.path.endswith('/status'):
                polls.append(1)
            return httpx.Response(200, json={'status': 'FINALIZED', 'receipt': RECEIPT})

        transport = transport_for(handler)
        receipt = await transport.finalize('arweave', 'upload-1')

        assert receipt.owner == RECEIPT['owner']
        assert polls == []

    @pytest.mark.asyncio
    async def test_underfunded_status_raises_finalize_error(self):
        server = FakeChunkServer(poll_statuses=('ASSEMBLING', 'UNDERFUNDED'))
        transport = make_transport(server)

        with pytest.raises(FinalizeError) as exc_info:
            await transport.finalize('arweave', 'upload-1')

        assert exc_info.value.status == 'UNDERFUNDED'

    @pytest.mark.asyncio
    async def test_finalize_times_out(self):
        server = FakeChunkServer(poll_statuses=('ASSEMBLING',))
        transport = make_transport(server, status_poll_interval=0.01)

        with pytest.raises(FinalizeError, match="timed out"):
            await transport.finalize('arweave', 'upload-1', max_wait_seconds=0.05)

        assert server.status_polls >= 1
