"""Tests for the HTTP adapter and its retry policy."""
import httpx
import pytest

from driveup.exceptions import APIError, UploadCancelled
from driveup.protocols import IAPIClient
from driveup.services.api_client import CancelToken, HTTPAPIClient, should_retry


BASE_URL = "http://drive.test"


def _client(handler, **kwargs):
    kwargs.setdefault("min_sleep", 0)
    kwargs.setdefault("max_sleep", 0)
    return HTTPAPIClient(BASE_URL, transport=httpx.MockTransport(handler), **kwargs)


class Recorder:
    """Replays a list of statuses (or exceptions), one per request."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, json={"status": outcome})


class TestRequest:
    @pytest.mark.asyncio
    async def test_retries_transient_statuses(self):
        handler = Recorder(503, 429, 200)
        async with _client(handler) as api:
            response = await api.request("GET", "/api/files", params={"op": "list"})

        assert response.status_code == 200
        assert len(handler.requests) == 3
        assert handler.requests[0].url.params["op"] == "list"

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        handler = Recorder(400)
        async with _client(handler) as api:
            with pytest.raises(APIError) as exc_info:
                await api.request("POST", "/api/files", json={"name": "x"})

        assert exc_info.value.status_code == 400
        assert exc_info.value.method == "POST"
        assert exc_info.value.endpoint == "/api/files"
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_allowed_status_is_returned(self):
        handler = Recorder(404)
        async with _client(handler) as api:
            response = await api.request("GET", "/api/files", allow_status=(404,))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_retries_exhausted_raises_last_status(self):
        handler = Recorder(503)
        async with _client(handler, max_retries=2) as api:
            with pytest.raises(APIError) as exc_info:
                await api.request("GET", "/api/uploads/abc")

        assert exc_info.value.status_code == 503
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self):
        handler = Recorder(httpx.ConnectError("refused"), 200)
        async with _client(handler) as api:
            response = await api.request("DELETE", "/api/uploads/abc")

        assert response.status_code == 200
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_transport_error_after_retries_propagates(self):
        handler = Recorder(httpx.ConnectError("refused"))
        async with _client(handler, max_retries=1) as api:
            with pytest.raises(httpx.ConnectError):
                await api.request("GET", "/api/files")

        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_custom_retry_predicate(self):
        handler = Recorder(503, 409, 200)
        seen = []

        def retry_if(response, error):
            seen.append(response.status_code)
            return response.status_code == 409

        async with _client(handler) as api:
            with pytest.raises(APIError) as exc_info:
                await api.request("POST", "/api/files", json={}, retry_if=retry_if)

        assert exc_info.value.status_code == 503
        assert seen == [503]
        assert len(handler.requests) == 1

    def test_default_predicate(self):
        assert should_retry(httpx.Response(509), None) is True
        assert should_retry(httpx.Response(404), None) is False
        assert should_retry(None, httpx.ReadTimeout("slow")) is True
        assert should_retry(None, ValueError("x")) is False

    @pytest.mark.asyncio
    async def test_cancelled_token_stops_before_request(self):
        handler = Recorder(200)
        token = CancelToken()
        token.cancel()
        async with _client(handler, cancel_token=token) as api:
            with pytest.raises(UploadCancelled):
                await api.request("GET", "/api/files")

        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_cancel_interrupts_backoff(self):
        token = CancelToken()
        calls = []

        def handler(request):
            calls.append(request)
            token.cancel()
            return httpx.Response(503)

        async with _client(handler, cancel_token=token, min_sleep=30, max_sleep=30) as api:
            with pytest.raises(UploadCancelled):
                await api.request("GET", "/api/files")

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_bearer_token_is_sent(self):
        handler = Recorder(200)
        async with _client(handler, access_token="secret") as api:
            await api.request("GET", "/api/files")

        assert handler.requests[0].headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_requires_context(self):
        api = _client(Recorder(200))
        with pytest.raises(RuntimeError, match="not initialized"):
            await api.request("GET", "/api/files")


class TestPostStream:
    @pytest.mark.asyncio
    async def test_streams_body_with_explicit_length(self):
        seen = {}

        async def handler(request):
            seen["body"] = await request.aread()
            seen["headers"] = request.headers
            seen["params"] = request.url.params
            return httpx.Response(201, json={"partId": 1})

        async def body():
            yield b"hello "
            yield b"world"

        async with _client(handler) as api:
            response = await api.post_stream(
                "/api/uploads/abc",
                params={"partNo": 2, "encrypted": "false"},
                content=body(),
                content_length=11,
            )

        assert response.status_code == 201
        assert seen["body"] == b"hello world"
        assert seen["headers"]["Content-Length"] == "11"
        assert seen["headers"]["Content-Type"] == "application/octet-stream"
        assert seen["params"]["partNo"] == "2"

    @pytest.mark.asyncio
    async def test_stream_is_never_retried(self):
        calls = []

        async def handler(request):
            calls.append(await request.aread())
            return httpx.Response(503)

        async def body():
            yield b"data"

        async with _client(handler) as api:
            response = await api.post_stream("/api/uploads/abc", {}, body(), 4)

        assert response.status_code == 503
        assert len(calls) == 1


class TestCancelToken:
    @pytest.mark.asyncio
    async def test_sleep_returns_when_not_cancelled(self):
        token = CancelToken()
        await token.sleep(0.001)
        assert token.cancelled is False

    @pytest.mark.asyncio
    async def test_sleep_raises_when_cancelled(self):
        token = CancelToken()
        token.cancel()
        with pytest.raises(UploadCancelled):
            await token.sleep(10)


def test_client_exposes_only_the_protocol_surface():
    api = HTTPAPIClient(BASE_URL)

    assert isinstance(api, IAPIClient)
    for helper in ("get", "post", "delete"):
        assert not hasattr(api, helper)
