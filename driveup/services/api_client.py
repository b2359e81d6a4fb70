"""HTTP adapter for remote drive API operations."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Dict, Iterable, Optional

import httpx

from ..exceptions import APIError, UploadCancelled

logger = logging.getLogger(__name__)

RETRY_STATUS_CODES = frozenset({
    429,  # Too Many Requests
    500,  # Internal Server Error
    502,  # Bad Gateway
    503,  # Service Unavailable
    504,  # Gateway Timeout
    509,  # Bandwidth Limit Exceeded
})


class CancelToken:
    """Single cancellation signal shared by every network call."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise UploadCancelled("upload cancelled")

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, waking early if cancelled."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise UploadCancelled("upload cancelled")


RetryPredicate = Callable[[Optional[httpx.Response], Optional[Exception]], bool]


def should_retry(response: Optional[httpx.Response], error: Optional[Exception]) -> bool:
    """Default retry predicate: transient statuses and transport errors."""
    if error is not None:
        return isinstance(error, httpx.TransportError)
    return response is not None and response.status_code in RETRY_STATUS_CODES


def _error_detail(response: httpx.Response) -> Any:
    try:
        return response.json()
    except Exception:
        return response.text


class HTTPAPIClient:
    """
    HTTP client adapter for API calls.

    Implements IAPIClient protocol. Every call except ``post_stream`` goes
    through exponential back-off on transient statuses and transport errors.
    """

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        timeout: float = 60,
        max_retries: int = 5,
        min_sleep: float = 0.4,
        max_sleep: float = 5.0,
        cancel_token: Optional[CancelToken] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url
        self._access_token = access_token
        self._timeout = timeout
        self._max_retries = max_retries
        self._min_sleep = min_sleep
        self._max_sleep = max_sleep
        self._transport = transport
        self.cancel_token = cancel_token or CancelToken()
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        headers = {}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")
        return self._client

    def _backoff(self, attempt: int) -> float:
        return min(self._min_sleep * (2 ** attempt), self._max_sleep)

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        allow_status: Iterable[int] = (),
        retry_if: Optional[RetryPredicate] = None,
    ) -> httpx.Response:
        """
        Issue a call under the retry policy.

        Args:
            method: HTTP method
            endpoint: Path relative to the base URL
            params: Query parameters
            json: JSON request body
            allow_status: Error statuses returned to the caller instead of raised
            retry_if: Predicate over (response, error) deciding whether to retry;
                defaults to `should_retry`

        Returns:
            The final response

        Raises:
            APIError: non-success status after retries
            UploadCancelled: cancel token set while waiting
            httpx.TransportError: transport failure after retries
        """
        client = self._require_client()
        allowed = set(allow_status)
        retry_if = retry_if or should_retry
        attempts = self._max_retries + 1

        for attempt in range(attempts):
            self.cancel_token.raise_if_cancelled()
            last_attempt = attempt == attempts - 1
            response: Optional[httpx.Response] = None
            error: Optional[httpx.TransportError] = None
            try:
                response = await client.request(method, endpoint, params=params, json=json)
            except httpx.TransportError as exc:
                error = exc

            if not last_attempt and retry_if(response, error):
                delay = self._backoff(attempt)
                outcome = f"transport error ({error})" if error is not None else f"status {response.status_code}"
                logger.debug("%s %s %s, retrying in %.2fs", method, endpoint, outcome, delay)
                await self.cancel_token.sleep(delay)
                continue

            if error is not None:
                raise error

            if response.status_code >= 400 and response.status_code not in allowed:
                raise APIError(response.status_code, method, endpoint, _error_detail(response))

            return response

        raise RuntimeError(f"Failed to {method} {endpoint} after {attempts} attempts")

    async def post_stream(
        self,
        endpoint: str,
        params: Dict[str, Any],
        content: AsyncIterator[bytes],
        content_length: int,
    ) -> httpx.Response:
        """
        POST a single-pass body without the retry wrapper.

        The body cannot be rewound once consumed, so the caller decides what a
        failure means.
        """
        client = self._require_client()
        self.cancel_token.raise_if_cancelled()
        return await client.post(
            endpoint,
            params=params,
            content=content,
            headers={
                "Content-Length": str(content_length),
                "Content-Type": "application/octet-stream",
            },
        )
