"""
Protocols (Interfaces) for Dependency Inversion.

Small, focused interfaces for the collaborators the pipeline consumes.
"""
from typing import Optional, Dict, Any, AsyncIterator, Callable, Iterable, Protocol, runtime_checkable

import httpx


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for remote API calls."""

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        allow_status: Iterable[int] = (),
        retry_if: Optional[Callable[[Optional[httpx.Response], Optional[Exception]], bool]] = None,
    ) -> httpx.Response:
        """Issue a call under the retry policy."""
        ...

    async def post_stream(
        self,
        endpoint: str,
        params: Dict[str, Any],
        content: AsyncIterator[bytes],
        content_length: int,
    ) -> httpx.Response:
        """Issue a single-pass streaming POST (never retried)."""
        ...


@runtime_checkable
class IProgress(Protocol):
    """Interface for the progress collaborator."""

    def add_transfer(self, total_files: int, total_size: int) -> None:
        ...

    def start_file(self, name: str, size: int) -> None:
        ...

    def advance(self, name: str, nbytes: int) -> None:
        ...

    def add_existing(self, size: int) -> None:
        ...

    def finish_file(self, name: str, success: bool) -> None:
        ...
