"""
Remote Files - read-only queries and directory creation against the drive API.

Used by both the file orchestrator (single existence check) and the
directory walker (one merged listing per directory).
"""
import asyncio
import logging
from typing import List, Set

from ..exceptions import APIError, DirectoryNotFoundError
from ..models import RemoteFile
from ..protocols import IAPIClient

logger = logging.getLogger(__name__)

FILES_ENDPOINT = "/api/files"
DIRECTORIES_ENDPOINT = "/api/files/directories"


class RemoteFiles:
    """
    Existence and listing client.

    Usage:
        remote = RemoteFiles(api_client)
        if not await remote.exists("movie.mkv", "/Videos"):
            ...
        names = await remote.list_names("/Videos")
    """

    def __init__(self, api_client: IAPIClient, page_size: int = 500, listing_concurrency: int = 8):
        self._api = api_client
        self._page_size = page_size
        self._listing_concurrency = listing_concurrency

    async def exists(self, name: str, path: str) -> bool:
        """Check whether ``name`` exists under remote ``path``."""
        logger.debug("checking file exists name=%s path=%s", name, path)
        response = await self._api.request(
            "GET",
            FILES_ENDPOINT,
            params={"path": path, "op": "find", "name": name},
            allow_status=(404,),
        )
        if response.status_code == 404:
            return False
        files = (response.json() or {}).get("files") or []
        return len(files) > 0

    async def _read_page(self, path: str, page: int) -> dict:
        try:
            response = await self._api.request(
                "GET",
                FILES_ENDPOINT,
                params={
                    "path": path,
                    "limit": self._page_size,
                    "sort": "id",
                    "op": "list",
                    "page": page,
                },
            )
        except APIError as exc:
            if exc.status_code == 404:
                raise DirectoryNotFoundError(
                    exc.status_code, exc.method, exc.endpoint, f"directory not found: {path}"
                ) from exc
            raise
        return response.json() or {}

    async def list(self, path: str) -> List[RemoteFile]:
        """
        List a remote directory, merging every page.

        Page 1 is read first to learn the page count; the remaining pages are
        fetched concurrently. Any page failure fails the whole listing.
        """
        first = await self._read_page(path, 1)
        files = [RemoteFile.from_api(item) for item in first.get("files") or []]
        total_pages = int((first.get("meta") or {}).get("totalPages") or 1)

        if total_pages > 1:
            semaphore = asyncio.Semaphore(self._listing_concurrency)

            async def fetch(page: int) -> dict:
                async with semaphore:
                    return await self._read_page(path, page)

            pages = await asyncio.gather(*(fetch(page) for page in range(2, total_pages + 1)))
            for info in pages:
                files.extend(RemoteFile.from_api(item) for item in info.get("files") or [])

        logger.debug("listed path=%s files=%d pages=%d", path, len(files), total_pages)
        return files

    async def list_names(self, path: str) -> Set[str]:
        """Names present in a remote directory, for membership tests."""
        return {item.name for item in await self.list(path)}

    async def create_directory(self, path: str) -> None:
        """Create a remote directory (idempotent on the server side)."""
        if not path.startswith("/"):
            path = "/" + path
        await self._api.request("POST", DIRECTORIES_ENDPOINT, json={"path": path})
        logger.debug("created remote directory path=%s", path)
