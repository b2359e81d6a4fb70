"""Core orchestrator - wires services and handlers for one upload run."""
import asyncio
from pathlib import Path
from typing import Optional

from ..models import DirectoryStats, FolderUploadResult, UploadConfig, UploadResult, UploadStatus
from ..progress import TransferProgress
from ..protocols import IAPIClient, IProgress
from ..services.api_client import CancelToken, HTTPAPIClient
from ..services.remote import RemoteFiles
from ..services.resume import SessionResolver
from .file_upload import FileUploadHandler
from .folder_upload import FolderUploadHandler, normalize_remote_path, scan_directory
from .part_upload import PartUploader


class UploadOrchestrator:
    """
    Orchestrates file and folder uploads using injected services.

    Usage:
        async with UploadOrchestrator(api_url, access_token, config) as uploader:
            result = await uploader.upload_file(path, "/Videos")
            folder_result = await uploader.upload_folder(folder, "/Backups")
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        access_token: Optional[str] = None,
        config: Optional[UploadConfig] = None,
        progress: Optional[IProgress] = None,
        api_client: Optional[IAPIClient] = None,
        cancel_token: Optional[CancelToken] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            api_url: Remote drive API base URL
            access_token: Bearer token for the API
            config: Upload configuration
            progress: Progress collaborator (defaults to a silent TransferProgress)
            api_client: Pre-built API client, used as-is (caller owns its lifecycle)
            cancel_token: Shared cancellation signal
        """
        if api_url is None and api_client is None:
            raise ValueError("Either api_url or api_client must be provided")

        self._api_url = api_url
        self._access_token = access_token
        self._config = config or UploadConfig()
        self.progress = progress or TransferProgress()
        self._external_api = api_client
        self.cancel_token = cancel_token or getattr(api_client, "cancel_token", None) or CancelToken()

        self._owned_api: Optional[HTTPAPIClient] = None
        self._file_handler: Optional[FileUploadHandler] = None
        self._folder_handler: Optional[FolderUploadHandler] = None

    async def __aenter__(self):
        """Initialize services and handlers."""
        if self._external_api is not None:
            api = self._external_api
        else:
            self._owned_api = HTTPAPIClient(
                self._api_url,
                access_token=self._access_token,
                cancel_token=self.cancel_token,
            )
            api = await self._owned_api.__aenter__()

        remote = RemoteFiles(
            api,
            page_size=self._config.page_size,
            listing_concurrency=self._config.listing_concurrency,
        )
        part_uploader = PartUploader(
            api,
            slots=asyncio.Semaphore(self._config.part_workers),
            progress=self.progress,
            cancel_token=self.cancel_token,
            randomise_part_names=self._config.randomise_part_names,
        )
        self._file_handler = FileUploadHandler(
            api,
            remote,
            SessionResolver(api, self._config.part_size),
            part_uploader,
            self.progress,
            self._config,
            self.cancel_token,
        )
        self._folder_handler = FolderUploadHandler(
            self._file_handler,
            remote,
            self.progress,
            self._config,
        )
        return self

    async def __aexit__(self, *args):
        """Cleanup resources."""
        if self._owned_api:
            await self._owned_api.__aexit__(*args)
            self._owned_api = None

    def cancel(self) -> None:
        """Stop retries and in-flight part streams."""
        self.cancel_token.cancel()

    async def upload_file(self, path: Path, dest: str = "/") -> UploadResult:
        """Upload a single file into remote directory ``dest``."""
        assert self._file_handler is not None
        path = Path(path)
        try:
            size = path.stat().st_size
        except OSError:
            size = 0
        self.progress.add_transfer(1, size)

        result = await self._file_handler.upload(path, normalize_remote_path(dest))
        if result.status == UploadStatus.SUCCESS and self._config.delete_after_upload:
            self._file_handler.remove_source(path)
        return result

    async def upload_folder(self, source: Path, dest: str = "/") -> FolderUploadResult:
        """Upload a directory tree, preserving its structure under ``dest``."""
        assert self._folder_handler is not None
        stats = self.scan(source)
        self.progress.add_transfer(stats.total_files, stats.total_size)
        return await self._folder_handler.upload_folder(Path(source), dest)

    @staticmethod
    def scan(source: Path) -> DirectoryStats:
        return scan_directory(Path(source))
