"""
driveup - Chunked, resumable, concurrent uploads to a remote drive API.

Usage:
    from driveup import UploadOrchestrator, UploadConfig

    config = UploadConfig(part_size=500 * 1024 * 1024, part_workers=4)

    # Single file
    async with UploadOrchestrator(api_url, access_token, config) as uploader:
        result = await uploader.upload_file(path, "/Videos")

    # Whole tree (existing remote files are skipped, partial uploads resumed)
    async with UploadOrchestrator(api_url, access_token, config) as uploader:
        folder_result = await uploader.upload_folder(folder, "/Backups")
"""
from .orchestrator import UploadOrchestrator
from .models import (
    UploadConfig,
    UploadResult,
    UploadStatus,
    FolderUploadResult,
    PartRecord,
    PlannedPart,
    FileManifest,
)
from .progress import TransferProgress
from .exceptions import (
    UploaderError,
    APIError,
    DirectoryNotFoundError,
    UploadCancelled,
    IncompletePartsError,
    SessionCleanupError,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "TransferProgress",
    # Models
    "UploadConfig",
    "UploadResult",
    "UploadStatus",
    "FolderUploadResult",
    "PartRecord",
    "PlannedPart",
    "FileManifest",
    # Errors
    "UploaderError",
    "APIError",
    "DirectoryNotFoundError",
    "UploadCancelled",
    "IncompletePartsError",
    "SessionCleanupError",
]
