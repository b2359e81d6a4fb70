"""Orchestrator package - coordinates upload workflows."""
from .core import UploadOrchestrator
from .file_upload import FileUploadHandler
from .folder_upload import FolderUploadHandler, scan_directory
from .models import UploadTask
from .part_upload import PartUploader
from .planner import plan_parts, part_count

__all__ = [
    "UploadOrchestrator",
    "FileUploadHandler",
    "FolderUploadHandler",
    "PartUploader",
    "UploadTask",
    "plan_parts",
    "part_count",
    "scan_directory",
]
