"""Orchestrator data models."""
from dataclasses import dataclass
from pathlib import Path

from ..models import UploadSession


@dataclass(frozen=True)
class UploadTask:
    """Per-file context shared by that file's part workers."""
    file_path: Path
    file_name: str
    dest: str
    file_size: int
    session: UploadSession
    total_parts: int
    channel_id: int
    encrypted: bool

    @property
    def progress_key(self) -> str:
        return str(self.file_path)
