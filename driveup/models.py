"""
Models for driveup.

Immutable dataclasses describing parts, sessions, manifests and results.
"""
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Tuple
from enum import Enum


MiB = 1024 * 1024


class UploadStatus(Enum):
    """Upload operation status."""
    SUCCESS = "success"
    EXISTS = "exists"
    FAILED = "failed"
    PARTIAL = "partial"  # Manifest committed but session cleanup failed


@dataclass(frozen=True)
class PartRecord:
    """Part descriptor acknowledged by the remote API."""
    part_no: int
    part_id: int
    size: int
    salt: str = ""
    channel_id: int = 0
    encrypted: bool = False
    name: str = ""

    @property
    def is_acknowledged(self) -> bool:
        return self.part_id != 0 and self.size != 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "PartRecord":
        return cls(
            part_no=int(data.get("partNo") or 0),
            part_id=int(data.get("partId") or 0),
            size=int(data.get("size") or 0),
            salt=data.get("salt") or "",
            channel_id=int(data.get("channelId") or 0),
            encrypted=bool(data.get("encrypted", False)),
            name=data.get("name") or "",
        )


@dataclass(frozen=True)
class PlannedPart:
    """Byte range [start, end) of a file uploaded as one request."""
    part_no: int
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class UploadSession:
    """Snapshot of a remote upload session, read once per file run."""
    session_id: str
    parts: Dict[int, PartRecord] = field(default_factory=dict)
    first_part: Optional[PartRecord] = None

    @property
    def is_resumed(self) -> bool:
        return bool(self.parts)

    @classmethod
    def from_api(cls, session_id: str, data: Dict[str, Any]) -> "UploadSession":
        records = [PartRecord.from_api(item) for item in (data.get("parts") or [])]
        return cls(
            session_id=session_id,
            parts={record.part_no: record for record in records},
            first_part=records[0] if records else None,
        )


@dataclass(frozen=True)
class FileManifest:
    """Final metadata object committed once to register a file."""
    name: str
    parts: Tuple[Tuple[int, int, str], ...]  # (part_id, part_no, salt)
    mime_type: str
    path: str
    size: int
    channel_id: int
    encrypted: bool
    type: str = "file"

    @classmethod
    def build(
        cls,
        name: str,
        records: List[PartRecord],
        mime_type: str,
        path: str,
        size: int,
        channel_id: int,
        encrypted: bool,
    ) -> "FileManifest":
        ordered = sorted(records, key=lambda record: record.part_no)
        return cls(
            name=name,
            parts=tuple((r.part_id, r.part_no, r.salt) for r in ordered),
            mime_type=mime_type,
            path=path,
            size=size,
            channel_id=channel_id,
            encrypted=encrypted,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "parts": [
                {"id": part_id, "partNo": part_no, "salt": salt}
                for part_id, part_no, salt in self.parts
            ],
            "mimeType": self.mime_type,
            "path": self.path,
            "size": self.size,
            "channelId": self.channel_id,
            "encrypted": self.encrypted,
        }


@dataclass(frozen=True)
class RemoteFile:
    """Entry returned by remote find/list queries."""
    name: str
    type: str = "file"
    size: int = 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RemoteFile":
        return cls(
            name=data.get("name") or "",
            type=data.get("type") or "file",
            size=int(data.get("size") or 0),
        )


@dataclass(frozen=True)
class DirectoryStats:
    """Recursive file count and size of a local directory."""
    total_files: int = 0
    total_size: int = 0

    def __add__(self, other: "DirectoryStats") -> "DirectoryStats":
        return DirectoryStats(
            total_files=self.total_files + other.total_files,
            total_size=self.total_size + other.total_size,
        )


@dataclass(frozen=True)
class UploadResult:
    """Immutable result of a single file upload."""
    filename: str
    status: UploadStatus = UploadStatus.SUCCESS
    size: int = 0
    parts: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status in (UploadStatus.SUCCESS, UploadStatus.EXISTS)

    @property
    def committed(self) -> bool:
        """True when the file is registered remotely by this run."""
        return self.status in (UploadStatus.SUCCESS, UploadStatus.PARTIAL)

    @classmethod
    def ok(cls, filename: str, size: int, parts: int):
        return cls(filename=filename, status=UploadStatus.SUCCESS, size=size, parts=parts)

    @classmethod
    def exists(cls, filename: str, size: int):
        return cls(filename=filename, status=UploadStatus.EXISTS, size=size)

    @classmethod
    def fail(cls, filename: str, error: str, size: int = 0):
        return cls(filename=filename, status=UploadStatus.FAILED, size=size, error=error)

    @classmethod
    def partial(cls, filename: str, size: int, parts: int, error: str):
        return cls(
            filename=filename,
            status=UploadStatus.PARTIAL,
            size=size,
            parts=parts,
            error=error,
        )


@dataclass
class FolderUploadResult:
    """Result of a directory walk."""
    folder_name: str
    results: List[UploadResult] = field(default_factory=list)
    skipped_files: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def uploaded_files(self) -> int:
        return sum(1 for r in self.results if r.status == UploadStatus.SUCCESS)

    @property
    def partial_files(self) -> int:
        return sum(1 for r in self.results if r.status == UploadStatus.PARTIAL)

    @property
    def failed_files(self) -> int:
        return sum(1 for r in self.results if r.status == UploadStatus.FAILED)

    @property
    def total_files(self) -> int:
        return len(self.results) + self.skipped_files

    @property
    def all_success(self) -> bool:
        return self.failed_files == 0 and self.partial_files == 0 and not self.errors


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload operations."""
    part_size: int = 500 * MiB
    part_workers: int = 4       # global bound on in-flight part transfers
    concurrent_files: int = 4   # bound on whole-file uploads during a walk
    channel_id: int = 0
    encrypt_files: bool = False
    randomise_part_names: bool = False
    delete_after_upload: bool = False
    page_size: int = 500
    listing_concurrency: int = 8

    def __post_init__(self):
        if self.part_size <= 0:
            raise ValueError("part_size must be positive")
        if self.part_workers < 1 or self.concurrent_files < 1:
            raise ValueError("worker counts must be at least 1")
