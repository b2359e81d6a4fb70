"""Transfer progress state shared by concurrent upload tasks."""
from dataclasses import dataclass, field
from typing import Dict
import threading
import time


@dataclass
class FileProgress:
    """Progress information for a single file."""
    filename: str
    total_bytes: int = 0
    bytes_uploaded: int = 0

    @property
    def percent(self) -> float:
        if self.total_bytes <= 0:
            return 100.0
        return self.bytes_uploaded / self.total_bytes * 100


@dataclass
class ProgressSnapshot:
    """Point-in-time copy of the aggregate counters."""
    total_files: int = 0
    total_size: int = 0
    uploaded_files: int = 0
    failed_files: int = 0
    existing_files: int = 0
    uploaded_bytes: int = 0
    existing_bytes: int = 0
    elapsed: float = 0.0
    active: Dict[str, FileProgress] = field(default_factory=dict)

    @property
    def transferred_bytes(self) -> int:
        return self.uploaded_bytes + self.existing_bytes

    @property
    def done_files(self) -> int:
        return self.uploaded_files + self.existing_files

    @property
    def rate(self) -> float:
        """Average upload throughput in bytes/s."""
        if self.elapsed <= 0:
            return 0.0
        return self.uploaded_bytes / self.elapsed


class TransferProgress:
    """
    Progress collaborator. Implements IProgress.

    All counters live on the instance and are guarded by a single lock;
    subclasses override the ``_on_*`` hooks to render.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._started_at = time.monotonic()
        self._state = ProgressSnapshot()
        self._files: Dict[str, FileProgress] = {}

    def add_transfer(self, total_files: int, total_size: int) -> None:
        with self._lock:
            self._state.total_files += total_files
            self._state.total_size += total_size

    def start_file(self, name: str, size: int) -> None:
        with self._lock:
            self._files[name] = FileProgress(filename=name, total_bytes=size)
        self._on_start(name, size)

    def advance(self, name: str, nbytes: int) -> None:
        with self._lock:
            self._state.uploaded_bytes += nbytes
            file_progress = self._files.get(name)
            if file_progress is not None:
                file_progress.bytes_uploaded += nbytes
        self._on_advance(name, nbytes)

    def add_existing(self, size: int) -> None:
        with self._lock:
            self._state.existing_bytes += size
            self._state.existing_files += 1
        self._on_existing(size)

    def finish_file(self, name: str, success: bool) -> None:
        with self._lock:
            file_progress = self._files.pop(name, None)
            if success:
                self._state.uploaded_files += 1
            else:
                self._state.failed_files += 1
                if file_progress is not None:
                    # bytes of a failed file are not counted as transferred
                    self._state.uploaded_bytes -= file_progress.bytes_uploaded
        self._on_finish(name, success)

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            state = self._state
            return ProgressSnapshot(
                total_files=state.total_files,
                total_size=state.total_size,
                uploaded_files=state.uploaded_files,
                failed_files=state.failed_files,
                existing_files=state.existing_files,
                uploaded_bytes=state.uploaded_bytes,
                existing_bytes=state.existing_bytes,
                elapsed=time.monotonic() - self._started_at,
                active={
                    name: FileProgress(fp.filename, fp.total_bytes, fp.bytes_uploaded)
                    for name, fp in self._files.items()
                },
            )

    # Rendering hooks
    def _on_start(self, name: str, size: int) -> None:
        pass

    def _on_advance(self, name: str, nbytes: int) -> None:
        pass

    def _on_existing(self, size: int) -> None:
        pass

    def _on_finish(self, name: str, success: bool) -> None:
        pass
