"""Error taxonomy for driveup."""
from typing import Any, Optional


class UploaderError(Exception):
    """Base class for upload pipeline errors."""


class APIError(UploaderError):
    """Remote API answered with a non-success status."""

    def __init__(self, status_code: int, method: str, endpoint: str, detail: Any = None):
        self.status_code = status_code
        self.method = method
        self.endpoint = endpoint
        self.detail = detail
        super().__init__(f"API error {status_code} on {method} {endpoint}: {detail}")


class DirectoryNotFoundError(APIError):
    """Remote directory does not exist (404 on listing)."""


class UploadCancelled(UploaderError):
    """The shared cancel token was set."""


class PartUploadError(UploaderError):
    """A single part was not acknowledged with HTTP 201."""

    def __init__(self, part_no: int, reason: str):
        self.part_no = part_no
        super().__init__(f"part {part_no} failed: {reason}")


class IncompletePartsError(UploaderError):
    """Fewer acknowledged parts than planned; the manifest is not committed."""

    def __init__(self, uploaded: int, total: int):
        self.uploaded = uploaded
        self.total = total
        super().__init__(f"uploaded parts incomplete ({uploaded}/{total})")


class SessionCleanupError(UploaderError):
    """Manifest committed but the upload session could not be released."""

    def __init__(self, session_id: str, cause: Optional[BaseException] = None):
        self.session_id = session_id
        self.cause = cause
        super().__init__(f"file committed but session {session_id} cleanup failed: {cause}")
