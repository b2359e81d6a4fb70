"""Services for driveup."""
from .api_client import HTTPAPIClient, CancelToken, RETRY_STATUS_CODES, should_retry
from .remote import RemoteFiles
from .resume import SessionResolver, session_fingerprint

__all__ = [
    "HTTPAPIClient",
    "CancelToken",
    "RETRY_STATUS_CODES",
    "should_retry",
    "RemoteFiles",
    "SessionResolver",
    "session_fingerprint",
]
