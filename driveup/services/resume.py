"""
Resume Service - Handles interrupted upload recovery.

Flow:
1. Fingerprint (name, destination, size) → session id
2. Fetch the session's acknowledged parts (only for multi-part files)
3. Upload only the parts the session does not already hold
4. Release the session once the manifest is committed
"""
import hashlib
import logging

from ..exceptions import UploadCancelled
from ..models import UploadSession
from ..protocols import IAPIClient

log = logging.getLogger(__name__)

UPLOADS_ENDPOINT = "/api/uploads"


def session_fingerprint(name: str, dest: str, size: int) -> str:
    """
    Stable upload-session id for a file.

    Content-independent: distinct files sharing name, destination and size
    map to the same session.
    """
    return hashlib.md5(f"{name}:{dest}:{size}".encode("utf-8")).hexdigest()


def session_endpoint(session_id: str) -> str:
    return f"{UPLOADS_ENDPOINT}/{session_id}"


class SessionResolver:
    """
    Resolve and release remote upload sessions.

    Usage:
        resolver = SessionResolver(api_client, part_size)
        session = await resolver.resolve(name, dest, size)
        # session.parts = {part_no: PartRecord} already on the server
        ...
        await resolver.release(session.session_id)
    """

    def __init__(self, api_client: IAPIClient, part_size: int):
        self._api = api_client
        self._part_size = part_size

    async def resolve(self, name: str, dest: str, size: int) -> UploadSession:
        """
        Fetch previously acknowledged parts for a file.

        Single-part files skip the lookup. Any lookup failure is treated as a
        fresh upload.
        """
        session_id = session_fingerprint(name, dest, size)
        if size <= self._part_size:
            return UploadSession(session_id)

        try:
            response = await self._api.request("GET", session_endpoint(session_id))
            session = UploadSession.from_api(session_id, response.json() or {})
        except UploadCancelled:
            raise
        except Exception as e:
            log.debug("[resume] No usable session for %s (%s): %s", name, session_id, e)
            return UploadSession(session_id)

        if session.is_resumed:
            log.info("[resume] Found %d uploaded parts for %s", len(session.parts), name)
        return session

    async def release(self, session_id: str) -> None:
        """Delete the remote session. Errors propagate."""
        await self._api.request("DELETE", session_endpoint(session_id))
