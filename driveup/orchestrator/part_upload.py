"""Part upload worker."""
import asyncio
import logging
import uuid
from typing import AsyncIterator, BinaryIO, Optional

from ..exceptions import PartUploadError
from ..models import PartRecord, PlannedPart
from ..protocols import IAPIClient, IProgress
from ..services.api_client import CancelToken
from ..services.resume import session_endpoint
from .models import UploadTask

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 1024 * 1024


class PartUploader:
    """
    Uploads one planned part, or reuses it from a resumed session.

    A failed part is logged and dropped: the request body is a one-shot
    stream over the source file, so it is never re-sent within a run.
    """

    def __init__(
        self,
        api_client: IAPIClient,
        slots: asyncio.Semaphore,
        progress: IProgress,
        cancel_token: Optional[CancelToken] = None,
        randomise_part_names: bool = False,
        chunk_size: int = READ_CHUNK_SIZE,
    ):
        """
        Args:
            api_client: Remote API client
            slots: Part-level pool shared by every in-flight file
            progress: Progress collaborator
            cancel_token: Shared cancellation signal
            randomise_part_names: Send opaque random part names
            chunk_size: Read size for the streamed body
        """
        self._api = api_client
        self._slots = slots
        self._progress = progress
        self._cancel_token = cancel_token or CancelToken()
        self._randomise = randomise_part_names
        self._chunk_size = chunk_size

    def part_name(self, file_name: str, part_no: int, total_parts: int) -> str:
        if self._randomise:
            return uuid.uuid4().hex
        if total_parts > 1:
            return f"{file_name}.part.{part_no:03d}"
        return file_name

    async def upload(self, task: UploadTask, part: PlannedPart) -> Optional[PartRecord]:
        """Return the acknowledged record for ``part``, or None if it failed."""
        existing = task.session.parts.get(part.part_no)
        if existing is not None:
            self._progress.advance(task.progress_key, existing.size)
            logger.debug(
                "reusing part file=%s part=%d/%d", task.file_name, part.part_no, task.total_parts
            )
            return existing

        async with self._slots:
            try:
                return await self._send(task, part)
            except Exception as e:
                logger.error(
                    "send part file failed file=%s part=%d/%d size=%d: %s",
                    task.file_path, part.part_no, task.total_parts, part.length, e,
                )
                return None

    async def _send(self, task: UploadTask, part: PlannedPart) -> PartRecord:
        params = {
            "partName": self.part_name(task.file_name, part.part_no, task.total_parts),
            "fileName": task.file_name,
            "partNo": part.part_no,
            "channelId": task.channel_id,
            "encrypted": "true" if task.encrypted else "false",
        }

        with open(task.file_path, "rb") as handle:
            handle.seek(part.start)
            response = await self._api.post_stream(
                session_endpoint(task.session.session_id),
                params=params,
                content=self._read_range(handle, part, task.progress_key),
                content_length=part.length,
            )

        if response.status_code != 201:
            raise PartUploadError(part.part_no, f"unexpected status {response.status_code}")

        record = PartRecord.from_api(response.json())
        logger.debug(
            "part file sent file=%s part_name=%s part=%d/%d size=%d part_id=%d",
            task.file_name, record.name, record.part_no, task.total_parts, record.size, record.part_id,
        )
        return record

    async def _read_range(self, handle: BinaryIO, part: PlannedPart, progress_key: str) -> AsyncIterator[bytes]:
        remaining = part.length
        while remaining > 0:
            self._cancel_token.raise_if_cancelled()
            chunk = handle.read(min(self._chunk_size, remaining))
            if not chunk:
                raise PartUploadError(part.part_no, "source file shorter than planned")
            remaining -= len(chunk)
            self._progress.advance(progress_key, len(chunk))
            yield chunk
