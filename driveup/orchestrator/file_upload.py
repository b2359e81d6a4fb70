"""Single file upload handler."""
import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import List

from ..exceptions import IncompletePartsError, SessionCleanupError
from ..models import FileManifest, PartRecord, PlannedPart, UploadConfig, UploadResult
from ..protocols import IAPIClient, IProgress
from ..services.api_client import CancelToken
from ..services.remote import FILES_ENDPOINT, RemoteFiles
from ..services.resume import SessionResolver
from .models import UploadTask
from .part_upload import PartUploader
from .planner import plan_parts

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


def detect_mime_type(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type or DEFAULT_MIME_TYPE


class FileUploadHandler:
    """
    Uploads one file: existence check, session resume, concurrent parts,
    completeness check, manifest commit and session cleanup.

    A manifest is only ever committed with every planned part acknowledged.
    """

    def __init__(
        self,
        api_client: IAPIClient,
        remote: RemoteFiles,
        resolver: SessionResolver,
        part_uploader: PartUploader,
        progress: IProgress,
        config: UploadConfig,
        cancel_token: CancelToken,
    ):
        self._api = api_client
        self._remote = remote
        self._resolver = resolver
        self._part_uploader = part_uploader
        self._progress = progress
        self._config = config
        self._cancel_token = cancel_token

    async def upload(self, path: Path, dest: str) -> UploadResult:
        """
        Upload ``path`` into remote directory ``dest``.

        Never raises for per-file failures; they are reported in the result.
        """
        path = Path(path)
        name = path.name

        key = str(path)
        try:
            size = path.stat().st_size
        except OSError as e:
            logger.error("stat file failed path=%s: %s", path, e)
            return self._record_failure(key, UploadResult.fail(name, str(e)))

        try:
            exists = await self._remote.exists(name, dest)
        except Exception as e:
            logger.error("check file exists failed name=%s dest=%s: %s", name, dest, e)
            return self._record_failure(key, UploadResult.fail(name, str(e) or type(e).__name__, size))

        if exists:
            self._progress.add_existing(size)
            logger.info("file exists name=%s dest=%s", name, dest)
            return UploadResult.exists(name, size)

        self._progress.start_file(key, size)
        result = UploadResult.fail(name, "upload interrupted", size)
        try:
            result = await self._transfer(path, name, dest, size)
        except Exception as e:
            error_msg = str(e) or type(e).__name__
            logger.error("upload failed path=%s dest=%s: %s", path, dest, error_msg)
            result = UploadResult.fail(name, error_msg, size)
        finally:
            self._progress.finish_file(key, result.committed)
        return result

    def _record_failure(self, key: str, result: UploadResult) -> UploadResult:
        """Count a file that failed before any part was dispatched."""
        self._progress.start_file(key, result.size)
        self._progress.finish_file(key, False)
        return result

    async def _transfer(self, path: Path, name: str, dest: str, size: int) -> UploadResult:
        session = await self._resolver.resolve(name, dest, size)
        parts = plan_parts(size, self._config.part_size)

        channel_id = self._config.channel_id
        encrypted = self._config.encrypt_files
        if session.first_part is not None:
            # resumed files keep the settings they were started with
            channel_id = session.first_part.channel_id
            encrypted = session.first_part.encrypted

        task = UploadTask(
            file_path=path,
            file_name=name,
            dest=dest,
            file_size=size,
            session=session,
            total_parts=len(parts),
            channel_id=channel_id,
            encrypted=encrypted,
        )

        records = [r for r in await self._upload_parts(task, parts) if r.is_acknowledged]
        if len(records) != len(parts):
            self._cancel_token.raise_if_cancelled()
            logger.error(
                "uploaded parts incomplete name=%s uploaded=%d total=%d",
                name, len(records), len(parts),
            )
            raise IncompletePartsError(len(records), len(parts))

        manifest = FileManifest.build(
            name=name,
            records=records,
            mime_type=detect_mime_type(path),
            path=dest,
            size=size,
            channel_id=channel_id,
            encrypted=encrypted,
        )
        await self._api.request("POST", FILES_ENDPOINT, json=manifest.to_payload())

        try:
            await self._resolver.release(session.session_id)
        except Exception as e:
            error = SessionCleanupError(session.session_id, e)
            logger.warning("name=%s: %s", name, error)
            return UploadResult.partial(name, size, len(parts), str(error))

        logger.info("file sent name=%s size=%d parts=%d", name, size, len(parts))
        return UploadResult.ok(name, size, len(parts))

    async def _upload_parts(self, task: UploadTask, parts: List[PlannedPart]) -> List[PartRecord]:
        """Run one worker per part and collect acknowledged records in completion order."""
        uploaded: asyncio.Queue = asyncio.Queue(maxsize=len(parts))

        async def worker(part: PlannedPart) -> None:
            record = await self._part_uploader.upload(task, part)
            if record is not None:
                uploaded.put_nowait(record)

        await asyncio.gather(*(worker(part) for part in parts))

        records = []
        while not uploaded.empty():
            records.append(uploaded.get_nowait())
        return records

    def remove_source(self, path: Path) -> bool:
        """Delete a local file after upload. Failures are logged only."""
        try:
            Path(path).unlink()
        except OSError as e:
            logger.error("delete file failed path=%s: %s", path, e)
            return False
        logger.info("deleted file path=%s", path)
        return True
