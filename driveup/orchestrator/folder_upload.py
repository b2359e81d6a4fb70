"""Directory walker with bounded concurrent file uploads."""
import asyncio
import logging
import posixpath
from pathlib import Path
from typing import List

from ..exceptions import UploadCancelled
from ..models import DirectoryStats, FolderUploadResult, UploadConfig, UploadResult, UploadStatus
from ..protocols import IProgress
from ..services.remote import RemoteFiles
from .file_upload import FileUploadHandler

logger = logging.getLogger(__name__)


def normalize_remote_path(path: str) -> str:
    """Use the remote API's forward-slash separators."""
    return path.replace("\\", "/")


def _is_linked_dir(entry: Path) -> bool:
    return entry.is_symlink() and entry.is_dir()


def scan_directory(source: Path) -> DirectoryStats:
    """
    Count files and bytes under ``source`` recursively.

    Only a failure to read ``source`` itself raises; an unreadable subdirectory
    counts as empty. Symlinked directories are not followed.
    """
    stats = DirectoryStats()
    for entry in Path(source).iterdir():
        if _is_linked_dir(entry):
            continue
        if entry.is_dir():
            try:
                stats = stats + scan_directory(entry)
            except OSError as e:
                logger.warning("scan directory failed path=%s: %s", entry, e)
            continue
        try:
            size = entry.stat().st_size
        except OSError:
            size = 0
        stats = stats + DirectoryStats(total_files=1, total_size=size)
    return stats


class FolderUploadHandler:
    """
    Walks a local tree and mirrors it remotely.

    - One merged listing per remote directory decides which files to skip
    - Subdirectories are created before descending
    - New files are uploaded by a pool of ``concurrent_files`` tasks

    A failure under the root (one file, one subtree) is logged and the walk
    continues with the siblings.
    """

    def __init__(
        self,
        file_handler: FileUploadHandler,
        remote: RemoteFiles,
        progress: IProgress,
        config: UploadConfig,
    ):
        self._file_handler = file_handler
        self._remote = remote
        self._progress = progress
        self._config = config
        self._file_slots = asyncio.Semaphore(config.concurrent_files)

    async def upload_folder(self, source: Path, dest: str) -> FolderUploadResult:
        """
        Upload every file under ``source`` into remote ``dest``.

        Raises only when the root directory itself cannot be read or listed.
        """
        source = Path(source)
        result = FolderUploadResult(folder_name=source.name)
        tasks: List[asyncio.Task] = []

        try:
            await self._walk(source, dest, result, tasks)
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        result.results.extend(await asyncio.gather(*tasks))
        logger.info(
            "folder done source=%s uploaded=%d skipped=%d partial=%d failed=%d errors=%d",
            source, result.uploaded_files, result.skipped_files,
            result.partial_files, result.failed_files, len(result.errors),
        )
        return result

    async def _walk(
        self,
        source_dir: Path,
        dest_dir: str,
        result: FolderUploadResult,
        tasks: List[asyncio.Task],
    ) -> None:
        try:
            entries = sorted(source_dir.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.error("read directory failed source=%s: %s", source_dir, e)
            raise

        dest_dir = normalize_remote_path(dest_dir)
        try:
            remote_names = await self._remote.list_names(dest_dir)
        except Exception as e:
            logger.error("list remote files failed dest=%s: %s", dest_dir, e)
            raise

        for entry in entries:
            if _is_linked_dir(entry):
                logger.info("skipping symlinked directory path=%s", entry)
                continue

            if entry.is_dir():
                sub_dest = normalize_remote_path(posixpath.join(dest_dir, entry.name))
                try:
                    await self._remote.create_directory(sub_dest)
                except UploadCancelled:
                    raise
                except Exception as e:
                    logger.error("create remote dir failed dest=%s: %s", sub_dest, e)
                    result.errors.append(f"{sub_dest}: {e}")
                    continue

                try:
                    await self._walk(entry, sub_dest, result, tasks)
                except UploadCancelled:
                    raise
                except Exception as e:
                    logger.error("upload files in directory failed source=%s dest=%s: %s", entry, sub_dest, e)
                    result.errors.append(f"{entry}: {e}")
                continue

            if entry.name in remote_names:
                try:
                    size = entry.stat().st_size
                except OSError as e:
                    logger.error("stat for existing file failed path=%s: %s", entry, e)
                    result.errors.append(f"{entry}: {e}")
                    continue
                self._progress.add_existing(size)
                result.skipped_files += 1
                logger.info("file in directory exists path=%s", entry)
                continue

            await self._file_slots.acquire()
            tasks.append(asyncio.create_task(self._upload_file(entry, dest_dir)))

    async def _upload_file(self, path: Path, dest: str) -> UploadResult:
        try:
            result = await self._file_handler.upload(path, dest)
            if result.status == UploadStatus.SUCCESS and self._config.delete_after_upload:
                self._file_handler.remove_source(path)
            return result
        finally:
            self._file_slots.release()
