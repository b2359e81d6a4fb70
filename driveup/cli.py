"""Command line interface for driveup."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import re
import sys
from pathlib import Path
from typing import Optional, Sequence

import httpx
from rich.logging import RichHandler

from . import __version__
from .cli_progress import (
    RichTransferProgress,
    render_configuration_summary,
    render_file_result,
    render_folder_result,
)
from .exceptions import UploaderError
from .models import MiB, UploadConfig, UploadStatus


EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PARTIAL = 2  # files committed but an upload session was not released

_SIZE_UNITS = {
    "": 1,
    "B": 1,
    "K": 1024, "KB": 1024, "KIB": 1024,
    "M": 1024 ** 2, "MB": 1024 ** 2, "MIB": 1024 ** 2,
    "G": 1024 ** 3, "GB": 1024 ** 3, "GIB": 1024 ** 3,
}
_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$")


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug, --log-level or LOG_LEVEL is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    env_level = os.getenv("LOG_LEVEL")
    if silent or (not debug and not log_level and not env_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, (log_level or env_level or "INFO").upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=True,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # keep transport chatter out of debug runs
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    logging.getLogger("httpcore").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _normalize_dest(dest: Optional[str]) -> str:
    """Remote destination as an absolute forward-slash path."""
    if dest is None:
        return "/"
    value = dest.strip().replace("\\", "/").strip("/")
    return f"/{value}" if value else "/"


def parse_size(value: str) -> int:
    """Parse ``500MiB``, ``1G`` or ``1048576`` into bytes."""
    match = _SIZE_RE.match(str(value))
    if not match:
        raise CLIError(f"invalid size: {value!r}")
    number, unit = match.groups()
    multiplier = _SIZE_UNITS.get(unit.upper())
    if multiplier is None:
        raise CLIError(f"invalid size unit in {value!r}")
    size = int(float(number) * multiplier)
    if size <= 0:
        raise CLIError(f"size must be positive: {value!r}")
    return size


def _parse_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _build_config(args: argparse.Namespace) -> UploadConfig:
    part_size = args.part_size or os.getenv("DRIVEUP_PART_SIZE") or f"{500 * MiB}"
    try:
        return UploadConfig(
            part_size=parse_size(part_size),
            part_workers=int(args.workers or os.getenv("DRIVEUP_WORKERS") or 4),
            concurrent_files=int(args.transfers or os.getenv("DRIVEUP_TRANSFERS") or 4),
            channel_id=int(args.channel_id or os.getenv("DRIVEUP_CHANNEL_ID") or 0),
            encrypt_files=args.encrypt or _parse_bool(os.getenv("DRIVEUP_ENCRYPT")),
            randomise_part_names=args.randomise_parts or _parse_bool(os.getenv("DRIVEUP_RANDOMISE_PARTS")),
            delete_after_upload=args.delete_after_upload or _parse_bool(os.getenv("DRIVEUP_DELETE_AFTER_UPLOAD")),
        )
    except ValueError as exc:
        raise CLIError(f"invalid configuration: {exc}") from exc


async def _run_upload(
    source: Path,
    dest: str,
    api_url: str,
    access_token: Optional[str],
    config: UploadConfig,
) -> int:
    from .orchestrator import UploadOrchestrator

    is_file = source.is_file()
    progress = RichTransferProgress()
    async with UploadOrchestrator(api_url, access_token, config, progress=progress) as orchestrator:
        try:
            with progress:
                if is_file:
                    result = await orchestrator.upload_file(source, dest)
                elif source.is_dir():
                    folder_result = await orchestrator.upload_folder(source, dest)
                else:
                    raise CLIError(f"source is neither file nor directory: {source}")
        except asyncio.CancelledError:
            orchestrator.cancel()
            raise
        except (UploaderError, httpx.HTTPError, OSError) as exc:
            raise CLIError(str(exc) or type(exc).__name__) from exc

    progress.render_summary()
    if is_file:
        render_file_result(result)
        if result.status == UploadStatus.PARTIAL:
            return EXIT_PARTIAL
        return EXIT_OK if result.success else EXIT_FAILED

    render_folder_result(folder_result)
    if folder_result.failed_files or folder_result.errors:
        return EXIT_FAILED
    if folder_result.partial_files:
        return EXIT_PARTIAL
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="driveup",
        description="Upload a file or folder to a remote drive in resumable parts.",
    )
    parser.add_argument("source", nargs="?", type=Path, help="Source file or folder path")
    parser.add_argument(
        "-d",
        "--dest",
        default=None,
        help="Remote destination directory (example: /Backups/2026)",
    )
    parser.add_argument("--api-url", default=None, help="Drive API URL (default from DRIVEUP_API_URL)")
    parser.add_argument(
        "--access-token",
        default=None,
        help="API access token (default from DRIVEUP_ACCESS_TOKEN)",
    )
    parser.add_argument("-p", "--part-size", default=None, help="Part size, e.g. 500MiB (default 500MiB)")
    parser.add_argument("-w", "--workers", type=int, default=None, help="Concurrent part uploads (default 4)")
    parser.add_argument("-t", "--transfers", type=int, default=None, help="Concurrent file uploads (default 4)")
    parser.add_argument("--channel-id", type=int, default=None, help="Channel id for new uploads")
    parser.add_argument("-e", "--encrypt", action="store_true", help="Mark new uploads as encrypted")
    parser.add_argument(
        "-r",
        "--randomise-parts",
        action="store_true",
        help="Send random part names instead of <file>.part.NNN",
    )
    parser.add_argument(
        "--delete-after-upload",
        action="store_true",
        help="Delete local files after a successful upload",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument("--version", action="version", version=f"driveup {__version__}")
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return EXIT_FAILED

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if args.source is None:
        parser.print_help()
        return EXIT_OK

    source = Path(args.source).expanduser()
    if not source.exists():
        print(f"ERROR: source does not exist: {source}", file=sys.stderr)
        return EXIT_FAILED

    api_url = args.api_url or os.getenv("DRIVEUP_API_URL")
    if not api_url:
        print("ERROR: DRIVEUP_API_URL environment variable is not set", file=sys.stderr)
        return EXIT_FAILED
    access_token = args.access_token or os.getenv("DRIVEUP_ACCESS_TOKEN")

    try:
        config = _build_config(args)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_FAILED

    dest = _normalize_dest(args.dest)
    source_kind = "file" if source.is_file() else "folder" if source.is_dir() else "unknown"
    render_configuration_summary(
        {
            "Source": str(source),
            "Source Type": source_kind,
            "Dest": dest,
            "API": api_url,
            "Part Size": f"{config.part_size // MiB} MiB" if config.part_size >= MiB else f"{config.part_size} B",
            "Workers": config.part_workers,
            "Transfers": config.concurrent_files,
            "Channel": config.channel_id or "(default)",
            "Encrypt": "yes" if config.encrypt_files else "no",
            "Random Part Names": "yes" if config.randomise_part_names else "no",
            "Delete After Upload": "yes" if config.delete_after_upload else "no",
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(
            _run_upload(
                source=source,
                dest=dest,
                api_url=api_url,
                access_token=access_token,
                config=config,
            )
        )
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_FAILED
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
