"""Command line interface for the booky upload queue."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .cli_progress import (
    ConsoleNotificationSink,
    render_configuration_summary,
    render_queue,
    render_rejections,
)
from .errors import AuthError
from .models import MB, BackendSettings, SourceFile, UploadConfig
from .orchestrator import QueueOrchestrator
from .orchestrator.file_collector import FileCollector
from .services import BookRepository, HTTPAPIClient, SessionIdentityResolver, StorageService


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    from rich.logging import RichHandler

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level and not os.getenv("LOG_LEVEL")):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        name = log_level or os.getenv("LOG_LEVEL") or "INFO"
        level = getattr(logging, name.upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # keep request logs out of the progress display
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


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
    defaults = UploadConfig()
    max_size = int(args.max_size_mb * MB) if args.max_size_mb else defaults.max_file_size
    return UploadConfig(
        bucket=os.getenv("BOOKY_BUCKET") or defaults.bucket,
        max_file_size=max_size,
        compress_pdfs=not args.no_compress,
        strict_epub=args.strict_epub,
        item_timeout=args.timeout,
    )


def _collect_sources(paths: Sequence[Path]) -> List[SourceFile]:
    missing = [p for p in paths if not p.exists()]
    if missing:
        raise CLIError(f"source does not exist: {missing[0]}")
    return [SourceFile.from_path(p) for p in FileCollector.collect(paths)]


async def _run_upload(
    sources: List[SourceFile],
    settings: BackendSettings,
    config: UploadConfig,
) -> int:
    sink = ConsoleNotificationSink()
    async with HTTPAPIClient(settings) as client:
        orchestrator = QueueOrchestrator(
            storage=StorageService(client, settings.url, config),
            identity=SessionIdentityResolver(client),
            catalog=BookRepository(client),
            notifications=sink,
            config=config,
        )
        enqueued = orchestrator.enqueue_files(sources)
        render_rejections(enqueued.rejected)
        if not enqueued.ids:
            raise CLIError("no valid files to upload")

        try:
            result = await orchestrator.process_queue()
        except AuthError as exc:
            raise CLIError(f"{exc} (set BOOKY_ACCESS_TOKEN)") from exc
        finally:
            sink.stop()

        render_queue(orchestrator.queue.items())
        if result is None or not result.all_success or not enqueued.all_accepted:
            return 1
        return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="booky-up",
        description="Upload PDF/EPUB books to your ProperBooky library.",
    )
    parser.add_argument("sources", nargs="*", type=Path, help="Book files or folders")
    parser.add_argument(
        "--strict-epub",
        action="store_true",
        help="Also check EPUB container contents (ZIP magic and mimetype entry)",
    )
    parser.add_argument(
        "--no-compress",
        action="store_true",
        help="Upload PDFs as-is without stream recompression",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-file upload timeout in seconds (default: none)",
    )
    parser.add_argument(
        "--max-size-mb",
        type=float,
        default=None,
        help="Maximum file size in MB (default: 100)",
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
    parser.add_argument(
        "--version",
        action="version",
        version="booky-up (from booky)",
    )
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
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if not args.sources:
        parser.print_help()
        return 0

    try:
        settings = BackendSettings.from_env()
        config = _build_config(args)
        sources = _collect_sources([Path(p).expanduser() for p in args.sources])
    except (CLIError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    render_configuration_summary(
        {
            "Files": len(sources),
            "Backend": settings.url,
            "Bucket": config.bucket,
            "Session": "yes" if settings.access_token else "(missing)",
            "Max Size": f"{config.max_file_size_mb} MB",
            "Compress PDFs": "yes" if config.compress_pdfs else "no",
            "Strict EPUB": "yes" if config.strict_epub else "no",
            "Timeout": f"{config.item_timeout:g}s" if config.item_timeout else "-",
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(_run_upload(sources, settings, config))
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
