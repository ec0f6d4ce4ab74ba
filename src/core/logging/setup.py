"""Root logger configuration for loader runs."""

import logging
import secrets
import shutil
import sys
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from core.logging.context import set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter

DEFAULT_LOG_DIR = Path("logs")
DEFAULT_ROTATION_WHEN = "midnight"
DEFAULT_ROTATION_INTERVAL = 1
DEFAULT_BACKUP_COUNT = 7
DEFAULT_CONSOLE_LEVEL = logging.INFO
DEFAULT_FILE_LEVEL = logging.DEBUG

PLAIN_FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"

# Third-party loggers capped at WARNING
NOISY_LOGGERS = [
    "aiomcache",
    "asyncio",
]


class ArchivingTimedRotatingFileHandler(TimedRotatingFileHandler):
    """
    Rotating file handler that moves rotated files into ``archive_dir``.

    Defaults to an ``archive`` folder beside the active log file.
    """

    def __init__(self, filename, archive_dir=None, **kwargs):
        super().__init__(filename, **kwargs)
        self.archive_dir = Path(archive_dir) if archive_dir else Path(self.baseFilename).parent / "archive"
        self.archive_dir.mkdir(parents=True, exist_ok=True)

    def doRollover(self):
        super().doRollover()

        active = Path(self.baseFilename)
        for rotated in active.parent.glob(f"{active.name}.*"):
            try:
                shutil.move(str(rotated), str(self.archive_dir / rotated.name))
            except OSError as e:
                # Logging from inside a handler would recurse
                print(f"Warning: Failed to archive {rotated}: {e}", file=sys.stderr)


def get_log_file_path(
    log_dir: Path,
    domain: str | None = None,
    stage: str | None = None,
    run_id: str | None = None,
) -> Path:
    """
    Path of the log file for this run.

    Layout: ``{log_dir}/[{domain}/]{YYYY-MM-DD}/{domain}_{stage}_{MMDD}_{HHMM}[_{run_id}].log``,
    e.g. ``logs/memc_load/2026-01-05/memc_load_load_0105_1430_r-20260105-143000-ab12.log``.
    A missing domain and stage fall back to a ``loader`` prefix.
    """
    now = datetime.now()
    name_parts = [part for part in (domain, stage) if part] or ["loader"]
    name_parts += [now.strftime("%m%d"), now.strftime("%H%M")]
    if run_id:
        name_parts.append(run_id)

    folder = log_dir / domain if domain else log_dir
    return folder / now.strftime("%Y-%m-%d") / ("_".join(name_parts) + ".log")


def _file_handler(
    log_dir: Path,
    log_file: Path,
    json_format: bool,
    level: int,
    rotation_when: str,
    rotation_interval: int,
    backup_count: int,
) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    # logs/archive/<domain>/<date> mirrors the live layout
    archive_dir = log_dir / "archive" / log_file.parent.relative_to(log_dir)

    handler = ArchivingTimedRotatingFileHandler(
        log_file,
        archive_dir=archive_dir,
        when=rotation_when,
        interval=rotation_interval,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(PLAIN_FILE_FORMAT))
    return handler


def setup_logging(
    name: str = "memc_load",
    stage: str | None = None,
    domain: str | None = None,
    log_dir: Path | None = None,
    json_format: bool = True,
    console_level: int = DEFAULT_CONSOLE_LEVEL,
    file_level: int = DEFAULT_FILE_LEVEL,
    rotation_when: str = DEFAULT_ROTATION_WHEN,
    rotation_interval: int = DEFAULT_ROTATION_INTERVAL,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    suppress_noisy: bool = True,
    run_id: str | None = None,
    log_to_stdout: bool = False,
) -> logging.Logger:
    """
    Replace root handlers with a console handler and, unless
    ``log_to_stdout`` is set, a rotating JSON file handler.

    Args:
        name: Logger name returned to the caller
        stage: Run stage (load, selftest); goes into the context and filename
        domain: Log domain; used as the log subfolder
        log_dir: Base directory for log files (default: ./logs)
        json_format: JSON lines in the file instead of plain text
        console_level: Console threshold
        file_level: File threshold; also the console threshold in stdout-only mode
        rotation_when: TimedRotatingFileHandler ``when``
        rotation_interval: TimedRotatingFileHandler ``interval``
        backup_count: Rotated files to keep
        suppress_noisy: Cap NOISY_LOGGERS at WARNING
        run_id: Run identifier for the context and filename
        log_to_stdout: Console only, no file handler

    Returns:
        The logger called ``name``
    """
    log_dir = log_dir or DEFAULT_LOG_DIR
    set_log_context(run_id=run_id or None, stage=stage or None, domain=domain or None)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ConsoleFormatter())

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()

    log_file: Path | None = None
    if log_to_stdout:
        console.setLevel(min(console_level, file_level))
    else:
        console.setLevel(console_level)
        log_file = get_log_file_path(log_dir, domain=domain, stage=stage, run_id=run_id)
        root.addHandler(
            _file_handler(
                log_dir,
                log_file,
                json_format,
                file_level,
                rotation_when,
                rotation_interval,
                backup_count,
            )
        )
    root.addHandler(console)

    if suppress_noisy:
        for noisy in NOISY_LOGGERS:
            logging.getLogger(noisy).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    logger.debug(
        "Logging initialized",
        extra={"file_path": str(log_file) if log_file else None, "json_format": json_format},
    )
    return logger


def generate_run_id() -> str:
    """``r-YYYYMMDD-HHMMSS-xxxx`` with a random hex suffix."""
    return f"r-{datetime.now():%Y%m%d-%H%M%S}-{secrets.token_hex(2)}"
