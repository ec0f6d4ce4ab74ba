"""
Structured logging module.

Provides JSON file logging, colourised console output and context
propagation through contextvars.
"""

from core.logging.context import (
    clear_log_context,
    get_log_context,
    set_log_context,
)
from core.logging.context_managers import LogContext, log_phase
from core.logging.formatters import ConsoleFormatter, JSONFormatter
from core.logging.periodic_logger import PeriodicStatsLogger
from core.logging.setup import (
    generate_run_id,
    get_log_file_path,
    setup_logging,
)
from core.logging.utilities import (
    detect_log_output_mode,
    format_progress,
    log_exception,
    log_startup_banner,
    log_with_context,
)

__all__ = [
    # Setup
    "setup_logging",
    "generate_run_id",
    "get_log_file_path",
    # Formatters
    "JSONFormatter",
    "ConsoleFormatter",
    # Context
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    # Context Managers
    "LogContext",
    "log_phase",
    # Periodic output
    "PeriodicStatsLogger",
    # Utilities
    "log_with_context",
    "log_exception",
    "log_startup_banner",
    "detect_log_output_mode",
    "format_progress",
]
