"""
Logging infrastructure for the DRep sync pipeline.

Provides:
- Aligned log lines with millisecond timestamps and an optional phase tag
- Console and optional file output
- Error/warning tracking for the run summary
- Phase timing helpers
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(filename)s:%(lineno)d | %(message)s"
PHASE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | {phase} | %(filename)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S,%f"

# Third-party loggers routed through the root handler
EXTERNAL_LOGGERS = ["httpx", "httpcore", "pymysql"]


class MillisecondsFormatter(logging.Formatter):
    """Formatter that includes milliseconds and aligns log levels."""

    def formatTime(self, record, datefmt=None):  # noqa: N802 - must match parent class method name
        ct = datetime.fromtimestamp(record.created)
        if datefmt and "%f" in datefmt:
            s = ct.strftime(datefmt.replace(",%f", ""))
            return s + f",{int(record.msecs):03d}"
        elif datefmt:
            return ct.strftime(datefmt)
        else:
            return ct.strftime("%Y-%m-%d %H:%M:%S") + f",{int(record.msecs):03d}"


def _format_string(phase: Optional[str]) -> str:
    return PHASE_LOG_FORMAT.format(phase=phase) if phase else LOG_FORMAT


def _with_fields(message: str, fields: dict) -> str:
    if not fields:
        return message
    formatted = " ".join(f"{k}={v}" for k, v in fields.items())
    return f"{message} [{formatted}]"


class PipelineLogger:
    """
    Centralized logger for the sync pipeline with structured output.
    """

    def __init__(
        self,
        name: str = "drep_sync",
        log_level: str = "INFO",
        log_file: Optional[str] = None,
        log_dir: Optional[Path] = None,
        phase: Optional[str] = None,
        configure_external: bool = True,
    ):
        """
        Initialize the pipeline logger.

        Args:
            name: Logger name
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_file: Optional log file name
            log_dir: Directory for log files (defaults to logs/)
            phase: Optional phase tag (e.g., "P2:Enrich")
            configure_external: Route root/httpx/pymysql loggers through the same format
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, log_level.upper()))
        self.phase = phase

        # Prevent propagation to root logger to avoid duplicate logs
        self.logger.propagate = False

        if self.logger.handlers:
            self.logger.handlers.clear()

        formatter = MillisecondsFormatter(_format_string(phase), datefmt=DATE_FORMAT)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, log_level.upper()))
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if log_file:
            if log_dir is None:
                log_dir = Path(__file__).parent.parent.parent / "logs"

            log_dir.mkdir(parents=True, exist_ok=True)
            log_path = log_dir / log_file

            file_handler = logging.FileHandler(log_path)
            file_handler.setLevel(logging.DEBUG)  # Log everything to file
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

            self.info(f"Logging to file: {log_path}")

        if configure_external:
            _configure_root(log_level, formatter)

        self.errors = []
        self.warnings = []
        self.phase_timings_ms: dict[str, int] = {}

    def debug(self, message: str, **kwargs):
        """Log debug message with optional structured data."""
        self.logger.debug(_with_fields(message, kwargs), stacklevel=2)

    def info(self, message: str, **kwargs):
        """Log info message with optional structured data."""
        self.logger.info(_with_fields(message, kwargs), stacklevel=2)

    def warning(self, message: str, **kwargs):
        """Log warning message and track for reporting."""
        message = _with_fields(message, kwargs)
        self.logger.warning(message, stacklevel=2)
        self.warnings.append(
            {
                "message": message,
                "timestamp": datetime.now().isoformat(),
                "data": kwargs,
            }
        )

    def error(self, message: str, exception: Optional[Exception] = None, **kwargs):
        """Log error message and track for reporting."""
        if exception:
            message = f"{message} | Exception: {str(exception)}"
        message = _with_fields(message, kwargs)

        self.logger.error(message, exc_info=exception is not None, stacklevel=2)
        self.errors.append(
            {
                "message": message,
                "exception": str(exception) if exception else None,
                "timestamp": datetime.now().isoformat(),
                "data": kwargs,
            }
        )

    def log_sync_start(self, run_id: str):
        self.info("=" * 60)
        self.info("DRep sync started", run_id=run_id)
        self.info("=" * 60)

    def log_sync_complete(self, run_id: str, status: str, duration_ms: int, dreps: int):
        self.info("=" * 60)
        self.info("DRep sync completed", run_id=run_id, status=status, dreps=dreps, duration_ms=duration_ms)
        self.info("=" * 60)

    @contextmanager
    def time_phase(self, key: str, description: str):
        """
        Time a sync phase and record its duration under `key`.

        The duration is recorded whether the phase succeeds or raises; the
        exception is logged and re-raised for the caller to classify.

        Usage:
            with logger.time_phase("step1_proposals_ms", "proposal fetch"):
                # ... perform phase ...
        """
        start = time.perf_counter()
        self.debug(f"Starting {description}")
        try:
            yield
        except Exception as e:
            elapsed = int((time.perf_counter() - start) * 1000)
            self.phase_timings_ms[key] = elapsed
            self.error(f"Failed {description}", exception=e, duration_ms=elapsed)
            raise
        elapsed = int((time.perf_counter() - start) * 1000)
        self.phase_timings_ms[key] = elapsed
        self.info(f"Completed {description}", duration_ms=elapsed)

    def get_error_summary(self) -> dict:
        """Get summary of errors and warnings for reporting."""
        return {
            "total_errors": len(self.errors),
            "total_warnings": len(self.warnings),
            "errors": self.errors,
            "warnings": self.warnings,
        }

    def clear_tracking(self):
        """Clear tracked errors, warnings and timings (between runs)."""
        self.errors = []
        self.warnings = []
        self.phase_timings_ms = {}


def _configure_root(log_level: str, formatter: logging.Formatter):
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    root_handler = logging.StreamHandler(sys.stdout)
    root_handler.setLevel(getattr(logging, log_level.upper()))
    root_handler.setFormatter(formatter)
    root_logger.addHandler(root_handler)

    # httpx logs every request at INFO; keep it at WARNING unless debugging
    external_level = logging.DEBUG if log_level.upper() == "DEBUG" else logging.WARNING
    for lib_name in EXTERNAL_LOGGERS:
        lib_logger = logging.getLogger(lib_name)
        lib_logger.handlers.clear()
        lib_logger.propagate = True
        lib_logger.setLevel(external_level)


# ============================================================================
# Global Logger Instance
# ============================================================================

_default_logger: Optional[PipelineLogger] = None


def get_logger(
    name: str = "drep_sync",
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    phase: Optional[str] = None,
) -> PipelineLogger:
    """
    Get or create the default pipeline logger.

    Args:
        name: Logger name
        log_level: Logging level
        log_file: Optional log file
        phase: Optional phase tag

    Returns:
        PipelineLogger instance
    """
    global _default_logger

    if _default_logger is None:
        _default_logger = PipelineLogger(
            name=name,
            log_level=log_level,
            log_file=log_file,
            phase=phase,
        )

    return _default_logger


def configure_global_logging(log_level: str = "INFO", phase: Optional[str] = None):
    """
    Configure root and third-party loggers with the unified format.

    Call this early in application startup so library modules that log via
    logging.getLogger(__name__) share the pipeline format.
    """
    formatter = MillisecondsFormatter(_format_string(phase), datefmt=DATE_FORMAT)
    _configure_root(log_level, formatter)
