"""
spanlabel logging utilities - session-based debug and audit logging.

Overview:
---------
Centralised logging configuration for the span labeling pipeline.  Provides
session-based file logging with unique identifiers, configurable verbosity,
and structured output for debugging fast-path declines, prompt construction,
LLM responses and repair attempts.

Log Location:
-------------
- Default: ~/.spanlabel/logs/
- Each run creates a timestamped log file with session ID
- A symlink 'spanlabel.log' always points to the latest session
- Can be overridden via SPANLABEL_LOG_DIR environment variable

Log Levels:
-----------
- DEBUG: Full prompts, raw LLM responses, fuzzy position matches
- INFO: Request flow (cache, fast path, generation, repair)
- WARNING: Declines with errors, unresolved spans, repair attempts
- ERROR: Repair exhaustion, service failures

Usage:
------
    from spanlabel.utils.logging import get_logger, setup_logging

    log_file = setup_logging(level="DEBUG")
    logger = get_logger(__name__)
    logger.info("Labeling request received")
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

# ============================================================================
# Constants
# ============================================================================

DEFAULT_LOG_DIR = Path.home() / ".spanlabel" / "logs"
DEFAULT_LOG_LEVEL = "INFO"
SYMLINK_NAME = "spanlabel.log"
ROOT_LOGGER_NAME = "spanlabel"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(session_id)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# File logging includes line numbers
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(session_id)s | %(name)s:%(lineno)d | %(message)s"

_logging_initialised = False
_log_file_path: Optional[Path] = None
_session_id: Optional[str] = None


# ============================================================================
# Session ID Filter - Adds session_id to all log records
# ============================================================================

class SessionIdFilter(logging.Filter):
    """Add session_id to all log records."""

    def __init__(self, session_id: str):
        super().__init__()
        self.session_id = session_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = self.session_id  # type: ignore[attr-defined]
        return True


class SessionFormatter(logging.Formatter):
    """Formatter that defaults session_id to 'N/A' when a record lacks one."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "session_id"):
            record.session_id = _session_id or "N/A"  # type: ignore[attr-defined]
        return super().format(record)


# ============================================================================
# Setup Functions
# ============================================================================

def generate_session_id() -> str:
    """Generate a short unique session ID (6 characters)."""
    return uuid.uuid4().hex[:6]


def get_log_directory() -> Path:
    """Get the log directory, respecting SPANLABEL_LOG_DIR."""
    env_log_dir = os.getenv("SPANLABEL_LOG_DIR")
    if env_log_dir:
        return Path(env_log_dir)
    return DEFAULT_LOG_DIR


def generate_log_filename(session_id: str) -> str:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"spanlabel_{timestamp}_{session_id}.log"


def setup_logging(
    level: Optional[str] = None,
    log_dir: Optional[Path] = None,
    console_output: bool = False,
    quiet: bool = False,
) -> Path:
    """
    Initialise logging with a session file and optional console output.

    Parameters
    ----------
    level : str, optional
        DEBUG, INFO, WARNING or ERROR. Falls back to SPANLABEL_LOG_LEVEL, then INFO.
    log_dir : Path, optional
        Directory for log files. Defaults to ~/.spanlabel/logs/
    console_output : bool
        If True, also log to stderr.
    quiet : bool
        If True, suppress console output entirely.

    Returns
    -------
    Path
        Path to the log file being written to.
    """
    global _logging_initialised, _log_file_path, _session_id

    _session_id = generate_session_id()

    if level is None:
        level = os.getenv("SPANLABEL_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_dir is None:
        log_dir = get_log_directory()
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / generate_log_filename(_session_id)
    _log_file_path = log_file

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.handlers.clear()
    for f in root.filters[:]:
        root.removeFilter(f)
    root.setLevel(log_level)
    root.addFilter(SessionIdFilter(_session_id))

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(SessionFormatter(FILE_LOG_FORMAT, LOG_DATE_FORMAT))
    root.addHandler(file_handler)

    if console_output and not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(SessionFormatter(LOG_FORMAT, LOG_DATE_FORMAT))
        root.addHandler(console_handler)

    root.propagate = False

    symlink_path = log_dir / SYMLINK_NAME
    try:
        if symlink_path.is_symlink() or symlink_path.exists():
            symlink_path.unlink()
        symlink_path.symlink_to(log_file.name)
    except OSError:
        # Symlinks need extra privileges on some platforms
        pass

    _logging_initialised = True

    root.info("=" * 80)
    root.info("spanlabel logging session started")
    root.info(f"  Session ID: {_session_id}")
    root.info(f"  Log file: {log_file}")
    root.info(f"  Log level: {level.upper()}")
    root.info("=" * 80)

    return log_file


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the ``spanlabel`` namespace.

    Logging is initialised with defaults on first use.
    """
    if not _logging_initialised:
        setup_logging()

    if name.startswith(ROOT_LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def get_current_log_file() -> Optional[Path]:
    """Return the path to the current log file, if logging is initialised."""
    return _log_file_path


def get_session_id() -> Optional[str]:
    """Return the current session ID, if logging is initialised."""
    return _session_id


# ============================================================================
# Structured helpers
# ============================================================================

def _truncate(content: str, truncate_at: int) -> str:
    if len(content) > truncate_at:
        return content[:truncate_at] + f"... [TRUNCATED, {len(content)} chars total]"
    return content


def log_stage_attempt(
    logger: logging.Logger,
    stage: str,
    step: int,
    details: Optional[str] = None,
) -> None:
    """Log a pipeline stage attempt (fast path, generation, repair)."""
    msg = f"[Step {step}] Attempting: {stage}"
    if details:
        msg += f" | {details}"
    logger.info(msg)


def log_stage_failure(
    logger: logging.Logger,
    stage: str,
    error: str,
    step: int,
) -> None:
    logger.warning(f"FAILED [Step {step}] {stage}: {error}")


def log_prompt(
    logger: logging.Logger,
    prompt_type: str,
    prompt_content: str,
    truncate_at: int = 2000,
) -> None:
    """
    Log a prompt being sent to the LLM.

    Parameters
    ----------
    prompt_type : str
        Description of the prompt (e.g., "System Prompt", "Repair Payload")
    prompt_content : str
        The full prompt text
    truncate_at : int
        Maximum characters to log
    """
    logger.debug(f"PROMPT ({prompt_type}):\n{_truncate(prompt_content, truncate_at)}")


def log_llm_response(
    logger: logging.Logger,
    response_type: str,
    response_content: str,
    truncate_at: int = 2000,
) -> None:
    """Log an LLM response (raw text or parsed JSON)."""
    logger.debug(f"LLM RESPONSE ({response_type}):\n{_truncate(response_content, truncate_at)}")


def log_label_complete(
    logger: logging.Logger,
    source: str,
    span_count: int,
    total_duration: Optional[float] = None,
    cache_hit: bool = False,
) -> None:
    """Log a labeling completion summary."""
    msg = f"LABELING COMPLETE via {source}: {span_count} spans"
    if total_duration is not None:
        msg += f" ({total_duration:.2f}s)"
    if cache_hit:
        msg += " [cache hit]"
    logger.info(msg)
