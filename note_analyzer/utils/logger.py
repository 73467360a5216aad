"""
Logging for the note analyzer.

Each agent and the pipeline get a named logger writing to stdout and, unless
``NOTE_ANALYZER_FILE_LOGS=false``, to a rotating ``<name>.log`` under
``NOTE_ANALYZER_LOG_DIR`` (default ``./logs``). The ``log_*`` helpers render
keyword context as ``| key=value`` pairs so pipeline runs can be grepped by
``run_id``.
"""

import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional


_LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
)
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5


def _logs_dir() -> Path:
    logs_dir = Path(os.getenv("NOTE_ANALYZER_LOG_DIR", "logs"))
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def _file_logs_enabled() -> bool:
    return os.getenv("NOTE_ANALYZER_FILE_LOGS", "true").lower() != "false"


def _format_context(run_id: Optional[str], extra: Dict[str, Any]) -> str:
    parts = [f"run_id={run_id}"] if run_id else []
    parts.extend(f"{key}={value}" for key, value in extra.items())
    return "".join(f" | {part}" for part in parts)


def get_logger(
    name: str,
    log_file: Optional[str] = None,
    level: int = logging.INFO,
    console: bool = True,
    file: bool = True,
) -> logging.Logger:
    """
    Return the named logger, attaching handlers the first time it is requested.

    Args:
        name: Dotted logger name, e.g. "note_analyzer.agents.review_agent"
        log_file: File stem for the rotating log (defaults to the last part of name)
        level: Level for the logger and its handlers
        console: Attach a stdout handler
        file: Attach a rotating file handler (ignored when file logs are switched off)
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    logger.propagate = False
    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)

    if console:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setLevel(level)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    if file and _file_logs_enabled():
        stem = log_file or name.rsplit(".", 1)[-1]
        rotating_handler = RotatingFileHandler(
            _logs_dir() / f"{stem}.log",
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
            encoding="utf-8",
        )
        rotating_handler.setLevel(level)
        rotating_handler.setFormatter(formatter)
        logger.addHandler(rotating_handler)

    return logger


def setup_root_logger(level: int = logging.INFO) -> None:
    """Send root-level records (scripts, libraries) to stdout at ``level``."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
    root_logger.addHandler(stream_handler)


def get_agent_logger(agent_name: str, level: int = logging.INFO) -> logging.Logger:
    """Logger for one agent module, logging to ``<agent_name>.log``."""
    return get_logger(f"note_analyzer.agents.{agent_name}", log_file=agent_name, level=level)


def get_pipeline_logger(level: int = logging.INFO) -> logging.Logger:
    return get_logger("note_analyzer.agents.workflow", log_file="workflow", level=level)


def log_state_transition(
    logger: logging.Logger,
    from_state: str,
    to_state: str,
    run_id: Optional[str] = None,
    **kwargs,
) -> None:
    """Record a move between pipeline or review-gate states."""
    logger.info(f"State transition: {from_state} -> {to_state}{_format_context(run_id, kwargs)}")


def log_api_call(
    logger: logging.Logger,
    operation: str,
    model: str,
    output_chars: int = 0,
    duration: float = 0.0,
    run_id: Optional[str] = None,
    **kwargs,
) -> None:
    """
    Record one finished streamed completion.

    ``output_chars`` is the length of the accumulated reply; streamed
    responses do not report token usage on every provider.
    """
    logger.info(
        f"API Call | operation={operation} | model={model} | "
        f"output_chars={output_chars} | duration={duration:.2f}s{_format_context(run_id, kwargs)}"
    )


def log_performance_metrics(
    logger: logging.Logger,
    operation: str,
    duration: float,
    run_id: Optional[str] = None,
    **metrics,
) -> None:
    logger.info(
        f"Performance | operation={operation} | duration={duration:.2f}s{_format_context(run_id, metrics)}"
    )


def log_error_with_context(
    logger: logging.Logger,
    error: BaseException,
    operation: str,
    run_id: Optional[str] = None,
    **context,
) -> None:
    """Log a failure with its traceback; callers re-raise afterwards."""
    logger.error(
        f"Error in {operation} | {type(error).__name__}: {error}{_format_context(run_id, context)}",
        exc_info=True,
    )


__all__ = [
    "get_logger",
    "setup_root_logger",
    "get_agent_logger",
    "get_pipeline_logger",
    "log_state_transition",
    "log_api_call",
    "log_performance_metrics",
    "log_error_with_context",
]
