"""File logging for fileagent.

Every outer turn leaves a trail in ``<workspace>/.fileagent_output/fileagent.log``:
one ``step`` record per loop transition and one ``dispatch`` record per tool
call, both written as ``key=value`` pairs so a turn can be grepped back
together by ``turn=`` and ``call_id=``::

    turn=1 step=1/5 phase=streamed text_len=0 tools=['read_file'] finish=tool_calls
    dispatch tool=read_file call_id=call_1 ok=True ms=0.8
    turn=1 step=2/5 phase=done text_len=42 tools=[] finish=stop

Set ``FILEAGENT_DEBUG=1`` to mirror the log on stderr.
"""

import logging
import os
import sys
import traceback
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

LOG_DIR_NAME = ".fileagent_output"
LOG_FILE_NAME = "fileagent.log"
ROOT_LOGGER = "fileagent"

_FORMAT = logging.Formatter(
    fmt="%(asctime)s.%(msecs)03d | %(levelname)-5s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

_log_path: Optional[Path] = None
_file_handler: Optional[RotatingFileHandler] = None


def init_logging(workspace: Optional[str] = None, level: int = logging.DEBUG) -> Path:
    """Point the ``fileagent`` logger at ``<workspace>/.fileagent_output/fileagent.log``.

    Without ``workspace`` an existing log is kept; otherwise the current
    directory is used. Passing a different workspace moves the file handler.
    """
    global _log_path, _file_handler
    log_path = Path(workspace or Path.cwd()) / LOG_DIR_NAME / LOG_FILE_NAME
    if _log_path is not None and (workspace is None or log_path == _log_path):
        return _log_path

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.propagate = False

    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(str(log_path), maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8")
    handler.setFormatter(_FORMAT)

    if _file_handler is not None:
        root.removeHandler(_file_handler)
        _file_handler.close()
    elif os.environ.get("FILEAGENT_DEBUG"):
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(_FORMAT)
        root.addHandler(stderr_handler)

    root.addHandler(handler)
    _file_handler = handler
    _log_path = log_path
    root.info("logging to %s (pid=%d python=%s)", log_path, os.getpid(), sys.version.split()[0])
    return log_path


def get_logger(name: str) -> logging.Logger:
    """Child logger under ``fileagent``. Initialises file logging on first use."""
    if _log_path is None:
        init_logging()
    prefix = ROOT_LOGGER + "."
    if name.startswith(prefix):
        name = name[len(prefix):]
    return logging.getLogger(prefix + name)


def truncate(text: str, max_len: int = 200) -> str:
    """Single-line, length-capped form of ``text`` for log records."""
    if not text:
        return "(empty)"
    text = text.replace("\n", "\\n")
    if len(text) <= max_len:
        return text
    return text[:max_len] + f"...[{len(text)} chars]"


def fields(**values: Any) -> str:
    """Render ``key=value`` pairs in argument order; strings are truncated."""
    parts = []
    for key, value in values.items():
        if isinstance(value, str):
            value = truncate(value, 120)
        elif isinstance(value, float):
            value = f"{value:.1f}"
        parts.append(f"{key}={value}")
    return " ".join(parts)


def log_step(logger: logging.Logger, turn: int, step: int, max_steps: int, phase: str, **values: Any) -> None:
    """Record one agent loop transition (``invoke``, ``streamed``, ``done``, ``limit``)."""
    level = logging.WARNING if phase == "limit" else logging.INFO
    record = fields(turn=turn, step=f"{step}/{max_steps}", phase=phase)
    if values:
        record = f"{record} {fields(**values)}"
    logger.log(level, "%s", record)


def log_dispatch(logger: logging.Logger, result, duration_ms: float) -> None:
    """Record one tool dispatch. Failed results carry their error payload."""
    record = fields(tool=result.name, call_id=result.call_id, ok=result.ok, ms=duration_ms)
    if result.ok:
        logger.info("dispatch %s", record)
    else:
        logger.info("dispatch %s error=%s", record, truncate(result.to_message()))


def log_exception(logger: logging.Logger, msg: str, exc: BaseException) -> None:
    """Log ``exc`` with its full traceback at ERROR level."""
    tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error("%s: %s\n%s", msg, exc, tb)
