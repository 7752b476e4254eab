# file: pgforge/utils/system/forge_logger.py
# Structured logging for pgforge
# Features:
#   - JSONL structured logging (Loki/ELK compatible)
#   - Human readable console output tagged for build logs
#   - Optional JSONL file handler

import datetime
import json
import logging
import os
from typing import Any, Dict, Optional, Tuple

loggerNameOfPgforge = 'pgforge'

CONSOLE_FORMAT = "[%(tag)s] %(levelname)s: %(message)s"


# ---------------------------------------------------------------------------
# JSON Formatter (stdlib only – no external dependency)
# ---------------------------------------------------------------------------

class JsonLogFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON (JSONL).
    Compatible with Grafana Loki, OpenSearch, ELK, Fluentd.
    """

    _SKIP_FIELDS = frozenset({
        "name", "msg", "args", "created", "relativeCreated",
        "exc_info", "exc_text", "stack_info", "lineno", "funcName",
        "filename", "module", "levelno", "levelname", "pathname",
        "thread", "threadName", "process", "processName",
        "message", "msecs", "taskName",
    })

    def __init__(self, run_id: str = "", **kwargs):
        super().__init__()
        self.run_id = run_id

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        log_dict: Dict[str, Any] = {
            "timestamp": datetime.datetime.fromtimestamp(
                record.created, tz=datetime.timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "filename": record.filename,
            "lineno": record.lineno,
            "funcName": record.funcName,
            "message": record.message,
        }

        if self.run_id:
            log_dict["run_id"] = self.run_id

        # Merge extra fields (entry, build_type, command, …)
        for key, value in record.__dict__.items():
            if key not in self._SKIP_FIELDS and not key.startswith("_"):
                try:
                    json.dumps(value)
                    log_dict[key] = value
                except (TypeError, ValueError):
                    log_dict[key] = str(value)

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            log_dict["exception"] = record.exc_text

        return json.dumps(log_dict, ensure_ascii=False)


class TaggedConsoleFormatter(logging.Formatter):
    """Plain text formatter prefixing each line with a short tag."""

    def __init__(self, default_tag: str = "pgforge"):
        super().__init__(CONSOLE_FORMAT)
        self.default_tag = default_tag

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "tag"):
            record.tag = self.default_tag
        return super().format(record)


def setup_logging(
    level: int = logging.INFO,
    json_console: bool = False,
    logs_directory: Optional[str] = None,
    run_id: str = "",
    interminal: bool = True,
) -> Tuple[logging.Logger, Optional[str]]:
    """
    Initialize pgforge logging.

    Args:
        level:          Logging level (e.g. logging.DEBUG)
        json_console:   Emit JSONL on the console instead of tagged text
        logs_directory: Optional directory for a JSONL log file
        run_id:         Identifier added to every JSON record
        interminal:     Whether to print to stderr at all

    Returns:
        (logger, log file path or None)
    """
    logger = logging.getLogger(loggerNameOfPgforge)
    logger.setLevel(level)

    if logger.hasHandlers():
        logger.handlers.clear()
    logger.propagate = False

    if interminal:
        console = logging.StreamHandler()
        console.setFormatter(
            JsonLogFormatter(run_id=run_id) if json_console else TaggedConsoleFormatter()
        )
        console.setLevel(level)
        logger.addHandler(console)

    filename = None
    if logs_directory:
        os.makedirs(logs_directory, exist_ok=True)
        stamp = datetime.datetime.now().strftime("%Y-%m-%d")
        filename = os.path.join(logs_directory, f"pgforge-{stamp}.jsonl")
        file_handler = logging.FileHandler(filename, encoding="utf-8")
        file_handler.setFormatter(JsonLogFormatter(run_id=run_id))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger, filename


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Return the pgforge logger, or one of its children.
    """
    if name:
        return logging.getLogger(f"{loggerNameOfPgforge}.{name}")
    return logging.getLogger(loggerNameOfPgforge)
