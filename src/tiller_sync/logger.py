import json
import logging
import os
import sys

DEFAULT_LOG_FILE = "/tmp/tiller-sync.log"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty client libraries, kept at WARNING unless debugging
NOISY_LOGGERS = (
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
    "google.auth",
    "google_auth_httplib2",
    "urllib3",
)


class JsonFormatter(logging.Formatter):
    """One JSON object per line with ts, level, logger and msg fields.

    Exception info, when present, goes under "exc".
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _formatter(debug_format: str, with_name: bool = False) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=DATE_FORMAT)
    name = " %(name)s" if with_name else ""
    return logging.Formatter(
        f"[%(asctime)s] [%(levelname)s]{name} %(message)s", datefmt=DATE_FORMAT
    )


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
) -> None:
    """
    Configure logging for the given execution mode.

    Args:
        mode: "mcp" logs to a file only, since stdout carries the protocol;
            "cli" logs to stderr.
        debug: If True, overrides LOG_LEVEL to DEBUG.
        log_file: Log file path (overrides LOG_FILE). In CLI mode the file
            is written in addition to stderr.
        debug_format: "text" (default) or "json".

    Environment variables:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
                   Default: INFO in both modes.
        LOG_FILE: Log file path for MCP mode.
                  Default: /tmp/tiller-sync.log
    """
    env_level = os.getenv("LOG_LEVEL", "INFO").upper()
    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, env_level, logging.INFO)

    handlers: list[logging.Handler] = []
    if mode == "mcp":
        final_log_file = log_file or os.getenv("LOG_FILE", DEFAULT_LOG_FILE)
        file_handler = logging.FileHandler(final_log_file, mode="a")
        file_handler.setFormatter(_formatter(debug_format, with_name=True))
        handlers.append(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(_formatter(debug_format))
        handlers.append(stderr_handler)
        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(_formatter(debug_format, with_name=True))
            handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers)

    if log_level != logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
