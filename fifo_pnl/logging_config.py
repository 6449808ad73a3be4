# fifo_pnl/logging_config.py
"""Console logging for the command-line tool."""

import logging
import sys


class ConciseFormatter(logging.Formatter):
    """Single-line, concise log format."""

    FORMATS = {
        logging.DEBUG: "[D] %(name)s: %(message)s",
        logging.INFO: "[I] %(message)s",
        logging.WARNING: "[W] %(message)s",
        logging.ERROR: "[E] %(message)s",
        logging.CRITICAL: "[!] %(name)s: %(message)s",
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno, self.FORMATS[logging.INFO])
        return logging.Formatter(log_fmt).format(record)


def setup_logging(level=logging.INFO):
    """Configure the root logger once at startup."""
    for logger_name in ("urllib3", "requests", "sqlalchemy.engine"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ConciseFormatter())
    root.addHandler(handler)
