import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .config import SaverConfig, get_config

# Attributes every LogRecord carries; anything else came in through `extra=`
_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'taskName', 'getMessage',
    'exc_info', 'exc_text', 'stack_info', 'message', 'asctime',
}

PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

NOISY_LOGGERS = ['httpx', 'httpcore', 'hpack', 'playwright', 'asyncio']


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        # Add any extra fields from the record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry[key] = value

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def _build_formatter(use_json: bool) -> logging.Formatter:
    if use_json:
        return StructuredFormatter()
    return logging.Formatter(PLAIN_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(config: Optional[SaverConfig] = None) -> Optional[Path]:
    """
    Configure the root logger for the saver process.

    Installs a stdout handler (JSON or plain text), an optional timestamped
    log file under ``config.log_dir``, and quiets chatty third-party loggers.

    Returns:
        Path of the log file, or None when file logging is disabled
    """
    config = config or get_config()
    level = getattr(logging, config.log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if config.log_dir else level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(_build_formatter(config.log_json))
    root_logger.addHandler(console_handler)

    log_file = None
    if config.log_dir:
        log_path = Path(config.log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"weibo_saver_{timestamp}.log"

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(_build_formatter(config.log_json))
        root_logger.addHandler(file_handler)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    return log_file
