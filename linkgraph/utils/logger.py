"""
Logging setup for the link graph crawler.

Console and rotating-file handlers on the root logger, an optional JSON line
format, and an adapter that tags records with the URL they concern.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from .config import LoggingConfig


URL_EVENT_FIELDS = ('url', 'event_type')

# aiohttp loggers that report per-request chatter
TRANSPORT_LOGGERS = ('aiohttp.access', 'aiohttp.client', 'aiohttp.server', 'aiohttp.internal')


class JSONFormatter(logging.Formatter):
    """One JSON object per record, carrying URL event fields when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        for key in URL_EVENT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False)


class CrawlerLogAdapter(logging.LoggerAdapter):
    """Merges fixed context into every record and logs per-URL lifecycle events."""

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs

    def log_url_event(self, level: int, url: str, event_type: str, message: str, **kwargs):
        """Log ``message`` tagged with the URL and the crawl event it belongs to."""
        kwargs['extra'] = {**kwargs.get('extra', {}), 'url': url, 'event_type': event_type}
        self.log(level, message, **kwargs)


class TransportNoiseFilter(logging.Filter):
    """Drops records below WARNING from aiohttp's per-request loggers."""

    def __init__(self, loggers: Iterable[str] = TRANSPORT_LOGGERS):
        super().__init__()
        self.loggers = tuple(loggers)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.WARNING:
            return True
        return not any(record.name == name or record.name.startswith(name + '.')
                       for name in self.loggers)


def _rotating_file_handler(path: Path, level: int, formatter: logging.Formatter,
                           max_bytes: int, backup_count: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(config: LoggingConfig, filter_transport_noise: bool = True) -> logging.Logger:
    """
    Configure the root logger from the ``logging`` config section.

    Records go to stdout at the configured level, to ``config.file`` at DEBUG
    and to ``errors.log`` beside it at ERROR. Existing root handlers are
    replaced.
    """
    level = logging.getLevelName(config.level.upper())
    log_file = Path(config.file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    formatter = JSONFormatter() if config.json else logging.Formatter(config.format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    handlers = [
        console_handler,
        _rotating_file_handler(log_file, logging.DEBUG, formatter, 50 * 1024 * 1024, 5),
        _rotating_file_handler(log_file.parent / 'errors.log', logging.ERROR, formatter,
                               10 * 1024 * 1024, 3),
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    for handler in handlers:
        if filter_transport_noise:
            handler.addFilter(TransportNoiseFilter())
        root_logger.addHandler(handler)

    logging.getLogger('asyncio').setLevel(logging.WARNING)

    root_logger.info(f"Logging to {log_file} (console level {config.level.upper()}, "
                     f"{'json' if config.json else 'text'} format)")
    return root_logger


def get_crawler_logger(name: str, **extra_context) -> CrawlerLogAdapter:
    """Get a logger adapter that adds ``extra_context`` to every record."""
    return CrawlerLogAdapter(logging.getLogger(name), extra_context)
