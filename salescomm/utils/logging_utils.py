"""
Logging setup for the commission engine
Location: salescomm/utils/logging_utils.py

Customer and representative names are mostly Persian, so log files are
always written as UTF-8 and JSON output keeps non-ASCII text readable.
"""

import os
import json
import logging
from datetime import datetime
from typing import List, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Attribute the adapter stores its context under on each LogRecord
CONTEXT_ATTR = 'salescomm_context'


def setup_logging(log_level: str = 'INFO', log_file: Optional[str] = None, json_format: bool = False):
    """
    Configure root logging for the service or a batch run.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL); unknown names fall back to INFO
        log_file: Also append to this file when given
        json_format: One JSON object per line instead of the plain text format
    """
    level = getattr(logging, str(log_level).upper(), logging.INFO)

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode='a', encoding='utf-8'))

    formatter = JsonFormatter() if json_format else logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    return logging.getLogger(__name__)


def setup_logging_from_config(config) -> logging.Logger:
    """Apply the ``logging`` section of a ConfigManager."""
    return setup_logging(
        log_level=config.get('logging', 'level', 'INFO'),
        log_file=config.get('logging', 'file'),
        json_format=bool(config.get('logging', 'json', False)),
    )


class JsonFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging
    """
    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'line': record.lineno,
        }
        context = getattr(record, CONTEXT_ATTR, None)
        if context:
            entry.update(context)
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class LoggerAdapter(logging.LoggerAdapter):
    """
    Tags every message with ``key=value`` context such as the period.

    The text suffix serves the plain formatter; the same context rides on the
    record for JsonFormatter, which emits it as top-level fields.
    """
    def __init__(self, logger, extra=None):
        super().__init__(logger, extra or {})

    def process(self, msg, kwargs):
        if not self.extra:
            return msg, kwargs
        kwargs.setdefault('extra', {})[CONTEXT_ATTR] = dict(self.extra)
        context_str = ' '.join(f'{k}={v}' for k, v in self.extra.items())
        return f"{msg} [{context_str}]", kwargs
