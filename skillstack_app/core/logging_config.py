"""
Logging setup for SkillStack.

Every module logs through the ``skillstack_app`` logger tree: services use
``current_app.logger`` (which Flask names after the package) and the pure
logic layer uses ``logging.getLogger(__name__)``, so one configuration call
covers both.

Output goes to the console and, when LOG_DIR is set, to a rotating file.
LOG_JSON switches to one JSON object per line for log shippers.
"""

import json
import logging
import logging.handlers
import os
from typing import Optional

TEXT_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_FILE_NAME = 'skillstack.log'
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class JsonLineFormatter(logging.Formatter):
    """One JSON document per record; exceptions go under ``exc_info``."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'time': self.formatTime(record, DATE_FORMAT),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        if record.exc_info:
            payload['exc_info'] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JsonLineFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(
    app=None,
    log_level: str = 'INFO',
    log_dir: Optional[str] = None,
    json_format: bool = False,
    logger_name: str = 'skillstack_app'
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        app: Flask application; when given, werkzeug request logs are quietened
        log_level: DEBUG, INFO, WARNING or ERROR (unknown names mean INFO)
        log_dir: directory for the rotating log file, None for console only
        json_format: emit JSON lines instead of plain text
        logger_name: root of the logger tree to configure

    Returns:
        The configured logger.
    """
    level = getattr(logging, str(log_level).upper(), logging.INFO)
    formatter = _build_formatter(json_format)

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handlers = [logging.StreamHandler()]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, LOG_FILE_NAME),
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding='utf-8',
        ))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False

    if app is not None:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)

    logger.debug("Logging ready: level=%s, file=%s, json=%s",
                 logging.getLevelName(level), log_dir or 'off', json_format)
    return logger
