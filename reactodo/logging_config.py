# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Structured logging for the Reactodo service.

JSON log lines on stdout with a filter that keeps OAuth tokens, webhook
secrets and API keys out of every record.
"""

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any, Dict


REDACTED = 'REDACTED'


class SensitiveDataFilter(logging.Filter):
    """
    Redact credentials from log records.

    Covers Slack tokens, bearer headers, OpenAI keys and secret-looking
    JSON fields in the message, the args, and any ``extra`` fields.
    """

    PATTERNS = [
        (re.compile(r'xox[bpar]-[a-zA-Z0-9-]+'), 'xox-REDACTED'),
        (re.compile(r'sk-[a-zA-Z0-9_-]{8,}'), 'sk-REDACTED'),
        (re.compile(r'(Bearer\s+)[a-zA-Z0-9._~+/=-]+', re.IGNORECASE), r'\1REDACTED'),
        (re.compile(
            r'("(?:access_token|bot_token|webhook_secret|client_secret|signing_secret'
            r'|encryption_key|jwt_secret|api_key|password)"\s*:\s*")[^"]*(")',
            re.IGNORECASE
        ), r'\1REDACTED\2'),
    ]

    SENSITIVE_KEYS = {
        'access_token', 'bot_token', 'user_token', 'token', 'webhook_secret',
        'secret', 'client_secret', 'signing_secret', 'encryption_key',
        'jwt_secret', 'api_key', 'authorization', 'password',
    }

    # Attributes every LogRecord carries; anything else came in via extra=.
    _STANDARD_ATTRS = set(vars(logging.LogRecord('', 0, '', 0, '', None, None))) | {'message', 'asctime'}

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._redact_value(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = self._redact_dict(record.args)
            elif isinstance(record.args, tuple):
                record.args = tuple(self._redact_value(arg) for arg in record.args)

        for key, value in list(record.__dict__.items()):
            if key in self._STANDARD_ATTRS or key.startswith('_'):
                continue
            if key.lower() in self.SENSITIVE_KEYS:
                setattr(record, key, REDACTED)
            elif isinstance(value, dict):
                setattr(record, key, self._redact_dict(value))
            elif isinstance(value, str):
                setattr(record, key, self._redact_value(value))

        return True

    def _redact_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        result = {}
        for key, value in data.items():
            if isinstance(key, str) and key.lower() in self.SENSITIVE_KEYS:
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = self._redact_dict(value)
            elif isinstance(value, list):
                result[key] = [
                    self._redact_dict(item) if isinstance(item, dict) else self._redact_value(item)
                    for item in value
                ]
            else:
                result[key] = self._redact_value(value)
        return result

    def _redact_value(self, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        for pattern, replacement in self.PATTERNS:
            value = pattern.sub(replacement, value)
        return value


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    RESERVED_ATTRS = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
        'levelno', 'lineno', 'module', 'msecs', 'pathname', 'process',
        'processName', 'relativeCreated', 'thread', 'threadName', 'exc_info',
        'exc_text', 'stack_info', 'message', 'asctime', 'taskName',
    }

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)
            log_data['exception_type'] = record.exc_info[0].__name__ if record.exc_info[0] else None

        for key, value in record.__dict__.items():
            if key not in self.RESERVED_ATTRS and not key.startswith('_') and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Configure the root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: 'json' or 'text'
    """
    level = getattr(logging, log_level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    if log_format.lower() == "json":
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
    console_handler.addFilter(SensitiveDataFilter())
    root_logger.addHandler(console_handler)

    # Third-party libraries are noisy at INFO
    for name in ('slack_sdk', 'httpx', 'openai', 'asyncpg', 'aiohttp.access'):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_error_with_context(
    logger: logging.Logger,
    message: str,
    error: Exception,
    **context
) -> None:
    """
    Log an error with its type, message and traceback.

    Args:
        logger: Logger instance
        message: Error message
        error: Exception that occurred
        **context: Additional context fields
    """
    extra = {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **context
    }
    if hasattr(error, 'attempts'):
        extra['retry_attempts'] = error.attempts
    if hasattr(error, 'operation'):
        extra['operation'] = error.operation

    logger.error(message, extra=extra, exc_info=error)
