"""Structured logging for admission decisions.

- JSON lines on stdout (or a rotating file), one event name per line
- request_id propagated through contextvars
- Rate limit identifiers are pseudonymized: ``identifier`` fields are replaced
  by a short SHA-256 digest so events for one subject still correlate
- Credentials (API keys, admin keys, store URLs) are redacted outright
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from ratelimitx.core.config import LogSettings, settings

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

REDACTED = "[REDACTED]"
_DIGEST_PREFIX = "sha256:"

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "api_key",
        "x-api-key",
        "admin_key",
        "x-admin-key",
        "authorization",
        "token",
        "secret",
        "password",
        "store_url",
        "limiter_admin_api_keys",
        "cookie",
        "set-cookie",
    }
)

# Logged as a digest rather than dropped, so one subject's events line up.
PSEUDONYMIZED_KEYS_DEFAULT: frozenset[str] = frozenset({"identifier", "rate_limit_key"})

_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def set_request_id(request_id: str | None) -> None:
    """Store the current request id in a context variable.

    Args:
        request_id: Correlation identifier to attach to every log record
            emitted while handling this request, including limiter decisions.
    """

    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    """Fetch the current request id from context.

    Returns:
        The request id set by the middleware, or None outside a request.
    """

    return _request_id_var.get()


def clear_request_id() -> None:
    """Clear any stored request id from context.

    Side Effects:
        Later log records (and error bodies) carry no request id until
        ``set_request_id`` is called again.
    """

    _request_id_var.set(None)


def hash_identifier(identifier: str) -> str:
    """Return a short, stable digest of an identifier for log correlation.

    Args:
        identifier: Raw rate limit subject (API key, user id, client IP).

    Returns:
        First 16 hex characters of its SHA-256.
    """

    return hashlib.sha256(identifier.encode()).hexdigest()[:16]


class _Scrubber:
    """Applies redaction and pseudonymization to structured log fields."""

    def __init__(
        self,
        sensitive_keys: Iterable[str] | None = None,
        pseudonymized_keys: Iterable[str] | None = None,
    ) -> None:
        self.sensitive_keys = {k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)}
        self.pseudonymized_keys = {
            k.lower() for k in (pseudonymized_keys or PSEUDONYMIZED_KEYS_DEFAULT)
        }

    def field(self, key: str, value: Any) -> Any:
        lowered = key.lower()
        if lowered in self.sensitive_keys:
            return REDACTED
        if lowered in self.pseudonymized_keys:
            return self._pseudonymize(value)
        return self.value(value)

    def value(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {k: self.field(str(k), v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return type(value)(self.value(v) for v in value)
        return value

    @staticmethod
    def _pseudonymize(value: Any) -> Any:
        if value is None:
            return None
        text = str(value)
        # Filter and formatter may both run on one record.
        if text.startswith(_DIGEST_PREFIX):
            return text
        return _DIGEST_PREFIX + hash_identifier(text)

    def extras(self, record: LogRecord) -> dict[str, Any]:
        """Return the record's ``extra`` fields, scrubbed."""

        return {
            key: self.field(key, value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Scrub extras in place, so every formatter downstream sees safe values."""

    def __init__(
        self,
        sensitive_keys: Iterable[str] | None = None,
        pseudonymized_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__()
        self._scrubber = _Scrubber(sensitive_keys, pseudonymized_keys)

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in self._scrubber.extras(record).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, event and extras."""

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        pseudonymized_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self._scrubber = _Scrubber(sensitive_keys, pseudonymized_keys)
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id

        payload.update(self._scrubber.extras(record))

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    """Construct the stdout or file handler selected by ``LOG_OUTPUT``."""

    if log_settings.output != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/ratelimitx.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if not log_settings.max_bytes:
        return logging.FileHandler(file_path, encoding="utf-8")
    return RotatingFileHandler(
        file_path,
        maxBytes=log_settings.max_bytes,
        backupCount=log_settings.backup_count,
        encoding="utf-8",
    )


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install a single scrubbing handler on the root logger.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """

    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())

    if cfg.format == "plain":
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    else:
        handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # Avoid double logging from uvicorn if it gets re-configured
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
