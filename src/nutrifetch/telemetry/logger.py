"""
Structured logging for nutrifetch.

Log calls take keyword fields (``logger.info("Cached", key=key)``). Fields
bound with ``log_context`` are added to every record emitted inside the
block, so retry and cache messages carry the request they belong to.
Credentials are masked before anything is written.
"""

from __future__ import annotations

import json
import logging
import re
import sys
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from typing import Any, ClassVar

_bound_fields: ContextVar[Mapping[str, Any] | None] = ContextVar(
    "nutrifetch_log_fields", default=None
)

REDACTED = "***REDACTED***"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_logging_level(self) -> int:
        return getattr(logging, self.value)


def get_log_context() -> dict[str, Any]:
    """Get the fields bound in the current task."""
    return dict(_bound_fields.get() or {})


@contextmanager
def log_context(**fields: Any) -> Iterator[dict[str, Any]]:
    """Bind fields to every record logged inside the block.

    Blocks nest: inner fields are merged over outer ones, and the outer
    binding is restored on exit. Bindings follow asyncio tasks, so
    concurrent requests do not see each other's fields.

    Example:
        >>> with log_context(method="GET", url=url):
        ...     await execute_with_retry(send)
    """
    merged = {**(_bound_fields.get() or {}), **fields}
    token = _bound_fields.set(merged)
    try:
        yield dict(merged)
    finally:
        _bound_fields.reset(token)


class SensitiveDataMasker:
    """Masks API keys and bearer tokens in messages and fields."""

    DEFAULT_PATTERNS: ClassVar[list[tuple[str, str]]] = [
        (r"(Bearer\s+)[^\s\"']+", rf"\1{REDACTED}"),
        (r"((?:x-)?api[_-]?key[\"']?\s*[:=]\s*[\"']?)[^\"'\s&]+", rf"\1{REDACTED}"),
        (r"(Authorization[\"']?\s*[:=]\s*[\"']?)(?!Bearer\s)[^\"'\s]+", rf"\1{REDACTED}"),
    ]

    SENSITIVE_KEYS: ClassVar[frozenset[str]] = frozenset(
        {"api_key", "apikey", "x-api-key", "authorization", "token", "secret", "password"}
    )

    def __init__(self, patterns: list[tuple[str, str]] | None = None) -> None:
        self._patterns = [
            (re.compile(pattern, re.IGNORECASE), replacement)
            for pattern, replacement in (patterns or self.DEFAULT_PATTERNS)
        ]

    def mask(self, text: str) -> str:
        for pattern, replacement in self._patterns:
            text = pattern.sub(replacement, text)
        return text

    def _is_sensitive(self, key: str) -> bool:
        key = key.lower()
        return key in self.SENSITIVE_KEYS or key.endswith(("_token", "_secret"))

    def mask_dict(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Mask sensitive keys and any credentials inside string values."""
        masked: dict[str, Any] = {}
        for key, value in data.items():
            if self._is_sensitive(key):
                masked[key] = REDACTED
            elif isinstance(value, str):
                masked[key] = self.mask(value)
            elif isinstance(value, Mapping):
                masked[key] = self.mask_dict(value)
            else:
                masked[key] = value
        return masked


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    return dict(getattr(record, "extra_fields", None) or {})


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Bound context goes under ``"context"``; call-site fields are top level.
    """

    def __init__(
        self,
        masker: SensitiveDataMasker | None = None,
        include_timestamp: bool = True,
    ) -> None:
        super().__init__()
        self._masker = masker or SensitiveDataMasker()
        self._include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": self._masker.mask(record.getMessage()),
        }
        if self._include_timestamp:
            stamp = time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created))
            payload["timestamp"] = f"{stamp}.{int(record.msecs):03d}Z"

        context = get_log_context()
        if context:
            payload["context"] = self._masker.mask_dict(context)
        payload.update(self._masker.mask_dict(_record_fields(record)))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """``time | level | logger | message | key=value ...`` lines."""

    def __init__(
        self,
        masker: SensitiveDataMasker | None = None,
        include_context: bool = True,
    ) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self._masker = masker or SensitiveDataMasker()
        self._include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        line = self._masker.mask(super().format(record))

        fields = get_log_context() if self._include_context else {}
        fields.update(_record_fields(record))
        if not fields:
            return line
        pairs = " ".join(f"{k}={v}" for k, v in self._masker.mask_dict(fields).items())
        return f"{line} | {pairs}"


class NutriFetchLogger:
    """Logger taking structured keyword fields.

    Until ``configure`` is called, records propagate to the root logger
    and the application's own logging setup decides what is shown.

    Example:
        >>> logger = NutriFetchLogger.get_logger("nutrifetch.client")
        >>> logger.info("Retrying after failure", attempt=2)
    """

    _loggers: ClassVar[dict[str, logging.Logger]] = {}
    _level: ClassVar[LogLevel] = LogLevel.WARNING
    _handler: ClassVar[logging.Handler | None] = None

    @classmethod
    def configure(
        cls,
        level: LogLevel = LogLevel.INFO,
        format: str = "json",
        stream: Any = None,
        masker: SensitiveDataMasker | None = None,
    ) -> None:
        """Send all nutrifetch loggers to one stream handler.

        Args:
            level: Minimum level written
            format: 'json' or 'text'
            stream: Output stream (default: stderr)
            masker: Masker shared by the formatter
        """
        formatter: logging.Formatter = (
            JsonFormatter(masker=masker) if format == "json" else TextFormatter(masker=masker)
        )
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(formatter)
        handler.setLevel(level.to_logging_level())

        cls._level = level
        cls._handler = handler
        for logger in cls._loggers.values():
            cls._attach(logger)

    @classmethod
    def _attach(cls, logger: logging.Logger) -> None:
        if cls._handler is None:
            return
        logger.handlers.clear()
        logger.addHandler(cls._handler)
        logger.setLevel(cls._level.to_logging_level())
        logger.propagate = False

    @classmethod
    def get_logger(cls, name: str) -> NutriFetchLogger:
        logger = cls._loggers.get(name)
        if logger is None:
            logger = logging.getLogger(name)
            cls._attach(logger)
            cls._loggers[name] = logger
        return cls(logger)

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(self, level: int, msg: str, exc_info: bool = False, **fields: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        extra = {"extra_fields": fields} if fields else None
        self._logger.log(level, msg, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, **fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._log(logging.INFO, msg, **fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._log(logging.WARNING, msg, **fields)

    def error(self, msg: str, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.ERROR, msg, exc_info=exc_info, **fields)

    def exception(self, msg: str, **fields: Any) -> None:
        self._log(logging.ERROR, msg, exc_info=True, **fields)


def get_logger(name: str) -> NutriFetchLogger:
    """Get a nutrifetch logger by name."""
    return NutriFetchLogger.get_logger(name)
