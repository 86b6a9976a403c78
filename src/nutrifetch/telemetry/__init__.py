"""
Telemetry module for nutrifetch.

Provides structured logging with bound request context and credential
masking.
"""

from nutrifetch.telemetry.logger import (
    JsonFormatter,
    LogLevel,
    NutriFetchLogger,
    SensitiveDataMasker,
    TextFormatter,
    get_log_context,
    get_logger,
    log_context,
)

__all__ = [
    "JsonFormatter",
    "LogLevel",
    "NutriFetchLogger",
    "SensitiveDataMasker",
    "TextFormatter",
    "get_log_context",
    "get_logger",
    "log_context",
]
