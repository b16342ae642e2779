"""Logging helpers shared across the service."""

from lib.logger.logger import ContextFormatter, Logger, LoggerSettings, LogLevel

__all__ = ["ContextFormatter", "Logger", "LoggerSettings", "LogLevel"]
