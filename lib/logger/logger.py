"""Structured logger for the blueprint QA service."""

import logging
from enum import Enum
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LoggerSettings(BaseSettings):
    level: LogLevel = LogLevel.INFO
    format_str: str = "%(asctime)s - [%(levelname)s] - %(name)s - %(message)s"

    model_config = SettingsConfigDict(env_prefix="LOG_")


ExcInfoType = (
    bool
    | tuple[type[BaseException], BaseException, Any]
    | tuple[None, None, None]
    | BaseException
    | None
)

CONTEXT_ATTR = "context"


class ContextFormatter(logging.Formatter):
    """Appends the structured context of a record as sorted key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, CONTEXT_ATTR, None)
        if not context:
            return line
        pairs = " ".join(f"{key}={context[key]}" for key in sorted(context))
        return f"{line} | {pairs}"


class Logger:
    _instances: dict[str, "Logger"] = {}
    _root_configured: bool = False

    @property
    def logger(self) -> logging.Logger:
        return self._log_instance

    @classmethod
    def get_logger(cls, name: str) -> "Logger":
        if not cls._root_configured:
            cls._configure_root_logging()
            cls._root_configured = True

        if name not in cls._instances:
            cls._instances[name] = cls(name)
        return cls._instances[name]

    @classmethod
    def _configure_root_logging(cls) -> None:
        """Configure root logger once"""
        settings = LoggerSettings()

        formatter = ContextFormatter(fmt=settings.format_str, datefmt="%Y-%m-%d %H:%M:%S")

        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.setLevel(settings.level.value)

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    def __init__(self, name: str):
        self.name = name
        self._log_instance = logging.getLogger(name)
        self.settings = LoggerSettings()
        self._log_instance.setLevel(self.settings.level.value)

    def _log(
        self,
        level: int,
        message: str,
        exc_info: ExcInfoType,
        extra: dict[str, Any] | None,
        context: dict[str, Any],
    ) -> None:
        merged = {**(extra or {}), **context}
        self._log_instance.log(level, message, exc_info=exc_info, extra={CONTEXT_ATTR: merged})

    def debug(
        self,
        message: str,
        *,
        exc_info: ExcInfoType = None,
        extra: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        self._log(logging.DEBUG, message, exc_info, extra, kwargs)

    def info(
        self,
        message: str,
        *,
        exc_info: ExcInfoType = None,
        extra: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        self._log(logging.INFO, message, exc_info, extra, kwargs)

    def warning(
        self,
        message: str,
        *,
        exc_info: ExcInfoType = None,
        extra: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        self._log(logging.WARNING, message, exc_info, extra, kwargs)

    def error(
        self,
        message: str,
        *,
        exc_info: ExcInfoType = None,
        extra: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        self._log(logging.ERROR, message, exc_info, extra, kwargs)

    def critical(
        self,
        message: str,
        *,
        exc_info: ExcInfoType = None,
        extra: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        self._log(logging.CRITICAL, message, exc_info, extra, kwargs)
