import traceback
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from lib.logger import Logger

logger = Logger.get_logger(__name__)

INVALID_REQUEST_MESSAGE = "Invalid analysis request payload."
INTERNAL_ERROR_MESSAGE = "Analysis failed due to an unexpected server error."


def build_http_fastapi_error_response(
    status_code: int = status.HTTP_400_BAD_REQUEST,
    error_code: str = "INVALID_REQUEST",
    message: str = INVALID_REQUEST_MESSAGE,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"message": message, "error_code": error_code},
    )


class ErrorSeverity(Enum):
    """Enum to represent severity levels for exceptions"""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class BaseError(Exception):
    """Base exception for request-level failures.

    Carries the HTTP status and error code the API layer responds with.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "GENERIC_ERROR",
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.severity = severity
        self.http_status_code = status_code
        self.error_code = error_code
        self.traceback = traceback.format_exc()

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"

    def log(self) -> None:
        """Log the exception with appropriate severity level"""
        log_message = f"{self.error_code}: {self.message}"

        if self.details:
            log_message += f" - Details: {self.details}"

        if self.severity == ErrorSeverity.DEBUG:
            logger.debug(log_message)
        elif self.severity == ErrorSeverity.INFO:
            logger.info(log_message)
        elif self.severity == ErrorSeverity.WARNING:
            logger.warning(log_message)
        elif self.severity == ErrorSeverity.CRITICAL:
            logger.critical(log_message)
        else:
            logger.error(log_message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the API error body"""
        return {"message": self.message, "error_code": self.error_code}


# ========== Configuration Errors ==========


class ConfigurationError(BaseError):
    """Raised when the analysis provider cannot be constructed"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
    ):
        super().__init__(
            message=message,
            details=details,
            severity=severity,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="CONFIGURATION_ERROR",
        )


# ========== Request Errors ==========


class RequestError(BaseError):
    """Base exception for all client errors"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.WARNING,
    ):
        super().__init__(
            message=message,
            details=details,
            severity=severity,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="REQUEST_ERROR",
        )


class InvalidRequestError(RequestError):
    """Raised when the page batch is empty, oversized or malformed"""

    def __init__(
        self,
        message: str = INVALID_REQUEST_MESSAGE,
        details: Optional[Dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.WARNING,
    ):
        super().__init__(message=message, details=details, severity=severity)
        self.error_code = "INVALID_REQUEST"


class InvalidDocumentError(RequestError):
    """Raised when every page of the document failed analysis"""

    def __init__(
        self,
        message: str = "Unable to analyze this document. Please upload a valid construction blueprint PDF.",
        details: Optional[Dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.WARNING,
    ):
        super().__init__(message=message, details=details, severity=severity)
        self.error_code = "INVALID_DOCUMENT"


# ========== Handlers ==========


async def base_error_handler(request: Request, exc: BaseError) -> JSONResponse:
    exc.log()
    return JSONResponse(status_code=exc.http_status_code, content=exc.to_dict())


async def request_validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    logger.warning("Rejected malformed analysis request", path=request.url.path, error_count=len(errors))
    return build_http_fastapi_error_response()


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error while serving request",
        exc_info=exc,
        path=request.url.path,
        error_type=type(exc).__name__,
    )
    return build_http_fastapi_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code="INTERNAL_SERVER_ERROR",
        message=INTERNAL_ERROR_MESSAGE,
    )


def register_exception_handlers(application: FastAPI) -> None:
    """Map request-level errors to the `{"message": ...}` error body."""
    application.add_exception_handler(BaseError, base_error_handler)  # type: ignore[arg-type]
    application.add_exception_handler(RequestValidationError, request_validation_error_handler)
    application.add_exception_handler(Exception, unhandled_error_handler)
