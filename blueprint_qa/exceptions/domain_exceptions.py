"""Page-level exceptions raised while analyzing a single page.

These never abort a request on their own: the orchestrator turns each one into an
error criterion and a failed page outcome.
"""

from typing import Optional, Dict, Any
from dataclasses import dataclass


@dataclass
class DomainError(Exception):
    """Base domain exception."""

    message: str
    context: Optional[Dict[str, Any]] = None
    cause: Optional[Exception] = None

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


@dataclass
class PageAnalysisError(DomainError):
    """Analysis of one page failed."""

    page_number: Optional[int] = None

    @property
    def user_message(self) -> str:
        return f"Analysis failed: {self.message}"


@dataclass
class InvalidImagePayloadError(PageAnalysisError):
    """Page image is not a base64 image data URL."""


@dataclass
class MalformedResponseError(PageAnalysisError):
    """Upstream output could not be parsed or did not match the expected shape."""

    @property
    def user_message(self) -> str:
        return "Analysis failed: malformed AI response for this page."


@dataclass
class UpstreamServiceError(PageAnalysisError):
    """Upstream AI service returned a non-success status or could not be reached."""

    status_code: Optional[int] = None
    response_body: Optional[str] = None

    @property
    def user_message(self) -> str:
        return "Analysis failed due to an upstream AI service error."


@dataclass
class RateLimitExceededError(UpstreamServiceError):
    """Upstream kept answering 429/503 after every retry."""

    attempts: int = 0

    @property
    def user_message(self) -> str:
        return "Analysis failed: the AI service is rate limiting requests. Please retry shortly."


@dataclass
class PageDeadlineExceededError(PageAnalysisError):
    """Page was still in flight when the request deadline expired."""

    @property
    def user_message(self) -> str:
        return "Analysis failed: the page did not finish before the request deadline."


def to_user_message(error: BaseException) -> str:
    """Sanitized, user-facing summary for a page failure."""
    if isinstance(error, PageAnalysisError):
        return error.user_message
    return f"Analysis failed: {error}" if str(error) else "Analysis failed: Unknown error"
