"""Gemini analysis provider for vision-model blueprint page analysis."""

import json
import re
import threading
import time
from typing import Any, Callable, Dict, Optional

import requests

from lib.logger import Logger
from blueprint_qa.exceptions.domain_exceptions import (
    MalformedResponseError,
    PageDeadlineExceededError,
    RateLimitExceededError,
    UpstreamServiceError,
)
from blueprint_qa.interfaces.analysis_provider import AbstractAnalysisProvider
from blueprint_qa.models.provider_models import GeminiAnalysisConfig
from blueprint_qa.services.prompt_builder import build_blueprint_analysis_prompt
from blueprint_qa.utils.image_payload import parse_image_data_url

logger = Logger.get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 503})

_RETRY_IN_PATTERN = re.compile(r"retry in ([\d.]+)s", re.IGNORECASE)
_DURATION_PATTERN = re.compile(r"^([\d.]+)s$")


def parse_retry_delay(response: requests.Response) -> Optional[float]:
    """
    Extract the upstream's suggested retry delay in seconds, if it gave one.

    Checks the Retry-After header, then a google.rpc.RetryInfo "retryDelay" in the
    JSON error details, then a "retry in N.Ns" phrase anywhere in the body.
    """
    retry_after = response.headers.get("Retry-After")
    if retry_after:
        try:
            return max(0.0, float(retry_after))
        except ValueError:
            pass

    body = response.text or ""
    try:
        payload = json.loads(body)
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        details = error.get("details") if isinstance(error, dict) else None
        for detail in details if isinstance(details, list) else []:
            if not isinstance(detail, dict):
                continue
            delay = detail.get("retryDelay")
            if isinstance(delay, str):
                match = _DURATION_PATTERN.match(delay.strip())
                if match:
                    return float(match.group(1))

    match = _RETRY_IN_PATTERN.search(body)
    if match:
        return float(match.group(1))
    return None


class GeminiAnalysisProvider(AbstractAnalysisProvider):
    """
    Live provider calling the Gemini generateContent REST endpoint.

    One JSON request per page carrying the analysis prompt and the inlined page
    image. Rate-limit (429) and unavailable (503) answers are retried with
    exponential backoff; every other failure is raised immediately.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        config: Optional[GeminiAnalysisConfig] = None,
        session: Optional[requests.Session] = None,
        sleep_fn: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize GeminiAnalysisProvider.

        Args:
            api_key: Gemini API key, sent in the x-goog-api-key header
            config: Model, retry and timeout configuration
            session: Optional requests session for connection reuse or injection
            sleep_fn: Sleep used between retries
        """
        self.api_key = api_key
        self.config = config or GeminiAnalysisConfig()
        self.session = session
        self.sleep_fn = sleep_fn
        self.logger = logger

    @property
    def endpoint(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/models/{self.config.model_id}:generateContent"

    def analyze_page(
        self,
        page_number: int,
        image: str,
        request_id: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        """
        Analyze one page with Gemini and return the parsed JSON result.

        Raises:
            InvalidImagePayloadError: If the image is not a base64 data URL
            RateLimitExceededError: If the upstream still rate limits after all retries
            UpstreamServiceError: On a non-retryable error status or a network failure
            MalformedResponseError: If the response carries no parseable JSON text
            PageDeadlineExceededError: If cancel_event is set before an attempt or during a backoff
        """
        payload = parse_image_data_url(image, page_number=page_number)
        body = self._build_request_body(page_number, payload.mime_type, payload.data)
        response = self._call_gemini(json.dumps(body), page_number, request_id, cancel_event)
        return self._parse_gemini_response(response, page_number)

    def _build_request_body(self, page_number: int, mime_type: str, data: str) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {"text": build_blueprint_analysis_prompt(page_number)},
                        {"inline_data": {"mime_type": mime_type, "data": data}},
                    ]
                }
            ],
            "generationConfig": {
                "response_mime_type": "application/json",
                "temperature": self.config.temperature,
                "thinkingConfig": {"thinkingBudget": 0},
            },
        }

    def _get_headers(self, request_id: Optional[str]) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}
        if request_id:
            headers["x-request-id"] = request_id
        return headers

    def _call_gemini(
        self,
        json_body: str,
        page_number: int,
        request_id: Optional[str],
        cancel_event: Optional[threading.Event] = None,
    ) -> requests.Response:
        """POST the request, retrying on 429/503 with exponential backoff."""
        http = self.session or requests
        headers = self._get_headers(request_id)
        max_retries = self.config.max_retries

        for attempt in range(max_retries + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise self._abandoned(page_number, request_id, attempt)
            try:
                response = http.post(
                    self.endpoint, data=json_body, headers=headers, timeout=self.config.timeout_seconds
                )
            except requests.RequestException as e:
                raise UpstreamServiceError(
                    message=f"Gemini request failed: {type(e).__name__}",
                    cause=e,
                    page_number=page_number,
                )

            if response.status_code in RETRYABLE_STATUS_CODES:
                if attempt == max_retries:
                    raise RateLimitExceededError(
                        message=f"Gemini API rate limit after {max_retries + 1} attempts",
                        page_number=page_number,
                        status_code=response.status_code,
                        response_body=response.text,
                        attempts=max_retries + 1,
                    )
                server_delay = parse_retry_delay(response)
                delay = (
                    server_delay
                    if server_delay is not None
                    else self.config.initial_backoff_seconds * (2**attempt)
                )
                self.logger.warning(
                    "analysis.page_retry",
                    request_id=request_id,
                    page_number=page_number,
                    status_code=response.status_code,
                    attempt=attempt + 1,
                    delay_seconds=delay,
                    server_suggested=server_delay is not None,
                )
                if cancel_event is None:
                    self.sleep_fn(delay)
                elif cancel_event.wait(delay):
                    raise self._abandoned(page_number, request_id, attempt + 1)
                continue

            if not response.ok:
                raise UpstreamServiceError(
                    message=f"Gemini API error ({response.status_code})",
                    page_number=page_number,
                    status_code=response.status_code,
                    response_body=response.text,
                )

            return response

        # Unreachable: the last attempt returns or raises
        raise RateLimitExceededError(message="Gemini API: exhausted retries", page_number=page_number)

    def _abandoned(self, page_number: int, request_id: Optional[str], attempts: int) -> PageDeadlineExceededError:
        self.logger.info(
            "analysis.page_abandoned",
            request_id=request_id,
            page_number=page_number,
            attempts=attempts,
        )
        return PageDeadlineExceededError(
            message="Page abandoned at the request deadline",
            page_number=page_number,
            context={"attempts": attempts},
        )

    def _parse_gemini_response(self, response: requests.Response, page_number: int) -> Any:
        """Extract the model's JSON text from a generateContent response and decode it."""
        try:
            response_json = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                message="Gemini response body is not JSON", cause=e, page_number=page_number
            )

        text = _extract_output_text(response_json)
        if not text:
            raise MalformedResponseError(message="No text in Gemini response", page_number=page_number)

        try:
            return json.loads(text)
        except ValueError as e:
            raise MalformedResponseError(
                message="Gemini returned malformed JSON", cause=e, page_number=page_number
            )

    def health_check(self) -> Dict[str, str]:
        """
        Report provider configuration without calling the upstream API.

        Returns:
            Dictionary with health status information
        """
        return {
            "analysis_provider": self.name,
            "status": "healthy" if self.api_key else "unhealthy",
            "model_id": self.config.model_id,
            "credentials": "configured" if self.api_key else "missing",
        }


def _extract_output_text(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    candidates = payload.get("candidates")
    if not isinstance(candidates, list):
        return None
    for candidate in candidates:
        content = candidate.get("content") if isinstance(candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            continue
        for part in parts:
            text = part.get("text") if isinstance(part, dict) else None
            if isinstance(text, str) and text.strip():
                return text
    return None
