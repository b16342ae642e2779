"""
Analysis orchestrator - fans a page batch out to the provider and assembles the document result.
"""

import asyncio
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from lib.logger import Logger
from blueprint_qa.configs.constants import MAX_PAGES, UNRECOGNIZED_CONTENT_THRESHOLD
from blueprint_qa.exceptions.domain_exceptions import (
    MalformedResponseError,
    PageDeadlineExceededError,
    to_user_message,
)
from blueprint_qa.exceptions.error_handler import (
    BaseError,
    ConfigurationError,
    InvalidDocumentError,
    InvalidRequestError,
)
from blueprint_qa.interfaces.analysis_provider import AnalysisProvider
from blueprint_qa.models.analysis_models import (
    AnalysisMetadata,
    AnalysisTimings,
    Criterion,
    DocumentResult,
    Issue,
    PageOutcome,
    PageOutcomeStatus,
    PageRequest,
)
from blueprint_qa.services.response_mapper import (
    IssueIdCounter,
    make_page_error_criterion,
    map_provider_page_result,
)
from blueprint_qa.utils.concurrency import compute_analysis_concurrency

logger = Logger.get_logger(__name__)


@dataclass
class SettledPage:
    """Outcome of one provider call: a raw result or the error it failed with."""

    page_number: int
    raw: Any = None
    error: Optional[BaseException] = None
    duration_ms: Optional[int] = None


def _elapsed_ms(started: float) -> int:
    return round((time.perf_counter() - started) * 1000)


class AnalysisOrchestrator:
    """
    Runs one analysis request end to end.

    Pages are analyzed concurrently and settle independently; one page failing never
    cancels or corrupts another. Results are assembled afterwards in input page order.
    """

    def __init__(
        self,
        provider_resolver: Callable[[], AnalysisProvider],
        max_pages: int = MAX_PAGES,
        unrecognized_threshold: float = UNRECOGNIZED_CONTENT_THRESHOLD,
        max_concurrency: Optional[int] = None,
        deadline_seconds: Optional[float] = None,
        cpu_count: Optional[int] = None,
    ):
        """
        Initialize AnalysisOrchestrator.

        Args:
            provider_resolver: Builds (or returns the cached) analysis provider; may raise ConfigurationError
            max_pages: Page-count ceiling for one request
            unrecognized_threshold: Not-applicable ratio above which a page is unrecognized
            max_concurrency: Overrides the core-count derived concurrency bound
            deadline_seconds: Optional batch deadline; pages still running at expiry fail
            cpu_count: Core count used to derive the concurrency bound, detected when omitted
        """
        self.provider_resolver = provider_resolver
        self.max_pages = max_pages
        self.unrecognized_threshold = unrecognized_threshold
        self.max_concurrency = max_concurrency
        self.deadline_seconds = deadline_seconds
        self.cpu_count = cpu_count
        self.logger = logger

    async def analyze_document(self, pages: Sequence[PageRequest], request_id: Optional[str] = None) -> DocumentResult:
        """
        Analyze every page of a document and build the document result.

        Raises:
            InvalidRequestError: If the batch is empty or exceeds the page ceiling
            ConfigurationError: If the analysis provider cannot be built
            InvalidDocumentError: If every page failed or was unrecognized
        """
        request_id = request_id or str(uuid.uuid4())
        started = time.perf_counter()

        self._validate_batch(pages, request_id)
        provider = self._resolve_provider(request_id)

        self.logger.info(
            "analysis.request_received",
            request_id=request_id,
            provider=provider.name,
            page_count=len(pages),
        )

        settled_pages = await self._dispatch_pages(provider, pages, request_id)

        criteria: List[Criterion] = []
        issues: List[Issue] = []
        page_results: List[PageOutcome] = []
        counter = IssueIdCounter()
        failed_pages = 0

        for settled in settled_pages:
            mapped = None
            error = settled.error
            if error is None:
                try:
                    mapped = map_provider_page_result(
                        settled.page_number,
                        settled.raw,
                        counter,
                        duration_ms=settled.duration_ms,
                        unrecognized_threshold=self.unrecognized_threshold,
                    )
                except MalformedResponseError as e:
                    error = e

            if mapped is None:
                page_outcome = self._record_page_failure(settled.page_number, error, request_id)
                criteria.append(make_page_error_criterion(settled.page_number, page_outcome.error or ""))
                page_results.append(page_outcome)
                failed_pages += 1
                continue

            criteria.extend(mapped.criteria)
            issues.extend(mapped.issues)
            if mapped.page_outcome is not None:
                page_results.append(mapped.page_outcome)
            if mapped.unrecognized:
                failed_pages += 1

        total_pages = len(pages)
        if failed_pages == total_pages:
            self.logger.warning(
                "analysis.all_pages_failed",
                request_id=request_id,
                page_count=total_pages,
                provider=provider.name,
            )
            raise InvalidDocumentError(details={"request_id": request_id, "page_count": total_pages})

        total_ms = _elapsed_ms(started)
        avg_page_ms = (
            round(sum(p.duration_ms or 0 for p in page_results) / len(page_results)) if page_results else 0
        )

        self.logger.info(
            "analysis.completed",
            request_id=request_id,
            provider=provider.name,
            total_pages=total_pages,
            failed_pages=failed_pages,
            issue_count=len(issues),
            duration_ms=total_ms,
        )

        return DocumentResult(
            criteria=criteria,
            issues=issues,
            page_results=page_results,
            metadata=AnalysisMetadata(
                request_id=request_id,
                total_pages=total_pages,
                analyzed_pages=total_pages - failed_pages,
                failed_pages=failed_pages,
                empty_issues=len(issues) == 0,
                timings=AnalysisTimings(total_ms=total_ms, avg_page_ms=avg_page_ms),
            ),
        )

    def _validate_batch(self, pages: Sequence[PageRequest], request_id: str) -> None:
        if not pages:
            raise InvalidRequestError(details={"request_id": request_id, "reason": "empty page list"})
        if len(pages) > self.max_pages:
            raise InvalidRequestError(
                details={"request_id": request_id, "page_count": len(pages), "max_pages": self.max_pages}
            )

    def _resolve_provider(self, request_id: str) -> AnalysisProvider:
        try:
            return self.provider_resolver()
        except BaseError as e:
            self.logger.error("analysis.provider_init_failed", request_id=request_id, message=e.message)
            raise
        except Exception as e:
            self.logger.error("analysis.provider_init_failed", request_id=request_id, message=str(e))
            raise ConfigurationError(str(e) or "Analysis provider could not be configured") from e

    async def _dispatch_pages(
        self, provider: AnalysisProvider, pages: Sequence[PageRequest], request_id: str
    ) -> List[SettledPage]:
        """Run one provider call per page, bounded by a semaphore, and settle every call."""
        limit = compute_analysis_concurrency(len(pages), cpu_count=self.cpu_count, max_concurrency=self.max_concurrency)
        semaphore = asyncio.Semaphore(limit)
        # Cancelling a task does not stop its worker thread; the event tells the provider to give up
        cancel_event = threading.Event()

        async def analyze(page: PageRequest) -> SettledPage:
            async with semaphore:
                page_started = time.perf_counter()
                # Provider calls are blocking; run them off the event loop
                raw = await asyncio.to_thread(
                    provider.analyze_page, page.page_number, page.image, request_id, cancel_event
                )
                return SettledPage(page_number=page.page_number, raw=raw, duration_ms=_elapsed_ms(page_started))

        tasks = [asyncio.create_task(analyze(page)) for page in pages]
        _, pending = await asyncio.wait(tasks, timeout=self.deadline_seconds)

        if pending:
            self.logger.warning(
                "analysis.deadline_exceeded",
                request_id=request_id,
                deadline_seconds=self.deadline_seconds,
                pending_pages=len(pending),
            )
            cancel_event.set()
            for task in pending:
                task.cancel()

        settled_pages: List[SettledPage] = []
        for page, task in zip(pages, tasks):
            if task in pending:
                error: BaseException = PageDeadlineExceededError(
                    message="Page did not finish before the request deadline", page_number=page.page_number
                )
                settled_pages.append(SettledPage(page_number=page.page_number, error=error))
                continue
            exception = task.exception()
            if exception is not None:
                settled_pages.append(SettledPage(page_number=page.page_number, error=exception))
            else:
                settled_pages.append(task.result())
        return settled_pages

    def _record_page_failure(self, page_number: int, error: Optional[BaseException], request_id: str) -> PageOutcome:
        message = to_user_message(error) if error is not None else "Analysis failed: Unknown error"
        self.logger.error(
            "analysis.page_failed",
            request_id=request_id,
            page_number=page_number,
            error_type=type(error).__name__,
            reason=str(error),
        )
        return PageOutcome(
            page_number=page_number,
            status=PageOutcomeStatus.ERROR,
            issue_count=0,
            criterion_count=1,
            error=message,
        )

    def health_check(self) -> Dict[str, Any]:
        """
        Check health of the orchestrator and its analysis provider.

        Resolving the provider never calls the upstream service.

        Returns:
            Dictionary with overall_health and the provider's health information
        """
        try:
            provider = self.provider_resolver()
        except BaseError as e:
            return {
                "overall_health": "unhealthy",
                "analysis_orchestrator": "healthy",
                "analysis_provider": {"status": "unhealthy", "error": e.message},
            }

        provider_health = provider.health_check()
        provider_ok = provider_health.get("status") == "healthy"
        return {
            "overall_health": "healthy" if provider_ok else "unhealthy",
            "analysis_orchestrator": "healthy",
            "analysis_provider": provider_health,
        }
