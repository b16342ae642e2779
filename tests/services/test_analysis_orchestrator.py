"""Tests for AnalysisOrchestrator."""

import asyncio
import threading
import time
from unittest.mock import Mock

import pytest
import requests

from blueprint_qa.exceptions.domain_exceptions import UpstreamServiceError
from blueprint_qa.exceptions.error_handler import (
    ConfigurationError,
    InvalidDocumentError,
    InvalidRequestError,
)
from blueprint_qa.models.analysis_models import PageOutcomeStatus, PageRequest
from blueprint_qa.models.provider_models import GeminiAnalysisConfig
from blueprint_qa.services.analysis_orchestrator import AnalysisOrchestrator
from blueprint_qa.services.providers.gemini_analysis_provider import GeminiAnalysisProvider
from blueprint_qa.services.providers.mock_analysis_provider import MockAnalysisProvider


class TestAnalysisOrchestrator:
    """Test cases for AnalysisOrchestrator."""

    @pytest.fixture
    def make_pages(self, sample_image):
        def build(*page_numbers):
            return [PageRequest(page_number=n, image=sample_image) for n in page_numbers]

        return build

    @pytest.fixture
    def make_orchestrator(self):
        def build(provider, **kwargs):
            return AnalysisOrchestrator(provider_resolver=lambda: provider, **kwargs)

        return build

    async def test_mock_provider_two_pages(self, make_pages, make_orchestrator):
        orchestrator = make_orchestrator(MockAnalysisProvider())

        result = await orchestrator.analyze_document(make_pages(1, 2), request_id="req-1")

        assert [c.id for c in result.criteria] == ["EQ-1", "EQ-2"]
        assert [c.result.value for c in result.criteria] == ["fail", "pass"]
        assert len(result.issues) == 1
        issue = result.issues[0]
        assert issue.id == "ISS-001"
        assert issue.page == 1
        assert issue.criterion_id == "EQ-1"
        assert issue.sheet_type.value == "electrical"
        assert result.criteria[1].sheet_type.value == "architectural"
        assert result.metadata.request_id == "req-1"
        assert result.metadata.total_pages == 2
        assert result.metadata.analyzed_pages == 2
        assert result.metadata.failed_pages == 0
        assert result.metadata.empty_issues is False

    async def test_generates_request_id_when_missing(self, make_pages, make_orchestrator):
        orchestrator = make_orchestrator(MockAnalysisProvider())

        result = await orchestrator.analyze_document(make_pages(2))

        assert result.metadata.request_id
        assert result.metadata.empty_issues is True

    async def test_one_failing_page_does_not_abort_others(
        self, make_pages, make_orchestrator, stub_provider_factory, raw_result_factory
    ):
        def behave(page_number):
            if page_number == 2:
                raise UpstreamServiceError(message="connection reset", page_number=page_number)
            return raw_result_factory(issue_count=1)

        orchestrator = make_orchestrator(stub_provider_factory(behave))

        result = await orchestrator.analyze_document(make_pages(1, 2))

        assert result.metadata.failed_pages == 1
        assert result.metadata.analyzed_pages == 1
        assert [c.id for c in result.criteria] == ["EQ-1", "ERR-2"]
        error_criterion = result.criteria[1]
        assert error_criterion.result.value == "not-applicable"
        assert error_criterion.name == "Analysis Error"
        assert error_criterion.summary == "Analysis failed due to an upstream AI service error."
        assert [p.status for p in result.page_results] == [PageOutcomeStatus.OK, PageOutcomeStatus.ERROR]
        assert result.page_results[1].criterion_count == 1
        assert result.page_results[1].error == error_criterion.summary
        assert [i.page for i in result.issues] == [1]

    async def test_unexpected_exception_message_is_prefixed(
        self, make_pages, make_orchestrator, stub_provider_factory, raw_result_factory
    ):
        def behave(page_number):
            if page_number == 1:
                raise RuntimeError("boom")
            return raw_result_factory()

        orchestrator = make_orchestrator(stub_provider_factory(behave))

        result = await orchestrator.analyze_document(make_pages(1, 2))

        assert result.criteria[0].id == "ERR-1"
        assert result.criteria[0].summary == "Analysis failed: boom"

    async def test_inverted_box_becomes_page_error(
        self, make_pages, make_orchestrator, stub_provider_factory, raw_result_factory
    ):
        def behave(page_number):
            if page_number == 1:
                return raw_result_factory(box=[300, 400, 100, 200])
            return raw_result_factory()

        orchestrator = make_orchestrator(stub_provider_factory(behave))

        result = await orchestrator.analyze_document(make_pages(1, 2))

        assert result.criteria[0].id == "ERR-1"
        assert result.criteria[0].summary == "Analysis failed: malformed AI response for this page."
        assert result.page_results[0].status == PageOutcomeStatus.ERROR
        assert all(issue.page == 2 for issue in result.issues)
        assert result.issues[0].id == "ISS-001"

    async def test_output_follows_input_order_regardless_of_completion(
        self, make_pages, make_orchestrator, stub_provider_factory, raw_result_factory
    ):
        delays = {1: 0.15, 2: 0.0, 3: 0.05}

        def behave(page_number):
            time.sleep(delays[page_number])
            return raw_result_factory(issue_count=2)

        orchestrator = make_orchestrator(stub_provider_factory(behave), max_concurrency=3)

        result = await orchestrator.analyze_document(make_pages(1, 2, 3))

        assert [p.page_number for p in result.page_results] == [1, 2, 3]
        assert [i.page for i in result.issues] == [1, 1, 2, 2, 3, 3]
        assert [i.id for i in result.issues] == [f"ISS-{n:03d}" for n in range(1, 7)]

    async def test_concurrency_is_bounded(self, make_pages, make_orchestrator, stub_provider_factory, raw_result_factory):
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def behave(page_number):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.05)
            with lock:
                state["active"] -= 1
            return raw_result_factory()

        orchestrator = make_orchestrator(stub_provider_factory(behave), max_concurrency=2)

        await orchestrator.analyze_document(make_pages(1, 2, 3, 4, 5))

        assert 1 <= state["peak"] <= 2

    async def test_unrecognized_page_counts_as_failed(
        self, make_pages, make_orchestrator, stub_provider_factory, raw_result_factory
    ):
        def behave(page_number):
            if page_number == 1:
                return raw_result_factory(sheet_type="cover", results=("not-applicable",) * 4, issue_count=0)
            return raw_result_factory()

        orchestrator = make_orchestrator(stub_provider_factory(behave))

        result = await orchestrator.analyze_document(make_pages(1, 2))

        assert result.criteria[0].id == "WARN-1"
        assert result.page_results[0].status == PageOutcomeStatus.UNRECOGNIZED
        assert result.metadata.failed_pages == 1
        assert result.metadata.analyzed_pages == 1

    async def test_all_pages_failed_raises_invalid_document(self, make_pages, make_orchestrator, stub_provider_factory):
        def behave(page_number):
            raise UpstreamServiceError(message="Gemini API error (500)", status_code=500)

        orchestrator = make_orchestrator(stub_provider_factory(behave))

        with pytest.raises(InvalidDocumentError) as exc_info:
            await orchestrator.analyze_document(make_pages(1, 2))

        assert exc_info.value.http_status_code == 400
        assert exc_info.value.message == (
            "Unable to analyze this document. Please upload a valid construction blueprint PDF."
        )

    async def test_all_pages_unrecognized_raises_invalid_document(
        self, make_pages, make_orchestrator, stub_provider_factory, raw_result_factory
    ):
        provider = stub_provider_factory(lambda n: raw_result_factory(results=("not-applicable",) * 3, issue_count=0))
        orchestrator = make_orchestrator(provider)

        with pytest.raises(InvalidDocumentError):
            await orchestrator.analyze_document(make_pages(1))

    async def test_empty_batch_rejected_without_resolving_provider(self):
        resolver = Mock()
        orchestrator = AnalysisOrchestrator(provider_resolver=resolver)

        with pytest.raises(InvalidRequestError) as exc_info:
            await orchestrator.analyze_document([])

        assert exc_info.value.message == "Invalid analysis request payload."
        resolver.assert_not_called()

    async def test_oversized_batch_rejected_without_calling_provider(
        self, make_pages, stub_provider_factory, raw_result_factory
    ):
        provider = stub_provider_factory(lambda n: raw_result_factory())
        resolver = Mock(return_value=provider)
        orchestrator = AnalysisOrchestrator(provider_resolver=resolver, max_pages=2)

        with pytest.raises(InvalidRequestError):
            await orchestrator.analyze_document(make_pages(1, 2, 3))

        resolver.assert_not_called()
        assert provider.calls == []

    async def test_configuration_error_propagates(self, make_pages):
        resolver = Mock(side_effect=ConfigurationError("GEMINI_API_KEY is not configured. Set it in your .env file."))
        orchestrator = AnalysisOrchestrator(provider_resolver=resolver)

        with pytest.raises(ConfigurationError) as exc_info:
            await orchestrator.analyze_document(make_pages(1))

        assert exc_info.value.http_status_code == 500

    async def test_request_id_forwarded_to_provider(
        self, make_pages, make_orchestrator, stub_provider_factory, raw_result_factory
    ):
        provider = stub_provider_factory(lambda n: raw_result_factory())
        orchestrator = make_orchestrator(provider)

        await orchestrator.analyze_document(make_pages(1, 2), request_id="req-42")

        assert sorted(provider.calls) == [(1, "req-42"), (2, "req-42")]

    async def test_deadline_fails_pending_pages(
        self, make_pages, make_orchestrator, stub_provider_factory, raw_result_factory
    ):
        def behave(page_number):
            if page_number == 2:
                time.sleep(0.5)
            return raw_result_factory()

        orchestrator = make_orchestrator(stub_provider_factory(behave), max_concurrency=2, deadline_seconds=0.1)

        result = await orchestrator.analyze_document(make_pages(1, 2))

        assert [c.id for c in result.criteria] == ["EQ-1", "ERR-2"]
        assert result.page_results[1].error == (
            "Analysis failed: the page did not finish before the request deadline."
        )
        assert result.metadata.failed_pages == 1

    async def test_deadline_stops_upstream_retries(self, make_pages, make_orchestrator):
        session = Mock()
        rate_limited = Mock(spec=requests.Response)
        rate_limited.status_code = 429
        rate_limited.ok = False
        rate_limited.headers = {"Retry-After": "0.02"}
        rate_limited.text = "quota"
        session.post.return_value = rate_limited
        provider = GeminiAnalysisProvider(
            api_key="k",
            config=GeminiAnalysisConfig(max_retries=50, initial_backoff_seconds=0.02),
            session=session,
        )
        orchestrator = make_orchestrator(provider, deadline_seconds=0.05)

        with pytest.raises(InvalidDocumentError):
            await orchestrator.analyze_document(make_pages(1))
        calls_at_deadline = session.post.call_count
        await asyncio.sleep(0.3)

        assert calls_at_deadline >= 1
        assert session.post.call_count == calls_at_deadline

    async def test_timings(self, make_pages, make_orchestrator, stub_provider_factory, raw_result_factory):
        def behave(page_number):
            time.sleep(0.02)
            return raw_result_factory()

        orchestrator = make_orchestrator(stub_provider_factory(behave))

        result = await orchestrator.analyze_document(make_pages(1, 2))

        assert result.metadata.timings.total_ms >= result.metadata.timings.avg_page_ms
        assert all(p.duration_ms is not None and p.duration_ms >= 0 for p in result.page_results)

    def test_health_check_reports_provider(self):
        orchestrator = AnalysisOrchestrator(provider_resolver=MockAnalysisProvider)

        health = orchestrator.health_check()

        assert health["overall_health"] == "healthy"
        assert health["analysis_provider"]["analysis_provider"] == "mock"

    def test_health_check_unhealthy_on_configuration_error(self):
        orchestrator = AnalysisOrchestrator(provider_resolver=Mock(side_effect=ConfigurationError("missing key")))

        health = orchestrator.health_check()

        assert health["overall_health"] == "unhealthy"
        assert health["analysis_provider"]["error"] == "missing key"
