"""
Pytest configuration and fixtures for the test suite.
"""

# Set environment variables BEFORE any imports to ensure they're available during module discovery
import os

os.environ["ENVIRONMENT_NAME"] = "test"
os.environ["OTEL_TRACING_ENABLED"] = "false"

import threading
from typing import Any, Callable, Dict, Optional

import pytest

# Minimal 1x1 transparent PNG
SAMPLE_PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8/5+hHgAHggJ/PchI7wAAAABJRU5ErkJggg=="
)


def make_raw_result(
    sheet_type: str = "electrical",
    results: tuple = ("fail",),
    issue_count: int = 1,
    box: Optional[list] = None,
) -> Dict[str, Any]:
    """Build a raw provider result with one EQ-style criterion per entry in results."""
    keys = ["EQ", "DIM", "TB", "FS", "SYM", "ANN", "CRD", "CLR"]
    return {
        "sheetType": sheet_type,
        "criteria": [
            {
                "criterionKey": keys[i % len(keys)],
                "name": f"Criterion {keys[i % len(keys)]}",
                "result": result,
                "summary": f"Summary {i}",
                "confidence": 80,
            }
            for i, result in enumerate(results)
        ],
        "issues": [
            {
                "title": f"Issue {i}",
                "description": f"Issue description {i}",
                "severity": "high",
                "category": "missing-label",
                "criterionKey": "EQ",
                "box_2d": box or [100, 200, 300, 400],
                "confidence": 90,
            }
            for i in range(issue_count)
        ],
    }


class StubProvider:
    """Provider whose per-page behavior is a callable: return a raw result or raise."""

    name = "stub"

    def __init__(self, behavior: Callable[[int], Any]):
        self.behavior = behavior
        self.calls: list = []
        self._lock = threading.Lock()

    def analyze_page(
        self,
        page_number: int,
        image: str,
        request_id: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        with self._lock:
            self.calls.append((page_number, request_id))
        return self.behavior(page_number)

    def health_check(self) -> Dict[str, str]:
        return {"analysis_provider": self.name, "status": "healthy"}


@pytest.fixture
def sample_image() -> str:
    """Sample page image as a data URL."""
    return f"data:image/png;base64,{SAMPLE_PNG_BASE64}"


@pytest.fixture
def raw_result_factory() -> Callable[..., Dict[str, Any]]:
    return make_raw_result


@pytest.fixture
def stub_provider_factory() -> Callable[[Callable[[int], Any]], StubProvider]:
    return StubProvider
