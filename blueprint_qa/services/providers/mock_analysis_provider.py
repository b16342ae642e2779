"""Deterministic offline provider used for development and tests."""

import threading
from typing import Any, Dict, Optional

from blueprint_qa.interfaces.analysis_provider import AbstractAnalysisProvider


class MockAnalysisProvider(AbstractAnalysisProvider):
    """Fails the EQ criterion with one issue on odd pages and passes it on even pages."""

    name = "mock"

    def analyze_page(
        self,
        page_number: int,
        image: str,
        request_id: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        has_issue = page_number % 2 == 1
        issues = []
        if has_issue:
            issues.append(
                {
                    "title": "Mock missing label",
                    "description": f"Mocked issue for page {page_number}",
                    "severity": "medium",
                    "category": "missing-label",
                    "criterionKey": "EQ",
                    "box_2d": [120, 220, 220, 360],
                    "confidence": 86,
                }
            )

        return {
            "sheetType": "electrical" if has_issue else "architectural",
            "criteria": [
                {
                    "id": f"EQ-{page_number}",
                    "criterionKey": "EQ",
                    "name": "Equipment/Element Labels",
                    "result": "fail" if has_issue else "pass",
                    "summary": (
                        f"Mock missing label on page {page_number}"
                        if has_issue
                        else f"Mock pass on page {page_number}"
                    ),
                    "confidence": 88,
                }
            ],
            "issues": issues,
        }

    def health_check(self) -> Dict[str, str]:
        return {"analysis_provider": self.name, "status": "healthy"}
