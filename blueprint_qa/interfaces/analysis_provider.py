"""Analysis provider interface for vision-model page analysis."""

import threading
from typing import Any, Dict, Optional, Protocol, runtime_checkable
from abc import ABC, abstractmethod


@runtime_checkable
class AnalysisProvider(Protocol):
    """Protocol for analyzing a single rendered page."""

    name: str

    def analyze_page(
        self,
        page_number: int,
        image: str,
        request_id: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        """
        Analyze one page image and return the provider's raw result.

        Args:
            page_number: 1-based page number, used in the prompt and in ids
            image: Page image as a base64 data URL
            request_id: Optional correlation id forwarded for upstream tracing
            cancel_event: Set by the caller once it has abandoned the page; providers that
                retry stop before their next upstream call

        Returns:
            Untyped result structure, validated later by the response mapper:
            {
                "sheetType": str,
                "criteria": [{"criterionKey", "name", "result", "summary", "confidence"?}],
                "issues": [{"title", "description", "severity", "category",
                            "criterionKey", "box_2d", "confidence"?}]
            }

        Raises:
            PageAnalysisError: If the page cannot be analyzed
        """
        ...

    def health_check(self) -> Dict[str, str]:
        """
        Check health of the provider without calling the upstream service.

        Returns:
            Dictionary with health status information
        """
        ...


class AbstractAnalysisProvider(ABC):
    """Abstract base class for analysis providers."""

    name: str = "abstract"

    @abstractmethod
    def analyze_page(
        self,
        page_number: int,
        image: str,
        request_id: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        """Analyze one page image and return the provider's raw result."""
        pass

    @abstractmethod
    def health_check(self) -> Dict[str, str]:
        """Check health of the provider."""
        pass
