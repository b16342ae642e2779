"""
Validation and mapping of raw per-page provider output into document criteria and issues.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from pydantic import ValidationError

from blueprint_qa.configs.constants import BOX_SCALE, DEFAULT_CONFIDENCE, UNRECOGNIZED_CONTENT_THRESHOLD
from blueprint_qa.configs.qa_criteria import get_criterion_description
from blueprint_qa.exceptions.domain_exceptions import MalformedResponseError
from blueprint_qa.models.analysis_models import (
    BoundingBox,
    Criterion,
    CriterionResult,
    Issue,
    PageOutcome,
    PageOutcomeStatus,
)
from blueprint_qa.models.provider_models import ProviderCriterion, ProviderPageResult

UNRECOGNIZED_CRITERION_NAME = "Content Recognition Warning"
UNRECOGNIZED_CRITERION_DESCRIPTION = "Unable to recognize this as a construction blueprint"
UNRECOGNIZED_CRITERION_SUMMARY = (
    "The AI was unable to reliably identify this page as a construction blueprint. "
    "Possible causes: not a blueprint, low image quality, or unsupported drawing type."
)
ERROR_CRITERION_NAME = "Analysis Error"
ERROR_CRITERION_DESCRIPTION = "Failed to analyze this page"


class IssueIdCounter:
    """Batch-scoped issue id allocator, safe under concurrent use."""

    def __init__(self, start: int = 1):
        self._next = start
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            value = self._next
            self._next += 1
        return f"ISS-{value:03d}"


@dataclass
class MappedPageResult:
    criteria: List[Criterion] = field(default_factory=list)
    issues: List[Issue] = field(default_factory=list)
    page_outcome: Optional[PageOutcome] = None
    unrecognized: bool = False


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))


def convert_bbox(box: Sequence[float]) -> BoundingBox:
    """Convert a [ymin, xmin, ymax, xmax] box on the 0-1000 scale into a normalized rectangle."""
    ymin, xmin, ymax, xmax = box
    return BoundingBox(
        x=_clamp_unit(xmin / BOX_SCALE),
        y=_clamp_unit(ymin / BOX_SCALE),
        width=_clamp_unit((xmax - xmin) / BOX_SCALE),
        height=_clamp_unit((ymax - ymin) / BOX_SCALE),
    )


def not_applicable_ratio(criteria: Sequence[ProviderCriterion]) -> float:
    if not criteria:
        return 0.0
    count = sum(1 for c in criteria if c.result == CriterionResult.NOT_APPLICABLE)
    return count / len(criteria)


def make_page_error_criterion(page_number: int, message: str) -> Criterion:
    return Criterion(
        id=f"ERR-{page_number}",
        name=ERROR_CRITERION_NAME,
        description=ERROR_CRITERION_DESCRIPTION,
        result=CriterionResult.NOT_APPLICABLE,
        summary=message,
        page=page_number,
    )


def validate_provider_page_result(page_number: int, raw: Any) -> ProviderPageResult:
    """
    Check raw provider output against the expected shape.

    Raises:
        MalformedResponseError: If any field is missing, out of range or not an allowed value
    """
    try:
        return ProviderPageResult.model_validate(raw)
    except ValidationError as e:
        raise MalformedResponseError(
            message=f"Provider result failed validation ({e.error_count()} errors)",
            context={"errors": "; ".join(err["msg"] for err in e.errors()[:3])},
            cause=e,
            page_number=page_number,
        )


def map_provider_page_result(
    page_number: int,
    raw: Any,
    counter: IssueIdCounter,
    duration_ms: Optional[int] = None,
    unrecognized_threshold: float = UNRECOGNIZED_CONTENT_THRESHOLD,
) -> MappedPageResult:
    """
    Validate one page's raw result and map it into document criteria and issues.

    Args:
        page_number: Page the result belongs to
        raw: Untyped provider output
        counter: Batch-shared issue id allocator
        duration_ms: Measured provider call duration
        unrecognized_threshold: Not-applicable ratio above which the page is unrecognized

    Returns:
        MappedPageResult with criteria, issues and the page outcome

    Raises:
        MalformedResponseError: If the raw result fails validation
    """
    result = validate_provider_page_result(page_number, raw)
    sheet_type = result.sheet_type

    if not_applicable_ratio(result.criteria) > unrecognized_threshold:
        warning = Criterion(
            id=f"WARN-{page_number}",
            name=UNRECOGNIZED_CRITERION_NAME,
            description=UNRECOGNIZED_CRITERION_DESCRIPTION,
            result=CriterionResult.NOT_APPLICABLE,
            summary=UNRECOGNIZED_CRITERION_SUMMARY,
            page=page_number,
            sheet_type=sheet_type,
        )
        return MappedPageResult(
            criteria=[warning],
            page_outcome=PageOutcome(
                page_number=page_number,
                status=PageOutcomeStatus.UNRECOGNIZED,
                issue_count=0,
                criterion_count=1,
                duration_ms=duration_ms,
            ),
            unrecognized=True,
        )

    criteria = [
        Criterion(
            id=c.id or f"{c.criterion_key}-{page_number}",
            name=c.name,
            description=get_criterion_description(c.criterion_key),
            result=c.result,
            summary=c.summary,
            page=page_number,
            confidence=c.confidence if c.confidence is not None else DEFAULT_CONFIDENCE,
            sheet_type=sheet_type,
        )
        for c in result.criteria
    ]

    issues = [
        Issue(
            id=counter.next_id(),
            page=page_number,
            title=issue.title,
            description=issue.description,
            severity=issue.severity,
            category=issue.category,
            bbox=convert_bbox(issue.box_2d),
            criterion_id=f"{issue.criterion_key}-{page_number}",
            confidence=issue.confidence if issue.confidence is not None else DEFAULT_CONFIDENCE,
            sheet_type=sheet_type,
        )
        for issue in result.issues
    ]

    return MappedPageResult(
        criteria=criteria,
        issues=issues,
        page_outcome=PageOutcome(
            page_number=page_number,
            status=PageOutcomeStatus.OK,
            issue_count=len(issues),
            criterion_count=len(criteria),
            duration_ms=duration_ms,
        ),
    )
