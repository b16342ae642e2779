"""Request, domain and response models for blueprint analysis."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exchanging camelCase JSON while keeping snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CriterionResult(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    NOT_APPLICABLE = "not-applicable"


class IssueSeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IssueCategory(str, Enum):
    CLASH = "clash"
    MISSING_LABEL = "missing-label"
    CODE_VIOLATION = "code-violation"
    CLEARANCE = "clearance"


class IssueStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class SheetType(str, Enum):
    """Coarse classification of a sheet, read from the title block or drawing content."""

    ARCHITECTURAL = "architectural"
    ELECTRICAL = "electrical"
    MECHANICAL = "mechanical"
    STRUCTURAL = "structural"
    PLUMBING = "plumbing"
    CIVIL = "civil"
    COVER = "cover"
    SCHEDULE = "schedule"
    UNKNOWN = "unknown"


class PageOutcomeStatus(str, Enum):
    OK = "ok"
    UNRECOGNIZED = "unrecognized"
    ERROR = "error"


class CriterionDefinition(BaseModel):
    """Immutable catalog entry keyed by a short code such as "EQ"."""

    id: str
    name: str
    description: str

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------- request


class PageRequest(CamelModel):
    page_number: int = Field(..., gt=0, description="1-based page number within the document")
    image: str = Field(..., min_length=1, description="Rendered page as a base64 image data URL")


class AnalyzeRequest(CamelModel):
    """Analysis request body. Page-count limits are enforced by the orchestrator."""

    pages: List[PageRequest] = Field(..., description="Ordered pages to analyze")


# ---------------------------------------------------------------- domain


class BoundingBox(BaseModel):
    """Rectangle normalized to 0-1 from the top-left corner of the page."""

    x: float = Field(..., ge=0.0, le=1.0)
    y: float = Field(..., ge=0.0, le=1.0)
    width: float = Field(..., ge=0.0, le=1.0)
    height: float = Field(..., ge=0.0, le=1.0)


class Criterion(CamelModel):
    id: str
    name: str
    description: str
    result: CriterionResult
    summary: str
    page: int
    confidence: Optional[float] = None
    sheet_type: Optional[SheetType] = None


class Issue(CamelModel):
    id: str
    page: int
    title: str
    description: str
    severity: IssueSeverity
    status: IssueStatus = IssueStatus.OPEN
    category: IssueCategory
    bbox: BoundingBox
    criterion_id: Optional[str] = None
    confidence: Optional[float] = None
    sheet_type: Optional[SheetType] = None


class PageOutcome(CamelModel):
    page_number: int
    status: PageOutcomeStatus
    issue_count: int = 0
    criterion_count: int = 0
    duration_ms: Optional[int] = None
    error: Optional[str] = None


# ---------------------------------------------------------------- response


class AnalysisTimings(CamelModel):
    total_ms: int
    avg_page_ms: int


class AnalysisMetadata(CamelModel):
    request_id: str
    total_pages: int
    analyzed_pages: int
    failed_pages: int
    empty_issues: bool
    timings: AnalysisTimings


class DocumentResult(CamelModel):
    """Document-level analysis result; criteria, issues and page results follow input page order."""

    criteria: List[Criterion] = Field(default_factory=list)
    issues: List[Issue] = Field(default_factory=list)
    page_results: List[PageOutcome] = Field(default_factory=list)
    metadata: AnalysisMetadata
