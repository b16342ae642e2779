"""Schemas for untrusted per-page provider output and live provider configuration."""

import re
from typing import Annotated, Any, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from blueprint_qa.models.analysis_models import CriterionResult, IssueCategory, IssueSeverity, SheetType

_CATEGORY_SEPARATORS = re.compile(r"[\s_]")

# Model output is JSON-decoded, so NaN and numeric strings must be rejected here
FiniteNumber = Annotated[float, Field(strict=True, allow_inf_nan=False)]


def coerce_issue_category(value: str) -> IssueCategory:
    """Map a model-produced category string onto the closest known category."""
    lower = _CATEGORY_SEPARATORS.sub("-", value.lower())
    for category in IssueCategory:
        if lower == category.value:
            return category
    if "label" in lower or "missing" in lower or "annotation" in lower:
        return IssueCategory.MISSING_LABEL
    if "code" in lower or "violation" in lower or "safety" in lower:
        return IssueCategory.CODE_VIOLATION
    if "clear" in lower or "spacing" in lower or "access" in lower:
        return IssueCategory.CLEARANCE
    return IssueCategory.CLASH


class ProviderCriterion(BaseModel):
    id: Optional[str] = Field(None, min_length=1)
    criterion_key: str = Field(..., min_length=1, alias="criterionKey")
    name: str = Field(..., min_length=1)
    result: CriterionResult
    summary: str
    confidence: Optional[FiniteNumber] = Field(None, ge=0, le=100)

    model_config = ConfigDict(populate_by_name=True)


class ProviderIssue(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    severity: IssueSeverity
    category: IssueCategory
    criterion_key: str = Field(..., min_length=1, alias="criterionKey")
    box_2d: Tuple[FiniteNumber, FiniteNumber, FiniteNumber, FiniteNumber] = Field(
        ...,
        validation_alias=AliasChoices("box_2d", "box"),
        description="[ymin, xmin, ymax, xmax] on a 0-1000 scale",
    )
    confidence: Optional[FiniteNumber] = Field(None, ge=0, le=100)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("category", mode="before")
    @classmethod
    def fallback_category(cls, v: Any) -> Any:
        if isinstance(v, str):
            return coerce_issue_category(v)
        return v

    @field_validator("box_2d")
    @classmethod
    def validate_box_range(
        cls, v: Tuple[float, float, float, float]
    ) -> Tuple[float, float, float, float]:
        if any(coordinate < 0 or coordinate > 1000 for coordinate in v):
            raise ValueError("box_2d coordinates must be within 0-1000")
        return v

    @model_validator(mode="after")
    def validate_box_ordering(self) -> "ProviderIssue":
        ymin, xmin, ymax, xmax = self.box_2d
        if ymax < ymin or xmax < xmin:
            raise ValueError("Invalid box_2d bounds ordering")
        return self


class ProviderPageResult(BaseModel):
    sheet_type: SheetType = Field(SheetType.UNKNOWN, alias="sheetType")
    criteria: List[ProviderCriterion]
    issues: List[ProviderIssue]

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("sheet_type", mode="before")
    @classmethod
    def fallback_sheet_type(cls, v: Any) -> Any:
        if v is None:
            return SheetType.UNKNOWN
        try:
            return SheetType(v)
        except ValueError:
            return SheetType.UNKNOWN


class GeminiAnalysisConfig(BaseModel):
    """Configuration for Gemini page analysis."""

    model_id: str = Field(default="gemini-3-flash-preview", description="Gemini model to use for analysis")
    base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta", description="Gemini REST API base URL"
    )
    temperature: float = Field(default=0.1, description="Temperature for model sampling", ge=0.0, le=2.0)
    max_retries: int = Field(default=3, description="Retries on rate-limit or unavailable responses", ge=0)
    initial_backoff_seconds: float = Field(
        default=2.0, description="Backoff before the first retry, doubled on each attempt", ge=0.0
    )
    timeout_seconds: Optional[float] = Field(
        default=None, description="Optional socket timeout for a single upstream request", gt=0
    )

    model_config = ConfigDict(protected_namespaces=())
