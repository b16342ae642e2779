"""Catalog of QA criteria evaluated on every blueprint sheet."""

from typing import Optional

from blueprint_qa.models.analysis_models import CriterionDefinition

QA_CRITERIA: tuple[CriterionDefinition, ...] = (
    CriterionDefinition(
        id="EQ",
        name="Equipment/Element Labels",
        description="All major equipment, rooms, and elements are labeled",
    ),
    CriterionDefinition(
        id="DIM",
        name="Dimension Strings",
        description="Dimension lines are present and complete",
    ),
    CriterionDefinition(
        id="TB",
        name="Title Block & Scale",
        description="Title block present with sheet number, scale indicated",
    ),
    CriterionDefinition(
        id="FS",
        name="Fire Safety Markings",
        description="Fire exits, fire-rated assemblies, extinguishers marked",
    ),
    CriterionDefinition(
        id="SYM",
        name="Symbol Consistency",
        description="Symbols match legend, no undefined symbols",
    ),
    CriterionDefinition(
        id="ANN",
        name="Annotations & Notes",
        description="General notes, callouts, and references present",
    ),
    CriterionDefinition(
        id="CRD",
        name="Coordination Markers",
        description="Grid lines, column markers, reference bubbles present",
    ),
    CriterionDefinition(
        id="CLR",
        name="Clearance & Accessibility",
        description="ADA clearances, door swings, egress paths shown",
    ),
)

_CRITERIA_BY_ID = {criterion.id: criterion for criterion in QA_CRITERIA}


def get_criterion(criterion_id: str) -> Optional[CriterionDefinition]:
    return _CRITERIA_BY_ID.get(criterion_id)


def get_criterion_description(criterion_id: str) -> str:
    """Catalog description for a criterion key, empty when the key is unknown."""
    criterion = get_criterion(criterion_id)
    return criterion.description if criterion else ""
