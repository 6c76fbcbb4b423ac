"""Structured inspection checks and the grading rules applied to them.

An inspector records four check groups (visual, dimensional, material
and functional). :func:`grade_inspection` turns them into the derived
assessment stored with the inspection entry.
"""

from __future__ import annotations

import calendar
from datetime import date
from enum import StrEnum

from pydantic import Field

from pytrackfit.models._base import TrackfitBaseModel


class Tolerance(StrEnum):
    WITHIN = "within"
    MARGINAL = "marginal"
    OUTSIDE = "outside"


class CheckResult(StrEnum):
    PASS = "pass"
    FAIL = "fail"


class VisualCheck(TrackfitBaseModel):
    cracks: bool = False
    corrosion: bool = False
    deformation: bool = False
    surface_damage: bool = False

    @property
    def defect_count(self) -> int:
        return sum((self.cracks, self.corrosion, self.deformation, self.surface_damage))


class DimensionalCheck(TrackfitBaseModel):
    """Measurements in millimetres."""

    length: float | None = Field(default=None, gt=0)
    width: float | None = Field(default=None, gt=0)
    height: float | None = Field(default=None, gt=0)
    tolerance: Tolerance | None = None


class MaterialCheck(TrackfitBaseModel):
    hardness: float | None = Field(default=None, ge=0)
    tensile_strength: CheckResult | None = None
    chemical_composition: CheckResult | None = None


class FunctionalCheck(TrackfitBaseModel):
    fitment: str | None = None
    """``good``, ``fair`` or ``poor``."""
    performance: str | None = None
    """``satisfactory``, ``acceptable`` or ``poor``."""


class InspectionChecks(TrackfitBaseModel):
    visual: VisualCheck = Field(default_factory=VisualCheck)
    dimensional: DimensionalCheck = Field(default_factory=DimensionalCheck)
    material: MaterialCheck = Field(default_factory=MaterialCheck)
    functional: FunctionalCheck = Field(default_factory=FunctionalCheck)


class InspectionGrading(TrackfitBaseModel):
    visual_condition: str
    dimensional_accuracy: str
    material_grade: str
    operational_status: str
    passed: bool
    risk_level: str
    next_inspection_date: date
    quality_score: int = Field(ge=0, le=100)


def visual_condition(visual: VisualCheck) -> str:
    defects = visual.defect_count
    if defects == 0:
        return "Excellent"
    if defects == 1:
        return "Good"
    if defects == 2:
        return "Fair"
    return "Poor"


def dimensional_accuracy(dimensional: DimensionalCheck) -> str:
    if dimensional.tolerance is Tolerance.WITHIN:
        return "High"
    if dimensional.tolerance is Tolerance.MARGINAL:
        return "Medium"
    return "Low"


def material_grade(material: MaterialCheck) -> str:
    passes = (material.tensile_strength is CheckResult.PASS) + (material.chemical_composition is CheckResult.PASS)
    return {2: "A", 1: "B"}.get(passes, "C")


def operational_status(functional: FunctionalCheck) -> str:
    if functional.fitment == "good" and functional.performance == "satisfactory":
        return "Operational"
    if functional.fitment == "fair" or functional.performance == "acceptable":
        return "Conditional"
    return "Non-Operational"


def passes_inspection(checks: InspectionChecks) -> bool:
    return (
        checks.visual.defect_count == 0
        and checks.dimensional.tolerance is Tolerance.WITHIN
        and checks.material.tensile_strength is CheckResult.PASS
    )


def risk_level(checks: InspectionChecks) -> str:
    defects = checks.visual.defect_count
    tolerance = checks.dimensional.tolerance
    if defects > 2 or tolerance is not Tolerance.WITHIN or checks.material.tensile_strength is not CheckResult.PASS:
        return "High"
    # The marginal clause never fires: a marginal tolerance is already High above.
    if defects > 0 or tolerance is Tolerance.MARGINAL:
        return "Medium"
    return "Low"


def _add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def next_inspection_date(today: date, *, overall_grade: str | None, inspection_type: str) -> date:
    """Grade A waits 12 months, C 3 months, anything else 6; emergencies 1 month."""
    months = 6
    if overall_grade == "C":
        months = 3
    elif overall_grade == "A":
        months = 12
    if inspection_type == "emergency":
        months = 1
    return _add_months(today, months)


def quality_score(checks: InspectionChecks) -> int:
    """Start at 100 and deduct per finding; clamped to ``0..100``."""
    score = 100 - 10 * checks.visual.defect_count
    if checks.dimensional.tolerance is Tolerance.MARGINAL:
        score -= 5
    elif checks.dimensional.tolerance is Tolerance.OUTSIDE:
        score -= 15
    if checks.material.tensile_strength is CheckResult.FAIL:
        score -= 20
    if checks.material.chemical_composition is CheckResult.FAIL:
        score -= 15
    if checks.functional.performance == "poor":
        score -= 25
    elif checks.functional.performance == "acceptable":
        score -= 10
    return max(0, min(100, score))


def grade_inspection(
    checks: InspectionChecks,
    *,
    today: date,
    overall_grade: str | None = None,
    inspection_type: str = "visual",
) -> InspectionGrading:
    return InspectionGrading(
        visual_condition=visual_condition(checks.visual),
        dimensional_accuracy=dimensional_accuracy(checks.dimensional),
        material_grade=material_grade(checks.material),
        operational_status=operational_status(checks.functional),
        passed=passes_inspection(checks),
        risk_level=risk_level(checks),
        next_inspection_date=next_inspection_date(today, overall_grade=overall_grade, inspection_type=inspection_type),
        quality_score=quality_score(checks),
    )
