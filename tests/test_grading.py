from __future__ import annotations

from datetime import date

import pydantic
import pytest

from pytrackfit.models import (
    DimensionalCheck,
    FunctionalCheck,
    InspectionChecks,
    MaterialCheck,
    VisualCheck,
    grade_inspection,
)
from pytrackfit.models.inspection import (
    dimensional_accuracy,
    material_grade,
    next_inspection_date,
    operational_status,
    quality_score,
    risk_level,
    visual_condition,
)

TODAY = date(2026, 3, 15)

_DEFECTS = ("cracks", "corrosion", "deformation", "surface_damage")


def _visual(defects: int) -> VisualCheck:
    return VisualCheck(**{name: True for name in _DEFECTS[:defects]})


def _checks(
    *,
    defects: int = 0,
    tolerance: str | None = "within",
    tensile: str | None = "pass",
    chemical: str | None = "pass",
    fitment: str | None = "good",
    performance: str | None = "satisfactory",
) -> InspectionChecks:
    return InspectionChecks(
        visual=_visual(defects),
        dimensional=DimensionalCheck(tolerance=tolerance),
        material=MaterialCheck(tensile_strength=tensile, chemical_composition=chemical),
        functional=FunctionalCheck(fitment=fitment, performance=performance),
    )


@pytest.mark.parametrize(
    ("defects", "expected"),
    [(0, "Excellent"), (1, "Good"), (2, "Fair"), (3, "Poor"), (4, "Poor")],
)
def test_visual_condition_by_defect_count(defects: int, expected: str) -> None:
    assert visual_condition(_visual(defects)) == expected


@pytest.mark.parametrize(
    ("tolerance", "expected"),
    [("within", "High"), ("marginal", "Medium"), ("outside", "Low"), (None, "Low")],
)
def test_dimensional_accuracy(tolerance: str | None, expected: str) -> None:
    assert dimensional_accuracy(DimensionalCheck(tolerance=tolerance)) == expected


@pytest.mark.parametrize(
    ("tensile", "chemical", "expected"),
    [
        ("pass", "pass", "A"),
        ("pass", "fail", "B"),
        (None, "pass", "B"),
        ("fail", "fail", "C"),
        (None, None, "C"),
    ],
)
def test_material_grade(tensile: str | None, chemical: str | None, expected: str) -> None:
    assert material_grade(MaterialCheck(tensile_strength=tensile, chemical_composition=chemical)) == expected


@pytest.mark.parametrize(
    ("fitment", "performance", "expected"),
    [
        ("good", "satisfactory", "Operational"),
        ("good", "acceptable", "Conditional"),
        ("fair", "satisfactory", "Conditional"),
        ("fair", "poor", "Conditional"),
        ("good", "poor", "Non-Operational"),
        ("poor", "satisfactory", "Non-Operational"),
        (None, None, "Non-Operational"),
    ],
)
def test_operational_status(fitment: str | None, performance: str | None, expected: str) -> None:
    assert operational_status(FunctionalCheck(fitment=fitment, performance=performance)) == expected


@pytest.mark.parametrize(
    ("checks", "expected"),
    [
        (_checks(), "Low"),
        (_checks(defects=1), "Medium"),
        (_checks(defects=2), "Medium"),
        (_checks(defects=3), "High"),
        (_checks(tolerance="marginal"), "High"),
        (_checks(tolerance=None), "High"),
        (_checks(tensile="fail"), "High"),
        (_checks(tensile=None), "High"),
    ],
)
def test_risk_level(checks: InspectionChecks, expected: str) -> None:
    assert risk_level(checks) == expected


@pytest.mark.parametrize(
    ("grade", "inspection_type", "expected"),
    [
        (None, "visual", date(2026, 9, 15)),
        ("B", "visual", date(2026, 9, 15)),
        ("A", "visual", date(2027, 3, 15)),
        ("C", "visual", date(2026, 6, 15)),
        ("A", "emergency", date(2026, 4, 15)),
    ],
)
def test_next_inspection_date(grade: str | None, inspection_type: str, expected: date) -> None:
    assert next_inspection_date(TODAY, overall_grade=grade, inspection_type=inspection_type) == expected


def test_next_inspection_date_clamps_to_month_end() -> None:
    assert next_inspection_date(date(2026, 8, 31), overall_grade=None, inspection_type="visual") == date(2027, 2, 28)
    assert next_inspection_date(date(2027, 12, 31), overall_grade="C", inspection_type="visual") == date(2028, 3, 31)
    assert next_inspection_date(date(2028, 1, 31), overall_grade=None, inspection_type="emergency") == date(
        2028, 2, 29
    )


@pytest.mark.parametrize(
    ("checks", "expected"),
    [
        (_checks(), 100),
        (_checks(defects=2), 80),
        (_checks(tolerance="marginal"), 95),
        (_checks(tolerance="outside"), 85),
        (_checks(tensile="fail"), 80),
        (_checks(chemical="fail"), 85),
        (_checks(performance="acceptable"), 90),
        (_checks(performance="poor"), 75),
        (_checks(tolerance=None, tensile=None, chemical=None, performance=None), 100),
    ],
)
def test_quality_score_deductions(checks: InspectionChecks, expected: int) -> None:
    assert quality_score(checks) == expected


def test_quality_score_is_clamped_at_zero() -> None:
    worst = _checks(defects=4, tolerance="outside", tensile="fail", chemical="fail", performance="poor")

    # 100 - 40 - 15 - 20 - 15 - 25 would be negative.
    assert quality_score(worst) == 0
    assert grade_inspection(worst, today=TODAY).quality_score == 0


def test_grade_inspection_combines_every_rule() -> None:
    grading = grade_inspection(_checks(), today=TODAY, overall_grade="A")

    assert grading.visual_condition == "Excellent"
    assert grading.dimensional_accuracy == "High"
    assert grading.material_grade == "A"
    assert grading.operational_status == "Operational"
    assert grading.passed is True
    assert grading.risk_level == "Low"
    assert grading.next_inspection_date == date(2027, 3, 15)
    assert grading.quality_score == 100


def test_pass_requires_no_defects_within_tolerance_and_tensile_pass() -> None:
    assert grade_inspection(_checks(chemical="fail", performance="poor"), today=TODAY).passed
    assert not grade_inspection(_checks(defects=1), today=TODAY).passed
    assert not grade_inspection(_checks(tolerance="marginal"), today=TODAY).passed
    assert not grade_inspection(_checks(tensile="fail"), today=TODAY).passed


def test_checks_accept_camel_case_and_reject_bad_values() -> None:
    checks = InspectionChecks.model_validate(
        {"visual": {"surfaceDamage": True}, "material": {"tensileStrength": "pass", "hardness": 210}}
    )
    assert checks.visual.defect_count == 1
    assert checks.material.hardness == 210

    with pytest.raises(pydantic.ValidationError):
        DimensionalCheck(length=-1)
    with pytest.raises(pydantic.ValidationError):
        MaterialCheck(tensile_strength="maybe")
    with pytest.raises(pydantic.ValidationError):
        InspectionChecks.model_validate({"visual": {"rust": True}})
