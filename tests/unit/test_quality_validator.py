"""Unit tests for the quality rubric."""

import pytest

from sopdesk.core.domain import QualityReport
from sopdesk.core.services.quality_validator import QualityValidator

pytestmark = pytest.mark.unit

WELL_FORMED = (
    "Overview: this procedure covers refunds for damaged items shipped to customers.\n"
    "1. Verify the order number.\n"
    "2. Issue the refund.\n"
    "Outcome: the customer receives credit. Escalate to a supervisor if disputed."
)


@pytest.fixture
def validator(clock):
    return QualityValidator(clock=clock)


def test_well_formed_document_scores_full_marks(validator, make_document):
    report = validator.validate(make_document(content=WELL_FORMED, sections=2))
    assert report.score == 100
    assert report.issues == []
    assert report.suggestions == []
    assert report.is_valid


def test_short_unstructured_document(validator, make_document):
    """Short content without steps loses 35 points but stays otherwise clean."""
    doc = make_document(content="Overview and outcome. Escalate by email.", sections=2)

    report = validator.validate(doc)

    assert report.score == 65
    assert report.is_valid
    assert "Content too short (less than 100 characters)" in report.issues
    assert "No clear step-by-step structure found" in report.issues
    assert "Add numbered steps or bullet points for clarity" in report.suggestions


def test_every_deduction_applies(validator, make_document):
    report = validator.validate(make_document(content="x", sections=1, days_ago=400))

    assert report.score == 35
    assert not report.is_valid
    assert "Very few sections - consider breaking down content" in report.issues
    assert "SOP may need review (last updated over 6 months ago)" in report.suggestions
    assert "Consider adding escalation paths or contact information" in report.suggestions


def test_outdated_uses_calendar_months(validator, make_document):
    # 2025-06-15 minus six months is 2024-12-15; 180 days back is still inside it
    recent = validator.validate(make_document(content=WELL_FORMED, sections=2, days_ago=180))
    old = validator.validate(make_document(content=WELL_FORMED, sections=2, days_ago=190))

    assert recent.score == 100
    assert old.score == 95


@pytest.mark.parametrize("score,valid", [(60, True), (59, False), (100, True), (0, False)])
def test_validity_threshold(score, valid):
    assert QualityReport(score=score).is_valid is valid
