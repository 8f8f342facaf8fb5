"""Structural quality rubric for procedure documents."""

import re

from ...common.utils import Clock, months_before, utc_now
from ..domain import ProcedureDocument, QualityReport

MIN_CONTENT_LENGTH = 100
MIN_SECTIONS = 2
REVIEW_AFTER_MONTHS = 6

STEP_MARKERS = re.compile(r"\d+\.\s|\n-\s|\n\*\s")
BACKGROUND_TERMS = re.compile(r"background|overview|purpose|scope", re.IGNORECASE)
CONCLUSION_TERMS = re.compile(r"conclusion|result|outcome|next steps", re.IGNORECASE)
ESCALATION_TERMS = re.compile(r"escalate|manager|supervisor|contact|email|phone", re.IGNORECASE)

DEDUCTIONS = {
    "short_content": 20,
    "no_steps": 15,
    "no_background": 5,
    "no_conclusion": 5,
    "few_sections": 10,
    "outdated": 5,
    "no_escalation": 5,
}


class QualityValidator:
    """Scores a procedure out of 100 by deducting for missing structure."""

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock

    def validate(self, doc: ProcedureDocument) -> QualityReport:
        """Apply the deduction rubric to one document.

        Args:
            doc: Indexed procedure.

        Returns:
            QualityReport with the floored score, issues and suggestions.
        """
        issues: list[str] = []
        suggestions: list[str] = []
        score = 100
        content = doc.clean_content

        if len(content) < MIN_CONTENT_LENGTH:
            issues.append(f"Content too short (less than {MIN_CONTENT_LENGTH} characters)")
            score -= DEDUCTIONS["short_content"]

        if not STEP_MARKERS.search(content):
            issues.append("No clear step-by-step structure found")
            suggestions.append("Add numbered steps or bullet points for clarity")
            score -= DEDUCTIONS["no_steps"]

        if not BACKGROUND_TERMS.search(content):
            suggestions.append("Consider adding background/purpose section")
            score -= DEDUCTIONS["no_background"]

        if not CONCLUSION_TERMS.search(content):
            suggestions.append("Consider adding conclusion or next steps section")
            score -= DEDUCTIONS["no_conclusion"]

        if len(doc.sections) < MIN_SECTIONS:
            issues.append("Very few sections - consider breaking down content")
            score -= DEDUCTIONS["few_sections"]

        review_cutoff = months_before(self._clock(), REVIEW_AFTER_MONTHS)
        if doc.last_modified < review_cutoff:
            suggestions.append(
                f"SOP may need review (last updated over {REVIEW_AFTER_MONTHS} months ago)"
            )
            score -= DEDUCTIONS["outdated"]

        if not ESCALATION_TERMS.search(content):
            suggestions.append("Consider adding escalation paths or contact information")
            score -= DEDUCTIONS["no_escalation"]

        return QualityReport(score=max(0, score), issues=issues, suggestions=suggestions)
