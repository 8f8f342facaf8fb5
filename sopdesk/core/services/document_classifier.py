"""Pure classification logic for procedure pages."""

from __future__ import annotations

from collections.abc import Iterable

from ..domain import Category

SOP_KEYWORDS = ("sop", "procedure", "policy", "process", "guideline", "standard", "workflow")

SERVICE_KEYWORDS = ("customer", "support", "service", "help", "ticket", "case", "issue")

# Declaration order breaks ties; GENERAL is the zero-score fallback.
CATEGORY_KEYWORDS: dict[Category, tuple[str, ...]] = {
    Category.RETURNS: ("return", "refund", "exchange", "replacement", "money back"),
    Category.BILLING: ("billing", "payment", "invoice", "charge", "subscription", "price"),
    Category.SHIPPING: ("shipping", "delivery", "tracking", "shipment", "dispatch"),
    Category.TECHNICAL: ("technical", "troubleshoot", "error", "bug", "issue", "problem"),
    Category.ACCOUNT: ("account", "login", "password", "profile", "registration", "signup"),
    Category.PRODUCT: ("product", "feature", "functionality", "specification", "usage"),
    Category.ESCALATION: ("escalate", "manager", "supervisor", "complex", "urgent"),
}

TITLE_WEIGHT = 3
CONTENT_WEIGHT = 1


class DocumentClassifier:
    """Decides which pages are procedures and what they are about."""

    def is_procedure_document(self, title: str, labels: Iterable[str]) -> bool:
        """Whether a page looks like procedural knowledge.

        Any one of these is enough: an SOP keyword in the title, a label equal
        to an SOP keyword, or a customer-service keyword in the title.
        """
        title_lower = title.lower()
        if any(keyword in title_lower for keyword in SOP_KEYWORDS):
            return True
        if any(label.lower() in SOP_KEYWORDS for label in labels):
            return True
        return any(keyword in title_lower for keyword in SERVICE_KEYWORDS)

    def category_scores(self, title: str, clean_content: str) -> dict[Category, int]:
        """Weighted keyword occurrence count for every non-general category."""
        title_lower = title.lower()
        content_lower = clean_content.lower()
        return {
            category: sum(
                TITLE_WEIGHT * title_lower.count(keyword)
                + CONTENT_WEIGHT * content_lower.count(keyword)
                for keyword in keywords
            )
            for category, keywords in CATEGORY_KEYWORDS.items()
        }

    def categorize(self, title: str, clean_content: str) -> Category:
        """Pick the highest-scoring category, or ``GENERAL`` if none scores."""
        best_category = Category.GENERAL
        best_score = 0
        for category, score in self.category_scores(title, clean_content).items():
            if score > best_score:
                best_category, best_score = category, score
        return best_category
