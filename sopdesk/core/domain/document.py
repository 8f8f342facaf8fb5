"""Source page and procedure document models."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Category(str, Enum):
    """Procedure category.

    Declaration order matters: categorization ties favor the category
    declared first. ``GENERAL`` is the fallback and has no keyword table.
    """

    RETURNS = "returns"
    BILLING = "billing"
    SHIPPING = "shipping"
    TECHNICAL = "technical"
    ACCOUNT = "account"
    PRODUCT = "product"
    ESCALATION = "escalation"
    GENERAL = "general"


@dataclass(frozen=True)
class Page:
    """A page as exposed by the document source.

    This is the typed ingestion boundary: source adapters build it from
    raw API payloads so nothing downstream handles untyped dictionaries.

    Attributes:
        id: Stable source identifier.
        title: Page title.
        raw_body: Page body in source markup (Confluence storage format).
        version: Source version number, increases on every edit.
        last_modified_at: Timestamp of the latest edit (timezone-aware).
        labels: Source-provided tags.
        url: Browser link to the page, if the source provides one.
    """

    id: str
    title: str
    raw_body: str
    version: int
    last_modified_at: datetime
    labels: tuple[str, ...] = ()
    url: str = ""


@dataclass(frozen=True)
class Section:
    """A titled section of a procedure document."""

    title: str
    content: str
    keywords: tuple[str, ...]
    order_index: int


@dataclass(frozen=True)
class ProcedureDocument:
    """An indexed Standard Operating Procedure.

    Instances are immutable so the index can publish them to concurrent
    readers without partial writes.

    Attributes:
        id: Stable source identifier.
        title: Document title.
        raw_content: Original source markup.
        clean_content: Normalized plain text.
        url: Browser link to the source page.
        last_modified: Timestamp of the latest source edit.
        version: Source version number.
        labels: Source-provided tags.
        sections: Ordered, non-empty sections parsed from ``clean_content``.
        category: Assigned procedure category.
        keywords: Up to 10 frequency-ranked terms.
    """

    id: str
    title: str
    raw_content: str
    clean_content: str
    url: str
    last_modified: datetime
    version: int
    labels: tuple[str, ...] = ()
    sections: tuple[Section, ...] = field(default_factory=tuple)
    category: Category = Category.GENERAL
    keywords: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        data = asdict(self)
        data["last_modified"] = self.last_modified.isoformat()
        data["category"] = self.category.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProcedureDocument":
        """Rebuild a document from :meth:`to_dict` output."""
        return cls(
            id=str(data["id"]),
            title=data["title"],
            raw_content=data.get("raw_content", ""),
            clean_content=data.get("clean_content", ""),
            url=data.get("url", ""),
            last_modified=datetime.fromisoformat(data["last_modified"]),
            version=int(data["version"]),
            labels=tuple(data.get("labels", ())),
            sections=tuple(
                Section(
                    title=section["title"],
                    content=section["content"],
                    keywords=tuple(section.get("keywords", ())),
                    order_index=int(section["order_index"]),
                )
                for section in data.get("sections", ())
            ),
            category=Category(data.get("category", Category.GENERAL.value)),
            keywords=tuple(data.get("keywords", ())),
        )
