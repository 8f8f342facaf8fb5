"""Document source port interface."""

from abc import ABC, abstractmethod

from ..domain import Page


class DocumentSourcePort(ABC):
    """Abstract interface for the wiki the procedures live in."""

    @abstractmethod
    def list_pages(self, space_key: str) -> list[Page]:
        """List every current page in a space, following pagination."""
        ...

    @abstractmethod
    def get_page_by_id(self, page_id: str) -> Page:
        """Fetch the latest version of a single page."""
        ...

    @abstractmethod
    def search_pages_by_text(self, query: str) -> list[Page]:
        """Full-text search within the configured space."""
        ...

    @abstractmethod
    def verify_access(self) -> str:
        """Check connectivity and return the space name."""
        ...
