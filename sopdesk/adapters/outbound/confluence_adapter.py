"""Confluence REST API client for procedure pages."""

import logging
from datetime import datetime
from typing import Any

import pydantic
import requests
from pydantic import BaseModel, ConfigDict, Field
from requests.auth import HTTPBasicAuth

from ...common.rate_limiter import RateLimiter
from ...common.utils import ensure_utc
from ...core.domain import Page
from ...core.domain.exceptions import (
    MissingCredentialsError,
    PageNotFoundError,
    SourceError,
    SourceUnavailableError,
)
from ...core.ports import DocumentSourcePort

logger = logging.getLogger(__name__)

# Constants
REQUEST_TIMEOUT = 30
PAGE_LIMIT = 50
CONTENT_EXPAND = "body.storage,version,metadata.labels"


# ---------------------------------------------------------------------------
# Payload models. Only the fields the engine reads are declared; anything else
# in the response is ignored.
# ---------------------------------------------------------------------------


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class _Storage(_Payload):
    value: str = ""


class _Body(_Payload):
    storage: _Storage = Field(default_factory=_Storage)


class _Version(_Payload):
    number: int
    when: datetime


class _Label(_Payload):
    name: str


class _Labels(_Payload):
    results: list[_Label] = Field(default_factory=list)


class _Metadata(_Payload):
    labels: _Labels = Field(default_factory=_Labels)


class _Links(_Payload):
    webui: str = ""


class ContentPayload(_Payload):
    """One content item from ``/rest/api/content``."""

    id: str
    title: str
    version: _Version
    body: _Body = Field(default_factory=_Body)
    metadata: _Metadata = Field(default_factory=_Metadata)
    links: _Links = Field(default_factory=_Links, alias="_links")


class ContentListPayload(_Payload):
    """A page of results from a content listing or CQL search."""

    results: list[dict[str, Any]] = Field(default_factory=list)
    size: int = 0


class SpacePayload(_Payload):
    key: str
    name: str


class ConfluenceAdapter(DocumentSourcePort):
    """Reads procedure pages from one Confluence space.

    Every request goes through the shared rate limiter. Connection and HTTP
    failures surface as :class:`SourceUnavailableError`; a missing page as
    :class:`PageNotFoundError`. Nothing is retried here.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        api_token: str,
        space_key: str,
        page_limit: int = PAGE_LIMIT,
        timeout: float = REQUEST_TIMEOUT,
        rate_limiter: RateLimiter | None = None,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Confluence site URL, e.g. ``https://example.atlassian.net/wiki``.
            username: Account email used for basic auth.
            api_token: API token for that account.
            space_key: Space searched by :meth:`search_pages_by_text`.
            page_limit: Page size used when paginating listings.
            timeout: Per-request timeout in seconds.
            rate_limiter: Optional limiter shared with other callers.
            session: Preconfigured session (mainly for tests).

        Raises:
            MissingCredentialsError: If any credential is empty.
        """
        if not (base_url and username and api_token):
            raise MissingCredentialsError(
                "Confluence base URL, username and API token are required",
                context={"has_base_url": bool(base_url), "has_username": bool(username)},
            )
        self.base_url = base_url.rstrip("/")
        self.space_key = space_key
        self.page_limit = page_limit
        self.timeout = timeout
        self.rate_limiter = rate_limiter or RateLimiter(None)
        self.session = session or requests.Session()
        self.session.auth = HTTPBasicAuth(username, api_token)
        self.session.headers.update({"Accept": "application/json", "User-Agent": "sopdesk/1.0"})

    def __enter__(self) -> "ConfluenceAdapter":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager and close session."""
        self.close()

    def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            self.session.close()

    # ------------------------------------------------------------------
    # DocumentSourcePort
    # ------------------------------------------------------------------

    def list_pages(self, space_key: str) -> list[Page]:
        """List every current page in a space.

        Follows ``start``/``limit`` pagination until a short page comes back.
        """
        pages: list[Page] = []
        start = 0
        while True:
            data = self._get(
                "/rest/api/content",
                params={
                    "spaceKey": space_key,
                    "type": "page",
                    "status": "current",
                    "start": start,
                    "limit": self.page_limit,
                    "expand": CONTENT_EXPAND,
                },
            )
            listing = self._parse(ContentListPayload, data)
            pages.extend(self._pages_from(listing))

            if listing.size < self.page_limit:
                break
            start += self.page_limit

        logger.info(f"Listed {len(pages)} pages in space {space_key}")
        return pages

    def get_page_by_id(self, page_id: str) -> Page:
        """Fetch the latest version of one page."""
        data = self._get(f"/rest/api/content/{page_id}", params={"expand": CONTENT_EXPAND})
        return self._to_page(self._parse(ContentPayload, data))

    def search_pages_by_text(self, query: str) -> list[Page]:
        """Full-text CQL search restricted to the configured space."""
        escaped = query.replace("\\", "\\\\").replace('"', '\\"')
        cql = f'space = "{self.space_key}" AND type = page AND text ~ "{escaped}"'
        data = self._get(
            "/rest/api/content/search",
            params={"cql": cql, "limit": self.page_limit, "expand": CONTENT_EXPAND},
        )
        return self._pages_from(self._parse(ContentListPayload, data))

    def verify_access(self) -> str:
        """Check credentials against the configured space and return its name."""
        data = self._get(f"/rest/api/space/{self.space_key}")
        space = self._parse(SpacePayload, data)
        logger.info(f"Connected to Confluence space {space.key} ({space.name})")
        return space.name

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make a rate-limited GET request and return the JSON body.

        Raises:
            PageNotFoundError: On HTTP 404.
            SourceUnavailableError: On any other request failure, including an
                unreadable JSON body.
        """
        url = f"{self.base_url}{path}"
        self.rate_limiter.acquire()
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            if response.status_code == 404:
                raise PageNotFoundError(
                    f"Confluence returned 404 for {path}", context={"path": path}
                )
            response.raise_for_status()
            return response.json()  # type: ignore[no-any-return]
        except requests.RequestException as e:
            raise SourceUnavailableError(
                f"Confluence request failed: {e}",
                cause=e,
                context={"path": path},
            ) from e

    @staticmethod
    def _parse(model: type[BaseModel], data: dict[str, Any]) -> Any:
        try:
            return model.model_validate(data)
        except pydantic.ValidationError as e:
            raise SourceError(
                f"Unexpected {model.__name__} shape from Confluence",
                cause=e,
                context={"errors": e.error_count()},
            ) from e

    def _pages_from(self, listing: ContentListPayload) -> list[Page]:
        """Convert listing items, skipping any that do not validate."""
        pages = []
        for raw in listing.results:
            try:
                item = ContentPayload.model_validate(raw)
            except pydantic.ValidationError as e:
                logger.warning(
                    f"Skipping malformed Confluence item {raw.get('id', '?')}: "
                    f"{e.error_count()} validation error(s)"
                )
                continue
            pages.append(self._to_page(item))
        return pages

    def _to_page(self, item: ContentPayload) -> Page:
        return Page(
            id=item.id,
            title=item.title,
            raw_body=item.body.storage.value,
            version=item.version.number,
            last_modified_at=ensure_utc(item.version.when),
            labels=tuple(label.name for label in item.metadata.labels.results),
            url=f"{self.base_url}{item.links.webui}" if item.links.webui else "",
        )
