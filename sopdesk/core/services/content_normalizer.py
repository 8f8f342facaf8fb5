"""Markup cleaning, section splitting and keyword extraction.

Confluence stores pages in an XHTML "storage format" that mixes ordinary HTML
with ``ac:`` macro elements. The normalizer turns that into plain text while
keeping line structure, so headings and list items survive as lines the
section splitter can recognize.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass

from bs4 import BeautifulSoup

from ...common.utils import clean_text
from ..domain import Section

# Confluence macro wrappers whose content is configuration, not prose
MACRO_TAGS = ["ac:structured-macro", "ac:parameter", "ac:rich-text-body"]

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
BLOCK_TAGS = ["p", "div", "tr", "table", "blockquote", "pre", "ul", "ol"]

STOP_WORDS = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all", "can", "had",
        "her", "was", "one", "our", "out", "day", "get", "has", "him", "his",
        "how", "its", "may", "new", "now", "old", "see", "two", "who", "boy",
        "did", "will", "this", "that", "they", "them", "with", "have", "from",
        "when", "where", "what", "why", "which", "while", "during",
        "before", "after", "above", "below", "between", "through", "under",
    }
)  # fmt: skip

MAX_KEYWORDS = 10
MIN_KEYWORD_LENGTH = 4
MIN_SECTION_LENGTH = 10
FALLBACK_SECTION_TITLE = "Main Content"

# Ties at the same offset go to the longer span.
HEADER_PATTERNS = [
    re.compile(r"^#+[ \t]+(.+)$", re.MULTILINE),  # Markdown headers
    re.compile(r"^(.+)\n[=-]{3,}[ \t]*$", re.MULTILINE),  # Underlined headers
    re.compile(r"^\d+\.[ \t]+(.+)$", re.MULTILINE),  # Numbered headers
    re.compile(r"^[A-Z][A-Z \t]+:?[ \t]*$", re.MULTILINE),  # ALL CAPS headers
]

_TAG_FRAGMENT = re.compile(r"<[^>]*>")
_INLINE_WHITESPACE = re.compile(r"[^\S\n]+")
_BLANK_LINES = re.compile(r"\n{3,}")
_NON_WORD = re.compile(r"[^\w\s]")


@dataclass(frozen=True)
class _HeaderMatch:
    title: str
    start: int
    end: int


def tokenize(text: str) -> list[str]:
    """Lowercase, replace punctuation with spaces and split on whitespace."""
    return _NON_WORD.sub(" ", text.lower()).split()


class ContentNormalizer:
    """Cleans source markup into sectioned plain text."""

    def normalize(self, raw_markup: str) -> str:
        """Convert source markup to plain text.

        Macro blocks are removed, headings become markdown-style ``#`` lines,
        list items become ``- `` lines, entities are decoded and whitespace is
        collapsed (at most one blank line in a row). The result never contains
        ``<`` or ``>``.

        Args:
            raw_markup: Page body in HTML / Confluence storage format.

        Returns:
            Normalized plain text.
        """
        if not raw_markup:
            return ""

        soup = BeautifulSoup(clean_text(raw_markup), "html.parser")

        for tag in soup.find_all(MACRO_TAGS):
            # Nested macros go with their parent
            if not tag.decomposed:
                tag.decompose()

        for br in soup.find_all("br"):
            br.replace_with("\n")
        for heading in soup.find_all(HEADING_TAGS):
            level = int(heading.name[1])
            heading_text = heading.get_text(" ", strip=True)
            heading.replace_with(f"\n\n{'#' * level} {heading_text}\n" if heading_text else "\n")
        for item in soup.find_all("li"):
            item.insert_before("\n- ")
        for block in soup.find_all(BLOCK_TAGS):
            block.insert_before("\n")
            block.insert_after("\n")

        text = soup.get_text()
        # Escaped markup in the source decodes to literal tags; drop those too
        text = _TAG_FRAGMENT.sub(" ", text).replace("<", " ").replace(">", " ")

        lines = [_INLINE_WHITESPACE.sub(" ", line).strip() for line in text.split("\n")]
        text = "\n".join(lines)
        text = _BLANK_LINES.sub("\n\n", text)
        return text.strip()

    def split_sections(self, clean_content: str) -> list[Section]:
        """Split normalized text into titled sections.

        Every header pattern is scanned, matches are ordered by offset, and
        the text between consecutive headers becomes the earlier header's
        section. Sections under 10 characters are dropped. When nothing
        survives, a single "Main Content" section covers the whole text.

        Args:
            clean_content: Output of :meth:`normalize`.

        Returns:
            Non-empty list of sections, ``order_index`` counting from 0.
        """
        headers = self._find_headers(clean_content)

        sections: list[Section] = []
        for i, header in enumerate(headers):
            end = headers[i + 1].start if i + 1 < len(headers) else len(clean_content)
            body = clean_content[header.end : end].strip()
            if len(body) <= MIN_SECTION_LENGTH:
                continue
            sections.append(
                Section(
                    title=header.title,
                    content=body,
                    keywords=tuple(self.extract_keywords(body)),
                    order_index=len(sections),
                )
            )

        if not sections:
            sections.append(
                Section(
                    title=FALLBACK_SECTION_TITLE,
                    content=clean_content.strip(),
                    keywords=tuple(self.extract_keywords(clean_content)),
                    order_index=0,
                )
            )

        return sections

    def extract_keywords(self, text: str, max_count: int = MAX_KEYWORDS) -> list[str]:
        """Return the most frequent meaningful terms in ``text``.

        Tokens of three characters or fewer and stop words are skipped. Ties
        keep first-occurrence order.
        """
        words = [
            word
            for word in tokenize(text)
            if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS
        ]
        return [word for word, _ in Counter(words).most_common(max_count)]

    @staticmethod
    def _find_headers(text: str) -> list[_HeaderMatch]:
        matches = []
        for pattern in HEADER_PATTERNS:
            for match in pattern.finditer(text):
                title = (match.group(1) if match.groups() else match.group(0)).strip()
                matches.append(_HeaderMatch(title.rstrip(":").strip(), match.start(), match.end()))

        # Same line hit by two patterns: keep the longer span
        matches.sort(key=lambda m: (m.start, -m.end))
        headers: list[_HeaderMatch] = []
        for match in matches:
            if headers and match.start < headers[-1].end:
                continue
            headers.append(match)
        return headers
