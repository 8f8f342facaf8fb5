"""SOP discovery, indexing, search-ranking and freshness engine.

Crawls a Confluence space for Standard Operating Procedures, keeps an
in-memory index consistent with the live source, and assembles ranked,
confidence-scored procedure context for a customer-service assistant.
"""

__version__ = "1.0.0"
