"""Adapters for Confluence, snapshot persistence and event logging."""
