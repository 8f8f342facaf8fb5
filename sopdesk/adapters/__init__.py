"""Inbound and outbound adapters around the engine core."""
