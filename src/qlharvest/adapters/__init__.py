"""Adapters for external services and tools."""
