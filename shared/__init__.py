"""Shared utilities used by every tool in the collection."""
