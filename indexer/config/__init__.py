"""Indexer configuration package."""
