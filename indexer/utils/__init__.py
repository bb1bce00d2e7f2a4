"""Indexer utilities."""
