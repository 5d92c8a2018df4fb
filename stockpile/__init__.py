"""Stockpile: persistence core for a household-supplies tracker.

Stores several inventory sets and shared settings in a single versioned
document, migrates older documents forward on load, and exchanges data with
export files.
"""

from .repository import LoadFailure, LoadResult, Repository

__all__ = ["LoadFailure", "LoadResult", "Repository"]
