"""
Enum classes for the discovery data model.

This module contains the Enum classes shared between the catalog client
and the discovery controllers.
"""

from enum import Enum


class FetchMode(Enum):
    """Which catalog endpoint a page fetch goes through."""
    SEARCH = "search"
    DISCOVER = "discover"

    @classmethod
    def for_query(cls, query: str) -> "FetchMode":
        """Non-empty queries search by title; an empty query browses by popularity."""
        return cls.SEARCH if query else cls.DISCOVER

    def __str__(self) -> str:
        return self.value
