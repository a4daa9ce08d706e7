"""
Fetch state variants and request descriptors for the discovery screen.

Exactly one FetchState is current at a time and it is always replaced
wholesale, never mutated, so observers can't see a half-applied result.
"""

from dataclasses import dataclass, field
from typing import Union

from implementation.classes.enums import FetchMode
from implementation.classes.schemas import Movie


GENERIC_FETCH_ERROR = "Error fetching movies. Please try again!"
DEFAULT_PAYLOAD_ERROR = "Failed to fetch!"


@dataclass(frozen=True, slots=True)
class Idle:
    pass


@dataclass(frozen=True, slots=True)
class Loading:
    pass


@dataclass(frozen=True, slots=True)
class Success:
    results: tuple[Movie, ...] = field(default_factory=tuple)
    total_pages: int = 0


@dataclass(frozen=True, slots=True)
class Failed:
    message: str = GENERIC_FETCH_ERROR


FetchState = Union[Idle, Loading, Success, Failed]


@dataclass(frozen=True, slots=True)
class FetchRequest:
    """One catalog fetch, tagged with the generation that issued it."""
    query: str
    page: int
    generation: int

    @property
    def mode(self) -> FetchMode:
        return FetchMode.for_query(self.query)
