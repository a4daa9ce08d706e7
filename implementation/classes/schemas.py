"""
Pydantic schemas for remote catalog records and trending entries.

TMDB list endpoints return far more keys than the discovery screens use, so
every model ignores unknown fields instead of failing validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


TMDB_POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"


def build_poster_url(poster_path: Optional[str]) -> Optional[str]:
    """Return the display URL for a TMDB poster path, or None when the movie has no poster."""
    if not poster_path:
        return None
    return f"{TMDB_POSTER_BASE_URL}{poster_path}"


# -----------------------------
#         CATALOG PAGES
# -----------------------------

class Movie(BaseModel):
    """One movie as it appears in a search or discover result page."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int
    title: str
    poster_path: Optional[str] = None
    vote_average: float = 0.0
    release_date: Optional[str] = None
    original_language: Optional[str] = None
    overview: str = ""

    @field_validator("release_date", mode="before")
    @classmethod
    def _blank_release_date_is_none(cls, value):
        # TMDB sends "" for unreleased titles
        return value or None

    @property
    def poster_url(self) -> Optional[str]:
        return build_poster_url(self.poster_path)

    @property
    def release_year(self) -> Optional[str]:
        if not self.release_date:
            return None
        return self.release_date.split("-")[0]


class CatalogPage(BaseModel):
    """A single page of catalog results together with the server's page count."""
    model_config = ConfigDict(extra="ignore")

    results: list[Movie] = Field(default_factory=list)
    total_pages: int = 0

    @field_validator("results", mode="before")
    @classmethod
    def _null_results_is_empty(cls, value):
        return value or []

    @field_validator("total_pages", mode="before")
    @classmethod
    def _null_total_pages_is_zero(cls, value):
        return value or 0


# -----------------------------
#         MOVIE DETAILS
# -----------------------------

class CastMember(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    character: Optional[str] = None
    profile_path: Optional[str] = None


class MovieDetails(Movie):
    """
    Richer single-movie record from the per-id detail endpoint.

    Built from a response requested with append_to_response=videos,credits,similar.
    Only the leading slice of cast and similar movies is kept.
    """
    runtime: Optional[int] = None
    genres: list[str] = Field(default_factory=list)
    cast: list[CastMember] = Field(default_factory=list)
    similar: list[Movie] = Field(default_factory=list)
    trailer_key: Optional[str] = None

    @classmethod
    def from_tmdb(cls, payload: dict, cast_limit: int = 6, similar_limit: int = 8) -> "MovieDetails":
        """Flatten the nested TMDB detail payload into a MovieDetails."""
        videos = (payload.get("videos") or {}).get("results") or []
        trailers = [
            video["key"] for video in videos
            if video.get("type") == "Trailer" and video.get("key")
        ]
        return cls.model_validate({
            **payload,
            "genres": [genre["name"] for genre in payload.get("genres") or []],
            "cast": ((payload.get("credits") or {}).get("cast") or [])[:cast_limit],
            "similar": ((payload.get("similar") or {}).get("results") or [])[:similar_limit],
            "trailer_key": trailers[0] if trailers else None,
        })


# -----------------------------
#           TRENDING
# -----------------------------

class TrendingEntry(BaseModel):
    """Aggregated search popularity for one catalog movie."""
    movie_id: int
    title: str
    poster_url: Optional[str] = None
    search_count: int = Field(..., ge=0)
    updated_at: datetime
