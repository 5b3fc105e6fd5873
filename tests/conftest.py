"""Shared fixtures for the BlueCat test suite."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from bluecat.core.models import (
    Category, MediaKind, MediaQuery, ResolvedMetadata, TorrentCandidate, UserConfig
)
from bluecat.utils.cache import CacheManager
from bluecat.utils.http_client import http_client


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_http_client() -> None:
    """Drop the shared AsyncClient so each test loop builds its own."""
    http_client._client = None


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> CacheManager:
    return CacheManager(timer=clock)


@pytest.fixture()
def config() -> UserConfig:
    return UserConfig(tmdb_api_key="tmdb-key", alldebrid_api_key="ad-key")


@pytest.fixture()
def movie_query() -> MediaQuery:
    return MediaQuery(catalog_id="tt0111161", media_kind=MediaKind.movie)


@pytest.fixture()
def series_query() -> MediaQuery:
    return MediaQuery(catalog_id="tt0903747", media_kind=MediaKind.series, season=1, episode=2)


@pytest.fixture()
def movie_metadata() -> ResolvedMetadata:
    return ResolvedMetadata(
        title="The Shawshank Redemption",
        alternate_title="The Shawshank Redemption",
        year=1994,
        media_kind=MediaKind.movie,
        tmdb_id=278,
    )


@pytest.fixture()
def series_metadata() -> ResolvedMetadata:
    return ResolvedMetadata(
        title="Breaking Bad",
        alternate_title="Breaking Bad",
        year=2008,
        media_kind=MediaKind.series,
        tmdb_id=1396,
    )


def make_candidate(
    title: str,
    *,
    content_hash: str | None = None,
    source_name: str = "YGG",
    category: Category = Category.movie,
    seeders: int = 10,
    size_gb: float = 4.0,
    external_id: str = "1",
    score: float = 0.0,
) -> TorrentCandidate:
    return TorrentCandidate(
        external_id=external_id,
        content_hash=content_hash,
        title=title,
        size_bytes=int(size_gb * 1024 ** 3),
        seeder_count=seeders,
        uploaded_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        source_name=source_name,
        category=category,
        score=score,
    )


@pytest.fixture()
def candidate_factory():
    return make_candidate
