"""Tests for the stream resolution pipeline."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from bluecat.core.models import (
    Category, DebridMagnetStatus, MediaQuery, ResolvedMetadata, SearchResult, UserConfig, VideoFile
)
from bluecat.services.stream import StreamService, is_pack
from bluecat.services.unlock import UnlockService
from bluecat.utils.cache import CacheManager


def _searcher(name: str, result: SearchResult | Exception) -> MagicMock:
    searcher = MagicMock()
    searcher.SOURCE_NAME = name
    if isinstance(result, Exception):
        searcher.search = AsyncMock(side_effect=result)
    else:
        searcher.search = AsyncMock(return_value=result)
    searcher.resolve_hash = AsyncMock(return_value=None)
    return searcher


def _metadata_service(metadata: ResolvedMetadata | None) -> MagicMock:
    service = MagicMock()
    service.resolve = AsyncMock(return_value=metadata)
    return service


def _debrid(statuses: list[DebridMagnetStatus], files: list[VideoFile]) -> MagicMock:
    debrid = MagicMock()
    debrid.upload_magnets = AsyncMock(return_value=statuses)
    debrid.get_files = AsyncMock(return_value=files)
    debrid.unlock_link = AsyncMock(return_value="https://cdn.example/file.mkv")
    return debrid


def _service(metadata, searchers, debrid, cache: CacheManager) -> StreamService:
    return StreamService(
        metadata=metadata,
        searchers=searchers,
        debrid=debrid,
        unlocker=UnlockService(debrid=debrid, cache=cache),
        cache=cache,
    )


def _single(candidate) -> SearchResult:
    result = SearchResult.empty()
    result.add(candidate)
    return result


class TestIsPack:
    def test_season_tag_without_episode(self) -> None:
        assert is_pack("Show.S01.1080p")

    def test_single_episode(self) -> None:
        assert not is_pack("Show.S01E02.1080p")

    def test_complete_keyword(self) -> None:
        assert is_pack("Show.Integrale.MULTI")


class TestResolveStreams:
    @pytest.mark.asyncio()
    async def test_no_metadata_skips_searchers(self, cache: CacheManager, config: UserConfig, movie_query: MediaQuery) -> None:
        searcher = _searcher("YGG", SearchResult.empty())
        debrid = _debrid([], [])
        service = _service(_metadata_service(None), [searcher], debrid, cache)

        assert await service.resolve_streams(movie_query, config) == []
        searcher.search.assert_not_awaited()
        debrid.upload_magnets.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_episode_from_two_sources(
        self,
        cache: CacheManager,
        config: UserConfig,
        series_query: MediaQuery,
        series_metadata: ResolvedMetadata,
        candidate_factory,
    ) -> None:
        ygg = _searcher("YGG", _single(candidate_factory(
            "Breaking.Bad.S01E02.1080p", content_hash="abc123", category=Category.episode
        )))
        sharewood = _searcher("SW", _single(candidate_factory(
            "Breaking Bad S01E02 1080p", content_hash="abc123", source_name="SW", category=Category.episode
        )))
        status = DebridMagnetStatus(
            content_hash="abc123",
            debrid_id="11",
            display_name="Breaking.Bad.S01E02.1080p",
            size_bytes=2 * 1024 ** 3,
            ready=True,
            source_name="YGG",
            source_names=["YGG", "SW"],
        )
        files = [
            VideoFile(name="Breaking.Bad.S01E02.1080p.mkv", size_bytes=2 * 1024 ** 3, debrid_link="https://alldebrid.com/f/1"),
        ]
        debrid = _debrid([status], files)
        service = _service(_metadata_service(series_metadata), [ygg, sharewood], debrid, cache)

        streams = await service.resolve_streams(series_query, config, base_url="http://localhost:7000", b64config="cfg")

        magnets = debrid.upload_magnets.await_args.args[0]
        assert len(magnets) == 1
        assert magnets[0].source_names == ["YGG", "SW"]

        assert len(streams) == 1
        assert "YGG + SW" in streams[0].title
        assert "S01E02" in streams[0].title
        assert streams[0].url.startswith("http://localhost:7000/cfg/unlock/")
        debrid.get_files.assert_awaited_once_with("11", "YGG", "ad-key")

    @pytest.mark.asyncio()
    async def test_search_results_are_cached(
        self,
        cache: CacheManager,
        config: UserConfig,
        movie_query: MediaQuery,
        movie_metadata: ResolvedMetadata,
        candidate_factory,
    ) -> None:
        searcher = _searcher("YGG", _single(candidate_factory("Shawshank.1994.1080p", content_hash="h1")))
        service = _service(_metadata_service(movie_metadata), [searcher], _debrid([], []), cache)

        await service.resolve_streams(movie_query, config)
        await service.resolve_streams(movie_query, config)

        searcher.search.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_cached_search_is_filtered_per_config(
        self,
        cache: CacheManager,
        movie_query: MediaQuery,
        movie_metadata: ResolvedMetadata,
        candidate_factory,
    ) -> None:
        result = SearchResult.empty()
        result.add(candidate_factory("Shawshank.1994.2160p.h265", content_hash="uhd"))
        result.add(candidate_factory("Shawshank.1994.720p.h264", content_hash="hd"))
        searcher = _searcher("YGG", result)
        debrid = _debrid([], [])
        service = _service(_metadata_service(movie_metadata), [searcher], debrid, cache)

        uhd_user = UserConfig(tmdb_api_key="t", alldebrid_api_key="a", resolutions=["2160p"])
        hd_user = UserConfig(tmdb_api_key="t", alldebrid_api_key="b", resolutions=["720p"])
        await service.resolve_streams(movie_query, uhd_user)
        await service.resolve_streams(movie_query, hd_user)

        searcher.search.assert_awaited_once()
        first, second = debrid.upload_magnets.await_args_list
        assert [m.content_hash for m in first.args[0]] == ["uhd"]
        assert [m.content_hash for m in second.args[0]] == ["hd"]
        assert all(c.score == 0.0 for c in result.movie)

    @pytest.mark.asyncio()
    async def test_source_enabled_later_is_searched(
        self,
        cache: CacheManager,
        config: UserConfig,
        movie_query: MediaQuery,
        movie_metadata: ResolvedMetadata,
        candidate_factory,
    ) -> None:
        ygg = _searcher("YGG", _single(candidate_factory("Shawshank.1994.1080p", content_hash="h1")))
        sharewood = _searcher("SW", _single(candidate_factory("Shawshank 1994 720p", content_hash="h2", source_name="SW")))
        sharewood.is_enabled = MagicMock(side_effect=lambda c: bool(c.sharewood_passkey))
        debrid = _debrid([], [])
        service = _service(_metadata_service(movie_metadata), [ygg, sharewood], debrid, cache)

        await service.resolve_streams(movie_query, config)
        await service.resolve_streams(movie_query, config.model_copy(update={"sharewood_passkey": "pk"}))

        ygg.search.assert_awaited_once()
        sharewood.search.assert_awaited_once()
        first, second = debrid.upload_magnets.await_args_list
        assert [m.content_hash for m in first.args[0]] == ["h1"]
        assert sorted(m.content_hash for m in second.args[0]) == ["h1", "h2"]

    @pytest.mark.asyncio()
    async def test_failing_searcher_does_not_block_others(
        self,
        cache: CacheManager,
        config: UserConfig,
        movie_query: MediaQuery,
        movie_metadata: ResolvedMetadata,
        candidate_factory,
    ) -> None:
        broken = _searcher("SW", RuntimeError("boom"))
        working = _searcher("YGG", _single(candidate_factory("Shawshank.1994.1080p", content_hash="h1")))
        debrid = _debrid([], [])
        service = _service(_metadata_service(movie_metadata), [broken, working], debrid, cache)

        await service.resolve_streams(movie_query, config)

        magnets = debrid.upload_magnets.await_args.args[0]
        assert [m.content_hash for m in magnets] == ["h1"]

    @pytest.mark.asyncio()
    async def test_stream_count_capped(
        self,
        cache: CacheManager,
        config: UserConfig,
        movie_query: MediaQuery,
        movie_metadata: ResolvedMetadata,
        candidate_factory,
    ) -> None:
        searcher = _searcher("YGG", _single(candidate_factory("Shawshank.1994.1080p", content_hash="h1")))
        status = DebridMagnetStatus(content_hash="h1", debrid_id="1", display_name="Shawshank", ready=True, source_name="YGG", source_names=["YGG"])
        files = [
            VideoFile(name=f"Shawshank.part{i}.mkv", size_bytes=1, debrid_link=f"https://alldebrid.com/f/{i}")
            for i in range(4)
        ]
        service = _service(_metadata_service(movie_metadata), [searcher], _debrid([status], files), cache)

        streams = await service.resolve_streams(movie_query, config)
        assert len(streams) == config.files_to_show

    @pytest.mark.asyncio()
    async def test_unready_magnets_produce_no_streams(
        self,
        cache: CacheManager,
        config: UserConfig,
        movie_query: MediaQuery,
        movie_metadata: ResolvedMetadata,
        candidate_factory,
    ) -> None:
        searcher = _searcher("YGG", _single(candidate_factory("Shawshank.1994.1080p", content_hash="h1")))
        status = DebridMagnetStatus(content_hash="h1", debrid_id="1", ready=False, source_name="YGG")
        debrid = _debrid([status], [])
        service = _service(_metadata_service(movie_metadata), [searcher], debrid, cache)

        assert await service.resolve_streams(movie_query, config) == []
        debrid.get_files.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_unexpected_error_returns_empty(self, cache: CacheManager, config: UserConfig, movie_query: MediaQuery) -> None:
        metadata = MagicMock()
        metadata.resolve = AsyncMock(side_effect=RuntimeError("boom"))
        service = _service(metadata, [], _debrid([], []), cache)

        assert await service.resolve_streams(movie_query, config) == []


class TestUnlockToken:
    @pytest.mark.asyncio()
    async def test_delegates_to_unlocker(self, cache: CacheManager, config: UserConfig) -> None:
        debrid = _debrid([], [])
        service = _service(_metadata_service(None), [], debrid, cache)
        token = service.unlocker.build_token(
            VideoFile(name="a.mkv", debrid_link="https://alldebrid.com/f/1"), "YGG"
        )

        assert await service.unlock_token(token, config) == "https://cdn.example/file.mkv"
