import asyncio
import random
import re
import time
from typing import Dict, List, Optional

from bluecat.config.settings import settings
from bluecat.core.models import (
    DebridMagnetStatus, MediaQuery, ResolvedMetadata, SearchResult,
    StreamDescriptor, TorrentCandidate, UserConfig, VideoFile
)
from bluecat.debrid.alldebrid import alldebrid_service
from bluecat.debrid.base import BaseDebridService
from bluecat.scrapers.base import BaseSearcher, custom_keyword
from bluecat.scrapers.sharewood import sharewood_searcher
from bluecat.scrapers.ygg import ygg_searcher
from bluecat.services.ranking import (
    apply_preferences, deduplicate, merge_results, rank_candidates, select_candidates
)
from bluecat.services.tmdb import TMDBService, tmdb_service
from bluecat.services.unlock import UnlockService, unlock_service
from bluecat.utils.cache import CacheKey, CacheManager, cache_manager
from bluecat.utils.classifier import matches_episode
from bluecat.utils.filters import file_passes_allow_lists
from bluecat.utils.helpers import append_keyword, format_episode_tag, format_size, format_sources, parse_file_name
from bluecat.utils.logger import stream_logger

# ===========================
# Display Badges
# ===========================
RESOLUTION_BADGES = {
    "2160p": "🏆",
    "4k": "🏆",
    "1080p": "⭐",
    "720p": "✨",
}
DEFAULT_RESOLUTION_BADGE = "📺"

PACK_PATTERN = re.compile(r"season|saison|complete|integral", re.IGNORECASE)
SEASON_TAG = re.compile(r"\bs\d+", re.IGNORECASE)
EPISODE_TAG = re.compile(r"\bs\d+e\d+", re.IGNORECASE)


def is_pack(title: str) -> bool:
    if PACK_PATTERN.search(title):
        return True
    return bool(SEASON_TAG.search(title)) and not EPISODE_TAG.search(title)


# ===========================
# Stream Service Class
# ===========================
class StreamService:

    def __init__(
        self,
        metadata: TMDBService = tmdb_service,
        searchers: Optional[List[BaseSearcher]] = None,
        debrid: BaseDebridService = alldebrid_service,
        unlocker: UnlockService = unlock_service,
        cache: CacheManager = cache_manager
    ):
        self.metadata = metadata
        self.searchers = searchers if searchers is not None else [ygg_searcher, sharewood_searcher]
        self.debrid = debrid
        self.unlocker = unlocker
        self.cache = cache

    def _get_searcher(self, source_name: str) -> Optional[BaseSearcher]:
        for searcher in self.searchers:
            if searcher.SOURCE_NAME == source_name:
                return searcher
        return None

    async def _resolve_hash(self, candidate: TorrentCandidate) -> Optional[str]:
        searcher = self._get_searcher(candidate.source_name)
        if searcher is None:
            return candidate.content_hash
        return await searcher.resolve_hash(candidate)

    # ===========================
    # Search Fan-Out
    # ===========================
    async def search_sources(self, metadata: ResolvedMetadata, query: MediaQuery, config: UserConfig) -> SearchResult:
        # Cached per source and before allow-lists so every user shares the raw results
        search_title = append_keyword(metadata.title, custom_keyword(query.catalog_id, config))
        search_key = CacheKey.search(search_title, query.media_kind.value, query.season, query.episode, metadata.year)
        sources: Dict[str, SearchResult] = dict(self.cache.get(search_key) or {})

        enabled = [searcher for searcher in self.searchers if searcher.is_enabled(config)]
        missing = [searcher for searcher in enabled if searcher.SOURCE_NAME not in sources]

        if not missing:
            stream_logger.info(f"Search cache hit: {metadata.title}")
        else:
            start_time = time.time()
            results = await asyncio.gather(
                *(searcher.search(metadata, query, config) for searcher in missing),
                return_exceptions=True
            )

            for searcher, result in zip(missing, results):
                if isinstance(result, SearchResult):
                    if not result.is_empty:
                        sources[searcher.SOURCE_NAME] = result
                elif isinstance(result, Exception):
                    stream_logger.error(f"{searcher.SOURCE_NAME} search failed: {type(result).__name__}")

            stream_logger.info(f"Searched {len(missing)} source(s) in {time.time() - start_time:.1f}s")
            if sources:
                self.cache.set(search_key, sources)

        merged = merge_results(sources[s.SOURCE_NAME] for s in enabled if s.SOURCE_NAME in sources)
        prepared = apply_preferences(merged, config)
        stream_logger.info(f"{prepared.total}/{merged.total} candidates kept for this config")
        return prepared

    # ===========================
    # Stream Formatting
    # ===========================
    def format_stream(
        self,
        file: VideoFile,
        status: DebridMagnetStatus,
        metadata: ResolvedMetadata,
        query: MediaQuery,
        config: UserConfig,
        base_url: str,
        b64config: str
    ) -> StreamDescriptor:
        file_info = parse_file_name(file.name)
        torrent_info = parse_file_name(status.display_name)

        resolution = file_info["resolution"] if file_info["resolution"] != "?" else torrent_info["resolution"]
        codec = file_info["codec"] if file_info["codec"] != "?" else torrent_info["codec"]
        if file_info["language"] != "?":
            language, language_emoji = file_info["language"], file_info["language_emoji"]
        else:
            language, language_emoji = torrent_info["language"], torrent_info["language_emoji"]

        resolution_badge = RESOLUTION_BADGES.get(resolution.lower(), DEFAULT_RESOLUTION_BADGE)
        codec_badge = "🔥" if "265" in codec or "hevc" in codec.lower() else "🎬"

        episode_tag = format_episode_tag(query.season, query.episode) if query.is_series else ""
        heading = f"🎭 {metadata.title}" + (f" • {episode_tag}" if episode_tag else "")
        sources = format_sources(status.source_names or [status.source_name])

        display_name = f"😻 {settings.ADDON_NAME}"
        if config.names:
            display_name = f"{display_name} {random.choice(config.names)}"

        title = "\n".join([
            heading,
            f"📁 {file.name}",
            f"🏴 {sources} {language_emoji} {language} 🎨 {file_info['source']}",
            f"💾 {format_size(file.size_bytes)} {resolution_badge} {resolution} {codec_badge} {codec.upper()}",
        ])

        url = self.unlocker.build_url(base_url, b64config, file, status.source_name)
        return StreamDescriptor(name=display_name, title=title, url=url)

    async def build_streams(
        self,
        ready: List[DebridMagnetStatus],
        metadata: ResolvedMetadata,
        query: MediaQuery,
        config: UserConfig,
        base_url: str,
        b64config: str
    ) -> List[StreamDescriptor]:
        streams: List[StreamDescriptor] = []

        for status in ready:
            if len(streams) >= config.files_to_show:
                break

            files = await self.debrid.get_files(status.debrid_id, status.source_name, config.alldebrid_api_key)
            matching = [
                f for f in files
                if (not query.is_series or matches_episode(f.name, query.season, query.episode))
                and file_passes_allow_lists(f.name, status.display_name, config)
            ]

            if not matching:
                stream_logger.debug(f"No matching files in {status.display_name}")
                continue

            for file in matching:
                if len(streams) >= config.files_to_show:
                    break

                streams.append(self.format_stream(file, status, metadata, query, config, base_url, b64config))
                stream_logger.debug(f"Stream: {file.name} ({format_sources(status.source_names)})")

                if query.is_series and is_pack(status.display_name):
                    break

        return streams

    # ===========================
    # Main Pipeline
    # ===========================
    async def _resolve(self, query: MediaQuery, config: UserConfig, base_url: str, b64config: str) -> List[StreamDescriptor]:
        metadata = await self.metadata.resolve(query.catalog_id, config.tmdb_api_key, query.media_kind)
        if metadata is None:
            stream_logger.info(f"No metadata for {query.catalog_id}")
            return []

        results = await self.search_sources(metadata, query, config)
        if results.is_empty:
            stream_logger.info(f"No candidates for {metadata.title}")
            return []

        target = config.files_to_show * settings.CANDIDATE_MULTIPLIER
        selected = select_candidates(results, query.media_kind, config.series_priority, target)
        ranked = rank_candidates(selected, config)[:target]

        magnets = await deduplicate(ranked, self._resolve_hash, limit=target)
        if not magnets:
            stream_logger.info("No magnets to upload")
            return []

        statuses = await self.debrid.upload_magnets(magnets, config.alldebrid_api_key)
        ready = [s for s in statuses if s.ready and s.debrid_id]
        stream_logger.info(f"{len(ready)}/{len(statuses)} magnets ready")
        if not ready:
            return []

        return await self.build_streams(ready, metadata, query, config, base_url, b64config)

    async def resolve_streams(
        self,
        query: MediaQuery,
        config: UserConfig,
        base_url: str = "",
        b64config: str = ""
    ) -> List[StreamDescriptor]:
        start_time = time.time()
        try:
            streams = await self._resolve(query, config, base_url, b64config)
        except Exception as e:
            stream_logger.error(f"Stream resolution error: {type(e).__name__}")
            return []

        stream_logger.info(f"{len(streams)} stream(s) for {query.catalog_id} in {time.time() - start_time:.1f}s")
        return streams

    async def unlock_token(self, token: str, config: UserConfig) -> str:
        return await self.unlocker.unlock(token, config)

    def get_stats(self) -> Dict:
        return self.cache.stats()


# ===========================
# Singleton Instance
# ===========================
stream_service = StreamService()
