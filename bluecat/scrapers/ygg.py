from typing import Any, Dict, List, Optional

from bluecat.config.settings import settings
from bluecat.core.errors import TransportError
from bluecat.core.models import MediaKind, MediaQuery, ResolvedMetadata, TorrentCandidate, UserConfig
from bluecat.scrapers.base import BaseSearcher
from bluecat.services.tmdb import TMDBService, tmdb_service
from bluecat.utils.cache import CacheKey, CacheManager, cache_manager
from bluecat.utils.http_client import HTTPClient, http_client
from bluecat.utils.logger import scraper_logger

# ===========================
# YGG Categories
# ===========================
MOVIE_CATEGORIES = [2178, 2181, 2183]
SERIES_CATEGORIES = [2179, 2181, 2182, 2184]


# ===========================
# YGG Searcher Class
# ===========================
class YggSearcher(BaseSearcher):

    SOURCE_NAME = "YGG"
    BASE_URL = settings.YGG_API_URL

    def __init__(self, cache: CacheManager = cache_manager, client: HTTPClient = http_client, tmdb: TMDBService = tmdb_service):
        self.cache = cache
        self.client = client
        self.tmdb = tmdb

    async def fetch_by_id(self, metadata: ResolvedMetadata, query: MediaQuery, config: UserConfig) -> List[Dict[str, Any]]:
        tmdb_id = metadata.tmdb_id or await self.tmdb.find_tmdb_id(query.catalog_id, query.media_kind, config.tmdb_api_key)
        if not tmdb_id:
            return []

        params = {
            "page": 1,
            "order_by": "downloads",
            "per_page": 50,
            "type": "movie" if query.media_kind == MediaKind.movie else "tv",
            "tmdb_id": tmdb_id,
        }

        try:
            response = await self.client.get(
                f"{self.BASE_URL}/torrents",
                params=params,
                source=self.SOURCE_NAME,
                timeout=settings.SEARCH_TIMEOUT,
                max_retries=2
            )
            items = response.json()
        except (TransportError, ValueError) as e:
            scraper_logger.error(f"[YGG] TMDB id search error: {type(e).__name__}")
            return []

        if not isinstance(items, list):
            return []
        if not items:
            scraper_logger.debug(f"[YGG] No results for TMDB id {tmdb_id}, falling back to text")
        return items

    async def fetch_by_text(self, search_title: str, query: MediaQuery, config: UserConfig) -> List[Dict[str, Any]]:
        categories = MOVIE_CATEGORIES if query.media_kind == MediaKind.movie else SERIES_CATEGORIES
        params = [
            ("q", search_title),
            ("page", 1),
            ("per_page", 25),
            ("order_by", "downloads"),
        ] + [("category_id", category) for category in categories]

        scraper_logger.debug(f"[YGG] Text search: '{search_title}'")
        response = await self.client.get(
            f"{self.BASE_URL}/torrents",
            params=params,
            source=self.SOURCE_NAME,
            timeout=settings.SEARCH_TIMEOUT,
            max_retries=settings.HTTP_MAX_RETRIES
        )
        items = response.json()
        return items if isinstance(items, list) else []

    def to_candidate(self, item: Dict[str, Any], query: MediaQuery) -> Optional[TorrentCandidate]:
        title = item.get("title")
        if not title or item.get("id") is None:
            return None

        category = self.classify_item(title, query)
        if category is None:
            return None

        return TorrentCandidate(
            external_id=str(item["id"]),
            content_hash=(item.get("hash") or "").lower() or None,
            title=title,
            size_bytes=self.parse_int(item.get("size")),
            seeder_count=self.parse_int(item.get("seeders")),
            uploaded_at=self.parse_datetime(item.get("uploaded_at") or item.get("created_at")),
            source_name=self.SOURCE_NAME,
            category=category
        )

    async def resolve_hash(self, candidate: TorrentCandidate) -> Optional[str]:
        if candidate.content_hash:
            return candidate.content_hash

        key = CacheKey.torrent_hash(self.SOURCE_NAME, candidate.external_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            response = await self.client.get(
                f"{self.BASE_URL}/torrent/{candidate.external_id}",
                source=self.SOURCE_NAME,
                timeout=settings.METADATA_TIMEOUT,
                max_retries=2
            )
            content_hash = response.json().get("hash")
        except (TransportError, ValueError, AttributeError) as e:
            scraper_logger.error(f"[YGG] Hash lookup error for {candidate.external_id}: {type(e).__name__}")
            return None

        if not content_hash:
            return None

        content_hash = content_hash.lower()
        self.cache.set(key, content_hash)
        return content_hash


# ===========================
# Singleton Instance
# ===========================
ygg_searcher = YggSearcher()
