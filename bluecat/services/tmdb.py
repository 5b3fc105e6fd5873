from typing import Optional, Dict

from bluecat.config.settings import settings
from bluecat.core.errors import TransportError
from bluecat.core.models import MediaKind, ResolvedMetadata
from bluecat.utils.cache import CacheKey, CacheManager, cache_manager
from bluecat.utils.http_client import HTTPClient, http_client
from bluecat.utils.logger import metadata_logger


# ===========================
# Response Parsing
# ===========================
def _parse_year(date: Optional[str]) -> Optional[int]:
    if not date:
        return None
    year = date.split("-")[0]
    return int(year) if year.isdigit() else None


def parse_find_response(data: Dict, media_kind_hint: Optional[MediaKind] = None) -> Optional[ResolvedMetadata]:
    movies = data.get("movie_results") or []
    shows = data.get("tv_results") or []

    order = [MediaKind.movie, MediaKind.series]
    if media_kind_hint == MediaKind.series:
        order.reverse()

    for kind in order:
        if kind == MediaKind.movie and movies:
            movie = movies[0]
            return ResolvedMetadata(
                title=movie.get("title") or "",
                alternate_title=movie.get("original_title") or "",
                year=_parse_year(movie.get("release_date")),
                media_kind=MediaKind.movie,
                tmdb_id=movie.get("id")
            )
        if kind == MediaKind.series and shows:
            show = shows[0]
            return ResolvedMetadata(
                title=show.get("name") or "",
                alternate_title=show.get("original_name") or "",
                year=_parse_year(show.get("first_air_date")),
                media_kind=MediaKind.series,
                tmdb_id=show.get("id")
            )

    return None


# ===========================
# TMDB Service Class
# ===========================
class TMDBService:

    BASE_URL = settings.TMDB_API_URL

    def __init__(self, cache: CacheManager = cache_manager, client: HTTPClient = http_client):
        self.cache = cache
        self.client = client

    async def _find(self, catalog_id: str, api_key: str, timeout: int) -> Dict:
        response = await self.client.get(
            f"{self.BASE_URL}/find/{catalog_id}",
            params={"api_key": api_key, "external_source": "imdb_id"},
            source="TMDB",
            timeout=timeout,
            max_retries=settings.METADATA_MAX_RETRIES
        )
        return response.json()

    async def resolve(self, catalog_id: str, api_key: str, media_kind_hint: Optional[MediaKind] = None) -> Optional[ResolvedMetadata]:
        if not api_key or not api_key.strip():
            metadata_logger.error("Empty TMDB key")
            return None

        cached = self.cache.get_metadata(catalog_id)
        if cached is not None:
            return cached

        metadata_logger.debug(f"Fetching TMDB: {catalog_id}")

        try:
            data = await self._find(catalog_id, api_key, settings.METADATA_TIMEOUT)
        except (TransportError, ValueError) as e:
            metadata_logger.error(f"TMDB metadata fetch error: {type(e).__name__}")
            return None

        metadata = parse_find_response(data, media_kind_hint)
        if metadata is None:
            metadata_logger.info(f"No TMDB metadata: {catalog_id}")
            return None

        metadata_logger.info(f"TMDB {metadata.media_kind.value}: {metadata.title} ({metadata.year or 'N/A'})")
        self.cache.set_metadata(catalog_id, metadata)

        if metadata.tmdb_id:
            self.cache.set(CacheKey.tmdb_id(catalog_id), metadata.tmdb_id)

        return metadata

    async def find_tmdb_id(self, catalog_id: str, media_kind: MediaKind, api_key: str) -> Optional[int]:
        if not catalog_id or not api_key:
            return None

        key = CacheKey.tmdb_id(catalog_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            data = await self._find(catalog_id, api_key, settings.METADATA_TIMEOUT)
        except (TransportError, ValueError) as e:
            metadata_logger.error(f"TMDB id lookup error: {type(e).__name__}")
            return None

        results = data.get("movie_results" if media_kind == MediaKind.movie else "tv_results") or []
        if not results or not results[0].get("id"):
            metadata_logger.debug(f"No TMDB id for {catalog_id} ({media_kind.value})")
            return None

        tmdb_id = results[0]["id"]
        self.cache.set(key, tmdb_id)
        return tmdb_id


# ===========================
# Singleton Instance
# ===========================
tmdb_service = TMDBService()
