import time
from typing import Optional, Any, Dict, Callable

from cachetools import TTLCache

from bluecat.config.settings import settings
from bluecat.utils.logger import cache_logger

# ===========================
# Cache Categories
# ===========================
CACHE_TTLS = {
    "metadata": settings.METADATA_CACHE_TTL,
    "search": settings.SEARCH_CACHE_TTL,
    "availability": settings.AVAILABILITY_CACHE_TTL,
    "magnet": settings.MAGNET_CACHE_TTL,
    "hash": settings.HASH_CACHE_TTL,
    "ready_hash": settings.READY_HASH_CACHE_TTL,
    "files": settings.FILES_CACHE_TTL,
    "link": settings.LINK_CACHE_TTL,
    "unlock": settings.UNLOCK_RESULT_TTL,
}


# ===========================
# Cache Key Builder
# ===========================
class CacheKey:

    @staticmethod
    def build(category: str, *fields: Any) -> str:
        if category not in CACHE_TTLS:
            raise KeyError(f"Unknown cache category: {category}")

        parts = [category]
        for field in fields:
            parts.append("" if field is None else str(field).lower())
        return ":".join(parts)

    @staticmethod
    def metadata(catalog_id: str) -> str:
        return CacheKey.build("metadata", catalog_id)

    @staticmethod
    def search(title: str, media_kind: str, season: Optional[int], episode: Optional[int], year: Optional[int]) -> str:
        return CacheKey.build("search", title, media_kind, season, episode, year)

    @staticmethod
    def availability(hashes) -> str:
        return CacheKey.build("availability", ",".join(sorted(h.lower() for h in hashes)))

    @staticmethod
    def magnet(content_hash: str) -> str:
        return CacheKey.build("magnet", content_hash)

    @staticmethod
    def ready_hash(content_hash: str) -> str:
        return CacheKey.build("ready_hash", content_hash)

    @staticmethod
    def files(debrid_id: str) -> str:
        return CacheKey.build("files", debrid_id)

    @staticmethod
    def link(raw_link: str) -> str:
        return CacheKey.build("link", raw_link)

    @staticmethod
    def unlock(raw_link: str) -> str:
        return CacheKey.build("unlock", raw_link)

    @staticmethod
    def torrent_hash(source_name: str, external_id: str) -> str:
        return CacheKey.build("hash", source_name, external_id)

    @staticmethod
    def tmdb_id(catalog_id: str) -> str:
        return CacheKey.build("hash", "tmdb-id", catalog_id)


# ===========================
# Cache Manager Class
# ===========================
class CacheManager:

    def __init__(self, ttls: Optional[Dict[str, int]] = None, maxsize: Optional[int] = None, timer: Callable[[], float] = time.monotonic):
        ttls = ttls or CACHE_TTLS
        maxsize = maxsize or settings.CACHE_MAX_SIZE

        self._stores: Dict[str, TTLCache] = {
            category: TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
            for category, ttl in ttls.items()
        }
        self._stats: Dict[str, Dict[str, int]] = {
            category: {"hits": 0, "misses": 0}
            for category in self._stores
        }

    def _category_of(self, key: str) -> str:
        category = key.split(":", 1)[0]
        if category not in self._stores:
            raise KeyError(f"Unknown cache category: {category}")
        return category

    def get(self, key: str) -> Optional[Any]:
        category = self._category_of(key)
        value = self._stores[category].get(key)

        if value is None:
            self._stats[category]["misses"] += 1
            cache_logger.debug(f"Miss: {key}")
            return None

        self._stats[category]["hits"] += 1
        cache_logger.debug(f"Hit: {key}")
        return value

    def set(self, key: str, value: Any):
        if value is None:
            return
        category = self._category_of(key)
        self._stores[category][key] = value

    def delete(self, key: str):
        category = self._category_of(key)
        self._stores[category].pop(key, None)

    # ===========================
    # Typed Accessors
    # ===========================
    def get_metadata(self, catalog_id: str):
        return self.get(CacheKey.metadata(catalog_id))

    def set_metadata(self, catalog_id: str, metadata):
        self.set(CacheKey.metadata(catalog_id), metadata)

    def get_ready_hash(self, content_hash: str) -> Optional[bool]:
        return self.get(CacheKey.ready_hash(content_hash))

    def set_ready_hash(self, content_hash: str, ready: bool):
        self.set(CacheKey.ready_hash(content_hash), bool(ready))

    def get_magnet(self, content_hash: str) -> Optional[Dict]:
        return self.get(CacheKey.magnet(content_hash))

    def set_magnet(self, content_hash: str, entry: Dict):
        self.set(CacheKey.magnet(content_hash), entry)

    def get_files(self, debrid_id: str):
        return self.get(CacheKey.files(debrid_id))

    def set_files(self, debrid_id: str, files):
        self.set(CacheKey.files(debrid_id), files)

    def get_link(self, raw_link: str) -> Optional[str]:
        return self.get(CacheKey.link(raw_link))

    def set_link(self, raw_link: str, unlocked: str):
        self.set(CacheKey.link(raw_link), unlocked)

    # ===========================
    # Maintenance
    # ===========================
    def clear(self, category: str = "all"):
        if category == "all":
            for store in self._stores.values():
                store.clear()
            cache_logger.info("Cleared all caches")
            return

        if category not in self._stores:
            raise KeyError(f"Unknown cache category: {category}")
        self._stores[category].clear()
        cache_logger.info(f"Cleared cache: {category}")

    def stats(self) -> Dict[str, Dict[str, int]]:
        for store in self._stores.values():
            store.expire()

        return {
            category: {
                "size": store.currsize,
                "hits": self._stats[category]["hits"],
                "misses": self._stats[category]["misses"],
            }
            for category, store in self._stores.items()
        }


# ===========================
# Global Cache Instance
# ===========================
cache_manager = CacheManager()
