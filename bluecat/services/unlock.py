from bluecat.core.errors import ErrorKind, TransportError
from bluecat.core.models import UnlockToken, UserConfig, VideoFile
from bluecat.debrid.alldebrid import alldebrid_service
from bluecat.debrid.base import BaseDebridService
from bluecat.utils.cache import CacheKey, CacheManager, cache_manager
from bluecat.utils.logger import stream_logger


# ===========================
# Unlock Service Class
# ===========================
class UnlockService:

    def __init__(self, debrid: BaseDebridService = alldebrid_service, cache: CacheManager = cache_manager):
        self.debrid = debrid
        self.cache = cache

    @staticmethod
    def build_token(file: VideoFile, source_name: str) -> str:
        return UnlockToken(
            file_name=file.name,
            debrid_link=file.debrid_link,
            source_name=source_name,
            size_bytes=file.size_bytes
        ).encode()

    def build_url(self, base_url: str, b64config: str, file: VideoFile, source_name: str) -> str:
        return f"{base_url.rstrip('/')}/{b64config}/unlock/{self.build_token(file, source_name)}"

    async def unlock(self, token: str, config: UserConfig) -> str:
        unlock_token = UnlockToken.decode(token)

        key = CacheKey.unlock(unlock_token.debrid_link)
        cached = self.cache.get(key)
        if cached is not None:
            stream_logger.debug(f"Unlock cache hit: {unlock_token.file_name}")
            return cached

        stream_logger.info(f"Unlocking: {unlock_token.file_name} ({unlock_token.source_name})")
        unlocked = await self.debrid.unlock_link(unlock_token.debrid_link, config.alldebrid_api_key)
        if not unlocked:
            raise TransportError(ErrorKind.UPSTREAM, f"Unlock failed: {unlock_token.file_name}")

        self.cache.set(key, unlocked)
        return unlocked


# ===========================
# Singleton Instance
# ===========================
unlock_service = UnlockService()
