import asyncio
from typing import Any, Dict, List, Optional

from bluecat.config.settings import settings
from bluecat.core.errors import ErrorKind, TransportError
from bluecat.core.models import DebridMagnetStatus, Magnet, VideoFile
from bluecat.debrid.base import BaseDebridService
from bluecat.utils.cache import CacheKey, CacheManager, cache_manager
from bluecat.utils.http_client import HTTPClient, compute_backoff, http_client
from bluecat.utils.logger import debrid_logger
from bluecat.utils.rate_limit import (
    CircuitBreaker, RateLimiter, debrid_circuit_breaker, debrid_rate_limiter
)


# ===========================
# AllDebrid Service Class
# ===========================
class AllDebridService(BaseDebridService):

    def __init__(
        self,
        cache: CacheManager = cache_manager,
        rate_limiter: RateLimiter = debrid_rate_limiter,
        circuit_breaker: CircuitBreaker = debrid_circuit_breaker,
        client: HTTPClient = http_client,
        cleanup_delay: Optional[float] = None
    ):
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.circuit_breaker = circuit_breaker
        self.client = client
        self.cleanup_delay = settings.MAGNET_CLEANUP_DELAY if cleanup_delay is None else cleanup_delay
        self._cleanup_tasks: Dict[str, asyncio.Task] = {}

    # ===========================
    # Guarded Request
    # ===========================
    async def _request(
        self,
        path: str,
        api_key: str,
        data: Optional[Dict[str, Any]] = None,
        timeout: Optional[int] = None,
        base_url: Optional[str] = None,
        context: str = "api"
    ) -> Dict[str, Any]:
        url = f"{base_url or settings.ALLDEBRID_API_URL}/{path}"
        headers = {"Authorization": f"Bearer {api_key}"}
        timeout = timeout or settings.DEBRID_TIMEOUT

        async def send():
            return await self.client.post(
                url,
                data=data or {},
                headers=headers,
                params={"agent": settings.ADDON_NAME},
                source="ALLDEBRID",
                timeout=timeout,
                max_retries=0
            )

        attempt = 0
        while True:
            try:
                response = await self.rate_limiter.execute(lambda: self.circuit_breaker.call(send))
                break
            except TransportError as e:
                if not e.retryable or attempt >= settings.HTTP_MAX_RETRIES:
                    raise
                delay = compute_backoff(attempt)
                debrid_logger.debug(f"{context}: {e.kind.value} - Retry {attempt + 1}/{settings.HTTP_MAX_RETRIES}")
                attempt += 1
                await asyncio.sleep(delay)

        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError(ErrorKind.UPSTREAM, f"{context}: invalid JSON") from e

        if payload.get("status") != "success":
            error_code = (payload.get("error") or {}).get("code", "UNKNOWN")
            debrid_logger.error(f"{context}: {error_code}")
            raise TransportError(ErrorKind.UPSTREAM, f"{context}: {error_code}")

        return payload.get("data") or {}

    # ===========================
    # Availability
    # ===========================
    async def check_availability(self, hashes: List[str]) -> Dict[str, Optional[bool]]:
        results: Dict[str, Optional[bool]] = {}
        remaining = []

        for content_hash in hashes:
            ready = self.cache.get_ready_hash(content_hash)
            if ready is not None:
                results[content_hash] = ready
            else:
                remaining.append(content_hash)

        ready_hits = len(results)
        if not remaining:
            debrid_logger.debug(f"Ready hash cache: {ready_hits}/{len(hashes)} hits")
            return results

        availability_key = CacheKey.availability(remaining)
        cached = self.cache.get(availability_key)
        if cached is not None:
            results.update(cached)
        else:
            remaining_results = {}
            for content_hash in remaining:
                entry = self.cache.get_magnet(content_hash)
                if entry is not None and "ready" in entry:
                    ready = bool(entry["ready"])
                    remaining_results[content_hash] = ready
                    self.cache.set_ready_hash(content_hash, ready)
                else:
                    remaining_results[content_hash] = None
            self.cache.set(availability_key, remaining_results)
            results.update(remaining_results)

        instant = sum(1 for ready in results.values() if ready)
        debrid_logger.info(f"Availability: {instant}/{len(hashes)} ready ({ready_hits} from ready cache)")
        return results

    # ===========================
    # Upload
    # ===========================
    async def upload_magnets(self, magnets: List[Magnet], api_key: str) -> List[DebridMagnetStatus]:
        if not magnets:
            return []

        self.schedule_cleanup(api_key)

        availability = await self.check_availability([m.content_hash for m in magnets])

        ready_statuses: List[DebridMagnetStatus] = []
        need_upload: List[Magnet] = []
        for magnet in magnets:
            # A ready hash is only served from cache while its magnet id is still known
            entry = self.cache.get_magnet(magnet.content_hash) or {}
            if availability.get(magnet.content_hash) and entry.get("id"):
                ready_statuses.append(DebridMagnetStatus(
                    content_hash=magnet.content_hash,
                    debrid_id=entry.get("id"),
                    display_name=entry.get("name") or magnet.title,
                    size_bytes=entry.get("size") or magnet.size_bytes or 0,
                    ready=True,
                    source_name=magnet.source_name,
                    source_names=list(magnet.source_names)
                ))
            else:
                need_upload.append(magnet)

        debrid_logger.info(f"Upload plan: {len(ready_statuses)} ready from cache, {len(need_upload)} to upload")
        if not need_upload:
            return ready_statuses

        try:
            data = await self._request(
                "magnet/upload",
                api_key,
                data={"magnets[]": [m.content_hash for m in need_upload]},
                timeout=settings.DEBRID_TIMEOUT,
                context="magnet-upload"
            )
        except TransportError as e:
            debrid_logger.error(f"Upload failed: {e.kind.value}, returning {len(ready_statuses)} ready")
            return ready_statuses

        by_hash = {m.content_hash: m for m in need_upload}
        uploaded: List[DebridMagnetStatus] = []

        for item in data.get("magnets", []):
            content_hash = (item.get("hash") or item.get("magnet") or "").lower()
            if item.get("error") or not item.get("id") or not content_hash:
                debrid_logger.debug(f"Skipping invalid magnet: {content_hash or 'unknown'}")
                continue

            ready = bool(item.get("ready"))
            self.cache.set_magnet(content_hash, {
                "status": "processed",
                "id": str(item["id"]),
                "ready": ready,
                "name": item.get("name"),
                "size": item.get("size"),
            })
            self.cache.set_ready_hash(content_hash, ready)

            source = by_hash.get(content_hash)
            uploaded.append(DebridMagnetStatus(
                content_hash=content_hash,
                debrid_id=str(item["id"]),
                display_name=item.get("name") or (source.title if source else ""),
                size_bytes=item.get("size") or 0,
                ready=ready,
                source_name=source.source_name if source else "Unknown",
                source_names=list(source.source_names) if source else []
            ))

        debrid_logger.info(f"Upload complete: {len(ready_statuses)} cached + {len(uploaded)} uploaded")
        return ready_statuses + uploaded

    # ===========================
    # Files
    # ===========================
    def extract_videos(self, entries: List[Dict[str, Any]], source_name: str) -> List[VideoFile]:
        videos = []
        for entry in entries:
            if isinstance(entry.get("e"), list):
                videos.extend(self.extract_videos(entry["e"], source_name))
            elif entry.get("n") and entry.get("l") and self.is_video(entry["n"]):
                videos.append(VideoFile(
                    name=entry["n"],
                    size_bytes=entry.get("s") or 0,
                    debrid_link=entry["l"],
                    source_name=source_name
                ))
        return videos

    async def get_files(self, debrid_id: str, source_name: str, api_key: str) -> List[VideoFile]:
        cached = self.cache.get_files(debrid_id)
        if cached is not None:
            return [f.model_copy(update={"source_name": source_name}) for f in cached]

        try:
            data = await self._request(
                "magnet/files",
                api_key,
                data={"id[]": [debrid_id]},
                context="magnet-files"
            )
        except TransportError as e:
            debrid_logger.error(f"Files error for {debrid_id}: {e.kind.value}")
            return []

        magnets = data.get("magnets") or []
        if not magnets:
            return []

        videos = self.extract_videos(magnets[0].get("files") or [], source_name)
        self.cache.set_files(debrid_id, videos)
        debrid_logger.info(f"{len(videos)} video(s) for magnet {debrid_id}")
        return videos

    # ===========================
    # Unlock
    # ===========================
    async def unlock_link(self, raw_link: str, api_key: str) -> Optional[str]:
        cached = self.cache.get_link(raw_link)
        if cached is not None:
            return cached

        try:
            data = await self._request(
                "link/unlock",
                api_key,
                data={"link": raw_link},
                timeout=settings.UNLOCK_TIMEOUT,
                context="link-unlock"
            )
        except TransportError as e:
            debrid_logger.error(f"Unlock error: {e.kind.value}")
            return None

        unlocked = data.get("link")
        if not unlocked:
            return None

        self.cache.set_link(raw_link, unlocked)
        return unlocked

    # ===========================
    # Cleanup
    # ===========================
    async def cleanup_old_magnets(self, api_key: str):
        try:
            data = await self._request(
                "magnet/status",
                api_key,
                base_url=settings.ALLDEBRID_STATUS_URL,
                timeout=settings.UNLOCK_TIMEOUT,
                context="magnet-status"
            )
            magnets = data.get("magnets") or []
            debrid_logger.debug(f"Active magnets: {len(magnets)}")

            if len(magnets) <= settings.MAGNET_CLEANUP_MAX_COUNT:
                return

            oldest = sorted(magnets, key=lambda m: m.get("uploadDate") or 0)[:settings.MAGNET_CLEANUP_DELETE_COUNT]
            await self._request(
                "magnet/delete",
                api_key,
                data={"ids[]": [str(m["id"]) for m in oldest if m.get("id") is not None]},
                timeout=settings.UNLOCK_TIMEOUT,
                context="magnet-delete"
            )
            debrid_logger.info(f"Deleted {len(oldest)} oldest magnets (total was {len(magnets)})")
        except TransportError as e:
            debrid_logger.error(f"Cleanup error: {e.kind.value}")

    def schedule_cleanup(self, api_key: str):
        # Debounced per account: a new upload only postpones that account's cleanup
        pending = self._cleanup_tasks.get(api_key)
        if pending and not pending.done():
            pending.cancel()

        async def delayed_cleanup():
            await asyncio.sleep(self.cleanup_delay)
            await self.cleanup_old_magnets(api_key)

        task = asyncio.create_task(delayed_cleanup())
        self._cleanup_tasks[api_key] = task

        def forget(done: asyncio.Task):
            if self._cleanup_tasks.get(api_key) is done:
                del self._cleanup_tasks[api_key]

        task.add_done_callback(forget)

    async def cancel_cleanup(self):
        tasks = list(self._cleanup_tasks.values())
        self._cleanup_tasks.clear()

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            debrid_logger.debug(f"Cancelled {len(tasks)} pending cleanup(s)")


# ===========================
# Singleton Instance
# ===========================
alldebrid_service = AllDebridService()
