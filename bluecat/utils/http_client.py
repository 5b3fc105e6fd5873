import asyncio
import random
from typing import Optional

import httpx

from bluecat.config.settings import settings
from bluecat.core.errors import ErrorKind, TransportError, RETRYABLE_STATUS_CODES
from bluecat.utils.logger import http_logger


# ===========================
# Backoff Computation
# ===========================
def compute_backoff(attempt: int, base: Optional[float] = None, maximum: Optional[float] = None) -> float:
    base = settings.HTTP_BACKOFF_BASE if base is None else base
    maximum = settings.HTTP_BACKOFF_MAX if maximum is None else maximum

    delay = base * (2 ** attempt)
    jitter = random.uniform(0, base)
    return min(delay + jitter, maximum)


def classify_status(status_code: int) -> Optional[ErrorKind]:
    if status_code < 400:
        return None
    if status_code >= 500 or status_code in RETRYABLE_STATUS_CODES:
        return ErrorKind.SERVER
    return ErrorKind.CLIENT


# ===========================
# HTTP Client Singleton
# ===========================
class HTTPClient:

    _instance: Optional['HTTPClient'] = None
    _client: Optional[httpx.AsyncClient] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            client_args = {
                "timeout": httpx.Timeout(float(settings.HTTP_TIMEOUT)),
                "follow_redirects": True,
                "headers": {"User-Agent": settings.USER_AGENT},
                "limits": httpx.Limits(max_connections=100, max_keepalive_connections=20)
            }
            if settings.PROXY_URL:
                client_args["proxy"] = settings.PROXY_URL
            self._client = httpx.AsyncClient(**client_args)
        return self._client

    async def request(
        self,
        method: str,
        url: str,
        *,
        source: str = "HTTP",
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        client = await self.get_client()
        timeout = float(timeout or settings.HTTP_TIMEOUT)
        max_retries = settings.HTTP_MAX_RETRIES if max_retries is None else max_retries

        last_error: Optional[TransportError] = None

        for attempt in range(max_retries + 1):
            try:
                response = await client.request(method, url, timeout=timeout, **kwargs)
            except httpx.TimeoutException as e:
                last_error = TransportError(ErrorKind.TIMEOUT, f"{source}: {type(e).__name__}")
            except httpx.TransportError as e:
                last_error = TransportError(ErrorKind.SERVER, f"{source}: {type(e).__name__}")
            else:
                kind = classify_status(response.status_code)
                if kind is None:
                    return response

                last_error = TransportError(kind, f"{source}: HTTP {response.status_code}", response.status_code)
                if not last_error.retryable:
                    http_logger.debug(f"{source} HTTP {response.status_code} - Not retryable")
                    raise last_error

            if attempt >= max_retries:
                break

            delay = compute_backoff(attempt)
            http_logger.debug(f"{source} {last_error.kind.value} - Retry {attempt + 1}/{max_retries} in {delay:.1f}s")
            await asyncio.sleep(delay)

        http_logger.error(f"{source} failed after {max_retries + 1} attempts: {last_error.kind.value}")
        raise last_error

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

# ===========================
# Global HTTP Client Instance
# ===========================
http_client = HTTPClient()
