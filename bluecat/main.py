import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from bluecat.api.routes import router
from bluecat.config.settings import settings
from bluecat.debrid.alldebrid import alldebrid_service
from bluecat.utils.http_client import http_client
from bluecat.utils.logger import setup_logger, addon_logger, api_logger


setup_logger(settings.LOG_LEVEL, settings.LOG_FILE)

QUIET_PATHS = {"/health"}
PUBLIC_SEGMENTS = {"", "configure", "access-config", "health", "docs", "openapi.json"}


def redact_path(path: str) -> str:
    """Hides the base64 config segment, which carries the user's API keys."""
    head, sep, rest = path.lstrip("/").partition("/")
    if head in PUBLIC_SEGMENTS:
        return path
    return f"/***{sep}{rest}"


# ===========================
# Request Logging
# ===========================
class LoguruMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        except Exception as e:
            api_logger.error(f"Unhandled {type(e).__name__} on {request.method} {redact_path(request.url.path)}")
            raise
        finally:
            if request.url.path not in QUIET_PATHS:
                elapsed = time.perf_counter() - started
                api_logger.debug(f"{request.method} {redact_path(request.url.path)} -> {status_code} ({elapsed:.2f}s)")


# ===========================
# Lifecycle
# ===========================
@asynccontextmanager
async def lifespan(app: FastAPI):
    yield

    await alldebrid_service.cancel_cleanup()
    await http_client.close()
    addon_logger.info("Shutdown complete")


app = FastAPI(title=settings.ADDON_NAME, version=settings.ADDON_VERSION, lifespan=lifespan)
app.add_middleware(LoguruMiddleware)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
app.include_router(router)


def log_startup_info():
    addon_logger.info(f"{settings.ADDON_NAME} v{settings.ADDON_VERSION} ({settings.ADDON_ID}) on port {settings.PORT}")
    addon_logger.info(f"Sources: YGG {settings.YGG_API_URL} | Sharewood {settings.SHAREWOOD_API_URL}")
    addon_logger.info(
        f"Debrid: {settings.DEBRID_RATE_LIMIT} req/{settings.DEBRID_RATE_WINDOW}s, "
        f"queue {settings.DEBRID_QUEUE_SIZE}, breaker {settings.CIRCUIT_BREAKER_THRESHOLD}/{settings.CIRCUIT_BREAKER_TIMEOUT}s"
    )
    log_target = f" -> {settings.LOG_FILE}" if settings.LOG_FILE else ""
    addon_logger.info(f"Proxy: {'on' if settings.PROXY_URL else 'off'} | Log: {settings.LOG_LEVEL}{log_target}")


if __name__ == "__main__":
    log_startup_info()
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT, log_config=None)
