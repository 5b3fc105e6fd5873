import sys
import logging
from typing import Optional

from loguru import logger


# ===========================
# Log Contexts
# ===========================
CONTEXTS = {
    "ADDON": ("green", "🐱"),
    "API": ("cyan", "🔗"),
    "STREAM": ("yellow", "🎬"),
    "SCRAPER": ("blue", "🔎"),
    "DEBRID": ("magenta", "🧲"),
    "METADATA": ("white", "🎭"),
    "CACHE": ("white", "💾"),
    "LIMITER": ("red", "🚦"),
    "HTTP": ("blue", "🌐"),
}
FALLBACK_CONTEXT = ("white", "📦")

LEVEL_ICONS = {
    "DEBUG": "🔍",
    "INFO": "ℹ️ ",
    "WARNING": "⚠️ ",
    "ERROR": "❌",
    "CRITICAL": "💀",
}

# Third-party loggers forwarded into loguru, with the context they are tagged with
FORWARDED_LOGGERS = {
    "httpx": ("HTTP", logging.WARNING),
    "uvicorn.error": ("ADDON", logging.WARNING),
}
MUTED_LOGGERS = ("uvicorn.access", "fastapi")


# ===========================
# Formatting
# ===========================
def format_record(record) -> str:
    context = record["extra"].get("context", "ADDON")
    color, icon = CONTEXTS.get(context, FALLBACK_CONTEXT)
    level_icon = LEVEL_ICONS.get(record["level"].name, "")

    return (
        "<white>{time:YYYY-MM-DD}</white> <magenta>{time:HH:mm:ss}</magenta> | "
        f"<level>{level_icon} {{level: <8}}</level> | "
        f"<{color}>{icon} {context: <10}</{color}> | "
        "<level>{message}</level>\n"
    )


def format_plain(record) -> str:
    context = record["extra"].get("context", "ADDON")
    return f"{{time:YYYY-MM-DD HH:mm:ss}} | {{level: <8}} | {context: <10} | {{message}}\n"


# ===========================
# Standard Library Bridge
# ===========================
class InterceptHandler(logging.Handler):
    """Re-emits stdlib log records through loguru under a fixed context."""

    def __init__(self, context: str):
        super().__init__()
        self.context = context

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.bind(context=self.context).log(level, record.getMessage())


def bridge_stdlib_loggers() -> None:
    for name in MUTED_LOGGERS:
        logging.getLogger(name).disabled = True

    for name, (context, level) in FORWARDED_LOGGERS.items():
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler(context)]
        std_logger.setLevel(level)
        std_logger.propagate = False


# ===========================
# Setup
# ===========================
def setup_logger(level: str = "INFO", log_file: Optional[str] = None):
    logger.remove()

    logger.add(
        sys.stderr,
        level=level,
        format=format_record,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        logger.add(
            log_file,
            level=level,
            format=format_plain,
            rotation="10 MB",
            retention=3,
            enqueue=True,
            diagnose=False,
        )

    bridge_stdlib_loggers()


def get_logger(context: str):
    return logger.bind(context=context)


# ===========================
# Context Loggers
# ===========================
addon_logger = get_logger("ADDON")
api_logger = get_logger("API")
stream_logger = get_logger("STREAM")
scraper_logger = get_logger("SCRAPER")
debrid_logger = get_logger("DEBRID")
metadata_logger = get_logger("METADATA")
cache_logger = get_logger("CACHE")
limiter_logger = get_logger("LIMITER")
http_logger = get_logger("HTTP")
