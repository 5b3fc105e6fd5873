import asyncio
import time
from collections import deque
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Set, Tuple

from bluecat.config.settings import settings
from bluecat.core.errors import CapacityExceededError, CircuitOpenError
from bluecat.utils.logger import limiter_logger

# ===========================
# Constants
# ===========================
SCHEDULING_MARGIN = 0.01


# ===========================
# Rate Limiter Class
# ===========================
class RateLimiter:
    """Sliding-window limiter shared by every caller of one external service.

    Requests queue in FIFO order. A request that cannot start stays at the
    front of the queue until the oldest timestamp leaves the window.
    """

    def __init__(self, max_requests: int, window: float, max_queue_size: int, timer: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window = window
        self.max_queue_size = max_queue_size
        self._timer = timer
        self._timestamps: Deque[float] = deque()
        self._queue: Deque[Tuple[Callable[[], Awaitable[Any]], asyncio.Future]] = deque()
        self._worker: Optional[asyncio.Task] = None
        self._running: Set[asyncio.Task] = set()

    async def execute(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        if len(self._queue) >= self.max_queue_size:
            limiter_logger.error(f"Queue full ({self.max_queue_size})")
            raise CapacityExceededError()

        future = asyncio.get_running_loop().create_future()
        self._queue.append((fn, future))

        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._process_queue())

        return await future

    def _purge(self, now: float):
        while self._timestamps and now - self._timestamps[0] >= self.window:
            self._timestamps.popleft()

    async def _process_queue(self):
        while self._queue:
            now = self._timer()
            self._purge(now)

            if len(self._timestamps) >= self.max_requests:
                delay = self.window - (now - self._timestamps[0]) + SCHEDULING_MARGIN
                limiter_logger.debug(f"Window full, waiting {delay:.3f}s ({len(self._queue)} queued)")
                await asyncio.sleep(max(delay, 0))
                continue

            fn, future = self._queue.popleft()
            if future.cancelled():
                continue

            self._timestamps.append(now)
            task = asyncio.create_task(self._run(fn, future))
            self._running.add(task)
            task.add_done_callback(self._running.discard)

    @staticmethod
    async def _run(fn: Callable[[], Awaitable[Any]], future: asyncio.Future):
        try:
            result = await fn()
        except Exception as e:
            if not future.done():
                future.set_exception(e)
            return
        if not future.done():
            future.set_result(result)

    def status(self) -> Dict[str, Any]:
        self._purge(self._timer())
        return {
            "max_requests": self.max_requests,
            "window": self.window,
            "in_window": len(self._timestamps),
            "queued": len(self._queue),
            "max_queue_size": self.max_queue_size,
        }


# ===========================
# Circuit Breaker States
# ===========================
class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


# ===========================
# Circuit Breaker Class
# ===========================
class CircuitBreaker:

    def __init__(self, threshold: int, timeout: float, name: str = "debrid"):
        self.threshold = threshold
        self.timeout = timeout
        self.name = name
        self.state = CircuitState.CLOSED
        self.failures = 0
        self._opened_at = 0.0
        self._trial_in_flight = False

    def _before_call(self):
        if self.state == CircuitState.OPEN:
            elapsed = time.monotonic() - self._opened_at
            if elapsed < self.timeout:
                raise CircuitOpenError(self.timeout - elapsed)
            self.state = CircuitState.HALF_OPEN
            limiter_logger.info(f"Circuit {self.name}: half-open")

        if self.state == CircuitState.HALF_OPEN:
            if self._trial_in_flight:
                raise CircuitOpenError(0.0)
            self._trial_in_flight = True

    def record_success(self):
        if self.state != CircuitState.CLOSED:
            limiter_logger.info(f"Circuit {self.name}: closed")
        self.state = CircuitState.CLOSED
        self.failures = 0
        self._trial_in_flight = False

    def record_failure(self):
        self._trial_in_flight = False

        if self.state == CircuitState.HALF_OPEN:
            self._open()
            return

        self.failures += 1
        if self.failures >= self.threshold:
            self._open()

    def _open(self):
        self.state = CircuitState.OPEN
        self._opened_at = time.monotonic()
        limiter_logger.error(f"Circuit {self.name}: open after {self.failures} failures")

    async def call(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        self._before_call()
        try:
            result = await fn()
        except Exception:
            self.record_failure()
            raise
        finally:
            # A cancelled trial neither closes nor reopens the circuit
            self._trial_in_flight = False
        self.record_success()
        return result

    def status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failures": self.failures,
            "threshold": self.threshold,
        }


# ===========================
# Global Debrid Guards
# ===========================
debrid_rate_limiter = RateLimiter(
    max_requests=settings.DEBRID_RATE_LIMIT,
    window=settings.DEBRID_RATE_WINDOW,
    max_queue_size=settings.DEBRID_QUEUE_SIZE
)
debrid_circuit_breaker = CircuitBreaker(
    threshold=settings.CIRCUIT_BREAKER_THRESHOLD,
    timeout=settings.CIRCUIT_BREAKER_TIMEOUT,
    name="alldebrid"
)
