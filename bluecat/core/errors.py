from enum import Enum
from typing import Optional


# ===========================
# Error Kinds
# ===========================
class ErrorKind(str, Enum):
    TIMEOUT = "timeout"
    SERVER = "server"
    CLIENT = "client"
    CAPACITY = "capacity"
    CIRCUIT_OPEN = "circuit_open"
    UPSTREAM = "upstream"


RETRYABLE_STATUS_CODES = (408, 429)


# ===========================
# Base Exceptions
# ===========================
class BlueCatError(Exception):
    pass


class TransportError(BlueCatError):

    def __init__(self, kind: ErrorKind, message: str = "", status_code: Optional[int] = None):
        super().__init__(message or kind.value)
        self.kind = kind
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        if self.status_code in RETRYABLE_STATUS_CODES:
            return True
        return self.kind in (ErrorKind.TIMEOUT, ErrorKind.SERVER)

    def __repr__(self):
        return f"TransportError(kind={self.kind.value}, status_code={self.status_code})"


class CapacityExceededError(TransportError):

    def __init__(self, message: str = "Rate limiter queue full"):
        super().__init__(ErrorKind.CAPACITY, message)


class CircuitOpenError(TransportError):

    def __init__(self, retry_in: float):
        super().__init__(ErrorKind.CIRCUIT_OPEN, f"Circuit open, retry in {retry_in:.1f}s")
        self.retry_in = retry_in


# ===========================
# Client Input Errors
# ===========================
class InvalidConfigError(BlueCatError):
    pass


class InvalidTokenError(BlueCatError):
    pass


class AccessDeniedError(BlueCatError):

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code
