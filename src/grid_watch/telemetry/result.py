"""Explicit outcome types for a single authenticated request attempt."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar, Union

from grid_watch.errors import (
    TelemetryError,
    TelemetryRejectedError,
    TelemetryTransportError,
)

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Why an attempt failed."""

    UNAUTHORIZED = "unauthorized"  # HTTP 401
    TRANSPORT = "transport"        # timeout, connection reset, DNS
    HTTP_STATUS = "http_status"    # any other non-2xx
    MALFORMED = "malformed"        # body is not a JSON object


_EXCEPTIONS: dict[ErrorKind, type[TelemetryError]] = {
    ErrorKind.UNAUTHORIZED: TelemetryRejectedError,
    ErrorKind.TRANSPORT: TelemetryTransportError,
    ErrorKind.HTTP_STATUS: TelemetryTransportError,
    ErrorKind.MALFORMED: TelemetryTransportError,
}


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    detail: str = ""

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        """Raise the exception matching this failure kind."""
        raise _EXCEPTIONS[self.kind](f"{self.kind.value}: {self.detail}")


Outcome = Union[Ok[T], Err]
