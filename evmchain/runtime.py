"""Origins, dispatch errors and database weights shared by the pallets."""

from __future__ import annotations

import enum
from dataclasses import dataclass

MAX_WEIGHT = 2**64 - 1


class BadOrigin(Exception):
    """Raised when a call is dispatched from an origin it does not accept."""


class Origin(enum.Enum):
    """The origin a call is dispatched from."""

    ROOT = "root"
    NONE = "none"
    SIGNED = "signed"


def _saturate(weight: int) -> int:
    return min(weight, MAX_WEIGHT)


@dataclass(frozen=True)
class RuntimeDbWeight:
    """Weight charged for one storage read and one storage write."""

    read: int = 0
    write: int = 0

    def reads(self, count: int) -> int:
        return _saturate(self.read * count)

    def writes(self, count: int) -> int:
        return _saturate(self.write * count)

    def reads_writes(self, reads: int, writes: int) -> int:
        return _saturate(self.reads(reads) + self.writes(writes))


def ensure_root(origin: Origin) -> None:
    """Raise BadOrigin unless the origin is root."""
    if origin is not Origin.ROOT:
        raise BadOrigin("expected root origin")


def ensure_none(origin: Origin) -> None:
    """Raise BadOrigin unless the origin is none (an inherent)."""
    if origin is not Origin.NONE:
        raise BadOrigin("expected none origin")