"""Ethereum 2048-bit log blooms."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .crypto import keccak256

BLOOM_SIZE = 256
_BIT_MASK = BLOOM_SIZE * 8 - 1


@dataclass(frozen=True)
class Log:
    """A log entry emitted by a contract."""

    address: bytes
    topics: tuple = ()
    data: bytes = b""


def _bit_positions(data: bytes):
    digest = keccak256(bytes(data))
    for high, low in zip(digest[0:6:2], digest[1:6:2]):
        bit = ((high << 8) | low) & _BIT_MASK
        yield BLOOM_SIZE - 1 - bit // 8, 1 << (bit % 8)


@dataclass
class Bloom:
    """A 256-byte bloom filter in which each entry sets up to three bits."""

    data: bytearray = field(default_factory=lambda: bytearray(BLOOM_SIZE))

    def __post_init__(self):
        self.data = bytearray(self.data)
        if len(self.data) != BLOOM_SIZE:
            raise ValueError(f"bloom must be {BLOOM_SIZE} bytes")

    def accrue(self, data: bytes) -> None:
        """Add an entry to the filter."""
        for index, mask in _bit_positions(data):
            self.data[index] |= mask

    def contains(self, data: bytes) -> bool:
        """Return whether the entry may have been added."""
        return all(self.data[index] & mask for index, mask in _bit_positions(data))

    def __bytes__(self) -> bytes:
        return bytes(self.data)


def logs_bloom(logs: Iterable[Log], bloom: Bloom) -> Bloom:
    """Accrue every log's address and topics into bloom and return it."""
    for log in logs:
        bloom.accrue(log.address)
        for topic in log.topics:
            bloom.accrue(topic)
    return bloom