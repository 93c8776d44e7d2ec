"""Hashers and key builders for raw runtime storage."""

from __future__ import annotations

import hashlib
import struct

_MASK = 2**64 - 1
_P1 = 11400714785074694791
_P2 = 14029467366897019727
_P3 = 1609587929392839161
_P4 = 9650029242287828579
_P5 = 2870177450012600261


def _rotl(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (64 - bits))) & _MASK


def _round(acc: int, lane: int) -> int:
    acc = (acc + lane * _P2) & _MASK
    return (_rotl(acc, 31) * _P1) & _MASK


def _merge(acc: int, value: int) -> int:
    acc ^= _round(0, value)
    return (acc * _P1 + _P4) & _MASK


def _xxh64(data: bytes, seed: int) -> int:
    length = len(data)
    striped = length - length % 32
    if length >= 32:
        v1 = (seed + _P1 + _P2) & _MASK
        v2 = (seed + _P2) & _MASK
        v3 = seed & _MASK
        v4 = (seed - _P1) & _MASK
        for a, b, c, d in struct.iter_unpack("<4Q", data[:striped]):
            v1, v2, v3, v4 = _round(v1, a), _round(v2, b), _round(v3, c), _round(v4, d)
        h = (_rotl(v1, 1) + _rotl(v2, 7) + _rotl(v3, 12) + _rotl(v4, 18)) & _MASK
        for lane in (v1, v2, v3, v4):
            h = _merge(h, lane)
    else:
        h = (seed + _P5) & _MASK
    h = (h + length) & _MASK

    tail = data[striped:]
    whole_words = len(tail) - len(tail) % 8
    for (lane,) in struct.iter_unpack("<Q", tail[:whole_words]):
        h ^= _round(0, lane)
        h = (_rotl(h, 27) * _P1 + _P4) & _MASK
    tail = tail[whole_words:]
    if len(tail) >= 4:
        (word,) = struct.unpack("<I", tail[:4])
        h ^= (word * _P1) & _MASK
        h = (_rotl(h, 23) * _P2 + _P3) & _MASK
        tail = tail[4:]
    for byte in tail:
        h ^= (byte * _P5) & _MASK
        h = (_rotl(h, 11) * _P1) & _MASK

    h ^= h >> 33
    h = (h * _P2) & _MASK
    h ^= h >> 29
    h = (h * _P3) & _MASK
    h ^= h >> 32
    return h


def twox_64(data: bytes, seed: int = 0) -> bytes:
    """Return the 64-bit xxHash of data with the given seed, as 8 little-endian bytes."""
    return _xxh64(bytes(data), seed).to_bytes(8, "little")


def twox_128(data: bytes) -> bytes:
    """Return two seeded 64-bit xxHashes of data concatenated into 16 bytes."""
    return twox_64(data, 0) + twox_64(data, 1)


def blake2_128(data: bytes) -> bytes:
    """Return the 16-byte BLAKE2b digest of data."""
    return hashlib.blake2b(bytes(data), digest_size=16).digest()


def storage_prefix_build(module: bytes, storage: bytes) -> bytes:
    """Return the storage prefix of a pallet's storage item."""
    return twox_128(module) + twox_128(storage)


def blake2_128_extend(data: bytes) -> bytes:
    """Return the BLAKE2b-128 digest of data followed by data itself."""
    data = bytes(data)
    return blake2_128(data) + data