"""Keccak hashing, RLP encoding and recoverable secp256k1 signatures."""

from __future__ import annotations

import hashlib
import hmac
from typing import Sequence, Union

from Crypto.Hash import keccak

P = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F
N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
GX = 0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798
GY = 0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8
G = (GX, GY)

Point = Union[tuple, None]


class CryptoError(ValueError):
    """Raised for invalid keys, messages or signatures."""


def keccak256(data: bytes) -> bytes:
    """Return the 32-byte Keccak-256 digest of data."""
    return keccak.new(digest_bits=256, data=bytes(data)).digest()


def _encode_length(length: int, offset: int) -> bytes:
    if length < 56:
        return bytes([offset + length])
    encoded = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([offset + 55 + len(encoded)]) + encoded


def rlp_encode(item) -> bytes:
    """RLP-encode bytes, non-negative ints, None (empty) and nested sequences."""
    if item is None:
        item = b""
    if isinstance(item, bool):
        item = int(item)
    if isinstance(item, int):
        if item < 0:
            raise CryptoError("cannot RLP-encode a negative integer")
        item = item.to_bytes((item.bit_length() + 7) // 8, "big") if item else b""
    if isinstance(item, (bytes, bytearray)):
        item = bytes(item)
        if len(item) == 1 and item[0] < 0x80:
            return item
        return _encode_length(len(item), 0x80) + item
    if isinstance(item, (list, tuple)):
        payload = b"".join(rlp_encode(element) for element in item)
        return _encode_length(len(payload), 0xC0) + payload
    raise CryptoError(f"cannot RLP-encode {type(item).__name__}")


def _add(a: Point, b: Point) -> Point:
    if a is None:
        return b
    if b is None:
        return a
    if a[0] == b[0]:
        if (a[1] + b[1]) % P == 0:
            return None
        slope = 3 * a[0] * a[0] * pow(2 * a[1], -1, P) % P
    else:
        slope = (b[1] - a[1]) * pow(b[0] - a[0], -1, P) % P
    x = (slope * slope - a[0] - b[0]) % P
    return x, (slope * (a[0] - x) - a[1]) % P


def _mul(point: Point, scalar: int) -> Point:
    result = None
    addend = point
    while scalar:
        if scalar & 1:
            result = _add(result, addend)
        addend = _add(addend, addend)
        scalar >>= 1
    return result


def _secret_int(secret: bytes) -> int:
    if len(secret) != 32:
        raise CryptoError("secret key must be 32 bytes")
    value = int.from_bytes(secret, "big")
    if not 0 < value < N:
        raise CryptoError("secret key out of range")
    return value


def _hash_int(message_hash: bytes) -> int:
    if len(message_hash) != 32:
        raise CryptoError("message hash must be 32 bytes")
    return int.from_bytes(message_hash, "big")


def _serialize(point: tuple) -> bytes:
    return b"\x04" + point[0].to_bytes(32, "big") + point[1].to_bytes(32, "big")


def secret_to_public(secret: bytes) -> bytes:
    """Return the 65-byte uncompressed public key for a secret key."""
    return _serialize(_mul(G, _secret_int(secret)))


def public_key_address(public: bytes) -> bytes:
    """Return the 20-byte address of a 64- or 65-byte uncompressed public key."""
    if len(public) == 65:
        public = public[1:]
    if len(public) != 64:
        raise CryptoError("public key must be 64 or 65 bytes")
    return keccak256(public)[12:]


def secret_key_address(secret: bytes) -> bytes:
    """Return the 20-byte address belonging to a secret key."""
    return public_key_address(secret_to_public(secret))


def _nonces(message_hash: bytes, secret: int):
    x = secret.to_bytes(32, "big")
    h = (int.from_bytes(message_hash, "big") % N).to_bytes(32, "big")
    v = b"\x01" * 32
    k = b"\x00" * 32
    k = hmac.new(k, v + b"\x00" + x + h, hashlib.sha256).digest()
    v = hmac.new(k, v, hashlib.sha256).digest()
    k = hmac.new(k, v + b"\x01" + x + h, hashlib.sha256).digest()
    v = hmac.new(k, v, hashlib.sha256).digest()
    while True:
        v = hmac.new(k, v, hashlib.sha256).digest()
        candidate = int.from_bytes(v, "big")
        if 0 < candidate < N:
            yield candidate
        k = hmac.new(k, v + b"\x00", hashlib.sha256).digest()
        v = hmac.new(k, v, hashlib.sha256).digest()


def sign_recoverable(message_hash: bytes, secret: bytes) -> tuple[int, int, int]:
    """Sign a 32-byte hash deterministically; return (r, s, recovery_id) with low s."""
    z = _hash_int(message_hash)
    d = _secret_int(secret)
    for k in _nonces(message_hash, d):
        point = _mul(G, k)
        r = point[0] % N
        if r == 0:
            continue
        s = pow(k, -1, N) * (z + r * d) % N
        if s == 0:
            continue
        recovery_id = (point[1] & 1) | (2 if point[0] >= N else 0)
        if s > N // 2:
            s = N - s
            recovery_id ^= 1
        return r, s, recovery_id
    raise CryptoError("unable to sign")  # pragma: no cover


def recover_public_key(message_hash: bytes, r: int, s: int, recovery_id: int) -> bytes:
    """Recover the 65-byte public key that produced a signature."""
    z = _hash_int(message_hash)
    if not (0 < r < N and 0 < s < N) or recovery_id not in range(4):
        raise CryptoError("invalid signature")
    x = r + N if recovery_id & 2 else r
    if x >= P:
        raise CryptoError("invalid signature")
    y_squared = (pow(x, 3, P) + 7) % P
    y = pow(y_squared, (P + 1) // 4, P)
    if y * y % P != y_squared:
        raise CryptoError("invalid signature")
    if y & 1 != recovery_id & 1:
        y = P - y
    r_inv = pow(r, -1, N)
    point = _add(_mul((x, y), s * r_inv % N), _mul(G, (-z * r_inv) % N))
    if point is None:
        raise CryptoError("invalid signature")
    return _serialize(point)


def _items(values: Sequence) -> list:
    return list(values)