"""Roots of Merkle Patricia tries keyed by the RLP-encoded item index."""

from __future__ import annotations

from typing import Iterable

from .crypto import keccak256, rlp_encode


def _nibbles(key: bytes) -> tuple:
    return tuple(n for byte in key for n in (byte >> 4, byte & 0x0F))


def _hex_prefix(nibbles: tuple, leaf: bool) -> bytes:
    flag = 2 if leaf else 0
    if len(nibbles) % 2:
        prefixed = (flag + 1, *nibbles)
    else:
        prefixed = (flag, 0, *nibbles)
    it = iter(prefixed)
    return bytes((high << 4) | low for high, low in zip(it, it))


def _common_prefix_length(keys: list) -> int:
    first = keys[0]
    length = min(len(key) for key in keys)
    for position in range(length):
        if any(key[position] != first[position] for key in keys):
            return position
    return length


def _reference(node):
    encoded = rlp_encode(node)
    return node if len(encoded) < 32 else keccak256(encoded)


def _node(pairs: list):
    if not pairs:
        return b""
    if len(pairs) == 1:
        key, value = pairs[0]
        return [_hex_prefix(key, True), value]
    prefix = _common_prefix_length([key for key, _ in pairs])
    if prefix:
        rest = [(key[prefix:], value) for key, value in pairs]
        return [_hex_prefix(pairs[0][0][:prefix], False), _reference(_node(rest))]
    branch = [b""] * 17
    for nibble in range(16):
        children = [(key[1:], value) for key, value in pairs if key and key[0] == nibble]
        if children:
            branch[nibble] = _reference(_node(children))
    for key, value in pairs:
        if not key:
            branch[16] = value
    return branch


def ordered_trie_root(items: Iterable[bytes]) -> bytes:
    """Return the trie root of items keyed by the RLP encoding of their index."""
    pairs = [(_nibbles(rlp_encode(index)), bytes(item)) for index, item in enumerate(items)]
    return keccak256(rlp_encode(_node(pairs)))