"""Ethereum transaction messages and signed transactions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .crypto import N, keccak256, rlp_encode


@dataclass(frozen=True)
class AccessListItem:
    """An address together with the storage keys a transaction touches."""

    address: bytes
    storage_keys: tuple = ()

    def _rlp(self) -> list:
        return [self.address, list(self.storage_keys)]


def _access_list(items) -> list:
    return [item._rlp() for item in items]


@dataclass(frozen=True)
class TransactionSignature:
    """A legacy (v, r, s) signature; raises ValueError when not well formed."""

    v: int
    r: int
    s: int

    def __post_init__(self):
        if not (0 < self.r < N and 0 < self.s < N):
            raise ValueError("signature r and s must lie in (0, n)")
        if self.v not in (27, 28) and self.v < 35:
            raise ValueError("invalid signature v")

    def standard_v(self) -> int:
        if self.v in (27, 28):
            return self.v - 27
        return (self.v - 35) % 2

    def chain_id(self) -> Optional[int]:
        if self.v in (27, 28):
            return None
        return (self.v - 35) // 2


@dataclass(frozen=True)
class LegacyTransactionMessage:
    nonce: int
    gas_price: int
    gas_limit: int
    action: Optional[bytes]
    value: int
    input: bytes = b""
    chain_id: Optional[int] = None

    def hash(self) -> bytes:
        fields = [self.nonce, self.gas_price, self.gas_limit, self.action, self.value, self.input]
        if self.chain_id is not None:
            fields += [self.chain_id, 0, 0]
        return keccak256(rlp_encode(fields))


@dataclass(frozen=True)
class EIP2930TransactionMessage:
    chain_id: int
    nonce: int
    gas_price: int
    gas_limit: int
    action: Optional[bytes]
    value: int
    input: bytes = b""
    access_list: tuple = field(default_factory=tuple)

    def hash(self) -> bytes:
        fields = [
            self.chain_id, self.nonce, self.gas_price, self.gas_limit,
            self.action, self.value, self.input, _access_list(self.access_list),
        ]
        return keccak256(b"\x01" + rlp_encode(fields))


@dataclass(frozen=True)
class EIP1559TransactionMessage:
    chain_id: int
    nonce: int
    max_priority_fee_per_gas: int
    max_fee_per_gas: int
    gas_limit: int
    action: Optional[bytes]
    value: int
    input: bytes = b""
    access_list: tuple = field(default_factory=tuple)

    def hash(self) -> bytes:
        fields = [
            self.chain_id, self.nonce, self.max_priority_fee_per_gas, self.max_fee_per_gas,
            self.gas_limit, self.action, self.value, self.input,
            _access_list(self.access_list),
        ]
        return keccak256(b"\x02" + rlp_encode(fields))


@dataclass(frozen=True)
class LegacyTransaction:
    nonce: int
    gas_price: int
    gas_limit: int
    action: Optional[bytes]
    value: int
    input: bytes
    signature: TransactionSignature

    def message(self) -> LegacyTransactionMessage:
        return LegacyTransactionMessage(
            self.nonce, self.gas_price, self.gas_limit, self.action,
            self.value, self.input, self.signature.chain_id(),
        )

    def hash(self) -> bytes:
        sig = self.signature
        return keccak256(rlp_encode([
            self.nonce, self.gas_price, self.gas_limit, self.action,
            self.value, self.input, sig.v, sig.r, sig.s,
        ]))


@dataclass(frozen=True)
class EIP2930Transaction:
    chain_id: int
    nonce: int
    gas_price: int
    gas_limit: int
    action: Optional[bytes]
    value: int
    input: bytes
    access_list: tuple
    odd_y_parity: bool
    r: int
    s: int

    def message(self) -> EIP2930TransactionMessage:
        return EIP2930TransactionMessage(
            self.chain_id, self.nonce, self.gas_price, self.gas_limit,
            self.action, self.value, self.input, tuple(self.access_list),
        )

    def hash(self) -> bytes:
        return keccak256(b"\x01" + rlp_encode([
            self.chain_id, self.nonce, self.gas_price, self.gas_limit, self.action,
            self.value, self.input, _access_list(self.access_list),
            int(self.odd_y_parity), self.r, self.s,
        ]))


@dataclass(frozen=True)
class EIP1559Transaction:
    chain_id: int
    nonce: int
    max_priority_fee_per_gas: int
    max_fee_per_gas: int
    gas_limit: int
    action: Optional[bytes]
    value: int
    input: bytes
    access_list: tuple
    odd_y_parity: bool
    r: int
    s: int

    def message(self) -> EIP1559TransactionMessage:
        return EIP1559TransactionMessage(
            self.chain_id, self.nonce, self.max_priority_fee_per_gas,
            self.max_fee_per_gas, self.gas_limit, self.action, self.value,
            self.input, tuple(self.access_list),
        )

    def hash(self) -> bytes:
        return keccak256(b"\x02" + rlp_encode([
            self.chain_id, self.nonce, self.max_priority_fee_per_gas,
            self.max_fee_per_gas, self.gas_limit, self.action, self.value,
            self.input, _access_list(self.access_list),
            int(self.odd_y_parity), self.r, self.s,
        ]))