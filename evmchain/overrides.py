"""Readers of Ethereum-related data, either from raw storage or the runtime API."""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol, TypeVar

from .base_fee import Permill
from .storage_keys import blake2_128_extend, storage_prefix_build

DEFAULT_ELASTICITY = Permill(125_000)

T = TypeVar("T")


class StorageSchema(enum.IntEnum):
    """The storage layout used by the Ethereum pallet of a runtime."""

    UNDEFINED = 0
    V1 = 1
    V2 = 2
    V3 = 3


class EthereumCodec(Protocol):
    """Decodes the pallet's composite storage values."""

    def decode_block_v0(self, data: bytes) -> Any: ...

    def decode_block_v2(self, data: bytes) -> Any: ...

    def upgrade_block(self, block_v0: Any) -> Any: ...

    def decode_receipts_v0(self, data: bytes) -> list: ...

    def decode_receipts_v3(self, data: bytes) -> list: ...

    def legacy_receipt(self, status_code: int, used_gas: int, logs_bloom: Any, logs: Any) -> Any: ...

    def decode_transaction_statuses(self, data: bytes) -> list: ...


class StorageClient(Protocol):
    def storage(self, block: Any, key: bytes) -> Optional[bytes]: ...


class StorageOverride(abc.ABC):
    """Something that can fetch Ethereum-related data at a given block."""

    @abc.abstractmethod
    def account_code_at(self, block, address: bytes) -> Optional[bytes]:
        """Return the code of an account."""

    @abc.abstractmethod
    def storage_at(self, block, address: bytes, index: int) -> Optional[bytes]:
        """Return one storage slot of an account."""

    @abc.abstractmethod
    def current_block(self, block):
        """Return the current Ethereum block."""

    @abc.abstractmethod
    def current_receipts(self, block) -> Optional[list]:
        """Return the current receipts."""

    @abc.abstractmethod
    def current_transaction_statuses(self, block) -> Optional[list]:
        """Return the current transaction statuses."""

    @abc.abstractmethod
    def base_fee(self, block) -> Optional[int]:
        """Return the base fee at the given block."""

    @abc.abstractmethod
    def elasticity(self, block) -> Optional[Permill]:
        """Return the base fee elasticity at the given block."""

    @abc.abstractmethod
    def is_eip1559(self, block) -> bool:
        """Return whether the block is post-EIP-1559."""


def _decode_compact(data: bytes) -> tuple[int, int]:
    """Return a SCALE compact integer and the number of bytes it took."""
    if not data:
        raise ValueError("empty compact integer")
    mode = data[0] & 0b11
    if mode == 0:
        return data[0] >> 2, 1
    if mode == 1:
        if len(data) < 2:
            raise ValueError("truncated compact integer")
        return int.from_bytes(data[:2], "little") >> 2, 2
    if mode == 2:
        if len(data) < 4:
            raise ValueError("truncated compact integer")
        return int.from_bytes(data[:4], "little") >> 2, 4
    size = (data[0] >> 2) + 4
    if len(data) < 1 + size:
        raise ValueError("truncated compact integer")
    return int.from_bytes(data[1:1 + size], "little"), 1 + size


def _decode_bytes(data: bytes) -> bytes:
    length, offset = _decode_compact(data)
    if len(data) < offset + length:
        raise ValueError("truncated byte vector")
    return bytes(data[offset:offset + length])


def _decode_h256(data: bytes) -> bytes:
    if len(data) < 32:
        raise ValueError("truncated hash")
    return bytes(data[:32])


def _decode_u256(data: bytes) -> int:
    if len(data) < 32:
        raise ValueError("truncated integer")
    return int.from_bytes(data[:32], "little")


def _decode_permill(data: bytes) -> Permill:
    if len(data) < 4:
        raise ValueError("truncated permill")
    return Permill(int.from_bytes(data[:4], "little"))


def _legacy_receipts(receipts_v0, codec: EthereumCodec) -> list:
    return [
        codec.legacy_receipt(
            int.from_bytes(bytes(r.state_root)[-8:], "big") & 0xFF,
            r.used_gas,
            r.logs_bloom,
            r.logs,
        )
        for r in receipts_v0
    ]


_ACCOUNT_CODES = storage_prefix_build(b"EVM", b"AccountCodes")
_ACCOUNT_STORAGES = storage_prefix_build(b"EVM", b"AccountStorages")
_CURRENT_BLOCK = storage_prefix_build(b"Ethereum", b"CurrentBlock")
_CURRENT_RECEIPTS = storage_prefix_build(b"Ethereum", b"CurrentReceipts")
_CURRENT_STATUSES = storage_prefix_build(b"Ethereum", b"CurrentTransactionStatuses")
_BASE_FEE_PER_GAS = storage_prefix_build(b"BaseFee", b"BaseFeePerGas")
_ELASTICITY = storage_prefix_build(b"BaseFee", b"Elasticity")


class _RawStorageOverride(StorageOverride):
    """Reads pallet storage directly, decoding values by a known schema."""

    def __init__(self, client: StorageClient, codec: EthereumCodec):
        self.client = client
        self.codec = codec

    def _query(self, block, key: bytes, decode: Callable[[bytes], T]) -> Optional[T]:
        data = self.client.storage(block, key)
        if data is None:
            return None
        try:
            return decode(bytes(data))
        except (ValueError, IndexError):
            return None

    def account_code_at(self, block, address: bytes) -> Optional[bytes]:
        key = _ACCOUNT_CODES + blake2_128_extend(address)
        return self._query(block, key, _decode_bytes)

    def storage_at(self, block, address: bytes, index: int) -> Optional[bytes]:
        key = (
            _ACCOUNT_STORAGES
            + blake2_128_extend(address)
            + blake2_128_extend(index.to_bytes(32, "big"))
        )
        return self._query(block, key, _decode_h256)

    def current_block(self, block):
        return self._query(block, _CURRENT_BLOCK, self.codec.decode_block_v2)

    def current_receipts(self, block) -> Optional[list]:
        receipts = self._query(block, _CURRENT_RECEIPTS, self.codec.decode_receipts_v0)
        if receipts is None:
            return None
        return _legacy_receipts(receipts, self.codec)

    def current_transaction_statuses(self, block) -> Optional[list]:
        return self._query(block, _CURRENT_STATUSES, self.codec.decode_transaction_statuses)

    def base_fee(self, block) -> Optional[int]:
        return self._query(block, _BASE_FEE_PER_GAS, _decode_u256)

    def elasticity(self, block) -> Optional[Permill]:
        value = self._query(block, _ELASTICITY, _decode_permill)
        return DEFAULT_ELASTICITY if value is None else value

    def is_eip1559(self, block) -> bool:
        return True


class SchemaV1Override(_RawStorageOverride):
    """Reads storage written with schema V1: pre-EIP-1559 blocks and receipts."""

    def current_block(self, block):
        block_v0 = self._query(block, _CURRENT_BLOCK, self.codec.decode_block_v0)
        return None if block_v0 is None else self.codec.upgrade_block(block_v0)

    def base_fee(self, block) -> Optional[int]:
        return None

    def elasticity(self, block) -> Optional[Permill]:
        return None

    def is_eip1559(self, block) -> bool:
        return False


class SchemaV2Override(_RawStorageOverride):
    """Reads storage written with schema V2: typed blocks, legacy receipts."""


class SchemaV3Override(_RawStorageOverride):
    """Reads storage written with schema V3: typed blocks and typed receipts."""

    def current_receipts(self, block) -> Optional[list]:
        return self._query(block, _CURRENT_RECEIPTS, self.codec.decode_receipts_v3)


class RuntimeApiStorageOverride(StorageOverride):
    """Answers every request through the runtime API; failures become None."""

    def __init__(self, api, codec: EthereumCodec):
        self.api = api
        self.codec = codec

    def _call(self, method: str, *args):
        try:
            return True, getattr(self.api, method)(*args)
        except Exception:
            return False, None

    def _api_version(self, block) -> Optional[int]:
        _, version = self._call("api_version", block)
        return version

    def account_code_at(self, block, address: bytes) -> Optional[bytes]:
        return self._call("account_code_at", block, address)[1]

    def storage_at(self, block, address: bytes, index: int) -> Optional[bytes]:
        return self._call("storage_at", block, address, index)[1]

    def current_block(self, block):
        version = self._api_version(block)
        if version is None:
            return None
        if version == 1:
            _, old_block = self._call("current_block_before_version_2", block)
            return None if old_block is None else self.codec.upgrade_block(old_block)
        return self._call("current_block", block)[1]

    def current_receipts(self, block) -> Optional[list]:
        version = self._api_version(block)
        if version is None:
            return None
        if version < 4:
            _, old_receipts = self._call("current_receipts_before_version_4", block)
            return None if old_receipts is None else _legacy_receipts(old_receipts, self.codec)
        return self._call("current_receipts", block)[1]

    def current_transaction_statuses(self, block) -> Optional[list]:
        return self._call("current_transaction_statuses", block)[1]

    def base_fee(self, block) -> Optional[int]:
        if self.is_eip1559(block):
            return self._call("gas_price", block)[1]
        return None

    def elasticity(self, block) -> Optional[Permill]:
        if self.is_eip1559(block):
            return self._call("elasticity", block)[1]
        return None

    def is_eip1559(self, block) -> bool:
        version = self._api_version(block)
        return version is not None and version >= 2


@dataclass
class OverrideHandle:
    """Storage overrides by schema, with a fallback for unknown schemas."""

    fallback: StorageOverride
    schemas: dict = field(default_factory=dict)

    def for_schema(self, schema: StorageSchema) -> StorageOverride:
        return self.schemas.get(schema, self.fallback)