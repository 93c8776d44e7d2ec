from dataclasses import dataclass

import pytest

from evmchain.base_fee import Permill
from evmchain.overrides import (
    OverrideHandle,
    RuntimeApiStorageOverride,
    SchemaV1Override,
    SchemaV2Override,
    SchemaV3Override,
    StorageSchema,
)
from evmchain.storage_keys import blake2_128_extend, storage_prefix_build

ADDRESS = bytes(range(1, 21))
BLOCK = "best"


@dataclass(frozen=True)
class ReceiptV0:
    state_root: bytes
    used_gas: int
    logs_bloom: bytes
    logs: tuple


class FakeCodec:
    def decode_block_v0(self, data):
        if not data.startswith(b"v0:"):
            raise ValueError("not a v0 block")
        return ("v0", data[3:])

    def decode_block_v2(self, data):
        if not data.startswith(b"v2:"):
            raise ValueError("not a v2 block")
        return ("v2", data[3:])

    def upgrade_block(self, block_v0):
        return ("v2", block_v0[1])

    def decode_receipts_v0(self, data):
        return [ReceiptV0(bytes(31) + bytes([b]), 21000, b"", ()) for b in data]

    def decode_receipts_v3(self, data):
        return [("v3", b) for b in data]

    def legacy_receipt(self, status_code, used_gas, logs_bloom, logs):
        return ("legacy", status_code, used_gas)

    def decode_transaction_statuses(self, data):
        return list(data)


class FakeClient:
    def __init__(self, entries=None):
        self.entries = dict(entries or {})
        self.seen_blocks = []

    def storage(self, block, key):
        self.seen_blocks.append(block)
        return self.entries.get(key)


def scale_bytes(data):
    assert len(data) < 64
    return bytes([len(data) << 2]) + data


def prefix(module, item):
    return storage_prefix_build(module, item)


@pytest.fixture
def codec():
    return FakeCodec()


@pytest.mark.parametrize("cls", [SchemaV1Override, SchemaV2Override, SchemaV3Override])
def test_account_code_read_from_hashed_key(cls, codec):
    code = b"\x60\x80\x60\x40"
    key = prefix(b"EVM", b"AccountCodes") + blake2_128_extend(ADDRESS)
    client = FakeClient({key: scale_bytes(code)})
    override = cls(client, codec)
    assert override.account_code_at(BLOCK, ADDRESS) == code
    assert client.seen_blocks == [BLOCK]


@pytest.mark.parametrize("cls", [SchemaV1Override, SchemaV2Override, SchemaV3Override])
def test_missing_account_code_is_none(cls, codec):
    assert cls(FakeClient(), codec).account_code_at(BLOCK, ADDRESS) is None


def test_storage_slot_key_uses_big_endian_index(codec):
    index = 5
    value = bytes(range(32))
    key = (
        prefix(b"EVM", b"AccountStorages")
        + blake2_128_extend(ADDRESS)
        + blake2_128_extend(index.to_bytes(32, "big"))
    )
    override = SchemaV3Override(FakeClient({key: value}), codec)
    assert override.storage_at(BLOCK, ADDRESS, index) == value
    assert override.storage_at(BLOCK, ADDRESS, index + 1) is None


def test_undecodable_slot_is_none(codec):
    key = (
        prefix(b"EVM", b"AccountStorages")
        + blake2_128_extend(ADDRESS)
        + blake2_128_extend((0).to_bytes(32, "big"))
    )
    override = SchemaV2Override(FakeClient({key: b"\x01\x02"}), codec)
    assert override.storage_at(BLOCK, ADDRESS, 0) is None


def test_truncated_code_is_none(codec):
    key = prefix(b"EVM", b"AccountCodes") + blake2_128_extend(ADDRESS)
    override = SchemaV2Override(FakeClient({key: bytes([10 << 2]) + b"ab"}), codec)
    assert override.account_code_at(BLOCK, ADDRESS) is None


def test_v1_block_is_upgraded(codec):
    client = FakeClient({prefix(b"Ethereum", b"CurrentBlock"): b"v0:payload"})
    assert SchemaV1Override(client, codec).current_block(BLOCK) == ("v2", b"payload")


def test_v2_block_read_directly_and_bad_data_is_none(codec):
    key = prefix(b"Ethereum", b"CurrentBlock")
    assert SchemaV2Override(FakeClient({key: b"v2:x"}), codec).current_block(BLOCK) == ("v2", b"x")
    assert SchemaV3Override(FakeClient({key: b"v0:x"}), codec).current_block(BLOCK) is None


@pytest.mark.parametrize("cls", [SchemaV1Override, SchemaV2Override])
def test_legacy_receipts_take_status_from_state_root(cls, codec):
    client = FakeClient({prefix(b"Ethereum", b"CurrentReceipts"): bytes([1, 0])})
    receipts = cls(client, codec).current_receipts(BLOCK)
    assert receipts == [("legacy", 1, 21000), ("legacy", 0, 21000)]


def test_v3_receipts_are_typed(codec):
    client = FakeClient({prefix(b"Ethereum", b"CurrentReceipts"): bytes([7])})
    assert SchemaV3Override(client, codec).current_receipts(BLOCK) == [("v3", 7)]


def test_transaction_statuses(codec):
    client = FakeClient({prefix(b"Ethereum", b"CurrentTransactionStatuses"): bytes([3, 4])})
    assert SchemaV3Override(client, codec).current_transaction_statuses(BLOCK) == [3, 4]


def test_base_fee_decoded_little_endian(codec):
    fee = 1_000_000_000
    client = FakeClient({prefix(b"BaseFee", b"BaseFeePerGas"): fee.to_bytes(32, "little")})
    assert SchemaV2Override(client, codec).base_fee(BLOCK) == fee
    assert SchemaV3Override(client, codec).base_fee(BLOCK) == fee


def test_elasticity_stored_and_default(codec):
    stored = FakeClient({prefix(b"BaseFee", b"Elasticity"): (250_000).to_bytes(4, "little")})
    assert SchemaV3Override(stored, codec).elasticity(BLOCK) == Permill(250_000)
    assert SchemaV2Override(FakeClient(), codec).elasticity(BLOCK) == Permill(125_000)


def test_v1_has_no_fee_market(codec):
    client = FakeClient({
        prefix(b"BaseFee", b"BaseFeePerGas"): (5).to_bytes(32, "little"),
        prefix(b"BaseFee", b"Elasticity"): (1).to_bytes(4, "little"),
    })
    override = SchemaV1Override(client, codec)
    assert override.base_fee(BLOCK) is None
    assert override.elasticity(BLOCK) is None
    assert override.is_eip1559(BLOCK) is False
    assert SchemaV2Override(client, codec).is_eip1559(BLOCK) is True


class FakeApi:
    def __init__(self, version):
        self.version = version

    def api_version(self, block):
        if self.version == "error":
            raise RuntimeError("no api")
        return self.version

    def account_code_at(self, block, address):
        return b"code:" + address

    def storage_at(self, block, address, index):
        raise RuntimeError("state unavailable")

    def current_block_before_version_2(self, block):
        return ("v0", b"old")

    def current_block(self, block):
        return ("v2", b"new")

    def current_receipts_before_version_4(self, block):
        return [ReceiptV0(bytes(31) + b"\x01", 50, b"", ())]

    def current_receipts(self, block):
        return [("v3", 1)]

    def current_transaction_statuses(self, block):
        return ["status"]

    def gas_price(self, block):
        return 42

    def elasticity(self, block):
        return Permill(300_000)


def test_runtime_api_passes_through_and_hides_errors(codec):
    override = RuntimeApiStorageOverride(FakeApi(4), codec)
    assert override.account_code_at(BLOCK, ADDRESS) == b"code:" + ADDRESS
    assert override.storage_at(BLOCK, ADDRESS, 0) is None
    assert override.current_transaction_statuses(BLOCK) == ["status"]


def test_runtime_api_version_one_upgrades_block(codec):
    assert RuntimeApiStorageOverride(FakeApi(1), codec).current_block(BLOCK) == ("v2", b"old")
    assert RuntimeApiStorageOverride(FakeApi(2), codec).current_block(BLOCK) == ("v2", b"new")


def test_runtime_api_receipts_by_version(codec):
    assert RuntimeApiStorageOverride(FakeApi(3), codec).current_receipts(BLOCK) == [
        ("legacy", 1, 50)
    ]
    assert RuntimeApiStorageOverride(FakeApi(4), codec).current_receipts(BLOCK) == [("v3", 1)]


def test_runtime_api_fee_market_needs_version_two(codec):
    old = RuntimeApiStorageOverride(FakeApi(1), codec)
    assert old.is_eip1559(BLOCK) is False
    assert old.base_fee(BLOCK) is None
    assert old.elasticity(BLOCK) is None
    new = RuntimeApiStorageOverride(FakeApi(2), codec)
    assert new.base_fee(BLOCK) == 42
    assert new.elasticity(BLOCK) == Permill(300_000)


@pytest.mark.parametrize("version", ["error", None])
def test_runtime_api_without_version_answers_none(version, codec):
    override = RuntimeApiStorageOverride(FakeApi(version), codec)
    assert override.current_block(BLOCK) is None
    assert override.current_receipts(BLOCK) is None
    assert override.is_eip1559(BLOCK) is False


def test_override_handle_selects_schema_or_fallback(codec):
    client = FakeClient()
    fallback = RuntimeApiStorageOverride(FakeApi(4), codec)
    v1 = SchemaV1Override(client, codec)
    v3 = SchemaV3Override(client, codec)
    handle = OverrideHandle(fallback, {StorageSchema.V1: v1, StorageSchema.V3: v3})
    assert handle.for_schema(StorageSchema.V1) is v1
    assert handle.for_schema(StorageSchema.V3) is v3
    assert handle.for_schema(StorageSchema.V2) is fallback