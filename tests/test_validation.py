import pytest

from evmchain.runtime import BadOrigin, Origin
from evmchain.signer import EthDevSigner
from evmchain.transactions import (
    AccessListItem,
    EIP1559Transaction,
    EIP1559TransactionMessage,
    EIP2930TransactionMessage,
    LegacyTransactionMessage,
)
from evmchain.validation import (
    U64_MAX,
    EthereumOrigin,
    InvalidEvmTransactionError,
    InvalidTransaction,
    TransactionValidationError,
    TransactionValidityError,
    build_pool_validity,
    ensure_ethereum_transaction,
    recover_signer,
    to_invalid_transaction,
    transaction_priority,
)

ALICE = bytes.fromhex("32dcab0ef3fb2de2fce1d2e0799d36239671f04a")


@pytest.fixture
def signer():
    return EthDevSigner()


@pytest.mark.parametrize(
    "error, expected",
    [
        (InvalidEvmTransactionError.GAS_LIMIT_TOO_LOW,
         InvalidTransaction.custom(TransactionValidationError.INVALID_GAS_LIMIT)),
        (InvalidEvmTransactionError.GAS_LIMIT_TOO_HIGH,
         InvalidTransaction.custom(TransactionValidationError.INVALID_GAS_LIMIT)),
        (InvalidEvmTransactionError.GAS_PRICE_TOO_LOW, InvalidTransaction.PAYMENT),
        (InvalidEvmTransactionError.PRIORITY_FEE_TOO_HIGH,
         InvalidTransaction.custom(TransactionValidationError.MAX_FEE_PER_GAS_TOO_LOW)),
        (InvalidEvmTransactionError.BALANCE_TOO_LOW, InvalidTransaction.PAYMENT),
        (InvalidEvmTransactionError.TX_NONCE_TOO_LOW, InvalidTransaction.STALE),
        (InvalidEvmTransactionError.TX_NONCE_TOO_HIGH, InvalidTransaction.FUTURE),
        (InvalidEvmTransactionError.INVALID_PAYMENT_INPUT, InvalidTransaction.PAYMENT),
        (InvalidEvmTransactionError.INVALID_CHAIN_ID,
         InvalidTransaction.custom(TransactionValidationError.INVALID_CHAIN_ID)),
    ],
)
def test_evm_error_mapping(error, expected):
    assert to_invalid_transaction(error) == expected


def test_invalid_chain_id_custom_code():
    invalid = to_invalid_transaction(InvalidEvmTransactionError.INVALID_CHAIN_ID)
    assert invalid.kind == "Custom"
    assert invalid.code == TransactionValidationError.INVALID_CHAIN_ID


def test_ensure_ethereum_transaction_returns_address():
    assert ensure_ethereum_transaction(EthereumOrigin(ALICE)) == ALICE


@pytest.mark.parametrize("origin", [Origin.ROOT, Origin.NONE, Origin.SIGNED])
def test_ensure_ethereum_transaction_rejects_other_origins(origin):
    with pytest.raises(BadOrigin, match="expected to be an Ethereum transaction"):
        ensure_ethereum_transaction(origin)


def test_recover_legacy_signer(signer):
    address = signer.accounts()[0]
    message = LegacyTransactionMessage(0, 1, 0x100000, None, 0, b"\x60\x80")
    assert recover_signer(signer.sign(message, address)) == address


def test_recover_legacy_signer_with_chain_id(signer):
    address = signer.accounts()[0]
    message = LegacyTransactionMessage(3, 1, 21000, ALICE, 5, b"", chain_id=42)
    assert recover_signer(signer.sign(message, address)) == address


def test_recover_eip2930_signer(signer):
    address = signer.accounts()[0]
    message = EIP2930TransactionMessage(
        42, 0, 1, 0x100000, ALICE, 0, b"\xc2\x98\x55\x78",
        (AccessListItem(ALICE, (b"\x00" * 32,)),),
    )
    assert recover_signer(signer.sign(message, address)) == address


def test_recover_eip1559_signer(signer):
    address = signer.accounts()[0]
    message = EIP1559TransactionMessage(42, 0, 1, 1, 0x100000, None, 0, b"\x60")
    assert recover_signer(signer.sign(message, address)) == address


def test_tampered_transaction_recovers_other_address(signer):
    address = signer.accounts()[0]
    message = EIP1559TransactionMessage(42, 0, 1, 1, 0x100000, None, 0, b"\x60")
    signed = signer.sign(message, address)
    tampered = EIP1559Transaction(
        signed.chain_id, signed.nonce + 1, signed.max_priority_fee_per_gas,
        signed.max_fee_per_gas, signed.gas_limit, signed.action, signed.value,
        signed.input, signed.access_list, signed.odd_y_parity, signed.r, signed.s,
    )
    assert recover_signer(tampered) != address


def test_invalid_signature_recovers_nothing():
    transaction = EIP1559Transaction(42, 0, 1, 1, 21000, ALICE, 0, b"", (), False, 0, 0)
    assert recover_signer(transaction) is None


def test_legacy_priority_is_tip_above_base_fee():
    assert transaction_priority(10, None, None, 0) == 10


def test_legacy_priority_saturates_at_zero():
    assert transaction_priority(5, None, None, 100) == 0


def test_eip1559_priority_without_tip_is_zero():
    assert transaction_priority(None, 1000, None, 1) == 0


def test_eip1559_priority_limited_by_tip():
    assert transaction_priority(None, 1000, 7, 10) == 7


def test_eip1559_priority_limited_by_fee_headroom():
    assert transaction_priority(None, 15, 50, 10) == 5


def test_priority_saturates_to_u64():
    assert transaction_priority(2**80, None, None, 0) == U64_MAX


@pytest.mark.parametrize(
    "gas_price, max_fee, max_tip",
    [(1, 1, None), (None, None, None), (None, None, 1), (1, None, 1)],
)
def test_priority_rejects_mixed_fields(gas_price, max_fee, max_tip):
    with pytest.raises(TransactionValidityError) as info:
        transaction_priority(gas_price, max_fee, max_tip, 0)
    assert info.value.invalid == InvalidTransaction.PAYMENT


def test_pool_validity_for_future_nonce():
    validity = build_pool_validity(ALICE, 1, 0, 0)
    assert validity.provides == [(ALICE, 1)]
    assert validity.requires == [(ALICE, 0)]
    assert validity.priority == 0


def test_pool_validity_for_current_nonce_requires_nothing():
    validity = build_pool_validity(ALICE, 4, 4, 9)
    assert validity.provides == [(ALICE, 4)]
    assert validity.requires == []
    assert validity.priority == 9


def test_pool_validity_for_zero_nonce():
    validity = build_pool_validity(ALICE, 0, 0, 0)
    assert validity.requires == []
    assert validity.longevity == U64_MAX