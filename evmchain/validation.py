"""Transaction validity errors, signer recovery and pool validity."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import ClassVar, Optional, Union

from .crypto import CryptoError, public_key_address, recover_public_key
from .runtime import BadOrigin
from .transactions import EIP1559Transaction, EIP2930Transaction, LegacyTransaction

U64_MAX = 2**64 - 1

Transaction = Union[LegacyTransaction, EIP2930Transaction, EIP1559Transaction]


class TransactionValidationError(enum.IntEnum):
    """Custom codes reported inside InvalidTransaction.custom."""

    UNKNOWN_ERROR = 0
    INVALID_CHAIN_ID = 1
    INVALID_SIGNATURE = 2
    INVALID_GAS_LIMIT = 3
    MAX_FEE_PER_GAS_TOO_LOW = 4


@dataclass(frozen=True)
class InvalidTransaction:
    """Why a transaction is invalid; custom reasons carry a code."""

    kind: str
    code: Optional[int] = None

    PAYMENT: ClassVar["InvalidTransaction"]
    STALE: ClassVar["InvalidTransaction"]
    FUTURE: ClassVar["InvalidTransaction"]
    BAD_PROOF: ClassVar["InvalidTransaction"]

    @classmethod
    def custom(cls, code: int) -> "InvalidTransaction":
        return cls("Custom", int(code))


InvalidTransaction.PAYMENT = InvalidTransaction("Payment")
InvalidTransaction.STALE = InvalidTransaction("Stale")
InvalidTransaction.FUTURE = InvalidTransaction("Future")
InvalidTransaction.BAD_PROOF = InvalidTransaction("BadProof")


class InvalidEvmTransactionError(enum.Enum):
    """Reasons the EVM transaction checks reject a transaction."""

    GAS_LIMIT_TOO_LOW = "GasLimitTooLow"
    GAS_LIMIT_TOO_HIGH = "GasLimitTooHigh"
    GAS_PRICE_TOO_LOW = "GasPriceTooLow"
    PRIORITY_FEE_TOO_HIGH = "PriorityFeeTooHigh"
    BALANCE_TOO_LOW = "BalanceTooLow"
    TX_NONCE_TOO_LOW = "TxNonceTooLow"
    TX_NONCE_TOO_HIGH = "TxNonceTooHigh"
    INVALID_PAYMENT_INPUT = "InvalidPaymentInput"
    INVALID_CHAIN_ID = "InvalidChainId"


class TransactionValidityError(Exception):
    """Raised when a transaction is invalid."""

    def __init__(self, invalid: InvalidTransaction):
        super().__init__(invalid.kind if invalid.code is None else f"{invalid.kind}({invalid.code})")
        self.invalid = invalid


@dataclass
class ValidTransaction:
    """Information the pool keeps about a valid transaction."""

    priority: int = 0
    requires: list = field(default_factory=list)
    provides: list = field(default_factory=list)
    longevity: int = U64_MAX
    propagate: bool = True


@dataclass(frozen=True)
class EthereumOrigin:
    """The origin of a call made by an Ethereum transaction from address."""

    address: bytes


_EVM_ERRORS = {
    InvalidEvmTransactionError.GAS_LIMIT_TOO_LOW:
        InvalidTransaction.custom(TransactionValidationError.INVALID_GAS_LIMIT),
    InvalidEvmTransactionError.GAS_LIMIT_TOO_HIGH:
        InvalidTransaction.custom(TransactionValidationError.INVALID_GAS_LIMIT),
    InvalidEvmTransactionError.GAS_PRICE_TOO_LOW: InvalidTransaction.PAYMENT,
    InvalidEvmTransactionError.PRIORITY_FEE_TOO_HIGH:
        InvalidTransaction.custom(TransactionValidationError.MAX_FEE_PER_GAS_TOO_LOW),
    InvalidEvmTransactionError.BALANCE_TOO_LOW: InvalidTransaction.PAYMENT,
    InvalidEvmTransactionError.TX_NONCE_TOO_LOW: InvalidTransaction.STALE,
    InvalidEvmTransactionError.TX_NONCE_TOO_HIGH: InvalidTransaction.FUTURE,
    InvalidEvmTransactionError.INVALID_PAYMENT_INPUT: InvalidTransaction.PAYMENT,
    InvalidEvmTransactionError.INVALID_CHAIN_ID:
        InvalidTransaction.custom(TransactionValidationError.INVALID_CHAIN_ID),
}


def to_invalid_transaction(error: InvalidEvmTransactionError) -> InvalidTransaction:
    """Map an EVM check failure to the reason reported to the pool."""
    return _EVM_ERRORS[error]


def ensure_ethereum_transaction(origin) -> bytes:
    """Return the sender address of an Ethereum transaction origin."""
    if isinstance(origin, EthereumOrigin):
        return origin.address
    raise BadOrigin("bad origin: expected to be an Ethereum transaction")


def recover_signer(transaction: Transaction) -> Optional[bytes]:
    """Return the address that signed the transaction, or None if it cannot be recovered."""
    if isinstance(transaction, LegacyTransaction):
        signature = transaction.signature
        r, s, recovery_id = signature.r, signature.s, signature.standard_v()
    elif isinstance(transaction, (EIP2930Transaction, EIP1559Transaction)):
        r, s, recovery_id = transaction.r, transaction.s, int(transaction.odd_y_parity)
    else:
        return None
    try:
        public = recover_public_key(transaction.message().hash(), r, s, recovery_id)
    except CryptoError:
        return None
    return public_key_address(public)


def transaction_priority(
    gas_price: Optional[int],
    max_fee_per_gas: Optional[int],
    max_priority_fee_per_gas: Optional[int],
    base_fee: int,
) -> int:
    """Return the tip a transaction pays above the base fee, capped to 64 bits."""
    if gas_price is not None and max_fee_per_gas is None and max_priority_fee_per_gas is None:
        tip = max(gas_price - base_fee, 0)
    elif gas_price is None and max_fee_per_gas is not None and max_priority_fee_per_gas is None:
        tip = 0
    elif gas_price is None and max_fee_per_gas is not None and max_priority_fee_per_gas is not None:
        tip = min(max(max_fee_per_gas - base_fee, 0), max_priority_fee_per_gas)
    else:
        raise TransactionValidityError(InvalidTransaction.PAYMENT)
    return min(tip, U64_MAX)


def build_pool_validity(
    origin: bytes, transaction_nonce: int, account_nonce: int, priority: int
) -> ValidTransaction:
    """Build the pool entry; a nonce ahead of the account requires its predecessor."""
    validity = ValidTransaction(priority=priority, provides=[(origin, transaction_nonce)])
    if transaction_nonce > account_nonce and transaction_nonce >= 1:
        validity.requires.append((origin, transaction_nonce - 1))
    return validity