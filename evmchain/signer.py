"""Signers that turn unsigned transaction messages into signed transactions."""

from __future__ import annotations

import abc
from typing import Union

from .crypto import CryptoError, secret_key_address, sign_recoverable
from .transactions import (
    EIP1559Transaction,
    EIP1559TransactionMessage,
    EIP2930Transaction,
    EIP2930TransactionMessage,
    LegacyTransaction,
    LegacyTransactionMessage,
    TransactionSignature,
)

TransactionMessage = Union[
    LegacyTransactionMessage, EIP2930TransactionMessage, EIP1559TransactionMessage
]
SignedTransaction = Union[LegacyTransaction, EIP2930Transaction, EIP1559Transaction]

DEV_SECRET_KEY = bytes([0x11]) * 32


class SignerError(Exception):
    """Raised when a message cannot be signed."""


class EthSigner(abc.ABC):
    """A generic Ethereum signer."""

    @abc.abstractmethod
    def accounts(self) -> list[bytes]:
        """Return the addresses this signer holds keys for."""

    @abc.abstractmethod
    def sign(self, message: TransactionMessage, address: bytes) -> SignedTransaction:
        """Sign the message with the key belonging to address."""


def _signature(message_hash: bytes, secret: bytes) -> tuple[int, int, int]:
    try:
        return sign_recoverable(message_hash, secret)
    except CryptoError as exc:
        raise SignerError("invalid signing message") from exc


def _sign_legacy(message: LegacyTransactionMessage, secret: bytes) -> LegacyTransaction:
    r, s, recovery_id = _signature(message.hash(), secret)
    if message.chain_id is None:
        v = 27 + recovery_id
    else:
        v = 2 * message.chain_id + 35 + recovery_id
    try:
        signature = TransactionSignature(v, r, s)
    except ValueError as exc:
        raise SignerError("signer generated invalid signature") from exc
    return LegacyTransaction(
        nonce=message.nonce,
        gas_price=message.gas_price,
        gas_limit=message.gas_limit,
        action=message.action,
        value=message.value,
        input=message.input,
        signature=signature,
    )


def _sign_eip2930(message: EIP2930TransactionMessage, secret: bytes) -> EIP2930Transaction:
    r, s, recovery_id = _signature(message.hash(), secret)
    return EIP2930Transaction(
        chain_id=message.chain_id,
        nonce=message.nonce,
        gas_price=message.gas_price,
        gas_limit=message.gas_limit,
        action=message.action,
        value=message.value,
        input=bytes(message.input),
        access_list=tuple(message.access_list),
        odd_y_parity=recovery_id != 0,
        r=r,
        s=s,
    )


def _sign_eip1559(message: EIP1559TransactionMessage, secret: bytes) -> EIP1559Transaction:
    r, s, recovery_id = _signature(message.hash(), secret)
    return EIP1559Transaction(
        chain_id=message.chain_id,
        nonce=message.nonce,
        max_priority_fee_per_gas=message.max_priority_fee_per_gas,
        max_fee_per_gas=message.max_fee_per_gas,
        gas_limit=message.gas_limit,
        action=message.action,
        value=message.value,
        input=bytes(message.input),
        access_list=tuple(message.access_list),
        odd_y_parity=recovery_id != 0,
        r=r,
        s=s,
    )


class EthDevSigner(EthSigner):
    """A signer holding a single well-known development key."""

    def __init__(self) -> None:
        self._keys = (DEV_SECRET_KEY,)

    def accounts(self) -> list[bytes]:
        return [secret_key_address(secret) for secret in self._keys]

    def sign(self, message: TransactionMessage, address: bytes) -> SignedTransaction:
        secret = next(
            (key for key in self._keys if secret_key_address(key) == bytes(address)), None
        )
        if secret is None:
            raise SignerError("signer not available")
        if isinstance(message, LegacyTransactionMessage):
            return _sign_legacy(message, secret)
        if isinstance(message, EIP2930TransactionMessage):
            return _sign_eip2930(message, secret)
        if isinstance(message, EIP1559TransactionMessage):
            return _sign_eip1559(message, secret)
        raise SignerError(f"unsupported message type {type(message).__name__}")