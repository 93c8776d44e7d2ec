"""Ethereum block emulation on top of an EVM runner."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

from .bloom import Bloom, Log, logs_bloom
from .crypto import keccak256, rlp_encode
from .overrides import StorageSchema
from .runtime import RuntimeDbWeight
from .transactions import EIP1559Transaction, EIP2930Transaction, LegacyTransaction
from .trie import ordered_trie_root
from .validation import (
    InvalidEvmTransactionError,
    Transaction,
    TransactionValidityError,
    ValidTransaction,
    build_pool_validity,
    ensure_ethereum_transaction,
    recover_signer,
    to_invalid_transaction,
    transaction_priority,
)

U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1
U256_MAX = 2**256 - 1
ZERO_HASH = bytes(32)
ZERO_ADDRESS = bytes(20)


@dataclass(frozen=True)
class ExecutionInfo:
    """What the EVM reports for a call or a create.

    For a call, value is the returned data; for a create, the new contract's address.
    """

    value: bytes
    used_gas: int
    logs: tuple = ()
    succeeded: bool = True


class RunnerError(Exception):
    """Raised by a runner when a transaction cannot be executed at all."""

    def __init__(self, error: Any, weight: int = 0):
        super().__init__(str(error))
        self.error = error
        self.weight = weight


class EvmCheckError(Exception):
    """Raised by a transaction checker when a transaction fails a check."""

    def __init__(self, error: InvalidEvmTransactionError):
        super().__init__(error.value)
        self.error = error


class DispatchError(Exception):
    """Raised when a dispatched call fails; carries the weight actually used."""

    def __init__(self, error: Any, actual_weight: Optional[int] = None, pays_fee: bool = True):
        super().__init__(str(error))
        self.error = error
        self.actual_weight = actual_weight
        self.pays_fee = pays_fee


class EvmRunner(Protocol):
    def account_basic(self, address: bytes) -> Any: ...

    def find_author(self) -> bytes: ...

    def call(self, source, target, input, value, gas_limit, max_fee_per_gas,
             max_priority_fee_per_gas, nonce, access_list, is_transactional,
             validate, config) -> ExecutionInfo: ...

    def create(self, source, input, value, gas_limit, max_fee_per_gas,
               max_priority_fee_per_gas, nonce, access_list, is_transactional,
               validate, config) -> ExecutionInfo: ...


class TransactionChecker(Protocol):
    def check(self, account, data, base_fee, chain_id, block_gas_limit, in_pool, config) -> None: ...


@dataclass(frozen=True)
class TransactionData:
    """The fields of any transaction type that execution and checks need."""

    action: Optional[bytes]
    input: bytes
    nonce: int
    gas_limit: int
    gas_price: Optional[int]
    max_fee_per_gas: Optional[int]
    max_priority_fee_per_gas: Optional[int]
    value: int
    chain_id: Optional[int]
    access_list: tuple = ()

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "TransactionData":
        if isinstance(transaction, LegacyTransaction):
            return cls(transaction.action, transaction.input, transaction.nonce,
                       transaction.gas_limit, transaction.gas_price, None, None,
                       transaction.value, transaction.signature.chain_id())
        if isinstance(transaction, EIP2930Transaction):
            return cls(transaction.action, transaction.input, transaction.nonce,
                       transaction.gas_limit, transaction.gas_price, None, None,
                       transaction.value, transaction.chain_id,
                       tuple(transaction.access_list))
        if isinstance(transaction, EIP1559Transaction):
            return cls(transaction.action, transaction.input, transaction.nonce,
                       transaction.gas_limit, None, transaction.max_fee_per_gas,
                       transaction.max_priority_fee_per_gas, transaction.value,
                       transaction.chain_id, tuple(transaction.access_list))
        raise TypeError(f"unsupported transaction type {type(transaction).__name__}")


def _access_list_rlp(items) -> list:
    return [[item.address, list(item.storage_keys)] for item in items]


def _enveloped(transaction_type: int, fields: list) -> bytes:
    """Legacy payloads are plain RLP lists; typed ones are RLP strings of type || payload."""
    if transaction_type == 0:
        return rlp_encode(fields)
    return rlp_encode(bytes([transaction_type]) + rlp_encode(fields))


def _encode_transaction(transaction: Transaction) -> bytes:
    if isinstance(transaction, LegacyTransaction):
        sig = transaction.signature
        return _enveloped(0, [
            transaction.nonce, transaction.gas_price, transaction.gas_limit,
            transaction.action, transaction.value, transaction.input, sig.v, sig.r, sig.s,
        ])
    if isinstance(transaction, EIP2930Transaction):
        return _enveloped(1, [
            transaction.chain_id, transaction.nonce, transaction.gas_price,
            transaction.gas_limit, transaction.action, transaction.value, transaction.input,
            _access_list_rlp(transaction.access_list), int(transaction.odd_y_parity),
            transaction.r, transaction.s,
        ])
    return _enveloped(2, [
        transaction.chain_id, transaction.nonce, transaction.max_priority_fee_per_gas,
        transaction.max_fee_per_gas, transaction.gas_limit, transaction.action,
        transaction.value, transaction.input, _access_list_rlp(transaction.access_list),
        int(transaction.odd_y_parity), transaction.r, transaction.s,
    ])


def _transaction_type(transaction: Transaction) -> int:
    if isinstance(transaction, EIP2930Transaction):
        return 1
    if isinstance(transaction, EIP1559Transaction):
        return 2
    return 0


def _log_rlp(log: Log) -> list:
    return [log.address, list(log.topics), log.data]


def _bloom_of(logs) -> bytes:
    return bytes(logs_bloom(logs, Bloom()))


@dataclass(frozen=True)
class Receipt:
    """A receipt; used_gas is cumulative over the block so far."""

    transaction_type: int
    status_code: int
    used_gas: int
    logs_bloom: bytes
    logs: tuple = ()

    def encode(self) -> bytes:
        fields = [self.status_code, self.used_gas, self.logs_bloom,
                  [_log_rlp(log) for log in self.logs]]
        return _enveloped(self.transaction_type, fields)


@dataclass(frozen=True)
class TransactionStatus:
    """Where a transaction sits in its block and what it did."""

    transaction_hash: bytes
    transaction_index: int
    from_address: bytes
    to: Optional[bytes]
    contract_address: Optional[bytes]
    logs: tuple
    logs_bloom: bytes


@dataclass(frozen=True)
class Header:
    parent_hash: bytes
    ommers_hash: bytes
    beneficiary: bytes
    state_root: bytes
    transactions_root: bytes
    receipts_root: bytes
    logs_bloom: bytes
    difficulty: int
    number: int
    gas_limit: int
    gas_used: int
    timestamp: int
    extra_data: bytes = b""
    mix_hash: bytes = ZERO_HASH
    nonce: bytes = bytes(8)

    def hash(self) -> bytes:
        return keccak256(rlp_encode([
            self.parent_hash, self.ommers_hash, self.beneficiary, self.state_root,
            self.transactions_root, self.receipts_root, self.logs_bloom,
            self.difficulty, self.number, self.gas_limit, self.gas_used,
            self.timestamp, self.extra_data, self.mix_hash, self.nonce,
        ]))


@dataclass(frozen=True)
class Block:
    header: Header
    transactions: tuple = ()
    ommers: tuple = ()


@dataclass(frozen=True)
class Executed:
    """Event: an Ethereum transaction was executed."""

    from_address: bytes
    to: bytes
    transaction_hash: bytes
    succeeded: bool


def _zero_hash() -> bytes:
    return ZERO_HASH


def _zero() -> int:
    return 0


def _identity(gas: int) -> int:
    return gas


@dataclass
class EthereumPallet:
    """Collects executed transactions into Ethereum blocks, receipts and statuses."""

    runner: EvmRunner
    checker: TransactionChecker
    fee_calculator: Callable[[], tuple]
    chain_id: int = 42
    block_gas_limit: int = 15_000_000
    block_hash_count: int = 250
    state_root: Callable[[], bytes] = _zero_hash
    timestamp: Callable[[], int] = _zero
    gas_to_weight: Callable[[int], int] = _identity
    db_weight: RuntimeDbWeight = field(default_factory=RuntimeDbWeight)
    kill_storage_weight: int = 0
    evm_config: Any = None
    pre_log: Optional[Block] = None
    pending: list = field(init=False, default_factory=list)
    current_block: Optional[Block] = field(init=False, default=None)
    current_receipts: Optional[list] = field(init=False, default=None)
    current_transaction_statuses: Optional[list] = field(init=False, default=None)
    block_hashes: dict = field(init=False, default_factory=dict)
    events: list = field(init=False, default_factory=list)
    post_logs: list = field(init=False, default_factory=list)
    storage_schema: StorageSchema = field(init=False, default=StorageSchema.V3)

    def __post_init__(self):
        self.store_block(False, 0)
        self.storage_schema = StorageSchema.V3

    def on_initialize(self, block_number: int) -> int:
        """Execute the transactions of an imported pre-log block, if any."""
        weight = self.kill_storage_weight
        if self.pre_log is not None:
            for transaction in self.pre_log.transactions:
                source = recover_signer(transaction)
                if source is None:
                    raise RuntimeError(
                        "pre-block transaction signature invalid; the block cannot be built")
                try:
                    self.validate_transaction_in_block(source, transaction)
                except TransactionValidityError as err:
                    raise RuntimeError(
                        "pre-block transaction verification failed; the block cannot be built"
                    ) from err
                try:
                    used = self.apply_validated_transaction(source, transaction)
                except DispatchError as err:
                    raise RuntimeError(
                        "pre-block apply transaction failed; the block cannot be built"
                    ) from err
                weight = min(weight + used, U64_MAX)
        return min(weight + self.db_weight.reads_writes(2, 2), U64_MAX)

    def on_finalize(self, block_number: int) -> None:
        self.store_block(self.pre_log is None, block_number)
        to_remove = max(max(block_number - self.block_hash_count, 0) - 1, 0)
        if to_remove:
            self.block_hashes.pop(min(to_remove, U32_MAX), None)
        self.pending.clear()

    def transact(self, origin, transaction: Transaction) -> int:
        """Apply a transaction sent from an Ethereum origin; return its weight (no fee)."""
        source = ensure_ethereum_transaction(origin)
        if self.pre_log is not None:
            raise RuntimeError("pre log already exists; block is invalid")
        return self.apply_validated_transaction(source, transaction)

    def execute(self, source: bytes, transaction: Transaction, config=None):
        """Run a transaction; return (target, created address, ExecutionInfo)."""
        data = TransactionData.from_transaction(transaction)
        if data.gas_price is not None:
            max_fee = max_priority = data.gas_price
        else:
            max_fee, max_priority = data.max_fee_per_gas, data.max_priority_fee_per_gas
        access_list = [(item.address, list(item.storage_keys)) for item in data.access_list]
        config = self.evm_config if config is None else config
        gas_limit = min(data.gas_limit, U64_MAX)
        try:
            if data.action is None:
                info = self.runner.create(
                    source, data.input, data.value, gas_limit, max_fee, max_priority,
                    data.nonce, access_list, True, False, config)
            else:
                info = self.runner.call(
                    source, data.action, data.input, data.value, gas_limit, max_fee,
                    max_priority, data.nonce, access_list, True, False, config)
        except RunnerError as err:
            raise DispatchError(err.error, err.weight, pays_fee=True) from err
        if data.action is None:
            return None, info.value, info
        return data.action, None, info

    def apply_validated_transaction(self, source: bytes, transaction: Transaction) -> int:
        """Execute and record a transaction; return the weight of the gas it used."""
        to, created, info = self.execute(source, transaction, None)
        transaction_hash = transaction.hash()
        logs = tuple(info.logs)
        status = TransactionStatus(
            transaction_hash=transaction_hash,
            transaction_index=len(self.pending),
            from_address=source,
            to=to,
            contract_address=created,
            logs=logs,
            logs_bloom=_bloom_of(logs),
        )
        if self.pending:
            cumulative = min(self.pending[-1][2].used_gas + info.used_gas, U256_MAX)
        else:
            cumulative = info.used_gas
        receipt = Receipt(
            transaction_type=_transaction_type(transaction),
            status_code=1 if info.succeeded else 0,
            used_gas=cumulative,
            logs_bloom=status.logs_bloom,
            logs=logs,
        )
        self.pending.append((transaction, status, receipt))
        dest = to if to is not None else created
        self.events.append(Executed(
            source, dest if dest is not None else ZERO_ADDRESS, transaction_hash, info.succeeded))
        return self.gas_to_weight(min(info.used_gas, U64_MAX))

    def store_block(self, post_log: bool, block_number: int) -> None:
        """Seal the pending transactions into the current block."""
        transactions, statuses, receipts = [], [], []
        bloom = Bloom()
        cumulative_gas_used = 0
        for transaction, status, receipt in self.pending:
            transactions.append(transaction)
            statuses.append(status)
            receipts.append(receipt)
            cumulative_gas_used = receipt.used_gas
            logs_bloom(receipt.logs, bloom)

        parent_hash = self.block_hash(block_number - 1) if block_number > 0 else ZERO_HASH
        header = Header(
            parent_hash=parent_hash,
            ommers_hash=keccak256(rlp_encode([])),
            beneficiary=self.runner.find_author(),
            state_root=self.state_root(),
            transactions_root=ordered_trie_root(_encode_transaction(t) for t in transactions),
            receipts_root=ordered_trie_root(r.encode() for r in receipts),
            logs_bloom=bytes(bloom),
            difficulty=0,
            number=block_number,
            gas_limit=self.block_gas_limit,
            gas_used=cumulative_gas_used,
            timestamp=min(max(self.timestamp(), 0), U64_MAX),
        )
        block = Block(header, tuple(transactions), ())
        block_hash = header.hash()
        self.current_block = block
        self.current_receipts = receipts
        self.current_transaction_statuses = statuses
        self.block_hashes[block_number] = block_hash
        if post_log:
            self.post_logs.append((block_hash, tuple(t.hash() for t in transactions)))

    def current_block_hash(self) -> Optional[bytes]:
        if self.current_block is None:
            return None
        return self.current_block.header.hash()

    def block_hash(self, number: int) -> bytes:
        """Return the Ethereum block hash by number, or zero if not kept."""
        return self.block_hashes.get(number, ZERO_HASH)

    def _check(self, origin: bytes, transaction: Transaction, in_pool: bool):
        data = TransactionData.from_transaction(transaction)
        base_fee, _ = self.fee_calculator()
        account = self.runner.account_basic(origin)
        try:
            self.checker.check(account, data, base_fee, self.chain_id,
                               self.block_gas_limit, in_pool, self.evm_config)
        except EvmCheckError as err:
            raise TransactionValidityError(to_invalid_transaction(err.error)) from err
        return data, base_fee, account

    def validate_transaction_in_pool(self, origin: bytes, transaction: Transaction) -> ValidTransaction:
        """Checks made by the pool; a nonce ahead of the account stays valid."""
        data, base_fee, account = self._check(origin, transaction, True)
        priority = transaction_priority(
            data.gas_price, data.max_fee_per_gas, data.max_priority_fee_per_gas, base_fee)
        return build_pool_validity(origin, data.nonce, account.nonce, priority)

    def validate_transaction_in_block(self, origin: bytes, transaction: Transaction) -> None:
        """Checks made just before a transaction is applied in a block."""
        self._check(origin, transaction, False)