# evmchain

A pure-Python library for the runtime side of an Ethereum-compatible chain.
It covers fee adjustment, transaction signing and signer recovery, raw storage
readers, and collecting executed transactions into Ethereum blocks. Pallets
keep their state in memory as plain attributes.

## Modules

- `evmchain.runtime`: `Origin` (`ROOT`, `NONE`, `SIGNED`), `ensure_root`, `ensure_none` and `BadOrigin`, plus `RuntimeDbWeight` with `reads`, `writes` and `reads_writes`. Weights saturate at 2**64 - 1.
- `evmchain.base_fee`: `Permill`, `BaseFeeThreshold`, `BaseFeeGenesis`, `BaseFeeEvent` and `BaseFeePallet`.
  - After each block, `on_finalize(block_weight, max_block_weight)` moves `base_fee_per_gas` according to how full the block was.
  - If scaling the fee would exceed 256 bits, the fee is left unchanged and a `BaseFeeOverflow` event is recorded.
  - `set_base_fee_per_gas`, `set_is_active` and `set_elasticity` require `Origin.ROOT` and record an event in `events`.
- `evmchain.dynamic_fee`: `DynamicFeePallet` and the `NoteMinGasPriceTarget` inherent call.
  - A target may be noted at most once per block.
  - At finalisation the minimum gas price moves towards the target. Each move is at most `current // divisor + 1`.
- `evmchain.crypto`: `keccak256`, `rlp_encode`, and deterministic, low-s, recoverable secp256k1 signing and recovery. Helpers:
  - `secret_to_public`
  - `public_key_address`
  - `secret_key_address`
  - `sign_recoverable`
  - `recover_public_key`
  - `CryptoError` for errors.
- `evmchain.transactions`: the three transaction types, each as a message and as a signed transaction, with `hash()`:
  - legacy: `LegacyTransactionMessage` / `LegacyTransaction`, signed with a `TransactionSignature` that takes an optional chain id in `v`;
  - EIP-2930: `EIP2930TransactionMessage` / `EIP2930Transaction`;
  - EIP-1559: `EIP1559TransactionMessage` / `EIP1559Transaction`.
  - `AccessListItem` holds an access-list entry.
- `evmchain.signer`: the abstract `EthSigner` and `EthDevSigner`, which holds one fixed development key. If the address has no key, `sign` raises `SignerError`.
- `evmchain.web3`: `Web3` with `client_version()` and `sha3(data)`.
  - `client_version()` returns a string of the form `spec_name/vSPEC.IMPL/pkg-version`. The runtime version comes from a client object that provides `best_hash()` and `runtime_version(hash)`.
  - Failures are raised as `Web3Error`.
- `evmchain.storage_keys`: `twox_64`, `twox_128`, `blake2_128`, `storage_prefix_build` and `blake2_128_extend`.
- `evmchain.overrides`: `StorageSchema`, the abstract `StorageOverride`, and its implementations:
  - `SchemaV1Override`, `SchemaV2Override` and `SchemaV3Override` read raw storage through a client's `storage(block, key)`;
  - `RuntimeApiStorageOverride` goes through a runtime API object and returns `None` whenever a call fails.
  - `OverrideHandle.for_schema` picks an override by schema and falls back to a default.
- `evmchain.bloom`: `Log`, the 2048-bit `Bloom` (`accrue`, `contains`) and `logs_bloom`.
- `evmchain.trie`: `ordered_trie_root`, the Merkle Patricia root of items keyed by their RLP-encoded index.
- `evmchain.validation`: the validity types and helpers.
  - Types: `InvalidTransaction`, `TransactionValidationError`, `InvalidEvmTransactionError`, the exception `TransactionValidityError`, `ValidTransaction` and `EthereumOrigin`.
  - Helpers:
    - `to_invalid_transaction`
    - `ensure_ethereum_transaction`
    - `recover_signer`
    - `transaction_priority`
    - `build_pool_validity`
- `evmchain.pallet`: `EthereumPallet`.
  - It executes transactions through a runner and records a `Receipt` and a `TransactionStatus` for each one.
  - `store_block` seals the pending transactions into a `Block`/`Header`, and block hashes are kept for the last `block_hash_count` blocks.
  - Execution failures raise `DispatchError`.

## Installation

```
pip install evmchain
```

With the test dependencies:

```
pip install "evmchain[test]"
```

## Example: base fee adjustment

```python
from evmchain.base_fee import BaseFeeGenesis, BaseFeePallet

pallet = BaseFeePallet(genesis=BaseFeeGenesis(base_fee_per_gas=1_000_000_000))

# A full block raises the base fee by the whole elasticity (12.5% by default).
pallet.on_finalize(block_weight=1_000, max_block_weight=1_000)
print(pallet.base_fee_per_gas)  # 1125000000
```

## Example: minimum gas price

```python
from evmchain.dynamic_fee import DynamicFeePallet
from evmchain.runtime import Origin

pallet = DynamicFeePallet(min_gas_price_bound_divisor=1024, genesis_min_gas_price=1000)
pallet.on_initialize(1)
pallet.note_min_gas_price_target(Origin.NONE, 2000)
pallet.on_finalize(1)
print(pallet.min_gas_price())  # (1001, 0): the move is bounded
```

## Example: signing and recovering the sender

```python
from evmchain.signer import EthDevSigner
from evmchain.transactions import EIP1559TransactionMessage
from evmchain.validation import recover_signer

signer = EthDevSigner()
account = signer.accounts()[0]
message = EIP1559TransactionMessage(
    chain_id=42, nonce=0, max_priority_fee_per_gas=1, max_fee_per_gas=1,
    gas_limit=21_000, action=bytes(20), value=0,
)
transaction = signer.sign(message, account)
assert recover_signer(transaction) == account
```

## What the package does not do

- It has no EVM interpreter. `EthereumPallet` executes transactions through a runner object supplied by the caller, which provides `call`, `create`, `account_basic` and `find_author`.
- It does not carry out the EVM transaction checks itself. Those come from a checker object that raises `EvmCheckError`.
- It does not decode the composite storage values of blocks, receipts and transaction statuses. The storage overrides pass these to a codec object supplied by the caller. Only byte vectors, hashes, 256-bit integers and `Permill` values are decoded in the package.
- It contains no node, no networking, no RPC server and no persistent storage.

## Running the tests

```
pytest
```