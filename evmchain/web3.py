"""The web3 RPC namespace: client version and Keccak hashing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .crypto import keccak256


@dataclass(frozen=True)
class RuntimeVersion:
    """The parts of a runtime's version reported by the client version."""

    spec_name: str
    spec_version: int
    impl_version: int


class Web3Error(Exception):
    """Raised when a web3 request cannot be answered."""


class Web3Client(Protocol):
    def best_hash(self) -> bytes: ...

    def runtime_version(self, block_hash: bytes) -> RuntimeVersion: ...


class Web3:
    """Answers web3_clientVersion and web3_sha3 requests."""

    def __init__(self, client: Web3Client, pkg_name: str = "evmchain", pkg_version: str = "0.1.0"):
        self.client = client
        self.pkg_name = pkg_name
        self.pkg_version = pkg_version

    def client_version(self) -> str:
        block_hash = self.client.best_hash()
        try:
            version = self.client.runtime_version(block_hash)
        except Exception as err:
            raise Web3Error(f"fetch runtime version failed: {err!r}") from err
        return (
            f"{version.spec_name}/v{version.spec_version}.{version.impl_version}"
            f"/{self.pkg_name}-{self.pkg_version}"
        )

    def sha3(self, data: bytes) -> bytes:
        return keccak256(bytes(data))