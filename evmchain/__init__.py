"""Runtime building blocks for an Ethereum-compatible chain: fees, signing, storage readers and blocks."""

__version__ = "0.1.0"