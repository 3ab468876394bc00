"""Batch-ledger pricing and profit engine for pharmacy point of sale."""

__version__ = "0.1.0"
