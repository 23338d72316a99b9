"""Stake nonce reconciliation agent for Ethereum-staked Heimdall validators."""

__version__ = "0.1.0"
