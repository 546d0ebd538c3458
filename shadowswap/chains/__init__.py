"""
Chain support for shadowswap.

Only Bitcoin is implemented:
- Network parameters (mainnet, testnet, signet, regtest)
- Address encoding/decoding (bech32, bech32m, base58)
"""

from .btc import (
    BTCNetwork,
    HTLCConfig,
    MAINNET,
    TESTNET,
    SIGNET,
    REGTEST,
    NETWORKS,
    get_network,
)

__all__ = [
    "BTCNetwork",
    "HTLCConfig",
    "MAINNET",
    "TESTNET",
    "SIGNET",
    "REGTEST",
    "NETWORKS",
    "get_network",
]
