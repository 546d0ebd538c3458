"""
shadowswap - Bitcoin HTLC leg for cross-chain atomic swaps

Builds P2WSH hash time-locked contracts with a relative (CSV) refund
timelock, and the transactions that claim them with the secret or refund
them after the timeout. Nothing here talks to a node: funding, broadcast
and confirmation tracking are left to the caller.

Usage:
    from shadowswap import TESTNET, generate_secret, generate_keypair
    from shadowswap import generate_htlc, build_claim_tx

    secret, secret_hash = generate_secret()
    claimer = generate_keypair(TESTNET)
    refunder = generate_keypair(TESTNET)

    # Fund contract.address externally
    contract = generate_htlc(secret_hash, claimer.public_key,
                             refunder.public_key, 144, TESTNET)

    # Claim once the funding output is known
    tx = build_claim_tx(txid, vout, amount, claimer, secret,
                        contract.script, destination, 500, TESTNET)
    print(tx.txid, tx.tx_hex)
"""

from .core import (
    HTLCError,
    ValidationError,
    CryptographicError,
    ConstructionError,
    FundingOutput,
    generate_secret,
    verify_preimage,
    sha256,
    DEFAULT_TIMEOUT_BLOCKS,
    DEFAULT_FEE_SATS,
)

from .chains.btc import (
    BTCNetwork,
    HTLCConfig,
    MAINNET,
    TESTNET,
    SIGNET,
    REGTEST,
    get_network,
    p2wpkh_address,
)
from .keys import Keypair, generate_keypair, keypair_from_private_key, keypair_from_wif, load_keypair

from .htlc.script import HTLCContract, build_htlc_script, generate_htlc, parse_htlc_script
from .htlc.transaction import (
    SpendTransaction,
    build_claim_tx,
    build_refund_tx,
    presign_spend,
    complete_claim,
    complete_refund,
    extract_preimage,
)
from .htlc.record import ContractRecord

__version__ = "0.1.0"
__all__ = [
    # Errors
    "HTLCError",
    "ValidationError",
    "CryptographicError",
    "ConstructionError",
    # Core types
    "FundingOutput",
    "DEFAULT_TIMEOUT_BLOCKS",
    "DEFAULT_FEE_SATS",
    # Utilities
    "generate_secret",
    "verify_preimage",
    "sha256",
    # Networks
    "BTCNetwork",
    "HTLCConfig",
    "MAINNET",
    "TESTNET",
    "SIGNET",
    "REGTEST",
    "get_network",
    "p2wpkh_address",
    # Keys
    "Keypair",
    "generate_keypair",
    "keypair_from_private_key",
    "keypair_from_wif",
    "load_keypair",
    # HTLC
    "HTLCContract",
    "build_htlc_script",
    "generate_htlc",
    "parse_htlc_script",
    "SpendTransaction",
    "build_claim_tx",
    "build_refund_tx",
    "presign_spend",
    "complete_claim",
    "complete_refund",
    "extract_preimage",
    "ContractRecord",
]
