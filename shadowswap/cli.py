#!/usr/bin/env python3
"""
shadowswap-htlc - create an HTLC record and build its claim/refund transactions.

    shadowswap-htlc new --network testnet --timeout 144 --out htlc.json
    shadowswap-htlc claim --network testnet --record htlc.json --txid <txid> --vout 0 --amount 100000
    shadowswap-htlc refund --network testnet --record htlc.json --txid <txid> --vout 0 --amount 100000

claim/refund print {"txid": ..., "hex": ...}. Broadcasting is up to the caller.
"""

import argparse
import json
import logging
import sys

from .core import HTLCError, ValidationError, DEFAULT_FEE_SATS, DEFAULT_TIMEOUT_BLOCKS
from .chains.btc import NETWORKS, HTLCConfig, get_network, p2wpkh_address
from .htlc.record import ContractRecord
from .htlc.transaction import build_claim_tx, build_refund_tx

log = logging.getLogger("shadowswap.cli")


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_new(args) -> dict:
    config = HTLCConfig(network=get_network(args.network), timeout_blocks=args.timeout)
    record = ContractRecord.from_config(config)
    record.save(args.out)
    return {
        "address": record.address,
        "scriptHex": record.script.hex(),
        "timeout": record.timeout,
        "network": record.network.name,
        "record": args.out,
    }


def _load_spend(args):
    """Load the record on the requested network and resolve the fee."""
    record = ContractRecord.load(args.record, get_network(args.network))
    config = HTLCConfig(network=record.network, timeout_blocks=record.timeout)
    fee = args.fee if args.fee is not None else config.fee_sats
    return record, fee


def cmd_claim(args) -> dict:
    record, fee = _load_spend(args)
    if record.secret is None:
        raise ValidationError("Invalid contract record: no preimage to claim with")
    keypair = record.claimer.keypair
    if keypair is None:
        raise ValidationError("Invalid contract record: no claimer private key")

    destination = args.destination or p2wpkh_address(keypair.public_key, record.network)
    tx = build_claim_tx(
        args.txid, args.vout, args.amount, keypair, record.secret, record.script,
        destination, fee, record.network,
    )
    return {"txid": tx.txid, "hex": tx.tx_hex}


def cmd_refund(args) -> dict:
    record, fee = _load_spend(args)
    keypair = record.refunder.keypair
    if keypair is None:
        raise ValidationError("Invalid contract record: no refunder private key")

    destination = args.destination or p2wpkh_address(keypair.public_key, record.network)
    tx = build_refund_tx(
        args.txid, args.vout, args.amount, keypair, record.script,
        destination, record.timeout, fee, record.network,
    )
    return {"txid": tx.txid, "hex": tx.tx_hex}


# =============================================================================
# MAIN
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shadowswap-htlc",
        description="Bitcoin P2WSH HTLC for cross-chain atomic swaps",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    new = sub.add_parser("new", help="Create a fresh HTLC record")
    new.add_argument("--network", default="testnet", choices=sorted(NETWORKS),
                     help="Bitcoin network (default: testnet)")
    new.add_argument("--timeout", type=int, default=DEFAULT_TIMEOUT_BLOCKS,
                     help=f"Refund timelock in blocks (default: {DEFAULT_TIMEOUT_BLOCKS})")
    new.add_argument("--out", default="htlc.json", help="Record file to write")
    new.set_defaults(func=cmd_new)

    for name, func, help_text in (("claim", cmd_claim, "Build the claim transaction"),
                                  ("refund", cmd_refund, "Build the refund transaction")):
        spend = sub.add_parser(name, help=help_text)
        spend.add_argument("--network", default="testnet", choices=sorted(NETWORKS),
                           help="Bitcoin network of the record (default: testnet)")
        spend.add_argument("--record", default="htlc.json", help="Record file to read")
        spend.add_argument("--txid", required=True, help="Funding transaction id")
        spend.add_argument("--vout", type=int, default=0, help="HTLC output index")
        spend.add_argument("--amount", type=int, required=True, help="HTLC output value (sats)")
        spend.add_argument("--fee", type=int, default=None,
                           help=f"Absolute fee in sats (default: {DEFAULT_FEE_SATS})")
        spend.add_argument("--destination", default=None,
                           help="Payout address (default: P2WPKH of the spending key)")
        spend.set_defaults(func=func)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
    )

    try:
        result = args.func(args)
    except HTLCError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
