#!/usr/bin/env python3
"""
Command-line Tool Tests

new -> claim / refund against a temporary record file.
"""

import sys
import os
import io
import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout

from bitcoin.core import CTransaction

# Add package to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from shadowswap.chains.btc import REGTEST, HTLCConfig
from shadowswap.cli import main
from shadowswap.htlc.record import ContractRecord
from shadowswap.htlc.transaction import extract_preimage

FUNDING_TXID = "c" * 64


def run_cli(*argv):
    out = io.StringIO()
    with redirect_stdout(out):
        main(list(argv))
    return json.loads(out.getvalue())


class TestCLI(unittest.TestCase):
    """End-to-end through the argparse entry point."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "htlc.json")
        self.created = run_cli("new", "--network", "regtest", "--timeout", "20", "--out", self.path)

    def tearDown(self):
        self.tmp.cleanup()

    def test_new(self):
        self.assertTrue(self.created["address"].startswith("bcrt1q"))
        self.assertEqual(self.created["timeout"], 20)
        record = ContractRecord.load(self.path, REGTEST)
        self.assertEqual(record.address, self.created["address"])

    def test_claim(self):
        result = run_cli("claim", "--network", "regtest", "--record", self.path, "--txid", FUNDING_TXID,
                         "--vout", "1", "--amount", "100000")
        self.assertEqual(set(result), {"txid", "hex"})
        tx = CTransaction.deserialize(bytes.fromhex(result["hex"]))
        self.assertEqual(tx.vout[0].nValue, 100_000 - HTLCConfig(network=REGTEST).fee_sats)
        record = ContractRecord.load(self.path, REGTEST)
        self.assertEqual(extract_preimage(result["hex"]), record.secret)

    def test_refund(self):
        result = run_cli("refund", "--network", "regtest", "--record", self.path, "--txid", FUNDING_TXID,
                         "--amount", "100000", "--fee", "1000")
        tx = CTransaction.deserialize(bytes.fromhex(result["hex"]))
        self.assertEqual(tx.vin[0].nSequence, 20)
        self.assertEqual(tx.vout[0].nValue, 99_000)

    def test_error_exits_1(self):
        err = io.StringIO()
        with redirect_stderr(err), redirect_stdout(io.StringIO()):
            with self.assertRaises(SystemExit) as cm:
                main(["refund", "--network", "regtest", "--record", self.path, "--txid", FUNDING_TXID,
                      "--amount", "300"])
        self.assertEqual(cm.exception.code, 1)
        self.assertIn("Invalid fee", err.getvalue())

    def test_wrong_network_exits_1(self):
        err = io.StringIO()
        with redirect_stderr(err), redirect_stdout(io.StringIO()):
            with self.assertRaises(SystemExit) as cm:
                main(["claim", "--network", "testnet", "--record", self.path,
                      "--txid", FUNDING_TXID, "--amount", "100000"])
        self.assertEqual(cm.exception.code, 1)
        self.assertIn("stored for regtest", err.getvalue())

    def test_missing_record_exits_1(self):
        with redirect_stderr(io.StringIO()), redirect_stdout(io.StringIO()):
            with self.assertRaises(SystemExit) as cm:
                main(["claim", "--network", "regtest", "--record", os.path.join(self.tmp.name, "missing.json"),
                      "--txid", FUNDING_TXID, "--amount", "100000"])
        self.assertEqual(cm.exception.code, 1)


if __name__ == "__main__":
    unittest.main(verbosity=2)
