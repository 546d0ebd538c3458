#!/usr/bin/env python3
"""
Witness Serialization Tests

Compact-size boundaries, witness stack encoding and secret extraction
from a claim witness.
"""

import sys
import os
import unittest

# Add package to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from shadowswap.htlc.witness import (
    claim_witness,
    compact_size,
    refund_witness,
    secret_from_claim_witness,
    serialize_witness,
)


class TestCompactSize(unittest.TestCase):
    """Bitcoin varint boundaries."""

    def test_boundaries(self):
        self.assertEqual(compact_size(0), b"\x00")
        self.assertEqual(compact_size(0xfc), b"\xfc")
        self.assertEqual(compact_size(0xfd), b"\xfd\xfd\x00")
        self.assertEqual(compact_size(0xffff), b"\xfd\xff\xff")
        self.assertEqual(compact_size(0x10000), b"\xfe\x00\x00\x01\x00")
        self.assertEqual(compact_size(0xffffffff), b"\xfe\xff\xff\xff\xff")
        self.assertEqual(compact_size(0x100000000), b"\xff\x00\x00\x00\x00\x01\x00\x00\x00")


class TestWitnessStack(unittest.TestCase):
    """Witness stacks for both spending branches."""

    SIG = b"\x30\x44" + b"\x00" * 68 + b"\x01"   # Dummy DER + SIGHASH_ALL
    SECRET = bytes(range(32))
    SCRIPT = b"\x63" + b"\x00" * 112                # Dummy script

    def test_claim_shape(self):
        stack = claim_witness(self.SIG, self.SECRET, self.SCRIPT)
        self.assertEqual(len(stack), 4)
        self.assertEqual(stack[1], self.SECRET)
        self.assertEqual(stack[2], b"\x01")
        self.assertEqual(stack[3], self.SCRIPT)

    def test_refund_shape(self):
        stack = refund_witness(self.SIG, self.SCRIPT)
        self.assertEqual(len(stack), 3)
        self.assertEqual(stack[1], b"")
        self.assertEqual(stack[2], self.SCRIPT)

    def test_serialize(self):
        encoded = serialize_witness(refund_witness(self.SIG, self.SCRIPT))
        expected = (
            b"\x03"
            + bytes([len(self.SIG)]) + self.SIG
            + b"\x00"
            + bytes([len(self.SCRIPT)]) + self.SCRIPT
        )
        self.assertEqual(encoded, expected)

    def test_serialize_empty_and_large_items(self):
        self.assertEqual(serialize_witness([]), b"\x00")
        big = b"\xab" * 300
        self.assertEqual(serialize_witness([big]), b"\x01\xfd\x2c\x01" + big)

    def test_secret_extraction(self):
        stack = claim_witness(self.SIG, self.SECRET, self.SCRIPT)
        self.assertEqual(secret_from_claim_witness(stack), self.SECRET)

    def test_secret_extraction_ignores_refund(self):
        self.assertIsNone(secret_from_claim_witness(refund_witness(self.SIG, self.SCRIPT)))
        self.assertIsNone(secret_from_claim_witness([self.SIG, b"\x00" * 31, b"\x01", self.SCRIPT]))
        self.assertIsNone(secret_from_claim_witness([]))


if __name__ == "__main__":
    unittest.main(verbosity=2)
