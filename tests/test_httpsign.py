"""
Unit tests for the signature header codec and MAC computation.
"""

import base64
import hashlib
import hmac
import os
import unittest
from unittest.mock import patch

import pytest

from httpsign.httpsign import (
    INT64_MAX,
    INT64_MIN,
    MalformedHeader,
    SignatureError,
    SignatureMismatch,
    StaleTimestamp,
    check_signature,
    check_timestamp,
    compute_signature,
    epoch_now,
    form_header,
    form_message,
    parse_header,
)


class TestFormHeader(unittest.TestCase):
    """Test header encoding."""

    def test_form_header_format(self):
        """Header is base64 signature and decimal epoch joined by a semicolon."""
        header = form_header(b"foobar1234567890", 1234567890)
        self.assertEqual(header, "Zm9vYmFyMTIzNDU2Nzg5MA==;1234567890")

    def test_form_header_negative_epoch(self):
        self.assertEqual(form_header(b"\x00", -5), "AA==;-5")

    def test_form_header_matches_manual_encoding(self):
        """Test that form_header encodes a real signature with standard base64."""
        key = os.urandom(64)
        epoch = 1700000000
        signature = compute_signature(key, "some-request-id", epoch)

        expected = f"{base64.b64encode(signature).decode('ascii')};{epoch}"
        self.assertEqual(form_header(signature, epoch), expected)


class TestParseHeader(unittest.TestCase):
    """Test header decoding."""

    def test_parse_valid_header(self):
        signature, epoch = parse_header("Zm9vYmFyMTIzNDU2Nzg5MA==;1234567890")

        self.assertEqual(signature, b"foobar1234567890")
        self.assertEqual(epoch, 1234567890)

    def test_round_trip(self):
        """Decoding an encoded header returns the original signature and epoch."""
        cases = [
            (b"", 0),
            (os.urandom(32), 1700000000),
            (os.urandom(7), -1),
            (b"\xff" * 33, INT64_MAX),
            (b"\x00", INT64_MIN),
        ]
        for signature, epoch in cases:
            with self.subTest(epoch=epoch):
                self.assertEqual(parse_header(form_header(signature, epoch)), (signature, epoch))

    def test_parse_explicit_sign(self):
        self.assertEqual(parse_header("AA==;+42"), (b"\x00", 42))
        self.assertEqual(parse_header("AA==;-42"), (b"\x00", -42))

    def test_parse_empty_signature(self):
        """No length check is done on the decoded signature."""
        self.assertEqual(parse_header(";123"), (b"", 123))

    def test_parse_malformed_headers(self):
        """Test that malformed headers raise MalformedHeader."""
        malformed = [
            "",
            "onlyonepart",
            "validb64;notanumber",
            "not-valid-base64!!;123",
            "AA==;1;2",
            "AA=;123",
            "AA==;",
            "AA==; 123",
            "AA==;1_000",
            "AA==;12.5",
            f"AA==;{INT64_MAX + 1}",
            f"AA==;{INT64_MIN - 1}",
        ]
        for header in malformed:
            with self.subTest(header=header):
                with self.assertRaises(MalformedHeader):
                    parse_header(header)

    def test_malformed_message_includes_raw_header(self):
        with pytest.raises(MalformedHeader, match="Unable to parse header 'onlyonepart'"):
            parse_header("onlyonepart")

    def test_malformed_header_is_value_error(self):
        with self.assertRaises(ValueError):
            parse_header("")


class TestComputeSignature(unittest.TestCase):
    """Test the MAC over the canonical message."""

    def setUp(self):
        self.key = b"uZFKDKZi9L5dmpuV9cC4E3R69P2m4B3Q"

    def test_form_message_has_no_separator(self):
        self.assertEqual(form_message("abc", 1000), b"abc1000")

    def test_form_message_utf8(self):
        self.assertEqual(form_message("café", 1), "café1".encode("utf-8"))

    def test_signature_matches_manual_hmac(self):
        """Test that the signature is HMAC-SHA256 of value followed by epoch."""
        expected = hmac.new(self.key, b"hello1234567890", hashlib.sha256).digest()

        signature = compute_signature(self.key, "hello", 1234567890)

        self.assertEqual(signature, expected)
        self.assertEqual(len(signature), 32)

    def test_signature_consistent(self):
        """Same inputs produce the same signature."""
        sig1 = compute_signature(self.key, "hello", 1000)
        sig2 = compute_signature(self.key, "hello", 1000)

        self.assertEqual(sig1, sig2)

    def test_signature_changes_with_each_input(self):
        base = compute_signature(self.key, "hello", 1000)

        self.assertNotEqual(base, compute_signature(b"another-key", "hello", 1000))
        self.assertNotEqual(base, compute_signature(self.key, "hellp", 1000))
        self.assertNotEqual(base, compute_signature(self.key, "hello", 1001))

    def test_concatenation_collision(self):
        """Value and epoch are joined without a delimiter, so these collide."""
        self.assertEqual(
            compute_signature(self.key, "ab", 12),
            compute_signature(self.key, "ab1", 2),
        )


class TestTimestampCheck(unittest.TestCase):
    """Test the freshness window."""

    def test_within_allowance(self):
        check_timestamp(1000, 1003, 6)

    def test_boundary_is_inclusive(self):
        check_timestamp(1000, 1006, 6)

    def test_past_allowance(self):
        with self.assertRaises(StaleTimestamp) as ctx:
            check_timestamp(1000, 1007, 6)

        self.assertEqual(str(ctx.exception), "Stale timestamp 1000 (now=1007, allowance=6)")

    def test_zero_allowance(self):
        check_timestamp(1000, 1000, 0)
        with self.assertRaises(StaleTimestamp):
            check_timestamp(1000, 1001, 0)

    def test_future_timestamp_accepted(self):
        check_timestamp(10**12, 1000, 6)


class TestSignatureCheck(unittest.TestCase):
    """Test recomputing and comparing signatures."""

    def setUp(self):
        self.key = b"test-secret-key-123"
        self.signature = compute_signature(self.key, "hello", 1000)
        self.header = form_header(self.signature, 1000)

    def test_matching_signature(self):
        check_signature(self.key, "hello", 1000, self.signature, self.header)

    def test_mismatched_signature(self):
        with self.assertRaises(SignatureMismatch) as ctx:
            check_signature(self.key, "goodbye", 1000, self.signature, self.header)

        msg = str(ctx.exception)
        self.assertTrue(msg.startswith("Signature mismatch "))
        self.assertIn(f"header={self.header}", msg)
        self.assertIsInstance(ctx.exception, SignatureError)

    def test_truncated_signature(self):
        with self.assertRaises(SignatureMismatch):
            check_signature(self.key, "hello", 1000, self.signature[:-1], self.header)


class TestEpochNow(unittest.TestCase):
    def test_epoch_now_is_whole_seconds(self):
        with patch("httpsign.httpsign.time.time", return_value=1700000000.987):
            self.assertEqual(epoch_now(), 1700000000)


if __name__ == "__main__":
    unittest.main()
