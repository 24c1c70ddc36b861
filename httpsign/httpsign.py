import base64
import hashlib
import hmac
import re
import time
from typing import Tuple

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_EPOCH_PATTERN = re.compile(r"[+-]?[0-9]+")


class SignatureError(ValueError):
    """Base class for signature header verification failures."""


class MalformedHeader(SignatureError):
    """Header is missing, has the wrong field count, or bad base64/timestamp."""


class StaleTimestamp(SignatureError):
    """Header timestamp is older than the allowed window."""


class SignatureMismatch(SignatureError):
    """Recomputed signature differs from the one in the header."""


def epoch_now() -> int:
    """Return the current wall-clock time as whole Unix seconds."""
    return int(time.time())


def form_message(value: str, epoch: int) -> bytes:
    """
    Build the canonical message fed into the MAC.

    The value and the decimal timestamp are concatenated with no separator,
    so ("ab", 12) and ("ab1", 2) produce the same message. Existing peers
    compute it this way, so it must not change.
    """
    return f"{value}{epoch}".encode("utf-8")


def compute_signature(key: bytes, value: str, epoch: int) -> bytes:
    """
    Compute the HMAC-SHA256 signature for a value at a given timestamp.

    Args:
        key: Shared secret
        value: Application-chosen string both parties agree to sign
        epoch: Unix timestamp in seconds

    Returns:
        Raw 32-byte digest
    """
    h = hmac.new(key, form_message(value, epoch), hashlib.sha256)
    return h.digest()


def signatures_match(expected: bytes, received: bytes) -> bool:
    # Constant-time comparison
    return hmac.compare_digest(expected, received)


def form_header(signature: bytes, epoch: int) -> str:
    """
    Encode a signature and timestamp as a header value.

    Format: <base64 signature>;<decimal epoch>
    """
    return f"{base64.b64encode(signature).decode('ascii')};{epoch}"


def parse_header(header: str) -> Tuple[bytes, int]:
    """
    Decode a header value produced by form_header().

    Args:
        header: Raw header value

    Returns:
        Tuple of (signature, epoch)

    Raises:
        MalformedHeader: If the header does not have exactly two fields, the
            first is not valid standard base64, or the second is not a
            base-10 signed 64-bit integer
    """
    malformed = MalformedHeader(f"Unable to parse header '{header}'")

    parts = header.split(";")
    if len(parts) != 2:
        raise malformed

    encoded, epoch_str = parts
    try:
        signature = base64.b64decode(encoded, validate=True)
    except ValueError as e:
        raise malformed from e

    # int() alone would also accept whitespace and underscores
    if not _EPOCH_PATTERN.fullmatch(epoch_str):
        raise malformed
    epoch = int(epoch_str)
    if not INT64_MIN <= epoch <= INT64_MAX:
        raise malformed

    return signature, epoch


def check_timestamp(epoch: int, now: int, seconds_allowance: int) -> None:
    """
    Reject timestamps older than the allowance.

    The boundary is inclusive: now == epoch + allowance passes. Timestamps
    in the future are not bounded.

    Raises:
        StaleTimestamp: If now > epoch + seconds_allowance
    """
    if now > epoch + seconds_allowance:
        raise StaleTimestamp(
            f"Stale timestamp {epoch} (now={now}, allowance={seconds_allowance})"
        )


def check_signature(
    key: bytes, value: str, epoch: int, signature: bytes, header: str
) -> None:
    """
    Recompute the signature for value/epoch and compare it to the received one.

    Raises:
        SignatureMismatch: If the signatures differ
    """
    expected = compute_signature(key, value, epoch)
    if not signatures_match(expected, signature):
        received_b64 = base64.b64encode(signature).decode("ascii")
        expected_b64 = base64.b64encode(expected).decode("ascii")
        raise SignatureMismatch(
            f"Signature mismatch {received_b64} "
            f"(calculated={expected_b64}, header={header})"
        )
