"""Hash primitives shared by the commitment, selection and verification steps."""

from __future__ import annotations

import hashlib
import hmac

SELECTION_RULE = "HMAC_SHA256_MAX_LEX"
"""Tag stored on every proof: full-width HMAC-SHA256 maximum, ties to the
lexicographically smallest deterministic input."""

DIGEST_HEX_LENGTH = 64


def encode_input(deterministic_input: str) -> bytes:
    """Return the UTF-8 bytes fed to HMAC for ``deterministic_input``."""
    if not isinstance(deterministic_input, str):
        raise TypeError("deterministic_input must be a string")
    return deterministic_input.encode("utf-8")


def seed_commitment(seed: bytes) -> str:
    """Return the public commitment (lowercase hex SHA-256) for ``seed``."""
    return hashlib.sha256(seed).hexdigest()


def keyed_digest(seed: bytes, deterministic_input: str) -> bytes:
    """Return the raw 32-byte ``HMAC-SHA256(seed, deterministic_input)``."""
    return hmac.new(seed, encode_input(deterministic_input), hashlib.sha256).digest()


def keyed_value(seed: bytes, deterministic_input: str) -> str:
    """Hex form of :func:`keyed_digest`."""
    return keyed_digest(seed, deterministic_input).hex()


def digest_to_int(digest_hex: str) -> int:
    """Interpret a full 64-character hex digest as an unsigned 256-bit integer.

    The whole digest is used; narrowing it (or routing it through ``float``)
    biases the selection.
    """
    if len(digest_hex) != DIGEST_HEX_LENGTH:
        raise ValueError(
            f"digest must be {DIGEST_HEX_LENGTH} hex characters (got {len(digest_hex)})"
        )
    return int(digest_hex, 16)


def seed_to_hex(seed: bytes) -> str:
    return seed.hex()


def seed_from_hex(seed_hex: str) -> bytes:
    """Decode a stored/published seed; raises ``ValueError`` for malformed hex."""
    if not isinstance(seed_hex, str):
        raise ValueError("seed must be a hex string")
    return bytes.fromhex(seed_hex)


def digests_equal(left: str, right: str) -> bool:
    """Constant-time comparison of two hex strings."""
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))


__all__ = [
    "DIGEST_HEX_LENGTH",
    "SELECTION_RULE",
    "digest_to_int",
    "digests_equal",
    "encode_input",
    "keyed_digest",
    "keyed_value",
    "seed_commitment",
    "seed_from_hex",
    "seed_to_hex",
]
