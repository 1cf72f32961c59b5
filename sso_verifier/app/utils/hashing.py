"""
Digest primitives for XML-Signature references.

This module hashes bytes, and bytes only. Canonicalization MUST occur
before these helpers are called.
"""

import hashlib
import hmac
from typing import Union

from sso_verifier.app import constants

DIGEST_ALGORITHMS = {
    constants.DIGEST_SHA1: "sha1",
    constants.DIGEST_SHA224: "sha224",
    constants.DIGEST_SHA256: "sha256",
    constants.DIGEST_SHA384: "sha384",
    constants.DIGEST_SHA512: "sha512",
}


class UnsupportedDigestAlgorithm(ValueError):
    """Raised for a DigestMethod the verifier does not implement."""


def compute_digest(algorithm: str, data: Union[bytes, bytearray]) -> bytes:
    """
    Compute the raw digest of ``data`` with the XML-DSig DigestMethod
    identified by ``algorithm``.
    """
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError(
            "compute_digest expects canonical bytes, "
            f"got {type(data).__name__}"
        )

    name = DIGEST_ALGORITHMS.get(algorithm)
    if name is None:
        raise UnsupportedDigestAlgorithm(
            f"Unsupported digest algorithm: {algorithm}"
        )

    return hashlib.new(name, data).digest()


def digests_match(computed: bytes, expected: bytes) -> bool:
    """Constant-time byte-for-byte digest comparison."""
    return hmac.compare_digest(computed, expected)
