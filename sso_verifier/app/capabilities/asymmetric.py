"""
Asymmetric signature verification capability.

Wraps the ``cryptography`` package behind a narrow interface so the SAML
policy code never touches padding schemes, curve parameters, or the DER
encoding of DSA/ECDSA signatures.

XML-Signature encodes (EC)DSA signature values as the fixed-width
concatenation r || s, whereas ``cryptography`` expects DER. The
conversion happens here.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Optional, Protocol, Tuple, Type

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import dsa, ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from sso_verifier.app import constants

logger = logging.getLogger(__name__)


class KeyFamily(str, Enum):
    RSA = "rsa"
    EC = "ec"
    DSA = "dsa"


SIGNATURE_METHODS: Dict[str, Tuple[KeyFamily, Type[hashes.HashAlgorithm]]] = {
    constants.RSA_SHA1: (KeyFamily.RSA, hashes.SHA1),
    constants.RSA_SHA224: (KeyFamily.RSA, hashes.SHA224),
    constants.RSA_SHA256: (KeyFamily.RSA, hashes.SHA256),
    constants.RSA_SHA384: (KeyFamily.RSA, hashes.SHA384),
    constants.RSA_SHA512: (KeyFamily.RSA, hashes.SHA512),
    constants.ECDSA_SHA1: (KeyFamily.EC, hashes.SHA1),
    constants.ECDSA_SHA224: (KeyFamily.EC, hashes.SHA224),
    constants.ECDSA_SHA256: (KeyFamily.EC, hashes.SHA256),
    constants.ECDSA_SHA384: (KeyFamily.EC, hashes.SHA384),
    constants.ECDSA_SHA512: (KeyFamily.EC, hashes.SHA512),
    constants.DSA_SHA1: (KeyFamily.DSA, hashes.SHA1),
    constants.DSA_SHA256: (KeyFamily.DSA, hashes.SHA256),
}

_KEY_TYPES = {
    KeyFamily.RSA: rsa.RSAPublicKey,
    KeyFamily.EC: ec.EllipticCurvePublicKey,
    KeyFamily.DSA: dsa.DSAPublicKey,
}


class UnsupportedSignatureMethod(ValueError):
    """Raised for a SignatureMethod the verifier does not implement."""


def key_family_for(signature_method: str) -> Optional[KeyFamily]:
    """Key family required by a SignatureMethod, or None if unsupported."""
    entry = SIGNATURE_METHODS.get(signature_method)
    return entry[0] if entry is not None else None


def key_matches_family(public_key: PublicKeyTypes, family: KeyFamily) -> bool:
    return isinstance(public_key, _KEY_TYPES[family])


class AsymmetricVerifier(Protocol):
    """
    Interface for verifying a signature value over canonical bytes.

    Returns True iff the signature verifies. Must not raise for a merely
    invalid signature.
    """

    def verify(
        self,
        public_key: PublicKeyTypes,
        signature_method: str,
        signature: bytes,
        data: bytes,
    ) -> bool:
        ...


class CryptographyVerifier:
    """AsymmetricVerifier backed by ``cryptography``."""

    def verify(
        self,
        public_key: PublicKeyTypes,
        signature_method: str,
        signature: bytes,
        data: bytes,
    ) -> bool:
        try:
            family, hash_cls = SIGNATURE_METHODS[signature_method]
        except KeyError:
            raise UnsupportedSignatureMethod(
                f"Unsupported signature method: {signature_method}"
            ) from None

        if not key_matches_family(public_key, family):
            logger.warning(
                "Public key type %s cannot verify %s",
                type(public_key).__name__,
                signature_method,
            )
            return False

        try:
            if family is KeyFamily.RSA:
                public_key.verify(signature, data, padding.PKCS1v15(), hash_cls())
            elif family is KeyFamily.EC:
                public_key.verify(
                    _raw_to_der(signature), data, ec.ECDSA(hash_cls())
                )
            else:
                public_key.verify(_raw_to_der(signature), data, hash_cls())
        except InvalidSignature:
            return False
        except ValueError as exc:
            # Malformed r || s encoding.
            logger.warning("Malformed signature value: %s", exc)
            return False

        return True


def _raw_to_der(signature: bytes) -> bytes:
    """Convert an XML-DSig r || s signature value to DER."""
    if not signature or len(signature) % 2:
        raise ValueError(
            f"r || s signature value has invalid length {len(signature)}"
        )

    half = len(signature) // 2
    r = int.from_bytes(signature[:half], "big")
    s = int.from_bytes(signature[half:], "big")
    return encode_dss_signature(r, s)
