"""
Trust anchor for SAML Response signatures.

The trust model is a single pinned certificate. There is no chain
building, no revocation checking, and no lookup of KeyInfo hints from the
document: whatever key the document claims, verification only ever uses
the key configured here.

The anchor is modelled behind the ``TrustAnchor`` interface so that a
multi-anchor store can replace it without touching the pipeline.
"""

from __future__ import annotations

import base64
import binascii
import logging
from pathlib import Path
from typing import FrozenSet, Optional, Protocol, Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes
from pydantic import BaseModel, ConfigDict, Field

from sso_verifier.app.capabilities.asymmetric import (
    key_family_for,
    key_matches_family,
)

logger = logging.getLogger(__name__)

_PEM_CERT_MARKER = b"-----BEGIN CERTIFICATE-----"
_PEM_PUBLIC_KEY_MARKER = b"-----BEGIN PUBLIC KEY-----"


class KeyResolutionError(Exception):
    """Raised when no usable public key can be derived for a signature."""


class TrustAnchor(Protocol):
    """Interface for resolving the verification key for a SignatureMethod."""

    def resolve_key(self, signature_method: str) -> PublicKeyTypes:
        ...


class TrustedCertificate(BaseModel):
    """
    Immutable trusted signing certificate.

    ``material`` may be a PEM certificate, a DER certificate, a bare
    base64 certificate body (as found in IdP metadata), or a PEM
    SubjectPublicKeyInfo. It is parsed on every key resolution, so the
    object holds no derived state.
    """

    material: bytes = Field(
        ...,
        description="Certificate or public key material",
    )

    allowed_signature_methods: Optional[FrozenSet[str]] = Field(
        None,
        description=(
            "SignatureMethod URIs this certificate may be used with. "
            "None permits every supported method."
        ),
    )

    model_config = ConfigDict(frozen=True)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_pem(
        cls,
        pem: Union[str, bytes],
        allowed_signature_methods: Optional[FrozenSet[str]] = None,
    ) -> "TrustedCertificate":
        if isinstance(pem, str):
            pem = pem.encode("ascii")
        return cls(
            material=pem,
            allowed_signature_methods=allowed_signature_methods,
        )

    @classmethod
    def from_file(
        cls,
        path: Path,
        allowed_signature_methods: Optional[FrozenSet[str]] = None,
    ) -> "TrustedCertificate":
        try:
            material = Path(path).read_bytes()
        except OSError as exc:
            logger.error("Failed to read trusted certificate: %s", exc)
            raise RuntimeError(
                f"Trusted certificate configuration failed: {exc}"
            ) from exc

        return cls(
            material=material,
            allowed_signature_methods=allowed_signature_methods,
        )

    # ------------------------------------------------------------------
    # Key resolution
    # ------------------------------------------------------------------

    def public_key(self) -> PublicKeyTypes:
        """Derive the public key from the configured material."""
        material = self.material.strip()

        try:
            if _PEM_CERT_MARKER in material:
                return x509.load_pem_x509_certificate(material).public_key()

            if _PEM_PUBLIC_KEY_MARKER in material:
                return serialization.load_pem_public_key(material)

            try:
                return x509.load_der_x509_certificate(material).public_key()
            except ValueError:
                # Bare base64 body without PEM armour.
                der = base64.b64decode(b"".join(material.split()), validate=True)
                return x509.load_der_x509_certificate(der).public_key()

        except (ValueError, TypeError, binascii.Error) as exc:
            raise KeyResolutionError(
                f"Trusted certificate material is not a usable key: {exc}"
            ) from exc

    def resolve_key(self, signature_method: str) -> PublicKeyTypes:
        """
        Resolve the verification key for ``signature_method``.

        Fails if the method is unsupported, not allowed for this
        certificate, or incompatible with the certificate's key type.
        """
        family = key_family_for(signature_method)
        if family is None:
            raise KeyResolutionError(
                f"Unsupported signature method: {signature_method}"
            )

        if (
            self.allowed_signature_methods is not None
            and signature_method not in self.allowed_signature_methods
        ):
            raise KeyResolutionError(
                f"Signature method {signature_method} is not allowed for the "
                "trusted certificate"
            )

        key = self.public_key()

        if not key_matches_family(key, family):
            raise KeyResolutionError(
                f"Trusted key type {type(key).__name__} cannot verify "
                f"{signature_method}"
            )

        return key
