"""
Cryptographic signature verification.

Canonicalizes SignedInfo with its declared CanonicalizationMethod and
verifies the SignatureValue against the pinned trusted key. This is the
only step that establishes authenticity; every earlier step is a
structural or policy gate.

Any KeyInfo carried by the document is informational. It is logged and
never consulted for key selection.
"""

from __future__ import annotations

import logging
from typing import Optional

from sso_verifier.app.capabilities.asymmetric import (
    AsymmetricVerifier,
    UnsupportedSignatureMethod,
)
from sso_verifier.app.capabilities.canonicalization import (
    CanonicalizationError,
    Canonicalizer,
)
from sso_verifier.app.schemas.outcome import FailureReason, ValidationFailure
from sso_verifier.app.schemas.signature import SignatureBlock
from sso_verifier.app.trust.trusted_certificate import (
    KeyResolutionError,
    TrustAnchor,
)

logger = logging.getLogger(__name__)


def run_signature_verification(
    signature: SignatureBlock,
    trust_anchor: TrustAnchor,
    *,
    canonicalizer: Canonicalizer,
    asymmetric_verifier: AsymmetricVerifier,
) -> Optional[ValidationFailure]:
    """
    Resolve the trusted key and verify the signature cryptographically.
    """
    if signature.key_info_present:
        logger.debug("Document carries KeyInfo; ignored for key selection")

    # --------------------------------------------------------------
    # Key resolution
    # --------------------------------------------------------------
    try:
        public_key = trust_anchor.resolve_key(signature.signature_method)
    except KeyResolutionError as exc:
        logger.warning("Key resolution failed: %s", exc)
        return ValidationFailure(
            failure_id="KEY-CRIT-001",
            reason=FailureReason.KEY_RESOLUTION_FAILED,
            title="No usable trusted key",
            description=str(exc),
            metadata={"signature_method": signature.signature_method},
        )

    # --------------------------------------------------------------
    # Canonicalize SignedInfo
    # --------------------------------------------------------------
    try:
        signed_octets = canonicalizer.canonicalize(
            signature.signed_info,
            signature.canonicalization_method,
            inclusive_prefixes=signature.inclusive_prefixes,
        )
    except CanonicalizationError as exc:
        logger.warning("SignedInfo canonicalization failed: %s", exc)
        return ValidationFailure(
            failure_id="SIG-CRIT-003",
            reason=FailureReason.SIGNATURE_VERIFICATION_FAILED,
            title="SignedInfo canonicalization failed",
            description=str(exc),
            metadata={
                "canonicalization_method": signature.canonicalization_method
            },
        )

    # --------------------------------------------------------------
    # Verify
    # --------------------------------------------------------------
    try:
        verified = asymmetric_verifier.verify(
            public_key,
            signature.signature_method,
            signature.signature_value,
            signed_octets,
        )
    except UnsupportedSignatureMethod as exc:
        # Only reachable with a trust anchor that resolves keys for
        # methods the verifier cannot execute.
        logger.warning("Signature method unsupported by verifier: %s", exc)
        return ValidationFailure(
            failure_id="KEY-CRIT-001",
            reason=FailureReason.KEY_RESOLUTION_FAILED,
            title="No usable trusted key",
            description=str(exc),
            metadata={"signature_method": signature.signature_method},
        )

    if not verified:
        logger.warning(
            "SignatureValue did not verify against the trusted key (%s)",
            signature.signature_method,
        )
        return ValidationFailure(
            failure_id="SIG-CRIT-004",
            reason=FailureReason.SIGNATURE_VERIFICATION_FAILED,
            title="Signature verification failed",
            description=(
                "The SignatureValue does not verify over SignedInfo with the "
                "trusted certificate. The response was not signed by the "
                "trusted issuer or was altered."
            ),
            metadata={"signature_method": signature.signature_method},
        )

    return None
