"""
SAML Response validation orchestrator.

IMPORTANT:
The orchestrator is a DUMB AUTHORITY.

It MUST NOT:
- interpret assertion content (subject, attributes, audience)
- retry a step
- reorder steps or report partial success

Its sole responsibilities are:
- taking the validation snapshot
- enforcing execution order
- stopping at the first failure
- constructing the final ValidationOutcome

Execution order (FROZEN):
    1. Locate signature
    2. Validate every reference digest
    3. Validate assertion count
    4. Validate Conditions time window
    5. Resolve trusted key and verify the signature cryptographically

Steps 3 and 4 may reject a response whose signature has not yet been
cryptographically checked. Callers depend on this ordering of failure
reasons. Authenticity is only established once step 5 passes.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from lxml import etree

from sso_verifier.app import constants
from sso_verifier.app.capabilities.asymmetric import (
    AsymmetricVerifier,
    CryptographyVerifier,
)
from sso_verifier.app.capabilities.canonicalization import (
    Canonicalizer,
    LxmlCanonicalizer,
)
from sso_verifier.app.checks.assertion_count import run_assertion_count_check
from sso_verifier.app.checks.reference_validation import run_reference_checks
from sso_verifier.app.checks.signature_locator import locate_signature
from sso_verifier.app.checks.signature_verification import run_signature_verification
from sso_verifier.app.checks.timestamps import run_timestamp_checks
from sso_verifier.app.config import VerifierConfig
from sso_verifier.app.documents import ParsedDocument, snapshot_document
from sso_verifier.app.schemas.outcome import (
    ValidationFailure,
    ValidationOutcome,
    ValidationStep,
)
from sso_verifier.app.schemas.signature import SignatureBlock
from sso_verifier.app.trust.trusted_certificate import TrustAnchor, TrustedCertificate
from sso_verifier.app.utils.clock import Clock, ensure_aware, utc_now

logger = logging.getLogger(__name__)


class _ValidationRun:
    """Call-scoped state. Never stored on the validator."""

    __slots__ = ("document", "now", "signature")

    def __init__(self, document: etree._ElementTree, now: datetime) -> None:
        self.document = document
        self.now = now
        self.signature: Optional[SignatureBlock] = None


# Deterministic step contract
ValidationCheck = Callable[[_ValidationRun], Optional[ValidationFailure]]


class ResponseValidator:
    """
    Validates SAML 2.0 Responses against one pinned trusted certificate.

    Instances hold only immutable configuration and may be shared between
    threads. Each ``validate`` call works on its own snapshot of the
    document.
    """

    def __init__(
        self,
        trusted_certificate: TrustAnchor,
        *,
        clock_skew_seconds: int = constants.DEFAULT_CLOCK_SKEW_SECONDS,
        id_attributes: Sequence[str] = constants.DEFAULT_ID_ATTRIBUTES,
        clock: Optional[Clock] = None,
        canonicalizer: Optional[Canonicalizer] = None,
        asymmetric_verifier: Optional[AsymmetricVerifier] = None,
    ) -> None:
        if clock_skew_seconds < 0:
            raise ValueError("clock_skew_seconds must be >= 0")

        self._trust_anchor = trusted_certificate
        self._clock_skew_seconds = clock_skew_seconds
        self._id_attributes = tuple(id_attributes)
        self._clock = clock or utc_now
        self._canonicalizer = canonicalizer or LxmlCanonicalizer()
        self._asymmetric_verifier = asymmetric_verifier or CryptographyVerifier()

        self._checks: List[Tuple[ValidationStep, ValidationCheck]] = [
            (ValidationStep.LOCATE_SIGNATURE, self._locate_signature),
            (ValidationStep.VALIDATE_REFERENCES, self._validate_references),
            (ValidationStep.VALIDATE_ASSERTION_COUNT, self._validate_assertion_count),
            (ValidationStep.VALIDATE_TIMESTAMPS, self._validate_timestamps),
            (ValidationStep.VERIFY_SIGNATURE, self._verify_signature),
        ]

    # ------------------------------------------------------------------
    # Integration constructor (composition root)
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: VerifierConfig,
        *,
        clock: Optional[Clock] = None,
    ) -> "ResponseValidator":
        """
        Construct a fully wired ResponseValidator from runtime configuration.
        """
        if config.TRUSTED_CERT_PATH is None:
            raise RuntimeError(
                "TRUSTED_CERT_PATH is not configured; a trusted certificate "
                "is required to validate SAML Responses."
            )

        trusted_certificate = TrustedCertificate.from_file(
            config.TRUSTED_CERT_PATH,
            allowed_signature_methods=config.ALLOWED_SIGNATURE_METHODS,
        )

        return cls(
            trusted_certificate,
            clock_skew_seconds=config.CLOCK_SKEW_SECONDS,
            id_attributes=config.ID_ATTRIBUTES,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self, document: ParsedDocument) -> ValidationOutcome:
        """
        Run the full pipeline and return a single outcome.

        Failures are returned, not raised. Exceptions escaping this method
        indicate programming errors or a non-lxml input.
        """
        now = ensure_aware(self._clock())
        run = _ValidationRun(snapshot_document(document), now)
        checks_executed: List[ValidationStep] = []

        for step, check in self._checks:
            checks_executed.append(step)

            failure = check(run)

            if failure is not None:
                logger.info(
                    "SAML Response rejected at %s: %s (%s)",
                    step.value,
                    failure.reason.value,
                    failure.failure_id,
                )
                return ValidationOutcome(
                    passed=False,
                    checks_executed=checks_executed,
                    failure=failure,
                    evaluated_at=now,
                )

        logger.info("SAML Response accepted")
        return ValidationOutcome(
            passed=True,
            checks_executed=checks_executed,
            evaluated_at=now,
        )

    def is_valid(self, document: ParsedDocument) -> bool:
        return self.validate(document).passed

    # ------------------------------------------------------------------
    # Check adapters
    # ------------------------------------------------------------------

    def _locate_signature(self, run: _ValidationRun) -> Optional[ValidationFailure]:
        result = locate_signature(run.document)
        run.signature = result.signature
        return result.failure

    def _validate_references(self, run: _ValidationRun) -> Optional[ValidationFailure]:
        return run_reference_checks(
            self._located(run),
            run.document,
            canonicalizer=self._canonicalizer,
            id_attributes=self._id_attributes,
        )

    def _validate_assertion_count(
        self, run: _ValidationRun
    ) -> Optional[ValidationFailure]:
        return run_assertion_count_check(run.document)

    def _validate_timestamps(self, run: _ValidationRun) -> Optional[ValidationFailure]:
        return run_timestamp_checks(run.document, run.now, self._clock_skew_seconds)

    def _verify_signature(self, run: _ValidationRun) -> Optional[ValidationFailure]:
        return run_signature_verification(
            self._located(run),
            self._trust_anchor,
            canonicalizer=self._canonicalizer,
            asymmetric_verifier=self._asymmetric_verifier,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _located(run: _ValidationRun) -> SignatureBlock:
        if run.signature is None:
            raise RuntimeError(
                "Invariant violation: signature step passed but no "
                "SignatureBlock was located"
            )
        return run.signature
