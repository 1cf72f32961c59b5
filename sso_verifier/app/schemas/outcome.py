"""
ValidationOutcome schema.

Defines the single result produced for every SAML Response validation
call. An outcome is either a pass, or exactly one failure drawn from a
fixed taxonomy. Callers branch on ``FailureReason`` rather than parsing
messages, so that "tampered", "expired" and "malformed" responses can be
logged and alerted on differently.

This schema is:
- immutable
- deterministic for a fixed (document, certificate, clock)
- free of any document content beyond short location hints
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Enumerations (FROZEN CONTRACTS)
# ---------------------------------------------------------------------------


class FailureReason(str, Enum):
    """
    Failure taxonomy.

    Every failure is terminal for the validation call it belongs to.
    Values are stable and safe to persist or emit as metrics labels.
    """

    SIGNATURE_NOT_FOUND = "signature_not_found"
    REFERENCE_VALIDATION_FAILED = "reference_validation_failed"
    MULTIPLE_ASSERTIONS = "multiple_assertions"
    TIMESTAMP_OUT_OF_WINDOW = "timestamp_out_of_window"
    KEY_RESOLUTION_FAILED = "key_resolution_failed"
    SIGNATURE_VERIFICATION_FAILED = "signature_verification_failed"


class ValidationStep(str, Enum):
    """
    Pipeline steps, in execution order.

    Ordering is part of the public contract and MUST remain stable.
    """

    LOCATE_SIGNATURE = "locate_signature"
    VALIDATE_REFERENCES = "validate_references"
    VALIDATE_ASSERTION_COUNT = "validate_assertion_count"
    VALIDATE_TIMESTAMPS = "validate_timestamps"
    VERIFY_SIGNATURE = "verify_signature"


# ---------------------------------------------------------------------------
# Failure object
# ---------------------------------------------------------------------------


class ValidationFailure(BaseModel):
    """
    A single typed validation failure.

    Failures are descriptive. The core performs no recovery; deciding how
    to react (re-request SSO, alert, deny session) is the caller's job.
    """

    failure_id: str = Field(
        ...,
        description="Stable identifier for the failure (e.g. 'REF-CRIT-005')",
    )

    reason: FailureReason = Field(
        ...,
        description="Taxonomy tag callers branch on",
    )

    title: str = Field(
        ...,
        description="Short human-readable summary",
    )

    description: str = Field(
        ...,
        description="Explanation of what was rejected and why",
    )

    location: Optional[str] = Field(
        None,
        description="Optional location hint (reference URI, element name)",
    )

    metadata: Optional[Dict[str, Any]] = Field(
        None,
        description="Optional structured metadata for logging and tooling",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


# ---------------------------------------------------------------------------
# Outcome (PUBLIC, FROZEN CONTRACT)
# ---------------------------------------------------------------------------


class ValidationOutcome(BaseModel):
    """
    Result of a full validation pipeline run.

    ``passed`` is True only when every step ran and succeeded. Steps 1-4
    alone never imply authenticity; trust is established only once the
    cryptographic verification step has also passed.
    """

    passed: bool = Field(
        ...,
        description="Whether every validation step passed",
    )

    checks_executed: List[ValidationStep] = Field(
        default_factory=list,
        description="Steps that were executed, in order",
    )

    failure: Optional[ValidationFailure] = Field(
        None,
        description="The first failure encountered, if any",
    )

    evaluated_at: datetime = Field(
        ...,
        description="Instant supplied by the injected clock for this run",
    )

    @property
    def reason(self) -> Optional[FailureReason]:
        """Failure reason, or None for a passing outcome."""
        return self.failure.reason if self.failure is not None else None

    @model_validator(mode="after")
    def enforce_outcome_invariants(self):
        """
        - A passing outcome carries no failure and executed every step.
        - A failing outcome carries exactly one failure.
        """
        if self.passed:
            if self.failure is not None:
                raise ValueError("A passing outcome must not carry a failure")
            if list(self.checks_executed) != list(ValidationStep):
                raise ValueError(
                    "A passing outcome must have executed every validation step"
                )
        elif self.failure is None:
            raise ValueError("A failing outcome must carry a failure")

        return self

    def __bool__(self) -> bool:
        return self.passed

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
