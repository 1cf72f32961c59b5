"""
Runtime configuration for the SSO response verifier.

This module centralizes environment-driven configuration: where the
trusted IdP signing certificate lives, how much clock skew is tolerated,
and which attributes identify signed elements.

Configuration is read-only at runtime and must not influence verification
outcomes in non-deterministic ways.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import FrozenSet, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from sso_verifier.app import constants
from sso_verifier.app.capabilities.asymmetric import SIGNATURE_METHODS


class VerifierConfig(BaseModel):
    """
    Runtime configuration for the SSO response verifier.

    Configuration is environment-driven, read-only at runtime, and must
    not introduce non-deterministic behavior into verification outcomes.
    """

    # ------------------------------------------------------------------
    # Trust configuration
    # ------------------------------------------------------------------

    TRUSTED_CERT_PATH: Path | None = Field(
        None,
        description=(
            "Path to the PEM- or DER-encoded IdP signing certificate. "
            "Required by from_config(). The verifier does not consult the "
            "system trust store."
        ),
    )

    ALLOWED_SIGNATURE_METHODS: Optional[FrozenSet[str]] = Field(
        None,
        description=(
            "Restrict accepted SignatureMethod algorithm URIs. "
            "None accepts every supported method."
        ),
    )

    # ------------------------------------------------------------------
    # Validation policy
    # ------------------------------------------------------------------

    CLOCK_SKEW_SECONDS: int = Field(
        constants.DEFAULT_CLOCK_SKEW_SECONDS,
        description="Tolerated clock drift between IdP and SP, in seconds",
    )

    ID_ATTRIBUTES: Tuple[str, ...] = Field(
        constants.DEFAULT_ID_ATTRIBUTES,
        description="Attribute names that identify reference targets",
    )

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator("TRUSTED_CERT_PATH")
    @classmethod
    def trusted_cert_must_exist(cls, v: Path | None) -> Path | None:
        if v is not None:
            if not v.exists():
                raise ValueError(
                    f"Configured TRUSTED_CERT_PATH does not exist: {v}"
                )
            if not v.is_file():
                raise ValueError(
                    f"Configured TRUSTED_CERT_PATH is not a file: {v}"
                )
        return v

    @field_validator("ALLOWED_SIGNATURE_METHODS")
    @classmethod
    def signature_methods_must_be_supported(
        cls, v: Optional[FrozenSet[str]]
    ) -> Optional[FrozenSet[str]]:
        if v is not None:
            if not v:
                raise ValueError(
                    "ALLOWED_SIGNATURE_METHODS must not be empty when set."
                )
            unknown = set(v) - set(SIGNATURE_METHODS)
            if unknown:
                raise ValueError(
                    f"Unsupported ALLOWED_SIGNATURE_METHODS: {sorted(unknown)}"
                )
        return v

    @field_validator("CLOCK_SKEW_SECONDS")
    @classmethod
    def skew_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("CLOCK_SKEW_SECONDS must be >= 0.")
        return v

    @field_validator("ID_ATTRIBUTES")
    @classmethod
    def id_attributes_must_not_be_empty(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v or any(not name for name in v):
            raise ValueError("ID_ATTRIBUTES must list at least one attribute name.")
        return v

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "VerifierConfig":
        """
        Load configuration from environment variables.

        All values are parsed once at startup and must remain immutable.
        """

        def env_list(name: str) -> Optional[Tuple[str, ...]]:
            raw = os.getenv(name)
            if raw is None or not raw.strip():
                return None
            return tuple(item.strip() for item in raw.split(",") if item.strip())

        cert_path_env = os.getenv("SSO_VERIFIER_TRUSTED_CERT_PATH")
        allowed_methods = env_list("SSO_VERIFIER_ALLOWED_SIGNATURE_METHODS")

        return cls(
            TRUSTED_CERT_PATH=(
                Path(cert_path_env)
                if cert_path_env
                else None
            ),
            ALLOWED_SIGNATURE_METHODS=(
                frozenset(allowed_methods)
                if allowed_methods
                else None
            ),
            CLOCK_SKEW_SECONDS=int(
                os.getenv(
                    "SSO_VERIFIER_CLOCK_SKEW_SECONDS",
                    str(constants.DEFAULT_CLOCK_SKEW_SECONDS),
                )
            ),
            ID_ATTRIBUTES=(
                env_list("SSO_VERIFIER_ID_ATTRIBUTES")
                or constants.DEFAULT_ID_ATTRIBUTES
            ),
        )

    model_config = {
        "frozen": True,
    }
