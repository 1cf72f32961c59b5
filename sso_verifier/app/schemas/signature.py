"""
XML-Signature structures located inside a SAML Response.

These are internal transport objects passed between pipeline steps. They
point back into the validation snapshot (never into the caller's
document) and are not exposed in a ValidationOutcome.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from lxml import etree
from pydantic import BaseModel, ConfigDict, Field


class Transform(BaseModel):
    """A single ds:Transform, applied in declared order before digesting."""

    algorithm: str

    inclusive_prefixes: Optional[Tuple[str, ...]] = Field(
        None,
        description="exc-c14n InclusiveNamespaces PrefixList, if declared",
    )

    model_config = ConfigDict(frozen=True)


class Reference(BaseModel):
    """
    A ds:Reference from SignedInfo.

    Fields are optional where the document may omit or corrupt them. The
    reference check rejects such references; the locator does not.
    """

    uri: Optional[str] = Field(
        None,
        description="Reference URI ('' or a '#'-prefixed fragment)",
    )

    digest_method: Optional[str] = Field(
        None,
        description="DigestMethod Algorithm URI",
    )

    digest_value: Optional[bytes] = Field(
        None,
        description="Decoded DigestValue, None if missing or not base64",
    )

    transforms: List[Transform] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class SignatureBlock(BaseModel):
    """
    The one ds:Signature the pipeline validates.

    ``element`` and ``signed_info`` are nodes of the validation snapshot.
    """

    element: etree._Element
    signed_info: etree._Element

    canonicalization_method: str
    inclusive_prefixes: Optional[Tuple[str, ...]] = None
    signature_method: str

    references: List[Reference] = Field(default_factory=list)
    signature_value: bytes

    key_info_present: bool = Field(
        False,
        description="Informational only, never used to select a key",
    )

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,
    )
