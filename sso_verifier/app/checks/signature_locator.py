"""
Signature location.

Finds the ds:Signature bound to the response and lifts it into a
SignatureBlock. The first Signature in document order is the one the
pipeline validates; any others are ignored.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import List, Optional, Tuple

from lxml import etree
from pydantic import BaseModel, ConfigDict

from sso_verifier.app.constants import EXC_C14N_NS, ds_tag
from sso_verifier.app.schemas.outcome import FailureReason, ValidationFailure
from sso_verifier.app.schemas.signature import Reference, SignatureBlock, Transform

logger = logging.getLogger(__name__)


class SignatureLocationResult(BaseModel):
    """Transport object: exactly one of ``signature`` / ``failure`` is set."""

    signature: Optional[SignatureBlock] = None
    failure: Optional[ValidationFailure] = None

    model_config = ConfigDict(frozen=True)


class MalformedSignature(ValueError):
    pass


# ------------------------------------------------------------------
# Element parsing
# ------------------------------------------------------------------


def _decode_base64(text: Optional[str]) -> Optional[bytes]:
    if text is None:
        return None
    try:
        return base64.b64decode("".join(text.split()), validate=True)
    except (binascii.Error, ValueError):
        return None


def _inclusive_prefixes(parent: etree._Element) -> Optional[Tuple[str, ...]]:
    node = parent.find(f"{{{EXC_C14N_NS}}}InclusiveNamespaces")
    if node is None:
        return None
    # libxml2 understands the "#default" token natively.
    return tuple((node.get("PrefixList") or "").split())


def _parse_reference(element: etree._Element) -> Reference:
    transforms: List[Transform] = []
    transforms_node = element.find(ds_tag("Transforms"))
    if transforms_node is not None:
        for node in transforms_node.findall(ds_tag("Transform")):
            transforms.append(
                Transform(
                    algorithm=node.get("Algorithm") or "",
                    inclusive_prefixes=_inclusive_prefixes(node),
                )
            )

    digest_method = element.find(ds_tag("DigestMethod"))
    digest_value = element.find(ds_tag("DigestValue"))

    return Reference(
        uri=element.get("URI"),
        digest_method=(
            digest_method.get("Algorithm") if digest_method is not None else None
        ),
        digest_value=(
            _decode_base64(digest_value.text) if digest_value is not None else None
        ),
        transforms=transforms,
    )


def parse_signature(element: etree._Element) -> SignatureBlock:
    """Lift a ds:Signature element into a SignatureBlock."""
    signed_info = element.find(ds_tag("SignedInfo"))
    if signed_info is None:
        raise MalformedSignature("Signature has no SignedInfo")

    c14n_method = signed_info.find(ds_tag("CanonicalizationMethod"))
    if c14n_method is None or not c14n_method.get("Algorithm"):
        raise MalformedSignature("SignedInfo has no CanonicalizationMethod")

    signature_method = signed_info.find(ds_tag("SignatureMethod"))
    if signature_method is None or not signature_method.get("Algorithm"):
        raise MalformedSignature("SignedInfo has no SignatureMethod")

    value_node = element.find(ds_tag("SignatureValue"))
    signature_value = _decode_base64(
        value_node.text if value_node is not None else None
    )
    if not signature_value:
        raise MalformedSignature("SignatureValue is missing or not base64")

    return SignatureBlock(
        element=element,
        signed_info=signed_info,
        canonicalization_method=c14n_method.get("Algorithm"),
        inclusive_prefixes=_inclusive_prefixes(c14n_method),
        signature_method=signature_method.get("Algorithm"),
        references=[
            _parse_reference(ref) for ref in signed_info.findall(ds_tag("Reference"))
        ],
        signature_value=signature_value,
        key_info_present=element.find(ds_tag("KeyInfo")) is not None,
    )


# ------------------------------------------------------------------
# Public check
# ------------------------------------------------------------------


def locate_signature(document: etree._ElementTree) -> SignatureLocationResult:
    """
    Locate the first ds:Signature under (and including) the root element.
    """
    element = next(document.getroot().iter(ds_tag("Signature")), None)

    if element is None:
        logger.warning("No ds:Signature element in SAML Response")
        return SignatureLocationResult(
            failure=ValidationFailure(
                failure_id="SIG-CRIT-001",
                reason=FailureReason.SIGNATURE_NOT_FOUND,
                title="Signature not found",
                description=(
                    "The response contains no XML-Signature element. An "
                    "unsigned response cannot be trusted."
                ),
            )
        )

    try:
        signature = parse_signature(element)
    except MalformedSignature as exc:
        logger.warning("Malformed ds:Signature: %s", exc)
        return SignatureLocationResult(
            failure=ValidationFailure(
                failure_id="SIG-CRIT-002",
                reason=FailureReason.SIGNATURE_NOT_FOUND,
                title="Signature structure unusable",
                description=f"The located signature is malformed: {exc}.",
                location=document.getpath(element),
            )
        )

    logger.debug(
        "Located signature at %s (%d reference(s), method=%s)",
        document.getpath(element),
        len(signature.references),
        signature.signature_method,
    )
    return SignatureLocationResult(signature=signature)
