"""
Reference digest validation.

Every ds:Reference in SignedInfo is resolved to the element it points
at, transformed, canonicalized, digested, and compared against the
DigestValue the signer recorded. The first reference that fails stops the
check; remaining references are not examined.

Resolution rules:
    ""                      whole document, comments removed
    "#xpointer(/)"          whole document, comments kept
    "#<id>"                 unique element with a matching ID attribute,
                            comments removed
    "#xpointer(id('<id>'))" as above, comments kept

An ID that matches zero or several elements is a resolution failure.
Rejecting duplicate IDs closes the classic signature-wrapping attack
where a forged element shadows the signed one.

Transforms are applied to a private copy of the validation snapshot, so
the enveloped-signature transform never disturbs the SignedInfo that the
final cryptographic step canonicalizes.
"""

from __future__ import annotations

import copy
import logging
import re
from typing import List, Optional, Sequence, Tuple, Union

from lxml import etree

from sso_verifier.app import constants
from sso_verifier.app.capabilities.canonicalization import (
    CanonicalizationError,
    Canonicalizer,
)
from sso_verifier.app.schemas.outcome import FailureReason, ValidationFailure
from sso_verifier.app.schemas.signature import Reference, SignatureBlock
from sso_verifier.app.utils.hashing import (
    UnsupportedDigestAlgorithm,
    compute_digest,
    digests_match,
)

logger = logging.getLogger(__name__)

_XPOINTER_ID = re.compile(r"""^xpointer\(id\((['"])(?P<id>[^'"]+)\1\)\)$""")

ReferenceTarget = Union[etree._Element, etree._ElementTree]


class ReferenceCheckError(Exception):
    """Internal signal carrying the failure id and title of a bad reference."""

    def __init__(self, failure_id: str, title: str, detail: str) -> None:
        super().__init__(detail)
        self.failure_id = failure_id
        self.title = title
        self.detail = detail


# ------------------------------------------------------------------
# Resolution
# ------------------------------------------------------------------


def find_by_id(
    document: etree._ElementTree,
    element_id: str,
    id_attributes: Sequence[str],
) -> List[etree._Element]:
    return [
        el
        for el in document.getroot().iter(etree.Element)
        if any(el.get(attr) == element_id for attr in id_attributes)
    ]


def resolve_reference(
    document: etree._ElementTree,
    uri: Optional[str],
    id_attributes: Sequence[str],
) -> Tuple[ReferenceTarget, bool]:
    """
    Resolve a same-document reference URI.

    Returns the target node and whether comments must be stripped before
    canonicalization.
    """
    if uri is None:
        raise ReferenceCheckError(
            "REF-CRIT-002",
            "Reference URI missing",
            "Reference has no URI attribute",
        )

    if uri == "":
        return document, True

    if not uri.startswith("#"):
        raise ReferenceCheckError(
            "REF-CRIT-002",
            "Reference not resolvable",
            f"Only same-document references are supported, got '{uri}'",
        )

    fragment = uri[1:]
    if fragment == "xpointer(/)":
        return document, False

    strip_comments = True
    match = _XPOINTER_ID.match(fragment)
    if match:
        fragment = match.group("id")
        strip_comments = False

    matches = find_by_id(document, fragment, id_attributes)

    if not matches:
        raise ReferenceCheckError(
            "REF-CRIT-002",
            "Reference not resolvable",
            f"No element carries ID '{fragment}'",
        )

    if len(matches) > 1:
        raise ReferenceCheckError(
            "REF-CRIT-002",
            "Reference ambiguous",
            f"{len(matches)} elements carry ID '{fragment}'",
        )

    return matches[0], strip_comments


# ------------------------------------------------------------------
# Transforms
# ------------------------------------------------------------------


def _child_index_path(element: etree._Element) -> List[int]:
    """Positional path from the root element down to ``element``."""
    path: List[int] = []
    node = element
    parent = node.getparent()
    while parent is not None:
        path.append(parent.index(node))
        node = parent
        parent = node.getparent()
    path.reverse()
    return path


def _follow_index_path(tree: etree._ElementTree, path: List[int]) -> etree._Element:
    node = tree.getroot()
    for index in path:
        node = node[index]
    return node


def remove_enveloped_signature(signature: etree._Element) -> None:
    """
    Detach ``signature`` from its parent, keeping the text that followed
    it. Only the Signature element leaves the node-set.
    """
    parent = signature.getparent()
    if parent is None:
        raise ReferenceCheckError(
            "REF-CRIT-003",
            "Transform failed",
            "Enveloped signature has no parent element",
        )

    if signature.tail:
        previous = signature.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or "") + signature.tail
        else:
            parent.text = (parent.text or "") + signature.tail

    parent.remove(signature)


def _contains(target: ReferenceTarget, element: etree._Element) -> bool:
    if isinstance(target, etree._ElementTree):
        return True
    return element is target or any(
        node is target for node in element.iterancestors()
    )


def digest_input(
    reference: Reference,
    signature: SignatureBlock,
    document: etree._ElementTree,
    *,
    canonicalizer: Canonicalizer,
    id_attributes: Sequence[str],
) -> bytes:
    """Produce the octets a reference's DigestValue was computed over."""
    target, strip_comments = resolve_reference(document, reference.uri, id_attributes)

    # Work on a private copy; locate the target and the signature in it
    # by position.
    working = copy.deepcopy(document)
    if isinstance(target, etree._ElementTree):
        working_target: ReferenceTarget = working
    else:
        working_target = _follow_index_path(working, _child_index_path(target))
    working_signature = _follow_index_path(
        working, _child_index_path(signature.element)
    )

    data: Optional[bytes] = None

    for transform in reference.transforms:
        if data is not None:
            raise ReferenceCheckError(
                "REF-CRIT-003",
                "Transform failed",
                f"Transform {transform.algorithm} follows canonicalization",
            )

        if transform.algorithm == constants.TRANSFORM_ENVELOPED_SIGNATURE:
            if _contains(working_target, working_signature):
                remove_enveloped_signature(working_signature)
        elif canonicalizer.supports(transform.algorithm):
            data = _canonicalize(
                canonicalizer,
                working_target,
                transform.algorithm,
                transform.inclusive_prefixes,
                strip_comments,
            )
        else:
            raise ReferenceCheckError(
                "REF-CRIT-003",
                "Transform unsupported",
                f"Unsupported transform algorithm '{transform.algorithm}'",
            )

    if data is None:
        # Node-set to octets conversion.
        data = _canonicalize(
            canonicalizer, working_target, constants.C14N, None, True
        )

    return data


def _canonicalize(
    canonicalizer: Canonicalizer,
    target: ReferenceTarget,
    algorithm: str,
    inclusive_prefixes: Optional[Sequence[str]],
    strip_comments: bool,
) -> bytes:
    try:
        return canonicalizer.canonicalize(
            target,
            algorithm,
            inclusive_prefixes=inclusive_prefixes,
            strip_comments=strip_comments,
        )
    except CanonicalizationError as exc:
        raise ReferenceCheckError(
            "REF-CRIT-003",
            "Transform failed",
            f"Canonicalization failed: {exc}",
        ) from exc


def verify_reference(
    reference: Reference,
    signature: SignatureBlock,
    document: etree._ElementTree,
    *,
    canonicalizer: Canonicalizer,
    id_attributes: Sequence[str],
) -> None:
    """Raise ReferenceCheckError unless the reference digest matches."""
    if reference.digest_method is None or reference.digest_value is None:
        raise ReferenceCheckError(
            "REF-CRIT-004",
            "Digest unavailable",
            "Reference lacks a DigestMethod or a base64 DigestValue",
        )

    data = digest_input(
        reference,
        signature,
        document,
        canonicalizer=canonicalizer,
        id_attributes=id_attributes,
    )

    try:
        computed = compute_digest(reference.digest_method, data)
    except UnsupportedDigestAlgorithm as exc:
        raise ReferenceCheckError(
            "REF-CRIT-004",
            "Digest algorithm unsupported",
            str(exc),
        ) from exc

    if not digests_match(computed, reference.digest_value):
        raise ReferenceCheckError(
            "REF-CRIT-005",
            "Digest mismatch",
            "Computed digest does not match the signed DigestValue; the "
            "referenced content was modified after signing",
        )


# ------------------------------------------------------------------
# Public check
# ------------------------------------------------------------------


def run_reference_checks(
    signature: SignatureBlock,
    document: etree._ElementTree,
    *,
    canonicalizer: Canonicalizer,
    id_attributes: Sequence[str] = constants.DEFAULT_ID_ATTRIBUTES,
) -> Optional[ValidationFailure]:
    """
    Verify every reference in declared order. Returns the first failure,
    or None when all references verify.
    """
    if not signature.references:
        logger.warning("SignedInfo declares no references")
        return ValidationFailure(
            failure_id="REF-CRIT-001",
            reason=FailureReason.REFERENCE_VALIDATION_FAILED,
            title="No signed references",
            description=(
                "SignedInfo contains no Reference elements, so the signature "
                "covers no content."
            ),
        )

    for index, reference in enumerate(signature.references):
        try:
            verify_reference(
                reference,
                signature,
                document,
                canonicalizer=canonicalizer,
                id_attributes=id_attributes,
            )
        except ReferenceCheckError as exc:
            logger.warning(
                "Reference %d (%r) failed: %s", index, reference.uri, exc.detail
            )
            return ValidationFailure(
                failure_id=exc.failure_id,
                reason=FailureReason.REFERENCE_VALIDATION_FAILED,
                title=exc.title,
                description=exc.detail,
                location=reference.uri,
                metadata={"reference_index": index},
            )

        logger.debug("Reference %d (%r) verified", index, reference.uri)

    return None
