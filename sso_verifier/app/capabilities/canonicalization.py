"""
Canonicalization capability.

The verifier never serializes XML itself. Canonical bytes for SignedInfo
and for referenced subtrees are produced by a Canonicalizer, backed by
libxml2's C14N implementation through lxml.

Only the C14N 1.0 family (inclusive and exclusive, with and without
comments) is supported. C14N 1.1 is rejected rather than approximated.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Protocol, Sequence, Tuple, Union

from lxml import etree

from sso_verifier.app import constants

logger = logging.getLogger(__name__)

XmlNode = Union[etree._Element, etree._ElementTree]

# algorithm URI -> (exclusive, with_comments)
CANONICALIZATION_ALGORITHMS: Dict[str, Tuple[bool, bool]] = {
    constants.C14N: (False, False),
    constants.C14N_WITH_COMMENTS: (False, True),
    constants.EXC_C14N: (True, False),
    constants.EXC_C14N_WITH_COMMENTS: (True, True),
}


class CanonicalizationError(ValueError):
    """Raised when a node cannot be canonicalized with the given algorithm."""


class Canonicalizer(Protocol):
    """
    Interface for producing canonical octets of an XML node.

    Implementations must be deterministic and must not mutate the node.
    """

    def supports(self, algorithm: str) -> bool:
        ...

    def canonicalize(
        self,
        node: XmlNode,
        algorithm: str,
        *,
        inclusive_prefixes: Optional[Sequence[str]] = None,
        strip_comments: bool = False,
    ) -> bytes:
        ...


class LxmlCanonicalizer:
    """Canonicalizer backed by ``lxml.etree.tostring(method="c14n")``."""

    def supports(self, algorithm: str) -> bool:
        return algorithm in CANONICALIZATION_ALGORITHMS

    def canonicalize(
        self,
        node: XmlNode,
        algorithm: str,
        *,
        inclusive_prefixes: Optional[Sequence[str]] = None,
        strip_comments: bool = False,
    ) -> bytes:
        try:
            exclusive, with_comments = CANONICALIZATION_ALGORITHMS[algorithm]
        except KeyError:
            raise CanonicalizationError(
                f"Unsupported canonicalization algorithm: {algorithm}"
            ) from None

        if strip_comments:
            with_comments = False

        # PrefixList only has meaning for exclusive canonicalization.
        prefixes = list(inclusive_prefixes) if exclusive and inclusive_prefixes else None

        try:
            return etree.tostring(
                node,
                method="c14n",
                exclusive=exclusive,
                with_comments=with_comments,
                inclusive_ns_prefixes=prefixes,
            )
        except (etree.C14NError, etree.SerialisationError, ValueError) as exc:
            logger.warning("Canonicalization failed (%s): %s", algorithm, exc)
            raise CanonicalizationError(str(exc)) from exc
