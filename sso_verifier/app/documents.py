"""
Response document loading and validation snapshots.

Parsing is not part of the validation pipeline; ``load_response_document``
is a convenience for callers that hold the raw ``SAMLResponse`` form value
or raw XML bytes. The pipeline itself only ever consumes
``snapshot_document`` output.
"""

from __future__ import annotations

import base64
import binascii
import copy
import logging
from typing import Union

from lxml import etree

logger = logging.getLogger(__name__)

ParsedDocument = Union[etree._ElementTree, etree._Element]


class DocumentLoadError(ValueError):
    """Raised when a SAML Response cannot be decoded or parsed."""


def _hardened_parser() -> etree.XMLParser:
    return etree.XMLParser(
        no_network=True,
        resolve_entities=False,
        dtd_validation=False,
        load_dtd=False,
        huge_tree=False,
        remove_blank_text=False,
    )


def load_response_document(data: Union[str, bytes]) -> etree._ElementTree:
    """
    Parse a SAML Response from raw XML or its base64 HTTP-POST encoding.

    Input starting with '<' (after leading whitespace) is treated as XML;
    anything else is base64-decoded first.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")

    stripped = data.lstrip()
    if not stripped.startswith(b"<"):
        try:
            stripped = base64.b64decode(b"".join(stripped.split()), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DocumentLoadError(
                f"SAML Response is neither XML nor valid base64: {exc}"
            ) from exc

    try:
        root = etree.fromstring(stripped, _hardened_parser())
    except etree.XMLSyntaxError as exc:
        logger.warning("SAML Response XML could not be parsed: %s", exc)
        raise DocumentLoadError(f"Failed to parse SAML XML: {exc}") from exc

    return root.getroottree()


def snapshot_document(document: ParsedDocument) -> etree._ElementTree:
    """
    Take a private deep copy of the document for one validation call.

    Checks only ever read the snapshot, so a caller mutating its own tree
    concurrently cannot affect an in-flight validation. Elements are
    normalised to their owning tree so that every check sees the whole
    document.
    """
    if isinstance(document, etree._Element):
        document = document.getroottree()

    if not isinstance(document, etree._ElementTree):
        raise TypeError(
            "Expected an lxml ElementTree or Element, "
            f"got {type(document).__name__}"
        )

    return copy.deepcopy(document)
