"""
Single-assertion profile rule.

The Interoperable SAML 2.0 Web Browser SSO Deployment Profile requires a
Response to carry exactly one Assertion. Elements are matched on local
name in any namespace, so an Assertion smuggled in under a foreign
namespace still counts.
"""

from __future__ import annotations

import logging
from typing import Optional

from lxml import etree

from sso_verifier.app.schemas.outcome import FailureReason, ValidationFailure

logger = logging.getLogger(__name__)


def count_assertions(document: etree._ElementTree) -> int:
    return sum(
        1
        for el in document.getroot().iter(etree.Element)
        if etree.QName(el).localname == "Assertion"
    )


def run_assertion_count_check(
    document: etree._ElementTree,
) -> Optional[ValidationFailure]:
    count = count_assertions(document)

    if count == 1:
        return None

    logger.warning("Response carries %d assertions, expected exactly 1", count)
    return ValidationFailure(
        failure_id="AST-CRIT-001",
        reason=FailureReason.MULTIPLE_ASSERTIONS,
        title="Assertion count violation",
        description=(
            f"The response contains {count} Assertion elements. Exactly one "
            "is required."
        ),
        metadata={"assertion_count": count},
    )
