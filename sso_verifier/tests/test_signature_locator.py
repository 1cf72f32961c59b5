"""
Tests for signature location.

Coverage matrix:

  SIG-CRIT-001  No ds:Signature anywhere                 -> failure
  SIG-CRIT-002  Signature without SignedInfo             -> failure
  SIG-CRIT-002  SignatureValue not base64 / empty        -> failure
  Pass          first Signature in document order wins
  Pass          exc-c14n PrefixList lifted into the block
"""

import copy

from lxml import etree

from sso_verifier.app.checks.signature_locator import locate_signature
from sso_verifier.app.schemas.outcome import FailureReason
from sso_verifier.tests.fixtures.saml_factory import (
    ASSERTION_ID,
    DS,
    EXC_C14N,
    RSA_SHA256,
    SHA256,
    signature_value_element,
    signed_response,
    unsigned_response,
)


def test_unsigned_response_has_no_signature():
    result = locate_signature(unsigned_response())

    assert result.signature is None
    assert result.failure.reason is FailureReason.SIGNATURE_NOT_FOUND
    assert result.failure.failure_id == "SIG-CRIT-001"


def test_signed_response_yields_signature_block():
    result = locate_signature(signed_response())

    assert result.failure is None
    block = result.signature
    assert block.canonicalization_method == EXC_C14N
    assert block.signature_method == RSA_SHA256
    assert block.key_info_present is True
    assert len(block.references) == 1
    assert block.references[0].uri == f"#{ASSERTION_ID}"
    assert block.references[0].digest_method == SHA256
    assert len(block.references[0].digest_value) == 32


def test_missing_key_info_is_recorded():
    result = locate_signature(signed_response(include_key_info=False))

    assert result.signature.key_info_present is False


def test_signature_without_signed_info_is_malformed():
    document = signed_response()
    signed_info = document.find(f".//{{{DS}}}SignedInfo")
    signed_info.getparent().remove(signed_info)

    result = locate_signature(document)

    assert result.failure.reason is FailureReason.SIGNATURE_NOT_FOUND
    assert result.failure.failure_id == "SIG-CRIT-002"
    assert result.failure.location is not None


def test_signature_value_not_base64_is_malformed():
    document = signed_response()
    signature_value_element(document).text = "not*base64*at*all"

    result = locate_signature(document)

    assert result.failure.failure_id == "SIG-CRIT-002"


def test_empty_signature_value_is_malformed():
    document = signed_response()
    signature_value_element(document).text = None

    assert locate_signature(document).failure.failure_id == "SIG-CRIT-002"


def test_signature_value_whitespace_is_tolerated():
    document = signed_response()
    node = signature_value_element(document)
    text = node.text
    node.text = "\n".join(text[i:i + 64] for i in range(0, len(text), 64))

    assert locate_signature(document).failure is None


def test_first_signature_in_document_order_is_used():
    document = signed_response()
    decoy = copy.deepcopy(document.find(f".//{{{DS}}}Signature"))
    decoy.find(f".//{{{DS}}}Reference").set("URI", "#_decoy")
    document.getroot().insert(0, decoy)

    result = locate_signature(document)

    assert result.signature.references[0].uri == "#_decoy"
    assert result.signature.element is decoy


def test_inclusive_namespace_prefix_list_is_parsed():
    document = signed_response()
    transform = document.findall(f".//{{{DS}}}Transform")[1]
    etree.SubElement(
        transform,
        f"{{{EXC_C14N}}}InclusiveNamespaces",
        PrefixList="saml #default",
    )

    result = locate_signature(document)

    transforms = result.signature.references[0].transforms
    assert transforms[0].inclusive_prefixes is None
    assert transforms[1].inclusive_prefixes == ("saml", "#default")
