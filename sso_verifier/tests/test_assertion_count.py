"""
Tests for the single-assertion rule.

  0 assertions                       -> AST-CRIT-001
  1 assertion                        -> pass
  2 assertions                       -> AST-CRIT-001
  Assertion in a foreign namespace   -> counted
"""

from lxml import etree

from sso_verifier.app.checks.assertion_count import (
    count_assertions,
    run_assertion_count_check,
)
from sso_verifier.app.schemas.outcome import FailureReason
from sso_verifier.tests.fixtures.saml_factory import (
    SAML,
    append_assertion,
    signed_response,
    unsigned_response,
)


def test_single_assertion_passes():
    assert run_assertion_count_check(unsigned_response()) is None


def test_second_assertion_fails():
    failure = run_assertion_count_check(append_assertion(signed_response()))

    assert failure.reason is FailureReason.MULTIPLE_ASSERTIONS
    assert failure.failure_id == "AST-CRIT-001"
    assert failure.metadata == {"assertion_count": 2}


def test_no_assertion_fails():
    document = unsigned_response()
    assertion = document.find(f"{{{SAML}}}Assertion")
    document.getroot().remove(assertion)

    failure = run_assertion_count_check(document)

    assert failure.reason is FailureReason.MULTIPLE_ASSERTIONS
    assert failure.metadata == {"assertion_count": 0}


def test_foreign_namespace_assertion_is_counted():
    document = unsigned_response()
    etree.SubElement(document.getroot(), "{urn:example:smuggled}Assertion")

    assert count_assertions(document) == 2


def test_nested_assertion_is_counted():
    document = unsigned_response()
    advice = etree.SubElement(
        document.find(f"{{{SAML}}}Assertion"), f"{{{SAML}}}Advice"
    )
    etree.SubElement(advice, f"{{{SAML}}}Assertion")

    assert run_assertion_count_check(document).metadata == {"assertion_count": 2}


def test_comments_and_processing_instructions_are_ignored():
    document = unsigned_response()
    document.getroot().append(etree.Comment("Assertion"))
    document.getroot().append(etree.ProcessingInstruction("Assertion"))

    assert count_assertions(document) == 1
