"""
Tests for the pinned trust anchor.

Material formats accepted: PEM certificate, DER certificate, bare base64
certificate body, PEM SubjectPublicKeyInfo.
"""

import base64

import pytest
from cryptography.hazmat.primitives import serialization

from sso_verifier.app.trust.trusted_certificate import (
    KeyResolutionError,
    TrustedCertificate,
)
from sso_verifier.tests.fixtures.saml_factory import (
    ECDSA_SHA256,
    RSA_SHA1,
    RSA_SHA256,
    ec_identity,
    rsa_identity,
)


def _public_numbers(key):
    return key.public_numbers()


@pytest.fixture
def identity():
    return rsa_identity()


def test_pem_certificate(identity):
    trusted = TrustedCertificate.from_pem(identity.certificate_pem)

    assert _public_numbers(trusted.resolve_key(RSA_SHA256)) == _public_numbers(
        identity.private_key.public_key()
    )


def test_pem_certificate_as_text(identity):
    trusted = TrustedCertificate.from_pem(identity.certificate_pem.decode("ascii"))

    assert trusted.material == identity.certificate_pem


def test_der_certificate(identity):
    trusted = TrustedCertificate(material=identity.certificate_der)

    assert trusted.resolve_key(RSA_SHA256) is not None


def test_bare_base64_certificate_body(identity):
    body = base64.encodebytes(identity.certificate_der)

    trusted = TrustedCertificate(material=body)

    assert _public_numbers(trusted.public_key()) == _public_numbers(
        identity.private_key.public_key()
    )


def test_pem_public_key(identity):
    pem = identity.private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )

    trusted = TrustedCertificate(material=pem)

    assert trusted.resolve_key(RSA_SHA1) is not None


def test_ec_certificate_resolves_ecdsa():
    trusted = TrustedCertificate.from_pem(ec_identity().certificate_pem)

    assert trusted.resolve_key(ECDSA_SHA256) is not None


def test_key_family_mismatch_raises():
    trusted = TrustedCertificate.from_pem(ec_identity().certificate_pem)

    with pytest.raises(KeyResolutionError):
        trusted.resolve_key(RSA_SHA256)


def test_allow_list_is_enforced(identity):
    trusted = TrustedCertificate.from_pem(
        identity.certificate_pem,
        allowed_signature_methods=frozenset({RSA_SHA256}),
    )

    assert trusted.resolve_key(RSA_SHA256) is not None
    with pytest.raises(KeyResolutionError):
        trusted.resolve_key(RSA_SHA1)


def test_unsupported_method_raises(identity):
    trusted = TrustedCertificate.from_pem(identity.certificate_pem)

    with pytest.raises(KeyResolutionError):
        trusted.resolve_key("urn:example:unknown")


def test_garbage_material_raises():
    with pytest.raises(KeyResolutionError):
        TrustedCertificate(material=b"-----BEGIN CERTIFICATE-----\nAAAA\n").public_key()


def test_from_file(tmp_path, identity):
    path = tmp_path / "idp.pem"
    path.write_bytes(identity.certificate_pem)

    trusted = TrustedCertificate.from_file(path)

    assert trusted.material == identity.certificate_pem


def test_from_file_missing_raises_runtime_error(tmp_path):
    with pytest.raises(RuntimeError):
        TrustedCertificate.from_file(tmp_path / "missing.pem")


def test_trusted_certificate_is_immutable(identity):
    trusted = TrustedCertificate.from_pem(identity.certificate_pem)

    with pytest.raises(Exception):
        trusted.material = b"other"
