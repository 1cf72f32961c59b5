"""
XML namespaces and algorithm identifiers consumed by the verifier.

The verifier does not define these formats. They are fixed by the W3C
XML-Signature and XML canonicalization recommendations, and are
reproduced here verbatim.
"""

# ---------------------------------------------------------------------------
# Namespaces
# ---------------------------------------------------------------------------

DSIG_NS = "http://www.w3.org/2000/09/xmldsig#"
EXC_C14N_NS = "http://www.w3.org/2001/10/xml-exc-c14n#"

# ---------------------------------------------------------------------------
# Canonicalization (CanonicalizationMethod and Transform algorithms)
# ---------------------------------------------------------------------------

C14N = "http://www.w3.org/TR/2001/REC-xml-c14n-20010315"
C14N_WITH_COMMENTS = "http://www.w3.org/TR/2001/REC-xml-c14n-20010315#WithComments"
EXC_C14N = "http://www.w3.org/2001/10/xml-exc-c14n#"
EXC_C14N_WITH_COMMENTS = "http://www.w3.org/2001/10/xml-exc-c14n#WithComments"

# ---------------------------------------------------------------------------
# Transforms
# ---------------------------------------------------------------------------

TRANSFORM_ENVELOPED_SIGNATURE = "http://www.w3.org/2000/09/xmldsig#enveloped-signature"

# ---------------------------------------------------------------------------
# Digest algorithms
# ---------------------------------------------------------------------------

DIGEST_SHA1 = "http://www.w3.org/2000/09/xmldsig#sha1"
DIGEST_SHA224 = "http://www.w3.org/2001/04/xmldsig-more#sha224"
DIGEST_SHA256 = "http://www.w3.org/2001/04/xmlenc#sha256"
DIGEST_SHA384 = "http://www.w3.org/2001/04/xmldsig-more#sha384"
DIGEST_SHA512 = "http://www.w3.org/2001/04/xmlenc#sha512"

# ---------------------------------------------------------------------------
# Signature algorithms
# ---------------------------------------------------------------------------

RSA_SHA1 = "http://www.w3.org/2000/09/xmldsig#rsa-sha1"
RSA_SHA224 = "http://www.w3.org/2001/04/xmldsig-more#rsa-sha224"
RSA_SHA256 = "http://www.w3.org/2001/04/xmldsig-more#rsa-sha256"
RSA_SHA384 = "http://www.w3.org/2001/04/xmldsig-more#rsa-sha384"
RSA_SHA512 = "http://www.w3.org/2001/04/xmldsig-more#rsa-sha512"

ECDSA_SHA1 = "http://www.w3.org/2001/04/xmldsig-more#ecdsa-sha1"
ECDSA_SHA224 = "http://www.w3.org/2001/04/xmldsig-more#ecdsa-sha224"
ECDSA_SHA256 = "http://www.w3.org/2001/04/xmldsig-more#ecdsa-sha256"
ECDSA_SHA384 = "http://www.w3.org/2001/04/xmldsig-more#ecdsa-sha384"
ECDSA_SHA512 = "http://www.w3.org/2001/04/xmldsig-more#ecdsa-sha512"

DSA_SHA1 = "http://www.w3.org/2000/09/xmldsig#dsa-sha1"
DSA_SHA256 = "http://www.w3.org/2009/xmldsig11#dsa-sha256"

# Attribute names recognised as element identifiers for same-document
# references. SAML 2.0 uses "ID" exclusively.
DEFAULT_ID_ATTRIBUTES = ("ID",)

# Acceptable skew between SP and IdP clocks (SAML 2.0 Errata E92).
DEFAULT_CLOCK_SKEW_SECONDS = 180


def ds_tag(local_name: str) -> str:
    """Clark-notation tag for an XML-Signature element."""
    return f"{{{DSIG_NS}}}{local_name}"
