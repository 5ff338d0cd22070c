from __future__ import annotations

import logging
from typing import List

from cryptography import x509
from cryptography.x509.oid import NameOID

from .errors import CertificateParseError
from .models import SubjectInfo

log = logging.getLogger(__name__)


# =============================================================================
# Cert helpers
# =============================================================================
def load_certificate(raw: bytes) -> x509.Certificate:
    """Load a signer certificate from DER bytes (PEM armour is tolerated)."""
    if not raw:
        raise CertificateParseError("empty certificate data", data_length=0)
    try:
        if raw.lstrip().startswith(b"-----BEGIN"):
            return x509.load_pem_x509_certificate(raw)
        return x509.load_der_x509_certificate(raw)
    except ValueError as e:
        raise CertificateParseError(
            f"malformed certificate ({len(raw)} bytes): {e}", data_length=len(raw)
        ) from e


def _first(name: x509.Name, oid: x509.ObjectIdentifier) -> str:
    values: List[x509.NameAttribute] = name.get_attributes_for_oid(oid)
    if not values:
        return ""
    value = values[0].value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


# =============================================================================
# Subject extraction
# =============================================================================
def extract_subject_info(raw: bytes) -> SubjectInfo:
    """
    Parse the raw certificate and flatten its subject DN.

    The first value wins for every attribute type; a missing attribute is an
    empty string, not an error.
    """
    cert = load_certificate(raw)
    try:
        subject = cert.subject
        info = SubjectInfo(
            common_name=_first(subject, NameOID.COMMON_NAME),
            organization=_first(subject, NameOID.ORGANIZATION_NAME),
            organizational_unit=_first(subject, NameOID.ORGANIZATIONAL_UNIT_NAME),
            locality=_first(subject, NameOID.LOCALITY_NAME),
            state=_first(subject, NameOID.STATE_OR_PROVINCE_NAME),
            country=_first(subject, NameOID.COUNTRY_NAME),
        )
        log.debug("Signer subject: %s", subject.rfc4514_string())
    except ValueError as e:
        raise CertificateParseError(
            f"malformed certificate subject ({len(raw)} bytes): {e}", data_length=len(raw)
        ) from e
    return info
