import base64
import datetime
import json
import logging
import os

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

EMURASOFT = [
    (NameOID.COMMON_NAME, "Emurasoft, Inc."),
    (NameOID.ORGANIZATION_NAME, "Emurasoft, Inc."),
    (NameOID.LOCALITY_NAME, "Bellevue"),
    (NameOID.STATE_OR_PROVINCE_NAME, "Washington"),
    (NameOID.COUNTRY_NAME, "US"),
]

NOT_BEFORE_MS = 1712620800000  # 2024-04-09T00:00:00Z
NOT_AFTER_MS = 1775779199000  # 2026-04-09T23:59:59Z


def build_cert(attrs):
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(oid, value) for oid, value in attrs])
    issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "Test Code Signing CA")])
    now = datetime.datetime(2024, 4, 9, tzinfo=datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=730))
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.DER)


def inspector_json(
    raw=None,
    status=0,
    message="Signature verified.",
    subject_text="CN=\"Emurasoft, Inc.\", O=\"Emurasoft, Inc.\", S=Washington, C=US",
    raw_as="base64",
):
    """Render what ConvertTo-Json prints for the Select-Object projection."""
    if raw is None:
        cert = None
    else:
        if raw_as == "base64":
            raw_value = base64.b64encode(raw).decode("ascii")
        else:
            raw_value = list(raw)
        cert = {
            "NotAfter": f"/Date({NOT_AFTER_MS})/",
            "NotBefore": f"/Date({NOT_BEFORE_MS})/",
            "Subject": subject_text,
            "RawData": raw_value,
        }
    doc = {"SignerCertificate": cert, "Status": status, "StatusMessage": message}
    # ConvertTo-Json escapes the slashes in its date strings
    return json.dumps(doc).replace("/Date(", "\\/Date(").replace(")/", ")\\/")


@pytest.fixture(scope="session")
def emurasoft_der():
    return build_cert(EMURASOFT)


@pytest.fixture
def make_cert():
    return build_cert


@pytest.fixture
def make_output():
    return inspector_json


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in list(os.environ):
        if var.startswith("SIGCHECK_"):
            monkeypatch.delenv(var)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger = logging.getLogger("installer_sigcheck")
    logger.handlers[:] = []
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
