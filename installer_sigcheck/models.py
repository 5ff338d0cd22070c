from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

# Bumped whenever the decoded shape of SignatureRecord changes.
SCHEMA_VERSION = 1


# =============================================================================
# Certificate identity
# =============================================================================
@dataclass(frozen=True)
class SubjectInfo:
    common_name: str = ""
    organization: str = ""
    organizational_unit: str = ""
    locality: str = ""
    state: str = ""
    country: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "common_name": self.common_name,
            "organization": self.organization,
            "organizational_unit": self.organizational_unit,
            "locality": self.locality,
            "state": self.state,
            "country": self.country,
        }


@dataclass(frozen=True)
class SignerCertificate:
    not_after: Optional[datetime] = None
    not_before: Optional[datetime] = None
    raw_data: bytes = b""
    # Derived from raw_data; None iff raw_data is empty.
    subject: Optional[SubjectInfo] = None
    # Flattened subject string as printed by the inspector. Display only.
    subject_text: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.raw_data

    @property
    def sha256(self) -> Optional[str]:
        if not self.raw_data:
            return None
        return hashlib.sha256(self.raw_data).hexdigest()


# =============================================================================
# Inspection record / verdict
# =============================================================================
@dataclass(frozen=True)
class SignatureRecord:
    status: int
    status_message: str
    path: str
    signer_certificate: SignerCertificate = field(default_factory=SignerCertificate)
    schema_version: int = SCHEMA_VERSION

    def summary(self) -> Dict[str, Any]:
        cert = self.signer_certificate
        subject = cert.subject or SubjectInfo()
        return {
            "path": self.path,
            "status": self.status,
            "status_message": self.status_message,
            "signer_subject": subject.to_dict(),
            "signer_subject_text": cert.subject_text or None,
            "signer_not_before": _iso(cert.not_before),
            "signer_not_after": _iso(cert.not_after),
            "signer_cert_sha256": cert.sha256,
        }


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: Optional[str] = None

    def __post_init__(self) -> None:
        if self.valid and self.reason is not None:
            raise ValueError("a passing ValidationResult carries no reason")
        if not self.valid and not self.reason:
            raise ValueError("a failing ValidationResult needs a reason")

    @classmethod
    def passed(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def failed(cls, reason: str) -> "ValidationResult":
        return cls(valid=False, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"valid": self.valid}
        if self.reason is not None:
            out["reason"] = self.reason
        return out


@dataclass
class ProgramOutput:
    """Envelope written by the CLI. `error` is set only when no verdict could be reached."""

    result: Optional[ValidationResult] = None
    error: Optional[str] = None
    cleanup_error: Optional[str] = None
    signature: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.result is not None:
            out["result"] = self.result.to_dict()
        if self.error is not None:
            out["error"] = self.error
        if self.cleanup_error is not None:
            out["cleanup_error"] = self.cleanup_error
        if self.signature is not None:
            out["signature"] = self.signature
        return out


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None
