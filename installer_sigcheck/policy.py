from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

from .models import SignatureRecord, SubjectInfo, ValidationResult


# =============================================================================
# Expected publisher (pinned identity)
# =============================================================================
@dataclass(frozen=True)
class ExpectedPublisher:
    common_name: str = "Emurasoft, Inc."
    organization: str = "Emurasoft, Inc."
    state: str = "Washington"
    country: str = "US"

    def to_dict(self) -> Dict[str, str]:
        return {
            "common_name": self.common_name,
            "organization": self.organization,
            "state": self.state,
            "country": self.country,
        }


DEFAULT_PUBLISHER = ExpectedPublisher()


def _identity_checks(subject: SubjectInfo, expected: ExpectedPublisher) -> List[Tuple[str, str, str]]:
    # order matters: the first mismatch is the one reported
    return [
        ("Common Name", subject.common_name, expected.common_name),
        ("Organization", subject.organization, expected.organization),
        ("State", subject.state, expected.state),
        ("Country", subject.country, expected.country),
    ]


def evaluate_signature(
    record: SignatureRecord, publisher: ExpectedPublisher = DEFAULT_PUBLISHER
) -> ValidationResult:
    """
    Status first, then CN, O, ST and C. Comparisons are exact: no trimming,
    no case folding.
    """
    if record.status != 0:
        return ValidationResult.failed(
            f"invalid signature status: {record.status_message} (status code: {record.status})"
        )

    subject = record.signer_certificate.subject or SubjectInfo()
    for label, actual, expected in _identity_checks(subject, publisher):
        if actual != expected:
            return ValidationResult.failed(f"unexpected {label}: {actual!r} (expected {expected!r})")

    return ValidationResult.passed()
