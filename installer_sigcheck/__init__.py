"""
Installer signature check.

Downloads an installer, asks PowerShell's Get-AuthenticodeSignature for its
signature status and signer certificate, and checks the signer's subject
against an expected publisher.
"""

APP_NAME = "installer-sigcheck"
APP_VERSION = "1.0.0"

from .errors import (  # noqa: E402
    CertificateParseError,
    CleanupError,
    ConfigurationError,
    DateFormatError,
    DownloadError,
    InspectionDecodeError,
    InspectionExecutionError,
    SigCheckError,
)
from .models import (  # noqa: E402
    ProgramOutput,
    SignatureRecord,
    SignerCertificate,
    SubjectInfo,
    ValidationResult,
)
from .certificates import extract_subject_info  # noqa: E402
from .dates import decode_epoch_date, encode_epoch_date  # noqa: E402
from .inspector import decode_signature_output, inspect_signature  # noqa: E402
from .policy import ExpectedPublisher, evaluate_signature  # noqa: E402

__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "CertificateParseError",
    "CleanupError",
    "ConfigurationError",
    "DateFormatError",
    "DownloadError",
    "ExpectedPublisher",
    "InspectionDecodeError",
    "InspectionExecutionError",
    "ProgramOutput",
    "SigCheckError",
    "SignatureRecord",
    "SignerCertificate",
    "SubjectInfo",
    "ValidationResult",
    "decode_epoch_date",
    "decode_signature_output",
    "encode_epoch_date",
    "evaluate_signature",
    "extract_subject_info",
    "inspect_signature",
]
