from __future__ import annotations

import base64
import binascii
import json
import logging
import re
import subprocess
from typing import Any, Callable, Dict, List, Optional

from .certificates import extract_subject_info
from .dates import decode_epoch_date
from .errors import (
    CertificateParseError,
    DateFormatError,
    InspectionDecodeError,
    InspectionExecutionError,
)
from .models import SignatureRecord, SignerCertificate

log = logging.getLogger(__name__)

DEFAULT_POWERSHELL = "pwsh"

_SIGNATURE_QUERY = (
    "Get-AuthenticodeSignature -LiteralPath '{path}' | Select-Object "
    "@{{Name='SignerCertificate'; Expression={{$_.SignerCertificate | "
    "Select-Object NotAfter, NotBefore, Subject, RawData}}}}, Status, StatusMessage "
    "| ConvertTo-Json -Depth 4 -Compress"
)

_CERT_FIELDS = ("NotAfter", "NotBefore", "Subject", "RawData")


# =============================================================================
# Invocation
# =============================================================================
# PowerShell accepts the typographic single quotes as string delimiters too
_PS_SINGLE_QUOTES = re.compile("(['\u2018\u2019\u201a\u201b])")


def _ps_quote(value: str) -> str:
    # single-quoted PowerShell strings only escape a quote by doubling it
    return _PS_SINGLE_QUOTES.sub(r"\1\1", value)


def build_command(path: str, executable: str = DEFAULT_POWERSHELL) -> List[str]:
    return [
        executable,
        "-NoProfile",
        "-NonInteractive",
        "-Command",
        _SIGNATURE_QUERY.format(path=_ps_quote(path)),
    ]


def _text(data: Any, encoding: str) -> str:
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return data.decode(encoding, errors="replace")


def run_inspector(
    path: str,
    executable: str = DEFAULT_POWERSHELL,
    timeout: Optional[float] = None,
    encoding: str = "utf-8-sig",
    runner: Callable[..., Any] = subprocess.run,
) -> str:
    """Run Get-AuthenticodeSignature once and return its stdout as text."""
    cmd = build_command(path, executable)
    log.debug("Running inspector: %s", cmd)
    try:
        proc = runner(cmd, capture_output=True, timeout=timeout, check=False)
    except FileNotFoundError as e:
        raise InspectionExecutionError(f"signature inspector not found: {executable}") from e
    except subprocess.TimeoutExpired as e:
        raise InspectionExecutionError(
            f"signature inspector timed out after {timeout}s",
            stdout=_text(e.stdout, encoding),
            stderr=_text(e.stderr, encoding),
        ) from e
    except OSError as e:
        raise InspectionExecutionError(f"failed to start signature inspector: {e}") from e

    stdout = _text(proc.stdout, encoding)
    stderr = _text(proc.stderr, encoding)
    if proc.returncode != 0:
        raise InspectionExecutionError(
            "powershell command failed",
            stdout=stdout,
            stderr=stderr,
            returncode=proc.returncode,
        )
    if stderr.strip():
        log.debug("Inspector stderr: %s", stderr.rstrip())
    log.debug("Inspector returned %d characters", len(stdout))
    return stdout


# =============================================================================
# Decoding
# =============================================================================
def decode_raw_data(value: Any) -> bytes:
    """
    RawData comes back as base64 text or as a JSON array of byte values,
    depending on the PowerShell version. Both normalise to bytes.
    """
    if value is None:
        return b""
    if isinstance(value, dict) and "value" in value:
        # Windows PowerShell wraps some arrays as {"value": [...], "Count": n}
        value = value["value"]
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"RawData is not valid base64: {e}") from e
    if isinstance(value, list):
        for b in value:
            if isinstance(b, bool) or not isinstance(b, int) or not 0 <= b <= 255:
                raise ValueError(f"RawData contains a non-byte element: {b!r}")
        return bytes(value)
    raise ValueError(f"unsupported RawData type: {type(value).__name__}")


def _decode_signer_certificate(obj: Any) -> SignerCertificate:
    if obj is None:
        return SignerCertificate()
    if not isinstance(obj, dict):
        raise ValueError(f"SignerCertificate must be an object, got {type(obj).__name__}")
    missing = [k for k in _CERT_FIELDS if k not in obj]
    if missing:
        raise ValueError(f"SignerCertificate is missing {', '.join(missing)}")

    subject_text = obj["Subject"]
    if subject_text is not None and not isinstance(subject_text, str):
        raise ValueError("SignerCertificate.Subject must be a string")

    raw = decode_raw_data(obj["RawData"])
    return SignerCertificate(
        not_after=decode_epoch_date(obj["NotAfter"]),
        not_before=decode_epoch_date(obj["NotBefore"]),
        raw_data=raw,
        subject=extract_subject_info(raw) if raw else None,
        subject_text=subject_text or "",
    )


def _decode_record(doc: Dict[str, Any], path: str) -> SignatureRecord:
    for key in ("SignerCertificate", "Status", "StatusMessage"):
        if key not in doc:
            raise ValueError(f"missing field {key}")

    status = doc["Status"]
    if isinstance(status, bool) or not isinstance(status, int):
        raise ValueError(f"Status must be an integer, got {status!r}")
    message = doc["StatusMessage"]
    if not isinstance(message, str):
        raise ValueError(f"StatusMessage must be a string, got {message!r}")

    return SignatureRecord(
        status=status,
        status_message=message,
        path=path,
        signer_certificate=_decode_signer_certificate(doc["SignerCertificate"]),
    )


def decode_signature_output(output: str, path: str) -> SignatureRecord:
    """
    Decode ConvertTo-Json output into a SignatureRecord in one pass.

    Any deviation from the expected shape is an InspectionDecodeError; a
    malformed document is never read as "unsigned".
    """
    try:
        doc = json.loads(output)
    except ValueError as e:
        raise InspectionDecodeError(f"failed to parse json: {e}", raw_output=output) from e
    if not isinstance(doc, dict):
        raise InspectionDecodeError(
            f"expected a JSON object, got {type(doc).__name__}", raw_output=output
        )

    try:
        return _decode_record(doc, path)
    except CertificateParseError as e:
        raise InspectionDecodeError(
            f"failed to extract subject info: {e}", raw_output=output
        ) from e
    except DateFormatError as e:
        raise InspectionDecodeError(f"bad certificate date: {e}", raw_output=output) from e
    except ValueError as e:
        raise InspectionDecodeError(f"unexpected inspector output: {e}", raw_output=output) from e


def inspect_signature(
    path: str,
    executable: str = DEFAULT_POWERSHELL,
    timeout: Optional[float] = None,
    encoding: str = "utf-8-sig",
    runner: Callable[..., Any] = subprocess.run,
) -> SignatureRecord:
    output = run_inspector(path, executable=executable, timeout=timeout, encoding=encoding, runner=runner)
    record = decode_signature_output(output, path)
    log.info(
        "Signature status for %s: %d (%s)", path, record.status, record.status_message
    )
    return record
