from __future__ import annotations

from typing import Optional


class SigCheckError(Exception):
    """Base class for every failure that prevents a verdict."""


# =============================================================================
# Collaborators (download / cleanup / config)
# =============================================================================
class ConfigurationError(SigCheckError):
    pass


class DownloadError(SigCheckError):
    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class CleanupError(SigCheckError):
    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


# =============================================================================
# Inspection
# =============================================================================
class InspectionExecutionError(SigCheckError):
    """
    The inspector could not be run to completion (not found, crashed, timed out).
    stdout/stderr are kept verbatim so environment problems can be told apart
    from a bad signature.
    """

    def __init__(
        self,
        message: str,
        stdout: str = "",
        stderr: str = "",
        returncode: Optional[int] = None,
    ):
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode

    def __str__(self) -> str:
        base = super().__str__()
        parts = [base]
        if self.returncode is not None:
            parts.append(f"exit code: {self.returncode}")
        if self.stdout.strip():
            parts.append(f"stdout:\n{self.stdout.rstrip()}")
        if self.stderr.strip():
            parts.append(f"stderr:\n{self.stderr.rstrip()}")
        return "; ".join(parts)


class InspectionDecodeError(SigCheckError):
    def __init__(self, message: str, raw_output: str = ""):
        super().__init__(message)
        self.raw_output = raw_output

    def __str__(self) -> str:
        base = super().__str__()
        if not self.raw_output:
            return base
        return f"{base}; raw:\n{self.raw_output.rstrip()}"


# =============================================================================
# Leaf decoders
# =============================================================================
class CertificateParseError(SigCheckError):
    def __init__(self, message: str, data_length: int = 0):
        super().__init__(message)
        self.data_length = data_length


class DateFormatError(SigCheckError):
    def __init__(self, message: str, raw_value: object = None):
        super().__init__(message)
        self.raw_value = raw_value
