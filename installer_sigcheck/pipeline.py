from __future__ import annotations

import logging
import subprocess
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .config import Settings
from .download import Download, temporary_download
from .errors import SigCheckError
from .inspector import DEFAULT_POWERSHELL, inspect_signature
from .models import ProgramOutput, SignatureRecord, ValidationResult
from .policy import DEFAULT_PUBLISHER, ExpectedPublisher, evaluate_signature

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Verification:
    record: SignatureRecord
    result: ValidationResult


def verify_file(
    path: str,
    publisher: ExpectedPublisher = DEFAULT_PUBLISHER,
    executable: str = DEFAULT_POWERSHELL,
    timeout: Optional[float] = None,
    encoding: str = "utf-8-sig",
    runner: Callable[..., Any] = subprocess.run,
) -> Verification:
    record = inspect_signature(path, executable=executable, timeout=timeout, encoding=encoding, runner=runner)
    result = evaluate_signature(record, publisher)
    if result.valid:
        log.info("Signature of %s is valid", path)
    else:
        log.info("Signature of %s rejected: %s", path, result.reason)
    return Verification(record=record, result=result)


def format_error(err: BaseException, with_traceback: bool = False) -> str:
    if with_traceback:
        return "".join(traceback.format_exception(type(err), err, err.__traceback__)).rstrip()
    return f"{type(err).__name__}: {err}"


def _verify(settings: Settings, path: str) -> Verification:
    return verify_file(
        path,
        publisher=settings.publisher,
        executable=settings.powershell,
        timeout=settings.inspect_timeout,
        encoding=settings.output_encoding,
    )


def run_check(settings: Settings, with_traceback: bool = False, session: Any = None) -> ProgramOutput:
    """
    Download (or take the local file), inspect, evaluate and clean up.

    Only SigCheckError is folded into the envelope; anything else is a bug
    and propagates. A cleanup failure is reported next to the verdict or the
    error, never instead of it.
    """
    output = ProgramOutput()
    download: Optional[Download] = None
    verification: Optional[Verification] = None
    try:
        if settings.file:
            verification = _verify(settings, settings.file)
        else:
            with temporary_download(
                settings.url,
                timeout=settings.download_timeout,
                keep=settings.keep_file,
                session=session,
            ) as download:
                verification = _verify(settings, str(download.path))
    except SigCheckError as e:
        log.error("Check failed: %s", e)
        output.error = format_error(e, with_traceback)

    if download is not None and download.cleanup_error is not None:
        output.cleanup_error = format_error(download.cleanup_error)
    if verification is not None:
        output.result = verification.result
        output.signature = verification.record.summary()
    return output
