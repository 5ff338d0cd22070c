from __future__ import annotations

import contextlib
import logging
import os
import posixpath
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional, Tuple, Union
from urllib.parse import urlsplit

import requests

from .errors import CleanupError, DownloadError

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT: Tuple[float, float] = (10.0, 60.0)
CHUNK_SIZE = 1024 * 1024


def _suffix_for(url: str) -> str:
    # Authenticode picks the subject interface package by extension (.msi, .exe, ...)
    name = posixpath.basename(urlsplit(url).path)
    _, ext = posixpath.splitext(name)
    if ext and len(ext) <= 8 and ext[1:].isalnum():
        return ext
    return ""


def remove_temp_file(path: Union[str, Path]) -> Optional[CleanupError]:
    """Delete a temp file. Failure is returned, not raised."""
    try:
        os.remove(path)
    except FileNotFoundError:
        return None
    except OSError as e:
        log.warning("Failed to remove temporary file %s: %s", path, e)
        return CleanupError(f"failed to remove temporary file {path}: {e}", path=str(path))
    log.debug("Removed temporary file %s", path)
    return None


def download_to_temp(
    url: str,
    timeout: Union[float, Tuple[float, float]] = DEFAULT_TIMEOUT,
    chunk_size: int = CHUNK_SIZE,
    session: Any = None,
) -> Path:
    """Stream `url` into a fresh temp file and return its path."""
    http = session or requests
    try:
        out = tempfile.NamedTemporaryFile(
            mode="wb", prefix="download-", suffix=_suffix_for(url), delete=False
        )
    except OSError as e:
        raise DownloadError(f"failed to create temp file: {e}", url=url) from e
    path = Path(out.name)
    try:
        with out:
            try:
                resp = http.get(url, stream=True, timeout=timeout)
            except requests.RequestException as e:
                raise DownloadError(f"failed to download file: {e}", url=url) from e
            with contextlib.closing(resp):
                if resp.status_code != 200:
                    raise DownloadError(
                        f"bad status: {resp.status_code} {resp.reason or ''}".rstrip(),
                        url=url,
                        status_code=resp.status_code,
                    )
                try:
                    for chunk in resp.iter_content(chunk_size=chunk_size):
                        if chunk:
                            out.write(chunk)
                except requests.RequestException as e:
                    raise DownloadError(f"failed to download file: {e}", url=url) from e
    except OSError as e:
        # write, flush or close of the temp file; requests errors are converted above
        remove_temp_file(path)
        raise DownloadError(f"failed to save file: {e}", url=url) from e
    except BaseException:
        remove_temp_file(path)
        raise

    log.info("File downloaded to: %s", path)
    return path


@dataclass
class Download:
    url: str
    path: Path
    cleanup_error: Optional[CleanupError] = None


@contextlib.contextmanager
def temporary_download(
    url: str,
    timeout: Union[float, Tuple[float, float]] = DEFAULT_TIMEOUT,
    keep: bool = False,
    session: Any = None,
) -> Iterator[Download]:
    """
    Download to a temp file for the duration of the block.

    The file is always removed on exit (unless `keep`); a removal failure is
    stored on `Download.cleanup_error` and never replaces an exception raised
    inside the block.
    """
    download = Download(url=url, path=download_to_temp(url, timeout=timeout, session=session))
    try:
        yield download
    finally:
        if keep:
            log.info("Keeping downloaded file: %s", download.path)
        else:
            download.cleanup_error = remove_temp_file(download.path)
