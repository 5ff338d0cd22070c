from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigurationError
from .inspector import DEFAULT_POWERSHELL
from .policy import ExpectedPublisher

# =============================================================================
# Defaults
# =============================================================================
DEFAULT_URL = "https://download.emeditor.info/emed64_25.4.3.msi"
DEFAULT_DOWNLOAD_TIMEOUT = 60.0

# setting name -> (environment variable, type)
_ENV_KEYS: Dict[str, tuple] = {
    "url": ("SIGCHECK_URL", str),
    "expected_cn": ("SIGCHECK_EXPECTED_CN", str),
    "expected_org": ("SIGCHECK_EXPECTED_ORG", str),
    "expected_state": ("SIGCHECK_EXPECTED_STATE", str),
    "expected_country": ("SIGCHECK_EXPECTED_COUNTRY", str),
    "powershell": ("SIGCHECK_POWERSHELL", str),
    "inspect_timeout": ("SIGCHECK_INSPECT_TIMEOUT", float),
    "download_timeout": ("SIGCHECK_DOWNLOAD_TIMEOUT", float),
}


@dataclass(frozen=True)
class Settings:
    url: str = DEFAULT_URL
    # inspect a local file instead of downloading one
    file: Optional[str] = None
    publisher: ExpectedPublisher = field(default_factory=ExpectedPublisher)
    powershell: str = DEFAULT_POWERSHELL
    # None blocks until the inspector exits
    inspect_timeout: Optional[float] = None
    download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT
    output_encoding: str = "utf-8-sig"
    keep_file: bool = False


def _coerce(name: str, value: Any, kind: type) -> Any:
    if value is None:
        return None
    if kind is float:
        if isinstance(value, bool):
            raise ConfigurationError(f"{name}: expected a number, got {value!r}")
        try:
            number = float(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{name}: expected a number, got {value!r}") from e
        if number <= 0:
            raise ConfigurationError(f"{name}: must be positive, got {value!r}")
        return number
    if not isinstance(value, str):
        raise ConfigurationError(f"{name}: expected a string, got {value!r}")
    return value


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read a JSON config file. Keys use the same names as the CLI overrides."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"cannot read config file {path}: {e}") from e
    except ValueError as e:
        raise ConfigurationError(f"invalid JSON in config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {path} must contain a JSON object")

    unknown = sorted(set(data) - set(_ENV_KEYS) - {"file", "keep_file"})
    if unknown:
        raise ConfigurationError(f"unknown config keys in {path}: {', '.join(unknown)}")
    out: Dict[str, Any] = {}
    for key, value in data.items():
        if value is None:
            continue
        if key == "keep_file":
            if not isinstance(value, bool):
                raise ConfigurationError(f"{key}: expected true or false, got {value!r}")
            out[key] = value
        elif key == "file":
            out[key] = _coerce(key, value, str)
        else:
            out[key] = _coerce(key, value, _ENV_KEYS[key][1])
    return out


def load_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, (var, kind) in _ENV_KEYS.items():
        raw = environ.get(var)
        if raw is None or raw == "":
            continue
        out[key] = _coerce(var, raw, kind)
    return out


def build_settings(
    overrides: Optional[Mapping[str, Any]] = None,
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """
    Resolve settings: defaults < config file < environment < explicit overrides.
    Overrides with a value of None are ignored.
    """
    merged: Dict[str, Any] = {}
    if config_path is not None:
        merged.update(load_config_file(config_path))
    merged.update(load_env(os.environ if environ is None else environ))
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value

    base = Settings()
    publisher = replace(
        base.publisher,
        **{
            attr: merged[key]
            for key, attr in (
                ("expected_cn", "common_name"),
                ("expected_org", "organization"),
                ("expected_state", "state"),
                ("expected_country", "country"),
            )
            if key in merged
        },
    )
    return replace(
        base,
        url=merged.get("url", base.url),
        file=merged.get("file", base.file),
        publisher=publisher,
        powershell=merged.get("powershell", base.powershell),
        inspect_timeout=merged.get("inspect_timeout", base.inspect_timeout),
        download_timeout=merged.get("download_timeout", base.download_timeout),
        keep_file=bool(merged.get("keep_file", base.keep_file)),
    )
