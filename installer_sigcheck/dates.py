from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from .errors import DateFormatError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# /Date(1775779199000)/ as emitted by ConvertTo-Json. The slashes may still be
# JSON-escaped, both or neither.
_DATE_RE = re.compile(r"(\\?)/Date\((-?[0-9]+)\)\1/")


def decode_epoch_date(value: Any) -> Optional[datetime]:
    """Decode a PowerShell JSON date. null means "unset" and yields None."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise DateFormatError(f"unsupported date value: {value!r}", raw_value=value)
    if value == "null":
        return None

    text = value
    # raw JSON token, quotes included
    if len(text) >= 2 and text[0] == text[-1] == '"':
        text = text[1:-1]
    m = _DATE_RE.fullmatch(text)
    if m is None:
        raise DateFormatError(f"failed to parse PowerShell date: {value!r}", raw_value=value)
    ms = int(m.group(2))
    try:
        return EPOCH + timedelta(milliseconds=ms)
    except OverflowError as e:
        raise DateFormatError(f"date out of range: {value!r}", raw_value=value) from e


def encode_epoch_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    delta = value - EPOCH
    ms = (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000
    return f"/Date({ms})/"
