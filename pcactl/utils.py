# utils.py
# Common helpers used across the package.
# All timestamps are UTC and formatted as RFC3339 (or compact when used in ids).

import itertools
import threading
import uuid
from datetime import datetime, timezone
from dateutil import parser as dtp

_counter = itertools.count(1)
_counter_lock = threading.Lock()


def parse_rfc3339(s: str):
    """Parse RFC3339/ISO8601 into aware UTC datetime."""
    return dtp.isoparse(s).astimezone(timezone.utc)


def to_rfc3339(value) -> str:
    """Format a datetime (or ISO string) as RFC3339 UTC, e.g. 2025-10-04T12:34:56Z.
    Returns "" for unset values."""
    if not value:
        return ""
    if isinstance(value, str):
        value = parse_rfc3339(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def ts_compact_utc() -> str:
    """Return compact UTC timestamp for ids, e.g. 20251004T123456Z."""
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def idempotency_token() -> str:
    """Fresh token for a single logical request (ACM PCA allows up to 36 chars)."""
    return uuid.uuid4().hex


def prefixed_unique_id(prefix: str) -> str:
    """prefix + compact timestamp + process-wide counter, e.g. arn-20251004T123456Z00000001."""
    with _counter_lock:
        n = next(_counter)
    return f"{prefix}{ts_compact_utc()}{n:08d}"


def to_text(value) -> str:
    """Certificates come back as str; blobs as bytes. Normalize to str."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return str(value)


def to_blob(value) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return str(value).encode("utf-8")
