from __future__ import annotations

import re
from datetime import datetime, timezone

_IPV4_RE = re.compile(r"^([0-9]{1,3}\.){3}[0-9]{1,3}$")


def normalize_fingerprint(value: str) -> str:
    return value.replace(":", "").strip().upper()


def dt_to_utc_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def is_ipv4_literal(value: str) -> bool:
    # Dotted-quad shape only; octet ranges are checked when the SAN is built.
    return bool(_IPV4_RE.match(value))
