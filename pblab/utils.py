import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from urllib.parse import urlparse


def new_id() -> str:
    """Opaque primary key for every table."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_url(value: str) -> bool:
    """
    Syntactic check only: an http(s) scheme and a host. Reachability is not tested.
    """
    try:
        parsed = urlparse((value or "").strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def dedupe(values: Iterable[str], exclude: Optional[str] = None) -> List[str]:
    """Order-preserving de-duplication, optionally dropping one value."""
    seen = set()
    result = []
    for value in values:
        if value == exclude or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result
