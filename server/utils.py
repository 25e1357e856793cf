from datetime import datetime, timezone
from typing import Optional

from config import CREATED_FORMAT, MODIFIED_FORMAT

PERMALINK_REPLACEMENTS = (
    (" ", "-"),
    ("_", "-"),
    ("/published/", ""),
    (".md", ""),
)


def permalinkFromPath(path: str) -> str:
    s = path
    for old, new in PERMALINK_REPLACEMENTS:
        s = s.replace(old, new)
    return s


def titleFromPermalink(permalink: str) -> str:
    return permalink.replace("-", " ")


def parseModified(modified: str) -> Optional[datetime]:
    """File-sync modification time (RFC 1123 with numeric zone, or ISO-8601)."""
    s = (modified or "").strip()
    if not s:
        return None
    try:
        return datetime.strptime(s, MODIFIED_FORMAT)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None


def dateString(t: datetime) -> str:
    return f"{t.year:04d}-{t.month:02d}-{t.day:02d}"


def epochFromDate(s: str) -> int:
    """YYYY-MM-DD at UTC midnight as a unix epoch. Raises ValueError."""
    t = datetime.strptime(s, CREATED_FORMAT).replace(tzinfo=timezone.utc)
    return int(t.timestamp())
