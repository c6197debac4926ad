import re
from datetime import datetime, timezone

_ws_collapse = re.compile(r"\s+")


def utcnow() -> datetime:
    """Timezone-aware current time used for every stored timestamp."""
    return datetime.now(timezone.utc)


def normalize_username(username: str) -> str:
    """Trim, collapse inner whitespace and lowercase a username."""
    name = _ws_collapse.sub(" ", (username or "").strip())
    return name.casefold()


def clean_text(value):
    """Return stripped text, or None for missing/blank input."""
    if value is None:
        return None
    value = value.strip()
    return value or None
