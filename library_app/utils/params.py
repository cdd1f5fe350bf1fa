import re
from datetime import datetime, timezone

from library_app.errors import InvalidInput

_INT_RE = re.compile(r"-?[0-9]+")


def require_int(data: dict, key: str) -> int:
    if data.get(key) is None:
        raise InvalidInput(f"{key} is required", entity=key)
    return to_int(data[key], key)


def optional_int(data: dict, key: str):
    if data.get(key) is None:
        return None
    return to_int(data[key], key)


def to_int(raw, key: str) -> int:
    """JSON ints or digit-only strings (query args). Floats, bools and anything else are rejected, never truncated."""
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and _INT_RE.fullmatch(raw.strip()):
        return int(raw)
    raise InvalidInput(f"{key} must be an integer", entity=key, entity_id=raw)


def parse_as_of(raw):
    """?as_of=2024-05-01 or a full ISO timestamp; naive UTC. None when absent."""
    if not raw:
        return None
    try:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise InvalidInput("as_of must be an ISO-8601 date or datetime", entity="as_of", entity_id=raw)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
