from datetime import datetime, timezone


def utc_now() -> datetime:
    """Timezone-aware current time; naive datetimes are rejected on insert."""
    return datetime.now(timezone.utc)
