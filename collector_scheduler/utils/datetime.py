import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt_value: datetime | None) -> datetime | None:
    """
    Ensure a datetime is timezone-aware UTC.

    MongoDB and older Redis payloads may hand back naive datetimes; those are
    interpreted as UTC so they compare cleanly with utc_now().

    Args:
        dt_value: datetime to normalize

    Returns:
        Aware UTC datetime or None if input is None
    """
    if dt_value is None:
        return None

    if isinstance(dt_value, datetime):
        if dt_value.tzinfo is None:
            return dt_value.replace(tzinfo=timezone.utc)
        return dt_value.astimezone(timezone.utc)

    logger.warning(f"Unexpected datetime type: {type(dt_value)}")
    return None
