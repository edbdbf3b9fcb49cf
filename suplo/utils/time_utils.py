from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

SALESFORCE_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
SALESFORCE_DATE_FORMAT = "%d/%m/%Y"
DEFAULT_TZ = "Asia/Jakarta"


def resolve_tz(name: str | None):
    """Return a tzinfo for an IANA name; UTC when the zone is unknown."""
    if not name:
        name = DEFAULT_TZ
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        return timezone.utc


def format_epoch(epoch_seconds: int | float | str, tz_name: str | None = None) -> str:
    """Format a Slack datetimepicker value (epoch seconds) for the time-sheet API."""
    dt = datetime.fromtimestamp(int(epoch_seconds), tz=resolve_tz(tz_name))
    return dt.strftime(SALESFORCE_DATETIME_FORMAT)


def format_day(iso_day: str | date) -> str:
    """Format a Slack datepicker value (YYYY-MM-DD) as DD/MM/YYYY."""
    d = iso_day if isinstance(iso_day, date) else date.fromisoformat(str(iso_day))
    return d.strftime(SALESFORCE_DATE_FORMAT)


def slack_date_token(epoch_seconds: int | str) -> str:
    """Slack mrkdwn date token rendered in each reader's own timezone."""
    return f"<!date^{epoch_seconds}^{{date}} at {{time}}|{epoch_seconds}>"
