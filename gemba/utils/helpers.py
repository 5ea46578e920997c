"""Shared utility functions.

parse_date_input: strict, raises ValidationError on bad input
date_bounds:      inclusive [from, to] datetimes for report/list filters
as_utc:           normalise naive datetimes read back from SQLite
atomic:           scoped transaction with guaranteed rollback
"""
import logging
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta, timezone

from gemba.core.exceptions import ValidationError
from gemba.models import db

logger = logging.getLogger(__name__)


def parse_date_input(value, field="date"):
    """Parse a date or datetime string, raising ValidationError on bad input.

    Returns a ``date`` for date-only input, an aware ``datetime`` (UTC when
    no offset is given) for datetime input, or None for empty input.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass
    try:
        return as_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        return datetime.strptime(raw, "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValidationError(
            f"{field} must be an ISO date (YYYY-MM-DD) or datetime",
            details={field: "invalid date"},
        ) from exc


def date_bounds(from_date=None, to_date=None):
    """Resolve optional from/to filters into inclusive datetime bounds.

    A date-only ``to_date`` covers the whole day, so the upper bound is the
    last microsecond of that day. Returns ``(lower, upper)``; either may be None.
    """
    lower = parse_date_input(from_date, "from_date")
    upper = parse_date_input(to_date, "to_date")

    if isinstance(lower, date) and not isinstance(lower, datetime):
        lower = datetime.combine(lower, time.min, tzinfo=timezone.utc)
    if isinstance(upper, date) and not isinstance(upper, datetime):
        upper = datetime.combine(upper, time.min, tzinfo=timezone.utc) + timedelta(days=1, microseconds=-1)

    if lower and upper and lower > upper:
        raise ValidationError(
            "from_date must not be after to_date",
            details={"from_date": "after to_date"},
        )
    return lower, upper


def as_utc(value):
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@contextmanager
def atomic():
    """Run a block of writes as one transaction.

    Commits when the block exits normally. Any exception rolls the whole
    session back and is re-raised, so a failure between two statements
    leaves neither applied.

    Usage::

        with atomic():
            issue.level = 3
            db.session.add(IssueEscalation(...))
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.debug("Transaction rolled back", exc_info=True)
        raise
