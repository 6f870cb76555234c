"""Shared parsing helpers used by services and blueprints.

parse_datetime_input:  raises ValueError on bad input (deadline fields)
parse_lead_days:       raises ValueError unless a non-negative integer
db_commit_or_raise:    commit, or roll back and raise StorageError
"""
import logging
from datetime import date, datetime, time, timezone

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from gradtrack.core.exceptions import StorageError
from gradtrack.models import db

logger = logging.getLogger(__name__)


def parse_datetime_input(value):
    """Parse a date/datetime value into a naive UTC datetime.

    Accepts datetime and date objects, ISO-8601 strings (with or without a
    time part, ``Z`` suffix allowed) and DD.MM.YYYY. A bare date maps to
    midnight. Aware values are converted to UTC and stored naive.

    Returns None for empty input; raises ValueError on anything unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            try:
                parsed = datetime.strptime(raw, "%d.%m.%Y")
            except ValueError as exc:
                raise ValueError(
                    "Invalid date format. Use ISO-8601 (YYYY-MM-DD[THH:MM:SS]) or DD.MM.YYYY."
                ) from exc
    else:
        raise ValueError(f"Unsupported date value: {value!r}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_lead_days(value):
    """Validate an ``alert_lead_days``-style value.

    Returns None for None, otherwise the value as int. Booleans, floats with
    a fractional part, non-numeric strings and negatives raise ValueError.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("must be a non-negative integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError("must be a non-negative integer")
        value = int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.lstrip("-").isdigit():
            raise ValueError("must be a non-negative integer")
        value = int(stripped)
    if not isinstance(value, int):
        raise ValueError("must be a non-negative integer")
    if value < 0:
        raise ValueError("must be a non-negative integer")
    return value


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_raise(action="write"):
    """Commit the current SQLAlchemy session or raise StorageError.

    Every mutating service call ends here, so a write either fully lands or
    the session is rolled back and the failure surfaces to the caller.

    IntegrityError   → rollback, StorageError (constraint violation)
    OperationalError → rollback, StorageError (connection / lock issues)
    Other            → rollback, StorageError (unexpected)
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on %s commit: %s", action, exc.orig)
        raise StorageError(f"Constraint violation during {action}") from exc
    except OperationalError as exc:
        db.session.rollback()
        logger.exception("Database operational error on %s commit", action)
        raise StorageError(f"Database unavailable during {action}") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Unexpected database error on %s commit", action)
        raise StorageError(f"Database error during {action}") from exc
