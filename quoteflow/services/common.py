import uuid
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError

from quoteflow.errors import NotFound


def parse_uuid(value, entity: str) -> uuid.UUID:
    """Coerce an identifier to UUID; malformed ids can never exist, so they are NotFound."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        raise NotFound(f"{entity} not found", details={"id": str(value)})


def iso_or_none(value) -> Optional[str]:
    return value.isoformat() if value else None


def is_unique_violation(exc: IntegrityError, constraint: str, columns: Sequence[str]) -> bool:
    """True when ``exc`` was raised by the named unique constraint.

    PostgreSQL reports the constraint name; SQLite only lists the
    table-qualified columns, so both are checked.
    """
    message = f"{exc.orig} {exc.orig.__cause__ or ''}".lower()
    if constraint.lower() in message:
        return True
    return "unique constraint failed" in message and all(
        column.lower() in message for column in columns
    )
