import logging
from contextlib import contextmanager
from datetime import UTC, datetime

import psycopg

from inkbook.errors import DatabaseError, ForbiddenError
from inkbook.models.users import Role, Session

logger = logging.getLogger(__name__)


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


@contextmanager
def db_errors(action: str):
    """Surface driver failures as DatabaseError; domain errors pass through."""
    try:
        yield
    except psycopg.Error as e:
        logger.exception("Database failure while trying to %s", action)
        raise DatabaseError(detail=f"Failed to {action}") from e


def require_role(session: Session, *roles: Role) -> None:
    if session.role not in roles:
        raise ForbiddenError(
            detail=f"Requires role: {', '.join(r.value for r in roles)}",
            role=session.role.value,
        )


def require_self_or_admin(session: Session, owner_id: str) -> None:
    if session.user_id != owner_id and not session.is_admin:
        raise ForbiddenError(detail="Not allowed to modify another user's resources")
