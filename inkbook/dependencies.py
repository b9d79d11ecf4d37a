"""Dependency injection for FastAPI endpoints.

This module provides FastAPI dependencies for the caller's session and for
shared resources like Redis and the EventBus, instead of reaching into
global state from controllers.

Usage in controllers:
    from inkbook.dependencies import CurrentSession

    @router.get("/bookings/{booking_id}")
    async def read_booking(booking_id: str, session: CurrentSession):
        return await bookings.get_booking(session, booking_id)
"""

from typing import Annotated

import redis.asyncio as redis
from fastapi import Depends, Header

from inkbook import state
from inkbook.bus import EventBus
from inkbook.errors import ServiceUnavailableError, UnauthorizedError
from inkbook.models.users import Role, Session


def get_session(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_email: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Session:
    """Build the caller's Session from the auth provider's headers.

    Raises:
        UnauthorizedError: If the user id is missing or the role is unknown.
    """
    if not x_user_id:
        raise UnauthorizedError(detail="Missing X-User-Id header")
    try:
        role = Role((x_user_role or Role.USER.value).lower())
    except ValueError:
        raise UnauthorizedError(detail="Unknown role", role=x_user_role) from None
    return Session(user_id=x_user_id, email=x_user_email or "", role=role)


def get_redis() -> redis.Redis:
    """Get the Redis client.

    Raises:
        ServiceUnavailableError: If Redis is not connected.
    """
    if state.redis_client is None:
        raise ServiceUnavailableError(detail="Redis not connected")
    return state.redis_client


def get_event_bus() -> EventBus:
    """Get the EventBus instance.

    Raises:
        ServiceUnavailableError: If EventBus is not initialized.
    """
    if state.event_bus is None:
        raise ServiceUnavailableError(detail="Event bus not initialized")
    return state.event_bus


def get_optional_event_bus() -> EventBus | None:
    return state.event_bus


CurrentSession = Annotated[Session, Depends(get_session)]
Redis = Annotated[redis.Redis, Depends(get_redis)]
Bus = Annotated[EventBus, Depends(get_event_bus)]
OptionalBus = Annotated[EventBus | None, Depends(get_optional_event_bus)]
