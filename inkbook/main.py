import logging

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
)
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from inkbook.config import get_settings
from inkbook.controllers.artists import router as artists_router
from inkbook.controllers.bookings import router as bookings_router
from inkbook.controllers.credits import router as credits_router
from inkbook.controllers.health import router as health_router
from inkbook.controllers.notifications import router as notifications_router
from inkbook.controllers.users import router as users_router
from inkbook.controllers.ws_feed import router as ws_feed_router
from inkbook.errors import register_exception_handlers
from inkbook.lifespan import cleanup_resources, setup_resources
from inkbook.middleware import HTTPLogMiddleware

settings = get_settings()

app = FastAPI(title="Inkbook API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins,
    allow_origin_regex=settings.cors.origins_regex or None,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.debug.request:
    logging.getLogger("inkbook.http").setLevel(logging.DEBUG)
    app.add_middleware(HTTPLogMiddleware)

if settings.debug.websocket:
    logging.getLogger("inkbook.ws").setLevel(logging.DEBUG)

register_exception_handlers(app)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    resources = await setup_resources()
    try:
        yield
    finally:
        await cleanup_resources(resources)


app.router.lifespan_context = lifespan

app.include_router(health_router)
app.include_router(users_router)
app.include_router(artists_router)
app.include_router(bookings_router)
app.include_router(notifications_router)
app.include_router(credits_router)
app.include_router(ws_feed_router)
