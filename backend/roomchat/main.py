"""RoomChat Backend Application.

Main entry point of the RoomChat service: named chat rooms with realtime
messaging over websockets.

Modules:
    - auth: registration, login and bearer token verification
    - rooms: room directory (create, list, resolve by slug)
    - chat: persisted message log and the realtime session gateway
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from roomchat.auth.router import router as auth_router
from roomchat.chat.router import router as chat_router
from roomchat.config import get_config
from roomchat.database import Database, get_database, has_database, set_database
from roomchat.errors import register_exception_handlers
from roomchat.rooms.router import router as rooms_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers. SQL echo and per-request access lines
# drown out the [WS] traces.
for _noisy in (
    "sqlalchemy.engine",
    "aiosqlite",
    "uvicorn.access",
    "httpx",
    "httpcore",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    owns_database = not has_database()
    if owns_database:
        set_database(Database.from_config(config))
    database = get_database()

    if config.database.create_tables:
        await database.create_all()

    logger.info(
        f"Server ready on http://{config.server.host}:{config.server.port} "
        f"(capacity enforced: {config.rooms.enforce_capacity})"
    )

    yield  # Application runs here

    # Shutdown
    if owns_database:
        await database.dispose()
        set_database(None)
    logger.info("Application shutdown complete")


app = FastAPI(
    title="RoomChat API",
    description="Named chat rooms with realtime messaging",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().server.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "%s %s -> %d (%.1f ms)",
        request.method, request.url.path, response.status_code, elapsed_ms,
    )
    return response


register_exception_handlers(app)

# Register all routers
app.include_router(auth_router)
app.include_router(rooms_router)
app.include_router(chat_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(
        "roomchat.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
    )
