"""FastAPI application setup and configuration."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from seat_reservation.config import settings
from seat_reservation.api import api_router
from seat_reservation.database import init_database, close_database
from seat_reservation.middleware import ErrorHandlerMiddleware, LoggingMiddleware
from seat_reservation.utils.logging_config import setup_logging

setup_logging(
    log_level="DEBUG" if settings.debug else settings.log_level,
    log_file="logs/seat_reservation.log" if settings.environment == "production" else None,
    enable_json_logging=settings.enable_json_logging or settings.environment == "production",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting seat reservation service")
    await init_database()
    yield
    logger.info("Shutting down seat reservation service")
    await close_database()


app = FastAPI(
    title="Seat Reservation API",
    description="""
    ## Seat Reservation

    Allocates numbered seats of time-boxed events to users.

    * **Reservations**: managers reserve seats for users; each seat takes one
      unit of the user's allowance for the event
    * **Blocking**: managers hold seats without any allowance effect
    * **Allowances**: managers set how many seats each user may reserve
    * **Self-service**: users reserve and release their own seats inside the
      booking window

    A seat is held at most once per event. Conflicting requests receive
    `SEAT_UNAVAILABLE` listing the seats that are already held.

    ### Authentication

    Send `Authorization: Bearer <access_token>` with every request.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "manager reservations", "description": "Reserve, block, release and export seats of managed events"},
        {"name": "reservations", "description": "Self-service reservations"},
        {"name": "allowances", "description": "Per-user reservation allowances"},
        {"name": "health", "description": "Service health"},
    ],
    lifespan=lifespan,
)

# The last middleware added runs outermost; LoggingMiddleware must wrap
# ErrorHandlerMiddleware so error logs carry the request id.
app.add_middleware(
    ErrorHandlerMiddleware,
    debug=settings.debug
)

if settings.enable_request_logging:
    app.add_middleware(LoggingMiddleware)

if settings.debug:
    cors_origins = ["*"]
    cors_allow_credentials = False  # Cannot use credentials with wildcard origins
else:
    cors_origins = settings.cors_origins
    cors_allow_credentials = settings.cors_allow_credentials

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=settings.cors_expose_headers
)

app.include_router(api_router)


@app.get("/", tags=["health"])
async def root():
    return {
        "message": "Seat Reservation API",
        "version": "1.0.0",
        "docs_url": "/docs",
        "status": "operational"
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Basic health check for uptime monitoring."""
    return {"status": "healthy", "service": "seat-reservation"}
