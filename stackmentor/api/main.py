"""FastAPI application setup and configuration."""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from stackmentor import __version__
from stackmentor.api.middleware.error_handler import (
    generic_exception_handler,
    http_exception_handler,
    permission_exception_handler,
    stackmentor_exception_handler,
    validation_exception_handler,
)
from stackmentor.api.middleware.logging import LoggingMiddleware, setup_logging
from stackmentor.api.routes import auth, conversations, groups, health, users, websocket
from stackmentor.services.database import initialize_database, shutdown_database
from stackmentor.services.errors import StackMentorError


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Handles startup and shutdown events.
    """
    # Startup
    setup_logging(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_format=os.getenv("LOG_FORMAT", "json"),
    )

    # Initialize database
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        db_manager = initialize_database(database_url)
        await db_manager.initialize_async()

    yield

    # Shutdown
    await shutdown_database()


# Create FastAPI application
app = FastAPI(
    title="StackMentor",
    description="Mentorship platform connecting mentors and mentees through groups and live messaging",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# ========== CORS Configuration ==========

allowed_origins = os.getenv("CORS_ALLOWED_ORIGINS", "*").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
    allow_headers=["Authorization", "Content-Type"],
)

# ========== Custom Middleware ==========

app.add_middleware(LoggingMiddleware)

# ========== Exception Handlers ==========

app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(ValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(StackMentorError, stackmentor_exception_handler)
app.add_exception_handler(PermissionError, permission_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# ========== Route Registration ==========

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(groups.router)
app.include_router(conversations.router)
app.include_router(websocket.router)

# ========== Root Endpoint ==========


@app.get(
    "/",
    tags=["root"],
    summary="API root",
    description="Returns API information and available endpoints",
)
async def root() -> dict:
    """API root endpoint.

    Returns:
        API information and version
    """
    return {
        "service": "StackMentor",
        "version": __version__,
        "description": "Find mentors, join groups and chat in real time",
        "documentation": {
            "openapi": "/openapi.json",
            "swagger": "/docs",
            "redoc": "/redoc",
        },
        "endpoints": {
            "auth": "/api/auth",
            "users": "/api/users",
            "groups": "/api/groups",
            "conversations": "/api/conversations",
            "websocket": "/ws",
        },
        "health": {
            "health": "/actuator/health",
            "liveness": "/actuator/health/liveness",
            "readiness": "/actuator/health/readiness",
            "info": "/actuator/info",
        },
    }


# ========== Development Server ==========

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "stackmentor.api.main:app",
        host="0.0.0.0",
        port=8080,
        reload=True,
        log_level="info",
    )
