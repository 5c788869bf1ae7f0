"""FastAPI application main entry point."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .routes import auth, chat, conversations, settings
from ..services.config import get_config
from ..services.database import init_database

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Libraria API",
    description="Media library tracker with a tool-using AI assistant",
    version="0.1.0",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_config().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Startup event: Initialize database
@app.on_event("startup")
async def startup_event():
    """Initialize database schema on startup."""
    logger.info("Running startup: initializing database...")
    try:
        init_database()
        logger.info("Startup complete: database ready")
    except Exception as e:
        logger.exception(f"Startup failed: {e}")
        logger.error("App starting without an initialized database")


# Error handlers
@app.exception_handler(500)
async def internal_error_handler(request: Request, exc: Exception):
    """Handle 500 errors."""
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)},
    )


# Mount routers
app.include_router(auth.router, tags=["auth"])
app.include_router(chat.router)
app.include_router(conversations.router)
app.include_router(settings.router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


__all__ = ["app"]
