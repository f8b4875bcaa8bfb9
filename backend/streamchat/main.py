"""
StreamChat - Main FastAPI Application
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import settings
from .api import auth_router, chat_router, history_router
from .core.logging_config import setup_logging
from .middleware import RequestLoggingMiddleware
from .storage import init_db

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    setup_logging(settings)
    init_db()

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Database: {settings.database_url.split('://')[0]}")
    logger.info(f"LLM: {'configured' if settings.llm_api_key else 'stub responses'}")
    logger.info(f"Log level: {settings.log_level.upper()}")
    yield
    logger.info(f"Shutting down {settings.app_name}")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Chat with an LLM over streamed responses, with generated chat titles",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging (after CORS)
if settings.log_api_requests:
    app.add_middleware(RequestLoggingMiddleware)

app.include_router(history_router)
app.include_router(auth_router)
app.include_router(chat_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "app": settings.app_name,
        "status": "healthy",
        "version": settings.app_version,
        "llm": "configured" if settings.llm_api_key else "stub",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "streamchat.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
