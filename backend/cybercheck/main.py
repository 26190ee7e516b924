"""
CyberCheck Attendance API
Application factory and entry point
"""
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from cybercheck.api.v1 import attendance, auth, checkin, lessons
from cybercheck.config import Settings, get_settings
from cybercheck.identity import SessionStore


def setup_logging(settings: Settings):
    """Configure logging"""
    logger.remove()  # Remove default handler

    # Console output
    logger.add(
        sys.stderr,
        level=settings.LOG_LEVEL,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
    )

    # File output with rotation
    if settings.LOG_FILE_PATH:
        logger.add(
            settings.LOG_FILE_PATH,
            rotation="100 MB",
            retention="30 days",
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
        )


def create_app(settings: Optional[Settings] = None, sessions: Optional[SessionStore] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} starting")
        yield
        purged = app.state.sessions.purge_expired()
        logger.info(f"Shutting down ({purged} expired sessions purged)")

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, debug=settings.DEBUG, lifespan=lifespan)
    app.state.sessions = sessions or SessionStore(ttl_seconds=settings.SESSION_TTL_SECONDS)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router, prefix=settings.API_PREFIX, tags=["auth"])
    app.include_router(checkin.router, prefix=settings.API_PREFIX, tags=["checkin"])
    app.include_router(lessons.router, prefix=settings.API_PREFIX, tags=["lessons"])
    app.include_router(attendance.router, prefix=settings.API_PREFIX, tags=["attendance"])

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": settings.APP_VERSION}

    return app


def main():
    """Application entry point"""
    import uvicorn

    settings = get_settings()
    setup_logging(settings)

    logger.info("=" * 70)
    logger.info(f"{settings.APP_NAME} - listening on {settings.HOST}:{settings.PORT}")
    logger.info(f"GPS extended signals: {'on' if settings.GPS_EXTENDED_SIGNALS else 'off'}")
    logger.info("=" * 70)

    uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
