# swaphub/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from swaphub.api import meeting, notification, review, session, work
from swaphub.config import settings
from swaphub.database import Base, engine
from swaphub.exceptions import (
    SwapHubError,
    database_exception_handler,
    generic_exception_handler,
    swaphub_exception_handler,
)
from swaphub.services.cache_service import CacheService

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)

# Initialize FastAPI app
app = FastAPI(title="SwapHub API")
app.state.cache = CacheService(default_ttl=settings.CACHE_TTL_SECONDS)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://0.0.0.0:8000",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error rendering
app.add_exception_handler(SwapHubError, swaphub_exception_handler)
app.add_exception_handler(SQLAlchemyError, database_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# API routers
app.include_router(session.router)       # /sessions/*
app.include_router(review.router)        # /reviews/*
app.include_router(meeting.router)       # /meetings/*
app.include_router(notification.router)  # /notifications/*
app.include_router(work.router)          # /works/*
app.include_router(work.progress_router) # /session-progress/*

logger.info("SwapHub API started (env=%s)", settings.APP_ENV)


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "message": "SwapHub API is running",
        "version": "1.0.0",
    }
