"""
Lecture Q&A Live Quiz API - Main Application
FILE: main.py
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import time

from lecture_qa.core.config import settings
from lecture_qa.db.mongodb import connect_to_mongo, close_mongo_connection, ping_mongo
from lecture_qa.api.live_quiz import (
    router as live_quiz_router,
    get_memory_backend,
    get_session_store,
)

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    logger.info(f"🚀 Starting Lecture Q&A Live Quiz API ({settings.storage_backend} storage)...")

    if settings.storage_backend == "mongo":
        try:
            await connect_to_mongo()
            logger.info("✓ MongoDB connected")

            await get_session_store().ensure_indexes()
            logger.info("✓ Live session indexes ensured")

        except Exception as e:
            logger.error(f"❌ Startup error: {e}")
            raise
    elif settings.lecture_seed_file:
        try:
            _, catalog = get_memory_backend()
            catalog.load_seed_file(settings.lecture_seed_file)
        except Exception as e:
            logger.error(f"❌ Failed to load lectures from {settings.lecture_seed_file}: {e}")
            raise
    else:
        logger.warning("⚠️ In-memory storage without lecture_seed_file: no lectures available")

    yield

    # Shutdown
    logger.info("🛑 Shutting down Lecture Q&A Live Quiz API...")

    if settings.storage_backend == "mongo":
        try:
            await close_mongo_connection()
            logger.info("✓ MongoDB disconnected")
        except Exception as e:
            logger.error(f"❌ Shutdown error: {e}")


app = FastAPI(
    title="Lecture Q&A Live Quiz API",
    description="""
    Live quiz sessions over lecture questions.

    ## Features
    - **Hosting**: create a session for a lecture, start it, advance questions, end it
    - **Joining**: participants join with a 6-character access code
    - **Answering**: free-text answers scored immediately (trimmed, case-insensitive)
    - **Results**: per-participant accuracy, average time and ranking

    ## Endpoints
    - **Live sessions**: `/api/live/*`
    - **Health**: `/health` - Overall service health check
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time to response headers"""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000  # Convert to ms
    response.headers["X-Process-Time-Ms"] = str(round(process_time, 2))
    return response


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests"""
    logger.info(f"📨 {request.method} {request.url.path}")
    response = await call_next(request)
    logger.info(
        f"📤 {request.method} {request.url.path} - "
        f"Status: {response.status_code}"
    )
    return response


# ==================== INCLUDE ROUTERS ====================

app.include_router(live_quiz_router, tags=["Live Quiz"])


# ==================== ROOT ENDPOINTS ====================

@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information"""
    return {
        "message": "Lecture Q&A Live Quiz API",
        "version": app.version,
        "status": "operational",
        "endpoints": {
            "docs": "/docs",
            "redoc": "/redoc",
            "sessions": "/api/live/sessions",
            "join": "/api/live/sessions/join",
            "health": "/health"
        }
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check for the API and its storage

    Returns:
        Health status for all components (503 when storage is unreachable)
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "components": {}
    }

    if settings.storage_backend == "memory":
        health_status["components"]["storage"] = {
            "status": "healthy",
            "message": "In-memory store"
        }
    elif await ping_mongo():
        health_status["components"]["mongodb"] = {
            "status": "healthy",
            "message": "Connected and responsive"
        }
        logger.debug("✓ MongoDB health check passed")
    else:
        health_status["status"] = "degraded"
        health_status["components"]["mongodb"] = {
            "status": "unhealthy",
            "message": "Connection failed"
        }
        logger.error("❌ MongoDB health check failed")

    health_status["api"] = {
        "title": app.title,
        "version": app.version,
        "status": "operational"
    }

    status_code = 200 if health_status["status"] == "healthy" else 503

    return JSONResponse(
        status_code=status_code,
        content=health_status
    )


# ==================== RUN APPLICATION ====================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "lecture_qa.main:app",
        host="0.0.0.0",
        port=8080,
        reload=True,
        log_level="info"
    )
