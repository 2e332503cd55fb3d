from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import logging

from proctorhub.core.config import settings
from proctorhub.core.database import create_db_and_tables
from proctorhub.core.cache import cache
from proctorhub.core.exceptions import ProctoringError
from proctorhub.api.v1.api import api_router
from proctorhub.middleware.performance import PerformanceMiddleware
from proctorhub.middleware.timezone import TimezoneMiddleware


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Proctoring API",
    description="Proctored assessment sessions: signal ingestion, risk scoring and faculty review",
    version="1.0.0",
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None
)


app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(TimezoneMiddleware)

app.add_middleware(
    PerformanceMiddleware,
    slow_request_threshold=settings.slow_request_threshold
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ProctoringError)
async def proctoring_error_handler(request: Request, exc: ProctoringError):
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.error_code} - {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later.",
            "request_id": getattr(request.state, 'request_id', 'unknown')
        }
    )


@app.on_event("startup")
async def startup_event():
    logger.info("Starting Proctoring API...")
    create_db_and_tables()
    logger.info("Database initialized")

    if await cache.ahealth_check():
        logger.info("Cache connection established")
    else:
        logger.warning("Cache connection failed - running without cache")

    logger.info("Proctoring API startup completed")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Proctoring API...")
    await cache.aclose()
    logger.info("Proctoring API shutdown completed")


app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def read_root():
    return {
        "message": "Proctoring API",
        "version": "1.0.0",
    }
