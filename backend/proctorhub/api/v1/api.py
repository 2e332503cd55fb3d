from fastapi import APIRouter

from .endpoints import proctoring, recordings, health

api_router = APIRouter()

api_router.include_router(proctoring.router, prefix="/proctoring", tags=["proctoring"])
api_router.include_router(recordings.router, prefix="/proctoring", tags=["recordings"])
api_router.include_router(health.router, prefix="/health", tags=["health"])
