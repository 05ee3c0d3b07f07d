from fastapi import APIRouter

from app.api.routes import auth, metrics

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router, tags=["auth"])
api_router.include_router(metrics.router, tags=["metrics"])
