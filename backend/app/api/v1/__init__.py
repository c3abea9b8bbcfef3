"""API v1 router aggregation."""

from fastapi import APIRouter

from app.api.v1.recommendations import router as recommendations_router
from app.api.v1.problems import router as problems_router

router = APIRouter(prefix="/api/v1")

router.include_router(recommendations_router)
router.include_router(problems_router)
