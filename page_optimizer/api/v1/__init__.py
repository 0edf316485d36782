"""API v1 router."""

from fastapi import APIRouter

from page_optimizer.api.v1 import optimize, sitemap, validate

router = APIRouter(tags=["v1"])

router.include_router(optimize.router)
router.include_router(sitemap.router)
router.include_router(validate.router)

__all__ = ["router"]
