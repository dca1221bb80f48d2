"""API router for v1 endpoints."""

from fastapi import APIRouter

from brief_engine.api import briefs, products

router = APIRouter()

# Brief repository: list, load, archive, duplicate
router.include_router(briefs.router, tags=["briefs"])

# Product catalog
router.include_router(products.router, tags=["products"])
