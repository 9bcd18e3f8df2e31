"""API v1 routes."""

from fastapi import APIRouter

from omahub.api.v1 import admin, auth, brands, health, studio

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(brands.router, prefix="/brands", tags=["brands"])
router.include_router(studio.router, prefix="/studio/brands", tags=["studio"])
router.include_router(admin.router, prefix="/admin/profiles", tags=["admin"])
