from fastapi import APIRouter

from app.api import admin, interactions, recommendations, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(interactions.router, prefix="/interactions", tags=["interactions"])
router.include_router(recommendations.router, prefix="/recommendations", tags=["recommendations"])
router.include_router(admin.router, prefix="/admin", tags=["admin"])
