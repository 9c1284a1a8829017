"""API v1 router -- aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from launchspace.api.v1 import admin, apps, competitions, cron, health, stats, users

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(apps.router, prefix="/apps", tags=["apps"])
api_v1_router.include_router(competitions.router, prefix="/competitions", tags=["competitions"])
api_v1_router.include_router(users.router, prefix="/users", tags=["users"])
api_v1_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_v1_router.include_router(cron.router, prefix="/cron", tags=["cron"])
api_v1_router.include_router(stats.router, prefix="/stats", tags=["stats"])
