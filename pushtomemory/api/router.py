"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from pushtomemory.api.webhooks import router as webhooks_router
from pushtomemory.api.registrations import router as registrations_router
from pushtomemory.api.reflections import router as reflections_router
from pushtomemory.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(webhooks_router)
api_router.include_router(registrations_router)
api_router.include_router(reflections_router)
api_router.include_router(health_router)
