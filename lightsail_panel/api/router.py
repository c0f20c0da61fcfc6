"""Lightsail Panel API Router - aggregates all API routes."""

from fastapi import APIRouter

from lightsail_panel.api import auth, services, system

# Main API router - all routes will be prefixed with /api
api_router = APIRouter(prefix="/api")

api_router.include_router(auth.router)
api_router.include_router(services.router)
api_router.include_router(system.router)
