"""
API v1 Router
Main router for all API v1 endpoints
"""

from fastapi import APIRouter
from kalustovahti.api.v1.endpoints import auth, health, pages, permissions, roles, users

api_router = APIRouter()

# Authentication endpoints
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["authentication"]
)

# Resolved permissions of the caller
api_router.include_router(
    permissions.router,
    prefix="/permissions",
    tags=["permissions"]
)

# Page catalogue and access gate
api_router.include_router(
    pages.router,
    prefix="/pages",
    tags=["pages"]
)

# User administration endpoints
api_router.include_router(
    users.router,
    prefix="/admin/users",
    tags=["users"]
)

# Role and grant management endpoints
api_router.include_router(
    roles.router,
    prefix="/roles",
    tags=["roles"]
)

# Health and monitoring endpoints
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"]
)
