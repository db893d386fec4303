"""
API v1 router aggregation.

WHAT: Mount the status and negotiation endpoints under /api/v1
WHY: Single place to register all API routes
HOW: One prefixed APIRouter including the endpoint routers
"""

from fastapi import APIRouter

from .endpoints import negotiation, status

API_V1_PREFIX = "/api/v1"

api_router = APIRouter(prefix=API_V1_PREFIX)
api_router.include_router(status.router, tags=["status"])
api_router.include_router(negotiation.router, tags=["negotiation"])
