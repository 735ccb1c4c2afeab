"""
API router.

Every REST resource is mounted under /api; the Socket.IO endpoint is served
beside it by the ASGI wrapper in app.main.
"""

from fastapi import APIRouter
from . import admin, auth, community, learning, projects, users

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(community.router, prefix="/community", tags=["Community"])
router.include_router(learning.router, prefix="/learning", tags=["Learning"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: version and resource index."""
    return {
        "api": "skillforge",
        "version": "0.1.0",
        "endpoints": ["/auth", "/projects", "/community", "/learning", "/users", "/admin"],
    }
