"""
API v1 Router
"""

from fastapi import APIRouter
from . import auth, membership, projects, tasks, uploads

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(membership.router, prefix="/membership", tags=["Membership"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(uploads.router, prefix="/upload", tags=["Uploads"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/auth",
            "/projects",
            "/membership",
            "/tasks",
            "/upload",
        ],
    }
