"""API v2 router package."""

from fastapi import APIRouter

from thesisflow.api.v2 import admin, assignments, auth, reviews, supervisor_requests, theses, topics

router = APIRouter(prefix="/api/v2")

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(theses.router, prefix="/theses", tags=["theses"])
router.include_router(topics.router, prefix="/topics", tags=["topics"])
router.include_router(assignments.router, prefix="/assignments", tags=["assignments"])
router.include_router(reviews.router, prefix="/reviews", tags=["reviews"])
router.include_router(
    supervisor_requests.router, prefix="/supervisor-requests", tags=["supervisor-requests"]
)
router.include_router(admin.router, prefix="/admin", tags=["admin"])
