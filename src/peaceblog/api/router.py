"""Main API router that aggregates all route modules."""

from fastapi import APIRouter

from peaceblog.api import auth, health, images, posts

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(auth.router, prefix="/admin/auth", tags=["auth"])
api_router.include_router(posts.router, prefix="/posts", tags=["posts"])
api_router.include_router(images.router, prefix="/images", tags=["images"])
