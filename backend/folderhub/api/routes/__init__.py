"""API route registration."""

from fastapi import APIRouter

from folderhub.api.routes import auth, files, folders, health, public, stats, users

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(folders.router, prefix="/folders", tags=["folders"])
api_router.include_router(files.router, prefix="/files", tags=["files"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(public.router, prefix="/public", tags=["public"])
api_router.include_router(stats.router, prefix="/stats", tags=["stats"])
