"""Moderation API routers."""

from fastapi import APIRouter

from . import items, submissions

router = APIRouter()
router.include_router(items.router)
router.include_router(submissions.router)

__all__ = ["router"]
