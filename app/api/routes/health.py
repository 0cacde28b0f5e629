from __future__ import annotations

import logging

from fastapi import APIRouter

from app.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "providers": {
            "search": settings.configured_search_provider,
            "openai": bool(settings.openai_api_key),
            "groq": bool(settings.groq_api_key),
        },
    }
