"""
Stats API Router
GET /api/v1/stats — collection-wide counters for the dashboard.
"""

from __future__ import annotations

from fastapi import APIRouter

from docshelf.api.dependencies import Repository
from docshelf.schemas.documents import DocumentStats

router = APIRouter(tags=["Stats"])


@router.get(
    "/stats",
    response_model=DocumentStats,
    summary="Document count, total stored bytes and number still processing",
)
async def get_stats(repository: Repository) -> DocumentStats:
    return await repository.stats()
