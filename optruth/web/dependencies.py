"""Shared dependencies for Operational Truth web routes.

Dependencies are injected using FastAPI's Depends() system.

Usage:
    from fastapi import Depends
    from optruth.web.dependencies import get_registry

    @router.get("/api/projects/{project_id}/thing")
    async def thing(project_id: str, registry=Depends(get_registry)):
        facade = await registry.get(project_id)
"""

from __future__ import annotations

from optruth.db.store import SqlProjectStore
from optruth.sync.facade import ProjectRegistry

# Global singleton for the project arena
_registry: ProjectRegistry | None = None


def get_registry() -> ProjectRegistry:
    """Get the process-wide ProjectRegistry backed by the SQL store.

    This is a singleton - facades stay in memory between requests and each
    project's writes are serialized through its own lock.
    """
    global _registry
    if _registry is None:
        _registry = ProjectRegistry(store=SqlProjectStore())
    return _registry


def reset_registry() -> None:
    """Drop the cached registry (tests, shutdown)."""
    global _registry
    _registry = None
