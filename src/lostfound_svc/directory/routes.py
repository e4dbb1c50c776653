"""FastAPI routes for browsing the directory."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from .registry import DirectoryRegistry

router = APIRouter(prefix="/directory", tags=["Directory"])

_directory: DirectoryRegistry | None = None


def configure(directory: DirectoryRegistry) -> None:
    """Configure the directory routes with a registry."""
    global _directory
    _directory = directory


def _get_directory() -> DirectoryRegistry:
    if _directory is None:
        raise HTTPException(status_code=503, detail="Directory not initialized")
    return _directory


@router.get("/enterprises")
async def list_enterprises():
    directory = _get_directory()
    enterprises = [e.to_dict() for e in directory.all_enterprises()]
    return {"enterprises": enterprises, "total": len(enterprises)}


@router.get("/organizations")
async def list_organizations(enterprise_id: str | None = None):
    """List organizations, optionally only those of one enterprise."""
    directory = _get_directory()
    if enterprise_id:
        directory.get_enterprise_or_raise(enterprise_id)
        organizations = directory.organizations_for_enterprise(enterprise_id)
    else:
        organizations = directory.all_organizations()
    return {"organizations": [o.to_dict() for o in organizations], "total": len(organizations)}
