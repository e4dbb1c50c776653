"""
Directory loaders.

Load enterprises, organizations and users from a YAML file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml

from .registry import DirectoryRegistry
from .types import Enterprise, Organization, User

logger = logging.getLogger(__name__)


def load_directory_from_yaml(
    file_path: str | Path,
    registry: Optional[DirectoryRegistry] = None,
) -> DirectoryRegistry:
    """
    Load a directory from a YAML file.

    Expected format:
        enterprises:
          NEU:
            name: Northeastern University
            type: UNIVERSITY
        organizations:
          NEU-CURRY:
            name: Curry Student Center Lost & Found
            enterprise_id: NEU
            approver_role: CAMPUS_COORDINATOR
        users:
          coordinator@neu.edu:
            full_name: Casey Coordinator
            role: CAMPUS_COORDINATOR
            organization_id: NEU-CURRY
            enterprise_id: NEU

    Args:
        file_path: Path to the YAML file
        registry: Optional registry to populate (a new one is created otherwise)

    Returns:
        The populated registry
    """
    registry = registry if registry is not None else DirectoryRegistry()
    path = Path(file_path)
    if not path.exists():
        logger.info(f"Directory file not found: {path}")
        return registry

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    for enterprise_id, config in (data.get("enterprises") or {}).items():
        if isinstance(config, dict):
            registry.register_enterprise(Enterprise.from_dict(str(enterprise_id), config))

    for organization_id, config in (data.get("organizations") or {}).items():
        if isinstance(config, dict):
            registry.register_organization(Organization.from_dict(str(organization_id), config))

    for email, config in (data.get("users") or {}).items():
        if isinstance(config, dict):
            registry.register_user(User.from_dict(str(email), config))

    counts = registry.counts()
    logger.info(
        f"Loaded directory from {path}: {counts['enterprises']} enterprises, "
        f"{counts['organizations']} organizations, {counts['users']} users"
    )
    return registry
