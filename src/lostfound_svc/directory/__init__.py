"""
Directory of enterprises, organizations and users.

Consulted by the approval chain resolver to find the role that owns an
organization, and by the work request service to authorize actors.
"""

from .types import Enterprise, EnterpriseType, Organization, User
from .registry import DirectoryRegistry
from .loader import load_directory_from_yaml

__all__ = [
    "Enterprise",
    "EnterpriseType",
    "Organization",
    "User",
    "DirectoryRegistry",
    "load_directory_from_yaml",
]
