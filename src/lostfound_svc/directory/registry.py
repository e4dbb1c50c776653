"""
Thread-safe directory registry.

Centralised lookup of enterprises, organizations and users used for
approval routing and actor authorization.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional

from ..errors import NotFoundError
from .types import Enterprise, Organization, User


class DirectoryRegistry:
    """
    Thread-safe registry for enterprises, organizations and users.

    Register methods replace any existing entry with the same id.
    """

    def __init__(self):
        self._enterprises: Dict[str, Enterprise] = {}
        self._organizations: Dict[str, Organization] = {}
        self._users: Dict[str, User] = {}
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register_enterprise(self, enterprise: Enterprise) -> None:
        with self._lock:
            self._enterprises[enterprise.enterprise_id] = enterprise

    def register_organization(self, organization: Organization) -> None:
        with self._lock:
            self._organizations[organization.organization_id] = organization

    def register_user(self, user: User) -> None:
        """
        Register a user, keyed by lower-cased email.

        Args:
            user: The user to register or update
        """
        with self._lock:
            self._users[user.email.lower()] = user

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_enterprise(self, enterprise_id: str | None) -> Optional[Enterprise]:
        if not enterprise_id:
            return None
        with self._lock:
            return self._enterprises.get(enterprise_id)

    def get_organization(self, organization_id: str | None) -> Optional[Organization]:
        if not organization_id:
            return None
        with self._lock:
            return self._organizations.get(organization_id)

    def get_user(self, email: str | None) -> Optional[User]:
        if not email:
            return None
        with self._lock:
            return self._users.get(email.lower())

    def get_enterprise_or_raise(self, enterprise_id: str) -> Enterprise:
        """
        Get an enterprise by id, raising if not found.

        Raises:
            NotFoundError: If the enterprise is unknown
        """
        enterprise = self.get_enterprise(enterprise_id)
        if enterprise is None:
            raise NotFoundError(f"Enterprise '{enterprise_id}' not found")
        return enterprise

    def get_organization_or_raise(self, organization_id: str) -> Organization:
        """
        Get an organization by id, raising if not found.

        Raises:
            NotFoundError: If the organization is unknown
        """
        organization = self.get_organization(organization_id)
        if organization is None:
            raise NotFoundError(f"Organization '{organization_id}' not found")
        return organization

    def get_user_or_raise(self, email: str) -> User:
        user = self.get_user(email)
        if user is None:
            raise NotFoundError(f"User '{email}' not found")
        return user

    def enterprise_for_organization(self, organization_id: str | None) -> Optional[Enterprise]:
        """Get the enterprise owning an organization, if both are known."""
        with self._lock:
            organization = self.get_organization(organization_id)
            if organization is None:
                return None
            return self.get_enterprise(organization.enterprise_id)

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    def all_enterprises(self) -> List[Enterprise]:
        with self._lock:
            return sorted(self._enterprises.values(), key=lambda e: e.enterprise_id)

    def all_organizations(self) -> List[Organization]:
        with self._lock:
            return sorted(self._organizations.values(), key=lambda o: o.organization_id)

    def all_users(self) -> List[User]:
        with self._lock:
            return sorted(self._users.values(), key=lambda u: u.email)

    def organizations_for_enterprise(self, enterprise_id: str) -> List[Organization]:
        with self._lock:
            return [o for o in self.all_organizations() if o.enterprise_id == enterprise_id]

    def counts(self) -> dict[str, int]:
        with self._lock:
            return {
                "enterprises": len(self._enterprises),
                "organizations": len(self._organizations),
                "users": len(self._users),
            }

    def clear(self) -> None:
        """Clear every entry from the registry."""
        with self._lock:
            self._enterprises.clear()
            self._organizations.clear()
            self._users.clear()
