"""
Directory data model.

Enterprises own organizations, organizations are the custodians of physical
items, and users hold exactly one role inside one organization.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum


class EnterpriseType(str, Enum):
    """Kind of enterprise participating in the lost-and-found network."""
    UNIVERSITY = "UNIVERSITY"
    PUBLIC_TRANSIT = "PUBLIC_TRANSIT"
    AIRPORT = "AIRPORT"
    LAW_ENFORCEMENT = "LAW_ENFORCEMENT"


@dataclass(frozen=True)
class Enterprise:
    """A top-level organization such as a university, the MBTA or Logan Airport."""

    enterprise_id: str
    name: str = ""
    enterprise_type: EnterpriseType = EnterpriseType.UNIVERSITY
    network_id: str = ""

    def to_dict(self) -> dict:
        data = asdict(self)
        data["enterprise_type"] = self.enterprise_type.value
        return data

    @classmethod
    def from_dict(cls, enterprise_id: str, data: dict) -> "Enterprise":
        """
        Create an Enterprise from a dictionary.

        Args:
            enterprise_id: The enterprise identifier
            data: Dictionary of enterprise attributes

        Returns:
            Enterprise instance

        Raises:
            ValueError: If the enterprise type is not recognised
        """
        return cls(
            enterprise_id=enterprise_id,
            name=data.get("name", ""),
            enterprise_type=EnterpriseType(str(data.get("type", "UNIVERSITY")).upper()),
            network_id=data.get("network_id", ""),
        )


@dataclass(frozen=True)
class Organization:
    """
    A department, station or campus office inside an enterprise.

    approver_role names the role that owns this organization's approval step.
    When empty, the specialist role for the owning enterprise type applies.
    """

    organization_id: str
    name: str = ""
    enterprise_id: str = ""
    approver_role: str = ""
    notes: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, organization_id: str, data: dict) -> "Organization":
        return cls(
            organization_id=organization_id,
            name=data.get("name", ""),
            enterprise_id=data.get("enterprise_id", ""),
            approver_role=data.get("approver_role", ""),
            notes=data.get("notes", ""),
        )


@dataclass(frozen=True)
class User:
    """A person acting in the network, identified by email."""

    email: str
    full_name: str = ""
    role: str = ""
    organization_id: str = ""
    enterprise_id: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, email: str, data: dict) -> "User":
        return cls(
            email=email,
            full_name=data.get("full_name", ""),
            role=data.get("role", ""),
            organization_id=data.get("organization_id", ""),
            enterprise_id=data.get("enterprise_id", ""),
        )
