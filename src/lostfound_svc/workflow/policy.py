"""Approval policy - the configurable parts of approval chain resolution."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..directory.types import EnterpriseType


def _default_specialist_roles() -> dict[str, str]:
    return {
        EnterpriseType.UNIVERSITY.value: "CAMPUS_COORDINATOR",
        EnterpriseType.PUBLIC_TRANSIT.value: "STATION_MANAGER",
        EnterpriseType.AIRPORT.value: "AIRPORT_LOST_FOUND_SPECIALIST",
        EnterpriseType.LAW_ENFORCEMENT.value: "POLICE",
    }


@dataclass
class ApprovalPolicy:
    """
    Approval policy.

    The police threshold, the police evidence chain and the dispute chain are
    product policy rather than fixed rules, so all of them live here.
    """
    # High-value claims get a police verification step
    police_role: str = "POLICE"
    police_value_threshold: float = 500.0

    # Role acting for an enterprise type when an organization names none
    specialist_roles: dict[str, str] = field(default_factory=_default_specialist_roles)

    # Fixed chains
    emergency_chain: list[str] = field(default_factory=lambda: ["AIRPORT_LOST_FOUND_SPECIALIST"])
    police_evidence_chain: list[str] = field(default_factory=lambda: ["POLICE"])

    # Disputes: each involved enterprise's specialist, then the final arbiters
    dispute_include_involved_enterprises: bool = True
    dispute_final_roles: list[str] = field(default_factory=lambda: ["POLICE"])

    # Roles whose work queue spans the whole network instead of one organization
    global_roles: list[str] = field(default_factory=lambda: ["POLICE"])

    def specialist_role_for(self, enterprise_type: str | EnterpriseType | None) -> str | None:
        """Role acting for an enterprise type, or None when unmapped."""
        if enterprise_type is None:
            return None
        key = enterprise_type.value if isinstance(enterprise_type, EnterpriseType) else str(enterprise_type).upper()
        return self.specialist_roles.get(key)

    def is_global_role(self, role: str) -> bool:
        return role in self.global_roles

    @classmethod
    def from_dict(cls, data: dict) -> ApprovalPolicy:
        """Create a policy from a dictionary, keeping defaults for absent keys."""
        policy = cls()
        specialist_roles = dict(policy.specialist_roles)
        specialist_roles.update({str(k).upper(): v for k, v in (data.get("specialist_roles") or {}).items()})
        return cls(
            police_role=data.get("police_role", policy.police_role),
            police_value_threshold=float(data.get("police_value_threshold", policy.police_value_threshold)),
            specialist_roles=specialist_roles,
            emergency_chain=list(data.get("emergency_chain", policy.emergency_chain)),
            police_evidence_chain=list(data.get("police_evidence_chain", policy.police_evidence_chain)),
            dispute_include_involved_enterprises=bool(
                data.get("dispute_include_involved_enterprises", policy.dispute_include_involved_enterprises)
            ),
            dispute_final_roles=list(data.get("dispute_final_roles", policy.dispute_final_roles)),
            global_roles=list(data.get("global_roles", policy.global_roles)),
        )
