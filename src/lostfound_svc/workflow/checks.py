"""Consistency checks between a directory and an approval policy.

A request routed to a role nobody holds sits in a queue nobody reads, so
these checks are run before a directory goes live (``python config.py --check``).
"""

from __future__ import annotations

from ..directory.registry import DirectoryRegistry
from .policy import ApprovalPolicy


def routable_roles(directory: DirectoryRegistry, policy: ApprovalPolicy) -> set[str]:
    """Every role an approval chain can ask for with this directory and policy."""
    roles = {policy.police_role}
    roles.update(policy.emergency_chain)
    roles.update(policy.police_evidence_chain)
    roles.update(policy.dispute_final_roles)

    for organization in directory.all_organizations():
        if organization.approver_role:
            roles.add(organization.approver_role)
            continue
        enterprise = directory.get_enterprise(organization.enterprise_id)
        role = policy.specialist_role_for(enterprise.enterprise_type) if enterprise else None
        if role:
            roles.add(role)

    roles.discard("")
    return roles


def check_directory(directory: DirectoryRegistry, policy: ApprovalPolicy) -> list[str]:
    """
    Find routing gaps in a directory.

    Returns:
        One message per problem, empty when the directory is consistent
    """
    problems: list[str] = []

    for organization in directory.all_organizations():
        enterprise = directory.get_enterprise(organization.enterprise_id)
        if enterprise is None:
            problems.append(
                f"Organization {organization.organization_id} belongs to unknown "
                f"enterprise {organization.enterprise_id or '(none)'}"
            )
        elif not organization.approver_role and not policy.specialist_role_for(enterprise.enterprise_type):
            problems.append(
                f"Organization {organization.organization_id} has no approver_role and "
                f"{enterprise.enterprise_type.value} has no specialist role"
            )

    for user in directory.all_users():
        if not user.organization_id:
            continue
        organization = directory.get_organization(user.organization_id)
        if organization is None:
            problems.append(f"User {user.email} belongs to unknown organization {user.organization_id}")
        elif user.enterprise_id and user.enterprise_id != organization.enterprise_id:
            problems.append(
                f"User {user.email} is in enterprise {user.enterprise_id} but organization "
                f"{organization.organization_id} belongs to {organization.enterprise_id}"
            )

    held = {user.role for user in directory.all_users() if user.role}
    for role in sorted(routable_roles(directory, policy) - held):
        problems.append(f"No user holds role {role}, requests routed to it cannot be approved")

    return problems
