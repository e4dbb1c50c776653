"""Approval chain resolution.

Computes, for one work request, the ordered list of roles that must approve
it. Resolution is eager and fails closed: any routing reference that cannot be
resolved raises RoutingError instead of dropping the step.
"""

from __future__ import annotations

import logging
from typing import Callable

from ..directory.registry import DirectoryRegistry
from ..directory.types import Enterprise, EnterpriseType, Organization
from ..errors import RoutingError
from .policy import ApprovalPolicy
from .types import DisputeDetails, RequestType, WorkRequest

logger = logging.getLogger(__name__)


def _append_unique(chain: list[str], role: str) -> None:
    if role not in chain:
        chain.append(role)


class ApprovalChainResolver:
    """
    Resolves approval chains from request routing fields, the directory and
    the approval policy.

    The result depends only on the request type, its requester/target
    routing, the holding enterprise type and the estimated value. It never
    looks at the clock or at who is calling.
    """

    def __init__(self, directory: DirectoryRegistry, policy: ApprovalPolicy | None = None) -> None:
        self.directory = directory
        self.policy = policy or ApprovalPolicy()
        self._handlers: dict[RequestType, Callable[[WorkRequest], list[str]]] = {
            RequestType.ITEM_CLAIM: self._item_claim_chain,
            RequestType.CROSS_CAMPUS_TRANSFER: self._transfer_chain,
            RequestType.TRANSIT_TO_UNIVERSITY_TRANSFER: self._transfer_chain,
            RequestType.AIRPORT_TO_UNIVERSITY_TRANSFER: self._transfer_chain,
            RequestType.MBTA_TO_AIRPORT_EMERGENCY: self._emergency_chain,
            RequestType.POLICE_EVIDENCE_REQUEST: self._police_evidence_chain,
            RequestType.MULTI_ENTERPRISE_DISPUTE: self._dispute_chain,
        }
        unhandled = set(RequestType) - set(self._handlers)
        if unhandled:
            raise RuntimeError(f"No approval chain handler for: {sorted(t.value for t in unhandled)}")

    def resolve(self, request: WorkRequest) -> list[str]:
        """
        Resolve the approval chain for a request.

        Args:
            request: The request to route (its stored chain is ignored)

        Returns:
            Ordered list of role identifiers, never empty

        Raises:
            RoutingError: If a destination cannot be resolved
        """
        handler = self._handlers.get(request.request_type)
        if handler is None:
            raise RoutingError(f"Unsupported request type: {request.request_type}")

        chain = handler(request)
        if not chain:
            raise RoutingError(f"Approval chain for {request.request_type.value} resolved to no approvers")

        logger.debug(f"Resolved chain for {request.request_type.value}: {chain}")
        return chain

    # -------------------------------------------------------------------------
    # Per-type rules
    # -------------------------------------------------------------------------

    def _item_claim_chain(self, request: WorkRequest) -> list[str]:
        chain = [self._target_role(request)]

        holding_type = request.item_holding_enterprise_type
        if holding_type:
            requester_type = self._requester_enterprise(request).enterprise_type
            if str(holding_type).upper() != requester_type.value:
                role = self.policy.specialist_role_for(holding_type)
                if role is None:
                    raise RoutingError(f"No specialist role configured for holding enterprise type '{holding_type}'")
                _append_unique(chain, role)

        if request.estimated_value >= self.policy.police_value_threshold:
            _append_unique(chain, self.policy.police_role)

        return chain

    def _transfer_chain(self, request: WorkRequest) -> list[str]:
        # The initiating source role signs off by creating the transfer; only
        # the destination confirms (via the confirm-pickup action).
        return [self._target_role(request)]

    def _emergency_chain(self, request: WorkRequest) -> list[str]:
        if request.target_organization_id:
            self._target_organization(request)
        return list(self.policy.emergency_chain)

    def _police_evidence_chain(self, request: WorkRequest) -> list[str]:
        return list(self.policy.police_evidence_chain)

    def _dispute_chain(self, request: WorkRequest) -> list[str]:
        details = request.details
        if not isinstance(details, DisputeDetails):
            raise RoutingError(f"Dispute request carries {type(details).__name__}")

        chain: list[str] = []
        if self.policy.dispute_include_involved_enterprises:
            for enterprise_id in details.involved_enterprise_ids:
                enterprise = self.directory.get_enterprise(enterprise_id)
                if enterprise is None:
                    raise RoutingError(f"Disputing enterprise '{enterprise_id}' not found")
                _append_unique(chain, self._specialist_role(enterprise))

        for role in self.policy.dispute_final_roles:
            _append_unique(chain, role)
        return chain

    # -------------------------------------------------------------------------
    # Directory helpers
    # -------------------------------------------------------------------------

    def _target_organization(self, request: WorkRequest) -> Organization:
        if not request.target_organization_id:
            raise RoutingError(f"{request.request_type.value} requires a target organization")

        organization = self.directory.get_organization(request.target_organization_id)
        if organization is None:
            raise RoutingError(f"Target organization '{request.target_organization_id}' not found")

        if request.target_enterprise_id and organization.enterprise_id != request.target_enterprise_id:
            raise RoutingError(
                f"Target organization '{organization.organization_id}' does not belong to "
                f"enterprise '{request.target_enterprise_id}'"
            )
        return organization

    def _target_role(self, request: WorkRequest) -> str:
        """Role that owns the target organization's approval step."""
        organization = self._target_organization(request)
        if organization.approver_role:
            return organization.approver_role

        enterprise = self.directory.get_enterprise(organization.enterprise_id)
        if enterprise is None:
            raise RoutingError(
                f"Enterprise '{organization.enterprise_id}' of organization "
                f"'{organization.organization_id}' not found"
            )
        return self._specialist_role(enterprise)

    def _requester_enterprise(self, request: WorkRequest) -> Enterprise:
        enterprise_id = request.requester_enterprise_id
        if not enterprise_id:
            organization = self.directory.get_organization(request.requester_organization_id)
            enterprise_id = organization.enterprise_id if organization else ""

        enterprise = self.directory.get_enterprise(enterprise_id)
        if enterprise is None:
            raise RoutingError(
                f"Requester enterprise '{enterprise_id or request.requester_organization_id}' not found"
            )
        return enterprise

    def _specialist_role(self, enterprise: Enterprise) -> str:
        role = self.policy.specialist_role_for(enterprise.enterprise_type)
        if role is None:
            raise RoutingError(
                f"No specialist role configured for enterprise type "
                f"'{EnterpriseType(enterprise.enterprise_type).value}'"
            )
        return role
