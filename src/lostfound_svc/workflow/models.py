"""Pydantic models for the Work Request API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from .types import RequestPriority, RequestType


# =============================================================================
# Request Body Models
# =============================================================================

class CreateRequestBody(BaseModel):
    """Body for creating a new work request."""
    request_type: RequestType
    requester_id: str
    requester_name: str = ""
    priority: RequestPriority = RequestPriority.NORMAL
    description: str = ""

    # Routing
    requester_enterprise_id: str = ""
    requester_organization_id: str = ""
    target_enterprise_id: str = ""
    target_organization_id: str = ""
    item_holding_enterprise_type: str | None = None
    item_holding_organization_id: str | None = None

    estimated_value: float = 0.0

    # Type-specific payload
    details: dict[str, Any] = Field(default_factory=dict)


class UpdateRequestBody(BaseModel):
    """Body for editing an open request. version is the version that was read."""
    version: int
    actor: str = ""
    description: str | None = None
    details: dict[str, Any] | None = None


class ActionBody(BaseModel):
    """Body for approve / confirm-pickup / cancel actions."""
    actor: str
    expected_step: int | None = None


class RejectBody(BaseModel):
    """Body for rejecting a request."""
    actor: str
    reason: str
    expected_step: int | None = None


class DisputeVoteBody(BaseModel):
    """Body for a panel vote on a dispute."""
    actor: str
    claimant_id: str
    reason: str = ""


class PoliceFindingsBody(BaseModel):
    actor: str
    report_number: str
    findings: str


class ResolveDisputeBody(BaseModel):
    """Body for awarding a disputed item. This is the final approval."""
    actor: str
    winning_claimant_id: str
    reason: str
    expected_step: int | None = None


class CourierBody(BaseModel):
    actor: str
    courier_name: str


class ContactBody(BaseModel):
    actor: str
    notes: str = ""


# =============================================================================
# Response Models
# =============================================================================

class ApprovalRecordModel(BaseModel):
    """An audit trail entry."""
    timestamp: str
    actor: str
    action: str
    actor_name: str = ""
    role: str = ""
    step: int = 0
    reason: str = ""


class WorkRequestModel(BaseModel):
    """Full representation of a work request."""
    request_id: str
    request_type: str
    status: str
    priority: str
    requester_id: str
    requester_name: str = ""
    description: str = ""

    requester_enterprise_id: str = ""
    requester_organization_id: str = ""
    target_enterprise_id: str = ""
    target_organization_id: str = ""
    item_holding_enterprise_type: str | None = None
    item_holding_organization_id: str | None = None
    estimated_value: float = 0.0

    # Workflow
    approval_chain: list[str] = Field(default_factory=list)
    approval_step: int = 0
    current_role: str | None = None
    version: int = 0
    rejection_reason: str | None = None
    history: list[ApprovalRecordModel] = Field(default_factory=list)

    details: dict[str, Any] = Field(default_factory=dict)

    created_at: str | None = None
    updated_at: str | None = None
    resolved_at: str | None = None


class RequestListResponse(BaseModel):
    """Response for listing requests."""
    requests: list[WorkRequestModel]
    total: int


class CreateRequestResponse(BaseModel):
    """Response after creating a request."""
    request_id: str
    status: str
    approval_chain: list[str]
    message: str = ""


class StatsResponse(BaseModel):
    total: int
    pending: int
    in_progress: int
    approved: int
    rejected: int
    cancelled: int
    overdue: int
