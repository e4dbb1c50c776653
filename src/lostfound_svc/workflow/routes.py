"""FastAPI routes for the Work Request workflow.

Domain errors raised by the service propagate to the exception handlers
registered on the application (see main.py).
"""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, HTTPException

from ..items.loader import save_items_to_yaml
from .loader import parse_details, read_requests_from_yaml, save_requests_to_yaml, serialize_details
from .models import (
    ActionBody,
    ApprovalRecordModel,
    ContactBody,
    CourierBody,
    CreateRequestBody,
    CreateRequestResponse,
    DisputeVoteBody,
    PoliceFindingsBody,
    RejectBody,
    RequestListResponse,
    ResolveDisputeBody,
    StatsResponse,
    UpdateRequestBody,
    WorkRequestModel,
)
from .service import WorkRequestService
from .types import RequestStatus, RequestType, WorkRequest

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/requests", tags=["Work Requests"])

# Configuration - set during app startup
_service: WorkRequestService | None = None
_yaml_path: str | None = None
_items_yaml_path: str | None = None


def configure(
    service: WorkRequestService,
    yaml_path: str | None = None,
    items_yaml_path: str | None = None,
) -> None:
    """Configure the request routes with a service."""
    global _service, _yaml_path, _items_yaml_path
    _service = service
    _yaml_path = yaml_path
    _items_yaml_path = items_yaml_path


def _get_service() -> WorkRequestService:
    """Get the service, raising if not configured."""
    if _service is None:
        raise HTTPException(status_code=503, detail="Work request module not initialized")
    return _service


def _auto_save() -> None:
    """Auto-save requests to YAML after mutations."""
    if _yaml_path and _service:
        try:
            save_requests_to_yaml(_yaml_path, _service.store)
        except OSError as e:
            logger.error(f"Auto-save failed: {e}")
    # Approvals, rejections and cancels move item status and custody too
    if _items_yaml_path and _service and _service.items is not None:
        try:
            save_items_to_yaml(_items_yaml_path, _service.items)
        except OSError as e:
            logger.error(f"Auto-save of items failed: {e}")


def _request_to_model(req: WorkRequest) -> WorkRequestModel:
    """Convert a WorkRequest to Pydantic response model."""
    history = [
        ApprovalRecordModel(
            timestamp=h.timestamp,
            actor=h.actor,
            action=h.action.value,
            actor_name=h.actor_name,
            role=h.role,
            step=h.step,
            reason=h.reason,
        )
        for h in req.history
    ]

    return WorkRequestModel(
        request_id=req.request_id,
        request_type=req.request_type.value,
        status=req.status.value,
        priority=req.priority.value,
        requester_id=req.requester_id,
        requester_name=req.requester_name,
        description=req.description,
        requester_enterprise_id=req.requester_enterprise_id,
        requester_organization_id=req.requester_organization_id,
        target_enterprise_id=req.target_enterprise_id,
        target_organization_id=req.target_organization_id,
        item_holding_enterprise_type=req.item_holding_enterprise_type,
        item_holding_organization_id=req.item_holding_organization_id,
        estimated_value=req.estimated_value,
        approval_chain=list(req.approval_chain),
        approval_step=req.approval_step,
        current_role=req.current_role,
        version=req.version,
        rejection_reason=req.rejection_reason,
        history=history,
        details=serialize_details(req.details),
        created_at=req.created_at.isoformat() if req.created_at else None,
        updated_at=req.updated_at.isoformat() if req.updated_at else None,
        resolved_at=req.resolved_at.isoformat() if req.resolved_at else None,
    )


def _list_response(requests: list[WorkRequest]) -> RequestListResponse:
    return RequestListResponse(
        requests=[_request_to_model(r) for r in requests],
        total=len(requests),
    )


# =============================================================================
# Create Request
# =============================================================================

@router.post("", response_model=CreateRequestResponse, status_code=201)
async def create_request(body: CreateRequestBody):
    """
    Create a work request.

    The approval chain is resolved immediately; an unresolvable destination
    is refused rather than stored unrouted.
    """
    service = _get_service()

    try:
        details = parse_details(body.request_type, body.details)
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid details: {e}")

    request = WorkRequest(
        details=details,
        requester_id=body.requester_id,
        requester_name=body.requester_name,
        priority=body.priority,
        description=body.description,
        requester_enterprise_id=body.requester_enterprise_id,
        requester_organization_id=body.requester_organization_id,
        target_enterprise_id=body.target_enterprise_id,
        target_organization_id=body.target_organization_id,
        item_holding_enterprise_type=body.item_holding_enterprise_type,
        item_holding_organization_id=body.item_holding_organization_id,
        estimated_value=body.estimated_value,
    )

    created = service.create_request(request)
    _auto_save()

    return CreateRequestResponse(
        request_id=created.request_id,
        status=created.status.value,
        approval_chain=list(created.approval_chain),
        message=f"Request routed to {created.current_role}",
    )


# =============================================================================
# Queues / Listing
# =============================================================================

@router.get("", response_model=RequestListResponse)
async def list_requests(status: str | None = None, request_type: str | None = None):
    """List requests, optionally filtered by status or type."""
    service = _get_service()

    if status:
        try:
            requests = service.get_requests_by_status(RequestStatus(status.upper()))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
    else:
        requests = service.get_all_requests()

    if request_type:
        try:
            wanted = RequestType(request_type.upper())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid request type: {request_type}")
        requests = [r for r in requests if r.request_type == wanted]

    return _list_response(requests)


@router.get("/queue", response_model=RequestListResponse)
async def role_queue(role: str, organization_id: str | None = None):
    """Requests whose current approval step needs `role`."""
    service = _get_service()
    return _list_response(service.get_requests_for_role(role, organization_id))


@router.get("/mine", response_model=RequestListResponse)
async def my_requests(email: str, role: str | None = None):
    """Requests created by a user, in any status."""
    service = _get_service()
    return _list_response(service.get_requests_for_user(email, role))


@router.get("/stats", response_model=StatsResponse)
async def request_stats():
    service = _get_service()
    return StatsResponse(**service.get_statistics().to_dict())


@router.get("/overdue", response_model=RequestListResponse)
async def overdue_requests():
    """Open requests past their SLA target."""
    service = _get_service()
    return _list_response(service.get_overdue_requests())


@router.get("/disputes", response_model=RequestListResponse)
async def list_disputes(
    item_id: str | None = None,
    email: str | None = None,
    requiring_police: bool = False,
):
    """Disputes by item, by claimant, or those needing the police."""
    service = _get_service()

    if requiring_police:
        requests = service.get_disputes_requiring_police()
    elif item_id:
        requests = service.get_disputes_for_item(item_id)
    elif email:
        requests = service.get_disputes_for_user(email)
    else:
        requests = service.get_requests_by_type(RequestType.MULTI_ENTERPRISE_DISPUTE)

    return _list_response(requests)


# =============================================================================
# Save / Reload
# =============================================================================

@router.post("/save")
async def save_requests():
    """Manually save requests to YAML."""
    service = _get_service()

    if not _yaml_path:
        raise HTTPException(status_code=400, detail="No YAML path configured for requests")

    count = save_requests_to_yaml(_yaml_path, service.store)
    return {"success": True, "count": count, "message": f"Saved {count} requests"}


@router.post("/reload")
async def reload_requests():
    """Reload requests from YAML."""
    service = _get_service()

    if not _yaml_path:
        raise HTTPException(status_code=400, detail="No YAML path configured for requests")

    if not Path(_yaml_path).exists():
        raise HTTPException(status_code=404, detail=f"Requests file not found: {_yaml_path}")

    count = service.store.replace_all(read_requests_from_yaml(_yaml_path))
    logger.info(f"Reloaded {count} requests from {_yaml_path}")
    return {"success": True, "count": count, "message": f"Reloaded {count} requests"}


# =============================================================================
# Single Request
# =============================================================================

@router.get("/{request_id}", response_model=WorkRequestModel)
async def get_request(request_id: str):
    """Get a single request by ID."""
    service = _get_service()

    request = service.get_request_by_id(request_id)
    if request is None:
        raise HTTPException(status_code=404, detail=f"Request not found: {request_id}")

    return _request_to_model(request)


@router.put("/{request_id}", response_model=WorkRequestModel)
async def update_request(request_id: str, body: UpdateRequestBody):
    """Edit the description or details of an open request."""
    service = _get_service()

    request = service.get_request_by_id(request_id)
    if request is None:
        raise HTTPException(status_code=404, detail=f"Request not found: {request_id}")

    request.version = body.version
    if body.description is not None:
        request.description = body.description
    if body.details is not None:
        try:
            merged = {**serialize_details(request.details), **body.details}
            request.details = parse_details(request.request_type, merged)
        except (TypeError, ValueError) as e:
            raise HTTPException(status_code=400, detail=f"Invalid details: {e}")

    updated = service.update_request(request, actor_email=body.actor)
    _auto_save()
    return _request_to_model(updated)


# =============================================================================
# Approve / Reject / Cancel
# =============================================================================

@router.post("/{request_id}/approve", response_model=WorkRequestModel)
async def approve_request(request_id: str, body: ActionBody):
    """Approve the current step of a request."""
    service = _get_service()
    updated = service.approve_request(request_id, body.actor, expected_step=body.expected_step)
    _auto_save()
    return _request_to_model(updated)


@router.post("/{request_id}/reject", response_model=WorkRequestModel)
async def reject_request(request_id: str, body: RejectBody):
    """Reject a request at its current step."""
    service = _get_service()
    updated = service.reject_request(request_id, body.actor, body.reason, expected_step=body.expected_step)
    _auto_save()
    return _request_to_model(updated)


@router.post("/{request_id}/cancel", response_model=WorkRequestModel)
async def cancel_request(request_id: str, body: ActionBody):
    """Cancel a request (requester only)."""
    service = _get_service()
    updated = service.cancel_request(request_id, body.actor)
    _auto_save()
    return _request_to_model(updated)


# =============================================================================
# Pickup / Emergency actions
# =============================================================================

@router.post("/{request_id}/confirm-pickup", response_model=WorkRequestModel)
async def confirm_pickup(request_id: str, body: ActionBody):
    service = _get_service()
    updated = service.confirm_pickup(request_id, body.actor, expected_step=body.expected_step)
    _auto_save()
    return _request_to_model(updated)


@router.post("/{request_id}/dispatch-courier", response_model=WorkRequestModel)
async def dispatch_courier(request_id: str, body: CourierBody):
    service = _get_service()
    updated = service.dispatch_courier(request_id, body.actor, body.courier_name)
    _auto_save()
    return _request_to_model(updated)


@router.post("/{request_id}/contact-traveler", response_model=WorkRequestModel)
async def contact_traveler(request_id: str, body: ContactBody):
    service = _get_service()
    updated = service.contact_traveler(request_id, body.actor, body.notes)
    _auto_save()
    return _request_to_model(updated)


# =============================================================================
# Disputes
# =============================================================================

@router.post("/{request_id}/dispute-vote", response_model=WorkRequestModel)
async def dispute_vote(request_id: str, body: DisputeVoteBody):
    """Record a panel member's vote for a claimant."""
    service = _get_service()
    updated = service.record_dispute_vote(request_id, body.actor, body.claimant_id, body.reason)
    _auto_save()
    return _request_to_model(updated)


@router.post("/{request_id}/police-findings", response_model=WorkRequestModel)
async def police_findings(request_id: str, body: PoliceFindingsBody):
    service = _get_service()
    updated = service.record_police_findings(request_id, body.actor, body.report_number, body.findings)
    _auto_save()
    return _request_to_model(updated)


@router.post("/{request_id}/resolve-dispute", response_model=WorkRequestModel)
async def resolve_dispute(request_id: str, body: ResolveDisputeBody):
    """Award the item to one claimant, completing the dispute."""
    service = _get_service()
    updated = service.resolve_dispute(
        request_id, body.actor, body.winning_claimant_id, body.reason, expected_step=body.expected_step,
    )
    _auto_save()
    return _request_to_model(updated)
