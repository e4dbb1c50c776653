"""Request persistence - YAML round-trip for work requests."""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from .store import RequestStore
from .types import (
    DETAILS_BY_TYPE,
    ApprovalRecord,
    AuditAction,
    Claimant,
    DisputeDetails,
    PanelVote,
    RequestDetails,
    RequestPriority,
    RequestStatus,
    RequestType,
    WorkRequest,
)

logger = logging.getLogger(__name__)


def read_requests_from_yaml(path: str | Path) -> list[WorkRequest]:
    """Parse every request in a YAML file without touching any store."""
    path = Path(path)
    if not path.exists():
        logger.info(f"Requests file not found: {path}")
        return []

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data or "requests" not in data:
        return []

    return [parse_request(req_data) for req_data in data["requests"]]


def load_requests_from_yaml(
    path: str | Path,
    store: RequestStore,
) -> list[WorkRequest]:
    """Load requests from a YAML file into the store, keeping ids and versions."""
    loaded = read_requests_from_yaml(path)
    for request in loaded:
        store.load(request)

    if loaded:
        logger.info(f"Loaded {len(loaded)} requests from {path}")
    return loaded


def save_requests_to_yaml(
    path: str | Path,
    store: RequestStore,
) -> int:
    """Save all requests from the store to a YAML file."""
    path = Path(path)
    requests = sorted(store.all_requests(), key=lambda r: r.sequence)

    data: dict[str, Any] = {
        "requests": [serialize_request(r) for r in requests],
    }

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    logger.info(f"Saved {len(requests)} requests to {path}")
    return len(requests)


def _parse_time(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _format_time(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def parse_details(request_type: RequestType, data: dict[str, Any]) -> RequestDetails:
    """Build the details variant for a request type, ignoring unknown keys."""
    details_cls = DETAILS_BY_TYPE[request_type]
    names = {f.name for f in dataclasses.fields(details_cls)}
    kwargs = {k: v for k, v in (data or {}).items() if k in names}
    if details_cls is DisputeDetails:
        kwargs["claimants"] = [_parse_record(Claimant, c) for c in kwargs.get("claimants") or []]
        kwargs["panel_votes"] = [_parse_record(PanelVote, v) for v in kwargs.get("panel_votes") or []]
    return details_cls(**kwargs)


def _parse_record(cls: type, data: dict[str, Any]) -> Any:
    names = {f.name for f in dataclasses.fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in names})


def serialize_details(details: RequestDetails) -> dict[str, Any]:
    data = dataclasses.asdict(details)
    return {k: v for k, v in data.items() if v is not None}


def parse_request(data: dict[str, Any]) -> WorkRequest:
    """Parse a single request from a dictionary."""
    request_type = RequestType(data["request_type"])

    history = []
    for h in data.get("history", []):
        history.append(ApprovalRecord(
            timestamp=h.get("timestamp", ""),
            actor=h.get("actor", ""),
            action=AuditAction(h.get("action", "update")),
            actor_name=h.get("actor_name", ""),
            role=h.get("role", ""),
            step=int(h.get("step", 0)),
            reason=h.get("reason", ""),
        ))

    return WorkRequest(
        details=parse_details(request_type, data.get("details", {})),
        request_id=data.get("request_id", ""),
        requester_id=data.get("requester_id", ""),
        requester_name=data.get("requester_name", ""),
        priority=RequestPriority(data.get("priority", RequestPriority.NORMAL.value)),
        description=data.get("description", ""),
        requester_enterprise_id=data.get("requester_enterprise_id", ""),
        requester_organization_id=data.get("requester_organization_id", ""),
        target_enterprise_id=data.get("target_enterprise_id", ""),
        target_organization_id=data.get("target_organization_id", ""),
        item_holding_enterprise_type=data.get("item_holding_enterprise_type"),
        item_holding_organization_id=data.get("item_holding_organization_id"),
        estimated_value=float(data.get("estimated_value", 0.0)),
        status=RequestStatus(data.get("status", RequestStatus.PENDING.value)),
        approval_chain=list(data.get("approval_chain", [])),
        approval_step=int(data.get("approval_step", 0)),
        version=int(data.get("version", 1)),
        sequence=int(data.get("sequence", 0)),
        history=history,
        rejection_reason=data.get("rejection_reason"),
        created_at=_parse_time(data.get("created_at")),
        updated_at=_parse_time(data.get("updated_at")),
        resolved_at=_parse_time(data.get("resolved_at")),
    )


def serialize_request(req: WorkRequest) -> dict[str, Any]:
    """Serialize a request to a dictionary."""
    data: dict[str, Any] = {
        "request_id": req.request_id,
        "request_type": req.request_type.value,
        "requester_id": req.requester_id,
        "requester_name": req.requester_name,
        "priority": req.priority.value,
        "status": req.status.value,
        "description": req.description,
        "requester_enterprise_id": req.requester_enterprise_id,
        "requester_organization_id": req.requester_organization_id,
        "target_enterprise_id": req.target_enterprise_id,
        "target_organization_id": req.target_organization_id,
        "estimated_value": req.estimated_value,
        "approval_chain": list(req.approval_chain),
        "approval_step": req.approval_step,
        "version": req.version,
        "sequence": req.sequence,
        "created_at": _format_time(req.created_at),
        "updated_at": _format_time(req.updated_at),
        "details": serialize_details(req.details),
    }

    if req.item_holding_enterprise_type:
        data["item_holding_enterprise_type"] = req.item_holding_enterprise_type
    if req.item_holding_organization_id:
        data["item_holding_organization_id"] = req.item_holding_organization_id
    if req.rejection_reason:
        data["rejection_reason"] = req.rejection_reason
    if req.resolved_at:
        data["resolved_at"] = _format_time(req.resolved_at)

    if req.history:
        data["history"] = [
            {
                "timestamp": h.timestamp,
                "actor": h.actor,
                "actor_name": h.actor_name,
                "role": h.role,
                "action": h.action.value,
                "step": h.step,
                "reason": h.reason,
            }
            for h in req.history
        ]

    return data
