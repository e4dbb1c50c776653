"""Work request types - domain types for cross-enterprise request routing."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar, Union


class RequestStatus(str, Enum):
    """Status of a work request through its approval chain."""
    PENDING = "PENDING"            # Created, nobody has approved yet
    IN_PROGRESS = "IN_PROGRESS"    # At least one step approved, more required
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({
    RequestStatus.APPROVED,
    RequestStatus.REJECTED,
    RequestStatus.CANCELLED,
})


class RequestPriority(str, Enum):
    """Priority of a request. Only affects ordering and SLA targets."""
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @property
    def sla_hours(self) -> int:
        return _SLA_HOURS[self]


_PRIORITY_RANK = {
    RequestPriority.LOW: 0,
    RequestPriority.NORMAL: 1,
    RequestPriority.HIGH: 2,
    RequestPriority.URGENT: 3,
}

_SLA_HOURS = {
    RequestPriority.URGENT: 4,
    RequestPriority.HIGH: 24,
    RequestPriority.NORMAL: 72,
    RequestPriority.LOW: 168,
}


class RequestType(str, Enum):
    """The closed set of work request variants."""
    ITEM_CLAIM = "ITEM_CLAIM"
    CROSS_CAMPUS_TRANSFER = "CROSS_CAMPUS_TRANSFER"
    TRANSIT_TO_UNIVERSITY_TRANSFER = "TRANSIT_TO_UNIVERSITY_TRANSFER"
    AIRPORT_TO_UNIVERSITY_TRANSFER = "AIRPORT_TO_UNIVERSITY_TRANSFER"
    POLICE_EVIDENCE_REQUEST = "POLICE_EVIDENCE_REQUEST"
    MBTA_TO_AIRPORT_EMERGENCY = "MBTA_TO_AIRPORT_EMERGENCY"
    MULTI_ENTERPRISE_DISPUTE = "MULTI_ENTERPRISE_DISPUTE"

    @property
    def is_transfer(self) -> bool:
        return self in TRANSFER_TYPES


TRANSFER_TYPES = frozenset({
    RequestType.CROSS_CAMPUS_TRANSFER,
    RequestType.TRANSIT_TO_UNIVERSITY_TRANSFER,
    RequestType.AIRPORT_TO_UNIVERSITY_TRANSFER,
})


class AuditAction(str, Enum):
    """Kind of entry in a request's audit trail."""
    CREATE = "create"
    INITIATE = "initiate"              # Source side of a transfer signs off by creating it
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"
    UPDATE = "update"
    CONFIRM_PICKUP = "confirm_pickup"
    DISPATCH_COURIER = "dispatch_courier"
    CONTACT_TRAVELER = "contact_traveler"
    DISPUTE_VOTE = "dispute_vote"
    POLICE_FINDINGS = "police_findings"
    RESOLVE_DISPUTE = "resolve_dispute"


@dataclass(frozen=True, slots=True)
class ApprovalRecord:
    """One entry in the audit trail of a work request."""
    timestamp: str          # ISO format
    actor: str              # Email
    action: AuditAction
    actor_name: str = ""
    role: str = ""          # Role the actor acted in
    step: int = 0           # Approval step index at the time of the action
    reason: str = ""


def _missing(obj: object, names: tuple[str, ...]) -> list[str]:
    """Names of attributes that are None or blank."""
    out = []
    for name in names:
        value = getattr(obj, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            out.append(name)
    return out


# =============================================================================
# Request details - one variant per request type
# =============================================================================

@dataclass(slots=True)
class ItemClaimDetails:
    """A student (or traveler) claiming a found item."""
    request_type: ClassVar[RequestType] = RequestType.ITEM_CLAIM

    item_id: str = ""
    item_name: str = ""
    claim_details: str = ""
    identifying_features: str = ""
    proof_description: str = ""
    student_contact: str = ""

    def validate(self) -> list[str]:
        return _missing(self, ("item_id", "claim_details", "identifying_features"))


@dataclass(slots=True)
class CrossCampusTransferDetails:
    """Moving an item between organizations, typically two university campuses."""
    request_type: ClassVar[RequestType] = RequestType.CROSS_CAMPUS_TRANSFER

    item_id: str = ""
    item_name: str = ""
    destination_campus_name: str = ""
    pickup_location: str = ""
    student_name: str = ""
    student_email: str = ""

    def validate(self) -> list[str]:
        return _missing(self, ("item_id", "pickup_location", "student_name"))


@dataclass(slots=True)
class TransitToUniversityTransferDetails:
    """An MBTA station releasing an item to a university for pickup."""
    request_type: ClassVar[RequestType] = RequestType.TRANSIT_TO_UNIVERSITY_TRANSFER

    item_id: str = ""
    item_name: str = ""
    station_name: str = ""
    student_id: str = ""
    student_name: str = ""
    campus_pickup_location: str = ""

    def validate(self) -> list[str]:
        return _missing(self, ("item_id", "station_name", "student_id", "campus_pickup_location"))


# Items found past a security checkpoint need written notes of at least this length
SECURE_AREA_NOTES_MIN_LENGTH = 20


@dataclass(slots=True)
class AirportToUniversityTransferDetails:
    """Logan Airport releasing an item to a university for pickup."""
    request_type: ClassVar[RequestType] = RequestType.AIRPORT_TO_UNIVERSITY_TRANSFER

    item_id: str = ""
    item_name: str = ""
    terminal_number: str = ""
    airport_incident_number: str = ""
    student_id: str = ""
    student_name: str = ""
    campus_pickup_location: str = ""
    was_in_secure_area: bool = False
    security_notes: str = ""

    def validate(self) -> list[str]:
        missing = _missing(self, (
            "item_id", "terminal_number", "airport_incident_number",
            "student_id", "campus_pickup_location",
        ))
        if self.was_in_secure_area and len(self.security_notes or "") < SECURE_AREA_NOTES_MIN_LENGTH:
            missing.append("security_notes")
        return missing


# Verification of items valued above this needs a serial number
SERIAL_REQUIRED_ABOVE = 500.0


@dataclass(slots=True)
class PoliceEvidenceDetails:
    """A coordinator asking police to verify an item (stolen check, high value)."""
    request_type: ClassVar[RequestType] = RequestType.POLICE_EVIDENCE_REQUEST

    item_id: str = ""
    item_name: str = ""
    verification_reason: str = ""
    serial_number: str = ""
    imei_number: str = ""
    other_identifiers: str = ""
    is_stolen_check: bool = False
    is_high_value_verification: bool = False

    def validate(self, estimated_value: float = 0.0) -> list[str]:
        missing = _missing(self, ("item_id", "verification_reason"))
        if self.is_high_value_verification and estimated_value > SERIAL_REQUIRED_ABOVE and not self.serial_number:
            missing.append("serial_number")
        if self.is_stolen_check and not (self.serial_number or self.imei_number or self.other_identifiers):
            missing.append("serial_number|imei_number|other_identifiers")
        return missing


@dataclass(slots=True)
class EmergencyDeliveryDetails:
    """
    An item left on the MBTA that a traveler needs at the airport before a flight.

    The pickup / courier / contact fields are filled in by the emergency
    sub-actions while the request is open.
    """
    request_type: ClassVar[RequestType] = RequestType.MBTA_TO_AIRPORT_EMERGENCY

    item_id: str = ""
    item_name: str = ""
    station_name: str = ""
    airport_terminal: str = ""
    flight_number: str = ""
    traveler_name: str = ""
    traveler_phone: str = ""

    pickup_confirmed_by: str | None = None
    pickup_confirmed_at: str | None = None
    courier_name: str | None = None
    courier_dispatched_at: str | None = None
    traveler_contacted_at: str | None = None
    contact_notes: str | None = None

    def validate(self) -> list[str]:
        return _missing(self, ("item_id", "station_name", "flight_number"))


@dataclass(frozen=True, slots=True)
class Claimant:
    """One party in an ownership dispute."""
    claimant_id: str
    name: str = ""
    enterprise_id: str = ""
    organization_id: str = ""
    claim_summary: str = ""
    claim_status: str = "PENDING"      # APPROVED or REJECTED once the dispute is resolved


@dataclass(frozen=True, slots=True)
class PanelVote:
    """A panel member's vote for one claimant."""
    voter_id: str
    claimant_id: str
    voter_name: str = ""
    role: str = ""
    reason: str = ""
    timestamp: str = ""


@dataclass(slots=True)
class DisputeDetails:
    """Competing claims for the same item across enterprises."""
    request_type: ClassVar[RequestType] = RequestType.MULTI_ENTERPRISE_DISPUTE

    item_id: str = ""
    item_name: str = ""
    dispute_reason: str = ""
    claimants: list[Claimant] = field(default_factory=list)

    # Panel and police progress, written by the dispute actions
    panel_votes: list[PanelVote] = field(default_factory=list)
    police_involved: bool = False
    police_officer_id: str | None = None
    police_report_number: str | None = None
    police_findings: str | None = None
    winning_claimant_id: str | None = None
    resolution_reason: str | None = None

    def validate(self) -> list[str]:
        missing = _missing(self, ("item_id", "dispute_reason"))
        if len(self.claimants) < 2:
            missing.append("claimants")
        return missing

    @property
    def involved_enterprise_ids(self) -> list[str]:
        """Enterprise ids of the claimants, in claimant order, without repeats."""
        seen: list[str] = []
        for claimant in self.claimants:
            if claimant.enterprise_id and claimant.enterprise_id not in seen:
                seen.append(claimant.enterprise_id)
        return seen

    def claimant(self, claimant_id: str) -> Claimant | None:
        for c in self.claimants:
            if c.claimant_id.lower() == (claimant_id or "").lower():
                return c
        return None

    def vote_counts(self) -> dict[str, int]:
        """Votes per claimant id, claimants without votes included."""
        counts = {c.claimant_id: 0 for c in self.claimants}
        for vote in self.panel_votes:
            counts[vote.claimant_id] = counts.get(vote.claimant_id, 0) + 1
        return counts


RequestDetails = Union[
    ItemClaimDetails,
    CrossCampusTransferDetails,
    TransitToUniversityTransferDetails,
    AirportToUniversityTransferDetails,
    PoliceEvidenceDetails,
    EmergencyDeliveryDetails,
    DisputeDetails,
]

DETAILS_BY_TYPE: dict[RequestType, type] = {
    ItemClaimDetails.request_type: ItemClaimDetails,
    CrossCampusTransferDetails.request_type: CrossCampusTransferDetails,
    TransitToUniversityTransferDetails.request_type: TransitToUniversityTransferDetails,
    AirportToUniversityTransferDetails.request_type: AirportToUniversityTransferDetails,
    PoliceEvidenceDetails.request_type: PoliceEvidenceDetails,
    EmergencyDeliveryDetails.request_type: EmergencyDeliveryDetails,
    DisputeDetails.request_type: DisputeDetails,
}


# =============================================================================
# Work request
# =============================================================================

@dataclass(slots=True)
class WorkRequest:
    """
    A formal workflow that needs approval across organizations or enterprises.

    The approval chain is computed once when the request is created and kept
    with it; later directory or policy edits never reroute a stored request.
    """
    details: RequestDetails
    requester_id: str = ""                # Requester email
    requester_name: str = ""
    request_id: str = ""                  # Assigned by the store
    priority: RequestPriority = RequestPriority.NORMAL
    description: str = ""

    # Routing origin
    requester_enterprise_id: str = ""
    requester_organization_id: str = ""

    # Routing destination
    target_enterprise_id: str = ""
    target_organization_id: str = ""

    # Set when the item is physically held by another enterprise
    item_holding_enterprise_type: str | None = None
    item_holding_organization_id: str | None = None

    estimated_value: float = 0.0

    # Workflow state
    status: RequestStatus = RequestStatus.PENDING
    approval_chain: list[str] = field(default_factory=list)
    approval_step: int = 0
    version: int = 0
    sequence: int = 0
    history: list[ApprovalRecord] = field(default_factory=list)
    rejection_reason: str | None = None

    # Timestamps
    created_at: datetime | None = None
    updated_at: datetime | None = None
    resolved_at: datetime | None = None

    @property
    def request_type(self) -> RequestType:
        return self.details.request_type

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_pending(self) -> bool:
        """True while the request still awaits approvals."""
        return self.status in (RequestStatus.PENDING, RequestStatus.IN_PROGRESS)

    @property
    def current_role(self) -> str | None:
        """Role required at the current step, or None when nothing is awaited."""
        if not self.is_pending or self.approval_step >= len(self.approval_chain):
            return None
        return self.approval_chain[self.approval_step]

    @property
    def approved_by(self) -> list[str]:
        return [r.actor for r in self.history if r.action == AuditAction.APPROVE]

    def routing_organizations(self) -> set[str]:
        """Every organization this request's routing touches."""
        orgs = {
            self.requester_organization_id,
            self.target_organization_id,
            self.item_holding_organization_id or "",
        }
        if isinstance(self.details, DisputeDetails):
            orgs.update(c.organization_id for c in self.details.claimants)
        orgs.discard("")
        return orgs

    @property
    def sla_hours(self) -> int:
        return self.priority.sla_hours

    def hours_until_sla(self, now: datetime) -> float:
        """Hours left before the SLA target (negative once overdue)."""
        if self.created_at is None:
            return float(self.sla_hours)
        elapsed = (now - self.created_at).total_seconds() / 3600.0
        return self.sla_hours - elapsed

    def is_overdue(self, now: datetime) -> bool:
        return self.is_pending and self.hours_until_sla(now) < 0

    def summary(self) -> str:
        item_name = getattr(self.details, "item_name", "") or getattr(self.details, "item_id", "")
        return (
            f"{self.request_type.value} {self.request_id or '(new)'}: {item_name} "
            f"[{self.status.value}, step {self.approval_step}/{len(self.approval_chain)}, "
            f"{self.priority.value}]"
        )
