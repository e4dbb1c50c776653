"""Work request service - approval state machine and work queue queries.

States:
    PENDING -> IN_PROGRESS -> APPROVED | REJECTED
    any non-terminal state -> REJECTED | CANCELLED

Every mutation follows the same shape: read a private copy from the store,
check it, edit the copy, then commit with a compare-and-swap on the version
that was read. A caller that loses a race gets AlreadyAdvancedError and
nothing it did is stored.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from ..directory.registry import DirectoryRegistry
from ..directory.types import User
from ..errors import (
    AlreadyAdvancedError,
    AlreadyTerminalError,
    NotAuthorizedError,
    NotFoundError,
    ValidationError,
)
from ..items.registry import ItemRegistry
from ..items.types import Item, ItemStatus
from .policy import ApprovalPolicy
from .resolver import ApprovalChainResolver
from .store import RequestStore
from .types import (
    ApprovalRecord,
    AuditAction,
    DisputeDetails,
    EmergencyDeliveryDetails,
    PanelVote,
    PoliceEvidenceDetails,
    RequestPriority,
    RequestStatus,
    RequestType,
    WorkRequest,
)

logger = logging.getLogger(__name__)

# Attempts at re-reading and re-applying an item side effect after a version clash
ITEM_UPDATE_ATTEMPTS = 3

# Share of the SLA window below which a request counts as approaching breach
SLA_WARNING_FRACTION = 0.2


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sort_for_queue(requests: list[WorkRequest]) -> list[WorkRequest]:
    """Priority descending, then newest first."""
    return sorted(
        requests,
        key=lambda r: (
            r.priority.rank,
            r.created_at.timestamp() if r.created_at else 0.0,
            r.sequence,
        ),
        reverse=True,
    )


@dataclass(frozen=True)
class WorkRequestStats:
    """Request counts by status."""
    total: int
    pending: int
    in_progress: int
    approved: int
    rejected: int
    cancelled: int
    overdue: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "pending": self.pending,
            "in_progress": self.in_progress,
            "approved": self.approved,
            "rejected": self.rejected,
            "cancelled": self.cancelled,
            "overdue": self.overdue,
        }


class WorkRequestService:
    """
    Creates, routes and advances work requests.

    Safe to call from many threads at once without external locking.
    """

    def __init__(
        self,
        directory: DirectoryRegistry,
        store: RequestStore | None = None,
        policy: ApprovalPolicy | None = None,
        items: ItemRegistry | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.directory = directory
        self.store = store if store is not None else RequestStore()
        self.policy = policy or ApprovalPolicy()
        self.resolver = ApprovalChainResolver(directory, self.policy)
        self.items = items
        self._clock = clock

    # =========================================================================
    # Creation
    # =========================================================================

    def create_request(self, request: WorkRequest) -> WorkRequest:
        """
        Validate, route and store a new request.

        Args:
            request: The request as filled in by the requester

        Returns:
            The stored request, with its id, chain, status PENDING and step 0

        Raises:
            ValidationError: If required fields are missing
            RoutingError: If the approval chain cannot be resolved
        """
        self._validate(request)

        new = copy.deepcopy(request)
        new.request_id = ""
        new.approval_chain = self.resolver.resolve(new)

        now = self._clock()
        new.status = RequestStatus.PENDING
        new.approval_step = 0
        new.rejection_reason = None
        new.created_at = now
        new.updated_at = now
        new.resolved_at = None

        requester = self.directory.get_user(new.requester_id)
        new.history = [self._record(now, new, requester, new.requester_id, AuditAction.CREATE, role="")]
        if new.request_type.is_transfer:
            new.history.append(self._record(
                now, new, requester, new.requester_id, AuditAction.INITIATE,
                role=requester.role if requester else "",
                reason="Released by initiating organization",
            ))

        stored = self.store.insert(new)
        logger.info(
            f"Created work request {stored.request_id} ({stored.request_type.value}, "
            f"priority {stored.priority.value}) chain={stored.approval_chain}"
        )

        if stored.request_type == RequestType.ITEM_CLAIM:
            self._mark_item_pending_claim(stored)
        return stored

    def _validate(self, request: WorkRequest) -> None:
        missing: list[str] = []
        if not request.requester_id or not request.requester_id.strip():
            missing.append("requester_id")
        if not isinstance(request.priority, RequestPriority):
            missing.append("priority")

        details = request.details
        if isinstance(details, PoliceEvidenceDetails):
            missing.extend(details.validate(request.estimated_value))
        else:
            missing.extend(details.validate())

        if request.estimated_value < 0:
            missing.append("estimated_value")

        if missing:
            raise ValidationError(
                f"Invalid {request.request_type.value} request, missing or invalid: {', '.join(missing)}",
                missing=missing,
            )

    # =========================================================================
    # Approval state machine
    # =========================================================================

    def approve_request(
        self,
        request_id: str,
        actor_email: str,
        expected_step: int | None = None,
    ) -> WorkRequest:
        """
        Approve the current step of a request.

        Any holder of the role required at the current step may approve.

        Args:
            request_id: The request to approve
            actor_email: Email of the approving user
            expected_step: The step the caller saw; a request that has moved
                past it fails with AlreadyAdvancedError

        Returns:
            The committed request (APPROVED after the last step, else IN_PROGRESS)

        Raises:
            NotFoundError, AlreadyAdvancedError, AlreadyTerminalError, NotAuthorizedError
        """
        request = self._load(request_id)
        self._ensure_open(request)
        self._check_expected_step(request, expected_step)
        actor = self._authorize(request, actor_email)

        read_version = request.version
        now = self._clock()
        step = request.approval_step
        request.history.append(self._record(now, request, actor, actor_email, AuditAction.APPROVE))
        request.approval_step = step + 1
        request.updated_at = now

        if request.approval_step >= len(request.approval_chain):
            request.status = RequestStatus.APPROVED
            request.resolved_at = now
        else:
            request.status = RequestStatus.IN_PROGRESS

        committed = self._commit(request, read_version)
        logger.info(
            f"Request {request_id} approved by {actor_email} as {actor.role} "
            f"(step {committed.approval_step}/{len(committed.approval_chain)}, "
            f"status {committed.status.value})"
        )

        if committed.status == RequestStatus.APPROVED:
            self._apply_approval_effects(committed)
        return committed

    def reject_request(
        self,
        request_id: str,
        actor_email: str,
        reason: str,
        expected_step: int | None = None,
    ) -> WorkRequest:
        """
        Reject a request at its current step, ending it regardless of how
        many steps remain.

        Raises:
            ValidationError: If the reason is empty
            NotFoundError, AlreadyAdvancedError, AlreadyTerminalError, NotAuthorizedError
        """
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required", missing=["reason"])

        request = self._load(request_id)
        self._ensure_open(request)
        self._check_expected_step(request, expected_step)
        actor = self._authorize(request, actor_email)

        read_version = request.version
        now = self._clock()
        request.history.append(self._record(
            now, request, actor, actor_email, AuditAction.REJECT, reason=reason.strip(),
        ))
        request.status = RequestStatus.REJECTED
        request.rejection_reason = reason.strip()
        request.updated_at = now
        request.resolved_at = now

        committed = self._commit(request, read_version)
        logger.info(f"Request {request_id} rejected by {actor_email} at step {committed.approval_step}: {reason}")

        if committed.request_type == RequestType.ITEM_CLAIM:
            self._release_item_claim(committed)
        return committed

    def cancel_request(self, request_id: str, actor_email: str) -> WorkRequest:
        """
        Cancel a request on behalf of its requester.

        Raises:
            NotFoundError, AlreadyTerminalError
            NotAuthorizedError: If the actor is not the requester
        """
        request = self._load(request_id)
        self._ensure_open(request)
        if (actor_email or "").lower() != request.requester_id.lower():
            logger.warning(f"User {actor_email} cannot cancel request {request_id}")
            raise NotAuthorizedError(f"Only the requester may cancel request {request_id}")

        read_version = request.version
        now = self._clock()
        actor = self.directory.get_user(actor_email)
        request.history.append(self._record(now, request, actor, actor_email, AuditAction.CANCEL, role=""))
        request.status = RequestStatus.CANCELLED
        request.updated_at = now
        request.resolved_at = now

        committed = self._commit(request, read_version)
        logger.info(f"Request {request_id} cancelled by requester")

        if committed.request_type == RequestType.ITEM_CLAIM:
            self._release_item_claim(committed)
        return committed

    def update_request(self, request: WorkRequest, actor_email: str = "") -> WorkRequest:
        """
        Save edits to the descriptive fields of an open request.

        Only description and details are taken from the submitted copy;
        status, chain, step, routing, requester and priority stay as stored.
        The details must keep the item they were created for.
        The copy must carry the version it was read at.

        Raises:
            NotFoundError, AlreadyTerminalError
            AlreadyAdvancedError: If the request changed since it was read
            ValidationError: If the edited details are invalid
        """
        if not request.request_id:
            raise ValidationError("Cannot update a request without an id", missing=["request_id"])

        current = self._load(request.request_id)
        if request.version != current.version:
            raise AlreadyAdvancedError(
                f"Request {request.request_id} was modified since it was read",
                expected_version=request.version,
                actual_version=current.version,
            )
        self._ensure_open(current)

        if type(request.details) is not type(current.details):
            raise ValidationError(
                f"Cannot change request {request.request_id} from "
                f"{current.request_type.value} to {request.request_type.value}"
            )

        # Item state (PENDING_CLAIM, custody) is keyed on the item the request was created for
        if getattr(request.details, "item_id", None) != getattr(current.details, "item_id", None):
            raise ValidationError(
                f"Cannot move request {request.request_id} to a different item",
                missing=["item_id"],
            )

        details = copy.deepcopy(request.details)
        if isinstance(details, EmergencyDeliveryDetails):
            _keep_emergency_progress(details, current.details)
        elif isinstance(details, DisputeDetails):
            _keep_dispute_progress(details, current.details)

        edited = copy.deepcopy(current)
        edited.description = request.description
        edited.details = details
        self._validate(edited)

        now = self._clock()
        actor = self.directory.get_user(actor_email)
        edited.history.append(self._record(
            now, edited, actor, actor_email or current.requester_id, AuditAction.UPDATE,
            role=actor.role if actor else "",
        ))
        edited.updated_at = now

        committed = self._commit(edited, current.version)
        logger.info(f"Updated work request {committed.request_id}")
        return committed

    # =========================================================================
    # Pickup and emergency sub-actions
    # =========================================================================

    def confirm_pickup(self, request_id: str, actor_email: str, expected_step: int | None = None) -> WorkRequest:
        """
        Confirm that the destination has the item.

        For transfers this is the destination's approval. For MBTA-to-airport
        emergencies it moves a PENDING request to IN_PROGRESS without
        advancing the approval step.

        Raises:
            ValidationError: For request types without a pickup step, or a
                pickup that is already confirmed
        """
        request = self._load(request_id)
        if request.request_type.is_transfer:
            return self.approve_request(request_id, actor_email, expected_step=expected_step)

        details = request.details
        if not isinstance(details, EmergencyDeliveryDetails):
            raise ValidationError(f"{request.request_type.value} requests have no pickup confirmation")

        self._ensure_open(request)
        self._check_expected_step(request, expected_step)
        actor = self._authorize(request, actor_email)

        if details.pickup_confirmed_at:
            raise ValidationError(f"Pickup for request {request_id} was already confirmed")

        read_version = request.version
        now = self._clock()
        details.pickup_confirmed_by = actor_email
        details.pickup_confirmed_at = now.isoformat()
        request.history.append(self._record(now, request, actor, actor_email, AuditAction.CONFIRM_PICKUP))
        request.status = RequestStatus.IN_PROGRESS
        request.updated_at = now

        committed = self._commit(request, read_version)
        logger.info(f"Pickup confirmed for emergency request {request_id} by {actor_email}")
        return committed

    def dispatch_courier(self, request_id: str, actor_email: str, courier_name: str) -> WorkRequest:
        """Record a courier dispatched for an emergency delivery. Status is unchanged."""
        if not courier_name or not courier_name.strip():
            raise ValidationError("A courier name is required", missing=["courier_name"])

        def apply(details: EmergencyDeliveryDetails, now: datetime) -> None:
            details.courier_name = courier_name.strip()
            details.courier_dispatched_at = now.isoformat()

        return self._emergency_sub_action(
            request_id, actor_email, AuditAction.DISPATCH_COURIER, apply, reason=courier_name.strip(),
        )

    def contact_traveler(self, request_id: str, actor_email: str, notes: str = "") -> WorkRequest:
        """Record that the traveler was contacted. Status is unchanged."""

        def apply(details: EmergencyDeliveryDetails, now: datetime) -> None:
            details.traveler_contacted_at = now.isoformat()
            details.contact_notes = notes or None

        return self._emergency_sub_action(
            request_id, actor_email, AuditAction.CONTACT_TRAVELER, apply, reason=notes,
        )

    def _emergency_sub_action(
        self,
        request_id: str,
        actor_email: str,
        action: AuditAction,
        apply: Callable[[EmergencyDeliveryDetails, datetime], None],
        reason: str = "",
    ) -> WorkRequest:
        request = self._load(request_id)
        details = request.details
        if not isinstance(details, EmergencyDeliveryDetails):
            raise ValidationError(f"'{action.value}' only applies to MBTA-to-airport emergency requests")
        self._ensure_open(request)
        actor = self._authorize(request, actor_email)

        read_version = request.version
        now = self._clock()
        apply(details, now)
        request.history.append(self._record(now, request, actor, actor_email, action, reason=reason))
        request.updated_at = now

        committed = self._commit(request, read_version)
        logger.info(f"Emergency request {request_id}: {action.value} by {actor_email}")
        return committed

    # =========================================================================
    # Dispute panel, police findings and resolution
    # =========================================================================

    def record_dispute_vote(
        self,
        request_id: str,
        actor_email: str,
        claimant_id: str,
        reason: str = "",
    ) -> WorkRequest:
        """
        Record a panel member's vote for one claimant. Status is unchanged.

        The panel is everyone holding a role in the dispute's approval chain.
        A second vote by the same member replaces the first.

        Raises:
            ValidationError: For non-dispute requests or an unknown claimant
            NotFoundError, AlreadyTerminalError
            NotAuthorizedError: If the actor holds no role in the chain
        """
        request = self._load(request_id)
        details = self._dispute_details(request)
        self._ensure_open(request)

        actor = self.directory.get_user(actor_email)
        if actor is None or actor.role not in request.approval_chain:
            logger.warning(f"User {actor_email} is not on the panel for dispute {request_id}")
            raise NotAuthorizedError(f"{actor_email} is not on the panel for dispute {request_id}")

        claimant = details.claimant(claimant_id)
        if claimant is None:
            raise ValidationError(
                f"{claimant_id} is not a claimant in dispute {request_id}", missing=["claimant_id"],
            )

        read_version = request.version
        now = self._clock()
        voter = actor_email.lower()
        details.panel_votes = [v for v in details.panel_votes if v.voter_id.lower() != voter]
        details.panel_votes.append(PanelVote(
            voter_id=actor_email,
            claimant_id=claimant.claimant_id,
            voter_name=actor.full_name,
            role=actor.role,
            reason=reason,
            timestamp=now.isoformat(),
        ))
        request.history.append(self._record(
            now, request, actor, actor_email, AuditAction.DISPUTE_VOTE, reason=claimant.claimant_id,
        ))
        request.updated_at = now

        committed = self._commit(request, read_version)
        logger.info(f"Dispute {request_id}: {actor_email} voted for {claimant.claimant_id}")
        return committed

    def record_police_findings(
        self,
        request_id: str,
        actor_email: str,
        report_number: str,
        findings: str,
    ) -> WorkRequest:
        """
        Attach a police report to a dispute. Status is unchanged.

        Raises:
            ValidationError: For non-dispute requests or a missing report number or findings
            NotFoundError, AlreadyTerminalError
            NotAuthorizedError: If the actor does not hold the police role
        """
        missing = [name for name, value in (("report_number", report_number), ("findings", findings))
                   if not value or not value.strip()]
        if missing:
            raise ValidationError(f"Police findings need {', '.join(missing)}", missing=missing)

        request = self._load(request_id)
        details = self._dispute_details(request)
        self._ensure_open(request)

        actor = self.directory.get_user(actor_email)
        if actor is None or actor.role != self.policy.police_role:
            logger.warning(f"User {actor_email} cannot record police findings on {request_id}")
            raise NotAuthorizedError(f"Only {self.policy.police_role} may record police findings")

        read_version = request.version
        now = self._clock()
        details.police_involved = True
        details.police_officer_id = actor_email
        details.police_report_number = report_number.strip()
        details.police_findings = findings.strip()
        request.history.append(self._record(
            now, request, actor, actor_email, AuditAction.POLICE_FINDINGS, reason=report_number.strip(),
        ))
        request.updated_at = now

        committed = self._commit(request, read_version)
        logger.info(f"Police findings recorded on dispute {request_id} (report {report_number.strip()})")
        return committed

    def resolve_dispute(
        self,
        request_id: str,
        actor_email: str,
        winning_claimant_id: str,
        reason: str,
        expected_step: int | None = None,
    ) -> WorkRequest:
        """
        Award the item to one claimant as the final approval of a dispute.

        Only the holder of the last role in the chain can resolve, once every
        earlier step is approved. The winner's claim becomes APPROVED and every
        other claim REJECTED.

        Raises:
            ValidationError: For non-dispute requests, an unknown winner, an
                empty reason, or approvals still outstanding before the last step
            NotFoundError, AlreadyAdvancedError, AlreadyTerminalError, NotAuthorizedError
        """
        if not reason or not reason.strip():
            raise ValidationError("A resolution reason is required", missing=["reason"])

        request = self._load(request_id)
        details = self._dispute_details(request)
        self._ensure_open(request)
        self._check_expected_step(request, expected_step)
        actor = self._authorize(request, actor_email)

        remaining = len(request.approval_chain) - request.approval_step
        if remaining > 1:
            raise ValidationError(
                f"Dispute {request_id} needs {remaining - 1} more approval(s) before it can be resolved"
            )

        winner = details.claimant(winning_claimant_id)
        if winner is None:
            raise ValidationError(
                f"{winning_claimant_id} is not a claimant in dispute {request_id}",
                missing=["winning_claimant_id"],
            )

        read_version = request.version
        now = self._clock()
        details.claimants = [
            dataclasses.replace(c, claim_status="APPROVED" if c is winner else "REJECTED")
            for c in details.claimants
        ]
        details.winning_claimant_id = winner.claimant_id
        details.resolution_reason = reason.strip()
        request.history.append(self._record(
            now, request, actor, actor_email, AuditAction.RESOLVE_DISPUTE, reason=reason.strip(),
        ))
        request.approval_step += 1
        request.status = RequestStatus.APPROVED
        request.updated_at = now
        request.resolved_at = now

        committed = self._commit(request, read_version)
        logger.info(f"Dispute {request_id} resolved by {actor_email}: awarded to {winner.claimant_id}")
        return committed

    @staticmethod
    def _dispute_details(request: WorkRequest) -> DisputeDetails:
        if not isinstance(request.details, DisputeDetails):
            raise ValidationError(f"Request {request.request_id} is not a dispute")
        return request.details

    # =========================================================================
    # Queries
    # =========================================================================

    def get_request_by_id(self, request_id: str) -> WorkRequest | None:
        return self.store.get(request_id)

    def get_requests_for_role(self, role: str, organization_id: str | None = None) -> list[WorkRequest]:
        """
        Work queue for a role: open requests whose CURRENT step needs `role`.

        Requests where `role` only appears at a later step are not included.
        When organization_id is given, only requests whose routing touches
        that organization are returned, unless the role is network-wide.
        """
        org_scoped = organization_id is not None and not self.policy.is_global_role(role)

        def matches(r: WorkRequest) -> bool:
            if r.current_role != role:
                return False
            return not org_scoped or organization_id in r.routing_organizations()

        return sort_for_queue(self.store.find(matches))

    def get_requests_for_user(self, email: str, role_name: str | None = None) -> list[WorkRequest]:
        """
        Every request created by a user, in any status.

        role_name does not filter the result; approval queues come from
        get_requests_for_role.
        """
        needle = (email or "").lower()
        found = self.store.find(lambda r: r.requester_id.lower() == needle)
        logger.debug(f"{len(found)} requests created by {email} (role {role_name})")
        return sort_for_queue(found)

    def get_all_requests(self) -> list[WorkRequest]:
        return sort_for_queue(self.store.all_requests())

    def get_requests_by_status(self, status: RequestStatus) -> list[WorkRequest]:
        return sort_for_queue(self.store.find(lambda r: r.status == status))

    def get_requests_by_type(self, request_type: RequestType) -> list[WorkRequest]:
        return sort_for_queue(self.store.find(lambda r: r.request_type == request_type))

    def get_active_claims_for_item(self, item_id: str) -> list[WorkRequest]:
        """Open claims on an item; more than one signals an ownership dispute."""
        return sort_for_queue(self.store.find(
            lambda r: r.request_type == RequestType.ITEM_CLAIM
            and r.is_pending
            and r.details.item_id == item_id
        ))

    def get_disputes_for_item(self, item_id: str) -> list[WorkRequest]:
        """Disputes over an item, in any status."""
        return sort_for_queue(self.store.find(
            lambda r: isinstance(r.details, DisputeDetails) and r.details.item_id == item_id
        ))

    def get_disputes_for_user(self, email: str) -> list[WorkRequest]:
        """Disputes naming the user as a claimant, in any status."""
        return sort_for_queue(self.store.find(
            lambda r: isinstance(r.details, DisputeDetails) and r.details.claimant(email) is not None
        ))

    def get_disputes_requiring_police(self) -> list[WorkRequest]:
        """Open disputes with police findings, or waiting on the police step."""
        police_role = self.policy.police_role
        return sort_for_queue(self.store.find(
            lambda r: isinstance(r.details, DisputeDetails)
            and r.is_pending
            and (r.details.police_involved or r.current_role == police_role)
        ))

    def get_overdue_requests(self, now: datetime | None = None) -> list[WorkRequest]:
        """Open requests past their SLA target, oldest first."""
        now = now or self._clock()
        overdue = self.store.find(lambda r: r.is_overdue(now))
        return sorted(overdue, key=lambda r: (r.created_at or now, r.sequence))

    def get_approaching_sla_requests(self, now: datetime | None = None) -> list[WorkRequest]:
        """Open requests with less than a fifth of their SLA window left."""
        now = now or self._clock()

        def approaching(r: WorkRequest) -> bool:
            if not r.is_pending:
                return False
            remaining = r.hours_until_sla(now) / r.sla_hours
            return 0 < remaining < SLA_WARNING_FRACTION

        return sorted(self.store.find(approaching), key=lambda r: r.hours_until_sla(now))

    def get_statistics(self, now: datetime | None = None) -> WorkRequestStats:
        counts = self.store.count_by_status()
        return WorkRequestStats(
            total=counts["total"],
            pending=counts[RequestStatus.PENDING.value],
            in_progress=counts[RequestStatus.IN_PROGRESS.value],
            approved=counts[RequestStatus.APPROVED.value],
            rejected=counts[RequestStatus.REJECTED.value],
            cancelled=counts[RequestStatus.CANCELLED.value],
            overdue=len(self.get_overdue_requests(now)),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _load(self, request_id: str) -> WorkRequest:
        request = self.store.get(request_id)
        if request is None:
            logger.warning(f"Request not found: {request_id}")
            raise NotFoundError(f"Request not found: {request_id}")
        return request

    @staticmethod
    def _check_expected_step(request: WorkRequest, expected_step: int | None) -> None:
        if expected_step is None:
            return
        if request.approval_step != expected_step:
            raise AlreadyAdvancedError(
                f"Request {request.request_id} is no longer at step {expected_step} "
                f"(now step {request.approval_step}, status {request.status.value})"
            )

    @staticmethod
    def _ensure_open(request: WorkRequest) -> None:
        if request.is_terminal:
            logger.warning(f"Request not pending: {request.request_id} (status: {request.status.value})")
            raise AlreadyTerminalError(
                f"Request {request.request_id} is already {request.status.value}"
            )

    def _authorize(self, request: WorkRequest, actor_email: str) -> User:
        """Check the actor holds the role required at the current step."""
        required = request.current_role
        actor = self.directory.get_user(actor_email)
        if actor is None:
            logger.warning(f"Unknown actor {actor_email} for request {request.request_id}")
            raise NotAuthorizedError(f"Unknown user: {actor_email}")
        if required is None or actor.role != required:
            if actor.role in request.approval_chain[:request.approval_step]:
                # Their step was approved by someone else since the caller looked
                raise AlreadyAdvancedError(
                    f"Request {request.request_id} already moved past the {actor.role} step "
                    f"(now step {request.approval_step}, awaiting {required})"
                )
            logger.warning(
                f"User {actor_email} ({actor.role}) cannot act on request {request.request_id} "
                f"awaiting {required}"
            )
            raise NotAuthorizedError(
                f"Request {request.request_id} awaits {required}, not {actor.role or 'no role'}"
            )
        return actor

    def _commit(self, request: WorkRequest, read_version: int) -> WorkRequest:
        try:
            return self.store.compare_and_swap(request, read_version)
        except AlreadyAdvancedError:
            logger.warning(f"Lost a race committing request {request.request_id} at version {read_version}")
            raise

    @staticmethod
    def _record(
        now: datetime,
        request: WorkRequest,
        actor: User | None,
        actor_email: str,
        action: AuditAction,
        role: str | None = None,
        reason: str = "",
    ) -> ApprovalRecord:
        return ApprovalRecord(
            timestamp=now.isoformat(),
            actor=actor_email,
            action=action,
            actor_name=actor.full_name if actor else "",
            role=role if role is not None else (actor.role if actor else ""),
            step=request.approval_step,
            reason=reason,
        )

    # -------------------------------------------------------------------------
    # Item side effects
    # -------------------------------------------------------------------------

    def _apply_approval_effects(self, request: WorkRequest) -> None:
        if request.request_type == RequestType.ITEM_CLAIM:
            self._update_item(request, _set_status(ItemStatus.CLAIMED))
        elif request.request_type.is_transfer or request.request_type == RequestType.MBTA_TO_AIRPORT_EMERGENCY:
            if not request.target_organization_id:
                return
            enterprise_id = request.target_enterprise_id
            if not enterprise_id:
                organization = self.directory.get_organization(request.target_organization_id)
                enterprise_id = organization.enterprise_id if organization else ""
            self._update_item(request, _move_custody(enterprise_id, request.target_organization_id))

    def _mark_item_pending_claim(self, request: WorkRequest) -> None:
        def mark(item: Item) -> bool:
            if item.status != ItemStatus.OPEN:
                return False
            item.status = ItemStatus.PENDING_CLAIM
            return True

        self._update_item(request, mark)

    def _release_item_claim(self, request: WorkRequest) -> None:
        """Reopen an item whose last open claim ended without approval."""
        item_id = request.details.item_id
        if self.get_active_claims_for_item(item_id):
            return

        def release(item: Item) -> bool:
            if item.status != ItemStatus.PENDING_CLAIM:
                return False
            item.status = ItemStatus.OPEN
            return True

        self._update_item(request, release)

    def _update_item(self, request: WorkRequest, mutate: Callable[[Item], bool]) -> None:
        """Apply a side effect to the request's item with re-read on version clash."""
        if self.items is None:
            return
        item_id = getattr(request.details, "item_id", "")

        for _ in range(ITEM_UPDATE_ATTEMPTS):
            item = self.items.find_by_id(item_id)
            if item is None:
                logger.info(f"Item {item_id} for request {request.request_id} is not tracked here, skipping")
                return
            if not mutate(item):
                return
            try:
                self.items.update(item)
                logger.info(f"Item {item_id} updated for request {request.request_id}")
                return
            except AlreadyAdvancedError:
                logger.warning(f"Item {item_id} changed concurrently, retrying")

        logger.error(
            f"Gave up updating item {item_id} for request {request.request_id} "
            f"after {ITEM_UPDATE_ATTEMPTS} attempts"
        )


def _set_status(status: ItemStatus) -> Callable[[Item], bool]:
    def mutate(item: Item) -> bool:
        if item.status == status:
            return False
        item.status = status
        return True
    return mutate


def _move_custody(enterprise_id: str, organization_id: str) -> Callable[[Item], bool]:
    def mutate(item: Item) -> bool:
        if item.organization_id == organization_id and item.enterprise_id == enterprise_id:
            return False
        item.enterprise_id = enterprise_id
        item.organization_id = organization_id
        return True
    return mutate


def _keep_emergency_progress(details: EmergencyDeliveryDetails, current: object) -> None:
    """Emergency progress fields are owned by the sub-actions, not by edits."""
    if not isinstance(current, EmergencyDeliveryDetails):
        return
    details.pickup_confirmed_by = current.pickup_confirmed_by
    details.pickup_confirmed_at = current.pickup_confirmed_at
    details.courier_name = current.courier_name
    details.courier_dispatched_at = current.courier_dispatched_at
    details.traveler_contacted_at = current.traveler_contacted_at
    details.contact_notes = current.contact_notes


def _keep_dispute_progress(details: DisputeDetails, current: object) -> None:
    """Votes, police findings and the award are owned by the dispute actions."""
    if not isinstance(current, DisputeDetails):
        return
    details.panel_votes = list(current.panel_votes)
    details.police_involved = current.police_involved
    details.police_officer_id = current.police_officer_id
    details.police_report_number = current.police_report_number
    details.police_findings = current.police_findings
    details.winning_claimant_id = current.winning_claimant_id
    details.resolution_reason = current.resolution_reason
    # Claim outcomes are set on resolution only
    statuses = {c.claimant_id: c.claim_status for c in current.claimants}
    details.claimants = [
        dataclasses.replace(c, claim_status=statuses.get(c.claimant_id, "PENDING"))
        for c in details.claimants
    ]
