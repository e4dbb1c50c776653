"""Shared fixtures for work request tests.

The directory mirrors a small network: two universities, the MBTA, Logan
Airport and a police department, with one approver per organization.
"""

from datetime import datetime, timedelta, timezone

import pytest

from lostfound_svc.directory.registry import DirectoryRegistry
from lostfound_svc.directory.types import Enterprise, EnterpriseType, Organization, User
from lostfound_svc.items.registry import ItemRegistry
from lostfound_svc.items.types import Item, ItemType
from lostfound_svc.workflow.policy import ApprovalPolicy
from lostfound_svc.workflow.service import WorkRequestService
from lostfound_svc.workflow.types import (
    ItemClaimDetails,
    RequestPriority,
    WorkRequest,
)


class FakeClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def directory():
    """Directory with one organization per enterprise type plus a second campus."""
    registry = DirectoryRegistry()

    registry.register_enterprise(Enterprise("UNI-A", "University A", EnterpriseType.UNIVERSITY))
    registry.register_enterprise(Enterprise("UNI-B", "University B", EnterpriseType.UNIVERSITY))
    registry.register_enterprise(Enterprise("MBTA", "MBTA", EnterpriseType.PUBLIC_TRANSIT))
    registry.register_enterprise(Enterprise("LOGAN", "Logan Airport", EnterpriseType.AIRPORT))
    registry.register_enterprise(Enterprise("BPD", "Boston Police", EnterpriseType.LAW_ENFORCEMENT))

    registry.register_organization(Organization("ORG-A", "Campus A Lost & Found", "UNI-A", approver_role="ORG-A_ROLE"))
    registry.register_organization(Organization("CAMPUS-B", "Campus B Lost & Found", "UNI-B"))
    registry.register_organization(Organization("MBTA-ORG", "Park Street Station", "MBTA"))
    registry.register_organization(Organization("LOGAN-ORG", "Terminal B", "LOGAN"))
    registry.register_organization(Organization("POLICE-ORG", "Evidence Unit", "BPD"))

    registry.register_user(User("student@a.edu", "Sam Student", "STUDENT", "ORG-A", "UNI-A"))
    registry.register_user(User("approver@a.edu", "Avery Approver", "ORG-A_ROLE", "ORG-A", "UNI-A"))
    registry.register_user(User("second.approver@a.edu", "Riley Approver", "ORG-A_ROLE", "ORG-A", "UNI-A"))
    registry.register_user(User("coordinator@b.edu", "Casey Coordinator", "CAMPUS_COORDINATOR", "CAMPUS-B", "UNI-B"))
    registry.register_user(User("manager@mbta.com", "Morgan Manager", "STATION_MANAGER", "MBTA-ORG", "MBTA"))
    registry.register_user(User("specialist@logan.com", "Lee Specialist", "AIRPORT_LOST_FOUND_SPECIALIST", "LOGAN-ORG", "LOGAN"))
    registry.register_user(User("officer@bpd.gov", "Oakley Officer", "POLICE", "POLICE-ORG", "BPD"))

    return registry


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def items():
    """Item registry holding one found wallet at campus A (ITEM-00001)."""
    registry = ItemRegistry()
    registry.create(Item(
        item_id="",
        title="Black leather wallet",
        category="Wallet",
        item_type=ItemType.FOUND,
        enterprise_id="UNI-A",
        organization_id="ORG-A",
        reported_by="approver@a.edu",
        keywords=["wallet", "Curry"],
        estimated_value=40.0,
    ))
    return registry


@pytest.fixture
def service(directory, items, clock):
    return WorkRequestService(directory, policy=ApprovalPolicy(), items=items, clock=clock)


@pytest.fixture
def make_claim():
    """Build an ITEM_CLAIM from a student at campus A against ORG-A."""

    def _make(**overrides) -> WorkRequest:
        fields = dict(
            details=ItemClaimDetails(
                item_id="ITEM-00001",
                item_name="Black leather wallet",
                claim_details="Lost it in the Curry food court on Monday",
                identifying_features="Initials S.S. embossed inside",
            ),
            requester_id="student@a.edu",
            requester_name="Sam Student",
            priority=RequestPriority.NORMAL,
            requester_enterprise_id="UNI-A",
            requester_organization_id="ORG-A",
            target_enterprise_id="UNI-A",
            target_organization_id="ORG-A",
            estimated_value=50.0,
        )
        fields.update(overrides)
        return WorkRequest(**fields)

    return _make
