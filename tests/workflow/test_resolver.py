"""Tests for approval chain resolution."""

import pytest

from lostfound_svc.errors import RoutingError
from lostfound_svc.workflow.policy import ApprovalPolicy
from lostfound_svc.workflow.resolver import ApprovalChainResolver
from lostfound_svc.workflow.types import (
    AirportToUniversityTransferDetails,
    Claimant,
    CrossCampusTransferDetails,
    DisputeDetails,
    EmergencyDeliveryDetails,
    PoliceEvidenceDetails,
    RequestType,
    TransitToUniversityTransferDetails,
    WorkRequest,
)


@pytest.fixture
def resolver(directory):
    return ApprovalChainResolver(directory)


class TestItemClaimChain:
    """Claims: target approver, then holding specialist, then police."""

    def test_low_value_claim_needs_target_role_only(self, resolver, make_claim):
        assert resolver.resolve(make_claim(estimated_value=50.0)) == ["ORG-A_ROLE"]

    def test_high_value_claim_adds_police(self, resolver, make_claim):
        assert resolver.resolve(make_claim(estimated_value=750.0)) == ["ORG-A_ROLE", "POLICE"]

    def test_police_threshold_is_inclusive(self, resolver, make_claim):
        assert resolver.resolve(make_claim(estimated_value=500.0)) == ["ORG-A_ROLE", "POLICE"]
        assert resolver.resolve(make_claim(estimated_value=499.99)) == ["ORG-A_ROLE"]

    def test_threshold_comes_from_policy(self, directory, make_claim):
        resolver = ApprovalChainResolver(directory, ApprovalPolicy(police_value_threshold=1000.0))
        assert resolver.resolve(make_claim(estimated_value=750.0)) == ["ORG-A_ROLE"]

    def test_item_held_by_other_enterprise_type_adds_specialist(self, resolver, make_claim):
        claim = make_claim(
            target_enterprise_id="UNI-B",
            target_organization_id="CAMPUS-B",
            item_holding_enterprise_type="AIRPORT",
            item_holding_organization_id="LOGAN-ORG",
        )
        assert resolver.resolve(claim) == ["CAMPUS_COORDINATOR", "AIRPORT_LOST_FOUND_SPECIALIST"]

    def test_all_three_steps_in_order(self, resolver, make_claim):
        claim = make_claim(item_holding_enterprise_type="PUBLIC_TRANSIT", estimated_value=900.0)
        assert resolver.resolve(claim) == ["ORG-A_ROLE", "STATION_MANAGER", "POLICE"]

    def test_same_enterprise_type_adds_no_specialist(self, resolver, make_claim):
        claim = make_claim(item_holding_enterprise_type="UNIVERSITY")
        assert resolver.resolve(claim) == ["ORG-A_ROLE"]

    def test_roles_are_not_repeated(self, resolver, make_claim):
        """A high-value claim at the police organization needs POLICE once."""
        claim = make_claim(
            target_enterprise_id="BPD",
            target_organization_id="POLICE-ORG",
            estimated_value=750.0,
        )
        assert resolver.resolve(claim) == ["POLICE"]

    def test_requester_enterprise_derived_from_organization(self, resolver, make_claim):
        claim = make_claim(requester_enterprise_id="", item_holding_enterprise_type="AIRPORT")
        assert resolver.resolve(claim) == ["ORG-A_ROLE", "AIRPORT_LOST_FOUND_SPECIALIST"]

    def test_resolution_is_deterministic(self, resolver, make_claim):
        claim = make_claim(item_holding_enterprise_type="AIRPORT", estimated_value=600.0)
        assert resolver.resolve(claim) == resolver.resolve(claim)


class TestTransferAndFixedChains:
    """Transfers route to the destination; other types use policy chains."""

    def test_cross_campus_transfer_routes_to_destination(self, resolver):
        request = WorkRequest(
            details=CrossCampusTransferDetails(item_id="ITEM-00001", pickup_location="GSU desk", student_name="Sam"),
            requester_id="approver@a.edu",
            requester_organization_id="ORG-A",
            target_enterprise_id="UNI-B",
            target_organization_id="CAMPUS-B",
        )
        assert resolver.resolve(request) == ["CAMPUS_COORDINATOR"]

    def test_transit_transfer_uses_org_approver_role(self, resolver):
        request = WorkRequest(
            details=TransitToUniversityTransferDetails(
                item_id="ITEM-9", station_name="Park Street", student_id="001", campus_pickup_location="Curry",
            ),
            requester_id="manager@mbta.com",
            requester_organization_id="MBTA-ORG",
            target_organization_id="ORG-A",
        )
        assert resolver.resolve(request) == ["ORG-A_ROLE"]

    def test_airport_transfer(self, resolver):
        request = WorkRequest(
            details=AirportToUniversityTransferDetails(
                item_id="ITEM-9", terminal_number="B", airport_incident_number="INC-1",
                student_id="001", campus_pickup_location="GSU",
            ),
            requester_id="specialist@logan.com",
            target_organization_id="CAMPUS-B",
        )
        assert resolver.resolve(request) == ["CAMPUS_COORDINATOR"]

    def test_emergency_chain(self, resolver):
        request = WorkRequest(
            details=EmergencyDeliveryDetails(item_id="ITEM-9", station_name="Airport", flight_number="DL 123"),
            requester_id="manager@mbta.com",
            target_organization_id="LOGAN-ORG",
        )
        assert resolver.resolve(request) == ["AIRPORT_LOST_FOUND_SPECIALIST"]

    def test_police_evidence_chain(self, resolver):
        request = WorkRequest(
            details=PoliceEvidenceDetails(item_id="ITEM-9", verification_reason="Stolen check"),
            requester_id="approver@a.edu",
        )
        assert resolver.resolve(request) == ["POLICE"]

    def test_dispute_chain_covers_each_enterprise_then_police(self, resolver):
        request = WorkRequest(
            details=DisputeDetails(
                item_id="ITEM-9",
                dispute_reason="Two owners",
                claimants=[
                    Claimant("a@a.edu", enterprise_id="UNI-A", organization_id="ORG-A"),
                    Claimant("m@mbta.com", enterprise_id="MBTA", organization_id="MBTA-ORG"),
                    Claimant("b@a.edu", enterprise_id="UNI-A", organization_id="ORG-A"),
                ],
            ),
            requester_id="approver@a.edu",
        )
        assert resolver.resolve(request) == ["CAMPUS_COORDINATOR", "STATION_MANAGER", "POLICE"]


class TestRoutingFailures:
    """Unresolvable routing fails closed."""

    def test_unknown_target_organization(self, resolver, make_claim):
        with pytest.raises(RoutingError, match="not found"):
            resolver.resolve(make_claim(target_enterprise_id="", target_organization_id="NOPE"))

    def test_missing_target_organization(self, resolver, make_claim):
        with pytest.raises(RoutingError):
            resolver.resolve(make_claim(target_organization_id=""))

    def test_organization_outside_target_enterprise(self, resolver, make_claim):
        with pytest.raises(RoutingError, match="does not belong"):
            resolver.resolve(make_claim(target_enterprise_id="MBTA"))

    def test_unknown_requester_enterprise(self, resolver, make_claim):
        claim = make_claim(
            requester_enterprise_id="",
            requester_organization_id="",
            item_holding_enterprise_type="AIRPORT",
        )
        with pytest.raises(RoutingError, match="Requester enterprise"):
            resolver.resolve(claim)

    def test_unmapped_holding_type(self, resolver, make_claim):
        with pytest.raises(RoutingError, match="specialist"):
            resolver.resolve(make_claim(item_holding_enterprise_type="MUSEUM"))

    def test_unknown_disputing_enterprise(self, resolver):
        request = WorkRequest(
            details=DisputeDetails(
                item_id="ITEM-9",
                dispute_reason="Two owners",
                claimants=[Claimant("x", enterprise_id="GHOST"), Claimant("y", enterprise_id="UNI-A")],
            ),
            requester_id="approver@a.edu",
        )
        with pytest.raises(RoutingError, match="GHOST"):
            resolver.resolve(request)

    def test_empty_policy_chain(self, directory):
        resolver = ApprovalChainResolver(directory, ApprovalPolicy(police_evidence_chain=[]))
        request = WorkRequest(
            details=PoliceEvidenceDetails(item_id="ITEM-9", verification_reason="check"),
            requester_id="approver@a.edu",
        )
        with pytest.raises(RoutingError, match="no approvers"):
            resolver.resolve(request)


class TestPolicy:
    """Policy loading from config dictionaries."""

    def test_from_dict_merges_specialist_roles(self):
        policy = ApprovalPolicy.from_dict({
            "police_value_threshold": 250,
            "specialist_roles": {"airport": "TERMINAL_SUPERVISOR"},
        })
        assert policy.police_value_threshold == 250.0
        assert policy.specialist_role_for("AIRPORT") == "TERMINAL_SUPERVISOR"
        assert policy.specialist_role_for("UNIVERSITY") == "CAMPUS_COORDINATOR"

    def test_every_request_type_is_handled(self, resolver):
        assert set(resolver._handlers) == set(RequestType)
