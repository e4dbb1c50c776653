"""HTTP API tests using FastAPI's TestClient."""

import pytest
import yaml
from fastapi.testclient import TestClient

from lostfound_svc.config import Config
from lostfound_svc.directory import routes as directory_routes
from lostfound_svc.items import routes as item_routes
from lostfound_svc.main import app, build_service
from lostfound_svc.workflow import routes as request_routes


CLAIM_BODY = {
    "request_type": "ITEM_CLAIM",
    "requester_id": "student@a.edu",
    "requester_name": "Sam Student",
    "requester_enterprise_id": "UNI-A",
    "requester_organization_id": "ORG-A",
    "target_enterprise_id": "UNI-A",
    "target_organization_id": "ORG-A",
    "estimated_value": 750,
    "details": {
        "item_id": "ITEM-00001",
        "claim_details": "Lost at the food court",
        "identifying_features": "Initials inside",
    },
}


@pytest.fixture
def client(service, tmp_path):
    """Client against an app wired to the test service (lifespan not run)."""
    items_path = str(tmp_path / "items.yaml")
    request_routes.configure(service, yaml_path=str(tmp_path / "requests.yaml"), items_yaml_path=items_path)
    directory_routes.configure(service.directory)
    item_routes.configure(service.items, yaml_path=items_path)
    return TestClient(app)


def _create(client, **overrides) -> dict:
    response = client.post("/requests", json={**CLAIM_BODY, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateEndpoint:
    """POST /requests"""

    def test_create_claim(self, client):
        data = _create(client)
        assert data["request_id"] == "WR-000001"
        assert data["status"] == "PENDING"
        assert data["approval_chain"] == ["ORG-A_ROLE", "POLICE"]

    def test_missing_details_is_400(self, client):
        response = client.post("/requests", json={**CLAIM_BODY, "details": {"item_id": "ITEM-00001"}})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid request"
        assert "claim_details" in body["missing"]

    def test_unknown_target_is_422(self, client):
        response = client.post("/requests", json={**CLAIM_BODY, "target_organization_id": "NOPE"})
        assert response.status_code == 422
        assert response.json()["error"] == "Routing error"

    def test_auto_save_writes_file(self, client, tmp_path):
        _create(client)
        assert (tmp_path / "requests.yaml").exists()


class TestActionEndpoints:
    """Approve / reject / cancel over HTTP."""

    def test_approve_walks_chain(self, client):
        request_id = _create(client)["request_id"]

        first = client.post(f"/requests/{request_id}/approve", json={"actor": "approver@a.edu"})
        assert first.status_code == 200
        assert first.json()["status"] == "IN_PROGRESS"
        assert first.json()["current_role"] == "POLICE"

        second = client.post(f"/requests/{request_id}/approve", json={"actor": "officer@bpd.gov"})
        assert second.json()["status"] == "APPROVED"

        again = client.post(f"/requests/{request_id}/approve", json={"actor": "officer@bpd.gov"})
        assert again.status_code == 409

    def test_wrong_role_is_403(self, client):
        request_id = _create(client)["request_id"]
        response = client.post(f"/requests/{request_id}/approve", json={"actor": "officer@bpd.gov"})
        assert response.status_code == 403

    def test_stale_step_is_409(self, client):
        request_id = _create(client)["request_id"]
        client.post(f"/requests/{request_id}/approve", json={"actor": "approver@a.edu", "expected_step": 0})
        response = client.post(
            f"/requests/{request_id}/approve",
            json={"actor": "second.approver@a.edu", "expected_step": 0},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "Request already advanced"

    def test_reject_with_reason(self, client):
        request_id = _create(client)["request_id"]
        response = client.post(
            f"/requests/{request_id}/reject",
            json={"actor": "approver@a.edu", "reason": "item description mismatch"},
        )
        assert response.status_code == 200

        fetched = client.get(f"/requests/{request_id}").json()
        assert fetched["status"] == "REJECTED"
        assert fetched["rejection_reason"] == "item description mismatch"

    def test_cancel_by_requester(self, client):
        request_id = _create(client)["request_id"]
        response = client.post(f"/requests/{request_id}/cancel", json={"actor": "student@a.edu"})
        assert response.json()["status"] == "CANCELLED"

    def test_unknown_request_is_404(self, client):
        response = client.post("/requests/WR-404404/approve", json={"actor": "approver@a.edu"})
        assert response.status_code == 404
        assert client.get("/requests/WR-404404").status_code == 404

    def test_update_with_version(self, client):
        request_id = _create(client)["request_id"]
        current = client.get(f"/requests/{request_id}").json()

        response = client.put(
            f"/requests/{request_id}",
            json={"version": current["version"], "description": "Brown, not black", "actor": "student@a.edu"},
        )
        assert response.status_code == 200
        assert response.json()["description"] == "Brown, not black"

        stale = client.put(f"/requests/{request_id}", json={"version": current["version"], "description": "x"})
        assert stale.status_code == 409


class TestQueryEndpoints:
    """Queues, listings and directory browsing."""

    def test_role_queue(self, client):
        request_id = _create(client)["request_id"]

        queue = client.get("/requests/queue", params={"role": "ORG-A_ROLE", "organization_id": "ORG-A"}).json()
        assert [r["request_id"] for r in queue["requests"]] == [request_id]

        police = client.get("/requests/queue", params={"role": "POLICE"}).json()
        assert police["total"] == 0

    def test_mine(self, client):
        _create(client)
        data = client.get("/requests/mine", params={"email": "student@a.edu"}).json()
        assert data["total"] == 1

    def test_list_with_bad_status_is_400(self, client):
        assert client.get("/requests", params={"status": "DONE"}).status_code == 400

    def test_stats(self, client):
        _create(client)
        data = client.get("/requests/stats").json()
        assert data["total"] == 1
        assert data["pending"] == 1

    def test_directory_organizations(self, client):
        data = client.get("/directory/organizations", params={"enterprise_id": "UNI-A"}).json()
        assert [o["organization_id"] for o in data["organizations"]] == ["ORG-A"]

    def test_health(self, client):
        data = client.get("/health").json()
        assert "requests" in data


DISPUTE_BODY = {
    "request_type": "MULTI_ENTERPRISE_DISPUTE",
    "requester_id": "approver@a.edu",
    "details": {
        "item_id": "ITEM-9",
        "item_name": "Silver laptop",
        "dispute_reason": "Both describe the stickers",
        "claimants": [
            {"claimant_id": "a@a.edu", "name": "Sam", "enterprise_id": "UNI-A", "organization_id": "ORG-A"},
            {"claimant_id": "m@mbta.com", "name": "Max", "enterprise_id": "MBTA", "organization_id": "MBTA-ORG"},
        ],
    },
}


class TestDisputeEndpoints:
    """Panel votes, police findings and resolution over HTTP."""

    def test_dispute_flow(self, client):
        response = client.post("/requests", json=DISPUTE_BODY)
        assert response.status_code == 201
        request_id = response.json()["request_id"]

        vote = client.post(
            f"/requests/{request_id}/dispute-vote",
            json={"actor": "manager@mbta.com", "claimant_id": "m@mbta.com", "reason": "Receipt"},
        )
        assert vote.status_code == 200
        assert vote.json()["details"]["panel_votes"][0]["claimant_id"] == "m@mbta.com"

        findings = client.post(
            f"/requests/{request_id}/police-findings",
            json={"actor": "officer@bpd.gov", "report_number": "R-7", "findings": "Serial matches"},
        )
        assert findings.json()["details"]["police_involved"] is True

        early = client.post(
            f"/requests/{request_id}/resolve-dispute",
            json={"actor": "coordinator@b.edu", "winning_claimant_id": "m@mbta.com", "reason": "Receipt"},
        )
        assert early.status_code == 400

        client.post(f"/requests/{request_id}/approve", json={"actor": "coordinator@b.edu"})
        client.post(f"/requests/{request_id}/approve", json={"actor": "manager@mbta.com"})
        done = client.post(
            f"/requests/{request_id}/resolve-dispute",
            json={"actor": "officer@bpd.gov", "winning_claimant_id": "m@mbta.com", "reason": "Receipt", "expected_step": 2},
        )
        assert done.status_code == 200
        assert done.json()["status"] == "APPROVED"
        assert done.json()["details"]["winning_claimant_id"] == "m@mbta.com"

    def test_vote_by_outsider_is_403(self, client):
        request_id = client.post("/requests", json=DISPUTE_BODY).json()["request_id"]
        response = client.post(
            f"/requests/{request_id}/dispute-vote",
            json={"actor": "specialist@logan.com", "claimant_id": "a@a.edu"},
        )
        assert response.status_code == 403

    def test_dispute_listings(self, client):
        request_id = client.post("/requests", json=DISPUTE_BODY).json()["request_id"]
        _create(client)

        assert client.get("/requests/disputes").json()["total"] == 1
        by_item = client.get("/requests/disputes", params={"item_id": "ITEM-9"}).json()
        assert [r["request_id"] for r in by_item["requests"]] == [request_id]
        assert client.get("/requests/disputes", params={"email": "m@mbta.com"}).json()["total"] == 1
        assert client.get("/requests/disputes", params={"requiring_police": True}).json()["total"] == 0


class TestPersistenceEndpoints:
    """Save, reload and item auto-save."""

    def test_reload_from_saved_file(self, client, tmp_path):
        first = _create(client)["request_id"]
        saved = (tmp_path / "requests.yaml").read_text()
        _create(client)
        (tmp_path / "requests.yaml").write_text(saved)

        response = client.post("/requests/reload")

        assert response.json()["count"] == 1
        listed = client.get("/requests").json()
        assert [r["request_id"] for r in listed["requests"]] == [first]

    def test_approval_saves_item_status(self, client, tmp_path):
        request_id = _create(client, estimated_value=50)["request_id"]
        client.post(f"/requests/{request_id}/approve", json={"actor": "approver@a.edu"})

        with open(tmp_path / "items.yaml") as f:
            data = yaml.safe_load(f)
        assert data["items"][0]["item_id"] == "ITEM-00001"
        assert data["items"][0]["status"] == "CLAIMED"


class TestItemEndpoints:
    """GET / POST /items"""

    def test_list_and_get(self, client):
        data = client.get("/items").json()
        assert [i["item_id"] for i in data["items"]] == ["ITEM-00001"]
        assert client.get("/items", params={"keyword": "curry"}).json()["total"] == 1
        assert client.get("/items", params={"reported_by": "nobody@a.edu"}).json()["total"] == 0

        item = client.get("/items/ITEM-00001").json()
        assert item["status"] == "OPEN"
        assert client.get("/items/ITEM-99999").status_code == 404

    def test_report_item(self, client, tmp_path):
        response = client.post(
            "/items",
            json={"title": "Red scarf", "reported_by": "approver@a.edu", "organization_id": "ORG-A"},
        )
        assert response.status_code == 201
        assert response.json()["item_id"] == "ITEM-00002"
        assert (tmp_path / "items.yaml").exists()

    def test_claim_shows_on_item(self, client):
        _create(client)
        assert client.get("/items/ITEM-00001").json()["status"] == "PENDING_CLAIM"


class TestBuildService:
    """The service is assembled from the configured files."""

    def test_items_and_requests_are_loaded(self, tmp_path):
        (tmp_path / "items.yaml").write_text(
            "items:\n  - item_id: ITEM-00003\n    title: Umbrella\n    organization_id: ORG-A\n    version: 2\n"
        )
        config = Config.from_dict({
            "storage": {
                "requests_file": str(tmp_path / "requests.yaml"),
                "items_file": str(tmp_path / "items.yaml"),
            },
            "directory": {"definition_file": str(tmp_path / "absent-directory.yaml")},
        })

        service, requests_path, items_path = build_service(config)

        assert service.items.find_by_id("ITEM-00003").version == 2
        assert requests_path == str(tmp_path / "requests.yaml")
        assert items_path == str(tmp_path / "items.yaml")

    def test_auto_save_off(self, tmp_path):
        config = Config.from_dict({
            "storage": {"auto_save": False, "requests_file": None, "items_file": None},
            "directory": {"definition_file": str(tmp_path / "absent-directory.yaml")},
        })
        _, requests_path, items_path = build_service(config)
        assert (requests_path, items_path) == (None, None)
