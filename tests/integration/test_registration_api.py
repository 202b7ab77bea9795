"""HTTP-level tests for the registration API."""
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from core.config import Settings
from main import create_app

BASE = "/api/registrations"


def create(client, payload, **kwargs):
    return client.post(BASE, json=payload, **kwargs)


class TestCreateRegistration:
    def test_created_envelope(self, client, make_payload):
        response = create(client, make_payload("anchor-partner"))

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Registration submitted successfully"
        assert set(body["data"]) == {"id", "registrationType", "submissionDate"}
        assert body["data"]["registrationType"] == "anchor-partner"

    def test_attend_stores_no_type_specific_fields(self, client, make_payload):
        payload = make_payload(
            "attend",
            sponsorshipTier="tier2",
            participationType="speaker",
            ventureStage="scaling",
            teamSize=12,
            fundingNeeds="over-50m",
        )
        registration_id = create(client, payload).json()["data"]["id"]

        record = client.get(f"{BASE}/{registration_id}").json()["data"]

        for field in ("sponsorshipTier", "participationType", "ventureStage", "location",
                      "projectDescription", "fundingNeeds", "guidedLabsInterest"):
            assert record[field] == ""
        assert record["teamSize"] is None
        assert record["registrationTypeFormatted"] == "Attendee"

    def test_validation_errors_are_collected(self, client, make_payload):
        payload = make_payload("anchor-partner", email="nope", fullName="X")
        del payload["participationType"]

        response = create(client, payload)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation errors"
        assert {e["field"] for e in body["errors"]} == {"email", "fullName", "participationType"}

    def test_non_positive_team_size_is_rejected(self, client, make_payload):
        response = create(client, make_payload("series-venture", teamSize=0))

        assert response.status_code == 400
        assert [e["field"] for e in response.json()["errors"]] == ["teamSize"]

    @pytest.mark.parametrize("team_size", [10**30, True])
    def test_out_of_range_team_size_is_a_field_error(self, client, make_payload, team_size):
        response = create(client, make_payload("series-venture", teamSize=team_size))

        assert response.status_code == 400
        assert [e["field"] for e in response.json()["errors"]] == ["teamSize"]

    def test_duplicate_is_conflict_with_reference(self, client, make_payload):
        first = create(client, make_payload("series-venture")).json()["data"]

        response = create(client, make_payload("series-venture", fullName="Someone Else"))

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["existingRegistration"]["id"] == first["id"]
        assert "series-venture" in body["message"]

    def test_email_duplicate_check_ignores_case(self, client, make_payload):
        assert create(client, make_payload(email="Ada.Okafor@Example.com")).status_code == 201
        assert create(client, make_payload(email="ada.okafor@example.com")).status_code == 409

    def test_same_email_under_two_types(self, client, make_payload):
        assert create(client, make_payload("attend")).status_code == 201
        assert create(client, make_payload("anchor-partner")).status_code == 201

    def test_input_is_sanitized_before_validation(self, client, make_payload):
        payload = make_payload(
            fullName="<script>alert('x')</script>Ada Okafor",
            organization="Delta onmouseover=Lab",
        )
        registration_id = create(client, payload).json()["data"]["id"]

        record = client.get(f"{BASE}/{registration_id}").json()["data"]

        assert record["fullName"] == "Ada Okafor"
        assert record["organization"] == "Delta Lab"

    def test_request_metadata_is_captured(self, client, make_payload):
        response = create(
            client,
            make_payload(),
            headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "User-Agent": "RegistrationForm/2.0"},
        )

        record = client.get(f"{BASE}/{response.json()['data']['id']}").json()["data"]

        assert record["ipAddress"] == "203.0.113.7"
        assert record["userAgent"] == "RegistrationForm/2.0"
        assert record["status"] == "pending"

    def test_invalid_json(self, client):
        response = client.post(BASE, content="{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid JSON in request body"}


class TestQueryRegistrations:
    def test_list_with_search_and_pagination(self, client, make_payload):
        create(client, make_payload(email="one@example.com", organization="Acme Corp"))
        create(client, make_payload(email="two@example.com", organization="Globex"))

        response = client.get(BASE, params={"search": "acme"})

        assert response.status_code == 200
        body = response.json()
        assert [r["organization"] for r in body["data"]] == ["Acme Corp"]
        assert body["pagination"]["totalRecords"] == 1
        assert body["pagination"]["currentPage"] == 1

    def test_list_filters_by_type(self, client, make_payload):
        create(client, make_payload("attend"))
        create(client, make_payload("series-venture"))

        body = client.get(BASE, params={"registrationType": "series-venture"}).json()

        assert [r["registrationType"] for r in body["data"]] == ["series-venture"]
        assert body["data"][0]["registrationTypeFormatted"] == "Series Venture"

    def test_non_numeric_page_defaults(self, client):
        body = client.get(BASE, params={"page": "abc", "limit": "5000"}).json()

        assert body["pagination"]["currentPage"] == 1
        assert body["pagination"]["limit"] == 100

    def test_huge_page_number_returns_empty_page(self, client, make_payload):
        create(client, make_payload())

        response = client.get(BASE, params={"page": "1000000000000000000"})

        assert response.status_code == 200
        body = response.json()
        assert body["data"] == []
        assert body["pagination"]["totalRecords"] == 1
        assert body["pagination"]["hasNextPage"] is False

    def test_bad_date_filter(self, client):
        response = client.get(BASE, params={"startDate": "not-a-date"})

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_get_by_id_errors(self, client):
        bad = client.get(f"{BASE}/not-an-id")
        missing = client.get(f"{BASE}/{ObjectId()}")

        assert bad.status_code == 400
        assert bad.json()["message"] == "Invalid registration ID"
        assert missing.status_code == 404
        assert missing.json()["message"] == "Registration not found"

    def test_anchor_partner_tier_description(self, client, make_payload):
        registration_id = create(client, make_payload("anchor-partner", sponsorshipTier="community")).json()["data"]["id"]

        record = client.get(f"{BASE}/{registration_id}").json()["data"]

        assert record["sponsorshipTierDescription"].startswith("Community Sponsor")


class TestStats:
    def test_empty_stats(self, client):
        body = client.get(f"{BASE}/stats").json()

        assert body["success"] is True
        assert set(body["data"]["overview"].values()) == {0}
        assert body["data"]["sponsorshipTiers"] == []
        assert body["data"]["recentRegistrations"] == 0

    def test_stats_after_registrations(self, client, make_payload):
        create(client, make_payload("anchor-partner"))
        create(client, make_payload("series-venture"))

        data = client.get(f"{BASE}/stats").json()["data"]

        assert data["overview"]["totalRegistrations"] == 2
        assert data["overview"]["anchorPartners"] == 1
        assert data["sponsorshipTiers"] == [{"_id": "tier1", "count": 1}]
        assert data["fundingNeeds"] == [{"_id": "5m-10m", "count": 1}]
        assert data["recentRegistrations"] == 2


class TestStatusAndDelete:
    def test_status_update_round_trip(self, client, make_payload):
        registration_id = create(client, make_payload()).json()["data"]["id"]

        response = client.put(f"{BASE}/{registration_id}/status", json={"status": "approved"})

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "approved"
        assert client.get(f"{BASE}/{registration_id}").json()["data"]["status"] == "approved"

    def test_unknown_status_is_rejected(self, client, make_payload):
        registration_id = create(client, make_payload()).json()["data"]["id"]

        response = client.put(f"{BASE}/{registration_id}/status", json={"status": "archived"})

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "status"

    def test_status_update_missing_and_malformed(self, client):
        assert client.put(f"{BASE}/{ObjectId()}/status", json={"status": "reviewed"}).status_code == 404
        assert client.put(f"{BASE}/bogus/status", json={"status": "reviewed"}).status_code == 400

    async def test_status_update_is_audited(self, client, mock_db, make_payload):
        registration_id = create(client, make_payload()).json()["data"]["id"]

        client.put(f"{BASE}/{registration_id}/status", json={"status": "rejected"})

        entry = await mock_db["audit"].find_one({"entity_id": registration_id})
        assert entry["action"] == "status_update"
        assert entry["before_data"] == {"status": "pending"}
        assert entry["after_data"] == {"status": "rejected"}

    def test_delete_then_get(self, client, make_payload):
        registration_id = create(client, make_payload("series-venture")).json()["data"]["id"]

        response = client.delete(f"{BASE}/{registration_id}")

        assert response.status_code == 200
        assert response.json()["data"] == {
            "id": registration_id,
            "email": "ada.okafor@example.com",
            "registrationType": "series-venture",
        }
        assert client.get(f"{BASE}/{registration_id}").status_code == 404
        assert client.delete(f"{BASE}/{registration_id}").status_code == 404


class TestSystemEndpoints:
    def test_health(self, client):
        body = client.get("/health").json()

        assert body["success"] is True
        assert body["environment"] == "test"
        assert "timestamp" in body

    def test_discovery_lists_routes_and_parameters(self, client):
        body = client.get("/api").json()

        assert "POST /api/registrations" in body["endpoints"]["registrations"]
        assert "fundingNeeds" in body["queryParameters"]["GET /api/registrations"]

    def test_unknown_route(self, client):
        response = client.get("/api/unknown")

        assert response.status_code == 404
        assert response.json()["message"] == "API endpoint not found"

    def test_security_headers(self, client):
        response = client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "X-Process-Time" in response.headers


class TestRateLimiting:
    @pytest.fixture
    def limited_client(self, store):
        settings = Settings(ENVIRONMENT="test", REGISTRATION_RATE_LIMIT=2, GENERAL_RATE_LIMIT=50)
        with TestClient(create_app(settings=settings, store=store)) as test_client:
            yield test_client

    def test_submission_cap_per_address(self, limited_client, make_payload):
        for i in range(2):
            create(limited_client, make_payload(email=f"user{i}@example.com"))

        response = create(limited_client, make_payload(email="user9@example.com"))

        assert response.status_code == 429
        assert response.json()["success"] is False
        assert "Retry-After" in response.headers

    def test_cap_is_per_address(self, limited_client, make_payload):
        for i in range(2):
            create(limited_client, make_payload(email=f"user{i}@example.com"))

        response = create(
            limited_client,
            make_payload(email="other@example.com"),
            headers={"X-Forwarded-For": "198.51.100.4"},
        )

        assert response.status_code == 201
