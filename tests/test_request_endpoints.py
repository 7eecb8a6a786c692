"""
End-to-end tests for the request lifecycle over HTTP.
"""

from uuid import uuid4

from tests.conftest import TestDataFactory, assert_error_code, register_and_login

ACCRA_LAT, ACCRA_LNG = TestDataFactory.ACCRA


def create_request(client, requester, **overrides) -> dict:
    response = client.post(
        "/api/requests",
        json=TestDataFactory.request_payload(**overrides),
        headers=requester["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()


def register_hospital(client) -> dict:
    manager = register_and_login(client, role="hospital", blood_group="O+", name="Korle Bu Admin")
    response = client.post(
        "/api/hospitals",
        json=TestDataFactory.hospital_payload(),
        headers=manager["headers"],
    )
    assert response.status_code == 201, response.text
    manager["hospital"] = response.json()
    return manager


class TestAuth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "connected"

    def test_register_and_login(self, client):
        session = register_and_login(client, blood_group="B-")
        assert session["token_type"] == "bearer"
        assert session["user"]["blood_group"] == "B-"
        assert session["user"]["availability"] is True
        assert len(session["user"]["badges"]) == 5

        me = client.get("/api/users/me", headers=session["headers"])
        assert me.status_code == 200
        assert me.json()["id"] == session["user"]["id"]

    def test_wrong_password(self, client):
        payload = TestDataFactory.user_payload()
        client.post("/api/users/register", json=payload)

        response = client.post(
            "/api/users/auth/login",
            json={"email": payload["email"], "password": "not-the-password"},
        )
        assert response.status_code == 401

    def test_duplicate_email(self, client):
        payload = TestDataFactory.user_payload()
        assert client.post("/api/users/register", json=payload).status_code == 201
        assert client.post("/api/users/register", json=payload).status_code == 400

    def test_admin_cannot_self_register(self, client):
        payload = TestDataFactory.user_payload(role="admin")
        assert client.post("/api/users/register", json=payload).status_code == 422

    def test_requests_need_a_token(self, client):
        assert client.get("/api/requests/all").status_code == 401
        assert client.get(
            "/api/requests/all", headers={"Authorization": "Bearer garbage"}
        ).status_code == 401


class TestDirectRequestFlow:
    def test_create_and_fetch(self, client):
        requester = register_and_login(client, blood_group="A+")
        created = create_request(client, requester, urgency="critical")

        assert created["status"] == "pending"
        assert created["origin"] == "requester"
        assert created["urgency"] == "critical"
        assert created["requester_id"] == requester["user"]["id"]
        assert created["location"] == {"latitude": ACCRA_LAT, "longitude": ACCRA_LNG}

        fetched = client.get(f"/api/requests/{created['id']}", headers=requester["headers"])
        assert fetched.status_code == 200
        assert fetched.json()["id"] == created["id"]

    def test_legacy_urgency_is_normalised(self, client):
        requester = register_and_login(client)
        created = create_request(client, requester, urgency="high")
        assert created["urgency"] == "critical"

    def test_units_out_of_range(self, client):
        requester = register_and_login(client)
        response = client.post(
            "/api/requests",
            json=TestDataFactory.request_payload(units_needed=11),
            headers=requester["headers"],
        )
        assert response.status_code == 422

    def test_full_lifecycle(self, client):
        requester = register_and_login(client, blood_group="A+", name="Yaw Asante")
        donor = register_and_login(client, blood_group="O-")
        created = create_request(client, requester)

        nearby = client.get(
            "/api/requests/nearby",
            params={"latitude": ACCRA_LAT, "longitude": ACCRA_LNG, "radius": 5},
            headers=donor["headers"],
        )
        assert nearby.status_code == 200
        assert [r["id"] for r in nearby.json()] == [created["id"]]
        assert nearby.json()[0]["distance_km"] == 0.0

        accepted = client.patch(
            f"/api/requests/{created['id']}/accept", headers=donor["headers"]
        )
        assert accepted.status_code == 200, accepted.text
        body = accepted.json()
        assert body["request"]["status"] == "accepted"
        assert body["request"]["donor_id"] == donor["user"]["id"]
        assert body["contact_details"]["requester_name"] == "Yaw Asante"
        assert body["contact_details"]["hospital_name"] == "Ridge Hospital"

        on_the_way = client.patch(
            f"/api/requests/{created['id']}/status",
            json={"status": "on_the_way"},
            headers=donor["headers"],
        )
        assert on_the_way.status_code == 200
        assert on_the_way.json()["status"] == "on_the_way"

        completed = client.post(
            f"/api/requests/{created['id']}/complete", headers=requester["headers"]
        )
        assert completed.status_code == 200
        assert completed.json()["status"] == "completed"

        stats = client.get("/api/requests/stats", headers=donor["headers"]).json()
        assert stats["total_donations"] == 1
        assert [r["id"] for r in stats["recent_donations"]] == [created["id"]]
        assert [b["name"] for b in stats["badges"] if b["earned"]] == ["First Donation"]

        me = client.get("/api/users/me", headers=donor["headers"]).json()
        assert me["total_donations"] == 1
        assert me["last_donation_date"] is not None

    def test_second_accept_is_unavailable(self, client):
        requester = register_and_login(client, blood_group="A+")
        first = register_and_login(client, blood_group="O-")
        second = register_and_login(client, blood_group="A+")
        created = create_request(client, requester)

        assert client.patch(
            f"/api/requests/{created['id']}/accept", headers=first["headers"]
        ).status_code == 200
        response = client.patch(
            f"/api/requests/{created['id']}/accept", headers=second["headers"]
        )
        assert_error_code(response, 409, "request_unavailable")

    def test_incompatible_donor(self, client):
        requester = register_and_login(client)
        donor = register_and_login(client, blood_group="AB+")
        created = create_request(client, requester, blood_group="O-")

        response = client.patch(
            f"/api/requests/{created['id']}/accept", headers=donor["headers"]
        )
        assert_error_code(response, 400, "incompatible_blood_type")

    def test_unavailable_donor(self, client):
        requester = register_and_login(client)
        donor = register_and_login(client, blood_group="O-")
        created = create_request(client, requester)

        toggled = client.patch(
            "/api/users/me/availability",
            json={"availability": False},
            headers=donor["headers"],
        )
        assert toggled.json()["availability"] is False

        response = client.patch(
            f"/api/requests/{created['id']}/accept", headers=donor["headers"]
        )
        assert_error_code(response, 400, "donor_unavailable")

    def test_cannot_accept_own_request(self, client):
        requester = register_and_login(client, blood_group="A+")
        created = create_request(client, requester)

        response = client.patch(
            f"/api/requests/{created['id']}/accept", headers=requester["headers"]
        )
        assert_error_code(response, 403, "forbidden")

    def test_unknown_request(self, client):
        donor = register_and_login(client)
        response = client.patch(f"/api/requests/{uuid4()}/accept", headers=donor["headers"])
        assert_error_code(response, 404, "not_found")

    def test_invalid_transition(self, client):
        requester = register_and_login(client)
        created = create_request(client, requester)

        response = client.patch(
            f"/api/requests/{created['id']}/status",
            json={"status": "completed"},
            headers=requester["headers"],
        )
        assert_error_code(response, 409, "invalid_transition")

    def test_cancel_with_reason(self, client):
        requester = register_and_login(client)
        created = create_request(client, requester)

        response = client.post(
            f"/api/requests/{created['id']}/cancel",
            json={"reason": "No longer needed"},
            headers=requester["headers"],
        )
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert response.json()["cancellation_reason"] == "No longer needed"

    def test_donor_completes_after_arriving(self, client):
        requester = register_and_login(client, blood_group="A+")
        donor = register_and_login(client, blood_group="O-")
        created = create_request(client, requester)
        client.patch(f"/api/requests/{created['id']}/accept", headers=donor["headers"])
        client.patch(
            f"/api/requests/{created['id']}/status",
            json={"status": "on_the_way"},
            headers=donor["headers"],
        )

        response = client.patch(
            f"/api/requests/{created['id']}/status",
            json={"status": "completed"},
            headers=donor["headers"],
        )
        assert response.status_code == 200, response.text
        assert response.json()["status"] == "completed"

        me = client.get("/api/users/me", headers=donor["headers"]).json()
        assert me["total_donations"] == 1

    def test_stranger_cannot_cancel(self, client):
        requester = register_and_login(client)
        stranger = register_and_login(client)
        created = create_request(client, requester)

        response = client.post(
            f"/api/requests/{created['id']}/cancel", headers=stranger["headers"]
        )
        assert_error_code(response, 403, "forbidden")

    def test_edit_then_delete(self, client):
        requester = register_and_login(client)
        created = create_request(client, requester)

        updated = client.put(
            f"/api/requests/{created['id']}",
            json={"units_needed": 5, "notes": "Surgery moved up"},
            headers=requester["headers"],
        )
        assert updated.status_code == 200
        assert updated.json()["units_needed"] == 5

        empty = client.put(
            f"/api/requests/{created['id']}", json={}, headers=requester["headers"]
        )
        assert empty.status_code == 422

        cleared = client.put(
            f"/api/requests/{created['id']}",
            json={"units_needed": None},
            headers=requester["headers"],
        )
        assert cleared.status_code == 422

        deleted = client.delete(f"/api/requests/{created['id']}", headers=requester["headers"])
        assert deleted.status_code == 204

        gone = client.get(f"/api/requests/{created['id']}", headers=requester["headers"])
        assert_error_code(gone, 404, "not_found")


class TestListings:
    def test_all_puts_critical_first(self, client):
        requester = register_and_login(client)
        viewer = register_and_login(client)
        normal = create_request(client, requester)
        critical = create_request(client, requester, urgency="critical")

        response = client.get("/api/requests/all", headers=viewer["headers"])
        assert response.status_code == 200
        ids = [r["id"] for r in response.json()["items"]]
        assert ids == [critical["id"], normal["id"]]
        assert response.json()["count"] == 2

    def test_compatible_excludes_own_and_incompatible(self, client):
        requester = register_and_login(client)
        donor = register_and_login(client, blood_group="A+")
        serviceable = create_request(client, requester, blood_group="AB+")
        create_request(client, requester, blood_group="O-")
        create_request(client, donor, blood_group="A+")

        response = client.get("/api/requests/compatible", headers=donor["headers"])
        assert [r["id"] for r in response.json()["items"]] == [serviceable["id"]]

    def test_my_requests_by_type(self, client):
        requester = register_and_login(client, blood_group="A+")
        donor = register_and_login(client, blood_group="O-")
        mine = create_request(client, donor)
        theirs = create_request(client, requester)
        client.patch(f"/api/requests/{theirs['id']}/accept", headers=donor["headers"])

        created = client.get(
            "/api/requests/my", params={"type": "created"}, headers=donor["headers"]
        ).json()
        accepted = client.get(
            "/api/requests/my", params={"type": "accepted"}, headers=donor["headers"]
        ).json()

        assert [r["id"] for r in created["items"]] == [mine["id"]]
        assert [r["id"] for r in accepted["items"]] == [theirs["id"]]

    def test_eligible_donors(self, client):
        requester = register_and_login(client, blood_group="A+")
        donor = register_and_login(client, blood_group="O-", name="Kofi Donor")
        register_and_login(client, blood_group="B+")
        client.patch(
            "/api/users/me/location",
            json={"latitude": ACCRA_LAT, "longitude": ACCRA_LNG},
            headers=donor["headers"],
        )
        created = create_request(client, requester)

        response = client.get(
            f"/api/requests/{created['id']}/donors", headers=requester["headers"]
        )
        assert response.status_code == 200
        matches = response.json()
        assert [m["name"] for m in matches] == ["Kofi Donor"]
        assert matches[0]["distance_km"] == 0.0

    def test_eligible_donors_hidden_from_others(self, client):
        requester = register_and_login(client)
        stranger = register_and_login(client)
        created = create_request(client, requester)

        response = client.get(
            f"/api/requests/{created['id']}/donors", headers=stranger["headers"]
        )
        assert_error_code(response, 403, "forbidden")


class TestHospitalFlow:
    def test_register_hospital(self, client):
        manager = register_hospital(client)
        assert manager["hospital"]["is_verified"] is False

        me = client.get("/api/hospitals/me", headers=manager["headers"])
        assert me.status_code == 200
        assert me.json()["id"] == manager["hospital"]["id"]

    def test_hospital_account_without_profile(self, client):
        manager = register_and_login(client, role="hospital")
        response = client.get("/api/hospitals/me", headers=manager["headers"])
        assert_error_code(response, 404, "not_found")

    def test_donor_cannot_use_hospital_endpoints(self, client):
        donor = register_and_login(client)
        response = client.post(
            "/api/hospitals/requests", json={"blood_group": "A+"}, headers=donor["headers"]
        )
        assert response.status_code == 403

    def test_confirm_and_complete(self, client):
        manager = register_hospital(client)
        donor = register_and_login(client, blood_group="O-")

        created = client.post(
            "/api/hospitals/requests",
            json={"blood_group": "B+", "patient_name": "Esi Owusu", "urgency": "critical"},
            headers=manager["headers"],
        )
        assert created.status_code == 201, created.text
        request = created.json()
        assert request["origin"] == "hospital"
        assert request["hospital_id"] == manager["hospital"]["id"]
        assert request["hospital_name"] == manager["hospital"]["hospital_name"]

        accepted = client.patch(f"/api/requests/{request['id']}/accept", headers=donor["headers"])
        assert accepted.status_code == 200
        assert accepted.json()["contact_details"]["requester_phone"] == "0302000000"

        # donors cannot confirm on the hospital's behalf
        assert_error_code(
            client.post(f"/api/requests/{request['id']}/confirm", headers=donor["headers"]),
            403,
            "forbidden",
        )

        confirmed = client.post(
            f"/api/requests/{request['id']}/confirm", headers=manager["headers"]
        )
        assert confirmed.status_code == 200
        assert confirmed.json()["status"] == "confirmed"

        completed = client.post(
            f"/api/requests/{request['id']}/complete", headers=manager["headers"]
        )
        assert completed.json()["status"] == "completed"

        me = client.get("/api/users/me", headers=donor["headers"]).json()
        assert me["total_donations"] == 1

    def test_requester_request_cannot_be_confirmed(self, client):
        manager = register_hospital(client)
        requester = register_and_login(client)
        donor = register_and_login(client, blood_group="O-")
        created = create_request(client, requester)
        client.patch(f"/api/requests/{created['id']}/accept", headers=donor["headers"])

        response = client.post(
            f"/api/requests/{created['id']}/confirm", headers=manager["headers"]
        )
        assert_error_code(response, 403, "forbidden")

    def test_paginated_listing(self, client):
        manager = register_hospital(client)
        for blood_group in ("A+", "B+", "O-"):
            client.post(
                "/api/hospitals/requests",
                json={"blood_group": blood_group},
                headers=manager["headers"],
            )

        page = client.get(
            "/api/hospitals/requests",
            params={"page": 1, "page_size": 2},
            headers=manager["headers"],
        ).json()
        assert page["total_items"] == 3
        assert page["total_pages"] == 2
        assert page["has_next"] is True
        assert len(page["items"]) == 2

        filtered = client.get(
            "/api/hospitals/requests",
            params={"blood_group": "O-"},
            headers=manager["headers"],
        ).json()
        assert filtered["total_items"] == 1
