"""End-to-end tests for /users through the interceptor chain."""

import copy
import json
import logging

import httpx

from app.db.database import SessionLocal
from app.models.models import Address


def create(client, payload):
    resp = client.post("/users", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


def rider(user_payload, user_name, location="Morgantown, WV", batch_number=1):
    payload = copy.deepcopy(user_payload)
    payload.update(user_name=user_name, is_driver=False, is_accepting_rides=False)
    payload["batch"] = {"batch_number": batch_number, "batch_location": location}
    return payload


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestCrud:
    def test_add_user_returns_201(self, client, user_payload):
        data = create(client, user_payload)

        assert data["user_id"] > 0
        assert data["user_name"] == "jdriver"
        assert data["batch"] == {"batch_number": 1, "batch_location": "Morgantown, WV"}
        assert data["h_address"]["zip"] == "26505"

    def test_get_user_by_id(self, client, user_payload):
        created = create(client, user_payload)

        resp = client.get(f"/users/{created['user_id']}")

        assert resp.status_code == 200
        assert resp.json()["email"] == "john.driver@example.com"

    def test_get_missing_user_returns_404(self, client):
        resp = client.get("/users/999")
        assert resp.status_code == 404

    def test_non_positive_id_is_rejected(self, client):
        resp = client.get("/users/0")
        assert resp.status_code == 422
        assert resp.json()["detail"] == "Validation failed"

    def test_update_user(self, client, user_payload):
        created = create(client, user_payload)
        changed = dict(user_payload, first_name="Johnny", is_accepting_rides=False)

        resp = client.put(f"/users/{created['user_id']}", json=changed)

        assert resp.status_code == 200
        assert resp.json()["first_name"] == "Johnny"
        assert resp.json()["is_accepting_rides"] is False

    def test_update_missing_user_returns_404(self, client, user_payload):
        resp = client.put("/users/42", json=user_payload)
        assert resp.status_code == 404

    def test_delete_user(self, client, user_payload):
        created = create(client, user_payload)

        resp = client.delete(f"/users/{created['user_id']}")

        assert resp.status_code == 200
        assert resp.json() == f"User with id: {created['user_id']} was deleted"
        assert client.get(f"/users/{created['user_id']}").status_code == 404

    def test_delete_missing_user_returns_404(self, client):
        assert client.delete("/users/7").status_code == 404

    def test_replaced_and_deleted_addresses_are_removed(self, client, user_payload):
        def address_count():
            with SessionLocal() as db:
                return db.query(Address).count()

        created = create(client, dict(user_payload, w_address=dict(user_payload["h_address"], street="9 Work Rd")))
        assert address_count() == 2

        for _ in range(3):
            assert client.put(f"/users/{created['user_id']}", json=user_payload).status_code == 200
        assert address_count() == 1

        assert client.delete(f"/users/{created['user_id']}").status_code == 200
        assert address_count() == 0

    def test_invalid_dto_returns_field_messages(self, client, user_payload):
        payload = dict(user_payload, user_name="ab", phone_number="3045550100")

        resp = client.post("/users", json=payload)

        assert resp.status_code == 422
        errors = resp.json()["errors"]
        assert errors["user_name"] == "Number of characters must be between 3 and 12."
        assert errors["phone_number"] == "Phone number format is incorrect."

    def test_duplicate_user_name_fails_with_500(self, client, user_payload, records):
        create(client, user_payload)

        resp = client.post("/users", json=user_payload)

        assert resp.status_code == 500
        assert resp.json()["error_type"] == "database_constraint"
        assert len(records("exception")) == 1


class TestFilters:
    def test_filters(self, client, user_payload):
        create(client, user_payload)
        create(client, rider(user_payload, "rider1"))
        create(client, rider(user_payload, "rider2", location="Reston, VA", batch_number=2))

        all_users = client.get("/users").json()
        drivers = client.get("/users", params={"is-driver": "true"}).json()
        riders_in_reston = client.get("/users", params={"is-driver": "false", "location": "Reston, VA"}).json()
        by_name = client.get("/users", params={"username": "rider1"}).json()

        assert [u["user_name"] for u in all_users] == ["jdriver", "rider1", "rider2"]
        assert [u["user_name"] for u in drivers] == ["jdriver"]
        assert [u["user_name"] for u in riders_in_reston] == ["rider2"]
        assert [u["user_name"] for u in by_name] == ["rider1"]

    def test_username_with_symbols_is_rejected(self, client):
        resp = client.get("/users", params={"username": "bob;drop"})
        assert resp.status_code == 422


class TestRequestLogging:
    def test_access_and_payload_logged_once(self, client, user_payload, records):
        body = json.dumps(user_payload)
        resp = client.post("/users", content=body, headers={"content-type": "application/json"})
        assert resp.status_code == 201

        access = records("access")
        assert len(access) == 1
        assert " made a POST request to /users at " in access[0].getMessage()

        payload = records("payload")
        assert len(payload) == 1
        message = payload[0].getMessage()
        assert "UserController" in message
        assert "invoked UserController.add_user(" in message
        assert message.endswith("with payload " + body)

    def test_body_still_reaches_controller(self, client, user_payload):
        # The payload is read for logging first; validation must still see it
        data = create(client, user_payload)
        assert data["first_name"] == "John"

    def test_failure_logged_once_and_status_500(self, app, client, records):
        async def broken(db):
            raise RuntimeError("database unavailable")

        app.state.user_service.get_users = broken

        resp = client.get("/users")

        assert resp.status_code == 500
        assert resp.json()["error_type"] == "server_error"
        exceptions = records("exception")
        assert len(exceptions) == 1
        assert exceptions[0].levelno == logging.WARNING
        assert exceptions[0].getMessage().endswith("throwing: RuntimeError: database unavailable")

    def test_validation_errors_are_not_intercepted(self, client, records):
        resp = client.get("/users/-1")

        assert resp.status_code == 422
        assert records("access") == []
        assert records("exception") == []

    def test_timed_service_calls_are_logged(self, client, records):
        client.get("/users")

        performance = records("performance")
        assert len(performance) == 1
        assert "UserService.get_users(db" in performance[0].getMessage()


class TestTopFiveDrivers:
    def test_ranks_drivers_by_distance(self, client, user_payload, distance_handler):
        addresses = {}
        for i, distance in enumerate([9000, 1200, 5000]):
            payload = copy.deepcopy(user_payload)
            payload["user_name"] = f"driver{i}"
            payload["h_address"]["street"] = f"{i + 1} Main St"
            create(client, payload)
            addresses[f"{i + 1} Main St Morgantown, WV"] = distance

        def handler(request):
            destinations = request.url.params["destinations"].split("|")
            elements = [{"status": "OK", "distance": {"value": addresses[d]}} for d in destinations]
            return httpx.Response(200, json={"status": "OK", "rows": [{"elements": elements}]})

        distance_handler.state["handler"] = handler

        resp = client.get("/users/driver/200 University Ave Morgantown, WV")

        assert resp.status_code == 200
        assert [u["user_name"] for u in resp.json()] == ["driver1", "driver2", "driver0"]

    def test_no_drivers_returns_empty_list(self, client):
        resp = client.get("/users/driver/anywhere")
        assert resp.status_code == 200
        assert resp.json() == []

    def test_api_error_fails_with_500(self, client, user_payload, distance_handler, records):
        create(client, user_payload)
        distance_handler.state["handler"] = lambda request: httpx.Response(
            200, json={"status": "REQUEST_DENIED", "error_message": "bad key"}
        )

        resp = client.get("/users/driver/somewhere")

        assert resp.status_code == 500
        assert "DistanceMatrixError" in records("exception")[0].getMessage()
