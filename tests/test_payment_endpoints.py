"""Tests for the payment HTTP endpoints."""

from dataclasses import replace
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from resource_paywall.api.app import create_app
from resource_paywall.domain.catalog import UserRole
from tests.conftest import HOME_COLLEGE


@pytest.fixture
def client(container) -> TestClient:
    return TestClient(create_app(container))


def _headers(user_id) -> dict[str, str]:  # type: ignore[no-untyped-def]
    return {"X-User-Id": str(user_id)}


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_initiate_and_verify_unlocks_resource(client, directory, catalog) -> None:
    user = directory.add()
    resource = catalog.add()

    created = client.post(
        f"/resources/{resource.id}/payments", headers=_headers(user.id)
    )
    assert created.status_code == 201
    session = created.json()["payment_session"]
    assert session["status"] == "PENDING"
    assert session["amount"] == "10.00"

    processing = client.post(f"/payments/{session['session_id']}/process")
    assert processing.status_code == 202
    assert processing.json()["payment_session"]["status"] == "PROCESSING"

    fetched = client.get(f"/payments/{session['session_id']}")
    assert fetched.json()["payment_session"]["status"] == "SUCCEEDED"

    access = client.get(f"/resources/{resource.id}/access", headers=_headers(user.id))
    assert access.json() == {
        "can_access": True,
        "requires_payment": True,
        "is_unlocked": True,
    }

    entitlements = client.get("/entitlements", headers=_headers(user.id)).json()
    assert entitlements["entitlements"][0]["source_session_id"] == (
        session["session_id"]
    )


def test_verify_with_explicit_failure(client, container, directory, catalog) -> None:
    user = directory.add()
    resource = catalog.add()
    session = container.payment_service.create_session(user.id, resource.id)
    container.payment_service.begin_processing(session.session_id)

    response = client.post(
        f"/payments/{session.session_id}/verify", json={"outcome": False}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["payment_session"]["status"] == "FAILED"
    assert body["entitlement"] is None


def test_verify_without_body_uses_simulated_outcome(
    client, container, directory, catalog
) -> None:
    user = directory.add()
    resource = catalog.add()
    session = container.payment_service.create_session(user.id, resource.id)
    container.payment_service.begin_processing(session.session_id)

    response = client.post(f"/payments/{session.session_id}/verify")

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["entitlement"]["user_id"] == str(user.id)


def test_verify_pending_session_is_conflict(
    client, container, directory, catalog
) -> None:
    user = directory.add()
    resource = catalog.add()
    session = container.payment_service.create_session(user.id, resource.id)

    response = client.post(
        f"/payments/{session.session_id}/verify", json={"outcome": True}
    )

    assert response.status_code == 409
    assert response.json()["error"] == "InvalidTransition"


def test_verify_expired_session_is_gone(
    client, container, clock, directory, catalog
) -> None:
    user = directory.add()
    resource = catalog.add()
    session = container.payment_service.create_session(user.id, resource.id)
    container.payment_service.begin_processing(session.session_id)
    clock.advance(16 * 60)

    response = client.post(
        f"/payments/{session.session_id}/verify", json={"outcome": True}
    )

    assert response.status_code == 410
    assert response.json()["error"] == "SessionExpired"


def test_unknown_session_is_not_found(client) -> None:
    response = client.get("/payments/pay_missing")

    assert response.status_code == 404
    assert response.json() == {
        "error": "NotFound",
        "message": "Payment session pay_missing not found",
    }


def test_initiate_denied_for_general_user(client, directory, catalog) -> None:
    user = directory.add(role=UserRole.GENERAL_USER)
    resource = catalog.add()

    response = client.post(
        f"/resources/{resource.id}/payments", headers=_headers(user.id)
    )

    assert response.status_code == 403
    assert response.json()["error"] == "AccessDenied"


def test_initiate_own_college_resource_is_already_entitled(
    client, directory, catalog
) -> None:
    user = directory.add()
    resource = catalog.add(college_id=HOME_COLLEGE)

    response = client.post(
        f"/resources/{resource.id}/payments", headers=_headers(user.id)
    )

    assert response.status_code == 409
    assert response.json()["error"] == "AlreadyEntitled"


def test_initiate_requires_user_header(client, catalog) -> None:
    response = client.post(f"/resources/{catalog.add().id}/payments")

    assert response.status_code == 422


def test_initiate_unknown_resource(client, directory) -> None:
    user = directory.add()

    response = client.post(f"/resources/{uuid4()}/payments", headers=_headers(user.id))

    assert response.status_code == 404


def test_free_unlock_twice_returns_same_entitlement(
    client, directory, catalog
) -> None:
    user = directory.add()
    resource = catalog.add()

    first = client.post(f"/resources/{resource.id}/unlock", headers=_headers(user.id))
    second = client.post(f"/resources/{resource.id}/unlock", headers=_headers(user.id))

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json() == second.json()
    assert first.json()["entitlement"]["source_session_id"] == "free_unlock"


def test_free_unlock_disabled(container, directory, catalog) -> None:
    container.payment_service = replace(
        container.payment_service, free_unlock_enabled=False
    )
    client = TestClient(create_app(container))
    user = directory.add()
    resource = catalog.add()

    response = client.post(
        f"/resources/{resource.id}/unlock", headers=_headers(user.id)
    )

    assert response.status_code == 403
    assert response.json()["error"] == "FreeUnlockDisabled"
