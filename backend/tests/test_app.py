"""Tests for application wiring: health check and the error envelope."""
from roomchat.errors import ChatError, Conflict, NotFound, Unauthenticated, ValidationError


def test_health(api_client):
    response = api_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_unknown_route_uses_error_envelope(api_client):
    response = api_client.get("/no-such-route")

    assert response.status_code == 404
    body = response.json()
    assert set(body) == {"statusCode", "timestamp", "path", "method", "message", "error"}
    assert body["statusCode"] == 404
    assert body["error"] == "Not Found"
    assert body["path"] == "/no-such-route"
    assert body["method"] == "GET"


def test_wrong_body_type_is_bad_request(api_client, make_user):
    _, token = make_user()

    response = api_client.post(
        "/rooms",
        json={"name": "General", "maxUsers": "lots"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Bad Request"
    assert any(m.startswith("maxUsers:") for m in body["message"])


def test_error_taxonomy_status_codes():
    assert ValidationError(["x"]).status_code == 400
    assert Unauthenticated().status_code == 401
    assert NotFound("gone").status_code == 404
    assert Conflict("taken").status_code == 409
    assert ChatError("boom").status_code == 500


def test_validation_error_keeps_every_message():
    exc = ValidationError(["name too short", "maxUsers minimum is 2"])
    assert exc.messages == ["name too short", "maxUsers minimum is 2"]
    assert str(exc) == "name too short; maxUsers minimum is 2"
    assert ValidationError("single").messages == ["single"]
