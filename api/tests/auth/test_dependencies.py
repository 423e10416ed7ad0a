"""Tests for auth dependencies over HTTP."""

from uuid import uuid4

from fastapi.testclient import TestClient

from src.auth.security import create_access_token


def test_malformed_header(client: TestClient) -> None:
    """Non-bearer schemes are treated as missing tokens."""
    response = client.get("/v1/enrollments/my", headers={"Authorization": "Basic abc"})

    assert response.status_code == 401
    assert response.json()["message"] == "Token de acesso nao fornecido"


def test_invalid_token(client: TestClient) -> None:
    """Garbage token is rejected."""
    response = client.get(
        "/v1/enrollments/my", headers={"Authorization": "Bearer invalid.token.here"}
    )

    assert response.status_code == 401
    assert response.json()["message"] == "Token invalido ou expirado"


def test_subject_must_be_uuid(client: TestClient) -> None:
    """Token whose subject is not a UUID is rejected."""
    token = create_access_token({"sub": "user-42", "role": "student"})

    response = client.get(
        "/v1/enrollments/my", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 401


def test_unknown_role_is_forbidden(client: TestClient) -> None:
    """Roles below student cannot enroll."""
    token = create_access_token({"sub": str(uuid4()), "role": "guest"})

    response = client.post(
        "/v1/enrollments",
        json={"course_id": str(uuid4())},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 403
