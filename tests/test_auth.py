"""Tests for registration and login."""
from httpx import AsyncClient
from pymongo.errors import PyMongoError

import main


async def test_root_reports_liveness(client: AsyncClient):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.text == "Pilgrimage Management API is running..."


async def test_no_database_diagnostic_route(client: AsyncClient):
    response = await client.get("/test")
    assert response.status_code == 404


async def test_register_returns_token(client: AsyncClient, app):
    response = await client.post(
        "/api/auth/register",
        json={"name": "Alice", "email": "a@x.com", "password": "pw1"},
    )
    assert response.status_code == 201
    token = response.json()["token"]
    claim = app.state.tokens.verify(token)
    assert claim["id"]


async def test_register_stores_hashed_password_and_defaults(client: AsyncClient, db, alice_token):
    user = db["user"].find_one({"email": "a@x.com"})
    assert user["passwordHash"] != "pw1"
    assert "password" not in user
    assert user["role"] == "pilgrim"
    assert user["accessibilityNeeds"] == {"isDifferentlyAbled": False, "isSeniorCitizen": False}


async def test_register_twice_is_rejected(client: AsyncClient, db, alice_token):
    response = await client.post(
        "/api/auth/register",
        json={"name": "Alice Again", "email": "a@x.com", "password": "other"},
    )
    assert response.status_code == 400
    assert response.json() == {"msg": "User already exists"}
    assert db["user"].count_documents({"email": "a@x.com"}) == 1


async def test_register_email_is_case_insensitive(client: AsyncClient, db, alice_token):
    response = await client.post(
        "/api/auth/register",
        json={"name": "Alice", "email": "A@X.com", "password": "pw1"},
    )
    assert response.status_code == 400
    assert db["user"].count_documents({}) == 1


async def test_register_missing_field_is_400(client: AsyncClient, db):
    response = await client.post("/api/auth/register", json={"name": "Alice", "email": "a@x.com"})
    assert response.status_code == 400
    assert "password" in response.json()["msg"]
    assert db["user"].count_documents({}) == 0


async def test_login_returns_valid_token(client: AsyncClient, app, alice_token):
    response = await client.post("/api/auth/login", json={"email": "a@x.com", "password": "pw1"})
    assert response.status_code == 200
    assert app.state.tokens.verify(response.json()["token"]) == app.state.tokens.verify(alice_token)


async def test_login_failures_are_indistinguishable(client: AsyncClient, alice_token):
    wrong_password = await client.post("/api/auth/login", json={"email": "a@x.com", "password": "nope"})
    unknown_email = await client.post("/api/auth/login", json={"email": "zz@x.com", "password": "pw1"})
    malformed_email = await client.post("/api/auth/login", json={"email": "ghost", "password": "pw1"})

    assert wrong_password.status_code == unknown_email.status_code == malformed_email.status_code == 400
    assert wrong_password.content == unknown_email.content == malformed_email.content
    assert wrong_password.json() == {"msg": "Invalid Credentials"}


async def test_login_lookup_failure_is_generic_500(client: AsyncClient, monkeypatch, alice_token):
    def broken_find(*args, **kwargs):
        raise PyMongoError("secret detail")

    monkeypatch.setattr(main, "find_document", broken_find)

    response = await client.post("/api/auth/login", json={"email": "a@x.com", "password": "pw1"})

    assert response.status_code == 500
    assert response.json() == {"msg": "Server error"}
    assert "secret detail" not in response.text
