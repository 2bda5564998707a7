from conftest import bearer, run
from supportdesk.models import USER
from supportdesk.services import licenses

NEW_USER = {"name": "Zara", "email": "Zara@Example.com", "password": "secret123"}


def test_register_requires_license_key(client):
    res = client.post("/api/auth/register", json=NEW_USER)

    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "License key is required for registration"}


def test_register_rejects_unknown_license(client):
    res = client.post("/api/auth/register", json={**NEW_USER, "licenseKey": "TSK-NOPE-NOPE-NOPE"})
    assert res.status_code == 400
    assert res.json()["success"] is False


def test_register_redeems_license(client, mock_db, license_code):
    res = client.post("/api/auth/register", json={**NEW_USER, "licenseKey": license_code})

    assert res.status_code == 201
    data = res.json()["data"]
    assert data["token"]
    assert data["user"]["role"] == USER
    assert data["user"]["email"] == "zara@example.com"

    lic = run(licenses.find_by_code(mock_db, license_code))
    assert lic["isUsed"] is True
    assert str(lic["usedBy"]) == data["user"]["id"]
    assert lic["usedAt"] is not None


def test_register_with_used_license_fails(client, license_code):
    client.post("/api/auth/register", json={**NEW_USER, "licenseKey": license_code})

    res = client.post(
        "/api/auth/register",
        json={"name": "Other", "email": "other@example.com", "password": "secret123", "licenseKey": license_code},
    )

    assert res.status_code == 400
    assert res.json()["message"] == "This license key has already been used"


def test_register_duplicate_email_keeps_license_unused(client, mock_db, license_code, end_user):
    res = client.post(
        "/api/auth/register",
        json={"name": "Ali", "email": "ALI@example.com", "password": "secret123", "licenseKey": license_code},
    )

    assert res.status_code == 400
    assert res.json()["message"] == "User already exists with this email"
    assert run(licenses.find_by_code(mock_db, license_code))["isUsed"] is False


def test_login_and_me(client, end_user):
    res = client.post("/api/auth/login", json={"email": "ALI@example.com", "password": "ali12345"})

    assert res.status_code == 200
    token = res.json()["data"]["token"]
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["data"]["user"]["email"] == "ali@example.com"


def test_login_does_not_reveal_which_part_failed(client, end_user):
    wrong_password = client.post("/api/auth/login", json={"email": "ali@example.com", "password": "nope"})
    unknown_email = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "nope"})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"success": False, "message": "Invalid credentials"}


def test_protected_route_without_token(client):
    res = client.get("/api/auth/me")
    assert res.status_code == 401
    assert res.json()["success"] is False


def test_protected_route_with_garbage_token(client):
    res = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


def test_create_developer(client, admin):
    res = client.post(
        "/api/auth/create-developer",
        json={"name": "Sara", "email": "sara@example.com", "password": "sara1234"},
        headers=bearer(admin),
    )

    assert res.status_code == 201
    assert res.json()["data"]["developer"]["role"] == "DEVELOPER"


def test_create_developer_duplicate_email(client, admin, developer):
    res = client.post(
        "/api/auth/create-developer",
        json={"name": "Usman 2", "email": "usman@example.com", "password": "usman123"},
        headers=bearer(admin),
    )
    assert res.status_code == 400


def test_create_developer_is_admin_only(client, developer):
    res = client.post(
        "/api/auth/create-developer",
        json={"name": "Sara", "email": "sara@example.com", "password": "sara1234"},
        headers=bearer(developer),
    )
    assert res.status_code == 403


def test_delete_developer(client, admin, developer, mock_db):
    res = client.delete(f"/api/auth/developer/{developer['_id']}", headers=bearer(admin))

    assert res.status_code == 200
    assert run(mock_db["users"].find_one({"_id": developer["_id"]})) is None


def test_delete_developer_refuses_other_roles(client, admin, end_user):
    res = client.delete(f"/api/auth/developer/{end_user['_id']}", headers=bearer(admin))
    assert res.status_code == 400
    assert res.json()["message"] == "Can only delete developer accounts"


def test_delete_developer_not_found(client, admin):
    res = client.delete("/api/auth/developer/64b7f0c2a1b2c3d4e5f60718", headers=bearer(admin))
    assert res.status_code == 404


def test_update_profile_name(client, end_user):
    res = client.put("/api/auth/profile", json={"name": "Ali K"}, headers=bearer(end_user))
    assert res.status_code == 200
    assert res.json()["data"]["user"]["name"] == "Ali K"


def test_password_change_needs_current_password(client, end_user):
    res = client.put("/api/auth/profile", json={"password": "newpass123"}, headers=bearer(end_user))
    assert res.status_code == 401

    res = client.put(
        "/api/auth/profile",
        json={"password": "newpass123", "currentPassword": "wrong"},
        headers=bearer(end_user),
    )
    assert res.status_code == 401
    assert res.json()["message"] == "Invalid current password"


def test_password_change(client, end_user):
    res = client.put(
        "/api/auth/profile",
        json={"password": "newpass123", "currentPassword": "ali12345"},
        headers=bearer(end_user),
    )
    assert res.status_code == 200

    login = client.post("/api/auth/login", json={"email": "ali@example.com", "password": "newpass123"})
    assert login.status_code == 200
