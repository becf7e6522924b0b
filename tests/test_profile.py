# tests/test_profile.py
from conftest import DEFAULT_PASSWORD, auth_header


def test_get_profile(client, user):
    resp = client.get("/profile", headers=auth_header(user.id))
    assert resp.status_code == 200
    assert resp.json()["email"] == user.email
    assert client.get("/profile").status_code == 401


def test_user_can_rename(client, user):
    resp = client.put("/profile", json={"name": "Maria S. Costa"}, headers=auth_header(user.id))
    assert resp.status_code == 200
    assert resp.json()["name"] == "Maria S. Costa"


def test_regular_user_cannot_change_email_or_password(client, user):
    resp = client.put(
        "/profile",
        json={"email": "new@example.com", "current_password": DEFAULT_PASSWORD, "new_password": "Other1!!"},
        headers=auth_header(user.id),
    )
    assert resp.status_code == 400
    assert client.get("/profile", headers=auth_header(user.id)).json()["email"] == user.email


def test_admin_changes_password_with_current_one(client, admin):
    headers = auth_header(admin.id)
    wrong = client.put("/profile", json={"current_password": "nope", "new_password": "Other1!!"}, headers=headers)
    assert wrong.status_code == 400
    missing = client.put("/profile", json={"new_password": "Other1!!"}, headers=headers)
    assert missing.status_code == 400

    ok = client.put("/profile", json={"current_password": DEFAULT_PASSWORD, "new_password": "Other1!!"}, headers=headers)
    assert ok.status_code == 200
    assert client.post("/auth/login", json={"email": admin.email, "password": "Other1!!"}).status_code == 200


def test_admin_email_must_be_free(client, admin, user):
    headers = auth_header(admin.id)
    assert client.put("/profile", json={"email": user.email}, headers=headers).status_code == 400

    resp = client.put("/profile", json={"email": "Boss@Example.com"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["email"] == "boss@example.com"
