# tests/test_admin.py
from models.users import User
from models.location import Location
from models.review import Review
from routes.admin import build_user_update
from schemas.user import AdminUserUpdate

from conftest import auth_header, make_user, photo_files, review_form


def test_admin_routes_reject_regular_users(client, user):
    assert client.get("/admin/users").status_code == 401
    assert client.get("/admin/users", headers=auth_header(user.id)).status_code == 403


def test_list_users_paginates(client, db, admin):
    for i in range(11):
        make_user(db, name=f"Person {i:02d}", email=f"person{i}@example.com")

    resp = client.get("/admin/users", params={"page": 2, "limit": 5}, headers=auth_header(admin.id))
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["users"]) == 5
    assert body["pagination"] == {
        "page": 2, "limit": 5, "total": 12, "totalPages": 3, "hasNext": True, "hasPrev": True,
    }

    last = client.get("/admin/users", params={"page": 3, "limit": 5}, headers=auth_header(admin.id)).json()
    assert len(last["users"]) == 2
    assert last["pagination"]["hasNext"] is False


def test_list_users_search(client, db, admin):
    make_user(db, name="Beatriz Rocha", email="bia@example.com")
    make_user(db, name="Carlos", email="carlos@rocha.dev")
    make_user(db, name="Daniel", email="daniel@example.com")

    resp = client.get("/admin/users", params={"search": "rocha"}, headers=auth_header(admin.id))
    emails = sorted(u["email"] for u in resp.json()["users"])
    assert emails == ["bia@example.com", "carlos@rocha.dev"]


def test_create_user(client, admin):
    payload = {"name": "New Admin", "email": "New@Example.com", "password": "secret1", "is_admin": True}
    resp = client.post("/admin/users", json=payload, headers=auth_header(admin.id))
    assert resp.status_code == 201
    assert resp.json()["email"] == "new@example.com"
    assert resp.json()["is_admin"] is True

    dup = client.post("/admin/users", json=payload, headers=auth_header(admin.id))
    assert dup.status_code == 400


def test_get_user(client, admin, user):
    assert client.get(f"/admin/users/{user.id}", headers=auth_header(admin.id)).json()["email"] == user.email
    assert client.get("/admin/users/9999", headers=auth_header(admin.id)).status_code == 404


def test_partial_update_only_touches_given_fields(client, admin, user):
    resp = client.put(f"/admin/users/{user.id}", json={"is_admin": True}, headers=auth_header(admin.id))
    assert resp.status_code == 200
    body = resp.json()
    assert body["is_admin"] is True
    assert body["name"] == user.name
    assert body["email"] == user.email

    # Role change applies to the next request of the promoted user
    assert client.get("/admin/users", headers=auth_header(user.id)).status_code == 200


def test_update_password_allows_login(client, admin, user):
    client.put(f"/admin/users/{user.id}", json={"password": "newpass1"}, headers=auth_header(admin.id))
    assert client.post("/auth/login", json={"email": user.email, "password": "newpass1"}).status_code == 200


def test_update_rejects_empty_patch_and_taken_email(client, admin, user, other_user):
    headers = auth_header(admin.id)
    assert client.put(f"/admin/users/{user.id}", json={}, headers=headers).status_code == 400
    assert client.put(f"/admin/users/{user.id}", json={"email": other_user.email}, headers=headers).status_code == 400
    # Keeping one's own email is not a conflict
    assert client.put(f"/admin/users/{user.id}", json={"email": user.email}, headers=headers).status_code == 200
    assert client.put("/admin/users/9999", json={"name": "Nobody"}, headers=headers).status_code == 404


def test_build_user_update_binds_parameters():
    stmt = build_user_update(7, AdminUserUpdate(name="  Robert'); DROP TABLE users;--  "))
    compiled = stmt.compile()
    assert "DROP TABLE" not in str(compiled)
    assert compiled.params["name"] == "Robert'); DROP TABLE users;--"
    assert "password_hash" not in compiled.params

    assert build_user_update(7, AdminUserUpdate()) is None


def test_admin_cannot_delete_self(client, session_factory, admin):
    resp = client.delete(f"/admin/users/{admin.id}", headers=auth_header(admin.id))
    assert resp.status_code == 400
    with session_factory() as s:
        assert s.get(User, admin.id) is not None


def test_delete_user_removes_reviews_and_photos(client, session_factory, storage, admin, user, location):
    resp = client.post(
        f"/locations/{location.id}/reviews",
        data=review_form(), files=photo_files(2), headers=auth_header(user.id),
    )
    review_id = resp.json()["reviewId"]
    paths = [p["photo_path"] for p in client.get(f"/locations/{location.id}/reviews/{review_id}").json()["photos"]]

    deleted = client.delete(f"/admin/users/{user.id}", headers=auth_header(admin.id))
    assert deleted.status_code == 200
    assert deleted.json() == {"message": "User deleted", "id": user.id, "name": user.name}

    with session_factory() as s:
        assert s.get(User, user.id) is None
        assert s.query(Review).count() == 0
        # Locations outlive their creator
        assert s.get(Location, location.id).created_by is None

    assert not any(storage.path_for(p).exists() for p in paths)
    assert client.delete(f"/admin/users/{user.id}", headers=auth_header(admin.id)).status_code == 404


def test_logs_listing_is_admin_only(client, admin, user):
    client.post("/auth/login", json={"email": user.email, "password": "wrong"})
    assert client.get("/logs", headers=auth_header(user.id)).status_code == 403

    resp = client.get("/logs", params={"action": "LOGIN", "status": "fail"}, headers=auth_header(admin.id))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert body["items"][0]["user_id"] == user.id


def test_logs_filter_by_affected_record(client, admin, user, location):
    review_id = client.post(
        f"/locations/{location.id}/reviews", data=review_form(), headers=auth_header(user.id),
    ).json()["reviewId"]
    client.delete(f"/locations/{location.id}/reviews/{review_id}", headers=auth_header(user.id))

    resp = client.get("/logs", params={"resource": "reviews", "resource_id": review_id}, headers=auth_header(admin.id))
    body = resp.json()
    assert [e["action"] for e in body["items"]] == ["REVIEW_DELETE", "REVIEW_CREATE"]
    assert all(e["user_name"] == user.name for e in body["items"])


def test_logs_date_range(client, admin, user):
    client.post("/auth/login", json={"email": user.email, "password": "wrong"})
    headers = auth_header(admin.id)

    assert client.get("/logs", params={"date_from": "2001-01-01", "date_to": "2001-01-31"}, headers=headers).json()["total"] == 0
    assert client.get("/logs", params={"date_from": "2001-01-01"}, headers=headers).json()["total"] == 1
    assert client.get("/logs", params={"date_from": "2001-02-01", "date_to": "2001-01-01"}, headers=headers).status_code == 400
    assert client.get("/logs", params={"date_from": "yesterday"}, headers=headers).status_code == 400
