import pytest

import users
from auth.tokens import verify_password
from database import commit_or_conflict
from errors import ConflictError
from models import Link, User, Visit


def test_list_users_hides_password(client, make_user, auth_headers):
    admin = make_user(role="admin")
    make_user()
    res = client.get("/api/v1/users", headers=auth_headers(admin))
    assert res.status_code == 200
    users = res.json()["users"]
    assert len(users) == 2
    assert all("hashed_password" not in u for u in users)


def test_list_users_forbidden_for_regular_user(client, make_user, auth_headers):
    user = make_user()
    res = client.get("/api/v1/users", headers=auth_headers(user))
    assert res.status_code == 401
    assert res.json() == {"ok": False, "error": "Unauthorized user"}


def test_get_user_with_relations(client, make_user, make_link, auth_headers):
    user = make_user()
    make_link(user)
    res = client.get(f"/api/v1/users/all/{user.id}", headers=auth_headers(user))
    assert res.status_code == 200
    assert len(res.json()["user"]["links"]) == 1
    assert client.get("/api/v1/users/999", headers=auth_headers(user)).status_code == 404


def test_search_users(client, make_user, auth_headers):
    user = make_user(email="findme@example.com")
    make_user(role="admin")
    res = client.get("/api/v1/users/email/findme@example.com", headers=auth_headers(user))
    assert [u["id"] for u in res.json()["users"]] == [user.id]

    res = client.get("/api/v1/users/role/admin", headers=auth_headers(user))
    assert len(res.json()["users"]) == 1

    res = client.get("/api/v1/users/email/not-an-email", headers=auth_headers(user))
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid email format"

    res = client.get("/api/v1/users/hashed_password/x", headers=auth_headers(user))
    assert res.status_code == 400


def test_count_users(client, make_user, auth_headers):
    admin = make_user(role="admin")
    make_user()
    res = client.get("/api/v1/count/all/users", headers=auth_headers(admin))
    assert res.json() == {"ok": True, "count": 2}


def test_update_user(client, make_user, auth_headers):
    user = make_user()
    make_user(email="taken@example.com")

    res = client.put(f"/api/v1/users/{user.id}", json={"name": "Renamed", "birth_date": "1990-05-01"},
                     headers=auth_headers(user))
    assert res.status_code == 200
    assert res.json()["user"]["name"] == "Renamed"
    assert res.json()["user"]["birth_date"] == "1990-05-01"

    res = client.put(f"/api/v1/users/{user.id}", json={"name": "abc"}, headers=auth_headers(user))
    assert res.json()["error"] == "Name must have more than 3 characters"

    res = client.put(f"/api/v1/users/{user.id}", json={"email": "taken@example.com"}, headers=auth_headers(user))
    assert res.status_code == 400
    assert res.json()["error"] == "Email already exists"


def test_only_admin_changes_roles(client, db, make_user, auth_headers):
    user, admin = make_user(), make_user(role="admin")

    res = client.put(f"/api/v1/users/{user.id}", json={"role": "admin"}, headers=auth_headers(user))
    assert res.status_code == 401

    res = client.put(f"/api/v1/users/{user.id}", json={"role": "root"}, headers=auth_headers(admin))
    assert res.status_code == 400

    res = client.put(f"/api/v1/users/{user.id}", json={"role": "admin"}, headers=auth_headers(admin))
    assert res.status_code == 200
    assert res.json()["user"]["role"] == "admin"


def test_change_password(client, db, make_user, auth_headers):
    user = make_user(password="password123")

    res = client.put(f"/api/v1/users/change_password/{user.id}", json={"password": "password123"},
                     headers=auth_headers(user))
    assert res.status_code == 400
    assert res.json()["error"] == "The new password cannot be the same as the previous one"

    res = client.put(f"/api/v1/users/change_password/{user.id}", json={"password": "short"},
                     headers=auth_headers(user))
    assert res.json()["error"] == "The password must have at least 8 characters"

    res = client.put(f"/api/v1/users/change_password/{user.id}", json={"password": "brand-new-pass"},
                     headers=auth_headers(user))
    assert res.status_code == 200
    db.expire_all()
    assert verify_password("brand-new-pass", db.get(User, user.id).hashed_password)


def test_delete_user_cascades(client, db, make_user, make_link, auth_headers):
    admin = make_user(role="admin")
    user = make_user()
    link = make_link(user)
    db.add(Visit(id_link=link.id, id_user=user.id))
    db.commit()

    res = client.delete(f"/api/v1/users/{user.id}", headers=auth_headers(admin))
    assert res.status_code == 200
    assert res.json()["message"] == "User deleted"

    db.expire_all()
    assert db.query(User).count() == 1
    assert db.query(Link).count() == 0
    assert db.query(Visit).count() == 0


def test_delete_user_by_attribute(client, db, make_user, auth_headers):
    admin = make_user(role="admin")
    make_user(email="bye@example.com")

    res = client.delete("/api/v1/users/email/bye@example.com", headers=auth_headers(admin))
    assert res.status_code == 200
    assert res.json()["user"]["email"] == "bye@example.com"

    res = client.delete("/api/v1/users/role/admin", headers=auth_headers(admin))
    assert res.status_code == 400

    res = client.delete("/api/v1/users/email/bye@example.com", headers=auth_headers(admin))
    assert res.status_code == 404


def test_update_user_rejects_values_longer_than_columns(client, make_user, auth_headers):
    user = make_user()
    res = client.put(f"/api/v1/users/{user.id}", json={"name": "N" * 51}, headers=auth_headers(user))
    assert res.status_code == 400
    assert res.json()["error"].startswith("name")

    res = client.put(f"/api/v1/users/{user.id}", json={"email": "a" * 39 + "@example.com"},
                     headers=auth_headers(user))
    assert res.status_code == 400
    assert res.json()["error"].startswith("email")


def test_update_user_racing_a_duplicate_email_conflicts(client, db, make_user, auth_headers, monkeypatch):
    user = make_user(email="mine@example.com")
    make_user(email="taken@example.com")
    monkeypatch.setattr(users, "email_taken", lambda db, email, exclude_id=None: False)

    res = client.put(f"/api/v1/users/{user.id}", json={"email": "taken@example.com"}, headers=auth_headers(user))
    assert res.status_code == 400
    assert res.json() == {"ok": False, "error": "Email already exists"}
    db.expire_all()
    assert db.get(User, user.id).email == "mine@example.com"


def test_commit_or_conflict_rolls_back(db, make_user):
    make_user(email="taken@example.com")
    db.add(User(email="taken@example.com", hashed_password="x", name="Twin", role="user"))
    with pytest.raises(ConflictError) as exc:
        commit_or_conflict(db, "Email already exists")
    assert exc.value.message == "Email already exists"
    assert db.query(User).count() == 1
