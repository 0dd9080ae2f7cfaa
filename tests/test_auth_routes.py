from arena.extensions import db
from arena.models.user import User


def register(client, email="gamer@example.com", password="Str0ng!pass"):
    return client.post("/api/v1/auth/register", json={
        "email": email, "password": password, "display_name": "Gamer",
    })


def test_register_login_and_me(client):
    resp = register(client)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["user"]["role"] == "player"
    assert body["user"]["profile_complete"] is False

    resp = client.post("/api/v1/auth/login", json={"email": "GAMER@example.com", "password": "Str0ng!pass"})
    assert resp.status_code == 200
    token = resp.get_json()["access_token"]

    resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.get_json()["user"]["email"] == "gamer@example.com"


def test_register_rejects_weak_password_and_duplicates(client):
    resp = register(client, password="password")
    assert resp.status_code == 422
    assert resp.get_json()["error"]["details"]["field"] == "password"

    assert register(client).status_code == 201
    resp = register(client)
    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "USER_EXISTS"


def test_bad_credentials(client, player):
    resp = client.post("/api/v1/auth/login", json={"email": player.email, "password": "wrong"})
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "AUTH_FAILED"


def test_logout_revokes_the_token(client, player, auth_headers):
    headers = auth_headers(player)
    assert client.get("/api/v1/auth/me", headers=headers).status_code == 200

    assert client.post("/api/v1/auth/logout", headers=headers).status_code == 200

    resp = client.get("/api/v1/auth/me", headers=headers)
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_REVOKED"


def test_missing_token_uses_error_envelope(client):
    resp = client.get("/api/v1/wallet/balance")
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "UNAUTHORIZED"


def test_refresh_issues_new_access_token(client):
    tokens = register(client).get_json()
    resp = client.post("/api/v1/auth/refresh", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert resp.status_code == 200
    assert resp.get_json()["access_token"]


def test_profile_update_completes_profile(client, make_user, auth_headers):
    user = make_user(complete=False)
    resp = client.patch("/api/v1/profile", headers=auth_headers(user), json={
        "username": "Night_Owl",
        "in_game_name": "NightOwl",
        "whatsapp_number": "+923001234567",
    })
    assert resp.status_code == 200
    profile = resp.get_json()["profile"]
    assert profile["username"] == "night_owl"
    assert profile["profile_complete"] is True


def test_profile_update_rejects_taken_and_reserved_usernames(client, make_user, auth_headers):
    taken = make_user()
    user = make_user(complete=False)

    resp = client.patch("/api/v1/profile", headers=auth_headers(user), json={"username": taken.username})
    assert resp.status_code == 422
    assert resp.get_json()["error"]["code"] == "USERNAME_TAKEN"

    resp = client.patch("/api/v1/profile", headers=auth_headers(user), json={"username": "admin"})
    assert resp.status_code == 422

    resp = client.patch("/api/v1/profile", headers=auth_headers(user), json={"whatsapp_number": "12345"})
    assert resp.status_code == 422
    assert db.session.get(User, user.id).whatsapp_number is None


def test_role_changes_are_admin_only(client, admin, moderator, player, auth_headers):
    url = f"/api/v1/admin/users/{player.id}/role"

    resp = client.patch(url, headers=auth_headers(moderator), json={"role": "moderator"})
    assert resp.status_code == 403

    resp = client.patch(url, headers=auth_headers(admin), json={"role": "moderator"})
    assert resp.status_code == 200
    assert resp.get_json()["user"]["role"] == "moderator"

    resp = client.patch(url, headers=auth_headers(admin), json={"role": "superuser"})
    assert resp.status_code == 422


def test_admin_cannot_remove_own_admin_role(client, admin, auth_headers):
    resp = client.post("/api/v1/rpc/update_user_role", headers=auth_headers(admin), json={
        "target_user_id": admin.id, "new_role": "player",
    })
    assert resp.status_code == 403
    assert resp.get_json()["error"]["code"] == "SELF_DEMOTION"
    assert db.session.get(User, admin.id).role == "admin"


def test_is_admin_rpc(client, admin, player, auth_headers):
    resp = client.post("/api/v1/rpc/is_admin", headers=auth_headers(player), json={})
    assert resp.get_json()["result"] is False
    resp = client.post("/api/v1/rpc/is_admin", headers=auth_headers(player), json={"user_id": admin.id})
    assert resp.get_json()["result"] is True


def test_admin_user_listing(client, admin, player, auth_headers):
    resp = client.get("/api/v1/admin/users", headers=auth_headers(admin), query_string={"search": player.username})
    users = resp.get_json()["users"]
    assert [u["id"] for u in users] == [player.id]

    assert client.get("/api/v1/admin/users", headers=auth_headers(player)).status_code == 403
