from datetime import timedelta

import pytest
from sqlmodel import select

from officedesk.core.security import get_password_hash, verify_password
from officedesk.models.activity import Activity
from officedesk.models.base import as_utc, utcnow
from officedesk.models.task import Task
from officedesk.models.user import User, UserRole
from officedesk.services.task_assignment import current_assignee_ids


# =============================================================================
# Auth
# =============================================================================

def test_password_hashing():
    hashed = get_password_hash("s3cret")
    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("s3cret", "not-a-bcrypt-hash")


def test_login_returns_token_and_cookie(client, make_user):
    user = make_user(UserRole.PARTNER, password=get_password_hash("pw"))

    response = client.post("/api/v1/auth/login", data={"username": user.email, "password": "pw"})

    assert response.status_code == 200
    token = response.json()["access_token"]
    assert "access_token" in response.headers["set-cookie"]

    me = client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["email"] == user.email


def test_login_with_wrong_password_is_401(client, make_user):
    user = make_user(password=get_password_hash("pw"))
    response = client.post("/api/v1/auth/login", data={"username": user.email, "password": "nope"})
    assert response.status_code == 401


def test_deactivated_account_cannot_log_in(client, make_user):
    user = make_user(password=get_password_hash("pw"), is_active=False)
    response = client.post("/api/v1/auth/login", data={"username": user.email, "password": "pw"})
    assert response.status_code == 403


def test_deactivated_token_holder_is_403(client, make_user, auth_headers):
    user = make_user(is_active=False)
    assert client.get("/api/v1/users/me", headers=auth_headers(user)).status_code == 403


def test_bad_token_is_401(client):
    response = client.get("/api/v1/users/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


# =============================================================================
# Admin user management
# =============================================================================

def test_only_admins_manage_users(client, admin, partner, auth_headers):
    assert client.get("/api/v1/users", headers=auth_headers(partner)).status_code == 403
    assert client.get("/api/v1/users", headers=auth_headers(admin)).status_code == 200


def test_admin_creates_user(client, db, admin, auth_headers):
    response = client.post(
        "/api/v1/users",
        json={"email": "new@acme-accounting.com", "name": "New Hire", "password": "pw", "role": "BUSINESS_CONSULTANT"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 201
    assert response.json()["role"] == "BUSINESS_CONSULTANT"
    assert "password" not in response.json()
    created = db.exec(select(User).where(User.email == "new@acme-accounting.com")).one()
    assert verify_password("pw", created.password)


def test_duplicate_email_is_400(client, admin, partner, auth_headers):
    response = client.post(
        "/api/v1/users",
        json={"email": partner.email, "name": "Dup", "password": "pw"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 400


def test_role_change_is_logged(client, db, admin, partner, auth_headers):
    response = client.put(
        f"/api/v1/users/{partner.id}", json={"role": "ADMIN"}, headers=auth_headers(admin)
    )

    assert response.status_code == 200
    activity = db.exec(select(Activity).where(Activity.action == "role_changed")).one()
    assert activity.details["newRole"] == "ADMIN"


def test_admin_cannot_deactivate_self(client, admin, auth_headers):
    response = client.patch(
        f"/api/v1/users/{admin.id}/status", json={"is_active": False}, headers=auth_headers(admin)
    )
    assert response.status_code == 400


def test_self_update_cannot_change_role(client, partner, auth_headers):
    response = client.put(
        "/api/v1/users/me", json={"name": "Renamed", "role": "ADMIN"}, headers=auth_headers(partner)
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"
    assert response.json()["role"] == "PARTNER"


def test_deleting_a_user_hands_their_tasks_to_the_admin(
    client, db, admin, partner, make_user, make_task, auth_headers
):
    junior = make_user()
    created = make_task(partner, [junior])
    assigned = make_task(admin, [partner, junior])
    created_id, assigned_id, partner_id = created.id, assigned.id, partner.id

    response = client.delete(f"/api/v1/users/{partner_id}", headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["reassigned_tasks"] == 1
    db.expire_all()
    assert db.get(User, partner_id) is None
    assert db.get(Task, created_id).assigned_by_id == admin.id
    assert current_assignee_ids(db, assigned_id) == {junior.id}


def test_admin_cannot_delete_self(client, admin, auth_headers):
    assert client.delete(f"/api/v1/users/{admin.id}", headers=auth_headers(admin)).status_code == 400


def test_admin_creates_user_without_password_sends_setup_link(client, db, admin, auth_headers, email_sender):
    response = client.post(
        "/api/v1/users",
        json={"email": "invitee@acme-accounting.com", "name": "Invitee"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 201
    created = db.exec(select(User).where(User.email == "invitee@acme-accounting.com")).one()
    assert created.password is None
    assert created.password_reset_token

    [(to, subject, html)] = email_sender.sent
    assert to == "invitee@acme-accounting.com"
    assert subject == "Set up your account"
    assert f"token={created.password_reset_token}" in html


def test_deleting_a_user_drops_only_their_assignments(client, db, admin, make_user, make_task, auth_headers):
    leaver, stayer = make_user(), make_user()
    task = make_task(admin, [leaver, stayer])
    task_id, leaver_id = task.id, leaver.id

    assert client.delete(f"/api/v1/users/{leaver_id}", headers=auth_headers(admin)).status_code == 200

    db.expire_all()
    assert current_assignee_ids(db, task_id) == {stayer.id}


# =============================================================================
# Passwords
# =============================================================================

def _with_token(db, user, hours=1):
    user.password_reset_token = "tok-123"
    user.password_reset_token_expiry = utcnow() + timedelta(hours=hours)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def test_set_password_with_valid_token(client, db, make_user):
    user = _with_token(db, make_user())

    response = client.post(
        "/api/v1/auth/set-password",
        json={"user_id": user.id, "token": "tok-123", "password": "new-password"},
    )

    assert response.status_code == 200
    db.expire_all()
    assert verify_password("new-password", user.password)
    assert user.password_reset_token is None
    login = client.post("/api/v1/auth/login", data={"username": user.email, "password": "new-password"})
    assert login.status_code == 200


@pytest.mark.parametrize("token,hours", [("wrong", 1), ("tok-123", -1)])
def test_set_password_with_bad_or_expired_token_is_400(client, db, make_user, token, hours):
    user = _with_token(db, make_user(), hours=hours)

    response = client.post(
        "/api/v1/auth/set-password",
        json={"user_id": user.id, "token": token, "password": "new-password"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid or expired token"


def test_set_password_token_works_once(client, db, make_user):
    user = _with_token(db, make_user())
    body = {"user_id": user.id, "token": "tok-123", "password": "new-password"}

    assert client.post("/api/v1/auth/set-password", json=body).status_code == 200
    assert client.post("/api/v1/auth/set-password", json=body).status_code == 400


def test_forgot_password_answers_the_same_for_unknown_accounts(client, db, make_user, email_sender):
    user = make_user()

    unknown = client.post("/api/v1/auth/forgot-password", json={"email": "nobody@acme-accounting.com"})
    known = client.post("/api/v1/auth/forgot-password", json={"email": user.email})

    assert unknown.status_code == known.status_code == 200
    assert unknown.json() == known.json()
    db.expire_all()
    assert user.password_reset_token
    assert as_utc(user.password_reset_token_expiry) > utcnow()
    assert [(to, subject) for to, subject, _ in email_sender.sent] == [(user.email, "Reset your password")]


def test_reset_own_password_needs_current_one(client, db, make_user, auth_headers):
    user = make_user(password=get_password_hash("old-password"))
    headers = auth_headers(user)

    wrong = client.post(
        "/api/v1/auth/reset-password",
        json={"current_password": "nope", "new_password": "new-password"},
        headers=headers,
    )
    assert wrong.status_code == 400

    missing = client.post("/api/v1/auth/reset-password", json={"new_password": "new-password"}, headers=headers)
    assert missing.status_code == 400

    ok = client.post(
        "/api/v1/auth/reset-password",
        json={"current_password": "old-password", "new_password": "new-password"},
        headers=headers,
    )
    assert ok.status_code == 200
    db.expire_all()
    assert verify_password("new-password", user.password)


def test_admin_resets_another_users_password(client, db, admin, make_user, auth_headers):
    user = make_user(password=get_password_hash("old-password"))

    response = client.post(
        "/api/v1/auth/reset-password",
        json={"user_id": user.id, "new_password": "new-password"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    db.expire_all()
    assert verify_password("new-password", user.password)


def test_non_admin_cannot_reset_another_users_password(client, partner, make_user, auth_headers):
    user = make_user()

    response = client.post(
        "/api/v1/auth/reset-password",
        json={"user_id": user.id, "new_password": "new-password"},
        headers=auth_headers(partner),
    )

    assert response.status_code == 403


def test_short_new_password_is_400(client, make_user, auth_headers):
    user = make_user(password=get_password_hash("old-password"))
    response = client.post(
        "/api/v1/auth/reset-password",
        json={"current_password": "old-password", "new_password": "short"},
        headers=auth_headers(user),
    )
    assert response.status_code == 400
