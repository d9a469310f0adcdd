import pytest
from sqlmodel import select

from officedesk.models.notification import Notification
from officedesk.models.client import Client, ClientHistory, ClientHistoryType
from officedesk.models.task import BillingStatus, Task, TaskComment, TaskPriority, TaskStatus
from officedesk.models.user import UserRole
from officedesk.services.task_assignment import current_assignee_ids


def _titles(db, user):
    db.expire_all()
    return [n.title for n in db.exec(select(Notification).where(Notification.sent_to_id == user.id)).all()]


# =============================================================================
# Create / read
# =============================================================================

def test_partner_creates_task_with_assignees(client, db, admin, partner, make_user, auth_headers, email_sender):
    u1, u2 = make_user(), make_user()

    response = client.post(
        "/api/v1/tasks",
        json={"title": "Year-end close", "assignedToIds": [u1.id, u2.id, u1.id]},
        headers=auth_headers(partner),
    )

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["assigned_by_id"] == partner.id
    assert set(body["assignee_ids"]) == {u1.id, u2.id}
    assert current_assignee_ids(db, body["id"]) == {u1.id, u2.id}
    assert _titles(db, u1) == ["New Task Assigned"]
    assert _titles(db, admin) == ["New Task Created"]
    assert {to for to, _, _ in email_sender.sent} == {u1.email, u2.email, admin.email}


def test_create_with_unknown_assignee_writes_nothing(client, db, admin, auth_headers):
    response = client.post(
        "/api/v1/tasks",
        json={"title": "Ghost work", "assigned_to_ids": ["nobody"]},
        headers=auth_headers(admin),
    )

    assert response.status_code == 400
    assert db.exec(select(Task)).all() == []


def test_create_with_unknown_client_is_400(client, admin, auth_headers):
    response = client.post(
        "/api/v1/tasks", json={"title": "x", "client_id": "missing"}, headers=auth_headers(admin)
    )
    assert response.status_code == 400


def test_junior_staff_cannot_create(client, make_user, auth_headers):
    junior = make_user(UserRole.BUSINESS_EXECUTIVE)
    response = client.post("/api/v1/tasks", json={"title": "x"}, headers=auth_headers(junior))
    assert response.status_code == 403


def test_missing_title_is_400(client, admin, auth_headers):
    response = client.post("/api/v1/tasks", json={}, headers=auth_headers(admin))
    assert response.status_code == 400


def test_list_visibility(client, admin, partner, make_user, make_task, auth_headers):
    junior = make_user()
    mine = make_task(admin, [junior], title="Mine")
    made = make_task(partner, [], title="Partner's")
    make_task(admin, [], title="Hidden")

    def titles(user):
        return {t["title"] for t in client.get("/api/v1/tasks", headers=auth_headers(user)).json()}

    assert titles(admin) == {"Mine", "Partner's", "Hidden"}
    assert titles(junior) == {mine.title}
    assert titles(partner) == {made.title}


def test_view_requires_relationship(client, admin, make_user, make_task, auth_headers):
    task = make_task(admin, [])
    outsider = make_user()

    assert client.get(f"/api/v1/tasks/{task.id}", headers=auth_headers(outsider)).status_code == 403
    assert client.get(f"/api/v1/tasks/{task.id}", headers=auth_headers(admin)).status_code == 200


# =============================================================================
# Update / delete
# =============================================================================

def test_update_with_assignees_applies_diff(client, db, partner, make_user, make_task, auth_headers):
    u1, u2 = make_user(), make_user()
    task = make_task(partner, [u1])

    response = client.patch(
        f"/api/v1/tasks/{task.id}",
        json={"title": "Renamed", "assignedToIds": [u2.id]},
        headers=auth_headers(partner),
    )

    assert response.status_code == 200
    assert response.json()["title"] == "Renamed"
    assert current_assignee_ids(db, task.id) == {u2.id}
    assert _titles(db, u1) == ["Task Reassigned"]
    assert _titles(db, u2) == ["New Task Assigned"]


def test_update_without_assignees_keeps_them(client, db, partner, make_user, make_task, auth_headers):
    u1 = make_user()
    task = make_task(partner, [u1])

    client.patch(f"/api/v1/tasks/{task.id}", json={"description": "more"}, headers=auth_headers(partner))

    assert current_assignee_ids(db, task.id) == {u1.id}


@pytest.mark.parametrize("field", ["title", "priority"])
def test_null_for_required_field_is_400(client, db, partner, make_task, auth_headers, field):
    task = make_task(partner, [], title="Keep me")

    response = client.patch(f"/api/v1/tasks/{task.id}", json={field: None}, headers=auth_headers(partner))

    assert response.status_code == 400
    db.expire_all()
    stored = db.get(Task, task.id)
    assert stored.title == "Keep me"
    assert stored.priority == TaskPriority.medium


def test_assigned_partner_cannot_edit(client, admin, make_user, make_task, auth_headers):
    assigned_partner = make_user(UserRole.PARTNER)
    task = make_task(admin, [assigned_partner])

    response = client.patch(f"/api/v1/tasks/{task.id}", json={"title": "x"}, headers=auth_headers(assigned_partner))

    assert response.status_code == 403


def test_delete_removes_assignments_and_comments(client, db, admin, make_user, make_task, auth_headers):
    u1 = make_user()
    task = make_task(admin, [u1])
    task_id = task.id
    db.add(TaskComment(task_id=task_id, user_id=u1.id, content="done?"))
    db.commit()

    response = client.delete(f"/api/v1/tasks/{task_id}", headers=auth_headers(admin))

    assert response.status_code == 200
    db.expire_all()
    assert db.get(Task, task_id) is None
    assert current_assignee_ids(db, task_id) == set()
    assert db.exec(select(TaskComment)).all() == []


# =============================================================================
# Status & billing
# =============================================================================

def test_completing_a_task_flags_it_for_billing(client, db, partner, make_user, make_task, auth_headers):
    junior = make_user()
    task = make_task(partner, [junior])

    response = client.patch(
        f"/api/v1/tasks/{task.id}/status", json={"status": "completed"}, headers=auth_headers(junior)
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["billing_status"] == "pending_billing"
    assert body["last_status_updated_by"] == junior.name
    assert _titles(db, partner) == ["Task Status Updated"]


def test_unassigned_junior_cannot_change_status(client, admin, make_user, make_task, auth_headers):
    task = make_task(admin, [])
    response = client.patch(
        f"/api/v1/tasks/{task.id}/status", json={"status": "review"}, headers=auth_headers(make_user())
    )
    assert response.status_code == 403


def test_invalid_status_is_400(client, admin, make_task, auth_headers):
    task = make_task(admin, [])
    response = client.patch(
        f"/api/v1/tasks/{task.id}/status", json={"status": "archived"}, headers=auth_headers(admin)
    )
    assert response.status_code == 400


def test_billing_approval(client, db, admin, make_user, make_task, auth_headers):
    approver = make_user(UserRole.PARTNER, can_approve_billing=True)
    plain_partner = make_user(UserRole.PARTNER)
    task = make_task(admin, [], status=TaskStatus.completed, billing_status=BillingStatus.pending_billing)

    response = client.post(f"/api/v1/tasks/{task.id}/billing-approve", headers=auth_headers(plain_partner))
    assert response.status_code == 403

    response = client.post(f"/api/v1/tasks/{task.id}/billing-approve", headers=auth_headers(approver))
    assert response.status_code == 200
    assert response.json()["billing_status"] == "billed"
    assert response.json()["billing_approved_at"] is not None

    response = client.post(f"/api/v1/tasks/{task.id}/billing-approve", headers=auth_headers(approver))
    assert response.status_code == 400


def test_billing_approval_records_client_task_history(client, db, admin, make_user, make_task, auth_headers):
    junior = make_user(name="Jo Junior")
    acme = Client(contact_person="Acme", created_by_id=admin.id)
    db.add(acme)
    db.commit()
    task = make_task(
        admin, [junior], title="Year-end accounts", client_id=acme.id, priority=TaskPriority.high,
        status=TaskStatus.completed, billing_status=BillingStatus.pending_billing,
    )

    response = client.post(f"/api/v1/tasks/{task.id}/billing-approve", headers=auth_headers(admin))
    assert response.status_code == 200

    [entry] = db.exec(select(ClientHistory)).all()
    assert entry.type == ClientHistoryType.TASK_COMPLETED
    assert entry.content == 'Task "Year-end accounts" was completed and billing approved.'
    assert entry.billing_details["billedByName"] == admin.name
    assert entry.billing_details["priority"] == "high"
    assert entry.billing_details["assignees"] == [{"id": junior.id, "name": "Jo Junior"}]

    history = client.get(f"/api/v1/clients/{acme.id}/task-history", headers=auth_headers(junior)).json()
    assert [h["task_title"] for h in history] == ["Year-end accounts"]
    # task snapshots are not general notes
    assert client.get(f"/api/v1/clients/{acme.id}/history", headers=auth_headers(admin)).json() == []


def test_billing_approval_without_client_writes_no_history(client, db, admin, make_task, auth_headers):
    task = make_task(admin, [], status=TaskStatus.completed, billing_status=BillingStatus.pending_billing)

    client.post(f"/api/v1/tasks/{task.id}/billing-approve", headers=auth_headers(admin))

    assert db.exec(select(ClientHistory)).all() == []


# =============================================================================
# Comments
# =============================================================================

def test_comment_notifies_everyone_but_the_author(client, db, admin, partner, make_user, make_task, auth_headers):
    junior = make_user()
    task = make_task(partner, [junior])

    response = client.post(
        f"/api/v1/tasks/{task.id}/comments", json={"content": "Numbers attached"}, headers=auth_headers(junior)
    )

    assert response.status_code == 201
    assert response.json()["user_name"] == junior.name
    assert _titles(db, partner) == ["New Comment on Task"]
    assert _titles(db, admin) == ["New Comment on Task"]
    assert _titles(db, junior) == []

    comments = client.get(f"/api/v1/tasks/{task.id}/comments", headers=auth_headers(partner)).json()
    assert [c["content"] for c in comments] == ["Numbers attached"]
