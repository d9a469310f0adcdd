from datetime import timedelta, timezone

import pytest
from sqlmodel import select

from officedesk.models.activity import Activity
from officedesk.models.base import as_utc, utcnow
from officedesk.models.client import Client, ClientHistory
from officedesk.models.notification import Notification
from officedesk.models.task import Task, TaskAssignee, TaskComment
from officedesk.models.user import User, UserRole


@pytest.mark.parametrize("model", [User, Client, ClientHistory, Task, TaskAssignee, TaskComment, Notification, Activity])
def test_created_at_columns_keep_the_timezone(model):
    assert model.__table__.c.created_at.type.timezone is True


def test_as_utc():
    aware = utcnow()
    assert as_utc(None) is None
    assert as_utc(aware.replace(tzinfo=None)) == aware
    assert as_utc(aware.astimezone(timezone(timedelta(hours=2)))) == aware


def test_rows_insert_with_utc_timestamps(db):
    before = utcnow()
    user = User(name="Ada", email="ada@acme-accounting.com", role=UserRole.ADMIN)
    db.add(user)
    db.flush()
    acme = Client(contact_person="Acme", created_by_id=user.id)
    task = Task(title="Payroll", assigned_by_id=user.id, due_date=before + timedelta(days=3))
    db.add(acme)
    db.add(task)
    db.flush()
    db.add(TaskAssignee(task_id=task.id, user_id=user.id))
    db.add(TaskComment(task_id=task.id, user_id=user.id, content="on it"))
    db.add(Notification(title="t", content="c", sent_by_id=user.id, sent_to_id=user.id))
    db.add(Activity(type="task", action="created", target="Payroll", user_id=user.id))
    db.add(ClientHistory(client_id=acme.id, content="note", created_by_id=user.id))
    db.commit()
    db.expire_all()

    for model in (User, Client, ClientHistory, Task, TaskAssignee, TaskComment, Notification, Activity):
        row = db.exec(select(model)).one()
        created = as_utc(row.created_at)
        assert created.tzinfo is not None
        assert before - timedelta(seconds=5) <= created <= utcnow()

    stored = db.exec(select(Task)).one()
    assert as_utc(stored.due_date) == before + timedelta(days=3)
