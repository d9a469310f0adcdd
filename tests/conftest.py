"""
Test configuration and fixtures.

Provides:
- An in-memory SQLite database shared by the test and the app under test
- User factories per role and JWT auth headers
- A recording e-mail sender and an in-memory dashboard cache
"""
from typing import Callable, Dict, Generator, List, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import officedesk.models  # noqa: F401  (registers tables)
from officedesk.api import deps
from officedesk.core.cache import DashboardCache, MemoryCache
from officedesk.core.security import create_access_token
from officedesk.db.session import get_db
from officedesk.main import app
from officedesk.models.task import Task, TaskAssignee
from officedesk.models.user import User, UserRole
from officedesk.services.email import EmailSender
from officedesk.services.notifications import NotificationDispatcher


class RecordingEmailSender(EmailSender):
    """Keeps (to, subject, html) instead of calling the e-mail API."""

    def __init__(self):
        super().__init__(api_key="test", enabled=False)
        self.sent: List[Tuple[str, str, str]] = []
        self.fail_for = set()

    def send(self, to: str, subject: str, html_body: str) -> bool:
        if to in self.fail_for:
            raise RuntimeError(f"smtp down for {to}")
        self.sent.append((to, subject, html_body))
        return True


# =============================================================================
# Database
# =============================================================================

@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="db")
def db_fixture(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


# =============================================================================
# Collaborators
# =============================================================================

@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def cache() -> DashboardCache:
    return DashboardCache(MemoryCache(), ttl_seconds=300)


@pytest.fixture
def dispatcher(db, email_sender) -> NotificationDispatcher:
    return NotificationDispatcher(db, email_sender, limit=20)


@pytest.fixture
def client(db, email_sender, cache) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[deps.get_email_sender] = lambda: email_sender
    app.dependency_overrides[deps.get_cache] = lambda: cache
    yield TestClient(app)
    app.dependency_overrides.clear()


# =============================================================================
# Users & tasks
# =============================================================================

@pytest.fixture
def make_user(db) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(role: UserRole = UserRole.BUSINESS_EXECUTIVE, **kwargs) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            name=kwargs.pop("name", f"{role.value.title()} {n}"),
            email=kwargs.pop("email", f"{role.value.lower()}{n}@acme-accounting.com"),
            role=role,
            **kwargs,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def admin(make_user) -> User:
    return make_user(UserRole.ADMIN, name="Ada Admin")


@pytest.fixture
def partner(make_user) -> User:
    return make_user(UserRole.PARTNER, name="Pat Partner")


@pytest.fixture
def make_task(db) -> Callable[..., Task]:
    def _make(creator: User, assignees: List[User] = (), **kwargs) -> Task:
        task = Task(title=kwargs.pop("title", "Prepare VAT return"), assigned_by_id=creator.id, **kwargs)
        db.add(task)
        db.flush()
        for user in assignees:
            db.add(TaskAssignee(task_id=task.id, user_id=user.id))
        db.commit()
        db.refresh(task)
        return task

    return _make


@pytest.fixture
def auth_headers() -> Callable[[User], Dict[str, str]]:
    def _headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.email)}"}

    return _headers
