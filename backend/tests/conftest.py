from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from goodrun.database import get_db, init_db
from goodrun.main import app
from goodrun.models.organisation import Organisation
from goodrun.models.user import User
from goodrun.services import lifecycle_service
from goodrun.services.auth_service import Actor
from goodrun.utils.security import hash_password

PASSWORD = "correct-horse-42"


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _now():
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@pytest.fixture(scope="session")
def password_hash():
    return hash_password(PASSWORD)


@pytest.fixture
def test_db(tmp_path):
    db_path = tmp_path / "goodrun.sqlite"
    init_db(db_path)
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    TestSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestSession
    app.dependency_overrides.clear()
    engine.dispose()


@pytest.fixture
def client(test_db):
    return TestClient(app)


def _add_user(TestSession, name, email, role, password_hash) -> Actor:
    db = TestSession()
    try:
        now = _now()
        user = User(name=name, email=email, role=role, password_hash=password_hash,
                    created_at=now, updated_at=now)
        db.add(user)
        db.commit()
        return Actor(id=user.id, role=role)
    finally:
        db.close()


@pytest.fixture
def admin(test_db, password_hash):
    return _add_user(test_db, "Ada Admin", "admin@goodrun.org", "admin", password_hash)


@pytest.fixture
def volunteer_a(test_db, password_hash):
    return _add_user(test_db, "Alex Volunteer", "alex@goodrun.org", "volunteer", password_hash)


@pytest.fixture
def volunteer_b(test_db, password_hash):
    return _add_user(test_db, "Blair Volunteer", "blair@goodrun.org", "volunteer", password_hash)


@pytest.fixture
def organisation(test_db):
    db = test_db()
    try:
        now = _now()
        org = Organisation(name="Harbour Food Bank", contact_no="555-0100",
                           office_hours="Mon-Fri 9-5", address="1 Quay St",
                           created_at=now, updated_at=now)
        db.add(org)
        db.commit()
        return org.id
    finally:
        db.close()


def login(client, email, password=PASSWORD):
    r = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['token']}"}


@pytest.fixture
def admin_headers(client, admin):
    return login(client, "admin@goodrun.org")


@pytest.fixture
def a_headers(client, volunteer_a):
    return login(client, "alex@goodrun.org")


@pytest.fixture
def b_headers(client, volunteer_b):
    return login(client, "blair@goodrun.org")


@pytest.fixture
def make_job(test_db, admin, organisation):
    """Insert an available job through the lifecycle service and return its id."""

    def _make(**overrides):
        fields = {
            "organisation_id": organisation,
            "name": "Harbour Food Bank",
            "address": "1 Quay St",
            "weight": 12.5,
            "value": 40.0,
            "size": "medium",
            "intake_priority": "high",
            "deadline_date": "2099-01-31",
        }
        fields.update(overrides)
        db = test_db()
        try:
            return lifecycle_service.create_job(db, admin, **fields).id
        finally:
            db.close()

    return _make


@pytest.fixture
def session(test_db):
    db = test_db()
    yield db
    db.close()
