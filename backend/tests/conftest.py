"""
Test configuration and fixtures.

Every test gets a fresh in-memory SQLite database, with foreign keys
enforced, shared between the fixtures and the app (via a ``get_session``
override). SMS never leaves the process: ``utils.sms.send_sms`` is
replaced by an outbox list.
"""
import os
import tempfile

os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="civic-uploads-"))
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import utils.sms
from core.config import config
from core.database import enable_sqlite_foreign_keys, get_session
from main import app
from models.complaints import Complaint, ComplaintStatus
from models.user import Department, User, UserRole
from utils.security import create_access_token, hash_password

# Nairobi city centre
COMPLAINT_LAT = -1.2921
COMPLAINT_LON = 36.8219


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture(autouse=True)
def sms_outbox(monkeypatch):
    """Collect outgoing SMS instead of calling Africa's Talking."""
    outbox = []

    def fake_send_sms(phone_number, message):
        outbox.append({"to": phone_number, "message": message})
        return {"status": "Success", "messageId": f"msg-{len(outbox)}"}

    monkeypatch.setattr(config, "AT_API_KEY", "test-key")
    monkeypatch.setattr(utils.sms, "send_sms", fake_send_sms)
    return outbox


@pytest.fixture
def make_user(session: Session):
    counter = {"n": 0}

    def _make_user(role=UserRole.citizen, department=None, password="secret123", **extra):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            username=extra.pop("username", f"{role.value}{n}"),
            name=extra.pop("name", f"{role.value.title()} {n}"),
            phone_number=extra.pop("phone_number", f"+2547000{n:05d}"),
            password_hash=hash_password(password),
            role=role,
            department=department,
            verified=extra.pop("verified", True),
            **extra,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _auth_headers


@pytest.fixture
def citizen(make_user):
    return make_user(UserRole.citizen, email="citizen@example.com")


@pytest.fixture
def worker(make_user):
    return make_user(UserRole.worker, department=Department.road)


@pytest.fixture
def office(make_user):
    return make_user(UserRole.office, department=Department.road)


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.admin)


@pytest.fixture
def make_complaint(session: Session, citizen: User):
    def _make_complaint(status=ComplaintStatus.pending, worker=None, department=Department.road, **extra):
        complaint = Complaint(
            citizen_id=citizen.id,
            title=extra.pop("title", "Pothole on Moi Avenue"),
            description=extra.pop("description", "Deep pothole near the bus stop"),
            department=department,
            category="pothole",
            latitude=COMPLAINT_LAT,
            longitude=COMPLAINT_LON,
            status=status,
            assigned_worker_id=worker.id if worker else None,
            **extra,
        )
        session.add(complaint)
        session.commit()
        session.refresh(complaint)
        return complaint

    return _make_complaint
