import os
import shutil
import tempfile
from pathlib import Path

# Point the app at throwaway storage before anything imports the settings
_TMP_ROOT = Path(tempfile.mkdtemp(prefix="baca-sendiri-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_ROOT / 'test.db'}"
os.environ["STORAGE_ROOT"] = str(_TMP_ROOT / "public")
os.environ["UPLOAD_TMP_DIR"] = str(_TMP_ROOT / "public" / "tmp")
os.environ["SECRET_KEY"] = "test-secret"

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.db.base import Base
from app.db.sessions import SessionLocal, engine
from app.models.user import User, ROLE_ADMIN
from app.services.storage import get_storage


@pytest.fixture(autouse=True)
def reset_state():
    """Fresh tables and empty upload directories for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    storage = get_storage()
    for directory in [storage.tmp_dir] + [storage.root / kind for kind in ("story_thumbnails", "story_content", "profile_picture")]:
        if directory.exists():
            for child in directory.iterdir():
                if child.is_file():
                    child.unlink()
    storage.ensure_dirs()
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage():
    return get_storage()


def register_and_login(client, name="Ayu", email="ayu@example.com", password="rahasia123"):
    resp = client.post("/users/register", json={"name": name, "email": email, "password": password})
    assert resp.status_code == 201, resp.text
    resp = client.post("/users/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    return {"Authorization": f"Bearer {data['token']}"}, data["user"]


def make_admin(client, email="admin@example.com", password="adminpass"):
    """Register an account, promote it in the database, and log in again."""
    register_and_login(client, name="Admin", email=email, password=password)
    session = SessionLocal()
    try:
        user = session.query(User).filter(User.email == email).one()
        user.role = ROLE_ADMIN
        session.commit()
    finally:
        session.close()
    resp = client.post("/users/login", json={"email": email, "password": password})
    data = resp.json()["data"]
    return {"Authorization": f"Bearer {data['token']}"}, data["user"]


@pytest.fixture
def auth(client):
    return register_and_login(client)


@pytest.fixture
def new_user(client):
    def _new_user(name, email, password="rahasia123"):
        return register_and_login(client, name=name, email=email, password=password)
    return _new_user


@pytest.fixture
def admin_auth(client):
    return make_admin(client)


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    shutil.rmtree(_TMP_ROOT, ignore_errors=True)
