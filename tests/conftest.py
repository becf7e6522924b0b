# tests/conftest.py
import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db, enable_sqlite_foreign_keys
import models.users  # noqa: F401
import models.location  # noqa: F401
import models.review  # noqa: F401
import models.password_reset  # noqa: F401
import models.log  # noqa: F401
from models.users import User
from models.location import Location
from main import app
from utils.hashing import get_password_hash
from utils.mailer import LoggingMailer, get_mailer
from utils.storage import PhotoStorage, get_photo_storage
from utils.tokenJWT import create_access_token

DEFAULT_PASSWORD = "Secret1!"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage(tmp_path):
    store = PhotoStorage(tmp_path / "uploads")
    store.ensure_dirs()
    return store


@pytest.fixture
def mailer():
    return LoggingMailer()


@pytest.fixture
def client(session_factory, storage, mailer):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_photo_storage] = lambda: storage
    app.dependency_overrides[get_mailer] = lambda: mailer
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(session, *, name="Maria Silva", email="maria@example.com", is_admin=False, password=DEFAULT_PASSWORD):
    user = User(name=name, email=email, password_hash=get_password_hash(password), is_admin=is_admin)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def auth_header(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def review_form(description="Wide entrance, ramp at the side door", criteria=None) -> dict:
    if criteria is None:
        criteria = [{"name": "Access", "rating": 4}]
    return {"description": description, "criteria": json.dumps(criteria)}


def photo_files(count: int, ext: str = "jpg") -> list:
    return [(f"photo{i}", (f"picture{i}.{ext}", b"\xff\xd8\xff" + bytes([i]) * 16, "image/jpeg")) for i in range(count)]


@pytest.fixture
def user(db):
    return make_user(db)


@pytest.fixture
def other_user(db):
    return make_user(db, name="Joao Souza", email="joao@example.com")


@pytest.fixture
def admin(db):
    return make_user(db, name="Admin", email="admin@example.com", is_admin=True)


@pytest.fixture
def location(db, user):
    loc = Location(
        name="Biblioteca Central",
        address="Rua das Flores 100",
        latitude=-23.55,
        longitude=-46.63,
        category="Library",
        description="Public library",
        created_by=user.id,
    )
    db.add(loc)
    db.commit()
    db.refresh(loc)
    return loc
