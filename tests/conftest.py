import os
import tempfile

# Configuration is read at import time, so it has to be in place before the app modules load
_db_dir = tempfile.mkdtemp(prefix="linkcurt-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["TOKEN_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SHORT_LINK_DOMAIN"] = "service.example"
os.environ["GEO_LOOKUP_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

from auth.tokens import create_token, hash_password
from database import Base, SessionLocal, engine
from main import app
from models import Link, User


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(email=None, role="user", password="password123", name="Tester"):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            hashed_password=hash_password(password),
            name=name,
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_link(db):
    def _make(user, original_link="https://example.com/page", short_link="AbC1"):
        link = Link(original_link=original_link, short_link=short_link, id_user=user.id)
        db.add(link)
        db.commit()
        db.refresh(link)
        return link

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_token(user.email)}"}

    return _headers
