"""Shared test configuration and fixtures for EZ Forms tests"""

import logging
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from ez_forms.auth.dependencies import get_current_user, get_current_user_optional
from ez_forms.auth.models import User
from ez_forms.main import app
from ez_forms.models.database import get_db, init_db
from ez_forms.models.form import Form, FormStatus
from ez_forms.services.form_field_service import FormFieldService
from ez_forms.services.form_service import FormService
from ez_forms.services.form_version_service import FormVersionService
from ez_forms.services.response_service import ResponseService
from tests.config import test_config

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

OWNER_ID = test_config["owner_id"]


@pytest.fixture
def _db_session():
    """Private DB session for fixtures only.

    Do not use this fixture directly in tests. Prefer higher-level service
    fixtures like `form_service`, `form_field_service` or `response_service`
    to avoid coupling tests to the session internals.
    """
    # One shared in-memory database per test
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    session = Session(engine)

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def form_service(_db_session):
    return FormService(_db_session)


@pytest.fixture
def form_field_service(_db_session):
    return FormFieldService(_db_session)


@pytest.fixture
def form_version_service(_db_session):
    return FormVersionService(_db_session)


@pytest.fixture
def response_service(_db_session):
    return ResponseService(_db_session)


@pytest.fixture
def make_form(form_service):
    """Factory creating a form owned by OWNER_ID with the given fields"""

    def _make_form(fields=None, **overrides):
        attributes = {
            "user_id": OWNER_ID,
            "name": "Workshop feedback",
            "slug": f"workshop-feedback-{uuid.uuid4().hex[:8]}",
            "description": "Tell us how it went",
            "status": FormStatus.PUBLISHED,
        }
        attributes.update(overrides)
        return form_service.create_form(Form(**attributes), fields or [])

    return _make_form


@pytest.fixture
def current_user():
    """User returned by the auth dependencies; tests may replace it"""
    return {"user": User(user_id=OWNER_ID, claims={})}


@pytest.fixture
def client(_db_session, current_user):
    """TestClient sharing the test database, authenticated as current_user"""

    def _get_db():
        yield _db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: current_user["user"]
    app.dependency_overrides[get_current_user_optional] = lambda: current_user["user"]

    yield TestClient(app)

    app.dependency_overrides.clear()
