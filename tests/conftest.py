# tests/conftest.py - Shared fixtures: in-memory SQLite database, services and API client
import os

import pytest

# Settings are read at import time
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TOKEN_SECRET"] = "test-token-secret-for-testing-only-0123456789"
os.environ["PASSWORD_HASH_ROUNDS"] = "1000"
os.environ["LOG_FILE_PATH"] = ""

from fastapi.testclient import TestClient  # noqa: E402

from erapport.core.config import settings  # noqa: E402
from erapport.core.db import DatabaseManager  # noqa: E402
from erapport.main import create_app  # noqa: E402
from erapport.models import Base  # noqa: E402
from erapport.schemas.report import CompetencyCategory, CompetencyOption, Template  # noqa: E402
from erapport.services.auth_service import AuthService, to_record  # noqa: E402
from erapport.services.defaults import build_template_defaults  # noqa: E402
from erapport.services.persistence import PersistenceCoordinator  # noqa: E402
from erapport.services.report_store import ReportStore  # noqa: E402


@pytest.fixture
def defaults():
    return build_template_defaults(settings)


@pytest.fixture
def database():
    """Fresh in-memory database with every table created and foreign keys on"""
    manager = DatabaseManager("sqlite://")
    manager.initialize()
    Base.metadata.create_all(bind=manager.engine)
    yield manager
    manager.close()


@pytest.fixture
def persistence(database, defaults):
    coordinator = PersistenceCoordinator(database, defaults)
    coordinator.seed_defaults()
    return coordinator


@pytest.fixture
def store(persistence, defaults):
    return ReportStore(persistence, defaults)


def make_user(database, name, email, password="secret-pass"):
    session = database.SessionLocal()
    try:
        user, _token = AuthService(session).register(name, email, password)
        return to_record(user)
    finally:
        session.close()


@pytest.fixture
def teacher(database):
    return make_user(database, "Ada Lovelace", "ada@example.com")


@pytest.fixture
def other_teacher(database):
    return make_user(database, "Alan Turing", "alan@example.com")


@pytest.fixture
def school_year(store):
    state = store.persistence.load_state()
    return state.school_years[0]


@pytest.fixture
def module(store, school_year):
    return store.create_module(school_year.id, "123 Services réseau")


@pytest.fixture
def dns_template():
    return Template(
        module_title="123 Services réseau",
        competency_options=[
            CompetencyOption(code="OO2", description="Configurer les services"),
            CompetencyOption(code="OO3", description="Valider le fonctionnement"),
        ],
        competencies=[
            CompetencyCategory.model_validate({
                "category": "DNS",
                "items": [{"task": "Verify name resolution", "competencyId": "OO3"}],
            }),
        ],
    )


@pytest.fixture
def client(database, defaults):
    app = create_app(database, defaults, create_tables=True)
    with TestClient(app) as test_client:
        yield test_client


def register(client, email="ada@example.com", name="Ada Lovelace", password="secret-pass"):
    response = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def auth_headers(client):
    return register(client)
