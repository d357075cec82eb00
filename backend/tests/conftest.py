"""
Configuration partagée pour tous les tests.
Override la dépendance get_db pour éviter toute connexion réelle à PostgreSQL,
et neutralise l'initialisation de la base au démarrage de l'application.
"""

import uuid
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from counseling.config import settings
from counseling.database import get_db
from counseling.dependencies import get_current_principal
from counseling.main import app
from counseling.principal import Principal


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Coût bcrypt minimal pour garder les tests rapides."""
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def mock_db():
    return MagicMock()


@pytest.fixture
def client(mock_db):
    """Client HTTP de test avec la BDD mockée."""
    app.dependency_overrides[get_db] = lambda: mock_db
    with patch("counseling.main.bootstrap"):
        with TestClient(app) as c:
            yield c
    app.dependency_overrides.clear()


def _principal(role: str) -> Principal:
    principal_id = uuid.uuid4()
    account = MagicMock()
    account.id = principal_id
    account.role = role
    account.email = f"{role}@school.edu"
    return Principal(id=principal_id, email=account.email, role=role, account=account)


@pytest.fixture
def admin_principal():
    return _principal("admin")


@pytest.fixture
def counsellor_principal():
    return _principal("counsellor")


@pytest.fixture
def student_principal():
    return _principal("student")


@pytest.fixture
def as_admin(client, admin_principal):
    """Client authentifié en tant qu'administrateur."""
    app.dependency_overrides[get_current_principal] = lambda: admin_principal
    return client


@pytest.fixture
def as_student(client, student_principal):
    """Client authentifié en tant qu'élève."""
    app.dependency_overrides[get_current_principal] = lambda: student_principal
    return client
