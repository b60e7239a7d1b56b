import os
import shutil
import sys
import tempfile
import unittest
import uuid

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

_ARTIFACT_ROOT = tempfile.mkdtemp(prefix="model-builder-tests-")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ARTIFACT_BACKEND", "local")
os.environ.setdefault("ARTIFACT_DIR", _ARTIFACT_ROOT)
os.environ.setdefault("ENVIRONMENT", "test")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.main as main
from app.config.permissions_config import Role
from app.core.dependencies import get_current_user
from app.core.errors import UnauthorizedError
from app.database.session import get_db, init_db
from app.modules.model_definitions.artifact_store import LocalArtifactStore, get_artifact_store
from app.modules.users.models import User
from app.modules.users.schemas import CurrentUser


def memory_engine():
    """A private in-memory SQLite database shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine


class DatabaseTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = memory_engine()
        self.Session = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        self.db = self.Session()
        self.artifact_dir = tempfile.mkdtemp(prefix="artifacts-", dir=_ARTIFACT_ROOT)
        self.artifact_store = LocalArtifactStore(self.artifact_dir)

    def tearDown(self):
        self.db.close()
        self.engine.dispose()
        shutil.rmtree(self.artifact_dir, ignore_errors=True)

    def add_user(self, role=Role.VIEWER, email=None):
        with self.Session() as session:
            user = User(
                auth_id=str(uuid.uuid4()),
                email=email or f"{uuid.uuid4().hex[:8]}@example.com",
                role=role.value,
            )
            session.add(user)
            session.commit()
            return CurrentUser(id=user.id, role=role, email=user.email, auth_id=user.auth_id)


class ApiTestCase(DatabaseTestCase):
    """Runs the real app against a throwaway database; ``self.acting`` is the caller."""

    def setUp(self):
        super().setUp()
        self.acting = None

        def override_get_db():
            session = self.Session()
            try:
                yield session
            finally:
                session.close()

        def override_current_user():
            if self.acting is None:
                raise UnauthorizedError("Authentication required")
            return self.acting

        main.app.dependency_overrides[get_db] = override_get_db
        main.app.dependency_overrides[get_artifact_store] = lambda: self.artifact_store
        main.app.dependency_overrides[get_current_user] = override_current_user
        self.client = TestClient(main.app)

    def tearDown(self):
        main.app.dependency_overrides.clear()
        super().tearDown()

    def as_user(self, user):
        self.acting = user
        return self.client

    def create_model(self, payload, user=None):
        if user is not None:
            self.acting = user
        response = self.client.post("/api/v1/models", json=payload)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["model"]

    def publish(self, model_id, user=None):
        if user is not None:
            self.acting = user
        response = self.client.post(f"/api/v1/models/{model_id}/publish")
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()
