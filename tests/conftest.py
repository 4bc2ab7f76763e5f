import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="seaboo-uploads-")

import pytest
from fastapi.testclient import TestClient

from src.infrastructure.db.models import Base
from src.infrastructure.db.session import engine
from src.main import app


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)
