import pytest
from fastapi.testclient import TestClient

from portal.backend.main import app


@pytest.fixture
def client():
    """Lifespan çalıştırılmaz; servisler dependency_overrides ile verilir."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_header(make_token):
    def _header(role, **kwargs):
        return {"Authorization": f"Bearer {make_token(role, **kwargs)}"}
    return _header
