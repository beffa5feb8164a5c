import pytest
from fastapi.testclient import TestClient
from storefront.customer.tokens import issue_token


@pytest.fixture()
def client():
    from app import app

    return TestClient(app)


@pytest.fixture()
def auth_header():
    def _header(user):
        return {"Authorization": f"Bearer {issue_token(user.id, role=user.role)}"}

    return _header


@pytest.fixture()
def admin(make_user):
    return make_user(email="admin@example.com", full_name="Admin", role="admin")
