import pytest
from fastapi.testclient import TestClient

from tenantflow.core.security import hash_password
from tenantflow.core.settings import Settings
from tenantflow.db import Database
from tenantflow.main import create_app
from tenantflow.models.enums import Role
from tenantflow.models.user import User

TEST_SECRET = "s" * 48
ADMIN_PASSWORD = "AdminPass1"
USER_PASSWORD = "UserPass1"
SUPER_EMAIL = "root@platform.com"
SUPER_PASSWORD = "RootPass1"


def make_settings(**overrides) -> Settings:
    values = {
        "ENV": "lab",
        "DATABASE_URL": "sqlite://",
        "AUTH_JWT_SECRET": TEST_SECRET,
        "LOG_LEVEL": "WARNING",
        "AUTO_CREATE_SCHEMA": True,
        "SEED_DEMO_DATA": False,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def app(settings):
    # in-memory SQLite, fresh schema per test
    return create_app(settings, Database(settings.DATABASE_URL))


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app, client):
    session = app.state.db.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def super_admin(db):
    user = User(
        tenant_id=None,
        email=SUPER_EMAIL,
        password_hash=hash_password(SUPER_PASSWORD),
        full_name="Platform Root",
        role=Role.SUPER_ADMIN.value,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def super_headers(client, super_admin):
    return login_headers(client, SUPER_EMAIL, SUPER_PASSWORD)


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register_tenant(client, subdomain: str, admin_email: str | None = None, name: str | None = None) -> dict:
    resp = client.post(
        "/auth/register-tenant",
        json={
            "tenantName": name or f"{subdomain.title()} Inc",
            "subdomain": subdomain,
            "adminEmail": admin_email or f"admin@{subdomain}.com",
            "adminPassword": ADMIN_PASSWORD,
            "adminFullName": f"{subdomain.title()} Admin",
        },
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def login(client, email: str, password: str, subdomain: str | None = None):
    body = {"email": email, "password": password}
    if subdomain:
        body["tenantSubdomain"] = subdomain
    return client.post("/auth/login", json=body)


def login_headers(client, email: str, password: str, subdomain: str | None = None) -> dict:
    resp = login(client, email, password, subdomain)
    assert resp.status_code == 200, resp.text
    return bearer(resp.json()["data"]["token"])


def admin_headers(client, subdomain: str) -> dict:
    return login_headers(client, f"admin@{subdomain}.com", ADMIN_PASSWORD, subdomain)


def create_user(client, headers, tenant_id: str, email: str, role: str = "user", password: str = USER_PASSWORD):
    return client.post(
        f"/tenants/{tenant_id}/users",
        json={"email": email, "password": password, "fullName": email.split("@")[0].title(), "role": role},
        headers=headers,
    )


def create_project(client, headers, name: str = "Website", **extra):
    return client.post("/projects", json={"name": name, **extra}, headers=headers)


@pytest.fixture
def acme(client):
    """Registered tenant "acme" with its admin logged in."""
    data = register_tenant(client, "acme")
    return {
        "tenant_id": data["tenantId"],
        "admin_id": data["adminUser"]["id"],
        "headers": admin_headers(client, "acme"),
    }


@pytest.fixture
def globex(client):
    data = register_tenant(client, "globex")
    return {
        "tenant_id": data["tenantId"],
        "admin_id": data["adminUser"]["id"],
        "headers": admin_headers(client, "globex"),
    }
