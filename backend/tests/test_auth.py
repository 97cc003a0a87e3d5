import jwt
import pytest
from sqlalchemy import func, select

from conftest import (
    ADMIN_PASSWORD,
    SUPER_EMAIL,
    SUPER_PASSWORD,
    TEST_SECRET,
    bearer,
    login,
    register_tenant,
)
from tenantflow.core.errors import ConflictError
from tenantflow.models.audit import AuditLog
from tenantflow.models.tenant import Tenant
from tenantflow.models.user import User
from tenantflow.services import auth as auth_service


def test_register_tenant_creates_free_tenant_and_admin(client, db):
    resp = client.post(
        "/auth/register-tenant",
        json={
            "tenantName": "Acme Corp",
            "subdomain": "Acme",
            "adminEmail": "Boss@Acme.com",
            "adminPassword": ADMIN_PASSWORD,
            "adminFullName": "Acme Boss",
        },
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Tenant registered successfully"
    assert body["data"]["subdomain"] == "acme"
    assert body["data"]["adminUser"]["email"] == "boss@acme.com"
    assert body["data"]["adminUser"]["role"] == "tenant_admin"
    assert "passwordHash" not in body["data"]["adminUser"]

    tenant = db.get(Tenant, body["data"]["tenantId"])
    assert tenant.subscription_plan == "free"
    assert (tenant.max_users, tenant.max_projects) == (5, 3)

    actions = db.scalars(select(AuditLog.action).where(AuditLog.tenant_id == tenant.id)).all()
    assert actions == ["CREATE_TENANT"]


def test_register_tenant_duplicate_subdomain_conflicts(client):
    register_tenant(client, "acme")
    resp = client.post(
        "/auth/register-tenant",
        json={
            "tenantName": "Other",
            "subdomain": "ACME",
            "adminEmail": "x@other.com",
            "adminPassword": ADMIN_PASSWORD,
            "adminFullName": "X",
        },
    )
    assert resp.status_code == 409
    assert resp.json() == {"success": False, "message": "Subdomain already exists"}


@pytest.mark.parametrize("subdomain", ["-acme", "acme_corp", "ac me", "acme-"])
def test_register_tenant_rejects_bad_subdomain(client, subdomain):
    resp = client.post(
        "/auth/register-tenant",
        json={
            "tenantName": "Bad",
            "subdomain": subdomain,
            "adminEmail": "a@bad.com",
            "adminPassword": ADMIN_PASSWORD,
            "adminFullName": "A",
        },
    )
    assert resp.status_code == 400


def test_register_tenant_enforces_password_policy(client):
    resp = client.post(
        "/auth/register-tenant",
        json={
            "tenantName": "Weak",
            "subdomain": "weak",
            "adminEmail": "a@weak.com",
            "adminPassword": "password",
            "adminFullName": "A",
        },
    )
    assert resp.status_code == 400
    assert "uppercase" in resp.json()["message"]


def test_register_tenant_missing_field_is_400(client):
    resp = client.post("/auth/register-tenant", json={"tenantName": "x"})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_register_tenant_rolls_back_when_admin_insert_fails(app, client, db, monkeypatch):
    def boom(_plain):
        raise RuntimeError("hash backend down")

    monkeypatch.setattr(auth_service, "hash_password", boom)
    session = app.state.db.session()
    with pytest.raises(RuntimeError):
        auth_service.register_tenant(
            session,
            tenant_name="Half",
            subdomain="half",
            admin_email="a@half.com",
            admin_password=ADMIN_PASSWORD,
            admin_full_name="A",
        )
    session.close()

    assert db.scalar(select(func.count()).select_from(Tenant)) == 0
    assert db.scalar(select(func.count()).select_from(User)) == 0
    assert db.scalar(select(func.count()).select_from(AuditLog)) == 0


def test_register_tenant_duplicate_raises_conflict_at_service_level(app, client):
    register_tenant(client, "acme")
    session = app.state.db.session()
    try:
        with pytest.raises(ConflictError):
            auth_service.register_tenant(
                session,
                tenant_name="Again",
                subdomain="acme",
                admin_email="b@acme.com",
                admin_password=ADMIN_PASSWORD,
                admin_full_name="B",
            )
    finally:
        session.close()


def test_login_returns_token_with_claims(client):
    data = register_tenant(client, "acme")
    resp = login(client, "admin@acme.com", ADMIN_PASSWORD, "acme")
    assert resp.status_code == 200
    body = resp.json()["data"]
    assert body["expiresIn"] == 24 * 60 * 60
    assert body["user"]["tenantId"] == data["tenantId"]
    assert body["tenant"]["subdomain"] == "acme"

    claims = jwt.decode(body["token"], TEST_SECRET, algorithms=["HS256"])
    assert claims["sub"] == data["adminUser"]["id"]
    assert claims["email"] == "admin@acme.com"
    assert claims["role"] == "tenant_admin"
    assert claims["tenantId"] == data["tenantId"]
    assert claims["exp"] - claims["iat"] == 24 * 60 * 60


def test_login_by_tenant_id(client):
    data = register_tenant(client, "acme")
    resp = client.post(
        "/auth/login",
        json={"email": "admin@acme.com", "password": ADMIN_PASSWORD, "tenantId": data["tenantId"]},
    )
    assert resp.status_code == 200


def test_login_wrong_password_and_unknown_user_look_the_same(client):
    register_tenant(client, "acme")
    wrong = login(client, "admin@acme.com", "WrongPass1", "acme")
    unknown = login(client, "ghost@acme.com", ADMIN_PASSWORD, "acme")
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {"success": False, "message": "Invalid credentials"}


def test_login_with_other_tenant_context_matches_wrong_password(client):
    register_tenant(client, "acme")
    register_tenant(client, "globex")
    cross = login(client, "admin@acme.com", ADMIN_PASSWORD, "globex")
    wrong = login(client, "admin@acme.com", "WrongPass1", "acme")
    assert cross.status_code == wrong.status_code == 401
    assert cross.json()["message"] == wrong.json()["message"]


def test_login_same_email_in_two_tenants_picks_the_requested_one(client):
    acme = register_tenant(client, "acme", admin_email="shared@mail.com")
    globex = register_tenant(client, "globex", admin_email="shared@mail.com")

    resp = login(client, "shared@mail.com", ADMIN_PASSWORD, "globex")
    assert resp.status_code == 200
    assert resp.json()["data"]["user"]["id"] == globex["adminUser"]["id"]

    resp = login(client, "shared@mail.com", ADMIN_PASSWORD, "acme")
    assert resp.json()["data"]["user"]["id"] == acme["adminUser"]["id"]


def test_login_without_tenant_context_for_tenant_user(client):
    register_tenant(client, "acme")
    resp = login(client, "admin@acme.com", ADMIN_PASSWORD)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Tenant context required"


def test_login_unknown_tenant_is_404(client):
    resp = login(client, "admin@acme.com", ADMIN_PASSWORD, "nowhere")
    assert resp.status_code == 404
    assert resp.json()["message"] == "Tenant not found"


def test_login_suspended_tenant_is_403(client, db):
    data = register_tenant(client, "acme")
    tenant = db.get(Tenant, data["tenantId"])
    tenant.status = "suspended"
    db.commit()

    resp = login(client, "admin@acme.com", ADMIN_PASSWORD, "acme")
    assert resp.status_code == 403
    assert resp.json()["message"] == "Account suspended"


def test_login_inactive_user_is_403(client, db):
    data = register_tenant(client, "acme")
    user = db.get(User, data["adminUser"]["id"])
    user.is_active = False
    db.commit()

    resp = login(client, "admin@acme.com", ADMIN_PASSWORD, "acme")
    assert resp.status_code == 403
    assert resp.json()["message"] == "Account inactive"


def test_super_admin_logs_in_without_tenant(client, super_admin):
    resp = login(client, SUPER_EMAIL, SUPER_PASSWORD)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["user"]["role"] == "super_admin"
    assert data["user"]["tenantId"] is None
    assert data["tenant"] is None


def test_me_returns_user_and_tenant(client, acme):
    resp = client.get("/auth/me", headers=acme["headers"])
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["id"] == acme["admin_id"]
    assert data["tenant"]["id"] == acme["tenant_id"]
    assert data["tenant"]["subdomain"] == "acme"


def test_me_for_super_admin_has_null_tenant(client, super_headers):
    resp = client.get("/auth/me", headers=super_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["tenant"] is None


def test_logout_writes_audit_entry(client, db, acme):
    resp = client.post("/auth/logout", headers=acme["headers"])
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Logged out successfully", "data": None}

    entry = db.scalar(select(AuditLog).where(AuditLog.action == "LOGOUT"))
    assert entry.user_id == acme["admin_id"]
    assert entry.tenant_id == acme["tenant_id"]


def test_missing_token_is_401(client):
    resp = client.get("/auth/me")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "Authentication required"}


def test_bad_signature_and_expired_token_look_the_same(client, acme):
    claims = jwt.decode(acme["headers"]["Authorization"].split()[1], TEST_SECRET, algorithms=["HS256"])

    forged = jwt.encode(claims, "another-secret-" + "x" * 32, algorithm="HS256")
    expired = jwt.encode({**claims, "exp": claims["iat"] - 10}, TEST_SECRET, algorithm="HS256")

    for token in (forged, expired, "not-a-jwt"):
        resp = client.get("/auth/me", headers=bearer(token))
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid or expired token"
