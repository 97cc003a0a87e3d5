from sqlalchemy import func, select

from conftest import USER_PASSWORD, create_project, create_user, login_headers
from tenantflow.models.task import Task


def _user_headers(client, tenant, email="worker@acme.com"):
    assert create_user(client, tenant["headers"], tenant["tenant_id"], email).status_code == 201
    return login_headers(client, email, USER_PASSWORD, "acme")


def test_create_project_defaults(client, acme):
    resp = create_project(client, acme["headers"], "  Website  ", description="Marketing site")
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["name"] == "Website"
    assert data["status"] == "active"
    assert data["tenantId"] == acme["tenant_id"]
    assert data["createdBy"] == acme["admin_id"]


def test_regular_user_cannot_create_project(client, acme):
    headers = _user_headers(client, acme)
    resp = create_project(client, headers)
    assert resp.status_code == 403
    assert resp.json()["message"] == "Only admins can create projects"


def test_project_limit_on_free_plan(client, acme):
    for i in range(3):
        assert create_project(client, acme["headers"], f"P{i}").status_code == 201
    resp = create_project(client, acme["headers"], "P3")
    assert resp.status_code == 403
    assert resp.json()["message"] == "Project limit reached for current plan"


def test_super_admin_needs_tenant_id_to_create(client, acme, super_headers):
    resp = create_project(client, super_headers, "Global")
    assert resp.status_code == 400

    resp = create_project(client, super_headers, "Scoped", tenantId=acme["tenant_id"])
    assert resp.status_code == 201
    assert resp.json()["data"]["tenantId"] == acme["tenant_id"]


def test_tenant_admin_cannot_target_other_tenant(client, acme, globex):
    resp = create_project(client, acme["headers"], "Sneaky", tenantId=globex["tenant_id"])
    assert resp.status_code == 403


def test_list_projects_is_scoped_and_counts_tasks(client, acme, globex):
    project = create_project(client, acme["headers"], "Roadmap").json()["data"]
    create_project(client, globex["headers"], "Theirs")
    url = f"/projects/{project['id']}/tasks"
    client.post(url, json={"title": "a"}, headers=acme["headers"])
    client.post(url, json={"title": "b", "status": "completed"}, headers=acme["headers"])

    data = client.get("/projects", headers=acme["headers"]).json()["data"]
    assert data["total"] == 1
    item = data["projects"][0]
    assert item["name"] == "Roadmap"
    assert item["taskCount"] == 2
    assert item["completedTaskCount"] == 1
    assert item["creator"]["id"] == acme["admin_id"]


def test_list_projects_filters(client, acme):
    create_project(client, acme["headers"], "Alpha")
    create_project(client, acme["headers"], "Beta", status="archived")

    data = client.get("/projects", params={"status": "archived"}, headers=acme["headers"]).json()["data"]
    assert [p["name"] for p in data["projects"]] == ["Beta"]

    data = client.get("/projects", params={"search": "alp"}, headers=acme["headers"]).json()["data"]
    assert [p["name"] for p in data["projects"]] == ["Alpha"]


def test_list_projects_with_foreign_tenant_filter_is_403(client, acme, globex):
    resp = client.get("/projects", params={"tenantId": globex["tenant_id"]}, headers=acme["headers"])
    assert resp.status_code == 403


def test_super_admin_lists_all_or_one_tenant(client, acme, globex, super_headers):
    create_project(client, acme["headers"], "A")
    create_project(client, globex["headers"], "G")
    assert client.get("/projects", headers=super_headers).json()["data"]["total"] == 2
    data = client.get("/projects", params={"tenantId": globex["tenant_id"]}, headers=super_headers).json()["data"]
    assert [p["name"] for p in data["projects"]] == ["G"]


def test_get_project_cross_tenant_and_missing(client, acme, globex):
    project = create_project(client, globex["headers"], "Theirs").json()["data"]
    resp = client.get(f"/projects/{project['id']}", headers=acme["headers"])
    assert resp.status_code == 403
    assert resp.json()["message"] == "Cross-tenant access not allowed"

    resp = client.get("/projects/unknown", headers=acme["headers"])
    assert resp.status_code == 404
    assert resp.json()["message"] == "Project not found"


def test_patch_project_partial_and_clear_description(client, acme):
    project = create_project(client, acme["headers"], "Roadmap", description="Q3").json()["data"]
    url = f"/projects/{project['id']}"

    data = client.patch(url, json={"status": "completed"}, headers=acme["headers"]).json()["data"]
    assert data["status"] == "completed"
    assert data["description"] == "Q3"
    assert data["name"] == "Roadmap"

    data = client.put(url, json={"description": None}, headers=acme["headers"]).json()["data"]
    assert data["description"] is None

    resp = client.patch(url, json={"name": None}, headers=acme["headers"])
    assert resp.status_code == 400


def test_regular_user_cannot_modify_admin_project(client, acme):
    project = create_project(client, acme["headers"], "Roadmap").json()["data"]
    headers = _user_headers(client, acme)
    resp = client.patch(f"/projects/{project['id']}", json={"name": "Mine"}, headers=headers)
    assert resp.status_code == 403
    resp = client.delete(f"/projects/{project['id']}", headers=headers)
    assert resp.status_code == 403


def test_delete_project_cascades_tasks(client, db, acme):
    project = create_project(client, acme["headers"], "Roadmap").json()["data"]
    client.post(f"/projects/{project['id']}/tasks", json={"title": "a"}, headers=acme["headers"])

    resp = client.delete(f"/projects/{project['id']}", headers=acme["headers"])
    assert resp.status_code == 200
    assert resp.json()["message"] == "Project deleted successfully"
    assert client.get(f"/projects/{project['id']}", headers=acme["headers"]).status_code == 404
    assert db.scalar(select(func.count()).select_from(Task)) == 0


def test_deleting_a_project_frees_a_slot(client, acme):
    ids = [create_project(client, acme["headers"], f"P{i}").json()["data"]["id"] for i in range(3)]
    client.delete(f"/projects/{ids[0]}", headers=acme["headers"])
    assert create_project(client, acme["headers"], "P3").status_code == 201


def test_deleted_admin_token_cannot_create_project(client, acme):
    resp = create_user(client, acme["headers"], acme["tenant_id"], "second@acme.com", role="tenant_admin")
    second_id = resp.json()["data"]["id"]
    stale = login_headers(client, "second@acme.com", USER_PASSWORD, "acme")
    assert client.delete(f"/users/{second_id}", headers=acme["headers"]).status_code == 200

    resp = create_project(client, stale, "Orphan")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid or expired token"
    assert client.get("/projects", headers=acme["headers"]).json()["data"]["total"] == 0


def test_demoted_creator_still_manages_own_project(client, acme):
    resp = create_user(client, acme["headers"], acme["tenant_id"], "lead@acme.com", role="tenant_admin")
    lead_id = resp.json()["data"]["id"]
    lead = login_headers(client, "lead@acme.com", USER_PASSWORD, "acme")
    project = create_project(client, lead, "Lead's").json()["data"]

    resp = client.put(f"/users/{lead_id}", json={"role": "user"}, headers=acme["headers"])
    assert resp.json()["data"]["role"] == "user"
    lead = login_headers(client, "lead@acme.com", USER_PASSWORD, "acme")

    other = _user_headers(client, acme, "other@acme.com")
    url = f"/projects/{project['id']}"
    assert client.patch(url, json={"name": "Hijack"}, headers=other).status_code == 403
    assert client.delete(url, headers=other).status_code == 403

    resp = client.patch(url, json={"name": "Still mine"}, headers=lead)
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Still mine"
    assert client.delete(url, headers=lead).status_code == 200


def test_project_search_treats_wildcards_literally(client, acme):
    create_project(client, acme["headers"], "Cut costs 50%")
    create_project(client, acme["headers"], "Cut costs 500")

    data = client.get("/projects", params={"search": "50%"}, headers=acme["headers"]).json()["data"]
    assert [p["name"] for p in data["projects"]] == ["Cut costs 50%"]
