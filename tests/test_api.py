from datetime import date, datetime
from decimal import Decimal

import pytest

from agency_api.common.auth import issue_token
from agency_api.models.crm import Client, Project, Task
from agency_api.models.employee import Employee
from agency_api.models.notification import Notification
from agency_api.models.payroll.salary_structure import SalaryStructure
from agency_api.models.user import User


@pytest.fixture
def world(session):
    acme = Client(name="Acme", email="acme@test.local")
    other = Client(name="Other", email="other@test.local")
    session.add_all([acme, other]); session.commit()

    def mk(email, role, client_id=None):
        u = User(email=email, full_name=email.split("@")[0].title(), role=role, client_id=client_id)
        u.set_password("x")
        session.add(u); session.commit()
        return u

    users = {
        "admin": mk("admin@test.local", "admin"),
        "ops": mk("ops@test.local", "operational_head"),
        "dev": mk("dev@test.local", "developer"),
        "dev2": mk("dev2@test.local", "developer"),
        "client": mk("buyer@test.local", "client", client_id=acme.id),
    }
    project = Project(client_id=acme.id, name="Website", created_by=users["ops"].id)
    foreign = Project(client_id=other.id, name="Elsewhere", created_by=users["ops"].id)
    session.add_all([project, foreign]); session.commit()
    task = Task(project_id=project.id, title="Landing page", assigned_to=users["dev"].id)
    session.add(task); session.commit()

    emp = Employee(user_id=users["dev"].id, code="E001", joining_date=date(2024, 1, 1))
    session.add(emp); session.commit()
    session.add(SalaryStructure(employee_id=emp.id, basic_salary=Decimal("26000"),
                                house_allowance=Decimal("4000"), effective_from=datetime(2024, 1, 1)))
    session.commit()

    return {
        "users": users,
        "headers": {k: {"Authorization": f"Bearer {issue_token(u)}"} for k, u in users.items()},
        "project": project,
        "foreign": foreign,
        "task": task,
        "employee": emp,
    }


def test_health(client):
    r = client.get("/api/v1/health")
    assert r.status_code == 200
    assert r.get_json()["data"] == {"status": "ok", "ws_users": 0, "ws_projects": 0}


def test_auth_required(client, world):
    assert client.get("/api/v1/notifications").status_code == 401
    r = client.post("/api/v1/payroll/generate", json={"month": 10, "year": 2026},
                    headers=world["headers"]["dev"])
    assert r.status_code == 403


def test_payroll_flow(client, world):
    h_admin, h_ops = world["headers"]["admin"], world["headers"]["ops"]

    r = client.post("/api/v1/payroll/generate", json={"month": 10, "year": 2026}, headers=h_admin)
    assert r.status_code == 201
    assert r.get_json()["data"]["generated"] == 1

    r = client.post("/api/v1/payroll/generate", json={"month": 10, "year": 2026}, headers=h_admin)
    assert r.status_code == 200
    assert r.get_json()["data"]["generated"] == 0

    r = client.get("/api/v1/payroll?month=10&year=2026", headers=h_ops)
    rows = r.get_json()["data"]
    assert len(rows) == 1
    row = rows[0]
    assert row["employee_code"] == "E001"
    assert row["gross_salary"] == 30000.0
    assert row["attendance"]["working_days"] == 26

    r = client.post(f"/api/v1/payroll/{row['id']}/adjustments",
                    json={"type": "advance", "amount": 2000, "reason": "Eid advance"}, headers=h_admin)
    assert r.status_code == 201
    assert r.get_json()["data"]["payroll"]["net_salary"] == 28000.0

    r = client.post(f"/api/v1/payroll/{row['id']}/pay", headers=h_admin)
    assert r.get_json()["data"]["status"] == "paid"
    r = client.post(f"/api/v1/payroll/{row['id']}/pay", headers=h_admin)
    assert r.status_code == 422

    r = client.post("/api/v1/payroll/999/pay", headers=h_admin)
    assert r.status_code == 404


def test_payroll_preview_and_bad_period(client, world):
    h_ops = world["headers"]["ops"]
    emp_id = world["employee"].id

    r = client.get(f"/api/v1/payroll/preview/{emp_id}?month=10&year=2026", headers=h_ops)
    assert r.status_code == 200
    assert r.get_json()["data"]["daily_rate"] == 1000.0

    r = client.get("/api/v1/payroll/preview/999?month=10&year=2026", headers=h_ops)
    assert r.status_code == 404
    assert r.get_json()["error"]["code"] == "EMPLOYEE_NOT_FOUND"

    r = client.get(f"/api/v1/payroll/preview/{emp_id}?month=13&year=2026", headers=h_ops)
    assert r.status_code == 422


def test_hr_settings(client, world):
    r = client.get("/api/v1/hr-settings", headers=world["headers"]["ops"])
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["weekly_off_days"] == ["Friday"]
    assert data["late_deduction_rule"] == 3

    r = client.patch("/api/v1/hr-settings", json={"late_deduction_rule": 2}, headers=world["headers"]["ops"])
    assert r.status_code == 403

    r = client.patch("/api/v1/hr-settings",
                     json={"late_deduction_rule": 0, "weekly_off_days": ["Caturday"], "office_start_time": "9am"},
                     headers=world["headers"]["admin"])
    assert r.status_code == 422
    assert set(r.get_json()["error"]["errors"]) == {"late_deduction_rule", "weekly_off_days", "office_start_time"}

    r = client.patch("/api/v1/hr-settings",
                     json={"late_deduction_rule": 2, "weekly_off_days": ["Friday", "Saturday"], "overtime_enabled": True},
                     headers=world["headers"]["admin"])
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["late_deduction_rule"] == 2
    assert data["weekly_off_days"] == ["Friday", "Saturday"]
    assert data["overtime_enabled"] is True


def test_message_post_notifies_project_members(client, world):
    pid = world["project"].id
    r = client.post(f"/api/v1/projects/{pid}/messages", json={"content": "Any update?"},
                    headers=world["headers"]["client"])
    assert r.status_code == 201
    assert r.get_json()["data"]["content"] == "Any update?"

    notified = sorted(n.user_id for n in Notification.query.all())
    assert notified == sorted([world["users"]["ops"].id, world["users"]["dev"].id])

    r = client.get(f"/api/v1/projects/{pid}/messages", headers=world["headers"]["dev"])
    assert [m["content"] for m in r.get_json()["data"]] == ["Any update?"]

    r = client.post(f"/api/v1/projects/{pid}/messages", json={"content": "  "},
                    headers=world["headers"]["dev"])
    assert r.status_code == 422


def test_client_cannot_touch_foreign_project(client, world):
    r = client.get(f"/api/v1/projects/{world['foreign'].id}/messages", headers=world["headers"]["client"])
    assert r.status_code == 403
    r = client.get("/api/v1/projects/999/messages", headers=world["headers"]["client"])
    assert r.status_code == 404


def test_task_completion_and_status_change(client, world):
    tid, pid = world["task"].id, world["project"].id

    r = client.post(f"/api/v1/tasks/{tid}/complete", headers=world["headers"]["dev2"])
    assert r.status_code == 403

    r = client.post(f"/api/v1/tasks/{tid}/complete", headers=world["headers"]["dev"])
    assert r.get_json()["data"]["status"] == "done"

    r = client.patch(f"/api/v1/projects/{pid}/status", json={"status": "review"}, headers=world["headers"]["ops"])
    assert r.get_json()["data"]["status"] == "review"
    r = client.patch(f"/api/v1/projects/{pid}/status", json={"status": "exploded"}, headers=world["headers"]["ops"])
    assert r.status_code == 422

    kinds = sorted((n.user_id, n.type) for n in Notification.query.all())
    ops, dev, buyer = world["users"]["ops"].id, world["users"]["dev"].id, world["users"]["client"].id
    assert kinds == sorted([
        (ops, "task_completed"), (buyer, "task_completed"),
        (dev, "project_status"), (buyer, "project_status"),
    ])


def test_notification_inbox(client, world):
    pid = world["project"].id
    client.post(f"/api/v1/projects/{pid}/messages", json={"content": "one"}, headers=world["headers"]["client"])
    client.post(f"/api/v1/projects/{pid}/messages", json={"content": "two"}, headers=world["headers"]["client"])
    h_dev = world["headers"]["dev"]

    r = client.get("/api/v1/notifications", headers=h_dev)
    body = r.get_json()
    assert len(body["data"]) == 2
    assert body["meta"]["unread"] == 2

    first = body["data"][0]["id"]
    r = client.post(f"/api/v1/notifications/{first}/read", headers=h_dev)
    assert r.get_json()["data"]["is_read"] is True

    # someone else's notification looks missing
    r = client.post(f"/api/v1/notifications/{first}/read", headers=world["headers"]["ops"])
    assert r.status_code == 404

    r = client.post("/api/v1/notifications/read-all", headers=h_dev)
    assert r.get_json()["data"]["updated"] == 1
    r = client.get("/api/v1/notifications?unread=1", headers=h_dev)
    assert r.get_json()["data"] == []


@pytest.mark.parametrize("body", [{"month": 0, "year": 2026}, {"month": 10, "year": 0}, {"month": "x"}])
def test_generate_rejects_zero_or_bad_period(client, world, body):
    r = client.post("/api/v1/payroll/generate", json=body, headers=world["headers"]["admin"])
    assert r.status_code == 422
    assert r.get_json()["error"]["code"] == "VALIDATION_ERROR"
    assert client.get("/api/v1/payroll?month=0&year=2026",
                      headers=world["headers"]["ops"]).status_code == 422
