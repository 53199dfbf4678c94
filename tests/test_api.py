import pytest
from fastapi.testclient import TestClient

from main import create_app


@pytest.fixture
def client(storage):
    return TestClient(create_app(storage))


def test_create_and_get_student(client, student_data):
    resp = client.post("/api/students", json=student_data)
    assert resp.status_code == 201
    student = resp.json()
    assert student["id"] == 1
    assert student["is_active"] is True
    assert student["enrollment_date"].startswith("2026-10-19T10:30")

    resp = client.get("/api/students/1")
    assert resp.status_code == 200
    assert resp.json() == student


def test_invalid_body_is_400(client):
    resp = client.post("/api/students", json={"first_name": "Asha"})
    assert resp.status_code == 400


def test_duplicate_email_is_400(client, student_data):
    client.post("/api/students", json=student_data)
    resp = client.post("/api/students", json=student_data)
    assert resp.status_code == 400
    assert "already exists" in resp.json()["detail"]


def test_unknown_id(client):
    assert client.get("/api/students/99").status_code == 404
    assert client.put("/api/teachers/999", json={"phone": "1"}).status_code == 404
    assert client.delete("/api/teachers/999").status_code == 204


def test_update_and_delete(client):
    client.post("/api/courses", json={"name": "Maths", "fee": "1500.00"})
    assert client.get("/api/courses/1").json()["fee"] == "1500.00"

    resp = client.put("/api/courses/1", json={"duration": 12})
    assert resp.status_code == 200
    assert resp.json()["duration"] == 12
    assert resp.json()["name"] == "Maths"

    assert client.put("/api/courses/1", json={"duration": "long"}).status_code == 400

    resp = client.delete("/api/courses/1")
    assert resp.status_code == 204
    assert resp.content == b""
    assert client.get("/api/courses").json() == []


def test_no_update_route_for_enrollments(client):
    client.post("/api/enrollments", json={"student_id": 1, "batch_id": 1})
    assert client.put("/api/enrollments/1", json={"status": "dropped"}).status_code == 405


def test_list_filters(client):
    client.post("/api/batches", json={"name": "A", "course_id": 7})
    client.post("/api/batches", json={"name": "B", "course_id": 8})

    resp = client.get("/api/batches", params={"course_id": 7})
    assert [b["name"] for b in resp.json()] == ["A"]
    assert len(client.get("/api/batches").json()) == 2
    assert client.get("/api/batches", params={"course_id": "seven"}).status_code == 400


def test_messages_by_recipient(client):
    client.post("/api/messages", json={"recipient_type": "parent", "recipient_id": 1, "subject": "Fees"})
    client.post("/api/messages", json={"recipient_type": "student", "recipient_id": 1, "subject": "Exam"})

    resp = client.get("/api/messages", params={"recipient_type": "parent", "recipient_id": 1})
    assert [m["subject"] for m in resp.json()] == ["Fees"]


def test_attendance_by_date(client):
    client.post("/api/attendance", json={"student_id": 1, "date": "2026-10-19T09:00:00", "status": "present"})
    client.post("/api/attendance", json={"student_id": 1, "date": "2026-10-20T09:00:00", "status": "absent"})

    resp = client.get("/api/attendance", params={"date": "2026-10-19"})
    assert [a["status"] for a in resp.json()] == ["present"]
    assert client.get("/api/attendance", params={"date": "19/10/2026"}).status_code == 400


def test_dashboard_metrics(client, student_data):
    client.post("/api/students", json=student_data)
    client.post("/api/fees", json={"student_id": 1, "amount": "1200.50", "status": "paid", "paid_date": "2026-10-05T00:00:00"})
    client.post("/api/attendance", json={"student_id": 1, "date": "2026-10-19T09:00:00", "status": "present"})
    client.post("/api/attendance", json={"student_id": 1, "date": "2026-10-18T09:00:00", "status": "absent"})

    resp = client.get("/api/dashboard/metrics")
    assert resp.status_code == 200
    metrics = resp.json()
    assert metrics["total_students"] == 1
    assert metrics["total_teachers"] == 0
    assert metrics["monthly_revenue"] == "1200.50"
    assert metrics["attendance_rate"] == 50.0
