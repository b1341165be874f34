"""Integration tests for the task REST service."""

import json

import pytest


@pytest.mark.integration
class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


@pytest.mark.integration
class TestTaskEndpoints:
    """Tests for /tasks routes."""

    def test_create_and_list(self, client):
        response = client.post(
            "/tasks",
            json={
                "title": "Fix login bug",
                "priority": "High",
                "type": "daily",
                "main_assignee_id": 1,
                "supporting_assignees": [4, 6],
            },
        )

        assert response.status_code == 201
        created = response.json()
        assert created["title"] == "Fix login bug"
        assert created["supporting_assignees"] == "[4, 6]"
        assert created["completed"] is False

        listed = client.get("/tasks").json()
        assert [t["id"] for t in listed] == [created["id"]]
        assert listed[0]["subtasks"] == []

    def test_title_required(self, client):
        response = client.post("/tasks", json={"title": "   "})

        assert response.status_code == 400

    def test_invalid_priority_rejected(self, client):
        response = client.post("/tasks", json={"title": "A", "priority": "Urgent"})

        assert response.status_code == 422

    def test_schedule_is_normalised(self, client):
        response = client.post(
            "/tasks", json={"title": "Timed", "schedule": {"mode": "due", "dueAt": "2025-01-10", "extra": 1}}
        )

        assert response.status_code == 201
        assert json.loads(response.json()["schedule"]) == {
            "mode": "due",
            "reset": "none",
            "dueAt": "2025-01-10T00:00:00Z",
        }

    def test_malformed_schedule_rejected(self, client):
        response = client.post("/tasks", json={"title": "Timed", "schedule": '{"mode": "countdown"}'})

        assert response.status_code == 400

    def test_update(self, client):
        task = client.post("/tasks", json={"title": "Draft"}).json()

        response = client.put(f"/tasks/{task['id']}", json={"title": "Final", "pinned": True})

        assert response.status_code == 200
        assert response.json()["title"] == "Final"
        assert response.json()["pinned"] is True

    def test_update_missing_task(self, client):
        response = client.put("/tasks/999", json={"title": "Ghost"})

        assert response.status_code == 404
        assert "error" in response.json()

    def test_delete(self, client):
        task = client.post("/tasks", json={"title": "Doomed"}).json()

        assert client.delete(f"/tasks/{task['id']}").json() == {"status": "deleted"}
        assert client.get("/tasks").json() == []
        assert client.delete(f"/tasks/{task['id']}").status_code == 404

    def test_recent_and_clear(self, client):
        client.post("/tasks", json={"title": "Active"})
        client.post("/tasks", json={"title": "Shelved", "archived": True})

        assert [t["title"] for t in client.get("/tasks/recent").json()] == ["Active"]

        response = client.post("/tasks/clear")

        assert response.json() == {"status": "cleared", "deleted": 1}
        assert [t["title"] for t in client.get("/tasks").json()] == ["Shelved"]


@pytest.mark.integration
class TestSubtaskEndpoints:
    """Tests for /tasks/{task_id}/subtasks routes."""

    def test_subtask_lifecycle(self, client):
        task = client.post("/tasks", json={"title": "Project"}).json()
        base = f"/tasks/{task['id']}/subtasks"

        created = client.post(base, json={"title": "Step"})
        assert created.status_code == 201
        subtask = created.json()
        assert subtask["task_id"] == task["id"]

        updated = client.put(f"{base}/{subtask['id']}", json={"completed": True})
        assert updated.json()["completed"] is True

        assert client.delete(f"{base}/{subtask['id']}").status_code == 200
        assert client.get("/tasks").json()[0]["subtasks"] == []

    def test_subtask_title_required(self, client):
        task = client.post("/tasks", json={"title": "Project"}).json()

        assert client.post(f"/tasks/{task['id']}/subtasks", json={}).status_code == 400

    def test_subtask_of_missing_task(self, client):
        assert client.post("/tasks/404/subtasks", json={"title": "Orphan"}).status_code == 404


@pytest.mark.integration
def test_users_empty(client):
    assert client.get("/users").json() == []
