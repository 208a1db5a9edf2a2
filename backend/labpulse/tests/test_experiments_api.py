from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

RECURRING_PLAN = [
    {
        "id": "p1",
        "title": "Measure",
        "week_offset": 2,
        "importance": 4,
        "recurrence": {"interval_weeks": 2, "duration_weeks": 5},
    },
    {"id": "p2", "title": "Kickoff", "week_offset": 0, "status": "important"},
]


def _create_experiment(client: TestClient, **overrides) -> dict:
    payload = {
        "name": "CRISPR knockout",
        "description": "HEK293 line",
        "start_date": "2024-01-10",
        "plan": RECURRING_PLAN,
    }
    payload.update(overrides)
    response = client.post("/experiments", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_create_experiment_expands_plan(client: TestClient) -> None:
    body = _create_experiment(client)

    assert body["start_date"] == "2024-01-07"
    assert body["status"] == "active"
    assert body["task_count"] == 4
    assert body["expected_weeks"] == 7
    assert [item["id"] for item in body["original_plan"]] == ["p1", "p2"]

    tasks = client.get(f"/experiments/{body['id']}/tasks").json()
    measure = [task for task in tasks if task["plan_task_id"] == "p1"]
    assert [task["week_id"] for task in measure] == ["2024-01-21", "2024-02-04", "2024-02-18"]
    assert [task["title"] for task in measure] == ["Measure (1)", "Measure (2)", "Measure (3)"]
    assert len({task["recurrence_group_id"] for task in measure}) == 1
    assert all(task["importance"] == 4 for task in measure)

    (kickoff,) = [task for task in tasks if task["plan_task_id"] == "p2"]
    assert kickoff["week_id"] == "2024-01-07"
    assert kickoff["status"] == "important"
    assert kickoff["recurrence_group_id"] is None
    assert kickoff["blocked"] is False


def test_create_experiment_without_plan_uses_end_date(client: TestClient) -> None:
    body = _create_experiment(client, plan=[], end_date="2024-03-01")

    assert body["end_date"] == "2024-02-25"
    assert body["expected_weeks"] == 8
    assert body["task_count"] == 0
    assert body["original_plan"] is None


def test_create_experiment_rejects_invalid_recurrence(client: TestClient) -> None:
    response = client.post(
        "/experiments",
        json={
            "name": "Broken",
            "start_date": "2024-01-07",
            "plan": [
                {
                    "title": "Loop",
                    "week_offset": 0,
                    "recurrence": {"interval_weeks": 0, "duration_weeks": 3},
                }
            ],
        },
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_RECURRENCE"
    assert client.get("/experiments").json() == []


def test_create_experiment_validation_envelope(client: TestClient) -> None:
    response = client.post("/experiments", json={"start_date": "2024-01-07"})

    assert response.status_code == 422
    body = response.json()
    assert body["error"]["code"] == "REQUEST_VALIDATION_ERROR"
    assert body["error"]["details"]


def test_unknown_experiment_returns_404(client: TestClient) -> None:
    response = client.get("/experiments/00000000-0000-0000-0000-000000000000")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "EXPERIMENT_NOT_FOUND"


def test_patch_experiment_normalizes_dates(client: TestClient) -> None:
    experiment = _create_experiment(client, plan=[])

    response = client.patch(
        f"/experiments/{experiment['id']}",
        json={"name": "Renamed", "end_date": "2024-02-29"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Renamed"
    assert body["end_date"] == "2024-02-25"


def test_shift_timeline_moves_open_tasks_and_end_date(client: TestClient) -> None:
    experiment = _create_experiment(client, end_date="2024-03-03")
    experiment_id = experiment["id"]
    tasks = client.get(f"/experiments/{experiment_id}/tasks").json()
    kickoff = next(task for task in tasks if task["plan_task_id"] == "p2")

    done = client.patch(f"/tasks/{kickoff['id']}", json={"completed": True})
    assert done.status_code == 200

    response = client.post(f"/experiments/{experiment_id}/shift", json={"weeks": 1})
    assert response.status_code == 200
    assert response.json()["end_date"] == "2024-03-10"

    shifted = {task["id"]: task for task in client.get(f"/experiments/{experiment_id}/tasks").json()}
    assert shifted[kickoff["id"]]["week_id"] == "2024-01-07"
    assert sorted(
        task["week_id"] for task in shifted.values() if task["plan_task_id"] == "p1"
    ) == ["2024-01-28", "2024-02-11", "2024-02-25"]


def test_shift_timeline_leaves_other_experiments_alone(client: TestClient) -> None:
    first = _create_experiment(client)
    second = _create_experiment(client, name="Control")

    client.post(f"/experiments/{first['id']}/shift", json={"weeks": -1})

    weeks = [task["week_id"] for task in client.get(f"/experiments/{second['id']}/tasks").json()]
    assert "2024-01-07" in weeks


def test_archive_toggle_and_status_filter(client: TestClient) -> None:
    experiment = _create_experiment(client)
    experiment_id = experiment["id"]

    archived = client.post(f"/experiments/{experiment_id}/archive")
    assert archived.status_code == 200
    assert archived.json()["status"] == "archived"

    assert client.get("/experiments", params={"status": "active"}).json() == []
    assert len(client.get("/experiments", params={"status": "archived"}).json()) == 1
    assert client.get("/weeks/2024-01-07/tasks").json() == []

    restored = client.post(f"/experiments/{experiment_id}/restore")
    assert restored.json()["status"] == "active"
    assert len(client.get("/weeks/2024-01-07/tasks").json()) == 1

    toggled_again = client.post(f"/experiments/{experiment_id}/archive")
    assert toggled_again.json()["status"] == "archived"


def test_delete_experiment_removes_tasks(client: TestClient) -> None:
    experiment = _create_experiment(client)
    task_id = client.get(f"/experiments/{experiment['id']}/tasks").json()[0]["id"]

    response = client.delete(f"/experiments/{experiment['id']}")
    assert response.status_code == 204

    assert client.get(f"/experiments/{experiment['id']}").status_code == 404
    missing = client.get(f"/tasks/{task_id}")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "TASK_NOT_FOUND"


def test_reset_tasks_clears_board_but_keeps_plan(client: TestClient) -> None:
    experiment = _create_experiment(client)

    response = client.post(f"/experiments/{experiment['id']}/reset-tasks")

    assert response.status_code == 200
    body = response.json()
    assert body["task_count"] == 0
    assert len(body["original_plan"]) == 2


def test_editing_recurring_instance_updates_master_plan(client: TestClient) -> None:
    experiment = _create_experiment(client)
    tasks = client.get(f"/experiments/{experiment['id']}/tasks").json()
    second = next(task for task in tasks if task["title"] == "Measure (2)")

    response = client.patch(
        f"/tasks/{second['id']}",
        json={"title": "Assay (2)", "importance": 2},
    )
    assert response.status_code == 200

    plan = client.get(f"/experiments/{experiment['id']}").json()["original_plan"]
    p1 = next(item for item in plan if item["id"] == "p1")
    assert p1["title"] == "Assay"
    assert p1["importance"] == 2


def _failing_commit(self: Session) -> None:
    raise OperationalError("COMMIT", {}, Exception("disk I/O error"))


def test_shift_out_of_calendar_range_is_invalid_date(client: TestClient) -> None:
    experiment = _create_experiment(client, end_date="2024-03-03")

    response = client.post(
        f"/experiments/{experiment['id']}/shift", json={"weeks": 1_000_000}
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_DATE"
    assert client.get(f"/experiments/{experiment['id']}").json()["end_date"] == "2024-03-03"


def test_shift_is_all_or_nothing_when_commit_fails(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    experiment = _create_experiment(client, end_date="2024-03-03")
    experiment_id = experiment["id"]
    before = {
        task["id"]: task["week_id"]
        for task in client.get(f"/experiments/{experiment_id}/tasks").json()
    }

    monkeypatch.setattr(Session, "commit", _failing_commit)
    response = client.post(f"/experiments/{experiment_id}/shift", json={"weeks": 2})
    monkeypatch.undo()

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "PERSISTENCE_ERROR"

    after = {
        task["id"]: task["week_id"]
        for task in client.get(f"/experiments/{experiment_id}/tasks").json()
    }
    assert after == before
    assert client.get(f"/experiments/{experiment_id}").json()["end_date"] == "2024-03-03"
