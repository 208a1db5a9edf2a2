from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session


def _experiment(client: TestClient, name: str = "Western blot") -> str:
    response = client.post(
        "/experiments", json={"name": name, "start_date": "2024-01-10"}
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


def _task(client: TestClient, experiment_id: str, title: str, **fields) -> dict:
    response = client.post(
        f"/experiments/{experiment_id}/tasks", json={"title": title, **fields}
    )
    assert response.status_code == 201, response.text
    return response.json()


def _depend(client: TestClient, task_id: str, dependency_id: str):
    return client.post(
        f"/tasks/{task_id}/dependencies", json={"dependency_id": dependency_id}
    )


def test_create_task_defaults(client: TestClient) -> None:
    experiment_id = _experiment(client)

    task = _task(client, experiment_id, "Load gel")

    assert task["week_id"] == "2024-01-07"
    assert task["importance"] == 3
    assert task["status"] == "default"
    assert task["completed"] is False
    assert task["dependencies"] == []
    assert task["blocked"] is False


def test_create_task_normalizes_week(client: TestClient) -> None:
    experiment_id = _experiment(client)

    task = _task(client, experiment_id, "Transfer", week_id="2024-01-19", importance=5)

    assert task["week_id"] == "2024-01-14"
    assert task["importance"] == 5


def test_create_task_for_unknown_experiment(client: TestClient) -> None:
    response = client.post(
        "/experiments/00000000-0000-0000-0000-000000000000/tasks",
        json={"title": "Orphan"},
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "EXPERIMENT_NOT_FOUND"


def test_cycle_is_rejected_and_board_unchanged(client: TestClient) -> None:
    experiment_id = _experiment(client)
    a = _task(client, experiment_id, "A")
    b = _task(client, experiment_id, "B")
    c = _task(client, experiment_id, "C")

    assert _depend(client, a["id"], b["id"]).status_code == 200
    assert _depend(client, b["id"], c["id"]).status_code == 200

    response = _depend(client, c["id"], a["id"])
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "DEPENDENCY_CYCLE"

    deps = {
        task["id"]: task["dependencies"]
        for task in client.get(f"/experiments/{experiment_id}/tasks").json()
    }
    assert deps == {a["id"]: [b["id"]], b["id"]: [c["id"]], c["id"]: []}


def test_self_dependency_is_rejected(client: TestClient) -> None:
    experiment_id = _experiment(client)
    a = _task(client, experiment_id, "A")

    response = _depend(client, a["id"], a["id"])

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "DEPENDENCY_CYCLE"


def test_patch_dependencies_rejects_cycle(client: TestClient) -> None:
    experiment_id = _experiment(client)
    a = _task(client, experiment_id, "A")
    b = _task(client, experiment_id, "B", dependencies=[a["id"]])

    response = client.patch(f"/tasks/{a['id']}", json={"dependencies": [b["id"]]})

    assert response.status_code == 409
    assert client.get(f"/tasks/{a['id']}").json()["dependencies"] == []
    assert client.get(f"/tasks/{b['id']}").json()["dependencies"] == [a["id"]]


def test_cross_experiment_dependency_is_invalid(client: TestClient) -> None:
    first = _experiment(client)
    second = _experiment(client, name="Control")
    a = _task(client, first, "A")
    x = _task(client, second, "X")

    response = _depend(client, a["id"], x["id"])

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "DEPENDENCY_INVALID"


def test_blocked_flag_follows_dependency_completion(client: TestClient) -> None:
    experiment_id = _experiment(client)
    prep = _task(client, experiment_id, "Prepare lysate")
    run = _task(client, experiment_id, "Run gel", dependencies=[prep["id"]])

    assert run["blocked"] is True
    assert run["blocked_by"] == [prep["id"]]

    client.patch(f"/tasks/{prep['id']}", json={"completed": True})

    refreshed = client.get(f"/tasks/{run['id']}").json()
    assert refreshed["blocked"] is False
    assert refreshed["blocked_by"] == []


def test_remove_dependency(client: TestClient) -> None:
    experiment_id = _experiment(client)
    a = _task(client, experiment_id, "A")
    b = _task(client, experiment_id, "B", dependencies=[a["id"]])

    response = client.delete(f"/tasks/{b['id']}/dependencies/{a['id']}")

    assert response.status_code == 200
    assert response.json()["dependencies"] == []
    assert response.json()["blocked"] is False


def test_delete_task_cleans_dependents(client: TestClient) -> None:
    experiment_id = _experiment(client)
    a = _task(client, experiment_id, "A")
    b = _task(client, experiment_id, "B")
    c = _task(client, experiment_id, "C", dependencies=[a["id"], b["id"]])

    response = client.delete(f"/tasks/{a['id']}")
    assert response.status_code == 204

    remaining = client.get(f"/tasks/{c['id']}").json()
    assert remaining["dependencies"] == [b["id"]]
    assert client.get(f"/tasks/{a['id']}").status_code == 404


def test_week_listing_normalizes_and_orders(client: TestClient) -> None:
    experiment_id = _experiment(client)
    _task(client, experiment_id, "Low", importance=1)
    _task(client, experiment_id, "High", importance=5)
    _task(client, experiment_id, "Later", week_id="2024-01-14")

    response = client.get("/weeks/2024-01-10/tasks")

    assert response.status_code == 200
    assert [task["title"] for task in response.json()] == ["High", "Low"]


def test_patch_rejects_out_of_range_importance(client: TestClient) -> None:
    experiment_id = _experiment(client)
    task = _task(client, experiment_id, "A")

    response = client.patch(f"/tasks/{task['id']}", json={"importance": 9})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "REQUEST_VALIDATION_ERROR"


def test_completing_task_sets_completed_status(client: TestClient) -> None:
    experiment_id = _experiment(client)
    task = _task(client, experiment_id, "Image blot", status="important")

    done = client.patch(f"/tasks/{task['id']}", json={"completed": True})
    assert done.json()["status"] == "completed"

    explicit = _task(client, experiment_id, "Scan membrane")
    both = client.patch(
        f"/tasks/{explicit['id']}", json={"completed": True, "status": "info"}
    )
    assert both.json()["status"] == "info"
    assert both.json()["completed"] is True


def test_delete_task_rolls_back_when_commit_fails(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    experiment_id = _experiment(client)
    a = _task(client, experiment_id, "A")
    b = _task(client, experiment_id, "B", dependencies=[a["id"]])

    def failing_commit(self: Session) -> None:
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(Session, "commit", failing_commit)
    response = client.delete(f"/tasks/{a['id']}")
    monkeypatch.undo()

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "PERSISTENCE_ERROR"
    assert client.get(f"/tasks/{a['id']}").status_code == 200
    assert client.get(f"/tasks/{b['id']}").json()["dependencies"] == [a["id"]]
