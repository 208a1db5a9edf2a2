from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

BOARD = {
    "experiments": [
        {
            "id": "e1",
            "name": "Imported screen",
            "startDate": "2024-01-10",
            "endDate": "2024-02-01",
            "expectedWeeks": 4,
            "status": "active",
            "originalPlan": [
                {
                    "id": "p1",
                    "title": "Seed plates",
                    "weekOffset": 1,
                    "recurrence": {"type": "interval", "intervalWeeks": 1, "durationWeeks": 2},
                }
            ],
        }
    ],
    "tasks": [
        {
            "id": "t1",
            "experimentId": "e1",
            "title": "Analyse",
            "weekId": "2024-01-17",
            "dependencies": ["t2", "ghost"],
        },
        {"id": "t2", "experimentId": "e1", "title": "Seed plates (1)", "weekId": "2024-01-09"},
        {"id": "t3", "experimentId": "nowhere", "title": "Orphan"},
    ],
}


def test_export_shape(client: TestClient) -> None:
    client.post(
        "/experiments",
        json={
            "name": "Exported",
            "start_date": "2024-01-07",
            "plan": [{"id": "p1", "title": "Stain", "week_offset": 1}],
        },
    )

    response = client.get("/data/export")

    assert response.status_code == 200
    body = response.json()
    assert body["schemaVersion"] == 1
    (experiment,) = body["experiments"]
    assert experiment["startDate"] == "2024-01-07"
    assert experiment["originalPlan"][0]["weekOffset"] == 1
    (task,) = body["tasks"]
    assert task["experimentId"] == experiment["id"]
    assert task["weekId"] == "2024-01-14"
    assert task["planTaskId"] == "p1"


def test_replace_import_keeps_valid_dependencies(client: TestClient) -> None:
    client.post("/experiments", json={"name": "Old", "start_date": "2024-01-07"})

    response = client.post("/data/import", json={"mode": "replace", "data": BOARD})

    assert response.status_code == 200
    assert response.json() == {"mode": "replace", "experiments": 1, "tasks": 2}

    exported = client.get("/data/export").json()
    assert [item["name"] for item in exported["experiments"]] == ["Imported screen"]
    assert exported["experiments"][0]["startDate"] == "2024-01-07"
    assert exported["experiments"][0]["endDate"] == "2024-01-28"

    tasks = {task["title"]: task for task in exported["tasks"]}
    assert tasks["Analyse"]["dependencies"] == [tasks["Seed plates (1)"]["id"]]
    assert tasks["Seed plates (1)"]["weekId"] == "2024-01-07"
    assert uuid.UUID(tasks["Analyse"]["id"])


def test_merge_import_adds_copies_without_dependencies(client: TestClient) -> None:
    client.post("/experiments", json={"name": "Existing", "start_date": "2024-01-07"})

    first = client.post("/data/import", json={"data": BOARD})
    second = client.post("/data/import", json={"mode": "merge", "data": BOARD})

    assert first.status_code == 200
    assert second.json()["mode"] == "merge"

    exported = client.get("/data/export").json()
    assert len(exported["experiments"]) == 3
    assert len(exported["tasks"]) == 4
    assert all(task["dependencies"] == [] for task in exported["tasks"])


def test_import_rejects_malformed_board(client: TestClient) -> None:
    response = client.post("/data/import", json={"mode": "replace", "data": {"tasks": []}})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "IMPORT_INVALID"


def test_normalize_plan_draft(client: TestClient) -> None:
    response = client.post(
        "/plan-drafts/normalize",
        json={
            "tasks": [
                {"title": "Design primers", "weekOffset": 0, "importance": 5},
                {
                    "title": "qPCR",
                    "weekOffset": 2,
                    "recurrence": {"count": 3},
                    "dependsOnTaskIndex": [0],
                },
                {"title": ""},
            ]
        },
    )

    assert response.status_code == 200
    plan = response.json()["plan"]
    assert [item["title"] for item in plan] == ["Design primers", "qPCR"]
    assert plan[1]["recurrence"] == {"interval_weeks": 1, "duration_weeks": 3}
    assert plan[1]["dependencies"] == [plan[0]["id"]]


def test_normalize_plan_draft_rejects_non_object(client: TestClient) -> None:
    response = client.post("/plan-drafts/normalize", json=["not", "a", "draft"])

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "PLANNER_INPUT_INVALID"
