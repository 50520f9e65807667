import pytest

ACCURACIES = [0.70, 0.72, 0.74, 0.76, 0.78, 0.80, 0.82, 0.84, 0.86, 0.90]


def _model_update(student_id="student-1", accuracy=0.8, weights=None):
    return {
        "studentId": student_id,
        "weights": weights if weights is not None else [[0.1, 0.2, 0.3], [0.4, 0.5]],
        "biases": [0.0, 0.1],
        "accuracy": accuracy,
        "privacyBudget": 0.5,
    }


async def test_get_global_model_without_submissions(client):
    resp = await client.post("/api/v1/fl", json={"action": "get_global_model", "courseId": "C1"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["model"] is None


async def test_submit_round_then_fetch_model(client):
    bodies = []
    for k, acc in enumerate(ACCURACIES):
        resp = await client.post(
            "/api/v1/fl",
            json={
                "action": "submit_update",
                "courseId": "C1",
                "modelUpdate": _model_update(f"s{k}", acc),
            },
        )
        assert resp.status_code == 200
        bodies.append(resp.json())

    assert all(b["success"] for b in bodies)
    assert [b["aggregated"] for b in bodies] == [False] * 9 + [True]
    global_model = bodies[-1]["globalModel"]
    assert global_model["version"] == 1
    assert global_model["numContributors"] == 10
    assert global_model["avgAccuracy"] == pytest.approx(0.792)

    resp = await client.post("/api/v1/fl", json={"action": "get_global_model", "courseId": "C1"})
    model = resp.json()["model"]
    assert model["version"] == 1
    assert set(model) == {"version", "weights", "biases", "numContributors", "avgAccuracy", "deployedAt"}

    resp = await client.get("/api/v1/fl/courses/C1/model")
    assert resp.json()["model"]["version"] == 1


async def test_course_endpoint_accepts_snake_case(client):
    resp = await client.post(
        "/api/v1/fl/courses/C2/updates",
        json={
            "student_id": "s1",
            "weights": [[1.0]],
            "biases": [0.0],
            "accuracy": 0.5,
            "privacy_budget": 0.5,
        },
    )

    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "message": "Model update received",
        "aggregated": False,
        "globalModel": None,
        "aggregationError": None,
    }


async def test_invalid_update_rejected(client):
    resp = await client.post(
        "/api/v1/fl",
        json={
            "action": "submit_update",
            "courseId": "C1",
            "modelUpdate": _model_update(weights=[]),
        },
    )

    assert resp.status_code == 400
    assert resp.json()["success"] is False


async def test_submit_requires_model_update(client):
    resp = await client.post("/api/v1/fl", json={"action": "submit_update", "courseId": "C1"})

    assert resp.status_code == 400
    assert resp.json()["success"] is False


async def test_unknown_action(client):
    resp = await client.post("/api/v1/fl", json={"action": "delete_everything", "courseId": "C1"})

    assert resp.status_code == 422
    assert resp.json()["success"] is False


async def test_history_empty(client):
    resp = await client.get("/api/v1/fl/courses/C9/models")

    assert resp.status_code == 200
    assert resp.json() == []


async def test_health_and_correlation_id(client):
    resp = await client.get("/api/health", headers={"X-Correlation-ID": "abc-123"})

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["database"] is True
    assert resp.headers["x-correlation-id"] == "abc-123"
