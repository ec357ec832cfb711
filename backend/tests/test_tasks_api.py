import pytest

@pytest.mark.asyncio
async def test_create_task_defaults(client, auth):
    response = await client.post("/api/v1/tasks", headers=auth["headers"], json={"title": "Write report"})

    assert response.status_code == 201
    task = response.json()["data"]
    assert task["title"] == "Write report"
    assert task["status"] == "pending"
    assert task["priority"] == "medium"
    assert task["progress"] == 0

@pytest.mark.asyncio
async def test_list_tasks_newest_first_and_filtered(client, auth):
    for title, status in [("first", "pending"), ("second", "completed"), ("third", "pending")]:
        await client.post("/api/v1/tasks", headers=auth["headers"], json={"title": title, "status": status})

    response = await client.get("/api/v1/tasks", headers=auth["headers"])
    body = response.json()
    assert [t["title"] for t in body["data"]] == ["third", "second", "first"]
    assert body["meta"]["count"] == 3

    pending = await client.get("/api/v1/tasks", headers=auth["headers"], params={"status": "pending"})
    assert [t["title"] for t in pending.json()["data"]] == ["third", "first"]

    everything = await client.get("/api/v1/tasks", headers=auth["headers"], params={"status": "all"})
    assert len(everything.json()["data"]) == 3

@pytest.mark.asyncio
async def test_update_task_partial(client, auth):
    created = await client.post("/api/v1/tasks", headers=auth["headers"], json={"title": "Plan", "priority": "high"})
    task_id = created.json()["data"]["id"]

    response = await client.put(f"/api/v1/tasks/{task_id}", headers=auth["headers"], json={"progress": 50, "status": "in_progress"})
    assert response.status_code == 200
    task = response.json()["data"]
    assert task["progress"] == 50
    assert task["status"] == "in_progress"
    assert task["priority"] == "high"
    assert task["title"] == "Plan"

@pytest.mark.asyncio
async def test_update_task_rejects_bad_progress(client, auth):
    created = await client.post("/api/v1/tasks", headers=auth["headers"], json={"title": "Plan"})
    task_id = created.json()["data"]["id"]

    response = await client.put(f"/api/v1/tasks/{task_id}", headers=auth["headers"], json={"progress": 150})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"

@pytest.mark.asyncio
async def test_missing_task(client, auth):
    response = await client.put("/api/v1/tasks/999", headers=auth["headers"], json={"title": "x"})
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TASK_NOT_FOUND"

    response = await client.delete("/api/v1/tasks/999", headers=auth["headers"])
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TASK_NOT_FOUND"

@pytest.mark.asyncio
async def test_delete_task(client, auth):
    created = await client.post("/api/v1/tasks", headers=auth["headers"], json={"title": "Temp"})
    task_id = created.json()["data"]["id"]

    response = await client.delete(f"/api/v1/tasks/{task_id}", headers=auth["headers"])
    assert response.status_code == 200

    listing = await client.get("/api/v1/tasks", headers=auth["headers"])
    assert listing.json()["data"] == []

@pytest.mark.asyncio
async def test_tasks_are_scoped_to_owner(client, auth, register_user):
    created = await client.post("/api/v1/tasks", headers=auth["headers"], json={"title": "Mine"})
    task_id = created.json()["data"]["id"]

    other = await register_user(email="other@example.com")
    other_headers = {"Authorization": f"Bearer {other['token']}"}

    assert (await client.get("/api/v1/tasks", headers=other_headers)).json()["data"] == []
    response = await client.delete(f"/api/v1/tasks/{task_id}", headers=other_headers)
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_tasks_require_auth(client):
    response = await client.get("/api/v1/tasks")
    assert response.status_code == 401
