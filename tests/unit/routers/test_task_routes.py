"""Task lifecycle endpoint tests."""

from __future__ import annotations

import pytest

from tests.helpers import BIDDER_EMAIL, OWNER_EMAIL, create_task, place_bid

MISSING_TASK_ID = "t-00000000-0000-4000-8000-000000000000"


@pytest.mark.unit
class TestCreateTask:
    async def test_create_returns_201_with_system_fields(self, client):
        response = await create_task(client)

        assert response.status_code == 201
        data = response.json()
        assert data["task_id"].startswith("t-")
        assert data["owner_email"] == OWNER_EMAIL
        assert data["status"] == "active"
        assert data["bidders"] == []
        assert data["bids_count"] == 0
        assert data["budget"] == 500
        assert data["created_at"].endswith("Z")

    async def test_create_requires_owner_email(self, client):
        response = await client.post("/tasks", json={"title": "No owner"})

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    @pytest.mark.parametrize("field", ["bidders", "bids_count", "status"])
    async def test_create_rejects_ledger_and_status_fields(self, client, field):
        value = [] if field == "bidders" else ("completed" if field == "status" else 3)
        response = await create_task(client, **{field: value})

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    async def test_create_rejects_invalid_json(self, client):
        response = await client.post(
            "/tasks", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_JSON"

    async def test_create_rejects_json_array(self, client):
        response = await client.post("/tasks", json=[{"title": "x"}])

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_JSON"


@pytest.mark.unit
class TestReadTasks:
    async def test_get_task(self, client):
        task_id = (await create_task(client)).json()["task_id"]

        response = await client.get(f"/tasks/{task_id}")

        assert response.status_code == 200
        assert response.json()["task_id"] == task_id

    async def test_get_missing_task(self, client):
        response = await client.get(f"/tasks/{MISSING_TASK_ID}")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "TASK_NOT_FOUND"
        assert body["details"] == {"task_id": MISSING_TASK_ID}

    async def test_get_malformed_task_id(self, client):
        response = await client.get("/tasks/not-a-task")

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    async def test_list_filters(self, client):
        await create_task(client, title="Logo design", category="design")
        await create_task(client, title="Blog post", description="About DESIGN", category="writing")
        await create_task(client, title="Spreadsheet", category="data")

        everything = await client.get("/tasks")
        writing = await client.get("/tasks", params={"category": "writing"})
        searched = await client.get("/tasks", params={"search": "design"})
        combined = await client.get("/tasks", params={"search": "design", "category": "design"})
        blank = await client.get("/tasks", params={"status": "", "search": ""})

        assert len(everything.json()["tasks"]) == 3
        assert [t["title"] for t in writing.json()["tasks"]] == ["Blog post"]
        assert [t["title"] for t in searched.json()["tasks"]] == ["Logo design", "Blog post"]
        assert [t["title"] for t in combined.json()["tasks"]] == ["Logo design"]
        assert len(blank.json()["tasks"]) == 3

    async def test_list_rejects_unknown_status(self, client):
        response = await client.get("/tasks", params={"status": "open"})

        assert response.status_code == 400

    async def test_featured_orders_by_deadline(self, client):
        await create_task(client, title="Later", deadline="2026-12-01")
        await create_task(client, title="No deadline", deadline=None)
        await create_task(client, title="Sooner", deadline="2026-11-01")

        response = await client.get("/tasks/featured")

        assert response.status_code == 200
        titles = [t["title"] for t in response.json()["tasks"]]
        assert titles == ["Sooner", "Later", "No deadline"]

    async def test_featured_compares_deadlines_across_offsets(self, client):
        await create_task(client, title="Six UTC", deadline="2026-12-01T06:00:00Z")
        await create_task(client, title="Five UTC", deadline="2026-12-01T10:00:00+05:00")

        response = await client.get("/tasks/featured")

        tasks = response.json()["tasks"]
        assert [t["title"] for t in tasks] == ["Five UTC", "Six UTC"]
        assert tasks[0]["deadline"] == "2026-12-01T05:00:00.000000Z"

    async def test_create_rejects_unparseable_deadline(self, client):
        response = await create_task(client, deadline="whenever")

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "deadline"}

    async def test_create_rejects_budget_beyond_integer_range(self, client):
        response = await create_task(client, budget=10**20)

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "budget"}

    async def test_my_tasks(self, client):
        await create_task(client, title="Mine")
        await create_task(client, owner_email="dave@example.com", title="Not mine")

        response = await client.get("/my-tasks", params={"email": OWNER_EMAIL})

        assert response.status_code == 200
        assert [t["title"] for t in response.json()["tasks"]] == ["Mine"]

    async def test_my_tasks_requires_email(self, client):
        response = await client.get("/my-tasks")

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "email"}


@pytest.mark.unit
class TestUpdateTask:
    async def test_update_merges_fields(self, client):
        task = (await create_task(client)).json()

        response = await client.put(
            f"/tasks/{task['task_id']}", json={"title": "Updated", "status": "completed"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["updated_fields"] == ["status", "title"]
        assert data["task"]["title"] == "Updated"
        assert data["task"]["status"] == "completed"
        assert data["task"]["category"] == "design"
        assert data["task"]["updated_at"] >= task["updated_at"]

    async def test_update_cannot_touch_bidders(self, client):
        task_id = (await create_task(client)).json()["task_id"]
        await place_bid(client, task_id)

        response = await client.put(f"/tasks/{task_id}", json={"bids_count": 0})

        assert response.status_code == 400
        fetched = (await client.get(f"/tasks/{task_id}")).json()
        assert fetched["bids_count"] == 1

    async def test_update_missing_task(self, client):
        response = await client.put(f"/tasks/{MISSING_TASK_ID}", json={"title": "x"})

        assert response.status_code == 404


@pytest.mark.unit
class TestDeleteTask:
    async def test_delete_orphans_bids_by_default(self, client):
        task_id = (await create_task(client)).json()["task_id"]
        await place_bid(client, task_id)

        response = await client.delete(f"/tasks/{task_id}")

        assert response.status_code == 200
        assert response.json() == {
            "task_id": task_id,
            "deleted": True,
            "policy": "orphan",
            "bids_deleted": 0,
        }
        assert (await client.get(f"/tasks/{task_id}")).status_code == 404
        my_bids = (await client.get("/my-bids", params={"email": BIDDER_EMAIL})).json()["bids"]
        assert len(my_bids) == 1
        assert my_bids[0]["task"] is None

    @pytest.mark.parametrize("delete_policy", ["cascade"])
    async def test_delete_cascade_removes_bids(self, client):
        task_id = (await create_task(client)).json()["task_id"]
        await place_bid(client, task_id)

        response = await client.delete(f"/tasks/{task_id}")

        assert response.status_code == 200
        assert response.json()["bids_deleted"] == 1
        my_bids = (await client.get("/my-bids", params={"email": BIDDER_EMAIL})).json()["bids"]
        assert my_bids == []

    @pytest.mark.parametrize("delete_policy", ["reject"])
    async def test_delete_reject_with_bids(self, client):
        task_id = (await create_task(client)).json()["task_id"]
        await place_bid(client, task_id)

        response = await client.delete(f"/tasks/{task_id}")

        assert response.status_code == 409
        assert response.json()["error"] == "TASK_HAS_BIDS"
        assert (await client.get(f"/tasks/{task_id}")).status_code == 200

    async def test_delete_missing_task(self, client):
        response = await client.delete(f"/tasks/{MISSING_TASK_ID}")

        assert response.status_code == 404
