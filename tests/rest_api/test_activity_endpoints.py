"""REST API tests for comments, time entries and attachments.

Covers:
- Comments: add (201) / list; assignees notified; broadcast skips the actor
- Time entries: log (201) with derived duration / list per task / list per user
- Attachments: add metadata (201) / list; no events
"""

from __future__ import annotations

import pytest

from .conftest import assert_error_response, assert_success_response, received


async def _task_assigned_to(client, user_id: int, title: str = "Launch") -> dict:
    task = assert_success_response(await client.post("/api/tasks", json={"title": title}), 201)
    await client.post(f"/api/tasks/{task['id']}/assignees", json={"user_id": user_id})
    return task


class TestComments:
    @pytest.mark.asyncio
    async def test_add_and_list(self, authed_client, test_user, other_user):
        task = await _task_assigned_to(authed_client, other_user["id"])
        url = f"/api/tasks/{task['id']}/comments"

        comment = assert_success_response(
            await authed_client.post(url, json={"content": "Kickoff at 10"}), status_code=201
        )
        assert comment["user_id"] == test_user["id"]
        assert comment["task_id"] == task["id"]

        listed = assert_success_response(await authed_client.get(url))
        assert [c["content"] for c in listed] == ["Kickoff at 10"]

    @pytest.mark.asyncio
    async def test_empty_content_rejected(self, authed_client, other_user):
        task = await _task_assigned_to(authed_client, other_user["id"])
        response = await authed_client.post(f"/api/tasks/{task['id']}/comments", json={"content": ""})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_missing_task(self, authed_client):
        response = await authed_client.post("/api/tasks/999/comments", json={"content": "hi"})
        assert_error_response(response, 404)
        assert_error_response(await authed_client.get("/api/tasks/999/comments"), 404)

    @pytest.mark.asyncio
    async def test_fanout(self, app, authed_client, connect, drain, test_user, other_user):
        task = await _task_assigned_to(authed_client, other_user["id"])
        await drain()
        actor = connect(test_user["id"])
        assignee = connect(other_user["id"])

        await authed_client.post(f"/api/tasks/{task['id']}/comments", json={"content": "Ping"})
        await drain()

        assert received(actor) == []
        assert [e["type"] for e in received(assignee)] == ["notification", "comment_added"]
        inbox = await app.state.storage.list_notifications(other_user["id"])
        assert [n["type"] for n in inbox] == ["comment_added", "task_assigned"]


class TestTimeEntries:
    @pytest.mark.asyncio
    async def test_log_derives_duration(self, authed_client, test_user, other_user):
        task = await _task_assigned_to(authed_client, other_user["id"])
        response = await authed_client.post(
            f"/api/tasks/{task['id']}/time",
            json={"start_time": "2026-03-02T09:00:00", "end_time": "2026-03-02T10:30:00", "notes": "Setup"},
        )

        entry = assert_success_response(response, status_code=201)
        assert entry["duration"] == 90
        assert entry["user_id"] == test_user["id"]
        assert entry["notes"] == "Setup"

    @pytest.mark.asyncio
    async def test_open_entry_has_no_duration(self, authed_client, other_user):
        task = await _task_assigned_to(authed_client, other_user["id"])
        response = await authed_client.post(
            f"/api/tasks/{task['id']}/time", json={"start_time": "2026-03-02T09:00:00"}
        )
        entry = assert_success_response(response, status_code=201)
        assert entry["end_time"] is None
        assert entry["duration"] is None

    @pytest.mark.asyncio
    async def test_end_before_start_rejected(self, authed_client, other_user):
        task = await _task_assigned_to(authed_client, other_user["id"])
        response = await authed_client.post(
            f"/api/tasks/{task['id']}/time",
            json={"start_time": "2026-03-02T10:00:00", "end_time": "2026-03-02T09:00:00"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_mixed_timezone_styles(self, authed_client, other_user):
        task = await _task_assigned_to(authed_client, other_user["id"])
        response = await authed_client.post(
            f"/api/tasks/{task['id']}/time",
            json={"start_time": "2026-03-02T09:00:00Z", "end_time": "2026-03-02T09:45:00"},
        )

        entry = assert_success_response(response, status_code=201)
        assert entry["duration"] == 45

    @pytest.mark.asyncio
    async def test_lists(self, authed_client, other_user_client, other_user):
        task = await _task_assigned_to(authed_client, other_user["id"])
        url = f"/api/tasks/{task['id']}/time"
        await authed_client.post(url, json={"start_time": "2026-03-01T09:00:00", "duration": 30})
        await other_user_client.post(url, json={"start_time": "2026-03-02T09:00:00", "duration": 45})
        await other_user_client.post(url, json={"start_time": "2026-03-03T09:00:00", "duration": 15})

        by_task = assert_success_response(await authed_client.get(url))
        assert [e["duration"] for e in by_task] == [30, 45, 15]

        mine = assert_success_response(await other_user_client.get("/api/time-entries"))
        assert [e["duration"] for e in mine] == [15, 45]
        camel = assert_success_response(await other_user_client.get("/api/timeEntries"))
        assert camel == mine

    @pytest.mark.asyncio
    async def test_fanout(self, app, authed_client, connect, drain, test_user, other_user):
        task = await _task_assigned_to(authed_client, other_user["id"])
        await drain()
        actor = connect(test_user["id"])
        assignee = connect(other_user["id"])

        await authed_client.post(
            f"/api/tasks/{task['id']}/time", json={"start_time": "2026-03-02T09:00:00", "duration": 60}
        )
        await drain()

        assert [e["type"] for e in received(actor)] == ["time_entry_added"]
        assert [e["type"] for e in received(assignee)] == ["notification", "time_entry_added"]
        assert await app.state.storage.list_notifications(test_user["id"]) == []


class TestAttachments:
    @pytest.mark.asyncio
    async def test_add_and_list(self, authed_client, connect, drain, test_user, other_user):
        task = await _task_assigned_to(authed_client, other_user["id"])
        await drain()
        observer = connect(other_user["id"])
        url = f"/api/tasks/{task['id']}/attachments"

        attachment = assert_success_response(
            await authed_client.post(
                url, json={"file_name": "brief.pdf", "file_type": "application/pdf", "file_size": 1024}
            ),
            status_code=201,
        )
        await drain()

        assert attachment["user_id"] == test_user["id"]
        listed = assert_success_response(await authed_client.get(url))
        assert [a["file_name"] for a in listed] == ["brief.pdf"]
        assert received(observer) == []

    @pytest.mark.asyncio
    async def test_negative_size_rejected(self, authed_client, other_user):
        task = await _task_assigned_to(authed_client, other_user["id"])
        response = await authed_client.post(
            f"/api/tasks/{task['id']}/attachments",
            json={"file_name": "a.txt", "file_type": "text/plain", "file_size": -1},
        )
        assert response.status_code == 422
