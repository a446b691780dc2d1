"""Tests for the Google Tasks reconciliation."""

import json
import logging
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from juggler.clock import FixedClock
from juggler.google import TokenManager
from juggler.tasks import (
    LocalTask,
    TaskListNotFoundError,
    TasksAPIError,
    due_equivalent,
    format_due,
    sync_to_tasks,
    sync_with_token_manager,
)
from juggler.tasks.sync import desired_remote_task

from conftest import TASKS_BASE_URL


def run_sync(tasks_api, tasks, dry_run=False):
    with tasks_api.client() as http_client:
        return sync_to_tasks(
            tasks,
            "test_token",
            dry_run,
            base_url=TASKS_BASE_URL,
            http_client=http_client,
        )


class TestDueDates:
    """Test due date formatting and equivalence."""

    def test_format_due_pins_to_midnight_utc(self):
        """Should drop the time of day and keep the UTC date."""
        due = datetime(2025, 8, 20, 15, 45, 12, tzinfo=timezone.utc)
        assert format_due(due) == "2025-08-20T00:00:00.000Z"

    def test_format_due_uses_utc_calendar_date(self):
        """Should convert to UTC before taking the date."""
        due = datetime(2025, 8, 20, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert format_due(due) == "2025-08-21T00:00:00.000Z"

    def test_both_absent_is_equivalent(self):
        """Should treat two missing due dates as equal."""
        assert due_equivalent(None, None) is True

    def test_one_absent_is_not_equivalent(self):
        """Should treat added or removed due dates as changes."""
        assert due_equivalent("2025-08-20T00:00:00.000Z", None) is False
        assert due_equivalent(None, "2025-08-20T00:00:00.000Z") is False

    def test_same_day_is_equivalent(self):
        """Should ignore time-of-day differences on the same UTC day."""
        assert due_equivalent("2025-08-20T00:00:00.000Z", "2025-08-20T17:30:00Z") is True

    def test_representation_drift_is_equivalent(self):
        """Should ignore formatting differences for the same instant."""
        assert due_equivalent("2025-08-20T00:00:00Z", "2025-08-20T00:00:00.000Z") is True

    def test_close_across_midnight_is_equivalent(self):
        """Should accept values less than a minute apart across midnight."""
        assert due_equivalent("2025-08-20T23:59:40Z", "2025-08-21T00:00:10Z") is True

    def test_next_day_is_not_equivalent(self):
        """Should detect a genuine date change."""
        assert due_equivalent("2025-08-20T00:00:00Z", "2025-08-21T00:01:01Z") is False

    def test_short_fractions_use_tolerance(self):
        """Should parse one-digit fractions instead of comparing strings."""
        assert due_equivalent("2025-08-20T23:59:59.5Z", "2025-08-21T00:00:10Z") is True
        assert due_equivalent("2025-08-20T12:00:00.12Z", "2025-08-20T00:00:00.000Z") is True

    def test_unparseable_values_compare_exactly(self):
        """Should fall back to string equality for garbage."""
        assert due_equivalent("not-a-date", "not-a-date") is True
        assert due_equivalent("not-a-date", "2025-08-20T00:00:00Z") is False

    def test_desired_values(self):
        """Should map a local task to prefixed remote values."""
        task = LocalTask(
            title="Write report",
            note="Draft first",
            done=True,
            due=datetime(2025, 8, 20, 9, 0, tzinfo=timezone.utc),
        )
        desired = desired_remote_task(task)
        assert desired.title == "j:Write report"
        assert desired.notes == "Draft first"
        assert desired.status == "completed"
        assert desired.due == "2025-08-20T00:00:00.000Z"

    def test_desired_status_for_open_task(self):
        """Should map an open task to needsAction with no due date."""
        desired = desired_remote_task(LocalTask(title="Open"))
        assert desired.status == "needsAction"
        assert desired.due is None


class TestSyncCreate:
    """Test creating remote tasks."""

    def test_creates_task_and_records_id(self, tasks_api):
        """Should POST once and store the returned id."""
        todos = [LocalTask(title="Test Task", note="Test comment")]

        report = run_sync(tasks_api, todos)

        posts = tasks_api.calls("POST")
        assert len(posts) == 1
        assert json.loads(posts[0].content) == {
            "title": "j:Test Task",
            "status": "needsAction",
            "notes": "Test comment",
        }
        assert todos[0].remote_id == "task-1"
        assert report.created == ["j:Test Task"]

    def test_sends_bearer_token(self, tasks_api):
        """Should authenticate every request with the access token."""
        run_sync(tasks_api, [LocalTask(title="A")])
        assert all(r.headers["Authorization"] == "Bearer test_token" for r in tasks_api.requests)

    def test_recreates_task_deleted_remotely(self, tasks_api):
        """Should create a new task when the linked one no longer exists."""
        todos = [LocalTask(title="Gone", remote_id="deleted-id")]

        report = run_sync(tasks_api, todos)

        assert len(tasks_api.calls("POST")) == 1
        assert todos[0].remote_id == "task-1"
        assert report.created == ["j:Gone"]

    def test_dry_run_makes_no_mutations(self, tasks_api, caplog):
        """Should only log what it would do."""
        tasks_api.add_task("orphan", "j:Orphan")
        todos = [LocalTask(title="New"), LocalTask(title="Stale", remote_id="deleted-id")]

        with caplog.at_level(logging.INFO, logger="juggler.tasks.sync"):
            report = run_sync(tasks_api, todos, dry_run=True)

        assert tasks_api.mutations == []
        assert todos[0].remote_id is None
        assert todos[1].remote_id == "deleted-id"
        assert report.dry_run is True
        assert report.created == ["j:New", "j:Stale"]
        assert report.deleted == ["j:Orphan"]
        assert "[DRY RUN] Would create task 'j:New'" in caplog.text
        assert "[DRY RUN] Would delete orphaned task 'j:Orphan'" in caplog.text

    def test_later_run_creates_after_dry_run(self, tasks_api):
        """Should create the task a dry run skipped."""
        todos = [LocalTask(title="New")]
        run_sync(tasks_api, todos, dry_run=True)
        run_sync(tasks_api, todos)

        assert len(tasks_api.calls("POST")) == 1
        assert todos[0].remote_id == "task-1"


class TestSyncUpdate:
    """Test updating linked remote tasks."""

    def test_updates_changed_fields(self, tasks_api, caplog):
        """Should PUT desired values and log each changed field."""
        tasks_api.add_task("t1", "j:Task", notes="old note")
        todos = [LocalTask(title="Task", note="new note", done=True, remote_id="t1")]

        with caplog.at_level(logging.INFO, logger="juggler.tasks.sync"):
            report = run_sync(tasks_api, todos)

        puts = tasks_api.calls("PUT")
        assert len(puts) == 1
        assert puts[0].url.path == "/tasks/v1/lists/list-1/tasks/t1"
        assert json.loads(puts[0].content) == {
            "id": "t1",
            "title": "j:Task",
            "status": "completed",
            "notes": "new note",
        }
        assert report.updated == ["j:Task"]
        assert "notes: 'old note' -> 'new note'" in caplog.text
        assert "status: 'needsAction' -> 'completed'" in caplog.text
        assert "title:" not in caplog.text

    def test_unchanged_task_is_left_alone(self, tasks_api):
        """Should not PUT when everything matches."""
        tasks_api.add_task("t1", "j:Task", due="2025-08-20T00:00:00.000Z")
        todos = [
            LocalTask(
                title="Task",
                due=datetime(2025, 8, 20, 18, 0, tzinfo=timezone.utc),
                remote_id="t1",
            )
        ]

        report = run_sync(tasks_api, todos)

        assert tasks_api.mutations == []
        assert report.unchanged == 1

    def test_due_date_change_triggers_update(self, tasks_api):
        """Should PUT when the due date moves to another day."""
        tasks_api.add_task("t1", "j:Task", due="2025-08-20T00:00:00.000Z")
        todos = [
            LocalTask(
                title="Task",
                due=datetime(2025, 8, 22, 9, 0, tzinfo=timezone.utc),
                remote_id="t1",
            )
        ]

        run_sync(tasks_api, todos)

        puts = tasks_api.calls("PUT")
        assert len(puts) == 1
        assert json.loads(puts[0].content)["due"] == "2025-08-22T00:00:00.000Z"

    def test_dry_run_update_is_logged_only(self, tasks_api, caplog):
        """Should describe the update without sending it."""
        tasks_api.add_task("t1", "j:Old title")
        todos = [LocalTask(title="New title", remote_id="t1")]

        with caplog.at_level(logging.INFO, logger="juggler.tasks.sync"):
            report = run_sync(tasks_api, todos, dry_run=True)

        assert tasks_api.mutations == []
        assert report.updated == ["j:New title"]
        assert "[DRY RUN] Would update" in caplog.text


class TestSyncDelete:
    """Test orphan deletion."""

    def test_deletes_orphans_across_pages(self, tasks_api):
        """Should delete every remote-only task exactly once."""
        tasks_api.page_size = 1
        tasks_api.add_task("a", "j:A")
        tasks_api.add_task("b", "j:B")

        report = run_sync(tasks_api, [])

        deletes = tasks_api.calls("DELETE")
        assert sorted(r.url.path for r in deletes) == [
            "/tasks/v1/lists/list-1/tasks/a",
            "/tasks/v1/lists/list-1/tasks/b",
        ]
        assert tasks_api.tasks == {}
        assert sorted(report.deleted) == ["j:A", "j:B"]

    def test_claimed_tasks_are_kept(self, tasks_api):
        """Should only delete tasks no local task links to."""
        tasks_api.add_task("keep", "j:Keep")
        tasks_api.add_task("drop", "j:Drop")

        run_sync(tasks_api, [LocalTask(title="Keep", remote_id="keep")])

        assert list(tasks_api.tasks) == ["keep"]


class TestSyncConvergence:
    """Test whole-run guarantees."""

    def test_remote_mirrors_local_after_sync(self, tasks_api):
        """Should leave exactly one remote task per local task."""
        tasks_api.page_size = 2
        tasks_api.add_task("t1", "j:Existing")
        tasks_api.add_task("t2", "j:Orphan")
        tasks_api.add_task("t3", "j:Another orphan")
        todos = [
            LocalTask(title="Existing", remote_id="t1", done=True),
            LocalTask(title="Fresh"),
            LocalTask(title="Stale", remote_id="missing"),
        ]

        run_sync(tasks_api, todos)

        assert sorted(t.remote_id for t in todos) == sorted(tasks_api.tasks)
        assert sorted(t["title"] for t in tasks_api.tasks.values()) == [
            "j:Existing",
            "j:Fresh",
            "j:Stale",
        ]

    def test_second_run_is_idempotent(self, tasks_api):
        """Should issue no mutations when nothing changed locally."""
        tasks_api.add_task("orphan", "j:Orphan")
        todos = [
            LocalTask(title="One", note="n", due=datetime(2025, 8, 20, 9, tzinfo=timezone.utc)),
            LocalTask(title="Two", done=True),
        ]
        run_sync(tasks_api, todos)
        first_run_mutations = len(tasks_api.mutations)

        report = run_sync(tasks_api, todos)

        assert first_run_mutations == 3
        assert len(tasks_api.mutations) == first_run_mutations
        assert report.changes == 0
        assert report.unchanged == 2


class TestSyncErrors:
    """Test failure handling."""

    def test_missing_list_names_expected_title(self, tasks_api):
        """Should fail with the configured list name."""
        tasks_api.lists = [{"id": "other", "title": "Other List"}]

        with pytest.raises(TaskListNotFoundError, match="'juggler'") as exc_info:
            run_sync(tasks_api, [LocalTask(title="Task")])

        assert exc_info.value.list_name == "juggler"
        assert tasks_api.mutations == []

    def test_list_found_on_later_page(self, tasks_api):
        """Should look through every page of task lists."""
        tasks_api.page_size = 1
        tasks_api.lists = [
            {"id": "other", "title": "Other"},
            {"id": "list-1", "title": "juggler"},
        ]

        run_sync(tasks_api, [LocalTask(title="Task")])

        assert tasks_api.calls("POST")[0].url.path == "/tasks/v1/lists/list-1/tasks"

    def test_authentication_error_is_terminal(self, tasks_api):
        """Should surface status and body verbatim."""
        tasks_api.fail_on = ("GET", 401, '{"error": {"code": 401, "message": "Invalid credentials"}}')

        with pytest.raises(TasksAPIError) as exc_info:
            run_sync(tasks_api, [LocalTask(title="Task")])

        assert exc_info.value.status_code == 401
        assert "Invalid credentials" in exc_info.value.body
        assert "status 401" in str(exc_info.value)

    def test_failure_stops_run_and_keeps_applied_changes(self, tasks_api):
        """Should abort on the first failed mutation without rolling back."""
        tasks_api.add_task("orphan", "j:Orphan")
        tasks_api.fail_on = ("DELETE", 500, "backend error")
        todos = [LocalTask(title="Created first")]

        with pytest.raises(TasksAPIError, match="backend error"):
            run_sync(tasks_api, todos)

        assert todos[0].remote_id == "task-1"
        assert "orphan" in tasks_api.tasks


class TestSyncWithTokenManager:
    """Test sync driven by a token manager."""

    def test_uses_refreshed_access_token(self, tasks_api):
        """Should fetch an access token and use it as bearer."""

        def token_handler(request):
            return httpx.Response(200, json={"access_token": "fresh-token", "expires_in": 3600})

        clock = FixedClock.from_isoformat("2025-01-01T00:00:00Z")
        token_client = httpx.Client(transport=httpx.MockTransport(token_handler))
        manager = TokenManager("client-id", "refresh", clock=clock, http_client=token_client)

        with tasks_api.client() as http_client:
            sync_with_token_manager(
                [LocalTask(title="Task")],
                manager,
                base_url=TASKS_BASE_URL,
                http_client=http_client,
            )

        assert tasks_api.requests[0].headers["Authorization"] == "Bearer fresh-token"
