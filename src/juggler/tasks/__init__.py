"""Google Tasks client and one-way sync.

Mirror a local task collection into the "juggler" Google Tasks list.

Usage:
    from juggler.tasks import LocalTask, sync_to_tasks

    tasks = [LocalTask(title="Review PR", note="Check the sync changes")]
    report = sync_to_tasks(tasks, access_token, dry_run=True)
    print(report.summary())

OAuth Setup:
    1. Create a Desktop app OAuth client in Google Cloud Console
    2. Save it as ~/.juggler/google_oauth_client.json
    3. Authorize: juggler login
"""

from __future__ import annotations

from juggler.tasks.client import RemoteTask, TaskList, TasksClient
from juggler.tasks.exceptions import (
    MalformedResponseError,
    TaskListNotFoundError,
    TasksAPIError,
    TasksError,
    TasksRequestError,
)
from juggler.tasks.sync import (
    LocalTask,
    SyncReport,
    TaskReconciler,
    due_equivalent,
    format_due,
    sync_to_tasks,
    sync_with_token_manager,
)

__all__ = [
    "LocalTask",
    "MalformedResponseError",
    "RemoteTask",
    "SyncReport",
    "TaskList",
    "TaskListNotFoundError",
    "TaskReconciler",
    "TasksAPIError",
    "TasksClient",
    "TasksError",
    "TasksRequestError",
    "due_equivalent",
    "format_due",
    "sync_to_tasks",
    "sync_with_token_manager",
]
