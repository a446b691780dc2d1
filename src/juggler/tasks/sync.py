"""One-way reconciliation of local tasks into a Google Tasks list.

Local state is authoritative. After a successful run the remote list holds
exactly one task per local task, and every local task carries the ID of its
remote counterpart:

- local task linked to an existing remote task -> update if anything differs
- local task unlinked, or linked to a task deleted remotely -> create
- remote task no local task claims -> delete

With ``dry_run`` every would-be mutation is only logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import httpx

from juggler.clock import parse_timestamp
from juggler.config import (
    GOOGLE_TASK_TITLE_PREFIX,
    GOOGLE_TASKS_BASE_URL,
    GOOGLE_TASKS_LIST_NAME,
)
from juggler.google.tokens import TokenManager
from juggler.tasks.client import (
    STATUS_COMPLETED,
    STATUS_NEEDS_ACTION,
    RemoteTask,
    TasksClient,
)

logger = logging.getLogger(__name__)

# Due values this close together are the same due date written two ways
DUE_TOLERANCE = timedelta(seconds=60)


@dataclass
class LocalTask:
    """A task from the local collection."""

    title: str
    note: str | None = None
    done: bool = False
    due: datetime | None = None
    remote_id: str | None = None


@dataclass
class SyncReport:
    """What a reconciliation run did (or, for a dry run, would do)."""

    dry_run: bool = False
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    unchanged: int = 0

    @property
    def changes(self) -> int:
        return len(self.created) + len(self.updated) + len(self.deleted)

    def summary(self) -> str:
        prefix = "Would have " if self.dry_run else ""
        return (
            f"{prefix}created {len(self.created)}, updated {len(self.updated)}, "
            f"deleted {len(self.deleted)} ({self.unchanged} unchanged)"
        )


def format_due(due: datetime) -> str:
    """Format a due instant the way Google Tasks stores it.

    The API keeps only the date, so the value is pinned to midnight UTC of the
    instant's UTC calendar date, e.g. ``2025-08-20T00:00:00.000Z``.
    """
    if due.tzinfo is None:
        due = due.replace(tzinfo=timezone.utc)
    day = due.astimezone(timezone.utc).date()
    return f"{day.isoformat()}T00:00:00.000Z"


def parse_due(value: str) -> datetime | None:
    """Parse an RFC 3339 due string into an aware UTC datetime, or None."""
    try:
        return parse_timestamp(value)
    except ValueError:
        return None


def due_equivalent(current: str | None, desired: str | None) -> bool:
    """Check whether two due values denote the same due date.

    Equivalent when both are absent, or both are present and either fall on the
    same UTC calendar day or lie less than a minute apart.
    """
    if current is None or desired is None:
        return current is None and desired is None

    current_dt = parse_due(current)
    desired_dt = parse_due(desired)
    if current_dt is None or desired_dt is None:
        return current == desired

    if current_dt.date() == desired_dt.date():
        return True
    return abs(current_dt - desired_dt) < DUE_TOLERANCE


def desired_remote_task(task: LocalTask, title_prefix: str = GOOGLE_TASK_TITLE_PREFIX) -> RemoteTask:
    """Map a local task to the remote values it should have."""
    return RemoteTask(
        title=f"{title_prefix}{task.title}",
        notes=task.note,
        status=STATUS_COMPLETED if task.done else STATUS_NEEDS_ACTION,
        due=format_due(task.due) if task.due else None,
    )


def diff_remote_task(current: RemoteTask, desired: RemoteTask) -> list[tuple[str, object, object]]:
    """List the fields that differ, as ``(field, current, desired)`` tuples."""
    changes = []
    if current.title != desired.title:
        changes.append(("title", current.title, desired.title))
    if current.notes != desired.notes:
        changes.append(("notes", current.notes, desired.notes))
    if current.status != desired.status:
        changes.append(("status", current.status, desired.status))
    if not due_equivalent(current.due, desired.due):
        changes.append(("due", current.due, desired.due))
    return changes


class TaskReconciler:
    """Converges one remote task list onto the local collection."""

    def __init__(
        self,
        client: TasksClient,
        list_name: str = GOOGLE_TASKS_LIST_NAME,
        title_prefix: str = GOOGLE_TASK_TITLE_PREFIX,
    ):
        self.client = client
        self.list_name = list_name
        self.title_prefix = title_prefix

    def reconcile(self, tasks: list[LocalTask], dry_run: bool = False) -> SyncReport:
        """Run one fetch-diff-apply cycle.

        Args:
            tasks: Local collection. ``remote_id`` is updated in place for
                created tasks (never under dry run).
            dry_run: Log mutations instead of performing them.

        Returns:
            SyncReport of the run.

        Raises:
            TaskListNotFoundError: If the target list does not exist.
            TasksError: On the first failed API call; earlier mutations stay applied.
        """
        if dry_run:
            logger.info("Starting sync in DRY RUN mode - no changes will be made")
        else:
            logger.info("Starting sync with Google Tasks")

        report = SyncReport(dry_run=dry_run)

        task_list = self.client.find_task_list(self.list_name)
        logger.info(f"Task list '{task_list.title}' has ID {task_list.id}")

        remote_by_id = {
            remote.id: remote for remote in self.client.list_tasks(task_list.id) if remote.id
        }
        logger.info(f"Fetched {len(remote_by_id)} remote tasks")

        for task in tasks:
            desired = desired_remote_task(task, self.title_prefix)

            if task.remote_id is None:
                self._create(task_list.id, task, desired, dry_run, report)
                continue

            current = remote_by_id.pop(task.remote_id, None)
            if current is None:
                logger.info(
                    f"Google Task {task.remote_id} for '{desired.title}' no longer exists, recreating"
                )
                self._create(task_list.id, task, desired, dry_run, report)
                continue

            changes = diff_remote_task(current, desired)
            if not changes:
                report.unchanged += 1
                continue

            self._update(task_list.id, task.remote_id, desired, changes, dry_run, report)

        # Whatever no local task claimed is an orphan
        for task_id, orphan in remote_by_id.items():
            self._delete(task_list.id, task_id, orphan, dry_run, report)

        if dry_run:
            logger.info(f"Sync completed in DRY RUN mode: {report.summary()}")
        else:
            logger.info(f"Sync completed successfully: {report.summary()}")
        return report

    def _create(
        self,
        tasklist_id: str,
        task: LocalTask,
        desired: RemoteTask,
        dry_run: bool,
        report: SyncReport,
    ) -> None:
        report.created.append(desired.title)
        if dry_run:
            logger.info(f"[DRY RUN] Would create task '{desired.title}' with status: {desired.status}")
            return

        logger.info(f"Creating Google Task: '{desired.title}'")
        created = self.client.create_task(tasklist_id, desired)
        task.remote_id = created.id
        logger.info(f"Created Google Task with ID: {created.id}")

    def _update(
        self,
        tasklist_id: str,
        task_id: str,
        desired: RemoteTask,
        changes: list[tuple[str, object, object]],
        dry_run: bool,
        report: SyncReport,
    ) -> None:
        report.updated.append(desired.title)
        action = "[DRY RUN] Would update" if dry_run else "Updating"
        logger.info(f"{action} Google Task '{desired.title}' (ID: {task_id})")
        for name, old, new in changes:
            logger.info(f"  {name}: {old!r} -> {new!r}")

        if not dry_run:
            self.client.update_task(tasklist_id, task_id, desired)

    def _delete(
        self,
        tasklist_id: str,
        task_id: str,
        orphan: RemoteTask,
        dry_run: bool,
        report: SyncReport,
    ) -> None:
        report.deleted.append(orphan.title)
        if dry_run:
            logger.info(f"[DRY RUN] Would delete orphaned task '{orphan.title}' (ID: {task_id})")
            return

        logger.info(f"Deleting orphaned Google Task: '{orphan.title}' (ID: {task_id})")
        self.client.delete_task(tasklist_id, task_id)


def sync_to_tasks(
    tasks: list[LocalTask],
    access_token: str,
    dry_run: bool = False,
    *,
    base_url: str = GOOGLE_TASKS_BASE_URL,
    list_name: str = GOOGLE_TASKS_LIST_NAME,
    title_prefix: str = GOOGLE_TASK_TITLE_PREFIX,
    http_client: httpx.Client | None = None,
) -> SyncReport:
    """Reconcile ``tasks`` into the remote list using an access token.

    See ``TaskReconciler.reconcile``.
    """
    with TasksClient(access_token, base_url=base_url, http_client=http_client) as client:
        reconciler = TaskReconciler(client, list_name=list_name, title_prefix=title_prefix)
        return reconciler.reconcile(tasks, dry_run=dry_run)


def sync_with_token_manager(
    tasks: list[LocalTask],
    token_manager: TokenManager,
    dry_run: bool = False,
    **kwargs,
) -> SyncReport:
    """Reconcile ``tasks`` with a fresh access token from ``token_manager``."""
    access_token = token_manager.get_access_token()
    return sync_to_tasks(tasks, access_token, dry_run, **kwargs)
