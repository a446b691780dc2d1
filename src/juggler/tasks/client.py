"""Google Tasks REST client."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

from juggler.config import GOOGLE_TASKS_BASE_URL, GOOGLE_TASKS_PAGE_SIZE
from juggler.tasks.exceptions import (
    MalformedResponseError,
    TaskListNotFoundError,
    TasksAPIError,
    TasksRequestError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATUS_COMPLETED = "completed"
STATUS_NEEDS_ACTION = "needsAction"


@dataclass
class TaskList:
    """Represents a Google Tasks list."""

    id: str
    title: str


@dataclass
class RemoteTask:
    """Represents a Google Task as the API returns it."""

    title: str
    status: str = STATUS_NEEDS_ACTION  # "needsAction" or "completed"
    notes: str | None = None
    due: str | None = None
    id: str | None = None
    updated: str | None = None
    completed: str | None = None

    @property
    def is_completed(self) -> bool:
        """Check if task is completed."""
        return self.status == STATUS_COMPLETED

    def to_body(self) -> dict[str, Any]:
        """Request body for insert/update; bookkeeping fields are server-owned."""
        body: dict[str, Any] = {"title": self.title, "status": self.status}
        if self.id:
            body["id"] = self.id
        if self.notes is not None:
            body["notes"] = self.notes
        if self.due is not None:
            body["due"] = self.due
        return body


class TasksClient:
    """Google Tasks API client authenticated with a bearer token.

    Usage:
        client = TasksClient(access_token)

        # Find the list to sync into
        task_list = client.find_task_list("juggler")

        # All tasks, across every page
        tasks = client.list_tasks(task_list.id)

        # Create a task
        created = client.create_task(task_list.id, RemoteTask(title="j:Do something"))
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = GOOGLE_TASKS_BASE_URL,
        http_client: httpx.Client | None = None,
        page_size: int = GOOGLE_TASKS_PAGE_SIZE,
    ):
        """Initialize Tasks client.

        Args:
            access_token: OAuth bearer token.
            base_url: API root, overridable for tests.
            http_client: HTTP client; a private one is created if omitted.
            page_size: maxResults hint sent with list requests.
        """
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self._access_token = access_token
        self._client = http_client or httpx.Client(timeout=30.0)
        self._owns_client = http_client is None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> TasksClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Make an authenticated API request.

        Raises:
            TasksRequestError: If the request could not be sent.
            TasksAPIError: If the API returns a non-success status.
        """
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {self._access_token}"}

        try:
            response = self._client.request(method, url, headers=headers, params=params, json=json)
        except httpx.HTTPError as e:
            raise TasksRequestError(f"Request failed: {e}") from e

        if not response.is_success:
            raise TasksAPIError(response.status_code, response.text)
        return response

    def _request_json(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = self._request(method, path, params=params, json=json)
        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Invalid JSON from {method} {path}: {e}") from e
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Unexpected response from {method} {path}: {data!r}")
        return data

    def _paginate(
        self,
        path: str,
        parse: Callable[[dict[str, Any]], T],
        params: dict[str, Any] | None = None,
    ) -> list[T]:
        """Fetch every page of a list endpoint.

        Follows ``nextPageToken`` until a page comes back without one.

        Args:
            path: Endpoint path.
            parse: Converts one raw item into its typed form.
            params: Extra query parameters sent with every page.

        Returns:
            Items from all pages, in order.
        """
        results: list[T] = []
        page_token: str | None = None
        pages = 0

        while True:
            query = dict(params or {})
            query["maxResults"] = self.page_size
            if page_token:
                query["pageToken"] = page_token

            data = self._request_json("GET", path, params=query)
            items = data.get("items") or []
            try:
                results.extend(parse(item) for item in items)
            except (KeyError, TypeError, AttributeError) as e:
                raise MalformedResponseError(f"Unexpected item in {path}: {e}") from e
            pages += 1

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            logger.debug(f"Following page token for {path} (page {pages + 1})")

        logger.debug(f"Fetched {len(results)} items from {path} in {pages} page(s)")
        return results

    # =========================================================================
    # Task Lists
    # =========================================================================

    def list_task_lists(self) -> list[TaskList]:
        """List all task lists.

        Returns:
            List of TaskList objects.
        """
        return self._paginate("/tasks/v1/users/@me/lists", self._parse_task_list)

    def find_task_list(self, title: str) -> TaskList:
        """Find the task list with the given title.

        Raises:
            TaskListNotFoundError: If no list has that title.
        """
        task_lists = self.list_task_lists()
        for task_list in task_lists:
            if task_list.title == title:
                return task_list
        raise TaskListNotFoundError(title, [task_list.title for task_list in task_lists])

    def _parse_task_list(self, data: dict) -> TaskList:
        """Parse task list from API response."""
        return TaskList(id=data["id"], title=data.get("title", ""))

    # =========================================================================
    # Tasks
    # =========================================================================

    def list_tasks(self, tasklist_id: str) -> list[RemoteTask]:
        """List every task in a task list, including completed and hidden ones.

        Args:
            tasklist_id: Task list ID.

        Returns:
            List of RemoteTask objects.
        """
        params = {
            "showCompleted": "true",
            "showHidden": "true",
            "showDeleted": "false",
        }
        return self._paginate(f"/tasks/v1/lists/{tasklist_id}/tasks", self._parse_task, params)

    def create_task(self, tasklist_id: str, task: RemoteTask) -> RemoteTask:
        """Create a new task.

        Args:
            tasklist_id: Task list ID.
            task: Values for the new task; ``id`` is ignored.

        Returns:
            Created task, including its API-assigned ID.
        """
        body = task.to_body()
        body.pop("id", None)
        data = self._request_json("POST", f"/tasks/v1/lists/{tasklist_id}/tasks", json=body)
        created = self._parse_task(data)
        if not created.id:
            raise MalformedResponseError(f"Created task has no id: {data!r}")
        return created

    def update_task(self, tasklist_id: str, task_id: str, task: RemoteTask) -> RemoteTask:
        """Replace an existing task's values.

        Args:
            tasklist_id: Task list ID.
            task_id: Task ID to update.
            task: New values.

        Returns:
            Updated task.
        """
        body = task.to_body()
        body["id"] = task_id
        data = self._request_json(
            "PUT", f"/tasks/v1/lists/{tasklist_id}/tasks/{task_id}", json=body
        )
        return self._parse_task(data)

    def delete_task(self, tasklist_id: str, task_id: str) -> None:
        """Delete a task.

        Args:
            tasklist_id: Task list ID.
            task_id: Task ID to delete.
        """
        self._request("DELETE", f"/tasks/v1/lists/{tasklist_id}/tasks/{task_id}")

    def _parse_task(self, data: dict) -> RemoteTask:
        """Parse task from API response."""
        return RemoteTask(
            id=data.get("id"),
            title=data.get("title", ""),
            status=data.get("status", STATUS_NEEDS_ACTION),
            notes=data.get("notes"),
            due=data.get("due"),
            updated=data.get("updated"),
            completed=data.get("completed"),
        )
