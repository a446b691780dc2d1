"""Shared fixtures: an in-memory Google Tasks API behind httpx.MockTransport."""

import json
import re

import httpx
import pytest

TASKS_BASE_URL = "https://tasks.example.test"

TASK_PATH = re.compile(r"/tasks/v1/lists/(?P<list_id>[^/]+)/tasks(?:/(?P<task_id>[^/]+))?")


class FakeTasksApi:
    """Enough of the Google Tasks API to sync against.

    Lists and tasks are paged with ``page_size`` (or the client's maxResults),
    using the item offset as the page token.
    """

    def __init__(self):
        self.lists = [{"id": "list-1", "title": "juggler"}]
        self.tasks: dict[str, dict] = {}
        self.page_size: int | None = None
        self.requests: list[httpx.Request] = []
        self.fail_on: tuple[str, int, str] | None = None
        self._next_id = 1

    def add_task(self, task_id: str, title: str, **fields) -> dict:
        task = {"id": task_id, "title": title, "status": "needsAction", **fields}
        self.tasks[task_id] = task
        return task

    @property
    def mutations(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method in ("POST", "PUT", "DELETE")]

    def calls(self, method: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method]

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self.fail_on and request.method == self.fail_on[0]:
            return httpx.Response(self.fail_on[1], text=self.fail_on[2])

        path = request.url.path
        if request.method == "GET" and path == "/tasks/v1/users/@me/lists":
            return self._page(self.lists, request)

        match = TASK_PATH.fullmatch(path)
        if not match or match["list_id"] not in {tl["id"] for tl in self.lists}:
            return httpx.Response(404, json={"error": {"code": 404, "message": "Not Found"}})

        task_id = match["task_id"]
        if request.method == "GET" and task_id is None:
            return self._page(list(self.tasks.values()), request)
        if request.method == "POST" and task_id is None:
            body = json.loads(request.content)
            body["id"] = f"task-{self._next_id}"
            self._next_id += 1
            self.tasks[body["id"]] = body
            return httpx.Response(200, json=body)
        if task_id not in self.tasks:
            return httpx.Response(404, json={"error": {"code": 404, "message": "Not Found"}})
        if request.method == "PUT":
            body = json.loads(request.content)
            self.tasks[task_id] = body
            return httpx.Response(200, json=body)
        if request.method == "DELETE":
            del self.tasks[task_id]
            return httpx.Response(204)

        return httpx.Response(405)

    def _page(self, items: list[dict], request: httpx.Request) -> httpx.Response:
        size = self.page_size or int(request.url.params["maxResults"])
        start = int(request.url.params.get("pageToken", "0"))
        body: dict = {"items": items[start : start + size]}
        if start + size < len(items):
            body["nextPageToken"] = str(start + size)
        return httpx.Response(200, json=body)


@pytest.fixture
def tasks_api():
    """A fresh fake Tasks API with one 'juggler' list."""
    return FakeTasksApi()
