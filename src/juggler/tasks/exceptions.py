"""Google Tasks exceptions."""


class TasksError(Exception):
    """Base exception for Google Tasks errors."""

    pass


class TasksAPIError(TasksError):
    """Raised when the Tasks API returns a non-success status."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Google Tasks API request failed with status {status_code}: {body}")


class TasksRequestError(TasksError):
    """Raised when a request never got a response."""

    pass


class MalformedResponseError(TasksError):
    """Raised when the Tasks API returns a body we cannot parse."""

    pass


class TaskListNotFoundError(TasksError):
    """Raised when the sync target list does not exist."""

    def __init__(self, list_name: str, available: list[str] | None = None):
        self.list_name = list_name
        self.available = available or []
        message = f"No '{list_name}' task list found in Google Tasks"
        if self.available:
            message += f" (found: {', '.join(repr(title) for title in self.available)})"
        super().__init__(message)
