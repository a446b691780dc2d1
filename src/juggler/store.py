"""Local task collection file.

The collection is a JSON list of objects:
    {"title": ..., "comment": ..., "done": false,
     "due_date": "2025-08-20T09:00:00+00:00", "google_task_id": ...}
"""

import json
import logging
from pathlib import Path

from juggler.clock import parse_timestamp
from juggler.tasks.sync import LocalTask

logger = logging.getLogger(__name__)


def load_todos(path: str | Path) -> list[LocalTask]:
    """Load the local collection.

    A missing file is an empty collection.

    Raises:
        ValueError: If the file is not a valid collection.
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"No todos file at {path}, starting empty")
        return []

    with open(path) as f:
        try:
            items = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(items, list):
        raise ValueError(f"Expected a list of todos in {path}")

    return [_parse_item(item, path) for item in items]


def store_todos(todos: list[LocalTask], path: str | Path) -> None:
    """Write the local collection, replacing the file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    items = [
        {
            "title": todo.title,
            "comment": todo.note,
            "done": todo.done,
            "due_date": todo.due.isoformat() if todo.due else None,
            "google_task_id": todo.remote_id,
        }
        for todo in todos
    ]

    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, "w") as f:
        json.dump(items, f, indent=2)
    tmp_path.replace(path)
    logger.info(f"Saved {len(todos)} todos to {path}")


def _parse_item(item: dict, path: Path) -> LocalTask:
    if not isinstance(item, dict) or not item.get("title"):
        raise ValueError(f"Todo without a title in {path}: {item!r}")

    due = None
    if item.get("due_date") not in (None, ""):
        try:
            due = parse_timestamp(item["due_date"])
        except ValueError as e:
            raise ValueError(f"Invalid due_date for '{item['title']}' in {path}: {e}") from e

    return LocalTask(
        title=item["title"],
        note=item.get("comment"),
        done=bool(item.get("done", False)),
        due=due,
        remote_id=item.get("google_task_id"),
    )
