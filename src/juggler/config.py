"""Centralized configuration.

Everything juggler keeps on disk lives in one data directory:
    ~/.juggler/.env                       - optional environment overrides
    ~/.juggler/google_oauth_client.json   - Google OAuth client credentials
    ~/.juggler/todos.json                 - local task collection

The directory can be moved with the JUGGLER_DIR environment variable or the
``--dir`` CLI flag. The refresh token itself is never written here; it lives
in the OS keychain (see ``juggler.credential_store``).
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

# Google OAuth / Tasks endpoints
GOOGLE_OAUTH_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_TASKS_SCOPE = "https://www.googleapis.com/auth/tasks"
GOOGLE_TASKS_BASE_URL = "https://tasks.googleapis.com"

# The one remote list we mirror into, and the prefix marking our tasks
GOOGLE_TASKS_LIST_NAME = "juggler"
GOOGLE_TASK_TITLE_PREFIX = "j:"
GOOGLE_TASKS_PAGE_SIZE = 100

# Keychain identifiers; must stay non-empty and stable across releases
KEYRING_SERVICE = "juggler"
KEYRING_ACCOUNT_GOOGLE_TASKS = "google-tasks"

DEFAULT_TOKEN_EXPIRY_SECS = 3600
TOKEN_EXPIRY_MARGIN_SECS = 300

DEFAULT_CALLBACK_PORT = 8080
DEFAULT_CALLBACK_TIMEOUT_SECS = 300

CLIENT_CONFIG_FILENAME = "google_oauth_client.json"
TODOS_FILENAME = "todos.json"
ENV_FILENAME = ".env"


def get_juggler_dir(cli_override: str | Path | None = None) -> Path:
    """Resolve the juggler data directory.

    Args:
        cli_override: Directory passed on the command line; wins over everything.

    Returns:
        Path to the data directory (not created).
    """
    if cli_override:
        return Path(cli_override).expanduser()

    env_override = os.environ.get("JUGGLER_DIR")
    if env_override:
        return Path(env_override).expanduser()

    return Path.home() / ".juggler"


def get_todos_file_path(cli_override: str | Path | None = None) -> Path:
    """Path of the local task collection file."""
    return get_juggler_dir(cli_override) / TODOS_FILENAME


def get_client_config_path(cli_override: str | Path | None = None) -> Path:
    """Path of the OAuth client credentials file."""
    return get_juggler_dir(cli_override) / CLIENT_CONFIG_FILENAME


def ensure_juggler_dir(cli_override: str | Path | None = None) -> Path:
    """Create the data directory if it doesn't exist.

    Returns:
        Path to the data directory.
    """
    path = get_juggler_dir(cli_override)
    path.mkdir(parents=True, exist_ok=True)
    return path


def parse_env_line(line: str) -> tuple[str, str] | None:
    """Parse one ``KEY=value`` line of a .env file.

    Accepts an optional ``export`` prefix and single or double quotes around
    the value. Blank lines, comments and lines without ``=`` yield None.
    """
    line = line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    if line.startswith("export "):
        line = line[len("export ") :]

    key, _, value = line.partition("=")
    key = key.strip()
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    if not key:
        return None
    return key, value


def load_env_file(env_path: Path) -> dict[str, str]:
    """Apply the data directory's .env file to the process environment.

    Variables already set in the environment are left alone.

    Args:
        env_path: Path to the .env file, usually ``<juggler dir>/.env``.

    Returns:
        The variables this call actually set.
    """
    if not env_path.exists():
        return {}

    applied = {}
    with open(env_path) as f:
        for entry in filter(None, map(parse_env_line, f)):
            key, value = entry
            if key in os.environ:
                continue
            os.environ[key] = value
            applied[key] = value

    if applied:
        logger.debug(f"Loaded {', '.join(sorted(applied))} from {env_path}")
    return applied


def get_config_status(cli_override: str | Path | None = None) -> dict:
    """Get status of everything juggler reads from its environment.

    Returns:
        Dictionary with configuration status.
    """
    juggler_dir = get_juggler_dir(cli_override)
    return {
        "juggler_dir": str(juggler_dir),
        "env_file": (juggler_dir / ENV_FILENAME).exists(),
        "client_config": (juggler_dir / CLIENT_CONFIG_FILENAME).exists(),
        "client_id_env": bool(os.environ.get("JUGGLER_CLIENT_ID")),
        "client_secret_env": bool(os.environ.get("JUGGLER_CLIENT_SECRET")),
        "todos_file": (juggler_dir / TODOS_FILENAME).exists(),
    }
