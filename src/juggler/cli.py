"""CLI for juggler - Google Tasks login and sync.

Usage:
    juggler init                              # Create data directory, show setup instructions
    juggler status                            # Show configuration and keychain status
    juggler login [--port 8080]               # Browser OAuth login, stores refresh token
    juggler logout                            # Remove refresh token from keychain
    juggler sync google-tasks [--dry-run]     # Mirror local todos into Google Tasks
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import platform
import sys
import webbrowser

from juggler.config import (
    DEFAULT_CALLBACK_PORT,
    DEFAULT_CALLBACK_TIMEOUT_SECS,
    ENV_FILENAME,
    GOOGLE_TASKS_LIST_NAME,
    ensure_juggler_dir,
    get_client_config_path,
    get_config_status,
    get_juggler_dir,
    get_todos_file_path,
    load_env_file,
)
from juggler.credential_store import (
    CredentialNotFoundError,
    CredentialStore,
    CredentialStoreError,
    KeyringCredentialStore,
)

logger = logging.getLogger(__name__)


def cmd_init(juggler_dir: str | None = None) -> int:
    """Initialize the juggler data directory."""
    path = ensure_juggler_dir(juggler_dir)

    print("=" * 60)
    print("JUGGLER SETUP")
    print("=" * 60)
    print()
    print(f"Created: {path}/")
    print()
    print("Files:")
    print()
    print(f"  {get_client_config_path(juggler_dir)}")
    print("    Desktop app OAuth client from Google Cloud Console")
    print("    (or set JUGGLER_CLIENT_ID / JUGGLER_CLIENT_SECRET)")
    print()
    print(f"  {get_todos_file_path(juggler_dir)}")
    print("    Local todos, mirrored into Google Tasks on sync")
    print()
    print("-" * 60)
    print()
    print("Next steps:")
    print("  1. Download OAuth credentials from:")
    print("     https://console.cloud.google.com/apis/credentials")
    print(f"  2. Create a task list named '{GOOGLE_TASKS_LIST_NAME}' in Google Tasks")
    print("  3. Run 'juggler login'")
    return 0


def cmd_status(store: CredentialStore, juggler_dir: str | None = None) -> int:
    """Show configuration and keychain status."""
    status = get_config_status(juggler_dir)

    print("=" * 60)
    print("JUGGLER STATUS")
    print("=" * 60)
    print()
    print(f"Directory: {status['juggler_dir']}")
    print()
    print(f"  .env:                   {'[x]' if status['env_file'] else '[ ]'}")
    print(f"  OAuth client file:      {'[x]' if status['client_config'] else '[ ]'}")
    print(f"  JUGGLER_CLIENT_ID:      {'[x]' if status['client_id_env'] else '[ ]'}")
    print(f"  JUGGLER_CLIENT_SECRET:  {'[x]' if status['client_secret_env'] else '[ ]'}")
    print(f"  todos file:             {'[x]' if status['todos_file'] else '[ ]'}")
    print()

    try:
        store.get()
        print("  refresh token:          [x]")
    except CredentialNotFoundError:
        print("  refresh token:          [ ] (run 'juggler login')")
    except CredentialStoreError as e:
        print(f"  refresh token:          [✗] {e}")
        return 1
    return 0


def cmd_login(
    store: CredentialStore,
    port: int = DEFAULT_CALLBACK_PORT,
    timeout: float | None = DEFAULT_CALLBACK_TIMEOUT_SECS,
    no_browser: bool = False,
    juggler_dir: str | None = None,
) -> int:
    """Interactive Google OAuth login."""
    from juggler.google import GoogleAuthError, load_client_config, run_oauth_flow

    print("=" * 60)
    print("JUGGLER GOOGLE LOGIN")
    print("=" * 60)

    try:
        client = load_client_config(get_client_config_path(juggler_dir))
    except (GoogleAuthError, ValueError) as e:
        print(f"\nError: {e}")
        print("Run 'juggler init' for setup instructions")
        return 1

    def open_browser(url: str) -> bool:
        print("\nOpening your browser to authenticate with Google Tasks.")
        print("If your browser doesn't open automatically, please visit:")
        print(f"{url}\n")
        if no_browser:
            return True
        return webbrowser.open(url)

    try:
        result = asyncio.run(
            run_oauth_flow(
                client.client_id,
                port,
                client_secret=client.client_secret,
                timeout=timeout,
                open_browser=open_browser,
            )
        )
    except GoogleAuthError as e:
        logger.error(f"Authentication failed: {e}")
        print(f"\nError: {e}")
        return 1
    except OSError as e:
        print(f"\nError: could not listen on port {port}: {e}")
        print("Try another port with --port, or --port 0 for any free port")
        return 1

    print("\nAuthentication successful!")
    try:
        store.store(result.refresh_token)
    except CredentialStoreError as e:
        print(f"\nError: {e}")
        return 1

    print("\nYour refresh token has been saved securely in your system keychain.")
    print("You can now sync your TODOs with:")
    print()
    print("  juggler sync google-tasks")
    print()
    print("Use --dry-run to preview changes:")
    print("  juggler sync google-tasks --dry-run")
    return 0


def cmd_logout(store: CredentialStore) -> int:
    """Remove the refresh token from the keychain."""
    try:
        store.delete()
    except CredentialNotFoundError:
        print("Not logged in: no refresh token in keychain.")
        return 0
    except CredentialStoreError as e:
        print(f"Error: {e}")
        return 1

    print("Logged out: refresh token removed from keychain.")
    return 0


def cmd_sync(
    store: CredentialStore,
    dry_run: bool = False,
    debug_auth: bool = False,
    juggler_dir: str | None = None,
    todos_path: str | None = None,
) -> int:
    """Mirror local todos into Google Tasks."""
    from juggler.google import GoogleAuthError, TokenManager, load_client_config
    from juggler.store import load_todos, store_todos
    from juggler.tasks import TasksError, sync_with_token_manager

    todos_file = todos_path or get_todos_file_path(juggler_dir)
    try:
        todos = load_todos(todos_file)
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    if debug_auth:
        _print_auth_diagnostics(store)

    try:
        refresh_token = store.get()
    except CredentialStoreError as e:
        print(f"Error: {e}")
        return 1

    try:
        client = load_client_config(get_client_config_path(juggler_dir))
    except (GoogleAuthError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    logger.info(f"Syncing {len(todos)} TODOs with Google Tasks...")
    with TokenManager(
        client.client_id, refresh_token, client_secret=client.client_secret
    ) as token_manager:
        try:
            report = sync_with_token_manager(todos, token_manager, dry_run=dry_run)
        except GoogleAuthError as e:
            print(f"Error: {e}")
            print("Your login may have been revoked. Run 'juggler login' again.")
            return 1
        except TasksError as e:
            print(f"Error syncing with Google Tasks: {e}")
            return 1

    try:
        store_todos(todos, todos_file)
    except OSError as e:
        print(f"Error: failed to save todos after sync: {e}")
        return 1

    print(report.summary())
    return 0


def _print_auth_diagnostics(store: CredentialStore) -> None:
    print("Auth diagnostics:")
    print(f"  platform: {platform.system()}")
    for key, value in store.describe().items():
        print(f"  {key}: {value}")
    try:
        token = store.get()
        print(f"  refresh token: [PRESENT] length={len(token)} chars")
    except CredentialStoreError as e:
        print(f"  refresh token: [ERROR] {e}")


def main(argv: list[str] | None = None, store: CredentialStore | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="juggler",
        description="Mirror local TODOs into Google Tasks",
    )
    parser.add_argument("--dir", help="Data directory (default: $JUGGLER_DIR or ~/.juggler)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command")

    subparsers.add_parser("init", help="Create the data directory")
    subparsers.add_parser("status", help="Show configuration status")

    login_parser = subparsers.add_parser("login", help="Interactive OAuth login")
    login_parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_CALLBACK_PORT,
        help=f"Local port for OAuth callback (default: {DEFAULT_CALLBACK_PORT}, 0 for any)",
    )
    login_parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_CALLBACK_TIMEOUT_SECS,
        help=f"Seconds to wait for consent, 0 to wait forever "
        f"(default: {DEFAULT_CALLBACK_TIMEOUT_SECS})",
    )
    login_parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Don't open browser automatically",
    )

    subparsers.add_parser("logout", help="Remove stored refresh token")

    sync_parser = subparsers.add_parser("sync", help="Sync TODOs")
    sync_subparsers = sync_parser.add_subparsers(dest="service", help="Service")
    tasks_parser = sync_subparsers.add_parser("google-tasks", help="Sync with Google Tasks")
    tasks_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log actions without executing them",
    )
    tasks_parser.add_argument(
        "--debug-auth",
        action="store_true",
        help="Print keychain diagnostics for authentication",
    )
    tasks_parser.add_argument("--todos", help="Todos file (default: <dir>/todos.json)")

    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_env_file(get_juggler_dir(args.dir) / ENV_FILENAME)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "init":
        return cmd_init(args.dir)

    if store is None:
        store = KeyringCredentialStore()

    if args.command == "status":
        return cmd_status(store, args.dir)

    if args.command == "login":
        timeout = args.timeout if args.timeout > 0 else None
        return cmd_login(store, args.port, timeout, args.no_browser, args.dir)

    if args.command == "logout":
        return cmd_logout(store)

    if args.command == "sync":
        if args.service == "google-tasks":
            return cmd_sync(store, args.dry_run, args.debug_auth, args.dir, args.todos)
        sync_parser.print_help()
        return 0

    return 0


if __name__ == "__main__":
    sys.exit(main())
