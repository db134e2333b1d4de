"""
novel2notion - Mirror a local writing project into a Notion workspace.

Usage:
    novel2notion sync                 # dry run: show what would be pushed
    novel2notion sync --execute       # push dirty entities to Notion
    novel2notion status               # dirty entities per type
    novel2notion check                # validate configuration and credentials

Configuration comes from the environment or a .env file
(NOTION_API_KEY, NOTION_ROOT_PAGE_ID, ...).
"""

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from ..adapters.config import EnvironmentConfigProvider
from ..adapters.notion import NotionApiClient, notion_workspace_factory
from ..adapters.storage import JsonFileEntityRepository, JsonMappingStore
from ..application.sync import DirtyTracker, RemoteMapper, SyncOrchestrator, SyncResult, SyncStatus
from ..core.domain.enums import EntityType
from ..core.ports.entity_repository import RepositoryError
from ..core.ports.mapping_store import MappingStoreError
from ..core.ports.workspace import ClientConstructionError, WorkspaceError
from .exit_codes import ExitCode
from .output import Console


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="novel2notion",
        description="Sync a local writing project with Notion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--data", "-d", type=str, help="Path to the local entity store (JSON)")
    common.add_argument("--mapping", type=str, help="Path to the id mapping file (JSON)")
    common.add_argument("--env-file", type=str, help="Path to a .env file")
    common.add_argument("--verbose", "-v", action="store_true", default=None,
                        help="Enable verbose logging")
    common.add_argument("--no-color", action="store_true", help="Disable colored output")

    subparsers = parser.add_subparsers(dest="command")

    sync = subparsers.add_parser("sync", parents=[common], help="Push dirty entities to Notion")
    sync.add_argument("--execute", "-x", action="store_true", default=None,
                      help="Actually execute changes (default is dry-run)")
    sync.add_argument("--no-confirm", action="store_true",
                      help="Skip confirmation prompts (use with caution!)")
    sync.add_argument("--concurrency", "-c", type=int,
                      help="Parallel requests per entity type")

    subparsers.add_parser("status", parents=[common], help="Show entities waiting to be synced")
    subparsers.add_parser("check", parents=[common], help="Validate configuration and credentials")

    return parser


def load_config(args: argparse.Namespace) -> EnvironmentConfigProvider:
    env_file = Path(args.env_file) if args.env_file else None
    return EnvironmentConfigProvider(env_file=env_file, cli_overrides=vars(args))


# -------------------------------------------------------------------------
# Commands
# -------------------------------------------------------------------------

def run_sync(args: argparse.Namespace, console: Console) -> ExitCode:
    provider = load_config(args)
    errors = provider.validate()
    if errors:
        console.error("Configuration errors:")
        for error in errors:
            console.detail(error)
        return ExitCode.CONFIG_ERROR

    config = provider.load()
    try:
        repository = JsonFileEntityRepository(config.data_path)
        mapper = RemoteMapper(JsonMappingStore(config.mapping_path))
    except (RepositoryError, MappingStoreError) as e:
        console.error(str(e))
        return ExitCode.ERROR

    console.header("novel2notion sync")
    if config.sync.dry_run:
        console.dry_run_banner()
    elif not args.no_confirm:
        if not console.confirm("Push local changes to Notion?"):
            console.info("Aborted.")
            return ExitCode.CANCELLED

    orchestrator = SyncOrchestrator(
        repository=repository,
        mapper=mapper,
        workspace_factory=notion_workspace_factory(mapper),
        workspace_config=config.workspace,
        config=config.sync,
    )

    def on_interrupt(signum, frame):
        if not orchestrator.cancel():
            raise KeyboardInterrupt

    previous = signal.signal(signal.SIGINT, on_interrupt)
    try:
        result = orchestrator.run(
            progress_callback=lambda phase, current, total: console.progress(current, total, phase)
        )
    finally:
        signal.signal(signal.SIGINT, previous)

    console.sync_result(result)
    return exit_code_for(result)


def exit_code_for(result: SyncResult) -> ExitCode:
    """Map a sync result to the process exit code."""
    if result.status == SyncStatus.NOT_CONFIGURED:
        return ExitCode.CONFIG_ERROR
    if result.status == SyncStatus.ABORTED:
        return ExitCode.CONNECTION_ERROR
    if result.status == SyncStatus.CANCELLED:
        return ExitCode.CANCELLED
    if result.status == SyncStatus.ALREADY_RUNNING:
        return ExitCode.ERROR
    if result.failed:
        return ExitCode.PARTIAL_SUCCESS if result.succeeded or result.archived else ExitCode.ERROR
    return ExitCode.SUCCESS


def run_status(args: argparse.Namespace, console: Console) -> ExitCode:
    config = load_config(args).load()
    try:
        repository = JsonFileEntityRepository(config.data_path)
        mapper = RemoteMapper(JsonMappingStore(config.mapping_path))
    except (RepositoryError, MappingStoreError) as e:
        console.error(str(e))
        return ExitCode.ERROR

    snapshot = DirtyTracker(repository).snapshot()

    console.header("novel2notion status")
    rows = [
        [
            entity_type.label,
            str(repository.count(entity_type)),
            str(mapper.count(entity_type)),
            str(len(snapshot.for_type(entity_type))),
        ]
        for entity_type in EntityType
    ]
    console.table(["Type", "Local", "Mapped", "Dirty"], rows)
    console.print()
    if snapshot.is_empty:
        console.success("Everything is in sync")
    else:
        console.info(f"{snapshot.total} entities waiting to be synced")
    return ExitCode.SUCCESS


def run_check(args: argparse.Namespace, console: Console) -> ExitCode:
    provider = load_config(args)
    config = provider.load()

    console.header("novel2notion check")
    console.section("Configuration")
    shown = {
        "api_key": "****" if config.workspace.api_key else "",
        "root_page_id": config.workspace.root_page_id,
        "api_url": config.workspace.api_url,
        "data_path": str(config.data_path),
        "mapping_path": str(config.mapping_path),
    }
    for key, value in shown.items():
        console.key_value(provider.describe(key) or key, value)

    errors = provider.validate()
    if errors:
        console.print()
        for error in errors:
            console.error(error)
        return ExitCode.CONFIG_ERROR

    console.section("Connection")
    try:
        client = NotionApiClient(config.workspace)
        user = client.get_me()
        client.retrieve_page(config.workspace.root_page_id)
    except ClientConstructionError as e:
        console.error(str(e))
        return ExitCode.CONFIG_ERROR
    except WorkspaceError as e:
        console.error(f"Connection failed: {e}")
        return ExitCode.CONNECTION_ERROR

    console.success(f"Authenticated as {user.get('name') or user.get('id', 'unknown')}")
    console.success(f"Root page {config.workspace.root_page_id} is reachable")
    return ExitCode.SUCCESS


COMMANDS = {
    "sync": run_sync,
    "status": run_status,
    "check": run_check,
}


def main(argv: Optional[list[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return ExitCode.ERROR

    setup_logging(bool(args.verbose))
    console = Console(color=not args.no_color, verbose=bool(args.verbose))

    try:
        return int(COMMANDS[args.command](args, console))
    except KeyboardInterrupt:
        console.print()
        console.warning("Interrupted")
        return ExitCode.CANCELLED


def run() -> None:
    sys.exit(main())
