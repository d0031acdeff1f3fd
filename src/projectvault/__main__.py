# Project Vault - Command line entry point
#
#   projectvault projects                     list projects
#   projectvault search TEXT                  search projects and items
#   projectvault export PROJECT -o FILE       export a project archive
#   projectvault import FILE                  import a project archive
#   projectvault serve                        run the HTTP API
#
# The archive password comes from PROJECTVAULT_ARCHIVE_PASSWORD, or is
# prompted for on the terminal.

import argparse
import getpass
import logging
import sys
from pathlib import Path

from . import __version__
from .config import ConfigError, get_settings
from .core import EventSeverity, EventType, get_audit_logger
from .errors import PartialImportError, TransferError

logger = logging.getLogger(__name__)


def _read_password(confirm: bool = False) -> str:
    password = get_settings().archive_password
    if password:
        return password
    password = getpass.getpass("Archive password: ")
    if confirm and getpass.getpass("Repeat password: ") != password:
        raise SystemExit("Passwords do not match.")
    return password


def _open_store(args):
    from .storage import VaultStore
    return VaultStore(args.db)


def _find_project_id(store, name_or_id: str) -> int:
    project = store.get_project_by_name(name_or_id)
    if project is not None:
        return project["id"]
    if name_or_id.isdigit() and store.get_project(int(name_or_id)) is not None:
        return int(name_or_id)
    raise SystemExit(f"No project named {name_or_id!r}.")


def cmd_projects(args) -> int:
    with _open_store(args) as store:
        projects = store.list_projects()
        if not projects:
            print("No projects.")
            return 0
        for project in projects:
            envs = ", ".join(project["environments"]) or "-"
            print(f"{project['id']:>4}  {project['name']}  [{envs}]")
    return 0


def cmd_search(args) -> int:
    from .storage import default_environment, search_items
    from .storage.items import item_title

    with _open_store(args) as store:
        results = search_items(store, args.text)
        if not results:
            print("No match.")
            return 0
        for entry in results:
            print(entry["project"]["name"])
            for item in entry["items"]:
                env = default_environment(item)
                group = f"{item.group_name}/" if item.group_name else ""
                suffix = f" ({env.short_name})" if env else ""
                print(f"    {group}{item_title(item)}{suffix}")
    return 0


def cmd_export(args) -> int:
    from .transfer import ARCHIVE_SUFFIX, ProjectExporter

    with _open_store(args) as store:
        project_id = _find_project_id(store, args.project)
        output = Path(args.output) if args.output else Path(
            store.get_project(project_id)["name"] + ARCHIVE_SUFFIX
        )
        password = _read_password(confirm=True)
        ProjectExporter(store).export_to_file(project_id, output, password)
    print(f"Exported to {output}")
    return 0


def cmd_import(args) -> int:
    from .transfer import ProjectImporter

    with _open_store(args) as store:
        password = _read_password()
        report = ProjectImporter(store).import_file(Path(args.archive), password)
    print(f"Imported {report.project_name!r} as project #{report.project_id}")
    for kind, count in sorted(report.counts.items()):
        print(f"    {kind}: {count}")
    for desc in report.unresolved_website_databases:
        print(f"    warning: website {desc!r} was imported without its database")
    return 0


def cmd_serve(args) -> int:
    from .api.main import start_api_server

    settings = get_settings()
    try:
        start_api_server(host=args.host or settings.api_host, port=args.port or settings.api_port)
    except KeyboardInterrupt:
        print("\nShutting down...")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="projectvault",
        description="Project Vault - project infrastructure and credential vault",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database path (default: PROJECTVAULT_DB_PATH or data/projectvault.db)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Project Vault v{__version__}"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("projects", help="List projects")
    p.set_defaults(func=cmd_projects)

    p = sub.add_parser("search", help="Search projects and items")
    p.add_argument("text")
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("export", help="Export a project to an archive")
    p.add_argument("project", help="Project name or id")
    p.add_argument("-o", "--output", help="Archive path (default: <project name>.pvault)")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("import", help="Import a project from an archive")
    p.add_argument("archive")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default=None, help="Bind address (default: 127.0.0.1)")
    p.add_argument("--port", type=int, default=None, help="Port (default: 8000)")
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> int:
    """Main entry point for Project Vault."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        get_settings()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    get_audit_logger().log_event(
        event_type=EventType.SYSTEM_START,
        severity=EventSeverity.INFO,
        message="Project Vault starting",
        details={"version": __version__, "command": args.command},
    )

    try:
        return args.func(args)
    except PartialImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(f"The incomplete project was kept as #{e.project_id}; delete or rename it "
              "before importing again.", file=sys.stderr)
        return 1
    except TransferError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
