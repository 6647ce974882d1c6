#!/usr/bin/env python3
"""
Motiv command-line interface.

Registers projects, submits, amends and retries requests, and shows the
request dashboard, details and logs. Library code logs progress to
stderr; this module prints user-facing output to stdout.
"""

import argparse
import logging
import os
import shlex
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Optional, TextIO

from .config_loader import load_app_config, load_credentials, setup_logging
from .errors import MotivError
from .ledger import LedgerStore
from .lifecycle import can_amend, can_retry
from .models import (
    APP_NAME,
    APP_NAME_LOWER,
    AppConfig,
    AttemptStatus,
    Autonomy,
    Credentials,
    Request,
    RequestStatus,
)
from .pipeline import ExecutionResult, RequestPipeline, dashboard_order
from .tracing import TracingClient

logger = logging.getLogger(__name__)

EDITOR_HEADER = (
    "# Enter your request description below.\n"
    "# Lines starting with # will be stripped.\n\n"
)

STATUS_LABELS = {
    RequestStatus.INGESTED: "[ ] ingested",
    RequestStatus.EXECUTING: "[~] executing",
    RequestStatus.SUCCEEDED: "[+] succeeded",
    RequestStatus.FAILED: "[!] failed",
    RequestStatus.RETRYING: "[~] retrying",
    RequestStatus.NEEDS_HUMAN: "[!!] needs_human",
    RequestStatus.APPLIED: "[*] applied",
}

ENV_TEMPLATE = """# Motiv credentials. Environment variables take precedence.
ANTHROPIC_API_KEY=
GEMINI_API_KEY=
OPENAI_API_KEY=
GITHUB_TOKEN=
"""


class CommandError(Exception):
    """A user-facing failure that ends the command with exit status 1."""


def format_status(status: RequestStatus) -> str:
    return STATUS_LABELS.get(status, status.value)


def _shorten(text: str, max_len: int) -> str:
    text = text.replace("\n", " ")
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


# =============================================================================
# Descriptions
# =============================================================================


def strip_comment_lines(text: str) -> str:
    """Drop lines starting with '#' and trim the result."""
    return "\n".join(line for line in text.split("\n") if not line.startswith("#")).strip()


def editor_description() -> str:
    """
    Open $EDITOR (or $VISUAL, or vi) on a temp file and return what was written.

    Raises:
        CommandError: If the description is empty after stripping comments
    """
    editor = os.environ.get("EDITOR") or os.environ.get("VISUAL") or "vi"
    fd, tmp_name = tempfile.mkstemp(prefix=f"{APP_NAME_LOWER}-desc-", suffix=".md")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(EDITOR_HEADER)
        subprocess.call([*shlex.split(editor), tmp_name])
        content = Path(tmp_name).read_text()
    finally:
        os.unlink(tmp_name)

    description = strip_comment_lines(content)
    if not description:
        raise CommandError("Aborting: empty description.")
    return description


def resolve_description(
    file: Optional[str],
    words: list[str],
    stdin: Optional[TextIO] = None,
) -> str:
    """
    Resolve a request description from, in priority order: ``--file``,
    positional words, piped stdin, then an interactive editor.

    Raises:
        CommandError: If the file is missing or the description is empty
    """
    if file:
        path = Path(file)
        if not path.is_file():
            raise CommandError(f"File not found: {file}")
        description = path.read_text().strip()
        if not description:
            raise CommandError(f"Description file is empty: {file}")
        return description

    if words:
        return " ".join(words)

    stdin = stdin if stdin is not None else sys.stdin
    if not stdin.isatty():
        text = stdin.read().strip()
        if text:
            return text

    return editor_description()


# =============================================================================
# Commands
# =============================================================================


def build_pipeline(config: AppConfig, credentials: Credentials) -> RequestPipeline:
    return RequestPipeline(
        config,
        credentials,
        tracing_client=TracingClient.from_config(config.langfuse),
    )


def cmd_init(args: argparse.Namespace, config: AppConfig, credentials: Credentials) -> int:
    ledger = LedgerStore(config.paths.ledger)
    if not ledger.initialize():
        print("Ledger already initialized.")
        return 0

    config.paths.workspaces.mkdir(parents=True, exist_ok=True)
    env_file = config.paths.env_file
    if not env_file.exists():
        env_file.write_text(ENV_TEMPLATE)
        env_file.chmod(0o600)

    print(f"{APP_NAME} initialized.")
    print(f"  Ledger:      {config.paths.ledger}")
    print(f"  Credentials: {env_file}")
    print()
    print("Next steps:")
    print(f"  1. Add your API keys to {env_file}")
    print(f"  2. Register a project: {APP_NAME_LOWER} project add --name <name> --repo <url>")
    return 0


def cmd_project_add(args: argparse.Namespace, config: AppConfig, credentials: Credentials) -> int:
    autonomy = Autonomy.parse(args.autonomy) if args.autonomy else config.default_autonomy
    pipeline = RequestPipeline(config, credentials)
    project = pipeline.register_project(args.name, args.repo, args.branch, autonomy)
    print(f'Project "{project.name}" registered.')
    print(f"  Repo:     {project.repo}")
    print(f"  Branch:   {project.default_branch}")
    print(f"  Autonomy: {project.autonomy.value}")
    return 0


def cmd_project_list(args: argparse.Namespace, config: AppConfig, credentials: Credentials) -> int:
    projects = LedgerStore(config.paths.ledger).list_projects()
    if not projects:
        print(f"No projects registered. Use: {APP_NAME_LOWER} project add --name <name> --repo <url>")
        return 0

    print("Projects:\n")
    for project in projects:
        print(f"  {project.name}")
        print(f"    repo:     {project.repo}")
        print(f"    branch:   {project.default_branch}")
        print(f"    autonomy: {project.autonomy.value}")
        print()
    return 0


def _report(result: ExecutionResult) -> int:
    request = result.request
    if result.success:
        print(f"\nDone! {result.message}")
        if result.commit:
            print(f"  Branch: {request.branch}")
            print(f"  Commit: {result.commit}")
    else:
        print(f"\nAttempt failed: {result.message}")
    print(f"Request {request.id} status: {format_status(request.status)}")
    return 0 if result.success else 1


def cmd_submit(args: argparse.Namespace, config: AppConfig, credentials: Credentials) -> int:
    pipeline = build_pipeline(config, credentials)
    project = pipeline.get_project(args.project)
    autonomy = pipeline.resolve_autonomy(project, args.autonomy)
    description = resolve_description(args.file, args.description)

    print(f'Creating request for "{project.name}"...')
    request = pipeline.submit(project.name, description)
    print(f"  Request:  {request.id}")
    print(f"  Branch:   {request.branch}")
    print(f"  Autonomy: {autonomy.value}")

    if autonomy == Autonomy.INGEST_ONLY:
        print(f'\nAutonomy is "{autonomy.value}": request ingested, execution skipped.')
        return 0

    print(f"\nExecuting {request.id}...")
    return _report(pipeline.execute(project, request, autonomy))


def cmd_amend(args: argparse.Namespace, config: AppConfig, credentials: Credentials) -> int:
    pipeline = build_pipeline(config, credentials)
    request = pipeline.ledger.get_request(args.request_id)
    if not can_amend(request):
        raise CommandError(
            f'Request {request.id} is in status "{request.status.value}" and cannot be amended. '
            f"Only succeeded or applied requests can be amended."
        )
    project = pipeline.get_project(request.project)
    autonomy = pipeline.resolve_autonomy(project, args.autonomy)
    description = resolve_description(args.file, args.description)

    print(f"Amending {request.id} (spec v{len(request.spec) + 1})...")
    amended = pipeline.amend(request.id, description)
    print(f"  Branch:   {amended.branch}")
    print(f"  Autonomy: {autonomy.value}")

    if autonomy == Autonomy.INGEST_ONLY:
        print(f'\nAutonomy is "{autonomy.value}": amendment ingested, execution skipped.')
        return 0

    print(f"\nExecuting {amended.id} (amend v{len(amended.spec)})...")
    return _report(pipeline.execute(project, amended, autonomy))


def cmd_retry(args: argparse.Namespace, config: AppConfig, credentials: Credentials) -> int:
    pipeline = build_pipeline(config, credentials)
    request = pipeline.ledger.get_request(args.request_id)
    if not can_retry(request, force=args.force):
        message = f'Request {request.id} is in status "{request.status.value}" and cannot be retried.'
        if not args.force:
            message += "\nUse --force to rebuild from scratch regardless of status."
        raise CommandError(message)
    project = pipeline.get_project(request.project)
    autonomy = pipeline.resolve_autonomy(project, args.autonomy)

    print(f"{'Force retrying' if args.force else 'Retrying'} {request.id} (autonomy: {autonomy.value})...")
    if autonomy == Autonomy.INGEST_ONLY:
        print(f'Autonomy is "{autonomy.value}": execution skipped.')
        return 0

    request = pipeline.retry(request.id, force=args.force)
    return _report(pipeline.execute(project, request, autonomy, force=args.force))


def cmd_status(args: argparse.Namespace, config: AppConfig, credentials: Credentials) -> int:
    requests = LedgerStore(config.paths.ledger).list_requests()
    if not requests:
        print(f'No requests. Submit one with: {APP_NAME_LOWER} submit --project <name> "description"')
        return 0

    print(f"{APP_NAME} Status\n")
    print(f"  {'ID':<10} {'Status':<16} {'Project':<16} Description")
    print(f"  {'─' * 10} {'─' * 16} {'─' * 16} {'─' * 30}")
    for request in dashboard_order(requests):
        print(
            f"  {request.id:<10} {format_status(request.status):<16} "
            f"{request.project:<16} {_shorten(request.current_spec.description, 40)}"
        )
    print()
    return 0


def cmd_list(args: argparse.Namespace, config: AppConfig, credentials: Credentials) -> int:
    requests = LedgerStore(config.paths.ledger).list_requests()
    if not requests:
        print("No requests.")
        return 0
    for request in requests:
        print(f"{request.id}  {format_status(request.status)}  {request.project}  {request.description}")
    return 0


def _print_request(request: Request, autonomy: Autonomy) -> None:
    print(f"\nRequest:  {request.id}")
    print(f"Status:   {format_status(request.status)}")
    print(f"Project:  {request.project}")
    print(f"Autonomy: {autonomy.value}")
    print(f"Branch:   {request.branch}")
    print(f"Created:  {request.created_at.isoformat()}")
    print(f"Updated:  {request.updated_at.isoformat()}")
    if request.pr_url:
        print(f"PR:       {request.pr_url}")

    print(f"\nSpec versions: ({len(request.spec)})")
    for spec in request.spec:
        label = "initial" if spec.version == 1 else "amend"
        print(f"  v{spec.version} [{label}] ({spec.timestamp.isoformat()}):")
        print(f"    {spec.description}")

    if request.attempts:
        print("\nAttempts:")
        for attempt in request.attempts:
            icon = "ok" if attempt.status == AttemptStatus.SUCCEEDED else "FAIL"
            commit = f" commit:{attempt.commit}" if attempt.commit else ""
            print(f"  #{attempt.id} [{icon}] v{attempt.spec_version} {attempt.timestamp.isoformat()}{commit}")
            if attempt.reason:
                print(f"         Reason: {attempt.reason}")
            if attempt.summary:
                print(f"         Summary: {attempt.summary}")
    print()


def cmd_show(args: argparse.Namespace, config: AppConfig, credentials: Credentials) -> int:
    ledger = LedgerStore(config.paths.ledger)
    request = ledger.get_request(args.request_id)
    project = ledger.read_project(request.project)
    autonomy = project.autonomy if project else config.default_autonomy
    _print_request(request, autonomy)
    return 0


def cmd_logs(args: argparse.Namespace, config: AppConfig, credentials: Credentials) -> int:
    ledger = LedgerStore(config.paths.ledger)
    ledger.get_request(args.request_id)
    logs = ledger.read_logs(args.request_id)
    if not logs:
        raise CommandError(f"No logs found for {args.request_id}.")

    print(f"\nLogs for {args.request_id}:\n")
    for entry in logs:
        print(f"  [{entry.timestamp.isoformat()}] {entry.event.value}: {entry.message}")
    print()
    return 0


def cmd_serve(args: argparse.Namespace, config: AppConfig, credentials: Credentials) -> int:
    from .api import run_server

    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    run_server(config)
    return 0


# =============================================================================
# Argument parsing
# =============================================================================


def _add_autonomy(parser: argparse.ArgumentParser, help_text: str) -> None:
    parser.add_argument(
        "--autonomy",
        type=str,
        default=None,
        help=f"{help_text} ({', '.join(level.value for level in Autonomy)})",
    )


def _add_description(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-f",
        "--file",
        type=str,
        help="Read the description from a file",
    )
    parser.add_argument(
        "description",
        nargs="*",
        help="Inline description (otherwise piped stdin, then $EDITOR)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME_LOWER,
        description=f"{APP_NAME_LOWER} - Autonomous development agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Autonomy levels:
  ingest_only    Create the request in the ledger but do not execute
  execute_local  Execute locally but do not push or open a PR
  draft_pr       Push and open a draft PR (default)
  full           Push, open a PR, and merge it

Examples:
  %(prog)s init
  %(prog)s project add --name api --repo git@github.com:acme/api.git
  %(prog)s submit --project api "Add a /health endpoint"
  %(prog)s retry REQ-0001 --force
""",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=str,
        default=None,
        help="Path to config.yaml (default: MOTIV_CONFIG or ~/.motiv/config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    commands = parser.add_subparsers(dest="command", metavar="<command>")

    init = commands.add_parser("init", help="Initialize the ledger")
    init.set_defaults(func=cmd_init, needs_ledger=False)

    project = commands.add_parser("project", help="Manage projects")
    project_commands = project.add_subparsers(dest="project_command", metavar="<action>")
    project_commands.required = True

    project_add = project_commands.add_parser("add", help="Register a project")
    project_add.add_argument("--name", required=True, help="Project name")
    project_add.add_argument("--repo", required=True, help="Git remote URL")
    project_add.add_argument("--branch", default="main", help="Default branch (default: main)")
    _add_autonomy(project_add, "Default autonomy for the project's requests")
    project_add.set_defaults(func=cmd_project_add)

    project_list = project_commands.add_parser("list", help="List registered projects")
    project_list.set_defaults(func=cmd_project_list)

    submit = commands.add_parser("submit", help="Submit a request")
    submit.add_argument("--project", "-p", required=True, help="Project name")
    _add_autonomy(submit, "Override project autonomy for this request")
    _add_description(submit)
    submit.set_defaults(func=cmd_submit)

    amend = commands.add_parser("amend", help="Add follow-up work to a succeeded/applied request")
    amend.add_argument("request_id", help="Request id, e.g. REQ-0001")
    _add_autonomy(amend, "Override autonomy for this amend")
    _add_description(amend)
    amend.set_defaults(func=cmd_amend)

    retry = commands.add_parser("retry", help="Re-attempt a failed request")
    retry.add_argument("request_id", help="Request id")
    retry.add_argument(
        "--force",
        action="store_true",
        help="Rebuild from scratch, even if succeeded or applied",
    )
    _add_autonomy(retry, "Override project autonomy for this attempt")
    retry.set_defaults(func=cmd_retry)

    status = commands.add_parser("status", help="Dashboard of all requests")
    status.set_defaults(func=cmd_status)

    list_cmd = commands.add_parser("list", help="List all requests")
    list_cmd.set_defaults(func=cmd_list)

    show = commands.add_parser("show", help="Show request details")
    show.add_argument("request_id", help="Request id")
    show.set_defaults(func=cmd_show)

    logs = commands.add_parser("logs", help="Show request execution logs")
    logs.add_argument("request_id", help="Request id")
    logs.set_defaults(func=cmd_logs)

    serve = commands.add_parser("serve", help="Run the read-only status API")
    serve.add_argument("--host", type=str, default=None, help="Bind address")
    serve.add_argument("--port", type=int, default=None, help="Port")
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        config = load_app_config(args.config)
    except (OSError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    setup_logging("DEBUG" if args.verbose else config.logging.level)
    credentials = load_credentials(config.paths)

    if getattr(args, "needs_ledger", True):
        if not LedgerStore(config.paths.ledger).is_initialized():
            print(f"{APP_NAME} not initialized. Run: {APP_NAME_LOWER} init", file=sys.stderr)
            return 1

    try:
        return args.func(args, config, credentials)
    except (CommandError, MotivError, ValueError) as e:
        print(str(e), file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
