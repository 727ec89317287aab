"""CLI entry point for ideaops."""

from __future__ import annotations

import functools
import json
import logging
from pathlib import Path
from typing import NoReturn

import typer
from rich import print as rprint
from rich.markup import escape

from ideaops.config import Config
from ideaops.github.client import GitHubClient
from ideaops.github.projects import (
    ProjectBoard,
    ProjectLookupError,
    ProjectSnapshot,
    ensure_project_status,
    load_project_cache,
    lookup_project_status,
)
from ideaops.guards import (
    BRANCH_EXIT_CODE,
    PR_TITLE_EXIT_CODE,
    check_branch_name,
    check_pr_title,
)
from ideaops.ideas.parser import parse_idea
from ideaops.ideas.validator import validate_ideas
from ideaops.lifecycle.config import ConfigError, LifecycleConfig, load_lifecycle_config
from ideaops.lifecycle.reconcile import (
    IdeaPathError,
    StatusNotAllowedError,
    apply_plan,
    read_idea_status,
    reconcile,
    resolve_idea_path,
    resolve_target_status,
)
from ideaops.lifecycle.report import build_report
from ideaops.log import configure_logging
from ideaops.repo import RepoNotFoundError, current_branch

logger = logging.getLogger(__name__)

app = typer.Typer(help="Keep idea files and the GitHub Project board in step.")

VALIDATE_EMPTY_EXIT_CODE = 2
VALIDATE_FAILED_EXIT_CODE = 11

OUTPUT_HELP = "Output format: text or json"
LOG_LEVEL_HELP = "trace, debug, info, warn, or error (default: LOG_LEVEL or warn)"
CWD_HELP = "Working directory (the repository root is found from here)"


def _fail(message: str, code: int = 1) -> NoReturn:
    rprint(f"[red]{escape(message)}[/red]")
    raise typer.Exit(code)


def _setup(output: str, log_level: str | None) -> Config:
    settings = Config.load()
    configure_logging(log_level or settings.log_level)
    if output not in ("text", "json"):
        _fail(f"Unknown output format: {output} (expected text or json)")
    return settings


def _load_config(cwd: Path | None) -> LifecycleConfig:
    try:
        return load_lifecycle_config(cwd)
    except (RepoNotFoundError, ConfigError) as e:
        _fail(f"Config error: {e}")


def _open_board(
    settings: Config, root: Path
) -> tuple[ProjectSnapshot | None, GitHubClient | None, str | None]:
    """Load the cached snapshot and, when a token is configured, a client."""
    try:
        snapshot = load_project_cache(root)
    except ProjectLookupError as e:
        return None, None, str(e)

    if not settings.github_token:
        return snapshot, None, "GitHub token not set (IDEAOPS_GITHUB_TOKEN); project status not looked up."
    return snapshot, GitHubClient(token=settings.github_token, repo=settings.repo), None


@app.command("reconcile-status")
def reconcile_status(
    id: str = typer.Option(..., "--id", help="Idea or project identifier, e.g. ARCH-123"),
    file: str = typer.Option(None, "--file", help="Idea markdown path (defaults to <ideas>/<ID>.md)"),
    status: str = typer.Option(None, "--status", help="Target status (default: Ticketed)"),
    dry_run: bool = typer.Option(True, "--dry-run/--no-dry-run", help="Preview the plan (default)"),
    yes: bool = typer.Option(False, "--yes", help="Execute writes"),
    output: str = typer.Option("text", "--output", "-o", help=OUTPUT_HELP),
    log_level: str = typer.Option(None, "--log-level", help=LOG_LEVEL_HELP),
    cwd: Path = typer.Option(None, "--cwd", help=CWD_HELP),
) -> None:
    """Compare an idea's status with the project board and plan (or apply) a fix.

    Nothing is written unless --yes is given.
    """
    settings = _setup(output, log_level)
    config = _load_config(cwd)
    root = config.root

    try:
        target = resolve_target_status(status, config)
        idea_path = resolve_idea_path(id, root, config, file)
        idea_status = read_idea_status(idea_path)
    except (IdeaPathError, StatusNotAllowedError) as e:
        _fail(str(e))

    id_field = config.project.field_name("id", "ID")
    status_field = config.project.field_name("status", "Status")

    snapshot, client, note = _open_board(settings, root)
    board = ProjectBoard(client) if client else None
    item = None
    project_status = None
    try:
        if snapshot is not None and board is not None:
            lookup = lookup_project_status(id, snapshot, board, id_field=id_field, status_field=status_field)
            item, project_status, note = lookup.item, lookup.status, lookup.note

        plan = reconcile(
            id,
            idea_path,
            config,
            target_status=target,
            idea_status=idea_status,
            project_status=project_status,
            notes={"project": note or "Project item lookup pending."},
        )

        if not yes:
            if not dry_run:
                logger.warning("--no-dry-run has no effect without --yes; showing the plan only")
            _print(plan.to_json() if output == "json" else plan.to_text(), output)
            return

        ensure = functools.partial(
            ensure_project_status,
            snapshot=snapshot,
            board=board,
            item=item,
            id_field=id_field,
            status_field=status_field,
        )
        result = apply_plan(plan, config, ensure)
    finally:
        if client is not None:
            client.close()

    if output == "json":
        typer.echo(_dumps(result.to_dict()))
    else:
        rprint(escape(result.plan.to_text()))


@app.command("validate-ideas")
def validate_ideas_command(
    filter: str = typer.Option(None, "--filter", help="Only validate files whose name contains this"),
    strict: bool = typer.Option(False, "--strict", help="Treat warnings as failures"),
    output: str = typer.Option("text", "--output", "-o", help=OUTPUT_HELP),
    log_level: str = typer.Option(None, "--log-level", help=LOG_LEVEL_HELP),
    cwd: Path = typer.Option(None, "--cwd", help=CWD_HELP),
) -> None:
    """Validate idea files against the rules for their type.

    Exit codes: 0 valid, 2 no ideas found, 11 invalid ideas (or warnings with --strict).
    """
    _setup(output, log_level)
    config = _load_config(cwd)

    report = validate_ideas(
        config.ideas_dir, filter=filter, strict=strict, project=config.project
    )

    if output == "json":
        typer.echo(_dumps(report.to_dict()))
    else:
        if report.message:
            rprint(f"[yellow]{escape(report.message)}[/yellow]")
        for result in report.files:
            if result.valid and not result.warnings:
                continue
            color = "green" if result.valid else "red"
            rprint(f"[{color}]{escape(result.filename)}[/{color}]")
            for error in result.errors:
                rprint(f"  [red]error[/red] {escape(error)}")
            for warning in result.warnings:
                rprint(f"  [yellow]warning[/yellow] {escape(warning)}")
        if report.total:
            rprint(
                f"\n[bold]{report.total}[/bold] idea(s): {report.valid} valid, "
                f"{report.invalid} invalid, {report.warnings} warning(s)"
            )

    if report.status in ("missing", "empty"):
        raise typer.Exit(VALIDATE_EMPTY_EXIT_CODE)
    if report.status == "error":
        raise typer.Exit(VALIDATE_FAILED_EXIT_CODE)


@app.command("show-idea")
def show_idea(
    path: Path = typer.Argument(help="Idea markdown file"),
    output: str = typer.Option("text", "--output", "-o", help=OUTPUT_HELP),
) -> None:
    """Print the parsed view of an idea file."""
    _setup(output, None)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        _fail(f"Unable to read {path}: {e}")

    idea = parse_idea(content, filename=path.name)
    if output == "json":
        typer.echo(_dumps(idea.to_dict()))
        return

    rprint(f"[bold]{escape(idea.title or '(untitled)')}[/bold]")
    rprint(f"  Lane: {idea.lane or '-'}")
    rprint(f"  Status: {escape(idea.status or '-')}")
    if idea.issue_number is not None:
        rprint(f"  Issue: #{idea.issue_number}")
    if idea.parent:
        rprint(f"  Parent: {escape(idea.parent)}")
    rprint(f"  Sections: {escape(', '.join(idea.sections)) or '-'}")
    if idea.checklist_items:
        rprint("  Acceptance Checklist:")
        for item in idea.checklist_items:
            rprint(f"    - {escape(item)}")
    if idea.sub_issues:
        rprint("  Sub-Issues:")
        for sub in idea.sub_issues:
            rprint(f"    - {sub.id}: {escape(sub.description)}")


@app.command("check-branch")
def check_branch(
    branch: str = typer.Option(None, "--branch", help="Branch to check (default: current branch)"),
    output: str = typer.Option("text", "--output", "-o", help=OUTPUT_HELP),
    log_level: str = typer.Option(None, "--log-level", help=LOG_LEVEL_HELP),
    cwd: Path = typer.Option(None, "--cwd", help=CWD_HELP),
) -> None:
    """Check a branch name against the configured pattern (exit 11 on mismatch)."""
    _setup(output, log_level)
    config = _load_config(cwd)

    name = branch or current_branch(config.root)
    if not name:
        _fail("Failed to get current branch")

    result = check_branch_name(name, config)
    _print(result.to_json() if output == "json" else result.to_text(), output)
    if not result.valid:
        raise typer.Exit(BRANCH_EXIT_CODE)


@app.command("check-pr-title")
def check_pr_title_command(
    title: str = typer.Option(None, "--title", help="Title to check (default: the branch's open PR)"),
    branch: str = typer.Option(None, "--branch", help="Branch to check (default: current branch)"),
    output: str = typer.Option("text", "--output", "-o", help=OUTPUT_HELP),
    log_level: str = typer.Option(None, "--log-level", help=LOG_LEVEL_HELP),
    cwd: Path = typer.Option(None, "--cwd", help=CWD_HELP),
) -> None:
    """Check that a PR title follows the pattern and names its branch's ID (exit 12 on mismatch)."""
    settings = _setup(output, log_level)
    config = _load_config(cwd)

    name = branch or current_branch(config.root)
    if not name:
        _fail("Failed to get current branch")

    if title is None:
        issues = settings.validate()
        if issues:
            for issue in issues:
                rprint(f"[red]Config error: {escape(issue)}[/red]")
            raise typer.Exit(1)
        client = GitHubClient(token=settings.github_token, repo=settings.repo)
        try:
            pr = client.find_open_pull_request(name)
        finally:
            client.close()
        if pr is not None:
            logger.debug(f"Found PR #{pr.number}: {pr.title}")
            title = pr.title

    result = check_pr_title(title, name, config)
    _print(result.to_json() if output == "json" else result.to_text(), output)
    if not result.valid:
        raise typer.Exit(PR_TITLE_EXIT_CODE)


@app.command()
def report(
    output: str = typer.Option("text", "--output", "-o", help=OUTPUT_HELP),
    log_level: str = typer.Option(None, "--log-level", help=LOG_LEVEL_HELP),
    cwd: Path = typer.Option(None, "--cwd", help=CWD_HELP),
) -> None:
    """Show the lifecycle config and any drift from the cached board statuses."""
    _setup(output, log_level)
    config = _load_config(cwd)

    notes: list[str] = []
    snapshot = None
    try:
        snapshot = load_project_cache(config.root)
    except ProjectLookupError as e:
        notes.append(str(e))

    result = build_report(config, snapshot, notes)
    _print(result.to_json() if output == "json" else result.to_text(), output)


def _print(text: str, output: str) -> None:
    if output == "json":
        typer.echo(text)
    else:
        rprint(escape(text))


def _dumps(data: dict) -> str:
    return json.dumps(data, indent=2)


if __name__ == "__main__":
    app()
