"""Main CLI for worktree board."""

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ..core.board import BOARD_COLUMNS, archived_features, project_board
from ..core.config import DEFAULT_CONFIG_FILENAME, load_config
from ..publish.pipeline import PublicationPipeline, PublishError, PublishOptions
from ..store.feature_store import FeatureStore
from ..utils.rich_logging import setup_logging
from ..workspace.worktree_registry import NoRepositoryError, WorktreeError, WorktreeRegistry


console = Console()


@click.group()
@click.option("--project", "-p", default=".", help="Project (main copy) directory")
@click.option("--config", "-c", "config_path", default=DEFAULT_CONFIG_FILENAME, help="Config file")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, project, config_path, verbose):
    """Worktree Board - isolated git worktrees, feature board and PRs."""
    ctx.ensure_object(dict)
    project = Path(project).expanduser().resolve()
    config_file = Path(config_path)
    if not config_file.is_absolute() and not config_file.exists():
        config_file = project / config_file
    config = load_config(config_file)

    setup_logging("DEBUG" if verbose else config.log_level)
    ctx.obj["project"] = project
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_file


@cli.command("list")
@click.option("--details", is_flag=True, help="Include change counts and ahead/behind")
@click.pass_context
def list_worktrees(ctx, details):
    """List the project's worktrees."""
    registry = WorktreeRegistry(ctx.obj["config"])
    try:
        worktrees = registry.list_worktrees(ctx.obj["project"], include_details=details)
    except NoRepositoryError:
        console.print(f"[yellow]{ctx.obj['project']} is not a git repository[/]")
        return

    table = Table()
    table.add_column("Branch")
    table.add_column("Path")
    table.add_column("Main")
    if details:
        table.add_column("Changes")
        table.add_column("Ahead/Behind")

    for wt in worktrees:
        row = [wt.branch, wt.path, "✓" if wt.is_main else ""]
        if details:
            ab = wt.ahead_behind
            row.append(str(wt.changed_files_count or 0))
            row.append(f"+{ab.ahead}/-{ab.behind}" if ab else "")
        table.add_row(*row)

    console.print(table)


@cli.command()
@click.argument("branch")
@click.option("--base", "-b", help="Base branch for a new branch (default: HEAD)")
@click.pass_context
def create(ctx, branch, base):
    """Create an isolated worktree for BRANCH."""
    registry = WorktreeRegistry(ctx.obj["config"])
    try:
        created = registry.create_worktree(ctx.obj["project"], branch, base_branch=base)
    except (ValueError, WorktreeError) as e:
        console.print(f"[red]Error: {e}[/]")
        ctx.exit(1)

    state = "new branch" if created.is_new else "existing branch"
    console.print(f"[green]✓ Created {created.path}[/] ({state} {created.branch})")


@cli.command()
@click.argument("path")
@click.option("--force", is_flag=True, help="Remove even with uncommitted changes")
@click.pass_context
def delete(ctx, path, force):
    """Remove the worktree at PATH."""
    registry = WorktreeRegistry(ctx.obj["config"])
    try:
        registry.delete_worktree(ctx.obj["project"], Path(path).expanduser().resolve(), force=force)
    except WorktreeError as e:
        console.print(f"[red]Error: {e}[/]")
        ctx.exit(1)
    console.print(f"[green]✓ Removed {path}[/]")


@cli.command()
@click.argument("worktree", default=".")
@click.option("--message", "-m", help="Commit message")
@click.option("--title", help="Pull request title")
@click.option("--body", help="Pull request body")
@click.option("--base", help="Base branch for the pull request")
@click.option("--draft", is_flag=True, help="Open the pull request as a draft")
@click.pass_context
def publish(ctx, worktree, message, title, body, base, draft):
    """Commit, push and open a pull request for WORKTREE."""
    pipeline = PublicationPipeline(ctx.obj["config"])
    options = PublishOptions(
        commit_message=message,
        pr_title=title,
        pr_body=body,
        base_branch=base,
        draft=draft,
    )
    try:
        result = pipeline.publish(Path(worktree).expanduser().resolve(), options)
    except PublishError as e:
        console.print(f"[red]Error: {e}[/]")
        ctx.exit(1)

    if result.committed:
        console.print(f"[green]✓ Committed {result.commit_hash}[/] on {result.branch}")
    else:
        console.print(f"[dim]Nothing to commit on {result.branch}[/]")
    console.print(f"[green]✓ Pushed {result.branch}[/]")

    if result.pr_created:
        console.print(f"[green]✓ Pull request: {result.pr_url}[/]")
    elif result.pr_error:
        console.print(f"[yellow]Pull request not created: {result.pr_error}[/]")
    else:
        console.print("[yellow]gh not installed, skipped pull request[/]")


@cli.command()
@click.option("--search", "-s", default="", help="Filter by description or category")
@click.option("--worktree", "-w", help="Show the board of this worktree path")
@click.option("--archived", is_flag=True, help="Also list completed features")
@click.pass_context
def board(ctx, search, worktree, archived):
    """Show features by column."""
    store = FeatureStore(ctx.obj["project"], ctx.obj["config"])
    features = store.load_all()
    scope = str(Path(worktree).expanduser().resolve()) if worktree else None
    columns = project_board(features, frozenset(), search_query=search, scope=scope)

    table = Table(title=f"Board: {scope or 'main'}")
    table.add_column("Column")
    table.add_column("ID")
    table.add_column("Priority")
    table.add_column("Description")

    for name in BOARD_COLUMNS:
        for feature in columns[name]:
            table.add_row(
                name,
                feature.id,
                str(feature.priority) if feature.priority is not None else "-",
                feature.description[:60],
            )

    console.print(table)

    if archived:
        done = archived_features(features)
        console.print(f"\n[bold]Archived ({len(done)}):[/]")
        for feature in done:
            console.print(f"  {feature.id}  {feature.title or feature.description[:60]}")


@cli.command("gh-status")
@click.pass_context
def gh_status(ctx):
    """Check whether the GitHub CLI is available."""
    status = PublicationPipeline(ctx.obj["config"]).gh_status()
    if status.installed:
        console.print(f"[green]✓ gh installed[/] ({status.version or 'unknown version'})")
    else:
        console.print("[yellow]gh not installed; pull requests will be skipped[/]")


@cli.command()
@click.option("--host", help="Bind address (default from config)")
@click.option("--port", type=int, help="Port (default from config)")
@click.pass_context
def serve(ctx, host, port):
    """Run the HTTP API server."""
    from ..web.server import run_server

    console.print("[bold green]Starting worktree board API...[/]")
    run_server(ctx.obj["config_path"], host=host, port=port)


if __name__ == "__main__":
    cli()
