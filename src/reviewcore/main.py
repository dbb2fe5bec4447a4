"""Main CLI entry point for reviewcore.

Usage:
    reviewcore serve --port 8000
    reviewcore init-db
    reviewcore seed-rules
    reviewcore create-user "Ada Lovelace" ada@example.com --role ADMIN --token
    reviewcore rules --category SECURITY
    reviewcore stats <repository-id>
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Optional, TypeVar
from uuid import UUID

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from reviewcore.config import ReviewcoreConfig, load_config
from reviewcore.context import ServiceContext, context_from_config
from reviewcore.database.connection import create_schema
from reviewcore.database.models.rule import RuleCategory, Severity
from reviewcore.database.models.user import UserRole
from reviewcore.errors import ReviewCoreError
from reviewcore.logging import setup_logging
from reviewcore.review.metrics import ReviewMetrics

app = typer.Typer(
    name="reviewcore",
    help="reviewcore: code review orchestration and rule evaluation",
    no_args_is_help=True,
)

console = Console()

T = TypeVar("T")

_config: ReviewcoreConfig | None = None


def get_config() -> ReviewcoreConfig:
    """Configuration loaded by the CLI callback.

    Raises:
        RuntimeError: If the callback has not run.
    """
    if _config is None:
        raise RuntimeError("Configuration not loaded. Run through the reviewcore CLI.")
    return _config


def run_with_context(operation: Callable[[ServiceContext], Awaitable[T]]) -> T:
    """Run ``operation`` against a fresh service context, then close it.

    Domain errors are printed and turned into exit code 1.
    """

    async def _run() -> T:
        context = context_from_config(get_config())
        try:
            return await operation(context)
        finally:
            await context.close()

    try:
        return asyncio.run(_run())
    except ReviewCoreError as exc:
        console.print(f"[red]Error:[/red] {exc.message}")
        errors = getattr(exc, "errors", None) or {}
        for field, messages in errors.items():
            for message in messages:
                console.print(f"  [dim]{field}:[/dim] {message}")
        raise typer.Exit(code=1) from exc


@app.command()
def serve(
    host: Annotated[
        Optional[str],
        typer.Option("--host", "-h", help="Host to bind to (default from config)"),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Port to bind to (default from config)"),
    ] = None,
) -> None:
    """Start the reviewcore API server with its evaluation workers."""
    import uvicorn

    from reviewcore.web.app import create_app

    config = get_config()
    bind_host = host or config.web.host
    bind_port = port or config.web.port

    console.print("[bold cyan]Starting reviewcore API server[/bold cyan]")
    console.print(f"[dim]Host:[/dim] {bind_host}")
    console.print(f"[dim]Port:[/dim] {bind_port}")
    console.print(f"[dim]Evaluation workers:[/dim] {config.evaluation.max_concurrent_jobs}")
    console.print()

    uvicorn.run(create_app(config), host=bind_host, port=bind_port, log_level="info")


@app.command("init-db")
def init_db(
    seed: Annotated[
        bool,
        typer.Option("--seed/--no-seed", help="Also insert the system rules"),
    ] = True,
) -> None:
    """Create missing tables (use Alembic migrations for managed databases)."""

    async def _init(context: ServiceContext) -> int:
        if context.db_engine is None:
            raise ReviewCoreError("No database engine configured")
        await create_schema(context.db_engine)
        if not seed:
            return 0
        return len(await context.rules.seed_system_rules())

    seeded = run_with_context(_init)
    console.print("[green]Database schema ready.[/green]")
    if seed:
        console.print(f"[dim]System rules inserted:[/dim] {seeded}")


@app.command("seed-rules")
def seed_rules() -> None:
    """Insert the built-in system rules that are missing."""

    async def _seed(context: ServiceContext) -> list[str]:
        return [rule.name for rule in await context.rules.seed_system_rules()]

    created = run_with_context(_seed)
    if not created:
        console.print("[yellow]All system rules already present.[/yellow]")
        return
    for name in created:
        console.print(f"[green]+[/green] {name}")


@app.command("create-user")
def create_user(
    name: Annotated[str, typer.Argument(help="Display name")],
    email: Annotated[str, typer.Argument(help="Email address")],
    role: Annotated[
        UserRole,
        typer.Option("--role", "-r", case_sensitive=False, help="Account role"),
    ] = UserRole.USER,
    token: Annotated[
        bool,
        typer.Option("--token", help="Print a signed bearer token for the new user"),
    ] = False,
) -> None:
    """Create a user account."""
    from reviewcore.auth import issue_token

    async def _create(context: ServiceContext) -> tuple[str, str, str]:
        user = await context.users.create(name, email, role=role)
        return str(user.id), user.email, issue_token(user, get_config().auth) if token else ""

    user_id, stored_email, bearer = run_with_context(_create)
    body = (
        f"[green]User created[/green]\n\n"
        f"[bold]ID:[/bold] {user_id}\n"
        f"[bold]Email:[/bold] {stored_email}\n"
        f"[bold]Role:[/bold] {role.name}"
    )
    if bearer:
        body += f"\n[bold]Token:[/bold] {bearer}"
    console.print(Panel(body, title="User", border_style="green"))


@app.command("rules")
def list_rules(
    category: Annotated[
        Optional[RuleCategory],
        typer.Option("--category", case_sensitive=False, help="Only this category"),
    ] = None,
    severity: Annotated[
        Optional[Severity],
        typer.Option("--severity", case_sensitive=False, help="Only this severity"),
    ] = None,
    enabled_only: Annotated[
        bool,
        typer.Option("--enabled", help="Only enabled rules"),
    ] = False,
) -> None:
    """List rules in evaluation order."""
    from reviewcore.database.queries.rule import find_rules

    async def _list(context: ServiceContext) -> list[tuple[str, str, str, bool, bool]]:
        async with context.session_factory() as session:
            rules = await find_rules(
                session,
                category=category,
                severity=severity,
                is_enabled=True if enabled_only else None,
            )
        return [
            (r.name, r.category.name, r.severity.name, r.is_enabled, r.is_custom) for r in rules
        ]

    rows = run_with_context(_list)

    table = Table(title="Rules")
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    table.add_column("Severity")
    table.add_column("Enabled")
    table.add_column("Kind", style="dim")
    for name, rule_category, rule_severity, enabled, custom in rows:
        table.add_row(
            name,
            rule_category,
            rule_severity,
            "[green]yes[/green]" if enabled else "[red]no[/red]",
            "custom" if custom else "system",
        )
    console.print(table)


@app.command()
def stats(
    repository_id: Annotated[UUID, typer.Argument(help="Repository ID")],
) -> None:
    """Show review statistics for a repository."""

    async def _stats(context: ServiceContext) -> ReviewMetrics:
        return await context.metrics.compute(repository_id)

    metrics = run_with_context(_stats)
    console.print(
        Panel(
            f"[bold]Total:[/bold] {metrics.total}\n"
            f"[bold]Completed:[/bold] {metrics.completed}\n"
            f"[bold]Failed:[/bold] {metrics.failed}\n"
            f"[bold]Pending:[/bold] {metrics.pending}\n"
            f"[bold]Average time:[/bold] {metrics.average_time_ms:.0f} ms",
            title=f"Reviews of {repository_id}",
            border_style="cyan",
        )
    )


@app.callback()
def main_callback(
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file (TOML format)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Load configuration and configure logging for every command."""
    global _config

    try:
        config = load_config(config_path)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(code=1)

    if verbose:
        config.logging.level = "DEBUG"
    setup_logging(config.logging)
    _config = config

    if verbose:
        console.print("[dim]Debug logging enabled[/dim]")


if __name__ == "__main__":
    app()
