"""Command-line interface for StudyHub.

This module provides a Typer-based CLI for running and maintaining a StudyHub
server.

Commands:
- init: Create the database
- serve: Run the HTTP API
- status: Show configuration and row counts
- backup: Write a JSON snapshot of the database
- restore: Replace the database contents with a snapshot
- create-user: Create an account from the shell

Example:
    $ studyhub init
    $ studyhub create-user alice alice@example.com --password s3cret!
    $ studyhub serve --port 8080
    $ studyhub backup
    $ studyhub restore --yes
"""

from pathlib import Path
from typing import Optional

import typer
import uvicorn
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.table import Table

from studyhub.auth import UserService
from studyhub.backup import create_backup, latest_backup, list_backups, restore_backup
from studyhub.config import settings
from studyhub.database import DatabaseManager
from studyhub.errors import StudyHubError
from studyhub.logging import setup_logging
from studyhub.models import RegisterRequest, UserRole

# Initialize CLI app
app = typer.Typer(
    name="studyhub",
    help="Personal study management backend",
    add_completion=False,
)
console = Console()


# =============================================================================
# Helper Functions
# =============================================================================


def configure_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, set DEBUG level; otherwise use settings.log_level
    """
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_logs=settings.log_json,
        log_file=settings.log_file,
    )


def open_database() -> DatabaseManager:
    """Create and initialize a database manager for the configured path."""
    db = DatabaseManager()
    db.initialize()
    return db


VerboseOption = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")


# =============================================================================
# CLI Commands
# =============================================================================


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Delete the existing database and create an empty one",
    ),
    verbose: bool = VerboseOption,
) -> None:
    """Initialize the database.

    Examples:
        # Initialize database
        $ studyhub init

        # Start over with an empty database
        $ studyhub init --force
    """
    configure_logging(verbose)

    console.print("🏗️  [bold cyan]StudyHub Initialization[/bold cyan]\n")

    try:
        db_path = Path(settings.database_path)
        if db_path.exists() and not force:
            console.print(
                f"⚠️  Database already exists at {db_path}\n"
                "Use --force to recreate it."
            )
            return

        if force:
            for suffix in ("", "-wal", "-shm"):
                Path(f"{db_path}{suffix}").unlink(missing_ok=True)

        db = open_database()
        db.close()

        console.print(f"✅ Database created at [yellow]{db_path}[/yellow]")
        console.print("\nNext steps:")
        console.print("  1. Set JWT_SECRET in the environment or .env")
        console.print("  2. Run: studyhub create-user USERNAME EMAIL")
        console.print("  3. Run: studyhub serve")

    except Exception as e:
        console.print(f"\n❌ [bold red]Initialization failed: {e}[/bold red]")
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (defaults to settings.host)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port (defaults to settings.port)"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes (development only)"),
) -> None:
    """Run the HTTP API with uvicorn.

    Examples:
        $ studyhub serve
        $ studyhub serve --host 0.0.0.0 --port 8080
    """
    host = host or settings.host
    port = port or settings.port

    console.print(f"🚀 [bold cyan]StudyHub API[/bold cyan] on http://{host}:{port}\n")
    uvicorn.run(
        "studyhub.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command()
def status(verbose: bool = VerboseOption) -> None:
    """Show configuration and database statistics.

    Examples:
        $ studyhub status
    """
    configure_logging(verbose)

    console.print("📊 [bold cyan]StudyHub Status[/bold cyan]\n")

    try:
        db = open_database()

        config_table = Table(title="Configuration", show_header=False)
        config_table.add_column("Key", style="cyan")
        config_table.add_column("Value", style="yellow")

        config_table.add_row("Environment", settings.environment.value)
        config_table.add_row("Database Path", str(settings.database_path))
        config_table.add_row("Backup Directory", str(settings.backup_dir))
        config_table.add_row("Backup Retention", str(settings.backup_retention))
        config_table.add_row("JWT Secret", settings.redact_secret())
        config_table.add_row("Token Lifetime", f"{settings.token_ttl_hours} hours")
        config_table.add_row("Listen", f"{settings.host}:{settings.port}")

        console.print(config_table)
        console.print()

        stats_table = Table(title="Database Statistics")
        stats_table.add_column("Table", style="cyan")
        stats_table.add_column("Rows", justify="right", style="green")

        for table_name, count in db.table_counts().items():
            stats_table.add_row(table_name, f"{count:,}")

        console.print(stats_table)
        console.print()

        backups = list_backups()
        if backups:
            console.print(f"💾 Latest backup: [yellow]{backups[-1].name}[/yellow] ({len(backups)} kept)")
        else:
            console.print("💾 No backups found")

        db.close()

    except Exception as e:
        console.print(f"\n❌ [bold red]Status failed: {e}[/bold red]")
        raise typer.Exit(code=1)


@app.command()
def backup(
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir",
        "-o",
        help="Backup directory (defaults to settings.backup_dir)",
    ),
    verbose: bool = VerboseOption,
) -> None:
    """Write a JSON snapshot of every table, keeping the newest backups.

    Examples:
        $ studyhub backup
        $ studyhub backup --output-dir ./snapshots
    """
    configure_logging(verbose)

    console.print("💾 [bold cyan]StudyHub Backup[/bold cyan]\n")

    try:
        db = open_database()
        path = create_backup(db, output_dir)
        db.close()

        console.print(f"✅ Backup written to [yellow]{path}[/yellow]")

    except Exception as e:
        console.print(f"\n❌ [bold red]Backup failed: {e}[/bold red]")
        raise typer.Exit(code=1)


@app.command()
def restore(
    file: Optional[Path] = typer.Argument(
        None,
        help="Snapshot to restore (defaults to the newest backup)",
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    verbose: bool = VerboseOption,
) -> None:
    """Replace the database contents with a snapshot.

    All current data is deleted first.

    Examples:
        # Restore the newest backup
        $ studyhub restore

        # Restore a specific file without prompting
        $ studyhub restore data/backups/backup-2024-01-15-10-30-00-123456.json --yes
    """
    configure_logging(verbose)

    console.print("♻️  [bold cyan]StudyHub Restore[/bold cyan]\n")

    path = file or latest_backup()
    if path is None:
        console.print(f"❌ [bold red]No backups found in {settings.backup_dir}[/bold red]")
        raise typer.Exit(code=1)

    if not yes and not typer.confirm(f"This deletes all current data and restores {path.name}. Continue?"):
        console.print("Restore cancelled")
        raise typer.Exit(code=0)

    try:
        db = open_database()
        counts = restore_backup(db, path)
        db.close()

        summary = Table(title="Restored Rows")
        summary.add_column("Table", style="cyan")
        summary.add_column("Rows", justify="right", style="green")
        for table_name, count in counts.items():
            summary.add_row(table_name, f"{count:,}")
        console.print(summary)
        console.print(f"\n✅ [bold green]Restored from {path}[/bold green]")

    except Exception as e:
        console.print(f"\n❌ [bold red]Restore failed: {e}[/bold red]")
        raise typer.Exit(code=1)


@app.command("create-user")
def create_user(
    username: str = typer.Argument(..., help="Login name (3-20 characters)"),
    email: str = typer.Argument(..., help="Email address"),
    password: str = typer.Option(
        ...,
        "--password",
        prompt=True,
        hide_input=True,
        confirmation_prompt=True,
        help="Password (at least 6 characters)",
    ),
    admin: bool = typer.Option(False, "--admin", help="Create an administrator"),
    verbose: bool = VerboseOption,
) -> None:
    """Create an account.

    Examples:
        $ studyhub create-user alice alice@example.com
        $ studyhub create-user root root@example.com --password s3cret! --admin
    """
    configure_logging(verbose)

    try:
        account = RegisterRequest(username=username, email=email, password=password)
    except PydanticValidationError as e:
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"])
            console.print(f"❌ [bold red]{field}: {error['msg']}[/bold red]")
        raise typer.Exit(code=1)

    try:
        db = open_database()
        user = UserService(db).register(
            account.username,
            account.email,
            account.password,
            role=UserRole.ADMIN if admin else UserRole.USER,
        )
        db.close()

        console.print(f"✅ Created {user.role} [yellow]{user.username}[/yellow] ({user.id})")

    except StudyHubError as e:
        console.print(f"❌ [bold red]{e.message}[/bold red]")
        raise typer.Exit(code=1)


def main() -> None:
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
