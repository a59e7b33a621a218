#!/usr/bin/env python3
"""CLI for HeartCoach.

Commands:
    init-db          Create or reset the database
    status           Show database status
    signup           Register a student
    chat             Journal with the coach as a student
    history          Show a student's past conversations
    students         List students (teacher)
    reset-password   Reset a student's password to 0000 (teacher)
    teacher-password Change the teacher password
    dashboard        Show the class mood dashboard (teacher)
    api-key          Save, check or delete the Anthropic API key
"""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from heartcoach import __version__
from heartcoach.auth import AuthService, delete_api_key, get_api_key, save_api_key
from heartcoach.coach import CoachGateway
from heartcoach.config import Settings
from heartcoach.conversation import ConversationSession, get_history
from heartcoach.dashboard import MoodDashboard
from heartcoach.database import Repository
from heartcoach.database.connection import init_database, verify_database
from heartcoach.database.models import MoodQuadrant
from heartcoach.errors import HeartCoachError

console = Console()

QUADRANT_STYLES = {
    MoodQuadrant.YELLOW: "yellow",
    MoodQuadrant.RED: "red",
    MoodQuadrant.BLUE: "blue",
    MoodQuadrant.GREEN: "green",
}


class AppContext:
    """Store, settings and services shared by the commands."""

    def __init__(self, db_path: Optional[Path]):
        self.settings = Settings.from_env()
        if db_path:
            self.settings.database_path = db_path
        self._repo: Optional[Repository] = None

    @property
    def repo(self) -> Repository:
        if self._repo is None:
            self._repo = Repository(self.settings.database_path)
        return self._repo

    def auth(self) -> AuthService:
        return AuthService(self.repo)

    def coach(self) -> CoachGateway:
        return CoachGateway(self.repo, self.settings)


pass_app = click.make_pass_decorator(AppContext)


def _fail(error: HeartCoachError) -> None:
    console.print(f"[red]{error.user_message}[/red]")
    raise SystemExit(1)


def _unlock_teacher(auth: AuthService) -> None:
    password = click.prompt("Teacher password", hide_input=True)
    if not auth.verify_teacher_access(password):
        console.print("[red]Incorrect teacher password.[/red]")
        raise SystemExit(1)


@click.group()
@click.version_option(version=__version__, prog_name="heartcoach")
@click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    default=None,
    help="SQLite database path (defaults to DATABASE_PATH)",
)
@click.pass_context
def cli(ctx: click.Context, db_path: Optional[Path]):
    """HeartCoach - mood journaling with an AI coach."""
    ctx.obj = AppContext(db_path)


@cli.command("init-db")
@click.option("--force", is_flag=True, help="Delete and recreate an existing database")
@pass_app
def init_db(app: AppContext, force: bool):
    """Initialize or reset the database."""
    path = app.settings.database_path
    if path.exists() and not force:
        console.print(f"[yellow]Database already exists at {path}. Use --force to reset.[/yellow]")
        return

    init_database(path, force=force)
    info = verify_database(path)
    console.print("[green]✓ Database initialized[/green]")
    console.print(f"  Tables: {', '.join(info.get('tables', []))}")


@cli.command()
@pass_app
def status(app: AppContext):
    """Show database status."""
    info = verify_database(app.settings.database_path)
    if not info["exists"]:
        console.print(f"[red]{info['error']}[/red] Run 'heartcoach init-db' first.")
        return

    table = Table(title=f"HeartCoach database - {info['path']}")
    table.add_column("Table")
    table.add_column("Rows", justify="right")
    for name, count in info["row_counts"].items():
        table.add_row(name, str(count))
    console.print(table)

    key_state = "[green]configured[/green]" if get_api_key(app.repo) else "[red]missing[/red]"
    console.print(f"API key: {key_state}")


@cli.command()
@click.argument("name")
@click.password_option("--password", prompt="Four-digit password")
@pass_app
def signup(app: AppContext, name: str, password: str):
    """Register a student account."""
    try:
        account = app.auth().signup(name, password)
    except HeartCoachError as e:
        _fail(e)
    console.print(f"[green]✓ Welcome, {account.name}![/green]")


@cli.command()
@click.argument("name")
@click.option("--password", prompt=True, hide_input=True)
@pass_app
def chat(app: AppContext, name: str, password: str):
    """Journal with the coach as student NAME."""
    try:
        account = app.auth().login(name, password)
    except HeartCoachError as e:
        _fail(e)

    session = ConversationSession(account, app.coach(), app.repo, app.settings.max_turns)
    console.print(Panel(session.messages[0].text, title="Coach", border_style="magenta"))

    while not session.is_complete:
        text = click.prompt("You", default="", show_default=False)
        try:
            with console.status("The coach is thinking..."):
                reply = session.send(text)
        except HeartCoachError as e:
            console.print(f"[red]{e.user_message}[/red]")
            continue
        console.print(Panel(reply.text, title="Coach", border_style="magenta"))

    summary = session.summary
    console.print(
        Panel(
            f"[bold]Today's mood:[/bold] {summary.mood}\n\n[italic]\"{summary.message}\"[/italic]",
            title="Today's conversation summary",
            border_style="cyan",
        )
    )


@cli.command()
@click.argument("name")
@click.option("--password", prompt=True, hide_input=True)
@click.option("--show", "conversation_id", default=None, help="Print one conversation in full")
@pass_app
def history(app: AppContext, name: str, password: str, conversation_id: Optional[str]):
    """Show student NAME's past conversations, newest first."""
    try:
        account = app.auth().login(name, password)
    except HeartCoachError as e:
        _fail(e)

    conversations = get_history(app.repo, account.name)
    if conversation_id:
        match = next((c for c in conversations if c.id == conversation_id), None)
        if match is None:
            console.print(f"[red]No conversation {conversation_id}[/red]")
            return
        for message in match.messages:
            speaker = "You" if message.sender == "user" else "Coach"
            console.print(f"[bold]{speaker}:[/bold] {message.text}")
        console.print(f"\n[cyan]Mood:[/cyan] {match.summary.mood}  [italic]{match.summary.message}[/italic]")
        return

    if not conversations:
        console.print(Panel("No conversations yet.", title=f"History - {account.name}"))
        return

    table = Table(title=f"History - {account.name}")
    table.add_column("ID", style="dim")
    table.add_column("Date")
    table.add_column("Mood", style="cyan")
    for conversation in conversations:
        table.add_row(
            conversation.id,
            conversation.timestamp.astimezone().strftime("%Y-%m-%d %H:%M"),
            conversation.summary.mood,
        )
    console.print(table)


@cli.command()
@pass_app
def students(app: AppContext):
    """List registered students (teacher)."""
    auth = app.auth()
    _unlock_teacher(auth)

    conversations = app.repo.get_all_conversations()
    table = Table(title="Students")
    table.add_column("Name")
    table.add_column("Conversations", justify="right")
    for account in auth.list_students():
        table.add_row(account.name, str(len(conversations.get(account.name, []))))
    console.print(table)


@cli.command("reset-password")
@click.argument("name")
@pass_app
def reset_password(app: AppContext, name: str):
    """Reset student NAME's password to 0000 (teacher)."""
    auth = app.auth()
    _unlock_teacher(auth)
    if auth.reset_password(name):
        console.print(f"[green]✓ {name}'s password was reset to '0000'.[/green]")
    else:
        console.print(f"[yellow]No student named {name}.[/yellow]")


@cli.command("teacher-password")
@click.option("--old", "old_password", prompt="Current password", hide_input=True)
@click.password_option("--new", "new_password", prompt="New password")
@pass_app
def teacher_password(app: AppContext, old_password: str, new_password: str):
    """Change the teacher password."""
    try:
        app.auth().change_teacher_password(old_password, new_password)
    except HeartCoachError as e:
        _fail(e)
    console.print("[green]✓ Password changed.[/green]")


@cli.command()
@pass_app
def dashboard(app: AppContext):
    """Show the class mood dashboard (teacher)."""
    _unlock_teacher(app.auth())

    with console.status("Classifying moods..."):
        buckets = MoodDashboard(app.repo, app.coach()).compute()

    for quadrant, rows in buckets.items():
        table = Table(
            title=f"{quadrant.value} - {quadrant.label}",
            title_style=f"bold {QUADRANT_STYLES[quadrant]}",
        )
        table.add_column("Student")
        table.add_column("Mood")
        table.add_column("Date")
        for row in rows:
            name = f"{row.name} *" if row.defaulted else row.name
            table.add_row(name, row.mood, row.timestamp.astimezone().strftime("%Y-%m-%d"))
        if not rows:
            table.add_row("[dim]none[/dim]", "", "")
        console.print(table)

    if any(row.defaulted for rows in buckets.values() for row in rows):
        console.print("[dim]* mood could not be classified; shown under BLUE[/dim]")


@cli.group("api-key")
def api_key():
    """Manage the Anthropic API key."""


@api_key.command("set")
@click.option("--key", prompt="Anthropic API key", hide_input=True)
@click.option("--no-check", is_flag=True, help="Save without testing the key")
@pass_app
def api_key_set(app: AppContext, key: str, no_check: bool):
    """Test and save an API key."""
    if not no_check:
        with console.status("Checking key..."):
            valid = app.coach().validate_credential(key)
        if not valid:
            console.print("[red]The key was not accepted. Nothing saved.[/red]")
            raise SystemExit(1)
    save_api_key(app.repo, key)
    console.print("[green]✓ API key saved[/green]")


@api_key.command("check")
@pass_app
def api_key_check(app: AppContext):
    """Check the configured API key."""
    key = get_api_key(app.repo)
    if not key:
        console.print("[red]No API key configured.[/red]")
        raise SystemExit(1)
    if app.coach().validate_credential(key):
        console.print("[green]✓ API key works[/green]")
    else:
        console.print("[red]API key was rejected[/red]")
        raise SystemExit(1)


@api_key.command("delete")
@pass_app
def api_key_delete(app: AppContext):
    """Delete the stored API key."""
    delete_api_key(app.repo)
    console.print("[green]✓ API key deleted[/green]")


if __name__ == "__main__":
    cli()
