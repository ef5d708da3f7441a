"""CLI commands for escribiendo.

- serve: Run the Web API with uvicorn
- init-db: Create the database schema
- seed-rules: Insert the verb rule catalog
- import-book: Register a local EPUB in the library
- models / rules / progress: Inspect registry and learner state
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from escribiendo.config.app_config import load_app_config
from escribiendo.config.models import list_models
from escribiendo.core.book_storage import (
    DEFAULT_LANGUAGE,
    BookUploadError,
    read_epub_metadata,
    save_epub,
)
from escribiendo.db import books_repository, conjugation_repository
from escribiendo.db.database import init_db

app = typer.Typer(
    name="escribiendo",
    help="Spanish writing and conjugation practice backend.",
    no_args_is_help=True,
)

console = Console()


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", "-h", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the Web API."""
    import uvicorn

    console.print(f"[green]Serving escribiendo API on http://{host}:{port}[/green]")
    uvicorn.run("escribiendo.web.api:app", host=host, port=port, reload=reload)


@app.command(name="init-db")
def init_database(
    db_path: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Create the database schema if it does not exist."""
    path = init_db(Path(db_path) if db_path else None)
    console.print(f"[green]✓ Database ready:[/green] {path}")


@app.command(name="seed-rules")
def seed_rules() -> None:
    """Insert catalog verb rules missing from the database."""
    init_db()
    inserted = conjugation_repository.seed_verb_rules()
    if inserted:
        console.print(f"[green]✓ {inserted} verb rules inserted[/green]")
    else:
        console.print("[yellow]Verb rules already seeded[/yellow]")


@app.command(name="import-book")
def import_book(
    file: str = typer.Argument(..., help="Path to an EPUB file"),
    title: str | None = typer.Option(None, "--title", "-t", help="Book title"),
    author: str | None = typer.Option(None, "--author", "-a", help="Author"),
    language: str | None = typer.Option(
        None, "--language", "-l", help="Language code (default from the EPUB, then es)"
    ),
    user_id: str | None = typer.Option(None, "--user", "-u", help="Owner (default from config)"),
) -> None:
    """Copy a local EPUB into the library."""
    file_path = Path(file).expanduser()
    if not file_path.is_file():
        console.print(f"[red]✗ File not found: {file_path}[/red]")
        raise typer.Exit(code=1)

    init_db()
    try:
        stored = save_epub(file_path.name, file_path.read_bytes())
    except BookUploadError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    metadata = read_epub_metadata(stored.path)
    book = books_repository.insert_book(
        user_id=user_id or load_app_config().default_user_id,
        title=title or (metadata.title if metadata and metadata.title else file_path.stem),
        file_path=str(stored.path),
        file_size=stored.size,
        author=author or (metadata.author if metadata else None),
        language=language or (metadata.language if metadata else None) or DEFAULT_LANGUAGE,
        description=metadata.description if metadata else None,
        isbn=metadata.isbn if metadata else None,
        publisher=metadata.publisher if metadata else None,
        metadata=metadata.to_dict() if metadata else None,
    )

    console.print(f"[green]✓ Imported {book.title}[/green]")
    console.print(f"  [dim]book_id:[/dim] {book.id}")
    console.print(f"  [dim]path:[/dim]    {book.file_path}")


@app.command()
def models() -> None:
    """List the selectable chat models."""
    default = load_app_config().default_model

    table = Table(title="Models")
    table.add_column("ID", style="bold")
    table.add_column("Provider")
    table.add_column("Model")
    table.add_column("Name")

    for m in list_models():
        marker = " [green](default)[/green]" if m.id == default else ""
        table.add_row(m.id + marker, m.provider, m.model, m.display_name)

    console.print(table)


@app.command()
def rules() -> None:
    """List verb rules in curriculum order."""
    init_db()
    all_rules = conjugation_repository.get_verb_rules()

    if not all_rules:
        console.print("[yellow]No verb rules found[/yellow]")
        console.print("  Run: escribiendo seed-rules")
        return

    table = Table(title=f"Verb rules ({len(all_rules)})")
    table.add_column("#", justify="right")
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Tenses")

    for rule in all_rules:
        table.add_row(
            str(rule.order), rule.id, rule.name, rule.category, ", ".join(rule.tenses)
        )

    console.print(table)


@app.command()
def progress(user_id: str = typer.Argument(..., help="Learner id")) -> None:
    """Show a learner's rule progress."""
    init_db()
    entries = conjugation_repository.get_user_progress_with_rules(user_id)

    if not entries:
        console.print("[yellow]No verb rules found[/yellow]")
        raise typer.Exit(code=1)

    table = Table(title=f"Progress for {user_id}")
    table.add_column("Rule", style="bold")
    table.add_column("Unlocked")
    table.add_column("Attempts", justify="right")
    table.add_column("Accuracy", justify="right")

    for entry in entries:
        p = entry["progress"]
        table.add_row(
            entry["rule"].name,
            "[green]yes[/green]" if p.is_unlocked else "[dim]no[/dim]",
            str(p.total_attempts),
            f"{round(p.accuracy * 100)}%",
        )

    console.print(table)


if __name__ == "__main__":
    app()
