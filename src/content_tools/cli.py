"""Command-line entry points for the content tools."""

import json
import os
from dataclasses import asdict, is_dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import BaseModel
from rich import print as rprint
from rich.table import Table

from .config import ConfigError, configure_logging, get_settings, require_settings
from .errors import HistoryError, ParseFailure, UpstreamError
from .history import build_history_store
from .models import HISTORY_TYPES, ArticleOutline, HistoryRecord
from .viral import FORMATS, ViralRequest, generate_viral_titles
from .wizard import ContentSession, WizardError
from .workflow import (
    DEFAULT_WORD_COUNT,
    build_services,
    generate_article,
    generate_outline,
    generate_titles,
    regenerate_section,
)

app = typer.Typer(help="Generate blog titles, outlines and articles; inspect history.")


def _to_plain(value: Any) -> Any:
    """Convert models, Paths and dates into JSON-serializable primitives."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if is_dataclass(value) and not isinstance(value, type):
        return _to_plain(asdict(value))
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_plain(item) for item in value]
    return value


def _write_output(out_path: Path, payload: Any) -> None:
    out_path.write_text(
        json.dumps(_to_plain(payload), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def _services():
    try:
        settings = require_settings()
    except ConfigError as exc:
        rprint(f"[red]{exc}[/red]")
        raise typer.Exit(code=2)
    return build_services(settings)


def _fail(exc: Exception) -> None:
    rprint(f"[red]{exc}[/red]")
    if isinstance(exc, ParseFailure) and exc.raw_preview:
        rprint("[yellow]Raw response preview:[/yellow]")
        rprint(exc.raw_preview)
    raise typer.Exit(code=1)


def _emit(payload: Any, out: Optional[Path]) -> None:
    if out:
        _write_output(out, payload)
        rprint(f"[cyan]Wrote output to {out}[/cyan]")
    else:
        rprint(json.dumps(_to_plain(payload), ensure_ascii=False, indent=2))


def _print_titles(titles) -> None:
    table = Table(title="Title suggestions")
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("News", justify="right")
    table.add_column("Search", justify="right")
    table.add_column("Score", justify="right")
    for idx, t in enumerate(titles, start=1):
        table.add_row(str(idx), t.title, str(t.news_score), str(t.search_score), str(t.score))
    rprint(table)


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Override LOG_LEVEL for this run."
    ),
):
    configure_logging((log_level or get_settings().log_level).upper())


@app.command("titles")
def titles_command(
    topic: str = typer.Argument(..., help="Blog topic to research."),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write JSON here."),
):
    """Generate scored title suggestions for a topic."""
    services = _services()
    try:
        result = generate_titles(topic, services)
    except (ValueError, UpstreamError) as exc:
        _fail(exc)
    _print_titles(result.titles)
    for warning in result.warnings:
        rprint(f"[yellow]warning: {warning}[/yellow]")
    if out:
        _emit(result.titles, out)


@app.command("outline")
def outline_command(
    title: str = typer.Argument(..., help="Chosen blog title."),
    topic: str = typer.Option(..., "--topic", "-t", help="Blog topic."),
    word_count: int = typer.Option(DEFAULT_WORD_COUNT, "--words", "-w"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write JSON here."),
):
    """Generate an outline for a title."""
    services = _services()
    try:
        outline = generate_outline(title, topic, services, word_count=word_count)
    except (ValueError, UpstreamError) as exc:
        _fail(exc)
    _emit(outline, out)


@app.command("article")
def article_command(
    outline_path: Path = typer.Argument(..., help="JSON file holding an outline."),
    topic: str = typer.Option(..., "--topic", "-t", help="Blog topic."),
    word_count: int = typer.Option(DEFAULT_WORD_COUNT, "--words", "-w"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write JSON here."),
):
    """Expand an outline file into a full article."""
    data = json.loads(outline_path.read_text(encoding="utf-8"))
    if isinstance(data, dict) and "outline" in data:
        data = data["outline"]
    try:
        outline = ArticleOutline.model_validate(data)
    except ValueError as exc:
        raise typer.BadParameter(f"{outline_path} does not contain a valid outline: {exc}")
    services = _services()
    try:
        article = generate_article(outline, topic, services, word_count=word_count)
    except (ValueError, UpstreamError) as exc:
        _fail(exc)
    _emit(article, out)


@app.command("section")
def section_command(
    section_title: str = typer.Argument(..., help="Outline section to refresh."),
    topic: str = typer.Option(..., "--topic", "-t"),
    prompt: Optional[str] = typer.Option(None, "--prompt", "-p", help="Custom prompt text."),
):
    """Suggest new subsection titles for one outline section."""
    from .workflow import build_section_prompt

    services = _services()
    prompt_text = prompt or build_section_prompt(topic, section_title, [])
    try:
        subsections = regenerate_section(prompt_text, topic, section_title, services)
    except (ValueError, UpstreamError) as exc:
        _fail(exc)
    for sub in subsections:
        rprint(f"- {sub}")


@app.command("viral")
def viral_command(
    headline: str = typer.Argument(..., help="Headline or topic to rewrite."),
    fmt: str = typer.Option("whisper", "--format", "-f", help=f"One of: {', '.join(FORMATS)}."),
    audience: str = typer.Option("", "--audience", help="Required for the specific format."),
    promise: str = typer.Option("", "--promise", help="Required for the specific format."),
):
    """Rewrite a headline using one of the viral title formats."""
    req = ViralRequest(format=fmt.lower(), headline=headline, audience=audience, promise=promise)
    try:
        req.validate()
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    services = _services()
    try:
        titles = generate_viral_titles(req, services)
    except UpstreamError as exc:
        _fail(exc)
    for idx, title in enumerate(titles, start=1):
        rprint(f"{idx}. {title}")


@app.command("history")
def history_command(
    record_type: Optional[str] = typer.Option(
        None, "--type", help=f"Filter by type: {', '.join(HISTORY_TYPES)}."
    ),
    limit: int = typer.Option(20, "--limit", "-n", help="Rows to show."),
):
    """List saved generations, newest first."""
    if record_type and record_type not in HISTORY_TYPES:
        raise typer.BadParameter(f"type must be one of: {', '.join(HISTORY_TYPES)}")
    store = build_history_store(get_settings())
    try:
        records = store.list(record_type)
    except HistoryError as exc:
        _fail(exc)
    table = Table(title=f"History ({len(records)} records)")
    table.add_column("Created")
    table.add_column("Type")
    table.add_column("Input")
    table.add_column("Id")
    for record in records[:limit]:
        created = record.created_at.isoformat() if record.created_at else ""
        table.add_row(created, record.type, record.input[:60], record.id or "")
    rprint(table)


@app.command("check-store")
def check_store_command():
    """Save a probe record and confirm it lists back unchanged."""
    store = build_history_store(get_settings())
    probe = HistoryRecord(
        input=f"store check {datetime.now(timezone.utc).isoformat(timespec='seconds')}",
        output=json.dumps({"ok": True}),
        type="news",
        metadata={"probe": True},
    )
    try:
        saved = store.save(probe)
        listed = store.list("news")
    except HistoryError as exc:
        _fail(exc)
    match = next((r for r in listed if r.id == saved.id), None)
    if match is None or match.insert_payload() != probe.insert_payload():
        rprint("[red]Saved record was not listed back unchanged.[/red]")
        raise typer.Exit(code=1)
    rprint(f"[green]History store OK (record {saved.id}).[/green]")


@app.command("serve")
def serve_command(
    host: str = typer.Option(os.getenv("CONTENT_TOOLS_HOST", "0.0.0.0"), "--host"),
    port: int = typer.Option(int(os.getenv("CONTENT_TOOLS_PORT", "8000")), "--port"),
    reload: bool = typer.Option(False, "--reload"),
):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("content_tools.server:app", host=host, port=port, reload=reload)


@app.command("wizard")
def wizard_command(
    word_count: int = typer.Option(DEFAULT_WORD_COUNT, "--words", "-w"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the article JSON here."),
):
    """Walk through topic -> titles -> outline -> article interactively."""
    session = ContentSession(_services(), word_count=word_count)
    try:
        topic = typer.prompt("Topic")
        _print_titles(session.generate_titles(topic))
        choice = typer.prompt("Pick a title number (or type your own title)")
        session.select_title(int(choice) - 1 if choice.isdigit() else choice)
        outline = session.generate_outline()
        while True:
            for idx, section in enumerate(outline.sections, start=1):
                rprint(f"[bold]{idx}. {section.title}[/bold]")
                for sub in section.sub_sections:
                    rprint(f"   - {sub}")
            redo = typer.prompt("Section number to regenerate (enter to continue)", default="")
            if not redo.strip():
                break
            if not redo.isdigit():
                rprint("[yellow]Enter a section number.[/yellow]")
                continue
            session.regenerate_section(int(redo) - 1)
        article = session.generate_article()
    except (WizardError, ValueError, UpstreamError) as exc:
        _fail(exc)
    rprint(f"[green]Article ready: {article.title} ({len(article.sections)} sections)[/green]")
    _emit(article, out)


def main():
    app()


if __name__ == "__main__":
    main()
