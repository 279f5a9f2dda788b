from __future__ import annotations

import json
import mimetypes
from pathlib import Path

import typer
import uvicorn

from autoapply.api.app import create_app
from autoapply.config import get_settings
from autoapply.core.cv_parser import parse_cv
from autoapply.core.errors import AutoApplyError
from autoapply.core.job_search import JobSearchService
from autoapply.core.orchestrator import AutoApplyOrchestrator
from autoapply.core.users import UserService
from autoapply.db.init import init_database
from autoapply.db.repositories import Repository
from autoapply.db.session import SessionLocal
from autoapply.logging_config import configure_logging

app = typer.Typer(help="AutoApply CLI")
user_app = typer.Typer(help="Manage users")
cv_app = typer.Typer(help="CV parsing")
jobs_app = typer.Typer(help="Job search and applications")

app.add_typer(user_app, name="user")
app.add_typer(cv_app, name="cv")
app.add_typer(jobs_app, name="jobs")

_INITIALIZED = False


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


def _fail(exc: Exception) -> None:
    typer.echo(json.dumps({"ok": False, "error": str(exc)}, indent=2), err=True)
    raise typer.Exit(code=1)


@app.command("init")
def init_cmd() -> None:
    """Create the database schema and data directories."""
    configure_logging()
    result = init_database()
    typer.echo(json.dumps({"ok": True, **result}, indent=2))


@user_app.command("create")
def user_create(
    email: str = typer.Option(..., "--email"),
    username: str = typer.Option(..., "--username"),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True),
    name: str = typer.Option("", "--name"),
    plan: str = typer.Option("free", "--plan"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            user = UserService(db).register(
                email=email,
                username=username,
                password=password,
                name=name or None,
                plan=plan,
            )
        except AutoApplyError as exc:
            _fail(exc)
        typer.echo(json.dumps({"id": user.id, "email": user.email, "plan": user.plan}, indent=2))


@user_app.command("stats")
def user_stats(user_id: str = typer.Option(..., "--user-id")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        stats = Repository(db).application_stats(user_id)
        typer.echo(stats.model_dump_json(indent=2))


@cv_app.command("parse")
def cv_parse(
    file: Path = typer.Option(..., "--file", exists=True, readable=True),
    mime_type: str = typer.Option("", "--mime-type", help="Defaults to a guess from the file suffix"),
) -> None:
    """Run the CV parser on a local file without storing anything."""
    configure_logging()
    settings = get_settings()
    resolved = mime_type or mimetypes.guess_type(file.name)[0] or "application/octet-stream"
    parsed = parse_cv(file, resolved, min_text_chars=settings.min_extracted_text_chars)
    typer.echo(parsed.model_dump_json(indent=2, exclude_none=True))


@jobs_app.command("search")
def jobs_search(
    keywords: str = typer.Option(..., "--keywords"),
    location: str = typer.Option("", "--location"),
    limit: int = typer.Option(20, "--limit"),
) -> None:
    configure_logging()
    postings = JobSearchService().search(keywords, location, limit)
    typer.echo(json.dumps([posting.model_dump() for posting in postings], indent=2))


@jobs_app.command("auto-apply")
def jobs_auto_apply(
    user_id: str = typer.Option(..., "--user-id"),
    max_applications: int = typer.Option(5, "--max-applications", min=1),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            result = AutoApplyOrchestrator(db).auto_apply(user_id=user_id, max_applications=max_applications)
        except AutoApplyError as exc:
            _fail(exc)
        typer.echo(result.model_dump_json(indent=2))


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
) -> None:
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    app_instance = create_app()
    uvicorn.run(app_instance, host=host or settings.app_host, port=port or settings.app_port)
