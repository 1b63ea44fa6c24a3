"\"\"\"Typer CLI entrypoint for the screening pipeline.\"\"\""

from __future__ import annotations

import json
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Iterator, Optional

import typer
import yaml

from .config import ConfigManager
from .container import StageGateContainer, create_container
from .db import init_db
from .errors import StageGateError
from .logging import configure_logging
from .pipeline import AuditLogger, ScreeningPipeline
from .schemas import load_config
from .webhooks import parse_end_of_call_report

app = typer.Typer(help="Candidate stage screening CLI.", no_args_is_help=True)


@dataclass
class CliState:
    container: StageGateContainer
    audit_log: Path | None = None

    def pipeline(self) -> ScreeningPipeline:
        audit_logger = AuditLogger(self.audit_log) if self.audit_log else None
        return self.container.pipeline(audit_logger=audit_logger)


@app.callback()
def main_options(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    log_level: str = typer.Option("INFO", help="Log level for structured logging."),
    audit_log: Optional[Path] = typer.Option(None, dir_okay=False, help="Audit log output (JSONL)."),
) -> None:
    """Screen applications through resume, questions and voice interview stages."""
    settings: dict[str, Any] = {}
    if config:
        try:
            settings = load_config(ConfigManager.read(config)).to_settings()
        except (ValueError, TypeError, yaml.YAMLError) as exc:
            raise typer.BadParameter(str(exc), param_name="config") from exc

    configure_logging(log_level)
    ctx.obj = CliState(container=create_container(settings=settings), audit_log=audit_log)


@app.command("init-db")
def init_db_command(ctx: typer.Context) -> None:
    """Create the database tables."""
    state: CliState = ctx.obj
    init_db(state.container.engine())
    typer.echo(f"Initialized database at {state.container.config.database.url()}.")


@app.command("run-stage1")
def run_stage1(ctx: typer.Context, application_id: str = typer.Argument(..., help="Application id.")) -> None:
    """Run resume screening for an application."""
    with _handled():
        outcome = ctx.obj.pipeline().run_stage1(application_id)
    _echo_json(outcome.as_record())


@app.command()
def rerun(
    ctx: typer.Context,
    application_id: str = typer.Argument(..., help="Application id."),
    stage: int = typer.Option(..., min=1, max=3, help="Stage number to re-run (1-3)."),
) -> None:
    """Re-evaluate a stage as a new attempt."""
    with _handled():
        outcome = ctx.obj.pipeline().rerun_stage(application_id, stage)
    _echo_json(outcome.as_record())


@app.command("backfill-stage1")
def backfill_stage1(ctx: typer.Context) -> None:
    """Run resume screening for every application that never had it."""
    _echo_json(ctx.obj.pipeline().backfill_stage1())


@app.command("prepare-interview")
def prepare_interview(
    ctx: typer.Context,
    application_id: str = typer.Argument(..., help="Application id."),
    assistant_id: str = typer.Option(..., help="Voice interview assistant id."),
) -> None:
    """Register the interview assistant for an application's voice interview."""
    with _handled():
        slot = ctx.obj.pipeline().prepare_interview(application_id, assistant_id)
    _echo_json(asdict(slot))


@app.command("end-of-call")
def end_of_call(
    ctx: typer.Context,
    report_json: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False, help="Webhook body (JSON)."),
) -> None:
    """Process a voice provider end-of-call report."""
    try:
        body = json.loads(report_json.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Invalid JSON: {exc}", param_name="report_json") from exc

    event = parse_end_of_call_report(body if isinstance(body, dict) else None)
    if event is None:
        typer.echo("Ignored: not a complete end-of-call report.")
        return
    outcome = ctx.obj.pipeline().process_end_of_call(event)
    if outcome is None:
        typer.echo(f"Dropped: no interview to evaluate for assistant {event.assistant_id}.")
        return
    _echo_json(outcome.as_record())


@app.command()
def override(
    ctx: typer.Context,
    application_id: str = typer.Argument(..., help="Application id."),
    action: str = typer.Option(..., help="pass or fail."),
    stage: int = typer.Option(..., min=1, max=3, help="Stage number (1-3)."),
) -> None:
    """Force a pass or fail verdict for a stage."""
    if action not in ("pass", "fail"):
        raise typer.BadParameter("Invalid action; use pass or fail", param_name="action")
    with _handled():
        outcome = ctx.obj.pipeline().override(application_id, stage, action)
    _echo_json(outcome.as_record())


@app.command()
def hire(ctx: typer.Context, application_id: str = typer.Argument(..., help="Application id.")) -> None:
    """Mark an application that passed every stage as hired."""
    with _handled():
        ctx.obj.pipeline().mark_hired(application_id)
    typer.echo(f"Application {application_id} marked as hired.")


@app.command()
def withdraw(ctx: typer.Context, application_id: str = typer.Argument(..., help="Application id.")) -> None:
    """Withdraw an open application."""
    with _handled():
        ctx.obj.pipeline().withdraw(application_id)
    typer.echo(f"Application {application_id} withdrawn.")


@app.command()
def outcome(ctx: typer.Context, application_id: str = typer.Argument(..., help="Application id.")) -> None:
    """Show the candidate-facing outcome of an application."""
    with _handled():
        result = ctx.obj.pipeline().describe_outcome(application_id)
    _echo_json(asdict(result))


@contextmanager
def _handled() -> Iterator[None]:
    """Turn pipeline errors into a non-zero exit with the error on stderr."""
    try:
        yield
    except StageGateError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
