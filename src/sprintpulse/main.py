from __future__ import annotations

import json
import logging
from pathlib import Path

import typer
import uvicorn
from pydantic import ValidationError

from sprintpulse.api.schemas import AnalysisRequest
from sprintpulse.config import settings
from sprintpulse.exceptions import SprintPulseError
from sprintpulse.services.analysis import SprintAnalysisService
from sprintpulse.sync.provider import JiraProvider

cli = typer.Typer(help="SprintPulse CLI (sprint health and velocity forecasts)")


def _configure_logging() -> None:
    logging.basicConfig(level=getattr(logging, settings.logging.level.upper(), logging.INFO))


def _emit(payload: dict) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@cli.command()
def version() -> None:
    """Print runtime version."""
    typer.echo(f"SprintPulse {settings.app.version}")


@cli.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind"),
    port: int = typer.Option(8000, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload for local development"),
) -> None:
    """Run the SprintPulse API server."""
    uvicorn.run(
        "sprintpulse.api.main:app",
        host=host,
        port=port,
        reload=reload,
        app_dir="src",
    )


@cli.command()
def analyze(
    payload: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with iteration, items and history"),
) -> None:
    """Offline health + velocity analysis of an exported iteration."""
    _configure_logging()
    try:
        request = AnalysisRequest.model_validate_json(payload.read_text(encoding="utf-8"))
    except ValidationError as exc:
        typer.echo(f"Invalid payload {payload}: {exc}", err=True)
        raise typer.Exit(code=2)

    report = SprintAnalysisService().analyze(
        request.items,
        request.iteration,
        history=request.history_dtos(),
        prior_score=request.prior_score,
        now=request.now,
    )
    _emit(report.to_dict())


@cli.command()
def board(board_id: str = typer.Argument(..., help="Tracker board id")) -> None:
    """Live analysis of the board's active sprint."""
    _configure_logging()
    try:
        provider = JiraProvider.from_settings(settings.tracker)
        report = SprintAnalysisService(provider=provider).analyze_board(board_id)
    except SprintPulseError as exc:
        typer.echo(f"Board analysis failed: {exc}", err=True)
        raise typer.Exit(code=1)
    _emit(report.to_dict())


if __name__ == "__main__":
    cli()
