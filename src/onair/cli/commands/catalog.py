from __future__ import annotations

import json

import typer

from ...infra.db import store_errors
from ...infra.exceptions import StoreUnavailableError
from ...infra.uow import session
from ...usecases import catalog_ops as _uc_catalog_ops

app = typer.Typer(name="catalog", help="Catalog registration and listing")

STORE_NAME = "catalog"


def _fail(message: str, code: str, json_output: bool) -> None:
    if json_output:
        typer.echo(json.dumps({"status": "error", "code": code, "message": message}, indent=2))
    else:
        typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


@app.command("add")
def add_track(
    title: str = typer.Option(..., "--title", help="Track title"),
    artist: str = typer.Option("", "--artist", help="Artist identity (used for rotation diversity)"),
    duration_ms: int = typer.Option(..., "--duration-ms", help="Track duration in milliseconds"),
    tip_weight: float = typer.Option(0.0, "--tip-weight", help="Cumulative tip weight"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Register a track in the catalog.

    Examples:
        onair catalog add --title "Night Drive" --artist synthwave-bot --duration-ms 183000
    """
    try:
        with store_errors(STORE_NAME), session() as db:
            try:
                result = _uc_catalog_ops.add_track(
                    db,
                    title=title,
                    artist=artist,
                    duration_ms=duration_ms,
                    tip_weight=tip_weight,
                )
            except ValueError as e:
                _fail(str(e), "VALIDATION_ERROR", json_output)
                return
    except StoreUnavailableError as e:
        _fail(str(e), "STORE_UNAVAILABLE", json_output)
        return

    if json_output:
        typer.echo(json.dumps({"status": "ok", "track": result}, indent=2))
        return
    typer.echo("Track added:")
    typer.echo(f"  ID: {result['id']}")
    typer.echo(f"  Title: {result['title']}")
    typer.echo(f"  Artist: {result['artist'] or '-'}")
    typer.echo(f"  Duration: {result['duration_ms']} ms")


@app.command("list")
def list_tracks(
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """List catalog tracks."""
    try:
        with store_errors(STORE_NAME), session() as db:
            tracks = _uc_catalog_ops.list_tracks(db)
    except StoreUnavailableError as e:
        _fail(str(e), "STORE_UNAVAILABLE", json_output)
        return

    if json_output:
        typer.echo(json.dumps({"status": "ok", "tracks": tracks, "count": len(tracks)}, indent=2))
        return
    if not tracks:
        typer.echo("No tracks")
        return
    for t in tracks:
        typer.echo(f"{t['id']:>5}  {t['title']}  ({t['artist'] or '-'})  {t['duration_ms']} ms  plays={t['play_count']}")
