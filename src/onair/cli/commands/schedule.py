from __future__ import annotations

import json
import time

import typer

from ...infra.exceptions import StoreUnavailableError
from ...infra.settings import settings
from ...runtime.advancement import AdvancementDaemon
from ...runtime.broadcast_runtime import build_runtime
from ...usecases import now_playing as _uc_now_playing
from ...usecases import queue_view as _uc_queue_view

app = typer.Typer(name="schedule", help="Broadcast schedule operations (advance, inspect)")


def _fail(message: str, code: str, json_output: bool) -> None:
    if json_output:
        typer.echo(json.dumps({"status": "error", "code": code, "message": message}, indent=2))
    else:
        typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


@app.command("tick")
def tick(
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Run one advancement pass (seed, refill or advance as needed)."""
    runtime = build_runtime(settings)
    try:
        report = runtime.scheduler.tick()
    except StoreUnavailableError as e:
        _fail(str(e), "STORE_UNAVAILABLE", json_output)
        return

    snapshot = report.snapshot
    if json_output:
        payload = {
            "status": "ok",
            "outcome": report.outcome.value,
            "steps": report.steps,
            "activated": report.activated,
            "anchor": None
            if snapshot is None
            else {
                "active_track_id": snapshot.active_track_id,
                "started_at_ms": snapshot.started_at_ms,
                "ends_at_ms": snapshot.ends_at_ms,
                "committed_queue": list(snapshot.committed_queue),
                "updated_at_ms": snapshot.updated_at_ms,
            },
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    typer.echo(f"Outcome: {report.outcome.value}")
    if snapshot is not None:
        typer.echo(f"  Active: {snapshot.active_track_id}")
        typer.echo(f"  Started: {snapshot.started_at_ms}")
        typer.echo(f"  Ends: {snapshot.ends_at_ms}")
        typer.echo(f"  Queue: {', '.join(str(t) for t in snapshot.committed_queue) or '-'}")


@app.command("run")
def run(
    interval: float = typer.Option(None, "--interval", help="Seconds between passes (default ADVANCE_INTERVAL_SECONDS)"),
):
    """Run the advancement loop in the foreground until interrupted."""
    runtime = build_runtime(settings)
    daemon = AdvancementDaemon(runtime.scheduler, interval_seconds=interval or runtime.advance_interval_seconds)
    daemon.start()
    typer.echo(f"Advancing channel '{runtime.channel_id}' (Ctrl+C to stop)")
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        pass
    finally:
        daemon.stop()


@app.command("now-playing")
def show_now_playing(
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
    advance: bool = typer.Option(False, "--advance/--no-advance", help="Advance if the active track has ended"),
):
    """Show what the channel is playing right now."""
    runtime = build_runtime(settings)
    try:
        body = _uc_now_playing.get_now_playing(
            runtime.anchor_store,
            runtime.catalog,
            now_ms=runtime.clock.now_ms(),
            crossfade_lead_ms=runtime.crossfade_lead_ms,
            scheduler=runtime.scheduler if advance else None,
        )
    except StoreUnavailableError as e:
        _fail(str(e), "STORE_UNAVAILABLE", json_output)
        return

    if json_output:
        typer.echo(json.dumps(body, indent=2))
        return

    if body["state"] == "waiting":
        typer.echo(f"Waiting: {body['message']}")
        return
    track = body["track"]
    typer.echo(f"Playing: {track['title']} ({track['artist']}) [id {track['id']}]")
    typer.echo(f"  Started: {body['startedAt']}")
    typer.echo(f"  Ends: {body['endsAt']}")
    if "nextTrack" in body:
        typer.echo(f"  Next: {body['nextTrack']['title']} [id {body['nextTrack']['id']}]")


@app.command("queue")
def show_queue(
    limit: int = typer.Option(None, "--limit", min=0, help="Number of upcoming tracks (default QUEUE_PREVIEW_DEPTH)"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Show the committed upcoming tracks."""
    runtime = build_runtime(settings)
    try:
        body = _uc_queue_view.get_queue(
            runtime.anchor_store,
            runtime.catalog,
            now_ms=runtime.clock.now_ms(),
            limit=runtime.queue_preview_depth if limit is None else limit,
            crossfade_lead_ms=runtime.crossfade_lead_ms,
        )
    except StoreUnavailableError as e:
        _fail(str(e), "STORE_UNAVAILABLE", json_output)
        return

    if json_output:
        typer.echo(json.dumps(body, indent=2))
        return

    current = body.get("currentlyPlaying")
    typer.echo(f"Now: {current['title']} [id {current['id']}]" if current else "Now: -")
    if not body["tracks"]:
        typer.echo("Queue is empty")
        return
    for position, track in enumerate(body["tracks"], start=1):
        typer.echo(f"  {position}. {track['title']} ({track['artist']}) [id {track['id']}]")
