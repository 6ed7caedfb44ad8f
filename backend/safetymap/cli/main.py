from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import typer

from safetymap.config import load_settings
from safetymap.domain.filtering import criteria_from_params
from safetymap.domain.models import FilterCriteria, Viewport
from safetymap.domain.records import load_records, parse_timestamp
from safetymap.domain.stats import compute_stats
from safetymap.services.map_store import MapDataStore
from safetymap.services.view_controller import run_pass

app = typer.Typer(help="Inspect the civic safety map from the command line")

# Greater Mumbai
DEFAULT_BOUNDS = (72.75, 18.89, 73.05, 19.28)


def _demo_payload() -> dict:
    now = datetime.now(timezone.utc)
    return {
        "incidents": [
            {
                "id": "demo-1",
                "title": "Chain snatching near station",
                "description": "Two men on a bike snatched a chain",
                "type": "crime",
                "reporter": "citizen",
                "timestamp": (now - timedelta(hours=2)).isoformat(),
                "location": {"lat": 19.0760, "lng": 72.8777},
                "aiAnalysis": {"severity": "high", "confidence": 0.9, "tags": ["crime"], "threatLevel": 8},
            },
            {
                "id": "demo-2",
                "title": "Signal not working",
                "description": "Traffic jam at the junction",
                "type": "traffic",
                "reporter": "citizen",
                "timestamp": (now - timedelta(hours=3)).isoformat(),
                "location": {"lat": 19.0761, "lng": 72.8778},
                "aiAnalysis": {"severity": "low", "confidence": 0.8, "tags": ["traffic"], "threatLevel": 2},
            },
        ],
        "news": [],
    }


def _load_store(data: Optional[Path]) -> MapDataStore:
    path = data or load_settings().data_path
    if path.exists():
        return MapDataStore.from_json(path)
    incidents, news = load_records(_demo_payload())
    return MapDataStore(incidents, news)


def _criteria(types, severities, sources, kinds, time_range) -> FilterCriteria:
    try:
        return criteria_from_params(
            types=types, severities=severities, sources=sources, kinds=kinds, time_range=time_range
        )
    except ValueError as exc:
        typer.echo(f"Invalid filter: {exc}", err=True)
        raise typer.Exit(code=1)


def _now(now: Optional[str]) -> Optional[datetime]:
    if now is None:
        return None
    parsed = parse_timestamp(now)
    if parsed is None:
        typer.echo(f"Invalid --now value: {now}", err=True)
        raise typer.Exit(code=1)
    return parsed


@app.command("clusters")
def cli_clusters(
    zoom: float = typer.Option(11, help="Zoom level"),
    west: float = typer.Option(DEFAULT_BOUNDS[0]),
    south: float = typer.Option(DEFAULT_BOUNDS[1]),
    east: float = typer.Option(DEFAULT_BOUNDS[2]),
    north: float = typer.Option(DEFAULT_BOUNDS[3]),
    types: Optional[str] = typer.Option(None, help="Comma separated incident types"),
    severities: Optional[str] = typer.Option(None, help="Comma separated severities"),
    sources: Optional[str] = typer.Option(None, help="Comma separated report sources"),
    kinds: Optional[str] = typer.Option(None, help="Comma separated layers"),
    time_range: str = typer.Option("all", help="1h, 6h, 24h, 7d, 30d or all"),
    now: Optional[str] = typer.Option(None, help="Reference time (ISO 8601)"),
    data: Optional[Path] = typer.Option(None, help="Records JSON file"),
):
    criteria = _criteria(types, severities, sources, kinds, time_range)
    settings = load_settings()
    _, index = run_pass(_load_store(data).snapshot(), criteria, settings, _now(now))
    clusters = index.clusters_for(Viewport(west, south, east, north, zoom))
    if not clusters:
        typer.echo("No points in this viewport")
        raise typer.Exit(code=0)
    typer.echo("id\tlat\tlng\tcount\texpansion_zoom")
    for cluster in clusters:
        expansion = "-" if cluster.expansion_zoom is None else str(cluster.expansion_zoom)
        typer.echo(f"{cluster.id}\t{cluster.lat:.5f}\t{cluster.lng:.5f}\t{cluster.count}\t{expansion}")


@app.command("stats")
def cli_stats(
    time_range: str = typer.Option("all", help="1h, 6h, 24h, 7d, 30d or all"),
    kinds: Optional[str] = typer.Option(None, help="Comma separated layers"),
    now: Optional[str] = typer.Option(None, help="Reference time (ISO 8601)"),
    data: Optional[Path] = typer.Option(None, help="Records JSON file"),
):
    criteria = _criteria(None, None, None, kinds, time_range)
    reference = _now(now)
    view, _ = run_pass(_load_store(data).snapshot(), criteria, load_settings(), reference)
    stats = compute_stats(view.incidents, view.news, criteria.kinds, now=reference)
    for key, value in stats.as_dict().items():
        typer.echo(f"{key}\t{value}")


@app.command("filter")
def cli_filter(
    types: Optional[str] = typer.Option(None, help="Comma separated incident types"),
    severities: Optional[str] = typer.Option(None, help="Comma separated severities"),
    sources: Optional[str] = typer.Option(None, help="Comma separated report sources"),
    kinds: Optional[str] = typer.Option(None, help="Comma separated layers"),
    time_range: str = typer.Option("all", help="1h, 6h, 24h, 7d, 30d or all"),
    now: Optional[str] = typer.Option(None, help="Reference time (ISO 8601)"),
    data: Optional[Path] = typer.Option(None, help="Records JSON file"),
):
    criteria = _criteria(types, severities, sources, kinds, time_range)
    view, _ = run_pass(_load_store(data).snapshot(), criteria, load_settings(), _now(now))
    records = view.incidents + view.news
    if not records:
        typer.echo("No records match these filters")
        raise typer.Exit(code=0)
    mapped = {point.id for point in view.points}
    typer.echo("kind\tid\tseverity\tmapped\ttitle")
    for record in records:
        flag = "yes" if record.id in mapped else "no"
        typer.echo(f"{record.kind.value}\t{record.id}\t{record.severity.value}\t{flag}\t{record.title}")


if __name__ == "__main__":
    app()
