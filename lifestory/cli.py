import json
import logging

import click

from lifestory.config import get_settings
from lifestory.core.document_store import DocumentStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """lifestory - series, episodes and media for your life documentary"""
    ctx.ensure_object(dict)

    # Don't load settings during resilient parsing (help, completion)
    if ctx.resilient_parsing:
        return

    # Allow tests to inject settings via ctx.obj
    if "settings" not in ctx.obj:
        ctx.obj["settings"] = get_settings()


def _document_store(ctx: click.Context) -> DocumentStore:
    return DocumentStore(ctx.obj["settings"].data_file)


@cli.command()
@click.option("--host", default=None, help="Bind address (default: HOST setting).")
@click.option("--port", type=int, default=None, help="Port (default: PORT setting).")
@click.option("--debug", is_flag=True, default=False, help="Enable Flask debug mode.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, debug: bool) -> None:
    """Run the web API server."""
    from lifestory.web.app import create_app

    settings = ctx.obj["settings"]
    app = create_app(settings=settings)
    host = host or settings.host
    port = port or settings.port
    click.echo(f"lifestory API running at http://{host}:{port}/api")
    click.echo(f"Storage backend: {settings.storage_backend}")
    app.run(host=host, port=port, debug=debug)


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create the default show data file if it does not exist."""
    store = _document_store(ctx)
    if store.initialize():
        click.echo(f"[OK] Created {store.path}")
    else:
        click.echo(f"Show data already exists: {store.path}")


@cli.command()
@click.option("--dry-run", is_flag=True, default=False, help="Show what would be migrated.")
@click.pass_context
def migrate(ctx: click.Context, dry_run: bool) -> None:
    """Upgrade the show data file to the current format."""
    from lifestory.migrations import get_pending_migrations

    store = _document_store(ctx)
    raw = store.read_raw()
    if raw is None:
        click.echo(f"No readable show data at {store.path}")
        return

    pending = get_pending_migrations(raw)
    if not pending:
        click.echo("No pending migrations")
        return

    for migration in pending:
        prefix = "[DRY RUN] Would apply" if dry_run else "Applying"
        click.echo(f"{prefix}: {migration.version} - {migration.description}")
    if dry_run:
        return

    doc = store.load()
    click.echo(f"[OK] Migrated {store.path} ({len(doc.series)} series)")


@cli.command(name="migrate-status")
@click.pass_context
def migrate_status(ctx: click.Context) -> None:
    """List migrations that still apply to the show data file."""
    from lifestory.migrations import MIGRATIONS, get_pending_migrations

    store = _document_store(ctx)
    raw = store.read_raw()
    if raw is None:
        click.echo(f"No readable show data at {store.path}")
        return
    pending_versions = {m.version for m in get_pending_migrations(raw)}

    click.echo(f"Show data: {store.path}")
    for migration in MIGRATIONS:
        state = "pending" if migration.version in pending_versions else "applied"
        click.echo(f"  {migration.version:<24} {state:<8} {migration.description}")


@cli.command(name="list")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print raw JSON.")
@click.pass_context
def list_series(ctx: click.Context, as_json: bool) -> None:
    """List all series in the show data file."""
    doc = _document_store(ctx).load()
    if as_json:
        click.echo(json.dumps([s.to_json() for s in doc.series], indent=2, ensure_ascii=False))
        return
    if not doc.series:
        click.echo("No series.")
        return
    for series in doc.series:
        media_count = sum(len(ep.media) for ep in series.episodes)
        click.echo(
            f"{series.id}  {series.title}  "
            f"({series.episode_count} episodes, {media_count} media)"
        )


if __name__ == "__main__":
    cli()
