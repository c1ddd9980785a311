"""
Crawler CLI - Command line interface for the dungeon crawler engine.

Usage:
    crawler init-db                 Create the documents table
    crawler seed                    Load world YAML into the store
    crawler new-player NAME         Onboard a player
    crawler act PLAYER_ID ACTION    Resolve one turn and print its events
    crawler migrate-players         Upgrade every stored player document
    crawler actions                 List the actions a turn can take
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click

from crawler import __version__, config
from crawler.db import init_db, make_engine, make_session_factory
from crawler.engine.engine import ActionEngine
from crawler.engine.loader import load_world_data
from crawler.engine.migrations import migrate_player_doc
from crawler.engine.player_state import PlayerStateStore
from crawler.engine.systems.intents import ACTION_NAMES
from crawler.store import PLAYERS, InMemoryDocumentStore, SqlDocumentStore


def _run(database_url: str, work):
    """Open an engine for the duration of one command and run ``work(engine, store)``."""

    async def runner():
        engine = make_engine(database_url)
        try:
            store = SqlDocumentStore(make_session_factory(engine))
            return await work(engine, store)
        finally:
            await engine.dispose()

    return asyncio.run(runner())


@click.group()
@click.version_option(version=__version__, prog_name="crawler")
@click.option(
    "--database-url",
    default=config.DATABASE_URL,
    show_default=True,
    help="SQLAlchemy async database URL",
)
@click.option("--log-level", default=config.LOG_LEVEL, help="Logging level")
@click.pass_context
def main(ctx: click.Context, database_url: str, log_level: str):
    """Crawler - a turn-based dungeon crawler engine."""
    logging.basicConfig(level=log_level.upper(), format=config.LOG_FORMAT)
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url


@main.command("init-db")
@click.pass_context
def init_db_command(ctx: click.Context):
    """Create the documents table if it does not exist."""

    async def work(engine, store):
        await init_db(engine)

    _run(ctx.obj["database_url"], work)
    click.echo(click.style("✅ Database initialized", fg="green"))


@main.command()
@click.option(
    "--world-data",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="World data directory (defaults to the bundled starter floor)",
)
@click.option("--overwrite", is_flag=True, help="Replace documents that already exist")
@click.pass_context
def seed(ctx: click.Context, world_data: Path | None, overwrite: bool):
    """Load rooms, entities, items and loot tables from YAML."""

    async def work(engine, store):
        await init_db(engine)
        return await load_world_data(store, world_data, overwrite=overwrite)

    counts = _run(ctx.obj["database_url"], work)
    for collection, count in counts.items():
        click.echo(f"  {collection}: {count}")
    click.echo(click.style("✅ Seeding complete", fg="green"))


@main.command("new-player")
@click.argument("name")
@click.pass_context
def new_player(ctx: click.Context, name: str):
    """Onboard a new player and print their id."""

    async def work(engine, store):
        await init_db(engine)
        return await PlayerStateStore(store).create(name)

    player = _run(ctx.obj["database_url"], work)
    click.echo(f"Created {player.name} in {player.location}")
    click.echo(player.id)


@main.command()
@click.argument("player_id")
@click.argument("action", type=click.Choice(ACTION_NAMES, case_sensitive=False))
@click.option("--target", "-t", default=None, help="Target name or id")
@click.option("--direction", "-d", default=None, help="Direction for move")
@click.option("--context", "-c", "context_text", default=None, help="Free-text flavour for the turn")
@click.pass_context
def act(
    ctx: click.Context,
    player_id: str,
    action: str,
    target: str | None,
    direction: str | None,
    context_text: str | None,
):
    """Resolve one turn for PLAYER_ID and print the events as JSON."""
    intent = {
        "action": action.lower(),
        "target": target,
        "direction": direction,
        "context": context_text,
    }

    async def work(engine, store):
        players = PlayerStateStore(store)
        result = await ActionEngine(store, players=players).process_action(player_id, intent)
        if result.player is not None:
            players.add_event(result.player, {
                "action": intent["action"],
                "target": target or direction,
                "events": [e["type"] for e in result.events],
            })
            await players.save(result.player)
        return result

    result = _run(ctx.obj["database_url"], work)
    click.echo(json.dumps(result.events, indent=2))
    if result.player is None:
        sys.exit(1)


@main.command("migrate-players")
@click.pass_context
def migrate_players(ctx: click.Context):
    """Upgrade every stored player document to the current schema version."""

    async def work(engine, store):
        migrated = 0
        for doc in await store.query(PLAYERS):
            upgraded, changed = migrate_player_doc(doc)
            if changed:
                await store.set(PLAYERS, upgraded["id"], upgraded)
                migrated += 1
        return migrated

    migrated = _run(ctx.obj["database_url"], work)
    click.echo(click.style(f"✅ Migrated {migrated} player(s)", fg="green"))


@main.command()
@click.option("--category", default=None, help="Only list one category (e.g. combat)")
def actions(category: str | None):
    """List every action with its category and description."""
    router = ActionEngine(InMemoryDocumentStore()).router
    if category and category not in router.categories:
        raise click.BadParameter(
            f"Unknown category. Choose from: {', '.join(sorted(router.categories))}",
            param_hint="--category",
        )
    click.echo(router.get_help(category))


if __name__ == "__main__":
    main()
