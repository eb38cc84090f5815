import asyncio
import json

import click


def _run(action):
    """Run ``action(manager)`` on a configured manager.

    Fatal session errors become CLI errors; the store is closed afterwards.
    """
    from mapsession.runtime.errors import MapSessionError
    from mapsession.runtime.log import setup_logging
    from mapsession.runtime.managers.sessions import SessionManager
    from mapsession.runtime.settings import get_settings

    settings = get_settings()
    setup_logging(settings.log_level)

    async def runner():
        manager = SessionManager.from_settings(settings)
        try:
            return await action(manager)
        finally:
            await manager.aclose()

    try:
        return asyncio.run(runner())
    except MapSessionError as e:
        raise click.ClickException(str(e)) from e


@click.group()
def main() -> None:
    """Mapsession - save and restore interactive map sessions."""


@main.command("list")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print records as JSON.")
def list_(as_json: bool) -> None:
    """List saved sessions owned by the current user."""
    records = _run(lambda m: m.list_sessions())
    if as_json:
        click.echo(json.dumps([r.model_dump() for r in records], indent=2))
        return
    for record in records:
        click.echo(f"{record.id}\t{record.label}")
    click.echo(f"{len(records)} session(s)", err=True)


@main.command()
@click.argument("item_id")
def show(item_id: str) -> None:
    """Print a saved session payload."""
    payload = _run(lambda m: m.fetch_session(item_id))
    click.echo(json.dumps(payload.to_wire(), indent=2))


@main.command()
@click.argument("item_id")
@click.confirmation_option(prompt="Delete this session?")
def delete(item_id: str) -> None:
    """Delete a saved session."""
    _run(lambda m: m.delete_session(item_id))
    click.echo(f"Deleted {item_id}.")


if __name__ == "__main__":
    main()
