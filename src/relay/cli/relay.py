"""Agent Relay (relay) - ask specialist agents and merge their answers."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ..client.http import build_chat_client
from ..core.config import get_default_organization, get_effective_config, get_engine_settings
from ..core.conversations import ConversationLedger
from ..core.engine import DelegationEngine
from ..errors import ChatApiError, ConfigurationError
from ..store import build_store
from ..utils.logs import setup_logging
from ..utils.sanitize import sanitize_error

console = Console()


def _store(ctx: click.Context):
    return build_store(ctx.obj["config"], ctx.obj["session"], project_path=ctx.obj["project"])


def _open(ctx: click.Context):
    """Build client and engine for this session, or exit 13 on missing credentials."""
    config = ctx.obj["config"]
    try:
        client = build_chat_client(config)
    except ConfigurationError as e:
        console.print(f"  [red]ERROR[/red] {e}")
        ctx.exit(13)
    engine = DelegationEngine(client, _store(ctx), get_engine_settings(config))
    return client, engine


@click.group()
@click.pass_context
@click.option("--project", "-p", type=click.Path(exists=True, file_okay=False), default=".", help="Project path (holds .relay/)")
@click.option("--session", "-s", type=str, default="default", help="Coordinator session id")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def relay_cli(ctx: click.Context, project: str, session: str, log_level: str | None) -> None:
    """Agent Relay - route questions to specialist agents."""
    project_path = Path(project)
    overrides = {"logging": {"level": log_level.upper()}} if log_level else None
    config = get_effective_config(project_path, cli_overrides=overrides)
    setup_logging(config.get("logging", {}).get("level", "WARNING"))
    ctx.obj = {"config": config, "project": project_path, "session": session}


@relay_cli.command()
@click.pass_context
@click.option("--org", "organization_id", type=str, help="Organization id (default: all organizations)")
def agents(ctx: click.Context, organization_id: str | None) -> None:
    """List the specialist agents available for delegation."""
    client, engine = _open(ctx)
    organization_id = organization_id or get_default_organization(ctx.obj["config"])

    async def _run():
        async with client:
            return await engine.discover_agents(organization_id)

    try:
        found = asyncio.run(_run())
    except ChatApiError as e:
        console.print(f"  [red]ERROR[/red] {sanitize_error(str(e))}")
        ctx.exit(14)
        return

    table = Table(title=f"{len(found)} agent(s)")
    table.add_column("Name", style="cyan")
    table.add_column("ID")
    table.add_column("Organization")
    table.add_column("Description")
    for agent in found:
        table.add_row(agent.name, agent.id, agent.organization_id, agent.description or "")
    console.print(table)


@relay_cli.command()
@click.pass_context
@click.argument("agent_id")
def capabilities(ctx: click.Context, agent_id: str) -> None:
    """Show one agent's name, description and endpoints."""
    client, engine = _open(ctx)

    async def _run():
        async with client:
            return await engine.get_agent_capabilities(agent_id)

    try:
        agent = asyncio.run(_run())
    except ChatApiError as e:
        console.print(f"  [red]ERROR[/red] {sanitize_error(str(e))}")
        ctx.exit(14)
        return
    click.echo(agent.model_dump_json(indent=2))


@relay_cli.command()
@click.pass_context
@click.argument("query")
@click.option("--agent", "-a", "agent_ids", multiple=True, help="Agent id or name (repeatable)")
@click.option("--all", "all_agents", is_flag=True, help="Consult every discovered agent")
@click.option("--org", "organization_id", type=str, help="Organization id to discover agents in")
@click.option("--new-chat", is_flag=True, help="Start fresh conversations instead of continuing")
@click.option("--interval", type=float, help="Seconds between checks")
@click.option("--max-checks", type=int, help="Checks per agent before giving up")
@click.option("--timeout-retries", type=int, default=0, help="Re-delegate after a timeout this many times")
@click.option("--ci", is_flag=True, help="CI mode: enable exit codes")
def ask(
    ctx: click.Context,
    query: str,
    agent_ids: tuple[str, ...],
    all_agents: bool,
    organization_id: str | None,
    new_chat: bool,
    interval: float | None,
    max_checks: int | None,
    timeout_retries: int,
    ci: bool,
) -> None:
    """Send QUERY, unchanged, to the chosen agents and print the merged answer."""
    from ..core.orchestrator import run_relay
    from ..core.status import RichStatusIndicator

    if not agent_ids and not all_agents:
        click.echo("Error: pass --agent/-a at least once, or --all.", err=True)
        ctx.exit(11)
        return

    config = ctx.obj["config"]
    polling = config.get("polling", {})
    client, engine = _open(ctx)

    async def _run() -> int:
        async with client:
            return await run_relay(
                engine,
                query,
                agent_ids=list(agent_ids) or None,
                organization_id=organization_id or get_default_organization(config),
                force_new_chat=new_chat,
                interval=interval if interval is not None else polling.get("interval_seconds", 2),
                max_checks=max_checks if max_checks is not None else polling.get("max_checks", 90),
                timeout_retries=timeout_retries,
                console=console,
                status=RichStatusIndicator(console),
            )

    exit_code = asyncio.run(_run())
    if ci:
        sys.exit(exit_code)


@relay_cli.command()
@click.pass_context
@click.argument("chat_id")
def check(ctx: click.Context, chat_id: str) -> None:
    """Check a delegated chat once and print the result as JSON."""
    client, engine = _open(ctx)

    async def _run():
        async with client:
            return await engine.check_response(chat_id)

    try:
        result = asyncio.run(_run())
    except ChatApiError as e:
        console.print(f"  [red]ERROR[/red] {sanitize_error(str(e))}")
        ctx.exit(14)
        return
    click.echo(result.model_dump_json(indent=2, exclude_none=True))


@relay_cli.command()
@click.pass_context
@click.argument("agent_id")
def forget(ctx: click.Context, agent_id: str) -> None:
    """Drop the stored conversation with an agent so the next ask starts fresh."""
    ledger = ConversationLedger(_store(ctx))

    async def _run():
        chat_id = await ledger.chat_id_for(agent_id)
        if chat_id:
            await ledger.forget(agent_id)
        return chat_id

    chat_id = asyncio.run(_run())
    if chat_id:
        click.echo(f"Forgot chat {chat_id} for agent {agent_id}")
    else:
        click.echo(f"No stored chat for agent {agent_id}")


def main() -> None:
    relay_cli()


if __name__ == "__main__":
    main()
