"""CLI command implementations."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Literal

import typer

from cf_provisioner.cli import app
from cf_provisioner.cli.errors import handle_error

if TYPE_CHECKING:
    from cf_provisioner.config.schema import Config
    from cf_provisioner.engine.types import PipelineResult

ConfigPath = Annotated[
    Path,
    typer.Option("--config", "-c", help="Path to the configuration file."),
]

NoColor = Annotated[
    bool,
    typer.Option("--no-color", help="Disable colored output."),
]

AutoApprove = Annotated[
    bool,
    typer.Option("--auto-approve", help="Skip interactive approval."),
]

_DEFAULT_CONFIG = Path("cf-provisioner.yaml")


def _use_color(no_color: bool) -> bool:
    """Determine whether to use color output."""
    return not (no_color or os.environ.get("NO_COLOR"))


def _deploy_with_progress(cfg: Config, *, color: bool) -> PipelineResult:
    """Run the pipeline with a Rich progress bar and per-step status lines."""
    from rich.console import Console
    from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

    from cf_provisioner.cli.formatting import progress_label
    from cf_provisioner.config import deploy

    console = Console(no_color=not color)
    steps = 6

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Deploying", total=steps)

        def on_progress(step: str, event: Literal["start", "done"]) -> None:
            if event == "start":
                progress.update(task, description=f"{progress_label(step)}...")
            elif event == "done":
                progress.advance(task)

        def echo(line: str) -> None:
            progress.console.print(f"    {line}", markup=False, highlight=False)

        return deploy(cfg, progress=on_progress, echo=echo)


@app.command(name="deploy")
def deploy_cmd(
    config: ConfigPath = _DEFAULT_CONFIG,
    auto_approve: AutoApprove = False,
    no_color: NoColor = False,
) -> None:
    """Provision Cloudflare resources and deploy the build output."""
    from cf_provisioner.cli.formatting import (
        format_results,
        format_summary,
        format_warnings,
        styler,
    )
    from cf_provisioner.config import load

    color = _use_color(no_color)
    try:
        cfg = load(config)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    if not auto_approve:
        features = ", ".join(sorted(cfg.enabled_features)) or "none"
        typer.echo(f"Project: {cfg.project.name}  Features: {features}")
        try:
            typer.confirm("Do you want to deploy?", abort=True)
        except typer.Abort as e:
            typer.echo("Deploy canceled.", err=True)
            raise typer.Exit(1) from e

    try:
        result = _deploy_with_progress(cfg, color=color)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo(format_results(result, color=color))
    if result.warnings:
        typer.echo()
        typer.echo(format_warnings(result.warnings, color=color))
    typer.echo()
    typer.echo(format_summary(result.summary(), color=color))
    typer.echo(styler(color)(f"Site: {result.url}", fg="cyan"))


@app.command()
def accounts(
    config: ConfigPath = _DEFAULT_CONFIG,
    no_color: NoColor = False,
) -> None:
    """List the accounts visible to the configured credential."""
    from cf_provisioner.cli.formatting import format_accounts
    from cf_provisioner.config import discovery, load

    color = _use_color(no_color)
    try:
        cfg = load(config)
        found = discovery(cfg).list_accounts()
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo(format_accounts(found))


@app.command()
def zones(
    config: ConfigPath = _DEFAULT_CONFIG,
    account_id: Annotated[
        str | None,
        typer.Option("--account-id", help="Account to list zones for."),
    ] = None,
    no_color: NoColor = False,
) -> None:
    """List the zones of an account."""
    from cf_provisioner.cli.formatting import format_zones
    from cf_provisioner.config import discovery, load

    color = _use_color(no_color)
    try:
        cfg = load(config)
        disc = discovery(cfg)
        account = account_id or cfg.provider.account_id or disc.resolve_account_id()
        found = disc.list_zones(account)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo(format_zones(found))


@app.command()
def init(
    config: ConfigPath = _DEFAULT_CONFIG,
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite an existing manifest."),
    ] = False,
    no_color: NoColor = False,
) -> None:
    """Write the initial wrangler.toml for the configured project."""
    from cf_provisioner.cli.formatting import styler
    from cf_provisioner.config import load
    from cf_provisioner.core.manifest import write_manifest

    color = _use_color(no_color)
    try:
        cfg = load(config)
        path = write_manifest(cfg, force=force)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo(styler(color)(f"Wrote {path}", fg="green"))


@app.command()
def validate(
    config: ConfigPath = _DEFAULT_CONFIG,
    no_color: NoColor = False,
) -> None:
    """Validate the configuration file."""
    from cf_provisioner.cli.formatting import styler
    from cf_provisioner.config import load

    color = _use_color(no_color)
    try:
        load(config)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo(styler(color)("Configuration is valid.", fg="green"))


@app.command()
def cleanup(
    config: ConfigPath = _DEFAULT_CONFIG,
    no_color: NoColor = False,
) -> None:
    """Revoke scoped tokens left behind by interrupted deploys."""
    from cf_provisioner.cli.formatting import styler
    from cf_provisioner.config import cleanup as cleanup_fn
    from cf_provisioner.config import load

    color = _use_color(no_color)
    try:
        cfg = load(config)
        revoked, remaining = cleanup_fn(cfg)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    style = styler(color)
    if not revoked and not remaining:
        typer.echo("No pending tokens.")
        return
    for token_id in revoked:
        typer.echo(style(f"Revoked {token_id}", fg="green"))
    if remaining:
        for token_id in remaining:
            typer.echo(style(f"Could not revoke {token_id}", fg="red"), err=True)
        raise typer.Exit(1)
