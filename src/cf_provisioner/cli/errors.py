"""Map exceptions to clean stderr messages and exit codes."""

from __future__ import annotations

import typer


def _err(msg: str, *, fg: str | None) -> None:
    """Print a styled message to stderr."""
    typer.echo(typer.style(msg, fg=fg), err=True)


def handle_error(exc: Exception, *, color: bool = True) -> int:
    """Print a clean error message to stderr and return an exit code.

    All errors map to exit code 1.  No tracebacks are printed.
    """
    from cf_provisioner.cli.formatting import format_partial_result
    from cf_provisioner.config.loader import ConfigError
    from cf_provisioner.engine.errors import (
        AuthenticationError,
        DiscoveryError,
        ExecutionError,
        PipelineError,
        StorageNotEnabledError,
    )

    fg = typer.colors.RED if color else None

    cause = exc.__cause__ if isinstance(exc, PipelineError) else exc

    if isinstance(exc, ConfigError):
        _err(f"Configuration error: {exc}", fg=fg)
    elif isinstance(exc, PipelineError):
        _err(f"Deploy failed: {exc}", fg=fg)
        for line in format_partial_result(exc.result):
            _err(f"  {line}", fg=fg)
    elif isinstance(exc, AuthenticationError):
        _err(f"Authentication failed: {exc}", fg=fg)
    elif isinstance(exc, DiscoveryError):
        _err(f"Discovery failed: {exc}", fg=fg)
    else:
        _err(f"Error: {exc}", fg=fg)

    if isinstance(cause, StorageNotEnabledError):
        _err("", fg=fg)
        for line in StorageNotEnabledError.instructions:
            _err(line, fg=fg)
    elif isinstance(cause, ExecutionError) and cause.returncode is None:
        _err("  Is wrangler installed? Try: npm install -g wrangler", fg=fg)

    return 1
