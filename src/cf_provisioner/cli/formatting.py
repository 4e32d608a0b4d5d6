"""Deploy output rendering."""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

import typer

from cf_provisioner.engine.types import Outcome

if TYPE_CHECKING:
    from collections.abc import Callable

    from cf_provisioner.core.discovery import Account, Zone
    from cf_provisioner.engine.types import PipelineResult, StepResult


class _OutcomeStyle(NamedTuple):
    color: str
    symbol: str
    label: str


_OUTCOME_STYLES: dict[str, _OutcomeStyle] = {
    "created": _OutcomeStyle("green", "+", "created"),
    "reused": _OutcomeStyle("bright_black", "=", "reused"),
    "updated": _OutcomeStyle("yellow", "~", "updated"),
    "skipped": _OutcomeStyle("bright_black", " ", "skipped"),
    "failed": _OutcomeStyle("red", "!", "failed"),
}

_STEP_PROGRESS: dict[str, str] = {
    "database": "Provisioning D1 database",
    "bucket": "Provisioning R2 bucket",
    "project": "Creating Pages project and deploying",
    "domain": "Attaching custom domains",
    "dns": "Configuring DNS",
    "access": "Configuring Access",
}


def styler(color: bool) -> Callable[..., str]:
    """Return ``typer.style`` when *color* is True, otherwise a passthrough."""
    if color:
        return typer.style
    return lambda text, **_kw: text


def progress_label(step: str) -> str:
    return _STEP_PROGRESS.get(step, step)


def format_step_result(r: StepResult, *, color: bool = True) -> str:
    """One line per resource: ``  + cloudflare_d1_database.shop: created``."""
    style = styler(color)
    s = _OUTCOME_STYLES[r.outcome.value]
    line = f"  {s.symbol} {r.address}: {s.label}"
    if r.outcome == Outcome.FAILED and r.error:
        line += f" ({r.error})"
    elif r.outcome == Outcome.SKIPPED and r.attributes.get("reason"):
        line += f" ({r.attributes['reason']})"
    return style(line, fg=s.color)


def format_results(result: PipelineResult, *, color: bool = True) -> str:
    return "\n".join(format_step_result(r, color=color) for r in result.results)


def format_summary(summary: dict[str, int], *, color: bool = True) -> str:
    """``Deploy complete! 3 created, 0 reused, 0 updated.``"""
    style = styler(color)
    parts = [
        style(f"{summary.get(k, 0)} {k}", fg=_OUTCOME_STYLES[k].color)
        if summary.get(k, 0) and color
        else f"{summary.get(k, 0)} {k}"
        for k in ("created", "reused", "updated")
    ]
    text = f"Deploy complete! {', '.join(parts)}."
    if summary.get("failed"):
        text += f" {summary['failed']} non-fatal failure(s)."
    return style(text, bold=True)


def format_warnings(warnings: list[str], *, color: bool = True) -> str:
    style = styler(color)
    return "\n".join(style(f"Warning: {w}", fg="yellow") for w in warnings)


def format_partial_result(result: PipelineResult) -> list[str]:
    """Describe what a failed run left behind."""
    lines: list[str] = []
    provisioned = result.provisioned()
    if provisioned:
        lines.append("Resources provisioned before the failure:")
        lines += [f"  {r.address} ({r.outcome.value})" for r in provisioned]
    else:
        lines.append("No resources were provisioned.")
    lines += [f"Warning: {w}" for w in result.warnings]
    return lines


def format_accounts(accounts: list[Account]) -> str:
    if not accounts:
        return "No accounts found."
    width = max(len(a.id) for a in accounts)
    return "\n".join(f"{a.id.ljust(width)}  {a.name}" for a in accounts)


def format_zones(zones: list[Zone]) -> str:
    if not zones:
        return "No zones found."
    width = max(len(z.id) for z in zones)
    return "\n".join(f"{z.id.ljust(width)}  {z.name}" for z in zones)
