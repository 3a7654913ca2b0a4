"""CLI entry point for trust-guard.

Invoked as::

    trust-guard [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m trust_guard.cli.main

Commands
--------
version      Show version information
dimensions   List the trust dimensions and the report categories reaching them
actions      List registered action requirements
check        Evaluate whether an identity may perform an action
identity     Show the identity vector loaded from a trust report
spending     Show spending authority for an aggregate score
forecast     Forecast score, grade, and recovery for a debt total
audit stats  Summarize a decision ledger
stability    Analyze a stability history
"""
from __future__ import annotations

import datetime
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from trust_guard.policy import DEFAULT_POLICY, GovernancePolicy

console = Console()


def _policy(ctx: click.Context) -> GovernancePolicy:
    return ctx.obj["policy"] if ctx.obj else DEFAULT_POLICY


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(package_name="trust-guard")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
@click.option(
    "--policy-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="JSON governance policy overriding the defaults.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str, policy_file: str | None) -> None:
    """Trust-vector permission checks, drift decay, and spending governance"""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    policy = DEFAULT_POLICY
    if policy_file:
        try:
            policy = GovernancePolicy.from_file(policy_file)
        except ValidationError as exc:
            console.print(f"[red]Error:[/red] invalid policy file: {exc}")
            sys.exit(2)
    ctx.obj = {"policy": policy}


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from trust_guard import __version__
    from trust_guard.reports import CATEGORY_MAP_VERSION

    console.print(f"[bold]trust-guard[/bold] v{__version__}")
    console.print(f"  Category map version: {CATEGORY_MAP_VERSION}")


# ------------------------------------------------------------------
# dimensions / actions
# ------------------------------------------------------------------


@cli.command(name="dimensions")
def dimensions_command() -> None:
    """List the trust dimensions in vector order."""
    from trust_guard.reports import categories_for_dimension
    from trust_guard.space import DIMENSIONS

    table = Table(title="Trust Dimensions", show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Dimension", style="cyan", no_wrap=True)
    table.add_column("Report categories")
    for index, dim in enumerate(DIMENSIONS):
        categories = categories_for_dimension(dim)
        table.add_row(str(index), dim.value, ", ".join(categories) or "[dim](default only)[/dim]")
    console.print(table)


@cli.command(name="actions")
@click.option("--min-aggregate", type=float, default=None, help="Only actions allowed at this aggregate.")
@click.option("--dimension", "dimension_name", default=None, help="Only actions requiring this dimension.")
def actions_command(min_aggregate: float | None, dimension_name: str | None) -> None:
    """List registered action requirements."""
    from trust_guard.registry import ActionRegistry, risk_level
    from trust_guard.space import parse_dimension

    registry = ActionRegistry()
    requirements = registry.list()
    if min_aggregate is not None:
        requirements = registry.filter_by_min_aggregate(min_aggregate)
    if dimension_name is not None:
        dimension = parse_dimension(dimension_name)
        if dimension is None:
            console.print(f"[red]Error:[/red] unknown dimension {dimension_name!r}")
            sys.exit(1)
        requirements = [r for r in requirements if dimension in r.required_scores]

    table = Table(title="Action Requirements", show_header=True)
    table.add_column("Action", style="cyan", no_wrap=True)
    table.add_column("Risk")
    table.add_column("Min aggregate", justify="right")
    table.add_column("Required dimensions")
    table.add_column("Irreversible", justify="center")
    for requirement in requirements:
        table.add_row(
            requirement.action_name,
            risk_level(requirement.min_aggregate).value,
            f"{requirement.min_aggregate:.2f}",
            ", ".join(f"{d.value}>={v}" for d, v in requirement.required_scores.items()),
            "yes" if requirement.irreversible else "",
        )
    console.print(table)


# ------------------------------------------------------------------
# check / identity
# ------------------------------------------------------------------


@cli.command(name="check")
@click.argument("action_name")
@click.option("--report", "report_path", type=click.Path(), default=".", show_default=True,
              help="Trust report file, or directory holding one.")
@click.option("--subject", default="system", show_default=True, help="Subject identifier.")
@click.pass_context
def check_command(ctx: click.Context, action_name: str, report_path: str, subject: str) -> None:
    """Evaluate whether SUBJECT may perform ACTION_NAME. Exits 1 on denial."""
    from trust_guard.identity import IdentityLoader
    from trust_guard.registry import ActionRegistry
    from trust_guard.space import check_permission

    policy = _policy(ctx)
    requirement = ActionRegistry().get(action_name)
    if requirement is None:
        console.print(f"[yellow]No requirement registered for {action_name!r}; would fail open.[/yellow]")
        return

    identity = IdentityLoader(report_path, policy).load(subject)
    decision = check_permission(identity, requirement, policy.overlap_threshold)
    if decision.allowed:
        console.print(f"[green]ALLOW[/green] {action_name}")
    else:
        console.print(f"[red]DENY[/red] {action_name}")
    console.print(f"  Overlap:   {decision.overlap_ratio:.2f} (threshold {decision.overlap_threshold})")
    console.print(f"  Aggregate: {decision.aggregate_score:.3f} (minimum {decision.min_aggregate})")
    for failed in decision.failed_dimensions:
        console.print(f"  Failed:    {failed}")
    if not decision.allowed:
        sys.exit(1)


@cli.command(name="identity")
@click.option("--report", "report_path", type=click.Path(), default=".", show_default=True,
              help="Trust report file, or directory holding one.")
@click.option("--subject", default="system", show_default=True, help="Subject identifier.")
@click.pass_context
def identity_command(ctx: click.Context, report_path: str, subject: str) -> None:
    """Show the identity vector loaded from a trust report."""
    from trust_guard.identity import IdentityLoader

    loader = IdentityLoader(report_path, _policy(ctx))
    source = loader.resolve_report_path()
    identity = loader.load(subject)

    table = Table(title=f"Identity: {subject}", show_header=True)
    table.add_column("Dimension", style="cyan", no_wrap=True)
    table.add_column("Score", justify="right")
    for dim, score in identity.scores.items():
        table.add_row(dim.value, f"{score:.3f}")
    table.add_row("[bold]aggregate[/bold]", f"[bold]{identity.aggregate_score:.3f}[/bold]")
    console.print(table)
    console.print(f"  Source: {source or '(default identity)'}")


# ------------------------------------------------------------------
# spending / forecast
# ------------------------------------------------------------------


@cli.command(name="spending")
@click.argument("score", type=float)
@click.option("--spent", type=float, default=None, help="Amount spent today.")
@click.pass_context
def spending_command(ctx: click.Context, score: float, spent: float | None) -> None:
    """Show spending authority for aggregate SCORE."""
    from trust_guard.spending import (
        budget_status,
        format_authority_report,
        recovery_path,
        spending_authority,
    )

    policy = _policy(ctx)
    authority = spending_authority(score, policy)
    console.print(format_authority_report(authority))

    if spent is not None:
        status = budget_status(spent, authority.daily_limit)
        colour = {"ok": "green", "warning": "yellow"}.get(status.alert_level.value, "red")
        console.print(f"\n[{colour}]{status.message}[/{colour}]")

    steps = recovery_path(score, policy)
    if steps:
        table = Table(title="Spending Recovery Path", show_header=True)
        table.add_column("Level", style="cyan")
        table.add_column("Score needed", justify="right")
        table.add_column("Limit gain", justify="right")
        table.add_column("Increase", justify="right")
        for step in steps:
            table.add_row(
                step.level.value,
                f"+{step.score_needed:.3f}",
                f"+${step.limit_gain:.2f}/day",
                f"+{step.percent_increase:.1f}%",
            )
        console.print(table)


@cli.command(name="forecast")
@click.argument("units", type=click.FloatRange(min=0.0))
@click.option(
    "--denials",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Drift events to apply.",
)
@click.pass_context
def forecast_command(ctx: click.Context, units: float, denials: int) -> None:
    """Forecast aggregate score and recovery for UNITS of trust debt."""
    from trust_guard.reports import TrustReport
    from trust_guard.sovereignty import (
        SovereigntyCalculator,
        denials_until_near_zero,
        recovery_path,
    )

    policy = _policy(ctx)
    calculation = SovereigntyCalculator(policy).calculate(TrustReport(total_units=units), denials)
    console.print(f"[bold]Grade {calculation.grade.value}[/bold] ({units:.0f} units)")
    console.print(f"  Raw score:   {calculation.raw_score:.3f}")
    console.print(
        f"  Score:       {calculation.score:.3f} "
        f"(-{calculation.drift_reduction_pct:.1f}% from {denials} denials)"
    )
    console.print(
        "  Denials until near zero: "
        f"{denials_until_near_zero(calculation.score, policy.drift_rate)}"
    )

    milestones = recovery_path(units, denials, policy.drift_rate, policy.max_debt_units)
    if not milestones:
        console.print("  Already at grade A.")
        return
    table = Table(title="Recovery Path", show_header=True)
    table.add_column("Target grade", style="cyan")
    table.add_column("Units to remove", justify="right")
    table.add_column("Score gain", justify="right")
    for milestone in milestones:
        table.add_row(
            milestone.target_grade.value,
            f"{milestone.units_needed:.0f}",
            f"+{milestone.score_gain:.3f}",
        )
    console.print(table)


# ------------------------------------------------------------------
# audit command group
# ------------------------------------------------------------------


@cli.group(name="audit")
def audit_group() -> None:
    """Inspect decision ledgers."""


def _parse_datetime(value: str | None) -> datetime.datetime | None:
    if value is None:
        return None
    parsed = datetime.datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=datetime.timezone.utc)


@audit_group.command(name="stats")
@click.option("--ledger", "ledger_path", type=click.Path(exists=True, dir_okay=False), required=True,
              help="Decision ledger (JSONL).")
@click.option("--decision", type=click.Choice(["ALLOW", "DENY"], case_sensitive=False), default=None)
@click.option("--action", "action_name", default=None)
@click.option("--caller", "caller_name", default=None)
@click.option("--subject", "subject_id", default=None)
@click.option("--session", "session_id", default=None)
@click.option("--start", default=None, help="ISO-8601 start (inclusive).")
@click.option("--end", default=None, help="ISO-8601 end (exclusive).")
@click.option("--top", "top_n", type=int, default=5, show_default=True)
def audit_stats_command(
    ledger_path: str,
    decision: str | None,
    action_name: str | None,
    caller_name: str | None,
    subject_id: str | None,
    session_id: str | None,
    start: str | None,
    end: str | None,
    top_n: int,
) -> None:
    """Summarize decisions in a ledger."""
    from trust_guard.audit import AuditQuery, Decision, DecisionLedger

    try:
        query = AuditQuery(
            decision=Decision(decision.upper()) if decision else None,
            action_name=action_name,
            caller_name=caller_name,
            subject_id=subject_id,
            session_id=session_id,
            start=_parse_datetime(start),
            end=_parse_datetime(end),
        )
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    stats = DecisionLedger(Path(ledger_path)).stats(query, top_n=top_n)
    console.print(f"[bold]Decisions:[/bold] {stats.total}")
    console.print(f"  Allowed:        {stats.allowed}")
    console.print(f"  Denied:         {stats.denied}")
    console.print(f"  Allow rate:     {stats.allow_rate:.1%}")
    console.print(f"  Mean overlap:   {stats.mean_overlap:.3f}")
    console.print(f"  Mean aggregate: {stats.mean_aggregate:.3f}")

    for title, rows in (
        ("Most-Denied Actions", stats.top_denied_actions),
        ("Most-Denied Callers", stats.top_denied_callers),
    ):
        if not rows:
            continue
        table = Table(title=title, show_header=True)
        table.add_column("Name", style="cyan")
        table.add_column("Denials", justify="right")
        for name, count in rows:
            table.add_row(name, str(count))
        console.print(table)


# ------------------------------------------------------------------
# stability
# ------------------------------------------------------------------


@cli.command(name="stability")
@click.option("--history", "history_path", type=click.Path(dir_okay=False), required=True,
              help="Stability history (JSONL).")
@click.option("--milestones", "milestones_path", type=click.Path(dir_okay=False), default=None,
              help="Milestone file (JSON).")
@click.option("--csv", "as_csv", is_flag=True, default=False, help="Print the history as CSV.")
@click.pass_context
def stability_command(
    ctx: click.Context, history_path: str, milestones_path: str | None, as_csv: bool
) -> None:
    """Analyze a stability history."""
    from trust_guard.monitor import StabilityMonitor

    monitor = StabilityMonitor(history_path, milestones_path, policy=_policy(ctx))
    if as_csv:
        click.echo(monitor.export_csv(), nl=False)
        return

    analysis = monitor.analyze()
    colour = "green" if analysis.is_stable else "yellow"
    console.print(f"[{colour}]{analysis.message}[/{colour}]")
    console.print(f"  Current score: {analysis.current_score:.3f}")
    console.print(f"  Window mean:   {analysis.mean_score:.3f}")
    console.print(
        f"  Trend:         {analysis.trend_direction} "
        f"({analysis.trend_strength * 100:.0f}% strength)"
    )
    if milestones_path:
        milestones = monitor.milestones()
        last = milestones[-1].achieved_at.isoformat() if milestones else "never"
        console.print(f"  Milestones:    {len(milestones)} (last: {last})")


if __name__ == "__main__":
    cli()
