"""Entry point for scheck CLI."""

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import rich_click as click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from scheck import __version__
from scheck.core.artifact import DEFAULT_FINDINGS_PATH, load_findings
from scheck.core.baseline import (
    add_to_baseline,
    load_baseline,
    load_baseline_or_empty,
    prune_baseline,
    save_baseline,
)
from scheck.core.categorize import (
    categorize_findings,
    get_ci_summary,
    has_collisions,
    resolve_collisions,
)
from scheck.core.config import Config, ConfigLoader
from scheck.core.errors import InvalidArgumentError, ScheckError
from scheck.core.finding_id import AnchorRegistry, attach_finding_ids, default_registry
from scheck.core.plugin import PluginManager
from scheck.core.storage import get_baseline_path, get_waiver_path
from scheck.core.waiver import (
    add_waiver,
    create_waiver,
    get_expiring_waivers,
    load_waivers,
    load_waivers_or_empty,
    parse_expiration,
    parse_reason_key,
    prune_expired_waivers,
    save_waivers,
)
from scheck.models.finding import Finding, Severity
from scheck.models.result import CategorizationResult, Category, CISummary
from scheck.models.store import BaselineEntry, WaiverEntry, WaiverReasonKey, utc_now
from scheck.utils.ci import detect_ci_context, is_non_interactive
from scheck.utils.git import find_project_root
from scheck.utils.log import LOGGER_NAME, LogConfig, configure_logging

click.rich_click.TEXT_MARKUP = "rich"
click.rich_click.SHOW_ARGUMENTS = True

SEVERITY_STYLES = {
    Severity.P0: "bold red",
    Severity.P1: "yellow",
    Severity.P2: "cyan",
}

CATEGORY_STYLES = {
    Category.NEW: "red",
    Category.WAIVER_EXPIRED: "magenta",
    Category.BASELINED: "dim",
    Category.WAIVED: "green",
}


@dataclass
class Project:
    """Everything a command needs to know about the project it runs on.

    Attributes:
        root: Directory holding ``.scheck/``.
        config: Merged configuration.
        console: Console for command output.
        logger: Configured ``scheck`` logger.
        registry: Anchor registry including plugin extractors.
    """

    root: Path
    config: Config
    console: Console
    logger: logging.Logger
    registry: AnchorRegistry

    @property
    def baseline_path(self) -> Path:
        return get_baseline_path(self.root)

    @property
    def waiver_path(self) -> Path:
        return get_waiver_path(self.root)

    def findings_path(self, override: Optional[str]) -> Path:
        """Resolve the findings artifact path."""
        if override:
            return Path(override)
        return self.root / DEFAULT_FINDINGS_PATH


def _get_registry(logger: logging.Logger) -> AnchorRegistry:
    """Build the anchor registry from built-ins plus discovered plugins."""
    registry = default_registry(logger)
    manager = PluginManager(logger=logger)
    discovered = manager.discover()
    if discovered:
        logger.debug("Loaded anchor plugins: %s", ", ".join(discovered))
    manager.apply(registry)
    return registry


def _open_project(ctx: click.Context, path: Optional[str]) -> Project:
    """Locate the project, load its configuration and build the registry.

    Raises:
        ConfigError: If a discovered config file is invalid.
    """
    log_config: LogConfig = ctx.obj["log_config"]
    logger: logging.Logger = ctx.obj["logger"]

    root = find_project_root(Path(path) if path else None)
    config = ConfigLoader(logger).load_merged(root)

    # Config may turn on verbose output that the command line didn't
    if config.output.verbose and not log_config.verbose and not log_config.quiet:
        log_config = LogConfig(verbose=True, quiet=False, json=log_config.json)
        logger = configure_logging(log_config)
        ctx.obj["log_config"] = log_config
        ctx.obj["logger"] = logger

    logger.debug("Project root: %s", root)
    return Project(
        root=root,
        config=config,
        console=Console(no_color=not config.output.color),
        logger=logger,
        registry=_get_registry(logger),
    )


def _fail(ctx: click.Context, error: ScheckError) -> None:
    """Print a scheck error and exit with status 1."""
    stderr_console = Console(stderr=True)
    stderr_console.print(f"[red]Error \\[{error.code}]:[/red] {escape(str(error))}")
    ctx.exit(1)


def _format_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def _location(file: str, line: Optional[int] = None, symbol: Optional[str] = None) -> str:
    location = file or "-"
    if line is not None:
        location += f":{line}"
    if symbol:
        location += f" ({symbol})"
    return location


def _single_mode(**modes: bool) -> Optional[str]:
    """Return the one selected mode flag, or None when none is selected.

    Raises:
        InvalidArgumentError: If more than one mode flag is set.
    """
    selected = [name for name, enabled in modes.items() if enabled]
    if len(selected) > 1:
        flags = ", ".join(f"--{name}" for name in selected)
        raise InvalidArgumentError(f"Options {flags} cannot be combined")
    return selected[0] if selected else None


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", is_flag=True, help="Show version and exit.")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output.")
@click.option("-q", "--quiet", is_flag=True, help="Only show errors.")
@click.option("--json-logs", is_flag=True, help="Emit log records as JSON lines on stderr.")
@click.pass_context
def cli(ctx: click.Context, version: bool, verbose: bool, quiet: bool, json_logs: bool) -> None:
    """scheck - Baselines and waivers for security invariant findings.

    Gives every finding a stable ID, tracks known findings in a baseline,
    suppresses individual findings with expiring waivers and decides
    whether CI should fail.
    """
    if version:
        click.echo(f"scheck {__version__}")
        ctx.exit(0)

    log_config = LogConfig(verbose=verbose, quiet=quiet, json=json_logs)
    ctx.ensure_object(dict)
    ctx.obj["log_config"] = log_config
    ctx.obj["logger"] = configure_logging(log_config)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ---------------------------------------------------------------------------
# baseline
# ---------------------------------------------------------------------------


def _print_baseline(console: Console, entries: list[BaselineEntry]) -> None:
    """Print baseline entries grouped by invariant."""
    if not entries:
        console.print("[dim]No baseline entries.[/dim]")
        return

    by_invariant: dict[str, list[BaselineEntry]] = {}
    for entry in entries:
        by_invariant.setdefault(entry.invariant_id, []).append(entry)

    console.print(f"[bold]Baseline[/bold] ({len(entries)} entries)")
    for invariant_id in sorted(by_invariant):
        group = sorted(by_invariant[invariant_id], key=lambda e: e.finding_id)
        table = Table(title=f"{invariant_id} ({len(group)})", title_justify="left")
        table.add_column("Finding ID", style="cyan", no_wrap=True)
        table.add_column("Location")
        table.add_column("Last seen", no_wrap=True)
        table.add_column("Notes", style="dim")
        for entry in group:
            table.add_row(
                entry.finding_id,
                _location(entry.file, symbol=entry.symbol),
                _format_date(entry.last_seen_at),
                entry.notes or "",
            )
        console.print(table)


@cli.command()
@click.option("--show", is_flag=True, help="List baseline entries grouped by invariant (default).")
@click.option("--update", is_flag=True, help="Add the current findings to the baseline.")
@click.option("--prune", is_flag=True, help="Remove entries that haven't been seen recently.")
@click.option(
    "--prune-days",
    type=click.IntRange(min=0),
    help="With --prune, remove entries not seen in this many days. Default: 90."
)
@click.option("--notes", type=str, help="With --update, note stored on the entries.")
@click.option("-y", "--yes", is_flag=True, help="Don't ask for confirmation.")
@click.option(
    "--findings",
    "findings_file",
    type=click.Path(dir_okay=False),
    help="Findings artifact. Default: .scheck/findings.json in the project."
)
@click.option(
    "--path",
    type=click.Path(exists=True, file_okay=False),
    help="Project directory. Default: the current directory."
)
@click.pass_context
def baseline(
    ctx: click.Context,
    show: bool,
    update: bool,
    prune: bool,
    prune_days: Optional[int],
    notes: Optional[str],
    yes: bool,
    findings_file: Optional[str],
    path: Optional[str],
) -> None:
    """Show, update or prune the baseline of known findings.

    Baselined findings are reported but never fail CI. Use --update once to
    adopt scheck on an existing codebase, then only new findings fail.
    """
    try:
        mode = _single_mode(show=show, update=update, prune=prune) or "show"
        project = _open_project(ctx, path)
        console = project.console

        if mode == "show":
            data = load_baseline(project.baseline_path, logger=project.logger)
            _print_baseline(console, list(data.entries.values()))
            return

        if mode == "prune":
            days = project.config.baseline.prune_days if prune_days is None else prune_days
            data = load_baseline(project.baseline_path, logger=project.logger)
            removed = prune_baseline(data, stale_days=days)
            if removed:
                save_baseline(project.baseline_path, data, logger=project.logger)
            console.print(
                f"Pruned {removed} baseline entr{'y' if removed == 1 else 'ies'} "
                f"not seen in {days} days."
            )
            return

        findings = load_findings(project.findings_path(findings_file))
        if not findings:
            console.print("[yellow]No findings to add to baseline.[/yellow]")
            return

        # Abort before prompting if the existing file can't be used
        data = load_baseline(project.baseline_path, logger=project.logger)

        if not yes and not is_non_interactive():
            if not click.confirm(f"Add {len(findings)} finding(s) to baseline?", default=False):
                console.print("[yellow]Baseline not updated.[/yellow]")
                return

        identified = attach_finding_ids(findings, project.registry)
        unique = len({item.finding_id for item in identified})
        added = add_to_baseline(data, findings, notes=notes, registry=project.registry)
        save_baseline(project.baseline_path, data, logger=project.logger)
        console.print(
            f"[green]Added {added} new finding(s) to baseline[/green] "
            f"({unique - added} already present, {len(data.entries)} total)."
        )
    except ScheckError as e:
        _fail(ctx, e)


# ---------------------------------------------------------------------------
# waiver / waive
# ---------------------------------------------------------------------------


def _print_waivers(console: Console, entries: list[WaiverEntry], title: str) -> None:
    """Print waivers in a table, soonest expiry first."""
    if not entries:
        console.print("[dim]No waivers.[/dim]")
        return

    now = utc_now()
    table = Table(title=title, title_justify="left")
    table.add_column("Finding ID", style="cyan", no_wrap=True)
    table.add_column("Owner")
    table.add_column("Expires", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Reason")
    for entry in sorted(entries, key=lambda e: (e.expires_at, e.finding_id)):
        status = "[green]active[/green]" if entry.is_active(now) else "[red]expired[/red]"
        reason = entry.reason
        if entry.reason_key:
            reason = f"[{entry.reason_key.value}] {reason}"
        table.add_row(
            entry.finding_id,
            entry.owner,
            _format_date(entry.expires_at),
            status,
            escape(reason),
        )
    console.print(table)


@cli.command()
@click.option("--show", is_flag=True, help="List all waivers (default).")
@click.option("--expiring", is_flag=True, help="List active waivers that expire soon.")
@click.option("--prune", is_flag=True, help="Delete expired waivers.")
@click.option(
    "--expiring-days",
    type=click.IntRange(min=0),
    help="With --expiring, the look-ahead window in days. Default: 7."
)
@click.option(
    "--path",
    type=click.Path(exists=True, file_okay=False),
    help="Project directory. Default: the current directory."
)
@click.pass_context
def waiver(
    ctx: click.Context,
    show: bool,
    expiring: bool,
    prune: bool,
    expiring_days: Optional[int],
    path: Optional[str],
) -> None:
    """Show, review or prune waivers."""
    try:
        mode = _single_mode(show=show, expiring=expiring, prune=prune) or "show"
        project = _open_project(ctx, path)
        console = project.console
        data = load_waivers(project.waiver_path, logger=project.logger)

        if mode == "show":
            _print_waivers(console, list(data.entries.values()), f"Waivers ({len(data.entries)})")
            return

        if mode == "expiring":
            days = project.config.waivers.expiring_days if expiring_days is None else expiring_days
            expiring_entries = get_expiring_waivers(data, within_days=days)
            if not expiring_entries:
                console.print(f"[green]No waivers expire in the next {days} days.[/green]")
                return
            _print_waivers(
                console,
                expiring_entries,
                f"Waivers expiring within {days} days ({len(expiring_entries)})",
            )
            return

        removed = prune_expired_waivers(data)
        if removed:
            save_waivers(project.waiver_path, data, logger=project.logger)
        console.print(f"Pruned {removed} expired waiver(s).")
    except ScheckError as e:
        _fail(ctx, e)


def _default_owner() -> str:
    return os.environ.get("SCHECK_OWNER") or os.environ.get("USER") or os.environ.get("USERNAME") or ""


@cli.command()
@click.argument("target")
@click.option("--reason", required=True, help="Why the finding is acceptable for now.")
@click.option(
    "--reason-key",
    type=str,
    help=f"Structured reason category: {', '.join(key.value for key in WaiverReasonKey)}."
)
@click.option(
    "--expires",
    type=str,
    help="How long the waiver lasts, e.g. 7d, 30d, 90d. Default: 30d."
)
@click.option("--owner", type=str, help="Who is accountable. Default: $SCHECK_OWNER or $USER.")
@click.option(
    "--findings",
    "findings_file",
    type=click.Path(dir_okay=False),
    help="Findings artifact. Default: .scheck/findings.json in the project."
)
@click.option(
    "--path",
    type=click.Path(exists=True, file_okay=False),
    help="Project directory. Default: the current directory."
)
@click.pass_context
def waive(
    ctx: click.Context,
    target: str,
    reason: str,
    reason_key: Optional[str],
    expires: Optional[str],
    owner: Optional[str],
    findings_file: Optional[str],
    path: Optional[str],
) -> None:
    """Waive a finding until an expiry date.

    TARGET is either a full finding ID (INVARIANT:hash) or an invariant ID,
    which waives every current finding of that invariant.
    """
    try:
        project = _open_project(ctx, path)
        console = project.console

        days = (
            parse_expiration(expires) if expires
            else project.config.waivers.default_expiry_days
        )
        key = parse_reason_key(reason_key)
        owner = owner or _default_owner()

        identified = attach_finding_ids(
            load_findings(project.findings_path(findings_file)), project.registry
        )
        if ":" in target:
            matches = [item for item in identified if item.finding_id == target]
        else:
            matches = [item for item in identified if item.finding.invariant_id == target]
        if not matches:
            raise InvalidArgumentError(f"No current finding matches '{target}'")

        targets: dict[str, Finding] = {}
        for item in matches:
            targets.setdefault(item.finding_id, item.finding)

        data = load_waivers(project.waiver_path, logger=project.logger)
        now = utc_now()
        for finding in targets.values():
            entry = create_waiver(
                finding,
                reason=reason,
                owner=owner,
                expires_in_days=days,
                reason_key=key,
                now=now,
                registry=project.registry,
            )
            add_waiver(data, entry, now=now)
        save_waivers(project.waiver_path, data, logger=project.logger)

        expires_at = now + timedelta(days=days)
        console.print(
            f"[green]Waived {len(targets)} finding(s)[/green] until {_format_date(expires_at)} "
            f"(owner: {escape(owner)})."
        )
        for finding_id in sorted(targets):
            console.print(f"  {finding_id}")
    except ScheckError as e:
        _fail(ctx, e)


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


def _finding_record(item) -> dict:
    """Build the machine-readable record of a categorized finding."""
    primary = item.finding.primary
    record = {
        "findingId": item.finding_id,
        "invariantId": item.invariant_id,
        "severity": item.severity.value,
        "category": item.category.value,
        "message": item.finding.message,
        "file": primary.file if primary else None,
        "line": primary.line if primary else None,
        "mergedCount": item.merged_count,
    }
    if item.waiver is not None:
        record["waiver"] = {
            "owner": item.waiver.owner,
            "reason": item.waiver.reason,
            "expiresAt": item.waiver.expires_at.isoformat().replace("+00:00", "Z"),
        }
    return record


def _generate_check_report(
    result: CategorizationResult,
    summary: CISummary,
    findings_path: Path,
) -> dict:
    """Generate a check report as a dictionary.

    Args:
        result: Categorized (and merged) findings.
        summary: CI summary at the configured threshold.
        findings_path: Artifact the findings were read from.

    Returns:
        Dictionary containing the check report.
    """
    ci = detect_ci_context()
    return {
        "metadata": {
            "findings_file": str(findings_path),
            "timestamp": utc_now().isoformat(),
            "tool_version": __version__,
            "ci_provider": ci.provider if ci else None,
            "commit_sha": ci.commit_sha if ci else None,
        },
        "exit_code": summary.exit_code,
        "summary": summary.to_dict(),
        "findings": [_finding_record(item) for item in result.findings],
    }


def _print_check(console: Console, result: CategorizationResult, summary: CISummary) -> None:
    """Print findings that need attention followed by the summary line."""
    attention = [item for item in result.findings if item.category.can_fail]
    if attention:
        table = Table(title="Findings requiring attention", title_justify="left")
        table.add_column("Severity", no_wrap=True)
        table.add_column("Category", no_wrap=True)
        table.add_column("Finding ID", style="cyan", no_wrap=True)
        table.add_column("Location")
        table.add_column("Message")
        for item in attention:
            primary = item.finding.primary
            location = _location(primary.file, primary.line, primary.symbol) if primary else "-"
            if item.merged_count > 1:
                location += f" (+{item.merged_count - 1} more)"
            severity_style = SEVERITY_STYLES[item.severity]
            category_style = CATEGORY_STYLES[item.category]
            table.add_row(
                f"[{severity_style}]{item.severity.value}[/{severity_style}]",
                f"[{category_style}]{item.category.value}[/{category_style}]",
                item.finding_id,
                escape(location),
                escape(item.finding.message),
            )
        console.print(table)

    style = "red" if summary.exit_code else "green"
    console.print(f"[{style}]{summary.describe()}[/{style}]")


@cli.command()
@click.option(
    "--findings",
    "findings_file",
    type=click.Path(dir_okay=False),
    help="Findings artifact. Default: .scheck/findings.json in the project."
)
@click.option(
    "--fail-on",
    "fail_on",
    type=click.Choice([s.value for s in Severity], case_sensitive=False),
    help="Minimum severity that fails CI. Default: any severity."
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    help="Output format: text (table and summary) or json."
)
@click.option(
    "--report",
    "report_file",
    type=click.Path(dir_okay=False),
    help="Write JSON check report to this file."
)
@click.option(
    "--path",
    type=click.Path(exists=True, file_okay=False),
    help="Project directory. Default: the current directory."
)
@click.pass_context
def check(
    ctx: click.Context,
    findings_file: Optional[str],
    fail_on: Optional[str],
    output_format: str,
    report_file: Optional[str],
    path: Optional[str],
) -> None:
    """Categorize findings and exit 1 if any need attention.

    New findings and findings whose waiver expired fail the check;
    baselined and waived findings don't.
    """
    try:
        project = _open_project(ctx, path)
        threshold = Severity(fail_on.upper()) if fail_on else project.config.ci.fail_on

        findings_path = project.findings_path(findings_file)
        findings = load_findings(findings_path)

        baseline_data = load_baseline_or_empty(project.baseline_path, logger=project.logger)
        waiver_data = load_waivers_or_empty(project.waiver_path, logger=project.logger)

        result = categorize_findings(
            findings, baseline_data, waiver_data, registry=project.registry
        )
        if has_collisions(result):
            project.logger.warning(
                "Some findings share an ID; they are merged into one entry each"
            )
            result = resolve_collisions(result)
        summary = get_ci_summary(result, fail_on=threshold)

        if report_file:
            report_path = Path(report_file)
            report_path.parent.mkdir(parents=True, exist_ok=True)
            report = _generate_check_report(result, summary, findings_path)
            report_path.write_text(json.dumps(report, indent=2) + "\n", encoding="utf-8")
            project.logger.debug("Wrote check report to %s", report_path)

        if output_format.lower() == "json":
            click.echo(json.dumps({
                "summary": summary.to_dict(),
                "findings": [_finding_record(item) for item in result.findings],
            }, indent=2))
        else:
            _print_check(project.console, result, summary)
        ctx.exit(summary.exit_code)
    except ScheckError as e:
        _fail(ctx, e)


def main() -> None:
    """Console script entry point.

    Unexpected exceptions are logged and turned into exit status 1.
    """
    try:
        cli()
    except Exception:
        logging.getLogger(LOGGER_NAME).exception("Unexpected error")
        sys.exit(1)


if __name__ == "__main__":
    main()
