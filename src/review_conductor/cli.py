"""Command-line interface for Review Conductor."""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
import uvicorn
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from review_conductor import __version__
from review_conductor.api.app import create_app
from review_conductor.config import Config, load_config, validate_config
from review_conductor.errors import ReviewConductorError
from review_conductor.formatting import SEVERITY_EMOJI, format_report_markdown, report_to_dict
from review_conductor.github.client import GitHubClient
from review_conductor.models.artifact import Artifact, ArtifactKind, infer_kind, parse_diff
from review_conductor.models.report import AggregatedReport
from review_conductor.models.session import ReviewSession, SessionStatus
from review_conductor.review import build_roles, build_service, review_artifact, review_pull_request

console = Console()

# Directories never collected when a path argument is a directory
SKIPPED_DIRS = {".git", ".hg", ".venv", "venv", "node_modules", "__pycache__", ".tox", "dist", "build"}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_valid_config(config_path: str | None) -> Config:
    """Load configuration and exit with code 1 if it is invalid."""
    config = load_config(Path(config_path) if config_path else None)
    errors = validate_config(config)
    if errors:
        for error in errors:
            console.print(f"[red]Config error:[/red] {error}")
        sys.exit(1)
    return config


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def cli(verbose: bool) -> None:
    """Review Conductor - multi-agent review orchestration."""
    setup_logging(verbose)


@cli.command("review")
@click.argument("paths", nargs=-1, type=click.Path(exists=True, path_type=Path))
@click.option("--diff", "diff_file", type=click.File("r"), help="Unified diff file ('-' for stdin)")
@click.option(
    "--kind",
    type=click.Choice([kind.value for kind in ArtifactKind]),
    help="Artifact kind (inferred from paths by default)",
)
@click.option("--role", "roles", multiple=True, help="Run only these roles (repeatable)")
@click.option(
    "--output", type=click.Choice(["table", "json", "markdown"]), default="table"
)
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def review(
    paths: tuple[Path, ...],
    diff_file,
    kind: str | None,
    roles: tuple[str, ...],
    output: str,
    config_path: str | None,
) -> None:
    """Review local files and/or a unified diff.

    Exits with code 1 when the report does not clear the quality gate.
    """
    if not paths and diff_file is None:
        raise click.UsageError("Provide at least one path or --diff")

    config = _load_valid_config(config_path)
    files = collect_files(paths)
    diff = diff_file.read() if diff_file is not None else None

    if kind is None:
        inferred = infer_kind(list(files) + list(parse_diff(diff or "")))
    else:
        inferred = ArtifactKind.parse(kind)
    name = ", ".join(str(p) for p in paths) or "diff"
    artifact = Artifact(kind=inferred, files=files, diff=diff, name=name)

    console.print(
        f"🔍 Reviewing [bold]{name}[/bold] ({len(artifact.paths)} files, {artifact.kind.value})...",
        highlight=False,
    )
    try:
        session = asyncio.run(review_artifact(artifact, config, list(roles) or None))
    except ReviewConductorError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    _finish(session, output)


@cli.command("review-pr")
@click.argument("repo")
@click.argument("pr_number", type=int)
@click.option("--role", "roles", multiple=True, help="Run only these roles (repeatable)")
@click.option(
    "--output", type=click.Choice(["table", "json", "markdown"]), default="table"
)
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def review_pr(
    repo: str,
    pr_number: int,
    roles: tuple[str, ...],
    output: str,
    config_path: str | None,
) -> None:
    """Review a GitHub pull request."""
    config = _load_valid_config(config_path)
    if not config.github.token:
        console.print("[red]Error:[/red] GITHUB_TOKEN is not set")
        sys.exit(1)

    console.print(f"🔍 Reviewing PR #{pr_number} in [bold]{repo}[/bold]...")
    try:
        session = asyncio.run(
            review_pull_request(repo, pr_number, config, list(roles) or None)
        )
    except ReviewConductorError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    _finish(session, output)


def collect_files(paths: tuple[Path, ...]) -> dict[str, str]:
    """Read text files from paths, walking directories."""
    files: dict[str, str] = {}
    for path in paths:
        if path.is_dir():
            candidates = sorted(
                p
                for p in path.rglob("*")
                if p.is_file() and not SKIPPED_DIRS.intersection(p.relative_to(path).parts)
            )
        else:
            candidates = [path]
        for candidate in candidates:
            try:
                files[candidate.as_posix()] = candidate.read_text(encoding="utf-8")
            except (UnicodeDecodeError, OSError) as e:
                logging.getLogger(__name__).debug(f"Skipping {candidate}: {e}")
    return files


def _finish(session: ReviewSession, output: str) -> None:
    """Print a finished session and exit non-zero unless it cleared the gate."""
    report = session.report
    if session.status is SessionStatus.FAILED or report is None:
        console.print(f"[red]❌ Review failed:[/red] {session.error or session.status.value}")
        sys.exit(1)

    if output == "json":
        click.echo(json.dumps(report_to_dict(report), indent=2))
    elif output == "markdown":
        click.echo(format_report_markdown(report))
    else:
        print_report(report)

    if session.status is SessionStatus.NEEDS_RERUN:
        console.print(
            f"[yellow]⚠️  Confidence {report.confidence:.2f} below threshold - re-run needed[/yellow]"
        )
        sys.exit(1)


def print_report(report: AggregatedReport) -> None:
    """Render a report as a rich table."""
    console.print(f"✅ {report.summary}" if report.gate_passed else report.summary)
    console.print(
        f"   Confidence: {report.confidence:.2f} | Completeness: {report.completeness:.0%}"
    )
    for name, outcome in report.incomplete_roles.items():
        console.print(f"[yellow]   ⚠️  {name}: {outcome}[/yellow]")

    if report.is_empty:
        return

    table = Table(title="Findings")
    table.add_column("Severity")
    table.add_column("Location")
    table.add_column("Issue")
    table.add_column("Roles")

    for finding in report.findings:
        issue = finding.message
        if finding.conflicting:
            issue += " [dim](primary)[/dim]" if finding.primary else " [dim](alternative)[/dim]"
        table.add_row(
            f"{SEVERITY_EMOJI[finding.severity]} {finding.severity.value}",
            str(finding.location),
            issue,
            ", ".join(finding.roles),
        )

    console.print(table)


@cli.group("roles")
def roles_group() -> None:
    """Worker role commands."""
    pass


@roles_group.command("list")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def roles_list(config_path: str | None) -> None:
    """List the enabled worker roles."""
    config = load_config(Path(config_path) if config_path else None)
    try:
        roles = build_roles(config)
    except ReviewConductorError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    table = Table(title="Worker Roles")
    table.add_column("Name")
    table.add_column("Depends On")
    table.add_column("Mode")
    table.add_column("Timeout")
    table.add_column("Weight")
    table.add_column("Description")

    for role in roles:
        timeout = role.timeout_seconds or config.scheduler.default_timeout_seconds
        table.add_row(
            role.name,
            ", ".join(role.depends_on) or "-",
            role.mode.value,
            f"{timeout:g}s",
            f"{role.weight:g}",
            role.description,
        )

    console.print(table)


@cli.group("config")
def config_group() -> None:
    """Configuration commands."""
    pass


@config_group.command("validate")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def config_validate(config_path: str | None) -> None:
    """Validate configuration file."""
    try:
        config = load_config(Path(config_path) if config_path else None)
        errors = validate_config(config)
    except (OSError, ValueError, KeyError, TypeError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        sys.exit(1)

    if errors:
        console.print("[red]Configuration is invalid:[/red]")
        for error in errors:
            console.print(f"  • {error}")
        sys.exit(1)
    else:
        console.print("[green]✓ Configuration is valid[/green]")


@config_group.command("show")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def config_show(config_path: str | None) -> None:
    """Show current configuration."""
    config = load_config(Path(config_path) if config_path else None)

    console.print("\n[bold]Current Configuration[/bold]\n")

    table = Table(title="Routing")
    table.add_column("Artifact Kind")
    table.add_column("Roles")

    for kind, names in config.routing.table.items():
        table.add_row(kind, ", ".join(names) or "-")
    table.add_row("[dim](default)[/dim]", ", ".join(config.routing.default_roles))

    console.print(table)

    if config.role_weights:
        weights = ", ".join(f"{name}={weight}" for name, weight in config.role_weights.items())
        console.print(f"\n[bold]Role weights:[/bold] {weights}")
    if config.role_timeouts:
        timeouts = ", ".join(f"{name}={value}s" for name, value in config.role_timeouts.items())
        console.print(f"[bold]Role timeouts:[/bold] {timeouts}")
    console.print(
        f"\n[bold]Default timeout:[/bold] {config.scheduler.default_timeout_seconds}s"
    )
    console.print(f"[bold]Max parallel workers:[/bold] {config.scheduler.max_parallel_workers}")
    console.print(f"[bold]Retained sessions:[/bold] {config.sessions.max_retained}")
    console.print(f"[bold]Min confidence:[/bold] {config.quality_gate.min_confidence}")
    console.print(f"[bold]Similarity threshold:[/bold] {config.aggregator.similarity_threshold}")


@cli.command("serve")
@click.option("--port", type=int, help="Port to listen on")
@click.option("--host", help="Host to bind to")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def serve(port: int | None, host: str | None, config_path: str | None) -> None:
    """Start the HTTP API and webhook server."""
    config = _load_valid_config(config_path)
    service = build_service(config)

    github_client = None
    if config.github.token:
        github_client = GitHubClient(config.github.token, config.github.base_url)
    else:
        console.print("[dim]ℹ️  GITHUB_TOKEN not set - webhook reviews disabled[/dim]")

    app = create_app(service, config.github.webhook_secret, github_client)

    host = host or config.server.host
    port = port or config.server.port
    console.print(f"🚀 Starting server on {host}:{port}")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    cli()
