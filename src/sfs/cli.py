"""Typer CLI — ``sfs audit`` and ``sfs validate`` commands."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from sfs.config import load_config
from sfs.schemas.config import SessionConfig
from sfs.schemas.report import AuditReport
from sfs.shared.urls import normalize_store_url

# Load .env file from project root (if it exists)
load_dotenv()

app = typer.Typer(
    name="sfs",
    help="Storefront Shopper Simulator — browse a store like a first-time shopper and audit it.",
    no_args_is_help=True,
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs every HTTP request at INFO — noisy and unhelpful for users
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_or_exit(config: Path | None) -> SessionConfig:
    try:
        return load_config(config)
    except Exception as exc:
        console.print(f"[red]Config validation failed:[/] {exc}")
        raise typer.Exit(code=1)


@app.command()
def validate(
    config: Path = typer.Option(..., "--config", "-c", help="Path to session-config.yml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Validate a configuration file without running a session."""
    _setup_logging(verbose)
    cfg = _load_or_exit(config)

    b, s = cfg.browser, cfg.synthesis
    console.print("[green]Config is valid![/]\n")
    console.print(f"  Browser:     {'headless' if b.headless else 'headed'} {b.viewport_width}x{b.viewport_height}")
    console.print(f"  Navigation:  wait_until={b.wait_until}, timeout {b.navigation_timeout_ms} ms")
    console.print(f"  Probes:      {b.probe_timeout_ms} ms (add-to-cart {b.add_to_cart_probe_timeout_ms} ms)")
    console.print(f"  Model:       {s.model} (image detail: {s.image_detail})")
    console.print(f"  Max tokens:  commentary {s.commentary_max_tokens}, report {s.report_max_tokens}")


@app.command()
def audit(
    url: str = typer.Argument(..., help="Store URL, e.g. example-store.com"),
    config: Path = typer.Option(None, "--config", "-c", help="Path to session-config.yml (defaults apply without one)."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Browse the store but use canned synthesis (no API calls)."),
    output: Path = typer.Option(None, "--output", "-o", help="Write the audit report JSON to this file."),
) -> None:
    """Browse a store through the five shopping stages and produce an audit."""
    _setup_logging(verbose)
    cfg = _load_or_exit(config)

    try:
        store_url = normalize_store_url(url)
    except ValueError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(code=1)

    if dry_run:
        console.print("[yellow]DRY-RUN mode — no API calls will be made.[/]\n")

    console.print(f"[bold]Starting shopper session for:[/] {store_url}\n")
    report = asyncio.run(_run_session(cfg, store_url, dry_run=dry_run))

    if report is None:
        console.print("[red]No audit report was produced.[/] Stage analyses are shown above.")
        raise typer.Exit(code=1)

    _print_report(report)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(report.model_dump_json(indent=2))
        console.print(f"\n[green]Audit report written to:[/] {output}")


async def _run_session(cfg: SessionConfig, store_url: str, *, dry_run: bool = False) -> AuditReport | None:
    """Run one coordinator session with the live progress display as its sink."""
    from sfs.agents.coordinator.agent import SessionCoordinator
    from sfs.shared.progress import SessionProgress

    if dry_run:
        from sfs.shared.llm_client import DryRunClient
        client = DryRunClient()
    else:
        from sfs.shared.llm_client import ReasoningClient
        client = ReasoningClient(model=cfg.synthesis.model)

    coordinator = SessionCoordinator(client, config=cfg)
    with SessionProgress(target=console) as progress:
        return await coordinator.run(store_url, progress)


def _print_report(report: AuditReport) -> None:
    console.print(f"\n[bold]── {report.store_name} — {report.overall_score}/100 ──[/]\n")
    if report.shopper_narrative:
        console.print(f"[italic]{report.shopper_narrative}[/]\n")

    table = Table(title="Categories")
    table.add_column("Category")
    table.add_column("Score", justify="right")
    table.add_column("Issues", justify="right")
    for cat in report.categories:
        table.add_row(cat.label, str(cat.score), str(len(cat.issues)))
    console.print(table)

    if report.quick_wins:
        console.print("\n[bold]Quick wins[/]")
        for win in report.quick_wins:
            effort = f" ({win.effort})" if win.effort else ""
            console.print(f"  [cyan]{win.title}[/]{effort} — {win.fix}")
