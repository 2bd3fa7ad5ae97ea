"""CLI entry point for design parity validation."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from design_parity.browser.session import BrowserSessionManager
from design_parity.compare.comparator import compare_or_error, display_score
from design_parity.models.checks import ValidationInputs
from design_parity.models.config import CompareOptions, ValidatorConfig, Viewport
from design_parity.models.design import DesignNode
from design_parity.models.report import MODES
from design_parity.reporter.console import render_breakpoints, render_report, render_sections
from design_parity.reporter.json_report import generate_breakpoints_json_report, generate_json_report
from design_parity.sections.planner import plan_sections
from design_parity.validation.aggregator import Validator

console = Console()

DEFAULT_CONFIG = "parity-config.json"


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def load_config(path: str) -> ValidatorConfig:
    """Config file if present, defaults otherwise."""
    if Path(path).exists():
        return ValidatorConfig.load(path)
    return ValidatorConfig()


def load_design(path: str) -> DesignNode:
    """Load a design node from JSON; a design-API node response is unwrapped to its document."""
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict) and "nodes" in data and isinstance(data["nodes"], dict):
        data = next(iter(data["nodes"].values()))
    if isinstance(data, dict) and "document" in data:
        data = data["document"]
    return DesignNode.model_validate(data)


def parse_viewport(value: str | None, param_hint: str = "--viewport") -> Viewport | None:
    if not value:
        return None
    try:
        width, height = (int(v) for v in value.lower().split("x"))
    except ValueError:
        raise click.BadParameter(f"Expected WIDTHxHEIGHT, got {value!r}", param_hint=param_hint)
    return Viewport(width=width, height=height, name=value)


def parse_named(values: tuple[str, ...], param_hint: str) -> dict[str, str]:
    """NAME=VALUE pairs from a repeated option."""
    named = {}
    for value in values:
        name, sep, rest = value.partition("=")
        if not sep or not name or not rest:
            raise click.BadParameter(f"Expected NAME=VALUE, got {value!r}", param_hint=param_hint)
        named[name] = rest
    return named


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Visual regression validation of live pages against reference designs"""
    setup_logging(verbose)


@cli.command()
@click.argument("url")
@click.option("--reference", "-r", help="Reference image URL or file")
@click.option("--design", "-d", type=click.Path(exists=True), help="Design node JSON (bounds, fills, children)")
@click.option("--mode", "-m", type=click.Choice(list(MODES) + ["full"]), default="visual", show_default=True)
@click.option("--viewport", help="Viewport as WIDTHxHEIGHT (default: design bounds)")
@click.option("--inputs", type=click.Path(exists=True), help="Browser-supplied bounds/DOM/asset data JSON")
@click.option("--threshold", type=float, help="Pixel colour threshold 0-1 (lower = stricter)")
@click.option("--pass-threshold", type=float, help="Match percentage needed to pass")
@click.option("--port", type=int, help="Chrome remote debugging port")
@click.option("--output", "-o", type=click.Path(), help="Write the JSON report here")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def validate(
    url: str,
    reference: str | None,
    design: str | None,
    mode: str,
    viewport: str | None,
    inputs: str | None,
    threshold: float | None,
    pass_threshold: float | None,
    port: int | None,
    output: str | None,
    config: str,
) -> None:
    """Validate the page at URL against a reference design."""
    cfg = load_config(config)
    updates = {}
    if threshold is not None:
        updates["threshold"] = threshold
    if pass_threshold is not None:
        updates["pass_threshold"] = pass_threshold
    options = cfg.compare.model_copy(update=updates)

    target = load_design(design) if design else None
    validation_inputs = None
    if inputs:
        with open(inputs) as f:
            validation_inputs = ValidationInputs(**json.load(f))

    validator = Validator(cfg)
    report = asyncio.run(validator.validate(
        mode=mode,
        target=target,
        url=url,
        viewport=parse_viewport(viewport),
        options=options,
        reference=reference,
        inputs=validation_inputs,
        port=port,
    ))

    render_report(report, console)
    if output:
        generate_json_report(report, Path(output))
        console.print(f"  JSON report: [blue]{output}[/blue]")

    if report.status in ("FAIL", "ERROR"):
        sys.exit(1)


@cli.command()
@click.argument("url")
@click.option("--reference", "-r", "references", multiple=True,
              help="Reference image per breakpoint as NAME=URL_OR_FILE (repeatable)")
@click.option("--breakpoint", "-b", "breakpoint_specs", multiple=True,
              help="Breakpoint as NAME=WIDTHxHEIGHT (repeatable, default: config breakpoints)")
@click.option("--mode", "-m", type=click.Choice(list(MODES) + ["full"]), default="visual", show_default=True)
@click.option("--pass-threshold", type=float, help="Match percentage needed to pass")
@click.option("--port", type=int, help="Chrome remote debugging port")
@click.option("--output", "-o", type=click.Path(), help="Write the JSON report here")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def breakpoints(
    url: str,
    references: tuple[str, ...],
    breakpoint_specs: tuple[str, ...],
    mode: str,
    pass_threshold: float | None,
    port: int | None,
    output: str | None,
    config: str,
) -> None:
    """Validate the page at URL once per responsive breakpoint."""
    cfg = load_config(config)
    options = cfg.compare
    if pass_threshold is not None:
        options = options.model_copy(update={"pass_threshold": pass_threshold})

    viewports = None
    if breakpoint_specs:
        viewports = []
        for name, size in parse_named(breakpoint_specs, "--breakpoint").items():
            viewport = parse_viewport(size, "--breakpoint")
            viewport.name = name
            viewports.append(viewport)

    validator = Validator(cfg)
    report = asyncio.run(validator.validate_breakpoints(
        viewports=viewports,
        mode=mode,
        url=url,
        references=parse_named(references, "--reference"),
        options=options,
        port=port,
    ))

    render_breakpoints(report, console)
    if output:
        generate_breakpoints_json_report(report, Path(output))
        console.print(f"  JSON report: [blue]{output}[/blue]")

    if report.status == "FAIL":
        sys.exit(1)


@cli.command()
@click.argument("reference", type=click.Path(exists=True))
@click.argument("rendered", type=click.Path(exists=True))
@click.option("--threshold", type=float, default=0.1, show_default=True, help="Pixel colour threshold 0-1")
@click.option("--include-aa", is_flag=True, help="Count anti-aliased pixels as mismatches")
@click.option("--pass-threshold", type=float, default=90.0, show_default=True)
@click.option("--diff-output", type=click.Path(), help="Write the diff PNG here")
def compare(
    reference: str,
    rendered: str,
    threshold: float,
    include_aa: bool,
    pass_threshold: float,
    diff_output: str | None,
) -> None:
    """Compare two image files pixel by pixel."""
    options = CompareOptions(
        threshold=threshold,
        include_aa=include_aa,
        pass_threshold=pass_threshold,
        include_diff_image=diff_output is not None,
    )
    outcome = compare_or_error(Path(reference).read_bytes(), Path(rendered).read_bytes(), options)
    if not outcome.success:
        console.print(f"[red]{outcome.error}:[/red] {outcome.message}")
        sys.exit(1)

    result = outcome.result
    passed = result.match_score >= pass_threshold
    table = Table(title="Comparison")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Status", "[green]PASS[/green]" if passed else "[red]FAIL[/red]")
    table.add_row("Match", f"{display_score(result.match_score)}%")
    table.add_row("Mismatched pixels", f"{result.mismatched_pixels} / {result.total_pixels}")
    table.add_row("Size", f"{result.dimensions.width}x{result.dimensions.height}")
    console.print(table)

    for region in result.regions:
        console.print(f"  {region.severity.upper()} {region.area}: {region.mismatch_percent}% - {region.possible_cause}")

    if diff_output and result.diff_image_base64:
        Path(diff_output).write_bytes(base64.b64decode(result.diff_image_base64))
        console.print(f"  Diff image: [blue]{diff_output}[/blue]")

    if not passed:
        sys.exit(1)


@cli.command()
@click.argument("design", type=click.Path(exists=True))
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def sections(design: str, config: str) -> None:
    """Show the sections, cross-section elements and build order of a design."""
    cfg = load_config(config)
    frame = load_design(design)
    found, dependencies, order = plan_sections(
        frame, gap=cfg.sections.gap_px, neutral_color=cfg.sections.neutral_color
    )
    if not found:
        console.print("[yellow]No sections found (children need bounds)[/yellow]")
        return
    render_sections(found, dependencies, order, console)


@cli.command("check-browser")
@click.option("--port", type=int, help="Chrome remote debugging port")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def check_browser(port: int | None, config: str) -> None:
    """Check that Chrome answers on the debugging port, launching it if needed."""
    cfg = load_config(config)
    manager = BrowserSessionManager(cfg.browser)
    status = asyncio.run(manager.check_available(port))
    if status["available"]:
        how = "launched" if status.get("auto_launched") else "already running"
        console.print(f"[green]Chrome available on port {status['port']}[/green] ({how})")
        return
    console.print(f"[red]Chrome unavailable on port {status['port']}:[/red] {status['error']}")
    console.print(f"  {status['hint']}")
    sys.exit(1)


@cli.command()
def init() -> None:
    """Create a default configuration file."""
    config_path = Path(DEFAULT_CONFIG)
    if config_path.exists():
        if not click.confirm(f"{DEFAULT_CONFIG} already exists. Overwrite?"):
            return

    ValidatorConfig().save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nYou can now customize this file and run:")
    console.print("  [blue]design-parity validate http://localhost:3000 -r reference.png[/blue]")


if __name__ == "__main__":
    cli()
