"""Rich console rendering of validation reports."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from design_parity.compare.comparator import display_score
from design_parity.models.design import Dependency, ImplementationOrderEntry, Section
from design_parity.models.report import BreakpointsReport, ValidationReport

STATUS_STYLES = {
    "PASS": "bold green",
    "PARTIAL": "bold yellow",
    "WARNING": "bold yellow",
    "FAIL": "bold red",
    "ERROR": "bold magenta",
    "NOT_TESTED": "dim",
}

SEVERITY_STYLES = {
    "critical": "red",
    "moderate": "yellow",
    "warning": "cyan",
    "minor": "dim",
}


def _status(status: str) -> str:
    style = STATUS_STYLES.get(status, "bold")
    return f"[{style}]{status}[/{style}]"


def render_report(report: ValidationReport, console: Console) -> None:
    """Print a validation report: verdict, per-mode details, issues, recommendations."""
    header = f"{_status(report.status)}  score {report.score:g}%  mode {report.mode}"
    if report.error:
        header += f"\n[magenta]{report.error}[/magenta]"
    console.print(Panel(header, title="Design parity", expand=False))

    visual = report.details.get("visual")
    if isinstance(visual, dict):
        _render_visual(visual, console)

    if report.issues:
        table = Table(title="Issues")
        table.add_column("Severity")
        table.add_column("Type")
        table.add_column("Location")
        table.add_column("Message")
        for issue in report.issues:
            style = SEVERITY_STYLES.get(issue.severity, "")
            table.add_row(f"[{style}]{issue.severity}[/{style}]" if style else issue.severity,
                          issue.type, issue.location, issue.message)
        console.print(table)

    if report.recommendations:
        console.print("\n[bold]Recommendations[/bold]")
        for i, rec in enumerate(report.recommendations, 1):
            console.print(f"  {i}. {rec}")

    if report.hint:
        console.print(f"\n[blue]Hint:[/blue] {report.hint}")
    if report.summary:
        console.print(f"\n{report.summary}")


def _render_visual(visual: dict, console: Console) -> None:
    chunking = visual.get("chunking")
    if chunking:
        console.print(f"\n[bold]Chunk grid[/bold] {chunking['columns']}x{chunking['rows']} "
                      f"({chunking['failed_chunks']} of {chunking['total_chunks']} below threshold)")
        console.print(chunking["grid_map"], highlight=False)

    sections = visual.get("sections")
    if sections:
        title = f"Sections ({_status(sections['status'])}, {display_score(sections['overall_score'])}%)"
        table = Table(title=title)
        table.add_column("Id")
        table.add_column("Name")
        table.add_column("Status")
        table.add_column("Match", justify="right")
        table.add_column("Bounds")
        for s in sections["sections"]:
            b = s["bounds"]
            table.add_row(s["id"], s["name"], _status(s["status"]), f"{display_score(s['match_score'])}%",
                          f"{b['width']}x{b['height']} @ {b['x']},{b['y']}")
        console.print(table)
        if sections.get("implementation_order"):
            console.print("[bold]Implementation order:[/bold] " + " -> ".join(
                e["section_id"] for e in sections["implementation_order"]
            ))


def render_sections(
    sections: list[Section],
    dependencies: list[Dependency],
    order: list[ImplementationOrderEntry],
    console: Console,
) -> None:
    """Print a section plan without running any comparison."""
    table = Table(title=f"Sections ({len(sections)})")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Background")
    table.add_column("Bounds")
    table.add_column("Nodes", justify="right")
    for s in sections:
        b = s.bounds
        table.add_row(s.id, s.name, s.bg_color, f"{b.width}x{b.height} @ {b.x},{b.y}", str(len(s.nodes)))
    console.print(table)

    if dependencies:
        dep_table = Table(title="Cross-section elements")
        dep_table.add_column("Element")
        dep_table.add_column("Spans")
        dep_table.add_column("Depends on")
        for d in dependencies:
            dep_table.add_row(d.element, ", ".join(d.affected_sections), ", ".join(d.depends_on))
        console.print(dep_table)

    order_table = Table(title="Implementation order")
    order_table.add_column("#", justify="right")
    order_table.add_column("Section")
    order_table.add_column("Reason")
    for entry in order:
        order_table.add_row(str(entry.priority), f"{entry.section_id} ({entry.section_name})", entry.reason)
    console.print(order_table)


def render_breakpoints(report: BreakpointsReport, console: Console) -> None:
    """Print a breakpoint sweep: one row per viewport, then its fixes."""
    console.print(Panel(f"{_status(report.status)}  {report.summary}", title="Breakpoints", expand=False))

    table = Table()
    table.add_column("Breakpoint", style="bold")
    table.add_column("Viewport")
    table.add_column("Status")
    table.add_column("Score")
    table.add_column("Checks (pass/warn/fail)")
    for bp in report.breakpoints:
        tested = bp.status not in ("ERROR", "NOT_TESTED")
        table.add_row(
            bp.breakpoint,
            f"{bp.width}x{bp.height}",
            _status(bp.status),
            f"{bp.score:g}%" if tested else "-",
            f"{bp.checks_passed}/{bp.checks_warned}/{bp.checks_failed}" if tested else "-",
        )
    console.print(table)

    for bp in report.breakpoints:
        if not (bp.reason or bp.priority_fixes):
            continue
        console.print(f"\n[bold]{bp.breakpoint}[/bold]")
        if bp.reason:
            console.print(f"  {bp.reason}")
        for i, fix in enumerate(bp.priority_fixes, 1):
            console.print(f"  {i}. {fix}")

    if report.recommendation:
        console.print(f"\n{report.recommendation}")
