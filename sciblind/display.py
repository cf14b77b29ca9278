"""Rich UI components for study rankings and progress."""

import math
from collections.abc import Sequence

from rich import box
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sciblind.models import DataStatus
from sciblind.orchestrator import CategoryProgress
from sciblind.ranking.rankings import PositionBiasSummary, RankingEntry
from sciblind.ranking.statistics import ThresholdResult, TransitivityResult

# Shared console instance
console = Console()

_STATUS_STYLE = {
    DataStatus.INSUFFICIENT: "red",
    DataStatus.PUBLISHABLE: "green",
    DataStatus.CONFIRMATION: "bold green",
}


def _check(met: bool) -> str:
    return "[green]✓[/green]" if met else "[red]✗[/red]"


def create_rankings_table(
    entries: Sequence[RankingEntry],
    title: str = "Rankings",
    initial_elo: float = 1500.0,
    top_n: int = 10
) -> Table:
    """Create a Rich table showing ranked items."""
    table = Table(
        title=f"[bold cyan]{title}[/bold cyan]",
        box=box.ROUNDED,
        show_lines=False,
        header_style="bold magenta",
        title_justify="left",
    )

    table.add_column("Rank", style="dim", width=5, justify="center")
    table.add_column("Elo", style="yellow", width=16, justify="right")
    table.add_column("± SE", style="dim", width=6, justify="right")
    table.add_column("W/L", style="green", width=8, justify="center")
    table.add_column("Left %", style="dim", width=7, justify="right")
    table.add_column("Conf.", width=7, justify="center")
    table.add_column("Item", style="cyan", max_width=40, overflow="ellipsis")

    shown = entries[:top_n] if top_n > 0 else entries

    for entry in shown:
        elo_diff = entry.elo_rating - initial_elo
        if elo_diff > 0:
            elo_str = f"[green]{entry.elo_rating:.0f}[/green] [dim](+{elo_diff:.0f})[/dim]"
        elif elo_diff < 0:
            elo_str = f"[red]{entry.elo_rating:.0f}[/red] [dim]({elo_diff:.0f})[/dim]"
        else:
            elo_str = f"{entry.elo_rating:.0f}"

        se_str = "-" if math.isinf(entry.elo_std_error) else f"{entry.elo_std_error:.0f}"

        table.add_row(
            str(entry.rank),
            elo_str,
            se_str,
            f"{entry.win_count}/{entry.loss_count}",
            str(entry.position_bias),
            entry.confidence,
            entry.label or entry.id,
        )

    if len(entries) > len(shown):
        table.add_row(
            "...", "", "", "", "", "",
            f"[dim]and {len(entries) - len(shown)} more items[/dim]",
        )

    return table


def create_progress_table(progress: Sequence[CategoryProgress]) -> Table:
    """Per-category session progress."""
    table = Table(
        title="[bold cyan]Session Progress[/bold cyan]",
        box=box.ROUNDED,
        header_style="bold magenta",
        title_justify="left",
    )

    table.add_column("Category", style="cyan")
    table.add_column("Items", justify="right")
    table.add_column("Done", justify="right")
    table.add_column("Target", justify="right")
    table.add_column("%", justify="right", style="yellow")
    table.add_column("Coverage", justify="center")
    table.add_column("Complete", justify="center")

    for p in progress:
        table.add_row(
            p.category_id or "-",
            str(p.item_count),
            str(p.completed),
            str(p.target),
            str(p.percentage),
            _check(p.coverage_achieved),
            _check(p.is_complete),
        )

    return table


def create_threshold_panel(
    threshold: ThresholdResult,
    transitivity: TransitivityResult | None = None,
    bias: PositionBiasSummary | None = None,
    title: str = "Data Quality"
) -> Panel:
    """Panel summarising publishability, transitivity and position bias."""
    conditions = threshold.conditions
    style = _STATUS_STYLE[threshold.data_status]

    content = Text()
    content.append("Status: ", style="bold")
    content.append(f"{threshold.data_status.value.upper()}\n\n", style=style)

    exposures = conditions.min_exposures
    content.append_text(Text.from_markup(
        f"{_check(exposures.met)} Min exposures: {exposures.min_observed}/{exposures.required}"
        f" [dim]({exposures.items_below_threshold} items below)[/dim]\n"
    ))
    total = conditions.total_comparisons
    content.append_text(Text.from_markup(
        f"{_check(total.met)} Comparisons: {total.observed}/{total.required}\n"
    ))
    graph = conditions.graph_connectivity
    content.append_text(Text.from_markup(
        f"{_check(graph.met)} Connected graph: {graph.component_count} component(s)\n"
    ))

    if transitivity is not None:
        if transitivity.computed:
            content.append(
                f"\nTransitivity: {transitivity.transitivity_index:.3f} "
                f"({transitivity.circular_triad_count}/{transitivity.total_triads} circular)\n",
                style="dim",
            )
        else:
            content.append("\nTransitivity: not computed (too many items)\n", style="dim")

    if bias is not None:
        bias_style = "green" if bias.status == "good" else "yellow"
        content.append(f"Left share: {bias.left_share}%\n", style=bias_style)

    return Panel(
        content,
        title=f"[bold]{title}[/bold]",
        border_style=style,
        box=box.ROUNDED,
    )


def create_category_report(
    category_label: str,
    entries: Sequence[RankingEntry],
    threshold: ThresholdResult,
    transitivity: TransitivityResult | None = None,
    bias: PositionBiasSummary | None = None,
    top_n: int = 10
) -> Group:
    """Rankings table and quality panel for one category."""
    return Group(
        create_rankings_table(entries, title=f"Rankings: {category_label}", top_n=top_n),
        create_threshold_panel(threshold, transitivity, bias, title=f"Data Quality: {category_label}"),
        Text(),
    )
