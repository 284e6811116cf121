"""
Display helpers for the mailsim CLI.

Progress lines per tick, a world summary, and the cost table.
"""

from rich.console import Console
from rich.table import Table

from ..llm.router import CumulativeUsage
from ..state.schema import TensionStatus, TickResult, WorldState


# Shared console instance
console = Console()

THEME = {
    "primary": "steel_blue",
    "secondary": "grey70",
    "warning": "dark_goldenrod",
    "danger": "dark_red",
    "accent": "cyan",
    "dim": "dim",
}

TENSION_COLORS = {
    TensionStatus.BUILDING: THEME["secondary"],
    TensionStatus.ACTIVE: THEME["warning"],
    TensionStatus.CLIMAX: THEME["danger"],
    TensionStatus.RESOLVING: THEME["accent"],
    TensionStatus.RESOLVED: THEME["dim"],
}


def show_world_header(world: WorldState, path: str):
    """Show what is about to be simulated."""
    table = Table(
        title=f"[bold {THEME['primary']}]{path}[/bold {THEME['primary']}]",
        show_header=False,
        box=None,
    )
    table.add_column("Key", style=THEME["dim"])
    table.add_column("Value", style=THEME["secondary"])

    table.add_row("Characters", f"{len(world.characters)}")
    table.add_row("Tensions", f"{len(world.tensions)}")
    table.add_row("Documents", f"{len(world.documents)}")
    table.add_row("Existing emails", f"{len(world.emails)}")
    table.add_row("Tick", f"{world.tick_count}")

    console.print(table)


def show_tick(result: TickResult):
    """One progress line per tick."""
    m = result.metrics
    fallbacks = sum(
        1 for e in result.new_emails
        if e.generated_by and e.generated_by.template_fallback
    )
    line = (
        f"[{THEME['accent']}]Tick {result.tick_number}[/{THEME['accent']}] "
        f"{m.emails_generated}/{m.events_generated} emails "
        f"[{THEME['dim']}]{result.simulated_time_end:%Y-%m-%d %H:%M} | {m.duration_ms}ms[/{THEME['dim']}]"
    )
    if fallbacks:
        line += f" [{THEME['warning']}]{fallbacks} template[/{THEME['warning']}]"
    if m.tensions_resolved:
        line += f" [{THEME['accent']}]{m.tensions_resolved} resolving[/{THEME['accent']}]"
    console.print(line)


def show_world_summary(world: WorldState):
    console.print()
    console.print(
        f"[bold {THEME['primary']}]{len(world.emails)} emails[/bold {THEME['primary']}] "
        f"in {len(world.threads)} threads over {world.tick_count} ticks"
    )
    for tension in world.tensions:
        color = TENSION_COLORS.get(tension.status, THEME["secondary"])
        console.print(
            f"  [{color}]{tension.status.value:<9}[/{color}] "
            f"{tension.intensity:.2f} {tension.description}"
        )


def show_cost_table(usage: CumulativeUsage):
    """Per-provider calls, tokens and cost."""
    table = Table(title=f"[bold {THEME['primary']}]Generation cost[/bold {THEME['primary']}]")
    table.add_column("Model", style=THEME["secondary"])
    table.add_column("Calls", justify="right")
    table.add_column("Failed", justify="right", style=THEME["warning"])
    table.add_column("Tokens in", justify="right")
    table.add_column("Tokens out", justify="right")
    table.add_column("Cost", justify="right", style=THEME["accent"])

    for model_id, stats in usage.by_model.items():
        if not stats.call_count and not stats.failed_calls:
            continue
        table.add_row(
            model_id,
            f"{stats.call_count}",
            f"{stats.failed_calls}",
            f"{stats.input_tokens:,}",
            f"{stats.output_tokens:,}",
            f"${stats.estimated_cost:.4f}",
        )

    table.add_row(
        "[bold]Total[/bold]",
        f"{usage.call_count}",
        f"{usage.failed_calls}",
        f"{usage.total_input_tokens:,}",
        f"{usage.total_output_tokens:,}",
        f"[bold]${usage.total_cost:.4f}[/bold]",
    )
    console.print(table)
