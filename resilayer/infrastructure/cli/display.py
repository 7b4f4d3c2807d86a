import logging
from typing import Any, Dict, List, Mapping, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from resilayer.domain.models.common import CacheStats, MetricsSummary

logger = logging.getLogger(__name__)

_STATUS_STYLES = {"healthy": "bold green", "degraded": "bold yellow"}

class SummaryDisplay:
    """Renders component stats, metrics and health reports with rich."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def display_error(self, error_message: str) -> None:
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_settings(self, settings: Mapping[str, Mapping[str, Any]]) -> None:
        """Shows the effective settings, one row per dotted key."""
        table = Table(title="Effective settings", box=ROUNDED, border_style="cyan")
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        for section, values in settings.items():
            for key, value in values.items():
                table.add_row(f"{section}.{key}", str(value))
        self.console.print(table)

    def display_cache_stats(self, stats: CacheStats, title: str = "Cache") -> None:
        table = Table(title=title, show_header=False, box=SIMPLE, border_style="cyan")
        table.add_column("Stat", style="cyan")
        table.add_column("Value", justify="right")
        table.add_row("Entries", f"{stats['size']}/{stats['max_size']}")
        table.add_row("Hits", str(stats["hit_count"]))
        table.add_row("Misses", str(stats["miss_count"]))
        table.add_row("Hit rate", f"{stats['hit_rate']:.1%}")
        table.add_row("Evictions", str(stats["eviction_count"]))
        self.console.print(table)

    def display_metrics_summary(self, summary: MetricsSummary) -> None:
        table = Table(title="Metrics", box=ROUNDED, border_style="cyan")
        table.add_column("Operation", style="cyan")
        table.add_column("Count", justify="right")
        for name, count in sorted(summary["operation_counts"].items()):
            table.add_row(name, str(count))
        table.caption = (
            f"total={summary['total_operations']}  "
            f"avg={summary['average_response_time']:.2f}ms  "
            f"cache hit rate={summary['cache_hit_rate']:.1%}  "
            f"error rate={summary['error_rate']:.1%}"
        )
        self.console.print(table)

    def display_health(self, status: str, results: List[Any]) -> None:
        style = _STATUS_STYLES.get(status, "bold red")
        table = Table(title=f"Health: [{style}]{status}[/{style}]", box=ROUNDED, border_style="cyan")
        table.add_column("Check", style="cyan")
        table.add_column("Status")
        table.add_column("Message")
        for result in results:
            status_text = "[green]pass[/green]" if result.status == "pass" else "[red]fail[/red]"
            table.add_row(result.name, status_text, result.message)
        self.console.print(table)

    def display_counters(self, title: str, counters: Dict[str, int]) -> None:
        table = Table(title=title, show_header=False, box=SIMPLE, border_style="cyan")
        table.add_column("Name", style="cyan")
        table.add_column("Value", justify="right")
        for name, value in counters.items():
            table.add_row(name, str(value))
        self.console.print(table)
