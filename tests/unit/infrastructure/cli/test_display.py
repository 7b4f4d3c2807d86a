import io
from unittest.mock import MagicMock

import pytest
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from resilayer.core.services.health_service import HealthCheckResult
from resilayer.infrastructure.cli.display import SummaryDisplay
from resilayer.infrastructure.config.settings import ResilienceSettings

@pytest.fixture
def mock_console():
    """Fixture to create a mock rich Console object."""
    return MagicMock()

@pytest.fixture
def summary_display(mock_console: MagicMock):
    display = SummaryDisplay()
    display.console = mock_console # Inject the mock
    return display

@pytest.fixture
def recording_display():
    """A display writing plain text into a buffer."""
    buffer = io.StringIO()
    display = SummaryDisplay(console=Console(file=buffer, width=120, color_system=None))
    return display, buffer

def test_display_error_prints_panel(summary_display: SummaryDisplay, mock_console: MagicMock):
    summary_display.display_error("Something went wrong")
    mock_console.print.assert_called_once()
    args, _ = mock_console.print.call_args
    assert isinstance(args[0], Panel)
    assert args[0].renderable.plain == "Something went wrong"

def test_display_info_prints_panel(summary_display: SummaryDisplay, mock_console: MagicMock):
    summary_display.display_info("Process completed")
    args, _ = mock_console.print.call_args
    assert isinstance(args[0], Panel)
    assert "Info" in args[0].title

def test_display_settings_one_row_per_key(summary_display: SummaryDisplay, mock_console: MagicMock):
    summary_display.display_settings(ResilienceSettings().as_dict())
    table = mock_console.print.call_args.args[0]
    assert isinstance(table, Table)
    # cache(2) + rate_limit(2) + retry(4) + metrics(1) + logging(3)
    assert table.row_count == 12

def test_display_cache_stats_renders_values(recording_display):
    display, buffer = recording_display
    display.display_cache_stats({
        "size": 2, "max_size": 10, "hit_count": 3, "miss_count": 1, "hit_rate": 0.75, "eviction_count": 4,
    })
    output = buffer.getvalue()
    assert "2/10" in output
    assert "75.0%" in output
    assert "Evictions" in output

def test_display_metrics_summary(recording_display):
    display, buffer = recording_display
    display.display_metrics_summary({
        "total_operations": 4,
        "average_response_time": 12.5,
        "cache_hit_rate": 0.5,
        "error_rate": 0.25,
        "operation_counts": {"fetch": 3, "lookup": 1},
    })
    output = buffer.getvalue()
    assert "fetch" in output
    assert "avg=12.50ms" in output
    assert "25.0%" in output

def test_display_health(recording_display):
    display, buffer = recording_display
    results = [
        HealthCheckResult(name="cache", status="pass", message="ok", timestamp=0.0, duration_ms=0.1),
        HealthCheckResult(name="metrics", status="fail", message="High error rate", timestamp=0.0, duration_ms=0.1),
    ]
    display.display_health("degraded", results)
    output = buffer.getvalue()
    assert "Health: degraded" in output
    assert "High error rate" in output
    assert "fail" in output

def test_display_counters(recording_display):
    display, buffer = recording_display
    display.display_counters("Outcomes", {"succeeded": 7, "failed": 1})
    output = buffer.getvalue()
    assert "Outcomes" in output
    assert "succeeded" in output
    assert "7" in output
