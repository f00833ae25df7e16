"""Output formatters for different formats."""

import json
from typing import Any

import yaml
from rich.console import Console
from rich.table import Table
from rich.text import Text

console = Console()

OUTPUT_FORMATS = ("pretty", "json", "yaml", "table", "quiet")

# Status Icons
STATUS_ICONS = {
    "pending": "⬜",
    "active": "▶️",
    "completed": "☑️",
    "archived": "🗃️",
}

STATUS_COLORS = {
    "pending": "white",
    "active": "bold cyan",
    "completed": "dim green",
    "archived": "dim",
}

SEVERITY_COLORS = {
    "high": "bold red",
    "medium": "yellow",
    "low": "blue",
}


def format_output(data: Any, output_format: str = "pretty") -> None:
    """Format and display output based on format."""
    if output_format == "json":
        print(json.dumps(data, indent=2, default=str, ensure_ascii=False))
    elif output_format == "yaml":
        print(yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True))
    elif output_format == "table":
        format_table(data)
    elif output_format == "quiet":
        format_quiet(data)
    else:
        # Default to pretty
        format_pretty(data)


def format_table(data: Any) -> None:
    """Format data as a table."""
    if not data:
        console.print("[yellow]No data to display[/yellow]")
        return

    if isinstance(data, list):
        if isinstance(data[0], dict):
            format_dict_table(data)
        else:
            for item in data:
                console.print(item)
    elif isinstance(data, dict):
        if "tasks" in data and isinstance(data["tasks"], list):
            format_dict_table(data["tasks"])
        elif "anomalies" in data and isinstance(data["anomalies"], list):
            format_dict_table(data["anomalies"])
        else:
            format_single_item(data)
    else:
        console.print(data)


def _cell(value: Any) -> str:
    if isinstance(value, bool):
        return "✓" if value else "✗"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str) if value else "-"
    if value is None:
        return "-"
    return str(value)


def format_dict_table(items: list[dict]) -> None:
    """Format a list of dictionaries as a table."""
    if not items:
        console.print("[yellow]No items found[/yellow]")
        return

    # Determine columns based on first item
    columns = list(items[0].keys())

    table = Table(show_header=True, header_style="bold magenta")
    for col in columns:
        table.add_column(col.replace("_", " ").title())

    for item in items:
        table.add_row(*(_cell(item.get(col, "")) for col in columns))

    console.print(table)


def format_single_item(item: dict) -> None:
    """Format a single item as key-value pairs."""
    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")

    for key, value in item.items():
        table.add_row(key.replace("_", " ").title(), _cell(value))

    console.print(table)


def format_quiet(data: Any) -> None:
    """Print ids only, one per line."""
    if isinstance(data, dict) and "tasks" in data:
        data = data["tasks"]
    if isinstance(data, list):
        for item in data:
            console.print(item.get("id", "") if isinstance(item, dict) else item)
    elif isinstance(data, dict) and "id" in data:
        console.print(data["id"])


def format_error(message: str) -> None:
    """Format and display an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def format_success(message: str) -> None:
    """Format and display a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def format_warning(message: str) -> None:
    """Format and display a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def format_info(message: str) -> None:
    """Format and display an info message."""
    console.print(f"[bold blue]Info:[/bold blue] {message}")


# ============================================================================
# Pretty Format Implementation
# ============================================================================


def format_pretty(data: Any) -> None:
    """Format data in pretty format with colors and icons."""
    if not data:
        console.print("[yellow]No data to display[/yellow]")
        return

    if isinstance(data, list):
        if isinstance(data[0], dict) and "content" in data[0]:
            format_tasks_pretty(data)
        else:
            for item in data:
                console.print(item)
    elif isinstance(data, dict):
        if "tasks" in data and isinstance(data["tasks"], list):
            format_tasks_pretty(data["tasks"])
        elif "anomalies" in data:
            format_integrity_pretty(data)
        elif "by_state" in data:
            format_metrics_pretty(data)
        elif "content" in data and "status" in data:
            format_task_item(data)
        else:
            format_single_item(data)
    else:
        console.print(data)


def format_tasks_pretty(tasks: list[dict]) -> None:
    """Format tasks grouped by lifecycle state."""
    if not tasks:
        console.print("[yellow]No tasks found[/yellow]")
        return

    open_count = sum(1 for t in tasks if t.get("status") in ("pending", "active"))
    header = Text()
    header.append("📋 Tasks ", style="bold cyan")
    header.append(f"({open_count} open, {len(tasks)} shown)", style="dim")
    console.print(header)
    console.print()

    for status in ("active", "pending", "completed", "archived"):
        group = [t for t in tasks if t.get("status") == status]
        if not group:
            continue
        console.print(f"{status.upper()} ({len(group)})", style=STATUS_COLORS[status])
        for task in group:
            format_task_item(task, indent="  ")
        console.print()


def format_task_item(task: dict, indent: str = "") -> None:
    """Format a single task line."""
    status = task.get("status", "pending")
    icon = STATUS_ICONS.get(status, "❓")
    line = Text(f"{indent}{icon} ")
    order = task.get("order")
    if order is not None:
        line.append(f"{order:>3} ", style="dim")
    line.append(str(task.get("content", "Untitled")), style=STATUS_COLORS.get(status, ""))
    for tag in task.get("tags") or []:
        line.append(f" #{tag}", style="blue")
    line.append(f"  {str(task.get('id', ''))[:8]}", style="dim")
    console.print(line)


def format_metrics_pretty(metrics: dict) -> None:
    """Format the metrics summary."""
    table = Table(title="📊 Metrics", show_header=False, box=None)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Total", str(metrics.get("total", 0)))
    for state, count in (metrics.get("by_state") or {}).items():
        table.add_row(f"  {state}", str(count))
    table.add_row("Completion rate", f"{metrics.get('completion_rate', 0.0):.0%}")
    average = metrics.get("average_completion_seconds")
    table.add_row(
        "Avg. time to complete",
        f"{average / 3600:.1f}h" if average is not None else "-",
    )
    oldest = metrics.get("oldest_pending")
    table.add_row("Oldest pending", oldest["content"] if oldest else "-")
    for name, window in (metrics.get("activity") or {}).items():
        table.add_row(
            name.replace("_", " ").title(),
            f"{window.get('created', 0)} created, {window.get('completed', 0)} completed",
        )
    console.print(table)


def format_integrity_pretty(report: dict) -> None:
    """Format an integrity report."""
    anomalies = report.get("anomalies") or []
    if not anomalies:
        console.print(
            f"[bold green]✓[/bold green] No anomalies in {report.get('total_records', 0)} record(s)"
        )
        return

    table = Table(title=f"🩺 {len(anomalies)} anomaly(ies)", header_style="bold magenta")
    table.add_column("Severity")
    table.add_column("Type")
    table.add_column("Task")
    table.add_column("Description")
    table.add_column("Suggested fix")
    for anomaly in anomalies:
        severity = anomaly.get("severity", "low")
        table.add_row(
            Text(severity, style=SEVERITY_COLORS.get(severity, "")),
            anomaly.get("type", ""),
            str(anomaly.get("task_id") or "-")[:8],
            anomaly.get("description", ""),
            anomaly.get("suggested_fix") or "-",
        )
    console.print(table)
