"""Output rendering for service listings and details."""

from io import StringIO

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ser.models import FsServiceDetails, ServiceRow


COLUMNS = ["Name", "Type", "Status", "Enabled", "Schedule", "Path"]


def _cells(row: ServiceRow) -> list[str]:
    return [
        row.name,
        row.service_type,
        row.status,
        "true" if row.enabled else "false",
        row.schedule,
        row.path,
    ]


def render_plain(rows: list[ServiceRow]) -> str:
    """Tab-separated rows without a header, for pipes and scripts."""
    return "\n".join("\t".join(_cells(row)) for row in rows)


def render_table(rows: list[ServiceRow], color: bool = True) -> str:
    """
    Render the service listing as a borderless table.

    Args:
        rows: Listing rows
        color: Emit ANSI styles

    Returns:
        Formatted string suitable for terminal display
    """
    output_buffer = StringIO()
    console = Console(file=output_buffer, width=160, force_terminal=color, no_color=not color)

    table = Table(box=None, show_header=True, header_style="bold", pad_edge=False, padding=(0, 2, 0, 0))
    for column in COLUMNS:
        table.add_column(column, no_wrap=column != "Path")

    for row in rows:
        cells = [escape(cell) for cell in _cells(row)]
        status_style = "green" if row.status == "running" else "dim"
        cells[2] = f"[{status_style}]{row.status}[/{status_style}]"
        table.add_row(*cells)

    console.print(table)
    return output_buffer.getvalue().rstrip("\n")


def render_details(details: FsServiceDetails, color: bool = True) -> str:
    """Render a single service as aligned "Key: value" lines."""
    output_buffer = StringIO()
    console = Console(file=output_buffer, width=160, force_terminal=color, no_color=not color)
    service = details.service

    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="bold cyan", justify="right")
    grid.add_column()

    grid.add_row("Service:", f"[bold]{escape(service.name)}[/bold]")
    grid.add_row("Path:", escape(details.path))
    grid.add_row("Status:", "[green]Running[/green]" if details.running else "Stopped")
    grid.add_row("Enabled:", "Yes" if details.enabled else "No")
    if service.program:
        grid.add_row("Program:", escape(service.program))
    if service.arguments:
        grid.add_row("Arguments:", escape(" ".join(service.arguments)))
    if service.working_directory:
        grid.add_row("Working Directory:", escape(service.working_directory))
    if service.env_file:
        grid.add_row("Environment File:", escape(service.env_file))
    for key, value in service.env_vars:
        grid.add_row("Environment:", escape(f"{key}={value}"))
    if service.after:
        grid.add_row("After:", escape(" ".join(service.after)))

    if service.schedule is not None:
        grid.add_row("Schedule:", service.schedule.display())
    else:
        grid.add_row("Run at Load:", "Yes" if service.run_at_load else "No")
        grid.add_row("Keep Alive:", "Yes" if service.keep_alive else "No")

    console.print(grid, markup=True)
    return output_buffer.getvalue().rstrip("\n")
