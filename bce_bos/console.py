"""Rich-based output for the bos-request command."""

from typing import Any, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table

from bce_bos.http_client import BceClientError, BceServerError
from bce_bos.models import HttpResponse


class ResponsePrinter:
    """Formats responses and errors for the terminal.

    Args:
        quiet: If True, print only the body (or nothing for an empty body)
        console: Console to write to (defaults to stdout)
    """

    def __init__(self, quiet: bool = False, console: Optional[Console] = None):
        # Use legacy_windows=True for ASCII-safe output on Windows consoles
        self.console = console or Console(legacy_windows=True)
        self.quiet = quiet

    def print_response(self, method: str, path: str, response: HttpResponse) -> None:
        """Print status line, headers and body."""
        if not self.quiet:
            self.console.print(Panel(
                f"[bold]{method} {path}[/bold]  ->  [green]{response.status_code}[/green]",
                box=box.ASCII,
                expand=False,
            ))
            self.console.print(self._headers_table(response.http_headers))
            self.console.print(Rule(style="dim"))
        self._print_body(response.body)

    def print_written(self, path: str, size: int) -> None:
        if not self.quiet:
            self.console.print(f"Response body written to [bold]{path}[/bold] ({size} bytes)")

    def print_error(self, error: Exception) -> None:
        """Print a BceServerError/BceClientError summary."""
        if isinstance(error, BceServerError):
            details = [f"[red]HTTP {error.status_code}[/red]"]
            if error.code:
                details.append(f"code={error.code}")
            if error.request_id:
                details.append(f"request_id={error.request_id}")
            self.console.print(" ".join(details))
            self.console.print(error.message, markup=False)
        elif isinstance(error, BceClientError):
            self.console.print(f"[red]Request failed ({error.code})[/red]")
            self.console.print(str(error), markup=False)
        else:
            self.console.print(f"[red]Error:[/red] {error}")

    def _headers_table(self, headers: dict[str, str]) -> Table:
        table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
        table.add_column("Header")
        table.add_column("Value", overflow="fold")
        for name in sorted(headers):
            table.add_row(name, headers[name])
        return table

    def _print_body(self, body: Any) -> None:
        if isinstance(body, bytes):
            self.console.print(body.decode("utf-8", errors="replace"), markup=False)
        elif body or not self.quiet:
            self.console.print_json(data=body)
