from rich.console import Console as RichConsole
from rich.markup import escape


class Console:
    """Console wrapper for CLI output: results on stdout, diagnostics on stderr."""

    def __init__(self):
        self._rich = RichConsole()
        self._err = RichConsole(stderr=True)

    def print(self, *args, **kwargs):
        return self._rich.print(*args, **kwargs)

    def out(self, text: str):
        """Print a tool result verbatim, without markup processing."""
        self._rich.print(text, markup=False, highlight=False, soft_wrap=True)

    def error(self, message: str):
        self._err.print(f"[red]{escape(message)}[/red]", highlight=False)

    def status(self, *args, **kwargs):
        """Create Rich status context."""
        return self._err.status(*args, **kwargs)
