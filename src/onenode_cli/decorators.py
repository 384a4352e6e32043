"""Command decorators and error output shared by the CLI commands."""

from functools import wraps
from typing import Callable, NoReturn

from rich.console import Console
from rich.markup import escape

from .errors import BootstrapError

console = Console(stderr=True)


def fail(error: BootstrapError) -> NoReturn:
    """Print a marked error on stderr and exit 1."""
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    raise SystemExit(1)


def reports_errors(func: Callable):
    """Turn BootstrapError raised by a command into a marked error and exit 1."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except BootstrapError as e:
            fail(e)

    return wrapper
