"""Console utilities for TaskMate."""

from functools import lru_cache

from rich.console import Console


@lru_cache(maxsize=2)
def get_console(highlight: bool = True) -> Console:
    """Get a Rich Console instance for consistent output formatting."""
    return Console(highlight=highlight)


def apply_color_setting(color: bool) -> None:
    """Turn colour off on the shared console when ``output.color`` is false."""
    if not color:
        get_console().no_color = True
