# spanlabel/cli_theme.py
"""Terminal theme for the spanlabel CLI.

Coral & greige palette:
  - Numbered section headers ("01 · SECTION NAME")
  - Rounded tables with warm greige borders
  - One color per taxonomy category for span roles
  - Status lines and badges that read on light and dark terminals
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from rich import box
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.style import Style
from rich.table import Table
from rich.text import Text

# ── Brand ─────────────────────────────────────────────────────────

BRAND = "S P A N L A B E L"
TAGLINE = "Character-accurate span labeling for video concept prompts"

# ── Palette ───────────────────────────────────────────────────────

CORAL = "#E87461"
GREIGE = "#B5A89A"
MUTED = "dim"

CATEGORY_COLORS: dict[str, str] = {
    "shot": "bright_magenta",
    "subject": CORAL,
    "action": "yellow",
    "environment": "green",
    "lighting": "bright_yellow",
    "camera": "cyan",
    "style": "magenta",
    "technical": "blue",
    "audio": "bright_blue",
}


# ── Banner ────────────────────────────────────────────────────────


def print_banner(version: str, console: Console, lm: str = "", provider: str = "") -> None:
    console.print()
    console.print(f"  [bold {CORAL}]{BRAND}[/bold {CORAL}]")
    console.print(f"  [{GREIGE}]{TAGLINE}[/{GREIGE}]")
    console.print(f"  [{MUTED}]v{version}[/{MUTED}]")
    if lm:
        rule = "─" * len(TAGLINE)
        console.print(f"  [{GREIGE}]{rule}[/{GREIGE}]")
        console.print(
            f"  [reverse {CORAL}] lm [/reverse {CORAL}] [{MUTED}]▸[/{MUTED}] [{CORAL}]{lm}[/{CORAL}]"
            + (f"   [{MUTED}]via {provider}[/{MUTED}]" if provider else "")
        )
    console.print()


def print_version(version: str, console: Console) -> None:
    t = Text()
    t.append(BRAND, style=f"bold {CORAL}")
    t.append(f"  v{version}", style=MUTED)
    console.print(t)


# ── Section headers ──────────────────────────────────────────────


def section(title: str, console: Console, number: str | None = None) -> None:
    """Print a numbered section header."""
    console.print()
    t = Text()
    if number:
        t.append(f"  {number}", style=f"bold {CORAL}")
        t.append(" · ", style=MUTED)
    else:
        t.append("  ")
    t.append(title.upper(), style="bold")
    console.print(t)
    console.print(f"  {'─' * len(TAGLINE)}", style=GREIGE)


# ── Tables ───────────────────────────────────────────────────────


def make_table(title: str | None = None, **kwargs: object) -> Table:
    return Table(
        title=title,
        box=box.ROUNDED,
        border_style=GREIGE,
        title_style=f"bold {CORAL}",
        header_style="bold",
        padding=(0, 1),
        **kwargs,
    )


def make_kv_table() -> Table:
    """Create a headerless two-column key–value table."""
    t = make_table(show_header=False)
    t.add_column("Key", style=f"bold {CORAL}", no_wrap=True)
    t.add_column("Value")
    return t


def role_markup(role: str) -> str:
    """Color a span role by its top-level category."""
    color = CATEGORY_COLORS.get(role.split(".", 1)[0], GREIGE)
    return f"[{color}]{role}[/{color}]"


# ── Inline badges ───────────────────────────────────────────────


def badge(label: str, variant: str = "default") -> str:
    """Return Rich markup for a filled status badge."""
    colors = {
        "default": CORAL,
        "pass": "green",
        "warn": "yellow",
        "fail": "red",
    }
    c = colors.get(variant, CORAL)
    return f"[reverse {c}] {label} [/reverse {c}]"


# ── Status lines ─────────────────────────────────────────────────


def info(msg: str) -> str:
    return f"  [{CORAL}]›[/{CORAL}] [{MUTED}]{msg}[/{MUTED}]"


def ok(msg: str) -> str:
    return f"  [bold green]✓[/bold green] {msg}"


def warn(msg: str) -> str:
    return f"  [bold yellow]![/bold yellow] [yellow]{msg}[/yellow]"


def err(msg: str) -> str:
    return f"  [bold red]✗[/bold red] {msg}"


# ── Progress ────────────────────────────────────────────────────


@contextmanager
def spinner(label: str, console: Console) -> Generator[None, None, None]:
    """Coral dots spinner while a generation call is in flight."""
    p = Progress(
        TextColumn(" "),
        SpinnerColumn("dots", style=Style(color=CORAL)),
        TextColumn(f"[{MUTED}]{label}[/{MUTED}]"),
        console=console,
        transient=True,
    )
    with p:
        p.add_task(label, total=None)
        yield
