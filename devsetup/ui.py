"""
Rich Terminal UI components.
Levelled, colourised status lines, panels and tables with a unicode fallback.
"""
import sys
from typing import Dict, List

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

# Detect ASCII fallback
try:
    "✓→".encode(sys.stdout.encoding if sys.stdout and sys.stdout.encoding else "utf-8")
    HAS_UNICODE = True
except Exception:
    HAS_UNICODE = False

ICONS: Dict[str, str] = {
    "debug": "·",
    "info": "ℹ",
    "success": "✓",
    "warn": "⚠",
    "error": "✗",
    "step": "==>",
    "substep": "  →",
    "dry_run": "[DRY-RUN]",
    "backup": "⎘",
    "restore": "↺",
    "pending": "○",
}

ASCII_ICONS: Dict[str, str] = {
    "debug": "[DEBUG]",
    "info": "[INFO]",
    "success": "[OK]",
    "warn": "[WARN]",
    "error": "[ERROR]",
    "step": "==>",
    "substep": "  ->",
    "dry_run": "[DRY-RUN]",
    "backup": "[BAK]",
    "restore": "[RST]",
    "pending": "[ ]",
}

STYLES: Dict[str, str] = {
    "debug": "dim",
    "info": "blue",
    "success": "green",
    "warn": "yellow",
    "error": "red",
    "step": "bold cyan",
    "substep": "cyan",
    "dry_run": "dim",
    "backup": "magenta",
    "restore": "magenta",
    "pending": "yellow",
}

def icon(name: str) -> str:
    return ICONS.get(name, "") if HAS_UNICODE else ASCII_ICONS.get(name, "")

console = Console(width=120, highlight=False)
err_console = Console(stderr=True, width=120, highlight=False)

_verbose = False

def set_verbose(enabled: bool) -> None:
    global _verbose
    _verbose = enabled

def is_verbose() -> bool:
    return _verbose

def render_banner(version: str, simulate: bool = False) -> None:
    """Render the startup banner."""
    banner_text = Text(f"devsetup v{version}\n", style="bold cyan")
    banner_text.append("Modular, idempotent development environment setup", style="dim")
    console.print(Panel(banner_text, border_style="cyan", expand=False))
    if simulate:
        console.print("[yellow]>>> DRY RUN MODE - No changes will be made <<<[/]\n")

def render_status(level: str, message: str) -> None:
    """Print a single levelled status line."""
    if level == "debug" and not _verbose:
        return
    target = err_console if level in ("warn", "error", "debug") else console
    style = STYLES.get(level, "white")
    if level == "step":
        target.print()
        target.print(f"[{style}]{icon(level)} {escape(message)}[/]")
        return
    target.print(f"[{style}]{icon(level)}[/] {escape(message)}")

def log_debug(message: str) -> None:
    render_status("debug", message)

def log_info(message: str) -> None:
    render_status("info", message)

def log_success(message: str) -> None:
    render_status("success", message)

def log_warn(message: str) -> None:
    render_status("warn", message)

def log_error(message: str) -> None:
    render_status("error", message)

def log_step(message: str) -> None:
    render_status("step", message)

def log_substep(message: str) -> None:
    render_status("substep", message)

def log_dry_run(message: str) -> None:
    render_status("dry_run", f"Would {message}")

def render_error(message: str) -> None:
    """Print a styled error panel."""
    err_console.print()
    err_console.print(Panel(Text(message, style="red"), border_style="red", expand=False, title=f"{icon('error')} ERROR"))

def render_table(title: str, headers: List[str], rows: List[List[str]]) -> None:
    """Render a structured Rich Table."""
    console.print()
    table = Table(
        title=title,
        border_style="cyan",
        header_style="bold magenta",
        box=box.ROUNDED if HAS_UNICODE else box.ASCII,
    )

    if headers:
        table.add_column(headers[0], no_wrap=True)
        for h in headers[1:]:
            table.add_column(h, justify="left", overflow="fold")

    for r in rows:
        table.add_row(*r)

    console.print(table)

def render_diff(diff_text: str) -> None:
    """Render a unified diff with syntax colouring."""
    if not diff_text:
        return
    # Undecodable bytes are carried as surrogates and cannot be printed as-is
    diff_text = diff_text.encode("utf-8", "surrogateescape").decode("utf-8", "replace")
    console.print(Syntax(diff_text, "diff", theme="ansi_dark", background_color="default"))

def check_mark(status: str) -> str:
    """Coloured marker for pass/warn/fail rows."""
    if status == "pass":
        return f"[bold green]{icon('success')}[/]"
    if status == "warn":
        return f"[bold yellow]{icon('pending')}[/]"
    return f"[bold red]{icon('error')}[/]"
