"""
Command Line Interface entry point using Typer.
"""
import platform
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.panel import Panel

from .audit import AuditLogger, get_audit_log
from .backup import init_session, list_sessions, prune_old_sessions, session_lock
from .config import load_settings
from .decisions import AutoDecisions, InteractiveDecisions
from .detect import StateDetector, run_detection
from .errors import DevSetupError
from .models import ExecutionMode, ModuleStatus, Settings
from .modules import ModuleContext, get_modules
from .restore import restore_session
from .runner import RunReport, run_modules, select_modules
from .ui import (
    check_mark,
    console,
    log_info,
    log_success,
    log_warn,
    render_banner,
    render_error,
    render_status,
    render_table,
    set_verbose,
)
from .utils import get_architecture, human_size, setup_signal_handlers

VERSION = "1.0.0"

app = typer.Typer(
    help=(
        "[bold cyan]devsetup[/] [dim]v1.0[/]\n\n"
        "Modular, idempotent development environment setup.\n"
        "Every change is detected first, backed up, and can be rolled back.\n"
    ),
    no_args_is_help=True,
    rich_markup_mode="rich"
)

STATUS_MARKS = {ModuleStatus.OK: "pass", ModuleStatus.SKIPPED: "warn", ModuleStatus.FAILED: "fail"}


def _settings(**overrides: Any) -> Settings:
    try:
        return load_settings(overrides)
    except DevSetupError as e:
        render_error(str(e))
        raise typer.Exit(1)

def _render_report(report: RunReport) -> None:
    rows = [
        [check_mark(STATUS_MARKS[r.status]), r.name, r.status.value, r.message]
        for r in report.results
    ]
    render_table("Run Summary", ["", "Module", "Status", "Details"], rows)
    for result in report.results:
        for warning in result.warnings:
            log_warn(f"{result.name}: {warning}")

@app.command(name="run")
def run_cmd(
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would be done without making changes"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Answer yes to all prompts (non-interactive)"),
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed output and diffs"),
    skip_backup: bool = typer.Option(False, "--skip-backup", help="Skip backing up existing configs"),
    no_update: bool = typer.Option(False, "--no-update", help="Skip Homebrew update"),
    module: List[str] = typer.Option([], "--module", "-m", help="Run only this module (repeatable)"),
    skip: List[str] = typer.Option([], "--skip", help="Skip this module (repeatable)"),
    fail_fast: bool = typer.Option(False, "--fail-fast", help="Stop at the first failing module"),
    backup_dir: Optional[Path] = typer.Option(None, "--backup-dir", help="Backup base directory"),
):
    """Set up the development environment, one module at a time."""
    set_verbose(verbose)
    settings = _settings(backup_dir=backup_dir)
    mode = ExecutionMode.SIMULATE if dry_run else ExecutionMode.APPLY
    render_banner(VERSION, simulate=dry_run)

    audit = AuditLogger(enabled=not dry_run)
    setup_signal_handlers(lambda: log_warn("Terminated; releasing backup lock"))

    try:
        modules = select_modules(get_modules(), module, skip)
        with session_lock(settings.resolved_backup_dir, mode):
            session = init_session(settings.resolved_backup_dir, enabled=not skip_backup, mode=mode, home=settings.home)
            ctx = ModuleContext(
                settings=settings,
                session=session,
                decisions=AutoDecisions() if yes else InteractiveDecisions(),
                mode=mode,
                update_brew=not no_update,
                auto_yes=yes,
            )
            audit.log("run_start", session=session.session_id, modules=[m.name for m in modules])
            report = run_modules(ctx, modules, fail_fast=fail_fast)
    except DevSetupError as e:
        render_error(str(e))
        raise typer.Exit(1)

    audit.log(
        "run_end",
        session=session.session_id,
        backup_dir=report.backup_dir,
        failed=[r.name for r in report.failed],
        aborted=report.aborted,
    )
    _render_report(report)

    if not report.success:
        render_error(f"{len(report.failed)} module(s) failed" + (" (run aborted)" if report.aborted else ""))
        raise typer.Exit(report.exit_code)
    log_success("All modules completed!")

@app.command(name="restore")
def restore_cmd(
    session_id: str = typer.Argument(..., help="Backup session ID (YYYYMMDD_HHMMSS)"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would be restored"),
    backup_dir: Optional[Path] = typer.Option(None, "--backup-dir", help="Backup base directory"),
):
    """Restore every file of a backup session to its original location."""
    settings = _settings(backup_dir=backup_dir)
    mode = ExecutionMode.SIMULATE if dry_run else ExecutionMode.APPLY
    render_banner(VERSION, simulate=dry_run)
    try:
        result = restore_session(settings.resolved_backup_dir, session_id, mode)
    except DevSetupError as e:
        render_error(str(e))
        raise typer.Exit(1)

    AuditLogger(enabled=not dry_run).log(
        "restore",
        session=session_id,
        restored=result.restored_count,
        skipped=len(result.skipped),
        failed=len(result.failed),
    )
    if result.failed:
        raise typer.Exit(1)

@app.command(name="backups")
def backups_cmd(
    backup_dir: Optional[Path] = typer.Option(None, "--backup-dir", help="Backup base directory"),
):
    """List backup sessions, newest first."""
    settings = _settings(backup_dir=backup_dir)
    sessions = list(list_sessions(settings.resolved_backup_dir))
    if not sessions:
        render_status("info", f"No backups found in {settings.resolved_backup_dir}")
        return

    rows = [
        [s.session_id, str(s.file_count), human_size(s.size_bytes), str(s.path)]
        for s in reversed(sessions)
    ]
    render_table("Available Backups", ["Session", "Files", "Size", "Location"], rows)
    log_info("Restore with: devsetup restore <session>")

@app.command(name="prune")
def prune_cmd(
    keep: Optional[int] = typer.Option(None, "--keep", "-k", min=0, help="Sessions to keep (default from settings)"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would be removed"),
    backup_dir: Optional[Path] = typer.Option(None, "--backup-dir", help="Backup base directory"),
):
    """Delete all but the most recent backup sessions."""
    settings = _settings(backup_dir=backup_dir, keep_backups=keep)
    mode = ExecutionMode.SIMULATE if dry_run else ExecutionMode.APPLY
    try:
        with session_lock(settings.resolved_backup_dir, mode):
            removed = prune_old_sessions(settings.resolved_backup_dir, settings.keep_backups, mode)
    except DevSetupError as e:
        render_error(str(e))
        raise typer.Exit(1)

    AuditLogger(enabled=not dry_run).log("prune", keep=settings.keep_backups, removed=[p.name for p in removed])
    if not removed:
        render_status("info", "Nothing to prune.")

@app.command(name="modules")
def modules_cmd():
    """List the available setup modules in run order."""
    rows = [[m.name, m.description] for m in get_modules()]
    render_table("Modules", ["Name", "Description"], rows)

@app.command(name="detect")
def detect_cmd(
    verbose: bool = typer.Option(False, "--verbose", help="Show probe details"),
):
    """Show what is already installed. Changes nothing."""
    set_verbose(verbose)
    settings = _settings()
    detector = StateDetector(settings.home, timeout=settings.command_timeout)

    info: Dict[str, str] = {
        "Platform": platform.system(),
        "Architecture": get_architecture(),
    }
    macos = detector.macos_version()
    if macos:
        info["macOS"] = macos
        info["Rosetta"] = "yes" if detector.rosetta() else "no"
    console.print(Panel(
        "\n".join(f"[bold]{k}:[/] {v}" for k, v in info.items()),
        title="System",
        border_style="cyan",
        expand=False,
    ))

    rows = []
    for section, cap in run_detection(detector):
        detail = (cap.version or "installed") if cap.installed else "not installed"
        rows.append([section, check_mark("pass" if cap.installed else "warn"), cap.name, detail])
    render_table("Detection Summary", ["Section", "", "Capability", "Details"], rows)

@app.command(name="audit")
def show_audit(last_n: int = typer.Option(50, "--last", "-n", help="Number of recent events to show")):
    """Show recent audit logs."""
    events = get_audit_log(last_n)
    if not events:
        render_status("info", "No audit events found.")
        return

    rows = [[e.get("timestamp", ""), e.get("event", ""), str(e.get("details", ""))] for e in events]
    render_table("Audit Log", ["Timestamp", "Event", "Details"], rows)

@app.command(name="version")
def version_cmd():
    """Display devsetup version information."""
    console.print(Panel(
        f"[bold cyan]devsetup[/] v{VERSION}\n[dim]Modular, idempotent development environment setup[/]",
        border_style="cyan",
        expand=False,
    ))


if __name__ == "__main__":
    app()
