"""Verification and closing instructions."""
from pathlib import Path
from typing import List

from rich.panel import Panel

from ..models import ModuleResult, ModuleStatus, VerificationCheck
from ..ui import check_mark, console, log_substep, log_success, log_warn, render_table
from . import ModuleContext, SetupModule
from .tmux import tmux_config_dir

VERIFIED_TOOLS = ["zsh", "tmux", "fzf", "oh-my-posh"]


def verify_installation(ctx: ModuleContext) -> List[VerificationCheck]:
    checks: List[VerificationCheck] = []

    for tool in VERIFIED_TOOLS:
        cap = ctx.detector.detect(tool)
        if cap.installed:
            checks.append(VerificationCheck(name=tool, status="pass", detail=cap.version or "installed"))
        else:
            checks.append(VerificationCheck(name=tool, status="fail", detail="not found"))

    omz = ctx.detector.detect("oh-my-zsh")
    checks.append(VerificationCheck(
        name="oh-my-zsh",
        status="pass" if omz.installed else "fail",
        detail="installed" if omz.installed else "not found",
    ))

    omt = ctx.detector.detect("oh-my-tmux")
    checks.append(VerificationCheck(
        name="oh-my-tmux",
        status="pass" if omt.installed else "fail",
        detail=omt.path if omt.installed and omt.path else "not found",
    ))

    local_conf = tmux_config_dir(ctx.home) / "tmux.conf.local"
    if local_conf.is_file() and "Solarized" in local_conf.read_text(encoding="utf-8", errors="replace"):
        checks.append(VerificationCheck(name="tmux theme", status="pass", detail="Solarized Dark"))
    elif local_conf.is_file():
        checks.append(VerificationCheck(name="tmux theme", status="warn", detail="custom (not Solarized)"))
    else:
        checks.append(VerificationCheck(name="tmux theme", status="fail", detail="not configured"))

    font = ctx.detector.detect("nerd-font")
    checks.append(VerificationCheck(
        name="nerd-font",
        status="pass" if font.installed else "warn",
        detail="installed" if font.installed else "not installed (optional)",
    ))
    return checks


class FinalizeModule(SetupModule):
    name = "99-finalize"
    description = "Verification and cleanup"

    def apply(self, ctx: ModuleContext) -> ModuleResult:
        log_substep("Verifying installation")
        checks = verify_installation(ctx)
        render_table(
            "Verification Results",
            ["", "Component", "Detail"],
            [[check_mark(c.status), c.name, c.detail] for c in checks],
        )

        passed = sum(1 for c in checks if c.status != "fail")
        failed = [c.name for c in checks if c.status == "fail"]
        console.print(f"Results: [green]{passed} passed[/green], [red]{len(failed)} failed[/red]")

        self._print_next_steps()

        if failed:
            message = f"Not verified: {', '.join(failed)}"
            log_warn("Some components may not be properly installed")
            # A simulated run installs nothing, so missing components are expected.
            if ctx.simulate:
                return self.result(ModuleStatus.OK, message, warnings=[message])
            return self.result(ModuleStatus.FAILED, message)

        log_success("Setup complete!")
        return self.result(ModuleStatus.OK, f"{passed} checks passed")

    def _print_next_steps(self) -> None:
        tmux_conf = Path("~/.config/tmux/tmux.conf")
        console.print()
        console.print(Panel(
            "[bold]Next Steps:[/bold]\n\n"
            "  1. Restart your terminal or run:\n"
            "     [dim]source ~/.zshrc[/dim]\n\n"
            "  2. Start tmux to see the new theme:\n"
            "     [dim]tmux[/dim]\n\n"
            "  3. If icons look broken, configure your terminal font to use\n"
            "     a Nerd Font (e.g., MesloLGS NF, Hack Nerd Font)\n\n"
            "[bold]Quick Commands:[/bold]\n"
            "  tmux list-keys\n"
            f"  tmux source-file {tmux_conf}\n"
            "  ls $(brew --prefix oh-my-posh)/themes/",
            title="Setup Complete!",
            border_style="cyan",
            expand=False,
        ))
