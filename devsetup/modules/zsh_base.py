"""Oh-My-Zsh installation and default shell."""
import os
from typing import List, Optional

from ..backup import backup_file
from ..installer import OH_MY_ZSH_INSTALL_URL, run_installer
from ..models import Capability, ModuleResult, ModuleStatus
from ..ui import log_info, log_substep, log_success, log_warn
from ..utils import is_macos
from . import ModuleContext, SetupModule

ZSH_PATH = "/bin/zsh"


def current_shell(ctx: ModuleContext) -> Optional[str]:
    """The login shell: directory services on macOS, $SHELL elsewhere."""
    if is_macos():
        proc = ctx.runner(
            ["dscl", ".", "-read", str(ctx.home), "UserShell"],
            capture=True,
            timeout=ctx.settings.command_timeout,
        )
        if proc.returncode == 0 and proc.stdout:
            words = proc.stdout.split()
            return words[-1] if words else None
    return os.environ.get("SHELL")


class ZshBaseModule(SetupModule):
    name = "03-zsh-base"
    description = "Oh-My-Zsh installation"

    def detect(self, ctx: ModuleContext) -> List[Capability]:
        return [ctx.detector.detect("zsh"), ctx.detector.detect("oh-my-zsh"), ctx.detector.detect("zshrc")]

    def apply(self, ctx: ModuleContext) -> ModuleResult:
        notes = [self._ensure_default_shell(ctx), self._install_oh_my_zsh(ctx)]
        log_success("Oh-My-Zsh ready")
        return self.result(ModuleStatus.OK, "; ".join(notes))

    def _ensure_default_shell(self, ctx: ModuleContext) -> str:
        log_substep("Checking default shell")
        shell = current_shell(ctx) or "unknown"
        if "zsh" in shell:
            log_success("Default shell is zsh")
            return "zsh is the default shell"

        log_warn(f"Current shell is {shell}")
        if not ctx.decisions.ask_yes_no("Change default shell to zsh?"):
            log_info("Keeping current shell")
            return f"kept {shell}"

        ctx.run(["chsh", "-s", ZSH_PATH], "Changing default shell to zsh")
        if not ctx.simulate:
            log_success("Default shell changed to zsh")
        return "default shell set to zsh"

    def _install_oh_my_zsh(self, ctx: ModuleContext) -> str:
        log_substep("Checking Oh-My-Zsh")
        cap = ctx.detector.detect("oh-my-zsh")
        if cap.installed:
            log_success(f"Oh-My-Zsh already installed ({cap.version})")
            return "Oh-My-Zsh already installed"

        log_info("Installing Oh-My-Zsh")
        backup_file(ctx.session, ctx.zshrc, "existing zshrc before oh-my-zsh install")
        # RUNZSH=no keeps the installer from starting a shell, KEEP_ZSHRC=yes from replacing .zshrc
        run_installer(
            OH_MY_ZSH_INSTALL_URL,
            ctx.mode,
            shell="/bin/sh",
            env={"RUNZSH": "no", "KEEP_ZSHRC": "yes"},
            timeout=ctx.settings.command_timeout,
        )
        if ctx.simulate:
            return "would install Oh-My-Zsh"
        log_success("Oh-My-Zsh installed")
        return "Oh-My-Zsh installed"
