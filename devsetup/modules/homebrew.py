"""Homebrew package manager."""
from typing import List

from ..installer import HOMEBREW_INSTALL_URL, run_installer
from ..models import Capability, ModuleResult, ModuleStatus
from ..ui import log_info, log_success
from . import ModuleContext, SetupModule


class HomebrewModule(SetupModule):
    name = "01-homebrew"
    description = "Homebrew package manager"

    def detect(self, ctx: ModuleContext) -> List[Capability]:
        return [ctx.detector.detect("homebrew")]

    def apply(self, ctx: ModuleContext) -> ModuleResult:
        if ctx.brew.available():
            cap = ctx.detector.detect("homebrew")
            log_success(f"Homebrew already installed ({cap.version or 'unknown version'})")
            ctx.brew.setup_path()
            if ctx.update_brew:
                ctx.brew.update()
            else:
                log_info("Skipping Homebrew update (--no-update)")
            return self.result(ModuleStatus.OK, "Homebrew ready")

        log_info("Homebrew not found, installing...")
        run_installer(HOMEBREW_INSTALL_URL, ctx.mode, shell="/bin/bash", timeout=ctx.settings.command_timeout)
        if ctx.simulate:
            return self.result(ModuleStatus.OK, "Would install Homebrew")

        ctx.brew.setup_path()
        log_success("Homebrew installed")
        return self.result(ModuleStatus.OK, "Homebrew installed")
