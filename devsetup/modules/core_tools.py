"""Core shell and tmux tools."""
from typing import List

from ..models import Capability, ModuleResult, ModuleStatus
from ..ui import render_table
from . import ModuleContext, SetupModule


class CoreToolsModule(SetupModule):
    name = "02-core-tools"
    description = "Core shell and tmux tools"

    def detect(self, ctx: ModuleContext) -> List[Capability]:
        return [ctx.detector.detect(n) for n in ("tmux", "fzf", "oh-my-posh")]

    def apply(self, ctx: ModuleContext) -> ModuleResult:
        ctx.brew.require()

        installed = [f for f in ctx.settings.core_formulas if ctx.brew.install(f)]

        if not ctx.simulate:
            rows = []
            for formula in ctx.settings.core_formulas:
                version = ctx.brew.version(formula)
                rows.append([formula, version or "not installed"])
            render_table("Installed Tools", ["Formula", "Version"], rows)

        if not installed:
            return self.result(ModuleStatus.OK, "All core tools already installed")
        verb = "Would install" if ctx.simulate else "Installed"
        return self.result(ModuleStatus.OK, f"{verb}: {', '.join(installed)}")
