"""Nerd Fonts installation."""
from typing import List

from ..models import Capability, ModuleResult, ModuleStatus
from ..ui import console, log_info, log_substep, log_success
from . import ModuleContext, SetupModule

MINIMAL, FULL, SKIP = 0, 1, 2


def cask_name(font: str) -> str:
    return f"font-{font}-nerd-font"


class FontsModule(SetupModule):
    name = "07-fonts"
    description = "Nerd Fonts installation"

    def detect(self, ctx: ModuleContext) -> List[Capability]:
        return [ctx.detector.detect("nerd-font")]

    def apply(self, ctx: ModuleContext) -> ModuleResult:
        if ctx.detector.detect("nerd-font").installed:
            log_success("Nerd Font already installed")
            if not ctx.decisions.ask_yes_no("Install additional Nerd Fonts?", default=False):
                return self.result(ModuleStatus.OK, "Nerd Font already installed")

        ctx.brew.require()
        choice = MINIMAL
        if not ctx.auto_yes:
            choice = ctx.decisions.ask_select(
                "Font installation options",
                [
                    "Minimal - Install MesloLG Nerd Font only (recommended)",
                    "Full    - Install Hack, MesloLG, and FiraCode Nerd Fonts",
                    "Skip    - Don't install fonts",
                ],
                default=MINIMAL,
            )
        if choice == SKIP:
            log_info("Skipping font installation")
            return self.result(ModuleStatus.SKIPPED, "Skipped by user")

        fonts = ctx.settings.fonts_full if choice == FULL else ctx.settings.fonts_minimal
        log_substep(f"Installing fonts: {' '.join(fonts)}")
        installed = [font for font in fonts if ctx.brew.install_cask(cask_name(font))]

        self._print_instructions()
        if not installed:
            return self.result(ModuleStatus.OK, "Fonts already installed")
        verb = "Would install" if ctx.simulate else "Installed"
        return self.result(ModuleStatus.OK, f"{verb}: {', '.join(installed)}")

    def _print_instructions(self) -> None:
        console.print("\n[bold]Font Configuration:[/bold]")
        console.print("To use Nerd Fonts in your terminal, configure your terminal app:\n")
        console.print("  iTerm2:   Preferences -> Profiles -> Text -> Font")
        console.print("  Terminal: Preferences -> Profiles -> Font")
        console.print("  VS Code:  Settings -> Terminal.Integrated.Font.Family\n")
        console.print("Recommended fonts:")
        console.print("  - MesloLGS NF (best for Powerline/Nerd symbols)")
        console.print("  - Hack Nerd Font (clean and readable)")
        console.print("  - FiraCode Nerd Font (with ligatures)")
