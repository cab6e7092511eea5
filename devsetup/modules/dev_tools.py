"""Optional development tools, offered interactively."""
from typing import Dict, List

from ..models import Capability, ModuleResult, ModuleStatus
from ..ui import log_dry_run, log_info, log_success, render_table
from . import ModuleContext, SetupModule

TOOL_DESCRIPTIONS: Dict[str, str] = {
    "uv": "Python package/project manager",
    "node": "Node.js JavaScript runtime",
}

INSTALL_ALL, SKIP, SELECT = 0, 1, 2


class DevToolsModule(SetupModule):
    name = "02a-dev-tools"
    description = "Optional development tools"

    def detect(self, ctx: ModuleContext) -> List[Capability]:
        return [ctx.detector.detect(tool) for tool in ctx.settings.dev_tools]

    def apply(self, ctx: ModuleContext) -> ModuleResult:
        ctx.brew.require()
        caps = self.detect(ctx)

        render_table(
            "Development Tools Status",
            ["Tool", "Status", "Description"],
            [
                [c.name, c.version if c.installed else "not installed", TOOL_DESCRIPTIONS.get(c.name, "Development tool")]
                for c in caps
            ],
        )

        missing = [c.name for c in caps if not c.installed]
        if not missing:
            log_success("All development tools already installed")
            return self.result(ModuleStatus.OK, "All development tools already installed")

        if ctx.auto_yes:
            log_info("Skipping optional dev tools in non-interactive mode")
            return self.result(ModuleStatus.SKIPPED, "Optional tools skipped (--yes)")

        if ctx.simulate:
            log_dry_run(f"prompt for missing tools: {' '.join(missing)}")
            return self.result(ModuleStatus.OK, f"Would offer: {', '.join(missing)}")

        choice = ctx.decisions.ask_select(
            "Install missing tools?",
            [f"Install all missing tools ({' '.join(missing)})", "Skip", "Select which tools to install"],
            default=INSTALL_ALL,
        )
        if choice == SKIP:
            log_info("Skipping development tools installation")
            return self.result(ModuleStatus.SKIPPED, "Skipped by user")

        selected = missing
        if choice == SELECT:
            selected = [
                tool for tool in missing
                if ctx.decisions.ask_yes_no(f"Install {tool} ({TOOL_DESCRIPTIONS.get(tool, 'Development tool')})?")
            ]
        if not selected:
            log_info("No tools selected")
            return self.result(ModuleStatus.SKIPPED, "No tools selected")

        for tool in selected:
            ctx.brew.install(tool)
        return self.result(ModuleStatus.OK, f"Installed: {', '.join(selected)}")
