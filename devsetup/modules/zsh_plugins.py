"""
Zsh plugin configuration.

The Oh-My-Zsh ``plugins=( ... )`` block is rewritten as a whole and placed
right before the line sourcing oh-my-zsh.sh. Plugins shipped by Homebrew are
sourced at the end of .zshrc, zsh-syntax-highlighting last.
"""
from functools import partial
from pathlib import Path
from typing import Dict, List

from ..errors import DocumentNotFound
from ..models import Capability, ModuleResult, ModuleStatus, MutationResult
from ..mutator import apply_patch
from ..patch import BlockSpec, append_if_absent, replace_block
from ..ui import log_substep, log_success
from . import OMZ_SOURCE_PATTERN, ModuleContext, SetupModule

# Locations relative to the Homebrew prefix
EXTERNAL_PLUGIN_PATHS: Dict[str, str] = {
    "fzf-tab": "opt/fzf-tab/share/fzf-tab/fzf-tab.zsh",
    "zsh-autosuggestions": "share/zsh-autosuggestions/zsh-autosuggestions.zsh",
    "zsh-syntax-highlighting": "share/zsh-syntax-highlighting/zsh-syntax-highlighting.zsh",
}


def plugins_block(plugins: List[str]) -> BlockSpec:
    return BlockSpec(
        open_pattern=r"^plugins=\(",
        close_pattern=r"^\s*\)",
        header="plugins=(",
        footer=")",
        items=tuple(plugins),
        anchor_pattern=OMZ_SOURCE_PATTERN,
        inline_close_pattern=r"\)",
    )

def external_plugin_path(prefix: Path, plugin: str) -> Path:
    return prefix / EXTERNAL_PLUGIN_PATHS.get(plugin, f"share/{plugin}/{plugin}.zsh")


class ZshPluginsModule(SetupModule):
    name = "04-zsh-plugins"
    description = "Zsh plugin configuration"

    def detect(self, ctx: ModuleContext) -> List[Capability]:
        return [ctx.detector.detect("zshrc"), ctx.detector.detect("oh-my-zsh")]

    def apply(self, ctx: ModuleContext) -> ModuleResult:
        if not ctx.zshrc.is_file():
            raise DocumentNotFound(f"{ctx.zshrc} not found. Please run 03-zsh-base first.")

        mutations: List[MutationResult] = []

        log_substep("Configuring Oh-My-Zsh plugins")
        mutations.append(apply_patch(
            ctx.zshrc,
            partial(replace_block, spec=plugins_block(ctx.settings.omz_plugins)),
            session=ctx.session,
            mode=ctx.mode,
            description="before plugin configuration",
        ))

        log_substep("Configuring external plugins")
        if not ctx.brew.available():
            return self.result(
                ModuleStatus.OK,
                mutations=mutations,
                warnings=["Homebrew not found; external plugin sources not configured"],
            )
        prefix = ctx.brew.prefix()
        for plugin in ctx.settings.external_plugins:
            source_path = str(external_plugin_path(prefix, plugin))
            mutations.append(apply_patch(
                ctx.zshrc,
                partial(
                    append_if_absent,
                    marker=source_path,
                    new_lines=[f'source "{source_path}"'],
                    comment=f"# {plugin} (Homebrew)",
                ),
                session=ctx.session,
                mode=ctx.mode,
                description=f"before adding {plugin}",
            ))

        log_success("Zsh plugins configured")
        return self.result(ModuleStatus.OK, mutations=mutations)
