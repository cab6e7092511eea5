"""Oh-My-Posh prompt theme."""
from functools import partial
from typing import List

from ..errors import DocumentNotFound, PreconditionMissing
from ..models import Capability, ModuleResult, ModuleStatus, MutationResult
from ..mutator import apply_patch
from ..patch import ConfigDocument, insert_after_anchor, upsert_key_line
from ..ui import log_info, log_substep, log_success
from . import OMZ_SOURCE_PATTERN, ModuleContext, SetupModule

OMP_INIT_MARKER = "oh-my-posh init"
OMP_COMMENT_PREFIX = "# Oh My Posh configuration"
THEME_COMMENT = "# Disable oh-my-zsh theme (using Oh My Posh instead)"


def omp_lines(theme: str) -> List[str]:
    return [
        "",
        f"{OMP_COMMENT_PREFIX} ({theme} theme)",
        f'eval "$(oh-my-posh init zsh --config $(brew --prefix oh-my-posh)/themes/{theme}.omp.json)"',
    ]


class OhMyPoshModule(SetupModule):
    name = "05-oh-my-posh"
    description = "Oh-My-Posh prompt theme"

    def detect(self, ctx: ModuleContext) -> List[Capability]:
        return [ctx.detector.detect("oh-my-posh"), ctx.detector.detect("zshrc")]

    def apply(self, ctx: ModuleContext) -> ModuleResult:
        if not ctx.detector.command_exists("oh-my-posh"):
            raise PreconditionMissing("oh-my-posh not found. Please run 02-core-tools first.")
        if not ctx.zshrc.is_file():
            raise DocumentNotFound(f"{ctx.zshrc} not found. Please run 03-zsh-base first.")

        theme = ctx.settings.omp_theme
        mutations: List[MutationResult] = []

        log_substep("Configuring Oh-My-Posh in zshrc")
        if self._confirm_theme_switch(ctx, theme):
            mutations.append(apply_patch(
                ctx.zshrc,
                partial(
                    insert_after_anchor,
                    anchor_pattern=OMZ_SOURCE_PATTERN,
                    new_lines=omp_lines(theme),
                    remove_patterns=[OMP_INIT_MARKER, f"^{OMP_COMMENT_PREFIX}"],
                ),
                session=ctx.session,
                mode=ctx.mode,
                description="before oh-my-posh configuration",
            ))

        log_substep("Disabling Oh-My-Zsh theme")
        mutations.append(apply_patch(
            ctx.zshrc,
            partial(upsert_key_line, key_pattern=r"^ZSH_THEME=", replacement='ZSH_THEME=""', comment=THEME_COMMENT),
            session=ctx.session,
            mode=ctx.mode,
            description="before disabling oh-my-zsh theme",
        ))

        log_success(f"Oh-My-Posh configured with {theme} theme")
        return self.result(ModuleStatus.OK, mutations=mutations)

    def _confirm_theme_switch(self, ctx: ModuleContext, theme: str) -> bool:
        doc = ConfigDocument.load(ctx.zshrc)
        if not doc.contains(OMP_INIT_MARKER) or doc.contains(f"themes/{theme}.omp.json"):
            return True
        log_info("Oh-My-Posh configured with different theme")
        return ctx.decisions.ask_yes_no(f"Update to {theme} theme?")
