"""Tmux configuration with Oh-My-Tmux and a Solarized Dark theme."""
from pathlib import Path
from typing import List

from ..errors import PreconditionMissing
from ..models import Capability, ModuleResult, ModuleStatus, MutationResult
from ..mutator import ensure_symlink, write_content
from ..ui import log_success, log_substep
from . import ModuleContext, SetupModule

OMT_REPO = "https://github.com/gpakosz/.tmux.git"

SOLARIZED_DARK_LOCAL_CONF = """\
# tmux.conf.local - Oh My Tmux local configuration
# Solarized Dark theme

# -- theming -------------------------------------------------------------------
tmux_conf_theme=enabled

# Solarized Dark colors
tmux_conf_theme_colour_1="#002b36"    # base03
tmux_conf_theme_colour_2="#073642"    # base02
tmux_conf_theme_colour_3="#586e75"    # base01
tmux_conf_theme_colour_4="#268bd2"    # blue
tmux_conf_theme_colour_5="#b58900"    # yellow
tmux_conf_theme_colour_6="#002b36"    # base03
tmux_conf_theme_colour_7="#839496"    # base0
tmux_conf_theme_colour_8="#002b36"    # base03
tmux_conf_theme_colour_9="#b58900"    # yellow
tmux_conf_theme_colour_10="#2aa198"   # cyan
tmux_conf_theme_colour_11="#859900"   # green
tmux_conf_theme_colour_12="#586e75"   # base01
tmux_conf_theme_colour_13="#93a1a1"   # base1
tmux_conf_theme_colour_14="#002b36"   # base03
tmux_conf_theme_colour_15="#073642"   # base02
tmux_conf_theme_colour_16="#dc322f"   # red
tmux_conf_theme_colour_17="#839496"   # base0

# Powerline separators
tmux_conf_theme_left_separator_main='\\uE0B0'
tmux_conf_theme_left_separator_sub='\\uE0B1'
tmux_conf_theme_right_separator_main='\\uE0B2'
tmux_conf_theme_right_separator_sub='\\uE0B3'
"""


def omt_install_dir(home: Path) -> Path:
    return home / ".local" / "share" / "tmux" / "oh-my-tmux"

def tmux_config_dir(home: Path) -> Path:
    return home / ".config" / "tmux"


class TmuxModule(SetupModule):
    name = "06-tmux"
    description = "Tmux configuration with Oh-My-Tmux"

    def detect(self, ctx: ModuleContext) -> List[Capability]:
        return [ctx.detector.detect(n) for n in ("tmux", "oh-my-tmux", "tmux-config", "tmux-solarized-dark")]

    def apply(self, ctx: ModuleContext) -> ModuleResult:
        if not ctx.detector.command_exists("tmux"):
            raise PreconditionMissing("tmux not found. Please run 02-core-tools first.")

        install_dir = omt_install_dir(ctx.home)
        config_dir = tmux_config_dir(ctx.home)
        mutations: List[MutationResult] = []
        warnings: List[str] = []

        self._install_oh_my_tmux(ctx, install_dir)

        log_substep("Configuring tmux.conf")
        mutations.append(ensure_symlink(
            config_dir / "tmux.conf",
            install_dir / ".tmux.conf",
            session=ctx.session,
            mode=ctx.mode,
            description="existing tmux.conf",
        ))

        log_substep("Configuring tmux.conf.local with Solarized Dark")
        local_conf = config_dir / "tmux.conf.local"
        if self._should_write_local(ctx, local_conf):
            mutations.append(write_content(
                local_conf,
                SOLARIZED_DARK_LOCAL_CONF,
                session=ctx.session,
                mode=ctx.mode,
                description="existing tmux.conf.local",
            ))
        else:
            warnings.append(f"Kept existing {local_conf}")

        log_success("Tmux configured with Oh-My-Tmux and Solarized Dark theme")
        return self.result(ModuleStatus.OK, mutations=mutations, warnings=warnings)

    def _install_oh_my_tmux(self, ctx: ModuleContext, install_dir: Path) -> None:
        log_substep("Installing Oh-My-Tmux")
        if install_dir.is_dir() and (install_dir / ".tmux.conf").is_file():
            log_success(f"Oh-My-Tmux already installed at {install_dir}")
            return
        if not ctx.simulate:
            install_dir.parent.mkdir(parents=True, exist_ok=True)
        ctx.run(["git", "clone", OMT_REPO, str(install_dir)], f"Cloning Oh-My-Tmux into {install_dir}")
        if not ctx.simulate:
            log_success("Oh-My-Tmux installed")

    def _should_write_local(self, ctx: ModuleContext, local_conf: Path) -> bool:
        if not local_conf.is_file():
            return True
        text = local_conf.read_text(encoding="utf-8", errors="replace")
        if text == SOLARIZED_DARK_LOCAL_CONF or "Solarized Dark" not in text:
            return True
        log_success("tmux.conf.local already configured with Solarized Dark")
        return ctx.decisions.ask_yes_no("Overwrite existing configuration?", default=False)
