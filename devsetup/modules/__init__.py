"""
Setup units.
Each unit detects what is already present, then applies only what is missing.
Units run in a fixed order; extra units can be contributed through the
``devsetup.modules`` entry point group.
"""
import importlib.metadata
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

from ..backup import BackupSession
from ..brew import BrewClient, CommandRunner
from ..decisions import DecisionProvider
from ..detect import StateDetector
from ..errors import CommandError
from ..models import Capability, ExecutionMode, ModuleResult, ModuleStatus, MutationResult, Settings
from ..mutator import summarize
from ..ui import log_debug, log_dry_run, log_step, log_substep, log_warn
from ..utils import run_command

OMZ_SOURCE_PATTERN = r"^\s*source\s.*oh-my-zsh\.sh"


class ModuleContext:
    """Everything a unit may touch during a run."""

    def __init__(
        self,
        settings: Settings,
        session: BackupSession,
        decisions: DecisionProvider,
        mode: ExecutionMode = ExecutionMode.APPLY,
        detector: Optional[StateDetector] = None,
        brew: Optional[BrewClient] = None,
        runner: CommandRunner = run_command,
        update_brew: bool = True,
        auto_yes: bool = False,
    ):
        self.settings = settings
        self.session = session
        self.decisions = decisions
        self.mode = mode
        self.detector = detector or StateDetector(settings.home, timeout=settings.command_timeout)
        self.brew = brew or BrewClient(mode=mode, query_timeout=settings.command_timeout)
        self.runner = runner
        self.update_brew = update_brew
        self.auto_yes = auto_yes

    @property
    def home(self) -> Path:
        return self.settings.home

    @property
    def zshrc(self) -> Path:
        return self.home / ".zshrc"

    @property
    def simulate(self) -> bool:
        return self.mode == ExecutionMode.SIMULATE

    def run(self, argv: Sequence[str], description: str) -> None:
        """Run a command that changes the system. Simulation only reports it."""
        if self.simulate:
            log_dry_run(f"run: {' '.join(argv)}")
            return
        log_substep(description)
        proc = self.runner(list(argv), capture=False, timeout=None)
        if proc.returncode != 0:
            raise CommandError(f"{' '.join(argv)} failed with exit code {proc.returncode}")


class SetupModule(ABC):
    name: str = ""
    description: str = ""

    def detect(self, ctx: ModuleContext) -> List[Capability]:
        """Capabilities this unit cares about. Read-only."""
        return []

    @abstractmethod
    def apply(self, ctx: ModuleContext) -> ModuleResult:
        ...

    def execute(self, ctx: ModuleContext) -> ModuleResult:
        log_step(f"{self.name}: {self.description}")
        for cap in self.detect(ctx):
            state = f"{cap.version or 'installed'}" if cap.installed else "missing"
            log_debug(f"{cap.name}: {state}")
        return self.apply(ctx)

    def result(
        self,
        status: ModuleStatus = ModuleStatus.OK,
        message: str = "",
        mutations: Optional[List[MutationResult]] = None,
        warnings: Optional[List[str]] = None,
    ) -> ModuleResult:
        mutations = mutations or []
        warnings = list(warnings or []) + [m.warning for m in mutations if m.warning]
        if not message:
            message = summarize(mutations) or ""
        return ModuleResult(
            name=self.name, status=status, message=message, mutations=mutations, warnings=warnings,
        )


def builtin_modules() -> List[SetupModule]:
    from .preflight import PreflightModule
    from .homebrew import HomebrewModule
    from .core_tools import CoreToolsModule
    from .dev_tools import DevToolsModule
    from .zsh_base import ZshBaseModule
    from .zsh_plugins import ZshPluginsModule
    from .oh_my_posh import OhMyPoshModule
    from .tmux import TmuxModule
    from .fonts import FontsModule
    from .finalize import FinalizeModule

    return [
        PreflightModule(),
        HomebrewModule(),
        CoreToolsModule(),
        DevToolsModule(),
        ZshBaseModule(),
        ZshPluginsModule(),
        OhMyPoshModule(),
        TmuxModule(),
        FontsModule(),
        FinalizeModule(),
    ]

def validate_module(module: object) -> bool:
    return (
        isinstance(module, SetupModule)
        and bool(getattr(module, "name", ""))
        and callable(getattr(module, "apply", None))
    )

def load_extra_modules() -> List[SetupModule]:
    """Discover units installed by other packages via entry points."""
    extra: List[SetupModule] = []
    for ep in importlib.metadata.entry_points(group="devsetup.modules"):
        try:
            instance = ep.load()()
        except Exception as e:
            log_warn(f"Failed to load module '{ep.name}': {e}")
            continue
        if validate_module(instance):
            extra.append(instance)
        else:
            log_warn(f"Module '{ep.name}' failed validation.")
    return extra

def get_modules() -> List[SetupModule]:
    """All units in run order. Names sort into position, so 99-finalize stays last."""
    modules = builtin_modules()
    known = {m.name for m in modules}
    for module in load_extra_modules():
        if module.name in known:
            log_warn(f"Ignoring module '{module.name}': name already taken")
            continue
        known.add(module.name)
        modules.append(module)
    return sorted(modules, key=lambda m: m.name)
