"""
Homebrew client. Queries always run; anything that changes the system
honours the execution mode.
"""
import os
import shutil
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .errors import CommandError, PreconditionMissing
from .models import ExecutionMode
from .ui import log_dry_run, log_substep, log_success
from .utils import get_brew_prefix, run_command

CommandRunner = Callable[..., subprocess.CompletedProcess]


class BrewClient:
    def __init__(
        self,
        mode: ExecutionMode = ExecutionMode.APPLY,
        run: CommandRunner = run_command,
        which: Optional[Callable[[str], Optional[str]]] = None,
        query_timeout: float = 30.0,
    ):
        self.mode = mode
        self._run = run
        self._which = which
        self.query_timeout = query_timeout

    @property
    def simulate(self) -> bool:
        return self.mode == ExecutionMode.SIMULATE

    def executable(self) -> Optional[str]:
        if self._which is not None:
            return self._which("brew")
        found = shutil.which("brew")
        if found:
            return found
        candidate = get_brew_prefix() / "bin" / "brew"
        return str(candidate) if candidate.is_file() else None

    def available(self) -> bool:
        return self.executable() is not None

    def require(self) -> str:
        brew = self.executable()
        if brew is None:
            raise PreconditionMissing("Homebrew not found. Please run 01-homebrew first.")
        return brew

    def _query(self, *args: str) -> subprocess.CompletedProcess:
        return self._run([self.require(), *args], capture=True, timeout=self.query_timeout)

    def _mutate(self, description: str, *args: str) -> bool:
        argv = [self.require(), *args]
        if self.simulate:
            log_dry_run(f"run: brew {' '.join(args)}")
            return True
        log_substep(description)
        proc = self._run(argv, capture=False, timeout=None)
        if proc.returncode != 0:
            raise CommandError(f"brew {' '.join(args)} failed with exit code {proc.returncode}")
        return True

    def is_installed(self, formula: str) -> bool:
        return self._query("list", "--formula", formula).returncode == 0

    def cask_is_installed(self, cask: str) -> bool:
        return self._query("list", "--cask", cask).returncode == 0

    def version(self, formula: str) -> Optional[str]:
        proc = self._query("list", "--versions", formula)
        if proc.returncode != 0 or not proc.stdout:
            return None
        words = proc.stdout.split()
        return words[1] if len(words) > 1 else None

    def taps(self) -> List[str]:
        proc = self._query("tap")
        return proc.stdout.split() if proc.returncode == 0 and proc.stdout else []

    def tap(self, name: str) -> bool:
        if name in self.taps():
            return False
        return self._mutate(f"Tapping {name}", "tap", name)

    def install(self, formula: str, tap: Optional[str] = None) -> bool:
        """Install formula unless present. Returns True if something was (or would be) installed."""
        if tap:
            self.tap(tap)
        if self.is_installed(formula):
            log_success(f"{formula} already installed ({self.version(formula) or 'unknown version'})")
            return False
        self._mutate(f"Installing {formula}", "install", formula)
        if not self.simulate:
            log_success(f"{formula} installed")
        return True

    def install_cask(self, cask: str) -> bool:
        if self.cask_is_installed(cask):
            log_success(f"{cask} already installed")
            return False
        self._mutate(f"Installing {cask} (cask)", "install", "--cask", cask)
        if not self.simulate:
            log_success(f"{cask} installed")
        return True

    def install_many(self, formulas: Sequence[str]) -> List[str]:
        """Install the missing formulas with a single brew call."""
        missing = []
        for formula in formulas:
            if self.is_installed(formula):
                log_success(f"{formula} already installed ({self.version(formula) or 'unknown version'})")
            else:
                missing.append(formula)
        if missing:
            self._mutate(f"Installing: {' '.join(missing)}", "install", *missing)
        return missing

    def update(self) -> None:
        self._mutate("Updating Homebrew...", "update")

    def prefix(self) -> Path:
        proc = self._query("--prefix")
        if proc.returncode == 0 and proc.stdout.strip():
            return Path(proc.stdout.strip())
        return get_brew_prefix()

    def setup_path(self) -> bool:
        """Put the Homebrew bin directory on this process's PATH."""
        bin_dir = get_brew_prefix() / "bin"
        if not (bin_dir / "brew").is_file():
            return False
        path = os.environ.get("PATH", "")
        if str(bin_dir) not in path.split(os.pathsep):
            os.environ["PATH"] = f"{bin_dir}{os.pathsep}{path}"
        return True
