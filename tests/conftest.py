import subprocess
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pytest

from devsetup.backup import BackupSession
from devsetup.brew import BrewClient
from devsetup.decisions import ScriptedDecisions
from devsetup.detect import StateDetector
from devsetup.models import ExecutionMode, Settings
from devsetup.modules import ModuleContext

SESSION_ID = "20240101_120000"

ZSHRC = """\
export ZSH="$HOME/.oh-my-zsh"
ZSH_THEME="robbyrussell"

plugins=(git)

source $ZSH/oh-my-zsh.sh

# User configuration
export EDITOR=vim
"""


class FakeRunner:
    """Stands in for run_command: records argv, answers from a prefix table."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.responses: Dict[Tuple[str, ...], Tuple[int, str]] = {}

    def respond(self, prefix: Sequence[str], returncode: int = 0, stdout: str = "") -> None:
        self.responses[tuple(prefix)] = (returncode, stdout)

    def __call__(self, argv: Sequence[str], capture: bool = True, timeout: Optional[float] = None):
        argv = list(argv)
        self.calls.append(argv)
        match = None
        for prefix, response in self.responses.items():
            if tuple(argv[:len(prefix)]) == prefix and (match is None or len(prefix) > len(match[0])):
                match = (prefix, response)
        returncode, stdout = match[1] if match else (0, "")
        return subprocess.CompletedProcess(argv, returncode, stdout=stdout, stderr="")

    def ran(self, *argv: str) -> bool:
        return list(argv) in self.calls


def fake_which(available: Iterable[str]):
    tools = set(available)
    return lambda name: f"/usr/local/bin/{name}" if name in tools else None


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path

@pytest.fixture
def backup_base(tmp_path: Path) -> Path:
    return tmp_path / "backups"

@pytest.fixture
def settings(home: Path, backup_base: Path) -> Settings:
    return Settings(home=home, backup_dir=backup_base)

@pytest.fixture
def session(home: Path, backup_base: Path) -> BackupSession:
    return BackupSession(SESSION_ID, backup_base, home)

@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()

@pytest.fixture
def zshrc(home: Path) -> Path:
    path = home / ".zshrc"
    path.write_text(ZSHRC)
    return path

@pytest.fixture
def make_ctx(settings: Settings, backup_base: Path, home: Path, runner: FakeRunner):
    """Build a ModuleContext around fakes: nothing leaves tmp_path."""

    def factory(
        mode: ExecutionMode = ExecutionMode.APPLY,
        answers: Sequence[object] = (),
        tools: Iterable[str] = ("brew", "tmux", "oh-my-posh", "git", "zsh"),
        auto_yes: bool = False,
        probe_output: str = "tool 1.0.0",
    ) -> ModuleContext:
        which = fake_which(tools)
        detector = StateDetector(
            home,
            run=lambda argv, timeout: probe_output,
            which=which,
            font_dirs=[home / "Library" / "Fonts"],
        )
        brew = BrewClient(mode=mode, run=runner, which=which)
        return ModuleContext(
            settings=settings,
            session=BackupSession(SESSION_ID, backup_base, home, mode=mode),
            decisions=ScriptedDecisions(answers),
            mode=mode,
            detector=detector,
            brew=brew,
            runner=runner,
            auto_yes=auto_yes,
        )

    return factory
