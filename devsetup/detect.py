"""
State detector: read-only probes answering "is capability C present, and at what
version/path?". Probes never prompt, never write, and give up after a timeout;
any failure means "not installed".
"""
import re
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .models import Capability

ProbeRunner = Callable[[Sequence[str], float], Optional[str]]

DEFAULT_TIMEOUT = 10.0

SECTIONS: List[Tuple[str, List[str]]] = [
    ("Core Tools", ["homebrew", "zsh", "tmux", "fzf"]),
    ("Shell Enhancements", ["oh-my-zsh", "oh-my-posh"]),
    ("Development Tools", ["node", "uv"]),
    ("Tmux Configuration", ["oh-my-tmux", "tmux-solarized-dark"]),
    ("Fonts", ["nerd-font"]),
]


def run_probe(argv: Sequence[str], timeout: float) -> Optional[str]:
    """Run a version command; stdout on success, None on any failure."""
    try:
        proc = subprocess.run(
            list(argv),
            capture_output=True,
            text=True,
            timeout=timeout,
            stdin=subprocess.DEVNULL,
            check=False,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    if proc.returncode != 0:
        return None
    return proc.stdout.strip()

def _word(output: str, index: int) -> Optional[str]:
    first_line = output.splitlines()[0] if output else ""
    words = first_line.split()
    return words[index] if len(words) > index else None


class StateDetector:
    def __init__(
        self,
        home: Path,
        run: ProbeRunner = run_probe,
        which: Callable[[str], Optional[str]] = shutil.which,
        timeout: float = DEFAULT_TIMEOUT,
        font_dirs: Optional[List[Path]] = None,
    ):
        self.home = Path(home)
        self._run = run
        self._which = which
        self.timeout = timeout
        self.font_dirs = font_dirs if font_dirs is not None else [
            self.home / "Library" / "Fonts",
            Path("/Library/Fonts"),
            self.home / ".local" / "share" / "fonts",
        ]
        self._detectors: Dict[str, Callable[[], Capability]] = {
            "homebrew": lambda: self._tool("homebrew", ["brew", "--version"], lambda o: _word(o, 1)),
            "zsh": lambda: self._tool("zsh", ["zsh", "--version"], lambda o: _word(o, 1)),
            "tmux": lambda: self._tool("tmux", ["tmux", "-V"], lambda o: _word(o, 1)),
            "fzf": lambda: self._tool("fzf", ["fzf", "--version"], lambda o: _word(o, 0)),
            "oh-my-posh": lambda: self._tool("oh-my-posh", ["oh-my-posh", "--version"], lambda o: _word(o, 0)),
            "node": lambda: self._tool("node", ["node", "--version"], lambda o: (_word(o, 0) or "").lstrip("v") or None),
            "uv": lambda: self._tool("uv", ["uv", "--version"], lambda o: _word(o, 1)),
            "git": lambda: self._tool("git", ["git", "--version"], lambda o: _word(o, 2)),
            "xcode-cli": self.xcode_cli,
            "oh-my-zsh": self.oh_my_zsh,
            "oh-my-tmux": self.oh_my_tmux,
            "nerd-font": self.nerd_font,
            "zshrc": self.zshrc,
            "tmux-config": self.tmux_config,
            "tmux-local-config": self.tmux_local_config,
            "tmux-solarized-dark": self.tmux_solarized_dark,
        }

    @property
    def names(self) -> List[str]:
        return list(self._detectors)

    def detect(self, name: str) -> Capability:
        try:
            probe = self._detectors[name]
        except KeyError:
            raise ValueError(f"Unknown capability: {name}") from None
        try:
            return probe()
        except OSError:
            return Capability(name=name, installed=False)

    def command_exists(self, command: str) -> bool:
        return self._which(command) is not None

    def _tool(self, name: str, argv: List[str], parse: Callable[[str], Optional[str]]) -> Capability:
        path = self._which(argv[0])
        if path is None:
            return Capability(name=name, installed=False)
        output = self._run(argv, self.timeout)
        version = parse(output) if output else None
        return Capability(name=name, installed=True, version=version or "installed", path=path)

    def xcode_cli(self) -> Capability:
        if not self.command_exists("xcode-select"):
            return Capability(name="xcode-cli", installed=False)
        output = self._run(["xcode-select", "-p"], self.timeout)
        return Capability(name="xcode-cli", installed=output is not None, path=output or None)

    def oh_my_zsh(self) -> Capability:
        omz = self.home / ".oh-my-zsh"
        if not omz.is_dir():
            return Capability(name="oh-my-zsh", installed=False)
        version = None
        if (omz / ".git").exists() and self.command_exists("git"):
            version = self._run(["git", "-C", str(omz), "describe", "--tags"], self.timeout)
        return Capability(name="oh-my-zsh", installed=True, version=version or "installed", path=str(omz))

    def oh_my_tmux_dirs(self) -> List[Path]:
        return [self.home / ".local" / "share" / "tmux" / "oh-my-tmux", self.home / ".tmux"]

    def oh_my_tmux(self) -> Capability:
        for path in self.oh_my_tmux_dirs():
            if path.is_dir() and (path / ".tmux.conf").is_file():
                return Capability(name="oh-my-tmux", installed=True, path=str(path))
        return Capability(name="oh-my-tmux", installed=False)

    def nerd_font(self, font_name: Optional[str] = None) -> Capability:
        needle = (font_name or "").lower().replace("-", "")
        for directory in self.font_dirs:
            if not directory.is_dir():
                continue
            for font in directory.iterdir():
                lowered = font.name.lower()
                if "nerd" not in lowered:
                    continue
                if needle and needle not in lowered.replace("-", "").replace(" ", ""):
                    continue
                return Capability(name="nerd-font", installed=True, path=str(font))
        return Capability(name="nerd-font", installed=False)

    def _first_file(self, name: str, candidates: List[Path]) -> Capability:
        for path in candidates:
            if path.is_file():
                return Capability(name=name, installed=True, path=str(path))
        return Capability(name=name, installed=False)

    def zshrc(self) -> Capability:
        return self._first_file("zshrc", [self.home / ".zshrc"])

    def tmux_config(self) -> Capability:
        return self._first_file("tmux-config", [self.home / ".config" / "tmux" / "tmux.conf", self.home / ".tmux.conf"])

    def tmux_local_config(self) -> Capability:
        return self._first_file(
            "tmux-local-config",
            [self.home / ".config" / "tmux" / "tmux.conf.local", self.home / ".tmux.conf.local"],
        )

    def tmux_solarized_dark(self) -> Capability:
        local = self.tmux_local_config()
        if local.installed and local.path and "Solarized Dark" in Path(local.path).read_text(errors="replace"):
            return Capability(name="tmux-solarized-dark", installed=True, path=local.path)
        return Capability(name="tmux-solarized-dark", installed=False)

    def zshrc_contains(self, needle: str) -> bool:
        zshrc = self.home / ".zshrc"
        return zshrc.is_file() and needle in zshrc.read_text(errors="replace")

    def zshrc_has_omp(self) -> bool:
        return self.zshrc_contains("oh-my-posh init")

    def zsh_plugin_enabled(self, plugin: str) -> bool:
        """True if plugin appears on a single-line ``plugins=(...)`` or in a plugins block."""
        zshrc = self.home / ".zshrc"
        if not zshrc.is_file():
            return False
        text = zshrc.read_text(errors="replace")
        m = re.search(r"^\s*plugins=\((?P<body>[^)]*)\)", text, re.MULTILINE)
        return bool(m) and plugin in m.group("body").split()

    def macos_version(self) -> Optional[str]:
        if not self.command_exists("sw_vers"):
            return None
        return self._run(["sw_vers", "-productVersion"], self.timeout)

    def rosetta(self) -> bool:
        if not self.command_exists("sysctl"):
            return False
        return self._run(["sysctl", "-n", "sysctl.proc_translated"], self.timeout) == "1"


def run_detection(detector: StateDetector) -> List[Tuple[str, Capability]]:
    """Every capability of the detection summary, tagged with its section."""
    rows: List[Tuple[str, Capability]] = []
    for section, names in SECTIONS:
        for name in names:
            rows.append((section, detector.detect(name)))
    return rows
