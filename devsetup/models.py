"""
Pydantic v2 data models for devsetup.
"""
import re
from enum import Enum
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExecutionMode(str, Enum):
    APPLY = "apply"
    SIMULATE = "simulate"


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)

class Settings(FrozenModel):
    home: Path = Field(default_factory=Path.home)
    backup_dir: Optional[Path] = None  # None -> <home>/.devsetup-backups
    keep_backups: int = Field(5, ge=0)
    command_timeout: float = Field(30.0, gt=0)
    omz_plugins: List[str] = Field(default_factory=lambda: [
        "git", "docker", "docker-compose", "python", "virtualenv", "uv", "npm", "nvm", "z",
    ])
    external_plugins: List[str] = Field(default_factory=lambda: [
        "fzf-tab", "zsh-autosuggestions", "zsh-syntax-highlighting",
    ])
    omp_theme: str = "di4am0nd"
    core_formulas: List[str] = Field(default_factory=lambda: [
        "tmux", "fzf", "fzf-tab", "zsh-autosuggestions", "zsh-syntax-highlighting", "oh-my-posh",
    ])
    dev_tools: List[str] = Field(default_factory=lambda: ["uv", "node"])
    fonts_full: List[str] = Field(default_factory=lambda: ["hack", "meslo-lg", "fira-code"])
    fonts_minimal: List[str] = Field(default_factory=lambda: ["meslo-lg"])

    @field_validator("home", "backup_dir")
    @classmethod
    def expand_user(cls, v: Optional[Path]) -> Optional[Path]:
        return v.expanduser() if v is not None else v

    @field_validator("omz_plugins", "external_plugins", "core_formulas")
    @classmethod
    def validate_names(cls, v: List[str]) -> List[str]:
        for name in v:
            if not re.match(r"^[A-Za-z0-9_.@/+-]+$", name):
                raise ValueError(f"Invalid name: {name!r}")
        return v

    @property
    def resolved_backup_dir(self) -> Path:
        return self.backup_dir or self.home / ".devsetup-backups"

class Capability(FrozenModel):
    name: str
    installed: bool
    version: Optional[str] = None
    path: Optional[str] = None

class ManifestEntry(FrozenModel):
    original: str   # absolute path, trailing "/" for directories
    relative: str   # path within the session directory
    description: Optional[str] = None

    @property
    def is_directory(self) -> bool:
        return self.relative.endswith("/")

class SessionInfo(FrozenModel):
    session_id: str
    path: Path
    file_count: int
    size_bytes: int = 0

class RestoreResult(FrozenModel):
    session_id: str
    restored: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)  # backed-up copy missing or unsafe
    failed: List[str] = Field(default_factory=list)

    @property
    def restored_count(self) -> int:
        return len(self.restored)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped) + len(self.failed)

class MutationStatus(str, Enum):
    UNCHANGED = "unchanged"
    CHANGED = "changed"
    WOULD_CHANGE = "would_change"
    SKIPPED = "skipped"

class MutationResult(FrozenModel):
    path: Path
    status: MutationStatus
    summary: str
    diff: str = ""
    warning: Optional[str] = None

class ModuleStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"

class ModuleResult(FrozenModel):
    name: str
    status: ModuleStatus
    message: str = ""
    mutations: List[MutationResult] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

class VerificationCheck(FrozenModel):
    name: str
    status: Literal["pass", "warn", "fail"]
    detail: str
