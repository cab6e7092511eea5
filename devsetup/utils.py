"""
Core utilities for devsetup.
"""
import hashlib
import os
import platform
import re
import shutil
import signal
import subprocess
import sys
import tempfile
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Tuple

from .errors import CommandError, PathTraversalError

SESSION_ID_PATTERN = re.compile(r"^\d{8}_\d{6}$")
SESSION_ID_FORMAT = "%Y%m%d_%H%M%S"

# Documents are decoded so that bytes which are not UTF-8 survive a rewrite untouched
DOCUMENT_ENCODING = "utf-8"
DOCUMENT_ERRORS = "surrogateescape"


def is_macos() -> bool:
    """Return True if running on macOS."""
    return sys.platform == "darwin"

def timestamp_id(when: Optional[float] = None) -> str:
    """Return a YYYYMMDD_HHMMSS formatted string."""
    return time.strftime(SESSION_ID_FORMAT, time.localtime(when))

def next_session_id(session_id: str) -> str:
    """The id one second after session_id."""
    when = datetime.strptime(session_id, SESSION_ID_FORMAT) + timedelta(seconds=1)
    return when.strftime(SESSION_ID_FORMAT)

def is_session_id(name: str) -> bool:
    return bool(SESSION_ID_PATTERN.match(name))

def validate_path(path: str | Path, base_dir: str | Path) -> Path:
    """
    Resolve a path and ensure it falls strictly under the base_dir to prevent directory traversal.
    """
    resolved_path = Path(path).resolve()
    resolved_base = Path(base_dir).resolve()

    if resolved_path != resolved_base and not resolved_path.is_relative_to(resolved_base):
        raise PathTraversalError(f"Path '{path}' escapes base directory '{base_dir}'.")
    return resolved_path

def sha256_file(path: Path) -> str:
    """Stream a file and return its SHA-256 hex digest."""
    hasher = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            hasher.update(chunk)
    return hasher.hexdigest()

def human_size(nbytes: int) -> str:
    """Convert bytes to a human-readable string (e.g. 1.2 MiB)."""
    if nbytes == 0:
        return "0 B"
    suffixes = ["B", "KiB", "MiB", "GiB", "TiB", "PiB"]
    i = 0
    while nbytes >= 1024 and i < len(suffixes) - 1:
        nbytes /= 1024.0  # type: ignore
        i += 1
    if i == 0:
        return f"{int(nbytes)} {suffixes[i]}"
    return f"{nbytes:.1f} {suffixes[i]}"

def read_document(path: Path) -> str:
    return path.read_bytes().decode(DOCUMENT_ENCODING, DOCUMENT_ERRORS)

def atomic_write_text(path: Path, text: str) -> None:
    """
    Replace the content of path without ever exposing a half-written file.
    Writes a sibling temp file, copies the original mode, fsyncs, then renames over.
    Symlinks are followed so the link itself survives.
    """
    target = path.resolve() if path.is_symlink() else path
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding=DOCUMENT_ENCODING, errors=DOCUMENT_ERRORS, newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        if target.exists():
            shutil.copymode(target, tmp_path)
        os.replace(tmp_path, target)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

def run_command(
    argv: Sequence[str],
    capture: bool = True,
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess:
    """Run argv without a shell. Uncaptured commands share the terminal."""
    try:
        return subprocess.run(
            list(argv),
            capture_output=capture,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        raise CommandError(f"{argv[0]} timed out after {timeout}s") from e
    except OSError as e:
        raise CommandError(f"Failed to run {' '.join(argv)}: {e}") from e

def get_architecture() -> str:
    return platform.machine()

def is_apple_silicon() -> bool:
    return get_architecture() == "arm64"

def get_brew_prefix() -> Path:
    """Homebrew prefix differs between Apple Silicon and Intel."""
    return Path("/opt/homebrew") if is_apple_silicon() else Path("/usr/local")

def parse_version(version: str) -> Tuple[int, ...]:
    parts = []
    for piece in re.split(r"[.\-+]", version.strip().lstrip("v")):
        m = re.match(r"\d+", piece)
        if not m:
            break
        parts.append(int(m.group()))
    return tuple(parts)

def version_gte(v1: str, v2: str) -> bool:
    """Return True if v1 >= v2."""
    return parse_version(v1) >= parse_version(v2)

def setup_signal_handlers(cleanup_fn: Callable[[], None]) -> None:
    """Install a SIGTERM handler that invokes the cleanup function and exits."""
    def handler(signum: Any, frame: Any) -> None:
        cleanup_fn()
        sys.exit(1)

    if sys.platform != "win32":
        signal.signal(signal.SIGTERM, handler)
