"""
Backup session engine.
A session is a timestamped directory under the backup base dir that mirrors the
home-relative path of every file protected before a mutation, plus a manifest.
The directory only appears once something is actually backed up.
"""
import glob
import os
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Iterator, List, Optional

from .errors import BackupWriteFailed, SessionLocked
from .manifest import MANIFEST_NAME, append_entry, manifest_header
from .models import ExecutionMode, ManifestEntry, SessionInfo
from .ui import log_debug, log_dry_run, log_info, log_substep
from .utils import is_session_id, next_session_id, sha256_file, timestamp_id

LOCK_NAME = ".devsetup.lock"
OUTSIDE_HOME_PREFIX = "_root"


class BackupSession:
    """One tool invocation's worth of protected originals."""

    def __init__(
        self,
        session_id: str,
        base_dir: Path,
        home: Path,
        enabled: bool = True,
        mode: ExecutionMode = ExecutionMode.APPLY,
    ):
        self.session_id = session_id
        self.base_dir = Path(base_dir)
        self.root_dir = self.base_dir / session_id
        self.home = Path(home)
        self.enabled = enabled
        self.mode = mode
        self.entries: List[ManifestEntry] = []
        self.intents: List[ManifestEntry] = []
        self._claimed = False

    @property
    def is_noop(self) -> bool:
        return not self.enabled

    @property
    def simulate(self) -> bool:
        return self.mode == ExecutionMode.SIMULATE

    @property
    def file_count(self) -> int:
        return count_session_files(self.root_dir)

    def relative_path(self, path: Path) -> str:
        """Home-relative location of path inside the session."""
        path = Path(os.path.abspath(path))
        try:
            rel = path.relative_to(self.home)
        except ValueError:
            rel = Path(OUTSIDE_HOME_PREFIX) / path.relative_to(path.anchor)
        return rel.as_posix()

    def is_recorded(self, original: str) -> bool:
        return any(e.original == original for e in self.entries)

    def _ensure_root(self) -> None:
        if self._claimed:
            return
        self.base_dir.mkdir(parents=True, exist_ok=True)
        # Another run may already own this second's directory
        while True:
            try:
                self.root_dir.mkdir()
                break
            except FileExistsError:
                self.session_id = next_session_id(self.session_id)
                self.root_dir = self.base_dir / self.session_id
        (self.root_dir / MANIFEST_NAME).write_text(manifest_header(self.session_id), encoding="utf-8")
        self._claimed = True

    def _intend(self, entry: ManifestEntry) -> None:
        if all(e.original != entry.original for e in self.intents):
            self.intents.append(entry)

    def _record(self, entry: ManifestEntry) -> None:
        if self.is_recorded(entry.original):
            return
        append_entry(self.root_dir, entry)
        self.entries.append(entry)


def count_session_files(session_dir: Path) -> int:
    if not session_dir.is_dir():
        return 0
    return sum(
        1 for p in session_dir.rglob("*")
        if (p.is_file() or p.is_symlink()) and p != session_dir / MANIFEST_NAME
    )

def init_session(
    base_dir: Path,
    enabled: bool = True,
    mode: ExecutionMode = ExecutionMode.APPLY,
    home: Optional[Path] = None,
    now: Optional[float] = None,
) -> BackupSession:
    """Create the session for this run. Nothing touches the disk until the first backup."""
    session = BackupSession(
        session_id=timestamp_id(now),
        base_dir=base_dir,
        home=home or Path.home(),
        enabled=enabled,
        mode=mode,
    )
    if not enabled:
        log_info("Backup disabled (--skip-backup)")
    else:
        log_debug(f"Backup session {session.session_id} at {session.root_dir}")
    return session

def backup_file(
    session: BackupSession,
    path: Path,
    description: Optional[str] = None,
    follow_symlinks: bool = True,
) -> Optional[Path]:
    """
    Copy path (content and metadata) into the session before it gets mutated.
    Returns the backup location, or None when there was nothing to do.
    Raises BackupWriteFailed if the copy cannot be confirmed on disk.

    A symlinked file is recorded under the file it points to, since that is
    what a write through the link changes. With follow_symlinks=False the link
    itself is saved instead.
    """
    path = Path(path)
    if session.is_noop:
        log_debug(f"Skipping backup for: {path}")
        return None
    keep_link = path.is_symlink() and not follow_symlinks
    if keep_link:
        path = Path(os.path.abspath(path))
    elif path.is_file():
        if path.is_symlink():
            path = path.resolve()
    else:
        log_debug(f"File does not exist, nothing to backup: {path}")
        return None

    relative = session.relative_path(path)
    entry = ManifestEntry(original=str(Path(os.path.abspath(path))), relative=relative, description=description)

    if session.simulate:
        session._intend(entry)
        log_dry_run(f"backup: {path} -> {session.root_dir / relative}")
        return session.root_dir / relative

    try:
        session._ensure_root()
        dest = session.root_dir / relative
        dest.parent.mkdir(parents=True, exist_ok=True)
        if dest.is_symlink():
            dest.unlink()
        if keep_link:
            shutil.copy2(path, dest, follow_symlinks=False)
            if os.readlink(dest) != os.readlink(path):
                raise OSError(f"Link mismatch after copying {path}")
        else:
            shutil.copy2(path, dest)
            if sha256_file(dest) != sha256_file(path):
                raise OSError(f"Checksum mismatch after copying {path}")
        session._record(entry)
    except OSError as e:
        raise BackupWriteFailed(f"Could not back up {path}: {e}") from e

    log_substep(f"Backed up: {path}")
    return dest

def backup_directory(session: BackupSession, directory: Path, description: Optional[str] = None) -> Optional[Path]:
    """Recursive analogue of backup_file. Symlinks inside the tree are copied as links."""
    directory = Path(directory)
    if session.is_noop:
        log_debug(f"Skipping backup for directory: {directory}")
        return None
    if not directory.is_dir():
        log_debug(f"Directory does not exist, nothing to backup: {directory}")
        return None

    relative = session.relative_path(directory)
    entry = ManifestEntry(
        original=str(Path(os.path.abspath(directory))) + "/",
        relative=relative + "/",
        description=description,
    )

    if session.simulate:
        session._intend(entry)
        log_dry_run(f"backup directory: {directory} -> {session.root_dir / relative}")
        return session.root_dir / relative

    try:
        session._ensure_root()
        dest = session.root_dir / relative
        dest.parent.mkdir(parents=True, exist_ok=True)
        if dest.exists():
            shutil.rmtree(dest)
        shutil.copytree(directory, dest, symlinks=True)
        if not dest.is_dir():
            raise OSError(f"Backup directory {dest} missing after copy")
        session._record(entry)
    except (OSError, shutil.Error) as e:
        raise BackupWriteFailed(f"Could not back up directory {directory}: {e}") from e

    log_substep(f"Backed up directory: {directory}")
    return dest

def backup_pattern(session: BackupSession, pattern: str, description: Optional[str] = None) -> List[Path]:
    """Back up every existing file or directory matching a glob pattern."""
    saved: List[Path] = []
    for match in sorted(glob.glob(os.path.expanduser(pattern))):
        p = Path(match)
        dest = backup_directory(session, p, description) if p.is_dir() else backup_file(session, p, description)
        if dest:
            saved.append(dest)
    return saved

def finalize_session(session: BackupSession) -> Optional[Path]:
    """
    End-of-run bookkeeping: report what was protected and remove a session
    directory that ended up holding nothing.
    """
    if session.is_noop:
        log_info("Backups were disabled for this session")
        return None
    if session.simulate:
        if session.intents:
            log_info(f"Would back up {len(session.intents)} item(s) to: {session.root_dir}")
        return None
    if not session.root_dir.is_dir():
        log_info("No backups were created")
        return None

    file_count = session.file_count
    if file_count == 0:
        shutil.rmtree(session.root_dir, ignore_errors=True)
        log_debug("No files were backed up")
        return None

    log_info(f"Backed up {file_count} file(s) to: {session.root_dir}")
    log_info(f"To restore: devsetup restore {session.session_id}")
    return session.root_dir

def session_size(session_dir: Path) -> int:
    return sum(p.stat().st_size for p in session_dir.rglob("*") if p.is_file() and not p.is_symlink())

def list_sessions(base_dir: Path) -> Iterator[SessionInfo]:
    """Yield every session under base_dir, oldest first."""
    base_dir = Path(base_dir)
    if not base_dir.is_dir():
        return
    for p in sorted(base_dir.iterdir(), key=lambda p: p.name):
        if p.is_dir() and is_session_id(p.name):
            yield SessionInfo(
                session_id=p.name,
                path=p,
                file_count=count_session_files(p),
                size_bytes=session_size(p),
            )

def prune_old_sessions(
    base_dir: Path,
    keep_count: int,
    mode: ExecutionMode = ExecutionMode.APPLY,
) -> List[Path]:
    """Delete all but the newest keep_count sessions. Returns the (would-be) removed directories."""
    if keep_count < 0:
        raise ValueError("keep_count must be >= 0")

    sessions = sorted((s.path for s in list_sessions(base_dir)), key=lambda p: p.name, reverse=True)
    if len(sessions) <= keep_count:
        log_debug(f"Only {len(sessions)} backups exist, nothing to clean up")
        return []

    to_remove = sessions[keep_count:]
    log_info(f"Cleaning up old backups (keeping {keep_count} most recent)")
    for path in to_remove:
        if mode == ExecutionMode.SIMULATE:
            log_dry_run(f"remove old backup: {path}")
        else:
            shutil.rmtree(path)
            log_substep(f"Removed: {path.name}")
    return to_remove

def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True

@contextmanager
def session_lock(base_dir: Path, mode: ExecutionMode = ExecutionMode.APPLY) -> Generator[Optional[Path], None, None]:
    """
    Reject a second concurrent apply-mode run against the same backup dir.
    A lock left behind by a dead process is taken over.
    """
    if mode == ExecutionMode.SIMULATE:
        yield None
        return

    base_dir = Path(base_dir)
    created_base = not base_dir.exists()
    base_dir.mkdir(parents=True, exist_ok=True)
    lock_path = base_dir / LOCK_NAME

    for _ in range(2):
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            try:
                pid = int(lock_path.read_text().strip() or 0)
            except (OSError, ValueError):
                pid = 0
            if pid != os.getpid() and _pid_alive(pid):
                raise SessionLocked(f"Another devsetup run (pid {pid}) holds {lock_path}")
            log_debug(f"Removing stale lock {lock_path}")
            lock_path.unlink(missing_ok=True)
            continue
        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        break
    else:
        raise SessionLocked(f"Could not acquire {lock_path}")

    try:
        yield lock_path
    finally:
        lock_path.unlink(missing_ok=True)
        if created_base:
            try:
                base_dir.rmdir()
            except OSError:
                pass
