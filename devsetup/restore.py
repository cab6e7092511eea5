"""
Session restore: hard rollback of every manifest entry to its original path.
"""
import os
import shutil
from pathlib import Path
from typing import List

from .errors import PathTraversalError, SessionNotFound
from .manifest import MANIFEST_NAME, load_manifest
from .models import ExecutionMode, ManifestEntry, RestoreResult
from .ui import log_dry_run, log_error, log_step, log_substep, log_success, log_warn
from .utils import validate_path


def _session_dir(base_dir: Path, session_id: str) -> Path:
    base_dir = Path(base_dir)
    try:
        path = validate_path(base_dir / session_id, base_dir)
    except PathTraversalError:
        raise SessionNotFound(f"Backup session not found: {session_id}")
    if path == base_dir.resolve() or not path.is_dir():
        raise SessionNotFound(f"Backup session not found: {session_id}")
    return path

def _backup_copy(session_dir: Path, relative: str) -> Path:
    """Location of a stored copy. A stored link is not followed."""
    candidate = session_dir / relative.rstrip("/")
    if candidate.name in ("", ".", ".."):
        raise PathTraversalError(f"Path '{relative}' escapes base directory '{session_dir}'.")
    return validate_path(candidate.parent, session_dir) / candidate.name

def _replace_path(src: Path, dest: Path) -> None:
    """
    Put src at dest, whatever currently occupies dest. Links are replaced, not followed.
    A saved link comes back as the same link.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    if dest.is_symlink() or (dest.exists() and not dest.is_dir()):
        dest.unlink()
    elif dest.is_dir():
        shutil.rmtree(dest)

    if src.is_symlink():
        os.symlink(os.readlink(src), dest)
    elif src.is_dir():
        shutil.copytree(src, dest, symlinks=True)
    else:
        shutil.copy2(src, dest)

def restore_entries(session_dir: Path, entries: List[ManifestEntry], mode: ExecutionMode) -> RestoreResult:
    restored: List[str] = []
    skipped: List[str] = []
    failed: List[str] = []

    for entry in entries:
        original = entry.original.rstrip("/") or "/"
        try:
            src = _backup_copy(session_dir, entry.relative)
        except PathTraversalError:
            log_warn(f"Unsafe backup path in manifest, skipping: {entry.relative}")
            skipped.append(original)
            continue

        if not (src.exists() or src.is_symlink()):
            log_warn(f"Backup copy missing, skipping: {original}")
            skipped.append(original)
            continue

        dest = Path(original)
        if mode == ExecutionMode.SIMULATE:
            log_dry_run(f"restore: {src} -> {dest}")
            restored.append(original)
            continue

        try:
            _replace_path(src, dest)
        except (OSError, shutil.Error) as e:
            log_error(f"Failed to restore {dest}: {e}")
            failed.append(original)
            continue
        log_substep(f"Restored: {dest}")
        restored.append(original)

    return RestoreResult(session_id=session_dir.name, restored=restored, skipped=skipped, failed=failed)

def restore_session(
    base_dir: Path,
    session_id: str,
    mode: ExecutionMode = ExecutionMode.APPLY,
) -> RestoreResult:
    """
    Copy every backed-up file of a session back over its original location.
    Raises SessionNotFound for an unknown id; individual entry problems are
    reported in the result and never abort the restore.
    """
    session_dir = _session_dir(base_dir, session_id)
    log_step(f"Restoring from backup: {session_id}")

    if not (session_dir / MANIFEST_NAME).exists():
        log_warn(f"Session {session_id} has no manifest; nothing to restore")

    result = restore_entries(session_dir, load_manifest(session_dir), mode)
    log_success(f"Restore complete ({result.restored_count} restored, {result.skipped_count} skipped)")
    return result
