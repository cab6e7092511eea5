"""
Idempotent mutation of configuration documents.

Every change goes through the same sequence:
check desired state -> (simulate: report and stop) -> back up -> atomic replace.
The two write chokepoints (_commit_text and ensure_symlink) are the only
places that look at the ExecutionMode.
"""
import difflib
import os
import shutil
from pathlib import Path
from typing import Callable, List, Optional

from .backup import BackupSession, backup_directory, backup_file
from .errors import BackupWriteFailed, DocumentNotFound, DocumentReadFailed, DocumentWriteFailed, StructureError
from .models import ExecutionMode, MutationResult, MutationStatus
from .patch import ConfigDocument, PatchOutcome
from .ui import is_verbose, log_debug, log_dry_run, log_substep, log_success, log_warn, render_diff
from .utils import atomic_write_text, read_document

Patch = Callable[[List[str]], PatchOutcome]


def unified_diff(old: str, new: str, path: Path) -> str:
    diff = difflib.unified_diff(
        old.splitlines(keepends=True),
        new.splitlines(keepends=True),
        fromfile=f"{path} (current)",
        tofile=f"{path} (proposed)",
    )
    return "".join(diff)

def _commit_text(
    path: Path,
    old_text: str,
    new_text: str,
    summary: str,
    *,
    session: BackupSession,
    mode: ExecutionMode,
    description: str,
) -> MutationResult:
    diff = unified_diff(old_text, new_text, path)

    if mode == ExecutionMode.SIMULATE:
        if session.simulate and path.exists():
            backup_file(session, path, description)
        log_dry_run(f"{summary} in {path}")
        render_diff(diff)
        return MutationResult(path=path, status=MutationStatus.WOULD_CHANGE, summary=summary, diff=diff)

    # The original must be safely copied before it is overwritten.
    if path.exists():
        saved = backup_file(session, path, description)
        if not session.is_noop and (saved is None or not saved.is_file()):
            raise BackupWriteFailed(f"Backup of {path} could not be confirmed; not modifying it")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_text(path, new_text)
    except OSError as e:
        raise DocumentWriteFailed(f"Failed to write {path}: {e}") from e

    if is_verbose():
        render_diff(diff)
    log_substep(f"{summary} in {path}")
    return MutationResult(path=path, status=MutationStatus.CHANGED, summary=summary, diff=diff)

def _skipped(path: Path, description: str, error: Exception) -> MutationResult:
    log_warn(f"{description}: {error}. Skipped.")
    return MutationResult(path=path, status=MutationStatus.SKIPPED, summary=description, warning=str(error))

def apply_patch(
    path: Path,
    patch: Patch,
    *,
    session: BackupSession,
    mode: ExecutionMode,
    description: str,
    required: bool = True,
) -> MutationResult:
    """
    Run patch against the document at path and persist the result if it changed.

    Raises DocumentNotFound if a required document is missing. A document whose
    shape does not fit the patch is skipped with a warning. An unchanged
    document is neither backed up nor written.
    """
    path = Path(path)
    if path.is_file():
        try:
            doc = ConfigDocument.load(path)
        except DocumentReadFailed as e:
            return _skipped(path, description, e)
    elif required:
        raise DocumentNotFound(f"{path} not found ({description})")
    else:
        doc = ConfigDocument(path=path)

    try:
        outcome = patch(list(doc.lines))
    except StructureError as e:
        return _skipped(path, description, e)

    if not outcome.changed:
        if outcome.warning:
            log_warn(f"{description}: {outcome.warning}")
        else:
            log_success(f"{description}: already configured")
        return MutationResult(path=path, status=MutationStatus.UNCHANGED, summary=outcome.summary, warning=outcome.warning)

    return _commit_text(
        path, doc.text, doc.render(outcome.lines), outcome.summary,
        session=session, mode=mode, description=description,
    )

def write_content(
    path: Path,
    text: str,
    *,
    session: BackupSession,
    mode: ExecutionMode,
    description: str,
) -> MutationResult:
    """Make path hold exactly text. Backs up whatever was there first."""
    path = Path(path)
    old_text = ""
    if path.is_file():
        try:
            old_text = read_document(path)
        except OSError as e:
            return _skipped(path, description, DocumentReadFailed(f"Cannot read {path}: {e}"))
        if old_text == text:
            log_success(f"{description}: already configured")
            return MutationResult(path=path, status=MutationStatus.UNCHANGED, summary="content already in place")

    summary = "rewrote file" if path.exists() else "created file"
    return _commit_text(path, old_text, text, summary, session=session, mode=mode, description=description)

def _backup_link_target(session: BackupSession, path: Path, description: str) -> Optional[Path]:
    """Save whatever a new link will replace. An existing link is kept as a link."""
    if path.is_symlink():
        return backup_file(session, path, description, follow_symlinks=False)
    if path.is_dir():
        return backup_directory(session, path, description)
    return backup_file(session, path, description)

def ensure_symlink(
    path: Path,
    target: Path,
    *,
    session: BackupSession,
    mode: ExecutionMode,
    description: str,
) -> MutationResult:
    """Point path at target, backing up whatever currently lives at path."""
    path = Path(path)
    summary = f"link {path} -> {target}"
    if path.is_symlink() and os.readlink(path) == str(target):
        log_success(f"{description}: already linked")
        return MutationResult(path=path, status=MutationStatus.UNCHANGED, summary=summary)

    if mode == ExecutionMode.SIMULATE:
        if session.simulate and (path.exists() or path.is_symlink()):
            _backup_link_target(session, path, description)
        log_dry_run(f"create symlink: {path} -> {target}")
        return MutationResult(path=path, status=MutationStatus.WOULD_CHANGE, summary=summary)

    if path.exists() or path.is_symlink():
        if _backup_link_target(session, path, description) is None and not session.is_noop:
            raise BackupWriteFailed(f"Backup of {path} could not be confirmed; not replacing it")

    tmp_link = path.with_name(f".{path.name}.devsetup-link")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_link.unlink(missing_ok=True)
        os.symlink(target, tmp_link)
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        os.replace(tmp_link, path)
    except OSError as e:
        tmp_link.unlink(missing_ok=True)
        raise DocumentWriteFailed(f"Failed to link {path}: {e}") from e

    log_debug(summary)
    log_substep(f"Linked {path} -> {target}")
    return MutationResult(path=path, status=MutationStatus.CHANGED, summary=summary)

def summarize(results: List[MutationResult]) -> Optional[str]:
    """One-line tally for a unit's mutations, None if there were none."""
    if not results:
        return None
    counts = {status: sum(1 for r in results if r.status == status) for status in MutationStatus}
    parts = [f"{n} {status.value.replace('_', ' ')}" for status, n in counts.items() if n]
    return ", ".join(parts)
