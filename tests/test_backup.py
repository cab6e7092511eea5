import os
import time
from pathlib import Path

import pytest

from devsetup.backup import (
    LOCK_NAME,
    BackupSession,
    backup_directory,
    backup_file,
    backup_pattern,
    finalize_session,
    init_session,
    list_sessions,
    prune_old_sessions,
    session_lock,
)
from devsetup.errors import BackupWriteFailed, SessionLocked
from devsetup.manifest import MANIFEST_NAME, load_manifest
from devsetup.models import ExecutionMode
from devsetup.utils import is_session_id

from conftest import SESSION_ID


def test_init_session_is_lazy(backup_base, home):
    session = init_session(backup_base, home=home, now=time.mktime((2024, 1, 2, 3, 4, 5, 0, 0, -1)))
    assert session.session_id == "20240102_030405"
    assert is_session_id(session.session_id)
    assert not backup_base.exists()

def test_backup_file_preserves_content_and_mode(session, home):
    conf = home / ".zshrc"
    conf.write_text("export A=1\n")
    os.chmod(conf, 0o600)

    dest = backup_file(session, conf, "before plugin configuration")

    assert dest == session.root_dir / ".zshrc"
    assert dest.read_text() == "export A=1\n"
    assert dest.stat().st_mode & 0o777 == 0o600

    manifest = (session.root_dir / MANIFEST_NAME).read_text()
    assert manifest.startswith(f"# Backup Manifest - {SESSION_ID}\n# Created by devsetup\n\n")
    entries = load_manifest(session.root_dir)
    assert entries[0].original == str(conf)
    assert entries[0].relative == ".zshrc"
    assert entries[0].description == "before plugin configuration"

def test_backup_nested_path_mirrors_home(session, home):
    conf = home / ".config" / "tmux" / "tmux.conf.local"
    conf.parent.mkdir(parents=True)
    conf.write_text("x")

    dest = backup_file(session, conf)
    assert dest == session.root_dir / ".config" / "tmux" / "tmux.conf.local"

def test_backup_outside_home_goes_under_root_prefix(session, tmp_path):
    outside = tmp_path / "etc" / "thing.conf"
    outside.parent.mkdir()
    outside.write_text("x")

    dest = backup_file(session, outside)
    assert dest is not None
    assert dest.relative_to(session.root_dir).parts[0] == "_root"

def test_backup_missing_file_creates_nothing(session, home, backup_base):
    assert backup_file(session, home / ".nope") is None
    assert not backup_base.exists()

def test_second_backup_overwrites_copy_keeps_one_entry(session, home):
    conf = home / ".zshrc"
    conf.write_text("one\n")
    backup_file(session, conf)
    conf.write_text("two\n")
    dest = backup_file(session, conf)

    assert dest.read_text() == "two\n"
    assert len(load_manifest(session.root_dir)) == 1

def test_disabled_session_is_noop(home, backup_base):
    session = BackupSession(SESSION_ID, backup_base, home, enabled=False)
    conf = home / ".zshrc"
    conf.write_text("x")

    assert backup_file(session, conf) is None
    assert backup_directory(session, home) is None
    assert not backup_base.exists()
    assert finalize_session(session) is None

def test_simulate_records_intent_only(home, backup_base):
    session = BackupSession(SESSION_ID, backup_base, home, mode=ExecutionMode.SIMULATE)
    conf = home / ".zshrc"
    conf.write_text("x")

    backup_file(session, conf)

    assert [e.relative for e in session.intents] == [".zshrc"]
    assert not backup_base.exists()
    assert finalize_session(session) is None

def test_backup_directory_keeps_symlinks(session, home):
    tree = home / ".config" / "tmux"
    tree.mkdir(parents=True)
    (tree / "a.conf").write_text("a")
    (tree / "link.conf").symlink_to(tree / "a.conf")

    dest = backup_directory(session, tree, "tmux dir")

    assert (dest / "a.conf").read_text() == "a"
    assert (dest / "link.conf").is_symlink()
    entry = load_manifest(session.root_dir)[0]
    assert entry.is_directory
    assert entry.relative == ".config/tmux/"

def test_backup_pattern(session, home):
    (home / ".zshrc").write_text("z")
    (home / ".zshenv").write_text("e")
    (home / ".bashrc").write_text("b")

    saved = backup_pattern(session, str(home / ".zsh*"))
    assert sorted(p.name for p in saved) == [".zshenv", ".zshrc"]

def test_unwritable_backup_raises(session, home, monkeypatch):
    conf = home / ".zshrc"
    conf.write_text("x")

    def broken_copy(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr("devsetup.backup.shutil.copy2", broken_copy)
    with pytest.raises(BackupWriteFailed):
        backup_file(session, conf)

def test_finalize_removes_empty_session(session, home):
    session.root_dir.mkdir(parents=True)
    (session.root_dir / MANIFEST_NAME).write_text("# header\n")

    assert finalize_session(session) is None
    assert not session.root_dir.exists()

def test_finalize_keeps_populated_session(session, home):
    conf = home / ".zshrc"
    conf.write_text("x")
    backup_file(session, conf)

    assert finalize_session(session) == session.root_dir
    assert session.file_count == 1


def _make_sessions(base: Path, count: int) -> list:
    ids = [f"2024010{i}_120000" for i in range(1, count + 1)]
    for session_id in ids:
        (base / session_id).mkdir(parents=True)
        (base / session_id / "f").write_text("x")
    return ids

def test_list_sessions_ignores_foreign_dirs(backup_base):
    ids = _make_sessions(backup_base, 3)
    (backup_base / "not-a-session").mkdir()
    (backup_base / LOCK_NAME).write_text("1")

    sessions = list(list_sessions(backup_base))
    assert [s.session_id for s in sessions] == ids
    assert all(s.file_count == 1 for s in sessions)

def test_list_sessions_missing_base(tmp_path):
    assert list(list_sessions(tmp_path / "none")) == []

def test_prune_keeps_newest(backup_base):
    ids = _make_sessions(backup_base, 7)

    removed = prune_old_sessions(backup_base, 5)

    assert sorted(p.name for p in removed) == ids[:2]
    assert [s.session_id for s in list_sessions(backup_base)] == ids[2:]

def test_prune_dry_run_deletes_nothing(backup_base):
    ids = _make_sessions(backup_base, 4)
    removed = prune_old_sessions(backup_base, 1, ExecutionMode.SIMULATE)

    assert len(removed) == 3
    assert [s.session_id for s in list_sessions(backup_base)] == ids

def test_prune_keep_zero_and_negative(backup_base):
    _make_sessions(backup_base, 2)
    with pytest.raises(ValueError):
        prune_old_sessions(backup_base, -1)
    assert len(prune_old_sessions(backup_base, 0)) == 2
    assert list(list_sessions(backup_base)) == []

def test_lock_rejects_live_holder(backup_base):
    backup_base.mkdir()
    (backup_base / LOCK_NAME).write_text(str(os.getppid()))

    with pytest.raises(SessionLocked):
        with session_lock(backup_base):
            pass

def test_lock_takes_over_stale_and_cleans_up(backup_base, monkeypatch):
    backup_base.mkdir()
    (backup_base / LOCK_NAME).write_text("999999")
    monkeypatch.setattr("devsetup.backup._pid_alive", lambda pid: False)

    with session_lock(backup_base) as lock:
        assert lock.read_text() == str(os.getpid())
    assert not (backup_base / LOCK_NAME).exists()

def test_lock_removes_base_dir_it_created(backup_base):
    with session_lock(backup_base):
        assert backup_base.is_dir()
    assert not backup_base.exists()

def test_simulate_takes_no_lock(backup_base):
    with session_lock(backup_base, ExecutionMode.SIMULATE) as lock:
        assert lock is None
    assert not backup_base.exists()

def test_runs_in_the_same_second_get_separate_sessions(backup_base, home):
    when = time.mktime((2024, 1, 2, 3, 4, 5, 0, 0, -1))
    conf = home / ".zshrc"
    conf.write_text("original\n")

    first = init_session(backup_base, home=home, now=when)
    backup_file(first, conf)
    conf.write_text("mutated\n")

    second = init_session(backup_base, home=home, now=when)
    backup_file(second, conf)

    assert first.session_id == "20240102_030405"
    assert second.session_id == "20240102_030406"
    assert (first.root_dir / ".zshrc").read_text() == "original\n"
    assert (second.root_dir / ".zshrc").read_text() == "mutated\n"
    assert len(load_manifest(first.root_dir)) == 1
    assert (second.root_dir / MANIFEST_NAME).read_text().startswith("# Backup Manifest - 20240102_030406\n")

def test_simulated_backups_are_recorded_once(backup_base, home):
    conf = home / ".zshrc"
    conf.write_text("x")
    session = BackupSession("20240101_120000", backup_base, home, mode=ExecutionMode.SIMULATE)

    backup_file(session, conf)
    backup_file(session, conf)

    assert len(session.intents) == 1
    assert not backup_base.exists()
