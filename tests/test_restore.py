import os
from functools import partial

import pytest

from devsetup.backup import backup_directory, backup_file
from devsetup.errors import SessionNotFound
from devsetup.manifest import MANIFEST_NAME, manifest_header
from devsetup.models import ExecutionMode
from devsetup.mutator import apply_patch, ensure_symlink
from devsetup.patch import upsert_key_line
from devsetup.restore import restore_session

from conftest import SESSION_ID


def test_backup_mutate_restore_cycle(session, home, backup_base):
    conf = home / ".zshrc"
    conf.write_text("original\n")
    os.chmod(conf, 0o640)

    backup_file(session, conf)
    conf.write_text("mutated\n")
    os.chmod(conf, 0o600)

    result = restore_session(backup_base, SESSION_ID)

    assert result.restored == [str(conf)]
    assert result.skipped_count == 0
    assert conf.read_text() == "original\n"
    assert conf.stat().st_mode & 0o777 == 0o640

def test_restore_directory(session, home, backup_base):
    tree = home / ".config" / "tmux"
    tree.mkdir(parents=True)
    (tree / "a").write_text("a")
    backup_directory(session, tree)

    (tree / "a").write_text("changed")
    (tree / "extra").write_text("new")

    restore_session(backup_base, SESSION_ID)
    assert (tree / "a").read_text() == "a"
    assert not (tree / "extra").exists()

def test_restore_replaces_symlink_instead_of_following_it(session, home, backup_base, tmp_path):
    conf = home / ".config" / "tmux" / "tmux.conf"
    conf.parent.mkdir(parents=True)
    conf.write_text("user config\n")
    backup_file(session, conf)

    target = tmp_path / "oh-my-tmux.conf"
    target.write_text("framework\n")
    conf.unlink()
    conf.symlink_to(target)

    restore_session(backup_base, SESSION_ID)

    assert not conf.is_symlink()
    assert conf.read_text() == "user config\n"
    assert target.read_text() == "framework\n"

def test_symlinked_dotfile_round_trip(session, home, backup_base):
    real = home / "dotfiles" / "zshrc"
    real.parent.mkdir()
    real.write_text('ZSH_THEME="x"\n')
    link = home / ".zshrc"
    link.symlink_to(real)

    patch = partial(upsert_key_line, key_pattern=r"^ZSH_THEME=", replacement='ZSH_THEME=""')
    apply_patch(link, patch, session=session, mode=ExecutionMode.APPLY, description="theme")
    assert real.read_text() == 'ZSH_THEME=""\n'

    result = restore_session(backup_base, SESSION_ID)

    assert result.restored == [str(real)]
    assert link.is_symlink() and os.readlink(link) == str(real)
    assert real.read_text() == 'ZSH_THEME="x"\n'

def test_replaced_link_comes_back_as_link(session, home, backup_base, tmp_path):
    mine, framework = tmp_path / "mine.conf", tmp_path / "framework.conf"
    mine.write_text("mine")
    framework.write_text("framework")
    conf = home / ".config" / "tmux" / "tmux.conf"
    conf.parent.mkdir(parents=True)
    conf.symlink_to(mine)

    ensure_symlink(conf, framework, session=session, mode=ExecutionMode.APPLY, description="tmux.conf")
    restore_session(backup_base, SESSION_ID)

    assert conf.is_symlink() and os.readlink(conf) == str(mine)
    assert mine.read_text() == "mine"

def test_missing_copy_is_skipped(session, home, backup_base):
    a, b = home / "a", home / "b"
    a.write_text("a")
    b.write_text("b")
    backup_file(session, a)
    backup_file(session, b)
    (session.root_dir / "a").unlink()
    a.write_text("changed")
    b.write_text("changed")

    result = restore_session(backup_base, SESSION_ID)

    assert result.skipped == [str(a)]
    assert result.restored == [str(b)]
    assert a.read_text() == "changed"
    assert b.read_text() == "b"

def test_traversal_entry_is_skipped(backup_base, home):
    session_dir = backup_base / SESSION_ID
    session_dir.mkdir(parents=True)
    secret = backup_base / "secret"
    secret.write_text("do not copy")
    victim = home / "victim"
    (session_dir / MANIFEST_NAME).write_text(
        manifest_header(SESSION_ID) + f"{victim} -> ../secret\n"
    )

    result = restore_session(backup_base, SESSION_ID)

    assert result.restored == []
    assert result.skipped == [str(victim)]
    assert not victim.exists()

def test_restore_dry_run_changes_nothing(session, home, backup_base):
    conf = home / ".zshrc"
    conf.write_text("original\n")
    backup_file(session, conf)
    conf.write_text("mutated\n")

    result = restore_session(backup_base, SESSION_ID, ExecutionMode.SIMULATE)

    assert result.restored == [str(conf)]
    assert conf.read_text() == "mutated\n"

@pytest.mark.parametrize("session_id", ["20991231_235959", "../etc", ""])
def test_unknown_session(backup_base, session_id):
    backup_base.mkdir()
    with pytest.raises(SessionNotFound):
        restore_session(backup_base, session_id)
