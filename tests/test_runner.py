import pytest

from devsetup.errors import BackupWriteFailed, CommandError, ModuleSelectionError, PreconditionMissing
from devsetup.models import ExecutionMode, ModuleStatus
from devsetup.modules import SetupModule
from devsetup.modules.zsh_plugins import ZshPluginsModule
from devsetup.runner import run_modules, select_modules


class Recorder(SetupModule):
    def __init__(self, name, error=None, status=ModuleStatus.OK, log=None):
        self.name = name
        self.description = f"{name} unit"
        self.error = error
        self.status = status
        self.log = log if log is not None else []

    def apply(self, ctx):
        self.log.append(self.name)
        if self.error:
            raise self.error
        return self.result(self.status, "done")


def test_select_all_by_default():
    units = [Recorder("00-a"), Recorder("01-b")]
    assert select_modules(units) == units

def test_select_keeps_registry_order():
    units = [Recorder("00-a"), Recorder("01-b"), Recorder("02-c")]
    picked = select_modules(units, selected=["02-c", "00-a"])
    assert [m.name for m in picked] == ["00-a", "02-c"]

def test_skip():
    units = [Recorder("00-a"), Recorder("01-b")]
    assert [m.name for m in select_modules(units, skipped=["00-a", "zz-unknown"])] == ["01-b"]

def test_unknown_selection():
    with pytest.raises(ModuleSelectionError):
        select_modules([Recorder("00-a")], selected=["nope"])

def test_failure_does_not_stop_later_units(make_ctx):
    log = []
    units = [
        Recorder("00-a", error=PreconditionMissing("no brew"), log=log),
        Recorder("01-b", error=CommandError("exit 1"), log=log),
        Recorder("02-c", log=log),
    ]
    report = run_modules(make_ctx(), units)

    assert log == ["00-a", "01-b", "02-c"]
    assert [r.status for r in report.results] == [ModuleStatus.FAILED, ModuleStatus.FAILED, ModuleStatus.OK]
    assert report.exit_code == 1
    assert not report.aborted

def test_fail_fast(make_ctx):
    log = []
    units = [Recorder("00-a", status=ModuleStatus.FAILED, log=log), Recorder("01-b", log=log)]
    report = run_modules(make_ctx(), units, fail_fast=True)

    assert log == ["00-a"]
    assert report.aborted

def test_backup_failure_aborts_run(make_ctx):
    log = []
    units = [Recorder("00-a", error=BackupWriteFailed("disk full"), log=log), Recorder("01-b", log=log)]
    report = run_modules(make_ctx(), units)

    assert log == ["00-a"]
    assert report.aborted
    assert report.exit_code == 1

def test_success_and_session_finalized(make_ctx, home):
    conf = home / ".zshrc"
    conf.write_text("x")

    class Touch(SetupModule):
        name = "00-touch"

        def apply(self, ctx):
            from devsetup.backup import backup_file
            backup_file(ctx.session, conf)
            return self.result()

    ctx = make_ctx()
    report = run_modules(ctx, [Touch(), Recorder("01-b")])

    assert report.success
    assert report.exit_code == 0
    assert report.backup_dir == ctx.session.root_dir

def test_empty_session_removed(make_ctx):
    ctx = make_ctx()
    ctx.session.root_dir.mkdir(parents=True)
    report = run_modules(ctx, [Recorder("00-a")])
    assert report.backup_dir is None
    assert not ctx.session.root_dir.exists()

def test_simulate_run_reports_no_backup_dir(make_ctx, zshrc, backup_base):
    ctx = make_ctx(mode=ExecutionMode.SIMULATE)
    report = run_modules(ctx, [Recorder("00-a")])
    assert report.backup_dir is None
    assert not backup_base.exists()

def test_latin1_zshrc_does_not_break_the_run(make_ctx, runner, home):
    zshrc = home / ".zshrc"
    zshrc.write_bytes(b"# caf\xe9\nplugins=(git)\nsource $ZSH/oh-my-zsh.sh\n")
    runner.respond(["/usr/local/bin/brew", "--prefix"], stdout="/opt/homebrew\n")
    ctx = make_ctx()

    report = run_modules(ctx, [ZshPluginsModule()])

    assert report.success
    assert zshrc.read_bytes().startswith(b"# caf\xe9\nplugins=(\n")
    assert report.backup_dir == ctx.session.root_dir
