import pytest

from devsetup.detect import SECTIONS, StateDetector, run_detection

from conftest import fake_which

VERSIONS = {
    "brew": "Homebrew 4.2.0\nHomebrew/homebrew-core (git revision 1)",
    "zsh": "zsh 5.9 (arm-apple-darwin22.1.0)",
    "tmux": "tmux 3.4",
    "fzf": "0.46.1 (brew)",
    "node": "v20.11.0",
    "uv": "uv 0.1.24",
    "git": "git version 2.43.0",
}


def probe(argv, timeout):
    return VERSIONS.get(argv[0])


@pytest.fixture
def detector(home):
    return StateDetector(
        home,
        run=probe,
        which=fake_which(["brew", "zsh", "tmux", "fzf", "node", "uv", "git"]),
        font_dirs=[home / "Library" / "Fonts"],
    )


@pytest.mark.parametrize("name, version", [
    ("homebrew", "4.2.0"),
    ("zsh", "5.9"),
    ("tmux", "3.4"),
    ("fzf", "0.46.1"),
    ("node", "20.11.0"),
    ("uv", "0.1.24"),
    ("git", "2.43.0"),
])
def test_tool_versions(detector, name, version):
    cap = detector.detect(name)
    assert cap.installed
    assert cap.version == version

def test_missing_tool(detector):
    cap = detector.detect("oh-my-posh")
    assert not cap.installed
    assert cap.version is None

def test_failing_probe_still_installed(home):
    detector = StateDetector(home, run=lambda argv, timeout: None, which=fake_which(["tmux"]))
    cap = detector.detect("tmux")
    assert cap.installed
    assert cap.version == "installed"

def test_unknown_capability(detector):
    with pytest.raises(ValueError):
        detector.detect("emacs")

def test_oh_my_zsh_and_oh_my_tmux(detector, home):
    assert not detector.detect("oh-my-zsh").installed
    (home / ".oh-my-zsh").mkdir()
    assert detector.detect("oh-my-zsh").installed

    omt = home / ".local" / "share" / "tmux" / "oh-my-tmux"
    omt.mkdir(parents=True)
    assert not detector.detect("oh-my-tmux").installed
    (omt / ".tmux.conf").write_text("")
    assert detector.detect("oh-my-tmux").path == str(omt)

def test_nerd_font(detector, home):
    fonts = home / "Library" / "Fonts"
    fonts.mkdir(parents=True)
    (fonts / "Arial.ttf").write_text("")
    assert not detector.detect("nerd-font").installed

    (fonts / "MesloLGSNerdFont-Regular.ttf").write_text("")
    assert detector.detect("nerd-font").installed
    assert detector.nerd_font("meslo-lg").installed
    assert not detector.nerd_font("fira-code").installed

def test_tmux_solarized(detector, home):
    local = home / ".config" / "tmux" / "tmux.conf.local"
    local.parent.mkdir(parents=True)
    local.write_text("# plain\n")
    assert detector.detect("tmux-local-config").installed
    assert not detector.detect("tmux-solarized-dark").installed
    local.write_text("# Solarized Dark theme\n")
    assert detector.detect("tmux-solarized-dark").installed

def test_zshrc_queries(detector, zshrc):
    assert detector.zsh_plugin_enabled("git")
    assert not detector.zsh_plugin_enabled("docker")
    assert not detector.zshrc_has_omp()
    zshrc.write_text(zshrc.read_text() + 'eval "$(oh-my-posh init zsh)"\n')
    assert detector.zshrc_has_omp()

def test_detection_is_read_only(detector, home):
    before = sorted(p.name for p in home.rglob("*"))
    rows = run_detection(detector)
    assert len(rows) == sum(len(names) for _, names in SECTIONS)
    assert sorted(p.name for p in home.rglob("*")) == before
