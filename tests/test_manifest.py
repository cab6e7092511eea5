from devsetup.manifest import (
    MANIFEST_NAME,
    append_entry,
    format_entry,
    load_manifest,
    manifest_header,
    parse_manifest,
)
from devsetup.models import ManifestEntry


def test_header_format():
    assert manifest_header("20240101_120000") == (
        "# Backup Manifest - 20240101_120000\n# Created by devsetup\n\n"
    )

def test_entry_with_description():
    entry = ManifestEntry(original="/home/me/.zshrc", relative=".zshrc", description="before plugin configuration")
    assert format_entry(entry) == "/home/me/.zshrc -> .zshrc\n  # before plugin configuration\n"

def test_parse_ignores_comments_blanks_and_garbage():
    text = (
        "# Backup Manifest - 20240101_120000\n"
        "# Created by devsetup\n"
        "\n"
        "/home/me/.zshrc -> .zshrc\n"
        "  # before plugin configuration\n"
        "this line has no arrow\n"
        "/home/me/.config/tmux/ -> .config/tmux/\n"
    )
    entries = parse_manifest(text)

    assert [(e.original, e.relative) for e in entries] == [
        ("/home/me/.zshrc", ".zshrc"),
        ("/home/me/.config/tmux/", ".config/tmux/"),
    ]
    assert entries[0].description == "before plugin configuration"
    assert entries[1].description is None
    assert entries[1].is_directory

def test_description_only_attaches_to_preceding_mapping():
    text = "# header\n\n  # orphan description\n/a -> a\n"
    entries = parse_manifest(text)
    assert len(entries) == 1
    assert entries[0].description is None

def test_paths_with_spaces(tmp_path):
    entry = ManifestEntry(original="/home/me/My Files/conf", relative="My Files/conf")
    assert parse_manifest(format_entry(entry)) == [entry]

def test_append_and_load(tmp_path):
    (tmp_path / MANIFEST_NAME).write_text(manifest_header("20240101_120000"))
    append_entry(tmp_path, ManifestEntry(original="/h/.zshrc", relative=".zshrc", description="first"))
    append_entry(tmp_path, ManifestEntry(original="/h/.tmux.conf", relative=".tmux.conf"))

    entries = load_manifest(tmp_path)
    assert [e.relative for e in entries] == [".zshrc", ".tmux.conf"]
    assert entries[0].description == "first"

def test_load_missing_manifest(tmp_path):
    assert load_manifest(tmp_path) == []
