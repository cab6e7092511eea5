"""
Manifest logic for backup sessions. Append-only, line-oriented text record.

    # Backup Manifest - 20231215_143022
    # Created by devsetup

    /Users/me/.zshrc -> .zshrc
      # before plugin configuration
    /Users/me/.config/tmux/ -> .config/tmux/
"""
import re
from pathlib import Path
from typing import List, Optional, Tuple

from .models import ManifestEntry

MANIFEST_NAME = "MANIFEST.txt"

ENTRY_RE = re.compile(r"^(?P<original>\S.*?)\s+->\s+(?P<relative>\S.*?)\s*$")
DESCRIPTION_RE = re.compile(r"^\s+#\s?(?P<text>.*)$")


def manifest_header(session_id: str) -> str:
    return f"# Backup Manifest - {session_id}\n# Created by devsetup\n\n"

def format_entry(entry: ManifestEntry) -> str:
    """Render an entry as its mapping line plus optional description line."""
    text = f"{entry.original} -> {entry.relative}\n"
    if entry.description:
        description = " ".join(entry.description.split())
        text += f"  # {description}\n"
    return text

def parse_mapping(line: str) -> Optional[Tuple[str, str]]:
    """Return (original, relative) for a mapping line, None for anything else."""
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    m = ENTRY_RE.match(line.rstrip("\n"))
    if not m:
        return None
    return m.group("original"), m.group("relative")

def parse_manifest(text: str) -> List[ManifestEntry]:
    """
    Parse manifest text strictly line by line.
    Comment, blank and malformed lines are ignored; a description line attaches
    to the mapping line immediately above it.
    """
    entries: List[ManifestEntry] = []
    previous_was_mapping = False
    for line in text.splitlines():
        mapping = parse_mapping(line)
        if mapping:
            entries.append(ManifestEntry(original=mapping[0], relative=mapping[1]))
            previous_was_mapping = True
            continue
        desc = DESCRIPTION_RE.match(line)
        if desc and previous_was_mapping:
            last = entries[-1]
            entries[-1] = last.model_copy(update={"description": desc.group("text").strip()})
        previous_was_mapping = False
    return entries

def load_manifest(session_dir: Path) -> List[ManifestEntry]:
    path = session_dir / MANIFEST_NAME
    if not path.exists():
        return []
    return parse_manifest(path.read_text(encoding="utf-8", errors="replace"))

def append_entry(session_dir: Path, entry: ManifestEntry) -> None:
    """Append an entry to the session manifest; the file must already have its header."""
    with (session_dir / MANIFEST_NAME).open("a", encoding="utf-8") as f:
        f.write(format_entry(entry))
        f.flush()
