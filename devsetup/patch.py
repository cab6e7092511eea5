"""
Line-oriented patching of human-owned configuration documents.

A document is an ordered list of lines. Patches recognise three kinds of region
and leave every other line exactly where it was:

  * a managed block, delimited by an opening and a closing marker
  * managed single lines, found by a key pattern or substring
  * free text, never touched

Every patch is a pure function from lines to a PatchOutcome. Reading, backing
up and writing the file is the mutator's business.
"""
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .errors import AnchorNotFound, DocumentNotFound, DocumentReadFailed, UnterminatedBlock
from .utils import read_document


@dataclass(frozen=True)
class PatchOutcome:
    lines: Tuple[str, ...]
    changed: bool
    summary: str
    warning: Optional[str] = None


@dataclass(frozen=True)
class BlockSpec:
    """A managed block such as zsh's ``plugins=( ... )`` list."""
    open_pattern: str
    close_pattern: str
    header: str
    footer: str
    items: Tuple[str, ...]
    anchor_pattern: str
    # Closes a block on its own opening line, e.g. ``plugins=(git z)``
    inline_close_pattern: Optional[str] = None
    item_indent: str = "  "

    def render(self) -> List[str]:
        return [self.header, *(f"{self.item_indent}{item}" for item in self.items), self.footer]


@dataclass
class ConfigDocument:
    path: Optional[Path]
    lines: List[str] = field(default_factory=list)
    trailing_newline: bool = True
    newline: str = "\n"

    @classmethod
    def from_text(cls, text: str, path: Optional[Path] = None) -> "ConfigDocument":
        # The separator is kept as found so CRLF files come back out as CRLF
        newline = "\r\n" if "\r\n" in text else "\n"
        trailing = text.endswith(newline) or text == ""
        lines = text.split(newline)
        if trailing and lines and lines[-1] == "":
            lines.pop()
        return cls(path=path, lines=lines, trailing_newline=trailing, newline=newline)

    @classmethod
    def load(cls, path: Path) -> "ConfigDocument":
        path = Path(path)
        if not path.is_file():
            raise DocumentNotFound(f"{path} not found")
        try:
            text = read_document(path)
        except OSError as e:
            raise DocumentReadFailed(f"Cannot read {path}: {e}") from e
        return cls.from_text(text, path)

    def render(self, lines: Optional[Sequence[str]] = None) -> str:
        lines = self.lines if lines is None else lines
        if not lines:
            return ""
        return self.newline.join(lines) + (self.newline if self.trailing_newline else "")

    @property
    def text(self) -> str:
        return self.render()

    def contains(self, substring: str) -> bool:
        return any(substring in line for line in self.lines)


def _unchanged(lines: Sequence[str], summary: str, warning: Optional[str] = None) -> PatchOutcome:
    return PatchOutcome(tuple(lines), False, summary, warning)

def _outcome(old: Sequence[str], new: Sequence[str], summary: str) -> PatchOutcome:
    return PatchOutcome(tuple(new), list(new) != list(old), summary)

def first_match(lines: Sequence[str], pattern: str) -> Optional[int]:
    """Index of the first line matching pattern. First match wins."""
    regex = re.compile(pattern)
    for i, line in enumerate(lines):
        if regex.search(line):
            return i
    return None

def find_blocks(lines: Sequence[str], spec: BlockSpec) -> List[Tuple[int, int]]:
    """Inclusive (start, end) line ranges of every managed block."""
    open_re = re.compile(spec.open_pattern)
    close_re = re.compile(spec.close_pattern)
    inline_re = re.compile(spec.inline_close_pattern) if spec.inline_close_pattern else None

    blocks: List[Tuple[int, int]] = []
    i = 0
    while i < len(lines):
        m = open_re.search(lines[i])
        if not m:
            i += 1
            continue
        if inline_re and inline_re.search(lines[i][m.end():]):
            blocks.append((i, i))
            i += 1
            continue
        j = i + 1
        while j < len(lines) and not close_re.search(lines[j]):
            j += 1
        if j == len(lines):
            raise UnterminatedBlock(f"Block opened at line {i + 1} ({lines[i].strip()!r}) is never closed")
        blocks.append((i, j))
        i = j + 1
    return blocks

def block_items(lines: Sequence[str], start: int, end: int, spec: BlockSpec) -> List[str]:
    """Whitespace-separated items inside a block, comments stripped, in order."""
    open_m = re.search(spec.open_pattern, lines[start])
    body: List[str] = [lines[start][open_m.end():] if open_m else ""]
    if start == end:
        if spec.inline_close_pattern:
            body[0] = re.split(spec.inline_close_pattern, body[0], maxsplit=1)[0]
    else:
        body.extend(lines[start + 1:end])
        close_m = re.search(spec.close_pattern, lines[end])
        body.append(lines[end][:close_m.start()] if close_m else "")

    items: List[str] = []
    for text in body:
        items.extend(text.split("#", 1)[0].split())
    return items

def replace_block(lines: Sequence[str], spec: BlockSpec) -> PatchOutcome:
    """
    Replace the managed block with a freshly rendered one placed immediately
    before the anchor line.

    Already satisfied when there is exactly one block, its items equal the
    desired items in the same order, and it sits before the anchor. Every old
    block is removed before insertion. Raises AnchorNotFound (nothing changed)
    when an update is needed but the anchor line is absent.
    """
    blocks = find_blocks(lines, spec)
    anchor = first_match(lines, spec.anchor_pattern)

    if len(blocks) == 1:
        start, end = blocks[0]
        placed = anchor is None or start < anchor
        if placed and block_items(lines, start, end, spec) == list(spec.items):
            return _unchanged(lines, "block already up to date")

    remaining = list(lines)
    for start, end in reversed(blocks):
        del remaining[start:end + 1]

    insert_at = first_match(remaining, spec.anchor_pattern)
    if insert_at is None:
        raise AnchorNotFound(f"No line matching {spec.anchor_pattern!r}; block not written")

    new = remaining[:insert_at] + spec.render() + remaining[insert_at:]
    verb = "replaced" if blocks else "inserted"
    return _outcome(lines, new, f"{verb} block {spec.header!r} ({', '.join(spec.items)})")

def upsert_key_line(
    lines: Sequence[str],
    key_pattern: str,
    replacement: str,
    comment: Optional[str] = None,
) -> PatchOutcome:
    """
    Replace, in place, every line matching key_pattern with replacement, and
    make sure comment sits directly above the first of them. A document without
    the key is left alone and the absence is reported as a warning.
    """
    key_re = re.compile(key_pattern)
    indexes = [i for i, line in enumerate(lines) if key_re.search(line)]
    if not indexes:
        return _unchanged(lines, "key not present", f"No line matching {key_pattern!r}; left unchanged")

    new = list(lines)
    for i in indexes:
        new[i] = replacement
    first = indexes[0]
    if comment is not None and (first == 0 or new[first - 1] != comment):
        new.insert(first, comment)

    if new == list(lines):
        return _unchanged(lines, f"{replacement!r} already set")
    return _outcome(lines, new, f"set {replacement!r}")

def append_if_absent(
    lines: Sequence[str],
    marker: str,
    new_lines: Sequence[str],
    comment: Optional[str] = None,
) -> PatchOutcome:
    """Append a blank line, comment and new_lines unless some line already contains marker."""
    if any(marker in line for line in lines):
        return _unchanged(lines, f"{marker!r} already present")

    new = list(lines)
    if new:
        new.append("")
    if comment is not None:
        new.append(comment)
    new.extend(new_lines)
    return _outcome(lines, new, f"appended {len(new_lines)} line(s) for {marker!r}")

def insert_after_anchor(
    lines: Sequence[str],
    anchor_pattern: str,
    new_lines: Sequence[str],
    remove_patterns: Sequence[str] = (),
) -> PatchOutcome:
    """
    Make new_lines follow the first anchor line directly, removing stale lines
    matching remove_patterns anywhere else (plus one blank line leading each
    removed run). Raises AnchorNotFound when the anchor is absent.
    """
    anchor = first_match(lines, anchor_pattern)
    if anchor is None:
        raise AnchorNotFound(f"No line matching {anchor_pattern!r}; lines not written")

    removers = [re.compile(p) for p in remove_patterns]

    def stale(line: str) -> bool:
        return any(r.search(line) for r in removers)

    window = list(lines[anchor + 1:anchor + 1 + len(new_lines)])
    outside = list(lines[:anchor + 1]) + list(lines[anchor + 1 + len(new_lines):])
    if window == list(new_lines) and not any(stale(line) for line in outside):
        return _unchanged(lines, "lines already in place")

    kept: List[str] = []
    for i, line in enumerate(lines):
        if i != anchor and stale(line):
            starts_run = i == 0 or not stale(lines[i - 1])
            if starts_run and kept and kept[-1] == "":
                kept.pop()
            continue
        kept.append(line)

    anchor = first_match(kept, anchor_pattern)
    assert anchor is not None
    new = kept[:anchor + 1] + list(new_lines) + kept[anchor + 1:]
    return _outcome(lines, new, f"placed {len(new_lines)} line(s) after {anchor_pattern!r}")
