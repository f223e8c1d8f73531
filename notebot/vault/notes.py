"""Markdown notes with YAML front matter — read, write, update, move, list."""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

_FRONTMATTER = re.compile(r"^---\n(.*?)\n---\n\n?(.*)$", re.DOTALL)


@dataclass
class MdFile:
    metadata: dict[str, Any] = field(default_factory=dict)
    body: str = ""


def read_md_file(path: Path) -> MdFile:
    """Parse a markdown file. Files without front matter get empty metadata."""
    raw = Path(path).read_text(encoding="utf-8")
    match = _FRONTMATTER.match(raw)
    if not match:
        return MdFile(metadata={}, body=raw.strip())
    metadata = yaml.safe_load(match.group(1)) or {}
    if not isinstance(metadata, dict):
        metadata = {}
    return MdFile(metadata=metadata, body=match.group(2).strip())


def write_md_file(path: Path, metadata: dict[str, Any], body: str) -> None:
    """Write a markdown file with a YAML front matter block, creating parent dirs."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    block = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True).rstrip()
    path.write_text(f"---\n{block}\n---\n\n{body}\n", encoding="utf-8")


def update_frontmatter(path: Path, updates: dict[str, Any]) -> MdFile:
    """Merge *updates* into the file's metadata and rewrite it."""
    note = read_md_file(path)
    note.metadata.update(updates)
    write_md_file(path, note.metadata, note.body)
    return note


def move_md_file(path: Path, dest_dir: Path) -> Path:
    """Move a note into *dest_dir*, never overwriting an existing file.

    On a name clash a ``-1``, ``-2``, ... suffix is added to the stem.
    """
    path = Path(path)
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    target = dest_dir / path.name
    counter = 1
    while target.exists():
        target = dest_dir / f"{path.stem}-{counter}{path.suffix}"
        counter += 1
    shutil.move(str(path), str(target))
    logger.debug("Moved %s -> %s", path, target)
    return target


def list_md_files(directory: Path) -> list[Path]:
    """All ``.md`` files directly inside *directory*, sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.suffix == ".md" and p.is_file())
