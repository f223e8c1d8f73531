"""Vault index — parses ``vault-index.md`` into a folder lookup table.

The index is a markdown document with one level-2 section per folder::

    ## Grocery
    Shopping lists.
    **Path**: lists/grocery

    ## Inbox (default)

A section's ``id`` is its slugified heading, ``name`` is the heading without
the "(default)" marker, and ``vaultPath`` comes from the ``**Path**:`` line
(falling back to the id). The file is re-read on every call; there is no cache.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

VAULT_INDEX_FILENAME = "vault-index.md"

_SECTION_SPLIT = re.compile(r"^## ", re.MULTILINE)
_DEFAULT_MARKER = re.compile(r"\s*\(default\)\s*", re.IGNORECASE)
_PATH_FIELD = re.compile(r"\*\*Path\*\*:\s*(.+)")


@dataclass(frozen=True)
class VaultFolderEntry:
    id: str
    name: str
    vault_path: str


INBOX_FALLBACK = VaultFolderEntry(id="inbox", name="Inbox", vault_path="inbox")


def slugify(text: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to ``-``, drop a trailing ``-``."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower())
    return re.sub(r"-$", "", slug)


def parse_vault_index(markdown: str) -> list[VaultFolderEntry]:
    """Parse an index document into folder entries, in document order."""
    entries: list[VaultFolderEntry] = []
    for section in _SECTION_SPLIT.split(markdown)[1:]:
        lines = section.strip().split("\n")
        name = _DEFAULT_MARKER.sub("", lines[0]).strip()
        folder_id = slugify(name)
        path_match = _PATH_FIELD.search(section)
        vault_path = path_match.group(1).strip() if path_match else folder_id
        entries.append(VaultFolderEntry(id=folder_id, name=name, vault_path=vault_path))
    return entries


def load_vault_index(notes_root: Path) -> tuple[str, list[VaultFolderEntry]]:
    """Read the index file and return ``(raw_text, entries)``."""
    raw = (notes_root / VAULT_INDEX_FILENAME).read_text(encoding="utf-8")
    return raw, parse_vault_index(raw)


def find_folder(folders: list[VaultFolderEntry], folder_id: str) -> VaultFolderEntry | None:
    for folder in folders:
        if folder.id == folder_id:
            return folder
    return None


def inbox_folder(folders: list[VaultFolderEntry]) -> VaultFolderEntry:
    """The ``inbox`` entry, else the first entry named "Inbox", else a default."""
    by_id = find_folder(folders, "inbox")
    if by_id is not None:
        return by_id
    for folder in folders:
        if folder.name.lower() == "inbox":
            return folder
    return INBOX_FALLBACK


def resolve_folder(folders: list[VaultFolderEntry], target: str) -> VaultFolderEntry:
    """Match *target* against folder ids and paths, falling back to the inbox."""
    for folder in folders:
        if target in (folder.id, folder.vault_path):
            return folder
    return inbox_folder(folders)
