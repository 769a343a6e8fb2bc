"""Load-order manifest parsing and the priority index derived from it.

The manifest is a Mod Organizer style ``modlist.txt``: the top line has the
highest priority, the bottom line loads first and is overridden by everything
above it.  Each line is decoded exactly once into a :class:`ManifestEntry`.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from .logging_utils import log_warn
from .models import EntryKind, ManifestEntry, ManifestNotFoundError

COMMENT_PREFIX = "#"


@dataclass(slots=True, frozen=True)
class ManifestMarkers:
    enabled: str = "+"
    disabled: str = "-"
    boundary_suffix: str = "_separator"
    skip: str = "[NoMerge]"
    consolidated: str = ".mohidden"


DEFAULT_MARKERS = ManifestMarkers()


def decode_line(line: str, storage_index: int, markers: ManifestMarkers = DEFAULT_MARKERS) -> ManifestEntry:
    if line.startswith(markers.disabled) and line.endswith(markers.boundary_suffix):
        name = line[len(markers.disabled):len(line) - len(markers.boundary_suffix)].strip()
        return ManifestEntry(name=name, kind=EntryKind.BOUNDARY, storage_index=storage_index)
    if line.startswith(markers.enabled):
        name = line[len(markers.enabled):].strip()
        skip = bool(markers.skip) and markers.skip in name
        return ManifestEntry(name=name, kind=EntryKind.ENABLED, storage_index=storage_index, skip=skip)
    if line.startswith(markers.disabled):
        name = line[len(markers.disabled):].strip()
        return ManifestEntry(name=name, kind=EntryKind.DISABLED, storage_index=storage_index)
    return ManifestEntry(name=line, kind=EntryKind.OTHER, storage_index=storage_index)


def parse_manifest_lines(
    lines: Iterable[str],
    markers: ManifestMarkers = DEFAULT_MARKERS,
) -> List[ManifestEntry]:
    entries: List[ManifestEntry] = []
    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_PREFIX):
            continue
        entries.append(decode_line(line, len(entries), markers))
    return entries


class Manifest:
    """Immutable ordered view over the entries of one manifest file."""

    def __init__(self, entries: Sequence[ManifestEntry], path: Path | None = None) -> None:
        self._entries = tuple(entries)
        self.path = path

    @property
    def entries(self) -> tuple[ManifestEntry, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def enabled_mods(self) -> List[str]:
        return [entry.name for entry in self._entries if entry.enabled]

    def categories(self) -> List[str]:
        return [entry.name for entry in self._entries if entry.is_boundary]

    def boundary(self, category: str) -> ManifestEntry | None:
        matches = [entry for entry in self._entries if entry.is_boundary and entry.name == category]
        if not matches:
            return None
        if len(matches) > 1:
            log_warn(f"Category '{category}' appears {len(matches)} times in the manifest; using the first.")
        return matches[0]

    def priorities(self) -> Dict[str, int]:
        """Map every enabled mod to its load priority (higher wins).

        Priorities are handed out while scanning bottom to top.  A name that
        occurs twice keeps the priority of the occurrence nearest the top.
        """

        index: Dict[str, int] = {}
        priority = 0
        for entry in reversed(self._entries):
            if not entry.enabled:
                continue
            if entry.name in index:
                log_warn(f"Duplicate enabled mod '{entry.name}' in manifest; the upper entry wins.")
            index[entry.name] = priority
            priority += 1
        return index


def load_manifest(manifest_path: Path, markers: ManifestMarkers = DEFAULT_MARKERS) -> Manifest:
    if not manifest_path.exists():
        raise ManifestNotFoundError(f"Manifest file {manifest_path} does not exist.")
    with manifest_path.open("r", encoding="utf-8-sig", errors="ignore") as handle:
        entries = parse_manifest_lines(handle, markers)
    return Manifest(entries, path=manifest_path)


def insert_entry(
    manifest_path: Path,
    mod_name: str,
    before: str | None = None,
    markers: ManifestMarkers = DEFAULT_MARKERS,
) -> int:
    """Insert ``+mod_name`` into the manifest file and return its storage index.

    The entry goes directly above the boundary of ``before``, which makes it
    the lowest-priority member of that category, or at the top of the file.  Nothing is written when an entry of
    that name already exists.
    """

    manifest = load_manifest(manifest_path, markers)
    for entry in manifest:
        if entry.name == mod_name and entry.kind in (EntryKind.ENABLED, EntryKind.DISABLED):
            return entry.storage_index

    position = 0
    if before is not None:
        boundary = manifest.boundary(before)
        if boundary is None:
            log_warn(f"Category '{before}' not found; inserting '{mod_name}' at the top.")
        else:
            position = boundary.storage_index

    raw_lines = manifest_path.read_text(encoding="utf-8-sig").splitlines()
    line_index = _line_index_for_entry(raw_lines, position)
    raw_lines.insert(line_index, f"{markers.enabled}{mod_name}")
    manifest_path.write_text("\n".join(raw_lines) + "\n", encoding="utf-8")
    return position


def _line_index_for_entry(raw_lines: List[str], storage_index: int) -> int:
    seen = 0
    for line_no, raw_line in enumerate(raw_lines):
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_PREFIX):
            continue
        if seen == storage_index:
            return line_no
        seen += 1
    return len(raw_lines)
