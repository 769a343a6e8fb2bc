"""Split an oversized staging tree into archive-sized units.

All three strategies feed a sequence of candidates (single files or whole
subdirectories) to :func:`accumulate_until_full`; they differ only in which
candidates they build and whether neighbouring candidates may share a unit.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence

from .file_utils import ensure_directory, prune_empty_dirs
from .logging_utils import log_error, log_info, log_warn
from .models import ArchiveUnit, PartitionStrategy, RunContext, StagedFile
from .text_utils import format_size

# Archives above 2 GiB break the packer; keep a margin below it.
DEFAULT_CEILING = 2_000_000_000
ROOT_SUBTYPE = "root"


@dataclass(slots=True)
class Candidate:
    label: str
    files: List[StagedFile]

    @property
    def size_bytes(self) -> int:
        return sum(item.size_bytes for item in self.files)


@dataclass(slots=True)
class PartitionResult:
    units: List[ArchiveUnit] = field(default_factory=list)
    oversized: List[StagedFile] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)
    unassigned: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not (self.oversized or self.rejected or self.unassigned)


def scan_tree(root: Path, context: RunContext | None = None) -> List[StagedFile]:
    files: List[StagedFile] = []
    for current, dirs, filenames in os.walk(root):
        dirs.sort()
        for filename in sorted(filenames):
            path = Path(current) / filename
            try:
                size_bytes = path.stat().st_size
            except OSError as exc:
                log_warn(f"Cannot read staged file {path}, leaving it out: {exc}", indent=2)
                if context is not None:
                    context.record_failure("scan", str(path), str(exc))
                continue
            files.append(StagedFile(relative_path=path.relative_to(root).as_posix(), size_bytes=size_bytes))
    return files


def total_size(files: Iterable[StagedFile]) -> int:
    return sum(item.size_bytes for item in files)


def check_ceiling(files: Sequence[StagedFile], ceiling: int = DEFAULT_CEILING) -> bool:
    """True when the files fit in a single archive."""
    return total_size(files) < ceiling


def accumulate_until_full(
    candidates: Iterable[Candidate],
    ceiling: int,
    merge: bool = True,
) -> tuple[List[List[Candidate]], List[Candidate]]:
    """Greedily group candidates so that no group reaches ``ceiling``.

    With ``merge`` the current group is closed only when the next candidate
    would not fit; without it every candidate gets a group of its own.
    Candidates that alone reach the ceiling are returned separately.
    """

    groups: List[List[Candidate]] = []
    oversized: List[Candidate] = []
    current: List[Candidate] = []
    current_size = 0
    for candidate in candidates:
        size = candidate.size_bytes
        if size >= ceiling:
            oversized.append(candidate)
            continue
        if current and (not merge or current_size + size >= ceiling):
            groups.append(current)
            current, current_size = [], 0
        current.append(candidate)
        current_size += size
    if current:
        groups.append(current)
    return groups, oversized


def _flatten(group: Sequence[Candidate]) -> List[StagedFile]:
    return [item for candidate in group for item in candidate.files]


def _by_subtype(files: Sequence[StagedFile]) -> Dict[str, List[StagedFile]]:
    """Group files by top-level folder; folders differing only in case are one subtype."""
    spellings: Dict[str, str] = {}
    grouped: Dict[str, List[StagedFile]] = {}
    for item in files:
        subtype = item.subtype or ROOT_SUBTYPE
        name = spellings.setdefault(subtype.lower(), subtype)
        grouped.setdefault(name, []).append(item)
    return dict(sorted(grouped.items(), key=lambda pair: pair[0].lower()))


def _size_units(
    files: Sequence[StagedFile],
    ceiling: int,
    name_prefix: str,
    category: str,
    result: PartitionResult,
) -> None:
    ordered = sorted(files, key=lambda item: (-item.size_bytes, item.relative_path))
    candidates = [Candidate(label=item.relative_path, files=[item]) for item in ordered]
    groups, oversized = accumulate_until_full(candidates, ceiling)
    for number, group in enumerate(groups, start=1):
        result.units.append(ArchiveUnit(name=f"{name_prefix} {number}", category=category, members=_flatten(group)))
    result.oversized.extend(item for candidate in oversized for item in candidate.files)


def partition_by_size(files: Sequence[StagedFile], category: str, ceiling: int = DEFAULT_CEILING) -> PartitionResult:
    result = PartitionResult()
    _size_units(files, ceiling, f"{category} - Part", category, result)
    return result


def partition_by_subtype(files: Sequence[StagedFile], category: str, ceiling: int = DEFAULT_CEILING) -> PartitionResult:
    result = PartitionResult()
    candidates = [Candidate(label=subtype, files=items) for subtype, items in _by_subtype(files).items()]
    groups, oversized = accumulate_until_full(candidates, ceiling, merge=False)
    for group in groups:
        result.units.append(ArchiveUnit(name=f"{category} - {group[0].label}", category=category, members=_flatten(group)))
    for candidate in oversized:
        log_info(f"Subtype '{candidate.label}' is {format_size(candidate.size_bytes)}; splitting by size", indent=2)
        _size_units(candidate.files, ceiling, f"{category} - {candidate.label}", category, result)
    return result


def partition_manually(
    files: Sequence[StagedFile],
    category: str,
    groups: Sequence[Sequence[str]],
    ceiling: int = DEFAULT_CEILING,
) -> PartitionResult:
    """Build one unit per caller-chosen group of top-level subdirectories.

    A group that reaches the ceiling, or names a subdirectory that is unknown
    or already taken, is rejected as a whole.
    """

    result = PartitionResult()
    available = {name.lower(): (name, items) for name, items in _by_subtype(files).items()}
    assigned: set[str] = set()
    accepted: List[Candidate] = []

    for requested in groups:
        label = " + ".join(requested)
        keys = [name.lower() for name in requested]
        unknown = [name for name, key in zip(requested, keys) if key not in available]
        taken = [name for name, key in zip(requested, keys) if key in assigned]
        if not keys or unknown or taken or len(set(keys)) != len(keys):
            reason = f"unknown {unknown}" if unknown else f"already assigned {taken}" if taken else "empty or repeated"
            log_warn(f"Rejected group [{label}]: {reason}", indent=2)
            result.rejected.append(label)
            continue
        members = [item for key in keys for item in available[key][1]]
        candidate = Candidate(label=label, files=members)
        _, oversized = accumulate_until_full([candidate], ceiling)
        if oversized:
            log_warn(f"Rejected group [{label}]: {format_size(candidate.size_bytes)} does not fit", indent=2)
            result.rejected.append(label)
            continue
        assigned.update(keys)
        accepted.append(candidate)

    units, _ = accumulate_until_full(accepted, ceiling, merge=False)
    for number, group in enumerate(units, start=1):
        result.units.append(ArchiveUnit(name=f"{category} - Part {number}", category=category, members=_flatten(group)))
    result.unassigned = [name for key, (name, _) in available.items() if key not in assigned]
    return result


def partition(
    files: Sequence[StagedFile],
    category: str,
    strategy: PartitionStrategy,
    ceiling: int = DEFAULT_CEILING,
    manual_groups: Mapping[str, Sequence[Sequence[str]]] | None = None,
) -> PartitionResult:
    """Split a staging tree's files, or return one unit when they already fit."""

    if check_ceiling(files, ceiling):
        return PartitionResult(units=[ArchiveUnit(name=category, category=category, members=list(files))])

    log_info(f"'{category}' is {format_size(total_size(files))}, over the {format_size(ceiling)} ceiling")
    if strategy is PartitionStrategy.SUBTYPE:
        result = partition_by_subtype(files, category, ceiling)
    elif strategy is PartitionStrategy.MANUAL:
        groups = (manual_groups or {}).get(category, [])
        if not groups:
            log_warn(f"No manual groups configured for '{category}'", indent=2)
        result = partition_manually(files, category, groups, ceiling)
    else:
        result = partition_by_size(files, category, ceiling)

    for item in result.oversized:
        log_error(f"{item.relative_path} ({format_size(item.size_bytes)}) cannot fit in any archive", indent=2)
    if result.unassigned:
        log_warn(f"Subdirectories left unassigned: {', '.join(result.unassigned)}", indent=2)
    log_info(f"'{category}' split into {len(result.units)} unit(s)", indent=2)
    return result


def materialize_units(units: Sequence[ArchiveUnit], staging_dir: Path, units_root: Path) -> None:
    """Move each unit's files out of the staging tree into a folder of its own.

    A single unit covering the whole tree is packed from the staging tree
    directly.
    """

    if len(units) == 1 and units[0].num_files == len(scan_tree(staging_dir)):
        units[0].source_dir = staging_dir
        return
    for unit in units:
        unit_dir = units_root / unit.name
        if unit_dir.exists():
            shutil.rmtree(unit_dir)
        for member in unit.members:
            destination = unit_dir / member.relative_path
            ensure_directory(destination.parent)
            shutil.move(str(staging_dir / member.relative_path), str(destination))
        unit.source_dir = unit_dir
    prune_empty_dirs(staging_dir)
