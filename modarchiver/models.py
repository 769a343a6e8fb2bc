from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Sequence

from .text_utils import normalize_relpath


class EntryKind(str, Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"
    BOUNDARY = "boundary"
    OTHER = "other"


class ConflictPolicy(str, Enum):
    """What to do with a category file that a higher-priority mod overrides."""

    DELETE = "delete"
    RENAME = "rename"
    SKIP = "skip"
    COPY = "copy"


class OriginalsAction(str, Enum):
    """What to do with the source file of every copied file after consolidation."""

    KEEP = "keep"
    DELETE = "delete"
    BACKUP = "backup"


class PartitionStrategy(str, Enum):
    SUBTYPE = "subtype"
    SIZE = "size"
    MANUAL = "manual"


class ModArchiverError(Exception):
    """Base class for errors raised by modarchiver."""


class FatalRunError(ModArchiverError):
    """An error that aborts the whole run."""


class ManifestNotFoundError(FatalRunError):
    pass


class ModsRootNotFoundError(FatalRunError):
    pass


class NoCategoriesError(FatalRunError):
    pass


class CategoryNotFoundError(ModArchiverError, KeyError):
    def __init__(self, category: str) -> None:
        super().__init__(category)
        self.category = category

    def __str__(self) -> str:
        return f"Category not found in manifest: {self.category}"


@dataclass(slots=True, frozen=True)
class ManifestEntry:
    name: str
    kind: EntryKind
    storage_index: int
    skip: bool = False

    @property
    def enabled(self) -> bool:
        return self.kind is EntryKind.ENABLED

    @property
    def is_boundary(self) -> bool:
        return self.kind is EntryKind.BOUNDARY


@dataclass(slots=True)
class TargetFile:
    relative_path: str
    owner_mod: str
    absolute_path: Path
    size_bytes: int

    @property
    def key(self) -> str:
        return normalize_relpath(self.relative_path)


@dataclass(slots=True, frozen=True)
class CategorySelection:
    name: str
    mods: tuple[str, ...] | None = None

    @property
    def restricted(self) -> bool:
        return self.mods is not None


@dataclass(slots=True)
class ConflictRecord:
    category: str
    relative_path: str
    losing_mod: str
    losing_priority: int
    winning_mod: str
    winning_priority: int

    @property
    def key(self) -> str:
        return normalize_relpath(self.relative_path)


@dataclass(slots=True)
class ConflictReport:
    by_category: Dict[str, List[ConflictRecord]] = field(default_factory=dict)
    _index: set[tuple[str, str, str]] = field(default_factory=set, repr=False)

    def add(self, record: ConflictRecord) -> None:
        self.by_category.setdefault(record.category, []).append(record)
        self._index.add((record.category, record.losing_mod, record.key))

    def is_overridden(self, category: str, mod_name: str, relative_path: str) -> bool:
        return (category, mod_name, normalize_relpath(relative_path)) in self._index

    def records(self) -> List[ConflictRecord]:
        return [record for group in self.by_category.values() for record in group]

    @property
    def total(self) -> int:
        return sum(len(group) for group in self.by_category.values())

    def losing_mods(self, category: str) -> Sequence[str]:
        return sorted({record.losing_mod for record in self.by_category.get(category, [])})


@dataclass(slots=True)
class CopiedFileRecord:
    original_path: Path
    destination_path: Path
    relative_path: str
    owner_mod: str
    category: str

    @property
    def key(self) -> str:
        return normalize_relpath(self.relative_path)


@dataclass(slots=True)
class StagedFile:
    relative_path: str
    size_bytes: int

    @property
    def subtype(self) -> str | None:
        parts = self.relative_path.split("/")
        return parts[0] if len(parts) > 1 else None


@dataclass(slots=True)
class ArchiveUnit:
    name: str
    category: str
    members: List[StagedFile] = field(default_factory=list)
    source_dir: Path | None = None

    @property
    def size_bytes(self) -> int:
        return sum(member.size_bytes for member in self.members)

    @property
    def num_files(self) -> int:
        return len(self.members)


@dataclass(slots=True)
class RunFailure:
    stage: str
    subject: str
    message: str


@dataclass(slots=True)
class RunContext:
    """Everything one run accumulates; passed explicitly and returned to the caller."""

    dry_run: bool = False
    ledger: List[CopiedFileRecord] = field(default_factory=list)
    conflicts: ConflictReport = field(default_factory=ConflictReport)
    units: List[ArchiveUnit] = field(default_factory=list)
    archives: List[Path] = field(default_factory=list)
    unresolved_units: List[str] = field(default_factory=list)
    failures: List[RunFailure] = field(default_factory=list)
    missing_mods: List[str] = field(default_factory=list)
    retained: List[CopiedFileRecord] = field(default_factory=list)
    staged_bytes: Dict[str, int] = field(default_factory=dict)
    deleted: int = 0
    renamed: int = 0
    skipped: int = 0
    backed_up: int = 0
    restored: int = 0

    def record_failure(self, stage: str, subject: str, message: str) -> None:
        failure = RunFailure(stage=stage, subject=subject, message=message)
        if failure not in self.failures:
            self.failures.append(failure)

    def copied_for(self, category: str) -> List[CopiedFileRecord]:
        return [record for record in self.ledger if record.category == category]

    @property
    def copied(self) -> int:
        return len(self.ledger)

    @property
    def ok(self) -> bool:
        return not self.failures and not self.unresolved_units
