"""Core package for ModArchiver tooling."""

from .category_resolver import mods_above_category, mods_in_category, selection_members
from .conflict_detector import analyze_conflicts, iter_target_files
from .consolidation import consolidate_category
from .file_utils import apply_originals_action, restore_backups, unhide_renamed
from .load_config import ArchiverConfig, load_program_config
from .manifest import Manifest, ManifestMarkers, insert_entry, load_manifest
from .models import (
    ArchiveUnit,
    CategorySelection,
    ConflictPolicy,
    ConflictRecord,
    ConflictReport,
    CopiedFileRecord,
    FatalRunError,
    OriginalsAction,
    PartitionStrategy,
    RunContext,
)
from .partitioner import DEFAULT_CEILING, partition
from .report import export_report, print_conflict_details, print_run_summary
from .runner import run_consolidation, run_restore

__all__ = [
    "ArchiveUnit",
    "ArchiverConfig",
    "CategorySelection",
    "ConflictPolicy",
    "ConflictRecord",
    "ConflictReport",
    "CopiedFileRecord",
    "DEFAULT_CEILING",
    "FatalRunError",
    "Manifest",
    "ManifestMarkers",
    "OriginalsAction",
    "PartitionStrategy",
    "RunContext",
    "analyze_conflicts",
    "apply_originals_action",
    "consolidate_category",
    "export_report",
    "insert_entry",
    "iter_target_files",
    "load_manifest",
    "load_program_config",
    "mods_above_category",
    "mods_in_category",
    "partition",
    "print_conflict_details",
    "print_run_summary",
    "restore_backups",
    "run_consolidation",
    "run_restore",
    "selection_members",
    "unhide_renamed",
]
