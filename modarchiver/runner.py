from __future__ import annotations

from typing import List, Sequence

from .category_resolver import resolve_boundary, selection_members
from .conflict_detector import analyze_conflicts
from .consolidation import consolidate_category
from .file_utils import apply_originals_action, restore_backups, unhide_renamed
from .load_config import ArchiverConfig
from .logging_utils import log_error, log_info, log_warn
from .manifest import Manifest, load_manifest
from .models import (
    ArchiveUnit,
    CategoryNotFoundError,
    CategorySelection,
    ConflictPolicy,
    CopiedFileRecord,
    ModsRootNotFoundError,
    NoCategoriesError,
    OriginalsAction,
    RunContext,
)
from .partitioner import materialize_units, partition, scan_tree
from .text_utils import normalize_relpath


def _check_inputs(config: ArchiverConfig) -> Manifest:
    manifest = load_manifest(config.manifest, config.markers)
    if not config.mods_root.is_dir():
        raise ModsRootNotFoundError(f"Mods folder {config.mods_root} does not exist.")
    if not manifest.categories():
        raise NoCategoriesError(f"No categories found in {config.manifest}.")
    return manifest


def select_categories(manifest: Manifest, config: ArchiverConfig, context: RunContext) -> List[CategorySelection]:
    """Resolve the configured categories, defaulting to every category in the manifest."""

    requested = list(config.categories) or [CategorySelection(name=name) for name in manifest.categories()]
    selections: List[CategorySelection] = []
    for selection in requested:
        try:
            resolve_boundary(manifest, selection.name)
        except CategoryNotFoundError as exc:
            log_error(str(exc))
            context.record_failure("category", selection.name, str(exc))
            continue
        selections.append(selection)
    return selections


def _pack_units(config: ArchiverConfig, context: RunContext, units: List[ArchiveUnit]) -> None:
    if config.packer is None:
        log_info("No packer configured; units are left for manual packing.", indent=2)
        return
    packer = config.packer.build()
    for unit in units:
        archive_path = config.archive_root / f"{unit.name}{packer.extension}"
        result = packer.pack(unit.source_dir, archive_path, dry_run=context.dry_run)
        if result.success:
            context.archives.append(archive_path)
            continue
        context.unresolved_units.append(unit.name)
        context.record_failure("pack", unit.name, result.output.strip()[-500:] or "packer failed")


def _relocate_records(records: Sequence[CopiedFileRecord], units: Sequence[ArchiveUnit]) -> None:
    """Point ledger records at the unit folder their staged file was moved to."""

    moved = {}
    for unit in units:
        if unit.source_dir is None:
            continue
        for member in unit.members:
            moved[normalize_relpath(member.relative_path)] = unit.source_dir / member.relative_path
    for record in records:
        if record.key in moved:
            record.destination_path = moved[record.key]


def _split_delivered(context: RunContext) -> tuple[List[CopiedFileRecord], List[CopiedFileRecord]]:
    """Separate copied files that ended up in a finished unit from the rest.

    A unit is finished once it is packed, or once it is materialized when no
    packer is configured.  Originals of everything else must stay where they are.
    """

    finished = {
        (unit.category, normalize_relpath(member.relative_path))
        for unit in context.units
        if unit.name not in context.unresolved_units
        for member in unit.members
    }
    delivered: List[CopiedFileRecord] = []
    retained: List[CopiedFileRecord] = []
    for record in context.ledger:
        if (record.category, record.key) in finished:
            delivered.append(record)
        else:
            retained.append(record)
    return delivered, retained


def run_consolidation(config: ArchiverConfig) -> RunContext:
    """Consolidate, partition and pack every selected category.

    Fatal input problems raise a :class:`FatalRunError`; everything else is
    collected on the returned context.
    """

    context = RunContext(dry_run=config.dry_run)
    manifest = _check_inputs(config)
    priorities = manifest.priorities()
    log_info(f"Manifest: {len(manifest.enabled_mods())} enabled mod(s), {len(manifest.categories())} category(ies)")

    selections = select_categories(manifest, config, context)
    if not selections:
        log_warn("None of the requested categories exist. Nothing to do.")
        return context

    if config.analyze_conflicts:
        analyze_conflicts(
            manifest,
            selections,
            config.mods_root,
            context,
            extensions=config.extensions,
            consolidated_marker=config.markers.consolidated,
        )

    if config.dry_run:
        log_info("Dry run active. No file changes were made.")
        return context

    policy = config.conflict_policy if config.analyze_conflicts else ConflictPolicy.COPY
    for selection in selections:
        members = selection_members(manifest, selection)
        if not members:
            log_warn(f"Category '{selection.name}' has no enabled mods. Skipping.")
            continue
        log_info(f"'{selection.name}': {', '.join(f'{name} ({priorities[name]})' for name in members)}")

        staging_dir = consolidate_category(
            selection.name,
            members,
            config.mods_root,
            config.staging_root,
            context,
            policy=policy,
            extensions=config.extensions,
            consolidated_marker=config.markers.consolidated,
            exempt_categories=config.exempt_categories,
            exempt_mods=config.exempt_mods,
        )
        files = scan_tree(staging_dir, context)
        if not files:
            log_warn(f"Nothing was staged for '{selection.name}'.", indent=2)
            continue

        result = partition(
            files,
            selection.name,
            config.partition_strategy,
            ceiling=config.ceiling,
            manual_groups=config.manual_groups,
        )
        for item in result.oversized:
            context.record_failure("partition", f"{selection.name}/{item.relative_path}", "file reaches the size ceiling")
        for label in result.rejected:
            context.record_failure("partition", f"{selection.name}: {label}", "manual group rejected")
        for name in result.unassigned:
            context.record_failure("partition", f"{selection.name}/{name}", "subdirectory not assigned to a unit")

        materialize_units(result.units, staging_dir, config.units_root)
        _relocate_records(context.copied_for(selection.name), result.units)
        context.units.extend(result.units)
        _pack_units(config, context, result.units)

    delivered, retained = _split_delivered(context)
    if retained and config.originals is not OriginalsAction.KEEP:
        log_warn(f"{len(retained)} original file(s) left in place: their copies did not reach an archive.")
        context.retained.extend(retained)
    apply_originals_action(
        delivered,
        config.originals,
        config.backup_root,
        config.markers.consolidated,
        context,
    )
    return context


def run_restore(config: ArchiverConfig) -> RunContext:
    """Put backed-up originals back and unhide files left renamed in place."""

    context = RunContext(dry_run=config.dry_run)
    if not config.mods_root.is_dir():
        raise ModsRootNotFoundError(f"Mods folder {config.mods_root} does not exist.")
    restore_backups(config.backup_root, config.mods_root, config.markers.consolidated, context)

    if config.manifest.exists():
        manifest = load_manifest(config.manifest, config.markers)
        mod_names = [entry.name for entry in manifest if not entry.is_boundary]
        unhide_renamed(config.mods_root, mod_names, config.markers.consolidated, context)
    else:
        log_warn(f"Manifest {config.manifest} not found; renamed files were not unhidden.")
    return context
