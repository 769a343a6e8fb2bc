from __future__ import annotations

import shutil
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from .conflict_detector import iter_target_files
from .file_utils import ensure_directory, reset_directory
from .logging_utils import log_error, log_info, log_progress, log_warn
from .models import ConflictPolicy, CopiedFileRecord, RunContext, TargetFile
from .text_utils import normalize_relpath


def _append_marker(path: Path, marker: str) -> Path:
    return path.with_name(path.name + marker)


def _staged_relpath(relative_path: str, staged_dirs: Dict[str, str]) -> str:
    """Spell every folder of ``relative_path`` the way it was first staged."""

    parts = relative_path.split("/")
    spelled: List[str] = []
    for part in parts[:-1]:
        key = normalize_relpath("/".join([*spelled, part]))
        spelled.append(staged_dirs.setdefault(key, part))
    spelled.append(parts[-1])
    return "/".join(spelled)


def _resolve_flagged(
    target: TargetFile,
    policy: ConflictPolicy,
    marker: str,
    context: RunContext,
) -> None:
    """Apply the conflict policy to a file a higher-priority mod overrides."""

    if policy is ConflictPolicy.DELETE:
        target.absolute_path.unlink()
        context.deleted += 1
        log_info(f"Deleted overridden file {target.owner_mod}/{target.relative_path}", indent=4)
    elif policy is ConflictPolicy.RENAME:
        renamed = _append_marker(target.absolute_path, marker)
        target.absolute_path.rename(renamed)
        context.renamed += 1
        log_info(f"Hid overridden file {target.owner_mod}/{target.relative_path}", indent=4)
    else:
        context.skipped += 1


def consolidate_category(
    category: str,
    members: Sequence[str],
    mods_root: Path,
    staging_root: Path,
    context: RunContext,
    policy: ConflictPolicy = ConflictPolicy.SKIP,
    extensions: Iterable[str] = (),
    consolidated_marker: str = ".mohidden",
    exempt_categories: Sequence[str] | None = None,
    exempt_mods: Sequence[str] | None = None,
) -> Path:
    """Copy the winning files of one category into ``staging_root/<category>``.

    ``members`` must be in ascending priority: a later mod overwrites the staged
    copy of an earlier one, which is how in-category conflicts resolve.  Files
    flagged in ``context.conflicts`` lose to a mod outside the category and are
    handled by ``policy`` unless the category or the mod is exempt.
    """

    extensions = tuple(extensions)
    category_exempt = category.lower() in {name.lower() for name in (exempt_categories or [])}
    mod_exemptions = {name.lower() for name in (exempt_mods or [])}

    staging_dir = staging_root / category
    reset_directory(staging_dir)
    log_info(f"Consolidating '{category}' into {staging_dir}")

    staged_paths: Dict[str, str] = {}
    staged_dirs: Dict[str, str] = {}
    staged_sizes: Dict[str, int] = {}
    processed = 0

    for mod_name in members:
        mod_root = mods_root / mod_name
        if not mod_root.is_dir():
            log_warn(f"Skipped: mod folder '{mod_root}' not found.", indent=2)
            if mod_name not in context.missing_mods:
                context.missing_mods.append(mod_name)
            continue

        copied_before = context.copied
        exempt = category_exempt or mod_name.lower() in mod_exemptions
        for target in iter_target_files(mod_root, mod_name, extensions, consolidated_marker, context):
            processed += 1
            log_progress(processed, f"'{category}' files", indent=2)

            flagged = context.conflicts.is_overridden(category, mod_name, target.relative_path)
            if flagged and not exempt and policy is not ConflictPolicy.COPY:
                try:
                    _resolve_flagged(target, policy, consolidated_marker, context)
                except OSError as exc:
                    log_error(f"Could not {policy.value} {target.absolute_path}: {exc}", indent=4)
                    context.record_failure(policy.value, str(target.absolute_path), str(exc))
                continue

            key = target.key
            relative_path = staged_paths.setdefault(key, _staged_relpath(target.relative_path, staged_dirs))
            destination = staging_dir / relative_path
            try:
                ensure_directory(destination.parent)
                shutil.copy2(target.absolute_path, destination)
            except OSError as exc:
                log_error(f"Copy failed for {target.absolute_path}: {exc}", indent=4)
                context.record_failure("copy", str(target.absolute_path), str(exc))
                continue

            staged_sizes[key] = target.size_bytes
            context.ledger.append(
                CopiedFileRecord(
                    original_path=target.absolute_path,
                    destination_path=destination,
                    relative_path=target.relative_path,
                    owner_mod=mod_name,
                    category=category,
                )
            )
        log_info(f"{mod_name}: {context.copied - copied_before} file(s) copied", indent=2)

    context.staged_bytes[category] = sum(staged_sizes.values())
    log_info(f"'{category}': {len(staged_sizes)} file(s) staged", indent=2)
    return staging_dir
