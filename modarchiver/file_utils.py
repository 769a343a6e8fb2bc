from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, Sequence

from .logging_utils import log_error, log_info, log_progress, log_warn
from .models import CopiedFileRecord, OriginalsAction, RunContext


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def reset_directory(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)


def prune_empty_dirs(root: Path, keep_root: bool = True) -> int:
    """Remove empty directories below ``root`` bottom-up and return how many went."""

    if not root.is_dir():
        return 0
    removed = 0
    for current, _dirs, _files in os.walk(root, topdown=False):
        path = Path(current)
        if keep_root and path == root:
            continue
        if not any(path.iterdir()):
            path.rmdir()
            removed += 1
    return removed


def run_command(
    command: Sequence[str],
    cwd: Path | None = None,
    dry_run: bool = False,
) -> subprocess.CompletedProcess[str] | None:
    printable = " ".join(command)
    if dry_run:
        log_info(f"Dry run: {printable}")
        return None
    log_info(f"Running: {printable}")
    return subprocess.run(
        list(command),
        cwd=str(cwd) if cwd else None,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        check=False,
    )


def backup_path_for(backup_root: Path, record: CopiedFileRecord, marker: str) -> Path:
    """``backup_root/<category>/<mod>/<relative path><marker>``"""
    return backup_root / record.category / record.owner_mod / (record.relative_path + marker)


def backup_file(record: CopiedFileRecord, backup_root: Path, marker: str) -> Path | None:
    """Hide the original of a copied file and move it into the backup store.

    The original is first renamed in place with ``marker`` so an interrupted
    run still leaves it hidden from the game; a second call for the same
    record finds the backup already present and does nothing.
    """

    source = record.original_path
    hidden = source.with_name(source.name + marker)
    destination = backup_path_for(backup_root, record, marker)

    if source.exists():
        source.rename(hidden)
    if not hidden.exists():
        if destination.exists():
            log_info(f"Backup already exists: {destination}", indent=4)
            return destination
        raise FileNotFoundError(f"Cannot backup missing file: {source}")
    ensure_directory(destination.parent)
    shutil.move(str(hidden), str(destination))
    return destination


def apply_originals_action(
    records: Iterable[CopiedFileRecord],
    action: OriginalsAction,
    backup_root: Path,
    marker: str,
    context: RunContext,
) -> None:
    """Handle the source file of every copied file once consolidation is done."""

    if action is OriginalsAction.KEEP:
        log_info("Original files left in place.")
        return

    processed = 0
    handled = 0
    for record in records:
        processed += 1
        log_progress(processed, "originals", indent=2)
        try:
            if action is OriginalsAction.DELETE:
                if record.original_path.exists():
                    record.original_path.unlink()
                    handled += 1
            elif backup_file(record, backup_root, marker) is not None:
                handled += 1
        except OSError as exc:
            log_error(f"Could not {action.value} {record.original_path}: {exc}", indent=2)
            context.record_failure(action.value, str(record.original_path), str(exc))

    if action is OriginalsAction.DELETE:
        context.deleted += handled
        log_info(f"Deleted {handled} original file(s)")
    else:
        context.backed_up += handled
        log_info(f"Backed up {handled} original file(s) to {backup_root}")


def restore_backups(
    backup_root: Path,
    mods_root: Path,
    marker: str,
    context: RunContext,
) -> int:
    """Move every backed-up original back into its mod folder.

    The category and mod are read from the backup path itself.  A file that
    already exists in the mod folder is never overwritten; it is reported and
    the backup stays where it is.
    """

    if not backup_root.is_dir():
        log_warn(f"Backup folder {backup_root} not found. Nothing to restore.")
        return 0

    restored = 0
    for backup in sorted(backup_root.rglob("*" + marker)):
        if not backup.is_file():
            continue
        parts = backup.relative_to(backup_root).parts
        if len(parts) < 3:
            log_warn(f"Unexpected file in backup store, skipping: {backup}", indent=2)
            continue
        _category, mod_name, *relative = parts
        relative[-1] = relative[-1][: -len(marker)]
        target = mods_root / mod_name / Path(*relative)
        if target.exists():
            log_warn(f"Not restoring {backup}: {target} already exists.", indent=2)
            context.record_failure("restore", str(backup), f"{target} already exists")
            continue
        try:
            ensure_directory(target.parent)
            shutil.move(str(backup), str(target))
        except OSError as exc:
            log_error(f"Restore failed for {backup}: {exc}", indent=2)
            context.record_failure("restore", str(backup), str(exc))
            continue
        restored += 1
        log_progress(restored, "restored", indent=2)

    for category_dir in sorted(path for path in backup_root.iterdir() if path.is_dir()):
        prune_empty_dirs(category_dir)
        if not any(category_dir.iterdir()):
            category_dir.rmdir()
            log_info(f"Removed empty backup folder {category_dir.name}", indent=2)

    context.restored += restored
    log_info(f"Restored {restored} file(s) from {backup_root}")
    return restored


def unhide_renamed(
    mods_root: Path,
    mod_names: Iterable[str],
    marker: str,
    context: RunContext,
) -> int:
    """Strip ``marker`` from files that the rename conflict policy left in place."""

    restored = 0
    for mod_name in mod_names:
        mod_root = mods_root / mod_name
        if not mod_root.is_dir():
            continue
        for hidden in sorted(mod_root.rglob("*" + marker)):
            if not hidden.is_file():
                continue
            target = hidden.with_name(hidden.name[: -len(marker)])
            if target.exists():
                log_warn(f"Not unhiding {hidden}: {target.name} already exists.", indent=2)
                context.record_failure("unhide", str(hidden), f"{target} already exists")
                continue
            try:
                hidden.rename(target)
            except OSError as exc:
                log_error(f"Could not unhide {hidden}: {exc}", indent=2)
                context.record_failure("unhide", str(hidden), str(exc))
                continue
            restored += 1
    context.restored += restored
    log_info(f"Unhid {restored} renamed file(s)")
    return restored
