from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any, List

from openpyxl import Workbook

from .logging_utils import log_conflict, log_error, log_info, log_ok, log_warn
from .models import ConflictReport, RunContext
from .text_utils import format_size


def print_conflict_details(report: ConflictReport) -> None:
    if not report.total:
        log_ok("No overridden files found.")
        return
    for category, records in sorted(report.by_category.items()):
        log_conflict(f"'{category}': {len(records)} file(s) overridden by higher-priority mods:")
        for record in sorted(records, key=lambda item: (item.losing_mod, item.key)):
            log_conflict(
                f"{record.relative_path}: {record.losing_mod} ({record.losing_priority}) "
                f"< {record.winning_mod} ({record.winning_priority})",
                indent=2,
            )


def print_run_summary(context: RunContext) -> None:
    log_info("Summary:")
    log_info(f"Files copied: {context.copied}", indent=2)
    for category, size in context.staged_bytes.items():
        log_info(f"{category}: {format_size(size)} staged", indent=4)
    log_info(f"Overridden files: {context.conflicts.total}", indent=2)
    if context.deleted or context.renamed or context.skipped:
        log_info(
            f"Deleted: {context.deleted}, renamed: {context.renamed}, skipped: {context.skipped}",
            indent=2,
        )
    if context.backed_up:
        log_info(f"Backed up originals: {context.backed_up}", indent=2)
    if context.restored:
        log_info(f"Restored files: {context.restored}", indent=2)
    if context.units:
        log_info(f"Archive units: {len(context.units)}", indent=2)
        for unit in context.units:
            log_info(f"{unit.name}: {unit.num_files} file(s), {format_size(unit.size_bytes)}", indent=4)
    if context.archives:
        log_ok(f"Archives packed: {len(context.archives)}", indent=2)
    if context.retained:
        log_warn(f"Originals left in place (not archived): {len(context.retained)}", indent=2)
        for record in context.retained:
            log_warn(f"{record.owner_mod}/{record.relative_path}", indent=4)
    if context.missing_mods:
        log_warn(f"Missing mod folders: {', '.join(context.missing_mods)}", indent=2)
    if context.unresolved_units:
        log_warn(
            f"Unresolved units (pack these manually): {', '.join(context.unresolved_units)}",
            indent=2,
        )
    if context.failures:
        by_stage = Counter(failure.stage for failure in context.failures)
        stages = ", ".join(f"{stage}: {count}" for stage, count in sorted(by_stage.items()))
        log_error(f"{len(context.failures)} failure(s) ({stages})", indent=2)
    else:
        log_ok("Completed without failures.", indent=2)


def _conflict_rows(report: ConflictReport) -> List[List[Any]]:
    rows: List[List[Any]] = []
    for record in report.records():
        rows.append(
            [
                record.category,
                record.relative_path,
                record.losing_mod,
                record.losing_priority,
                record.winning_mod,
                record.winning_priority,
            ]
        )
    return sorted(rows, key=lambda r: (r[0], r[2], r[1]))


def export_report(output_path: Path, context: RunContext) -> None:
    """Write an Excel workbook describing one run."""

    output_path.parent.mkdir(parents=True, exist_ok=True)

    workbook = Workbook()

    conflicts_sheet = workbook.active
    if not conflicts_sheet:
        conflicts_sheet = workbook.create_sheet("conflicts")
    else:
        conflicts_sheet.title = "conflicts"
    conflicts_sheet.append(
        ["category", "relative path", "losing mod", "losing priority", "winning mod", "winning priority"]
    )
    for row in _conflict_rows(context.conflicts):
        conflicts_sheet.append(row)

    copied_sheet = workbook.create_sheet("copied_files")
    copied_sheet.append(["category", "mod", "relative path", "original path", "staged path", "original left in place"])
    retained = {id(record) for record in context.retained}
    for record in context.ledger:
        copied_sheet.append(
            [
                record.category,
                record.owner_mod,
                record.relative_path,
                str(record.original_path),
                str(record.destination_path),
                "yes" if id(record) in retained else "",
            ]
        )

    units_sheet = workbook.create_sheet("archive_units")
    units_sheet.append(["unit", "category", "files", "size bytes", "source folder", "status"])
    for unit in context.units:
        status = "unresolved" if unit.name in context.unresolved_units else "ok"
        units_sheet.append(
            [
                unit.name,
                unit.category,
                unit.num_files,
                unit.size_bytes,
                str(unit.source_dir) if unit.source_dir else "",
                status,
            ]
        )

    failures_sheet = workbook.create_sheet("failures")
    failures_sheet.append(["stage", "subject", "message"])
    for failure in context.failures:
        failures_sheet.append([failure.stage, failure.subject, failure.message])

    workbook.save(output_path)
    workbook.close()
