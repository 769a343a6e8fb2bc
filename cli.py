from __future__ import annotations

import argparse
from pathlib import Path

from modarchiver import (
    FatalRunError,
    export_report,
    insert_entry,
    load_program_config,
    print_conflict_details,
    print_run_summary,
    run_consolidation,
    run_restore,
)
from modarchiver.logging_utils import log_info, set_threshold


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Merge the loose files of every mod in a load-order category into one staging tree, "
            "resolving overrides by manifest priority, split it into archive-sized units "
            "and hand each unit to the archive packer."
        )
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=("consolidate", "restore"),
        default="consolidate",
        help="'consolidate' builds the archives, 'restore' puts backed-up originals back.",
    )
    parser.add_argument(
        "--config-path",
        type=Path,
        default=Path("modarchiver.toml"),
        help="Path to the program configuration TOML file.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report overridden files; do not copy, move or pack anything.",
    )
    parser.add_argument(
        "--verbose-conflict",
        action="store_true",
        default=False,
        help="Print every overridden file.",
    )
    parser.add_argument(
        "--export-path",
        type=Path,
        default=Path(""),
        help="Path to save the run report Excel file.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        default=False,
        help="Only print warnings and errors.",
    )
    parser.add_argument(
        "--register-mod",
        default=None,
        help="After packing, add this mod name to the manifest above the first selected category.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    if args.quiet:
        set_threshold("warn")
    try:
        config = load_program_config(args.config_path.expanduser())
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(str(exc))
    if args.dry_run:
        config = config.with_overrides(dry_run=True)

    try:
        if args.command == "restore":
            context = run_restore(config)
        else:
            context = run_consolidation(config)
    except FatalRunError as exc:
        raise SystemExit(str(exc))

    if args.verbose_conflict or config.dry_run:
        print_conflict_details(context.conflicts)

    if args.register_mod and context.archives:
        before = config.categories[0].name if config.categories else None
        index = insert_entry(config.manifest, args.register_mod, before=before, markers=config.markers)
        log_info(f"Registered '{args.register_mod}' in the manifest at position {index}")

    print_run_summary(context)

    export_path = args.export_path
    if not export_path == Path(""):
        if export_path.suffix.lower() != ".xlsx":
            export_path = export_path / "modarchiver_report.xlsx"
        export_report(output_path=export_path, context=context)
        log_info(f"Report saved to {export_path}")

    if not context.ok:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
