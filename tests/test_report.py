from pathlib import Path

from openpyxl import load_workbook

from modarchiver.models import ArchiveUnit, ConflictRecord, CopiedFileRecord, RunContext, StagedFile
from modarchiver.report import export_report, print_conflict_details, print_run_summary


def _context():
    context = RunContext()
    context.conflicts.add(
        ConflictRecord(
            category="Weapons",
            relative_path="scripts/quest.pex",
            losing_mod="ModA",
            losing_priority=1,
            winning_mod="TopPatch",
            winning_priority=3,
        )
    )
    context.ledger.append(
        CopiedFileRecord(
            original_path=Path("mods/ModB/scripts/gun.pex"),
            destination_path=Path("staging/Weapons/scripts/gun.pex"),
            relative_path="scripts/gun.pex",
            owner_mod="ModB",
            category="Weapons",
        )
    )
    context.units.append(
        ArchiveUnit(name="Weapons", category="Weapons", members=[StagedFile("scripts/gun.pex", 10)])
    )
    context.retained.append(context.ledger[0])
    context.unresolved_units.append("Weapons")
    context.record_failure("pack", "Weapons", "exit code 1")
    return context


def test_export_report_writes_every_sheet(tmp_path):
    output = tmp_path / "reports" / "run.xlsx"

    export_report(output, _context())

    workbook = load_workbook(output)
    assert workbook.sheetnames == ["conflicts", "copied_files", "archive_units", "failures"]
    conflicts = list(workbook["conflicts"].iter_rows(values_only=True))
    assert conflicts[1] == ("Weapons", "scripts/quest.pex", "ModA", 1, "TopPatch", 3)
    units = list(workbook["archive_units"].iter_rows(values_only=True))
    assert units[1][0] == "Weapons"
    assert units[1][-1] == "unresolved"
    copied = list(workbook["copied_files"].iter_rows(values_only=True))
    assert copied[1][-1] == "yes"
    failures = list(workbook["failures"].iter_rows(values_only=True))
    assert failures[1] == ("pack", "Weapons", "exit code 1")


def test_console_output(capsys):
    context = _context()

    print_conflict_details(context.conflicts)
    print_run_summary(context)

    output = capsys.readouterr().out
    assert "scripts/quest.pex: ModA (1) < TopPatch (3)" in output
    assert "Unresolved units" in output
    assert "Originals left in place (not archived): 1" in output
    assert "ModB/scripts/gun.pex" in output
    assert "1 failure(s) (pack: 1)" in output
