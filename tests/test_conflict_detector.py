from modarchiver.conflict_detector import analyze_conflicts, build_file_index, iter_target_files
from modarchiver.models import CategorySelection, RunContext
from tests.conftest import make_mod, manifest_from

THREE_LAYER_MANIFEST = [
    "+Top",
    "+Middle",
    "-Patches_separator",
    "+Low",
    "+Lower",
    "-Weapons_separator",
]


def test_iter_target_files_filters_extensions(tmp_path):
    mod_dir = make_mod(
        tmp_path,
        "ModA",
        {
            "scripts/b.pex": "b",
            "scripts/a.PEX": "a",
            "textures/t.dds": "t",
            "scripts/old.pex.mohidden": "old",
        },
    )

    files = iter_target_files(mod_dir, "ModA", extensions=["pex"], consolidated_marker=".mohidden")

    assert [target.relative_path for target in files] == ["scripts/a.PEX", "scripts/b.pex"]
    assert all(target.owner_mod == "ModA" for target in files)
    assert files[0].size_bytes == 1


def test_iter_target_files_without_extensions_lists_everything(tmp_path):
    mod_dir = make_mod(tmp_path, "ModA", {"a.esp": "x", "meshes/gun.nif": "yy"})

    files = iter_target_files(mod_dir, "ModA")

    assert [target.relative_path for target in files] == ["a.esp", "meshes/gun.nif"]


def test_unreadable_file_is_recorded_and_left_out(tmp_path):
    mod_dir = make_mod(tmp_path, "ModA", {"scripts/a.pex": "a"})
    (mod_dir / "scripts" / "dangling.pex").symlink_to(tmp_path / "missing.pex")
    context = RunContext()

    files = iter_target_files(mod_dir, "ModA", extensions=["pex"], context=context)

    assert [target.relative_path for target in files] == ["scripts/a.pex"]
    assert [(failure.stage, failure.subject) for failure in context.failures] == [
        ("scan", str(mod_dir / "scripts" / "dangling.pex"))
    ]


def test_file_index_keys_ignore_case_and_separators(tmp_path):
    make_mod(tmp_path, "Top", {"Scripts/Foo.pex": "x"})
    make_mod(tmp_path, "Middle", {"scripts/foo.PEX": "y"})
    files = {
        "Top": iter_target_files(tmp_path / "Top", "Top"),
        "Middle": iter_target_files(tmp_path / "Middle", "Middle"),
    }

    index = build_file_index(files, {"Top": 5, "Middle": 4})

    assert sorted(index["scripts/foo.pex"]) == [("Middle", 4), ("Top", 5)]


def test_winner_is_highest_priority_contributor(dirs):
    mods, _ = dirs
    manifest = manifest_from(THREE_LAYER_MANIFEST)
    make_mod(mods, "Middle", {"scripts/shared.pex": "middle"})
    make_mod(mods, "Top", {"scripts/shared.pex": "top"})
    make_mod(mods, "Low", {"scripts/shared.pex": "low", "scripts/own.pex": "own"})
    make_mod(mods, "Lower", {})
    context = RunContext()

    report = analyze_conflicts(manifest, [CategorySelection("Weapons")], mods, context, extensions=[".pex"])

    records = report.by_category["Weapons"]
    assert len(records) == 1
    record = records[0]
    assert record.relative_path == "scripts/shared.pex"
    assert record.losing_mod == "Low"
    assert record.losing_priority == 1
    assert record.winning_mod == "Top"
    assert record.winning_priority == 3
    assert report is context.conflicts
    assert report.is_overridden("Weapons", "Low", "Scripts\\Shared.pex")


def test_conflict_matches_across_case_and_separators(dirs):
    mods, _ = dirs
    manifest = manifest_from(THREE_LAYER_MANIFEST)
    make_mod(mods, "Top", {"SCRIPTS/Quest.pex": "top"})
    make_mod(mods, "Middle", {})
    make_mod(mods, "Low", {"scripts/quest.pex": "low"})
    make_mod(mods, "Lower", {})

    report = analyze_conflicts(manifest, [CategorySelection("Weapons")], mods, RunContext())

    assert report.total == 1
    assert report.losing_mods("Weapons") == ["Low"]


def test_members_never_conflict_with_each_other(dirs):
    mods, _ = dirs
    manifest = manifest_from(THREE_LAYER_MANIFEST)
    for name in ("Top", "Middle"):
        make_mod(mods, name, {})
    make_mod(mods, "Low", {"meshes/gun.nif": "low"})
    make_mod(mods, "Lower", {"meshes/gun.nif": "lower"})

    report = analyze_conflicts(manifest, [CategorySelection("Weapons")], mods, RunContext())

    assert report.total == 0


def test_explicit_members_are_excluded_from_higher_mods(dirs):
    mods, _ = dirs
    manifest = manifest_from(THREE_LAYER_MANIFEST)
    make_mod(mods, "Top", {"a.pex": "top"})
    make_mod(mods, "Middle", {"a.pex": "middle"})
    make_mod(mods, "Low", {"a.pex": "low"})
    selections = [
        CategorySelection("Weapons", mods=("Low", "Middle")),
        CategorySelection("Patches", mods=("Top",)),
    ]

    report = analyze_conflicts(manifest, selections, mods, RunContext())

    weapons = report.by_category["Weapons"]
    assert {record.losing_mod for record in weapons} == {"Low", "Middle"}
    assert all(record.winning_mod == "Top" for record in weapons)


def test_restricted_selection_ignores_unselected_higher_mods(dirs):
    mods, _ = dirs
    manifest = manifest_from(THREE_LAYER_MANIFEST)
    make_mod(mods, "Top", {"a.pex": "top"})
    make_mod(mods, "Middle", {"b.pex": "middle"})
    make_mod(mods, "Low", {"a.pex": "low", "b.pex": "low"})
    selections = [
        CategorySelection("Weapons", mods=("Low",)),
        CategorySelection("Patches", mods=("Middle",)),
    ]

    report = analyze_conflicts(manifest, selections, mods, RunContext())

    records = report.by_category["Weapons"]
    assert [(record.relative_path, record.winning_mod) for record in records] == [("b.pex", "Middle")]


def test_missing_mod_folder_is_recorded(dirs):
    mods, _ = dirs
    manifest = manifest_from(THREE_LAYER_MANIFEST)
    make_mod(mods, "Top", {"a.pex": "top"})
    make_mod(mods, "Low", {"a.pex": "low"})
    context = RunContext()

    report = analyze_conflicts(manifest, [CategorySelection("Weapons")], mods, context)

    assert sorted(context.missing_mods) == ["Lower", "Middle"]
    assert report.total == 1
    assert not context.failures
