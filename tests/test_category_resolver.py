import pytest

from modarchiver.category_resolver import (
    mods_above_category,
    mods_in_category,
    resolve_boundary,
    selection_members,
)
from modarchiver.models import CategoryNotFoundError, CategorySelection
from tests.conftest import manifest_from


def test_members_listed_lowest_priority_first(sample_manifest):
    assert mods_in_category(sample_manifest, "Weapons") == ["ModB", "ModA"]
    assert mods_in_category(sample_manifest, "Patches") == ["TopPatch"]


def test_members_skip_disabled_and_marked_mods(sample_manifest):
    assert mods_in_category(sample_manifest, "Armor") == ["ModD", "ModC"]


def test_member_order_matches_priority(sample_manifest):
    priorities = sample_manifest.priorities()
    members = mods_in_category(sample_manifest, "Armor")
    assert [priorities[name] for name in members] == sorted(priorities[name] for name in members)


def test_category_at_top_of_file_is_empty():
    manifest = manifest_from(["-Empty_separator", "+ModA", "-Below_separator"])
    assert mods_in_category(manifest, "Empty") == []
    assert mods_in_category(manifest, "Below") == ["ModA"]


def test_mods_above_category(sample_manifest):
    assert mods_above_category(sample_manifest, "Weapons") == ["TopPatch", "ModA", "ModB"]
    assert mods_above_category(sample_manifest, "Patches") == ["TopPatch"]
    assert mods_above_category(sample_manifest, "Armor") == [
        "TopPatch",
        "ModA",
        "ModB",
        "ModC",
        "Skipped [NoMerge]",
        "ModD",
    ]


def test_unknown_category_raises(sample_manifest):
    with pytest.raises(CategoryNotFoundError) as excinfo:
        mods_in_category(sample_manifest, "Music")
    assert excinfo.value.category == "Music"
    assert "Music" in str(excinfo.value)


def test_qualified_name_falls_back_to_parent(sample_manifest):
    boundary = resolve_boundary(sample_manifest, "Weapons - textures")
    assert boundary.name == "Weapons"
    assert mods_in_category(sample_manifest, "Weapons - textures") == ["ModB", "ModA"]


def test_qualified_name_without_parent_raises(sample_manifest):
    with pytest.raises(CategoryNotFoundError):
        resolve_boundary(sample_manifest, "Music - Part 1")


def test_selection_without_mods_uses_category(sample_manifest):
    assert selection_members(sample_manifest, CategorySelection("Armor")) == ["ModD", "ModC"]


def test_explicit_selection_sorted_by_priority(sample_manifest):
    selection = CategorySelection("Armor", mods=("TopPatch", "BaseMod", "ModC", "ModC"))
    assert selection_members(sample_manifest, selection) == ["BaseMod", "ModC", "TopPatch"]


def test_explicit_selection_drops_disabled_mods(sample_manifest):
    selection = CategorySelection("Armor", mods=("DisabledMod", "ModD", "Ghost"))
    assert selection_members(sample_manifest, selection) == ["ModD"]
