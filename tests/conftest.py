"""
Shared fixtures and helpers for the ModArchiver test suite.
"""

from pathlib import Path

import pytest

from modarchiver.manifest import Manifest, parse_manifest_lines

SAMPLE_MANIFEST = [
    "# This file was automatically generated by Mod Organizer.",
    "+TopPatch",
    "-Patches_separator",
    "+ModA",
    "+ModB",
    "-Weapons_separator",
    "+ModC",
    "-DisabledMod",
    "+Skipped [NoMerge]",
    "+ModD",
    "-Armor_separator",
    "+BaseMod",
    "*Unmanaged: DLC",
]


def write_manifest(path: Path, lines) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def manifest_from(lines) -> Manifest:
    return Manifest(parse_manifest_lines(lines))


def make_mod(mods_root: Path, name: str, files: dict) -> Path:
    """Create mods_root/<name> holding {relative_path: bytes | str}."""
    mod_dir = mods_root / name
    mod_dir.mkdir(parents=True, exist_ok=True)
    for relpath, data in files.items():
        target = mod_dir / relpath
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, str):
            data = data.encode("utf-8")
        target.write_bytes(data)
    return mod_dir


def snapshot(root: Path) -> dict:
    """Return {relative posix path: bytes} for every file under root."""
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


@pytest.fixture
def dirs(tmp_path):
    """Return (mods_root, work_dir) as fresh tmp_path subdirectories."""
    mods = tmp_path / "mods"
    work = tmp_path / "work"
    mods.mkdir()
    work.mkdir()
    return mods, work


@pytest.fixture
def sample_manifest():
    return manifest_from(SAMPLE_MANIFEST)
