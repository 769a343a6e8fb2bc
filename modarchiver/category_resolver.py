from __future__ import annotations

from typing import List

from .logging_utils import log_warn
from .manifest import Manifest
from .models import CategoryNotFoundError, CategorySelection, ManifestEntry
from .text_utils import strip_qualifier


def resolve_boundary(manifest: Manifest, category: str) -> ManifestEntry:
    """Find the boundary entry of ``category``.

    Categories split from a parent (``"Weapons - textures"``) fall back to the
    parent boundary once.
    """

    boundary = manifest.boundary(category)
    if boundary is not None:
        return boundary
    parent = strip_qualifier(category)
    if parent is not None:
        boundary = manifest.boundary(parent)
        if boundary is not None:
            log_warn(f"Category '{category}' not found; using parent category '{parent}'.")
            return boundary
    raise CategoryNotFoundError(category)


def mods_in_category(manifest: Manifest, category: str) -> List[str]:
    """Return the enabled mods owned by ``category``, lowest priority first.

    The scan starts just above the boundary and walks toward the top of the
    manifest until the next boundary.  The consolidation copy relies on this
    order to reproduce in-category overwrites, so it is never reversed.
    """

    boundary = resolve_boundary(manifest, category)
    entries = manifest.entries
    mods: List[str] = []
    for index in range(boundary.storage_index - 1, -1, -1):
        entry = entries[index]
        if entry.is_boundary:
            break
        if entry.enabled and not entry.skip:
            mods.append(entry.name)
    return mods


def mods_above_category(manifest: Manifest, category: str) -> List[str]:
    """Every enabled mod positioned above the category boundary, top first."""

    boundary = resolve_boundary(manifest, category)
    return [entry.name for entry in manifest.entries[: boundary.storage_index] if entry.enabled]


def selection_members(manifest: Manifest, selection: CategorySelection) -> List[str]:
    """Members of a selected category in ascending priority.

    An explicit mod list is reordered by load priority; names that are not
    enabled in the manifest cannot load and are dropped.
    """

    if selection.mods is None:
        return mods_in_category(manifest, selection.name)
    priorities = manifest.priorities()
    members: List[str] = []
    for mod_name in selection.mods:
        if mod_name not in priorities:
            log_warn(f"Mod '{mod_name}' selected for '{selection.name}' is not enabled; ignoring it.")
            continue
        if mod_name not in members:
            members.append(mod_name)
    return sorted(members, key=lambda name: priorities[name])
