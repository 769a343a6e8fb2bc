from __future__ import annotations

import os
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from .category_resolver import mods_above_category, selection_members
from .logging_utils import log_info, log_warn
from .manifest import Manifest
from .models import CategorySelection, ConflictRecord, ConflictReport, RunContext, TargetFile
from .text_utils import normalize_extension

Contributor = tuple[str, int]


def iter_target_files(
	mod_root: Path,
	owner_mod: str,
	extensions: Iterable[str] = (),
	consolidated_marker: str = "",
	context: RunContext | None = None,
) -> List[TargetFile]:
	"""Return every target file under a mod folder in a stable order.

	An empty extension set selects every file.  Files that already carry the
	consolidated marker were handled by an earlier run and are ignored.  A file
	that cannot be read is logged, recorded on ``context`` and left out.
	"""

	wanted = {normalize_extension(ext) for ext in extensions if ext}
	files: List[TargetFile] = []
	for root, dirs, filenames in os.walk(mod_root):
		dirs.sort()
		for filename in sorted(filenames):
			if consolidated_marker and filename.endswith(consolidated_marker):
				continue
			if wanted and Path(filename).suffix.lower() not in wanted:
				continue
			path = Path(root) / filename
			try:
				size_bytes = path.stat().st_size
			except OSError as exc:
				log_warn(f"Cannot read {path}, skipping: {exc}", indent=2)
				if context is not None:
					context.record_failure("scan", str(path), str(exc))
				continue
			files.append(
				TargetFile(
					relative_path=path.relative_to(mod_root).as_posix(),
					owner_mod=owner_mod,
					absolute_path=path,
					size_bytes=size_bytes,
				)
			)
	return files


def collect_mod_files(
	mods_root: Path,
	mod_names: Sequence[str],
	context: RunContext,
	extensions: Iterable[str] = (),
	consolidated_marker: str = "",
) -> Dict[str, List[TargetFile]]:
	"""Enumerate target files per mod, skipping mods whose folder is missing."""

	extensions = tuple(extensions)
	files_by_mod: Dict[str, List[TargetFile]] = {}
	for mod_name in mod_names:
		if mod_name in files_by_mod:
			continue
		mod_root = mods_root / mod_name
		if not mod_root.is_dir():
			log_warn(f"Mod folder not found, skipping: {mod_root}", indent=2)
			if mod_name not in context.missing_mods:
				context.missing_mods.append(mod_name)
			continue
		files_by_mod[mod_name] = iter_target_files(mod_root, mod_name, extensions, consolidated_marker, context)
	return files_by_mod


def build_file_index(
	files_by_mod: Dict[str, List[TargetFile]],
	priorities: Dict[str, int],
) -> Dict[str, List[Contributor]]:
	"""Group higher-priority contributors by normalized relative path."""

	index: Dict[str, List[Contributor]] = defaultdict(list)
	for mod_name, files in files_by_mod.items():
		priority = priorities[mod_name]
		for target in files:
			index[target.key].append((mod_name, priority))
	return index


def _select_winner(contributors: Iterable[Contributor]) -> Contributor:
	return max(contributors, key=lambda item: (item[1], item[0]))


def _higher_priority_mods(
	manifest: Manifest,
	selection: CategorySelection,
	members: Sequence[str],
	selected_members: Dict[str, List[str]],
	restricted: bool,
) -> List[str]:
	own = set(members)
	higher = [name for name in mods_above_category(manifest, selection.name) if name not in own]
	if restricted:
		loaded = {
			name
			for category, names in selected_members.items()
			if category != selection.name
			for name in names
		}
		higher = [name for name in higher if name in loaded]
	return higher


def detect_category_conflicts(
	category: str,
	members: Sequence[str],
	member_files: Dict[str, List[TargetFile]],
	index: Dict[str, List[Contributor]],
	priorities: Dict[str, int],
) -> List[ConflictRecord]:
	records: List[ConflictRecord] = []
	for mod_name in members:
		for target in member_files.get(mod_name, []):
			contributors = index.get(target.key)
			if not contributors:
				continue
			winner, winner_priority = _select_winner(contributors)
			records.append(
				ConflictRecord(
					category=category,
					relative_path=target.relative_path,
					losing_mod=mod_name,
					losing_priority=priorities[mod_name],
					winning_mod=winner,
					winning_priority=winner_priority,
				)
			)
	return records


def analyze_conflicts(
	manifest: Manifest,
	selections: Sequence[CategorySelection],
	mods_root: Path,
	context: RunContext,
	extensions: Iterable[str] = (),
	consolidated_marker: str = "",
) -> ConflictReport:
	"""Find category files that a higher-priority mod outside the category overrides.

	Results are stored on ``context.conflicts`` and returned.
	"""

	extensions = tuple(extensions)
	priorities = manifest.priorities()
	restricted = any(selection.restricted for selection in selections)
	selected_members = {selection.name: selection_members(manifest, selection) for selection in selections}
	report = context.conflicts

	for selection in selections:
		members = selected_members[selection.name]
		higher = _higher_priority_mods(manifest, selection, members, selected_members, restricted)
		log_info(f"Checking '{selection.name}': {len(members)} mod(s) against {len(higher)} higher-priority mod(s)")

		higher_files = collect_mod_files(mods_root, higher, context, extensions, consolidated_marker)
		index = build_file_index(higher_files, priorities)
		member_files = collect_mod_files(mods_root, members, context, extensions, consolidated_marker)

		records = detect_category_conflicts(selection.name, members, member_files, index, priorities)
		for record in records:
			report.add(record)
		log_info(f"{len(records)} overridden file(s) in '{selection.name}'", indent=2)

	log_info(f"Conflict scan complete: {report.total} overridden file(s) in total")
	return report
