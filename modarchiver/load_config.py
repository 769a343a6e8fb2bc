from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Type, TypeVar

import toml

from .manifest import DEFAULT_MARKERS, ManifestMarkers
from .models import CategorySelection, ConflictPolicy, OriginalsAction, PartitionStrategy
from .partitioner import DEFAULT_CEILING
from .text_utils import normalize_extension
from .tooling import ExternalTool, PackerTool

E = TypeVar("E", bound=Enum)

DEFAULT_EXTENSIONS = (".pex",)


@dataclass(slots=True, frozen=True)
class PackerSettings:
    executable: Path
    args: tuple[str, ...] = ()
    archive_format: str = "sse"
    compress: bool = True
    share: bool = True
    multithreaded: bool = True
    extension: str = ".bsa"

    def build(self) -> PackerTool:
        return PackerTool(
            tool=ExternalTool(executable=self.executable, args=self.args),
            archive_format=self.archive_format,
            compress=self.compress,
            share=self.share,
            multithreaded=self.multithreaded,
            extension=self.extension,
        )


@dataclass(slots=True, frozen=True)
class ArchiverConfig:
    manifest: Path
    mods_root: Path
    staging_root: Path
    archive_root: Path
    units_root: Path
    backup_root: Path
    categories: tuple[CategorySelection, ...] = ()
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    conflict_policy: ConflictPolicy = ConflictPolicy.SKIP
    originals: OriginalsAction = OriginalsAction.KEEP
    partition_strategy: PartitionStrategy = PartitionStrategy.SIZE
    ceiling: int = DEFAULT_CEILING
    analyze_conflicts: bool = True
    exempt_categories: tuple[str, ...] = ()
    exempt_mods: tuple[str, ...] = ()
    manual_groups: Dict[str, List[List[str]]] = field(default_factory=dict)
    markers: ManifestMarkers = DEFAULT_MARKERS
    packer: PackerSettings | None = None
    dry_run: bool = False

    def with_overrides(self, **changes: Any) -> "ArchiverConfig":
        return replace(self, **changes)


def _enum_value(enum_type: Type[E], raw: Any, key: str) -> E:
    try:
        return enum_type(str(raw).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValueError(f"Invalid value {raw!r} for '{key}'. Expected one of: {allowed}") from exc


def _string_list(raw: Any, key: str) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str) or not isinstance(raw, list):
        raise ValueError(f"'{key}' must be a list of strings")
    return tuple(str(item) for item in raw)


def _resolve_path(base_dir: Path, raw: Any, key: str) -> Path:
    if not raw:
        raise ValueError(f"Missing required setting '{key}'")
    path = Path(str(raw)).expanduser()
    return path if path.is_absolute() else base_dir / path


def _parse_categories(raw: Any) -> tuple[CategorySelection, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValueError("'categories' must be an array of tables")
    selections: List[CategorySelection] = []
    for item in raw:
        if isinstance(item, str):
            selections.append(CategorySelection(name=item))
            continue
        if not isinstance(item, Mapping) or "name" not in item:
            raise ValueError("Every [[categories]] entry needs a 'name'")
        mods = item.get("mods")
        selections.append(
            CategorySelection(
                name=str(item["name"]),
                mods=None if mods is None else _string_list(mods, f"categories.{item['name']}.mods"),
            )
        )
    names = [selection.name for selection in selections]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValueError(f"Categories selected more than once: {', '.join(duplicates)}")
    return tuple(selections)


def _parse_manual_groups(raw: Any) -> Dict[str, List[List[str]]]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError("'manual_groups' must be a table of category = [[subdirectories], ...]")
    groups: Dict[str, List[List[str]]] = {}
    for category, category_groups in raw.items():
        if not isinstance(category_groups, list):
            raise ValueError(f"manual_groups.{category} must be a list of lists")
        groups[str(category)] = [list(_string_list(group, f"manual_groups.{category}")) for group in category_groups]
    return groups


def _parse_markers(raw: Any) -> ManifestMarkers:
    if raw is None:
        return DEFAULT_MARKERS
    if not isinstance(raw, Mapping):
        raise ValueError("'markers' must be a table")
    markers = replace(DEFAULT_MARKERS, **{key: str(value) for key, value in raw.items() if key in ManifestMarkers.__dataclass_fields__})
    unknown = sorted(set(raw) - set(ManifestMarkers.__dataclass_fields__))
    if unknown:
        raise ValueError(f"Unknown marker setting(s): {', '.join(unknown)}")
    for key in ("enabled", "disabled", "boundary_suffix", "consolidated"):
        if not getattr(markers, key):
            raise ValueError(f"markers.{key} must not be empty")
    return markers


def _parse_packer(base_dir: Path, raw: Any) -> PackerSettings | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ValueError("'packer' must be a table")
    extension = normalize_extension(str(raw.get("extension", ".bsa")))
    return PackerSettings(
        executable=_resolve_path(base_dir, raw.get("executable"), "packer.executable"),
        args=_string_list(raw.get("args", []), "packer.args"),
        archive_format=str(raw.get("format", "sse")).lstrip("-"),
        compress=bool(raw.get("compress", True)),
        share=bool(raw.get("share", True)),
        multithreaded=bool(raw.get("multithreaded", True)),
        extension=extension,
    )


def parse_program_config(config: Mapping[str, Any], base_dir: Path) -> ArchiverConfig:
    """Validate a decoded configuration table into an :class:`ArchiverConfig`.

    Relative paths resolve against ``base_dir``; optional folders default to
    siblings of the mods folder's parent.
    """

    mods_root = _resolve_path(base_dir, config.get("mods_root"), "mods_root")
    work_dir = mods_root.parent

    def _optional_path(key: str, default: str) -> Path:
        return _resolve_path(base_dir, config.get(key), key) if config.get(key) else work_dir / default

    ceiling = config.get("ceiling", DEFAULT_CEILING)
    if isinstance(ceiling, bool) or not isinstance(ceiling, int) or ceiling <= 0:
        raise ValueError(f"'ceiling' must be a positive integer, got {ceiling!r}")

    extensions = tuple(normalize_extension(ext) for ext in _string_list(config.get("extensions", list(DEFAULT_EXTENSIONS)), "extensions"))

    return ArchiverConfig(
        manifest=_resolve_path(base_dir, config.get("manifest"), "manifest"),
        mods_root=mods_root,
        staging_root=_optional_path("staging_root", "ModArchiver/staging"),
        archive_root=_optional_path("archive_root", "ModArchiver/archives"),
        units_root=_optional_path("units_root", "ModArchiver/units"),
        backup_root=_optional_path("backup_root", "ModArchiver/backup"),
        categories=_parse_categories(config.get("categories")),
        extensions=tuple(ext for ext in extensions if ext),
        conflict_policy=_enum_value(ConflictPolicy, config.get("conflict_policy", ConflictPolicy.SKIP.value), "conflict_policy"),
        originals=_enum_value(OriginalsAction, config.get("originals", OriginalsAction.KEEP.value), "originals"),
        partition_strategy=_enum_value(
            PartitionStrategy, config.get("partition_strategy", PartitionStrategy.SIZE.value), "partition_strategy"
        ),
        ceiling=ceiling,
        analyze_conflicts=bool(config.get("analyze_conflicts", True)),
        exempt_categories=_string_list(config.get("exempt_categories"), "exempt_categories"),
        exempt_mods=_string_list(config.get("exempt_mods"), "exempt_mods"),
        manual_groups=_parse_manual_groups(config.get("manual_groups")),
        markers=_parse_markers(config.get("markers")),
        packer=_parse_packer(base_dir, config.get("packer")),
        dry_run=bool(config.get("dry_run", False)),
    )


def load_program_config(config_path: Path) -> ArchiverConfig:
    """Load and validate the ModArchiver TOML configuration file."""

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file {config_path} not found.")

    raw_text = config_path.read_text(encoding="utf-8")
    try:
        config = toml.loads(raw_text)
    except toml.TomlDecodeError as exc:
        raise ValueError(f"Invalid TOML in configuration file: {config_path}") from exc

    return parse_program_config(config, config_path.parent)
