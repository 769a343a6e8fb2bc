from __future__ import annotations

import re

SEPARATOR_PATTERN = re.compile(r"[\\/]+")
QUALIFIER_PATTERN = re.compile(r"^(?P<base>.+?)\s+-\s+[^-]+$")


def normalize_relpath(raw: str) -> str:
    """Unify separators to ``/`` and fold case so paths compare as the game sees them."""
    return SEPARATOR_PATTERN.sub("/", raw).strip("/").casefold()


def normalize_extension(raw: str) -> str:
    ext = raw.strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext


def strip_qualifier(category: str) -> str | None:
    """Return ``category`` without a trailing `` - qualifier`` part, or None."""
    match = QUALIFIER_PATTERN.match(category.strip())
    if not match:
        return None
    return match.group("base")


def format_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.2f} KB"
    if size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.2f} MB"
    return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"
