from __future__ import annotations

LEVEL_DEFAULT = "info"
PROGRESS_INTERVAL = 500

# Levels not listed here are treated like "info".
LEVEL_ORDER = {"progress": 0, "info": 1, "ok": 1, "conflict": 1, "warn": 2, "error": 3}

_threshold = 0


def _normalize_level(level: str | None) -> str:
    if not level:
        return LEVEL_DEFAULT
    return level.strip().lower() or LEVEL_DEFAULT


def set_threshold(level: str | None) -> None:
    """Hide every message below ``level``; ``None`` shows everything again."""
    global _threshold
    _threshold = LEVEL_ORDER.get(_normalize_level(level), 1) if level else 0


def log(message: str, level: str = LEVEL_DEFAULT, indent: int = 0) -> None:
    normalized = _normalize_level(level)
    if LEVEL_ORDER.get(normalized, 1) < _threshold:
        return
    prefix = " " * max(indent, 0)
    print(f"{prefix}[{normalized}] {message}")


def log_info(message: str, indent: int = 0) -> None:
    log(message, "info", indent)


def log_warn(message: str, indent: int = 0) -> None:
    log(message, "warn", indent)


def log_error(message: str, indent: int = 0) -> None:
    log(message, "error", indent)


def log_conflict(message: str, indent: int = 0) -> None:
    log(message, "conflict", indent)


def log_ok(message: str, indent: int = 0) -> None:
    log(message, "ok", indent)


def log_progress(done: int, label: str, indent: int = 0, interval: int = PROGRESS_INTERVAL) -> None:
    """Emit a progress line every ``interval`` processed items."""
    if interval > 0 and done and done % interval == 0:
        log(f"{label}: {done} processed", "progress", indent)
