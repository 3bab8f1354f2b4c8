"""Media inventory scanning and request path validation."""

import os
from pathlib import Path


def _normalize_exts(exts) -> set[str]:
    return {e.lstrip(".").lower() for e in exts}


def scan_media_files(dirs: list[Path], exts: list[str]) -> list[Path]:
    """Recursively list files under ``dirs`` whose extension is in ``exts``."""
    wanted = _normalize_exts(exts)
    paths: list[Path] = []
    for root in dirs:
        for dirpath, _dirnames, filenames in os.walk(root):
            for name in filenames:
                path = Path(dirpath) / name
                if path.suffix.lstrip(".").lower() in wanted:
                    paths.append(path)
    return sorted(paths)


def is_safe_file(path: str | Path, safe_dirs: list[Path], safe_exts: list[str]) -> bool:
    """Return True if ``path`` exists, has an allowed extension and lies inside a safe dir.

    Symlinks and ``..`` components are resolved before the containment check.
    """
    try:
        resolved = Path(path).resolve(strict=True)
    except (OSError, RuntimeError):
        return False

    if not resolved.is_file():
        return False
    if resolved.suffix.lstrip(".").lower() not in _normalize_exts(safe_exts):
        return False

    for d in safe_dirs:
        try:
            root = Path(d).resolve(strict=True)
        except (OSError, RuntimeError):
            continue
        if resolved.is_relative_to(root):
            return True
    return False
