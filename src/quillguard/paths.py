"""
Cross-platform path utilities for Quillguard.

Provides platform-appropriate user data directories for:
- Article files (persistent, one file per article)
- Session records (temp, cleaned up automatically)
"""

import os
import sys
from pathlib import Path


def get_user_data_dir() -> Path:
    """
    Writable user data directory (platform-appropriate).

    macOS:   ~/Library/Application Support/Quillguard/
    Windows: %APPDATA%/Quillguard/
    Linux:   ~/.local/share/Quillguard/
    """
    if sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    elif sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", str(Path.home())))
    else:
        base = Path.home() / ".local" / "share"

    data_dir = base / "Quillguard"
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def ensure_dir(path: Path) -> Path:
    """Create *path* (and parents) if missing and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path
