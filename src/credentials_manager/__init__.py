"""Credentials manager -- in-memory credential cache backed by the OS keychain."""

from pathlib import Path as _Path

from credentials_manager.keys import CredentialsKey
from credentials_manager.manager import CredentialsManager
from credentials_manager.values import EMPTY, Empty, Structured, Text

def _read_version() -> str:
    """Read version from the repo-level VERSION file (single source of truth)."""
    for parent in _Path(__file__).resolve().parents:
        candidate = parent / "VERSION"
        if candidate.is_file():
            return candidate.read_text().strip()
    return "0.0.0"

__version__ = _read_version()

__all__ = [
    "EMPTY",
    "CredentialsKey",
    "CredentialsManager",
    "Empty",
    "Structured",
    "Text",
]
