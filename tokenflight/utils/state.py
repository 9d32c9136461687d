"""Default on-disk layout for CLI state."""

from __future__ import annotations

from pathlib import Path

DEFAULT_ROOT = Path(".tokenflight")


def resolve_root(root: str | Path | None = None) -> Path:
    """Resolve the state root path."""
    if root is None:
        return DEFAULT_ROOT
    return Path(root)


def root_path(root: str | Path | None, *parts: str) -> Path:
    """Resolve a child path within the state root."""
    resolved = resolve_root(root)
    for part in parts:
        resolved = resolved / part
    return resolved


def config_path(root: str | Path | None) -> Path:
    return root_path(root, "config.yaml")


def session_path(root: str | Path | None) -> Path:
    """Return the persisted session file for a root."""
    return root_path(root, "session.json")


def audit_log_path(root: str | Path | None) -> Path:
    return root_path(root, "audit.jsonl")
