from __future__ import annotations

from pathlib import Path
from typing import Optional

from .base import ContextStore, agent_chat_key, check_count_key, sent_at_key
from .file import FileContextStore
from .memory import MemoryContextStore

__all__ = [
    "ContextStore",
    "FileContextStore",
    "MemoryContextStore",
    "agent_chat_key",
    "build_store",
    "check_count_key",
    "sent_at_key",
]


def build_store(config: dict, session_id: str, project_path: Optional[Path] = None) -> ContextStore:
    """Factory function to create the configured context store."""
    store_config = config.get("store") or {}
    backend = store_config.get("backend", "file")
    if backend == "memory":
        return MemoryContextStore()
    if backend == "file":
        root = Path(store_config.get("path", ".relay/sessions"))
        if not root.is_absolute() and project_path is not None:
            root = Path(project_path) / root
        return FileContextStore(root, session_id)
    raise ValueError(f"Unknown store backend: {backend}")
