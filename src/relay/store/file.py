"""YAML-file context store: one document per coordinator session.

Store file: <root>/<session_id>.yaml
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

_SAFE_SESSION = re.compile(r"[^A-Za-z0-9._-]+")


class FileContextStore:
    def __init__(self, root: Path, session_id: str):
        safe_id = _SAFE_SESSION.sub("_", session_id).strip("._") or "default"
        self.path = Path(root) / f"{safe_id}.yaml"

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            content = self.path.read_text(encoding="utf-8-sig")
            data = yaml.safe_load(content) or {}
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring session file %s: expected a mapping", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, data: dict[str, str]) -> None:
        """Write via a temp file in the same directory so readers never see half a file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        content = yaml.safe_dump(data, default_flow_style=False, sort_keys=True, allow_unicode=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    async def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    async def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)
