from __future__ import annotations
import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional
from leadfactory.config import get_settings
from leadfactory.orchestrator import ensure_workspace_defaults
from leadfactory.schema import Workspace

log = logging.getLogger("store")

class WorkspaceStore:
    """Workspace collection persisted as one JSON array.

    Records are defaulted lazily on read; there are no migrations.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or get_settings().workspaces_file)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.lock = asyncio.Lock()

    def _load_records(self) -> List[dict]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            log.error("workspace store %s is not valid JSON: %s", self.path, e)
            raise ValueError(f"Corrupt workspace store: {self.path}") from e
        if not isinstance(data, list):
            raise ValueError(f"Workspace store must hold a JSON array: {self.path}")
        return data

    def _save_records(self, records: List[dict]) -> None:
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    @staticmethod
    def _to_workspace(record: dict) -> Workspace:
        return ensure_workspace_defaults(Workspace.model_validate(record))

    async def list(self) -> List[Workspace]:
        async with self.lock:
            return [self._to_workspace(r) for r in self._load_records()]

    async def get(self, workspace_id: str) -> Optional[Workspace]:
        async with self.lock:
            for r in self._load_records():
                if r.get("id") == workspace_id:
                    return self._to_workspace(r)
        return None

    async def save(self, ws: Workspace) -> Workspace:
        record = ws.model_dump(mode="json")
        async with self.lock:
            records = self._load_records()
            for i, r in enumerate(records):
                if r.get("id") == ws.id:
                    records[i] = record
                    break
            else:
                records.append(record)
            self._save_records(records)
        log.debug("saved workspace %s (%s)", ws.id, ws.workspace_status)
        return ws

    async def delete(self, workspace_id: str) -> bool:
        async with self.lock:
            records = self._load_records()
            kept = [r for r in records if r.get("id") != workspace_id]
            if len(kept) == len(records):
                return False
            self._save_records(kept)
        return True

    async def clear_all(self) -> None:
        async with self.lock:
            self._save_records([])
