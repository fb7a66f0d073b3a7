from __future__ import annotations
from typing import Optional
from leadfactory.schema import Workspace, WorkspaceVersion, new_id, utcnow

def snapshot_workspace(ws: Workspace, note: str = "") -> Workspace:
    """Append a point-in-time copy of everything except the version list itself."""
    version = WorkspaceVersion(
        id=new_id("ver"),
        note=note or "Manual snapshot",
        created_at=utcnow(),
        snapshot=ws.model_dump(mode="json", exclude={"versions"}),
    )
    return ws.model_copy(update={"versions": [*ws.versions, version]})

def get_version(ws: Workspace, version_id: str) -> Optional[WorkspaceVersion]:
    return next((v for v in ws.versions if v.id == version_id), None)

def restore_workspace(ws: Workspace, version_id: str) -> Workspace:
    version = get_version(ws, version_id)
    if version is None:
        return ws
    restored = Workspace.model_validate(version.snapshot)
    # history survives the rollback
    return restored.model_copy(update={"versions": list(ws.versions)})
