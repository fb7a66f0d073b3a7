from __future__ import annotations
from typing import Any, List, Optional
from leadfactory.schema import Artifact, Workspace, new_id, utcnow

def make_artifact_id(type: str) -> str:
    return new_id(f"art_{type}")

def upsert_artifact(ws: Workspace, artifact: Artifact) -> Workspace:
    items = list(ws.artifacts)
    for i, a in enumerate(items):
        if a.id == artifact.id:
            items[i] = artifact
            break
    else:
        items.append(artifact)
    return ws.model_copy(update={"artifacts": items})

def create_artifact(ws: Workspace, *, type: str, title: str, content: Any,
                    agent: Optional[str] = None) -> Workspace:
    ts = utcnow()
    artifact = Artifact(
        id=make_artifact_id(type), type=type, title=title, content=content,
        agent=agent, version=1, created_at=ts, updated_at=ts,
    )
    return upsert_artifact(ws, artifact)

def update_artifact_content(ws: Workspace, artifact_id: str, content: Any) -> Workspace:
    """Replace content and bump the version. Unknown ids return `ws` itself."""
    current = get_artifact(ws, artifact_id)
    if current is None:
        return ws
    updated = current.model_copy(update={
        "content": content,
        "version": current.version + 1,
        "updated_at": utcnow(),
    })
    return upsert_artifact(ws, updated)

def get_artifact(ws: Workspace, artifact_id: str) -> Optional[Artifact]:
    return next((a for a in ws.artifacts if a.id == artifact_id), None)

def remove_artifact(ws: Workspace, artifact_id: str) -> Workspace:
    if get_artifact(ws, artifact_id) is None:
        return ws
    return ws.model_copy(update={"artifacts": [a for a in ws.artifacts if a.id != artifact_id]})

def artifacts_for_stage(ws: Workspace, stage: str) -> List[Artifact]:
    return [a for a in ws.artifacts if a.agent == stage]
