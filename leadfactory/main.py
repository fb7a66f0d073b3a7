# file: leadfactory/main.py
import asyncio
import logging
from typing import AsyncGenerator
import requests
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from leadfactory.config import get_settings
from leadfactory.logging_config import setup_logging
from leadfactory.orchestrator import Orchestrator
from leadfactory.schema import STAGES, ContactInfo, InboundMessage, Workspace, new_id, utcnow
from leadfactory.schemas import (
    ActivityIn, ArtifactUpdate, AutopilotEnableIn, BatchOut, ContactIn, CRMStageIn,
    FollowUpIn, InboundOut, ManualReplyIn, PipelineBatchIn, SnapshotIn, WorkspaceCreate,
)
from leadfactory.services.artifacts import get_artifact, remove_artifact, update_artifact_content
from leadfactory.services.autopilot import enable_autopilot, pause_autopilot, stop_autopilot
from leadfactory.services.batch import dispatch_batch, run_autopilot_batch, run_batch
from leadfactory.services.crm import add_activity, add_follow_up, complete_follow_up, set_stage
from leadfactory.services.dispatch import dispatch_due_messages
from leadfactory.services.inbound import handle_inbound, normalize_inbound_payload
from leadfactory.services.intake import create_workspace
from leadfactory.services.outbox import cancel_message, get_message
from leadfactory.services.replies import apply_reply, classify_reply
from leadfactory.services.store import WorkspaceStore
from leadfactory.services.versioning import get_version, restore_workspace, snapshot_workspace
from leadfactory.tools.llm import check_llm_ready

setup_logging()
log = logging.getLogger("orchestrator")

app = FastAPI(title="Lead Factory", version="0.1.0")
store = WorkspaceStore()
orchestrator = Orchestrator()


@app.exception_handler(KeyError)
async def not_found(request: Request, exc: KeyError):
    return JSONResponse(status_code=404, content={"detail": str(exc.args[0]) if exc.args else "Not found"})


async def load(workspace_id: str) -> Workspace:
    ws = await store.get(workspace_id)
    if ws is None:
        raise KeyError(f"Workspace {workspace_id} not found")
    return ws


async def save_if_changed(before: Workspace, after: Workspace) -> Workspace:
    if after is not before:
        await store.save(after)
    return after


def dump(ws: Workspace) -> dict:
    return ws.model_dump(mode="json")


@app.get("/health")
async def health():
    """Health check with Ollama connectivity test"""
    s = get_settings()
    try:
        resp = await asyncio.to_thread(requests.get, f"{s.ollama_base}/api/tags", timeout=2)
        ollama_ok = resp.status_code == 200
    except requests.RequestException as e:
        log.warning("ollama health check failed: %s", e)
        ollama_ok = False
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "ollama": {"connected": ollama_ok, "base_url": s.ollama_base, "model": s.ollama_model},
        "sender_base": s.sender_base,
        "workspaces": len(await store.list()),
    }


@app.get("/health/llm")
async def health_llm():
    """Deep check: the model must answer a one-token generation"""
    s = get_settings()
    ready = await asyncio.to_thread(check_llm_ready)
    return {"ready": ready, "model": s.ollama_model}


# --- workspaces ---

@app.get("/workspaces")
async def list_workspaces():
    workspaces = await store.list()
    return {
        "count": len(workspaces),
        "workspaces": [
            {
                "id": ws.id,
                "name": ws.name,
                "status": ws.workspace_status,
                "crm_stage": ws.crm.stage if ws.crm else None,
                "autopilot": ws.autopilot.status if ws.autopilot else "OFF",
                "warnings": len(ws.warnings),
            }
            for ws in workspaces
        ],
    }


@app.post("/workspaces", status_code=201)
async def create(request: WorkspaceCreate):
    try:
        ws = create_workspace(request.intake, name=request.name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await store.save(ws)
    return dump(ws)


@app.get("/workspaces/{workspace_id}")
async def get_workspace(workspace_id: str):
    return dump(await load(workspace_id))


@app.delete("/workspaces/{workspace_id}")
async def delete_workspace(workspace_id: str):
    if not await store.delete(workspace_id):
        raise KeyError(f"Workspace {workspace_id} not found")
    return {"deleted": workspace_id}


@app.put("/workspaces/{workspace_id}/contact")
async def set_contact(workspace_id: str, request: ContactIn):
    ws = await load(workspace_id)
    updated = ws.model_copy(update={"contact": ContactInfo(email=request.email, phone_e164=request.phone_e164)})
    await store.save(updated)
    return dump(updated)


# --- pipeline ---

async def stream_pipeline(ws: Workspace, skip_done: bool) -> AsyncGenerator[bytes, None]:
    """Stream NDJSON events from the pipeline, persisting each intermediate workspace"""
    async for event in orchestrator.run_pipeline(ws, skip_done=skip_done):
        if event.workspace is not None:
            await store.save(event.workspace)
        yield (event.model_dump_json() + "\n").encode()


@app.post("/workspaces/{workspace_id}/run")
async def run_pipeline(workspace_id: str, skip_done: bool = False):
    """Run the full pipeline with NDJSON streaming"""
    ws = await load(workspace_id)
    return StreamingResponse(stream_pipeline(ws, skip_done), media_type="application/x-ndjson")


@app.post("/workspaces/{workspace_id}/stages/{stage}/run")
async def run_stage(workspace_id: str, stage: str):
    if stage not in STAGES:
        raise HTTPException(status_code=400, detail=f"Unknown stage: {stage}")
    ws = await load(workspace_id)
    updated = await orchestrator.run_stage(ws, stage, store.save)
    return dump(updated)


@app.post("/pipeline/batch", response_model=BatchOut)
async def pipeline_batch(request: PipelineBatchIn):
    """Run the pipeline over many workspaces in turn, skipping finished stages"""
    workspaces = await store.list()
    if request.workspace_ids is not None:
        wanted = set(request.workspace_ids)
        workspaces = [ws for ws in workspaces if ws.id in wanted]
    changed = []

    async def on_update(ws: Workspace):
        if ws.id not in changed:
            changed.append(ws.id)
        await store.save(ws)

    await run_batch(workspaces, on_update, orchestrator)
    return BatchOut(processed=len(workspaces), changed=len(changed), workspace_ids=changed)


# --- artifacts & versions ---

@app.put("/workspaces/{workspace_id}/artifacts/{artifact_id}")
async def edit_artifact(workspace_id: str, artifact_id: str, request: ArtifactUpdate):
    ws = await load(workspace_id)
    if get_artifact(ws, artifact_id) is None:
        raise KeyError(f"Artifact {artifact_id} not found")
    updated = await save_if_changed(ws, update_artifact_content(ws, artifact_id, request.content))
    return get_artifact(updated, artifact_id).model_dump(mode="json")


@app.delete("/workspaces/{workspace_id}/artifacts/{artifact_id}")
async def delete_artifact(workspace_id: str, artifact_id: str):
    ws = await load(workspace_id)
    if get_artifact(ws, artifact_id) is None:
        raise KeyError(f"Artifact {artifact_id} not found")
    await store.save(remove_artifact(ws, artifact_id))
    return {"deleted": artifact_id}


@app.post("/workspaces/{workspace_id}/snapshots", status_code=201)
async def snapshot(workspace_id: str, request: SnapshotIn):
    ws = await load(workspace_id)
    updated = snapshot_workspace(ws, request.note)
    await store.save(updated)
    version = updated.versions[-1]
    return {"id": version.id, "note": version.note, "created_at": version.created_at.isoformat()}


@app.post("/workspaces/{workspace_id}/snapshots/{version_id}/restore")
async def restore(workspace_id: str, version_id: str):
    ws = await load(workspace_id)
    if get_version(ws, version_id) is None:
        raise KeyError(f"Version {version_id} not found")
    return dump(await save_if_changed(ws, restore_workspace(ws, version_id)))


# --- CRM ---

@app.post("/workspaces/{workspace_id}/crm/stage")
async def crm_stage(workspace_id: str, request: CRMStageIn):
    ws = await load(workspace_id)
    return dump(await save_if_changed(ws, set_stage(ws, request.stage)))


@app.post("/workspaces/{workspace_id}/crm/activities", status_code=201)
async def crm_activity(workspace_id: str, request: ActivityIn):
    ws = await load(workspace_id)
    return dump(await save_if_changed(ws, add_activity(ws, request.type, request.content)))


@app.post("/workspaces/{workspace_id}/crm/follow-ups", status_code=201)
async def crm_follow_up(workspace_id: str, request: FollowUpIn):
    ws = await load(workspace_id)
    return dump(await save_if_changed(ws, add_follow_up(ws, request.days, request.note)))


@app.post("/workspaces/{workspace_id}/crm/follow-ups/{follow_up_id}/complete")
async def crm_complete_follow_up(workspace_id: str, follow_up_id: str):
    ws = await load(workspace_id)
    return dump(await save_if_changed(ws, complete_follow_up(ws, follow_up_id)))


# --- autopilot & outbox ---

@app.post("/workspaces/{workspace_id}/autopilot/enable")
async def autopilot_enable(workspace_id: str, request: AutopilotEnableIn):
    ws = await load(workspace_id)
    sequence = [s.model_dump() for s in request.sequence] if request.sequence else None
    return dump(await save_if_changed(ws, enable_autopilot(ws, sequence)))


@app.post("/workspaces/{workspace_id}/autopilot/stop")
async def autopilot_stop(workspace_id: str):
    ws = await load(workspace_id)
    return dump(await save_if_changed(ws, stop_autopilot(ws)))


@app.post("/workspaces/{workspace_id}/autopilot/pause")
async def autopilot_pause(workspace_id: str):
    ws = await load(workspace_id)
    return dump(await save_if_changed(ws, pause_autopilot(ws)))


@app.post("/autopilot/tick", response_model=BatchOut)
async def autopilot_tick():
    """One autopilot tick over every workspace"""
    changed = []

    async def on_update(ws: Workspace):
        changed.append(ws.id)
        await store.save(ws)

    workspaces = await store.list()
    await run_autopilot_batch(workspaces, on_update)
    return BatchOut(processed=len(workspaces), changed=len(changed), workspace_ids=changed)


@app.post("/workspaces/{workspace_id}/messages/{message_id}/cancel")
async def message_cancel(workspace_id: str, message_id: str):
    ws = await load(workspace_id)
    if get_message(ws, message_id) is None:
        raise KeyError(f"Message {message_id} not found")
    return dump(await save_if_changed(ws, cancel_message(ws, message_id)))


@app.post("/workspaces/{workspace_id}/dispatch")
async def dispatch(workspace_id: str):
    ws = await load(workspace_id)
    return dump(await save_if_changed(ws, await dispatch_due_messages(ws)))


@app.post("/dispatch", response_model=BatchOut)
async def dispatch_all():
    changed = []

    async def on_update(ws: Workspace):
        changed.append(ws.id)
        await store.save(ws)

    workspaces = await store.list()
    await dispatch_batch(workspaces, on_update)
    return BatchOut(processed=len(workspaces), changed=len(changed), workspace_ids=changed)


# --- replies ---

@app.post("/workspaces/{workspace_id}/replies", response_model=InboundOut)
async def manual_reply(workspace_id: str, request: ManualReplyIn):
    """Record a reply pasted by hand (matched_by=manual)"""
    ws = await load(workspace_id)
    inbound = InboundMessage(
        id=new_id("inb"), prospect_id=ws.id, from_address=request.from_address,
        subject=request.subject, text=request.text, received_at=utcnow(), matched_by="manual",
    )
    classification = await classify_reply(request.subject or "", request.text, {"workspace_id": ws.id})
    await save_if_changed(ws, apply_reply(ws, inbound, classification))
    return InboundOut(
        inbound_id=inbound.id, workspace_id=ws.id, matched_by="manual",
        classification=classification.model_dump(mode="json"),
    )


@app.post("/inbound/email", response_model=InboundOut)
async def inbound_email(payload: dict):
    inbound = normalize_inbound_payload(payload)
    ws, inbound = await handle_inbound(store, inbound)
    classification = ws.reply_classifications.get(inbound.id) if ws else None
    return InboundOut(
        inbound_id=inbound.id,
        workspace_id=ws.id if ws else None,
        matched_by=inbound.matched_by,
        classification=classification.model_dump(mode="json") if classification else None,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().api_port)
