# file: leadfactory/orchestrator.py
from __future__ import annotations
import inspect
from typing import Any, AsyncGenerator, Callable, Dict, Optional, Tuple
from pydantic import TypeAdapter, ValidationError
from leadfactory.logging_utils import log_event, logger
from leadfactory.schema import (
    STAGES, AgentLog, PipelineEvent, StageRun, Workspace, WorkspaceValidation,
    default_factory_state, utcnow,
)
from leadfactory.services.artifacts import create_artifact
from leadfactory.tools.llm import AgentOutputError
from leadfactory.validation import compute_validation


# (artifact type, title) recorded after each successful stage
STAGE_ARTIFACTS: Dict[str, Tuple[str, str]] = {
    "Collector": ("audit_system", "Raw audit (Collector)"),
    "Normalizer": ("audit_system", "Normalized profile (Normalizer)"),
    "PainFinder": ("audit_system", "Pains & objections (PainFinder)"),
    "OfferBuilder": ("offer_system", "Offer (OfferBuilder)"),
    "Copywriter": ("outreach_system", "Outreach emails/DM (Copywriter)"),
    "PrototypeDesigner": ("site_spec", "Site Spec v1 (PrototypeDesigner)"),
}

# Stage output may never overwrite these.
CORE_FIELDS = frozenset({
    "id", "intake", "contact", "workspace_status", "current_agent", "warnings", "errors",
    "validation", "factory_state", "artifacts", "versions", "crm", "autopilot", "outbox",
    "send_logs", "opt_out", "inbound", "reply_classifications", "created_at",
})


def ensure_workspace_defaults(ws: Workspace) -> Workspace:
    """Fill pipeline fields that older records may lack. Idempotent."""
    state = dict(ws.factory_state or {})
    missing = [name for name in STAGES if name not in state]
    if not missing and ws.validation is not None:
        return ws
    for name in missing:
        state[name] = StageRun()
    return ws.model_copy(update={
        "factory_state": state or default_factory_state(),
        "validation": ws.validation or WorkspaceValidation(),
    })


def invalidate_from(ws: Workspace, stage: str) -> Workspace:
    """Reset every stage strictly after `stage` to waiting."""
    if stage not in STAGES:
        return ws
    downstream = STAGES[STAGES.index(stage) + 1:]
    if not downstream:
        return ws
    state = dict(ws.factory_state)
    for name in downstream:
        state[name] = StageRun()
    return ws.model_copy(update={"factory_state": state})


def _with_stage(ws: Workspace, stage: str, run: StageRun, **update) -> Workspace:
    return ws.model_copy(update={"factory_state": {**ws.factory_state, stage: run}, **update})


async def run_one_agent(runner, stage: str, ws: Workspace) -> Tuple[Workspace, Optional[AgentLog], Dict[str, Any]]:
    """Run one stage and merge its output into a new workspace value."""
    result = await runner.run(stage, ws)
    if not isinstance(result, dict):
        raise AgentOutputError(f"Agent {stage} returned {type(result).__name__}, expected an object")

    clean = dict(result)
    raw_logs = clean.pop("_logs", None)
    logs = None
    if isinstance(raw_logs, dict):
        try:
            logs = AgentLog.model_validate(raw_logs)
        except ValidationError:
            logger.warning("%s returned malformed _logs; ignoring them", stage)

    # rejected keys stay visible in StageRun.output
    return ws.model_copy(update=_mergeable(stage, clean)), logs, clean


def _mergeable(stage: str, clean: Dict[str, Any]) -> Dict[str, Any]:
    """Keys of `clean` that may be spread over the workspace, typed fields coerced."""
    fields = Workspace.model_fields
    merged, skipped = {}, []
    for key, value in clean.items():
        if key in CORE_FIELDS or value is None:
            continue
        if key in fields:
            try:
                value = TypeAdapter(fields[key].annotation).validate_python(value)
            except ValidationError:
                skipped.append(key)
                continue
        merged[key] = value

    ignored = sorted(k for k in clean if k in CORE_FIELDS)
    if ignored:
        logger.info("%s output keys %s are core fields; not merged", stage, ignored)
    empty = sorted(k for k in clean if clean[k] is None and k not in CORE_FIELDS)
    if empty:
        logger.info("%s output keys %s are null; not merged", stage, empty)
    if skipped:
        logger.warning("%s output keys %s do not fit the workspace fields; not merged", stage, skipped)
    return merged


def _after_stage(ws: Workspace) -> Workspace:
    validation, warnings = compute_validation(ws)
    needs_input = not validation.has_contact or not validation.local_signals
    return ws.model_copy(update={
        "validation": validation,
        "warnings": warnings,
        "workspace_status": "NEEDS_INPUT" if needs_input else "RUNNING",
    })


class Orchestrator:
    def __init__(self, runner=None):
        if runner is None:
            from agents import AgentRunner
            runner = AgentRunner()
        self.runner = runner

    async def run_one_agent(self, stage: str, ws: Workspace):
        return await run_one_agent(self.runner, stage, ws)

    async def _execute(self, ws: Workspace, stage: str) -> AsyncGenerator[PipelineEvent, None]:
        """Run one stage: a `running` event, then `agent_end` or `agent_error`."""
        ws = _with_stage(ws, stage, ws.stage(stage).model_copy(update={"status": "running"}),
                         current_agent=stage)
        yield log_event(stage, f"Running {stage}", "agent_start", workspace=ws)

        try:
            updated, logs, output = await self.run_one_agent(stage, ws)
        except Exception as e:
            msg = str(e) or type(e).__name__
            logger.exception("stage %s failed for workspace %s", stage, ws.id)
            ws = _with_stage(
                ws, stage, ws.stage(stage).model_copy(update={"status": "error"}),
                workspace_status="FAILED", errors=[*ws.errors, f"[{stage}] {msg}"],
            )
            yield log_event(stage, msg, "agent_error", {"error": msg}, workspace=ws)
            return

        updated = _with_stage(updated, stage, StageRun(status="done", output=output, logs=logs, timestamp=utcnow()))
        artifact_type, title = STAGE_ARTIFACTS[stage]
        updated = create_artifact(updated, type=artifact_type, title=title, content=output, agent=stage)
        updated = _after_stage(updated)
        yield log_event(stage, f"{stage} done", "agent_end",
                        {"warnings": len(updated.warnings), "status": updated.workspace_status},
                        workspace=updated)

    async def run_pipeline(self, ws: Workspace, *, skip_done: bool = False) -> AsyncGenerator[PipelineEvent, None]:
        """Run the six stages in order with streaming events"""
        ws = ensure_workspace_defaults(ws)
        ws = ws.model_copy(update={"workspace_status": "RUNNING", "current_agent": STAGES[0]})
        yield log_event("orchestrator", f"Starting pipeline for {ws.name}", "pipeline_start", workspace=ws)

        for stage in STAGES:
            if skip_done and ws.stage(stage).status == "done":
                continue
            async for event in self._execute(ws, stage):
                ws = event.workspace
                yield event
            if ws.workspace_status == "FAILED":
                return

        validation, warnings = compute_validation(ws)
        ws = ws.model_copy(update={
            "validation": validation, "warnings": warnings,
            "workspace_status": "DONE", "current_agent": "",
        })
        yield log_event("orchestrator", "Pipeline complete", "pipeline_done",
                        {"warnings": len(warnings)}, workspace=ws)

    async def run_all(self, ws: Workspace, on_update: Optional[Callable] = None, *,
                      skip_done: bool = False) -> Workspace:
        """Drive `run_pipeline`, pushing every intermediate workspace to `on_update`."""
        final = ws
        async for event in self.run_pipeline(ws, skip_done=skip_done):
            final = event.workspace
            await _notify(on_update, final)
        return final

    async def run_stage(self, ws: Workspace, stage: str, on_update: Optional[Callable] = None) -> Workspace:
        """Re-run a single stage after invalidating everything downstream of it."""
        if stage not in STAGES:
            raise ValueError(f"Unknown stage: {stage}")
        ws = invalidate_from(ensure_workspace_defaults(ws), stage)
        final = ws
        async for event in self._execute(ws, stage):
            final = event.workspace
            await _notify(on_update, final)

        if final.workspace_status == "FAILED":
            return final
        if all(final.stage(s).status == "done" for s in STAGES):
            status = "DONE"
        elif final.workspace_status == "NEEDS_INPUT":
            status = "NEEDS_INPUT"
        else:
            status = "NORMALIZED"
        final = final.model_copy(update={"workspace_status": status, "current_agent": ""})
        await _notify(on_update, final)
        return final


async def _notify(on_update: Optional[Callable], ws: Workspace) -> None:
    if on_update is None:
        return
    result = on_update(ws)
    if inspect.isawaitable(result):
        await result
