from __future__ import annotations
import inspect
import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional
from leadfactory.schema import Workspace
from leadfactory.services.autopilot import run_autopilot_tick
from leadfactory.services.dispatch import dispatch_due_messages

log = logging.getLogger("orchestrator")


async def _emit(on_update: Optional[Callable], ws: Workspace) -> None:
    if on_update is None:
        return
    result = on_update(ws)
    if inspect.isawaitable(result):
        await result


async def run_batch(workspaces: Iterable[Workspace], on_update: Optional[Callable], orchestrator) -> List[Workspace]:
    """Run the pipeline over each workspace in turn, skipping stages already done."""
    results = []
    for ws in workspaces:
        try:
            results.append(await orchestrator.run_all(ws, on_update, skip_done=True))
        except Exception:
            log.exception("batch run failed for workspace %s; continuing", ws.id)
            results.append(ws)
    return results


async def run_autopilot_batch(workspaces: Iterable[Workspace], on_update: Optional[Callable] = None,
                              now: Optional[datetime] = None) -> List[Workspace]:
    results = []
    for ws in workspaces:
        updated = run_autopilot_tick(ws, now=now)
        if updated is not ws:
            await _emit(on_update, updated)
        results.append(updated)
    return results


async def dispatch_batch(workspaces: Iterable[Workspace], on_update: Optional[Callable] = None,
                         sender=None, now: Optional[datetime] = None) -> List[Workspace]:
    results = []
    for ws in workspaces:
        updated = await dispatch_due_messages(ws, sender, now=now)
        if updated is not ws:
            await _emit(on_update, updated)
        results.append(updated)
    return results
