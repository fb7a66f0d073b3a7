from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import List, Optional
from leadfactory.schema import CRM_STAGES, CRMActivity, CRMData, CRMFollowUp, Workspace, new_id, utcnow

log = logging.getLogger("crm")

def ensure_crm(ws: Workspace) -> Workspace:
    if ws.crm is not None:
        return ws
    return ws.model_copy(update={"crm": CRMData()})

def _crm(ws: Workspace) -> CRMData:
    return ws.crm if ws.crm is not None else CRMData()

def set_stage(ws: Workspace, stage: str) -> Workspace:
    """Any stage may be set directly; the nominal order is advisory."""
    crm = _crm(ws)
    if stage not in CRM_STAGES:
        raise ValueError(f"Unknown CRM stage: {stage}")
    if CRM_STAGES.index(stage) < CRM_STAGES.index(crm.stage):
        log.debug("crm stage moved backwards %s -> %s for %s", crm.stage, stage, ws.id)
    return ws.model_copy(update={"crm": crm.model_copy(update={"stage": stage})})

def add_activity(ws: Workspace, type: str, content: str, now: Optional[datetime] = None) -> Workspace:
    # last_contact_at is stamped for every activity type, notes included
    ts = now or utcnow()
    crm = _crm(ws)
    activity = CRMActivity(id=new_id("act"), type=type, content=content, created_at=ts)
    return ws.model_copy(update={"crm": crm.model_copy(update={
        "activities": [*crm.activities, activity],
        "last_contact_at": ts,
    })})

def add_follow_up(ws: Workspace, days: float, note: Optional[str] = None,
                  now: Optional[datetime] = None) -> Workspace:
    crm = _crm(ws)
    due_at = (now or utcnow()) + timedelta(days=days)
    follow_up = CRMFollowUp(id=new_id("fu"), due_at=due_at, note=note, done=False)
    return ws.model_copy(update={"crm": crm.model_copy(update={
        "follow_ups": [*crm.follow_ups, follow_up],
    })})

def complete_follow_up(ws: Workspace, follow_up_id: str) -> Workspace:
    crm = ws.crm
    if crm is None or not any(f.id == follow_up_id for f in crm.follow_ups):
        return ws
    follow_ups = [
        f.model_copy(update={"done": True}) if f.id == follow_up_id else f
        for f in crm.follow_ups
    ]
    return ws.model_copy(update={"crm": crm.model_copy(update={"follow_ups": follow_ups})})

def pending_follow_ups(ws: Workspace, now: Optional[datetime] = None) -> List[CRMFollowUp]:
    if ws.crm is None:
        return []
    t = now or utcnow()
    return [f for f in ws.crm.follow_ups if not f.done and f.due_at <= t]
