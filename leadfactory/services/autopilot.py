from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import List, Optional
from leadfactory.config import get_settings
from leadfactory.schema import AutopilotData, AutopilotStep, MessageMeta, Recipient, Workspace, utcnow
from leadfactory.services.crm import add_activity, add_follow_up
from leadfactory.services.intake import extract_email
from leadfactory.services.outbox import create_outbox_message, ensure_outbox, set_message_status
from leadfactory.services.templates import DEFAULT_SEQUENCE, MISSING_TEMPLATE, TEMPLATE_LIBRARY

log = logging.getLogger("autopilot")

FALLBACK_EMAIL = "no-email@found.com"

def enable_autopilot(ws: Workspace, sequence: Optional[List[dict]] = None,
                     now: Optional[datetime] = None) -> Workspace:
    steps = [
        AutopilotStep(id=f"step_{i}", delay_days=s["delay_days"], channel=s["channel"],
                      template_key=s["template_key"])
        for i, s in enumerate(sequence or DEFAULT_SEQUENCE)
    ]
    autopilot = AutopilotData(status="ACTIVE", steps=steps, current_step_index=0,
                              next_run_at=now or utcnow())
    return ws.model_copy(update={"autopilot": autopilot})

def _set_status(ws: Workspace, status: str) -> Workspace:
    if ws.autopilot is None:
        return ws
    return ws.model_copy(update={"autopilot": ws.autopilot.model_copy(update={"status": status})})

def stop_autopilot(ws: Workspace) -> Workspace:
    # progress is kept; there is no resume from STOPPED
    return _set_status(ws, "STOPPED")

def pause_autopilot(ws: Workspace) -> Workspace:
    if ws.autopilot is None or ws.autopilot.status != "ACTIVE":
        return ws
    return _set_status(ws, "PAUSED")

def render_template(template_key: str, ws: Workspace) -> str:
    business = (ws.intake.prospect_name if ws.intake else "") or ws.name
    body = TEMPLATE_LIBRARY.get(template_key, MISSING_TEMPLATE)
    return body.replace("{{name}}", ws.name).replace("{{business}}", business)

def resolve_email(ws: Workspace) -> str:
    if ws.contact and ws.contact.email:
        return ws.contact.email
    if ws.intake:
        for block in ws.intake.text_blocks:
            if "@" in block.text:
                found = extract_email(block.text)
                if found:
                    return found
    return FALLBACK_EMAIL

def resolve_phone(ws: Workspace) -> Optional[str]:
    if ws.contact and ws.contact.phone_e164:
        return ws.contact.phone_e164
    return ws.phone

def run_autopilot_tick(ws: Workspace, now: Optional[datetime] = None) -> Workspace:
    """Advance at most one step. Returns `ws` itself when nothing is due."""
    ap = ws.autopilot
    if ap is None or ap.status != "ACTIVE":
        return ws

    if ap.current_step_index >= len(ap.steps):
        return ws.model_copy(update={"autopilot": ap.model_copy(update={"status": "STOPPED"})})

    t = now or utcnow()
    if ap.next_run_at is not None and t < ap.next_run_at:
        return ws

    step = ap.steps[ap.current_step_index]
    body = render_template(step.template_key, ws)
    meta = MessageMeta(template_key=step.template_key, step_id=step.id)
    updated = ensure_outbox(ws)

    if step.channel == "email":
        updated = create_outbox_message(
            updated, channel="email", to=Recipient(email=resolve_email(ws)),
            subject=f"A question for {ws.name}", body=body, scheduled_at=t, meta=meta, now=t,
        )
        updated = set_message_status(updated, updated.outbox[-1].id, "QUEUED")
        updated = add_activity(updated, "autopilot_event", f"Autopilot queued Email: {step.template_key}", now=t)
    elif step.channel == "whatsapp":
        updated = create_outbox_message(
            updated, channel="whatsapp", to=Recipient(phone_e164=resolve_phone(ws)),
            body=body, scheduled_at=t, meta=meta, now=t,
        )
        updated = set_message_status(updated, updated.outbox[-1].id, "QUEUED")
        updated = add_activity(updated, "autopilot_event", f"Autopilot queued WhatsApp: {step.template_key}", now=t)
    else:
        log.warning("autopilot step %s uses channel %s with no sender; skipping", step.id, step.channel)

    index = ap.current_step_index + 1
    next_delay = (ap.steps[index].delay_days if index < len(ap.steps) else 0) - step.delay_days
    if next_delay <= 0:
        next_delay = get_settings().autopilot_default_gap_days

    steps = [s.model_copy(update={"sent_at": t}) if s.id == step.id else s for s in ap.steps]
    updated = updated.model_copy(update={"autopilot": ap.model_copy(update={
        "status": "STOPPED" if index >= len(ap.steps) else ap.status,
        "steps": steps,
        "current_step_index": index,
        "next_run_at": t + timedelta(days=next_delay),
    })})
    updated = add_follow_up(updated, 1, f"Verify Autopilot step: {step.template_key}", now=t)
    log.info("autopilot %s step %d/%d (%s)", ws.id, index, len(ap.steps), step.template_key)
    return updated
