from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional
from leadfactory.schema import (
    MessageMeta, OptOut, OutboxMessage, Recipient, SendLog, Tracking, Workspace, new_id, utcnow,
)

def new_thread_token() -> str:
    return new_id("t")

def ensure_outbox(ws: Workspace) -> Workspace:
    if ws.outbox is not None and ws.send_logs is not None and ws.opt_out is not None:
        return ws
    return ws.model_copy(update={
        "outbox": ws.outbox if ws.outbox is not None else [],
        "send_logs": ws.send_logs if ws.send_logs is not None else [],
        "opt_out": ws.opt_out if ws.opt_out is not None else OptOut(),
    })

def create_outbox_message(
    ws: Workspace,
    *,
    channel: str,
    to: Recipient,
    body: str,
    subject: Optional[str] = None,
    scheduled_at: Optional[datetime] = None,
    meta: Optional[MessageMeta] = None,
    prospect_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Workspace:
    """Append a DRAFT message. The thread token is fixed here and never changes."""
    ws = ensure_outbox(ws)
    meta = meta or MessageMeta()
    if not meta.thread_token:
        meta = meta.model_copy(update={"thread_token": new_thread_token()})
    message = OutboxMessage(
        id=new_id("msg"),
        prospect_id=prospect_id or ws.id,
        channel=channel,
        to=to,
        subject=subject,
        body=body,
        created_at=now or utcnow(),
        scheduled_at=scheduled_at,
        status="DRAFT",
        meta=meta,
    )
    return ws.model_copy(update={"outbox": [*ws.outbox, message]})

def get_message(ws: Workspace, message_id: str) -> Optional[OutboxMessage]:
    return next((m for m in ws.outbox or [] if m.id == message_id), None)

def find_by_thread_token(ws: Workspace, token: str) -> Optional[OutboxMessage]:
    return next((m for m in ws.outbox or [] if m.meta.thread_token == token), None)

def _patch_message(ws: Workspace, message_id: str, patch: Dict[str, Any]) -> Workspace:
    ws = ensure_outbox(ws)
    outbox = [m.model_copy(update=patch) if m.id == message_id else m for m in ws.outbox]
    return ws.model_copy(update={"outbox": outbox})

def set_message_status(ws: Workspace, message_id: str, status: str, **patch: Any) -> Workspace:
    return _patch_message(ws, message_id, {"status": status, **patch})

def cancel_message(ws: Workspace, message_id: str, reason: str = "Cancelled manually") -> Workspace:
    message = get_message(ws, message_id)
    if message is None or message.status not in ("DRAFT", "QUEUED"):
        return ws
    return set_message_status(ws, message_id, "CANCELLED", error=reason)

def add_send_log(
    ws: Workspace,
    *,
    message_id: str,
    channel: str,
    status: str,
    provider: Optional[str] = None,
    provider_message_id: Optional[str] = None,
    detail: Any = None,
    now: Optional[datetime] = None,
) -> Workspace:
    ws = ensure_outbox(ws)
    entry = SendLog(
        id=new_id("log"),
        message_id=message_id,
        prospect_id=ws.id,
        channel=channel,
        status=status,
        provider=provider,
        provider_message_id=provider_message_id,
        at=now or utcnow(),
        detail=detail,
    )
    return ws.model_copy(update={"send_logs": [*ws.send_logs, entry]})

def list_due_messages(ws: Workspace, now: Optional[datetime] = None) -> List[OutboxMessage]:
    t = now or utcnow()
    return [
        m for m in ws.outbox or []
        if m.status == "QUEUED" and (m.scheduled_at is None or m.scheduled_at <= t)
    ]

# --- tracking feedback ---

def _record_tracking(ws: Workspace, message_id: str, field: str, now: Optional[datetime]) -> Workspace:
    message = get_message(ws, message_id)
    if message is None or message.status != "SENT" or message.tracking is None:
        return ws
    tracking = message.tracking.model_copy(update={
        field: getattr(message.tracking, field) + 1,
        "last_event_at": now or utcnow(),
    })
    return _patch_message(ws, message_id, {"tracking": tracking})

def record_open(ws: Workspace, message_id: str, now: Optional[datetime] = None) -> Workspace:
    return _record_tracking(ws, message_id, "opens", now)

def record_click(ws: Workspace, message_id: str, now: Optional[datetime] = None) -> Workspace:
    return _record_tracking(ws, message_id, "clicks", now)

def record_opt_out(ws: Workspace, channel: str) -> Workspace:
    ws = ensure_outbox(ws)
    if channel not in OptOut.model_fields:
        raise ValueError(f"Unknown channel: {channel}")
    if getattr(ws.opt_out, channel):
        return ws
    return ws.model_copy(update={"opt_out": ws.opt_out.model_copy(update={channel: True})})

def initial_tracking() -> Tracking:
    return Tracking(opens=0, clicks=0)
