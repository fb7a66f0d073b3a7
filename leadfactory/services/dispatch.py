from __future__ import annotations
import logging
import re
from datetime import datetime
from typing import List, Optional, Tuple
from urllib.parse import quote
from leadfactory.config import get_settings
from leadfactory.schema import OutboxMessage, Workspace, utcnow
from leadfactory.services.outbox import (
    add_send_log, ensure_outbox, initial_tracking, list_due_messages, set_message_status,
)

log = logging.getLogger("dispatch")

_URL = re.compile(r"(https?://[^\s<\"']+)")

def thread_subject(subject: Optional[str], token: Optional[str]) -> str:
    final = subject or "(no subject)"
    if token:
        final += f" [LF:{token}]"
    return final

def render_email_html(ws: Workspace, message: OutboxMessage, base: str) -> Tuple[str, str]:
    """Build (subject, html) for an email: tracked links, open pixel, unsubscribe footer, thread token."""
    tracking_id = message.id
    unsub_url = f"{base}/unsubscribe/{ws.id}/email"
    footer = (
        '<div style="margin-top: 40px; padding-top: 20px; border-top: 1px solid #eee; font-size: 11px; color: #888;">'
        f"<p>You are receiving this email because we identified opportunities for {ws.name}.</p>"
        f'<p><a href="{unsub_url}" style="color: #888;">Unsubscribe</a></p>'
        "</div>"
    )

    content = message.body.replace("\n", "<br/>")
    content = _URL.sub(lambda m: f"{base}/t/click/{tracking_id}?url={quote(m.group(1), safe='')}", content)

    pixel = f'<img src="{base}/t/open/{tracking_id}" width="1" height="1" alt="" style="display:none;" />'

    token = message.meta.thread_token
    # token travels in both the subject tag and this span; either one matches a reply
    hidden_token = (
        f'<span style="display:none; color:transparent; font-size:0;">ref:{token}</span>' if token else ""
    )
    html = f'<div style="font-family: sans-serif; color: #333;">{content}</div>{footer}{pixel}{hidden_token}'
    return thread_subject(message.subject, token), html

async def _send_one(ws: Workspace, message: OutboxMessage, sender, base: str, now: datetime) -> Workspace:
    if message.channel == "email":
        subject, html = render_email_html(ws, message, base)
        resp = await sender.send_email(to=message.to.email, subject=subject, body=message.body, html=html)
        ws = set_message_status(ws, message.id, "SENT", sent_at=now, tracking=initial_tracking())
    elif message.channel == "whatsapp":
        resp = await sender.send_whatsapp(to_e164=message.to.phone_e164, body=message.body)
        ws = set_message_status(ws, message.id, "SENT", sent_at=now)
    else:
        return set_message_status(ws, message.id, "FAILED", error="DM provider not implemented")

    log.info("sent %s message %s for %s via %s", message.channel, message.id, ws.id, resp.get("provider"))
    return add_send_log(
        ws,
        message_id=message.id,
        channel=message.channel,
        status="OK",
        provider=resp.get("provider"),
        provider_message_id=resp.get("providerMessageId"),
        detail=resp,
        now=now,
    )

async def dispatch_due_messages(ws: Workspace, sender=None, *, now: Optional[datetime] = None) -> Workspace:
    """Send every QUEUED, due message in order. One failure never stops the rest."""
    due = list_due_messages(ws, now=now)
    if not due:
        return ws

    if sender is None:
        from relay.sender import SenderClient
        async with SenderClient() as client:
            return await _dispatch(ws, due, client, now)
    return await _dispatch(ws, due, sender, now)

async def _dispatch(ws: Workspace, due: List[OutboxMessage], sender, now: Optional[datetime]) -> Workspace:
    base = get_settings().sender_base
    p = ensure_outbox(ws)

    for m in due:
        if m.channel == "email" and p.opt_out.email:
            p = set_message_status(p, m.id, "CANCELLED", error="Opt-out email")
            continue
        if m.channel == "whatsapp" and p.opt_out.whatsapp:
            p = set_message_status(p, m.id, "CANCELLED", error="Opt-out whatsapp")
            continue

        t = now or utcnow()
        try:
            p = await _send_one(p, m, sender, base, t)
        except Exception as e:
            log.warning("dispatch failed for message %s (%s): %s", m.id, ws.id, e)
            p = set_message_status(p, m.id, "FAILED", error=str(e))
            p = add_send_log(
                p,
                message_id=m.id,
                channel=m.channel,
                status="ERROR",
                provider="unknown",
                detail=str(e),
                now=t,
            )
    return p
