from __future__ import annotations
import logging
import re
from datetime import datetime
from email.utils import parseaddr
from typing import Any, Callable, Dict, Iterable, Optional, Tuple
from leadfactory.schema import InboundMessage, Workspace, new_id, utcnow
from leadfactory.services.outbox import find_by_thread_token
from leadfactory.services.replies import apply_reply, classify_reply

log = logging.getLogger("replies")

_SUBJECT_TOKEN = re.compile(r"\[LF:([A-Za-z0-9_-]+)\]")
_BODY_TOKEN = re.compile(r"ref:([A-Za-z0-9_-]+)")

Match = Tuple[Optional[Workspace], Optional[str]]


def extract_thread_token(subject: Optional[str], text: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Return (token, matched_by) from the subject tag first, then the hidden body ref."""
    m = _SUBJECT_TOKEN.search(subject or "")
    if m:
        return m.group(1), "subject_token"
    m = _BODY_TOKEN.search(text or "")
    if m:
        return m.group(1), "body_token"
    return None, None


def _by_thread_token(workspaces: Iterable[Workspace], inbound: InboundMessage) -> Match:
    token, matched_by = extract_thread_token(inbound.subject, inbound.text)
    if not token:
        return None, None
    for ws in workspaces:
        if find_by_thread_token(ws, token) is not None:
            return ws, matched_by
    log.info("inbound %s carries unknown thread token %s", inbound.id, token)
    return None, None


def _by_sender_address(workspaces: Iterable[Workspace], inbound: InboundMessage) -> Match:
    sender = parseaddr(inbound.from_address)[1].strip().lower()
    if not sender:
        return None, None
    for ws in workspaces:
        for m in ws.outbox or []:
            if m.to.email and m.to.email.strip().lower() == sender:
                return ws, "email"
    return None, None


# Tried in order; append new strategies (e.g. Message-ID headers) here.
MATCH_STRATEGIES: Tuple[Callable[[Iterable[Workspace], InboundMessage], Match], ...] = (
    _by_thread_token,
    _by_sender_address,
)


def match_inbound(workspaces, inbound: InboundMessage) -> Tuple[Optional[Workspace], InboundMessage]:
    workspaces = list(workspaces)
    for strategy in MATCH_STRATEGIES:
        ws, matched_by = strategy(workspaces, inbound)
        if ws is not None:
            return ws, inbound.model_copy(update={"prospect_id": ws.id, "matched_by": matched_by})
    return None, inbound


def normalize_inbound_payload(payload: Dict[str, Any], received_at: Optional[datetime] = None) -> InboundMessage:
    """Map a provider webhook body (SendGrid, Mailgun, Resend...) onto InboundMessage."""
    envelope = payload.get("envelope") if isinstance(payload.get("envelope"), dict) else {}
    return InboundMessage(
        id=new_id("inb"),
        from_address=str(payload.get("from") or payload.get("sender") or envelope.get("from") or ""),
        to_address=str(payload.get("to") or payload.get("recipient") or envelope.get("to") or ""),
        subject=payload.get("subject") or "",
        text=payload.get("text") or payload.get("stripped-text") or payload.get("body-plain") or "",
        received_at=received_at or utcnow(),
        raw=payload,
    )


async def handle_inbound(store, inbound: InboundMessage) -> Tuple[Optional[Workspace], InboundMessage]:
    """Match, classify, apply and persist one inbound reply."""
    ws, inbound = match_inbound(await store.list(), inbound)
    if ws is None:
        log.warning("inbound %s from %s matched no workspace", inbound.id, inbound.from_address)
        return None, inbound

    classification = await classify_reply(inbound.subject or "", inbound.text, {"workspace_id": ws.id})
    updated = apply_reply(ws, inbound, classification)
    if updated is not ws:
        await store.save(updated)
    log.info("inbound %s matched %s by %s", inbound.id, ws.id, inbound.matched_by)
    return updated, inbound
