# file: tests/test_outbox.py
import pytest
from datetime import timedelta
from conftest import T0
from leadfactory.schema import MessageMeta, Recipient
from leadfactory.services.outbox import (
    cancel_message, create_outbox_message, ensure_outbox, find_by_thread_token, get_message,
    initial_tracking, list_due_messages, record_click, record_open, record_opt_out, set_message_status,
)


def _draft(ws, **kw):
    kw.setdefault("channel", "email")
    kw.setdefault("to", Recipient(email="contact@boulangerie-martin.fr"))
    kw.setdefault("body", "Hello")
    return create_outbox_message(ws, **kw)


def test_ensure_outbox_is_idempotent(workspace):
    ws = ensure_outbox(workspace)
    assert ws.outbox == [] and ws.send_logs == []
    assert ws.opt_out.email is False
    assert ensure_outbox(ws) is ws


def test_new_message_is_draft_with_thread_token(workspace):
    ws = _draft(workspace, subject="Hi", now=T0)
    m = ws.outbox[0]
    assert m.status == "DRAFT"
    assert m.prospect_id == workspace.id
    assert m.meta.thread_token
    assert find_by_thread_token(ws, m.meta.thread_token) is m

    other = _draft(ws)
    assert other.outbox[1].meta.thread_token != m.meta.thread_token


def test_supplied_thread_token_is_kept(workspace):
    ws = _draft(workspace, meta=MessageMeta(thread_token="t_fixed"))
    assert ws.outbox[0].meta.thread_token == "t_fixed"


def test_status_changes_never_touch_the_token(workspace):
    ws = _draft(workspace)
    m = ws.outbox[0]
    ws = set_message_status(ws, m.id, "QUEUED")
    ws = set_message_status(ws, m.id, "SENT", sent_at=T0)
    assert get_message(ws, m.id).meta.thread_token == m.meta.thread_token
    assert get_message(ws, m.id).sent_at == T0


def test_list_due_messages(workspace):
    ws = _draft(workspace, scheduled_at=T0)
    ws = _draft(ws, scheduled_at=T0 + timedelta(days=1))
    ws = _draft(ws)
    now_due, later, unscheduled = ws.outbox
    for m in ws.outbox:
        ws = set_message_status(ws, m.id, "QUEUED")
    ws = _draft(ws)  # stays DRAFT

    assert [m.id for m in list_due_messages(ws, T0)] == [now_due.id, unscheduled.id]
    assert len(list_due_messages(ws, T0 + timedelta(days=2))) == 3


def test_cancel_message(workspace):
    ws = _draft(workspace)
    m = ws.outbox[0]
    ws = cancel_message(ws, m.id)
    assert get_message(ws, m.id).status == "CANCELLED"
    assert cancel_message(ws, m.id) is ws


def test_tracking_counts_only_sent_messages(workspace):
    ws = _draft(workspace)
    m = ws.outbox[0]
    assert record_open(ws, m.id) is ws

    ws = set_message_status(ws, m.id, "SENT", sent_at=T0, tracking=initial_tracking())
    ws = record_open(ws, m.id, now=T0 + timedelta(minutes=5))
    ws = record_open(ws, m.id, now=T0 + timedelta(minutes=6))
    ws = record_click(ws, m.id, now=T0 + timedelta(minutes=7))
    tracking = get_message(ws, m.id).tracking
    assert (tracking.opens, tracking.clicks) == (2, 1)
    assert tracking.last_event_at == T0 + timedelta(minutes=7)
    assert record_click(ws, "msg_missing") is ws


def test_record_opt_out(workspace):
    ws = record_opt_out(workspace, "email")
    assert ws.opt_out.email and not ws.opt_out.whatsapp
    assert record_opt_out(ws, "email") is ws
    with pytest.raises(ValueError):
        record_opt_out(ws, "carrier_pigeon")
