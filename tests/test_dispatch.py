# file: tests/test_dispatch.py
import pytest
from unittest.mock import AsyncMock
from urllib.parse import quote
from conftest import T0
from leadfactory.config import get_settings
from leadfactory.schema import Recipient
from leadfactory.services.dispatch import dispatch_due_messages, render_email_html
from leadfactory.services.outbox import create_outbox_message, get_message, record_opt_out, set_message_status


def _queued(ws, channel="email", body="Hello", **kw):
    to = kw.pop("to", None) or (
        Recipient(email="contact@boulangerie-martin.fr") if channel == "email" else Recipient(phone_e164="+33478123456")
    )
    ws = create_outbox_message(ws, channel=channel, to=to, body=body, scheduled_at=T0, **kw)
    return set_message_status(ws, ws.outbox[-1].id, "QUEUED")


def _sender():
    sender = AsyncMock()
    sender.send_email = AsyncMock(return_value={"ok": True, "provider": "smtp", "providerMessageId": "pm_1"})
    sender.send_whatsapp = AsyncMock(return_value={"ok": True, "provider": "whatsapp", "providerMessageId": "pm_2"})
    return sender


def test_render_email_html(workspace):
    ws = create_outbox_message(
        workspace, channel="email", to=Recipient(email="a@b.fr"), subject="Your site",
        body="Line one\nSee https://example.com/audit?x=1 today",
    )
    m = ws.outbox[0]
    base = "http://relay.test"
    subject, html = render_email_html(ws, m, base)

    assert subject == f"Your site [LF:{m.meta.thread_token}]"
    assert "Line one<br/>See " in html
    assert f"{base}/t/click/{m.id}?url={quote('https://example.com/audit?x=1', safe='')}" in html
    assert f'href="{base}/unsubscribe/{ws.id}/email"' in html
    assert f'src="{base}/t/open/{m.id}"' in html
    assert f"ref:{m.meta.thread_token}" in html


@pytest.mark.asyncio
async def test_no_due_messages_returns_same_object(workspace):
    sender = _sender()
    assert await dispatch_due_messages(workspace, sender, now=T0) is workspace
    sender.send_email.assert_not_awaited()


@pytest.mark.asyncio
async def test_email_is_sent_with_tracking(workspace):
    ws = _queued(workspace, subject="Hi")
    sender = _sender()
    out = await dispatch_due_messages(ws, sender, now=T0)

    m = out.outbox[0]
    assert m.status == "SENT"
    assert m.sent_at == T0
    assert (m.tracking.opens, m.tracking.clicks) == (0, 0)
    log = out.send_logs[0]
    assert (log.status, log.provider, log.provider_message_id) == ("OK", "smtp", "pm_1")

    kwargs = sender.send_email.await_args.kwargs
    assert kwargs["to"] == "contact@boulangerie-martin.fr"
    assert kwargs["subject"].endswith(f"[LF:{m.meta.thread_token}]")
    assert kwargs["body"] == "Hello"
    assert f"{get_settings().sender_base}/t/open/{m.id}" in kwargs["html"]


@pytest.mark.asyncio
async def test_whatsapp_is_sent_plain(workspace):
    ws = _queued(workspace, channel="whatsapp", body="Quick call?")
    sender = _sender()
    out = await dispatch_due_messages(ws, sender, now=T0)

    sender.send_whatsapp.assert_awaited_once_with(to_e164="+33478123456", body="Quick call?")
    assert out.outbox[0].status == "SENT"
    assert out.outbox[0].tracking is None


@pytest.mark.asyncio
async def test_opt_out_cancels_without_sending(workspace):
    ws = record_opt_out(_queued(_queued(workspace), channel="whatsapp"), "email")
    sender = _sender()
    out = await dispatch_due_messages(ws, sender, now=T0)

    email, whatsapp = out.outbox
    assert email.status == "CANCELLED"
    assert email.error == "Opt-out email"
    assert whatsapp.status == "SENT"
    sender.send_email.assert_not_awaited()


@pytest.mark.asyncio
async def test_dm_channel_fails(workspace):
    ws = _queued(workspace, channel="dm", to=Recipient(handle="@boulangerie"))
    out = await dispatch_due_messages(ws, _sender(), now=T0)
    assert out.outbox[0].status == "FAILED"
    assert out.outbox[0].error == "DM provider not implemented"


@pytest.mark.asyncio
async def test_sender_failure_is_recorded_and_dispatch_continues(workspace):
    ws = _queued(_queued(workspace), channel="whatsapp")
    sender = _sender()
    sender.send_email.side_effect = RuntimeError("SMTP not configured")
    out = await dispatch_due_messages(ws, sender, now=T0)

    email, whatsapp = out.outbox
    assert email.status == "FAILED"
    assert email.error == "SMTP not configured"
    assert whatsapp.status == "SENT"
    assert [log.status for log in out.send_logs] == ["ERROR", "OK"]
    assert out.send_logs[0].provider == "unknown"


@pytest.mark.asyncio
async def test_second_dispatch_is_a_noop(workspace):
    ws = _queued(workspace)
    sender = _sender()
    once = await dispatch_due_messages(ws, sender, now=T0)
    twice = await dispatch_due_messages(once, sender, now=T0)

    assert twice is once
    assert sender.send_email.await_count == 1
    assert len(twice.send_logs) == 1


@pytest.mark.asyncio
async def test_future_messages_are_not_sent(workspace):
    ws = _queued(workspace)
    out = await dispatch_due_messages(ws, _sender(), now=T0.replace(hour=8))
    assert out is ws
    assert get_message(out, ws.outbox[0].id).status == "QUEUED"
