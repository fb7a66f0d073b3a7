# file: tests/test_autopilot.py
from datetime import timedelta
from conftest import T0
from leadfactory.schema import ContactInfo, TextBlock
from leadfactory.services.autopilot import (
    FALLBACK_EMAIL, enable_autopilot, pause_autopilot, render_template, resolve_email,
    resolve_phone, run_autopilot_tick, stop_autopilot,
)
from leadfactory.services.templates import DEFAULT_SEQUENCE

TWO_STEPS = [
    {"delay_days": 0, "channel": "email", "template_key": "intro_1"},
    {"delay_days": 2, "channel": "email", "template_key": "followup_1"},
]


def test_two_step_sequence(workspace):
    ws = enable_autopilot(workspace, TWO_STEPS, now=T0)

    first = run_autopilot_tick(ws, now=T0)
    assert first.autopilot.current_step_index == 1
    assert first.autopilot.status == "ACTIVE"
    assert first.autopilot.next_run_at == T0 + timedelta(days=2)
    assert [m.status for m in first.outbox] == ["QUEUED"]

    assert run_autopilot_tick(first, now=T0 + timedelta(hours=1)) is first

    second = run_autopilot_tick(first, now=T0 + timedelta(days=2))
    assert second.autopilot.current_step_index == 2
    assert second.autopilot.status == "STOPPED"
    assert [m.status for m in second.outbox] == ["QUEUED", "QUEUED"]
    assert second.outbox[1].meta.template_key == "followup_1"

    assert run_autopilot_tick(second, now=T0 + timedelta(days=30)) is second


def test_step_count_over_default_sequence(workspace):
    ws = enable_autopilot(workspace, now=T0)
    t = T0
    seen = [0]
    for _ in range(10):
        ws = run_autopilot_tick(ws, now=t)
        seen.append(ws.autopilot.current_step_index)
        assert seen[-1] - seen[-2] <= 1
        assert ws.autopilot.current_step_index <= len(DEFAULT_SEQUENCE)
        if ws.autopilot.next_run_at:
            t = ws.autopilot.next_run_at
    assert ws.autopilot.current_step_index == len(DEFAULT_SEQUENCE)
    assert ws.autopilot.status == "STOPPED"
    assert [m.channel for m in ws.outbox] == ["email", "email", "whatsapp", "email"]


def test_tick_creates_message_activity_and_follow_up(workspace):
    ws = enable_autopilot(workspace, now=T0)
    out = run_autopilot_tick(ws, now=T0)

    m = out.outbox[0]
    assert m.subject == f"A question for {workspace.name}"
    assert m.scheduled_at == T0
    assert m.meta.step_id == "step_0"
    assert m.meta.thread_token
    assert workspace.name in m.body

    assert out.crm.activities[-1].type == "autopilot_event"
    assert out.crm.activities[-1].content == "Autopilot queued Email: intro_1"
    assert out.crm.follow_ups[-1].due_at == T0 + timedelta(days=1)
    assert out.crm.follow_ups[-1].note == "Verify Autopilot step: intro_1"
    assert out.autopilot.steps[0].sent_at == T0


def test_non_increasing_delay_uses_default_gap(workspace):
    steps = [
        {"delay_days": 3, "channel": "email", "template_key": "intro_1"},
        {"delay_days": 3, "channel": "whatsapp", "template_key": "quick_ping"},
    ]
    out = run_autopilot_tick(enable_autopilot(workspace, steps, now=T0), now=T0)
    assert out.autopilot.next_run_at == T0 + timedelta(days=2)


def test_inactive_autopilot_is_a_noop(workspace):
    assert run_autopilot_tick(workspace, now=T0) is workspace
    paused = pause_autopilot(enable_autopilot(workspace, now=T0))
    assert paused.autopilot.status == "PAUSED"
    assert run_autopilot_tick(paused, now=T0) is paused
    stopped = stop_autopilot(enable_autopilot(workspace, now=T0))
    assert run_autopilot_tick(stopped, now=T0) is stopped


def test_exhausted_active_autopilot_is_stopped(workspace):
    ws = enable_autopilot(workspace, TWO_STEPS, now=T0)
    ws = ws.model_copy(update={"autopilot": ws.autopilot.model_copy(update={"current_step_index": 2})})
    out = run_autopilot_tick(ws, now=T0)
    assert out.autopilot.status == "STOPPED"
    assert out.outbox is None


def test_stop_without_autopilot_is_noop(workspace):
    assert stop_autopilot(workspace) is workspace


def test_dm_step_advances_without_message(workspace):
    steps = [{"delay_days": 0, "channel": "dm", "template_key": "quick_ping"}]
    out = run_autopilot_tick(enable_autopilot(workspace, steps, now=T0), now=T0)
    assert out.autopilot.current_step_index == 1
    assert out.autopilot.status == "STOPPED"
    assert out.outbox == []


def test_render_template():
    from leadfactory.services.intake import create_workspace
    from leadfactory.schema import IntakeData
    ws = create_workspace(IntakeData(prospect_name="Chez Paul"), name="Paul")
    assert render_template("quick_ping", ws) == "Hello Paul, this is about Chez Paul. Do you have 5 minutes for a quick call?"
    assert render_template("nope", ws) == "(Template missing)"


def test_recipient_resolution(workspace):
    assert resolve_email(workspace) == FALLBACK_EMAIL
    assert resolve_phone(workspace) == "04 78 12 34 56"

    with_text = workspace.model_copy(update={"intake": workspace.intake.model_copy(update={
        "text_blocks": [*workspace.intake.text_blocks, TextBlock(text="Write to hello@chez-paul.fr")],
    })})
    assert resolve_email(with_text) == "hello@chez-paul.fr"

    verified = with_text.model_copy(update={"contact": ContactInfo(email="paul@verified.fr", phone_e164="+33600000000")})
    assert resolve_email(verified) == "paul@verified.fr"
    assert resolve_phone(verified) == "+33600000000"
