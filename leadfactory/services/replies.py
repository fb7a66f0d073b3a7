from __future__ import annotations
import logging
from typing import Optional
from leadfactory.schema import InboundMessage, ProposedReply, ReplyClassification, Workspace
from leadfactory.services.autopilot import stop_autopilot
from leadfactory.services.crm import add_activity, add_follow_up, ensure_crm, set_stage
from leadfactory.services.outbox import record_opt_out

log = logging.getLogger("replies")

# Checked in this order; the first matching set wins.
UNSUBSCRIBE_WORDS = ("désinscrire", "desinscrire", "unsubscribe", "stop", "retirer", "remove me")
OBJECTION_WORDS = ("pas intéressé", "pas interesse", "non merci", "pub", "not interested", "no thanks", "no thank you")
POSITIVE_WORDS = (
    "oui", "ok", "d’accord", "d'accord", "quand", "rdv", "rendez-vous", "appel", "dispo",
    "yes", "sounds good", "let's talk", "call me", "available",
)
PRICING_WORDS = ("combien", "tarif", "prix", "coût", "cout", "devis", "how much", "price", "pricing", "quote")
OUT_OF_OFFICE_WORDS = ("absent", "out of office", "vacances", "de retour le", "on vacation", "on leave")


def _has(text: str, words) -> bool:
    return any(w in text for w in words)


async def classify_reply(subject: str, text: str, context: Optional[dict] = None) -> ReplyClassification:
    """Keyword heuristic. Never fails: unmatched text is `unknown` with low confidence."""
    t = (text or "").lower()

    if _has(t, UNSUBSCRIBE_WORDS):
        return ReplyClassification(
            intent="unsubscribe", confidence=0.9, summary="Unsubscribe request.",
            suggested_next_action="stop_autopilot",
            proposed_reply=ProposedReply(body="Noted. You have been unsubscribed. Have a good day."),
        )
    if _has(t, OBJECTION_WORDS):
        return ReplyClassification(
            intent="objection", confidence=0.7, summary="Refusal / objection.",
            suggested_next_action="stop_autopilot",
            proposed_reply=ProposedReply(body="Thanks for letting me know. I won't insist. Have a good day."),
        )
    if _has(t, POSITIVE_WORDS):
        return ReplyClassification(
            intent="positive", confidence=0.75, summary="Interest expressed / meeting request.",
            suggested_next_action="reply",
            proposed_reply=ProposedReply(body=(
                "Thank you! Which slot works best for you?\n"
                "- Option 1: tomorrow morning\n"
                "- Option 2: tomorrow afternoon\n\n"
                "And what is the best number to reach you?"
            )),
        )
    if _has(t, PRICING_WORDS):
        return ReplyClassification(
            intent="question", confidence=0.75, summary="Pricing question.",
            suggested_next_action="reply",
            proposed_reply=ProposedReply(body=(
                "Thank you! To give you a fair price:\n"
                "1) What is your main service?\n"
                "2) Your city / area?\n"
                "3) Do you already have a website?\n\n"
                "I'll come back with a clear range."
            )),
        )
    if _has(t, OUT_OF_OFFICE_WORDS):
        return ReplyClassification(
            intent="out_of_office", confidence=0.7, summary="Automatic out-of-office reply.",
            suggested_next_action="schedule_followup",
            proposed_reply=ProposedReply(body="Thanks, I'll get back to you when you return."),
        )
    return ReplyClassification(
        intent="unknown", confidence=0.4, summary="Unclassified reply.",
        suggested_next_action="reply",
        proposed_reply=ProposedReply(body="Thanks for your reply. What interests you the most?"),
    )


def apply_reply(ws: Workspace, inbound: InboundMessage, classification: ReplyClassification) -> Workspace:
    """Record an inbound reply and apply the CRM / autopilot rules for its intent."""
    if inbound.id in ws.reply_classifications:
        return ws

    p = ensure_crm(ws)
    if inbound.prospect_id is None:
        inbound = inbound.model_copy(update={"prospect_id": ws.id})
    p = p.model_copy(update={
        "inbound": [*p.inbound, inbound],
        "reply_classifications": {**p.reply_classifications, inbound.id: classification},
    })
    p = add_activity(p, "note", f"Inbound ({classification.intent}): {classification.summary}\n\n{inbound.text}")
    log.info("reply %s for %s classified %s", inbound.id, ws.id, classification.intent)

    intent = classification.intent
    if intent == "unsubscribe":
        p = record_opt_out(p, "email")
        p = set_stage(p, "LOST")
        return stop_autopilot(p)

    if intent == "positive":
        p = set_stage(p, "REPLIED")
        p = stop_autopilot(p)
        return add_follow_up(p, 1, "Propose 2 meeting slots")

    if intent in ("out_of_office", "not_now"):
        return add_follow_up(p, 7, "Follow up after absence / not now")

    if intent in ("objection", "wrong_person"):
        p = stop_autopilot(p)
        return set_stage(p, "LOST")

    # question / unknown / bounce: keep the sequence running
    return add_follow_up(p, 2, "Reply / clarify")
