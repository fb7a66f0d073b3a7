# file: agents/copywriter.py
from leadfactory.schema import Workspace
from .base import LOG_INSTRUCTION, StageAgent, as_json


class Copywriter(StageAgent):
    """Writes the outreach sequences and the CRM playbook"""

    name = "Copywriter"

    async def build_prompt(self, ws: Workspace) -> str:
        prev = self.previous(ws)
        return f"""
AGENT: Copywriter (Module: Outreach & CRM)
TASK: Write the sales scripts and the CRM logic.

INPUT (Offers): {as_json(prev["offerBuilder"])}
INPUT (Audit): {as_json(prev["painFinder"])}
INPUT (Profile): {as_json(prev["normalizer"])}

1. Use the OFFERS to justify the contact.
2. Use the AUDIT to point at the pain ("I noticed you don't have a website...").
3. Produce the "Outreach System" JSON.

{LOG_INSTRUCTION}

OUTPUT JSON:
{{
  "outreach": {{
    "persona": {{ "type": "Local consultant", "tone": "Direct and kind", "pain_points": ["..."] }},
    "sequences": {{
      "email": {{ "day_0": "...", "day_3": "...", "day_7": "..." }},
      "messenger": {{ "first_contact": "...", "follow_up": "..." }},
      "whatsapp": {{ "first_contact": "...", "follow_up": "..." }}
    }},
    "call_script": {{ "intro": "...", "hook": "...", "goal": "Meeting" }},
    "objections": [{{ "objection": "It's too expensive", "response": "..." }}]
  }},
  "crmLogic": {{
    "statuses": ["To Contact", "Contacted", "Negotiation", "Closed"],
    "auto_actions": {{ "no_reply_3_days": "Send Email 2" }}
  }},
  "emails": [{{ "type": "Cold Email", "subject": "...", "body": "...", "channel": "Email" }}],
  "_logs": ...
}}
"""
