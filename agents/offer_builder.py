# file: agents/offer_builder.py
from leadfactory.schema import Workspace
from .base import LOG_INSTRUCTION, StageAgent, as_json


class OfferBuilder(StageAgent):
    """Turns the audit into three offer tiers"""

    name = "OfferBuilder"

    async def build_prompt(self, ws: Workspace) -> str:
        prev = self.previous(ws)
        return f"""
AGENT: OfferBuilder (Module: Offer System)
TASK: Build the commercial offers from the audit.

INPUT (Audit): {as_json(prev["painFinder"])}
INPUT (Profile): {as_json(prev["normalizer"])}

RULE: three tiers, Starter, Pro, Premium. Tie every argument to the painPoints found earlier.
Keep claims factual; no superlatives.

{LOG_INSTRUCTION}

OUTPUT JSON:
{{
  "offers": {{
    "tiers": [
      {{ "name": "Starter", "goal": "Minimum presence", "includes": ["One-page site", "WhatsApp setup"] }},
      {{ "name": "Pro", "goal": "Acquisition", "includes": ["Multi-page site", "Local SEO", "Reviews"] }},
      {{ "name": "Premium", "goal": "Dominance", "includes": ["...", "..."] }}
    ]
  }},
  "_logs": ...
}}
"""
