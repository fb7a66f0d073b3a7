# file: agents/pain_finder.py
from leadfactory.schema import Workspace
from .base import LOG_INSTRUCTION, StageAgent, as_json


class PainFinder(StageAgent):
    """Audits local visibility and lists the pains to sell against"""

    name = "PainFinder"

    async def build_prompt(self, ws: Workspace) -> str:
        return f"""
AGENT: PainFinder (Module: Audit System)
TASK: Produce the audit and identify the pains for the sale.

INPUT (Normalizer): {as_json(self.previous(ws)["normalizer"])}
CONTEXT: the client is a local business.

1. Analyse: does it have a website? Is it visible? Does it have reviews?
2. Score: a mark out of 100.
3. Prioritise: P1 (urgent) / P2 / P3.

{LOG_INSTRUCTION}

OUTPUT JSON:
{{
  "audit": {{
    "checks": ["has_website", "has_reviews", "local_visibility"],
    "output": {{ "score": 45, "quick_wins": ["Create a business profile", "One-page site"], "priority": "P1" }}
  }},
  "painPoints": {{
    "summary": "One sharp sentence about the problem.",
    "problems": ["No website", "No reviews"],
    "quickWins": ["...", "..."],
    "opportunities": [{{ "title": "Capture local traffic", "impact": "High" }}]
  }},
  "suggestedPitch": "Ice-breaker line.",
  "_logs": ...
}}
"""
