# file: agents/normalizer.py
from leadfactory.schema import Workspace
from .base import LOG_INSTRUCTION, StageAgent, as_json


class Normalizer(StageAgent):
    """Cleans the Collector output into CRM-ready fields"""

    name = "Normalizer"

    async def build_prompt(self, ws: Workspace) -> str:
        return f"""
AGENT: Normalizer
TASK: CRM standardisation.

INPUT (Collector): {as_json(self.previous(ws)["collector"])}

RULES:
- Phone in E.164 format (+33...)
- Clean address (street, postal code, city)
- Clean name (no legal suffix, fix caps lock)

{LOG_INSTRUCTION}

OUTPUT JSON: {{
  "name": "Clean name",
  "phone": "+336...",
  "email": "contact@example.com",
  "address": "123 Main Street...",
  "city": "City",
  "postal_code": "Code",
  "businessActivity": "Activity",
  "_logs": ...
}}
"""
