# file: agents/collector.py
import asyncio
import logging
from leadfactory.config import get_settings
from leadfactory.schema import Workspace
from leadfactory.tools.fetch import http_get_text
from .base import LOG_INSTRUCTION, StageAgent, sanitize

log = logging.getLogger("fetch")

MAX_LINKS = 3


class Collector(StageAgent):
    """Extracts structured business entities from raw intake"""

    name = "Collector"

    async def fetch_sources(self, ws: Workspace) -> str:
        if not ws.intake or not ws.intake.links or not get_settings().fetch_links:
            return ""
        pages = []
        for url in ws.intake.links[:MAX_LINKS]:
            text = await asyncio.to_thread(http_get_text, url)
            if text:
                pages.append(f"SOURCE {url}:\n{text}")
            else:
                log.info("no text from %s for %s", url, ws.id)
        return "\n\n".join(pages)

    async def build_prompt(self, ws: Workspace) -> str:
        intake = ws.intake
        raw_text = intake.raw_text() if intake else ""
        sources = await self.fetch_sources(ws)
        return f"""
AGENT: Collector
TASK: Extract structured entities from the raw material.

RAW INPUTS:
{sanitize(raw_text)}
{sanitize(sources)}
USER NOTES: {sanitize(intake.notes if intake else "")}
HINTS: {intake.prospect_name if intake else ws.name} / {intake.city if intake else ""}

{LOG_INSTRUCTION}

OUTPUT JSON: {{
  "name": "Trading name",
  "phone": "Raw phone",
  "email": "Raw email",
  "address": "Full address",
  "websiteUri": "URL",
  "businessActivity": "Main activity",
  "keySellingPoints": ["Strength 1", "Strength 2"],
  "_logs": ...
}}
"""
