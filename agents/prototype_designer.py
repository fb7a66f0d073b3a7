# file: agents/prototype_designer.py
from leadfactory.schema import Workspace
from .base import LOG_INSTRUCTION, StageAgent, as_json


class PrototypeDesigner(StageAgent):
    """Produces the site spec: sitemap, SEO master file and a landing preview"""

    name = "PrototypeDesigner"

    async def build_prompt(self, ws: Workspace) -> str:
        return f"""
AGENT: PrototypeDesigner
TASK: Produce the complete site framework (architecture, SEO, master file).

INPUT (whole file): {as_json(self.previous(ws))}

RULES
1. SITEMAP ASCII: P1 (conversion) / P2 (proof) / P3 (info). Internal links explicit.
2. SEO MASTER FILE: one entry per page. Required ids: home_001, service_001, area_001, contact_001.
   Each page has intent, target, promise, unique H1, meta pack.
3. LANDING PREVIEW: single-file HTML for home_001 with a Hero + contact CTA at the top,
   benefits, proof, FAQ, and a contact CTA at the bottom.

{LOG_INSTRUCTION}

OUTPUT JSON:
{{
  "prototype": {{
    "sitemapAscii": "/\\n|- /services (P1)\\n|   `- ...",
    "seoMasterFile": {{
      "site": {{ "business_name": "...", "city": "...", "radius_km": 15 }},
      "pages": [
        {{ "id": "home_001", "slug": "/", "priority": "P1", "title": "...", "meta": "...", "h1": "...",
           "internal_links": ["service_001", "contact_001"], "faq": [{{ "question": "...", "answer": "..." }}] }},
        {{ "id": "contact_001", "slug": "/contact", "priority": "P1", "title": "...", "meta": "...", "h1": "..." }}
      ]
    }},
    "blocksSystem": {{ "library": ["HeroCTA", "ProofCards", "ServiceCards", "ContactCTA"] }},
    "pages": [{{ "path": "/", "seo": {{ "title": "...", "h1": "..." }}, "previewHtml": "<!DOCTYPE html>..." }}],
    "exports": {{ "robotsTxt": "...", "llmsTxt": "..." }}
  }},
  "_logs": ...
}}
"""
