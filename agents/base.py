# file: agents/base.py
import json
import re
from typing import Any, Awaitable, Callable, Dict, Optional
from leadfactory.schema import Workspace
from leadfactory.tools.llm import generate_json

LOG_INSTRUCTION = """
IMPORTANT: include a "_logs" object in the JSON response.
Format: { ...data..., "_logs": { "plan": ["Step 1", "Step 2"], "process": ["Action 1..."], "verification": [{ "check": "Check X", "status": "OK" }] } }
"""

SYSTEM_PROMPT = (
    "You are one stage of a lead-generation pipeline for local businesses. "
    "Answer with a single JSON object and nothing else."
)

# private-use glyphs pasted from map listings confuse the model
_PRIVATE_USE = re.compile(r"[\ue000-\uf8ff]")


def sanitize(text: Optional[str]) -> str:
    return _PRIVATE_USE.sub("", text or "")


def as_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


class StageAgent:
    """One pipeline stage: prompt from the accumulated workspace, JSON object back"""

    name = ""

    def __init__(self, generate: Optional[Callable[..., Awaitable[Dict[str, Any]]]] = None):
        self.generate = generate or generate_json

    def previous(self, ws: Workspace) -> Dict[str, Any]:
        return {
            "collector": ws.stage_output("Collector"),
            "normalizer": ws.stage_output("Normalizer"),
            "painFinder": ws.stage_output("PainFinder"),
            "offerBuilder": ws.stage_output("OfferBuilder"),
            "copywriter": ws.stage_output("Copywriter"),
        }

    async def build_prompt(self, ws: Workspace) -> str:
        raise NotImplementedError

    async def run(self, ws: Workspace) -> Dict[str, Any]:
        prompt = await self.build_prompt(ws)
        return await self.generate(prompt, system=SYSTEM_PROMPT)
