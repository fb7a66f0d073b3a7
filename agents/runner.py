# file: agents/runner.py
import logging
from typing import Any, Dict
from leadfactory.schema import Workspace
from .collector import Collector
from .copywriter import Copywriter
from .normalizer import Normalizer
from .offer_builder import OfferBuilder
from .pain_finder import PainFinder
from .prototype_designer import PrototypeDesigner

log = logging.getLogger("llm")


class AgentRunner:
    """Default agent runner: one LLM-backed agent per stage"""

    def __init__(self, generate=None):
        agents = [Collector, Normalizer, PainFinder, OfferBuilder, Copywriter, PrototypeDesigner]
        self.agents = {cls.name: cls(generate) for cls in agents}

    async def run(self, stage: str, workspace: Workspace) -> Dict[str, Any]:
        agent = self.agents.get(stage)
        if agent is None:
            raise ValueError(f"No agent for stage {stage}")
        log.info("running %s for %s", stage, workspace.id)
        return await agent.run(workspace)
