# file: agents/__init__.py
from .base import StageAgent
from .collector import Collector
from .normalizer import Normalizer
from .pain_finder import PainFinder
from .offer_builder import OfferBuilder
from .copywriter import Copywriter
from .prototype_designer import PrototypeDesigner
from .runner import AgentRunner

__all__ = [
    "StageAgent", "Collector", "Normalizer", "PainFinder",
    "OfferBuilder", "Copywriter", "PrototypeDesigner", "AgentRunner"
]
