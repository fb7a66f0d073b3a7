import os
import sys
from datetime import datetime, timezone

import pytest

# Ensure the repository root is on sys.path so imports like `import leadfactory` and `import agents` work
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from leadfactory.schema import IntakeData, TextBlock  # noqa: E402
from leadfactory.services.intake import create_workspace  # noqa: E402

T0 = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)

# A complete set of stage outputs: contact, local signals, CTA, no banned words.
STAGE_OUTPUTS = {
    "Collector": {
        "name": "Boulangerie Martin",
        "phone": "04 78 12 34 56",
        "email": "contact@boulangerie-martin.fr",
        "address": "12 rue de la Republique, Lyon",
        "_logs": {"plan": ["Read intake"], "process": ["Extracted 4 fields"],
                  "verification": [{"check": "Phone found", "status": "OK"}]},
    },
    "Normalizer": {
        "name": "Boulangerie Martin",
        "phone": "+33478123456",
        "email": "contact@boulangerie-martin.fr",
        "address": "12 rue de la Republique, 69002 Lyon",
        "city": "Lyon",
    },
    "PainFinder": {"painPoints": {"summary": "No website", "problems": ["No website"]}},
    "OfferBuilder": {"offers": {"tiers": [{"name": "Starter", "includes": ["One-page site"]}]}},
    "Copywriter": {"emails": [{"subject": "Your bakery online", "body": "Hello"}]},
    "PrototypeDesigner": {"prototype": {"blocksSystem": {"library": ["Hero", "ContactCTA"]}}},
}


class FakeRunner:
    """Agent runner returning canned outputs; stages listed in `fail` raise."""

    def __init__(self, outputs=None, fail=()):
        self.outputs = outputs or STAGE_OUTPUTS
        self.fail = set(fail)
        self.calls = []

    async def run(self, stage, workspace):
        self.calls.append(stage)
        if stage in self.fail:
            raise RuntimeError(f"{stage} exploded")
        return dict(self.outputs[stage])


@pytest.fixture
def intake():
    return IntakeData(
        mode="mix",
        prospect_name="Boulangerie Martin",
        city="Lyon",
        category="bakery",
        text_blocks=[TextBlock(text="Boulangerie Martin - 12 rue de la Republique, Lyon. 04 78 12 34 56")],
    )


@pytest.fixture
def workspace(intake):
    return create_workspace(intake)


@pytest.fixture
def runner():
    return FakeRunner()
