# file: tests/test_intake.py
import pytest
from leadfactory.schema import STAGES, IntakeData, TextBlock
from leadfactory.services.intake import create_workspace, extract_email, extract_phone


def test_create_workspace(intake):
    ws = create_workspace(intake)
    assert ws.id.startswith("ws_")
    assert ws.name == "Boulangerie Martin"
    assert ws.workspace_status == "INTAKE_RECEIVED"
    assert ws.crm.stage == "NEW"
    assert ws.phone == "04 78 12 34 56"
    assert [ws.stage(s).status for s in STAGES] == ["waiting"] * 6
    assert ws.validation.no_banned_words is True


def test_name_override_and_website():
    ws = create_workspace(IntakeData(links=["https://chez-paul.fr"]), name="Chez Paul")
    assert ws.name == "Chez Paul"
    assert ws.website == "https://chez-paul.fr"


def test_name_is_required():
    with pytest.raises(ValueError):
        create_workspace(IntakeData(text_blocks=[TextBlock(text="no name here")]))


def test_extractors():
    assert extract_email("Mail: Hello@Chez-Paul.fr, merci") == "Hello@chez-paul.fr"
    assert extract_email("nothing") is None
    assert extract_phone("Tel +33 6 12 34 56 78") == "+33 6 12 34 56 78"
    assert extract_phone("Open 9 to 18") is None
