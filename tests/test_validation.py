# file: tests/test_validation.py
from leadfactory.schema import ContactInfo, StageRun
from leadfactory.validation import compute_validation, normalize_text, scan_banned_words


def _with_stage(ws, stage, output, status="done"):
    return ws.model_copy(update={"factory_state": {**ws.factory_state, stage: StageRun(status=status, output=output)}})


def test_normalize_text():
    assert normalize_text("Révolutionnaire ÉTÉ") == "revolutionnaire ete"
    assert normalize_text(None) == ""


def test_banned_words_ignore_case_and_accents():
    assert scan_banned_words("Une offre REVOLUTIONNAIRE et garantie") == ["garanti", "révolutionnaire"]
    assert scan_banned_words("A clear, honest offer") == []


def test_fresh_workspace(workspace):
    validation, warnings = compute_validation(workspace.model_copy(update={"phone": None}))
    assert not validation.has_contact
    assert not validation.local_signals
    assert not validation.cta_top_bottom
    assert validation.no_banned_words
    assert "Missing contact (phone/email)." in warnings
    assert "Incomplete local signals (city + address)." in warnings
    # CTA is only checked once the designer has run
    assert not any("CTA" in w for w in warnings)


def test_contact_from_stage_outputs_or_verified_contact(workspace):
    bare = workspace.model_copy(update={"phone": None})
    assert compute_validation(_with_stage(bare, "Collector", {"email": "a@b.fr"}))[0].has_contact
    assert compute_validation(_with_stage(bare, "Normalizer", {"phone": "+33478123456"}))[0].has_contact
    assert compute_validation(bare.model_copy(update={"contact": ContactInfo(email="a@b.fr")}))[0].has_contact


def test_local_signals_need_city_and_address(workspace):
    assert not compute_validation(workspace)[0].local_signals
    with_address = _with_stage(workspace, "Normalizer", {"address": "12 rue de la Republique"})
    assert compute_validation(with_address)[0].local_signals

    no_city = with_address.model_copy(update={"intake": workspace.intake.model_copy(update={"city": ""})})
    assert not compute_validation(no_city)[0].local_signals


def test_cta_detection(workspace):
    ok = _with_stage(workspace, "PrototypeDesigner", {"prototype": {"blocks": ["Hero", "CTA WhatsApp"]}})
    assert compute_validation(ok)[0].cta_top_bottom

    missing = _with_stage(workspace, "PrototypeDesigner", {"prototype": {"blocks": ["Hero", "FAQ"]}})
    validation, warnings = compute_validation(missing)
    assert not validation.cta_top_bottom
    assert "CTA top/bottom not detected (hero + cta/contact)." in warnings

    not_done = _with_stage(workspace, "PrototypeDesigner", {"prototype": {"blocks": ["Hero", "CTA"]}}, status="running")
    assert not compute_validation(not_done)[0].cta_top_bottom


def test_banned_words_in_outputs_and_top_level_fields(workspace):
    ws = _with_stage(workspace, "Copywriter", {"emails": [{"body": "Le meilleur site de Lyon"}]})
    validation, warnings = compute_validation(ws)
    assert not validation.no_banned_words
    assert "Banned words detected: meilleur" in warnings

    extra = workspace.model_copy(update={"outreach": {"hook": "Promo exceptionnelle"}})
    validation, warnings = compute_validation(extra)
    assert not validation.no_banned_words
    assert "Banned words detected: exceptionnel, promo" in warnings


def test_validation_is_pure(workspace):
    before = workspace.model_dump(mode="json")
    compute_validation(workspace)
    assert workspace.model_dump(mode="json") == before
