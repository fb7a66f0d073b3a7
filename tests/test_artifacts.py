# file: tests/test_artifacts.py
from leadfactory.services.artifacts import (
    artifacts_for_stage, create_artifact, get_artifact, remove_artifact, update_artifact_content,
)


def test_create_artifact_starts_at_version_one(workspace):
    ws = create_artifact(workspace, type="offer_system", title="Offer", content={"tiers": []}, agent="OfferBuilder")
    assert workspace.artifacts == []
    art = ws.artifacts[0]
    assert art.version == 1
    assert art.created_at == art.updated_at
    assert art.id.startswith("art_offer_system_")
    assert get_artifact(ws, art.id) is art


def test_update_bumps_version_each_time(workspace):
    ws = create_artifact(workspace, type="site_spec", title="Spec", content={"v": 0})
    art_id = ws.artifacts[0].id
    for i in range(1, 4):
        ws = update_artifact_content(ws, art_id, {"v": i})
    art = get_artifact(ws, art_id)
    assert art.version == 4
    assert art.content == {"v": 3}
    assert art.updated_at >= art.created_at


def test_update_unknown_id_returns_same_object(workspace):
    assert update_artifact_content(workspace, "art_missing", {"x": 1}) is workspace


def test_artifacts_survive_until_removed(workspace):
    ws = create_artifact(workspace, type="other", title="Notes", content="free text")
    ws = create_artifact(ws, type="audit_system", title="Audit", content={}, agent="PainFinder")
    keep, drop = ws.artifacts
    ws = remove_artifact(ws, drop.id)
    assert [a.id for a in ws.artifacts] == [keep.id]
    assert remove_artifact(ws, "art_missing") is ws


def test_artifacts_for_stage(workspace):
    ws = create_artifact(workspace, type="audit_system", title="Raw", content={}, agent="Collector")
    ws = create_artifact(ws, type="audit_system", title="Pains", content={}, agent="PainFinder")
    assert [a.title for a in artifacts_for_stage(ws, "PainFinder")] == ["Pains"]
    assert artifacts_for_stage(ws, "Copywriter") == []
