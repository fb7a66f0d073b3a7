from __future__ import annotations
import json
import unicodedata
from typing import Any, List, Tuple
from leadfactory.schema import Workspace, WorkspaceValidation

BANNED_WORDS = [
    "garanti",
    "révolutionnaire",
    "meilleur",
    "exceptionnel",
    "incroyable",
    "promo",
    "offre de folie",
    "prix imbattables",
    "guaranteed",
    "revolutionary",
    "best in the world",
    "unbeatable prices",
]

def normalize_text(s: str) -> str:
    """Lower-case and strip diacritics so 'Révolutionnaire' matches 'revolutionnaire'."""
    decomposed = unicodedata.normalize("NFD", (s or "").lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))

def _stringify(obj: Any) -> str:
    if obj is None:
        return ""
    if isinstance(obj, str):
        return obj
    try:
        return json.dumps(obj, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(obj)

def _field(output: Any, key: str) -> str:
    if isinstance(output, dict):
        value = output.get(key)
        return value.strip() if isinstance(value, str) else ""
    return ""

def scan_banned_words(text: str) -> List[str]:
    t = normalize_text(text)
    return [w for w in BANNED_WORDS if normalize_text(w) in t]

def compute_validation(ws: Workspace) -> Tuple[WorkspaceValidation, List[str]]:
    """Advisory checks re-derived from current state. Nothing here is fatal."""
    warnings: List[str] = []
    normalizer = ws.stage_output("Normalizer")
    collector = ws.stage_output("Collector")

    phone = (ws.phone or "").strip() or _field(normalizer, "phone") or _field(collector, "phone")
    email = (
        _field(normalizer, "email")
        or _field(collector, "email")
        or ((ws.contact.email or "") if ws.contact else "")
    )
    has_contact = bool(phone or email)
    if not has_contact:
        warnings.append("Missing contact (phone/email).")

    city = ((ws.intake.city if ws.intake else "") or "").strip() or _field(normalizer, "city")
    address = (ws.address or "").strip() or _field(normalizer, "address")
    local_signals = bool(city and address)
    if not local_signals:
        warnings.append("Incomplete local signals (city + address).")

    designer = ws.stage("PrototypeDesigner")
    designer_done = designer.status == "done"
    cta_top_bottom = False
    if designer_done:
        proto = designer.output.get("prototype") if isinstance(designer.output, dict) else None
        proto_text = normalize_text(_stringify(proto))
        cta_top_bottom = "hero" in proto_text and ("contact" in proto_text or "cta" in proto_text)
        if not cta_top_bottom:
            warnings.append("CTA top/bottom not detected (hero + cta/contact).")

    extra = ws.model_extra or {}
    blobs = "\n".join([
        _stringify(ws.stage_output("OfferBuilder")),
        _stringify(ws.stage_output("Copywriter")),
        _stringify(ws.stage_output("PrototypeDesigner")),
        _stringify(extra.get("outreach")),
        _stringify(extra.get("emails")),
    ])
    hits = scan_banned_words(blobs)
    no_banned_words = not hits
    if hits:
        warnings.append(f"Banned words detected: {', '.join(hits)}")

    validation = WorkspaceValidation(
        has_contact=has_contact,
        local_signals=local_signals,
        cta_top_bottom=cta_top_bottom,
        no_banned_words=no_banned_words,
    )
    return validation, warnings
